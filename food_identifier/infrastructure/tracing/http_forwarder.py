"""
HTTP log forwarder.

Posts trace events to a remote debug endpoint. Failures are raised to the
caller (the TraceLogger), which swallows them.
"""

import asyncio
from typing import Optional

import aiohttp
import structlog

from food_identifier.domain.shared.errors import (
    ExternalServiceError,
    ProviderTimeoutError,
)
from food_identifier.domain.tracing.models import LogEvent

logger = structlog.get_logger(__name__)


class HttpLogForwarder:
    """Remote sink posting one JSON event per request."""

    def __init__(self, url: str, timeout_seconds: float = 5.0) -> None:
        """Initialize forwarder.

        Args:
            url: Endpoint accepting POSTed LogEvent JSON
            timeout_seconds: Per-request timeout
        """
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "HttpLogForwarder":
        """Async context manager entry."""
        self._session = aiohttp.ClientSession(
            headers={"Content-Type": "application/json"}
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        if self._session:
            await self._session.close()
            self._session = None

    async def forward(self, event: LogEvent) -> None:
        """Send event to the remote sink.

        Args:
            event: Event to forward

        Raises:
            ExternalServiceError: If session missing or sink answers >= 400
            ProviderTimeoutError: If the sink does not answer in time
        """
        if not self._session:
            msg = "Forwarder not initialized, use async with"
            raise ExternalServiceError(msg)

        try:
            async with self._session.post(
                self.url,
                json=event.to_dict(),
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as response:
                if response.status >= 400:
                    msg = f"Log sink error: {response.status}"
                    raise ExternalServiceError(msg)

                logger.debug(
                    "Trace event forwarded",
                    trace_id=event.trace_id,
                    stage=event.stage.value,
                )

        except asyncio.TimeoutError as e:
            msg = "Log sink timeout"
            raise ProviderTimeoutError(msg) from e

        except aiohttp.ClientError as e:
            msg = f"Log sink client error: {e}"
            raise ExternalServiceError(msg) from e
