"""
Shared aiohttp plumbing for the nutrition providers.

One session per client (opened by `async with`), a bounded retry loop for
timeouts and transport errors, and HTTP status → domain error mapping.
"""

import asyncio
from typing import Any, Optional, TypeVar

import aiohttp
import structlog

from food_identifier.domain.shared.errors import (
    ExternalServiceError,
    ProviderTimeoutError,
    RateLimitError,
    ServiceUnavailableError,
)

logger = structlog.get_logger(__name__)

ClientT = TypeVar("ClientT", bound="JsonHttpClient")


class JsonHttpClient:
    """Base for provider clients that GET JSON documents.

    Subclasses set `PROVIDER` (used in error messages and log events) and
    may override `_headers()` and `_before_request()`.
    """

    PROVIDER = "HTTP"

    def __init__(self, timeout_seconds: float = 10, max_retries: int = 2) -> None:
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(1, max_retries)
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self: ClientT) -> ClientT:
        self._session = aiohttp.ClientSession(headers=self._headers())
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    @property
    def retry_budget_seconds(self) -> float:
        """Longest `_get_json` can take when every attempt times out."""
        backoff = sum(2**attempt for attempt in range(self.max_retries - 1))
        return self.timeout_seconds * self.max_retries + backoff

    def _headers(self) -> dict[str, str]:
        return {}

    async def _before_request(self) -> None:
        """Hook run once per logical request (rate limiting)."""

    async def _get_json(
        self, url: str, params: Optional[dict[str, Any]] = None
    ) -> Optional[Any]:
        """GET a JSON body.

        Returns:
            Decoded body, or None on 404

        Raises:
            RateLimitError: 429
            ServiceUnavailableError: 5xx
            ExternalServiceError: other 4xx, transport failure, no session
            ProviderTimeoutError: every attempt timed out
        """
        if self._session is None:
            raise ExternalServiceError(f"{self.PROVIDER} client not initialized, use async with")

        await self._before_request()
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        attempt = 0
        while True:
            try:
                async with self._session.get(url, params=params, timeout=timeout) as response:
                    return await self._read(response)

            except asyncio.TimeoutError as e:
                if attempt + 1 >= self.max_retries:
                    raise ProviderTimeoutError(f"{self.PROVIDER} API timeout") from e
                failure = "timeout"

            except aiohttp.ClientError as e:
                if attempt + 1 >= self.max_retries:
                    raise ExternalServiceError(f"{self.PROVIDER} API client error: {e}") from e
                failure = type(e).__name__

            delay = 2**attempt
            logger.warning(
                "Provider request failed, retrying",
                provider=self.PROVIDER,
                failure=failure,
                attempt=attempt + 1,
                retry_in_seconds=delay,
            )
            await asyncio.sleep(delay)
            attempt += 1

    async def _read(self, response: aiohttp.ClientResponse) -> Optional[Any]:
        status = response.status
        if status == 404:
            return None
        if status == 429:
            logger.warning("Provider rate limited us", provider=self.PROVIDER)
            raise RateLimitError(f"{self.PROVIDER} API rate limit exceeded")
        if status >= 500:
            raise ServiceUnavailableError(f"{self.PROVIDER} API unavailable: {status}")
        if status >= 400:
            raise ExternalServiceError(f"{self.PROVIDER} API error: {status}")
        return await response.json()
