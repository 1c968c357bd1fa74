"""
OpenAI vision client.

Thin async wrapper over AsyncOpenAI used by VisionStage: one chat
completion per image, SDK errors translated to domain errors, and a
per-minute request budget shared by every call made through the instance.
"""

from __future__ import annotations

import asyncio
import os
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional

import openai
import structlog
from openai import AsyncOpenAI

from food_identifier.domain.shared.errors import (
    ConfigurationError,
    ExternalServiceError,
    ProviderTimeoutError,
    RateLimitError,
)

logger = structlog.get_logger(__name__)

WINDOW_SECONDS = 60.0


class RequestWindow:
    """Timestamps of the requests issued in the last minute."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self._stamps: Deque[float] = deque()
        self._lock = asyncio.Lock()

    def _expire(self, now: float) -> None:
        while self._stamps and now - self._stamps[0] >= WINDOW_SECONDS:
            self._stamps.popleft()

    async def reserve(self) -> None:
        """Record one request, sleeping first if the window is full."""
        async with self._lock:
            now = time.monotonic()
            self._expire(now)

            if len(self._stamps) >= self.limit:
                delay = WINDOW_SECONDS - (now - self._stamps[0])
                if delay > 0:
                    logger.warning("OpenAI request budget exhausted", wait_seconds=round(delay, 2))
                    await asyncio.sleep(delay)
                now = time.monotonic()
                self._expire(now)

            self._stamps.append(now)

    def recent(self) -> int:
        self._expire(time.monotonic())
        return len(self._stamps)


class OpenAIClient:
    """
    Vision completions through the OpenAI SDK.

    Transport retries are left to the SDK (`max_retries`); this class only
    adds the request budget and error translation.

    Example:
        >>> async with OpenAIClient(model="gpt-4o") as client:
        ...     reply = await client.complete(
        ...         messages=build_vision_messages(image_url),
        ...         response_format={"type": "json_object"},
        ...     )
        ...     print(reply["content"], reply["usage"]["total_tokens"])
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o",
        max_retries: int = 2,
        timeout: float = 30,
        rpm_limit: int = 60,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Args:
            api_key: Key to use; OPENAI_API_KEY when omitted
            model: Vision-capable chat model
            max_retries: SDK transport retries
            timeout: SDK request timeout (seconds)
            rpm_limit: Requests allowed per rolling minute
            client: Ready AsyncOpenAI instance (tests inject a mock here)

        Raises:
            ConfigurationError: No key available and no client injected
        """
        key = api_key or os.getenv("OPENAI_API_KEY")
        if client is None and not key:
            raise ConfigurationError(
                "OPENAI_API_KEY not found: set it in the environment or .env file"
            )

        self.api_key: str = key or "injected-client"
        self.model = model
        self.max_retries = max_retries
        self.timeout = timeout
        self.rpm_limit = rpm_limit

        self._client: Optional[AsyncOpenAI] = client
        self._window = RequestWindow(rpm_limit)

    async def __aenter__(self) -> OpenAIClient:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=self.max_retries,
            )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client is not None:
            await self._client.close()

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        response_format: Optional[Dict[str, str]] = None,
        temperature: float = 0.5,
        max_tokens: int = 1000,
    ) -> Dict[str, Any]:
        """
        Run one chat completion.

        Returns:
            {"content": str, "finish_reason": str | None,
             "usage": {"prompt_tokens", "completion_tokens", "total_tokens"}}

        Raises:
            RateLimitError: OpenAI quota or rate limit hit
            ProviderTimeoutError: SDK gave up waiting
            ExternalServiceError: Any other API failure, or no choices
        """
        if self._client is None:
            raise ExternalServiceError("OpenAI client not initialized, use async with")

        await self._window.reserve()

        request: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format:
            request["response_format"] = response_format

        started = time.monotonic()
        try:
            completion = await self._client.chat.completions.create(**request)
        except openai.RateLimitError as e:
            raise RateLimitError(f"OpenAI rate limit exceeded: {e}") from e
        except openai.APITimeoutError as e:
            raise ProviderTimeoutError("OpenAI request timed out") from e
        except openai.APIError as e:
            raise ExternalServiceError(f"OpenAI API error: {e}") from e

        if not completion.choices:
            raise ExternalServiceError("OpenAI returned no choices")

        choice = completion.choices[0]
        usage = _usage(completion.usage)
        logger.debug(
            "OpenAI completion finished",
            model=self.model,
            finish_reason=choice.finish_reason,
            total_tokens=usage["total_tokens"],
            elapsed_ms=round((time.monotonic() - started) * 1000),
        )

        return {
            "content": choice.message.content or "",
            "finish_reason": choice.finish_reason,
            "usage": usage,
        }

    def get_stats(self) -> Dict[str, Any]:
        """Model, RPM limit and requests issued in the rolling minute."""
        return {
            "model": self.model,
            "rpm_limit": self.rpm_limit,
            "requests_last_minute": self._window.recent(),
        }


def _usage(usage: Any) -> Dict[str, int]:
    fields = ("prompt_tokens", "completion_tokens", "total_tokens")
    if usage is None:
        return dict.fromkeys(fields, 0)
    return {name: int(getattr(usage, name, 0) or 0) for name in fields}
