"""
Unit tests for OpenAI client.

Vision completion with mocked OpenAI API.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from food_identifier.domain.shared.errors import (
    ConfigurationError,
    ExternalServiceError,
    ProviderTimeoutError,
    RateLimitError,
)
from food_identifier.infrastructure.ai.openai_client import OpenAIClient

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


@pytest.fixture
def mock_openai_response() -> MagicMock:
    """Mock OpenAI ChatCompletion response."""
    response = MagicMock()

    choice = MagicMock()
    choice.message.content = '{"foodItems": [{"name": "Apple", "confidence": 0.9}]}'
    choice.finish_reason = "stop"

    usage = MagicMock()
    usage.prompt_tokens = 100
    usage.completion_tokens = 50
    usage.total_tokens = 150

    response.choices = [choice]
    response.usage = usage

    return response


@pytest.fixture
def mock_openai_client(mock_openai_response: MagicMock) -> AsyncMock:
    """Mock AsyncOpenAI client."""
    client = AsyncMock()
    client.chat.completions.create = AsyncMock(return_value=mock_openai_response)
    client.close = AsyncMock()
    return client


class TestOpenAIClient:
    """Test suite for OpenAI client."""

    def test_init_defaults(self) -> None:
        client = OpenAIClient(api_key="test-key-123")

        assert client.api_key == "test-key-123"
        assert client.model == "gpt-4o"
        assert client.max_retries == 2
        assert client.timeout == 30
        assert client.rpm_limit == 60

    def test_init_without_api_key_raises_error(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ConfigurationError, match="OPENAI_API_KEY not found"):
                OpenAIClient()

    def test_init_reads_from_env(self) -> None:
        with patch.dict("os.environ", {"OPENAI_API_KEY": "env-key-456"}):
            assert OpenAIClient().api_key == "env-key-456"

    @pytest.mark.asyncio
    async def test_context_manager_uses_injected_client(
        self, mock_openai_client: AsyncMock
    ) -> None:
        async with OpenAIClient(client=mock_openai_client) as client:
            assert client._client is mock_openai_client

        mock_openai_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_complete_success(self, mock_openai_client: AsyncMock) -> None:
        messages = [{"role": "user", "content": "What is this?"}]

        async with OpenAIClient(client=mock_openai_client) as client:
            response = await client.complete(
                messages=messages,
                response_format={"type": "json_object"},
                temperature=0.5,
                max_tokens=1000,
            )

        assert response["content"].startswith('{"foodItems"')
        assert response["finish_reason"] == "stop"
        assert response["usage"]["total_tokens"] == 150

        kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["messages"] == messages
        assert kwargs["temperature"] == 0.5
        assert kwargs["max_tokens"] == 1000
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_complete_empty_content(
        self, mock_openai_client: AsyncMock, mock_openai_response: MagicMock
    ) -> None:
        mock_openai_response.choices[0].message.content = None
        mock_openai_response.usage = None

        async with OpenAIClient(client=mock_openai_client) as client:
            response = await client.complete(messages=[])

        assert response["content"] == ""
        assert response["usage"]["total_tokens"] == 0

    @pytest.mark.asyncio
    async def test_rate_limit_error_translated(self, mock_openai_client: AsyncMock) -> None:
        mock_openai_client.chat.completions.create.side_effect = openai.RateLimitError(
            "quota exceeded", response=httpx.Response(429, request=_REQUEST), body=None
        )

        async with OpenAIClient(client=mock_openai_client) as client:
            with pytest.raises(RateLimitError):
                await client.complete(messages=[])

    @pytest.mark.asyncio
    async def test_timeout_translated(self, mock_openai_client: AsyncMock) -> None:
        mock_openai_client.chat.completions.create.side_effect = openai.APITimeoutError(
            request=_REQUEST
        )

        async with OpenAIClient(client=mock_openai_client) as client:
            with pytest.raises(ProviderTimeoutError):
                await client.complete(messages=[])

    @pytest.mark.asyncio
    async def test_auth_error_translated(self, mock_openai_client: AsyncMock) -> None:
        mock_openai_client.chat.completions.create.side_effect = openai.AuthenticationError(
            "bad key", response=httpx.Response(401, request=_REQUEST), body=None
        )

        async with OpenAIClient(client=mock_openai_client) as client:
            with pytest.raises(ExternalServiceError, match="OpenAI API error"):
                await client.complete(messages=[])

    @pytest.mark.asyncio
    async def test_complete_requires_context_manager(self) -> None:
        client = OpenAIClient(api_key="k")

        with pytest.raises(ExternalServiceError, match="not initialized"):
            await client.complete(messages=[])

    @pytest.mark.asyncio
    async def test_rate_limiter_tracks_requests(self, mock_openai_client: AsyncMock) -> None:
        async with OpenAIClient(client=mock_openai_client, rpm_limit=5) as client:
            for _ in range(3):
                await client.complete(messages=[])

            stats = client.get_stats()

        assert stats["requests_last_minute"] == 3
        assert stats["rpm_limit"] == 5
