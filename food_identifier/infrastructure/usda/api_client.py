"""
USDA FoodData Central API client.

Text search and detail lookup, throttled by a token bucket sized for the
FDC per-key quota.
"""

import asyncio
import time
from typing import Any, Optional

import structlog

from food_identifier.domain.nutrition.models import (
    FoodItemDetail,
    ProviderSearchResult,
)
from food_identifier.domain.nutrition.usda_mapper import (
    DEFAULT_USDA_CONFIDENCE,
    USDAMapper,
)
from food_identifier.domain.shared.errors import RateLimitError, ValidationError
from food_identifier.infrastructure.http.json_client import JsonHttpClient

logger = structlog.get_logger(__name__)

# Longest we are willing to wait for a token before failing the lookup
MAX_TOKEN_WAIT_SECONDS = 60.0


class RateLimiter:
    """Token bucket: `burst_size` tokens, refilled at `requests_per_hour`."""

    def __init__(self, requests_per_hour: int = 1000, burst_size: int = 10) -> None:
        self.requests_per_hour = requests_per_hour
        self.burst_size = burst_size
        self.tokens = float(burst_size)
        self.last_update = time.monotonic()
        self.lock = asyncio.Lock()

    @property
    def refill_per_second(self) -> float:
        return self.requests_per_hour / 3600.0

    def _refill(self) -> None:
        now = time.monotonic()
        self.tokens = min(
            float(self.burst_size),
            self.tokens + (now - self.last_update) * self.refill_per_second,
        )
        self.last_update = now

    async def acquire(self) -> None:
        """Take one token, sleeping until it is available.

        Raises:
            RateLimitError: Next token is more than a minute away
        """
        async with self.lock:
            self._refill()
            if self.tokens >= 1.0:
                self.tokens -= 1.0
                return

            wait = (1.0 - self.tokens) / self.refill_per_second
            if wait > MAX_TOKEN_WAIT_SECONDS:
                raise RateLimitError(f"USDA quota exhausted, next slot in {wait:.0f}s")

            logger.debug("Waiting for USDA rate limit token", wait_seconds=round(wait, 2))
            await asyncio.sleep(wait)
            self._refill()
            self.tokens = max(0.0, self.tokens - 1.0)


class USDAApiClient(JsonHttpClient):
    """USDA FoodData Central client (`/foods/search`, `/food/{fdcId}`)."""

    PROVIDER = "USDA"
    BASE_URL = "https://api.nal.usda.gov/fdc/v1"
    DEFAULT_DATA_TYPES = ["Foundation"]

    def __init__(
        self,
        api_key: str = "DEMO_KEY",
        timeout_seconds: float = 10,
        max_retries: int = 2,
        confidence: float = DEFAULT_USDA_CONFIDENCE,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        """
        Args:
            api_key: FDC API key (DEMO_KEY is heavily throttled)
            timeout_seconds: Per-attempt timeout
            max_retries: Attempts per request
            confidence: Prior confidence stamped on every USDA record
            rate_limiter: Limiter to share between clients
        """
        super().__init__(timeout_seconds=timeout_seconds, max_retries=max_retries)
        self.api_key = api_key
        self.confidence = confidence
        self.rate_limiter = rate_limiter or RateLimiter()

    async def _before_request(self) -> None:
        await self.rate_limiter.acquire()

    async def search_foods(
        self,
        query: str,
        page_size: int = 10,
        data_types: Optional[list[str]] = None,
    ) -> ProviderSearchResult:
        """Search foods by description.

        Args:
            query: Food description (e.g. "banana")
            page_size: Max hits
            data_types: FDC data types (default Foundation)

        Returns:
            Mapped hits; malformed records counted in `skipped`

        Raises:
            ValidationError: Blank query
            RateLimitError / ProviderTimeoutError / ExternalServiceError

        Example:
            >>> async with USDAApiClient(api_key="DEMO_KEY") as client:
            ...     result = await client.search_foods("apple", page_size=5)
            ...     print([item.name for item in result.items])
        """
        if not query or not query.strip():
            raise ValidationError("Search query must be provided")

        params: dict[str, Any] = {
            "query": query.strip(),
            "pageSize": page_size,
            "dataType": ",".join(data_types or self.DEFAULT_DATA_TYPES),
            "api_key": self.api_key,
        }
        data = await self._get_json(f"{self.BASE_URL}/foods/search", params)
        if not isinstance(data, dict):
            return ProviderSearchResult()

        items, skipped = USDAMapper.parse_search_response(data, self.confidence)
        if skipped:
            logger.warning("Skipped malformed USDA records", query=query, skipped=skipped)

        total_hits = data.get("totalHits")
        if not isinstance(total_hits, int) or total_hits < 0:
            total_hits = len(items)

        return ProviderSearchResult(items=items, total_hits=total_hits, skipped=skipped)

    async def get_food(self, fdc_id: str) -> Optional[FoodItemDetail]:
        """Food detail by FDC id; None when USDA does not know the id."""
        data = await self._get_json(f"{self.BASE_URL}/food/{fdc_id}", {"api_key": self.api_key})
        if data is None:
            logger.info("Food not found in USDA", fdc_id=fdc_id)
            return None

        return USDAMapper.to_food_item(data, self.confidence)
