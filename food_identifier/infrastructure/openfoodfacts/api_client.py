"""
OpenFoodFacts API client.

Product search by text and lookup by barcode. OpenFoodFacts asks API
users to identify themselves with a User-Agent.
"""

from typing import Any, Optional

import structlog

from food_identifier.domain.nutrition.models import (
    FoodItemDetail,
    ProviderSearchResult,
)
from food_identifier.domain.nutrition.openfoodfacts_mapper import (
    DEFAULT_OFF_CONFIDENCE,
    OpenFoodFactsMapper,
)
from food_identifier.domain.shared.errors import ValidationError
from food_identifier.infrastructure.http.json_client import JsonHttpClient

logger = structlog.get_logger(__name__)


class OpenFoodFactsClient(JsonHttpClient):
    """OpenFoodFacts client (`/cgi/search.pl`, `/api/v2/product/{code}`)."""

    PROVIDER = "OpenFoodFacts"
    BASE_URL = "https://world.openfoodfacts.org"
    USER_AGENT = "AIFoodIdentifier/1.0"

    def __init__(
        self,
        timeout_seconds: float = 10,
        max_retries: int = 2,
        confidence: float = DEFAULT_OFF_CONFIDENCE,
    ) -> None:
        super().__init__(timeout_seconds=timeout_seconds, max_retries=max_retries)
        self.confidence = confidence

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.USER_AGENT}

    async def search_products(self, query: str, page_size: int = 10) -> ProviderSearchResult:
        """Full-text product search.

        Returns:
            Mapped hits; malformed products counted in `skipped`

        Raises:
            ValidationError: Blank query
            ProviderTimeoutError / ExternalServiceError
        """
        if not query or not query.strip():
            raise ValidationError("Search query must be provided")

        params: dict[str, Any] = {
            "search_terms": query.strip(),
            "search_simple": 1,
            "action": "process",
            "page_size": page_size,
            "json": 1,
        }
        data = await self._get_json(f"{self.BASE_URL}/cgi/search.pl", params)
        if not isinstance(data, dict):
            return ProviderSearchResult()

        items, skipped = OpenFoodFactsMapper.parse_search_response(data, self.confidence)
        if skipped:
            logger.warning(
                "Skipped malformed OpenFoodFacts products", query=query, skipped=skipped
            )

        count = data.get("count")
        if not isinstance(count, int) or count < 0:
            count = len(items)

        return ProviderSearchResult(items=items, total_hits=count, skipped=skipped)

    async def get_product(self, code: str) -> Optional[FoodItemDetail]:
        """Product by barcode.

        Example:
            >>> async with OpenFoodFactsClient() as client:
            ...     product = await client.get_product("3017620422003")

        Returns:
            Mapped product, or None when OpenFoodFacts has no such code
        """
        data = await self._get_json(f"{self.BASE_URL}/api/v2/product/{code}")
        product = None
        if data is not None:
            product = OpenFoodFactsMapper.parse_product_response(data, self.confidence)

        logger.info("OpenFoodFacts product lookup", code=code, found=product is not None)
        return product
