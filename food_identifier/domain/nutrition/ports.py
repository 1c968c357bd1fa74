"""
Ports (Interfaces) for nutrition providers.

The resolver depends on these protocols; USDAApiClient and
OpenFoodFactsClient implement them, tests substitute AsyncMocks.

Design Pattern: Ports & Adapters (Hexagonal Architecture)
"""

from typing import Optional, Protocol, runtime_checkable

from food_identifier.domain.nutrition.models import (
    FoodItemDetail,
    ProviderSearchResult,
)


@runtime_checkable
class IUSDAClient(Protocol):
    """Port for USDA FoodData Central."""

    async def search_foods(
        self,
        query: str,
        page_size: int = 10,
        data_types: Optional[list[str]] = None,
    ) -> ProviderSearchResult:
        """
        Search foods by description.

        Raises:
            RateLimitError: If rate limit exceeded
            ProviderTimeoutError: If request times out
            ExternalServiceError: If API error
        """
        ...

    async def get_food(self, fdc_id: str) -> Optional[FoodItemDetail]:
        """Get one food by FDC id (None if not found)."""
        ...


@runtime_checkable
class IOpenFoodFactsClient(Protocol):
    """Port for OpenFoodFacts."""

    async def search_products(self, query: str, page_size: int = 10) -> ProviderSearchResult:
        """
        Search products by text.

        Raises:
            ProviderTimeoutError: If request times out
            ExternalServiceError: If API error
        """
        ...

    async def get_product(self, code: str) -> Optional[FoodItemDetail]:
        """Get one product by barcode (None if not found)."""
        ...
