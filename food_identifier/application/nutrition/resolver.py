"""
Nutrition Resolver.

Looks one food name up in USDA and OpenFoodFacts concurrently and picks
the best record. Provider trouble degrades to fewer candidates, and no
candidates degrades to the zero-valued default row: resolve() never raises.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Union

import structlog

from food_identifier.application.tracing.trace_logger import TraceLogger, TraceRef
from food_identifier.domain.nutrition.models import (
    FoodItemDetail,
    FoodSource,
    ProviderSearchResult,
    normalize_food_name,
)
from food_identifier.domain.nutrition.ports import IOpenFoodFactsClient, IUSDAClient
from food_identifier.domain.shared.errors import ValidationError
from food_identifier.domain.tracing.models import PipelineStage

logger = structlog.get_logger(__name__)


class NutritionResolver:
    """
    Food name → best FoodItemDetail.

    Strategy:
    1. Search USDA and OpenFoodFacts in parallel, each bounded by a timeout
    2. Drop OpenFoodFacts hits whose normalized name duplicates a USDA hit
    3. Rank by provider confidence (stable, USDA first on ties)
    4. Nothing usable → FoodItemDetail.fallback(name)

    Example:
        >>> resolver = NutritionResolver(usda_client, off_client, trace_logger)
        >>> detail = await resolver.resolve("Apple", trace_id)
        >>> print(detail.source, detail.nutrition.calories)
    """

    def __init__(
        self,
        usda_client: IUSDAClient,
        off_client: IOpenFoodFactsClient,
        trace_logger: TraceLogger,
        provider_timeout_seconds: float = 10.0,
        page_size: int = 10,
        usda_data_types: Optional[list[str]] = None,
    ):
        """
        Initialize resolver.

        Args:
            usda_client: USDA FoodData Central client
            off_client: OpenFoodFacts client
            trace_logger: Trace event log
            provider_timeout_seconds: Upper bound per provider call
            page_size: Hits requested from each provider
            usda_data_types: USDA data types (client default if None)
        """
        self.usda_client = usda_client
        self.off_client = off_client
        self.trace_logger = trace_logger
        self.provider_timeout_seconds = provider_timeout_seconds
        self.page_size = page_size
        self.usda_data_types = usda_data_types

    async def resolve(self, name: str, trace_id: TraceRef) -> FoodItemDetail:
        """
        Resolve nutrition for one food name.

        Args:
            name: Food name as detected
            trace_id: Run correlation id

        Returns:
            Top-ranked provider record, or the default row
        """
        if not name or not name.strip():
            self.trace_logger.warn(
                trace_id,
                PipelineStage.NUTRITION_RESPONSE,
                "Blank food name, using default nutrition",
                {"food_name": name},
            )
            return FoodItemDetail.fallback(name)

        query = name.strip()
        usda_items, off_items = await asyncio.gather(
            self._query(
                FoodSource.USDA,
                lambda: self.usda_client.search_foods(
                    query, page_size=self.page_size, data_types=self.usda_data_types
                ),
                query,
                trace_id,
            ),
            self._query(
                FoodSource.OPEN_FOOD_FACTS,
                lambda: self.off_client.search_products(query, page_size=self.page_size),
                query,
                trace_id,
            ),
        )

        ranked = self.rank(usda_items, off_items)

        if not ranked:
            self.trace_logger.warn(
                trace_id,
                PipelineStage.NUTRITION_RESPONSE,
                f"No nutrition data found for {name}, using default",
                {"food_name": name},
            )
            return FoodItemDetail.fallback(name)

        best = ranked[0]
        self.trace_logger.info(
            trace_id,
            PipelineStage.NUTRITION_RESPONSE,
            f"Selected {best.source.value} match for {name}",
            {
                "food_name": name,
                "match_name": best.name,
                "source": best.source.value,
                "source_id": best.source_id,
                "confidence": best.confidence,
                "candidates": len(ranked),
            },
        )
        return best

    @staticmethod
    def rank(
        usda_items: list[FoodItemDetail], off_items: list[FoodItemDetail]
    ) -> list[FoodItemDetail]:
        """
        Merge provider hits into one ranked list.

        USDA hits come first so the stable sort keeps them ahead on equal
        confidence; an OpenFoodFacts hit with the same normalized name as a
        USDA hit is dropped.

        Example:
            >>> ranked = NutritionResolver.rank(
            ...     [usda_item("Apple", 0.9)],
            ...     [off_item("apple", 0.95), off_item("Apple juice", 0.8)],
            ... )
            >>> assert [i.source_id for i in ranked] == ["usda-1", "off-2"]
        """
        usda_names = {normalize_food_name(item.name) for item in usda_items}
        merged = list(usda_items) + [
            item for item in off_items if normalize_food_name(item.name) not in usda_names
        ]
        return sorted(merged, key=lambda item: item.confidence or 0.0, reverse=True)

    async def get_detail(
        self,
        source: Union[FoodSource, str],
        source_id: str,
        trace_id: TraceRef,
    ) -> Optional[FoodItemDetail]:
        """
        Fetch one record by provider id.

        Args:
            source: USDA or OpenFoodFacts
            source_id: FDC id or barcode
            trace_id: Run correlation id

        Returns:
            Record, or None if not found or the provider failed

        Raises:
            ValidationError: Unknown or default source
        """
        try:
            provider = FoodSource(source)
        except ValueError as e:
            raise ValidationError(f"Unknown nutrition source: {source}") from e

        fetch: Callable[[str], Awaitable[Optional[FoodItemDetail]]]
        if provider == FoodSource.USDA:
            fetch = self.usda_client.get_food
        elif provider == FoodSource.OPEN_FOOD_FACTS:
            fetch = self.off_client.get_product
        else:
            raise ValidationError("Default rows have no provider detail")

        self.trace_logger.info(
            trace_id,
            PipelineStage.NUTRITION_REQUEST,
            f"Fetching {provider.value} detail",
            {"provider": provider.value, "source_id": source_id},
        )

        try:
            detail = await asyncio.wait_for(
                fetch(source_id), timeout=self.provider_timeout_seconds
            )
        except asyncio.TimeoutError:
            self._log_provider_error(trace_id, provider, source_id, "Provider timeout")
            return None
        except Exception as e:
            self._log_provider_error(trace_id, provider, source_id, str(e), type(e).__name__)
            return None

        self.trace_logger.info(
            trace_id,
            PipelineStage.NUTRITION_RESPONSE,
            f"{provider.value} detail {'found' if detail else 'not found'}",
            {"provider": provider.value, "source_id": source_id, "found": detail is not None},
        )
        return detail

    async def _query(
        self,
        provider: FoodSource,
        call: Callable[[], Awaitable[ProviderSearchResult]],
        query: str,
        trace_id: TraceRef,
    ) -> list[FoodItemDetail]:
        self.trace_logger.info(
            trace_id,
            PipelineStage.NUTRITION_REQUEST,
            f"Searching {provider.value} for {query}",
            {"provider": provider.value, "query": query, "page_size": self.page_size},
        )

        try:
            result = await asyncio.wait_for(call(), timeout=self.provider_timeout_seconds)
        except asyncio.TimeoutError:
            self._log_provider_error(
                trace_id,
                provider,
                query,
                f"No answer within {self.provider_timeout_seconds}s",
                "TimeoutError",
            )
            return []
        except Exception as e:
            self._log_provider_error(trace_id, provider, query, str(e), type(e).__name__)
            return []

        if result.skipped:
            self.trace_logger.warn(
                trace_id,
                PipelineStage.NUTRITION_RESPONSE,
                f"Skipped malformed {provider.value} records",
                {"provider": provider.value, "query": query, "skipped": result.skipped},
            )

        self.trace_logger.info(
            trace_id,
            PipelineStage.NUTRITION_RESPONSE,
            f"{provider.value} returned {len(result.items)} item(s)",
            {
                "provider": provider.value,
                "query": query,
                "items": len(result.items),
                "total_hits": result.total_hits,
            },
        )
        return list(result.items)

    def _log_provider_error(
        self,
        trace_id: TraceRef,
        provider: FoodSource,
        query: str,
        message: str,
        error_type: Optional[str] = None,
    ) -> None:
        logger.warning(
            "Nutrition provider failed",
            provider=provider.value,
            query=query,
            error=message,
        )
        self.trace_logger.error(
            trace_id,
            PipelineStage.NUTRITION_RESPONSE,
            f"{provider.value} lookup failed",
            {
                "provider": provider.value,
                "query": query,
                "error": message,
                "error_type": error_type,
            },
        )
