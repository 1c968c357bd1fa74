"""
Unit tests for NutritionResolver.

Provider clients are AsyncMock(spec=...) from conftest.
"""

import asyncio
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

from food_identifier.application.nutrition.resolver import NutritionResolver
from food_identifier.application.tracing.trace_logger import TraceLogger
from food_identifier.domain.nutrition.models import (
    FoodItemDetail,
    FoodSource,
    ProviderSearchResult,
)
from food_identifier.domain.shared.errors import ServiceUnavailableError, ValidationError
from food_identifier.domain.shared.value_objects import TraceId
from food_identifier.domain.tracing.models import LogLevel, PipelineStage


@pytest.fixture
def resolver(
    mock_usda_client: AsyncMock, mock_off_client: AsyncMock, trace_logger: TraceLogger
) -> NutritionResolver:
    return NutritionResolver(
        mock_usda_client, mock_off_client, trace_logger, provider_timeout_seconds=0.05
    )


async def _never_answers(*args: Any, **kwargs: Any) -> ProviderSearchResult:
    await asyncio.sleep(1)
    return ProviderSearchResult()


class TestResolve:
    """resolve() selection and degradation."""

    @pytest.mark.asyncio
    async def test_selects_highest_confidence(
        self,
        resolver: NutritionResolver,
        mock_usda_client: AsyncMock,
        mock_off_client: AsyncMock,
        usda_apple: FoodItemDetail,
        off_apple: FoodItemDetail,
        trace_id: TraceId,
    ) -> None:
        mock_usda_client.search_foods.return_value = ProviderSearchResult(
            items=[usda_apple], total_hits=1
        )
        mock_off_client.search_products.return_value = ProviderSearchResult(
            items=[off_apple], total_hits=1
        )

        detail = await resolver.resolve("Apple", trace_id)

        assert detail == usda_apple
        mock_usda_client.search_foods.assert_awaited_once_with(
            "Apple", page_size=10, data_types=None
        )
        mock_off_client.search_products.assert_awaited_once_with("Apple", page_size=10)

    @pytest.mark.asyncio
    async def test_both_providers_time_out(
        self,
        resolver: NutritionResolver,
        mock_usda_client: AsyncMock,
        mock_off_client: AsyncMock,
        trace_logger: TraceLogger,
        trace_id: TraceId,
    ) -> None:
        mock_usda_client.search_foods.side_effect = _never_answers
        mock_off_client.search_products.side_effect = _never_answers

        detail = await resolver.resolve("Dragonfruit", trace_id)

        assert detail.is_fallback
        assert detail.name == "Dragonfruit"
        assert detail.nutrition.calories == 0

        events = trace_logger.by_trace(trace_id)
        errors = [e for e in events if e.level == LogLevel.ERROR]
        assert {e.data["provider"] for e in errors} == {"USDA", "OpenFoodFacts"}
        assert all(e.data["error_type"] == "TimeoutError" for e in errors)
        assert events[-1].level == LogLevel.WARN
        assert events[-1].message == "No nutrition data found for Dragonfruit, using default"

    @pytest.mark.asyncio
    async def test_one_provider_failing(
        self,
        resolver: NutritionResolver,
        mock_usda_client: AsyncMock,
        mock_off_client: AsyncMock,
        off_apple: FoodItemDetail,
        trace_id: TraceId,
    ) -> None:
        mock_usda_client.search_foods.side_effect = ServiceUnavailableError("USDA API error: 503")
        mock_off_client.search_products.return_value = ProviderSearchResult(items=[off_apple])

        detail = await resolver.resolve("Apple", trace_id)

        assert detail == off_apple

    @pytest.mark.asyncio
    async def test_skipped_records_warn(
        self,
        resolver: NutritionResolver,
        mock_usda_client: AsyncMock,
        usda_apple: FoodItemDetail,
        trace_logger: TraceLogger,
        trace_id: TraceId,
    ) -> None:
        mock_usda_client.search_foods.return_value = ProviderSearchResult(
            items=[usda_apple], skipped=3
        )

        await resolver.resolve("Apple", trace_id)

        warnings = [e for e in trace_logger.by_trace(trace_id) if e.level == LogLevel.WARN]
        assert warnings[0].data == {"provider": "USDA", "query": "Apple", "skipped": 3}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   "])
    async def test_blank_name(
        self, resolver: NutritionResolver, mock_usda_client: AsyncMock, trace_id: TraceId, name: str
    ) -> None:
        detail = await resolver.resolve(name, trace_id)

        assert detail.is_fallback
        mock_usda_client.search_foods.assert_not_called()

    @pytest.mark.asyncio
    async def test_query_is_trimmed(
        self, resolver: NutritionResolver, mock_off_client: AsyncMock, trace_id: TraceId
    ) -> None:
        await resolver.resolve("  Greek yogurt ", trace_id)

        assert mock_off_client.search_products.call_args.args[0] == "Greek yogurt"


class TestRank:
    """Merging and ordering of provider hits."""

    def test_usda_wins_ties(self, make_item: Callable[..., FoodItemDetail]) -> None:
        usda = make_item("Banana", FoodSource.USDA, 0.8, source_id="u1")
        off = make_item("Banana chips", FoodSource.OPEN_FOOD_FACTS, 0.8, source_id="o1")

        ranked = NutritionResolver.rank([usda], [off])

        assert [i.source_id for i in ranked] == ["u1", "o1"]

    def test_drops_off_duplicates_of_usda(self, make_item: Callable[..., FoodItemDetail]) -> None:
        usda = make_item("Apple", FoodSource.USDA, 0.7, source_id="u1")
        dup = make_item("APPLE!", FoodSource.OPEN_FOOD_FACTS, 0.95, source_id="o1")
        other = make_item("Apple juice", FoodSource.OPEN_FOOD_FACTS, 0.8, source_id="o2")

        ranked = NutritionResolver.rank([usda], [dup, other])

        assert [i.source_id for i in ranked] == ["o2", "u1"]

    def test_missing_confidence_ranks_last(
        self, make_item: Callable[..., FoodItemDetail]
    ) -> None:
        unknown = make_item("Rice", FoodSource.USDA, None, source_id="u1")
        known = make_item("Rice cakes", FoodSource.OPEN_FOOD_FACTS, 0.2, source_id="o1")

        ranked = NutritionResolver.rank([unknown], [known])

        assert [i.source_id for i in ranked] == ["o1", "u1"]

    def test_empty(self) -> None:
        assert NutritionResolver.rank([], []) == []


class TestGetDetail:
    """Lookup by provider id."""

    @pytest.mark.asyncio
    async def test_usda_detail(
        self,
        resolver: NutritionResolver,
        mock_usda_client: AsyncMock,
        usda_apple: FoodItemDetail,
        trace_id: TraceId,
    ) -> None:
        mock_usda_client.get_food.return_value = usda_apple

        detail = await resolver.get_detail(FoodSource.USDA, "171688", trace_id)

        assert detail == usda_apple
        mock_usda_client.get_food.assert_awaited_once_with("171688")

    @pytest.mark.asyncio
    async def test_off_detail_by_string_source(
        self,
        resolver: NutritionResolver,
        mock_off_client: AsyncMock,
        off_apple: FoodItemDetail,
        trace_logger: TraceLogger,
        trace_id: TraceId,
    ) -> None:
        mock_off_client.get_product.return_value = off_apple

        detail = await resolver.get_detail("OpenFoodFacts", "0070038640790", trace_id)

        assert detail == off_apple
        assert trace_logger.by_trace(trace_id)[-1].data["found"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("source", ["default", "Edamam"])
    async def test_invalid_source(
        self, resolver: NutritionResolver, trace_id: TraceId, source: str
    ) -> None:
        with pytest.raises(ValidationError):
            await resolver.get_detail(source, "1", trace_id)

    @pytest.mark.asyncio
    async def test_provider_error_returns_none(
        self,
        resolver: NutritionResolver,
        mock_usda_client: AsyncMock,
        trace_logger: TraceLogger,
        trace_id: TraceId,
    ) -> None:
        mock_usda_client.get_food.side_effect = ServiceUnavailableError("USDA API error: 502")

        assert await resolver.get_detail(FoodSource.USDA, "1", trace_id) is None

        last = trace_logger.by_trace(trace_id)[-1]
        assert last.level == LogLevel.ERROR
        assert last.stage == PipelineStage.NUTRITION_RESPONSE
