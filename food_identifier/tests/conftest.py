"""
Shared fixtures for food_identifier tests.
"""

from typing import Any, Callable, Optional
from unittest.mock import AsyncMock

import pytest

from food_identifier.application.tracing.trace_logger import TraceLogger
from food_identifier.domain.nutrition.models import (
    FoodItemDetail,
    FoodSource,
    NutritionInfo,
    ProviderSearchResult,
)
from food_identifier.domain.shared.value_objects import TraceId
from food_identifier.infrastructure.openfoodfacts.api_client import OpenFoodFactsClient
from food_identifier.infrastructure.usda.api_client import USDAApiClient


# ═══════════════════════════════════════════════════════════
# TRACING FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def trace_logger() -> TraceLogger:
    """Fresh in-memory trace log per test."""
    return TraceLogger()


@pytest.fixture
def trace_id() -> TraceId:
    """Trace id for a single run."""
    return TraceId.generate()


# ═══════════════════════════════════════════════════════════
# DOMAIN MODEL FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def make_item() -> Callable[..., FoodItemDetail]:
    """Factory for provider records."""

    def _make(
        name: str,
        source: FoodSource = FoodSource.USDA,
        confidence: Optional[float] = 0.9,
        calories: float = 52.0,
        source_id: Optional[str] = None,
    ) -> FoodItemDetail:
        return FoodItemDetail(
            name=name,
            nutrition=NutritionInfo(calories=calories, protein=0.3, carbs=14.0, fat=0.2),
            source=source,
            source_id=source_id,
            confidence=confidence,
        )

    return _make


@pytest.fixture
def usda_apple(make_item: Callable[..., FoodItemDetail]) -> FoodItemDetail:
    """USDA record for a raw apple."""
    return make_item("Apples, raw, with skin", FoodSource.USDA, 0.9, 52.0, "171688")


@pytest.fixture
def off_apple(make_item: Callable[..., FoodItemDetail]) -> FoodItemDetail:
    """OpenFoodFacts record for packaged apple slices."""
    return make_item(
        "Apple slices", FoodSource.OPEN_FOOD_FACTS, 0.8, 48.0, "0070038640790"
    )


# ═══════════════════════════════════════════════════════════
# RAW PROVIDER PAYLOADS
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def usda_search_payload() -> dict[str, Any]:
    """USDA /foods/search response (search shape nutrients)."""
    return {
        "totalHits": 2,
        "currentPage": 1,
        "totalPages": 1,
        "foods": [
            {
                "fdcId": 171688,
                "description": "Apples, raw, with skin",
                "dataType": "Foundation",
                "foodNutrients": [
                    {"nutrientId": 1008, "nutrientNumber": "208", "value": 52},
                    {"nutrientId": 1003, "nutrientNumber": "203", "value": 0.26},
                    {"nutrientId": 1005, "nutrientNumber": "205", "value": 13.8},
                    {"nutrientId": 1004, "nutrientNumber": "204", "value": 0.17},
                    {"nutrientId": 1079, "nutrientNumber": "291", "value": 2.4},
                ],
            },
            {
                "fdcId": 2344720,
                "description": "Apple juice, unsweetened",
                "dataType": "Foundation",
                "brandOwner": "Generic",
                "servingSize": 240,
                "servingSizeUnit": "ml",
                "foodNutrients": [
                    {"nutrientNumber": "208", "value": 46},
                ],
            },
        ],
    }


@pytest.fixture
def usda_detail_payload() -> dict[str, Any]:
    """USDA /food/{fdcId} response (detail shape nutrients)."""
    return {
        "fdcId": 171688,
        "description": "Apples, raw, with skin",
        "dataType": "Foundation",
        "foodNutrients": [
            {"nutrient": {"id": 1008, "number": "208", "name": "Energy"}, "amount": 52},
            {"nutrient": {"id": 1003, "number": "203", "name": "Protein"}, "amount": 0.26},
            {"nutrient": {"id": 1005, "number": "205"}, "amount": 13.8},
            {"nutrient": {"id": 1004, "number": "204"}, "amount": 0.17},
        ],
    }


@pytest.fixture
def off_search_payload() -> dict[str, Any]:
    """OpenFoodFacts search response."""
    return {
        "count": 2,
        "page": 1,
        "page_size": 10,
        "products": [
            {
                "code": "3017620422003",
                "product_name": "Nutella",
                "generic_name": "Hazelnut spread",
                "brands": "Ferrero",
                "ingredients_text": "Sugar, palm oil, hazelnuts 13%",
                "serving_size": "15 g",
                "serving_quantity": 15,
                "nutriments": {
                    "energy-kcal_100g": 539,
                    "proteins_100g": 6.3,
                    "carbohydrates_100g": 57.5,
                    "fat_100g": 30.9,
                },
            },
            {
                "code": "5000112548167",
                "product_name": "Cola",
                "serving_size": "250 ml",
                "nutriments": {
                    "energy-kcal_serving": 105,
                    "carbohydrates_serving": 26.5,
                },
            },
        ],
    }


# ═══════════════════════════════════════════════════════════
# CLIENT MOCKS
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def mock_usda_client() -> AsyncMock:
    """USDA client returning no hits by default."""
    client = AsyncMock(spec=USDAApiClient)
    client.search_foods.return_value = ProviderSearchResult()
    client.get_food.return_value = None
    return client


@pytest.fixture
def mock_off_client() -> AsyncMock:
    """OpenFoodFacts client returning no hits by default."""
    client = AsyncMock(spec=OpenFoodFactsClient)
    client.search_products.return_value = ProviderSearchResult()
    client.get_product.return_value = None
    return client
