"""
Unit tests for USDA and OpenFoodFacts mappers.
"""

from typing import Any

import pytest

from food_identifier.domain.nutrition.models import FoodSource
from food_identifier.domain.nutrition.openfoodfacts_mapper import (
    OpenFoodFactsMapper,
    parse_serving_size,
)
from food_identifier.domain.nutrition.usda_mapper import USDAMapper
from food_identifier.domain.shared.errors import ValidationError


class TestUSDAMapper:
    def test_parse_search_response(self, usda_search_payload: dict[str, Any]) -> None:
        items, skipped = USDAMapper.parse_search_response(usda_search_payload)

        assert skipped == 0
        assert [i.name for i in items] == ["Apples, raw, with skin", "Apple juice, unsweetened"]

        apple = items[0]
        assert apple.source == FoodSource.USDA
        assert apple.source_id == "171688"
        assert apple.confidence == 0.9
        assert apple.nutrition.calories == 52
        assert apple.nutrition.protein == 0.26
        assert apple.nutrition.carbs == 13.8
        assert apple.nutrition.fat == 0.17
        assert apple.nutrition.serving_size == "100"
        assert apple.nutrition.serving_size_unit == "g"
        assert apple.nutrition.serving_weight == 100

    def test_serving_info_kept(self, usda_search_payload: dict[str, Any]) -> None:
        items, _ = USDAMapper.parse_search_response(usda_search_payload)

        juice = items[1]
        assert juice.nutrition.serving_size == "240"
        assert juice.nutrition.serving_size_unit == "ml"
        assert juice.brand_owner == "Generic"
        assert juice.nutrition.protein == 0

    def test_detail_shape(self, usda_detail_payload: dict[str, Any]) -> None:
        item = USDAMapper.to_food_item(usda_detail_payload, confidence=0.7)

        assert item.nutrition.calories == 52
        assert item.nutrition.protein == 0.26
        assert item.nutrition.carbs == 13.8
        assert item.nutrition.fat == 0.17
        assert item.confidence == 0.7

    def test_invalid_nutrient_values_ignored(self) -> None:
        nutrients = USDAMapper.map_nutrients_to_dict(
            [
                {"nutrientNumber": "208", "value": "n/a"},
                {"nutrientNumber": "208", "value": 61},
                {"nutrientNumber": "203", "value": -4},
                {"nutrientNumber": "999", "value": 1},
                "garbage",
            ]
        )

        assert nutrients == {"calories": 61.0}

    def test_malformed_records_skipped(self) -> None:
        items, skipped = USDAMapper.parse_search_response(
            {"foods": [None, {"fdcId": 1}, {"fdcId": 2, "description": "Banana, raw"}]}
        )

        assert [i.name for i in items] == ["Banana, raw"]
        assert skipped == 2

    @pytest.mark.parametrize("payload", [None, [], {"foods": "nope"}, {}])
    def test_unexpected_envelope(self, payload: Any) -> None:
        assert USDAMapper.parse_search_response(payload) == ([], 0)

    def test_to_food_item_rejects_non_object(self) -> None:
        with pytest.raises(ValidationError):
            USDAMapper.to_food_item("Apple")


class TestOpenFoodFactsMapper:
    def test_per_100g_values(self, off_search_payload: dict[str, Any]) -> None:
        items, skipped = OpenFoodFactsMapper.parse_search_response(off_search_payload)

        assert skipped == 0
        nutella = items[0]
        assert nutella.source == FoodSource.OPEN_FOOD_FACTS
        assert nutella.source_id == "3017620422003"
        assert nutella.confidence == 0.8
        assert nutella.brand_owner == "Ferrero"
        assert nutella.description == "Hazelnut spread"
        assert nutella.ingredients == "Sugar, palm oil, hazelnuts 13%"
        assert nutella.nutrition.calories == 539
        assert nutella.nutrition.fat == 30.9
        assert nutella.nutrition.serving_size == "15"
        assert nutella.nutrition.serving_size_unit == "g"
        assert nutella.nutrition.serving_weight == 15

    def test_per_serving_values_scaled_to_100g(self, off_search_payload: dict[str, Any]) -> None:
        items, _ = OpenFoodFactsMapper.parse_search_response(off_search_payload)

        cola = items[1]
        assert cola.nutrition.calories == pytest.approx(42.0)
        assert cola.nutrition.carbs == pytest.approx(10.6)
        assert cola.nutrition.serving_size_unit == "ml"
        assert cola.nutrition.serving_weight == 250

    def test_energy_kj_converted(self) -> None:
        item = OpenFoodFactsMapper.to_food_item(
            {"product_name": "Oats", "nutriments": {"energy_100g": 1569}}
        )

        assert item.nutrition.calories == pytest.approx(375.0, abs=0.1)

    def test_non_metric_serving_not_used_for_scaling(self) -> None:
        item = OpenFoodFactsMapper.to_food_item(
            {
                "product_name": "Milk",
                "serving_size": "1 cup",
                "nutriments": {"energy-kcal_serving": 150},
            }
        )

        assert item.nutrition.calories == 0
        assert item.nutrition.serving_size_unit == "cup"

    def test_generic_name_used_when_product_name_missing(self) -> None:
        item = OpenFoodFactsMapper.to_food_item({"generic_name": "Yogurt", "_id": "abc"})

        assert item.name == "Yogurt"
        assert item.source_id == "abc"

    def test_malformed_products_skipped(self) -> None:
        items, skipped = OpenFoodFactsMapper.parse_search_response(
            {"products": [{"code": "1"}, 7, {"product_name": "Bread", "nutriments": "?"}]}
        )

        assert [i.name for i in items] == ["Bread"]
        assert items[0].nutrition.calories == 0
        assert skipped == 2

    def test_parse_product_response(self) -> None:
        found = OpenFoodFactsMapper.parse_product_response(
            {"status": 1, "product": {"code": "42", "product_name": "Tea"}}
        )
        missing = OpenFoodFactsMapper.parse_product_response({"status": 0})

        assert found is not None and found.name == "Tea"
        assert missing is None


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("30 g", (30.0, "g")),
        ("250ml", (250.0, "ml")),
        ("1,5 kg", (1.5, "kg")),
        ("1 cup (240ml)", (1.0, "cup")),
        ("portion", (None, "portion")),
        (None, (None, None)),
    ],
)
def test_parse_serving_size(raw: Any, expected: tuple) -> None:
    assert parse_serving_size(raw) == expected
