"""
USDA data mapper.

Transforms USDA FoodData Central JSON into FoodItemDetail, validating
field by field. Both the search shape and the detail shape are handled:

    search:  {"nutrientNumber": "208", "nutrientId": 1008, "value": 52.0}
    detail:  {"nutrient": {"number": "208", "id": 1008}, "amount": 52.0}
"""

from __future__ import annotations

import math
from typing import Any, Optional

from food_identifier.domain.nutrition.models import (
    FoodItemDetail,
    FoodSource,
    NutritionInfo,
)
from food_identifier.domain.shared.errors import ValidationError

DEFAULT_USDA_CONFIDENCE = 0.9


def to_non_negative_float(value: Any) -> Optional[float]:
    """Numeric, finite, >= 0, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def optional_text(value: Any) -> Optional[str]:
    """Trimmed non-empty string, or None."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class USDAMapper:
    """Maps USDA API data to domain models."""

    # Legacy nutrient numbers and current nutrient ids
    NUTRIENT_MAP = {
        "208": "calories",  # Energy (kcal)
        "1008": "calories",
        "203": "protein",  # Protein (g)
        "1003": "protein",
        "205": "carbs",  # Carbohydrate, by difference (g)
        "1005": "carbs",
        "204": "fat",  # Total lipid (fat) (g)
        "1004": "fat",
    }

    @staticmethod
    def _nutrient_field(entry: dict[str, Any]) -> Optional[str]:
        nested = entry.get("nutrient")
        codes = [entry.get("nutrientNumber"), entry.get("nutrientId")]
        if isinstance(nested, dict):
            codes += [nested.get("number"), nested.get("id")]

        for code in codes:
            if code is None or isinstance(code, bool):
                continue
            field_name = USDAMapper.NUTRIENT_MAP.get(str(code).strip())
            if field_name:
                return field_name
        return None

    @staticmethod
    def map_nutrients_to_dict(nutrients: Any) -> dict[str, float]:
        """
        Extract the four macros from a foodNutrients array.

        Entries with unknown codes or non-numeric values are ignored; the
        first valid value for a macro wins.

        Example:
            >>> USDAMapper.map_nutrients_to_dict([
            ...     {"nutrientNumber": "208", "value": 52.0},
            ...     {"nutrient": {"id": 1003}, "amount": 0.3},
            ... ])
            {'calories': 52.0, 'protein': 0.3}
        """
        nutrient_dict: dict[str, float] = {}
        if not isinstance(nutrients, list):
            return nutrient_dict

        for entry in nutrients:
            if not isinstance(entry, dict):
                continue
            field_name = USDAMapper._nutrient_field(entry)
            if not field_name or field_name in nutrient_dict:
                continue
            amount = to_non_negative_float(
                entry["value"] if "value" in entry else entry.get("amount")
            )
            if amount is not None:
                nutrient_dict[field_name] = amount

        return nutrient_dict

    @staticmethod
    def to_food_item(
        food_data: Any, confidence: float = DEFAULT_USDA_CONFIDENCE
    ) -> FoodItemDetail:
        """
        Convert one USDA food record.

        Args:
            food_data: Raw food JSON (search hit or detail)
            confidence: Provider prior

        Returns:
            FoodItemDetail with source USDA

        Raises:
            ValidationError: Record is not an object or has no description

        Example:
            >>> item = USDAMapper.to_food_item({
            ...     "fdcId": 171688,
            ...     "description": "Apples, raw, with skin",
            ...     "foodNutrients": [{"nutrientNumber": "208", "value": 52}],
            ... })
            >>> assert item.nutrition.calories == 52
            >>> assert item.nutrition.serving_size == "100"
            >>> assert item.source_id == "171688"
        """
        if not isinstance(food_data, dict):
            raise ValidationError(f"USDA food must be an object, got {type(food_data).__name__}")

        name = optional_text(food_data.get("description")) or optional_text(
            food_data.get("lowercaseDescription")
        )
        if not name:
            raise ValidationError("USDA food has no description")

        nutrients = USDAMapper.map_nutrients_to_dict(food_data.get("foodNutrients"))

        serving_size = to_non_negative_float(food_data.get("servingSize"))
        serving_weight = to_non_negative_float(food_data.get("servingWeight"))

        fdc_id = food_data.get("fdcId")

        return FoodItemDetail(
            name=name,
            description=optional_text(food_data.get("additionalDescriptions")),
            brand_owner=optional_text(food_data.get("brandOwner")),
            ingredients=optional_text(food_data.get("ingredients")),
            nutrition=NutritionInfo(
                calories=nutrients.get("calories", 0.0),
                protein=nutrients.get("protein", 0.0),
                carbs=nutrients.get("carbs", 0.0),
                fat=nutrients.get("fat", 0.0),
                serving_size=f"{serving_size:g}" if serving_size else "100",
                serving_size_unit=optional_text(food_data.get("servingSizeUnit")) or "g",
                serving_weight=serving_weight or 100.0,
            ),
            source=FoodSource.USDA,
            source_id=str(fdc_id) if fdc_id is not None else None,
            confidence=confidence,
        )

    @staticmethod
    def parse_search_response(
        response_data: Any, confidence: float = DEFAULT_USDA_CONFIDENCE
    ) -> tuple[list[FoodItemDetail], int]:
        """
        Parse a /foods/search response.

        Args:
            response_data: Raw API response JSON
            confidence: Provider prior for every hit

        Returns:
            (valid items in response order, number of skipped records)
        """
        if not isinstance(response_data, dict):
            return [], 0

        foods = response_data.get("foods")
        if not isinstance(foods, list):
            return [], 0

        items: list[FoodItemDetail] = []
        skipped = 0
        for food_data in foods:
            try:
                items.append(USDAMapper.to_food_item(food_data, confidence))
            except ValidationError:
                skipped += 1

        return items, skipped
