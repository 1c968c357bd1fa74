"""
OpenFoodFacts data mapper.

Transforms OpenFoodFacts product JSON into FoodItemDetail with
serving-size-aware normalization: values are reported per 100 g.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from food_identifier.domain.nutrition.models import (
    FoodItemDetail,
    FoodSource,
    NutritionInfo,
)
from food_identifier.domain.nutrition.usda_mapper import (
    optional_text,
    to_non_negative_float,
)
from food_identifier.domain.shared.errors import ValidationError

DEFAULT_OFF_CONFIDENCE = 0.8

KJ_PER_KCAL = 4.184

_NUMBER = re.compile(r"\d+(?:[.,]\d+)?")
_UNIT = re.compile(r"[a-zA-Zµ]+")
_METRIC_UNITS = ("g", "ml")


def parse_serving_size(serving_size: Any) -> tuple[Optional[float], Optional[str]]:
    """
    Split free-text serving size into (weight, unit).

    Example:
        >>> parse_serving_size("30 g")
        (30.0, 'g')
        >>> parse_serving_size("1 cup (240ml)")
        (1.0, 'cup')
        >>> parse_serving_size(None)
        (None, None)
    """
    if not isinstance(serving_size, str):
        return None, None

    number = _NUMBER.search(serving_size)
    unit = _UNIT.search(serving_size)

    weight = to_non_negative_float(number.group(0).replace(",", ".")) if number else None
    return (weight or None), (unit.group(0) if unit else None)


class OpenFoodFactsMapper:
    """Maps OpenFoodFacts API data to domain models."""

    @staticmethod
    def _per_100g(nutriments: dict[str, Any], key: str, scale: Optional[float]) -> float:
        value = to_non_negative_float(nutriments.get(f"{key}_100g"))
        if value is not None:
            return value

        per_serving = to_non_negative_float(nutriments.get(f"{key}_serving"))
        if per_serving is not None and scale:
            return per_serving * scale

        return 0.0

    @staticmethod
    def _calories(nutriments: dict[str, Any], scale: Optional[float]) -> float:
        kcal = to_non_negative_float(nutriments.get("energy-kcal_100g"))
        if kcal is not None:
            return kcal

        kj = to_non_negative_float(nutriments.get("energy_100g"))
        if kj is not None:
            return kj / KJ_PER_KCAL

        kcal_serving = to_non_negative_float(nutriments.get("energy-kcal_serving"))
        if kcal_serving is not None and scale:
            return kcal_serving * scale

        kj_serving = to_non_negative_float(nutriments.get("energy_serving"))
        if kj_serving is not None and scale:
            return kj_serving / KJ_PER_KCAL * scale

        return 0.0

    @staticmethod
    def to_food_item(
        product: Any, confidence: float = DEFAULT_OFF_CONFIDENCE
    ) -> FoodItemDetail:
        """
        Convert one OpenFoodFacts product.

        Per-100 g fields win; otherwise per-serving values are scaled by
        100 / serving grams (serving_quantity, else a metric serving_size).

        Args:
            product: Raw product JSON
            confidence: Provider prior

        Returns:
            FoodItemDetail with source OpenFoodFacts

        Raises:
            ValidationError: Product is not an object or has no name

        Example:
            >>> item = OpenFoodFactsMapper.to_food_item({
            ...     "code": "3017620422003",
            ...     "product_name": "Nutella",
            ...     "brands": "Ferrero",
            ...     "serving_size": "15 g",
            ...     "nutriments": {"energy-kcal_100g": 539, "fat_100g": 30.9},
            ... })
            >>> assert item.nutrition.calories == 539
            >>> assert item.nutrition.serving_weight == 15
        """
        if not isinstance(product, dict):
            raise ValidationError(
                f"OpenFoodFacts product must be an object, got {type(product).__name__}"
            )

        name = optional_text(product.get("product_name")) or optional_text(
            product.get("generic_name")
        )
        if not name:
            raise ValidationError("OpenFoodFacts product has no name")

        nutriments = product.get("nutriments")
        if not isinstance(nutriments, dict):
            nutriments = {}

        serving_weight, serving_unit = parse_serving_size(product.get("serving_size"))
        serving_quantity = to_non_negative_float(product.get("serving_quantity"))

        # serving_quantity is already in grams; free text only when metric
        grams = serving_quantity or (
            serving_weight if (serving_unit or "g").lower() in _METRIC_UNITS else None
        )
        scale = 100.0 / grams if grams else None
        code = optional_text(str(product["code"])) if product.get("code") is not None else None

        return FoodItemDetail(
            name=name,
            description=optional_text(product.get("generic_name")),
            brand_owner=optional_text(product.get("brands")),
            ingredients=optional_text(product.get("ingredients_text")),
            nutrition=NutritionInfo(
                calories=OpenFoodFactsMapper._calories(nutriments, scale),
                protein=OpenFoodFactsMapper._per_100g(nutriments, "proteins", scale),
                carbs=OpenFoodFactsMapper._per_100g(nutriments, "carbohydrates", scale),
                fat=OpenFoodFactsMapper._per_100g(nutriments, "fat", scale),
                serving_size=f"{serving_quantity:g}" if serving_quantity else "100",
                serving_size_unit=serving_unit or "g",
                serving_weight=serving_weight or 100.0,
            ),
            source=FoodSource.OPEN_FOOD_FACTS,
            source_id=code or optional_text(product.get("_id")),
            confidence=confidence,
        )

    @staticmethod
    def parse_search_response(
        response_data: Any, confidence: float = DEFAULT_OFF_CONFIDENCE
    ) -> tuple[list[FoodItemDetail], int]:
        """
        Parse a product search response.

        Returns:
            (valid items in response order, number of skipped products)
        """
        if not isinstance(response_data, dict):
            return [], 0

        products = response_data.get("products")
        if not isinstance(products, list):
            return [], 0

        items: list[FoodItemDetail] = []
        skipped = 0
        for product in products:
            try:
                items.append(OpenFoodFactsMapper.to_food_item(product, confidence))
            except ValidationError:
                skipped += 1

        return items, skipped

    @staticmethod
    def parse_product_response(
        response_data: Any, confidence: float = DEFAULT_OFF_CONFIDENCE
    ) -> Optional[FoodItemDetail]:
        """
        Parse a single-product response ({"status": 1, "product": {...}}).

        Returns:
            FoodItemDetail, or None when the product was not found

        Raises:
            ValidationError: Product present but unusable
        """
        if not isinstance(response_data, dict):
            return None
        if response_data.get("status") != 1 or not response_data.get("product"):
            return None
        return OpenFoodFactsMapper.to_food_item(response_data["product"], confidence)
