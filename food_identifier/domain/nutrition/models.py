"""
Domain models for nutrition resolution.

Provider-neutral nutrition record shared by USDA, OpenFoodFacts and the
zero-valued fallback.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from food_identifier.domain.recognition.models import clamp_confidence


class FoodSource(str, Enum):
    """Where a nutrition record came from."""

    USDA = "USDA"
    OPEN_FOOD_FACTS = "OpenFoodFacts"
    DEFAULT = "default"  # Fallback, no provider data


class NutritionInfo(BaseModel):
    """
    Macronutrients per serving reference (100 g unless stated).

    0 means "unknown" as well as "none"; a provider value is never
    negative.

    Example:
        >>> info = NutritionInfo(calories=52, protein=0.3, carbs=14, fat=0.2)
        >>> assert info.serving_weight is None
        >>> assert NutritionInfo.zero().calories == 0
    """

    model_config = ConfigDict(frozen=True)

    calories: float = Field(0.0, ge=0, description="Energy (kcal)")
    protein: float = Field(0.0, ge=0, description="Protein (g)")
    carbs: float = Field(0.0, ge=0, description="Carbohydrates (g)")
    fat: float = Field(0.0, ge=0, description="Total fat (g)")
    serving_size: Optional[str] = None
    serving_size_unit: Optional[str] = None
    serving_weight: Optional[float] = Field(None, gt=0, description="Grams per serving")

    @classmethod
    def zero(cls) -> NutritionInfo:
        """All-zero record used by the fallback row."""
        return cls()


class FoodItemDetail(BaseModel):
    """
    Food + nutrition as returned by a provider or the fallback.

    Attributes:
        name: Display name
        description: Extra description (fallback: "Estimated nutrition for X")
        brand_owner: Brand, for packaged products
        ingredients: Ingredient list text
        nutrition: Macronutrients
        source: Provider tag
        source_id: Provider record id (FDC id or barcode)
        confidence: Provider prior, or AI confidence after merge

    Example:
        >>> detail = FoodItemDetail.fallback("Dragonfruit")
        >>> assert detail.is_fallback
        >>> assert detail.description == "Estimated nutrition for Dragonfruit"
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    brand_owner: Optional[str] = None
    ingredients: Optional[str] = None
    nutrition: NutritionInfo = Field(default_factory=NutritionInfo)
    source: FoodSource
    source_id: Optional[str] = None
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp(cls, v: object) -> Optional[float]:
        return None if v is None else clamp_confidence(v)

    @property
    def is_fallback(self) -> bool:
        """True only for the default row, never for a real zero-calorie food."""
        return self.source == FoodSource.DEFAULT

    @classmethod
    def fallback(cls, name: str) -> FoodItemDetail:
        """Zero-nutrition default row for a food no provider knows."""
        return cls(
            name=name,
            description=f"Estimated nutrition for {name}",
            nutrition=NutritionInfo.zero(),
            source=FoodSource.DEFAULT,
            confidence=0.0,
        )

    def with_identity(self, name: str, confidence: Optional[float]) -> FoodItemDetail:
        """Copy carrying the detected name and (when given) the AI confidence."""
        update: dict[str, object] = {"name": name}
        if confidence is not None:
            update["confidence"] = clamp_confidence(confidence)
        return self.model_copy(update=update)


class ProviderSearchResult(BaseModel):
    """
    Mapped hits of one provider search.

    Attributes:
        items: Valid records in provider order
        total_hits: Provider-reported hit count
        skipped: Malformed records dropped by the mapper
    """

    model_config = ConfigDict(frozen=True)

    items: list[FoodItemDetail] = Field(default_factory=list)
    total_hits: int = Field(0, ge=0)
    skipped: int = Field(0, ge=0)


_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_food_name(name: str) -> str:
    """
    Key used to spot the same food across providers.

    Example:
        >>> normalize_food_name("  Apples, RAW ")
        'apples raw'
    """
    lowered = _PUNCTUATION.sub(" ", name.lower())
    return _WHITESPACE.sub(" ", lowered).strip()
