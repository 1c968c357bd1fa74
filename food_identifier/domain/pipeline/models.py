"""
Pipeline outcome models.

A run ends in exactly one of PipelineResult or PipelineError.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterator, List

from pydantic import BaseModel, ConfigDict, Field

from food_identifier.domain.nutrition.models import FoodItemDetail


class PipelineState(str, Enum):
    """Lifecycle of one run."""

    UPLOADED = "uploaded"
    VISION_PENDING = "vision-pending"
    VISION_DONE = "vision-done"
    VISION_FAILED = "vision-failed"
    NUTRITION_PENDING = "nutrition-pending"
    COMPLETE = "complete"


class PipelineErrorKind(str, Enum):
    """Run-level failures surfaced to the caller."""

    VISION_FAILED = "vision-failed"
    NO_FOOD_DETECTED = "no-food-detected"


_USER_MESSAGES = {
    PipelineErrorKind.VISION_FAILED: (
        "We couldn't analyze your image. Please check your connection and try again."
    ),
    PipelineErrorKind.NO_FOOD_DETECTED: (
        "No food was detected in this image. Try another photo or add items manually."
    ),
}


class PipelineResult(BaseModel):
    """
    Successful run: one row per detected candidate, detection order.

    Iterating or taking len() works over `items`.

    Example:
        >>> result = PipelineResult(trace_id="trace_abc", items=[detail])
        >>> assert len(result) == 1
        >>> assert [item.name for item in result] == [detail.name]
    """

    model_config = ConfigDict(frozen=True)

    trace_id: str
    items: List[FoodItemDetail] = Field(default_factory=list)
    extracted_text: List[str] = Field(default_factory=list)
    low_confidence: bool = False

    def __iter__(self) -> Iterator[FoodItemDetail]:  # type: ignore[override]
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index: int) -> FoodItemDetail:
        return self.items[index]


class PipelineError(BaseModel):
    """Failed run, returned as a value."""

    model_config = ConfigDict(frozen=True)

    kind: PipelineErrorKind
    message: str
    trace_id: str

    @property
    def user_message(self) -> str:
        """Text suitable for showing to the end user."""
        return _USER_MESSAGES[self.kind]
