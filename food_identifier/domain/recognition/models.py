"""
Domain models for food recognition.

Shapes produced by the vision stage before nutrition resolution.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def clamp_confidence(value: Any) -> float:
    """
    Coerce an arbitrary value into a confidence in [0, 1].

    Missing, boolean, non-numeric and non-finite values become 0.

    Example:
        >>> clamp_confidence(1.7)
        1.0
        >>> clamp_confidence("0.42")
        0.42
        >>> clamp_confidence(None)
        0.0
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return min(max(number, 0.0), 1.0)


class DetectedFoodCandidate(BaseModel):
    """
    Food name + confidence emitted by the vision stage.

    Attributes:
        name: Trimmed, non-empty food name
        confidence: Model confidence clamped to [0, 1]

    Example:
        >>> candidate = DetectedFoodCandidate(name="  Apple ", confidence=1.2)
        >>> assert candidate.name == "Apple"
        >>> assert candidate.confidence == 1.0
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Food name")
    confidence: float = Field(0.0, ge=0.0, le=1.0, description="Model confidence")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Any) -> Any:
        """Trim surrounding whitespace."""
        return v.strip() if isinstance(v, str) else v

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp(cls, v: Any) -> float:
        """Default to 0 and clamp into range."""
        return clamp_confidence(v)


class ParseStrategy(str, Enum):
    """Which parser layer produced the result."""

    DIRECT = "direct"  # Whole text was valid JSON
    EXTRACTED = "extracted"  # JSON recovered from fences or prose
    FAILED = "failed"  # Nothing recoverable, empty result


class ParsedVisionResponse(BaseModel):
    """
    Validated `{foodItems, extractedText}` shape.

    Always well-formed, possibly empty.
    """

    model_config = ConfigDict(frozen=True)

    food_items: List[DetectedFoodCandidate] = Field(default_factory=list)
    extracted_text: List[str] = Field(default_factory=list)
    strategy: ParseStrategy = ParseStrategy.DIRECT
    error: Optional[str] = Field(None, description="Why earlier layers failed")
    dropped_items: int = Field(0, ge=0, description="Items discarded by normalization")

    @classmethod
    def empty(cls, error: Optional[str] = None) -> ParsedVisionResponse:
        """Empty-but-valid result used when nothing can be parsed."""
        return cls(strategy=ParseStrategy.FAILED, error=error)


class VisionResult(BaseModel):
    """
    Successful vision stage outcome.

    Example:
        >>> result = VisionResult(
        ...     candidates=[DetectedFoodCandidate(name="Apple", confidence=0.95)],
        ...     extracted_text=["Nutrition Facts"],
        ... )
        >>> assert result.candidates[0].name == "Apple"
    """

    model_config = ConfigDict(frozen=True)

    candidates: List[DetectedFoodCandidate] = Field(default_factory=list)
    extracted_text: List[str] = Field(default_factory=list)


class VisionErrorKind(str, Enum):
    """Kinds of vision stage failure."""

    API_ERROR = "api-error"


class VisionError(BaseModel):
    """
    Vision model call could not be completed.

    This is the only stage failure that aborts a run.
    """

    model_config = ConfigDict(frozen=True)

    kind: VisionErrorKind = VisionErrorKind.API_ERROR
    message: str
