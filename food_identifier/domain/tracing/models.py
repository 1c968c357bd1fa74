"""
Trace event models.

Every pipeline stage records what it did as a LogEvent tagged with the
run's TraceId. Events are immutable once appended.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PipelineStage(str, Enum):
    """Closed set of stages an event can be tagged with."""

    IMAGE_UPLOAD = "image-upload"
    VISION_REQUEST = "vision-request"
    VISION_RESPONSE = "vision-response"
    NUTRITION_REQUEST = "nutrition-request"
    NUTRITION_RESPONSE = "nutrition-response"
    FINAL_ITEM = "final-item"
    ERROR = "error"


class LogLevel(str, Enum):
    """Severity of a trace event."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"


def to_json_safe(data: Optional[dict[str, Any]]) -> dict[str, Any]:
    """
    Deep-copy payload into plain JSON types.

    Values json can't encode (exceptions, datetimes, models) become strings,
    so a stored event never aliases caller-owned objects.

    Example:
        >>> to_json_safe({"error": ValueError("boom"), "n": 1})
        {'error': 'boom', 'n': 1}
    """
    if not data:
        return {}
    safe = json.loads(json.dumps(data, default=str))
    return safe if isinstance(safe, dict) else {"value": safe}


class LogEvent(BaseModel):
    """
    One timestamped, trace-tagged pipeline event.

    Attributes:
        timestamp: UTC time the event was created
        trace_id: Correlation id of the run
        stage: Pipeline stage that emitted the event
        level: info | warn | error
        message: Human-readable summary
        data: JSON-safe payload
        sequence: Store-assigned append position (tie-breaker for ordering)

    Example:
        >>> event = LogEvent.create(
        ...     trace_id="trace_abc",
        ...     stage=PipelineStage.VISION_REQUEST,
        ...     level=LogLevel.INFO,
        ...     message="Vision request sent",
        ...     data={"image_length": 1024},
        ... )
        >>> assert event.sequence == 0
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="UTC creation time")
    trace_id: str = Field(..., min_length=1, description="Trace identifier")
    stage: PipelineStage = Field(..., description="Emitting stage")
    level: LogLevel = Field(LogLevel.INFO, description="Severity")
    message: str = Field(..., description="Summary")
    data: dict[str, Any] = Field(default_factory=dict, description="Payload")
    sequence: int = Field(0, ge=0, description="Append position")

    @field_validator("data", mode="before")
    @classmethod
    def sanitize_data(cls, v: Any) -> dict[str, Any]:
        """Store a JSON-safe copy of the payload."""
        if v is None:
            return {}
        if not isinstance(v, dict):
            return to_json_safe({"value": v})
        return to_json_safe(v)

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Naive timestamps are treated as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def create(
        cls,
        trace_id: str,
        stage: PipelineStage,
        level: LogLevel,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> LogEvent:
        """Build an event stamped with the current UTC time."""
        return cls(
            timestamp=datetime.now(timezone.utc),
            trace_id=trace_id,
            stage=stage,
            level=level,
            message=message,
            data=data,
        )

    def with_sequence(self, sequence: int) -> LogEvent:
        """Copy of this event carrying its store position."""
        return self.model_copy(update={"sequence": sequence})

    @property
    def sort_key(self) -> tuple[datetime, int]:
        """Ordering key: timestamp, then append position."""
        return (self.timestamp, self.sequence)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-compatible dictionary."""
        return self.model_dump(mode="json")


class TraceSummary(BaseModel):
    """
    Aggregate view of one trace for the inspection surface.

    Example:
        >>> from datetime import datetime, timezone
        >>> now = datetime.now(timezone.utc)
        >>> summary = TraceSummary(
        ...     trace_id="trace_abc",
        ...     first_timestamp=now,
        ...     last_timestamp=now,
        ...     step_count=3,
        ...     has_errors=False,
        ... )
    """

    model_config = ConfigDict(frozen=True)

    trace_id: str
    first_timestamp: datetime
    last_timestamp: datetime
    step_count: int = Field(..., ge=0)
    has_errors: bool = False
