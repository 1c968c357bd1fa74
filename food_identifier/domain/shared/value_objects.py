"""
Shared value objects.

Immutable, validated domain primitives.
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field


class TraceId(BaseModel):
    """
    Correlation identifier for one identification attempt.

    Created once when the user submits an image and passed by value to
    every stage. Format: "trace_<32_hex_chars>"

    Example:
        >>> trace_id = TraceId.generate()
        >>> assert trace_id.value.startswith("trace_")
        >>> assert len(trace_id.value) == 38
    """

    model_config = ConfigDict(frozen=True)

    value: str = Field(..., min_length=1, description="Trace identifier")

    def __str__(self) -> str:
        """String representation."""
        return self.value

    def __repr__(self) -> str:
        """Debug representation."""
        return f"TraceId('{self.value}')"

    def __hash__(self) -> int:
        """Allow use as dict key."""
        return hash(self.value)

    @classmethod
    def generate(cls) -> TraceId:
        """
        Generate new trace ID.

        Returns:
            New TraceId backed by a random UUID4

        Example:
            >>> id1 = TraceId.generate()
            >>> id2 = TraceId.generate()
            >>> assert id1 != id2
        """
        return cls(value=f"trace_{uuid.uuid4().hex}")

    @classmethod
    def from_string(cls, s: str) -> TraceId:
        """Create from string."""
        return cls(value=s)
