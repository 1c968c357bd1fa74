"""
Trace Logger.

Structured, trace-correlated event log shared by every pipeline stage.
Appends always succeed locally; remote forwarding is best effort.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional, Union

import structlog

from food_identifier.domain.shared.value_objects import TraceId
from food_identifier.domain.tracing.models import (
    LogEvent,
    LogLevel,
    PipelineStage,
    TraceSummary,
)
from food_identifier.domain.tracing.ports import ILogEventStore, ILogForwarder
from food_identifier.infrastructure.tracing.in_memory_store import (
    InMemoryLogEventStore,
)

logger = structlog.get_logger(__name__)

# Local channel for problems with the trace log itself
fallback_logger = structlog.get_logger("food_identifier.tracing.fallback")

TraceRef = Union[TraceId, str]


class TraceLogger:
    """
    Append + query service over the trace event store.

    Injected into every stage instead of a module-level log list, so each
    test (and each application instance) owns its own log.

    Example:
        >>> trace_logger = TraceLogger()
        >>> trace_id = TraceId.generate()
        >>> trace_logger.log(
        ...     trace_id,
        ...     PipelineStage.IMAGE_UPLOAD,
        ...     LogLevel.INFO,
        ...     "Image received",
        ...     {"image_length": 2048},
        ... )
        >>> events = trace_logger.by_trace(trace_id)
        >>> assert events[0].stage == PipelineStage.IMAGE_UPLOAD
    """

    def __init__(
        self,
        store: Optional[ILogEventStore] = None,
        forwarder: Optional[ILogForwarder] = None,
    ) -> None:
        """
        Initialize logger.

        Args:
            store: Event store (in-memory by default)
            forwarder: Optional remote sink
        """
        self.store = store or InMemoryLogEventStore()
        self.forwarder = forwarder
        self._pending: set[asyncio.Task[None]] = set()

    # ───────────────────────────── append ─────────────────────────────

    def append(self, event: LogEvent) -> LogEvent:
        """
        Append event to the local store and mirror it to structlog.

        If a forwarder is configured the event is also shipped in the
        background; forwarding problems never reach the caller.

        Args:
            event: Event to record

        Returns:
            Stored event (with its sequence number)
        """
        stored = self.store.append(event)
        self._mirror(stored)
        self._schedule_forward(stored)
        return stored

    def log(
        self,
        trace_id: TraceRef,
        stage: PipelineStage,
        level: LogLevel,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> LogEvent:
        """Build an event stamped now and append it."""
        event = LogEvent.create(
            trace_id=str(trace_id),
            stage=stage,
            level=level,
            message=message,
            data=data,
        )
        return self.append(event)

    def info(
        self,
        trace_id: TraceRef,
        stage: PipelineStage,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> LogEvent:
        return self.log(trace_id, stage, LogLevel.INFO, message, data)

    def warn(
        self,
        trace_id: TraceRef,
        stage: PipelineStage,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> LogEvent:
        return self.log(trace_id, stage, LogLevel.WARN, message, data)

    def error(
        self,
        trace_id: TraceRef,
        stage: PipelineStage,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> LogEvent:
        return self.log(trace_id, stage, LogLevel.ERROR, message, data)

    # ───────────────────────────── query ──────────────────────────────

    def by_trace(self, trace_id: TraceRef) -> list[LogEvent]:
        """
        Get all events of one trace.

        Returns:
            Events ordered by timestamp ascending (append order on ties)
        """
        wanted = str(trace_id)
        events = [e for e in self.store.events() if e.trace_id == wanted]
        return sorted(events, key=lambda e: e.sort_key)

    def all_trace_summaries(self) -> list[TraceSummary]:
        """
        Summarize every distinct trace.

        Returns:
            One TraceSummary per trace id, most recently active first
        """
        grouped: dict[str, list[LogEvent]] = {}
        for event in self.store.events():
            grouped.setdefault(event.trace_id, []).append(event)

        summaries = [
            TraceSummary(
                trace_id=trace_id,
                first_timestamp=min(e.timestamp for e in events),
                last_timestamp=max(e.timestamp for e in events),
                step_count=len(events),
                has_errors=any(e.level == LogLevel.ERROR for e in events),
            )
            for trace_id, events in grouped.items()
        ]
        summaries.sort(key=lambda s: s.last_timestamp, reverse=True)
        return summaries

    def export_json(self, trace_id: TraceRef) -> str:
        """Pretty-printed JSON array of one trace's events."""
        return json.dumps([e.to_dict() for e in self.by_trace(trace_id)], indent=2)

    def clear(self) -> None:
        """Drop every stored event."""
        self.store.clear()

    async def flush(self) -> None:
        """Wait for in-flight forwarding tasks."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    # ──────────────────────────── internals ───────────────────────────

    def _mirror(self, event: LogEvent) -> None:
        method = {
            LogLevel.INFO: logger.info,
            LogLevel.WARN: logger.warning,
            LogLevel.ERROR: logger.error,
        }[event.level]
        method(
            event.message,
            trace_id=event.trace_id,
            stage=event.stage.value,
            sequence=event.sequence,
        )

    def _schedule_forward(self, event: LogEvent) -> None:
        if self.forwarder is None:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            fallback_logger.warning(
                "Trace event not forwarded, no running event loop",
                trace_id=event.trace_id,
                sequence=event.sequence,
            )
            return

        task = loop.create_task(self._forward_safely(self.forwarder, event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _forward_safely(self, forwarder: ILogForwarder, event: LogEvent) -> None:
        try:
            await forwarder.forward(event)
        except Exception as e:
            # Remote sink is optional: local store already has the event
            fallback_logger.warning(
                "Trace event forwarding failed",
                trace_id=event.trace_id,
                sequence=event.sequence,
                error=str(e),
            )
