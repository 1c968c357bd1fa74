"""In-memory append-only trace event store, thread-safe.

Concurrent nutrition lookups append from many tasks (and, for sync
callers, possibly many threads); the lock makes sequence assignment and
the list append one atomic step.
"""

from __future__ import annotations

from threading import Lock
from typing import List

from food_identifier.domain.tracing.models import LogEvent


class InMemoryLogEventStore:
    """Append-only list of LogEvent guarded by a lock.

    Example:
        >>> store = InMemoryLogEventStore()
        >>> stored = store.append(event)
        >>> assert store.events()[-1] == stored
    """

    def __init__(self) -> None:
        self._events: List[LogEvent] = []
        self._lock = Lock()
        self._next_sequence = 0

    def append(self, event: LogEvent) -> LogEvent:
        with self._lock:
            stored = event.with_sequence(self._next_sequence)
            self._next_sequence += 1
            self._events.append(stored)
        return stored

    def events(self) -> list[LogEvent]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
