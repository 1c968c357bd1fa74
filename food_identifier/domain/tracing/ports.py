"""
Ports (Interfaces) for trace event storage and forwarding.

The logger depends on these protocols, so tests can swap the in-memory
store or the remote sink without touching the pipeline.
"""

from typing import Protocol, runtime_checkable

from food_identifier.domain.tracing.models import LogEvent


@runtime_checkable
class ILogEventStore(Protocol):
    """
    Port for the append-only event store.

    Implementations must accept concurrent appends without lost writes.
    """

    def append(self, event: LogEvent) -> LogEvent:
        """
        Append event and return it with its assigned sequence number.

        Must not raise for a well-formed event.
        """
        ...

    def events(self) -> list[LogEvent]:
        """Snapshot of all stored events in append order."""
        ...

    def clear(self) -> None:
        """Drop every stored event."""
        ...


@runtime_checkable
class ILogForwarder(Protocol):
    """
    Port for an optional remote sink.

    Forwarding is best effort: implementations may raise, the logger
    swallows the failure and reports it on the local fallback channel.
    """

    async def forward(self, event: LogEvent) -> None:
        """Send one event to the remote sink."""
        ...
