"""
Event Bus for Cadence.

This module provides a simple pub/sub event system for decoupled communication
between the ingest runner and whatever wants to watch it (progress output,
metrics exporters, tests).

Event types:
- ingest.started: An ingest run started reading a feed
- ingest.batch.committed: A batch was committed
- ingest.batch.failed: A batch was rolled back (the run stops)
- ingest.aggregates.rebuilt: The per-year album counts were recomputed
- ingest.completed: An ingest run finished

Usage:
    from cadence.core.events import event_bus

    async def on_batch(event: IngestBatchCommittedEvent) -> None:
        print(f"batch {event.batch_no}: {event.affected_rows} rows")

    await event_bus.subscribe("ingest.batch.committed", on_batch)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[["Event"], Coroutine[Any, Any, None]]


@dataclass
class Event:
    """Base class for all events."""

    event_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        return {"type": self.event_type}


@dataclass
class IngestStartedEvent(Event):
    """Fired when an ingest run opens its feed."""

    event_type: str = field(default="ingest.started", init=False)
    source: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.event_type, "source": self.source}


@dataclass
class IngestBatchCommittedEvent(Event):
    event_type: str = field(default="ingest.batch.committed", init=False)
    batch_no: int = 0
    records: int = 0
    affected_rows: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "batch_no": self.batch_no,
            "records": self.records,
            "affected_rows": self.affected_rows,
        }


@dataclass
class IngestBatchFailedEvent(Event):
    """Fired when a batch is rolled back. The run re-raises right after."""

    event_type: str = field(default="ingest.batch.failed", init=False)
    batch_no: int = 0
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "batch_no": self.batch_no,
            "error": self.error,
        }


@dataclass
class AggregatesRebuiltEvent(Event):
    event_type: str = field(default="ingest.aggregates.rebuilt", init=False)
    rows: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.event_type, "rows": self.rows}


@dataclass
class IngestCompletedEvent(Event):
    """Fired once at the end of a successful run."""

    event_type: str = field(default="ingest.completed", init=False)
    batches: int = 0
    records: int = 0
    affected_rows: int = 0
    aggregate_rows: int = 0
    rebuilds: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "batches": self.batches,
            "records": self.records,
            "affected_rows": self.affected_rows,
            "aggregate_rows": self.aggregate_rows,
            "rebuilds": self.rebuilds,
        }


class EventBus:
    """
    Simple async pub/sub event bus.

    Supports:
    - Multiple handlers per event type
    - Wildcard subscriptions (e.g., "ingest.*")
    - Async handlers
    - Error isolation (one handler failing doesn't affect others)
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Event type to subscribe to. Use ".*" suffix (or "*") for wildcards.
            handler: Async function to call when event is published.
        """
        async with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            logger.debug("Subscribed to %s: %s", event_type, handler)

    async def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """
        Unsubscribe a handler from an event type.

        Returns True if handler was found and removed.
        """
        async with self._lock:
            handlers = self._handlers.get(event_type)
            if handlers and handler in handlers:
                handlers.remove(handler)
                logger.debug("Unsubscribed from %s: %s", event_type, handler)
                return True
            return False

    async def publish(self, event: Event) -> int:
        """
        Publish an event to all subscribed handlers.

        Returns:
            Number of handlers that handled the event without raising.
        """
        event_type = event.event_type
        handlers_called = 0

        async with self._lock:
            matching_handlers: list[EventHandler] = []
            for pattern, handlers in self._handlers.items():
                if pattern == event_type or pattern == "*":
                    matching_handlers.extend(handlers)
                elif pattern.endswith(".*") and event_type.startswith(pattern[:-1]):
                    # "ingest.*" matches "ingest.started" and "ingest.batch.failed"
                    matching_handlers.extend(handlers)

        # Call handlers outside of lock
        for handler in matching_handlers:
            try:
                await handler(event)
                handlers_called += 1
            except Exception as e:
                logger.exception("Error in event handler for %s: %s", event_type, e)

        if handlers_called > 0:
            logger.debug("Published %s to %d handlers", event_type, handlers_called)

        return handlers_called

    async def clear(self) -> None:
        """Remove all subscriptions."""
        async with self._lock:
            self._handlers.clear()
            logger.debug("Cleared all event subscriptions")


# Global event bus instance
event_bus = EventBus()
