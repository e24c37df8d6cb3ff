"""
Bounded feed of the most recent notification events, shared by every
instance through Redis.
"""

from datetime import datetime, timezone
from typing import Callable, List, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from shared.errors import AdvisoryOutcome, CacheUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..cache.redis_store import RedisStore
from ..models import Event, EventSource

_events_adapter = TypeAdapter(List[Event])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def newest_first(events: List[Event]) -> List[Event]:
    """Sort by timestamp, newest first. Stable, so ties keep stored order."""
    return sorted(events, key=lambda event: event.timestamp, reverse=True)


class EventFeed:
    """Most-recent-N event log stored as one JSON list under a single key.

    Appends are a read-modify-write of that list. Two instances appending
    at the same moment can drop one event (last writer wins).
    """

    def __init__(
        self,
        store: RedisStore,
        max_events: int = 10,
        clock: Callable[[], datetime] = _utcnow,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.max_events = max_events
        self.clock = clock
        self.metrics = metrics
        self.key = "events:feed"
        self.logger = get_logger("api.events.feed")

    async def append(self, source: str, message: str) -> AdvisoryOutcome:
        """Record an event stamped with the current time. Never raises."""
        try:
            event_source = EventSource(source)
        except ValueError:
            self.logger.warning("Rejected event with unknown source", source=source)
            self._count("rejected")
            return AdvisoryOutcome.failure("append_event", f"unknown source: {source!r}")

        event = Event(source=event_source, message=message, timestamp=self.clock())

        try:
            events = await self._read()
            events.append(event)
            if len(events) > self.max_events:
                # Evict by timestamp, not arrival order
                events = newest_first(events)[:self.max_events]
            await self.store.set_json(
                self.key,
                [e.model_dump(mode="json", by_alias=True) for e in events],
            )
        except (CacheUnavailableError, PydanticValidationError) as e:
            self.logger.error("Failed to store event", source=source, error=str(e))
            self._count("failed")
            return AdvisoryOutcome.failure("append_event", e)

        self.logger.info("Stored event", source=source, message=message, size=len(events))
        self._count("stored")
        return AdvisoryOutcome.success("append_event")

    async def get_all(self) -> List[Event]:
        """Current events, newest first; empty when absent or unreadable."""
        try:
            events = await self._read()
        except (CacheUnavailableError, PydanticValidationError) as e:
            self.logger.error("Failed to get events", error=str(e))
            return []
        return newest_first(events)[:self.max_events]

    async def _read(self) -> List[Event]:
        raw = await self.store.get_json(self.key)
        if not raw:
            return []
        return _events_adapter.validate_python(raw)

    def _count(self, status: str):
        if self.metrics is not None:
            self.metrics.increment_counter("feed_appends_total", status=status)
