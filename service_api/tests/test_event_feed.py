"""
Unit tests for the bounded event feed.
"""

import json
from datetime import datetime, timezone

import pytest

from service_api.app.events.feed import EventFeed, newest_first
from service_api.app.models import Event, EventSource


class TestEventFeed:
    """Test cases for EventFeed."""

    @pytest.mark.asyncio
    async def test_append_then_get_all_round_trip(self, event_feed):
        """Source and message come back unchanged."""
        outcome = await event_feed.append("sql", "User created: X (x@example.com)")

        events = await event_feed.get_all()

        assert outcome.ok is True
        assert len(events) == 1
        assert events[0].source == EventSource.SQL
        assert events[0].message == "User created: X (x@example.com)"

    @pytest.mark.asyncio
    async def test_eleventh_append_evicts_oldest(self, event_feed, clock):
        """Only the ten newest events survive."""
        for i in range(1, 12):
            await event_feed.append("bucket", f"event {i}")
            clock.advance(1)

        events = await event_feed.get_all()

        assert [e.message for e in events] == [f"event {i}" for i in range(11, 1, -1)]

    @pytest.mark.asyncio
    async def test_never_more_than_max_events(self, event_feed, clock):
        """The stored list never grows past the bound."""
        for i in range(25):
            await event_feed.append("sql", f"event {i}")
            clock.advance(0.5)
            assert len(await event_feed.get_all()) <= 10

    @pytest.mark.asyncio
    async def test_get_all_is_newest_first(self, event_feed, clock):
        """Events come back in descending timestamp order."""
        for i in range(5):
            await event_feed.append("sql", f"event {i}")
            clock.advance(3)

        events = await event_feed.get_all()
        timestamps = [e.timestamp for e in events]

        assert timestamps == sorted(timestamps, reverse=True)
        assert len(set(timestamps)) == 5

    @pytest.mark.asyncio
    async def test_timestamp_comes_from_clock(self, event_feed, clock):
        """Appended events are stamped with the current time."""
        await event_feed.append("sql", "hello")

        (event,) = await event_feed.get_all()

        assert event.timestamp == clock.now

    @pytest.mark.asyncio
    async def test_feed_is_stored_without_expiry(self, event_feed, fake_redis):
        """The feed key has no TTL and uses camelCase JSON."""
        await event_feed.append("bucket", "File uploaded: a.txt - URL: https://x/a.txt")

        assert fake_redis.set_calls == [("events:feed", None)]
        stored = json.loads(fake_redis.data["events:feed"][0])
        assert stored[0]["source"] == "bucket"
        assert set(stored[0]) == {"source", "message", "timestamp"}

    @pytest.mark.asyncio
    async def test_unknown_source_is_rejected(self, event_feed, fake_redis, metrics):
        """Events with an unrecognised source are not stored."""
        outcome = await event_feed.append("ftp", "nope")

        assert outcome.ok is False
        assert "ftp" in outcome.error
        assert "events:feed" not in fake_redis.data
        assert metrics.registry.get_sample_value("feed_appends_total", {"status": "rejected"}) == 1.0

    @pytest.mark.asyncio
    async def test_get_all_empty_when_absent(self, event_feed):
        assert await event_feed.get_all() == []

    @pytest.mark.asyncio
    async def test_unreachable_backend_degrades(self, failing_store, clock):
        """Reads return nothing and appends report failure without raising."""
        feed = EventFeed(failing_store, clock=clock)

        outcome = await feed.append("sql", "lost")
        events = await feed.get_all()

        assert outcome.ok is False
        assert outcome.operation == "append_event"
        assert events == []

    @pytest.mark.asyncio
    async def test_corrupt_feed_reads_as_empty(self, event_feed, fake_redis):
        """An unparseable stored feed is treated as empty on read."""
        await fake_redis.set("events:feed", "not json")

        assert await event_feed.get_all() == []


class TestNewestFirst:
    """Test cases for newest_first ordering."""

    def test_ties_keep_stored_order(self):
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        events = [
            Event(source=EventSource.SQL, message="first", timestamp=ts),
            Event(source=EventSource.SQL, message="second", timestamp=ts),
        ]

        assert [e.message for e in newest_first(events)] == ["first", "second"]

    def test_orders_by_timestamp_not_position(self):
        early = datetime(2024, 1, 1, tzinfo=timezone.utc)
        late = datetime(2024, 1, 2, tzinfo=timezone.utc)
        events = [
            Event(source=EventSource.BUCKET, message="late", timestamp=late),
            Event(source=EventSource.SQL, message="early", timestamp=early),
        ]

        assert [e.message for e in newest_first(list(reversed(events)))] == ["late", "early"]
