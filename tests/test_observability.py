"""Tests for preen.observability — event log and collector."""

import threading
import time
from dataclasses import dataclass

import pytest

from preen.observability.collector import StackCollector
from preen.observability.events import (
    CacheInvalidated,
    ChangeFlushed,
    PageRendered,
    RenderFailed,
    SubscriptionClosed,
    now_ns,
)
from preen.observability.log import EventLog


def _rendered(path: str = "/a.md", generation: int = 1) -> PageRendered:
    return PageRendered(
        path=path, kind="markdown", generation=generation,
        render_ms=1.0, timestamp_ns=now_ns(),
    )


def _flushed(window_ms: float) -> ChangeFlushed:
    return ChangeFlushed(
        path="/a.md", kind="modified", raw_events=3,
        clients_notified=1, window_ms=window_ms, timestamp_ns=now_ns(),
    )


# ---------------------------------------------------------------------------
# EventLog
# ---------------------------------------------------------------------------


class TestEventLog:
    """Tests for the event log store."""

    def test_append_and_len(self) -> None:
        log = EventLog()
        assert len(log) == 0
        log.append(_rendered())
        assert len(log) == 1

    def test_max_events_enforced(self) -> None:
        log = EventLog(max_events=5)
        for i in range(10):
            log.append(_rendered(f"/{i}.md", i))

        assert len(log) == 5
        assert log.recent(1)[0].path == "/9.md"

    def test_recent(self) -> None:
        log = EventLog()
        for i in range(5):
            log.append(_rendered(f"/{i}.md", i))

        recent = log.recent(2)
        assert [e.path for e in recent] == ["/3.md", "/4.md"]

    def test_query_by_type(self) -> None:
        log = EventLog()
        log.append(_rendered())
        log.append(CacheInvalidated(path="/a.md", had_entry=True, timestamp_ns=now_ns()))
        log.append(_rendered("/b.md", 2))

        results = log.query(event_type=PageRendered)
        assert [e.path for e in results] == ["/b.md", "/a.md"]

    def test_query_by_path(self) -> None:
        log = EventLog()
        log.append(_rendered("/docs/a.md"))
        log.append(_rendered("/docs/b.md", 2))
        log.append(SubscriptionClosed(subscriber_id="abc", reason="reload", timestamp_ns=now_ns()))

        assert len(log.query(path="a.md")) == 1

    def test_query_since_and_limit(self) -> None:
        log = EventLog()
        log.append(_rendered("/old.md"))
        cutoff = now_ns()
        time.sleep(0.001)
        for i in range(5):
            log.append(_rendered(f"/{i}.md", i + 2))

        assert len(log.query(since_ns=cutoff)) == 5
        assert len(log.query(since_ns=cutoff, limit=2)) == 2

    def test_clear(self) -> None:
        log = EventLog()
        log.append(_rendered())
        log.append(_rendered())

        assert log.clear() == 2
        assert len(log) == 0

    def test_stats(self) -> None:
        log = EventLog()
        log.append(_rendered())
        log.append(_flushed(100.0))
        log.append(_flushed(140.0))

        stats = log.stats()
        assert stats["total"] == 3
        assert stats["by_type"] == {"PageRendered": 1, "ChangeFlushed": 2}
        assert stats["flush_window_ms"] == {"count": 2, "mean": 120.0, "max": 140.0}

    def test_stats_empty(self) -> None:
        assert EventLog().stats()["flush_window_ms"] == {"count": 0, "mean": 0.0, "max": 0.0}

    def test_thread_safety(self) -> None:
        """Concurrent appends should not lose events."""
        log = EventLog(max_events=50_000)
        errors: list[Exception] = []

        def worker(start: int) -> None:
            try:
                for i in range(1000):
                    log.append(_rendered(f"/{start}_{i}.md", i))
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        assert len(log) == 10_000


# ---------------------------------------------------------------------------
# StackCollector
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _ServerEvent:
    """Stand-in for a Pounce lifecycle event."""

    connection_id: int
    timestamp_ns: int


class TestStackCollector:
    """Tests for the unified stack collector."""

    def test_record_pounce_event(self) -> None:
        collector = StackCollector()
        event = _ServerEvent(connection_id=1, timestamp_ns=now_ns())

        collector.record(event)

        assert collector.log.recent(1) == [event]

    def test_record_render(self) -> None:
        collector = StackCollector()
        collector.record_render("/a.md", kind="asset", generation=4, render_ms=0.5)

        (event,) = collector.log.query(event_type=PageRendered)
        assert event.kind == "asset"
        assert event.generation == 4

    def test_record_render_failed(self) -> None:
        collector = StackCollector()
        collector.record_render_failed("/bad.md", "not valid UTF-8")

        (event,) = collector.log.query(event_type=RenderFailed)
        assert event.error == "not valid UTF-8"

    def test_record_invalidation(self) -> None:
        collector = StackCollector()
        collector.record_invalidation("/a.md", had_entry=False)

        (event,) = collector.log.query(event_type=CacheInvalidated)
        assert event.had_entry is False

    def test_record_flush(self) -> None:
        collector = StackCollector()
        collector.record_flush(
            "/a.md", kind="created", raw_events=2, clients_notified=3, window_ms=101.0,
        )

        (event,) = collector.log.query(event_type=ChangeFlushed)
        assert event.clients_notified == 3

    def test_record_subscription_closed(self) -> None:
        collector = StackCollector()
        collector.record_subscription_closed("abc123", "keepalive")

        (event,) = collector.log.query(event_type=SubscriptionClosed)
        assert event.reason == "keepalive"

    def test_collector_with_custom_log(self) -> None:
        log = EventLog(max_events=10)
        collector = StackCollector(log)
        assert collector.log is log


class TestEventDataclasses:
    def test_events_frozen(self) -> None:
        event = _rendered()
        with pytest.raises(AttributeError):
            event.generation = 2  # type: ignore[misc]

    def test_now_ns_monotonic(self) -> None:
        a = now_ns()
        b = now_ns()
        assert b >= a
