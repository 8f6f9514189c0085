"""Event log — bounded in-memory history behind ``/__preen/stats``.

A ``deque`` ring buffer under a ``threading.Lock``; readers copy a
snapshot and filter outside the lock, so the watcher thread, the
coordinator, and request handlers never wait on one another for long.
"""

import threading
from collections import Counter, deque
from collections.abc import Callable
from typing import Any

from preen.observability.events import ChangeFlushed, StackEvent


class EventLog:
    """Ring buffer of recent events; the oldest are dropped first.

    Args:
        max_events: Capacity of the buffer.

    """

    __slots__ = ("_buffer", "_capacity", "_lock")

    def __init__(self, max_events: int = 10_000) -> None:
        self._capacity = max_events
        self._buffer: deque[StackEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    def _snapshot(self) -> list[StackEvent]:
        with self._lock:
            return list(self._buffer)

    def append(self, event: StackEvent) -> None:
        with self._lock:
            self._buffer.append(event)

    def query(
        self,
        *,
        event_type: type | None = None,
        since_ns: int = 0,
        path: str | None = None,
        limit: int = 100,
    ) -> list[StackEvent]:
        """Newest-first events matching every given filter.

        ``path`` is a substring match against events that carry a path;
        events without one never match it.
        """
        checks: list[Callable[[Any], bool]] = []
        if event_type is not None:
            checks.append(lambda e: isinstance(e, event_type))
        if since_ns:
            checks.append(lambda e: getattr(e, "timestamp_ns", 0) >= since_ns)
        if path is not None:
            checks.append(lambda e: path in (getattr(e, "path", None) or ""))

        matched: list[StackEvent] = []
        for event in reversed(self._snapshot()):
            if all(check(event) for check in checks):
                matched.append(event)
                if len(matched) == limit:
                    break
        return matched

    def recent(self, n: int = 20) -> list[StackEvent]:
        """The last *n* events, oldest first."""
        return self._snapshot()[-n:]

    def clear(self) -> int:
        """Empty the buffer; returns how many events were discarded."""
        with self._lock:
            dropped = len(self._buffer)
            self._buffer.clear()
        return dropped

    def stats(self) -> dict[str, Any]:
        """Per-type counts and debounce-window latency of recent flushes."""
        events = self._snapshot()
        windows = [e.window_ms for e in events if isinstance(e, ChangeFlushed)]
        return {
            "total": len(events),
            "max_events": self._capacity,
            "by_type": dict(Counter(type(e).__name__ for e in events)),
            "flush_window_ms": {
                "count": len(windows),
                "mean": round(sum(windows) / len(windows), 2) if windows else 0.0,
                "max": round(max(windows), 2) if windows else 0.0,
            },
        }
