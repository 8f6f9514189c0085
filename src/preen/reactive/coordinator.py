"""Change coordinator — debounce, invalidate, notify.

Consumes raw change events and runs a small state machine per path:

    idle ──event──▶ debouncing ──quiet period──▶ flushing ──▶ idle
                     ▲      │
                     └event─┘  (timer re-armed: sliding window)

A flush invalidates the render cache and then signals the live-reload
channel, in that order and without yielding to the event loop between
the two, so a browser told to reload always re-fetches fresh content.

All state is owned by the event loop running the coordinator; timers
are ``loop.call_later`` handles.
"""

from __future__ import annotations

import asyncio
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Sequence

    from preen._types import ChangeKind, PathState
    from preen.content.cache import RenderCache
    from preen.content.watcher import ChangeEvent
    from preen.observability.collector import StackCollector
    from preen.reactive.channel import LiveReloadChannel


def coalesce_kinds(kinds: Sequence[ChangeKind]) -> ChangeKind:
    """Collapse the kinds seen in one debounce window into one.

    A removal followed by a creation (editors saving via temp file and
    rename) is a modification, not a delete.
    """
    if not kinds:
        msg = "cannot coalesce an empty window"
        raise ValueError(msg)
    last = kinds[-1]
    if last == "removed":
        return "removed"
    if len(kinds) == 1:
        return last
    if "removed" in kinds:
        return "modified"
    if kinds[0] == "created":
        return "created"
    return "modified"


@dataclass(slots=True)
class _Window:
    """Open debounce window for one path."""

    kinds: list[ChangeKind] = field(default_factory=list)
    opened_ns: int = field(default_factory=time.monotonic_ns)
    timer: asyncio.TimerHandle | None = None
    state: PathState = "debouncing"


@dataclass(frozen=True, slots=True)
class FlushResult:
    """Outcome of flushing one path."""

    path: Path
    kind: ChangeKind
    raw_events: int
    invalidated: bool
    clients_notified: int
    window_ms: float


class ChangeCoordinator:
    """Turns bursts of filesystem events into one reload per path.

    Args:
        cache: Render cache to invalidate.
        channel: Live-reload channel to signal.
        quiet_period: Seconds without events before a window flushes.
        collector: Optional observability collector.
        verbose: Print one line per flush to stderr.

    """

    def __init__(
        self,
        cache: RenderCache,
        channel: LiveReloadChannel,
        *,
        quiet_period: float = 0.1,
        collector: StackCollector | None = None,
        verbose: bool = False,
    ) -> None:
        self._cache = cache
        self._channel = channel
        self._quiet_period = quiet_period
        self._collector = collector
        self._verbose = verbose
        self._windows: dict[Path, _Window] = {}
        self._flush_count = 0

    @property
    def pending(self) -> frozenset[Path]:
        """Paths with an open debounce window."""
        return frozenset(self._windows)

    @property
    def flush_count(self) -> int:
        return self._flush_count

    def state_of(self, path: Path) -> PathState:
        window = self._windows.get(path)
        return window.state if window is not None else "idle"

    # ----- intake -----

    def submit(self, event: ChangeEvent) -> None:
        """Feed one raw event.  Must be called on the coordinator's loop."""
        loop = asyncio.get_running_loop()
        window = self._windows.get(event.path)
        if window is None:
            window = _Window()
            self._windows[event.path] = window
        elif window.timer is not None:
            window.timer.cancel()
        window.kinds.append(event.kind)
        window.timer = loop.call_later(self._quiet_period, self._flush, event.path)

    async def run(self, events: AsyncIterable[ChangeEvent]) -> None:
        """Submit every event from *events* until the stream ends."""
        async for event in events:
            self.submit(event)

    # ----- flushing -----

    def _flush(self, path: Path) -> FlushResult | None:
        window = self._windows.get(path)
        if window is None:
            return None
        window.state = "flushing"
        if window.timer is not None:
            window.timer.cancel()
            window.timer = None

        kind = coalesce_kinds(window.kinds)
        if kind == "removed" and path.exists():
            # Replaced in place: the add was seen before the delete.
            kind = "modified"

        # Invalidate first: anyone told to reload must miss the cache.
        if kind == "removed":
            invalidated = self._cache.invalidate_tree(path) > 0
        else:
            invalidated = self._cache.invalidate(path)

        affected = {path, *self._cache.referrers_of(path)}
        notified = self._channel.signal(affected, kind, origin=path)

        del self._windows[path]
        self._flush_count += 1

        result = FlushResult(
            path=path,
            kind=kind,
            raw_events=len(window.kinds),
            invalidated=invalidated,
            clients_notified=notified,
            window_ms=(time.monotonic_ns() - window.opened_ns) / 1e6,
        )
        if self._collector is not None:
            self._collector.record_flush(
                str(path),
                kind=kind,
                raw_events=result.raw_events,
                clients_notified=notified,
                window_ms=result.window_ms,
            )
        if self._verbose:
            _log_flush(result)
        return result

    async def flush_all(self) -> list[FlushResult]:
        """Flush every open window now, without waiting for quiet periods."""
        results = []
        for path in list(self._windows):
            result = self._flush(path)
            if result is not None:
                results.append(result)
        return results

    def close(self) -> None:
        """Cancel pending timers and discard open windows."""
        for window in self._windows.values():
            if window.timer is not None:
                window.timer.cancel()
        self._windows.clear()


def _log_flush(result: FlushResult) -> None:
    clients = "client" if result.clients_notified == 1 else "clients"
    events = "event" if result.raw_events == 1 else "events"
    print(
        f"  {result.kind:<8} {result.path.name}"
        f"  ({result.raw_events} {events}, {result.clients_notified} {clients} reloaded)",
        file=sys.stderr,
    )
