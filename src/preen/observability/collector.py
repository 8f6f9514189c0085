"""Stack collector — one sink for server, cache, and live-reload events.

Implements Pounce's ``LifecycleCollector`` protocol (``record(event)``)
so it can be passed to the Pounce server, and offers typed helpers for
the render cache, coordinator, and live-reload channel.  Delegates to
``EventLog``, which is internally locked.
"""

from __future__ import annotations

from typing import Any

from preen.observability.events import (
    CacheInvalidated,
    ChangeFlushed,
    PageRendered,
    RenderFailed,
    SubscriptionClosed,
    now_ns,
)
from preen.observability.log import EventLog


class StackCollector:
    """Unified event collector.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- Pounce LifecycleCollector protocol -----

    def record(self, event: Any) -> None:
        """Record a Pounce lifecycle event as-is."""
        self._log.append(event)

    # ----- Render cache -----

    def record_render(
        self,
        path: str,
        *,
        kind: str,
        generation: int,
        render_ms: float = 0.0,
    ) -> None:
        self._log.append(
            PageRendered(
                path=path,
                kind=kind,  # type: ignore[arg-type]
                generation=generation,
                render_ms=render_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_render_failed(self, path: str, error: str) -> None:
        self._log.append(RenderFailed(path=path, error=error, timestamp_ns=now_ns()))

    def record_invalidation(self, path: str, *, had_entry: bool) -> None:
        self._log.append(
            CacheInvalidated(path=path, had_entry=had_entry, timestamp_ns=now_ns())
        )

    # ----- Live reload -----

    def record_flush(
        self,
        path: str,
        *,
        kind: str,
        raw_events: int,
        clients_notified: int,
        window_ms: float,
    ) -> None:
        """Record one coordinator flush."""
        self._log.append(
            ChangeFlushed(
                path=path,
                kind=kind,  # type: ignore[arg-type]
                raw_events=raw_events,
                clients_notified=clients_notified,
                window_ms=window_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_subscription_closed(self, subscriber_id: str, reason: str) -> None:
        self._log.append(
            SubscriptionClosed(
                subscriber_id=subscriber_id,
                reason=reason,  # type: ignore[arg-type]
                timestamp_ns=now_ns(),
            )
        )
