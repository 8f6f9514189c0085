"""Event model for preview-server observability.

Defines event types for the render cache and the live-reload engine.
Pounce lifecycle events are stored alongside them unchanged.

All events are frozen dataclasses with a ``timestamp_ns`` monotonic
nanosecond timestamp and are safe to share across threads.
"""

import time
from dataclasses import dataclass
from typing import Literal


# ---------------------------------------------------------------------------
# Render cache events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PageRendered:
    """A file was read (and rendered, for markdown) into the cache.

    Attributes:
        path: Absolute path of the source file.
        kind: ``"markdown"`` or ``"asset"``.
        generation: Generation assigned to the new entry.
        render_ms: Time spent reading and rendering.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    path: str
    kind: Literal["markdown", "asset"]
    generation: int
    render_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class RenderFailed:
    """A render failed; nothing was cached."""

    path: str
    error: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class CacheInvalidated:
    """A cache entry was dropped (or the drop found nothing)."""

    path: str
    had_entry: bool
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Live-reload events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ChangeFlushed:
    """A debounce window closed and its reload round was dispatched.

    Attributes:
        path: Path whose window flushed.
        kind: Coalesced change kind.
        raw_events: Number of raw filesystem events in the window.
        clients_notified: Subscriptions signalled.
        window_ms: Time from the first event to the flush.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    path: str
    kind: Literal["created", "modified", "removed", "renamed"]
    raw_events: int
    clients_notified: int
    window_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class SubscriptionClosed:
    """A held live-reload request finished."""

    subscriber_id: str
    reason: Literal["reload", "keepalive", "dropped"]
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type StackEvent = (
    PageRendered
    | RenderFailed
    | CacheInvalidated
    | ChangeFlushed
    | SubscriptionClosed
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
