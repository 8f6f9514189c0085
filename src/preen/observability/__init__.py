"""Observability — a single event log for the server and the reload engine.

Aggregates events from:
- **Pounce**: connection lifecycle (open, request, response, disconnect)
- **Render cache**: renders, failures, invalidations
- **Live reload**: debounce flushes and subscription outcomes

Quick Start:
    >>> from preen.observability import EventLog, StackCollector
    >>> collector = StackCollector(EventLog())
    >>> collector.record_invalidation("/docs/a.md", had_entry=True)

"""

from preen.observability.collector import StackCollector
from preen.observability.events import (
    CacheInvalidated,
    ChangeFlushed,
    PageRendered,
    RenderFailed,
    StackEvent,
    SubscriptionClosed,
    now_ns,
)
from preen.observability.log import EventLog

__all__ = [
    "CacheInvalidated",
    "ChangeFlushed",
    "EventLog",
    "PageRendered",
    "RenderFailed",
    "StackCollector",
    "StackEvent",
    "SubscriptionClosed",
    "now_ns",
]
