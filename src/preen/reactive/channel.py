"""Live-reload channel — held requests that resolve once when a page changes.

Each browser tab holds one ``ReloadSubscription`` for the page it shows
plus the files that page embeds.  A subscription resolves exactly once:
with a reload when the coordinator signals one of its paths, or with a
keepalive when the hold expires, after which the browser resubscribes.

Thread Safety:
    The path index is protected by a ``threading.Lock``.  ``signal`` may
    be called from any thread; futures are resolved on their own loop via
    ``call_soon_threadsafe``.

"""

from __future__ import annotations

import asyncio
import threading
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from preen._errors import ConnectionDropped

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from preen._types import ChangeKind, CloseReason, ReloadAction, SubscriberID
    from preen.observability.collector import StackCollector


@dataclass(frozen=True, slots=True)
class ReloadSignal:
    """What a held live-reload request answers with."""

    action: ReloadAction
    path: Path | None = None
    kind: ChangeKind | None = None

    @classmethod
    def keepalive(cls) -> ReloadSignal:
        return cls(action="keepalive")


@dataclass(eq=False, slots=True)
class ReloadSubscription:
    """One browser tab waiting for a reason to refresh.

    Attributes:
        subscriber_id: Unique id for logging and stats.
        paths: Paths whose change should reload the tab.
        future: Resolved once, on ``loop``, with the outcome.
        loop: Event loop the waiting request runs on.
        fired: Set under the channel lock when a signal claims it.
        closed: Set once the subscription leaves the channel.

    """

    subscriber_id: SubscriberID
    paths: frozenset[Path]
    future: asyncio.Future[ReloadSignal] = field(repr=False)
    loop: asyncio.AbstractEventLoop = field(repr=False)
    fired: bool = False
    closed: bool = False


def _settle(future: asyncio.Future[ReloadSignal], outcome: ReloadSignal | BaseException) -> None:
    if future.done():
        return
    if isinstance(outcome, BaseException):
        future.set_exception(outcome)
        # Waiter may already be gone.
        future.exception()
    else:
        future.set_result(outcome)


class LiveReloadChannel:
    """Registry of held live-reload requests, indexed by path of interest.

    Args:
        max_hold: Default longest wait, in seconds, before a keepalive.
        collector: Optional observability collector.

    """

    def __init__(
        self,
        *,
        max_hold: float = 25.0,
        collector: StackCollector | None = None,
    ) -> None:
        self._max_hold = max_hold
        self._collector = collector
        self._by_path: dict[Path, set[ReloadSubscription]] = {}
        self._by_id: dict[SubscriberID, ReloadSubscription] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def max_hold(self) -> float:
        return self._max_hold

    @property
    def subscriber_count(self) -> int:
        """Number of subscriptions currently held."""
        with self._lock:
            return len(self._by_id)

    def subscribers_for(self, path: Path) -> frozenset[ReloadSubscription]:
        """Snapshot of subscriptions interested in *path*."""
        with self._lock:
            return frozenset(self._by_path.get(path, ()))

    def subscribe(self, paths: Iterable[Path]) -> ReloadSubscription:
        """Register a subscription.  Must be called on the waiting loop."""
        loop = asyncio.get_running_loop()
        sub = ReloadSubscription(
            subscriber_id=uuid.uuid4().hex[:12],
            paths=frozenset(paths),
            future=loop.create_future(),
            loop=loop,
        )
        with self._lock:
            if self._closed:
                sub.closed = True
                _settle(sub.future, ConnectionDropped("live-reload channel is closed"))
                return sub
            self._by_id[sub.subscriber_id] = sub
            for path in sub.paths:
                self._by_path.setdefault(path, set()).add(sub)
        return sub

    def unsubscribe(self, sub: ReloadSubscription) -> None:
        """Remove *sub* from the channel.  Idempotent."""
        with self._lock:
            self._detach(sub)

    def _detach(self, sub: ReloadSubscription) -> bool:
        """Remove *sub* from both indexes. Lock held."""
        if sub.closed:
            return False
        sub.closed = True
        self._by_id.pop(sub.subscriber_id, None)
        for path in sub.paths:
            subs = self._by_path.get(path)
            if subs is None:
                continue
            subs.discard(sub)
            if not subs:
                del self._by_path[path]
        return True

    def signal(
        self,
        paths: Iterable[Path],
        kind: ChangeKind,
        *,
        origin: Path | None = None,
    ) -> int:
        """Resolve every subscription interested in any of *paths*.

        Each subscription is resolved at most once, however many of its
        paths are in *paths*.  Returns the number of subscriptions signalled.
        """
        with self._lock:
            targets: set[ReloadSubscription] = set()
            for path in paths:
                targets.update(self._by_path.get(path, ()))
            for sub in targets:
                sub.fired = True
                self._detach(sub)

        reload = ReloadSignal(action="reload", path=origin, kind=kind)
        for sub in targets:
            if sub.loop.is_closed():
                continue
            sub.loop.call_soon_threadsafe(_settle, sub.future, reload)
        return len(targets)

    async def wait(
        self, sub: ReloadSubscription, timeout: float | None = None,
    ) -> ReloadSignal:
        """Hold until *sub* is signalled or the hold expires.

        The subscription is always removed from the channel on the way
        out, including on cancellation (the client went away).

        Raises:
            ConnectionDropped: The channel was closed while holding.

        """
        hold = self._max_hold if timeout is None else timeout
        reason: CloseReason = "dropped"
        try:
            try:
                result = await asyncio.wait_for(asyncio.shield(sub.future), hold)
            except TimeoutError:
                with self._lock:
                    fired = sub.fired
                    self._detach(sub)
                if not fired:
                    reason = "keepalive"
                    return ReloadSignal.keepalive()
                # Signalled just as the hold expired; the reload is on its way.
                result = await sub.future
            reason = "reload"
            return result
        finally:
            self.unsubscribe(sub)
            if self._collector is not None:
                self._collector.record_subscription_closed(sub.subscriber_id, reason)

    def close(self) -> int:
        """Drop every subscription; their waiters raise ConnectionDropped."""
        with self._lock:
            self._closed = True
            subs = list(self._by_id.values())
            for sub in subs:
                self._detach(sub)
        for sub in subs:
            if sub.loop.is_closed():
                continue
            sub.loop.call_soon_threadsafe(
                _settle, sub.future, ConnectionDropped("server shutting down"),
            )
        return len(subs)
