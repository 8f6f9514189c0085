"""Filesystem watcher — a normalized stream of change events for the root.

watchfiles runs in a background thread and hands events to the event
loop.  The stream is recursive (directories created later are picked up)
and deliberately does no deduplication: editors commonly emit several
events per save, and coalescing them is the coordinator's job.
"""

from __future__ import annotations

import asyncio
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from watchfiles import Change

from preen._errors import WatchEstablishError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from preen._types import ChangeKind


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A raw change under the watched root.

    Attributes:
        path: Absolute path of the changed file or directory.
        kind: What happened to it.

    """

    path: Path
    kind: ChangeKind


# Mapping from watchfiles Change enum to our kind literals.  watchfiles
# reports a rename as a delete of the old name plus an add of the new.
_CHANGE_KIND_MAP: dict[Change, ChangeKind] = {
    Change.added: "created",
    Change.modified: "modified",
    Change.deleted: "removed",
}


def to_change_event(change: Change, path_str: str) -> ChangeEvent:
    """Normalize one watchfiles ``(Change, path)`` pair."""
    return ChangeEvent(
        path=Path(path_str),
        kind=_CHANGE_KIND_MAP.get(change, "modified"),
    )


def order_batch(raw_changes: Iterable[tuple[Change, str]]) -> list[ChangeEvent]:
    """Normalize one watchfiles batch, deletions first.

    watchfiles yields each batch as an unordered set.  A delete and an add
    of the same path in one batch is an atomic rename-save; putting the
    delete first makes it coalesce to a modification.
    """
    ordered = sorted(raw_changes, key=lambda item: item[0] != Change.deleted)
    return [to_change_event(change, path_str) for change, path_str in ordered]


class DirectoryWatcher:
    """Watches a directory tree and yields ChangeEvents.

    Args:
        root: Directory to watch, recursively.
        debounce_ms: watchfiles batching window.  Kept short because the
            coordinator applies its own per-path quiet period.
        step_ms: watchfiles polling step for the stop event.

    """

    def __init__(self, root: Path, *, debounce_ms: int = 50, step_ms: int = 25) -> None:
        self._root = root
        self._debounce_ms = debounce_ms
        self._step_ms = step_ms
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._error: WatchEstablishError | None = None

    @property
    def root(self) -> Path:
        return self._root

    @property
    def is_running(self) -> bool:
        """Whether the watcher background thread is active."""
        return self._thread is not None and self._thread.is_alive()

    def check(self) -> None:
        """Verify the root can be watched.

        Raises:
            WatchEstablishError: The root is missing, not a directory, or
                not readable.

        """
        if not self._root.exists():
            raise WatchEstablishError(self._root, "directory does not exist")
        if not self._root.is_dir():
            raise WatchEstablishError(self._root, "not a directory")
        if not os.access(self._root, os.R_OK | os.X_OK):
            raise WatchEstablishError(self._root, "permission denied")

    def start(self) -> None:
        """Start watching in a background thread.

        Must be called from the event loop that will consume ``changes()``.
        """
        if self.is_running:
            return
        self.check()

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._error = None
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop,
            name="preen-watcher",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the watcher to stop and wait for the thread to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None

    async def changes(self) -> AsyncIterator[ChangeEvent]:
        """Yield change events until the watcher stops.

        Raises:
            WatchEstablishError: The watch failed (root deleted, permission
                revoked).  The stream cannot be resumed; call ``start()``
                again to re-establish it.

        """
        while True:
            item = await self._queue.get()
            if item is None:
                if self._error is not None:
                    raise self._error
                return
            yield item

    def _emit(self, item: ChangeEvent | None) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # Loop closed between the check and the call.
            pass

    def _watch_loop(self) -> None:
        """Background thread: run watchfiles and forward events to the loop."""
        from watchfiles import watch

        try:
            for raw_changes in watch(
                self._root,
                stop_event=self._stop_event,
                debounce=self._debounce_ms,
                step=self._step_ms,
                raise_interrupt=False,
            ):
                for event in order_batch(raw_changes):
                    self._emit(event)
        except Exception as exc:
            self._error = WatchEstablishError(self._root, str(exc) or type(exc).__name__)
        finally:
            self._emit(None)
