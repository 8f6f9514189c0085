"""Render cache — the last rendered form of every requested file.

Markdown files are rendered to HTML fragments, everything else is stored
as raw bytes.  Each entry carries a generation number drawn from one
process-wide counter, so a path's generation only ever increases.

Concurrency:
    All dictionaries are guarded by a ``threading.Lock`` that is never
    held across an ``await``.  Misses on the same path share one render
    task; misses on different paths render independently.  ``invalidate``
    is synchronous so the coordinator can sequence it before notifying
    subscribers.

Stale renders:
    Every path has an epoch bumped by ``invalidate``.  A render remembers
    the epoch it started under and only stores its result if the epoch is
    unchanged, so a render racing a file change never repopulates the
    cache with old content.
"""

from __future__ import annotations

import asyncio
import itertools
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from preen._errors import NotFound, RenderError
from preen.content.references import collect_references

if TYPE_CHECKING:
    from preen._types import ContentKind
    from preen.observability.collector import StackCollector
    from preen.render import MarkdownRenderer

MARKDOWN_SUFFIXES = frozenset({".md", ".markdown", ".mdown", ".mkd", ".mkdn"})


def is_markdown(path: Path) -> bool:
    """Whether *path* is rendered as markdown (by suffix)."""
    return path.suffix.lower() in MARKDOWN_SUFFIXES


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A rendered file.

    Attributes:
        path: Canonical path of the source file.
        content: Rendered HTML fragment (markdown) or raw file bytes.
        kind: ``"markdown"`` or ``"asset"``.
        generation: Freshness counter; strictly increasing per path.
        mtime: Source modification time when it was read.
        references: Files embedded by the rendered page (markdown only).

    """

    path: Path
    content: bytes
    kind: ContentKind
    generation: int
    mtime: float
    references: frozenset[Path] = field(default_factory=frozenset)

    @property
    def html(self) -> str:
        return self.content.decode("utf-8")


class RenderCache:
    """Path-keyed cache of rendered content with single-flight misses.

    Args:
        root: Served root; bounds reference extraction.
        renderer: Markdown collaborator (``async render(source) -> str``).
        collector: Optional observability collector.

    """

    __slots__ = (
        "_collector",
        "_entries",
        "_epochs",
        "_generations",
        "_inflight",
        "_lock",
        "_referrers",
        "_references",
        "_renderer",
        "_root",
    )

    def __init__(
        self,
        root: Path,
        renderer: MarkdownRenderer,
        *,
        collector: StackCollector | None = None,
    ) -> None:
        self._root = root
        self._renderer = renderer
        self._collector = collector
        self._lock = threading.Lock()
        self._entries: dict[Path, CacheEntry] = {}
        self._inflight: dict[Path, asyncio.Task[CacheEntry]] = {}
        self._epochs: dict[Path, int] = {}
        self._generations = itertools.count(1)
        # page -> embedded files, kept across invalidation until re-render
        self._references: dict[Path, frozenset[Path]] = {}
        # embedded file -> pages
        self._referrers: dict[Path, set[Path]] = {}

    # ----- reads -----

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._entries

    def peek(self, path: Path) -> CacheEntry | None:
        """Return the cached entry without rendering."""
        with self._lock:
            return self._entries.get(path)

    def generation_of(self, path: Path) -> int | None:
        """Current generation for *path*, or None when not cached."""
        with self._lock:
            entry = self._entries.get(path)
        return entry.generation if entry is not None else None

    def references_of(self, page: Path) -> frozenset[Path]:
        """Files embedded by *page* as of its last successful render."""
        with self._lock:
            return self._references.get(page, frozenset())

    def referrers_of(self, path: Path) -> frozenset[Path]:
        """Pages whose last render embedded *path*."""
        with self._lock:
            return frozenset(self._referrers.get(path, ()))

    # ----- get / render -----

    async def get_or_render(self, path: Path) -> CacheEntry:
        """Return the cached entry for *path*, rendering it on a miss.

        Concurrent callers for the same uncached path await a single
        render.  Failures propagate to every waiter and are not cached.

        Raises:
            NotFound: The file disappeared before it could be read.
            RenderError: Reading, decoding, or rendering failed.

        """
        with self._lock:
            entry = self._entries.get(path)
            if entry is not None:
                return entry
            task = self._inflight.get(path)
            if task is None:
                epoch = self._epochs.get(path, 0)
                task = asyncio.ensure_future(self._fill(path, epoch))
                task.add_done_callback(_consume_exception)
                self._inflight[path] = task
        # Shielded so one cancelled requester does not cancel the render
        # other requesters are waiting on.
        return await asyncio.shield(task)

    async def _fill(self, path: Path, epoch: int) -> CacheEntry:
        try:
            entry = await self._render(path)
        except (NotFound, RenderError) as exc:
            if self._collector is not None:
                self._collector.record_render_failed(str(path), str(exc))
            raise
        finally:
            with self._lock:
                if self._inflight.get(path) is asyncio.current_task():
                    del self._inflight[path]

        with self._lock:
            if self._epochs.get(path, 0) == epoch:
                self._store(entry)
        return entry

    async def _render(self, path: Path) -> CacheEntry:
        t0 = time.perf_counter()
        try:
            data = path.read_bytes()
            mtime = path.stat().st_mtime
        except FileNotFoundError as exc:
            raise NotFound(path) from exc
        except IsADirectoryError as exc:
            raise NotFound(path) from exc
        except OSError as exc:
            raise RenderError(f"could not read file: {exc}", path=path) from exc

        kind: ContentKind
        if is_markdown(path):
            try:
                source = data.decode("utf-8")
            except UnicodeDecodeError as exc:
                msg = f"not valid UTF-8 ({exc.reason} at byte {exc.start})"
                raise RenderError(msg, path=path) from exc
            try:
                html = await self._renderer.render(source)
            except RenderError as exc:
                if exc.path is None:
                    raise RenderError(exc.message, path=path) from exc
                raise
            content = html.encode("utf-8")
            references = collect_references(html, path, self._root)
            kind = "markdown"
        else:
            content = data
            references = frozenset()
            kind = "asset"

        with self._lock:
            generation = next(self._generations)
        entry = CacheEntry(
            path=path,
            content=content,
            kind=kind,
            generation=generation,
            mtime=mtime,
            references=references,
        )
        if self._collector is not None:
            self._collector.record_render(
                str(path),
                kind=kind,
                generation=generation,
                render_ms=(time.perf_counter() - t0) * 1000,
            )
        return entry

    def _store(self, entry: CacheEntry) -> None:
        """Store *entry* and refresh the reference index. Lock held."""
        self._entries[entry.path] = entry
        self._unlink_references(entry.path)
        if entry.references:
            self._references[entry.path] = entry.references
            for target in entry.references:
                self._referrers.setdefault(target, set()).add(entry.path)

    def _unlink_references(self, page: Path) -> None:
        """Drop *page* from the reference index. Lock held."""
        for target in self._references.pop(page, ()):
            pages = self._referrers.get(target)
            if pages is None:
                continue
            pages.discard(page)
            if not pages:
                del self._referrers[target]

    # ----- invalidation -----

    def invalidate(self, path: Path) -> bool:
        """Drop the entry for *path*.  Idempotent.

        Returns True if an entry was removed.  Any in-flight render of
        *path* is detached: it still answers its current waiters but its
        result is never stored.
        """
        with self._lock:
            had_entry = self._invalidate_locked(path)
        if self._collector is not None:
            self._collector.record_invalidation(str(path), had_entry=had_entry)
        return had_entry

    def invalidate_tree(self, path: Path) -> int:
        """Invalidate *path* and every cached path beneath it.

        Also forgets reference data for removed pages.  Returns the
        number of entries removed.
        """
        with self._lock:
            doomed = {
                p for p in (*self._entries, *self._inflight, *self._references)
                if p == path or p.is_relative_to(path)
            }
            doomed.add(path)
            removed = 0
            for p in doomed:
                removed += self._invalidate_locked(p)
                self._unlink_references(p)
        if self._collector is not None:
            self._collector.record_invalidation(str(path), had_entry=removed > 0)
        return removed

    def _invalidate_locked(self, path: Path) -> bool:
        self._epochs[path] = self._epochs.get(path, 0) + 1
        self._inflight.pop(path, None)
        return self._entries.pop(path, None) is not None

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            for path in list(self._entries):
                self._invalidate_locked(path)
            self._references.clear()
            self._referrers.clear()


def _consume_exception(task: asyncio.Task[CacheEntry]) -> None:
    # Every waiter may have gone away; mark the exception as retrieved.
    if not task.cancelled():
        task.exception()
