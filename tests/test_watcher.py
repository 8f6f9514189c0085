"""Tests for preen.content.watcher — normalized filesystem change events."""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import pytest
from watchfiles import Change

from preen._errors import WatchEstablishError
from preen.content.watcher import ChangeEvent, DirectoryWatcher, order_batch, to_change_event


# ---------------------------------------------------------------------------
# ChangeEvent dataclass tests
# ---------------------------------------------------------------------------


class TestChangeEvent:
    """Verify ChangeEvent is frozen and well-behaved."""

    def test_frozen(self) -> None:
        event = ChangeEvent(path=Path("/tmp/test.md"), kind="modified")
        with pytest.raises(AttributeError):
            event.kind = "created"  # type: ignore[misc]

    def test_equality(self) -> None:
        assert ChangeEvent(Path("/a.md"), "modified") == ChangeEvent(Path("/a.md"), "modified")

    def test_hashable(self) -> None:
        assert isinstance(hash(ChangeEvent(Path("/a.md"), "created")), int)


class TestToChangeEvent:
    @pytest.mark.parametrize(
        ("change", "kind"),
        [
            (Change.added, "created"),
            (Change.modified, "modified"),
            (Change.deleted, "removed"),
        ],
    )
    def test_mapping(self, change: Change, kind: str) -> None:
        event = to_change_event(change, "/docs/a.md")
        assert event == ChangeEvent(path=Path("/docs/a.md"), kind=kind)  # type: ignore[arg-type]


class TestOrderBatch:
    def test_deletions_come_first(self) -> None:
        batch = {
            (Change.added, "/docs/a.md"),
            (Change.modified, "/docs/c.md"),
            (Change.deleted, "/docs/a.md"),
        }
        events = order_batch(batch)

        assert events[0] == ChangeEvent(Path("/docs/a.md"), "removed")
        assert set(events[1:]) == {
            ChangeEvent(Path("/docs/a.md"), "created"),
            ChangeEvent(Path("/docs/c.md"), "modified"),
        }

    def test_empty_batch(self) -> None:
        assert order_batch(set()) == []


# ---------------------------------------------------------------------------
# check()
# ---------------------------------------------------------------------------


class TestCheck:
    def test_existing_directory(self, tmp_path: Path) -> None:
        DirectoryWatcher(tmp_path).check()

    def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(WatchEstablishError, match="does not exist"):
            DirectoryWatcher(tmp_path / "nope").check()

    def test_file_is_not_directory(self, tmp_path: Path) -> None:
        target = tmp_path / "file.md"
        target.write_text("x")
        with pytest.raises(WatchEstablishError, match="not a directory"):
            DirectoryWatcher(target).check()

    @pytest.mark.skipif(
        sys.platform == "win32" or (hasattr(os, "geteuid") and os.geteuid() == 0),
        reason="permission bits are not enforced",
    )
    def test_unreadable_directory(self, tmp_path: Path) -> None:
        locked = tmp_path / "locked"
        locked.mkdir()
        locked.chmod(0)
        try:
            with pytest.raises(WatchEstablishError, match="permission denied"):
                DirectoryWatcher(locked).check()
        finally:
            locked.chmod(0o755)


# ---------------------------------------------------------------------------
# Live watching
# ---------------------------------------------------------------------------


async def _next_event_for(watcher: DirectoryWatcher, path: Path) -> ChangeEvent:
    async for event in watcher.changes():
        if event.path == path:
            return event
    msg = "watcher stopped before the event arrived"
    raise AssertionError(msg)


class TestDirectoryWatcher:
    """Real watchfiles round trips."""

    @pytest.mark.asyncio
    async def test_reports_new_file(self, tmp_path: Path) -> None:
        root = tmp_path.resolve()
        watcher = DirectoryWatcher(root)
        watcher.start()
        try:
            await asyncio.sleep(0.2)
            (root / "new.md").write_text("# New\n")
            event = await asyncio.wait_for(_next_event_for(watcher, root / "new.md"), 5.0)
            assert event.kind in ("created", "modified")
        finally:
            watcher.stop()

    @pytest.mark.asyncio
    async def test_reports_nested_directory_created_later(self, tmp_path: Path) -> None:
        root = tmp_path.resolve()
        watcher = DirectoryWatcher(root)
        watcher.start()
        try:
            await asyncio.sleep(0.2)
            nested = root / "later"
            nested.mkdir()
            await asyncio.sleep(0.2)
            (nested / "page.md").write_text("# Later\n")
            event = await asyncio.wait_for(
                _next_event_for(watcher, nested / "page.md"), 5.0,
            )
            assert event.path == nested / "page.md"
        finally:
            watcher.stop()

    @pytest.mark.asyncio
    async def test_stop_ends_stream(self, tmp_path: Path) -> None:
        watcher = DirectoryWatcher(tmp_path.resolve())
        watcher.start()
        assert watcher.is_running

        async def drain() -> list[ChangeEvent]:
            return [event async for event in watcher.changes()]

        consumer = asyncio.create_task(drain())
        await asyncio.sleep(0.1)
        watcher.stop()

        events = await asyncio.wait_for(consumer, 5.0)
        assert isinstance(events, list)
        assert not watcher.is_running

    @pytest.mark.asyncio
    async def test_start_missing_root_raises(self, tmp_path: Path) -> None:
        watcher = DirectoryWatcher(tmp_path / "nope")
        with pytest.raises(WatchEstablishError):
            watcher.start()
        assert not watcher.is_running
