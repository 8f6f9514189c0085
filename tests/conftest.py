"""Shared test fixtures for preen."""

from __future__ import annotations

import asyncio
import html
import re
from pathlib import Path

import pytest

from preen._errors import RenderError

# 1x1 transparent PNG
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000001e221bc330000000049454e44ae426082"
)

_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)\s]+)\)")


class CountingRenderer:
    """Markdown renderer test double.

    Converts headings, images, and paragraphs just enough for the tests,
    counts calls per source, and can be told to be slow or to fail.
    """

    def __init__(self, *, delay: float = 0.0) -> None:
        self.delay = delay
        self.calls = 0
        self.fail_with: str | None = None

    async def render(self, source: str) -> str:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise RenderError(self.fail_with)

        out = []
        for line in source.splitlines():
            if not line.strip():
                continue
            if line.startswith("# "):
                out.append(f"<h1>{html.escape(line[2:])}</h1>")
                continue
            line = _IMAGE_RE.sub(
                lambda m: f'<img src="{m.group(2)}" alt="{html.escape(m.group(1))}">',
                line,
            )
            out.append(f"<p>{line}</p>")
        return "\n".join(out)


@pytest.fixture
def renderer() -> CountingRenderer:
    return CountingRenderer()


@pytest.fixture
def docs_root(tmp_path: Path) -> Path:
    """A small documentation tree.

    ::

        README.md        index page
        a.md             embeds b.png
        b.png
        c.md             unrelated page
        bad.md           not valid UTF-8
        sub/README.md
        sub/guide.md     embeds ../b.png

    """
    root = tmp_path.resolve()
    (root / "README.md").write_text("# Home\n\nWelcome to the docs.\n")
    (root / "a.md").write_text("# Page A\n\n![diagram](b.png)\n")
    (root / "b.png").write_bytes(PNG_BYTES)
    (root / "c.md").write_text("# Page C\n\nNothing embedded.\n")
    (root / "bad.md").write_bytes(b"# Broken\n\n\xff\xfe\xfa not utf-8\n")

    sub = root / "sub"
    sub.mkdir()
    (sub / "README.md").write_text("# Sub\n")
    (sub / "guide.md").write_text("# Guide\n\n![diagram](../b.png)\n")
    return root
