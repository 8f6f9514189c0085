"""Offline renderer — patitas via chirp's markdown wrapper."""

from __future__ import annotations

import asyncio

from chirp.markdown import MarkdownRenderer as _ChirpMarkdown

from preen._errors import RenderError


class OfflineRenderer:
    """Render markdown locally with every patitas plugin enabled.

    Output follows GitHub-flavoured markdown closely but not exactly;
    use the GitHub renderer when exact fidelity matters.  Parsing runs in
    a worker thread so held live-reload requests keep being served while
    a large document renders.
    """

    __slots__ = ("_md",)

    def __init__(self, *, plugins: list[str] | None = None) -> None:
        self._md = _ChirpMarkdown(plugins=plugins or ["all"])

    async def render(self, source: str) -> str:
        try:
            return await asyncio.to_thread(self._md.render, source)
        except Exception as exc:
            msg = f"markdown parser failed: {exc}"
            raise RenderError(msg) from exc
