"""Markdown renderers and HTML page builders.

A renderer turns markdown source into an HTML fragment::

    class MarkdownRenderer(Protocol):
        async def render(self, source: str) -> str: ...

Two implementations ship: ``GitHubRenderer`` (the GitHub markdown API,
matching github.com exactly) and ``OfflineRenderer`` (patitas, no
network).  Both raise ``RenderError`` on failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from preen.config import PreenConfig


class MarkdownRenderer(Protocol):
    """Markdown collaborator used by the render cache."""

    async def render(self, source: str) -> str: ...


def build_renderer(config: PreenConfig) -> MarkdownRenderer:
    """Pick the renderer the configuration asks for."""
    if config.offline:
        from preen.render.offline import OfflineRenderer

        return OfflineRenderer()

    from preen.render.github import GitHubRenderer

    return GitHubRenderer(config.api_url, context=config.context)


async def close_renderer(renderer: object) -> None:
    """Release renderer resources (HTTP connections), if it holds any."""
    aclose = getattr(renderer, "aclose", None)
    if aclose is not None:
        await aclose()


__all__ = ["MarkdownRenderer", "build_renderer", "close_renderer"]
