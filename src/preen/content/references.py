"""Embedded-asset extraction from rendered HTML.

A page "embeds" a file when the browser fetches it to display the page:
images, media, stylesheets, scripts, frames.  Plain links do not count.
Collected once per render and stored on the cache entry, so a change to
an image can be mapped back to the pages that show it.
"""

from __future__ import annotations

import os
from html.parser import HTMLParser
from pathlib import Path
from urllib.parse import unquote, urlsplit

# tag -> attributes that load a resource
_EMBEDDING_ATTRS: dict[str, tuple[str, ...]] = {
    "img": ("src", "srcset"),
    "source": ("src", "srcset"),
    "video": ("src", "poster"),
    "audio": ("src",),
    "track": ("src",),
    "script": ("src",),
    "link": ("href",),
    "iframe": ("src",),
    "embed": ("src",),
    "object": ("data",),
    "input": ("src",),
}


class _ReferenceParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.urls: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        wanted = _EMBEDDING_ATTRS.get(tag)
        if wanted is None:
            return
        for name, value in attrs:
            if name not in wanted or not value:
                continue
            if name == "srcset":
                self.urls.extend(_split_srcset(value))
            else:
                self.urls.append(value.strip())

    handle_startendtag = handle_starttag


def _split_srcset(value: str) -> list[str]:
    """``a.png 1x, b.png 2x`` -> ``["a.png", "b.png"]``."""
    urls = []
    for candidate in value.split(","):
        parts = candidate.split()
        if parts:
            urls.append(parts[0])
    return urls


def _local_target(url: str, page: Path, root: Path) -> Path | None:
    """Map *url* to a path under *root*, or None for external/unusable URLs."""
    if not url or url.startswith("#"):
        return None
    parts = urlsplit(url)
    if parts.scheme or parts.netloc:
        return None
    raw = unquote(parts.path)
    if not raw:
        return None
    base = root if raw.startswith("/") else page.parent
    target = Path(os.path.normpath(base / raw.lstrip("/")))
    if target != root and not target.is_relative_to(root):
        return None
    return target


def collect_references(html: str, page: Path, root: Path) -> frozenset[Path]:
    """Return the local files embedded by the rendered *html* of *page*."""
    parser = _ReferenceParser()
    parser.feed(html)
    parser.close()

    found: set[Path] = set()
    for url in parser.urls:
        target = _local_target(url, page, root)
        if target is not None and target != page:
            found.add(target)
    return frozenset(found)
