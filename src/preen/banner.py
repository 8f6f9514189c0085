"""Startup banner, written to stderr.

Color is used only on a TTY and is turned off by ``NO_COLOR`` or
``TERM=dumb`` (https://no-color.org).
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from preen.config import PreenConfig


def _color_enabled() -> bool:
    if os.environ.get("NO_COLOR") or os.environ.get("TERM") == "dumb":
        return False
    isatty = getattr(sys.stderr, "isatty", None)
    return bool(isatty and isatty())


_COLOR = _color_enabled()

_CODES = {"bold": "1", "dim": "2", "green": "32", "yellow": "33", "cyan": "36"}


def _paint(text: str, *styles: str) -> str:
    """Wrap *text* in SGR codes for *styles*, or return it as-is without color."""
    if not _COLOR or not styles:
        return text
    codes = ";".join(_CODES[s] for s in styles)
    return f"\033[{codes}m{text}\033[0m"


def _link(url: str) -> str:
    """OSC 8 hyperlink, so terminals make the URL clickable."""
    if not _COLOR:
        return url
    return f"\033]8;;{url}\033\\{_paint(url, 'bold', 'cyan')}\033]8;;\033\\"


def format_banner(
    config: PreenConfig,
    *,
    load_ms: float = 0.0,
    warnings: list[str] | None = None,
) -> str:
    """Build the banner text."""
    from preen import __version__
    from preen.reactive.livereload import LIVERELOAD_ENDPOINT

    header = f"{_paint('preen', 'bold')} {_paint(f'v{__version__}', 'dim')}"
    if load_ms > 0:
        header += " " + _paint(f"in {load_ms:.0f}ms", "dim")

    rows = [
        ("serving", _paint(str(config.root), "dim")),
        ("renderer", config.renderer_label),
        (
            "reload",
            f"{_paint('live', 'green')} on {_paint(LIVERELOAD_ENDPOINT, 'dim')} "
            + _paint(f"(debounce {config.debounce_ms}ms)", "dim"),
        ),
    ]
    lines = ["", f"  {header}", "  " + _paint("─" * 43, "dim")]
    for i, (label, value) in enumerate(rows):
        branch = "└─" if i == len(rows) - 1 else "├─"
        lines.append(f"  {_paint(branch, 'dim')} {label}: {value}")
    lines += ["", f"  {_link(config.url)}", "", "  " + _paint("Watching for changes...", "dim")]

    if warnings:
        lines.append("")
    for warning in warnings or ():
        lines.append(f"  {_paint('!', 'yellow')} {warning}")
    lines.append("")
    return "\n".join(lines)


def print_banner(
    config: PreenConfig,
    *,
    load_ms: float = 0.0,
    warnings: list[str] | None = None,
) -> None:
    """Print the startup banner to stderr."""
    print(format_banner(config, load_ms=load_ms, warnings=warnings), file=sys.stderr)
