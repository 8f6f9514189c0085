"""Bundled theme assets, served under ``/__preen/static``.

Thread Safety:
    Returns read-only paths.  Safe for free-threading.
"""

from __future__ import annotations

from pathlib import Path


def assets_path() -> Path:
    """Absolute path to the bundled static assets."""
    return Path(__file__).parent / "assets"
