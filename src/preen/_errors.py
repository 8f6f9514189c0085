"""Preen error hierarchy.

All preen-specific errors inherit from PreenError for easy catching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class PreenError(Exception):
    """Base error for all preen operations."""


class ConfigError(PreenError):
    """Invalid or missing configuration."""


class OutOfBounds(PreenError):
    """A request path resolves outside the served root."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"{path!r} is outside the served directory")


class NotFound(PreenError):
    """Nothing exists at the requested path."""

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        super().__init__(f"Couldn't find {self.path}")


class RenderError(PreenError):
    """A file could not be rendered (bad encoding, renderer failure, I/O)."""

    def __init__(self, message: str, *, path: str | Path | None = None) -> None:
        self.path = str(path) if path is not None else None
        self.message = message
        super().__init__(message if path is None else f"{path}: {message}")


class WatchEstablishError(PreenError):
    """The served directory cannot be watched for changes."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Cannot watch {self.path}: {reason}")


class ConnectionDropped(PreenError):
    """A live-reload subscription was torn down before it fired."""
