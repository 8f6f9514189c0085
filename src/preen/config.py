"""Preen configuration.

PreenConfig is the central configuration object, frozen after creation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from preen._errors import ConfigError

_CONTEXT_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


@dataclass(frozen=True, slots=True)
class PreenConfig:
    """Configuration for a preview server.

    Attributes:
        root: Directory being served and watched.  Always resolved to a
              canonical absolute path on construction.
        host: Bind address.
        port: Bind port.
        context: Repository context (``owner/name``) for GitHub rendering,
            so relative links and issue references resolve like on github.com.
        offline: Render with the bundled markdown parser instead of the
            GitHub API.
        api_url: Base URL of the GitHub API.
        readme: Index document served for ``/`` and for directories.
        debounce_ms: Quiet period before a burst of changes is flushed.
        hold_timeout: Longest a live-reload request is held open, in seconds.

    """

    root: Path = field(default_factory=Path.cwd)
    host: str = "127.0.0.1"
    port: int = 4000
    context: str | None = None
    offline: bool = False
    api_url: str = "https://api.github.com"
    readme: str = "README.md"
    debounce_ms: int = 100
    hold_timeout: float = 25.0

    def __post_init__(self) -> None:
        # Canonical root so watchfiles paths and resolved request paths
        # compare equal.
        object.__setattr__(self, "root", Path(self.root).expanduser().resolve())
        object.__setattr__(self, "api_url", self.api_url.rstrip("/"))

        if self.context is not None and not _CONTEXT_RE.match(self.context):
            msg = f"context must look like 'owner/name', got {self.context!r}"
            raise ConfigError(msg)
        if not 0 <= self.port <= 65535:
            msg = f"port must be between 0 and 65535, got {self.port}"
            raise ConfigError(msg)
        if self.debounce_ms < 0:
            msg = f"debounce_ms must not be negative, got {self.debounce_ms}"
            raise ConfigError(msg)
        if self.hold_timeout <= 0:
            msg = f"hold_timeout must be positive, got {self.hold_timeout}"
            raise ConfigError(msg)

    @property
    def quiet_period(self) -> float:
        """Debounce quiet period in seconds."""
        return self.debounce_ms / 1000

    @property
    def url(self) -> str:
        """Base URL the server listens on."""
        return f"http://{self.host}:{self.port}"

    @property
    def renderer_label(self) -> str:
        """Short description of the active markdown renderer."""
        if self.offline:
            return "offline (patitas)"
        if self.context:
            return f"GitHub API, context {self.context}"
        return "GitHub API"
