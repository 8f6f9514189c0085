"""Path resolver — maps request paths onto files inside the served root.

Every path handed out is canonical (symlinks followed) and a descendant
of the root.  Resolution is read-only: only filesystem metadata is touched.
"""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath

from preen._errors import NotFound, OutOfBounds


class PathResolver:
    """Resolve URL paths to canonical filesystem paths under *root*.

    Args:
        root: The served directory.  Resolved to its real path once.
        readme: Index document used for directory requests.

    """

    __slots__ = ("_readme", "_root")

    def __init__(self, root: Path, readme: str = "README.md") -> None:
        self._root = Path(root).resolve()
        self._readme = readme

    @property
    def root(self) -> Path:
        return self._root

    @property
    def readme(self) -> str:
        return self._readme

    def contains(self, path: Path) -> bool:
        """Whether *path* is the root or one of its descendants."""
        return path == self._root or path.is_relative_to(self._root)

    def resolve(self, request_path: str, *, must_exist: bool = True) -> Path:
        """Return the canonical path for *request_path*.

        Raises:
            OutOfBounds: The path (before or after following symlinks)
                escapes the root.
            NotFound: ``must_exist`` is set and nothing is there.

        """
        if "\x00" in request_path:
            raise OutOfBounds(request_path)

        relative = PurePosixPath(request_path.replace("\\", "/").lstrip("/"))
        lexical = Path(os.path.normpath(self._root / relative))
        if not self.contains(lexical):
            raise OutOfBounds(request_path)

        real = lexical.resolve()
        if not self.contains(real):
            raise OutOfBounds(request_path)

        if must_exist and not real.exists():
            raise NotFound(request_path)
        return real

    def resolve_page(self, request_path: str, *, must_exist: bool = True) -> Path:
        """Resolve *request_path*, mapping directories to their README."""
        path = self.resolve(request_path, must_exist=must_exist)
        if path.is_dir():
            readme = path / self._readme
            real = readme.resolve()
            if not self.contains(real):
                raise OutOfBounds(self.to_url(readme))
            if must_exist and not real.is_file():
                raise NotFound(self.to_url(readme))
            return real
        return path

    def to_url(self, path: Path) -> str:
        """Root-relative URL path for a canonical *path*."""
        rel = path.relative_to(self._root).as_posix()
        return "/" if rel == "." else f"/{rel}"
