"""Content layer — path resolution, render cache, and filesystem watching."""

from preen.content.cache import CacheEntry, RenderCache
from preen.content.resolver import PathResolver
from preen.content.watcher import ChangeEvent, DirectoryWatcher

__all__ = [
    "CacheEntry",
    "ChangeEvent",
    "DirectoryWatcher",
    "PathResolver",
    "RenderCache",
]
