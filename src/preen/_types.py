"""Shared type definitions for preen."""

from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from pathlib import Path

# Normalized filesystem change kind
type ChangeKind = Literal["created", "modified", "removed", "renamed"]

# What a cache entry holds
type ContentKind = Literal["markdown", "asset"]

# Per-path coordinator state
type PathState = Literal["idle", "debouncing", "flushing"]

# Live-reload answer sent to the browser
type ReloadAction = Literal["reload", "keepalive"]

# Why a live-reload subscription ended
type CloseReason = Literal["reload", "keepalive", "dropped"]

# Canonical absolute path inside the served root
type CanonicalPath = Path

# Live-reload subscriber identifier
type SubscriberID = str
