"""Reactive layer — from filesystem change to browser reload.

Connects watcher events to held browser requests through debouncing,
cache invalidation, and the live-reload channel.
"""

from preen.reactive.channel import LiveReloadChannel, ReloadSignal, ReloadSubscription
from preen.reactive.coordinator import ChangeCoordinator, FlushResult, coalesce_kinds

__all__ = [
    "ChangeCoordinator",
    "FlushResult",
    "LiveReloadChannel",
    "ReloadSignal",
    "ReloadSubscription",
    "coalesce_kinds",
]
