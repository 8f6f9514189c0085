"""Preen application — wires the live-reload engine into a Chirp app.

``create_app`` assembles the pieces:

    PathResolver ─┐
    RenderCache ──┼─▶ PreviewRouter ─▶ Chirp App ─▶ Pounce
    LiveReloadChannel ┘        ▲
    DirectoryWatcher ─▶ ChangeCoordinator ─┘ (invalidate, then signal)

``preview`` is the public entry point: load config, verify the watch,
print the banner, and serve.
"""

from __future__ import annotations

import asyncio
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from preen._errors import WatchEstablishError
from preen.config import PreenConfig
from preen.config_loader import load_config
from preen.content.cache import RenderCache
from preen.content.resolver import PathResolver
from preen.content.watcher import DirectoryWatcher
from preen.observability import EventLog, StackCollector
from preen.reactive.channel import LiveReloadChannel
from preen.reactive.coordinator import ChangeCoordinator

if TYPE_CHECKING:
    from chirp import App

    from preen.render import MarkdownRenderer

_WATCH_RETRIES = 3
_WATCH_RETRY_DELAY = 1.0


@dataclass(frozen=True, slots=True)
class Preview:
    """A fully wired preview server, before it is run.

    Attributes:
        app: The Chirp application (an ASGI callable).
        config: Resolved configuration.
        resolver: Request path resolver.
        cache: Render cache.
        channel: Live-reload channel.
        coordinator: Change coordinator.
        watcher: Filesystem watcher, or None when watching is disabled.
        collector: Observability collector.

    """

    app: App
    config: PreenConfig
    resolver: PathResolver
    cache: RenderCache
    channel: LiveReloadChannel
    coordinator: ChangeCoordinator
    watcher: DirectoryWatcher | None
    collector: StackCollector


def _create_chirp_app(config: PreenConfig) -> App:
    """Create a Chirp App for the preview server.

    Chirp's own safe-target and SSE lifecycle injections are disabled:
    preen pages carry only the live-reload client.
    """
    from chirp import App, AppConfig

    from preen.theme import assets_path

    app_config = AppConfig(
        template_dir=assets_path(),
        debug=False,
        host=config.host,
        port=config.port,
        safe_target=False,
        sse_lifecycle=False,
    )
    return App(config=app_config)


def _mount_static_files(app: App) -> None:
    """Serve bundled assets under ``/__preen/static``."""
    from chirp.middleware import StaticFiles

    from preen.render.page import STATIC_PREFIX
    from preen.theme import assets_path

    app.add_middleware(StaticFiles(directory=assets_path(), prefix=STATIC_PREFIX))


def _wire_middleware(app: App) -> None:
    """Error overlay innermost, live-reload injection around it."""
    from preen.reactive.livereload import livereload_middleware
    from preen.render.overlay import error_overlay_middleware

    app.add_middleware(livereload_middleware)
    app.add_middleware(error_overlay_middleware)


def _start_watcher(
    app: App,
    watcher: DirectoryWatcher,
    coordinator: ChangeCoordinator,
    channel: LiveReloadChannel,
) -> None:
    """Run the watcher and coordinator inside the server's event loop.

    Flow:
        on_startup  → start watcher thread, spawn ``_consume_events`` task
        file change → watcher.changes() → coordinator.submit()
        watch lost  → report, re-establish with backoff, give up after retries
        on_shutdown → cancel consumer, stop watcher, release held requests

    """
    _task: asyncio.Task[None] | None = None

    async def _consume_events() -> None:
        failures = 0
        while True:
            try:
                await coordinator.run(watcher.changes())
                return
            except WatchEstablishError as exc:
                failures += 1
                print(f"  Watch lost: {exc}", file=sys.stderr)
                if failures > _WATCH_RETRIES:
                    print(
                        f"  {watcher.root} is unwatchable; live reload disabled",
                        file=sys.stderr,
                    )
                    return
            await asyncio.sleep(_WATCH_RETRY_DELAY * failures)
            try:
                watcher.stop()
                watcher.start()
            except WatchEstablishError as exc:
                print(f"  Retry {failures}/{_WATCH_RETRIES} failed: {exc}", file=sys.stderr)

    @app.on_startup
    async def _start_event_consumer() -> None:
        nonlocal _task
        watcher.start()
        _task = asyncio.create_task(_consume_events())

    @app.on_shutdown
    async def _stop_event_consumer() -> None:
        if _task is not None and not _task.done():
            _task.cancel()
        watcher.stop()
        coordinator.close()
        channel.close()


def _wire_renderer_shutdown(app: App, renderer: object) -> None:
    from preen.render import close_renderer

    @app.on_shutdown
    async def _close_renderer() -> None:
        await close_renderer(renderer)


def create_app(
    config: PreenConfig,
    *,
    renderer: MarkdownRenderer | None = None,
    watch: bool = True,
) -> Preview:
    """Build a preview server for *config*.

    Args:
        config: Resolved configuration.
        renderer: Markdown renderer; defaults to the one *config* selects.
        watch: Start the filesystem watcher with the app.  Disable to drive
            the coordinator by hand.

    """
    from preen.content.router import PreviewRouter
    from preen.render import build_renderer

    collector = StackCollector(EventLog())
    owned_renderer = renderer is None
    if renderer is None:
        renderer = build_renderer(config)

    resolver = PathResolver(config.root, readme=config.readme)
    cache = RenderCache(resolver.root, renderer, collector=collector)
    channel = LiveReloadChannel(max_hold=config.hold_timeout, collector=collector)
    coordinator = ChangeCoordinator(
        cache,
        channel,
        quiet_period=config.quiet_period,
        collector=collector,
        verbose=watch,
    )

    app = _create_chirp_app(config)
    _wire_middleware(app)
    _mount_static_files(app)
    PreviewRouter(app, resolver, cache, channel).register_all(collector)

    watcher: DirectoryWatcher | None = None
    if watch:
        watcher = DirectoryWatcher(resolver.root)
        _start_watcher(app, watcher, coordinator, channel)
    if owned_renderer:
        _wire_renderer_shutdown(app, renderer)

    return Preview(
        app=app,
        config=config,
        resolver=resolver,
        cache=cache,
        channel=channel,
        coordinator=coordinator,
        watcher=watcher,
        collector=collector,
    )


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def preview(root: str | Path = ".", **kwargs: object) -> None:
    """Serve *root* with live reload until interrupted.

    Args:
        root: Directory to serve.
        **kwargs: Override PreenConfig fields.

    Raises:
        ConfigError: The configuration is invalid.
        WatchEstablishError: *root* cannot be watched.
        OSError: The listening socket cannot be bound.

    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    from preen.banner import print_banner

    t0 = time.perf_counter()
    config = load_config(Path(root), **kwargs)
    DirectoryWatcher(config.root).check()

    built = create_app(config)
    load_ms = (time.perf_counter() - t0) * 1000

    readme = config.root / config.readme
    warnings = [] if readme.is_file() else [f"no {config.readme} in {config.root}; / will 404"]
    print_banner(config, load_ms=load_ms, warnings=warnings)

    # One worker: the cache and live-reload channel live in this process.
    server_config = ServerConfig(host=config.host, port=config.port, workers=1)
    server = Server(server_config, built.app, lifecycle_collector=built.collector)
    server.run()
