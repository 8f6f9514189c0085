"""Preview router — serves the watched directory through Chirp routes.

Routes:
    ``/``                  root README
    ``/__livereload``      held live-reload request
    ``/__preen/stats``     observability JSON
    ``/{path:path}``       any file under the root

Markdown is served inside the page shell, every other file raw with a
guessed content type.  Failures are isolated per request: a missing,
forbidden, or broken file only affects its own response.
"""

from __future__ import annotations

import json
import mimetypes
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote, urlsplit

from chirp import Request
from chirp.http.response import Response

from preen._errors import ConnectionDropped, NotFound, OutOfBounds, RenderError
from preen.reactive.channel import ReloadSignal
from preen.reactive.livereload import GENERATION_HEADER, LIVERELOAD_ENDPOINT
from preen.render.overlay import render_error_page
from preen.render.page import render_forbidden, render_not_found, render_page

if TYPE_CHECKING:
    from chirp import App

    from preen.content.cache import CacheEntry, RenderCache
    from preen.content.resolver import PathResolver
    from preen.observability.collector import StackCollector
    from preen.reactive.channel import LiveReloadChannel

STATS_ENDPOINT = "/__preen/stats"

_NO_CACHE = "no-cache"


def _json_response(payload: dict[str, Any], status: int = 200) -> Response:
    return Response(
        body=json.dumps(payload),
        status=status,
        content_type="application/json",
    ).with_header("Cache-Control", "no-store")


def _html_response(body: str, status: int = 200) -> Response:
    return Response(body=body, status=status).with_header("Cache-Control", _NO_CACHE)


def guess_content_type(path: Path) -> str:
    """Content type for a raw file, defaulting to octet-stream."""
    content_type, _ = mimetypes.guess_type(path.name)
    if content_type is None:
        return "application/octet-stream"
    if content_type.startswith("text/") or content_type in (
        "application/javascript", "application/json", "image/svg+xml",
    ):
        return f"{content_type}; charset=utf-8"
    return content_type


class PreviewRouter:
    """Registers the preview routes on a Chirp app.

    Args:
        app: Chirp App to register routes on (must not yet be frozen).
        resolver: Maps request paths to files under the root.
        cache: Render cache.
        channel: Live-reload channel.

    """

    def __init__(
        self,
        app: App,
        resolver: PathResolver,
        cache: RenderCache,
        channel: LiveReloadChannel,
    ) -> None:
        self._app = app
        self._resolver = resolver
        self._cache = cache
        self._channel = channel

    # ----- registration -----

    def register_all(self, collector: StackCollector | None = None) -> None:
        """Register every preview route.  Fixed routes first."""
        self.register_livereload_endpoint()
        if collector is not None:
            self.register_stats_endpoint(collector)
        self.register_file_routes()

    def register_file_routes(self) -> None:
        """Register ``/`` and the ``/{path:path}`` catch-all."""

        async def index(request: Request) -> Response:
            return await self.serve("/")

        async def serve_file(request: Request, path: str) -> Response:
            return await self.serve(path)

        index.__name__ = "preen_index"
        serve_file.__name__ = "preen_file"
        self._app.route("/", name="preen:index")(index)
        self._app.route("/{path:path}", name="preen:file")(serve_file)

    def register_livereload_endpoint(self) -> None:
        """Register the held ``/__livereload`` endpoint."""

        async def livereload(request: Request) -> Response:
            # location.pathname arrives still percent-encoded.
            page = unquote(request.query.get("page") or _referer_path(request) or "/")
            return await self.hold(page, request.query.get("gen"))

        livereload.__name__ = "preen_livereload"
        livereload.__qualname__ = "PreviewRouter.preen_livereload"
        self._app.route(LIVERELOAD_ENDPOINT, name="preen:livereload")(livereload)

    def register_stats_endpoint(self, collector: StackCollector) -> None:
        """Register the ``/__preen/stats`` JSON endpoint."""

        async def stats(request: Request) -> Response:
            return _json_response({
                "event_log": collector.log.stats(),
                "subscribers": self._channel.subscriber_count,
                "cache_entries": len(self._cache),
            })

        stats.__name__ = "preen_stats"
        stats.__qualname__ = "PreviewRouter.preen_stats"
        self._app.route(STATS_ENDPOINT, name="preen:stats")(stats)

    # ----- handlers -----

    async def serve(self, request_path: str) -> Response:
        """Serve the file behind *request_path*."""
        display = "/" + request_path.lstrip("/")
        try:
            path = self._resolver.resolve_page(request_path)
        except OutOfBounds:
            return _html_response(render_forbidden(display), status=403)
        except NotFound as exc:
            return self._not_found(display, exc)

        try:
            entry = await self._cache.get_or_render(path)
        except NotFound:
            # Deleted between resolving and reading.
            return self._not_found(display, NotFound(display))
        except RenderError as exc:
            print(f"  render failed {display}: {exc.message}", file=sys.stderr)
            return _html_response(render_error_page(exc, display), status=500)
        return self._entry_response(entry)

    def _not_found(self, display: str, exc: NotFound) -> Response:
        # Directory lookups mention the index document they looked for.
        looked_for_readme = exc.path.endswith("/" + self._resolver.readme) or display == "/"
        readme = self._resolver.readme if looked_for_readme else None
        return _html_response(render_not_found(exc.path, readme=readme), status=404)

    def _entry_response(self, entry: CacheEntry) -> Response:
        if entry.kind == "markdown":
            response = Response(body=render_page(entry.path.name, entry.html))
        else:
            response = Response(
                body=entry.content,
                content_type=guess_content_type(entry.path),
            )
        return (
            response
            .with_header(GENERATION_HEADER, str(entry.generation))
            .with_header("Cache-Control", _NO_CACHE)
        )

    async def hold(self, page: str, gen: str | None = None) -> Response:
        """Hold a live-reload request for *page* until it must reload."""
        try:
            path = self._resolver.resolve_page(page, must_exist=False)
        except OutOfBounds:
            return _json_response({"error": "outside the served directory"}, status=403)

        # The page changed between being served and this subscription.
        if gen is not None and gen.isdigit():
            current = self._cache.generation_of(path)
            if current != int(gen):
                return self._signal_response(
                    ReloadSignal(action="reload", path=path, kind="modified"),
                )

        sub = self._channel.subscribe({path, *self._cache.references_of(path)})
        try:
            signal = await self._channel.wait(sub)
        except ConnectionDropped:
            signal = ReloadSignal.keepalive()
        return self._signal_response(signal)

    def _signal_response(self, signal: ReloadSignal) -> Response:
        payload: dict[str, Any] = {"action": signal.action}
        if signal.path is not None and self._resolver.contains(signal.path):
            payload["path"] = self._resolver.to_url(signal.path)
        if signal.kind is not None:
            payload["kind"] = signal.kind
        return _json_response(payload)


def _referer_path(request: Request) -> str | None:
    referer = request.headers.get("referer")
    if not referer:
        return None
    return urlsplit(referer).path or None
