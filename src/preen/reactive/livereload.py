"""Live-reload script injection.

Injects a small long-poll client into HTML responses.  The client holds
``GET /__livereload`` open until the server answers:

- ``reload``: the page or something it embeds changed, so reload
- ``keepalive``: the hold expired, so ask again straight away
- error or network failure: retry after a second

The page's cache generation travels with the poll, so a change that
lands between loading the page and subscribing still causes a reload.
"""

from __future__ import annotations

import json
from dataclasses import replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chirp.http.request import Request
    from chirp.http.response import Response, SSEResponse, StreamingResponse
    from chirp.middleware.protocol import Next

    type AnyResponse = Response | StreamingResponse | SSEResponse


LIVERELOAD_ENDPOINT = "/__livereload"
GENERATION_HEADER = "X-Preen-Generation"

_RETRY_MS = 1000

# Placeholders are substituted with JSON literals; the JS keeps its braces.
_LIVERELOAD_SCRIPT = """\
<script data-preen-livereload>
(function() {
  var page = location.pathname;
  var gen = __PREEN_GEN__;
  function poll() {
    var url = '__PREEN_ENDPOINT__?page=' + encodeURIComponent(page);
    if (gen !== null) url += '&gen=' + gen;
    fetch(url, {cache: 'no-store'})
      .then(function(r) {
        if (!r.ok) throw new Error('live reload: HTTP ' + r.status);
        return r.json();
      })
      .then(function(msg) {
        if (msg.action === 'reload') { location.reload(); return; }
        poll();
      })
      .catch(function() { setTimeout(poll, __PREEN_RETRY__); });
  }
  poll();
})();
</script>
"""


def livereload_script(generation: int | None = None) -> str:
    """Return the client script for a page rendered at *generation*."""
    return (
        _LIVERELOAD_SCRIPT
        .replace("__PREEN_GEN__", json.dumps(generation))
        .replace("__PREEN_ENDPOINT__", LIVERELOAD_ENDPOINT)
        .replace("__PREEN_RETRY__", str(_RETRY_MS))
    )


def inject_script(body: str, script: str) -> str:
    """Insert *script* before ``</body>``, else ``</html>``, else append."""
    if "</body>" in body:
        return body.replace("</body>", script + "</body>", 1)
    if "</html>" in body:
        return body.replace("</html>", script + "</html>", 1)
    return body + script


def _generation(response: Response) -> int | None:
    for name, value in response.headers:
        if name.lower() == GENERATION_HEADER.lower() and value.isdigit():
            return int(value)
    return None


async def livereload_middleware(request: Request, next: Next) -> AnyResponse:
    """Chirp middleware that injects the live-reload client into HTML responses.

    Only touches regular (non-streaming, non-SSE) ``text/html`` responses
    with a body.
    """
    response = await next(request)

    if not hasattr(response, "body") or not hasattr(response, "content_type"):
        return response
    if "text/html" not in response.content_type or not response.body:
        return response

    body = response.body
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            # Raw HTML in another encoding is served as-is, without the client.
            return response

    script = livereload_script(_generation(response))
    return replace(response, body=inject_script(body, script))
