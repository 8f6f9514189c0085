"""Error overlay — renders exceptions as styled HTML pages.

Provides two mechanisms:
1. ``render_error_page`` — the page served for a file that fails to render.
2. ``error_overlay_middleware`` — Chirp middleware that turns any
   unexpected handler exception into the same page instead of a bare 500.
"""

from __future__ import annotations

import html
import linecache
import traceback
from typing import TYPE_CHECKING

from preen._errors import RenderError

if TYPE_CHECKING:
    from chirp.http.request import Request
    from chirp.http.response import Response, SSEResponse, StreamingResponse
    from chirp.middleware.protocol import Next

    type AnyResponse = Response | StreamingResponse | SSEResponse


# ---------------------------------------------------------------------------
# Page template.  Styles are inline so the page renders even when
# /__preen/static is unreachable.
# ---------------------------------------------------------------------------

_ERROR_PAGE = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>{title}</title>
<style>
body{{margin:0;padding:32px 16px;background:#f6f8fa;color:#1f2328;
  font:14px/1.5 -apple-system,BlinkMacSystemFont,"Segoe UI",Helvetica,Arial,sans-serif}}
main{{max-width:980px;margin:0 auto}}
.flash{{padding:16px 20px;border:1px solid #ffc1c0;border-radius:6px;
  background:#ffebe9;margin-bottom:16px}}
.flash h1{{margin:0 0 4px;font-size:16px;color:#d1242f}}
.flash .path{{margin:0;color:#59636e;font-family:ui-monospace,Menlo,Consolas,monospace}}
.flash .message{{margin:8px 0 0;white-space:pre-wrap;word-break:break-word}}
.box{{border:1px solid #d1d9e0;border-radius:6px;background:#fff;
  margin-bottom:16px;overflow-x:auto}}
.box .caption{{padding:8px 16px;border-bottom:1px solid #d1d9e0;color:#59636e;
  font-family:ui-monospace,Menlo,Consolas,monospace;font-size:12px}}
.box pre{{margin:0;padding:8px 0;font:12px/1.6 ui-monospace,Menlo,Consolas,monospace}}
.ln{{display:block;padding:0 16px;white-space:pre}}
.ln.hit{{background:#ffebe9}}
.ln i{{display:inline-block;min-width:40px;padding-right:16px;text-align:right;
  color:#8c959f;font-style:normal;user-select:none}}
details summary{{cursor:pointer;color:#59636e;padding:4px 0}}
details pre{{padding:12px 16px;max-height:420px;overflow:auto}}
footer{{color:#59636e}}
</style>
</head>
<body>
<main>
  <section class="flash">
    <h1>{title}: {error_type}</h1>
    {file_line}
    <p class="message">{error_message}</p>
  </section>
  {source_section}
  <details class="box">
    <summary class="caption">Stack trace</summary>
    <pre>{stack_trace}</pre>
  </details>
  <footer>Save the file to try again; this tab reloads on its own.</footer>
</main>
</body>
</html>
"""


def _extract_source_context(filename: str, lineno: int, context: int = 5) -> str:
    """Numbered source excerpt around *lineno*, the failing line highlighted."""
    if not filename or lineno <= 0:
        return ""

    rows: list[str] = []
    for n in range(max(1, lineno - context), lineno + context + 1):
        text = linecache.getline(filename, n)
        if not text and n > lineno:
            break
        marker = " hit" if n == lineno else ""
        rows.append(f'<span class="ln{marker}"><i>{n}</i>{html.escape(text.rstrip())}</span>')
    if not rows:
        return ""
    caption = f"{html.escape(filename)}:{lineno}"
    return f'<div class="box"><div class="caption">{caption}</div><pre>{"".join(rows)}</pre></div>'


def _extract_error_location(exc: BaseException) -> tuple[str, int]:
    """Innermost frame of the exception's traceback."""
    tb = exc.__traceback__
    if tb is None:
        return "", 0
    while tb.tb_next is not None:
        tb = tb.tb_next
    return tb.tb_frame.f_code.co_filename, tb.tb_lineno


def render_error_page(exc: BaseException, request_path: str | None = None) -> str:
    """Render a full HTML error page for *exc*.

    Render failures are the author's problem, not the server's, so they
    show the message without a Python source excerpt.
    """
    if isinstance(exc, RenderError):
        title = "Render error"
        message = exc.message
        source_section = ""
    else:
        title = "Server error"
        message = str(exc)
        source_section = _extract_source_context(*_extract_error_location(exc))

    file_line = (
        f'<p class="path">{html.escape(request_path)}</p>' if request_path else ""
    )
    stack_trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return _ERROR_PAGE.format(
        title=title,
        error_type=html.escape(type(exc).__qualname__),
        file_line=file_line,
        error_message=html.escape(message),
        source_section=source_section,
        stack_trace=html.escape(stack_trace),
    )


async def error_overlay_middleware(request: Request, next: Next) -> AnyResponse:
    """Catch exceptions from inner handlers and return a styled 500 page."""
    from chirp.errors import HTTPError
    from chirp.http.response import Response

    try:
        return await next(request)
    except HTTPError:
        # Routing misses and explicit HTTP errors keep their own status.
        raise
    except Exception as exc:
        return Response(
            body=render_error_page(exc, request.path),
            status=500,
            content_type="text/html; charset=utf-8",
        )
