"""HTML page shell for rendered markdown, plus the 403/404 pages.

The shell mirrors github.com's README box: GitHub's stylesheets, a file
name header, and an ``article.markdown-body`` holding the rendered HTML.
Pages are plain strings built with ``str.format``; every interpolated
value except the rendered markdown is escaped.
"""

from __future__ import annotations

import html

STATIC_PREFIX = "/__preen/static"

_GITHUB_CSS = (
    "https://github.githubassets.com/assets/frameworks-146fab5ea30e8afac08dd11013bb4ee0.css",
    "https://github.githubassets.com/assets/site-897ad5fdbe32a5cd67af5d1bdc68a292.css",
    "https://github.githubassets.com/assets/github-c21b6bf71617eeeb67a56b0d48b5bb5c.css",
)

_STYLESHEETS = "\n".join(
    f'<link rel="stylesheet" href="{href}">'
    for href in (*_GITHUB_CSS, f"{STATIC_PREFIX}/style.css")
)

_PAGE = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{title}</title>
{stylesheets}
</head>
<body>
<div class="page">
  <div id="preview-page" class="preview-page">
    <div id="readme" class="readme boxed-group clearfix md">
      <h3 class="preen-file">{file_name}</h3>
      <article id="preen-content" class="markdown-body entry-content" itemprop="text">
{content}
      </article>
    </div>
  </div>
</div>
</body>
</html>
"""

_MESSAGE_PAGE = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>{title}</title>
{stylesheets}
</head>
<body>
<div class="page preen-message">
  <h1>{heading}</h1>
  {body}
</div>
</body>
</html>
"""


def render_page(file_name: str, content: str) -> str:
    """Wrap a rendered markdown fragment in the page shell."""
    escaped = html.escape(file_name)
    return _PAGE.format(
        title=escaped,
        stylesheets=_STYLESHEETS,
        file_name=escaped,
        content=content,
    )


def render_not_found(request_path: str, *, readme: str | None = None) -> str:
    """404 page.  Pass *readme* when the miss was an index lookup."""
    target = html.escape(request_path)
    if readme is not None:
        body = (
            f"<p>For a directory, preen looks for a file named "
            f"<strong>{html.escape(readme)}</strong> inside it. "
            f"Otherwise it looks for the exact file name.</p>"
        )
    else:
        body = "<p>No such file in the served directory.</p>"
    return _MESSAGE_PAGE.format(
        title="Not found",
        stylesheets=_STYLESHEETS,
        heading=f"Couldn't find {target}",
        body=body,
    )


def render_forbidden(request_path: str) -> str:
    """403 page for paths outside the served directory."""
    return _MESSAGE_PAGE.format(
        title="Forbidden",
        stylesheets=_STYLESHEETS,
        heading="Outside the served directory",
        body=f"<p><strong>{html.escape(request_path)}</strong> cannot be served.</p>",
    )
