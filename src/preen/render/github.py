"""GitHub renderer — renders through the GitHub markdown API.

``POST {api}/markdown`` with ``{"text", "mode", "context"}``.  With a
repository context the ``gfm`` mode is used, so issue references and
relative links resolve the way they do on github.com.
"""

from __future__ import annotations

import httpx

from preen._errors import RenderError

_HEADERS = {
    "Accept": "application/vnd.github+json",
    "User-Agent": "preen",
}


class GitHubRenderer:
    """Markdown renderer backed by the GitHub API.

    Args:
        api_url: API base, e.g. ``https://api.github.com``.
        context: ``owner/name`` repository context, enabling ``gfm`` mode.
        client: Optional pre-built ``httpx.AsyncClient`` (not closed by us).
        timeout: Request timeout in seconds.

    """

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        *,
        context: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._endpoint = f"{api_url.rstrip('/')}/markdown"
        self._context = context
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=_HEADERS)

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def build_body(self, source: str) -> dict[str, str]:
        """JSON payload for *source*."""
        if self._context:
            return {"text": source, "mode": "gfm", "context": self._context}
        return {"text": source, "mode": "markdown", "context": ""}

    async def render(self, source: str) -> str:
        try:
            response = await self._client.post(
                self._endpoint, json=self.build_body(source), headers=_HEADERS,
            )
        except httpx.HTTPError as exc:
            msg = f"GitHub API unavailable: {exc}"
            raise RenderError(msg) from exc

        if response.status_code >= 400:
            detail = response.text or f"HTTP {response.status_code}"
            msg = f"GitHub API returned {response.status_code}: {detail}"
            raise RenderError(msg)
        return response.text

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
