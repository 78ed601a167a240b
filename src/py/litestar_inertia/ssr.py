"""Client for the Inertia SSR server.

The official Inertia SSR server listens on ``/render`` and expects the raw page
object as JSON. It returns JSON with at least a ``body`` field, and optionally
``head`` (list of strings).
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, cast

import httpx

from litestar_inertia.exceptions import SSRRenderError

if TYPE_CHECKING:
    from anyio.from_thread import BlockingPortal

__all__ = ("SSRResult", "render_ssr", "render_ssr_sync")


@dataclass(frozen=True)
class SSRResult:
    head: list[str]
    body: str


def _parse_ssr_payload(payload: Any, url: str) -> SSRResult:
    if not isinstance(payload, dict):
        msg = f"Inertia SSR server at {url!r} returned unexpected payload type: {type(payload)!r}."
        raise SSRRenderError(msg, url=url)

    payload_dict = cast("dict[str, Any]", payload)

    body = payload_dict.get("body")
    if not isinstance(body, str):
        msg = f"Inertia SSR server at {url!r} returned invalid 'body' (expected string)."
        raise SSRRenderError(msg, url=url)

    head_raw: Any = payload_dict.get("head", [])
    if head_raw is None:
        head_raw = []
    if not isinstance(head_raw, list) or any(not isinstance(item, str) for item in cast("list[Any]", head_raw)):
        msg = f"Inertia SSR server at {url!r} returned invalid 'head' (expected list[str])."
        raise SSRRenderError(msg, url=url)

    return SSRResult(head=cast("list[str]", head_raw), body=body)


async def _post(
    client: "httpx.AsyncClient", page: "dict[str, Any]", url: str, timeout_seconds: float
) -> httpx.Response:
    try:
        response = await client.post(url, json=page, timeout=timeout_seconds)
        response.raise_for_status()
    except httpx.RequestError as exc:
        msg = f"Inertia SSR is enabled but the SSR server is not reachable at {url!r}."
        raise SSRRenderError(msg, url=url) from exc
    except httpx.HTTPStatusError as exc:
        msg = f"Inertia SSR server at {url!r} returned HTTP {exc.response.status_code}. Check the SSR server logs."
        raise SSRRenderError(msg, url=url) from exc
    return response


async def render_ssr(
    page: "dict[str, Any]", url: str, timeout_seconds: float, client: "httpx.AsyncClient | None" = None
) -> SSRResult:
    """Call the Inertia SSR server and return head/body HTML.

    Args:
        page: The page object to send to the SSR server.
        url: The SSR server URL.
        timeout_seconds: Request timeout in seconds.
        client: Optional shared httpx.AsyncClient for connection pooling.
            If None, creates a new client per request.

    Raises:
        SSRRenderError: If the SSR server is unreachable, returns an error status,
            or returns an invalid payload.

    Returns:
        An SSRResult with head and body HTML.
    """
    if client is not None:
        response = await _post(client, page, url, timeout_seconds)
    else:
        async with httpx.AsyncClient() as fallback_client:
            response = await _post(fallback_client, page, url, timeout_seconds)

    try:
        payload = response.json()
    except ValueError as exc:
        msg = f"Inertia SSR server at {url!r} returned invalid JSON. Check the SSR server logs."
        raise SSRRenderError(msg, url=url) from exc

    return _parse_ssr_payload(payload, url)


def render_ssr_sync(
    page: "dict[str, Any]",
    url: str,
    *,
    timeout_seconds: float,
    portal: "BlockingPortal",
    client: "httpx.AsyncClient | None" = None,
) -> SSRResult:
    """Render through the SSR server from synchronous code.

    Uses the application's :class:`~anyio.from_thread.BlockingPortal` so the event
    loop thread is not blocked by the HTTP call.

    Returns:
        An SSRResult with head and body HTML.
    """
    return portal.call(render_ssr, page, url, timeout_seconds, client)
