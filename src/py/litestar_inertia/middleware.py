from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from litestar.datastructures import MutableScopeHeaders
from litestar.enums import ScopeType
from litestar.exceptions import ImproperlyConfiguredException
from litestar.middleware import AbstractMiddleware
from litestar.status_codes import HTTP_303_SEE_OTHER, HTTP_409_CONFLICT

from litestar_inertia._utils import InertiaHeaders
from litestar_inertia.helpers import get_option, get_request_errors
from litestar_inertia.plugin import InertiaPlugin
from litestar_inertia.request import InertiaRequest
from litestar_inertia.response import InertiaExternalRedirect

if TYPE_CHECKING:
    from litestar.types import ASGIApp, Message, Receive, Scope, Send

__all__ = ("InertiaMiddleware", "is_external_url", "redirect_on_asset_version_mismatch")

_REDIRECT_STATUSES = frozenset(range(300, 309))
_NARROWED_METHODS = frozenset({"PUT", "PATCH", "DELETE"})


def redirect_on_asset_version_mismatch(request: "InertiaRequest[Any, Any, Any]") -> "InertiaExternalRedirect | None":
    """Return a full reload of the requested URL when the client's assets are stale.

    Only GET visits are checked. A missing version header counts as a mismatch.

    Returns:
        An InertiaExternalRedirect when versions differ, otherwise None.
    """
    if not request.is_inertia or request.method != "GET":
        return None

    inertia_plugin = request.app.plugins.get(InertiaPlugin)
    if request.inertia_version == inertia_plugin.asset_version:
        return None

    return InertiaExternalRedirect(request, redirect_to=str(request.url))


def is_external_url(request: "InertiaRequest[Any, Any, Any]", location: str) -> bool:
    """Return True when ``location`` points outside this application.

    Paths (``/users``) and absolute URLs on the request's host are internal;
    protocol-relative URLs (``//host/path``) and other hosts are external.

    Returns:
        True if the location is external, otherwise False.
    """
    if location.startswith("/") and not location.startswith("//"):
        return False
    parsed = urlparse(location)
    if not parsed.scheme and not parsed.netloc:
        return False
    return parsed.netloc != request.url.netloc


class InertiaMiddleware(AbstractMiddleware):
    """Middleware for the Inertia.js protocol.

    On Inertia requests it:

    1. answers stale GET visits with a 409 and ``X-Inertia-Location`` (asset version mismatch),
    2. turns redirects to other sites, or forced redirects, into 409 + ``X-Inertia-Location``,
    3. turns 301/302 redirects of PUT/PATCH/DELETE requests into 303, so the client follows with GET.

    On every request answered by a redirect or a 409, validation errors assigned during
    the request are moved to the session for the next page.
    """

    scopes = {ScopeType.HTTP}

    def __init__(self, app: "ASGIApp") -> None:
        super().__init__(app)
        self.app = app

    async def __call__(self, scope: "Scope", receive: "Receive", send: "Send") -> None:
        request: InertiaRequest[Any, Any, Any] = InertiaRequest(scope=scope)
        redirect = redirect_on_asset_version_mismatch(request)
        if redirect is not None:
            response = redirect.to_asgi_response(app=None, request=request)  # pyright: ignore[reportUnknownMemberType]
            await response(scope, receive, send)
            return

        async def send_wrapper(message: "Message") -> None:
            if message["type"] == "http.response.start":
                self._rewrite_response_start(request, message)
            await send(message)

        await self.app(scope, receive, send_wrapper)

    @staticmethod
    def _rewrite_response_start(request: "InertiaRequest[Any, Any, Any]", message: "Message") -> None:
        status: int = message["status"]  # pyright: ignore[reportGeneralTypeIssues]
        headers = MutableScopeHeaders.from_message(message)  # pyright: ignore[reportArgumentType]

        if request.is_inertia and status in _REDIRECT_STATUSES and (location := headers.get("location")):
            if get_option(request, "force_redirect", False) or is_external_url(request, location):
                del headers["location"]
                headers[InertiaHeaders.LOCATION.value] = location
                status = HTTP_409_CONFLICT
            elif status in {301, 302} and request.method in _NARROWED_METHODS:
                status = HTTP_303_SEE_OTHER
            message["status"] = status  # pyright: ignore[reportGeneralTypeIssues]

        if status in _REDIRECT_STATUSES or status == HTTP_409_CONFLICT:
            _keep_errors_for_next_page(request)


def _keep_errors_for_next_page(request: "InertiaRequest[Any, Any, Any]") -> None:
    errors = get_request_errors(request)
    if not errors:
        return
    try:
        request.session.setdefault("_errors", {}).update(errors)
    except (AttributeError, ImproperlyConfiguredException):
        request.logger.warning("Unable to keep validation errors.  A valid session was not found for this request.")
