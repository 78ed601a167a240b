import re
from typing import TYPE_CHECKING, Any, cast
from urllib.parse import quote, urlparse, urlunparse

from litestar import MediaType
from litestar.exceptions import (
    HTTPException,
    InternalServerException,
    NotAuthorizedException,
    PermissionDeniedException,
)
from litestar.exceptions.responses import (
    create_debug_response,  # pyright: ignore[reportUnknownVariableType]
    create_exception_response,  # pyright: ignore[reportUnknownVariableType]
)
from litestar.status_codes import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_404_NOT_FOUND,
    HTTP_405_METHOD_NOT_ALLOWED,
    HTTP_422_UNPROCESSABLE_ENTITY,
)

from litestar_inertia.helpers import error, flash
from litestar_inertia.request import InertiaRequest
from litestar_inertia.response import InertiaBack, InertiaRedirect, InertiaResponse

if TYPE_CHECKING:
    from litestar.connection import Request
    from litestar.connection.base import AuthT, StateT, UserT
    from litestar.response import Response

    from litestar_inertia.plugin import InertiaPlugin

__all__ = ("create_inertia_exception_response", "exception_to_http_response")

FIELD_ERR_RE = re.compile(r"field `(.+)`$")


def _is_inertia_route(request: "Request[UserT, AuthT, StateT]") -> bool:
    is_inertia_header = request.headers.get("x-inertia", "").lower() == "true"
    if isinstance(request, InertiaRequest):
        return request.inertia_enabled or request.is_inertia or is_inertia_header
    return is_inertia_header


def exception_to_http_response(request: "Request[UserT, AuthT, StateT]", exc: "Exception") -> "Response[Any]":
    """Handle exceptions raised while serving a request.

    Requests to Inertia routes (or sent by the Inertia client) get redirects and flash
    messages the client can display; everything else gets Litestar's default error response.

    Returns:
        The response object.
    """
    if _is_inertia_route(request):
        return create_inertia_exception_response(request, exc)
    if isinstance(exc, HTTPException):
        return cast("Response[Any]", create_exception_response(request, exc))
    if request.app.debug:
        return cast("Response[Any]", create_debug_response(request, exc))
    return cast("Response[Any]", create_exception_response(request, InternalServerException()))


def _record_field_error(request: "Request[UserT, AuthT, StateT]", extras: Any, detail: str) -> None:
    """Store the first validation error of ``extras`` under its field name."""
    if not isinstance(extras, (list, tuple)) or not extras:
        return
    first_extra = cast("list[Any]", extras)[0]
    if not isinstance(first_extra, dict):
        return
    message = cast("dict[str, Any]", first_extra)
    key_value = message.get("key")
    default_field = f"root.{key_value}" if key_value is not None else "root"
    error_detail = str(message.get("message", detail) or detail)
    match = FIELD_ERR_RE.search(error_detail)
    error(request, match.group(1) if match else default_field, error_detail)


def _with_error_param(url: str, detail: str) -> str:
    parsed = urlparse(url)
    error_param = f"error={quote(detail, safe='')}"
    query = f"{parsed.query}&{error_param}" if parsed.query else error_param
    return urlunparse(parsed._replace(query=query))


def create_inertia_exception_response(request: "Request[UserT, AuthT, StateT]", exc: "Exception") -> "Response[Any]":
    """Create the error response for an Inertia route.

    - 400, 422 and permission errors flash the message, record the field error and go back.
    - 401 redirects to ``redirect_unauthorized_to`` when configured.
    - 404 and 405 redirect to ``redirect_404`` when configured.
    - Other HTTP errors render the error details.
    - Any other exception gets Litestar's default 500 response, no page is rendered.

    Returns:
        The response object: an InertiaResponse, InertiaRedirect or InertiaBack, or a plain error response.
    """
    if not isinstance(exc, HTTPException):
        if request.app.debug:
            return cast("Response[Any]", create_debug_response(request, exc))
        return cast("Response[Any]", create_exception_response(request, InternalServerException()))

    is_inertia = request.is_inertia if isinstance(request, InertiaRequest) else _is_inertia_route(request)
    status_code = exc.status_code
    preferred_type = MediaType.JSON if is_inertia else MediaType.HTML
    detail = exc.detail
    extras: Any = exc.extra
    content: "dict[str, Any]" = {"status_code": status_code, "message": detail}
    if extras:
        content["extra"] = extras

    inertia_plugin: "InertiaPlugin | None"
    try:
        inertia_plugin = request.app.plugins.get("InertiaPlugin")
    except KeyError:
        inertia_plugin = None

    flash_succeeded = flash(request, detail, category="error") if detail else False
    _record_field_error(request, extras, detail)

    if status_code in {HTTP_422_UNPROCESSABLE_ENTITY, HTTP_400_BAD_REQUEST} or isinstance(
        exc, PermissionDeniedException
    ):
        return InertiaBack(request)

    if inertia_plugin is None:
        return InertiaResponse[Any](media_type=preferred_type, content=content, status_code=status_code, ssr=False)

    redirect_to_login = inertia_plugin.config.redirect_unauthorized_to
    if (status_code == HTTP_401_UNAUTHORIZED or isinstance(exc, NotAuthorizedException)) and redirect_to_login:
        if request.url.path == redirect_to_login:
            # already on the login page, go back so the client shows the flash message
            return InertiaBack(request)
        if not flash_succeeded and detail:
            redirect_to_login = _with_error_param(redirect_to_login, detail)
        return InertiaRedirect(request, redirect_to=redirect_to_login)

    redirect_404 = inertia_plugin.config.redirect_404
    if (
        status_code in {HTTP_404_NOT_FOUND, HTTP_405_METHOD_NOT_ALLOWED}
        and redirect_404
        and request.url.path != redirect_404
    ):
        return InertiaRedirect(request, redirect_to=redirect_404)

    return InertiaResponse[Any](media_type=preferred_type, content=content, status_code=status_code, ssr=False)
