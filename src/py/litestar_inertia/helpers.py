"""Request-scoped helpers for building Inertia responses.

Shared props and per-request options live in the ASGI scope and disappear with the
request. Flash messages, validation errors and the clear-history flag are kept in
the session so they survive the redirect that usually follows a form submission.
"""

from collections import defaultdict
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from litestar.exceptions import ImproperlyConfiguredException

from litestar_inertia.exceptions import InertiaPropsError
from litestar_inertia.props import PropKey, always, put_prop
from litestar_inertia.request import InertiaDetails, InertiaRequest

if TYPE_CHECKING:
    from litestar import Request
    from litestar.connection import ASGIConnection

__all__ = (
    "bag_errors",
    "camelize_props",
    "clear_history",
    "encrypt_history",
    "error",
    "flash",
    "force_redirect",
    "get_flash",
    "get_option",
    "get_request_errors",
    "get_shared_props",
    "pop_session_errors",
    "put_errors",
    "share",
    "to_errors",
)

_SCOPE_KEY = "_inertia"
_SHARED = "shared"
_ERRORS = "errors"


def _state(connection: "ASGIConnection[Any, Any, Any, Any]") -> "dict[str, Any]":
    scope = cast("dict[str, Any]", connection.scope)
    return cast("dict[str, Any]", scope.setdefault(_SCOPE_KEY, {}))


def share(
    connection: "ASGIConnection[Any, Any, Any, Any]",
    key: "PropKey",
    value: "Any",
) -> "None":
    """Share a prop with the page rendered for this request.

    Later calls for the same key win; props passed to the render win over shared ones.

    Args:
        connection: The ASGI connection.
        key: The prop key.
        value: The prop value, possibly lazy or tagged.
    """
    state = _state(connection)
    state[_SHARED] = put_prop(state.get(_SHARED, {}), key, value)


def get_shared_props(connection: "ASGIConnection[Any, Any, Any, Any]") -> "dict[PropKey, Any]":
    """Return the props shared so far during this request.

    Returns:
        The shared props, in the order they were first shared.
    """
    return dict(_state(connection).get(_SHARED, {}))


def get_option(connection: "ASGIConnection[Any, Any, Any, Any]", name: str, default: Any = None) -> Any:
    """Return a per-request option set by one of the helpers below.

    Returns:
        The option value, or ``default`` if unset.
    """
    return _state(connection).get(name, default)


def camelize_props(connection: "ASGIConnection[Any, Any, Any, Any]", value: bool = True) -> None:
    """Enable (or disable) prop key camelization for this request, overriding the global setting."""
    _state(connection)["camelize_props"] = value


def encrypt_history(connection: "ASGIConnection[Any, Any, Any, Any]", value: bool = True) -> None:
    """Instruct the client to encrypt this page's history state, overriding the global setting."""
    _state(connection)["encrypt_history"] = value


def force_redirect(connection: "ASGIConnection[Any, Any, Any, Any]", value: bool = True) -> None:
    """Turn the redirect sent for this request into an Inertia external redirect.

    Regular redirects to other hosts are converted automatically; this is for local
    pages that are not served by Inertia.

    Example::

        @post("/export")
        async def export(request: Request) -> Redirect:
            force_redirect(request)
            return Redirect("/exports/latest.csv")
    """
    _state(connection)["force_redirect"] = value


def clear_history(connection: "ASGIConnection[Any, Any, Any, Any]") -> None:
    """Clear the client's encrypted history on the next rendered page.

    The flag is kept in the session, so it also applies after a redirect (e.g. on logout).
    """
    try:
        connection.session["_inertia_clear_history"] = True
    except (AttributeError, ImproperlyConfiguredException):
        msg = "Unable to set `clear_history` session state.  A valid session was not found for this request."
        connection.logger.warning(msg)


def flash(
    connection: "ASGIConnection[Any, Any, Any, Any]",
    message: str,
    category: str = "info",
) -> bool:
    """Store a flash message in the session.

    Args:
        connection: The ASGI connection.
        message: The message.
        category: The message category.

    Returns:
        True if the message was stored, False if no session is available.
    """
    try:
        connection.session.setdefault("_messages", []).append({"message": message, "category": category})
    except (AttributeError, ImproperlyConfiguredException):
        msg = "Unable to set `flash` session state.  A valid session was not found for this request."
        connection.logger.warning(msg)
        return False
    return True


def get_flash(connection: "ASGIConnection[Any, Any, Any, Any]") -> "dict[str, list[str]]":
    """Pop the pending flash messages from the session, grouped by category.

    Returns:
        The flash messages, empty if none or if no session is available.
    """
    messages: "dict[str, list[str]]" = defaultdict(list)
    try:
        for message in cast("list[dict[str, Any]]", connection.session.pop("_messages", [])):
            messages[message["category"]].append(message["message"])
    except (AttributeError, ImproperlyConfiguredException):
        msg = "Unable to read flash messages.  A valid session was not found for this request."
        connection.logger.warning(msg)
    return dict(messages)


def error(
    connection: "ASGIConnection[Any, Any, Any, Any]",
    key: "str",
    message: "str",
) -> "None":
    """Set an error message in the session.

    Args:
        connection: The ASGI connection.
        key: The key to store the error under.
        message: The error message.
    """
    try:
        connection.session.setdefault("_errors", {}).update({key: message})
    except (AttributeError, ImproperlyConfiguredException):
        msg = "Unable to set `error` session state.  A valid session was not found for this request."
        connection.logger.warning(msg)


def pop_session_errors(connection: "ASGIConnection[Any, Any, Any, Any]") -> "dict[str, Any]":
    """Pop the errors stored in the session by a previous request.

    Returns:
        The errors, empty if none or if no session is available.
    """
    try:
        return cast("dict[str, Any]", connection.session.pop("_errors", None) or {})
    except (AttributeError, ImproperlyConfiguredException):
        return {}


def _flatten(errors: "Mapping[Any, Any]", prefix: str = "") -> "dict[str, str]":
    flat: "dict[str, str]" = {}
    for key, value in errors.items():
        name = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(_flatten(cast("Mapping[Any, Any]", value), name))
        elif isinstance(value, (list, tuple)):
            messages = cast("list[Any]", value)
            flat[name] = str(messages[0]) if messages else ""
        else:
            flat[name] = str(value)
    return flat


def to_errors(data: Any) -> "dict[str, str]":
    """Convert validation errors into the flat ``{field: message}`` map Inertia expects.

    Accepts a mapping (nested mappings are flattened to dotted keys, lists keep their
    first message) or a list of ``{"key": ..., "message": ...}`` dicts, as found in
    ``ValidationException.extra``.

    Example::

        to_errors({"name": "is required", "team": {"name": "is too short"}})
        # {"name": "is required", "team.name": "is too short"}

    Raises:
        InertiaPropsError: If ``data`` has neither shape.

    Returns:
        The flat error map.
    """
    if isinstance(data, Mapping):
        return _flatten(cast("Mapping[Any, Any]", data))
    if isinstance(data, (list, tuple)) and all(isinstance(item, Mapping) for item in cast("list[Any]", data)):
        items = cast("list[Mapping[str, Any]]", data)
        return {str(item.get("key") or "root"): str(item.get("message", "")) for item in items}
    raise InertiaPropsError("a mapping of field names to messages", data)


def put_errors(connection: "ASGIConnection[Any, Any, Any, Any]", data: Any) -> "dict[str, str]":
    """Assign validation errors to the page.

    The errors are sent as the ``errors`` prop (never filtered out), nested under the
    error bag when the client sent one. If the request ends with a redirect, the
    errors are moved to the session for the next page.

    Returns:
        The flat error map.
    """
    errors = to_errors(data)
    state = _state(connection)
    state[_ERRORS] = errors
    share(connection, "errors", always(bag_errors(connection, errors)))
    return errors


def get_request_errors(connection: "ASGIConnection[Any, Any, Any, Any]") -> "dict[str, str]":
    """Return the errors assigned with :func:`put_errors` during this request.

    Returns:
        The flat error map.
    """
    return cast("dict[str, str]", _state(connection).get(_ERRORS, {}))


def bag_errors(connection: "ASGIConnection[Any, Any, Any, Any]", errors: "dict[str, Any]") -> "dict[str, Any]":
    """Nest errors under the error bag named by the client, if any.

    Returns:
        The (possibly nested) errors.
    """
    request = cast("Request[Any, Any, Any]", connection)
    details = request.inertia if isinstance(request, InertiaRequest) else InertiaDetails(request)
    error_bag = details.error_bag
    return {error_bag: errors} if error_bag else errors
