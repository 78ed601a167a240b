from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from litestar_inertia.types import InertiaHeaderType


class InertiaHeaders(str, Enum):
    """Enum for Inertia Headers.

    See: https://inertiajs.com/the-protocol
    """

    ENABLED = "X-Inertia"
    VERSION = "X-Inertia-Version"
    LOCATION = "X-Inertia-Location"

    PARTIAL_DATA = "X-Inertia-Partial-Data"
    PARTIAL_COMPONENT = "X-Inertia-Partial-Component"
    PARTIAL_EXCEPT = "X-Inertia-Partial-Except"

    RESET = "X-Inertia-Reset"
    ERROR_BAG = "X-Inertia-Error-Bag"


def split_header_list(value: "str | None") -> "list[str]":
    """Split a comma-separated header value, dropping empty items.

    Args:
        value: The raw header value.

    Returns:
        The stripped, non-empty items in order.
    """
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def get_enabled_header(enabled: bool = True) -> "dict[str, Any]":
    """True if inertia is enabled.

    Args:
        enabled: Whether inertia is enabled.

    Returns:
        The headers for inertia.
    """

    return {InertiaHeaders.ENABLED.value: "true" if enabled else "false"}


def get_version_header(version: str) -> "dict[str, Any]":
    """Return the asset version header.

    Args:
        version: The asset version.

    Returns:
        The headers for inertia.
    """
    return {InertiaHeaders.VERSION.value: version}


def get_location_header(location: str) -> "dict[str, Any]":
    return {InertiaHeaders.LOCATION.value: location}


def get_partial_data_header(partial: str) -> "dict[str, Any]":
    """Return headers for a partial data request.

    Args:
        partial: Comma-separated prop keys to include.

    Returns:
        The headers for inertia.
    """
    return {InertiaHeaders.PARTIAL_DATA.value: partial}


def get_partial_component_header(partial: str) -> "dict[str, Any]":
    """Return headers naming the component of a partial reload.

    Args:
        partial: The component name.

    Returns:
        The headers for inertia.
    """
    return {InertiaHeaders.PARTIAL_COMPONENT.value: partial}


def get_partial_except_header(partial: str) -> "dict[str, Any]":
    return {InertiaHeaders.PARTIAL_EXCEPT.value: partial}


def get_reset_header(reset: str) -> "dict[str, Any]":
    return {InertiaHeaders.RESET.value: reset}


def get_error_bag_header(error_bag: str) -> "dict[str, Any]":
    return {InertiaHeaders.ERROR_BAG.value: error_bag}


def get_headers(inertia_headers: "InertiaHeaderType") -> "dict[str, Any]":
    """Return headers for Inertia requests and responses.

    Args:
        inertia_headers: The inertia headers.

    Raises:
        ValueError: If the inertia headers are None.

    Returns:
        The headers for inertia.
    """
    if not inertia_headers:
        msg = "Value for inertia_headers cannot be None."
        raise ValueError(msg)
    inertia_headers_dict: "dict[str, Callable[..., dict[str, Any]]]" = {
        "enabled": get_enabled_header,
        "version": get_version_header,
        "location": get_location_header,
        "partial_data": get_partial_data_header,
        "partial_component": get_partial_component_header,
        "partial_except": get_partial_except_header,
        "reset": get_reset_header,
        "error_bag": get_error_bag_header,
    }

    header: "dict[str, Any]" = {}
    response: "dict[str, Any]"
    key: "str"
    value: "Any"

    for key, value in inertia_headers.items():
        if value is not None:
            response = inertia_headers_dict[key](value)
            header.update(response)
    return header
