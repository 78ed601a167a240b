"""Inertia protocol types.

This module defines the Python-side page object of the Inertia.js protocol and the
snake_case to camelCase conversion used both for the page object itself and for
prop keys when camelization is enabled.
"""

import re
from dataclasses import dataclass, fields
from typing import Any, TypedDict

__all__ = (
    "InertiaHeaderType",
    "PageObject",
    "to_camel_case",
)


_SNAKE_CASE_PATTERN = re.compile(r"_([a-z])")


def to_camel_case(snake_str: str) -> str:
    """Convert snake_case string to camelCase.

    Already camelCased strings are returned unchanged.

    Args:
        snake_str: A snake_case string.

    Returns:
        The camelCase equivalent.

    Examples:
        >>> to_camel_case("encrypt_history")
        'encryptHistory'
        >>> to_camel_case("deep_merge_props")
        'deepMergeProps'
    """
    return _SNAKE_CASE_PATTERN.sub(lambda m: m.group(1).upper(), snake_str)


@dataclass
class PageObject:
    """The Inertia page object.

    See: https://inertiajs.com/the-protocol#the-page-object

    Field names use snake_case in Python and are serialized to camelCase by
    :meth:`to_dict`. ``props`` must already be resolved.

    Attributes:
        component: JavaScript component name to render.
        props: Resolved page props.
        url: Current page URL, including the query string.
        version: Asset version identifier.
        encrypt_history: Whether to encrypt browser history state.
        clear_history: Whether to clear encrypted history state.
        merge_props: Props to merge during navigation.
        deep_merge_props: Props to deep merge during navigation.
        deferred_props: Deferred prop keys by loading group.
    """

    component: str
    props: "dict[str, Any]"
    url: str
    version: str
    encrypt_history: bool = False
    clear_history: bool = False
    merge_props: "list[str] | None" = None
    deep_merge_props: "list[str] | None" = None
    deferred_props: "dict[str, list[str]] | None" = None

    def to_dict(self) -> "dict[str, Any]":
        """Convert to Inertia.js protocol format with camelCase keys.

        Empty merge and deferred entries are left out.

        Returns:
            The Inertia protocol dictionary.
        """
        result: "dict[str, Any]" = {}
        for page_field in fields(self):
            value = getattr(self, page_field.name)
            if page_field.name in {"merge_props", "deep_merge_props", "deferred_props"} and not value:
                continue
            result[to_camel_case(page_field.name)] = value
        return result


class InertiaHeaderType(TypedDict, total=False):
    """Type for inertia_headers parameter in get_headers()."""

    enabled: "bool | None"
    version: "str | None"
    location: "str | None"
    partial_data: "str | None"
    partial_component: "str | None"
    partial_except: "str | None"
    reset: "str | None"
    error_bag: "str | None"
