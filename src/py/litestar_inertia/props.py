"""Inertia prop tags.

A prop value is either a plain value, a zero-argument callable that is only evaluated
when the prop is actually sent, or one of the tags defined here wrapping another prop
value. Tags only describe *how* a prop is delivered; they are unwrapped during
resolution and never reach the client.

Example::

    from litestar_inertia.props import always, defer, merge, optional, preserve_case

    props = {
        "users": lambda: User.all(),  # evaluated only when sent
        "teams": optional(lambda: Team.all()),  # only on partial reloads that ask for it
        "errors": always({}),  # never filtered out
        "posts": merge(new_posts),  # merged client-side
        "permissions": defer(lambda: Permission.all(), group="sidebar"),
        preserve_case("csrf_token"): token,  # never camelized
    }
"""

import dataclasses
from collections.abc import Callable, Coroutine, Mapping
from dataclasses import dataclass
from typing import Any, TypeGuard, TypeVar, Union

__all__ = (
    "DEFAULT_DEFERRED_GROUP",
    "AlwaysProp",
    "DeepMergeProp",
    "DeferredProp",
    "MergeProp",
    "OptionalProp",
    "PreservedKey",
    "PropKey",
    "PropTag",
    "always",
    "deep_merge",
    "defer",
    "is_lazy",
    "merge",
    "optional",
    "overlay_props",
    "preserve_case",
    "put_prop",
    "rewrap",
)

T = TypeVar("T")

DEFAULT_DEFERRED_GROUP = "default"


@dataclass(frozen=True)
class PreservedKey:
    """A prop key that is sent exactly as written, even when camelization is enabled."""

    key: str

    def __str__(self) -> str:
        return self.key


PropKey = Union[str, PreservedKey]
LazyProp = Callable[[], Union[T, Coroutine[Any, Any, T]]]


@dataclass(frozen=True)
class PropTag:
    """Base class of the closed set of prop tags."""

    value: Any


@dataclass(frozen=True)
class OptionalProp(PropTag):
    """Never sent on standard visits, only when a partial reload asks for it."""


@dataclass(frozen=True)
class AlwaysProp(PropTag):
    """Sent on every visit, whatever the partial reload asks for."""


@dataclass(frozen=True)
class MergeProp(PropTag):
    """Merged (appended) into the existing client-side value."""


@dataclass(frozen=True)
class DeepMergeProp(PropTag):
    """Deeply merged into the existing client-side value."""


@dataclass(frozen=True)
class DeferredProp(PropTag):
    """Left out of the initial response and loaded afterwards with its group."""

    group: str = DEFAULT_DEFERRED_GROUP


def optional(callback: "LazyProp[T]") -> OptionalProp:
    """Mark a prop as optional.

    Optional props are never included on standard visits and are only evaluated
    when explicitly requested by a partial reload.

    Args:
        callback: Zero-argument callable (sync or async) producing the value.

    Raises:
        TypeError: If ``callback`` is not callable.

    Returns:
        The tagged prop.
    """
    if not callable(callback):
        msg = f"optional() expects a callable, got {type(callback).__name__!r}."
        raise TypeError(msg)
    return OptionalProp(callback)


def always(value: Any) -> AlwaysProp:
    """Mark a prop as always included, even on partial reloads that did not ask for it.

    Returns:
        The tagged prop.
    """
    return AlwaysProp(value)


def merge(value: Any) -> MergeProp:
    """Mark a prop to be merged with the existing data on the client.

    Returns:
        The tagged prop.
    """
    return MergeProp(value)


def deep_merge(value: Any) -> DeepMergeProp:
    """Mark a prop to be deeply merged with the existing data on the client.

    Returns:
        The tagged prop.
    """
    return DeepMergeProp(value)


def defer(callback: "LazyProp[T] | MergeProp | DeepMergeProp", group: str = DEFAULT_DEFERRED_GROUP) -> DeferredProp:
    """Mark a prop as deferred: loaded by the client after the initial page render.

    Props in the same group are fetched together in a single partial reload. A merge
    tag may be wrapped to declare how the loaded value is combined client-side.

    Args:
        callback: A callable (sync or async) returning the value, or a merge tag around one.
        group: The group name for batched loading. Defaults to ``"default"``.

    Raises:
        TypeError: If ``callback`` is not callable or ``group`` is not a string.

    Returns:
        The tagged prop.

    Example::

        defer(lambda: Permission.all())
        defer(lambda: Team.all(), group="attributes")
        defer(merge(lambda: Post.page(2)))
    """
    inner = callback.value if isinstance(callback, (MergeProp, DeepMergeProp)) else callback
    if not callable(inner):
        msg = f"defer() expects a callable, got {type(inner).__name__!r}."
        raise TypeError(msg)
    if not isinstance(group, str):
        msg = f"defer() group must be a string, got {type(group).__name__!r}."
        raise TypeError(msg)
    return DeferredProp(callback, group=group)


def preserve_case(key: str) -> PreservedKey:
    """Prevent a prop key from being camelized.

    Works for top-level and nested keys alike.

    Returns:
        The preserved key.
    """
    return PreservedKey(key)


def is_lazy(value: Any) -> "TypeGuard[LazyProp[Any]]":
    """Check if value is a zero-argument producer to be evaluated at render time.

    Classes are callable too, but are treated as plain values.

    Returns:
        True if the value is a lazy producer.
    """
    return callable(value) and not isinstance(value, (type, PropTag))


def rewrap(tag: PropTag, value: Any) -> PropTag:
    """Return a copy of ``tag`` holding ``value``.

    Returns:
        The new tag.
    """
    return dataclasses.replace(tag, value=value)


def put_prop(store: "Mapping[PropKey, Any]", key: PropKey, value: Any) -> "dict[PropKey, Any]":
    """Return a new prop store with ``key`` set to ``value``.

    Returns:
        The updated copy of the store.
    """
    return {**store, key: value}


def overlay_props(shared: "Mapping[PropKey, Any]", props: "Mapping[PropKey, Any] | None") -> "dict[PropKey, Any]":
    """Overlay render-time props on shared props; render-time props win.

    Returns:
        The merged prop set, shared keys first.
    """
    return {**shared, **(props or {})}
