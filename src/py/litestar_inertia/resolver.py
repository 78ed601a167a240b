"""Prop resolution for the Inertia page object.

The render pipeline runs over the merged prop set in a fixed order:

1. :func:`classify_merge_props` strips merge tags and records the merge keys,
2. :func:`group_deferred_props` turns deferred props into optional ones and
   records their loading groups,
3. :func:`apply_filters` keeps what the (partial) visit asks for,
4. :func:`resolve_props` evaluates lazy producers, unwraps tags and transforms keys.

Lazy producers are only ever called in step 4, so anything dropped in step 3 is
never evaluated.
"""

import inspect
from collections.abc import Generator, Iterable, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, cast

from anyio.from_thread import BlockingPortal, start_blocking_portal

from litestar_inertia.props import (
    AlwaysProp,
    DeepMergeProp,
    DeferredProp,
    MergeProp,
    OptionalProp,
    PreservedKey,
    PropKey,
    PropTag,
    is_lazy,
    rewrap,
)
from litestar_inertia.types import to_camel_case

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

__all__ = (
    "PartialReload",
    "ResolvedProps",
    "apply_filters",
    "classify_merge_props",
    "evaluate",
    "group_deferred_props",
    "maybe_put_flash",
    "resolve_page_props",
    "resolve_props",
    "resolve_value",
    "select_partial_reload",
    "transform_key",
    "wire_key",
)


def transform_key(key: Any, camelize: bool = False) -> Any:
    """Return the wire form of a prop key.

    Args:
        key: The prop key.
        camelize: Convert snake_case keys to camelCase.

    Returns:
        The raw key for preserved keys, the camelized key when enabled, otherwise the key unchanged.
    """
    if isinstance(key, PreservedKey):
        return key.key
    if camelize and isinstance(key, str):
        return to_camel_case(key)
    return key


def wire_key(key: Any, camelize: bool = False) -> str:
    """Return the transformed key as a string, as compared against request headers.

    Returns:
        The string wire key.
    """
    return str(transform_key(key, camelize))


@dataclass(frozen=True)
class PartialReload:
    """A partial reload targeting the component being rendered."""

    component: str
    only: "frozenset[str]" = field(default_factory=frozenset)
    except_: "frozenset[str]" = field(default_factory=frozenset)


def select_partial_reload(
    component: str,
    partial_component: "str | None",
    only: "Iterable[str]" = (),
    except_: "Iterable[str]" = (),
) -> "PartialReload | None":
    """Return the active partial reload for ``component``, if any.

    A partial reload only applies when the client targets the very component being
    rendered; any other request gets the full payload.

    Args:
        component: The component being rendered.
        partial_component: The component named by the partial-component header.
        only: Keys from the partial-data header.
        except_: Keys from the partial-except header.

    Returns:
        The partial reload, or None when the request is not a partial reload of ``component``.
    """
    if partial_component is None or partial_component != component:
        return None
    return PartialReload(component=component, only=frozenset(only), except_=frozenset(except_))


def _split_merge(value: Any) -> "tuple[type[PropTag] | None, Any]":
    """Extract a merge tag from the top of a tag chain.

    A merge tag wrapped by a deferred, optional or always tag is extracted too; the
    outer tag is kept around the merged value.

    Returns:
        The merge tag type (or None) and the value without the merge tag.
    """
    if isinstance(value, (MergeProp, DeepMergeProp)):
        return type(value), value.value
    if isinstance(value, (DeferredProp, OptionalProp, AlwaysProp)):
        strategy, inner = _split_merge(value.value)
        if strategy is not None:
            return strategy, rewrap(value, inner)
    return None, value


def classify_merge_props(
    props: "Mapping[PropKey, Any]",
    reset: "Iterable[str]" = (),
    camelize: bool = False,
) -> "tuple[dict[PropKey, Any], list[str], list[str]]":
    """Strip merge tags and collect the merge and deep-merge keys.

    Keys listed in ``reset`` lose their merge semantics and are replaced client-side.

    Args:
        props: The merged prop set.
        reset: Wire keys the client asked to reset.
        camelize: Whether keys are camelized.

    Returns:
        The rewritten props, the merge keys and the deep-merge keys (wire form, first-seen order).
    """
    reset_keys = set(reset)
    result: "dict[PropKey, Any]" = {}
    merge_keys: "list[str]" = []
    deep_merge_keys: "list[str]" = []

    for key, value in props.items():
        strategy, unwrapped = _split_merge(value)
        result[key] = unwrapped
        if strategy is None:
            continue
        transformed = wire_key(key, camelize)
        if transformed in reset_keys:
            continue
        if strategy is MergeProp:
            merge_keys.append(transformed)
        else:
            deep_merge_keys.append(transformed)

    return result, merge_keys, deep_merge_keys


def group_deferred_props(
    props: "Mapping[PropKey, Any]",
    camelize: bool = False,
) -> "tuple[dict[PropKey, Any], dict[str, list[str]]]":
    """Replace deferred props with optional ones and group their keys.

    Within a group the most recently declared key comes first.

    Args:
        props: The prop set, after merge classification.
        camelize: Whether keys are camelized.

    Returns:
        The rewritten props and the deferred keys by group.

    Example::

        props = {"teams": defer(get_teams, group="attributes"), "permissions": defer(get_permissions)}
        group_deferred_props(props)[1]
        # {"attributes": ["teams"], "default": ["permissions"]}
    """
    result: "dict[PropKey, Any]" = {}
    groups: "dict[str, list[str]]" = {}

    for key, value in props.items():
        if isinstance(value, DeferredProp):
            result[key] = OptionalProp(value.value)
            groups.setdefault(value.group, []).insert(0, wire_key(key, camelize))
        else:
            result[key] = value

    return result, groups


def apply_filters(
    props: "Mapping[PropKey, Any]",
    partial: "PartialReload | None" = None,
    camelize: bool = False,
) -> "dict[PropKey, Any]":
    """Keep the props the visit asks for.

    ``only`` is checked before ``except``. Always props are never dropped; optional
    props are dropped unless a partial reload selects them.

    Args:
        props: The prop set.
        partial: The active partial reload, if any.
        camelize: Whether keys are camelized.

    Returns:
        The filtered props.
    """
    only = partial.only if partial is not None else frozenset()
    except_ = partial.except_ if partial is not None else frozenset()

    if only:
        return {
            key: value
            for key, value in props.items()
            if isinstance(value, AlwaysProp) or wire_key(key, camelize) in only
        }
    if except_:
        return {
            key: value
            for key, value in props.items()
            if isinstance(value, AlwaysProp) or wire_key(key, camelize) not in except_
        }
    return {key: value for key, value in props.items() if not isinstance(value, OptionalProp)}


@contextmanager
def with_portal(portal: "BlockingPortal | None" = None) -> "Generator[BlockingPortal, None, None]":
    """Get or create a blocking portal for async execution.

    Yields:
        A BlockingPortal for executing async code from sync context.
    """
    if portal is None:
        with start_blocking_portal() as p:
            yield p
    else:
        yield portal


async def _await(awaitable: "Coroutine[Any, Any, Any]") -> Any:
    return await awaitable


def evaluate(callback: "Callable[[], Any]", portal: "BlockingPortal | None" = None) -> Any:
    """Call a lazy producer once and return its result.

    Coroutine functions (and callables returning a coroutine) are awaited through ``portal``.

    Returns:
        The produced value.
    """
    if inspect.iscoroutinefunction(callback):
        with with_portal(portal) as p:
            return p.call(callback)
    result = callback()
    if inspect.iscoroutine(result):
        with with_portal(portal) as p:
            return p.call(_await, result)
    return result


def resolve_value(value: Any, camelize: bool = False, portal: "BlockingPortal | None" = None) -> Any:
    """Recursively unwrap tags, evaluate lazy producers and transform nested keys.

    Args:
        value: The prop value.
        camelize: Camelize mapping keys at every level.
        portal: Portal used to await async producers.

    Returns:
        A plain, serializable value.
    """
    if isinstance(value, PropTag):
        return resolve_value(value.value, camelize, portal)
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return {
            transform_key(k, camelize): resolve_value(v, camelize, portal)
            for k, v in cast("Mapping[Any, Any]", value).items()
        }
    if isinstance(value, (list, tuple)):
        resolved = [resolve_value(v, camelize, portal) for v in cast("Iterable[Any]", value)]
        return tuple(resolved) if type(value) is tuple else resolved
    if is_lazy(value):
        return resolve_value(evaluate(value, portal), camelize, portal)
    return value


def resolve_props(
    props: "Mapping[PropKey, Any]",
    camelize: bool = False,
    portal: "BlockingPortal | None" = None,
) -> "dict[str, Any]":
    """Resolve a filtered prop set into the ``props`` of the page object.

    Returns:
        The resolved props keyed by wire key.
    """
    return {wire_key(key, camelize): resolve_value(value, camelize, portal) for key, value in props.items()}


def maybe_put_flash(props: "dict[str, Any]", flash: Any) -> "dict[str, Any]":
    """Add ``flash`` to the props unless the caller already set one.

    Returns:
        The props.
    """
    if "flash" not in props:
        props["flash"] = flash
    return props


@dataclass
class ResolvedProps:
    """Everything the page object needs from the prop set."""

    props: "dict[str, Any]"
    merge_props: "list[str]"
    deep_merge_props: "list[str]"
    deferred_props: "dict[str, list[str]]"
    is_partial: bool


def resolve_page_props(
    props: "Mapping[PropKey, Any]",
    *,
    partial: "PartialReload | None" = None,
    reset: "Iterable[str]" = (),
    camelize: bool = False,
    flash: Any = None,
    portal: "BlockingPortal | None" = None,
) -> ResolvedProps:
    """Run the full resolution pipeline over a merged prop set.

    Args:
        props: Shared props overlaid with render props.
        partial: The active partial reload, if any.
        reset: Wire keys whose merge semantics are suppressed.
        camelize: Camelize keys.
        flash: Flash messages, added as ``flash`` unless the props define it.
        portal: Portal used to await async producers.

    Returns:
        The resolved props and the merge/deferred metadata.
    """
    classified, merge_keys, deep_merge_keys = classify_merge_props(props, reset, camelize)
    grouped, deferred = group_deferred_props(classified, camelize)
    filtered = apply_filters(grouped, partial, camelize)
    resolved = resolve_props(filtered, camelize, portal)
    if flash is not None:
        maybe_put_flash(resolved, flash)
    return ResolvedProps(
        props=resolved,
        merge_props=merge_keys,
        deep_merge_props=deep_merge_keys,
        deferred_props=deferred,
        is_partial=partial is not None,
    )
