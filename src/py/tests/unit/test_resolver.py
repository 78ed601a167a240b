"""Tests for the prop resolution pipeline."""

import itertools
from collections.abc import Callable
from typing import Any, NamedTuple

import pytest

from litestar_inertia.props import (
    AlwaysProp,
    DeferredProp,
    OptionalProp,
    always,
    deep_merge,
    defer,
    merge,
    optional,
    preserve_case,
)
from litestar_inertia.resolver import (
    PartialReload,
    apply_filters,
    classify_merge_props,
    evaluate,
    group_deferred_props,
    maybe_put_flash,
    resolve_page_props,
    resolve_props,
    resolve_value,
    select_partial_reload,
    transform_key,
    wire_key,
)


class Counter:
    """A lazy producer that records how often it was called."""

    def __init__(self, value: Any) -> None:
        self.value = value
        self.calls = 0

    def __call__(self) -> Any:
        self.calls += 1
        return self.value


def partial(only: "tuple[str, ...]" = (), except_: "tuple[str, ...]" = ()) -> PartialReload:
    return PartialReload(component="Users/Index", only=frozenset(only), except_=frozenset(except_))


# =====================================================
# Key transformation
# =====================================================


def test_transform_key() -> None:
    assert transform_key("user_name") == "user_name"
    assert transform_key("user_name", camelize=True) == "userName"
    assert transform_key(preserve_case("user_name"), camelize=True) == "user_name"
    assert transform_key(1, camelize=True) == 1
    assert wire_key(1) == "1"


def test_transform_key_is_idempotent() -> None:
    once = transform_key("deep_merge_props", camelize=True)
    assert transform_key(once, camelize=True) == once == "deepMergeProps"


def test_nested_keys_are_camelized_in_order() -> None:
    value = {"user_name": {"first_name": "A", "last_name": "B"}, "team_ids": [{"team_id": 1}]}

    resolved = resolve_value(value, camelize=True)

    assert resolved == {"userName": {"firstName": "A", "lastName": "B"}, "teamIds": [{"teamId": 1}]}
    assert list(resolved["userName"]) == ["firstName", "lastName"]


def test_preserved_key_is_not_camelized() -> None:
    props = {preserve_case("user_name"): "A", "last_name": {preserve_case("first_name"): "B"}}

    assert resolve_props(props, camelize=True) == {"user_name": "A", "lastName": {"first_name": "B"}}


def test_keys_untouched_without_camelize() -> None:
    assert resolve_props({"user_name": {"first_name": "A"}}) == {"user_name": {"first_name": "A"}}


# =====================================================
# Partial reload selection and filtering
# =====================================================


def test_select_partial_reload_requires_matching_component() -> None:
    assert select_partial_reload("Users/Index", None, ["a"]) is None
    assert select_partial_reload("Users/Index", "Teams/Index", ["a"]) is None

    reload = select_partial_reload("Users/Index", "Users/Index", ["a", "b"], ["c"])

    assert reload == PartialReload(component="Users/Index", only=frozenset({"a", "b"}), except_=frozenset({"c"}))


def test_standard_visit_drops_optional_props() -> None:
    props = {"a": 1, "b": OptionalProp(Counter(2)), "c": AlwaysProp(3)}

    assert apply_filters(props) == {"a": 1, "c": AlwaysProp(3)}


def test_only_keeps_requested_and_always_props() -> None:
    props = {"a": 1, "b": OptionalProp(Counter(2)), "c": AlwaysProp(3), "d": 4}

    assert list(apply_filters(props, partial(only=("b",)))) == ["b", "c"]


def test_except_drops_listed_props() -> None:
    props = {"a": 1, "b": OptionalProp(Counter(2)), "c": AlwaysProp(3)}

    assert list(apply_filters(props, partial(except_=("a", "c")))) == ["b", "c"]


def test_only_takes_precedence_over_except() -> None:
    props = {"a": 1, "b": 2}

    assert list(apply_filters(props, partial(only=("a",), except_=("a",)))) == ["a"]


def test_filters_compare_transformed_keys() -> None:
    props = {"user_name": 1, preserve_case("team_name"): 2, "other": 3}

    kept = apply_filters(props, partial(only=("userName", "team_name")), camelize=True)

    assert list(kept) == ["user_name", preserve_case("team_name")]


@pytest.mark.parametrize(
    "reload",
    [
        None,
        partial(only=("a",)),
        partial(only=("missing",)),
        partial(except_=("always",)),
        partial(only=("a",), except_=("always",)),
    ],
)
def test_always_props_are_always_present(reload: "PartialReload | None") -> None:
    props = {"a": 1, "always": always(Counter("kept")), "b": 2}

    resolved = resolve_page_props(props, partial=reload)

    assert resolved.props["always"] == "kept"


@pytest.mark.parametrize(
    "reload",
    [None, partial(only=("a",)), partial(except_=("optional",)), partial(only=("a",), except_=("optional",))],
)
def test_unrequested_optional_producer_is_never_called(reload: "PartialReload | None") -> None:
    producer = Counter("expensive")

    resolved = resolve_page_props({"a": 1, "optional": optional(producer)}, partial=reload)

    assert "optional" not in resolved.props
    assert producer.calls == 0


def test_requested_optional_producer_is_called_once() -> None:
    producer = Counter("expensive")

    resolved = resolve_page_props({"a": 1, "optional": optional(producer)}, partial=partial(only=("optional",)))

    assert resolved.props == {"optional": "expensive"}
    assert producer.calls == 1


def test_dropped_plain_lazy_prop_is_never_called() -> None:
    producer = Counter("users")

    resolve_page_props({"users": producer, "teams": 1}, partial=partial(only=("teams",)))

    assert producer.calls == 0


# =====================================================
# Merge classification
# =====================================================


def test_merge_props_are_classified_in_first_seen_order() -> None:
    props = {"posts": merge([1]), "plain": 1, "settings": deep_merge({"a": 1}), "comments": merge([2])}

    result, merge_keys, deep_merge_keys = classify_merge_props(props)

    assert result == {"posts": [1], "plain": 1, "settings": {"a": 1}, "comments": [2]}
    assert merge_keys == ["posts", "comments"]
    assert deep_merge_keys == ["settings"]


def test_merge_keys_use_wire_keys() -> None:
    props = {"blog_posts": merge([]), preserve_case("raw_key"): merge([])}

    _, merge_keys, _ = classify_merge_props(props, camelize=True)

    assert merge_keys == ["blogPosts", "raw_key"]


def test_reset_suppresses_merge_but_keeps_value() -> None:
    props = {"posts": merge([1, 2]), "settings": deep_merge({"a": 1})}

    resolved = resolve_page_props(props, reset=["posts", "settings"])

    assert resolved.merge_props == []
    assert resolved.deep_merge_props == []
    assert resolved.props == {"posts": [1, 2], "settings": {"a": 1}}


def test_merge_inside_deferred_is_classified() -> None:
    loader = Counter([3, 4])
    result, merge_keys, _ = classify_merge_props({"posts": defer(merge(loader), group="feed")})

    assert merge_keys == ["posts"]
    assert result["posts"] == DeferredProp(loader, group="feed")


def test_merge_inside_optional_and_always_keeps_wrapper() -> None:
    loader = Counter([1])
    result, merge_keys, deep_merge_keys = classify_merge_props(
        {"a": OptionalProp(merge(loader)), "b": always(deep_merge({"x": 1}))}
    )

    assert merge_keys == ["a"]
    assert deep_merge_keys == ["b"]
    assert result == {"a": OptionalProp(loader), "b": AlwaysProp({"x": 1})}


# =====================================================
# Deferred grouping
# =====================================================


def test_deferred_props_are_grouped() -> None:
    a, b = Counter("A"), Counter("B")

    resolved = resolve_page_props({"a": defer(a), "b": defer(b, group="dashboard"), "c": 1})

    assert resolved.deferred_props == {"default": ["a"], "dashboard": ["b"]}
    assert resolved.props == {"c": 1}
    assert a.calls == 0
    assert b.calls == 0


def test_deferred_group_lists_newest_key_first() -> None:
    props = {"a": defer(Counter(1)), "b": defer(Counter(2)), "c": defer(Counter(3), group="other")}

    _, groups = group_deferred_props(props)

    assert groups == {"default": ["b", "a"], "other": ["c"]}


def test_deferred_keys_use_wire_keys() -> None:
    _, groups = group_deferred_props({"team_stats": defer(Counter(1))}, camelize=True)

    assert groups == {"default": ["teamStats"]}


def test_partial_reload_loads_deferred_prop() -> None:
    a, b = Counter("A"), Counter("B")
    props = {"a": defer(a), "b": defer(b, group="dashboard")}

    resolved = resolve_page_props(props, partial=partial(only=("a",)))

    assert resolved.props == {"a": "A"}
    assert resolved.is_partial
    assert a.calls == 1
    assert b.calls == 0


def test_deferred_grouping_happens_before_filtering() -> None:
    resolved = resolve_page_props({"a": defer(Counter("A")), "b": 1}, partial=partial(only=("b",)))

    assert resolved.deferred_props == {"default": ["a"]}


# =====================================================
# Evaluation
# =====================================================


def test_nested_lazy_values_are_evaluated() -> None:
    inner = Counter({"first_name": "A"})

    assert resolve_value({"user": inner, "teams": [Counter(1), always(2)]}) == {
        "user": {"first_name": "A"},
        "teams": [1, 2],
    }
    assert inner.calls == 1


def test_tuples_keep_their_type() -> None:
    assert resolve_value((Counter(1), 2)) == (1, 2)


class Point(NamedTuple):
    x: Any
    y: Any


def test_named_tuples_resolve_to_lists() -> None:
    assert resolve_value(Point(Counter(1), 2)) == [1, 2]
    assert resolve_page_props({"point": Point(1, 2)}).props == {"point": [1, 2]}


def test_classes_are_leaves() -> None:
    assert resolve_value(dict) is dict


def test_lazy_producers_run_in_mapping_order() -> None:
    calls = itertools.count()
    order: "dict[str, int]" = {}

    def tracked(name: str) -> "Callable[[], str]":
        def produce() -> str:
            order[name] = next(calls)
            return name

        return produce

    resolve_props({"z": tracked("z"), "a": tracked("a"), "m": tracked("m")})

    assert sorted(order, key=order.__getitem__) == ["z", "a", "m"]


def test_failing_producer_propagates() -> None:
    def broken() -> None:
        msg = "database unavailable"
        raise RuntimeError(msg)

    with pytest.raises(RuntimeError, match="database unavailable"):
        resolve_page_props({"users": broken})


async def load_users() -> list[str]:
    return ["ada", "grace"]


def test_evaluate_coroutine_function() -> None:
    assert evaluate(load_users) == ["ada", "grace"]


def test_evaluate_callable_returning_coroutine() -> None:
    assert evaluate(lambda: load_users()) == ["ada", "grace"]


def test_async_producer_in_props() -> None:
    resolved = resolve_page_props({"users": optional(load_users)}, partial=partial(only=("users",)))

    assert resolved.props == {"users": ["ada", "grace"]}


# =====================================================
# Flash
# =====================================================


def test_flash_is_added_unless_present() -> None:
    assert maybe_put_flash({"a": 1}, {"info": ["saved"]}) == {"a": 1, "flash": {"info": ["saved"]}}
    assert maybe_put_flash({"flash": "mine"}, {"info": ["saved"]}) == {"flash": "mine"}


def test_resolve_page_props_adds_flash() -> None:
    resolved = resolve_page_props({"a": 1}, flash={})

    assert resolved.props == {"a": 1, "flash": {}}
    assert "flash" not in resolve_page_props({"a": 1}).props
