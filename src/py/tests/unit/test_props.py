"""Tests for prop tags and the prop store."""

import pytest

from litestar_inertia.props import (
    AlwaysProp,
    DeepMergeProp,
    DeferredProp,
    MergeProp,
    OptionalProp,
    PreservedKey,
    always,
    deep_merge,
    defer,
    is_lazy,
    merge,
    optional,
    overlay_props,
    preserve_case,
    put_prop,
    rewrap,
)


def load_teams() -> list[str]:
    return ["red", "blue"]


async def load_teams_async() -> list[str]:
    return ["red", "blue"]


def test_constructors_wrap_values() -> None:
    assert optional(load_teams) == OptionalProp(load_teams)
    assert always({"a": 1}) == AlwaysProp({"a": 1})
    assert merge([1, 2]) == MergeProp([1, 2])
    assert deep_merge({"a": {"b": 1}}) == DeepMergeProp({"a": {"b": 1}})
    assert defer(load_teams) == DeferredProp(load_teams, group="default")
    assert defer(load_teams_async, group="sidebar").group == "sidebar"


def test_optional_requires_callable() -> None:
    with pytest.raises(TypeError, match="optional"):
        optional(["not", "callable"])  # type: ignore[arg-type]


def test_defer_requires_callable() -> None:
    with pytest.raises(TypeError, match="defer"):
        defer("value")  # type: ignore[arg-type]


def test_defer_requires_string_group() -> None:
    with pytest.raises(TypeError, match="group"):
        defer(load_teams, group=1)  # type: ignore[arg-type]


def test_defer_accepts_merge_wrapped_callable() -> None:
    prop = defer(merge(load_teams), group="posts")

    assert isinstance(prop.value, MergeProp)
    assert prop.value.value is load_teams


def test_defer_rejects_merge_wrapped_value() -> None:
    with pytest.raises(TypeError):
        defer(merge([1, 2]))


def test_tags_are_immutable() -> None:
    prop = always(1)
    with pytest.raises(AttributeError):
        prop.value = 2  # type: ignore[misc]


def test_rewrap_keeps_tag_type_and_group() -> None:
    prop = defer(load_teams, group="sidebar")
    rewrapped = rewrap(prop, load_teams_async)

    assert isinstance(rewrapped, DeferredProp)
    assert rewrapped.group == "sidebar"
    assert rewrapped.value is load_teams_async


def test_preserve_case() -> None:
    key = preserve_case("csrf_token")

    assert key == PreservedKey("csrf_token")
    assert str(key) == "csrf_token"
    assert {key: 1}[PreservedKey("csrf_token")] == 1


def test_is_lazy() -> None:
    assert is_lazy(load_teams)
    assert is_lazy(load_teams_async)
    assert is_lazy(lambda: 1)
    assert not is_lazy(dict)
    assert not is_lazy(optional(load_teams))
    assert not is_lazy("value")


def test_put_prop_returns_new_store() -> None:
    store = {"a": 1}
    updated = put_prop(store, "a", 2)

    assert updated == {"a": 2}
    assert store == {"a": 1}


def test_overlay_props_render_props_win() -> None:
    shared = {"user": "shared", "errors": {}}
    merged = overlay_props(shared, {"user": "render", "posts": []})

    assert merged == {"user": "render", "errors": {}, "posts": []}
    assert list(merged) == ["user", "errors", "posts"]
    assert overlay_props(shared, None) == shared
