"""Tests for the SSR client and SSR rendering of full page loads."""

import json
from typing import Any
from unittest.mock import patch

import httpx
import pytest
from litestar import get
from litestar.middleware.session.server_side import ServerSideSessionConfig
from litestar.stores.memory import MemoryStore
from litestar.template.config import TemplateConfig
from litestar.testing import create_test_client

from litestar_inertia import InertiaConfig, InertiaPlugin, InertiaResponse, InertiaSSRConfig
from litestar_inertia.exceptions import SSRRenderError
from litestar_inertia.ssr import SSRResult, render_ssr

SSR_URL = "http://ssr.local/render"


def _client(handler: Any) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# =====================================================
# SSR client
# =====================================================


async def test_render_ssr_posts_page_object() -> None:
    seen: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"head": ["<title>Home</title>"], "body": "<div id='app'>Home</div>"})

    page = {"component": "Home", "props": {"a": 1}, "url": "/", "version": "1"}
    async with _client(handler) as client:
        result = await render_ssr(page, SSR_URL, 1.0, client=client)

    assert result == SSRResult(head=["<title>Home</title>"], body="<div id='app'>Home</div>")
    assert seen == [page]


async def test_render_ssr_missing_head_is_empty() -> None:
    async with _client(lambda request: httpx.Response(200, json={"body": "<div></div>", "head": None})) as client:
        result = await render_ssr({}, SSR_URL, 1.0, client=client)

    assert result.head == []


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "a", "dict"],
        {"head": []},
        {"body": 1},
        {"body": "<div></div>", "head": "<title>x</title>"},
        {"body": "<div></div>", "head": [1]},
    ],
)
async def test_render_ssr_rejects_invalid_payload(payload: Any) -> None:
    async with _client(lambda request: httpx.Response(200, json=payload)) as client:
        with pytest.raises(SSRRenderError) as exc_info:
            await render_ssr({}, SSR_URL, 1.0, client=client)

    assert exc_info.value.url == SSR_URL


async def test_render_ssr_invalid_json() -> None:
    async with _client(lambda request: httpx.Response(200, content=b"<html>")) as client:
        with pytest.raises(SSRRenderError, match="invalid JSON"):
            await render_ssr({}, SSR_URL, 1.0, client=client)


async def test_render_ssr_error_status() -> None:
    async with _client(lambda request: httpx.Response(500, text="boom")) as client:
        with pytest.raises(SSRRenderError, match="HTTP 500"):
            await render_ssr({}, SSR_URL, 1.0, client=client)


async def test_render_ssr_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        msg = "connection refused"
        raise httpx.ConnectError(msg, request=request)

    async with _client(handler) as client:
        with pytest.raises(SSRRenderError, match="not reachable") as exc_info:
            await render_ssr({}, SSR_URL, 1.0, client=client)

    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


# =====================================================
# Rendering
# =====================================================


@pytest.fixture
def ssr_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    def fake_render(page: dict[str, Any], url: str, **kwargs: Any) -> SSRResult:
        calls.append(page)
        return SSRResult(head=['<meta name="ssr" content="yes">'], body=f"<div id=\"app\">{page['component']}</div>")

    monkeypatch.setattr("litestar_inertia.response.render_ssr_sync", fake_render)
    return calls


@pytest.fixture
def failing_ssr(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_render(page: dict[str, Any], url: str, **kwargs: Any) -> SSRResult:
        msg = "SSR server is down"
        raise SSRRenderError(msg, url=url)

    monkeypatch.setattr("litestar_inertia.response.render_ssr_sync", fake_render)


async def test_full_page_load_renders_ssr_markup(
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
    ssr_calls: list[dict[str, Any]],
) -> None:
    plugin = InertiaPlugin(InertiaConfig(root_template="index.html.j2", assets_version="test-version", ssr=True))

    @get("/", component="Home")
    async def handler() -> dict[str, Any]:
        return {"greeting": "hello"}

    with create_test_client(
        route_handlers=[handler],
        template_config=template_config,
        plugins=[plugin],
        middleware=[ServerSideSessionConfig().middleware],
        stores={"sessions": MemoryStore()},
    ) as client:
        response = client.get("/")

        assert response.status_code == 200
        assert '<meta name="ssr" content="yes">' in response.text
        assert '<div id="app">Home</div>' in response.text
        assert "data-page" not in response.text
        assert ssr_calls[0]["props"]["greeting"] == "hello"


async def test_protocol_requests_skip_ssr(
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
    inertia_headers: dict[str, str],
    ssr_calls: list[dict[str, Any]],
) -> None:
    plugin = InertiaPlugin(InertiaConfig(root_template="index.html.j2", assets_version="test-version", ssr=True))

    @get("/", component="Home")
    async def handler() -> dict[str, Any]:
        return {}

    with create_test_client(
        route_handlers=[handler],
        template_config=template_config,
        plugins=[plugin],
        middleware=[ServerSideSessionConfig().middleware],
        stores={"sessions": MemoryStore()},
    ) as client:
        response = client.get("/", headers=inertia_headers)

        assert response.json()["component"] == "Home"
        assert ssr_calls == []


async def test_response_can_disable_ssr(
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
    read_page: Any,
    ssr_calls: list[dict[str, Any]],
) -> None:
    plugin = InertiaPlugin(InertiaConfig(root_template="index.html.j2", assets_version="test-version", ssr=True))

    @get("/")
    async def handler() -> InertiaResponse[dict[str, Any]]:
        return InertiaResponse({"a": 1}, component="Home", ssr=False)

    with create_test_client(
        route_handlers=[handler],
        template_config=template_config,
        plugins=[plugin],
        middleware=[ServerSideSessionConfig().middleware],
        stores={"sessions": MemoryStore()},
    ) as client:
        response = client.get("/")

        assert read_page(response.text)["props"]["a"] == 1
        assert ssr_calls == []


async def test_response_can_enable_ssr(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
    ssr_calls: list[dict[str, Any]],
) -> None:
    @get("/")
    async def handler() -> InertiaResponse[dict[str, Any]]:
        return InertiaResponse({}, component="Dashboard", ssr=True)

    with create_test_client(
        route_handlers=[handler],
        template_config=template_config,
        plugins=[inertia_plugin],
        middleware=[ServerSideSessionConfig().middleware],
        stores={"sessions": MemoryStore()},
    ) as client:
        response = client.get("/")

        assert '<div id="app">Dashboard</div>' in response.text
        assert len(ssr_calls) == 1


@pytest.mark.usefixtures("failing_ssr")
async def test_ssr_failure_falls_back_to_client_rendering(
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
    read_page: Any,
) -> None:
    plugin = InertiaPlugin(
        InertiaConfig(
            root_template="index.html.j2",
            assets_version="test-version",
            ssr=InertiaSSRConfig(raise_on_failure=False),
        )
    )

    @get("/", component="Home")
    async def handler() -> dict[str, Any]:
        return {"a": 1}

    with create_test_client(
        route_handlers=[handler],
        template_config=template_config,
        plugins=[plugin],
        middleware=[ServerSideSessionConfig().middleware],
        stores={"sessions": MemoryStore()},
    ) as client, patch("litestar_inertia.response.logger") as logger:
        response = client.get("/")

        assert response.status_code == 200
        assert read_page(response.text)["props"]["a"] == 1
        logger.error.assert_called_once()
        assert logger.error.call_args.args[0] == "SSR failed, falling back to CSR: %s"


@pytest.mark.usefixtures("failing_ssr")
async def test_ssr_failure_raises_when_configured(
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    plugin = InertiaPlugin(InertiaConfig(root_template="index.html.j2", assets_version="test-version", ssr=True))

    @get("/", component="Home")
    async def handler() -> dict[str, Any]:
        return {}

    with create_test_client(
        route_handlers=[handler],
        template_config=template_config,
        plugins=[plugin],
        middleware=[ServerSideSessionConfig().middleware],
        stores={"sessions": MemoryStore()},
    ) as client:
        response = client.get("/")

        assert response.status_code == 500
