import json
import re
from collections.abc import Generator
from html import unescape
from pathlib import Path
from typing import Any

import pytest
from litestar.contrib.jinja import JinjaTemplateEngine
from litestar.template.config import TemplateConfig

from litestar_inertia import InertiaConfig, InertiaHeaders, InertiaPlugin

here = Path(__file__).parent

DATA_PAGE_RE = re.compile(r'data-page="([^"]*)"')


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def inertia_config() -> Generator[InertiaConfig, None, None]:
    yield InertiaConfig(root_template="index.html.j2", assets_version="test-version")


@pytest.fixture
def inertia_plugin(inertia_config: InertiaConfig) -> Generator[InertiaPlugin, None, None]:
    yield InertiaPlugin(config=inertia_config)


@pytest.fixture
def template_config() -> TemplateConfig[JinjaTemplateEngine]:
    return TemplateConfig(engine=JinjaTemplateEngine(directory=here / "templates"))


@pytest.fixture
def inertia_headers() -> dict[str, str]:
    """Headers of an Inertia visit made with up-to-date assets."""
    return {InertiaHeaders.ENABLED.value: "true", InertiaHeaders.VERSION.value: "test-version"}


@pytest.fixture
def read_page() -> Any:
    """Return a function extracting the page object embedded in a full page load."""

    def _read_page(html: str) -> dict[str, Any]:
        match = DATA_PAGE_RE.search(html)
        assert match is not None, html
        return json.loads(unescape(match.group(1)))  # type: ignore[no-any-return]

    return _read_page
