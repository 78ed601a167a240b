"""Litestar-Inertia: server-side adapter for the Inertia.js protocol.

Basic usage:
    from litestar import Litestar, get
    from litestar.middleware.session.server_side import ServerSideSessionConfig
    from litestar_inertia import InertiaConfig, InertiaPlugin, defer, optional

    @get("/users", component="Users/Index")
    async def users() -> dict[str, Any]:
        return {"users": list_users, "stats": defer(load_stats), "filters": optional(load_filters)}

    app = Litestar(
        route_handlers=[users],
        plugins=[InertiaPlugin(InertiaConfig(root_template="index.html"))],
        middleware=[ServerSideSessionConfig().middleware],
    )
"""

from litestar_inertia import helpers
from litestar_inertia.__metadata__ import __version__
from litestar_inertia.config import InertiaConfig, InertiaSSRConfig
from litestar_inertia.exception_handler import create_inertia_exception_response, exception_to_http_response
from litestar_inertia.exceptions import InertiaPropsError, LitestarInertiaError, SSRRenderError
from litestar_inertia.helpers import (
    camelize_props,
    clear_history,
    encrypt_history,
    error,
    flash,
    force_redirect,
    get_shared_props,
    put_errors,
    share,
)
from litestar_inertia.middleware import InertiaMiddleware
from litestar_inertia.plugin import InertiaPlugin
from litestar_inertia.props import always, deep_merge, defer, merge, optional, preserve_case
from litestar_inertia.request import InertiaDetails, InertiaHeaders, InertiaRequest
from litestar_inertia.response import InertiaBack, InertiaExternalRedirect, InertiaRedirect, InertiaResponse
from litestar_inertia.types import PageObject

__all__ = (
    "InertiaBack",
    "InertiaConfig",
    "InertiaDetails",
    "InertiaExternalRedirect",
    "InertiaHeaders",
    "InertiaMiddleware",
    "InertiaPlugin",
    "InertiaPropsError",
    "InertiaRedirect",
    "InertiaRequest",
    "InertiaResponse",
    "InertiaSSRConfig",
    "LitestarInertiaError",
    "PageObject",
    "SSRRenderError",
    "__version__",
    "always",
    "camelize_props",
    "clear_history",
    "create_inertia_exception_response",
    "deep_merge",
    "defer",
    "encrypt_history",
    "error",
    "exception_to_http_response",
    "flash",
    "force_redirect",
    "get_shared_props",
    "helpers",
    "merge",
    "optional",
    "preserve_case",
    "put_errors",
    "share",
)
