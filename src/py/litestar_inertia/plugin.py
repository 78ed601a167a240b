import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import httpx
from anyio.from_thread import start_blocking_portal
from litestar.plugins import InitPluginProtocol

from litestar_inertia.version import AssetVersionCache, compute_assets_version

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from anyio.from_thread import BlockingPortal
    from litestar import Litestar
    from litestar.config.app import AppConfig

    from litestar_inertia.config import InertiaConfig

__all__ = ("InertiaPlugin",)

logger = logging.getLogger("litestar_inertia")

_ASSETS_VERSION_KEY = "assets_version"


class InertiaPlugin(InitPluginProtocol):
    """Inertia plugin.

    This plugin configures Litestar for Inertia.js support:

    - requires a session middleware (flash messages, errors and history flags live in the session)
    - registers :class:`~litestar_inertia.request.InertiaRequest` and
      :class:`~litestar_inertia.response.InertiaResponse` as the default request and response classes
    - adds :class:`~litestar_inertia.middleware.InertiaMiddleware` and the Inertia exception handler

    During the application lifespan the plugin holds a :class:`~anyio.from_thread.BlockingPortal`,
    used to await async prop producers while the page is built synchronously, and a
    pooled ``httpx.AsyncClient`` for SSR requests.

    The current asset version is computed on first use and cached until
    :meth:`invalidate_asset_version` is called.

    Example::

        from litestar_inertia import InertiaConfig, InertiaPlugin

        app = Litestar(
            plugins=[InertiaPlugin(InertiaConfig())],
            middleware=[ServerSideSessionConfig().middleware],
        )
    """

    __slots__ = ("_portal", "_ssr_client", "_version_cache", "config")

    def __init__(self, config: "InertiaConfig") -> "None":
        """Initialize the plugin with Inertia configuration."""
        self.config = config
        self._ssr_client: "httpx.AsyncClient | None" = None
        self._portal: "BlockingPortal | None" = None  # pyright: ignore[reportInvalidTypeForm]
        self._version_cache = AssetVersionCache()

    @asynccontextmanager
    async def lifespan(self, app: "Litestar") -> "AsyncGenerator[None, None]":
        """Open the blocking portal and the SSR client for the application lifetime.

        Yields:
            An asynchronous context manager.
        """
        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20, keepalive_expiry=30.0)
        self._ssr_client = httpx.AsyncClient(limits=limits, timeout=httpx.Timeout(10.0))

        try:
            with start_blocking_portal() as portal:
                self._portal = portal
                yield
        finally:
            self._portal = None
            await self._ssr_client.aclose()
            self._ssr_client = None

    @property
    def portal(self) -> "BlockingPortal":
        """Return the blocking portal used to await async prop producers.

        Raises:
            RuntimeError: If accessed before app lifespan is active.

        Returns:
            The BlockingPortal instance.
        """
        if self._portal is None:
            msg = "BlockingPortal not available. Ensure app lifespan is active."
            raise RuntimeError(msg)
        return self._portal

    @property
    def ssr_client(self) -> "httpx.AsyncClient | None":
        """Return the shared SSR client, or None outside the app lifespan."""
        return self._ssr_client

    @property
    def asset_version(self) -> str:
        """Return the current asset version, computing it on first access.

        Returns:
            The asset version.
        """
        return self._version_cache.get(_ASSETS_VERSION_KEY, lambda: compute_assets_version(self.config))

    def invalidate_asset_version(self) -> None:
        """Recompute the asset version on next access, e.g. after a frontend rebuild."""
        logger.debug("Invalidating cached Inertia asset version")
        self._version_cache.invalidate(_ASSETS_VERSION_KEY)

    def on_app_init(self, app_config: "AppConfig") -> "AppConfig":
        """Configure the application for Inertia.

        Raises:
            ImproperlyConfiguredException: If no session middleware is configured.

        Returns:
            The :class:`AppConfig <litestar.config.app.AppConfig>` instance.
        """

        from litestar.exceptions import HTTPException, ImproperlyConfiguredException
        from litestar.middleware import DefineMiddleware
        from litestar.middleware.session import SessionMiddleware
        from litestar.security.session_auth.middleware import MiddlewareWrapper
        from litestar.utils.predicates import is_class_and_subclass

        from litestar_inertia.exception_handler import exception_to_http_response
        from litestar_inertia.middleware import InertiaMiddleware
        from litestar_inertia.request import InertiaRequest
        from litestar_inertia.response import InertiaBack, InertiaExternalRedirect, InertiaRedirect, InertiaResponse

        for mw in app_config.middleware:
            if isinstance(mw, DefineMiddleware) and is_class_and_subclass(
                mw.middleware, (MiddlewareWrapper, SessionMiddleware)
            ):
                break
        else:
            msg = "The Inertia plugin require a session middleware."
            raise ImproperlyConfiguredException(msg)

        exception_handlers: "dict[type[Exception] | int, Any]" = {
            Exception: exception_to_http_response,
            HTTPException: exception_to_http_response,
        }
        app_config.exception_handlers.update(exception_handlers)  # pyright: ignore[reportUnknownMemberType]
        app_config.request_class = InertiaRequest
        app_config.response_class = InertiaResponse
        app_config.middleware.append(InertiaMiddleware)
        app_config.signature_types.extend(
            [InertiaRequest, InertiaResponse, InertiaBack, InertiaRedirect, InertiaExternalRedirect]
        )
        app_config.lifespan.append(self.lifespan)  # pyright: ignore[reportUnknownMemberType]
        return app_config
