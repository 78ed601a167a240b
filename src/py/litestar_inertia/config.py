"""Inertia.js configuration classes."""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

__all__ = ("DEFAULT_ASSETS_VERSION", "DEFAULT_MANIFEST_PATHS", "InertiaConfig", "InertiaSSRConfig")

DEFAULT_ASSETS_VERSION = "1"
"""Version reported when no static value, callable or build manifest is available."""

DEFAULT_MANIFEST_PATHS: "tuple[Path, ...]" = (
    Path("public/.vite/manifest.json"),
    Path("public/manifest.json"),
    Path("public/manifest.digest.json"),
)


def empty_dict_factory() -> dict[str, Any]:
    """Return an empty ``dict[str, Any]``.

    Returns:
        An empty dictionary.
    """
    return {}


def empty_set_factory() -> set[str]:
    """Return an empty ``set[str]``.

    Returns:
        An empty set.
    """
    return set()


@dataclass
class InertiaSSRConfig:
    """Server-side rendering settings for Inertia.js.

    Inertia SSR runs a separate Node server that renders the initial HTML for an
    Inertia page object. Litestar sends the page payload to the SSR server (by
    default at ``http://127.0.0.1:13714/render``) and passes the returned head
    tags and body markup to the root template.
    """

    enabled: bool = True
    url: str = "http://127.0.0.1:13714/render"
    timeout: float = 2.0
    raise_on_failure: bool = True
    """Raise :class:`~litestar_inertia.exceptions.SSRRenderError` when rendering fails.

    When False, the failure is logged and the page falls back to client-side rendering.
    """


@dataclass
class InertiaConfig:
    """Configuration for InertiaJS support.

    Attributes:
        root_template: Name of the root template to use.
        component_opt_keys: Identifiers for getting inertia component from route opts.
        assets_version: Static asset version or a callable producing it.
        manifest_paths: Build manifests probed when ``assets_version`` is not set.
        camelize_props: Convert snake_case prop keys to camelCase.
        encrypt_history: Enable browser history encryption by default.
        redirect_unauthorized_to: Path for unauthorized request redirects.
        redirect_404: Path for 404 request redirects.
        extra_static_page_props: Static props added to every page response.
        extra_session_page_props: Session keys to include in page props.
        ssr: Server-side rendering settings.
    """

    root_template: str = "index.html"
    """Name of the root template to use.

    This must be a path that is found by the application's template engine.
    """
    component_opt_keys: "tuple[str, ...]" = ("component", "page")
    """Identifiers to use on routes to get the inertia component to render.

    The first key found in the route handler opts will be used.

    Example:
        # All equivalent:
        @get("/", component="Home")
        @get("/", page="Home")
    """
    assets_version: "str | Callable[[], str] | None" = None
    """The current asset version.

    A static string wins over a callable. When neither is given, the version is the
    sha256 digest of the first existing file in ``manifest_paths``, or ``"1"``.
    """
    manifest_paths: "tuple[Path | str, ...]" = DEFAULT_MANIFEST_PATHS
    """Build manifest files probed (in order) for automatic version detection."""
    camelize_props: bool = False
    """Convert prop keys from snake_case to camelCase at every nesting level.

    Keys wrapped with :func:`~litestar_inertia.props.preserve_case` are never converted.
    """
    encrypt_history: bool = False
    """Enable browser history encryption globally.

    Individual requests and responses can override this setting.
    See: https://inertiajs.com/history-encryption
    """
    redirect_unauthorized_to: "str | None" = None
    """Optionally supply a path where unauthorized requests should redirect."""
    redirect_404: "str | None" = None
    """Optionally supply a path where 404 requests should redirect."""
    extra_static_page_props: "dict[str, Any]" = field(default_factory=empty_dict_factory)
    """A dictionary of values to automatically add in to page props on every response."""
    extra_session_page_props: "set[str]" = field(default_factory=empty_set_factory)
    """Session keys whose values are added to page props on every response."""
    ssr: "InertiaSSRConfig | bool | None" = None
    """Enable server-side rendering (SSR) for full page loads.

    Supports:
        - True: enable with defaults -> ``InertiaSSRConfig()``
        - False/None: disabled -> ``None``
        - InertiaSSRConfig: use as-is
    """

    def __post_init__(self) -> None:
        """Normalize optional sub-configs."""
        if self.ssr is True:
            self.ssr = InertiaSSRConfig()
        elif self.ssr is False:
            self.ssr = None

    @property
    def ssr_config(self) -> "InertiaSSRConfig | None":
        """Return the SSR config when enabled, otherwise None.

        Returns:
            The resolved SSR config when enabled, otherwise None.
        """
        if isinstance(self.ssr, InertiaSSRConfig) and self.ssr.enabled:
            return self.ssr
        return None
