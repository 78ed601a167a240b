import contextlib
import itertools
import logging
from collections.abc import Iterable, Mapping
from mimetypes import guess_type
from pathlib import PurePath
from typing import TYPE_CHECKING, Any, TypeVar, cast
from urllib.parse import quote, urlparse

from litestar import Litestar, MediaType, Request, Response
from litestar.datastructures.cookie import Cookie
from litestar.exceptions import ImproperlyConfiguredException
from litestar.response import Redirect
from litestar.response.base import ASGIResponse
from litestar.serialization import get_serializer
from litestar.status_codes import HTTP_200_OK, HTTP_303_SEE_OTHER, HTTP_307_TEMPORARY_REDIRECT, HTTP_409_CONFLICT
from litestar.utils.empty import value_or_default
from litestar.utils.helpers import get_enum_string_value
from litestar.utils.scope.state import ScopeState
from markupsafe import Markup

from litestar_inertia._utils import InertiaHeaders, get_headers
from litestar_inertia.config import InertiaSSRConfig
from litestar_inertia.exceptions import InertiaPropsError, SSRRenderError
from litestar_inertia.helpers import bag_errors, get_flash, get_option, get_shared_props, pop_session_errors
from litestar_inertia.plugin import InertiaPlugin
from litestar_inertia.props import PropKey, always, overlay_props
from litestar_inertia.request import InertiaDetails, InertiaRequest
from litestar_inertia.resolver import resolve_page_props
from litestar_inertia.ssr import SSRResult, render_ssr_sync
from litestar_inertia.types import InertiaHeaderType, PageObject

if TYPE_CHECKING:
    from litestar.background_tasks import BackgroundTask, BackgroundTasks
    from litestar.connection.base import AuthT, StateT, UserT
    from litestar.types import ResponseCookies, ResponseHeaders, TypeEncodersMap

__all__ = (
    "InertiaBack",
    "InertiaExternalRedirect",
    "InertiaRedirect",
    "InertiaResponse",
    "get_relative_url",
    "get_safe_redirect_url",
)

T = TypeVar("T")

logger = logging.getLogger("litestar_inertia")

XSRF_COOKIE_NAME = "XSRF-TOKEN"
_LOCATION_SAFE_CHARS = "/#%[]=:;$&()+,!?*@'~"


def get_safe_redirect_url(request: "Request[Any, Any, Any]", url: "str | None") -> str:
    """Return ``url`` if it stays on this site, otherwise the application base URL.

    Relative URLs are accepted as-is; absolute URLs must use http(s) and the request's host.

    Returns:
        A same-origin redirect URL.
    """
    base_url = str(request.base_url)
    if not url:
        return base_url

    parsed = urlparse(url)
    if not parsed.scheme and not parsed.netloc:
        return url
    if parsed.scheme not in {"http", "https"} or parsed.netloc != urlparse(base_url).netloc:
        return base_url
    return url


def get_relative_url(request: "Request[Any, Any, Any]") -> str:
    """Return the request path with its query string, as used for the page ``url``.

    Returns:
        The path with query string if present, e.g., ``/reports?page=1&status=active``.
    """
    path = request.url.path
    query = request.url.query
    return f"{path}?{query}" if query else path


def _first_set(*values: "bool | None") -> bool:
    for value in values:
        if value is not None:
            return value
    return False


class InertiaResponse(Response[T]):
    """Render an Inertia page.

    ``content`` holds the page props for this render; they are overlaid on the props
    shared during the request. Routes without a component (neither ``component`` nor a
    ``component``/``page`` route opt) are rendered as regular responses.

    Example::

        @get("/users", component="Users/Index")
        async def users() -> dict[str, Any]:
            return {"users": lambda: list_users(), "filters": optional(get_filters)}

        @get("/dashboard")
        async def dashboard() -> InertiaResponse[dict[str, Any]]:
            return InertiaResponse({"stats": defer(get_stats)}, component="Dashboard", clear_history=True)
    """

    def __init__(
        self,
        content: T,
        *,
        component: "str | None" = None,
        template_name: "str | None" = None,
        template_str: "str | None" = None,
        background: "BackgroundTask | BackgroundTasks | None" = None,
        context: "dict[str, Any] | None" = None,
        cookies: "ResponseCookies | None" = None,
        encoding: "str" = "utf-8",
        headers: "ResponseHeaders | None" = None,
        media_type: "MediaType | str | None" = None,
        status_code: "int" = HTTP_200_OK,
        type_encoders: "TypeEncodersMap | None" = None,
        camelize_props: "bool | None" = None,
        encrypt_history: "bool | None" = None,
        clear_history: bool = False,
        ssr: "InertiaSSRConfig | bool | None" = None,
    ) -> None:
        """Initialize the response.

        Args:
            content: The page props for this render.
            component: The component to render. Defaults to the component named in the route opts.
            template_name: Root template override for full page loads.
            template_str: Inline root template for full page loads.
            background: Background task(s) to run after the response is sent.
            context: Extra template context for full page loads.
            cookies: Response cookies.
            encoding: Content encoding.
            headers: Response headers.
            media_type: Response media type.
            status_code: Response status code.
            type_encoders: Extra type encoders for serialization.
            camelize_props: Camelize prop keys. ``None`` defers to the request option, then to the config.
            encrypt_history: Encrypt history state. ``None`` defers to the request option, then to the config.
            clear_history: Clear the client's encrypted history.
            ssr: SSR override. ``None`` uses the config, ``False`` disables SSR, ``True`` enables it.

        Raises:
            ValueError: If both template_name and template_str are provided.
        """
        if template_name and template_str:
            msg = "Either template_name or template_str must be provided, not both."
            raise ValueError(msg)
        self.content = content
        self.component = component
        self.background = background
        self.cookies: list[Cookie] = (
            [Cookie(key=key, value=value) for key, value in cookies.items()]
            if isinstance(cookies, Mapping)
            else list(cookies or [])
        )
        self.encoding = encoding
        self.headers: dict[str, Any] = (
            dict(headers) if isinstance(headers, Mapping) else {h.name: h.value for h in headers or {}}
        )
        self.media_type = media_type
        self.status_code = status_code
        self.response_type_encoders = {**(self.type_encoders or {}), **(type_encoders or {})}
        self.context = context or {}
        self.template_name = template_name
        self.template_str = template_str
        self.camelize_props = camelize_props
        self.encrypt_history = encrypt_history
        self.clear_history = clear_history
        self.ssr = ssr

    def _page_props(
        self, request: "Request[UserT, AuthT, StateT]", inertia_plugin: "InertiaPlugin"
    ) -> "dict[PropKey, Any]":
        """Merge every prop source for this render, later sources winning.

        Order: session errors, configured static props, configured session props,
        props shared during the request, then the render content.

        Raises:
            InertiaPropsError: If the render content is not a mapping.

        Returns:
            The merged prop set.
        """
        content: Any = self.content if self.content is not None else {}
        if not isinstance(content, Mapping):
            raise InertiaPropsError("a mapping of props", content)

        config = inertia_plugin.config
        props: "dict[PropKey, Any]" = {"errors": always(bag_errors(request, pop_session_errors(request)))}
        props.update(config.extra_static_page_props)
        if config.extra_session_page_props:
            with contextlib.suppress(AttributeError, ImproperlyConfiguredException):
                session = cast("dict[str, Any]", request.session)
                props.update({key: session[key] for key in config.extra_session_page_props if key in session})
        props = overlay_props(props, get_shared_props(request))
        return overlay_props(props, cast("Mapping[PropKey, Any]", content))

    def build_page(
        self,
        request: "Request[UserT, AuthT, StateT]",
        component: str,
        inertia_plugin: "InertiaPlugin",
        details: "InertiaDetails",
    ) -> PageObject:
        """Resolve the props and assemble the page object.

        Returns:
            The page object.
        """
        camelize = _first_set(
            self.camelize_props, get_option(request, "camelize_props"), inertia_plugin.config.camelize_props
        )
        encrypt_history = _first_set(
            self.encrypt_history, get_option(request, "encrypt_history"), inertia_plugin.config.encrypt_history
        )
        clear_history = self.clear_history
        with contextlib.suppress(AttributeError, ImproperlyConfiguredException):
            clear_history = bool(request.session.pop("_inertia_clear_history", False)) or clear_history

        resolved = resolve_page_props(
            self._page_props(request, inertia_plugin),
            partial=details.partial_reload(component),
            reset=details.reset_keys,
            camelize=camelize,
            flash=get_flash(request),
            portal=inertia_plugin.portal,
        )
        return PageObject(
            component=component,
            props=resolved.props,
            url=get_relative_url(request),
            version=inertia_plugin.asset_version,
            encrypt_history=encrypt_history,
            clear_history=clear_history,
            merge_props=resolved.merge_props or None,
            deep_merge_props=resolved.deep_merge_props or None,
            deferred_props=None if resolved.is_partial else resolved.deferred_props or None,
        )

    def _ssr_config(self, inertia_plugin: "InertiaPlugin") -> "InertiaSSRConfig | None":
        if self.ssr is None:
            return inertia_plugin.config.ssr_config
        if self.ssr is True:
            return inertia_plugin.config.ssr_config or InertiaSSRConfig()
        if isinstance(self.ssr, InertiaSSRConfig) and self.ssr.enabled:
            return self.ssr
        return None

    def _render_ssr(self, page: "dict[str, Any]", inertia_plugin: "InertiaPlugin") -> "SSRResult | None":
        """Render the page through the SSR server, if enabled.

        Raises:
            SSRRenderError: If rendering fails and the SSR config asks to raise.

        Returns:
            The SSR result, or None to render client-side.
        """
        ssr_config = self._ssr_config(inertia_plugin)
        if ssr_config is None:
            return None
        try:
            return render_ssr_sync(
                page,
                ssr_config.url,
                timeout_seconds=ssr_config.timeout,
                portal=inertia_plugin.portal,
                client=inertia_plugin.ssr_client,
            )
        except SSRRenderError as exc:
            if ssr_config.raise_on_failure:
                raise
            logger.error("SSR failed, falling back to CSR: %s", exc)
            return None

    def create_template_context(
        self,
        request: "Request[UserT, AuthT, StateT]",
        page: "PageObject",
        ssr_result: "SSRResult | None" = None,
        type_encoders: "TypeEncodersMap | None" = None,
    ) -> "dict[str, Any]":
        """Create a context object for the root template.

        ``inertia`` holds the serialized page object. When the page was server-side
        rendered, ``inertia_ssr`` is True and ``inertia_head``/``inertia_body`` hold
        the markup returned by the SSR server.

        Returns:
            A dictionary holding the template context
        """
        csrf_token = value_or_default(ScopeState.from_scope(request.scope).csrf_token, "")
        inertia_props = self.render(page.to_dict(), MediaType.JSON, get_serializer(type_encoders)).decode()
        return {
            **self.context,
            "inertia": inertia_props,
            "inertia_ssr": ssr_result is not None,
            "inertia_head": Markup("\n".join(ssr_result.head)) if ssr_result else Markup(""),
            "inertia_body": Markup(ssr_result.body) if ssr_result else Markup(""),
            "request": request,
            "csrf_input": f'<input type="hidden" name="_csrf_token" value="{csrf_token}" />',
        }

    def _render_template(
        self,
        request: "Request[UserT, AuthT, StateT]",
        page: "PageObject",
        type_encoders: "TypeEncodersMap | None",
        inertia_plugin: "InertiaPlugin",
    ) -> bytes:
        """Render the root template to bytes.

        Raises:
            ImproperlyConfiguredException: If the template engine is not configured.

        Returns:
            The rendered template as bytes.
        """
        template_engine = request.app.template_engine  # pyright: ignore[reportUnknownVariableType,reportUnknownMemberType]
        if not template_engine:
            msg = "Template engine is not configured"
            raise ImproperlyConfiguredException(msg)

        ssr_result = self._render_ssr(page.to_dict(), inertia_plugin)
        context = self.create_template_context(request, page, ssr_result, type_encoders)  # pyright: ignore[reportUnknownMemberType]
        if self.template_str is not None:
            return template_engine.render_string(self.template_str, context).encode(self.encoding)  # pyright: ignore[reportUnknownMemberType,reportUnknownVariableType,reportReturnType]

        template = template_engine.get_template(self.template_name or inertia_plugin.config.root_template)  # pyright: ignore[reportUnknownMemberType,reportUnknownVariableType]
        return template.render(**context).encode(self.encoding)  # pyright: ignore[reportUnknownVariableType,reportUnknownMemberType,reportReturnType]

    def _determine_media_type(self, media_type: "MediaType | str | None") -> "MediaType | str":
        if media_type:
            return media_type
        if self.template_name:
            for suffix in PurePath(self.template_name).suffixes:
                if type_ := guess_type(f"name{suffix}")[0]:
                    return type_
            return MediaType.TEXT
        return MediaType.HTML

    def to_asgi_response(
        self,
        app: "Litestar | None",
        request: "Request[UserT, AuthT, StateT]",
        *,
        background: "BackgroundTask | BackgroundTasks | None" = None,
        cookies: "Iterable[Cookie] | None" = None,
        encoded_headers: "Iterable[tuple[bytes, bytes]] | None" = None,
        headers: "dict[str, str] | None" = None,
        is_head_response: "bool" = False,
        media_type: "MediaType | str | None" = None,
        status_code: "int | None" = None,
        type_encoders: "TypeEncodersMap | None" = None,
    ) -> "ASGIResponse":
        details = request.inertia if isinstance(request, InertiaRequest) else InertiaDetails(request)
        component = self.component or details.route_component
        headers = {**headers, **self.headers} if headers is not None else self.headers
        cookies = self.cookies if cookies is None else itertools.chain(self.cookies, cookies)
        type_encoders = (
            {**type_encoders, **(self.response_type_encoders or {})} if type_encoders else self.response_type_encoders
        )

        if component is None:
            resolved_media_type = get_enum_string_value(self.media_type or media_type or MediaType.JSON)
            return ASGIResponse(
                background=self.background or background,
                body=self.render(self.content, resolved_media_type, get_serializer(type_encoders)),
                cookies=cookies,
                encoded_headers=encoded_headers,
                encoding=self.encoding,
                headers=headers,
                is_head_response=is_head_response,
                media_type=resolved_media_type,
                status_code=self.status_code or status_code,
            )

        inertia_plugin = request.app.plugins.get(InertiaPlugin)
        page = self.build_page(request, component, inertia_plugin, details)
        headers["Vary"] = InertiaHeaders.ENABLED.value

        csrf_token = value_or_default(ScopeState.from_scope(request.scope).csrf_token, "")
        if csrf_token:
            cookies = itertools.chain(cookies, [Cookie(key=XSRF_COOKIE_NAME, value=csrf_token, httponly=False)])

        if details:
            headers.update(get_headers(InertiaHeaderType(enabled=True)))
            resolved_media_type = get_enum_string_value(self.media_type or media_type or MediaType.JSON)
            body = self.render(page.to_dict(), resolved_media_type, get_serializer(type_encoders))
        else:
            resolved_media_type = self._determine_media_type(media_type or MediaType.HTML)
            body = self._render_template(request, page, type_encoders, inertia_plugin)

        return ASGIResponse(  # pyright: ignore[reportUnknownMemberType]
            background=self.background or background,
            body=body,
            cookies=cookies,
            encoded_headers=encoded_headers,
            encoding=self.encoding,
            headers=headers,
            is_head_response=is_head_response,
            media_type=resolved_media_type,
            status_code=self.status_code or status_code,
        )


class InertiaExternalRedirect(Response[Any]):
    """Tell the Inertia client to leave the SPA and load ``redirect_to`` (409 + ``X-Inertia-Location``).

    The target is not validated; this is meant for other sites and non-Inertia pages.
    """

    def __init__(self, request: "Request[Any, Any, Any]", redirect_to: "str", **kwargs: "Any") -> None:
        super().__init__(
            content=b"",
            status_code=HTTP_409_CONFLICT,
            headers={InertiaHeaders.LOCATION.value: quote(redirect_to, safe=_LOCATION_SAFE_CHARS)},
            **kwargs,
        )


class InertiaRedirect(Redirect):
    """Redirect to a same-origin URL, falling back to the application base URL.

    Uses 307 for GET requests and 303 otherwise, so the client follows with a GET.
    """

    def __init__(self, request: "Request[Any, Any, Any]", redirect_to: "str", **kwargs: "Any") -> None:
        super().__init__(  # pyright: ignore[reportUnknownMemberType]
            path=get_safe_redirect_url(request, redirect_to),
            status_code=HTTP_307_TEMPORARY_REDIRECT if request.method == "GET" else HTTP_303_SEE_OTHER,
            **kwargs,
        )


class InertiaBack(Redirect):
    """Redirect to the ``Referer`` when it is same-origin, otherwise to the application base URL."""

    def __init__(self, request: "Request[Any, Any, Any]", **kwargs: "Any") -> None:
        super().__init__(  # pyright: ignore[reportUnknownMemberType]
            path=get_safe_redirect_url(request, request.headers.get("Referer")),
            status_code=HTTP_307_TEMPORARY_REDIRECT if request.method == "GET" else HTTP_303_SEE_OTHER,
            **kwargs,
        )
