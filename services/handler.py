"""Request handling for embedded apps.

Every browser request passes through `EmbedHandler.safe_handle_request`.
The handler either returns None from `handle_request` (passthrough: the
original request is forwarded unchanged) or builds the response itself after
fetching a rewritten URL. The ordering of checks matters:

1. service worker scripts are neutralised while an app is active
2. a tracked client navigating to a platform route stops being tracked
3. a tracked client's requests are rewritten even on reserved paths
4. everything else goes through `get_request_action`, with a Referer
   fallback for worker requests that carry an unknown client id
"""

import logging
from urllib.parse import urlsplit

import requests
from werkzeug.datastructures import Headers
from werkzeug.http import parse_options_header

from .clients import get_app_from_referer
from .context import GatewayContext
from .inject import inject_into_html
from .paths import (
    is_bloud_route,
    is_service_worker_script,
    rewrite_root_url,
    same_origin,
)
from .redirects import (
    app_return_path,
    build_login_url,
    is_auth_redirect,
    process_redirect_response,
    render_top_level_redirect,
)
from .resolver import (
    get_client_action,
    get_request_action,
    should_redirect_oauth_callback,
)
from .routing import (
    AUTH_HOST_PREFIX,
    AUTH_PATH_PREFIXES,
    AUTHENTIK_PROXY_PATH,
    CONTENT_TYPE_HTML,
    CONTENT_TYPE_JS,
    SW_DISABLED_SCRIPT,
    PassthroughReason,
    RequestMode,
    RequestType,
)
from .transport import UpstreamResponse

logger = logging.getLogger(__name__)


class FetchEvent:
    """One intercepted browser request."""

    def __init__(
        self,
        url: str,
        method: str = "GET",
        headers=None,
        body: bytes = b"",
        mode: str = RequestMode.NAVIGATE,
        client_id: str | None = None,
        resulting_client_id: str | None = None,
    ):
        self.url = url
        self.method = method.upper()
        self.headers = Headers(headers or {})
        self.body = body
        self.mode = mode
        self.client_id = client_id or None
        self.resulting_client_id = resulting_client_id or None

    @property
    def pathname(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def referer(self) -> str | None:
        return self.headers.get("Referer")

    def __repr__(self) -> str:
        return f"<FetchEvent {self.method} {self.url} mode={self.mode}>"


class GatewayResponse:
    """A response ready to hand back to the browser.

    `url` is the URL the browser should believe it fetched. For root-level
    rewrites it stays the original request URL, since module scripts resolve
    their relative imports against it.
    """

    def __init__(
        self,
        status: int = 200,
        headers: Headers | None = None,
        body: bytes = b"",
        url: str = "",
    ):
        self.status = status
        self.headers = headers if headers is not None else Headers()
        self.body = body
        self.url = url

    @classmethod
    def from_upstream(
        cls, response: UpstreamResponse, url: str | None = None
    ) -> "GatewayResponse":
        return cls(
            status=response.status,
            headers=Headers(response.headers),
            body=response.body,
            url=url if url is not None else response.url,
        )

    @classmethod
    def redirect(
        cls, location: str, status: int = 302, headers: Headers | None = None
    ) -> "GatewayResponse":
        headers = Headers(headers) if headers is not None else Headers()
        headers["Location"] = location
        return cls(status=status, headers=headers, url=location)

    @classmethod
    def text(cls, body: str, content_type: str, status: int = 200) -> "GatewayResponse":
        headers = Headers()
        headers["Content-Type"] = content_type
        return cls(status=status, headers=headers, body=body.encode("utf-8"))

    @property
    def location(self) -> str | None:
        return self.headers.get("Location")

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    def __repr__(self) -> str:
        return f"<GatewayResponse {self.status} {self.url}>"


def is_html_response(response: UpstreamResponse | GatewayResponse) -> bool:
    return "text/html" in (response.headers.get("Content-Type") or "").lower()


class EmbedHandler:
    """Routes requests between the platform and its embedded apps."""

    def __init__(
        self,
        context: GatewayContext,
        transport,
        auth_proxy_path: str = AUTHENTIK_PROXY_PATH,
        auth_host_prefix: str = AUTH_HOST_PREFIX,
    ):
        self.context = context
        self.transport = transport
        self.auth_proxy_path = auth_proxy_path.rstrip("/")
        self.auth_host_prefix = auth_host_prefix
        self.auth_path_prefixes = tuple(
            dict.fromkeys((f"{self.auth_proxy_path}/", *AUTH_PATH_PREFIXES))
        )

    def safe_handle_request(self, event: FetchEvent, origin: str) -> GatewayResponse:
        """Handle a request, degrading to an unmodified fetch when resolving it fails.

        Upstream failures are never retried as a passthrough: a rewritten
        request replayed unchanged would reach a platform route with the app's
        method and body.

        Raises:
            requests.RequestException: when the upstream fetch fails
        """
        try:
            response = self.handle_request(event, origin)
        except requests.RequestException:
            raise
        except Exception:
            logger.exception(f"Error handling {event.method} {event.url}, passing through")
            response = None

        if response is None:
            response = self.passthrough(event)
        return response

    def passthrough(self, event: FetchEvent) -> GatewayResponse:
        """Forward the original request unchanged."""
        upstream = self.transport.fetch(
            event.url, event.method, headers=event.headers, body=event.body
        )
        return GatewayResponse.from_upstream(upstream)

    def handle_request(self, event: FetchEvent, origin: str) -> GatewayResponse | None:
        """Handle a request, or return None to let it pass through untouched."""
        context = self.context
        pathname = event.pathname
        is_same_origin = same_origin(event.url, origin)

        # Embedded apps must not install a worker of their own on the shared origin
        if is_same_origin and is_service_worker_script(pathname) and context.active_app:
            return GatewayResponse.text(SW_DISABLED_SCRIPT, CONTENT_TYPE_JS)

        # A tracked client navigating to a platform route has left its app
        if (
            is_same_origin
            and event.mode == RequestMode.NAVIGATE
            and is_bloud_route(pathname)
            and context.clients.unregister(event.client_id)
        ):
            logger.debug(f"Client {event.client_id} left its app for {pathname}")

        client_result = get_client_action(
            event.url,
            origin,
            context,
            context.clients.lookup(event.client_id),
            self.auth_proxy_path,
        )
        if client_result is not None:
            logger.debug(f"Rewriting via client id: {client_result.app_name} {pathname}")
            return self.handle_root_request(event, client_result.fetch_url)

        result = get_request_action(event.url, origin, context)

        if result.is_passthrough:
            if result.reason == PassthroughReason.NO_APP_CONTEXT:
                referer_app = get_app_from_referer(event.referer, origin)
                if referer_app and context.app_needs_rewrite(referer_app):
                    fetch_url = rewrite_root_url(event.url, referer_app)
                    logger.debug(f"Rewriting via referer: {referer_app} {pathname}")
                    return self.handle_root_request(event, fetch_url)
            return None

        if result.type == RequestType.ROOT:
            if should_redirect_oauth_callback(event.mode, pathname):
                return GatewayResponse.redirect(result.fetch_url, 302)
            return self.handle_root_request(event, result.fetch_url)

        # Assets under /embed/ are already in the right namespace
        if event.mode != RequestMode.NAVIGATE:
            return None

        if event.resulting_client_id:
            context.clients.register(event.resulting_client_id, result.app_name)

        return self.handle_embed_navigation(
            event, result.fetch_url, result.app_name, origin
        )

    def handle_root_request(self, event: FetchEvent, fetch_url: str) -> GatewayResponse:
        """Fetch a root-level request from the app's embed path.

        The response keeps the original request URL.
        """
        upstream = self.transport.fetch(
            fetch_url, event.method, headers=event.headers, body=event.body
        )
        return GatewayResponse.from_upstream(upstream, url=event.url)

    def handle_embed_navigation(
        self, event: FetchEvent, fetch_url: str, app_name: str, origin: str
    ) -> GatewayResponse:
        """Fetch an embed navigation, rewriting or escalating its redirects."""
        upstream = self.transport.fetch(
            fetch_url, event.method, headers=event.headers, body=event.body
        )
        logger.debug(f"Embed response for {fetch_url}: {upstream.status} {upstream.type}")

        # No inspectable Location: the app is sending the browser elsewhere to log in
        if upstream.type == "opaqueredirect":
            self._forget_clients(event)
            return self.top_level_login(fetch_url, app_name)

        if 300 <= upstream.status < 400:
            location = upstream.headers.get("Location")
            if location:
                if is_auth_redirect(
                    location, origin, self.auth_host_prefix, self.auth_path_prefixes
                ):
                    logger.info(f"Auth redirect from {app_name}, escalating to top window")
                    self._forget_clients(event)
                    return self.top_level_login(fetch_url, app_name)

                new_location = process_redirect_response(upstream, app_name, origin)
                if new_location:
                    logger.debug(f"Rewrote redirect {location} -> {new_location}")
                    return GatewayResponse.redirect(
                        new_location, upstream.status, headers=upstream.headers
                    )

        return self.maybe_inject_intercepts(GatewayResponse.from_upstream(upstream))

    def top_level_login(self, fetch_url: str, app_name: str) -> GatewayResponse:
        """Build the page that sends the top window to the login-start endpoint."""
        return_path = app_return_path(fetch_url, app_name)
        target = build_login_url(return_path, self.auth_proxy_path)
        response = GatewayResponse.text(
            render_top_level_redirect(target), CONTENT_TYPE_HTML
        )
        response.headers["Cache-Control"] = "no-store"
        response.url = fetch_url
        return response

    def maybe_inject_intercepts(self, response: GatewayResponse) -> GatewayResponse:
        """Inject storage intercepts into an HTML response when configured.

        Undecodable bodies are returned without injection.
        """
        config = self.context.intercept_config
        if not config or not is_html_response(response):
            return response

        _, options = parse_options_header(response.content_type)
        charset = options.get("charset") or "utf-8"
        try:
            html = response.body.decode(charset)
        except (UnicodeDecodeError, LookupError) as e:
            logger.warning(f"Skipping intercept injection for {response.url}: {e}")
            return response

        injected = inject_into_html(html, config)
        if injected == html:
            return response

        response.body = injected.encode(charset)
        logger.info(f"Injected storage intercepts into {response.url}")
        return response

    def _forget_clients(self, event: FetchEvent) -> None:
        # Whatever loads next in this context is the identity provider, not the app
        self.context.clients.unregister(event.client_id)
        self.context.clients.unregister(event.resulting_client_id)
