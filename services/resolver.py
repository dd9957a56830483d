"""Decide what the gateway does with a request.

`get_request_action` is a pure function of the URL, the public origin and the
gateway context: no I/O, no mutation.
"""

from urllib.parse import urlsplit

from .context import GatewayContext
from .paths import classify_path, is_embed_path, rewrite_root_url, same_origin
from .routing import (
    AUTHENTIK_PROXY_PATH,
    OAUTH_CALLBACK_PATH,
    PassthroughReason,
    RequestActionResult,
    RequestMode,
    RequestType,
    RouteKind,
)


class HandleDecision:
    """Whether a request is ours to handle, and as what."""

    __slots__ = ("app_name", "handle", "reason", "type")

    def __init__(
        self,
        handle: bool,
        reason: str | None = None,
        type: str | None = None,
        app_name: str | None = None,
    ):
        self.handle = handle
        self.reason = reason
        self.type = type
        self.app_name = app_name

    def __repr__(self) -> str:
        return (
            f"HandleDecision(handle={self.handle!r}, reason={self.reason!r}, "
            f"type={self.type!r}, app_name={self.app_name!r})"
        )


def should_handle_request(
    url: str, origin: str, context: GatewayContext
) -> HandleDecision:
    """Check whether a request needs interception at all."""
    # The rewriter never touches third-party origins
    if not same_origin(url, origin):
        return HandleDecision(False, reason=PassthroughReason.CROSS_ORIGIN)

    classification = classify_path(urlsplit(url).path or "/")

    if classification.kind == RouteKind.BLOUD:
        return HandleDecision(False, reason=PassthroughReason.BLOUD_ROUTE)

    if classification.kind == RouteKind.ROOT:
        # Owner has to come from the active app context
        return HandleDecision(True, type=RequestType.ROOT)

    app_name = classification.app_name
    if not context.app_needs_rewrite(app_name):
        # App honours its own base path
        return HandleDecision(False, reason=PassthroughReason.EMBED_NO_REWRITE)

    return HandleDecision(True, type=RequestType.EMBED, app_name=app_name)


def get_request_action(
    url: str, origin: str, context: GatewayContext
) -> RequestActionResult:
    """Compute the action for a request.

    Returns:
        PASSTHROUGH with a reason, or FETCH with the request type, the URL to
        fetch and the owning app
    """
    decision = should_handle_request(url, origin, context)

    if not decision.handle:
        return RequestActionResult.passthrough(decision.reason)

    if decision.type == RequestType.EMBED:
        return RequestActionResult.fetch(RequestType.EMBED, url, decision.app_name)

    app_name = context.active_rewrite_app()
    if not app_name:
        return RequestActionResult.passthrough(PassthroughReason.NO_APP_CONTEXT)

    return RequestActionResult.fetch(
        RequestType.ROOT, rewrite_root_url(url, app_name), app_name
    )


def should_redirect_oauth_callback(request_mode: str | None, pathname: str) -> bool:
    """Check if an OAuth callback navigation should be redirected instead of fetched.

    Fetching the callback on the browser's behalf loses the context the
    identity provider expects; a redirect makes the browser hit it directly.
    """
    return request_mode == RequestMode.NAVIGATE and OAUTH_CALLBACK_PATH in pathname


def get_client_action(
    url: str,
    origin: str,
    context: GatewayContext,
    client_app: str | None,
    auth_proxy_path: str = AUTHENTIK_PROXY_PATH,
) -> RequestActionResult | None:
    """Compute the action for a request from a client tracked as `client_app`.

    A tracked client's requests belong to its app even on reserved paths
    (Radarr's `/api/v3/` is Radarr's).

    Returns:
        A ROOT fetch into the app's embed path, or None when ownership does
        not apply and the request falls through to `get_request_action`
    """
    if not client_app or not context.app_needs_rewrite(client_app):
        return None
    if not same_origin(url, origin):
        return None

    pathname = urlsplit(url).path or "/"
    if is_embed_path(pathname) or pathname.startswith(auth_proxy_path.rstrip("/")):
        return None

    return RequestActionResult.fetch(
        RequestType.ROOT, rewrite_root_url(url, client_app), client_app
    )
