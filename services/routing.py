"""Shared routing constants and result types for the embed gateway.

Every other module in `services` speaks in terms of these values, so the
strings here double as the wire format reported by the control plane and
the CLI.
"""

from typing import Any, ClassVar, Protocol


class RequestAction:
    """What the gateway does with an incoming request."""

    PASSTHROUGH = "passthrough"
    FETCH = "fetch"


class RequestType:
    """Kind of FETCH action."""

    EMBED = "embed"
    ROOT = "root"


class PassthroughReason:
    """Why a request was left untouched."""

    CROSS_ORIGIN = "cross-origin"
    BLOUD_ROUTE = "bloud-route"
    EMBED_NO_REWRITE = "embed-no-rewrite"
    NO_APP_CONTEXT = "no-app-context"


class RequestMode:
    """Fetch request modes (as sent in `Sec-Fetch-Mode`)."""

    NAVIGATE = "navigate"
    CORS = "cors"
    NO_CORS = "no-cors"
    SAME_ORIGIN = "same-origin"
    WEBSOCKET = "websocket"


class RouteKind:
    """Result of path classification."""

    BLOUD = "bloud"
    EMBED = "embed"
    ROOT = "root"


class MessageType:
    """Control-plane messages accepted from the host page."""

    SET_ACTIVE_APP = "SET_ACTIVE_APP"
    SET_INTERCEPTS = "SET_INTERCEPTS"
    CLIENT_CLOSED = "CLIENT_CLOSED"

    ALL: ClassVar[frozenset[str]] = frozenset(
        {SET_ACTIVE_APP, SET_INTERCEPTS, CLIENT_CLOSED}
    )


EMBED_PATH_PREFIX = "/embed/"
APPS_PATH_PREFIX = "/apps/"

# Platform-internal prefix (dev server assets and the gateway's control API)
PLATFORM_MARKER_PREFIX = "/@"
CONTROL_PATH_PREFIX = "/@bloud"

# Authentik serves its own assets from /static/dist/, while embedded apps use
# /embed/{app}/static/
AUTHENTIK_STATIC_PREFIX = "/static/dist/"
AUTHENTIK_PROXY_PATH = "/outpost.goauthentik.io"
AUTH_HOST_PREFIX = "auth."
AUTH_PATH_PREFIXES = (
    "/outpost.goauthentik.io/",
    "/flows/",
    "/if/",
    "/application/",
)

OAUTH_CALLBACK_PATH = "openid/callback"

SW_SCRIPT_PATHS = frozenset({"/sw.js", "/service-worker.js"})
SW_DISABLED_SCRIPT = "// SW disabled for embedded apps"

CONTENT_TYPE_JS = "application/javascript"
CONTENT_TYPE_HTML = "text/html; charset=utf-8"

INTERCEPT_META_NAME = "bloud-intercept-config"

# First path segments that always belong to the platform or the identity provider
RESERVED_SEGMENTS = frozenset(
    {
        "api",
        "apps",
        "catalog",
        "versions",
        "icons",
        "images",
        "_app",
        "node_modules",
        "src",
        ".svelte-kit",
        # Authentik SSO routes
        "outpost.goauthentik.io",
        "application",
        "flows",
        "if",
        "-",
        "static",
    }
)

# Apps that hard-code absolute URLs and cannot be served from a sub-path on their own.
# Apps with a base URL setting (miniflux, for example) are deliberately absent.
DEFAULT_REWRITE_APPS = frozenset(
    {
        "actual-budget",
        "adguard-home",
        "affine",
        "jellyfin",
        "jellyseerr",
        "prowlarr",
        "qbittorrent",
        "radarr",
        "sonarr",
    }
)


class HeaderLookup(Protocol):
    def get(self, name: str, default: Any = None) -> Any: ...


class ResponseLike(Protocol):
    """The slice of an HTTP response that redirect detection needs."""

    status: int
    type: str
    headers: HeaderLookup


class Classification:
    """Route kind of a path, plus the app name for embed routes."""

    __slots__ = ("app_name", "kind")

    def __init__(self, kind: str, app_name: str | None = None):
        self.kind = kind
        self.app_name = app_name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Classification):
            return NotImplemented
        return (self.kind, self.app_name) == (other.kind, other.app_name)

    def __hash__(self) -> int:
        return hash((self.kind, self.app_name))

    def __repr__(self) -> str:
        return f"Classification({self.kind!r}, {self.app_name!r})"


class RequestActionResult:
    """Outcome of resolving a request: passthrough with a reason, or a fetch."""

    __slots__ = ("action", "app_name", "fetch_url", "reason", "type")

    def __init__(
        self,
        action: str,
        reason: str | None = None,
        type: str | None = None,
        fetch_url: str | None = None,
        app_name: str | None = None,
    ):
        self.action = action
        self.reason = reason
        self.type = type
        self.fetch_url = fetch_url
        self.app_name = app_name

    @classmethod
    def passthrough(cls, reason: str) -> "RequestActionResult":
        return cls(RequestAction.PASSTHROUGH, reason=reason)

    @classmethod
    def fetch(
        cls, request_type: str, fetch_url: str, app_name: str
    ) -> "RequestActionResult":
        return cls(
            RequestAction.FETCH,
            type=request_type,
            fetch_url=fetch_url,
            app_name=app_name,
        )

    @property
    def is_passthrough(self) -> bool:
        return self.action == RequestAction.PASSTHROUGH

    def to_dict(self) -> dict[str, Any]:
        """Serialize without the unset fields."""
        data = {
            "action": self.action,
            "reason": self.reason,
            "type": self.type,
            "fetchUrl": self.fetch_url,
            "appName": self.app_name,
        }
        return {key: value for key, value in data.items() if value is not None}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RequestActionResult):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash(tuple(sorted(self.to_dict().items())))

    def __repr__(self) -> str:
        return f"RequestActionResult({self.to_dict()!r})"
