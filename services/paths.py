"""Path classification and URL helpers for embedded apps.

Pure functions only: nothing here reads request state or configuration, so
the classifier can be exercised without an application context.
"""

import re
from urllib.parse import urljoin, urlsplit, urlunsplit

from .routing import (
    AUTHENTIK_STATIC_PREFIX,
    EMBED_PATH_PREFIX,
    PLATFORM_MARKER_PREFIX,
    RESERVED_SEGMENTS,
    SW_SCRIPT_PATHS,
    Classification,
    RouteKind,
)

_APP_PATH_RE = re.compile(r"^/(embed|apps)/([^/]+)")

_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443}


def get_app_from_path(pathname: str) -> str | None:
    """Extract the app name from `/embed/{app}/...` or `/apps/{app}/...`.

    Everything up to the next slash is taken verbatim, so a query string glued
    onto a bare app segment (`/embed/radarr?x=1`) ends up in the name. Callers
    check the result against the rewrite set before trusting it.
    """
    match = _APP_PATH_RE.match(pathname)
    return match.group(2) if match else None


def first_segment(pathname: str) -> str:
    """Return the first path segment: `/api/foo` -> `api`, `/catalog` -> `catalog`."""
    second_slash = pathname.find("/", 1)
    if second_slash == -1:
        return pathname[1:]
    return pathname[1:second_slash]


def is_bloud_route(pathname: str) -> bool:
    """Check if a path belongs to the platform rather than an embedded app."""
    # Home page
    if pathname == "/":
        return True

    if pathname.startswith(PLATFORM_MARKER_PREFIX):
        return True

    if pathname.startswith(AUTHENTIK_STATIC_PREFIX):
        return True

    return first_segment(pathname) in RESERVED_SEGMENTS


def is_service_worker_script(pathname: str) -> bool:
    """Check if an embedded app is trying to fetch its own service worker script."""
    return pathname in SW_SCRIPT_PATHS


def is_embed_path(pathname: str) -> bool:
    return pathname.startswith(EMBED_PATH_PREFIX)


def classify_path(pathname: str) -> Classification:
    """Classify a path as a platform route, an embed route or a root-level route.

    `/embed/` without an app segment classifies as EMBED with no app name;
    the resolver then leaves it alone rather than rewriting it into some
    app's namespace.
    """
    if is_bloud_route(pathname):
        return Classification(RouteKind.BLOUD)

    if is_embed_path(pathname):
        return Classification(RouteKind.EMBED, get_app_from_path(pathname))

    return Classification(RouteKind.ROOT)


def url_origin(url: str) -> str:
    """Return the serialized origin (`scheme://host[:port]`) of an absolute URL.

    Default ports are dropped and scheme/host lowercased, so
    `HTTP://Example.com:80/x` and `http://example.com/` share an origin.

    Raises:
        ValueError: if the URL is not absolute or has an invalid port
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise ValueError(f"Not an absolute URL: {url!r}")

    scheme = parts.scheme.lower()
    host = parts.hostname.lower()
    if ":" in host:
        host = f"[{host}]"

    port = parts.port
    if port is None or port == _DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def same_origin(url: str, origin: str) -> bool:
    """Compare a URL's origin with an origin string, tolerating malformed input."""
    try:
        return url_origin(url) == url_origin(origin)
    except ValueError:
        return False


def resolve_url(location: str, base: str) -> str:
    """Resolve a possibly relative URL against a base, like `new URL(location, base)`."""
    if not urlsplit(base).path:
        base = base + "/"
    return urljoin(base, location)


def _origin_parts(url: str) -> tuple[str, str]:
    parts = urlsplit(url)
    return parts.scheme, parts.netloc


def _path_and_query(url: str) -> tuple[str, str]:
    parts = urlsplit(url)
    return parts.path or "/", parts.query


def rewrite_root_url(url: str, app_name: str) -> str:
    """Rewrite a root-level URL into the app's embed namespace.

    `http://host/install.html?x=1` -> `http://host/embed/{app}/install.html?x=1`
    """
    path, query = _path_and_query(url)
    new_path = f"{EMBED_PATH_PREFIX}{app_name}{path}"
    return urlunsplit((*_origin_parts(url), new_path, query, ""))


def get_embed_url(app_name: str, path: str = "") -> str:
    """Build the iframe src for an app: `get_embed_url("miniflux", "settings")` -> `/embed/miniflux/settings`."""
    base_path = f"{EMBED_PATH_PREFIX}{app_name}/"
    if not path:
        return base_path
    return base_path + path.removeprefix("/")


def extract_relative_path(iframe_path: str, app_name: str) -> str | None:
    """Return the app-relative part of an embed path, or None if it is not under the app."""
    embed_prefix = f"{EMBED_PATH_PREFIX}{app_name}/"
    if not iframe_path.startswith(embed_prefix):
        return None
    return iframe_path[len(embed_prefix) :]


def get_app_route_url(app_name: str, path: str = "") -> str:
    """Build the browser-facing route for an app: `/apps/{app}/{path}`."""
    base_path = f"/apps/{app_name}/"
    if not path:
        return base_path
    return base_path + path.removeprefix("/")
