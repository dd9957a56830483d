"""Redirect inspection and rewriting for embedded apps.

Apps that hard-code absolute paths redirect to `/install.html` or `/login`;
those redirects are rewritten so the iframe stays inside `/embed/{app}/`.
Redirects to the identity provider are escalated to the top-level window,
because login flows refuse to run inside a frame.
"""

from urllib.parse import quote, urlsplit

from flask import render_template

from .paths import (
    extract_relative_path,
    get_app_route_url,
    resolve_url,
    same_origin,
    url_origin,
)
from .routing import (
    AUTH_HOST_PREFIX,
    AUTH_PATH_PREFIXES,
    AUTHENTIK_PROXY_PATH,
    EMBED_PATH_PREFIX,
    ResponseLike,
)


def is_redirect_response(response: ResponseLike) -> bool:
    """Check if a response is a redirect (including opaque redirects)."""
    if response.type == "opaqueredirect":
        return True
    return 300 <= response.status < 400


def is_auth_redirect(
    location: str,
    origin: str,
    auth_host_prefix: str = AUTH_HOST_PREFIX,
    auth_path_prefixes: tuple[str, ...] = AUTH_PATH_PREFIXES,
) -> bool:
    """Check if a redirect target is the identity provider's login machinery.

    Matches an `auth.` style host on any origin, or one of the provider's
    path prefixes on the gateway's own origin.
    """
    try:
        target = resolve_url(location, origin)
        parts = urlsplit(target)
    except ValueError:
        return False

    hostname = (parts.hostname or "").lower()
    if auth_host_prefix and hostname.startswith(auth_host_prefix):
        return True

    if not same_origin(target, origin):
        return False

    path = parts.path or "/"
    return any(path.startswith(prefix) for prefix in auth_path_prefixes)


def rewrite_redirect_location(location: str, app_name: str, origin: str) -> str | None:
    """Rewrite a redirect Location into `/embed/{app}/`.

    Returns:
        The rewritten absolute URL, or None when the location must be left
        alone (already under `/embed/`, or on another origin)
    """
    try:
        target = resolve_url(location, origin)
    except ValueError:
        return None

    if not same_origin(target, origin):
        return None

    parts = urlsplit(target)
    path = parts.path or "/"
    if path.startswith(EMBED_PATH_PREFIX):
        return None

    new_path = f"{EMBED_PATH_PREFIX}{app_name}{path}"
    if parts.query:
        new_path += f"?{parts.query}"
    return url_origin(origin) + new_path


def process_redirect_response(
    response: ResponseLike, app_name: str, origin: str
) -> str | None:
    """Return the rewritten Location for a redirect response, or None."""
    if not is_redirect_response(response):
        return None

    location = response.headers.get("Location")
    if not location:
        return None

    return rewrite_redirect_location(location, app_name, origin)


def app_return_path(embed_url: str, app_name: str) -> str:
    """Map an embed URL to the browser route the user should come back to.

    `/embed/qbittorrent/settings?tab=1` -> `/apps/qbittorrent/settings?tab=1`
    """
    parts = urlsplit(embed_url)
    relative = extract_relative_path(parts.path, app_name) or ""
    return_path = get_app_route_url(app_name, relative)
    if parts.query:
        return_path += f"?{parts.query}"
    return return_path


def build_login_url(return_path: str, auth_proxy_path: str = AUTHENTIK_PROXY_PATH) -> str:
    """Build the identity provider's login-start URL: `{proxy}/start?rd={return path}`."""
    return f"{auth_proxy_path.rstrip('/')}/start?rd={quote(return_path, safe='')}"


def render_top_level_redirect(target: str) -> str:
    """Render the page that sends the outermost window (not the iframe) to `target`."""
    return render_template("top_redirect.html", target=target)
