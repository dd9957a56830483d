"""Upstream HTTP transport for the gateway.

Forwards requests to the platform's reverse proxy with redirect following
disabled, so the handler sees every redirect before the browser does.
"""

import logging
from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter
from werkzeug.datastructures import Headers

from .paths import url_origin

logger = logging.getLogger(__name__)

# Hop-by-hop headers plus the ones requests invalidates by decoding the body
EXCLUDED_RESPONSE_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "content-encoding",
        "content-length",
    }
)

EXCLUDED_REQUEST_HEADERS = frozenset(
    {
        "host",
        "connection",
        "keep-alive",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "content-length",
        "x-forwarded-host",
        "x-forwarded-proto",
        "x-bloud-client-id",
        "x-bloud-resulting-client-id",
    }
)


class UpstreamResponse:
    """A fully buffered upstream response."""

    def __init__(
        self,
        status: int,
        headers: Headers | None = None,
        body: bytes = b"",
        url: str = "",
        type: str = "basic",
    ):
        self.status = status
        self.headers = headers if headers is not None else Headers()
        self.body = body
        self.url = url
        self.type = type

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    def __repr__(self) -> str:
        return f"<UpstreamResponse {self.status} {self.url}>"


class UpstreamTransport:
    """Sends public-origin URLs to the upstream reverse proxy using requests."""

    def __init__(
        self,
        upstream_url: str,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.upstream_url = upstream_url.rstrip("/")
        self.upstream_origin = url_origin(self.upstream_url)
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=10, pool_maxsize=20)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def upstream_target(self, url: str) -> str:
        """Map a public URL onto the upstream base URL, keeping path and query."""
        parts = urlsplit(url)
        target = self.upstream_url + (parts.path or "/")
        if parts.query:
            target += f"?{parts.query}"
        return target

    def _outbound_headers(self, url: str, headers) -> dict[str, str]:
        parts = urlsplit(url)
        outbound = {}
        for name, value in (headers or {}).items():
            if name.lower() not in EXCLUDED_REQUEST_HEADERS:
                outbound[name] = value

        # Traefik routes on the public host
        outbound["Host"] = parts.netloc
        outbound["X-Forwarded-Host"] = parts.netloc
        outbound["X-Forwarded-Proto"] = parts.scheme
        return outbound

    def _public_location(self, location: str, public_origin: str) -> str:
        """Map an upstream-absolute Location back onto the public origin."""
        if location.startswith(self.upstream_origin):
            return public_origin + location[len(self.upstream_origin) :]
        return location

    def _inbound_headers(self, resp: requests.Response, public_origin: str) -> Headers:
        raw_headers = getattr(resp.raw, "headers", None)
        if raw_headers is not None and hasattr(raw_headers, "items"):
            items = list(raw_headers.items())
        else:
            items = list(resp.headers.items())

        headers = Headers()
        for name, value in items:
            name_lower = name.lower()
            if name_lower in EXCLUDED_RESPONSE_HEADERS:
                continue
            if name_lower == "location":
                value = self._public_location(value, public_origin)
            headers.add(name, value)
        return headers

    def fetch(
        self,
        url: str,
        method: str = "GET",
        headers=None,
        body: bytes | None = None,
    ) -> UpstreamResponse:
        """Fetch a public URL from upstream without following redirects.

        Raises:
            requests.RequestException: on connection failures and timeouts
        """
        target = self.upstream_target(url)
        public_origin = url_origin(url)
        logger.debug(f"Upstream {method} {target}")

        resp = self.session.request(
            method=method,
            url=target,
            headers=self._outbound_headers(url, headers),
            data=body or None,
            allow_redirects=False,
            timeout=self.timeout,
        )

        return UpstreamResponse(
            status=resp.status_code,
            headers=self._inbound_headers(resp, public_origin),
            body=resp.content,
            url=url,
        )
