"""Catch-all gateway route.

Every request that is not a control endpoint lands here, is turned into a
`FetchEvent` and handed to the embed handler.

Browsers do not send client identities on their own. Client tracking relies
on a shim in the host page's service worker that copies `event.clientId`
into `X-Bloud-Client-Id` and `event.resultingClientId` into
`X-Bloud-Resulting-Client-Id` on every request it forwards, and posts
`CLIENT_CLOSED` to `/@bloud/messages` when a frame goes away. Without those
headers the registry stays empty: requests are routed by the active app and
the Referer fallback only, so an app's own `/api/...` calls reach the platform.
"""

from urllib.parse import urlsplit

from flask import Blueprint, Response, request
from flask.typing import ResponseReturnValue

from services.gateway import get_gateway, public_origin
from services.handler import FetchEvent, GatewayResponse
from services.routing import RequestMode

gateway_bp = Blueprint("gateway", __name__)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

CLIENT_ID_HEADER = "X-Bloud-Client-Id"
RESULTING_CLIENT_ID_HEADER = "X-Bloud-Resulting-Client-Id"


def request_mode() -> str:
    """Fetch mode of the current request, from `Sec-Fetch-Mode` when the browser sends it."""
    mode = request.headers.get("Sec-Fetch-Mode")
    if mode:
        return mode.lower()

    # Older clients: treat top-level HTML GETs as navigations
    if request.method == "GET" and request.accept_mimetypes.accept_html:
        return RequestMode.NAVIGATE
    return RequestMode.CORS


def build_fetch_event(origin: str) -> FetchEvent:
    """Translate the current Flask request into a FetchEvent on the public origin."""
    parts = urlsplit(request.url)
    url = origin + (parts.path or "/")
    if parts.query:
        url += f"?{parts.query}"

    return FetchEvent(
        url=url,
        method=request.method,
        headers=request.headers,
        body=request.get_data(cache=False),
        mode=request_mode(),
        client_id=request.headers.get(CLIENT_ID_HEADER),
        resulting_client_id=request.headers.get(RESULTING_CLIENT_ID_HEADER),
    )


def to_flask_response(response: GatewayResponse) -> Response:
    return Response(
        response.body,
        status=response.status,
        headers=list(response.headers.items()),
    )


@gateway_bp.route("/", defaults={"path": ""}, methods=ALL_METHODS)
@gateway_bp.route("/<path:path>", methods=ALL_METHODS)
def proxy(path: str) -> ResponseReturnValue:
    """Route the request through the embed handler."""
    origin = public_origin()
    event = build_fetch_event(origin)
    response = get_gateway().handler.safe_handle_request(event, origin)
    return to_flask_response(response)
