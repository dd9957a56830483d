"""Control-plane endpoints used by the host page.

The host page tells the gateway which app is in the foreground and which
storage intercepts to inject. Every message is applied synchronously and
acknowledged in the response, so the host can wait for the acknowledgement
before loading the iframe.
"""

import hmac

from flask import Blueprint, current_app, jsonify, request
from flask.typing import ResponseReturnValue

from bloud_core.extensions import limiter
from services.audit import get_audit_logs, log_control_message
from services.gateway import get_gateway
from services.routing import CONTROL_PATH_PREFIX, MessageType
from services.validation import validate_control_message

control_bp = Blueprint("control", __name__, url_prefix=CONTROL_PATH_PREFIX)

CONTROL_TOKEN_HEADER = "X-Bloud-Control-Token"


@control_bp.before_request
def require_control_token() -> ResponseReturnValue | None:
    """Reject control requests without the configured token (when one is set)."""
    expected = current_app.config.get("CONTROL_TOKEN")
    if not expected:
        return None

    provided = request.headers.get(CONTROL_TOKEN_HEADER, "")
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        return jsonify({"error": "Forbidden"}), 403
    return None


@control_bp.route("/messages", methods=["POST"])
@limiter.limit("300 per minute")
def post_message() -> ResponseReturnValue:
    """Apply a control message and acknowledge it."""
    message = request.get_json(silent=True)

    is_valid, error = validate_control_message(message)
    if not is_valid:
        log_control_message(message, success=False, error_message=error)
        return jsonify({"error": error}), 400

    context = get_gateway().context
    message_type = message["type"]

    if message_type == MessageType.SET_ACTIVE_APP:
        context.set_active_app(
            message.get("appName"), message.get("needsRewrite", True)
        )
    elif message_type == MessageType.SET_INTERCEPTS:
        config = message.get("config")
        context.set_intercepts(config)
        if config:
            current_app.logger.info(
                f"Storage intercepts set: {', '.join(sorted(config))}"
            )
    elif message_type == MessageType.CLIENT_CLOSED:
        context.clients.unregister(message["clientId"])

    log_control_message(message)
    return jsonify({"ack": True, "state": context.snapshot()})


@control_bp.route("/state", methods=["GET"])
def state() -> ResponseReturnValue:
    """Return the current gateway context."""
    return jsonify(get_gateway().context.snapshot())


@control_bp.route("/audit", methods=["GET"])
def audit() -> ResponseReturnValue:
    """Return recent control messages, newest first."""
    limit = request.args.get("limit", 100, type=int)
    limit = max(1, min(limit, 1000))
    return jsonify(get_audit_logs(limit))
