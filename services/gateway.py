"""Flask extension owning the gateway context, transport and handler."""

from flask import Flask, current_app, request

from .context import GatewayContext
from .handler import EmbedHandler
from .paths import url_origin
from .transport import UpstreamTransport


class EmbedGateway:
    """Per-application gateway state, created once by the application factory."""

    def __init__(self, app: Flask | None = None):
        self.context: GatewayContext | None = None
        self.handler: EmbedHandler | None = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask):
        """Build the context and handler from the application config."""
        self.context = GatewayContext(app.config.get("REWRITE_APPS"))
        transport = UpstreamTransport(
            app.config["UPSTREAM_URL"],
            timeout=app.config.get("UPSTREAM_TIMEOUT"),
        )
        self.handler = EmbedHandler(
            self.context,
            transport,
            auth_proxy_path=app.config["AUTH_PROXY_PATH"],
            auth_host_prefix=app.config["AUTH_HOST_PREFIX"],
        )
        app.extensions["bloud_gateway"] = self
        app.logger.info(
            f"Embed gateway forwarding to {app.config['UPSTREAM_URL']} "
            f"({len(self.context.rewrite_apps)} rewrite apps)"
        )


def get_gateway() -> EmbedGateway:
    """Return the gateway of the current application."""
    return current_app.extensions["bloud_gateway"]


def public_origin() -> str:
    """Origin the browser uses to reach the gateway (config wins over the Host header)."""
    configured = current_app.config.get("PUBLIC_ORIGIN")
    if configured:
        return url_origin(configured)
    return url_origin(request.host_url)
