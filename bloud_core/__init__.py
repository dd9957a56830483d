"""Core application factory and setup for the bloud gateway.

Exposes the `create_app` factory used by both the CLI entrypoint and tests.
"""

import os

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from blueprints import control_bp, gateway_bp
from services.audit import audit_logger
from services.gateway import EmbedGateway
from services.security import security_headers

from .config import get_config
from .errors import register_error_handlers
from .extensions import limiter


def create_app(test_config: dict | None = None) -> Flask:
    """Application factory.

    Args:
        test_config: Optional overrides to apply when testing.

    Returns:
        A configured `Flask` application instance.
    """
    # Ensure Flask knows where to find top-level templates
    package_dir = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(package_dir, ".."))
    templates_dir = os.path.join(project_root, "templates")

    # No static folder: every path belongs to the gateway route
    app = Flask(
        __name__,
        template_folder=templates_dir,
        static_folder=None,
    )

    # Configuration
    config_obj = get_config()
    app.config.from_object(config_obj)
    if test_config is None:
        # Validate production settings
        if hasattr(config_obj, "validate"):
            config_obj.validate()
    else:
        app.config.update(test_config)

    # Ensure instance folder exists
    os.makedirs(app.instance_path, exist_ok=True)

    # Extensions
    limiter.init_app(app)
    audit_logger.init_app(app)
    security_headers.init_app(app)
    EmbedGateway(app)

    # Reverse proxy (intentional replacement of wsgi_app with wrapped middleware)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)  # type: ignore[invalid-assignment]

    # Blueprints: control endpoints first so the catch-all never shadows them
    app.register_blueprint(control_bp)
    app.register_blueprint(gateway_bp)
    limiter.exempt(gateway_bp)

    # Errors
    register_error_handlers(app)

    return app
