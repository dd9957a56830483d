"""Security headers and HTTPS redirects for the gateway's own endpoints.

Proxied app responses are left alone: they must stay frameable by the
platform origin and keep whatever policy the app itself sends.
"""

from flask import Flask, redirect, request

CONTROL_BLUEPRINT = "control"


class SecurityHeaders:
    """Middleware for adding security headers to control-plane responses."""

    def __init__(self, app: Flask | None = None):
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask):
        """Initialize security headers middleware."""
        app.after_request(self.add_security_headers)

        if app.config.get("FORCE_HTTPS"):
            app.before_request(self.force_https)

    def add_security_headers(self, response):
        """Add security headers to control endpoint responses."""
        if request.blueprint != CONTROL_BLUEPRINT:
            return response

        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'self'; base-uri 'none'"
        )
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if request.is_secure or request.headers.get("X-Forwarded-Proto") == "https":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        # Context snapshots change on every message
        response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        response.headers["Pragma"] = "no-cache"
        response.headers["Expires"] = "0"

        return response

    def force_https(self):
        """Redirect plain HTTP requests to HTTPS."""
        if (
            not request.is_secure
            and request.headers.get("X-Forwarded-Proto") != "https"
        ):
            # Don't redirect the health check endpoint
            if request.endpoint == "control.state":
                return None

            return redirect(request.url.replace("http://", "https://", 1), code=301)
        return None


# Global security headers instance
security_headers = SecurityHeaders()
