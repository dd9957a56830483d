"""Error handlers registration."""

import requests
from flask import Flask, current_app, jsonify, render_template, request


def _wants_json() -> bool:
    return (
        request.accept_mimetypes.accept_json
        and not request.accept_mimetypes.accept_html
    )


def register_error_handlers(app: Flask) -> None:
    """Register error handlers for 404, 500 and unreachable upstreams."""

    @app.errorhandler(404)
    def not_found(error):
        if _wants_json():
            return jsonify({"error": "Not Found"}), 404
        return render_template("404.html"), 404

    @app.errorhandler(500)
    def internal_error(error):
        if _wants_json():
            return jsonify({"error": "Internal Server Error"}), 500
        return render_template("500.html"), 500

    @app.errorhandler(requests.RequestException)
    def bad_gateway(error):
        current_app.logger.error(f"Upstream request failed for {request.url}: {error}")
        if _wants_json():
            return jsonify({"error": "Bad Gateway"}), 502
        return render_template("502.html"), 502
