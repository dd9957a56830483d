import os

import pytest
from flask import Flask
from werkzeug.datastructures import Headers

from bloud_core import create_app
from services.context import GatewayContext
from services.handler import EmbedHandler
from services.transport import UpstreamResponse

ORIGIN = "http://localhost"


class FakeTransport:
    """Transport double: records every fetch and answers from a URL table."""

    def __init__(self):
        self.calls = []
        self.responses = {}

    def add(self, url, status=200, headers=None, body=b"", type="basic"):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.responses[url] = UpstreamResponse(
            status, Headers(headers or {}), body, url=url, type=type
        )

    def fail(self, url, error):
        self.responses[url] = error

    def fetch(self, url, method="GET", headers=None, body=None):
        self.calls.append((method, url))
        response = self.responses.get(url)
        if isinstance(response, Exception):
            raise response
        if response is None:
            return UpstreamResponse(
                200,
                Headers({"Content-Type": "text/plain"}),
                f"upstream {url}".encode(),
                url=url,
            )
        return response

    @property
    def fetched_urls(self):
        return [url for _, url in self.calls]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def context() -> GatewayContext:
    return GatewayContext()


@pytest.fixture
def handler(context: GatewayContext, transport: FakeTransport) -> EmbedHandler:
    return EmbedHandler(context, transport)


@pytest.fixture(name="flask_app")
def app(tmp_path, transport: FakeTransport) -> Flask:
    test_instance_path = tmp_path / "instance"
    os.makedirs(test_instance_path, exist_ok=True)

    test_config = {
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "UPSTREAM_URL": "http://traefik.test:8081",
        "PUBLIC_ORIGIN": ORIGIN,
        "AUDIT_LOG": str(test_instance_path / "audit.log"),
        "RATELIMIT_ENABLED": False,
    }

    flask_app = create_app(test_config)

    # Never open sockets from tests
    flask_app.extensions["bloud_gateway"].handler.transport = transport

    return flask_app


@pytest.fixture
def client(flask_app: Flask):
    return flask_app.test_client()


@pytest.fixture
def gateway_context(flask_app: Flask) -> GatewayContext:
    return flask_app.extensions["bloud_gateway"].context
