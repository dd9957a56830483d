"""Tests for the upstream transport."""

from unittest.mock import Mock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from services.transport import UpstreamTransport


def make_response(status=200, headers=None, body=b""):
    response = requests.Response()
    response.status_code = status
    response.headers = CaseInsensitiveDict(headers or {})
    response._content = body
    return response


@pytest.fixture
def session():
    session = Mock(spec=requests.Session)
    session.request.return_value = make_response(
        headers={"Content-Type": "text/html", "Content-Length": "5"}, body=b"hello"
    )
    return session


@pytest.fixture
def upstream(session):
    return UpstreamTransport("http://traefik:8081/", timeout=5, session=session)


def test_upstream_target(upstream):
    assert (
        upstream.upstream_target("http://bloud.local/embed/radarr/?x=1")
        == "http://traefik:8081/embed/radarr/?x=1"
    )


def test_fetch_sends_public_host_and_skips_redirects(upstream, session):
    upstream.fetch(
        "https://bloud.local/embed/radarr/api",
        "POST",
        headers={
            "Cookie": "a=b",
            "Host": "ignored",
            "Connection": "keep-alive",
            "X-Bloud-Client-Id": "c1",
        },
        body=b"{}",
    )

    kwargs = session.request.call_args.kwargs
    assert kwargs["method"] == "POST"
    assert kwargs["url"] == "http://traefik:8081/embed/radarr/api"
    assert kwargs["allow_redirects"] is False
    assert kwargs["timeout"] == 5
    assert kwargs["data"] == b"{}"

    headers = kwargs["headers"]
    assert headers["Host"] == "bloud.local"
    assert headers["X-Forwarded-Host"] == "bloud.local"
    assert headers["X-Forwarded-Proto"] == "https"
    assert headers["Cookie"] == "a=b"
    assert "Connection" not in headers
    assert "X-Bloud-Client-Id" not in headers


def test_fetch_filters_response_headers(upstream):
    response = upstream.fetch("http://bloud.local/catalog")

    assert response.status == 200
    assert response.body == b"hello"
    assert response.url == "http://bloud.local/catalog"
    assert response.type == "basic"
    assert response.content_type == "text/html"
    assert "Content-Length" not in response.headers


def test_upstream_location_mapped_to_public_origin(upstream, session):
    session.request.return_value = make_response(
        302, headers={"Location": "http://traefik:8081/install.html"}
    )

    response = upstream.fetch("http://bloud.local/embed/actual-budget/")

    assert response.status == 302
    assert response.headers["Location"] == "http://bloud.local/install.html"


def test_relative_location_untouched(upstream, session):
    session.request.return_value = make_response(302, headers={"Location": "/login"})
    response = upstream.fetch("http://bloud.local/embed/radarr/")
    assert response.headers["Location"] == "/login"


def test_connection_errors_propagate(upstream, session):
    session.request.side_effect = requests.ConnectionError("refused")
    with pytest.raises(requests.ConnectionError):
        upstream.fetch("http://bloud.local/")


def test_default_session_is_pooled():
    transport = UpstreamTransport("http://traefik:8081")
    assert isinstance(transport.session, requests.Session)
    assert transport.timeout is None
