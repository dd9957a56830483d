"""Tests for the catch-all gateway route."""

import requests

ORIGIN = "http://localhost"


def test_passthrough_relays_upstream_response(client, transport):
    transport.add(
        f"{ORIGIN}/catalog",
        status=200,
        headers={"Content-Type": "text/html", "X-Upstream": "traefik"},
        body="<h1>Catalog</h1>",
    )

    res = client.get("/catalog", headers={"Sec-Fetch-Mode": "navigate"})

    assert res.status_code == 200
    assert res.data == b"<h1>Catalog</h1>"
    assert res.headers["X-Upstream"] == "traefik"
    assert transport.calls == [("GET", f"{ORIGIN}/catalog")]


def test_query_string_preserved(client, transport):
    client.get("/embed/miniflux/feeds?page=2&sort=desc")
    assert transport.fetched_urls == [f"{ORIGIN}/embed/miniflux/feeds?page=2&sort=desc"]


def test_method_forwarded(client, transport):
    client.post("/embed/radarr/api/v3/movie", json={"title": "x"})
    assert transport.calls == [("POST", f"{ORIGIN}/embed/radarr/api/v3/movie")]


def test_embed_navigation_tracks_resulting_client(client, transport, gateway_context):
    client.get(
        "/embed/radarr/",
        headers={"Sec-Fetch-Mode": "navigate", "X-Bloud-Resulting-Client-Id": "c9"},
    )
    assert gateway_context.clients.lookup("c9") == "radarr"


def test_client_id_header_routes_reserved_path(client, transport, gateway_context):
    gateway_context.clients.register("c9", "radarr")

    client.get(
        "/api/v3/movie",
        headers={"Sec-Fetch-Mode": "cors", "X-Bloud-Client-Id": "c9"},
    )

    assert transport.fetched_urls == [f"{ORIGIN}/embed/radarr/api/v3/movie"]


def test_root_request_follows_active_app(client, transport, gateway_context):
    gateway_context.set_active_app("actual-budget")
    client.get("/install.html", headers={"Sec-Fetch-Mode": "cors"})
    assert transport.fetched_urls == [f"{ORIGIN}/embed/actual-budget/install.html"]


def test_html_get_without_fetch_metadata_is_navigation(client, gateway_context):
    client.get(
        "/embed/radarr/",
        headers={"Accept": "text/html", "X-Bloud-Resulting-Client-Id": "c10"},
    )
    assert gateway_context.clients.lookup("c10") == "radarr"


def test_upstream_down_returns_bad_gateway(client, transport):
    transport.fail(f"{ORIGIN}/catalog", requests.ConnectionError("refused"))

    res = client.get("/catalog", headers={"Accept": "application/json"})

    assert res.status_code == 502
    assert res.get_json() == {"error": "Bad Gateway"}


def test_upstream_down_html_page(client, transport):
    transport.fail(f"{ORIGIN}/catalog", requests.Timeout("slow"))

    res = client.get("/catalog", headers={"Accept": "text/html"})

    assert res.status_code == 502
    assert b"Bad Gateway" in res.data


def test_proxied_responses_have_no_gateway_security_headers(client):
    res = client.get("/embed/radarr/")
    assert "Content-Security-Policy" not in res.headers
    assert "X-Frame-Options" not in res.headers


def test_tracked_client_upstream_failure_is_bad_gateway(client, transport, gateway_context):
    gateway_context.clients.register("iframe-1", "radarr")
    transport.fail(f"{ORIGIN}/embed/radarr/api/v3/command", requests.Timeout("slow"))

    res = client.post(
        "/api/v3/command",
        json={"name": "RefreshMovie"},
        headers={"Sec-Fetch-Mode": "cors", "X-Bloud-Client-Id": "iframe-1"},
    )

    assert res.status_code == 502
    assert res.get_json() == {"error": "Bad Gateway"}
    assert transport.calls == [("POST", f"{ORIGIN}/embed/radarr/api/v3/command")]
