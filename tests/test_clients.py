"""Tests for client identity tracking."""

from services.clients import ClientAppRegistry, get_app_from_referer

ORIGIN = "http://localhost"


class TestClientAppRegistry:
    def test_register_and_lookup(self):
        registry = ClientAppRegistry()
        registry.register("client-1", "radarr")
        assert registry.lookup("client-1") == "radarr"
        assert "client-1" in registry
        assert len(registry) == 1

    def test_lookup_unknown_or_empty(self):
        registry = ClientAppRegistry()
        assert registry.lookup("nope") is None
        assert registry.lookup("") is None
        assert registry.lookup(None) is None

    def test_register_overwrites_owner(self):
        registry = ClientAppRegistry()
        registry.register("client-1", "radarr")
        registry.register("client-1", "sonarr")
        assert registry.lookup("client-1") == "sonarr"
        assert len(registry) == 1

    def test_unregister(self):
        registry = ClientAppRegistry()
        registry.register("client-1", "radarr")
        assert registry.unregister("client-1")
        assert not registry.unregister("client-1")
        assert not registry.unregister(None)
        assert registry.lookup("client-1") is None

    def test_retain_drops_dead_clients(self):
        registry = ClientAppRegistry()
        registry.register("a", "radarr")
        registry.register("b", "sonarr")
        registry.register("c", "jellyfin")

        assert registry.retain(["b", "zzz"]) == 2
        assert len(registry) == 1
        assert registry.lookup("b") == "sonarr"

    def test_clear(self):
        registry = ClientAppRegistry()
        registry.register("a", "radarr")
        registry.clear()
        assert len(registry) == 0


class TestGetAppFromReferer:
    def test_same_origin_embed_referer(self):
        assert (
            get_app_from_referer(f"{ORIGIN}/embed/jellyfin/web/index.html", ORIGIN)
            == "jellyfin"
        )

    def test_apps_referer(self):
        assert get_app_from_referer(f"{ORIGIN}/apps/radarr/", ORIGIN) == "radarr"

    def test_cross_origin_referer(self):
        assert get_app_from_referer("http://evil.test/embed/radarr/", ORIGIN) is None

    def test_referer_without_app(self):
        assert get_app_from_referer(f"{ORIGIN}/catalog", ORIGIN) is None

    def test_missing_or_malformed_referer(self):
        assert get_app_from_referer(None, ORIGIN) is None
        assert get_app_from_referer("", ORIGIN) is None
        assert get_app_from_referer("::not a url::", ORIGIN) is None
        assert get_app_from_referer("http://[bad", ORIGIN) is None
