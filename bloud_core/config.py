"""Configuration objects for different environments."""

import os
from urllib.parse import urlsplit

from services.routing import (
    AUTH_HOST_PREFIX,
    AUTHENTIK_PROXY_PATH,
    DEFAULT_REWRITE_APPS,
)


def _parse_bool(val: str) -> bool:
    """Parse a string as boolean for env config."""
    return str(val).strip().lower() in ("1", "true", "yes", "on")


def _parse_app_list(val: str | None) -> frozenset[str]:
    """Parse a comma-separated app list, falling back to the built-in rewrite set."""
    if not val or not val.strip():
        return DEFAULT_REWRITE_APPS
    return frozenset(name.strip() for name in val.split(",") if name.strip())


def _parse_timeout(val: str | None) -> float | None:
    """Parse an upstream timeout in seconds. Empty or non-positive means no timeout."""
    if not val or not val.strip():
        return None
    timeout = float(val)
    return timeout if timeout > 0 else None


class BaseConfig:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    # Where the platform's reverse proxy (Traefik) listens
    UPSTREAM_URL = os.environ.get("BLOUD_UPSTREAM_URL", "http://127.0.0.1:8081")
    # Origin the browser sees. If empty, it is derived from the request host.
    PUBLIC_ORIGIN = os.environ.get("BLOUD_PUBLIC_ORIGIN", "")
    REWRITE_APPS = _parse_app_list(os.environ.get("BLOUD_REWRITE_APPS"))
    AUTH_PROXY_PATH = os.environ.get("BLOUD_AUTH_PROXY_PATH", AUTHENTIK_PROXY_PATH)
    AUTH_HOST_PREFIX = os.environ.get("BLOUD_AUTH_HOST_PREFIX", AUTH_HOST_PREFIX)
    UPSTREAM_TIMEOUT = _parse_timeout(os.environ.get("BLOUD_UPSTREAM_TIMEOUT"))
    CONTROL_TOKEN = os.environ.get("BLOUD_CONTROL_TOKEN", "")
    FORCE_HTTPS = _parse_bool(os.environ.get("FORCE_HTTPS", "false"))
    MAX_CONTENT_LENGTH = None


class DevelopmentConfig(BaseConfig):
    DEBUG = True


class ProductionConfig(BaseConfig):
    DEBUG = False

    @classmethod
    def validate(cls) -> None:
        """Reject settings the gateway cannot run with.

        Raises:
            ValueError: If UPSTREAM_URL is not an absolute http(s) URL
        """
        parts = urlsplit(cls.UPSTREAM_URL or "")
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(
                f"BLOUD_UPSTREAM_URL must be an http(s) URL, got {cls.UPSTREAM_URL!r}"
            )


def get_config():
    """Return a config class based on the BLOUD_ENV environment variable."""
    env = os.environ.get("BLOUD_ENV", "development").lower()
    if env.startswith("prod"):
        return ProductionConfig
    return DevelopmentConfig
