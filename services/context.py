"""Mutable gateway state shared by every request.

The host page's control messages are the only writers; request handling only
reads. Keeping all of it on one object makes the single-writer rule visible
and lets tests build a fresh context instead of resetting module globals.
"""

import copy
import logging
from collections.abc import Iterable
from typing import Any

from .clients import ClientAppRegistry
from .routing import DEFAULT_REWRITE_APPS

logger = logging.getLogger(__name__)


class GatewayContext:
    """Active app, rewrite set, intercept configuration and client registry."""

    def __init__(self, rewrite_apps: Iterable[str] | None = None):
        self.rewrite_apps: frozenset[str] = frozenset(
            DEFAULT_REWRITE_APPS if rewrite_apps is None else rewrite_apps
        )
        self.active_app: str | None = None
        self.needs_rewrite: bool = False
        self.intercept_config: dict[str, Any] | None = None
        self.clients = ClientAppRegistry()

    def set_active_app(self, app_name: str | None, needs_rewrite: bool = True) -> None:
        """Make `app_name` the foreground app (None clears it)."""
        self.active_app = app_name or None
        self.needs_rewrite = bool(needs_rewrite) if self.active_app else False
        logger.info(
            f"Active app: {self.active_app or '(none)'} "
            f"(needs_rewrite={self.needs_rewrite})"
        )

    def set_intercepts(self, config: dict[str, Any] | None) -> None:
        """Replace the intercept configuration wholesale."""
        self.intercept_config = copy.deepcopy(config) if config else None

    def app_needs_rewrite(self, app_name: str | None) -> bool:
        """Whether requests for `app_name` must be rewritten into its embed namespace.

        Membership in the rewrite set is required. An active app the host
        page marked as not needing rewrites is excluded even if listed.
        """
        if not app_name or app_name not in self.rewrite_apps:
            return False
        if app_name == self.active_app and not self.needs_rewrite:
            return False
        return True

    def active_rewrite_app(self) -> str | None:
        """Return the active app if root-level requests should be rewritten for it."""
        if self.active_app and self.needs_rewrite and self.app_needs_rewrite(
            self.active_app
        ):
            return self.active_app
        return None

    def reset(self) -> None:
        self.active_app = None
        self.needs_rewrite = False
        self.intercept_config = None
        self.clients.clear()

    def snapshot(self) -> dict[str, Any]:
        return {
            "activeApp": self.active_app,
            "needsRewrite": self.needs_rewrite,
            "hasIntercepts": self.intercept_config is not None,
            "trackedClients": len(self.clients),
            "rewriteApps": sorted(self.rewrite_apps),
        }
