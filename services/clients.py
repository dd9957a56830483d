"""Client identity tracking for embedded app iframes and workers.

The browser assigns every navigated document (and every worker) an opaque
client id. Once an embed navigation has been routed to an app, requests
carrying that document's id belong to the app, even when their path collides
with a reserved platform segment such as `/api`.
"""

import logging
from collections.abc import Iterable
from urllib.parse import urlsplit

from .paths import get_app_from_path, same_origin

logger = logging.getLogger(__name__)


class ClientAppRegistry:
    """Maps client ids to the app that owns them."""

    def __init__(self):
        self._clients: dict[str, str] = {}

    def register(self, client_id: str, app_name: str) -> None:
        """Record that `client_id` belongs to `app_name` (overwrites any earlier owner)."""
        self._clients[client_id] = app_name
        logger.debug(f"Registered client {client_id} for {app_name}")

    def lookup(self, client_id: str | None) -> str | None:
        """Return the owning app for a client id, or None when unknown."""
        if not client_id:
            return None
        return self._clients.get(client_id)

    def unregister(self, client_id: str | None) -> bool:
        """Forget a client id. Returns True if an entry was removed."""
        if not client_id:
            return False
        removed = self._clients.pop(client_id, None)
        if removed is not None:
            logger.debug(f"Unregistered client {client_id} (was {removed})")
        return removed is not None

    def retain(self, live_client_ids: Iterable[str]) -> int:
        """Drop every entry whose client is no longer alive. Returns the number dropped."""
        live = set(live_client_ids)
        stale = [client_id for client_id in self._clients if client_id not in live]
        for client_id in stale:
            del self._clients[client_id]
        return len(stale)

    def clear(self) -> None:
        self._clients.clear()

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._clients


def get_app_from_referer(referer: str | None, origin: str) -> str | None:
    """Extract the app from a same-origin Referer header.

    Workers spawned by an embedded app get client ids of their own that were
    never registered, but their Referer still points at the app's page.
    Malformed or foreign referers count as no match.
    """
    if not referer:
        return None

    try:
        parts = urlsplit(referer)
    except ValueError:
        return None

    # Only trust same-origin referers
    if not same_origin(referer, origin):
        return None

    return get_app_from_path(parts.path)
