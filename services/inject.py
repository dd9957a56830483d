"""Storage intercept injection for embedded app HTML.

Some apps store an absolute server URL in IndexedDB or localStorage on first
run and never derive it again. The host page supplies overrides for those
entries; they are serialized into a `<meta>` tag and a small script that
patches the storage read primitives inside the iframe document.

Intercept configuration (as received from the host page)::

    {
        "indexedDB": {
            "database": "actual",
            "intercepts": [{"store": "asyncStorage", "key": "server-url", "value": "..."}],
        },
        "localStorage": {
            "intercepts": [
                {"key": "theme", "value": "dark"},
                {"key": "jellyfin_credentials", "jsonPatch": {"Servers.0.ManualAddress": "..."}},
            ],
        },
    }
"""

import json
import logging
import re
from typing import Any

from flask import current_app
from markupsafe import escape

from .routing import INTERCEPT_META_NAME

logger = logging.getLogger(__name__)

INTERCEPT_TEMPLATE = "intercept.html"

_HEAD_RE = re.compile(r"<head(?:\s[^>]*)?>", re.IGNORECASE)
_DOCTYPE_RE = re.compile(r"<!DOCTYPE[^>]*>", re.IGNORECASE)


def build_indexeddb_intercept_map(config: dict[str, Any]) -> dict[str, Any]:
    """Build `{database: {store: {key: value}}}` from an IndexedDB intercept section."""
    stores: dict[str, dict[str, Any]] = {}
    for entry in config.get("intercepts") or []:
        stores.setdefault(entry["store"], {})[entry["key"]] = entry["value"]
    return {config["database"]: stores}


def build_localstorage_intercept_map(config: dict[str, Any]) -> dict[str, Any]:
    """Build `{key: {"value": ...} | {"jsonPatch": {...}}}` from a localStorage section."""
    result: dict[str, Any] = {}
    for entry in config.get("intercepts") or []:
        if "jsonPatch" in entry:
            result[entry["key"]] = {"jsonPatch": entry["jsonPatch"]}
        else:
            result[entry["key"]] = {"value": entry.get("value")}
    return result


def _has_intercepts(section: dict[str, Any] | None) -> bool:
    return bool(section and section.get("intercepts"))


def is_empty_config(config: dict[str, Any] | None) -> bool:
    """True when a configuration carries no overrides in either store."""
    if not config:
        return True
    return not (
        _has_intercepts(config.get("indexedDB"))
        or _has_intercepts(config.get("localStorage"))
    )


def build_script_config(config: dict[str, Any] | None) -> dict[str, Any] | None:
    """Build the payload read by the injected script, or None if there is nothing to intercept."""
    if is_empty_config(config):
        return None

    script_config: dict[str, Any] = {}
    indexed_db = config.get("indexedDB")
    if _has_intercepts(indexed_db):
        script_config["indexedDB"] = build_indexeddb_intercept_map(indexed_db)

    local_storage = config.get("localStorage")
    if _has_intercepts(local_storage):
        script_config["localStorage"] = build_localstorage_intercept_map(local_storage)

    return script_config


def build_injection_payload(config: dict[str, Any] | None) -> str | None:
    """Render the `<meta>` config tag and intercept script for a configuration.

    Must run inside an application context (the script is a template).

    Returns:
        The HTML fragment to inject, or None when the configuration is empty
    """
    script_config = build_script_config(config)
    if script_config is None:
        return None

    config_json = json.dumps(script_config, separators=(",", ":"))
    template = current_app.jinja_env.get_template(INTERCEPT_TEMPLATE)
    return template.render(
        meta_name=INTERCEPT_META_NAME,
        config_attr=escape(config_json),
    )


def inject_into_html(html: str, config: dict[str, Any] | None) -> str:
    """Insert the intercept payload so it runs before any app script.

    Goes right after `<head>`, else after `<!DOCTYPE>`, else at the very start.
    """
    payload = build_injection_payload(config)
    if not payload:
        return html

    head_match = _HEAD_RE.search(html)
    if head_match:
        insert_pos = head_match.end()
        return html[:insert_pos] + payload + html[insert_pos:]

    doctype_match = _DOCTYPE_RE.search(html)
    if doctype_match:
        insert_pos = doctype_match.end()
        return html[:insert_pos] + payload + html[insert_pos:]

    return payload + html
