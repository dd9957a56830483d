"""Validation of control-plane payloads.

Control messages come from the trusted host page, but they still cross an
HTTP boundary, so malformed input is rejected before it can reach the
gateway context.
"""

import re
from typing import Any

from .routing import RESERVED_SEGMENTS, MessageType


class ValidationError(Exception):
    """Raised when input validation fails."""


_APP_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")


def validate_app_name(app_name: Any) -> tuple[bool, str | None]:
    """Validate an app name used as an embed namespace.

    Args:
        app_name: The app name to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not app_name:
        return False, "App name is required"

    if not isinstance(app_name, str):
        return False, "App name must be a string"

    if len(app_name) > 64:
        return False, "App name must be 64 characters or less"

    # Must fit in a single path segment
    if not _APP_NAME_RE.match(app_name):
        return (
            False,
            "App name can only contain letters, numbers, dots, hyphens, and underscores",
        )

    if app_name in RESERVED_SEGMENTS:
        return False, f"'{app_name}' is a reserved path segment"

    return True, None


def validate_client_id(client_id: Any) -> tuple[bool, str | None]:
    """Validate an opaque client identifier."""
    if not client_id:
        return False, "Client id is required"

    if not isinstance(client_id, str):
        return False, "Client id must be a string"

    if len(client_id) > 256:
        return False, "Client id must be 256 characters or less"

    return True, None


def _validate_indexeddb_section(section: Any) -> tuple[bool, str | None]:
    if not isinstance(section, dict):
        return False, "indexedDB must be an object"

    database = section.get("database")
    if not isinstance(database, str) or not database:
        return False, "indexedDB.database must be a non-empty string"

    intercepts = section.get("intercepts", [])
    if not isinstance(intercepts, list):
        return False, "indexedDB.intercepts must be a list"

    for i, entry in enumerate(intercepts):
        if not isinstance(entry, dict):
            return False, f"indexedDB.intercepts[{i}] must be an object"
        for field in ("store", "key"):
            if not isinstance(entry.get(field), str) or not entry.get(field):
                return False, f"indexedDB.intercepts[{i}].{field} must be a non-empty string"
        if "value" not in entry:
            return False, f"indexedDB.intercepts[{i}].value is required"

    return True, None


def _validate_localstorage_section(section: Any) -> tuple[bool, str | None]:
    if not isinstance(section, dict):
        return False, "localStorage must be an object"

    intercepts = section.get("intercepts", [])
    if not isinstance(intercepts, list):
        return False, "localStorage.intercepts must be a list"

    for i, entry in enumerate(intercepts):
        if not isinstance(entry, dict):
            return False, f"localStorage.intercepts[{i}] must be an object"
        if not isinstance(entry.get("key"), str) or not entry.get("key"):
            return False, f"localStorage.intercepts[{i}].key must be a non-empty string"

        has_value = "value" in entry
        has_patch = "jsonPatch" in entry
        if has_value == has_patch:
            return (
                False,
                f"localStorage.intercepts[{i}] needs exactly one of 'value' or 'jsonPatch'",
            )
        if has_patch:
            patch = entry["jsonPatch"]
            if not isinstance(patch, dict) or not patch:
                return False, f"localStorage.intercepts[{i}].jsonPatch must be a non-empty object"
            for path in patch:
                if not isinstance(path, str) or "" in path.split("."):
                    return False, f"Invalid jsonPatch path '{path}'"

    return True, None


def validate_intercept_config(config: Any) -> tuple[bool, str | None]:
    """Validate an intercept configuration (None clears it and is valid).

    Returns:
        Tuple of (is_valid, error_message)
    """
    if config is None:
        return True, None

    if not isinstance(config, dict):
        return False, "Intercept config must be an object"

    unknown = set(config) - {"indexedDB", "localStorage"}
    if unknown:
        return False, f"Unknown intercept sections: {', '.join(sorted(unknown))}"

    if "indexedDB" in config:
        is_valid, error = _validate_indexeddb_section(config["indexedDB"])
        if not is_valid:
            return False, error

    if "localStorage" in config:
        is_valid, error = _validate_localstorage_section(config["localStorage"])
        if not is_valid:
            return False, error

    return True, None


def validate_control_message(message: Any) -> tuple[bool, str | None]:
    """Validate a control message from the host page.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(message, dict):
        return False, "Message must be a JSON object"

    message_type = message.get("type")
    if not message_type:
        return False, "Message type is required"

    if message_type not in MessageType.ALL:
        return False, f"Unknown message type '{message_type}'"

    if message_type == MessageType.SET_ACTIVE_APP:
        app_name = message.get("appName")
        if app_name is not None:
            is_valid, error = validate_app_name(app_name)
            if not is_valid:
                return False, error
        needs_rewrite = message.get("needsRewrite", True)
        if not isinstance(needs_rewrite, bool):
            return False, "needsRewrite must be a boolean"
        return True, None

    if message_type == MessageType.SET_INTERCEPTS:
        return validate_intercept_config(message.get("config"))

    return validate_client_id(message.get("clientId"))
