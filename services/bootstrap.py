"""Build intercept configurations from app catalog metadata.

Each catalog app may declare a `bootstrap` section in its metadata.yaml::

    name: actual-budget
    bootstrap:
      indexedDB:
        database: actual
        intercepts:
          - store: asyncStorage
            key: server-url
            value: "{{embedUrl}}"
      localStorage:
        intercepts:
          - key: jellyfin_credentials
            jsonPatch:
              Servers.0.ManualAddress: "{{embedUrl}}"

`{{key}}` placeholders are filled from the metadata itself plus the runtime
values `origin` and `embedUrl`. Unknown placeholders are kept verbatim.
"""

import re
from typing import Any

import yaml

from .paths import get_embed_url
from .validation import ValidationError, validate_intercept_config

_TEMPLATE_RE = re.compile(r"\{\{(\w+)\}\}")


def substitute_templates(value: Any, variables: dict[str, Any]) -> Any:
    """Replace `{{key}}` placeholders in strings, recursing into dicts and lists."""
    if isinstance(value, str):

        def _replace(match: re.Match) -> str:
            key = match.group(1)
            if key in variables:
                return str(variables[key])
            return match.group(0)

        return _TEMPLATE_RE.sub(_replace, value)
    if isinstance(value, dict):
        return {k: substitute_templates(v, variables) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_templates(v, variables) for v in value]
    return value


def template_variables(metadata: dict[str, Any], origin: str) -> dict[str, Any]:
    """Template variables: every scalar metadata field, plus `origin` and `embedUrl`."""
    variables = {
        key: value
        for key, value in metadata.items()
        if isinstance(value, str | int | float | bool)
    }
    origin = origin.rstrip("/")
    variables["origin"] = origin
    variables["embedUrl"] = origin + get_embed_url(metadata["name"]).rstrip("/")
    return variables


def intercepts_from_metadata(
    metadata: dict[str, Any], origin: str
) -> dict[str, Any] | None:
    """Build the intercept configuration declared by an app's metadata.

    Returns:
        The configuration, or None if the app declares no intercepts

    Raises:
        ValidationError: if the metadata is missing a name or the bootstrap
            section is malformed
    """
    if not isinstance(metadata, dict) or not metadata.get("name"):
        raise ValidationError("App metadata must contain a 'name'")

    bootstrap = metadata.get("bootstrap") or {}
    if not isinstance(bootstrap, dict):
        raise ValidationError("'bootstrap' must be a mapping")

    for section in ("indexedDB", "localStorage"):
        if bootstrap.get(section) is not None and not isinstance(bootstrap[section], dict):
            raise ValidationError(f"'bootstrap.{section}' must be a mapping")

    variables = template_variables(metadata, origin)
    config: dict[str, Any] = {}

    indexed_db = bootstrap.get("indexedDB")
    if indexed_db and indexed_db.get("intercepts"):
        config["indexedDB"] = {
            "database": indexed_db.get("database"),
            "intercepts": substitute_templates(indexed_db["intercepts"], variables),
        }

    local_storage = bootstrap.get("localStorage")
    if local_storage and local_storage.get("intercepts"):
        config["localStorage"] = {
            "intercepts": substitute_templates(local_storage["intercepts"], variables),
        }

    if not config:
        return None

    is_valid, error = validate_intercept_config(config)
    if not is_valid:
        raise ValidationError(error)
    return config


def load_app_intercepts(metadata_path: str, origin: str) -> dict[str, Any] | None:
    """Load an app's metadata.yaml and build its intercept configuration.

    Raises:
        ValidationError: if the file is not valid YAML or the metadata is malformed
    """
    try:
        with open(metadata_path, encoding="utf-8") as f:
            metadata = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML format: {e!s}") from e

    return intercepts_from_metadata(metadata, origin)
