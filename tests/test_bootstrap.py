"""Tests for building intercepts from app catalog metadata."""

import pytest

from services.bootstrap import (
    intercepts_from_metadata,
    load_app_intercepts,
    substitute_templates,
    template_variables,
)
from services.validation import ValidationError

ORIGIN = "http://localhost"

ACTUAL_METADATA = """
name: actual-budget
displayName: Actual Budget
port: 5006
bootstrap:
  indexedDB:
    database: actual
    intercepts:
      - store: asyncStorage
        key: server-url
        value: "{{embedUrl}}"
"""

JELLYFIN_METADATA = """
name: jellyfin
bootstrap:
  localStorage:
    intercepts:
      - key: jellyfin_credentials
        jsonPatch:
          Servers.0.ManualAddress: "{{embedUrl}}"
          Servers.0.Name: "{{displayName}}"
"""


def test_substitute_templates_recurses():
    value = {"a": ["{{x}}", {"b": "pre-{{x}}-{{y}}"}], "c": 3}
    assert substitute_templates(value, {"x": "1", "y": 2}) == {
        "a": ["1", {"b": "pre-1-2"}],
        "c": 3,
    }


def test_unknown_placeholders_kept():
    assert substitute_templates("{{missing}}/x", {"x": "1"}) == "{{missing}}/x"


def test_template_variables():
    variables = template_variables({"name": "radarr", "port": 7878, "tags": []}, ORIGIN + "/")
    assert variables["origin"] == ORIGIN
    assert variables["embedUrl"] == f"{ORIGIN}/embed/radarr"
    assert variables["port"] == 7878
    assert "tags" not in variables


def test_indexeddb_bootstrap(tmp_path):
    metadata_file = tmp_path / "metadata.yaml"
    metadata_file.write_text(ACTUAL_METADATA)

    config = load_app_intercepts(str(metadata_file), ORIGIN)

    assert config == {
        "indexedDB": {
            "database": "actual",
            "intercepts": [
                {
                    "store": "asyncStorage",
                    "key": "server-url",
                    "value": f"{ORIGIN}/embed/actual-budget",
                }
            ],
        }
    }


def test_localstorage_bootstrap_unknown_key_kept(tmp_path):
    metadata_file = tmp_path / "metadata.yaml"
    metadata_file.write_text(JELLYFIN_METADATA)

    config = load_app_intercepts(str(metadata_file), ORIGIN)

    patch = config["localStorage"]["intercepts"][0]["jsonPatch"]
    assert patch["Servers.0.ManualAddress"] == f"{ORIGIN}/embed/jellyfin"
    assert patch["Servers.0.Name"] == "{{displayName}}"


def test_no_bootstrap_section():
    assert intercepts_from_metadata({"name": "miniflux"}, ORIGIN) is None


def test_missing_name():
    with pytest.raises(ValidationError):
        intercepts_from_metadata({"bootstrap": {}}, ORIGIN)


def test_invalid_bootstrap_entry():
    metadata = {
        "name": "broken",
        "bootstrap": {"localStorage": {"intercepts": [{"key": "k"}]}},
    }
    with pytest.raises(ValidationError, match="exactly one"):
        intercepts_from_metadata(metadata, ORIGIN)


def test_invalid_yaml(tmp_path):
    metadata_file = tmp_path / "metadata.yaml"
    metadata_file.write_text("name: x\nbootstrap: [unclosed\n")

    with pytest.raises(ValidationError, match="Invalid YAML format"):
        load_app_intercepts(str(metadata_file), ORIGIN)
