"""Tests for the bloud CLI."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from bloud_core.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


class TestClassify:
    def test_embed_path(self, runner):
        result = runner.invoke(cli, ["classify", "/embed/radarr/movies"])
        assert result.exit_code == 0
        assert result.output.strip() == "embed radarr"

    def test_platform_path(self, runner):
        result = runner.invoke(cli, ["classify", "/api/apps"])
        assert result.output.strip() == "bloud -"


class TestResolve:
    def test_root_request_with_active_app(self, runner):
        result = runner.invoke(
            cli,
            ["resolve", "http://localhost/install.html", "--active-app", "actual-budget"],
        )
        assert result.exit_code == 0
        assert json.loads(result.output) == {
            "action": "fetch",
            "type": "root",
            "fetchUrl": "http://localhost/embed/actual-budget/install.html",
            "appName": "actual-budget",
        }

    def test_no_rewrite(self, runner):
        result = runner.invoke(
            cli,
            [
                "resolve",
                "http://localhost/install.html",
                "--active-app",
                "actual-budget",
                "--no-rewrite",
            ],
        )
        assert json.loads(result.output)["reason"] == "no-app-context"

    def test_client_app_owns_reserved_path(self, runner):
        result = runner.invoke(
            cli,
            ["resolve", "http://localhost/api/v3/movie", "--client-app", "radarr"],
        )
        assert json.loads(result.output)["fetchUrl"] == (
            "http://localhost/embed/radarr/api/v3/movie"
        )

    def test_client_app_respects_auth_proxy_path(self, runner):
        args = ["resolve", "http://localhost/sso/start", "--client-app", "radarr"]

        rewritten = runner.invoke(cli, args)
        skipped = runner.invoke(cli, [*args, "--auth-proxy-path", "/sso"])

        assert json.loads(rewritten.output)["fetchUrl"] == (
            "http://localhost/embed/radarr/sso/start"
        )
        assert json.loads(skipped.output) == {"action": "passthrough", "reason": "no-app-context"}

    def test_cross_origin(self, runner):
        result = runner.invoke(
            cli,
            ["resolve", "https://cdn.test/x.js", "--origin", "http://localhost"],
        )
        assert json.loads(result.output) == {
            "action": "passthrough",
            "reason": "cross-origin",
        }

    def test_relative_url_rejected(self, runner):
        result = runner.invoke(cli, ["resolve", "/install.html"])
        assert result.exit_code == 1


class TestInject:
    def test_payload_from_yaml(self, runner, flask_app, tmp_path):
        config_file = tmp_path / "intercepts.yaml"
        config_file.write_text(
            "localStorage:\n  intercepts:\n    - key: theme\n      value: dark\n"
        )

        with patch("bloud_core.create_app", return_value=flask_app):
            result = runner.invoke(cli, ["inject", str(config_file)])

        assert result.exit_code == 0
        assert result.output.startswith('<meta name="bloud-intercept-config"')

    def test_inject_into_document(self, runner, flask_app, tmp_path):
        config_file = tmp_path / "intercepts.json"
        config_file.write_text(
            json.dumps({"localStorage": {"intercepts": [{"key": "k", "value": "v"}]}})
        )
        html_file = tmp_path / "index.html"
        html_file.write_text("<!DOCTYPE html><html><head></head><body></body></html>")

        with patch("bloud_core.create_app", return_value=flask_app):
            result = runner.invoke(cli, ["inject", str(config_file), "--html", str(html_file)])

        assert result.exit_code == 0
        assert "<head><meta name=\"bloud-intercept-config\"" in result.output

    def test_invalid_config(self, runner, tmp_path):
        config_file = tmp_path / "bad.json"
        config_file.write_text(json.dumps({"cookies": {}}))

        result = runner.invoke(cli, ["inject", str(config_file)])

        assert result.exit_code == 1
        assert "cookies" in result.output


class TestIntercepts:
    def test_metadata_bootstrap(self, runner, tmp_path):
        metadata = tmp_path / "metadata.yaml"
        metadata.write_text(
            "name: actual-budget\n"
            "bootstrap:\n"
            "  indexedDB:\n"
            "    database: actual\n"
            "    intercepts:\n"
            "      - store: asyncStorage\n"
            "        key: server-url\n"
            "        value: '{{embedUrl}}'\n"
        )

        result = runner.invoke(
            cli, ["intercepts", str(metadata), "--origin", "https://bloud.local/"]
        )

        assert result.exit_code == 0
        config = json.loads(result.output)
        assert config["indexedDB"]["intercepts"][0]["value"] == (
            "https://bloud.local/embed/actual-budget"
        )

    def test_origin_required(self, runner, tmp_path):
        metadata = tmp_path / "metadata.yaml"
        metadata.write_text("name: x\n")
        result = runner.invoke(cli, ["intercepts", str(metadata)])
        assert result.exit_code != 0


def test_run_is_single_threaded(runner, flask_app):
    with (
        patch("bloud_core.create_app", return_value=flask_app),
        patch.object(flask_app, "run") as run,
    ):
        result = runner.invoke(cli, ["run", "--port", "9000"])

    assert result.exit_code == 0
    run.assert_called_once_with(host="127.0.0.1", port=9000, threaded=False)
