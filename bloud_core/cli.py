"""Unified CLI for the bloud gateway.

Offline tools for inspecting routing decisions and intercept payloads,
plus a single-threaded server runner.

Key features:
- Classify a path or resolve a full request URL against an app context
- Render the intercept payload for a configuration, optionally into a page
- Turn an app's metadata.yaml bootstrap section into an intercept configuration
"""

import json
import sys
from pathlib import Path

import click
import yaml

from services.bootstrap import load_app_intercepts
from services.context import GatewayContext
from services.inject import build_injection_payload, inject_into_html
from services.paths import classify_path, url_origin
from services.resolver import get_client_action, get_request_action
from services.routing import AUTHENTIK_PROXY_PATH
from services.validation import ValidationError, validate_intercept_config


def load_config_file(path: Path) -> dict | None:
    """Load an intercept configuration from a JSON or YAML file.

    Raises:
        ValidationError: if the file cannot be parsed or the configuration is invalid
    """
    try:
        # YAML is a superset of JSON
        config = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid configuration file: {e!s}") from e

    is_valid, error = validate_intercept_config(config)
    if not is_valid:
        raise ValidationError(error)
    return config


@click.group()
@click.version_option(package_name="bloud-gateway")
def cli():
    """bloud - embedding gateway for platform apps."""


# === Routing ===
@cli.command()
@click.argument("path")
def classify(path: str):
    """Classify a URL path as a platform, embed or root route."""
    classification = classify_path(path)
    click.echo(f"{classification.kind} {classification.app_name or '-'}")


@cli.command()
@click.argument("url")
@click.option("--origin", help="Public origin (default: the URL's own origin)")
@click.option("--active-app", help="App currently in the foreground")
@click.option(
    "--no-rewrite",
    is_flag=True,
    help="The active app honours its base path and needs no rewriting",
)
@click.option("--client-app", help="App owning the requesting client")
@click.option(
    "--auth-proxy-path",
    default=AUTHENTIK_PROXY_PATH,
    show_default=True,
    help="Path prefix of the identity provider's proxy",
)
def resolve(
    url: str,
    origin: str | None,
    active_app: str | None,
    no_rewrite: bool,
    client_app: str | None,
    auth_proxy_path: str,
):
    """Print the action the gateway would take for URL as JSON."""
    try:
        origin = url_origin(origin or url)
    except ValueError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    context = GatewayContext()
    context.set_active_app(active_app, needs_rewrite=not no_rewrite)

    result = get_client_action(url, origin, context, client_app, auth_proxy_path)
    if result is None:
        result = get_request_action(url, origin, context)

    click.echo(json.dumps(result.to_dict(), indent=2))


# === Intercepts ===
@cli.command()
@click.argument(
    "config_file", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--html",
    "html_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="HTML document to inject the payload into",
)
def inject(config_file: Path, html_file: Path | None):
    """Render the intercept payload for CONFIG_FILE (JSON or YAML)."""
    from . import create_app

    try:
        config = load_config_file(config_file)
    except ValidationError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    app = create_app()
    with app.app_context():
        if html_file is not None:
            click.echo(inject_into_html(html_file.read_text(encoding="utf-8"), config))
            return

        payload = build_injection_payload(config)

    if payload is None:
        click.echo("⚠️  Configuration has no intercepts, nothing to inject", err=True)
        return
    click.echo(payload)


@cli.command()
@click.argument(
    "metadata_file", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option("--origin", required=True, help="Public origin of the platform")
def intercepts(metadata_file: Path, origin: str):
    """Build the intercept configuration declared by an app's metadata.yaml."""
    try:
        config = load_app_intercepts(str(metadata_file), url_origin(origin))
    except (ValidationError, ValueError) as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(config, indent=2))


# === Development ===
@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=5001, show_default=True, type=int)
def run(host: str, port: int):
    """Start the gateway, handling one request at a time."""
    from . import create_app

    click.echo(f"🚀 Starting bloud gateway on {host}:{port}...")
    app = create_app()
    app.run(host=host, port=port, threaded=False)


if __name__ == "__main__":
    cli()
