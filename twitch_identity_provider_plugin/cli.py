"""
Flask CLI commands for Twitch identity provider management.

These commands help with setup, debugging, and maintenance of the
Twitch integration.
"""

import secrets

import click
import httpx
from flask.cli import with_appcontext

from .config import PluginConfig
from .exceptions import IdentityBrokerError
from .identity_provider import AuthenticationRequest, TwitchIdentityProvider
from .mappers import MAPPER_TYPES, build_mappers


@click.group("twitch")
def twitch_cli():
    """Twitch identity provider management commands."""
    pass


@twitch_cli.command("show-config")
@with_appcontext
def show_config():
    """Display current Twitch provider configuration."""
    config = PluginConfig.from_env()
    twitch = config.twitch

    click.echo("=== Twitch Provider Configuration ===")
    click.echo(f"Alias: {twitch.alias}")
    click.echo(f"Authorization URL: {twitch.authorization_url}")
    click.echo(f"Token URL: {twitch.token_url}")
    click.echo(f"Userinfo URL: {twitch.userinfo_url}")
    click.echo(f"Redirect URI: {twitch.redirect_uri}")
    click.echo(f"Scope: {twitch.default_scope}")
    click.echo(f"Client ID: {twitch.client_id[:8] + '...' if twitch.client_id else 'Not configured'}")
    click.echo(f"Client Secret: {'Configured' if twitch.client_secret else 'Not configured'}")
    click.echo(f"HTTP Timeout: {twitch.http_timeout}s")

    click.echo("\n=== Mappers ===")
    mappers = build_mappers(config.mappers)
    if not mappers:
        click.echo("  (none)")
    for mapper in mappers:
        click.echo(f"  {mapper.id}: {_describe_mapper(mapper)}")

    click.echo("\n=== JWT Configuration ===")
    click.echo(f"Private Key File: {config.jwt.private_key_file}")
    click.echo(f"Public Key File: {config.jwt.public_key_file}")
    click.echo(f"Algorithm: {config.jwt.algorithm}")
    click.echo(f"Issuer: {config.jwt.issuer}")
    click.echo(f"Token Expiry: {config.jwt.token_expiry_hours} hours")


def _describe_mapper(mapper) -> str:
    if hasattr(mapper, "template"):
        return f"template={mapper.template}"
    return f"{mapper.json_field} -> {mapper.user_attribute}"


@twitch_cli.command("list-mappers")
def list_mappers():
    """List available mapper types and their configuration fields."""
    click.echo("=== Available Mappers ===\n")

    for mapper_id, mapper_type in MAPPER_TYPES.items():
        click.echo(f"{mapper_id} ({mapper_type.display_type}):")
        click.echo(f"  {mapper_type.help_text}")
        for prop in mapper_type.config_properties:
            default = f" [default: {prop.default_value}]" if prop.default_value else ""
            click.echo(f"  - {prop.name} ({prop.label}){default}")
        click.echo()


@twitch_cli.command("authorization-url")
@click.option("--redirect-uri", default=None, help="Redirect URI registered with Twitch")
@click.option("--state", default=None, help="State value (random if omitted)")
def authorization_url(redirect_uri, state):
    """Print the Twitch authorization URL, including the claims request."""
    config = PluginConfig.from_env()
    provider = TwitchIdentityProvider(config.twitch)

    try:
        url = provider.build_authorization_url(
            AuthenticationRequest(
                state=state or secrets.token_urlsafe(16),
                redirect_uri=redirect_uri or config.twitch.redirect_uri,
            )
        )
    except IdentityBrokerError as e:
        raise click.ClickException(str(e)) from e

    click.echo(url)


@twitch_cli.command("validate-config")
@with_appcontext
def validate_config():
    """Validate the current configuration."""
    from pathlib import Path

    config = PluginConfig.from_env()
    errors = list(config.twitch.validate())

    if not Path(config.jwt.private_key_file).exists():
        errors.append(f"JWT private key not found: {config.jwt.private_key_file}")
    if not Path(config.jwt.public_key_file).exists():
        errors.append(f"JWT public key not found: {config.jwt.public_key_file}")

    for mapping in config.mappers.attribute_mappings:
        if not mapping.json_field or not mapping.user_attribute:
            errors.append(f"Incomplete attribute mapping: {mapping}")

    if errors:
        click.echo("=== Errors ===")
        for error in errors:
            click.echo(f"  x {error}")
        click.echo(f"\nConfiguration validation failed with {len(errors)} error(s)")
        return

    click.echo("[OK] Configuration is valid!")


@twitch_cli.command("test-connection")
@with_appcontext
def test_connection():
    """Test connectivity to the Twitch endpoints."""
    config = PluginConfig.from_env()
    twitch = config.twitch

    click.echo("=== Testing Twitch Connectivity ===\n")

    endpoints = [
        ("Authorization URL", "HEAD", twitch.authorization_url),
        ("Token URL", "POST", twitch.token_url),
        ("Userinfo URL", "GET", twitch.userinfo_url),
    ]
    with httpx.Client(timeout=twitch.http_timeout, follow_redirects=True) as client:
        for label, method, url in endpoints:
            try:
                # Error statuses are expected without credentials
                client.request(method, url)
                click.echo(f"[OK] {label} reachable: {url}")
            except httpx.HTTPError as e:
                click.echo(f"[FAIL] {label}: {e}")
