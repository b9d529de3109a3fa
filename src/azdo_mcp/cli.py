"""CLI for azdo-mcp.

Settings come from (lowest to highest) defaults, the environment / ``.env``,
VS Code or Cursor ``settings.json``, and the global options below.

Usage:
    azdo-mcp                                     # stdio transport (default)
    azdo-mcp stdio                               # same, explicitly
    azdo-mcp serve --port 3000                   # HTTP/SSE transport
    azdo-mcp test-connection                     # Verify org URL and token
    azdo-mcp show-config                         # Print merged settings (token masked)
    azdo-mcp --org-url https://dev.azure.com/acme --token XXX --project Web serve
"""

from __future__ import annotations

import asyncio
import json as json_mod
import sys
from typing import Any

import click

from azdo_mcp import __version__
from azdo_mcp.config import VALID_LOG_LEVELS, Settings, load_settings
from azdo_mcp.errors import AzdoError
from azdo_mcp.logging import setup_logging


def _settings(ctx: click.Context, **extra: Any) -> Settings:
    """Merge every configuration source; exit 1 on invalid values."""
    overrides = {**ctx.obj["overrides"], **extra}
    try:
        return load_settings(overrides)
    except AzdoError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="azdo-mcp")
@click.option("--org-url", default=None, help="Organization URL, e.g. https://dev.azure.com/acme")
@click.option("--token", default=None, help="Personal access token")
@click.option("--project", default=None, help="Default project for tools that take one")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(sorted(VALID_LOG_LEVELS), case_sensitive=False),
    help="Log level (default: info)",
)
@click.pass_context
def cli(ctx: click.Context, org_url: str | None, token: str | None, project: str | None, log_level: str | None) -> None:
    """azdo-mcp: Azure DevOps as MCP tools."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {
        "organization_url": org_url,
        "token": token,
        "project": project,
        "log_level": log_level,
    }
    if ctx.invoked_subcommand is None:
        ctx.invoke(stdio)


@cli.command()
@click.pass_context
def stdio(ctx: click.Context) -> None:
    """Serve MCP over stdin/stdout."""
    from azdo_mcp.mcp_server import run_stdio

    settings = _settings(ctx)
    setup_logging(settings.log_level, settings.log_file)
    run_stdio(settings)


@cli.command()
@click.option("--host", default=None, help="Bind address (default: localhost)")
@click.option("--port", default=None, type=int, help="Port (default: 3000)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Serve MCP over HTTP/SSE."""
    from azdo_mcp.sse_server import run_sse

    settings = _settings(ctx, host=host, port=port)
    setup_logging(settings.log_level, settings.log_file)
    click.echo(f"azdo-mcp {settings.version}: http://{settings.host}:{settings.port}/sse", err=True)
    run_sse(settings)


@cli.command("test-connection")
@click.pass_context
def test_connection(ctx: click.Context) -> None:
    """Check that the organization URL and token are accepted."""
    from azdo_mcp.client import AzureDevOpsClient

    settings = _settings(ctx)

    async def _check() -> None:
        async with AzureDevOpsClient.from_settings(settings) as client:
            await client.test_connection()

    try:
        settings.validate()
        asyncio.run(_check())
    except AzdoError as e:
        click.echo(f"Connection failed: {e}", err=True)
        sys.exit(1)
    click.echo(f"Connected to {settings.organization_url}")


@cli.command("show-config")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def show_config(ctx: click.Context, as_json: bool) -> None:
    """Print the merged settings with the token masked."""
    data = _settings(ctx).redacted()
    if as_json:
        click.echo(json_mod.dumps(data, indent=2))
        return
    for key, value in data.items():
        click.echo(f"{key}: {value if value is not None else '-'}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
