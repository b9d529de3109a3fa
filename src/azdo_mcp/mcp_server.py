"""MCP server for Azure DevOps.

Exposes work items, repositories, pull requests and test plans as MCP
tools.  Tool definitions and handlers live in ``azdo_mcp.mcp_tools``; this
module owns the process-wide client, the dispatch shell and the stdio
transport.

Usage:
    azdo-mcp stdio                                   # settings from env / .env / IDE settings
    azdo-mcp --org-url https://dev.azure.com/acme --token ... stdio
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from collections.abc import Callable
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, Tool

from azdo_mcp.chunking import Deadline
from azdo_mcp.client import AzureDevOpsClient
from azdo_mcp.config import Settings
from azdo_mcp.content import FileContentResolver
from azdo_mcp.errors import AzdoError
from azdo_mcp.mcp_tools import files, git, test_plans, work_items
from azdo_mcp.mcp_tools.common import _error

server = Server("azdo-mcp")
client: AzureDevOpsClient | None = None
resolver: FileContentResolver | None = None
# Deadline for file-content tools; None means no deadline (stdio).
content_timeout: float | None = None
_logger = logging.getLogger(__name__)


def _collect_tools() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    all_tools: list[Tool] = []
    all_handlers: dict[str, Callable[..., Any]] = {}
    for module in (work_items, git, files, test_plans):
        tools, handlers = module.register()
        all_tools.extend(tools)
        all_handlers.update(handlers)
    return all_tools, all_handlers


_tools, _handlers = _collect_tools()


def configure(new_client: AzureDevOpsClient, *, timeout: float | None = None) -> None:
    """Install *new_client* as the process-wide upstream connection."""
    global client, resolver, content_timeout
    client = new_client
    resolver = FileContentResolver(new_client)
    content_timeout = timeout


def _get_client() -> AzureDevOpsClient:
    if client is None:
        msg = "Azure DevOps client not initialized"
        raise RuntimeError(msg)
    return client


def _get_resolver() -> FileContentResolver:
    if resolver is None:
        msg = "Azure DevOps client not initialized"
        raise RuntimeError(msg)
    return resolver


def _content_deadline() -> Deadline:
    return Deadline(content_timeout)


# ---------------------------------------------------------------------------
# Tool listing and dispatch
# ---------------------------------------------------------------------------


@server.list_tools()  # type: ignore[untyped-decorator,no-untyped-call]
async def list_tools() -> list[Tool]:
    return list(_tools)


@server.call_tool()  # type: ignore[untyped-decorator]
async def call_tool(name: str, arguments: dict[str, Any] | None) -> CallToolResult:
    """Run one tool. Failures come back as ``isError`` envelopes, never as exceptions."""
    arguments = arguments or {}
    handler = _handlers.get(name)
    if handler is None:
        return _error(f"Unknown tool: {name}", "unknown_tool")

    t0 = time.monotonic()
    try:
        result = await handler(arguments)
    except AzdoError as exc:
        _logger.warning("tool_error", extra={"tool": name, "args_data": arguments, "error": str(exc)})
        return _error(str(exc), exc.code)
    except ValueError as exc:
        _logger.warning("tool_error", extra={"tool": name, "args_data": arguments, "error": str(exc)})
        return _error(str(exc), "validation_error")
    except Exception as exc:
        _logger.error("tool_error", extra={"tool": name, "args_data": arguments}, exc_info=True)
        return _error(f"Unexpected error in {name}: {exc}", "internal_error")

    duration_ms = round((time.monotonic() - t0) * 1000, 1)
    _logger.info("tool_call", extra={"tool": name, "args_data": arguments, "duration_ms": duration_ms})
    if isinstance(result, CallToolResult):
        return result
    return CallToolResult(content=result, isError=False)


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


async def initialize(settings: Settings, **client_kwargs: Any) -> AzureDevOpsClient:
    """Validate *settings* and return a connected client. Raises AzdoError on failure."""
    settings.validate()
    new_client = AzureDevOpsClient.from_settings(settings, **client_kwargs)
    await new_client.connect()
    return new_client


async def _run_stdio(settings: Settings) -> None:
    new_client = await initialize(settings)
    configure(new_client)
    _logger.info(
        "mcp_server_start",
        extra={"tool": "server", "args_data": {"transport": "stdio", "organization": settings.organization_url}},
    )
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await new_client.aclose()


def run_stdio(settings: Settings) -> None:
    """Serve MCP over stdin/stdout until the client disconnects. Exits 1 if startup fails."""
    try:
        asyncio.run(_run_stdio(settings))
    except AzdoError as exc:
        _logger.error("mcp_server_failed", extra={"tool": "server", "error": str(exc)})
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass
