"""HTTP/SSE transport.

``GET /sse`` opens one MCP session per connection; ``POST /message`` routes a
client message to its session by ``sessionId`` (``session_id`` also
accepted).  ``GET /`` serves a small status page.
"""

from __future__ import annotations

import asyncio
import html
import logging
import signal
import sys
import uuid
from urllib.parse import parse_qsl, urlencode

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from mcp.server.sse import SseServerTransport
from starlette.responses import PlainTextResponse
from starlette.types import Receive, Scope, Send

from azdo_mcp import __version__
from azdo_mcp.chunking import CONTENT_TIMEOUT_SECONDS
from azdo_mcp.config import Settings
from azdo_mcp.errors import AzdoError
from azdo_mcp.mcp_server import configure, initialize, server

logger = logging.getLogger(__name__)

MESSAGE_PATH = "/message"

_UVICORN_LEVELS = {"warn": "warning"}


class ConnectionCounter:
    """Number of open SSE sessions, for the status page."""

    def __init__(self) -> None:
        self.active = 0


class _SseEndpoint:
    def __init__(self, transport: SseServerTransport, counter: ConnectionCounter) -> None:
        self.transport = transport
        self.counter = counter

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        self.counter.active += 1
        logger.info("sse_connect", extra={"tool": "server", "args_data": {"active": self.counter.active}})
        try:
            async with self.transport.connect_sse(scope, receive, send) as (read_stream, write_stream):
                await server.run(read_stream, write_stream, server.create_initialization_options())
        finally:
            self.counter.active -= 1
            logger.info("sse_disconnect", extra={"tool": "server", "args_data": {"active": self.counter.active}})


class _MessageEndpoint:
    def __init__(self, transport: SseServerTransport) -> None:
        self.transport = transport

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        query = dict(parse_qsl(scope.get("query_string", b"").decode("latin-1")))
        session_id = query.get("session_id") or query.get("sessionId")
        if not session_id:
            await PlainTextResponse("Missing sessionId parameter", status_code=400)(scope, receive, send)
            return
        try:
            uuid.UUID(hex=session_id)
        except ValueError:
            await PlainTextResponse("Session not found", status_code=404)(scope, receive, send)
            return

        query["session_id"] = session_id
        scope = {**scope, "query_string": urlencode(query).encode("latin-1")}
        await self.transport.handle_post_message(scope, receive, send)


def _status_page(version: str, active: int) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><title>azdo-mcp</title></head>
<body>
<h1>Azure DevOps MCP Server</h1>
<p>Version: {html.escape(version)}</p>
<p>Active connections: {active}</p>
<p>SSE endpoint: <code>/sse</code><br>Message endpoint: <code>{MESSAGE_PATH}?sessionId=&lt;id&gt;</code></p>
</body>
</html>
"""


def create_app(*, version: str = __version__) -> FastAPI:
    """Build the ASGI app. The MCP client must already be configured."""
    transport = SseServerTransport(MESSAGE_PATH)
    counter = ConnectionCounter()

    app = FastAPI(title="azdo-mcp", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.connections = counter
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", response_class=HTMLResponse)
    async def status() -> str:
        return _status_page(version, counter.active)

    app.add_route("/sse", _SseEndpoint(transport, counter), methods=["GET"])
    app.add_route(MESSAGE_PATH, _MessageEndpoint(transport), methods=["POST"])
    return app


async def _serve(settings: Settings) -> None:
    new_client = await initialize(settings)
    configure(new_client, timeout=CONTENT_TIMEOUT_SECONDS)
    app = create_app(version=settings.version)

    level = _UVICORN_LEVELS.get(settings.log_level, settings.log_level)
    config = uvicorn.Config(app, host=settings.host, port=settings.port, log_level=level)
    logger.info(
        "mcp_server_start",
        extra={"tool": "server", "args_data": {"transport": "sse", "host": settings.host, "port": settings.port}},
    )
    try:
        await uvicorn.Server(config).serve()
    finally:
        await new_client.aclose()


def run_sse(settings: Settings) -> None:
    """Serve MCP over HTTP/SSE. Exits 1 if startup fails, 0 on SIGINT/SIGTERM."""
    # uvicorn re-raises the captured signal after shutdown; make SIGTERM behave like Ctrl-C.
    signal.signal(signal.SIGTERM, signal.default_int_handler)
    try:
        asyncio.run(_serve(settings))
    except AzdoError as exc:
        logger.error("mcp_server_failed", extra={"tool": "server", "error": str(exc)})
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("mcp_server_stop", extra={"tool": "server"})