"""Fixtures for MCP server tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest

from azdo_mcp.client import AzureDevOpsClient


@pytest.fixture
async def mcp_client(client: AzureDevOpsClient) -> AsyncGenerator[AzureDevOpsClient, None]:
    """Install the fake-backed client in the MCP module globals."""
    import azdo_mcp.mcp_server as mcp_mod

    original = (mcp_mod.client, mcp_mod.resolver, mcp_mod.content_timeout)
    mcp_mod.configure(client)

    yield client

    mcp_mod.client, mcp_mod.resolver, mcp_mod.content_timeout = original
