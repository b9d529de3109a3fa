"""Shared pytest fixtures for azdo-mcp tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx
import pytest

from azdo_mcp.client import AzureDevOpsClient
from azdo_mcp.content import FileContentResolver
from tests._upstream import ORG_URL, PROJECT, FakeAzureDevOps


@pytest.fixture
def upstream() -> FakeAzureDevOps:
    """Fresh fake Azure DevOps API for each test."""
    return FakeAzureDevOps()


@pytest.fixture
async def client(upstream: FakeAzureDevOps) -> AsyncGenerator[AzureDevOpsClient, None]:
    """Client wired to the fake upstream, default project ``Web``."""
    c = AzureDevOpsClient(
        ORG_URL,
        "test-pat",
        default_project=PROJECT,
        transport=httpx.MockTransport(upstream),
    )
    yield c
    await c.aclose()


@pytest.fixture
def resolver(client: AzureDevOpsClient) -> FileContentResolver:
    return FileContentResolver(client)
