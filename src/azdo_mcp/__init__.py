"""azdo-mcp: Azure DevOps work items, repos, pull requests and test plans as MCP tools."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("azdo-mcp")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from azdo_mcp.client import AzureDevOpsClient
from azdo_mcp.content import FileContentResolver

__all__ = ["AzureDevOpsClient", "FileContentResolver", "__version__"]
