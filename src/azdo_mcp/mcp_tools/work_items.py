"""MCP tools for projects and work items."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mcp.types import Tool

from azdo_mcp.client import WORK_ITEM_BATCH_SIZE
from azdo_mcp.mcp_tools.common import ToolResult, _error, _parse_args, _require_int, _text
from azdo_mcp.truncation import truncate_response
from azdo_mcp.types.inputs import GetWorkItemArgs, GetWorkItemsArgs
from azdo_mcp.work_items import get_linked_work_items, get_work_item_attachments, get_work_item_links

_ID_SCHEMA = {
    "type": "object",
    "properties": {"id": {"type": "integer", "minimum": 1, "description": "Work item ID"}},
    "required": ["id"],
}


def register() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    """Return (tool_definitions, handler_map) for project and work item tools."""
    tools = [
        Tool(
            name="list_projects",
            description="List all projects in the Azure DevOps organization.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="get_work_item",
            description="Get a work item by ID, including all fields.",
            inputSchema=_ID_SCHEMA,
        ),
        Tool(
            name="get_work_items",
            description=(
                f"Get several work items by ID (fetched in batches of {WORK_ITEM_BATCH_SIZE}). "
                "Large results are truncated; request fewer IDs for full details."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "ids": {
                        "type": "array",
                        "items": {"type": "integer", "minimum": 1},
                        "minItems": 1,
                        "description": "Work item IDs",
                    },
                },
                "required": ["ids"],
            },
        ),
        Tool(
            name="get_work_item_attachments",
            description="List files and hyperlinks attached to a work item.",
            inputSchema=_ID_SCHEMA,
        ),
        Tool(
            name="get_work_item_links",
            description="List a work item's relations to other work items (parent, child, related, ...).",
            inputSchema=_ID_SCHEMA,
        ),
        Tool(
            name="get_linked_work_items",
            description="Get every work item linked to a work item, with the link that connects them.",
            inputSchema=_ID_SCHEMA,
        ),
    ]

    handlers: dict[str, Callable[..., Any]] = {
        "list_projects": _handle_list_projects,
        "get_work_item": _handle_get_work_item,
        "get_work_items": _handle_get_work_items,
        "get_work_item_attachments": _handle_get_work_item_attachments,
        "get_work_item_links": _handle_get_work_item_links,
        "get_linked_work_items": _handle_get_linked_work_items,
    }
    return tools, handlers


async def _handle_list_projects(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    return _text(await _get_client().get_projects())


async def _handle_get_work_item(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, GetWorkItemArgs)
    work_item_id = args.get("id")
    if (err := _require_int(work_item_id, "id")) is not None:
        return err
    return _text(await _get_client().get_work_item(work_item_id))


async def _handle_get_work_items(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, GetWorkItemsArgs)
    ids = args.get("ids")
    if not isinstance(ids, list) or not ids:
        return _error("ids must be a non-empty list of integers")
    for work_item_id in ids:
        if (err := _require_int(work_item_id, "ids[]")) is not None:
            return err
    items = await _get_client().get_work_items(ids)
    return _text(truncate_response(items))


async def _handle_get_work_item_attachments(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, GetWorkItemArgs)
    work_item_id = args.get("id")
    if (err := _require_int(work_item_id, "id")) is not None:
        return err
    attachments = await get_work_item_attachments(_get_client(), work_item_id)
    return _text([a.to_dict() for a in attachments])


async def _handle_get_work_item_links(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, GetWorkItemArgs)
    work_item_id = args.get("id")
    if (err := _require_int(work_item_id, "id")) is not None:
        return err
    return _text(await get_work_item_links(_get_client(), work_item_id))


async def _handle_get_linked_work_items(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, GetWorkItemArgs)
    work_item_id = args.get("id")
    if (err := _require_int(work_item_id, "id")) is not None:
        return err
    return _text(truncate_response(await get_linked_work_items(_get_client(), work_item_id)))
