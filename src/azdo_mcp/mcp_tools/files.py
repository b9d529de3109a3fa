"""MCP tools for reading file contents from pull requests and branches.

With ``returnPlainText`` (the default) the whole file is fetched in chunked
waves and returned as plain text.  Otherwise a single byte range is returned
as a FileRange JSON object.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mcp.types import CallToolResult, Tool

from azdo_mcp.chunking import CHUNK_SIZE
from azdo_mcp.errors import ContentRetrievalError
from azdo_mcp.mcp_tools.common import (
    ToolResult,
    _error,
    _first_error,
    _parse_args,
    _project_schema,
    _require_int,
    _require_str,
    _text,
    _validate_int_range,
    _validate_str,
)
from azdo_mcp.types.inputs import BranchFileContentArgs, PullRequestFileContentArgs


def _range_properties() -> dict[str, Any]:
    return {
        "returnPlainText": {
            "type": "boolean",
            "default": True,
            "description": "Return the whole file as plain text (true) or one byte range as JSON (false)",
        },
        "startPosition": {
            "type": "integer",
            "default": 0,
            "minimum": 0,
            "description": "Byte offset of the range (returnPlainText=false only)",
        },
        "length": {
            "type": "integer",
            "default": CHUNK_SIZE,
            "minimum": 1,
            "description": f"Bytes to read (returnPlainText=false only, default {CHUNK_SIZE})",
        },
    }


def register() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    """Return (tool_definitions, handler_map) for file content tools."""
    tools = [
        Tool(
            name="get_pull_request_file_content",
            description=(
                "Get the content of a file version in a pull request by blob object ID. Falls back to the "
                "pull request's source and target branches when the object ID can no longer be read. "
                "Binary files are described by size instead of returned."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "repositoryId": {"type": "string", "description": "Repository ID or name"},
                    "pullRequestId": {"type": "integer", "minimum": 1, "description": "Pull request ID"},
                    "filePath": {"type": "string", "description": "Path of the file in the repository"},
                    "objectId": {"type": "string", "description": "Blob object ID of the file version"},
                    "project": _project_schema(),
                    **_range_properties(),
                },
                "required": ["repositoryId", "pullRequestId", "filePath", "objectId"],
            },
        ),
        Tool(
            name="get_branch_file_content",
            description=(
                "Get the content of a file at the tip of a branch. "
                "Binary files are described by size instead of returned."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "repositoryId": {"type": "string", "description": "Repository ID or name"},
                    "branchName": {"type": "string", "description": "Branch name, with or without refs/heads/"},
                    "filePath": {"type": "string", "description": "Path of the file in the repository"},
                    "project": _project_schema(),
                    **_range_properties(),
                },
                "required": ["repositoryId", "branchName", "filePath"],
            },
        ),
    ]

    handlers: dict[str, Callable[..., Any]] = {
        "get_pull_request_file_content": _handle_get_pull_request_file_content,
        "get_branch_file_content": _handle_get_branch_file_content,
    }
    return tools, handlers


def _check_range_args(args: PullRequestFileContentArgs | BranchFileContentArgs) -> CallToolResult | None:
    plain = args.get("returnPlainText")
    if plain is not None and not isinstance(plain, bool):
        return _error("returnPlainText must be a boolean")
    return _first_error(
        _validate_str(args.get("project"), "project"),
        _validate_int_range(args.get("startPosition"), "startPosition", min_val=0),
        _validate_int_range(args.get("length"), "length", min_val=1),
    )


async def _handle_get_pull_request_file_content(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _content_deadline, _get_resolver

    args = _parse_args(arguments, PullRequestFileContentArgs)
    err = _first_error(
        _require_str(args.get("repositoryId"), "repositoryId"),
        _require_int(args.get("pullRequestId"), "pullRequestId"),
        _require_str(args.get("filePath"), "filePath"),
        _require_str(args.get("objectId"), "objectId"),
        _check_range_args(args),
    )
    if err is not None:
        return err

    resolver = _get_resolver()
    if args.get("returnPlainText", True):
        deadline = _content_deadline()
        try:
            text = await deadline.run(
                resolver.get_complete_pull_request_file_content(
                    args["repositoryId"],
                    args["pullRequestId"],
                    args["filePath"],
                    args["objectId"],
                    args.get("project"),
                    deadline=deadline,
                )
            )
        except ContentRetrievalError as exc:
            return _error(f"Failed to get file content: {exc}", exc.code)
        return _text(text)

    file_range = await resolver.get_pull_request_file_content(
        args["repositoryId"],
        args["pullRequestId"],
        args["filePath"],
        args["objectId"],
        args.get("startPosition", 0),
        args.get("length", CHUNK_SIZE),
        args.get("project"),
    )
    return _text(file_range.to_dict())


async def _handle_get_branch_file_content(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _content_deadline, _get_resolver

    args = _parse_args(arguments, BranchFileContentArgs)
    err = _first_error(
        _require_str(args.get("repositoryId"), "repositoryId"),
        _require_str(args.get("branchName"), "branchName"),
        _require_str(args.get("filePath"), "filePath"),
        _check_range_args(args),
    )
    if err is not None:
        return err

    resolver = _get_resolver()
    if args.get("returnPlainText", True):
        deadline = _content_deadline()
        try:
            text = await deadline.run(
                resolver.get_complete_branch_file_content(
                    args["repositoryId"],
                    args["filePath"],
                    args["branchName"],
                    args.get("project"),
                    deadline=deadline,
                )
            )
        except ContentRetrievalError as exc:
            return _error(f"Failed to get file content: {exc}", exc.code)
        return _text(text)

    file_range = await resolver.get_branch_file_content(
        args["repositoryId"],
        args["filePath"],
        args["branchName"],
        args.get("startPosition", 0),
        args.get("length", CHUNK_SIZE),
        args.get("project"),
    )
    return _text(file_range.to_dict())
