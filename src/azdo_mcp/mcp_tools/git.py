"""MCP tools for repositories, pull requests, threads, changes and comments."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mcp.types import CallToolResult, Tool

from azdo_mcp.changes import get_pull_request_changes
from azdo_mcp.comments import THREAD_STATUSES, CommentRequest, create_pull_request_comment
from azdo_mcp.mcp_tools.common import (
    ToolResult,
    _first_error,
    _parse_args,
    _project_schema,
    _require_int,
    _require_str,
    _text,
    _validate_int_range,
    _validate_str,
)
from azdo_mcp.types.inputs import CreatePrCommentArgs, ListPullRequestsArgs, ListRepositoriesArgs, PullRequestArgs


def _pull_request_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "repositoryId": {"type": "string", "description": "Repository ID or name"},
            "pullRequestId": {"type": "integer", "minimum": 1, "description": "Pull request ID"},
            "project": _project_schema(),
        },
        "required": ["repositoryId", "pullRequestId"],
    }


def register() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    """Return (tool_definitions, handler_map) for repository and pull request tools."""
    tools = [
        Tool(
            name="list_repositories",
            description="List Git repositories in a project.",
            inputSchema={
                "type": "object",
                "properties": {"project": _project_schema()},
            },
        ),
        Tool(
            name="list_pull_requests",
            description="List active pull requests in a repository.",
            inputSchema={
                "type": "object",
                "properties": {
                    "repositoryId": {"type": "string", "description": "Repository ID or name"},
                    "project": _project_schema(),
                },
                "required": ["repositoryId"],
            },
        ),
        Tool(
            name="get_pull_request",
            description="Get a pull request by ID.",
            inputSchema=_pull_request_schema(),
        ),
        Tool(
            name="get_pull_request_threads",
            description="Get the comment threads of a pull request.",
            inputSchema=_pull_request_schema(),
        ),
        Tool(
            name="get_pull_request_changes",
            description=(
                "List files changed in the latest iteration of a pull request, with original and modified "
                "content inlined for text files. Large files get a preview; binary files and folders get none."
            ),
            inputSchema=_pull_request_schema(),
        ),
        Tool(
            name="create_pr_comment",
            description=(
                "Comment on a pull request. Pass threadId to reply to an existing thread; otherwise a new "
                "thread is started, anchored to filePath/lineNumber when given."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "repositoryId": {"type": "string", "description": "Repository ID or name"},
                    "pullRequestId": {"type": "integer", "minimum": 1, "description": "Pull request ID"},
                    "content": {"type": "string", "description": "Comment text (markdown)"},
                    "project": _project_schema(),
                    "threadId": {"type": "integer", "minimum": 1, "description": "Existing thread to reply to"},
                    "filePath": {"type": "string", "description": "File to anchor a new thread to"},
                    "lineNumber": {"type": "integer", "minimum": 1, "description": "Line in filePath (new thread only)"},
                    "parentCommentId": {"type": "integer", "minimum": 0, "description": "Comment being replied to"},
                    "status": {
                        "type": "string",
                        "enum": sorted(THREAD_STATUSES),
                        "description": "Thread status (new threads default to active)",
                    },
                },
                "required": ["repositoryId", "pullRequestId", "content"],
            },
        ),
    ]

    handlers: dict[str, Callable[..., Any]] = {
        "list_repositories": _handle_list_repositories,
        "list_pull_requests": _handle_list_pull_requests,
        "get_pull_request": _handle_get_pull_request,
        "get_pull_request_threads": _handle_get_pull_request_threads,
        "get_pull_request_changes": _handle_get_pull_request_changes,
        "create_pr_comment": _handle_create_pr_comment,
    }
    return tools, handlers


def _check_pull_request(args: PullRequestArgs) -> CallToolResult | None:
    return _first_error(
        _require_str(args.get("repositoryId"), "repositoryId"),
        _require_int(args.get("pullRequestId"), "pullRequestId"),
        _validate_str(args.get("project"), "project"),
    )


async def _handle_list_repositories(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, ListRepositoriesArgs)
    project = args.get("project")
    if (err := _validate_str(project, "project")) is not None:
        return err
    return _text(await _get_client().get_repositories(project))


async def _handle_list_pull_requests(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, ListPullRequestsArgs)
    repository_id = args.get("repositoryId")
    project = args.get("project")
    if (err := _first_error(_require_str(repository_id, "repositoryId"), _validate_str(project, "project"))) is not None:
        return err
    return _text(await _get_client().get_pull_requests(repository_id, project))


async def _handle_get_pull_request(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, PullRequestArgs)
    if (err := _check_pull_request(args)) is not None:
        return err
    return _text(await _get_client().get_pull_request(args["repositoryId"], args["pullRequestId"], args.get("project")))


async def _handle_get_pull_request_threads(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, PullRequestArgs)
    if (err := _check_pull_request(args)) is not None:
        return err
    threads = await _get_client().get_pull_request_threads(
        args["repositoryId"], args["pullRequestId"], args.get("project")
    )
    return _text(threads)


async def _handle_get_pull_request_changes(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _content_deadline, _get_client

    args = _parse_args(arguments, PullRequestArgs)
    if (err := _check_pull_request(args)) is not None:
        return err
    result = await get_pull_request_changes(
        _get_client(),
        args["repositoryId"],
        args["pullRequestId"],
        args.get("project"),
        deadline=_content_deadline(),
    )
    return _text(result)


async def _handle_create_pr_comment(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, CreatePrCommentArgs)
    err = _first_error(
        _require_str(args.get("repositoryId"), "repositoryId"),
        _require_int(args.get("pullRequestId"), "pullRequestId"),
        _validate_str(args.get("content"), "content"),
        _validate_str(args.get("project"), "project"),
        _validate_int_range(args.get("threadId"), "threadId", min_val=1),
        _validate_str(args.get("filePath"), "filePath"),
        _validate_int_range(args.get("lineNumber"), "lineNumber", min_val=1),
        _validate_int_range(args.get("parentCommentId"), "parentCommentId", min_val=0),
        _validate_str(args.get("status"), "status"),
    )
    if err is not None:
        return err

    request = CommentRequest(
        repository_id=args["repositoryId"],
        pull_request_id=args["pullRequestId"],
        content=args.get("content") or "",
        project=args.get("project"),
        thread_id=args.get("threadId"),
        file_path=args.get("filePath"),
        line_number=args.get("lineNumber"),
        parent_comment_id=args.get("parentCommentId"),
        status=args.get("status"),
    )
    # CommentRequest.validate() raises ValueError; the dispatch shell reports it.
    response = await create_pull_request_comment(_get_client(), request)
    return _text(response.to_dict())
