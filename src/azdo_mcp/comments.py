"""Pull request comments: reply to a thread, or open a new one."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from azdo_mcp.client import AzureDevOpsClient
from azdo_mcp.errors import UpstreamError
from azdo_mcp.models import CommentResponse

THREAD_STATUSES: frozenset[str] = frozenset({"active", "byDesign", "closed", "fixed", "pending", "unknown", "wontFix"})

# commentType 1 is "text" in the REST API.
_TEXT_COMMENT = 1


@dataclass
class CommentRequest:
    repository_id: str
    pull_request_id: int
    content: str
    project: str | None = None
    thread_id: int | None = None
    file_path: str | None = None
    line_number: int | None = None
    parent_comment_id: int | None = None
    status: str | None = None

    def validate(self) -> None:
        """Raise ValueError for requests the API would reject or misplace."""
        if not self.content or not self.content.strip():
            msg = "content must not be empty"
            raise ValueError(msg)
        if self.line_number is not None and not self.file_path:
            msg = "lineNumber requires filePath"
            raise ValueError(msg)
        if self.line_number is not None and self.line_number < 1:
            msg = "lineNumber must be >= 1"
            raise ValueError(msg)
        if self.status is not None and self.status not in THREAD_STATUSES:
            msg = f"status must be one of: {', '.join(sorted(THREAD_STATUSES))}"
            raise ValueError(msg)


def _comment_url(comment: dict[str, Any]) -> str | None:
    url = comment.get("url")
    if url:
        return str(url)
    href = ((comment.get("_links") or {}).get("self") or {}).get("href")
    return str(href) if href else None


def _thread_context(request: CommentRequest) -> dict[str, Any] | None:
    if not request.file_path:
        return None
    path = request.file_path if request.file_path.startswith("/") else "/" + request.file_path
    context: dict[str, Any] = {"filePath": path}
    if request.line_number is not None:
        context["rightFileStart"] = {"line": request.line_number, "offset": 1}
        context["rightFileEnd"] = {"line": request.line_number, "offset": 1}
    return context


def _response(comment: dict[str, Any], thread_id: int, status: str | None) -> CommentResponse:
    return CommentResponse(
        id=int(comment.get("id") or 0),
        thread_id=thread_id,
        content=comment.get("content") or "",
        status=status,
        author=comment.get("author"),
        created_date=comment.get("publishedDate"),
        url=_comment_url(comment),
    )


async def create_pull_request_comment(client: AzureDevOpsClient, request: CommentRequest) -> CommentResponse:
    """Post *request* as a reply (``thread_id`` set) or as a new thread."""
    request.validate()
    project = client.resolve_project(request.project)
    comment_body: dict[str, Any] = {
        "content": request.content,
        "parentCommentId": request.parent_comment_id or 0,
        "commentType": _TEXT_COMMENT,
    }

    if request.thread_id is not None:
        comment = await client.create_comment(
            request.repository_id, request.pull_request_id, request.thread_id, comment_body, project
        )
        return _response(comment, request.thread_id, request.status)

    thread_body: dict[str, Any] = {"comments": [comment_body], "status": request.status or "active"}
    context = _thread_context(request)
    if context is not None:
        thread_body["threadContext"] = context
    thread = await client.create_thread(request.repository_id, request.pull_request_id, thread_body, project)

    comments = thread.get("comments") or []
    if not comments or not thread.get("id"):
        msg = "Failed to create comment on pull request: thread response had no comment"
        raise UpstreamError(msg)
    return _response(comments[0], int(thread["id"]), thread.get("status"))
