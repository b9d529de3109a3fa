"""TypedDicts for tool handler responses.

Keys are camelCase on purpose: they mirror the Azure DevOps wire format the
agent already sees in passthrough responses.
"""

from __future__ import annotations

from typing import Any, NotRequired, TypedDict


class ErrorResponse(TypedDict):
    """Standard error envelope returned by MCP tool error paths."""

    error: str
    code: str


class FileRangeDict(TypedDict):
    content: str
    size: int
    position: int
    length: int
    isBinary: bool
    contentLength: int
    error: NotRequired[str]


class ChangeEntryDict(TypedDict):
    changeId: Any
    path: str
    changeType: str
    objectId: str | None
    originalObjectId: str | None
    isFolder: bool
    isBinary: bool
    originalContent: str | None
    modifiedContent: str | None
    originalContentSize: int
    modifiedContentSize: int
    originalContentPreview: str | None
    modifiedContentPreview: str | None
    item: dict[str, Any]


class PullRequestChangesResult(TypedDict):
    changeEntries: list[ChangeEntryDict]
    totalCount: int


class CommentResponseDict(TypedDict):
    id: int
    threadId: int
    content: str
    status: str | None
    author: dict[str, Any] | None
    createdDate: str | None
    url: str | None


class TruncatedSequence(TypedDict):
    """Shape returned by the truncator for oversized list payloads."""

    items: list[Any]
    totalCount: int
    isTruncated: bool
    truncatedCount: int
    message: str


class TruncatedObjectMeta(TypedDict):
    """Metadata keys appended to an oversized record after shrinking.

    The record's own (essential and budgeted) keys sit alongside these.
    """

    isTruncated: bool
    originalSize: int
    truncatedSize: int
    message: str


class AttachmentDict(TypedDict):
    url: str
    name: str
    comment: str
    resourceSize: int
    contentType: str
