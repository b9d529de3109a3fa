"""Request-scoped records produced by the adapter layer.

Raw Azure DevOps JSON never travels past ``client.py`` and the content
layer; these dataclasses are what the rest of the package passes around.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from azdo_mcp.types.api import AttachmentDict, ChangeEntryDict, CommentResponseDict, FileRangeDict


@dataclass
class FileRange:
    """One contiguous byte span of a file at a specific version.

    ``raw`` holds the undecoded bytes of the span so whole-file reassembly can
    decode once; it is never serialized.
    """

    content: str = ""
    size: int = 0
    position: int = 0
    length: int = 0
    is_binary: bool = False
    error: str | None = None
    raw: bytes | None = field(default=None, repr=False, compare=False)

    @classmethod
    def failure(cls, message: str, *, position: int = 0, size: int = 0) -> FileRange:
        return cls(content="", size=size, position=position, length=0, error=message)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def content_length(self) -> int:
        return self.size

    def to_dict(self) -> FileRangeDict:
        data = FileRangeDict(
            content=self.content,
            size=self.size,
            position=self.position,
            length=self.length,
            isBinary=self.is_binary,
            contentLength=self.size,
        )
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class ChangeEntry:
    change_id: Any
    path: str
    change_type: str
    object_id: str | None = None
    original_object_id: str | None = None
    is_folder: bool = False
    is_binary: bool = False
    original_content: str | None = None
    modified_content: str | None = None
    original_content_size: int = 0
    modified_content_size: int = 0
    original_content_preview: str | None = None
    modified_content_preview: str | None = None
    item: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> ChangeEntryDict:
        return ChangeEntryDict(
            changeId=self.change_id,
            path=self.path,
            changeType=self.change_type,
            objectId=self.object_id,
            originalObjectId=self.original_object_id,
            isFolder=self.is_folder,
            isBinary=self.is_binary,
            originalContent=self.original_content,
            modifiedContent=self.modified_content,
            originalContentSize=self.original_content_size,
            modifiedContentSize=self.modified_content_size,
            originalContentPreview=self.original_content_preview,
            modifiedContentPreview=self.modified_content_preview,
            item=self.item,
        )


@dataclass
class CommentResponse:
    id: int
    thread_id: int
    content: str = ""
    status: str | None = None
    author: dict[str, Any] | None = None
    created_date: str | None = None
    url: str | None = None

    def to_dict(self) -> CommentResponseDict:
        return CommentResponseDict(
            id=self.id,
            threadId=self.thread_id,
            content=self.content,
            status=self.status,
            author=self.author,
            createdDate=self.created_date,
            url=self.url,
        )


@dataclass
class Attachment:
    url: str
    name: str
    comment: str = ""
    resource_size: int = 0
    content_type: str = ""

    def to_dict(self) -> AttachmentDict:
        return AttachmentDict(
            url=self.url,
            name=self.name,
            comment=self.comment,
            resourceSize=self.resource_size,
            contentType=self.content_type,
        )
