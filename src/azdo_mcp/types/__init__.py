"""Typed shapes for azdo-mcp wire payloads and tool arguments.

IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and
each other, never from client.py or the content layer.
"""

from azdo_mcp.types.api import (
    AttachmentDict,
    ChangeEntryDict,
    CommentResponseDict,
    ErrorResponse,
    FileRangeDict,
    PullRequestChangesResult,
    TruncatedObjectMeta,
    TruncatedSequence,
)

__all__ = [
    "AttachmentDict",
    "ChangeEntryDict",
    "CommentResponseDict",
    "ErrorResponse",
    "FileRangeDict",
    "PullRequestChangesResult",
    "TruncatedObjectMeta",
    "TruncatedSequence",
]
