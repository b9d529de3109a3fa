"""Pull request change enumeration with inlined file contents."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from azdo_mcp.binary import is_binary_path
from azdo_mcp.chunking import Deadline
from azdo_mcp.client import AzureDevOpsClient
from azdo_mcp.errors import UpstreamError
from azdo_mcp.models import ChangeEntry
from azdo_mcp.types.api import PullRequestChangesResult

logger = logging.getLogger(__name__)

MAX_INLINE_FILE_SIZE = 500_000
PREVIEW_SIZE = 10_000
CONTENT_UNAVAILABLE = "(Content unavailable)"
# Per-request cap on concurrent blob reads while enumerating changes.
MAX_CONCURRENT_FILES = 5


def _change_kinds(change_type: Any) -> set[str]:
    return {part.strip().lower() for part in str(change_type or "").split(",") if part.strip()}


async def _load_version(
    client: AzureDevOpsClient,
    repository_id: str,
    project: str,
    file_path: str,
    object_id: str,
) -> tuple[str, int, str | None]:
    """Return ``(content, size, preview)`` for one blob version."""
    try:
        blob = await client.get_blob(repository_id, object_id, project)
        size = int(blob.get("size") or 0)
        if size <= MAX_INLINE_FILE_SIZE:
            span = await client.get_blob_range(repository_id, object_id, 0, size, project)
            return span.data.decode("utf-8", errors="replace"), size, None
        span = await client.get_blob_range(repository_id, object_id, 0, PREVIEW_SIZE, project)
        placeholder = f"(File too large to display inline - {round(size / 1024)}KB. Preview shown.)"
        return placeholder, size, span.data.decode("utf-8", errors="replace")
    except UpstreamError as exc:
        logger.warning("Could not load %s (%s): %s", file_path, object_id, exc)
        return CONTENT_UNAVAILABLE, 0, None


async def _enhance(
    client: AzureDevOpsClient,
    repository_id: str,
    project: str,
    entry: dict[str, Any],
    limiter: asyncio.Semaphore,
) -> ChangeEntry:
    item = entry.get("item") or {}
    path = item.get("path") or ""
    kinds = _change_kinds(entry.get("changeType"))
    change = ChangeEntry(
        change_id=entry.get("changeId", entry.get("changeTrackingId")),
        path=path,
        change_type=str(entry.get("changeType") or ""),
        object_id=item.get("objectId"),
        original_object_id=item.get("originalObjectId") or entry.get("originalObjectId"),
        is_folder=item.get("isFolder") is True or item.get("gitObjectType") == "tree",
        is_binary=is_binary_path(path),
        item=item,
    )
    if change.is_folder or change.is_binary or not path:
        return change

    async with limiter:
        if "add" not in kinds and change.original_object_id:
            content, size, preview = await _load_version(
                client, repository_id, project, path, change.original_object_id
            )
            change.original_content = content
            change.original_content_size = size
            change.original_content_preview = preview
        if "delete" not in kinds and change.object_id:
            content, size, preview = await _load_version(client, repository_id, project, path, change.object_id)
            change.modified_content = content
            change.modified_content_size = size
            change.modified_content_preview = preview
    return change


async def get_pull_request_changes(
    client: AzureDevOpsClient,
    repository_id: str,
    pull_request_id: int,
    project: str | None = None,
    *,
    deadline: Deadline | None = None,
) -> PullRequestChangesResult:
    """List the latest iteration's changes, inlining small text files.

    Folders and binary files carry no content.  Files over
    :data:`MAX_INLINE_FILE_SIZE` get a :data:`PREVIEW_SIZE` preview and a
    placeholder noting their real size.
    """
    if deadline is not None:
        deadline.check("Pull request change enumeration")
    project_name = client.resolve_project(project)

    iterations = await client.get_pull_request_iterations(repository_id, pull_request_id, project_name)
    iteration_id = max((int(it["id"]) for it in iterations if it.get("id") is not None), default=1)
    raw_entries = await client.get_pull_request_iteration_changes(
        repository_id, pull_request_id, iteration_id, project_name
    )

    limiter = asyncio.Semaphore(MAX_CONCURRENT_FILES)
    entries = await asyncio.gather(
        *(_enhance(client, repository_id, project_name, entry, limiter) for entry in raw_entries)
    )
    return PullRequestChangesResult(
        changeEntries=[entry.to_dict() for entry in entries],
        totalCount=len(entries),
    )
