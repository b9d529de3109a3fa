"""File content retrieval for pull request versions and live branches.

Pull request reads go by blob object id first.  Object ids go stale (force
pushes, rebased iterations), so a failed direct read falls back to the pull
request's source branch and then its target branch.  Terminal failures come
back as a ``FileRange`` with ``error`` set rather than an exception.
"""

from __future__ import annotations

import logging

from azdo_mcp.binary import binary_placeholder, is_binary_path
from azdo_mcp.chunking import CHUNK_SIZE, Deadline, fetch_whole
from azdo_mcp.client import AzureDevOpsClient, ByteSpan
from azdo_mcp.errors import UpstreamError
from azdo_mcp.models import FileRange

logger = logging.getLogger(__name__)

_HEADS_PREFIX = "refs/heads/"

# (branch, commit id) a fallback read was served from.
_Pin = tuple[str, str]


def _clean_branch(branch_name: str) -> str:
    return branch_name.removeprefix(_HEADS_PREFIX)


class FileContentResolver:
    """Resolve file ranges through the upstream client. Holds no state between calls."""

    def __init__(self, client: AzureDevOpsClient) -> None:
        self.client = client

    # ------------------------------------------------------------------
    # Size lookup and adaptation
    # ------------------------------------------------------------------

    async def _blob_size(self, repository_id: str, object_id: str, project: str) -> int | None:
        try:
            blob = await self.client.get_blob(repository_id, object_id, project)
        except UpstreamError as exc:
            logger.warning("Blob metadata lookup failed for %s: %s", object_id, exc)
            return None
        size = blob.get("size")
        return int(size) if size is not None else None

    async def _item_size(self, repository_id: str, file_path: str, commit_id: str, project: str) -> int | None:
        try:
            item = await self.client.get_item(repository_id, file_path, commit_id, project)
        except UpstreamError as exc:
            logger.warning("Item metadata lookup failed for %s@%s: %s", file_path, commit_id, exc)
            return None
        object_id = item.get("objectId")
        if not object_id:
            return None
        return await self._blob_size(repository_id, object_id, project)

    @staticmethod
    def _to_range(span: ByteSpan, size: int | None, file_path: str) -> FileRange:
        if size is None:
            size = span.total
        if size is None:
            # Lower bound only; multi-chunk callers may under-read.
            size = span.offset + len(span.data)
            logger.warning("No authoritative size for %s; assuming %d bytes", file_path, size)
        if span.offset > size:
            return FileRange.failure(
                f"Start position {span.offset} is beyond the end of {file_path} ({size} bytes)",
                position=span.offset,
                size=size,
            )
        data = span.data[: max(0, size - span.offset)]
        return FileRange(
            content=data.decode("utf-8", errors="replace"),
            size=size,
            position=span.offset,
            length=len(data),
            raw=data,
        )

    # ------------------------------------------------------------------
    # Branch-keyed reads
    # ------------------------------------------------------------------

    async def _resolve_commit(self, repository_id: str, branch: str, project: str) -> str | None:
        refs = await self.client.get_refs(repository_id, f"heads/{branch}", project)
        # The filter is a prefix match; "main" also returns "main-old".
        wanted = _HEADS_PREFIX + branch
        for ref in refs:
            if ref.get("name") == wanted and ref.get("objectId"):
                return str(ref["objectId"])
        return None

    async def _branch_tip(
        self, repository_id: str, branch_name: str, start_position: int, project: str
    ) -> str | FileRange:
        """Return the commit at the tip of *branch_name*, or a failed ``FileRange``."""
        branch = _clean_branch(branch_name)
        try:
            commit_id = await self._resolve_commit(repository_id, branch, project)
        except UpstreamError as exc:
            logger.warning("Ref lookup failed for %s: %s", branch, exc)
            return FileRange.failure(f"Failed to access branch {branch_name}: {exc}", position=start_position)
        if commit_id is None:
            return FileRange.failure(f"Branch reference not found for {branch}", position=start_position)
        return commit_id

    async def _read_at_commit(
        self,
        repository_id: str,
        file_path: str,
        branch: str,
        commit_id: str,
        start_position: int,
        length: int,
        project: str,
    ) -> FileRange:
        if is_binary_path(file_path):
            size = await self._item_size(repository_id, file_path, commit_id, project)
            if size is None:
                return FileRange.failure(
                    f"Failed to get binary file info for {file_path} on branch {branch}",
                    position=start_position,
                )
            return FileRange(
                content=binary_placeholder(size),
                size=size,
                position=start_position,
                length=0,
                is_binary=True,
            )

        try:
            span = await self.client.get_item_range(repository_id, file_path, commit_id, start_position, length, project)
        except UpstreamError as exc:
            logger.warning("Branch read failed for %s on %s: %s", file_path, branch, exc)
            return FileRange.failure(
                f"Failed to retrieve file from branch {branch}: {exc}",
                position=start_position,
            )

        size = None if span.total is not None else await self._item_size(repository_id, file_path, commit_id, project)
        return self._to_range(span, size, file_path)

    async def get_branch_file_content(
        self,
        repository_id: str,
        file_path: str,
        branch_name: str,
        start_position: int = 0,
        length: int = CHUNK_SIZE,
        project: str | None = None,
    ) -> FileRange:
        """Read ``[start_position, start_position + length)`` of *file_path* at the tip of *branch_name*."""
        project_name = self.client.resolve_project(project)
        tip = await self._branch_tip(repository_id, branch_name, start_position, project_name)
        if isinstance(tip, FileRange):
            return tip
        return await self._read_at_commit(
            repository_id, file_path, _clean_branch(branch_name), tip, start_position, length, project_name
        )

    # ------------------------------------------------------------------
    # Object-id reads with branch fallback
    # ------------------------------------------------------------------

    async def _branch_fallback(
        self,
        repository_id: str,
        pull_request_id: int,
        file_path: str,
        start_position: int,
        length: int,
        project: str,
    ) -> tuple[FileRange, _Pin | None]:
        try:
            pull_request = await self.client.get_pull_request(repository_id, pull_request_id, project)
        except UpstreamError as exc:
            logger.warning("Pull request %s lookup failed during fallback: %s", pull_request_id, exc)
            pull_request = {}

        failures: list[str] = []
        for key in ("sourceRefName", "targetRefName"):
            ref_name = pull_request.get(key)
            if not ref_name:
                continue
            tip = await self._branch_tip(repository_id, ref_name, start_position, project)
            if isinstance(tip, FileRange):
                failures.append(f"{ref_name}: {tip.error}")
                continue
            branch = _clean_branch(ref_name)
            result = await self._read_at_commit(
                repository_id, file_path, branch, tip, start_position, length, project
            )
            if result.ok:
                logger.info("Served %s from %s@%s after direct read failed", file_path, ref_name, tip)
                return result, (branch, tip)
            failures.append(f"{ref_name}: {result.error}")

        message = f"Failed to retrieve content for file: {file_path}. Direct access and branch fallback both failed."
        if failures:
            message += " " + "; ".join(failures)
        return FileRange.failure(message, position=start_position), None

    async def _read_pull_request_range(
        self,
        repository_id: str,
        pull_request_id: int,
        file_path: str,
        object_id: str,
        start_position: int,
        length: int,
        project: str,
    ) -> tuple[FileRange, _Pin | None]:
        if is_binary_path(file_path):
            size = await self._blob_size(repository_id, object_id, project)
            if size is None:
                return (
                    FileRange.failure(f"Failed to get binary file info for {file_path}", position=start_position),
                    None,
                )
            return (
                FileRange(
                    content=binary_placeholder(size),
                    size=size,
                    position=start_position,
                    length=0,
                    is_binary=True,
                ),
                None,
            )

        try:
            span = await self.client.get_blob_range(repository_id, object_id, start_position, length, project)
        except UpstreamError as exc:
            logger.warning("Direct read of %s (%s) failed, trying branches: %s", file_path, object_id, exc)
            return await self._branch_fallback(
                repository_id, pull_request_id, file_path, start_position, length, project
            )

        size = None if span.total is not None else await self._blob_size(repository_id, object_id, project)
        return self._to_range(span, size, file_path), None

    async def get_pull_request_file_content(
        self,
        repository_id: str,
        pull_request_id: int,
        file_path: str,
        object_id: str,
        start_position: int = 0,
        length: int = CHUNK_SIZE,
        project: str | None = None,
    ) -> FileRange:
        """Read a byte range of one file version in a pull request."""
        project_name = self.client.resolve_project(project)
        result, _ = await self._read_pull_request_range(
            repository_id, pull_request_id, file_path, object_id, start_position, length, project_name
        )
        return result

    # ------------------------------------------------------------------
    # Whole-file reads
    # ------------------------------------------------------------------

    async def get_complete_pull_request_file_content(
        self,
        repository_id: str,
        pull_request_id: int,
        file_path: str,
        object_id: str,
        project: str | None = None,
        *,
        deadline: Deadline | None = None,
    ) -> str:
        """Return the whole file as text (or a binary placeholder)."""
        project_name = self.client.resolve_project(project)
        # Once a fallback commit serves a range, the rest of this read uses it too.
        route: dict[str, _Pin] = {}

        async def read(offset: int, size: int) -> FileRange:
            pin = route.get("pin")
            if pin is not None:
                branch, commit_id = pin
                return await self._read_at_commit(
                    repository_id, file_path, branch, commit_id, offset, size, project_name
                )
            result, used = await self._read_pull_request_range(
                repository_id, pull_request_id, file_path, object_id, offset, size, project_name
            )
            if used is not None:
                route.setdefault("pin", used)
            return result

        return await fetch_whole(read, deadline=deadline)

    async def get_complete_branch_file_content(
        self,
        repository_id: str,
        file_path: str,
        branch_name: str,
        project: str | None = None,
        *,
        deadline: Deadline | None = None,
    ) -> str:
        project_name = self.client.resolve_project(project)
        branch = _clean_branch(branch_name)
        # The tip is looked up once; every chunk reads that commit.
        tips: dict[str, str | FileRange] = {}

        async def read(offset: int, size: int) -> FileRange:
            if "tip" not in tips:
                tips["tip"] = await self._branch_tip(repository_id, branch_name, offset, project_name)
            tip = tips["tip"]
            if isinstance(tip, FileRange):
                return tip
            return await self._read_at_commit(repository_id, file_path, branch, tip, offset, size, project_name)

        return await fetch_whole(read, deadline=deadline)
