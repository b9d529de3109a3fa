"""Async Azure DevOps REST client.

One instance per process, constructed explicitly and handed to whatever
needs it.  The HTTP session is created lazily by :meth:`AzureDevOpsClient.connect`
under a lock, moving through ``UNINITIALIZED -> CONNECTING -> READY`` (or
``FAILED``, from which a later call may retry).

Methods return decoded JSON for passthrough tools.  Byte-range reads return
:class:`ByteSpan`; turning those into ``FileRange`` records is the content
layer's job.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from azdo_mcp.errors import AuthenticationError, ConfigurationError, NotFoundError, UpstreamError

if TYPE_CHECKING:
    from azdo_mcp.config import Settings

logger = logging.getLogger(__name__)

API_VERSION = "7.1"
DEFAULT_TIMEOUT_SECONDS = 60.0
# wit/workitems rejects more than 200 ids per call.
WORK_ITEM_BATCH_SIZE = 200
_CHANGES_PAGE_SIZE = 2000

_CONTENT_RANGE_RE = re.compile(r"bytes\s+(?:(\d+)-(\d+)|\*)/(\d+|\*)")


class ConnectionState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"


@dataclass
class ByteSpan:
    """Raw bytes of a range read plus the total size, when the server reported it."""

    data: bytes
    offset: int
    total: int | None


def _seg(value: str | int) -> str:
    return quote(str(value), safe="")


def _parse_content_range(header: str | None) -> int | None:
    if not header:
        return None
    match = _CONTENT_RANGE_RE.match(header.strip())
    if match is None or match.group(3) == "*":
        return None
    return int(match.group(3))


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"


class AzureDevOpsClient:
    """Thin async wrapper over the Azure DevOps REST API (api-version 7.1)."""

    def __init__(
        self,
        organization_url: str | None,
        token: str | None,
        *,
        default_project: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.organization_url = (organization_url or "").rstrip("/")
        self.default_project = default_project or None
        self._token = token or ""
        self._timeout = timeout
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._state = ConnectionState.UNINITIALIZED
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> AzureDevOpsClient:
        return cls(
            settings.organization_url,
            settings.token,
            default_project=settings.project,
            **kwargs,
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the HTTP session and verify credentials. Idempotent."""
        if self._state is ConnectionState.READY:
            return
        async with self._lock:
            if self._state is ConnectionState.READY:
                return
            if not self.organization_url or not self._token:
                self._state = ConnectionState.FAILED
                msg = "Azure DevOps organization URL and token are required"
                raise ConfigurationError(msg)

            self._state = ConnectionState.CONNECTING
            http = httpx.AsyncClient(
                base_url=self.organization_url + "/",
                auth=httpx.BasicAuth("", self._token),
                headers={"Accept": "application/json"},
                timeout=self._timeout,
                transport=self._transport,
            )
            try:
                await self._send(http, "GET", "_apis/projects", params={"$top": 1})
            except BaseException:
                self._state = ConnectionState.FAILED
                await http.aclose()
                raise
            self._http = http
            self._state = ConnectionState.READY
            logger.info("Connected to Azure DevOps at %s", self.organization_url)

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
        self._state = ConnectionState.UNINITIALIZED

    async def __aenter__(self) -> AzureDevOpsClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def test_connection(self) -> bool:
        await self.connect()
        return True

    def resolve_project(self, project: str | None) -> str:
        """Return *project* or the configured default. Raises ValueError if neither."""
        name = project or self.default_project
        if not name:
            msg = "Project name is required"
            raise ValueError(msg)
        return name

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _send(
        http: httpx.AsyncClient,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        allow: tuple[int, ...] = (),
    ) -> httpx.Response:
        query = {"api-version": API_VERSION, **(params or {})}
        try:
            response = await http.request(method, path, params=query, json=json, headers=headers)
        except httpx.HTTPError as exc:
            msg = f"{method} {path} failed: {exc}"
            raise UpstreamError(msg) from exc

        if response.status_code < 400 or response.status_code in allow:
            return response
        detail = _error_message(response)
        msg = f"{method} {path} failed with HTTP {response.status_code}: {detail}"
        if response.status_code in (401, 403):
            raise AuthenticationError(msg, status_code=response.status_code)
        if response.status_code == 404:
            raise NotFoundError(msg, status_code=response.status_code)
        raise UpstreamError(msg, status_code=response.status_code)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        await self.connect()
        http = self._http
        if http is None:
            msg = f"{method} {path} failed: the Azure DevOps session was closed"
            raise UpstreamError(msg)
        return await self._send(http, method, path, **kwargs)

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            msg = f"{method} {path} returned a non-JSON body"
            raise UpstreamError(msg, status_code=response.status_code) from exc

    async def _list(self, path: str, params: dict[str, Any] | None = None) -> list[Any]:
        """GET a ``{"value": [...]}`` collection, following continuation tokens."""
        items: list[Any] = []
        query = dict(params or {})
        while True:
            response = await self._request("GET", path, params=query)
            try:
                payload = response.json()
            except ValueError as exc:
                msg = f"GET {path} returned a non-JSON body"
                raise UpstreamError(msg, status_code=response.status_code) from exc
            if isinstance(payload, dict):
                items.extend(payload.get("value", []))
            elif isinstance(payload, list):
                items.extend(payload)
            token = response.headers.get("x-ms-continuationtoken")
            if not token:
                return items
            query["continuationToken"] = token

    async def _range(self, path: str, params: dict[str, Any], offset: int, length: int) -> ByteSpan:
        headers = {"Accept": "application/octet-stream"}
        if length > 0:
            headers["Range"] = f"bytes={offset}-{offset + length - 1}"
        response = await self._request("GET", path, params=params, headers=headers, allow=(416,))

        if response.status_code == 416:
            return ByteSpan(data=b"", offset=offset, total=_parse_content_range(response.headers.get("content-range")))
        if response.status_code == 206:
            return ByteSpan(
                data=response.content,
                offset=offset,
                total=_parse_content_range(response.headers.get("content-range")),
            )
        # Server ignored the Range header and sent the whole body.
        body = response.content
        return ByteSpan(data=body[offset : offset + length], offset=offset, total=len(body))

    def _git(self, project: str | None, repository_id: str, *rest: str | int) -> str:
        parts = [_seg(self.resolve_project(project)), "_apis/git/repositories", _seg(repository_id)]
        parts.extend(_seg(p) for p in rest)
        return "/".join(parts)

    # ------------------------------------------------------------------
    # Projects and work items
    # ------------------------------------------------------------------

    async def get_projects(self) -> list[dict[str, Any]]:
        return await self._list("_apis/projects")

    async def get_work_item(self, work_item_id: int, *, expand: str | None = None) -> dict[str, Any]:
        params = {"$expand": expand} if expand else None
        result: dict[str, Any] = await self._json("GET", f"_apis/wit/workitems/{int(work_item_id)}", params=params)
        return result

    async def get_work_items(self, ids: list[int], *, expand: str | None = None) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for start in range(0, len(ids), WORK_ITEM_BATCH_SIZE):
            batch = ids[start : start + WORK_ITEM_BATCH_SIZE]
            params: dict[str, Any] = {"ids": ",".join(str(int(i)) for i in batch)}
            if expand:
                params["$expand"] = expand
            items.extend(await self._list("_apis/wit/workitems", params))
        return items

    # ------------------------------------------------------------------
    # Git: repositories, pull requests, threads
    # ------------------------------------------------------------------

    async def get_repositories(self, project: str | None = None) -> list[dict[str, Any]]:
        return await self._list(f"{_seg(self.resolve_project(project))}/_apis/git/repositories")

    async def get_pull_requests(
        self, repository_id: str, project: str | None = None, *, status: str = "active"
    ) -> list[dict[str, Any]]:
        return await self._list(self._git(project, repository_id, "pullrequests"), {"searchCriteria.status": status})

    async def get_pull_request(self, repository_id: str, pull_request_id: int, project: str | None = None) -> dict[str, Any]:
        result: dict[str, Any] = await self._json("GET", self._git(project, repository_id, "pullrequests", pull_request_id))
        return result

    async def get_pull_request_threads(
        self, repository_id: str, pull_request_id: int, project: str | None = None
    ) -> list[dict[str, Any]]:
        return await self._list(self._git(project, repository_id, "pullRequests", pull_request_id, "threads"))

    async def get_pull_request_iterations(
        self, repository_id: str, pull_request_id: int, project: str | None = None
    ) -> list[dict[str, Any]]:
        return await self._list(self._git(project, repository_id, "pullRequests", pull_request_id, "iterations"))

    async def get_pull_request_iteration_changes(
        self,
        repository_id: str,
        pull_request_id: int,
        iteration_id: int,
        project: str | None = None,
    ) -> list[dict[str, Any]]:
        path = self._git(project, repository_id, "pullRequests", pull_request_id, "iterations", iteration_id, "changes")
        entries: list[dict[str, Any]] = []
        skip = 0
        while True:
            payload = await self._json("GET", path, params={"$top": _CHANGES_PAGE_SIZE, "$skip": skip})
            entries.extend(payload.get("changeEntries") or [])
            next_skip = payload.get("nextSkip") or 0
            if next_skip <= skip:
                return entries
            skip = next_skip

    async def create_comment(
        self,
        repository_id: str,
        pull_request_id: int,
        thread_id: int,
        comment: dict[str, Any],
        project: str | None = None,
    ) -> dict[str, Any]:
        path = self._git(project, repository_id, "pullRequests", pull_request_id, "threads", thread_id, "comments")
        result: dict[str, Any] = await self._json("POST", path, json=comment)
        return result

    async def create_thread(
        self,
        repository_id: str,
        pull_request_id: int,
        thread: dict[str, Any],
        project: str | None = None,
    ) -> dict[str, Any]:
        path = self._git(project, repository_id, "pullRequests", pull_request_id, "threads")
        result: dict[str, Any] = await self._json("POST", path, json=thread)
        return result

    # ------------------------------------------------------------------
    # Git: refs, blobs, items
    # ------------------------------------------------------------------

    async def get_refs(self, repository_id: str, filter_: str, project: str | None = None) -> list[dict[str, Any]]:
        return await self._list(self._git(project, repository_id, "refs"), {"filter": filter_})

    async def get_blob(self, repository_id: str, object_id: str, project: str | None = None) -> dict[str, Any]:
        result: dict[str, Any] = await self._json("GET", self._git(project, repository_id, "blobs", object_id))
        return result

    async def get_blob_range(
        self, repository_id: str, object_id: str, offset: int, length: int, project: str | None = None
    ) -> ByteSpan:
        path = self._git(project, repository_id, "blobs", object_id)
        return await self._range(path, {"$format": "octetstream"}, offset, length)

    async def get_item(
        self, repository_id: str, path: str, version: str, project: str | None = None, *, version_type: str = "commit"
    ) -> dict[str, Any]:
        params = {
            "path": path,
            "versionDescriptor.version": version,
            "versionDescriptor.versionType": version_type,
            "includeContentMetadata": "true",
        }
        result: dict[str, Any] = await self._json("GET", self._git(project, repository_id, "items"), params=params)
        return result

    async def get_item_range(
        self,
        repository_id: str,
        path: str,
        version: str,
        offset: int,
        length: int,
        project: str | None = None,
        *,
        version_type: str = "commit",
    ) -> ByteSpan:
        params = {
            "path": path,
            "versionDescriptor.version": version,
            "versionDescriptor.versionType": version_type,
            "$format": "octetStream",
            "download": "false",
        }
        return await self._range(self._git(project, repository_id, "items"), params, offset, length)

    # ------------------------------------------------------------------
    # Test plans
    # ------------------------------------------------------------------

    def _testplan(self, project: str | None, *rest: str | int) -> str:
        return "/".join([_seg(self.resolve_project(project)), "_apis/testplan", *(_seg(p) for p in rest)])

    async def get_test_plans(self, project: str | None = None) -> list[dict[str, Any]]:
        return await self._list(self._testplan(project, "plans"))

    async def get_test_plan(self, plan_id: int, project: str | None = None) -> dict[str, Any]:
        result: dict[str, Any] = await self._json("GET", self._testplan(project, "plans", plan_id))
        return result

    async def get_test_suites(self, plan_id: int, project: str | None = None) -> list[dict[str, Any]]:
        return await self._list(self._testplan(project, "Plans", plan_id, "suites"))

    async def get_test_suite(self, plan_id: int, suite_id: int, project: str | None = None) -> dict[str, Any]:
        result: dict[str, Any] = await self._json("GET", self._testplan(project, "Plans", plan_id, "suites", suite_id))
        return result

    async def get_test_cases(self, plan_id: int, suite_id: int, project: str | None = None) -> list[dict[str, Any]]:
        return await self._list(self._testplan(project, "Plans", plan_id, "Suites", suite_id, "TestCase"))
