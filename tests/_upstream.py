"""In-process fake of the Azure DevOps REST API for httpx.MockTransport.

Routes are matched on method and URL path (regex, full match).  Later
registrations win, so a test can override a default route.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any

import httpx

ORG_URL = "https://dev.azure.com/acme"
PROJECT = "Web"
REPO = "repo1"
GIT = f"/acme/{PROJECT}/_apis/git/repositories/{REPO}"

Handler = Callable[[httpx.Request], httpx.Response]

_RANGE_RE = re.compile(r"bytes=(\d+)-(\d+)")


def json_response(payload: Any, status_code: int = 200, headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(status_code, json=payload, headers=headers)


def error_response(status_code: int, message: str = "boom") -> httpx.Response:
    return httpx.Response(status_code, json={"message": message})


def serve_bytes(data: bytes, *, honor_range: bool = True) -> Handler:
    """Handler that answers Range requests like the items/blobs endpoints."""

    def handler(request: httpx.Request) -> httpx.Response:
        header = request.headers.get("range")
        match = _RANGE_RE.fullmatch(header or "")
        if not honor_range or match is None:
            return httpx.Response(200, content=data)
        start, end = int(match.group(1)), int(match.group(2))
        total = len(data)
        if start >= total and total > 0:
            return httpx.Response(416, headers={"content-range": f"bytes */{total}"})
        chunk = data[start : end + 1]
        last = start + len(chunk) - 1
        return httpx.Response(
            206,
            content=chunk,
            headers={"content-range": f"bytes {start}-{max(last, start)}/{total}"},
        )

    return handler


class FakeAzureDevOps:
    """Callable handler for ``httpx.MockTransport`` with a recorded request log."""

    def __init__(self) -> None:
        self.routes: list[tuple[str, re.Pattern[str], Handler]] = []
        self.requests: list[httpx.Request] = []
        self.branches: dict[str, str] = {}
        self.route(
            "GET",
            r"/acme/_apis/projects",
            lambda request: json_response({"count": 1, "value": [{"id": "p-1", "name": PROJECT}]}),
        )

    def route(self, method: str, path: str, handler: Handler) -> None:
        self.routes.insert(0, (method, re.compile(path), handler))

    def json(self, method: str, path: str, payload: Any, status_code: int = 200) -> None:
        self.route(method, path, lambda request: json_response(payload, status_code))

    def fail(self, method: str, path: str, status_code: int, message: str = "boom") -> None:
        self.route(method, path, lambda request: error_response(status_code, message))

    def calls(self, path_fragment: str) -> list[httpx.Request]:
        return [r for r in self.requests if path_fragment in r.url.path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for method, pattern, handler in self.routes:
            if method == request.method and pattern.fullmatch(request.url.path):
                return handler(request)
        return error_response(404, f"No route for {request.method} {request.url.path}")

    # ------------------------------------------------------------------
    # Canned git content
    # ------------------------------------------------------------------

    def blob(self, object_id: str, data: bytes, *, honor_range: bool = True) -> None:
        """Serve *data* as blob *object_id*: JSON metadata, or bytes for octet-stream reads."""
        content = serve_bytes(data, honor_range=honor_range)

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("$format") == "octetstream":
                return content(request)
            return json_response({"objectId": object_id, "size": len(data)})

        self.route("GET", f"{GIT}/blobs/{object_id}", handler)

    def branch(self, name: str, commit_id: str) -> None:
        """Add a branch; the refs endpoint filters by name prefix like the real one."""
        self.branches[name] = commit_id

        def handler(request: httpx.Request) -> httpx.Response:
            wanted = request.url.params.get("filter", "").removeprefix("heads/")
            refs = [
                {"name": f"refs/heads/{n}", "objectId": c} for n, c in self.branches.items() if n.startswith(wanted)
            ]
            return json_response({"count": len(refs), "value": refs})

        self.route("GET", f"{GIT}/refs", handler)

    def item(
        self,
        path: str,
        data: bytes,
        *,
        commit_id: str | None = None,
        object_id: str = "item-blob",
        honor_range: bool = True,
    ) -> None:
        """Serve *data* at *path* on the items endpoint (metadata or octet-stream)."""
        content = serve_bytes(data, honor_range=honor_range)

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("path") != path:
                return error_response(404, f"Item {request.url.params.get('path')} not found")
            if commit_id is not None and request.url.params.get("versionDescriptor.version") != commit_id:
                return error_response(404, "Version not found")
            if request.url.params.get("$format") == "octetStream":
                return content(request)
            return json_response({"path": path, "objectId": object_id, "commitId": commit_id})

        self.route("GET", f"{GIT}/items", handler)


def body(request: httpx.Request) -> Any:
    return json.loads(request.content)
