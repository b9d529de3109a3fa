"""Tests for pull request and branch file reads."""

from __future__ import annotations

import httpx
import pytest

from azdo_mcp.binary import binary_placeholder
from azdo_mcp.client import AzureDevOpsClient
from azdo_mcp.content import FileContentResolver
from azdo_mcp.errors import ContentRetrievalError
from tests._upstream import GIT, ORG_URL, FakeAzureDevOps, json_response, serve_bytes

SOURCE = "/src/app.py"


def _text(size: int) -> bytes:
    return bytes(ord("a") + (i % 26) for i in range(size))


def _pull_request(upstream: FakeAzureDevOps, pr_id: int = 7) -> None:
    upstream.json(
        "GET",
        f"{GIT}/pullrequests/{pr_id}",
        {"pullRequestId": pr_id, "sourceRefName": "refs/heads/feature", "targetRefName": "refs/heads/main"},
    )


def _moving_branch(upstream: FakeAzureDevOps, name: str, old: bytes, new: bytes) -> list[httpx.Request]:
    """Branch *name* is at ``c-old`` for the first ref lookup and at ``c-new`` afterwards."""
    lookups: list[httpx.Request] = []
    contents = {"c-old": serve_bytes(old), "c-new": serve_bytes(new)}

    def refs(request: httpx.Request) -> httpx.Response:
        lookups.append(request)
        commit_id = "c-old" if len(lookups) == 1 else "c-new"
        return json_response({"count": 1, "value": [{"name": f"refs/heads/{name}", "objectId": commit_id}]})

    def items(request: httpx.Request) -> httpx.Response:
        return contents[request.url.params["versionDescriptor.version"]](request)

    upstream.route("GET", f"{GIT}/refs", refs)
    upstream.route("GET", f"{GIT}/items", items)
    return lookups


class TestBranchRanges:
    async def test_reads_requested_range(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        data = _text(120_000)
        upstream.branch("main", "c-main")
        upstream.item(SOURCE, data, commit_id="c-main")

        result = await resolver.get_branch_file_content("repo1", SOURCE, "main", 50_000)

        assert result.ok
        assert result.position == 50_000
        assert result.length == 70_000
        assert result.size == 120_000
        assert result.content == data[50_000:].decode()

    async def test_small_file_in_one_read(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        upstream.branch("main", "c-main")
        upstream.item(SOURCE, b"print('hi')\n", commit_id="c-main")
        result = await resolver.get_branch_file_content("repo1", SOURCE, "main")
        assert result.content == "print('hi')\n"
        assert result.size == 12
        assert not result.is_binary

    async def test_start_beyond_end_is_an_error(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        upstream.branch("main", "c-main")
        upstream.item(SOURCE, _text(1_000), commit_id="c-main")
        result = await resolver.get_branch_file_content("repo1", SOURCE, "main", 5_000)
        assert not result.ok
        assert "beyond the end" in (result.error or "")
        assert result.size == 1_000

    async def test_missing_branch(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        upstream.branch("develop", "c-dev")
        result = await resolver.get_branch_file_content("repo1", SOURCE, "main")
        assert result.error == "Branch reference not found for main"
        assert upstream.calls("/items") == []

    async def test_prefix_only_ref_does_not_count(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        upstream.branch("main-old", "c-old")
        result = await resolver.get_branch_file_content("repo1", SOURCE, "main")
        assert result.error == "Branch reference not found for main"

    async def test_full_ref_name_is_accepted(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        upstream.branch("main", "c-main")
        upstream.item(SOURCE, b"x = 1\n", commit_id="c-main")
        result = await resolver.get_branch_file_content("repo1", SOURCE, "refs/heads/main")
        assert result.content == "x = 1\n"
        assert upstream.calls("/refs")[0].url.params["filter"] == "heads/main"

    async def test_binary_file_gets_placeholder(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        upstream.branch("main", "c-main")
        upstream.item("/img/logo.png", b"", commit_id="c-main", object_id="png-blob")
        upstream.blob("png-blob", b"\x89PNG" * 1_000)

        result = await resolver.get_branch_file_content("repo1", "/img/logo.png", "main")

        assert result.is_binary
        assert result.size == 4_000
        assert result.content == binary_placeholder(4_000)
        assert not [r for r in upstream.requests if r.url.params.get("$format") == "octetStream"]

    async def test_server_ignoring_range(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        upstream.branch("main", "c-main")
        upstream.item(SOURCE, b"0123456789", commit_id="c-main", honor_range=False)
        result = await resolver.get_branch_file_content("repo1", SOURCE, "main", 3, 4)
        assert result.content == "3456"
        assert result.size == 10

    async def test_missing_project_raises(self, upstream: FakeAzureDevOps) -> None:
        bare = FileContentResolver(AzureDevOpsClient(ORG_URL, "pat", transport=httpx.MockTransport(upstream)))
        with pytest.raises(ValueError, match="Project name is required"):
            await bare.get_branch_file_content("repo1", SOURCE, "main")


class TestPullRequestRanges:
    async def test_direct_blob_read(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        data = _text(120_000)
        upstream.blob("b-1", data)
        result = await resolver.get_pull_request_file_content("repo1", 7, SOURCE, "b-1", 50_000, 100_000)
        assert result.length == 70_000
        assert result.size == 120_000
        assert upstream.calls("/pullrequests/") == []

    async def test_content_range_total_skips_blob_metadata(
        self, resolver: FileContentResolver, upstream: FakeAzureDevOps
    ) -> None:
        upstream.blob("b-1", _text(550_000))

        await resolver.get_complete_pull_request_file_content("repo1", 7, SOURCE, "b-1")

        reads = upstream.calls("/blobs/b-1")
        metadata = [r for r in reads if r.url.params.get("$format") != "octetstream"]
        assert metadata == []
        assert len(reads) == 7

    async def test_falls_back_to_source_branch(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        _pull_request(upstream)
        upstream.branch("feature", "c-feat")
        upstream.item(SOURCE, b"from feature\n", commit_id="c-feat")

        result = await resolver.get_pull_request_file_content("repo1", 7, SOURCE, "stale-blob", 0, 100)

        assert result.ok
        assert result.content == "from feature\n"

    async def test_falls_back_to_target_branch(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        _pull_request(upstream)
        upstream.branch("main", "c-main")
        upstream.item(SOURCE, b"from main\n", commit_id="c-main")

        result = await resolver.get_pull_request_file_content("repo1", 7, SOURCE, "stale-blob", 0, 100)

        assert result.content == "from main\n"

    async def test_every_route_failing(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        _pull_request(upstream)
        result = await resolver.get_pull_request_file_content("repo1", 7, SOURCE, "stale-blob", 0, 100)
        assert not result.ok
        assert result.error is not None
        assert result.error.startswith(
            f"Failed to retrieve content for file: {SOURCE}. Direct access and branch fallback both failed."
        )

    async def test_unreadable_pull_request_still_reports(
        self, resolver: FileContentResolver, upstream: FakeAzureDevOps
    ) -> None:
        upstream.fail("GET", f"{GIT}/pullrequests/7", 500)
        result = await resolver.get_pull_request_file_content("repo1", 7, SOURCE, "stale-blob", 0, 100)
        assert "Direct access and branch fallback both failed" in (result.error or "")

    async def test_binary_blob_gets_placeholder(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        upstream.blob("pdf-blob", b"%PDF" * 512)
        result = await resolver.get_pull_request_file_content("repo1", 7, "/docs/a.pdf", "pdf-blob", 0, 100)
        assert result.is_binary
        assert result.content == binary_placeholder(2_048)


class TestCompleteReads:
    async def test_complete_branch_file(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        data = _text(550_000)
        upstream.branch("main", "c-main")
        upstream.item(SOURCE, data, commit_id="c-main")

        text = await resolver.get_complete_branch_file_content("repo1", SOURCE, "main")

        assert text == data.decode()
        octet_reads = [r for r in upstream.calls("/items") if r.url.params.get("$format") == "octetStream"]
        assert len(octet_reads) == 7

    async def test_complete_pull_request_file(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        data = _text(250_000)
        upstream.blob("b-1", data)
        assert await resolver.get_complete_pull_request_file_content("repo1", 7, SOURCE, "b-1") == data.decode()

    async def test_fallback_branch_sticks_for_remaining_chunks(
        self, resolver: FileContentResolver, upstream: FakeAzureDevOps
    ) -> None:
        data = _text(250_000)
        _pull_request(upstream)
        upstream.branch("feature", "c-feat")
        upstream.item(SOURCE, data, commit_id="c-feat")

        text = await resolver.get_complete_pull_request_file_content("repo1", 7, SOURCE, "stale-blob")

        assert text == data.decode()
        assert len(upstream.calls("/blobs/stale-blob")) == 1
        assert len(upstream.calls("/pullrequests/7")) == 1

    async def test_branch_moving_mid_read_keeps_one_commit(
        self, resolver: FileContentResolver, upstream: FakeAzureDevOps
    ) -> None:
        old, new = b"A" * 300_000, b"B" * 300_000
        lookups = _moving_branch(upstream, "main", old, new)

        text = await resolver.get_complete_branch_file_content("repo1", SOURCE, "main")

        assert text == old.decode()
        assert len(lookups) == 1

    async def test_fallback_read_keeps_one_commit(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        old, new = b"A" * 300_000, b"B" * 300_000
        _pull_request(upstream)
        lookups = _moving_branch(upstream, "feature", old, new)

        text = await resolver.get_complete_pull_request_file_content("repo1", 7, SOURCE, "stale-blob")

        assert text == old.decode()
        assert len(lookups) == 1

    async def test_complete_binary_file(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        upstream.blob("zip-blob", b"PK" * 1_024)
        text = await resolver.get_complete_pull_request_file_content("repo1", 7, "/dist/a.zip", "zip-blob")
        assert text == binary_placeholder(2_048)

    async def test_complete_read_failure_raises(self, resolver: FileContentResolver, upstream: FakeAzureDevOps) -> None:
        upstream.branch("main", "c-main")
        with pytest.raises(ContentRetrievalError, match="Branch reference not found"):
            await resolver.get_complete_branch_file_content("repo1", SOURCE, "nowhere")

    async def test_range_ignoring_server_complete_read(
        self, resolver: FileContentResolver, upstream: FakeAzureDevOps
    ) -> None:
        data = _text(230_000)
        upstream.branch("main", "c-main")
        upstream.item(SOURCE, data, commit_id="c-main", honor_range=False)
        assert await resolver.get_complete_branch_file_content("repo1", SOURCE, "main") == data.decode()
