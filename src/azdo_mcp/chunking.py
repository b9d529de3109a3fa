"""Whole-file retrieval over a byte-range primitive.

``fetch_whole`` probes the file, then pulls it in sequential waves of
concurrent range requests.  Wave results are reassembled by issuance order,
never by arrival order.  A :class:`Deadline` is checked before every wave so
a timed-out request stops issuing new upstream calls.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, TypeVar

from azdo_mcp.binary import binary_placeholder
from azdo_mcp.errors import ContentRetrievalError, OperationCancelledError, OperationTimeoutError
from azdo_mcp.models import FileRange

_T = TypeVar("_T")

RangeFetcher = Callable[[int, int], Awaitable[FileRange]]

PROBE_SIZE = 1024
CHUNK_SIZE = 100_000
MAX_CONCURRENT_CHUNKS = 5
WAVE_DELAY_SECONDS = 0.1
CONTENT_TIMEOUT_SECONDS = 300.0


def _describe_seconds(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds:g} seconds"


class Deadline:
    """Wall-clock budget for one request, with an explicit cancel switch.

    ``Deadline(None)`` never expires but can still be cancelled.
    """

    def __init__(self, seconds: float | None = None, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.seconds = seconds
        self._clock = clock
        self._expires_at = None if seconds is None else clock() + seconds
        self._cancelled = False

    @property
    def timeout_message(self) -> str:
        if self.seconds is None:
            return "Request timed out"
        return f"Request timed out after {_describe_seconds(self.seconds)}"

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def check(self, what: str = "Request") -> None:
        """Raise if the request was cancelled or its deadline has passed."""
        if self._cancelled:
            msg = f"{what} was cancelled"
            raise OperationCancelledError(msg)
        if self.expired:
            raise OperationTimeoutError(self.timeout_message)

    async def run(self, coro: Coroutine[Any, Any, _T]) -> _T:
        """Await *coro*, cancelling it (and its in-flight I/O) when the deadline passes."""
        remaining = self.remaining()
        if remaining is None:
            return await coro
        try:
            async with asyncio.timeout(remaining):
                return await coro
        except TimeoutError as exc:
            raise OperationTimeoutError(self.timeout_message) from exc


async def _fetch_range(range_fetcher: RangeFetcher, offset: int, length: int) -> FileRange:
    try:
        result = await range_fetcher(offset, length)
    except (OperationTimeoutError, OperationCancelledError):
        raise
    except Exception as exc:
        msg = f"Failed to retrieve file content (bytes {offset}-{offset + length}): {exc}"
        raise ContentRetrievalError(msg) from exc
    if result.error is not None:
        msg = f"Failed to retrieve file content (bytes {offset}-{offset + length}): {result.error}"
        raise ContentRetrievalError(msg)
    return result


def _join(chunks: list[FileRange]) -> str:
    if all(chunk.raw is not None for chunk in chunks):
        return b"".join(chunk.raw or b"" for chunk in chunks).decode("utf-8", errors="replace")
    return "".join(chunk.content for chunk in chunks)


async def fetch_whole(
    range_fetcher: RangeFetcher,
    *,
    deadline: Deadline | None = None,
    chunk_size: int = CHUNK_SIZE,
    concurrency: int = MAX_CONCURRENT_CHUNKS,
    wave_delay: float = WAVE_DELAY_SECONDS,
) -> str:
    """Retrieve an entire file through *range_fetcher* and return it as text.

    Binary files short-circuit after the probe with a size placeholder.
    Raises :class:`ContentRetrievalError` if any range fails; no partial
    content is ever returned.
    """
    probe = await _fetch_range(range_fetcher, 0, PROBE_SIZE)
    if probe.is_binary:
        return binary_placeholder(probe.content_length)

    total = probe.content_length
    if total <= chunk_size:
        if probe.position == 0 and probe.length >= total:
            return probe.content
        full = await _fetch_range(range_fetcher, 0, total)
        return full.content

    chunks: list[FileRange] = []
    cursor = 0
    while cursor < total:
        if chunks:
            await asyncio.sleep(wave_delay)
        if deadline is not None:
            deadline.check("File content retrieval")

        spans: list[tuple[int, int]] = []
        while cursor < total and len(spans) < concurrency:
            length = min(chunk_size, total - cursor)
            spans.append((cursor, length))
            cursor += length

        tasks = [asyncio.ensure_future(_fetch_range(range_fetcher, offset, length)) for offset, length in spans]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        chunks.extend(results)

    return _join(chunks)
