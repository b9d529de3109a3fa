"""Best-effort shrinking of oversized structured responses.

The budget is a soft target: identity fields are kept even when they alone
exceed it, so an agent can always follow up with a narrower request.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from azdo_mcp.serialization import safe_serialize
from azdo_mcp.types.api import TruncatedSequence

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 50_000

ESSENTIAL_FIELDS: tuple[str, ...] = ("id", "name", "url", "project", "state", "author", "createdDate")


def serialized_size(value: Any) -> int:
    """UTF-8 byte length of *value* as it would be sent to the client."""
    return len(safe_serialize(value).encode("utf-8"))


def _truncate_sequence(items: list[Any], size: int, max_bytes: int) -> TruncatedSequence:
    keep = max(1, int(len(items) * max_bytes / size))
    kept = list(items[:keep])
    dropped = len(items) - len(kept)
    return TruncatedSequence(
        items=kept,
        totalCount=len(items),
        isTruncated=True,
        truncatedCount=dropped,
        message=(
            f"Response truncated: showing {len(kept)} of {len(items)} items "
            f"({size} bytes exceeds the {max_bytes} byte limit). "
            "Request specific items by ID for full details."
        ),
    )


def _truncate_mapping(record: Mapping[str, Any], size: int, max_bytes: int) -> dict[str, Any]:
    result: dict[str, Any] = {key: record[key] for key in ESSENTIAL_FIELDS if key in record}
    running = serialized_size(result)
    for key, value in record.items():
        if key in result:
            continue
        added = serialized_size({key: value})
        if running + added > max_bytes:
            break
        result[key] = value
        running += added

    truncated_size = serialized_size(result)
    result.update(
        {
            "isTruncated": True,
            "originalSize": size,
            "truncatedSize": truncated_size,
            "message": (
                f"Response truncated from {size} to {truncated_size} bytes. "
                "Essential fields are preserved; request specific fields for full details."
            ),
        }
    )
    return result


def truncate_response(value: Any, max_bytes: int = DEFAULT_MAX_BYTES) -> Any:
    """Return *value* unchanged when it fits in *max_bytes*, else a shrunk copy.

    Sequences keep a proportional prefix (at least one item); mappings keep
    :data:`ESSENTIAL_FIELDS` plus other keys in order until the budget runs out.
    """
    size = serialized_size(value)
    if size <= max_bytes:
        return value

    if isinstance(value, (list, tuple)):
        logger.debug("Truncating %d-item sequence of %d bytes", len(value), size)
        return _truncate_sequence(list(value), size, max_bytes)
    if isinstance(value, Mapping):
        logger.debug("Truncating record of %d bytes", size)
        return _truncate_mapping(value, size, max_bytes)
    return value
