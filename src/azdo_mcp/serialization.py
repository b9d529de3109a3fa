"""Never-raising JSON rendering for arbitrary upstream payloads.

Upstream responses can carry cycles (HTTP plumbing objects hanging off a
response), raw byte buffers, or stream-like objects instead of materialized
bytes.  Everything here degrades through tiers and always returns text:

1. strings pass through unchanged;
2. a direct ``json.dumps``;
3. a sanitizing walk that replaces repeated containers and known transport
   keys with ``[Circular]`` and renders byte buffers readably;
4. an error descriptor.
"""

from __future__ import annotations

import io
import json
import logging
import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

import httpx

logger = logging.getLogger(__name__)

CIRCULAR_MARKER = "[Circular]"

# Keys that hold socket/agent objects in the responses that caused corruption.
TRANSPORT_KEYS: frozenset[str] = frozenset({"_httpMessage", "socket", "connection", "agent"})

BUFFER_TEXT_LIMIT = 10_000
HEX_PREVIEW_BYTES = 1_000

_BUFFER_PATTERN = re.compile(r'"type":\s*"Buffer",\s*"data":\s*\[')


def _render_buffer(data: bytes) -> Any:
    if len(data) < BUFFER_TEXT_LIMIT:
        return data.decode("utf-8", errors="replace")
    return {
        "type": "Buffer",
        "byteLength": len(data),
        "hexPreview": data[:HEX_PREVIEW_BYTES].hex(),
        "truncated": True,
    }


def _buffer_bytes(value: Mapping[str, Any]) -> bytes | None:
    """Return the bytes of a Node-style ``{"type": "Buffer", "data": [...]}`` mapping."""
    if value.get("type") != "Buffer":
        return None
    data = value.get("data")
    if not isinstance(data, list):
        return None
    try:
        return bytes(data)
    except (TypeError, ValueError):
        return None


def _default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return _render_buffer(bytes(obj))
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return str(obj)


def _sanitize(value: Any, seen: dict[int, Any]) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _render_buffer(bytes(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()

    if id(value) in seen:
        return CIRCULAR_MARKER
    # Holding the reference keeps ids of temporaries (to_dict() results) unique.
    seen[id(value)] = value

    if isinstance(value, Mapping):
        raw = _buffer_bytes(value)
        if raw is not None:
            return _render_buffer(raw)
        out: dict[str, Any] = {}
        for key, item in value.items():
            k = str(key)
            out[k] = CIRCULAR_MARKER if k in TRANSPORT_KEYS else _sanitize(item, seen)
        return out
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_sanitize(item, seen) for item in value]

    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return _sanitize(to_dict(), seen)
    if hasattr(value, "__dict__"):
        return _sanitize({k: v for k, v in vars(value).items() if not k.startswith("__")}, seen)
    return str(value)


def _has_content(value: Any) -> bool:
    try:
        if isinstance(value, Mapping):
            return "content" in value
        return hasattr(value, "content")
    except Exception:  # noqa: BLE001
        return False


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=_default, ensure_ascii=False)


def safe_serialize(value: Any) -> str:
    """Render *value* as JSON text without ever raising."""
    if isinstance(value, str):
        return value

    try:
        text = _dump(value)
    except Exception as exc:  # noqa: BLE001
        logger.debug("Direct serialization failed, retrying with cycle detection: %s", exc)
    else:
        if not _BUFFER_PATTERN.search(text):
            return text

    try:
        return _dump(_sanitize(value, {}))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Safe serialization failed: %s", exc)
        descriptor = {
            "error": f"Failed to serialize response: {exc}",
            "valueType": type(value).__name__,
            "hasContent": _has_content(value),
        }
        try:
            return json.dumps(descriptor, indent=2)
        except (ValueError, TypeError):
            return '{"error": "Failed to serialize response"}'


# ---------------------------------------------------------------------------
# Stream-shaped payloads
# ---------------------------------------------------------------------------


def _chunk_bytes(chunk: Any) -> bytes | None:
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    if isinstance(chunk, Mapping):
        raw = _buffer_bytes(chunk)
        if raw is None and isinstance(chunk.get("data"), Mapping):
            raw = _buffer_bytes(chunk["data"])
        return raw
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return None


def _stream_bytes(obj: Any) -> bytes | None:
    """Extract buffered bytes from a stream-like object, or None if it is not one."""
    if isinstance(obj, httpx.Response):
        try:
            return obj.content
        except httpx.ResponseNotRead:
            return None
    if isinstance(obj, io.BytesIO):
        return obj.getvalue()
    if isinstance(obj, Mapping):
        state = obj.get("_readableState")
        if isinstance(state, Mapping) and isinstance(state.get("buffer"), list):
            parts = [_chunk_bytes(c) for c in state["buffer"]]
            if any(p is None for p in parts):
                return None
            return b"".join(p for p in parts if p is not None)
    return None


def serialize_stream_payload(value: Any) -> str:
    """Like :func:`safe_serialize`, but normalizes a live stream payload.

    When *value* is a mapping that declares ``contentType`` and ``isBinary``
    and one of its fields is stream-like, the buffered bytes are decoded as
    UTF-8 (text) or hex-previewed (binary or undecodable) into a
    ``{content|hexContent, isBinary, contentType, size, length, position}``
    envelope.
    """
    if not isinstance(value, Mapping) or "contentType" not in value or "isBinary" not in value:
        return safe_serialize(value)

    try:
        data: bytes | None = None
        for item in value.values():
            data = _stream_bytes(item)
            if data is not None:
                break
        if data is None:
            return safe_serialize(value)

        envelope: dict[str, Any] = {}
        is_binary = bool(value["isBinary"])
        if not is_binary:
            try:
                envelope["content"] = data.decode("utf-8")
            except UnicodeDecodeError:
                is_binary = True
        if is_binary:
            envelope["hexContent"] = data[:HEX_PREVIEW_BYTES].hex()
        envelope.update(
            {
                "isBinary": is_binary,
                "contentType": value["contentType"],
                "size": value.get("size", len(data)),
                "length": len(data),
                "position": value.get("position", 0),
            }
        )
        return safe_serialize(envelope)
    except Exception as exc:  # noqa: BLE001
        logger.debug("Stream payload normalization failed: %s", exc)
        return safe_serialize(value)
