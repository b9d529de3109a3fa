"""Pure helpers and constants shared across MCP tool modules.

This module has NO dependency on ``mcp_server`` module globals, so it can
be imported freely without triggering circular-import issues.
"""

from __future__ import annotations

from typing import Any, TypeVar, cast

from mcp.types import CallToolResult, TextContent

from azdo_mcp.serialization import serialize_stream_payload
from azdo_mcp.types.api import ErrorResponse

_T = TypeVar("_T")

ToolResult = list[TextContent] | CallToolResult

_PROJECT_PROPERTY = {"type": "string", "description": "Project name (defaults to the configured project)"}


def _parse_args(arguments: dict[str, Any], cls: type[_T]) -> _T:
    """Cast MCP arguments to a typed dict for static analysis.

    Safety: MCP SDK validates argument presence/types against JSON Schema
    before handler invocation. Handlers still check the values they use.
    This cast() provides mypy type narrowing only, no runtime validation.
    """
    return cast(_T, arguments)


def _text(content: object) -> list[TextContent]:
    if isinstance(content, str):
        return [TextContent(type="text", text=content)]
    return [TextContent(type="text", text=serialize_stream_payload(content))]


def _error(message: str, code: str = "validation_error") -> CallToolResult:
    """Error envelope, flagged so the client sees ``isError``."""
    return CallToolResult(content=_text(ErrorResponse(error=message, code=code)), isError=True)


def _project_schema() -> dict[str, Any]:
    return dict(_PROJECT_PROPERTY)


def _validate_str(value: Any, name: str) -> CallToolResult | None:
    """Return a validation error if *value* is not ``None`` and not a ``str``."""
    if value is not None and not isinstance(value, str):
        return _error(f"{name} must be a string")
    return None


def _require_str(value: Any, name: str) -> CallToolResult | None:
    """Return a validation error unless *value* is a non-blank ``str``."""
    if not isinstance(value, str) or not value.strip():
        return _error(f"{name} is required")
    return None


def _validate_int_range(
    value: Any,
    name: str,
    min_val: int | None = None,
    max_val: int | None = None,
) -> CallToolResult | None:
    """Return a validation error if *value* is not ``None`` and outside range.

    When *value* is ``None`` it is considered optional and passes.
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        return _error(f"{name} must be an integer")
    if min_val is not None and value < min_val:
        return _error(f"{name} must be >= {min_val}")
    if max_val is not None and value > max_val:
        return _error(f"{name} must be <= {max_val}")
    return None


def _require_int(value: Any, name: str, min_val: int = 1) -> CallToolResult | None:
    if value is None:
        return _error(f"{name} is required")
    return _validate_int_range(value, name, min_val=min_val)


def _first_error(*checks: CallToolResult | None) -> CallToolResult | None:
    for err in checks:
        if err is not None:
            return err
    return None
