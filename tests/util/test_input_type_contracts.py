"""Tool input schemas and the TypedDicts in ``azdo_mcp.types.inputs`` must agree.

Handlers cast their arguments to these TypedDicts, so a schema property that
is renamed or made optional without touching the TypedDict would go unnoticed
by mypy.  These checks compare names, required/optional status and the JSON
type of every property.
"""

from __future__ import annotations

import importlib
from pathlib import Path
from typing import Any, get_origin, get_type_hints

import pytest
from mcp.types import Tool

from azdo_mcp.mcp_server import list_tools
from azdo_mcp.mcp_tools import common
from azdo_mcp.types.inputs import TOOL_ARGS_MAP

_JSON_TYPES: dict[str, type] = {"string": str, "integer": int, "boolean": bool, "array": list}


def _properties(tool: Tool) -> dict[str, Any]:
    return tool.inputSchema.get("properties") or {}


@pytest.fixture
async def tools() -> dict[str, Tool]:
    return {tool.name: tool for tool in await list_tools()}


async def test_every_tool_with_arguments_has_a_typeddict(tools: dict[str, Tool]) -> None:
    with_args = {name for name, tool in tools.items() if _properties(tool)}
    assert with_args == set(TOOL_ARGS_MAP)


async def test_only_list_projects_takes_no_arguments(tools: dict[str, Tool]) -> None:
    assert [name for name, tool in tools.items() if not _properties(tool)] == ["list_projects"]


@pytest.mark.parametrize("tool_name", sorted(TOOL_ARGS_MAP))
class TestToolContract:
    async def test_keys(self, tools: dict[str, Tool], tool_name: str) -> None:
        hints = get_type_hints(TOOL_ARGS_MAP[tool_name])
        assert set(hints) == set(_properties(tools[tool_name]))

    async def test_required_and_optional(self, tools: dict[str, Tool], tool_name: str) -> None:
        args_cls = TOOL_ARGS_MAP[tool_name]
        schema = tools[tool_name].inputSchema
        required = set(schema.get("required", []))
        assert args_cls.__required_keys__ == required  # type: ignore[attr-defined]
        assert args_cls.__optional_keys__ == set(_properties(tools[tool_name])) - required  # type: ignore[attr-defined]

    async def test_property_types(self, tools: dict[str, Tool], tool_name: str) -> None:
        hints = get_type_hints(TOOL_ARGS_MAP[tool_name])
        for key, prop in _properties(tools[tool_name]).items():
            annotation = get_origin(hints[key]) or hints[key]
            assert annotation is _JSON_TYPES[prop["type"]], f"{tool_name}.{key}"

    async def test_project_is_optional(self, tools: dict[str, Tool], tool_name: str) -> None:
        if "project" in _properties(tools[tool_name]):
            assert "project" in TOOL_ARGS_MAP[tool_name].__optional_keys__  # type: ignore[attr-defined]


async def test_every_tool_module_is_served(tools: dict[str, Tool]) -> None:
    tools_dir = Path(common.__file__).parent
    for path in sorted(tools_dir.glob("*.py")):
        if path.stem == "common":
            continue
        module_tools, _ = importlib.import_module(f"azdo_mcp.mcp_tools.{path.stem}").register()
        assert {tool.name for tool in module_tools} <= set(tools), path.stem
