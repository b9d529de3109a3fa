"""MCP tools for test plans, suites and cases. Every response goes through the truncator."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mcp.types import CallToolResult, Tool

from azdo_mcp.mcp_tools.common import ToolResult, _first_error, _parse_args, _project_schema, _require_int, _text, _validate_str
from azdo_mcp.truncation import truncate_response
from azdo_mcp.types.inputs import ListTestPlansArgs, PlanArgs, SuiteArgs


def _plan_schema(*, with_suite: bool = False) -> dict[str, Any]:
    properties: dict[str, Any] = {
        "testPlanId": {"type": "integer", "minimum": 1, "description": "Test plan ID"},
    }
    required = ["testPlanId"]
    if with_suite:
        properties["testSuiteId"] = {"type": "integer", "minimum": 1, "description": "Test suite ID"}
        required.append("testSuiteId")
    properties["project"] = _project_schema()
    return {"type": "object", "properties": properties, "required": required}


def register() -> tuple[list[Tool], dict[str, Callable[..., Any]]]:
    """Return (tool_definitions, handler_map) for test plan tools."""
    tools = [
        Tool(
            name="list_test_plans",
            description="List test plans in a project.",
            inputSchema={"type": "object", "properties": {"project": _project_schema()}},
        ),
        Tool(
            name="get_test_plan",
            description="Get a test plan by ID.",
            inputSchema=_plan_schema(),
        ),
        Tool(
            name="list_test_suites",
            description="List the test suites of a test plan.",
            inputSchema=_plan_schema(),
        ),
        Tool(
            name="get_test_suite",
            description="Get a test suite by ID.",
            inputSchema=_plan_schema(with_suite=True),
        ),
        Tool(
            name="list_test_cases",
            description="List the test cases in a test suite.",
            inputSchema=_plan_schema(with_suite=True),
        ),
    ]

    handlers: dict[str, Callable[..., Any]] = {
        "list_test_plans": _handle_list_test_plans,
        "get_test_plan": _handle_get_test_plan,
        "list_test_suites": _handle_list_test_suites,
        "get_test_suite": _handle_get_test_suite,
        "list_test_cases": _handle_list_test_cases,
    }
    return tools, handlers


def _check_plan(args: PlanArgs | SuiteArgs) -> CallToolResult | None:
    return _first_error(
        _require_int(args.get("testPlanId"), "testPlanId"),
        _validate_str(args.get("project"), "project"),
    )


def _check_suite(args: SuiteArgs) -> CallToolResult | None:
    return _first_error(_check_plan(args), _require_int(args.get("testSuiteId"), "testSuiteId"))


async def _handle_list_test_plans(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, ListTestPlansArgs)
    project = args.get("project")
    if (err := _validate_str(project, "project")) is not None:
        return err
    return _text(truncate_response(await _get_client().get_test_plans(project)))


async def _handle_get_test_plan(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, PlanArgs)
    if (err := _check_plan(args)) is not None:
        return err
    plan = await _get_client().get_test_plan(args["testPlanId"], args.get("project"))
    return _text(truncate_response(plan))


async def _handle_list_test_suites(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, PlanArgs)
    if (err := _check_plan(args)) is not None:
        return err
    suites = await _get_client().get_test_suites(args["testPlanId"], args.get("project"))
    return _text(truncate_response(suites))


async def _handle_get_test_suite(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, SuiteArgs)
    if (err := _check_suite(args)) is not None:
        return err
    suite = await _get_client().get_test_suite(args["testPlanId"], args["testSuiteId"], args.get("project"))
    return _text(truncate_response(suite))


async def _handle_list_test_cases(arguments: dict[str, Any]) -> ToolResult:
    from azdo_mcp.mcp_server import _get_client

    args = _parse_args(arguments, SuiteArgs)
    if (err := _check_suite(args)) is not None:
        return err
    cases = await _get_client().get_test_cases(args["testPlanId"], args["testSuiteId"], args.get("project"))
    return _text(truncate_response(cases))
