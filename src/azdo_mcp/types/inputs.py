"""TypedDict contracts for MCP tool handler input arguments.

Each TypedDict mirrors the JSON Schema ``inputSchema`` on the corresponding
``mcp.types.Tool`` definition.  The ``TOOL_ARGS_MAP`` registry maps tool names
to their TypedDict class so the sync test can verify structural agreement.

Safety note on cast():
    The MCP SDK validates argument presence/types against JSON Schema before
    handler invocation.  The TypedDicts here are a *static-analysis* tool;
    ``cast()`` provides type narrowing only, not runtime validation.
"""

# NOTE: Do NOT add ``from __future__ import annotations`` to this module.
# It breaks TypedDict.__required_keys__ / __optional_keys__ introspection
# on Python <3.14, which the sync test in test_input_type_contracts.py
# depends on for verifying required/optional agreement with JSON Schema.

from typing import NotRequired, TypedDict

# ---------------------------------------------------------------------------
# work_items.py handlers
# ---------------------------------------------------------------------------


class GetWorkItemArgs(TypedDict):
    id: int


class GetWorkItemsArgs(TypedDict):
    ids: list[int]


# ---------------------------------------------------------------------------
# git.py handlers
# ---------------------------------------------------------------------------


class ListRepositoriesArgs(TypedDict):
    project: NotRequired[str]


class ListPullRequestsArgs(TypedDict):
    repositoryId: str
    project: NotRequired[str]


class PullRequestArgs(TypedDict):
    repositoryId: str
    pullRequestId: int
    project: NotRequired[str]


class CreatePrCommentArgs(TypedDict):
    repositoryId: str
    pullRequestId: int
    content: str
    project: NotRequired[str]
    threadId: NotRequired[int]
    filePath: NotRequired[str]
    lineNumber: NotRequired[int]
    parentCommentId: NotRequired[int]
    status: NotRequired[str]


# ---------------------------------------------------------------------------
# files.py handlers
# ---------------------------------------------------------------------------


class PullRequestFileContentArgs(TypedDict):
    repositoryId: str
    pullRequestId: int
    filePath: str
    objectId: str
    project: NotRequired[str]
    returnPlainText: NotRequired[bool]
    startPosition: NotRequired[int]
    length: NotRequired[int]


class BranchFileContentArgs(TypedDict):
    repositoryId: str
    branchName: str
    filePath: str
    project: NotRequired[str]
    returnPlainText: NotRequired[bool]
    startPosition: NotRequired[int]
    length: NotRequired[int]


# ---------------------------------------------------------------------------
# test_plans.py handlers
# ---------------------------------------------------------------------------


class ListTestPlansArgs(TypedDict):
    project: NotRequired[str]


class PlanArgs(TypedDict):
    testPlanId: int
    project: NotRequired[str]


class SuiteArgs(TypedDict):
    testPlanId: int
    testSuiteId: int
    project: NotRequired[str]


# Registry: tool_name -> TypedDict class.
# No-argument tools (empty inputSchema properties) are intentionally excluded.
TOOL_ARGS_MAP: dict[str, type] = {
    # work_items.py
    "get_work_item": GetWorkItemArgs,
    "get_work_items": GetWorkItemsArgs,
    "get_work_item_attachments": GetWorkItemArgs,
    "get_work_item_links": GetWorkItemArgs,
    "get_linked_work_items": GetWorkItemArgs,
    # git.py
    "list_repositories": ListRepositoriesArgs,
    "list_pull_requests": ListPullRequestsArgs,
    "get_pull_request": PullRequestArgs,
    "get_pull_request_threads": PullRequestArgs,
    "get_pull_request_changes": PullRequestArgs,
    "create_pr_comment": CreatePrCommentArgs,
    # files.py
    "get_pull_request_file_content": PullRequestFileContentArgs,
    "get_branch_file_content": BranchFileContentArgs,
    # test_plans.py
    "list_test_plans": ListTestPlansArgs,
    "get_test_plan": PlanArgs,
    "list_test_suites": PlanArgs,
    "get_test_suite": SuiteArgs,
    "list_test_cases": SuiteArgs,
}
