"""Tool catalog for the workflow plan MCP tools.

``TOOL_CATALOG`` is the single source of truth for tool metadata (name,
description, JSON schema).  The MCP server consumes it directly.

Adding a tool: append to ``TOOL_CATALOG`` and add the method to
``PlanMCPTools``.  Two files, nothing else.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ToolDef:
    """Definition of a tool an agent may call.

    parameters follows JSON Schema format:
        {"type": "object", "properties": {...}, "required": [...]}
    """

    name: str
    description: str
    parameters: dict[str, Any]


def _td(name: str, desc: str, props: dict[str, Any] | None = None, req: list[str] | None = None) -> ToolDef:
    return ToolDef(
        name=name,
        description=desc,
        parameters={"type": "object", "properties": props or {}, "required": req or []},
    )


def _str(description: str) -> dict:
    return {"type": "string", "description": description}


def _bool(description: str) -> dict:
    return {"type": "boolean", "description": description}


def _obj(description: str) -> dict:
    return {"type": "object", "description": description}


def _arr(description: str) -> dict:
    return {"type": "array", "items": {"type": "object"}, "description": description}


_PLAN_DESC = (
    "Workflow plan object {title, tasks: [{id, title, prompt, dependentTasks, toolsets}], "
    "variables: [{variableId, variableType, name, description, required, value}]}"
)

_OPERATIONS_DESC = (
    "Ordered patch operations. Each is {op, ...}: "
    "updateTitle {title}; createTask {task}; updateTask {taskId, data}; deleteTask {taskId}; "
    "createVariable {variable}; updateVariable {variableId, data}; deleteVariable {variableId}"
)


# ==================================================================
# TOOL_CATALOG: every tool the server exposes.
# Each entry: (method_name_on_PlanMCPTools, ToolDef)
# ==================================================================

TOOL_CATALOG: list[tuple[str, ToolDef]] = [
    ("validate_workflow_plan", _td(
        "validate_workflow_plan",
        "Validate a workflow plan and return it normalized; errors list every invalid field path",
        {"plan": _obj(_PLAN_DESC)},
        ["plan"],
    )),
    ("compile_workflow_plan", _td(
        "compile_workflow_plan",
        "Compile a workflow plan into canvas nodes, dependency edges and variables",
        {
            "plan": _obj(_PLAN_DESC),
            "toolsets": _arr("Available toolsets {id, name, type, toolset: {key}}; unknown ids are dropped"),
            "auto_layout": _bool("Let the layout place nodes instead of stacking them"),
        },
        ["plan"],
    )),
    ("patch_workflow_plan", _td(
        "patch_workflow_plan",
        "Apply ordered operations to a workflow plan; all-or-nothing, returns the new plan",
        {
            "plan": _obj(_PLAN_DESC),
            "operations": _arr(_OPERATIONS_DESC),
            "plan_id": _str("Optional id of the plan being patched"),
        },
        ["plan", "operations"],
    )),
    ("get_workflow_summary", _td(
        "get_workflow_summary",
        "Summarize a workflow plan: task and variable ids, titles, dependencies, prompt previews",
        {
            "plan": _obj(_PLAN_DESC),
            "plan_id": _str("Optional id of the plan"),
        },
        ["plan"],
    )),
]
