"""Patch IR — typed, validated, JSON-serializable edit operations for workflow plans.

Each op describes a single semantic change to a plan:
  UpdateTitle     — set the plan title
  CreateTask      — append a new task
  UpdateTask      — merge fields into an existing task
  DeleteTask      — remove a task and every dependency on it
  CreateVariable  — append a new variable
  UpdateVariable  — merge fields into an existing variable (re-validated as a whole)
  DeleteVariable  — remove a variable

On the wire (LLM tool calls) an operation is one flat object discriminated by
``op``, with camelCase payload keys:

    {"op": "updateTask", "taskId": "task-2", "data": {"prompt": "..."}}

op_from_dict() turns that into the matching dataclass and checks that the
payload the op needs is present.  The patch engine in patch.py applies them.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError

from canvas_planner.plan.errors import PlanValidationError
from canvas_planner.plan.plan_schema import (
    PatchData,
    PlanModel,
    WorkflowTask,
    WorkflowVariable,
    issues_from_validation_error,
)


# ---------------------------------------------------------------------------
# Patch IR operation types
# ---------------------------------------------------------------------------


@dataclass
class UpdateTitle:
    """Overwrite the plan title. A None title is a no-op."""

    op: str = "updateTitle"
    title: str | None = None


@dataclass
class CreateTask:
    """Append *task*. Fails when a task with the same id exists.

    task: WorkflowTask, or a raw dict validated when the op is applied.
    """

    op: str = "createTask"
    task: WorkflowTask | dict[str, Any] = field(default_factory=dict)


@dataclass
class UpdateTask:
    """Merge title / prompt / dependentTasks / toolsets from *data* into a task."""

    op: str = "updateTask"
    task_id: str = ""
    data: PatchData = field(default_factory=PatchData)


@dataclass
class DeleteTask:
    """Remove a task and strip its id from every other task's dependentTasks."""

    op: str = "deleteTask"
    task_id: str = ""


@dataclass
class CreateVariable:
    op: str = "createVariable"
    variable: WorkflowVariable | dict[str, Any] = field(default_factory=dict)


@dataclass
class UpdateVariable:
    op: str = "updateVariable"
    variable_id: str = ""
    data: PatchData = field(default_factory=PatchData)


@dataclass
class DeleteVariable:
    op: str = "deleteVariable"
    variable_id: str = ""


# Union type for all Patch IR ops
PatchOp = Union[
    UpdateTitle,
    CreateTask,
    UpdateTask,
    DeleteTask,
    CreateVariable,
    UpdateVariable,
    DeleteVariable,
]

# Discriminator map: op string → dataclass
_OP_TYPE_MAP: dict[str, type] = {
    "updateTitle": UpdateTitle,
    "createTask": CreateTask,
    "updateTask": UpdateTask,
    "deleteTask": DeleteTask,
    "createVariable": CreateVariable,
    "updateVariable": UpdateVariable,
    "deleteVariable": DeleteVariable,
}

PATCH_OP_TYPES: tuple[type, ...] = tuple(_OP_TYPE_MAP.values())

# Payload each op cannot do without: dataclass field → wire key
_REQUIRED_PAYLOAD: dict[str, tuple[str, str]] = {
    "createTask": ("task", "task"),
    "updateTask": ("task_id", "taskId"),
    "deleteTask": ("task_id", "taskId"),
    "createVariable": ("variable", "variable"),
    "updateVariable": ("variable_id", "variableId"),
    "deleteVariable": ("variable_id", "variableId"),
}

# dataclass field → wire key, for fields whose names differ
_WIRE_KEYS: dict[str, str] = {"task_id": "taskId", "variable_id": "variableId"}


# ---------------------------------------------------------------------------
# Wire envelope (what an LLM tool call carries)
# ---------------------------------------------------------------------------


class PatchOperationModel(PlanModel):
    """Flat single-object form of an operation, friendly to LLM tool schemas."""

    op: str
    title: Optional[str] = None
    task_id: Optional[str] = None
    task: Optional[WorkflowTask] = None
    variable_id: Optional[str] = None
    variable: Optional[WorkflowVariable] = None
    data: Optional[PatchData] = None


class WorkflowPlanPatch(PlanModel):
    plan_id: Optional[str] = None
    operations: list[PatchOperationModel]


@dataclass
class PlanPatch:
    """A validated patch: optional target plan id + typed operations."""

    plan_id: str | None
    operations: list[PatchOp]


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def op_from_dict(d: dict[str, Any]) -> PatchOp:
    """Deserialize a wire dict to a typed PatchOp.

    Accepts camelCase (taskId) or snake_case (task_id) payload keys.
    Unknown keys are silently dropped (forward-compatibility).
    Raises PlanValidationError for an unknown op, a missing required payload,
    or a malformed ``data`` object.  Task / variable bodies are validated when
    the op is applied, not here.
    """
    if not isinstance(d, dict):
        raise PlanValidationError(
            "Patch operation", [("root", f"Expected an object, got {type(d).__name__}")]
        )

    op = d.get("op")
    cls = _OP_TYPE_MAP.get(op)  # type: ignore[arg-type]
    if cls is None:
        raise PlanValidationError(
            "Patch operation",
            [("op", f"Unknown op: {op!r}. Valid ops: {list(_OP_TYPE_MAP)}")],
            op=op if isinstance(op, str) else None,
        )

    kwargs: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        if f.name == "op":
            continue
        wire_key = _WIRE_KEYS.get(f.name, f.name)
        if wire_key in d:
            kwargs[f.name] = d[wire_key]
        elif f.name in d:
            kwargs[f.name] = d[f.name]

    required = _REQUIRED_PAYLOAD.get(op)
    if required is not None:
        field_name, wire_key = required
        value = kwargs.get(field_name)
        if value is None or value == "":
            raise PlanValidationError(
                "Patch operation",
                [(wire_key, f"'{wire_key}' is required for {op}")],
                op=op,
            )

    if "data" in kwargs:
        raw_data = kwargs["data"]
        if raw_data is None:
            kwargs.pop("data")
        elif not isinstance(raw_data, PatchData):
            try:
                kwargs["data"] = PatchData.model_validate(raw_data)
            except ValidationError as exc:
                raise PlanValidationError(
                    "Patch data",
                    issues_from_validation_error(exc, ("data",)),
                    op=op,
                    target_id=kwargs.get("task_id") or kwargs.get("variable_id"),
                ) from exc

    return cls(**kwargs)


def op_to_dict(op: PatchOp) -> dict[str, Any]:
    """Serialize a PatchOp to its camelCase wire dict (None fields omitted)."""
    out: dict[str, Any] = {}
    for f in dataclasses.fields(op):
        value = getattr(op, f.name)
        if value is None:
            continue
        if isinstance(value, BaseModel):
            value = value.model_dump(by_alias=True, exclude_none=True, mode="json")
        out[_WIRE_KEYS.get(f.name, f.name)] = value
    return out


def ops_to_json(ops: list[PatchOp]) -> str:
    """Serialize a list of PatchOp objects to a pretty-printed JSON string."""
    return json.dumps([op_to_dict(op) for op in ops], indent=2)


def ops_from_json(s: str) -> list[PatchOp]:
    """Deserialize a JSON string (or code-fenced block) to a list of PatchOp objects.

    Tolerates LLM output that wraps the JSON array in ```json...``` fences.
    Raises ValueError if the string is not a valid JSON array, and
    PlanValidationError for invalid operations.
    """
    stripped = s.strip()
    if stripped.startswith("```"):
        lines = stripped.splitlines()
        inner = "\n".join(lines[1:])
        if inner.rstrip().endswith("```"):
            inner = inner.rstrip()[:-3].rstrip()
        stripped = inner.strip()

    raw_list = json.loads(stripped)
    if not isinstance(raw_list, list):
        raise ValueError(
            f"Expected a JSON array of ops, got {type(raw_list).__name__}"
        )
    return [op_from_dict(item) for item in raw_list]


def parse_workflow_plan_patch(data: Any) -> PlanPatch:
    """Validate a patch envelope ``{planId?, operations: [...]}``.

    Structural problems are collected for the whole envelope first
    (``[operations.1.task.toolsets]: Input should be a valid list``), then each
    operation is checked for the payload its op requires.
    Raises PlanValidationError labelled "Workflow plan patch".
    """
    try:
        envelope = WorkflowPlanPatch.model_validate(data)
    except ValidationError as exc:
        raise PlanValidationError(
            "Workflow plan patch", issues_from_validation_error(exc)
        ) from exc

    operations: list[PatchOp] = []
    issues: list[tuple[str, str]] = []
    for i, model in enumerate(envelope.operations):
        raw = {
            key: value
            for key, value in (
                ("op", model.op),
                ("title", model.title),
                ("taskId", model.task_id),
                ("task", model.task),
                ("variableId", model.variable_id),
                ("variable", model.variable),
                ("data", model.data),
            )
            if value is not None
        }
        try:
            operations.append(op_from_dict(raw))
        except PlanValidationError as exc:
            issues.extend((f"operations.{i}.{path}", msg) for path, msg in exc.issues)

    if issues:
        raise PlanValidationError("Workflow plan patch", issues)
    return PlanPatch(plan_id=envelope.plan_id, operations=operations)
