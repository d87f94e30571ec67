"""WorkflowPlan schema — typed, validated models for AI-authored workflow plans.

A workflow plan is the declarative document an authoring agent produces:

    {
      "title": "Weekly competitor digest",
      "tasks": [
        {"id": "task-1", "title": "Research", "prompt": "...", "toolsets": ["web_search"]},
        {"id": "task-2", "title": "Summarize",
         "prompt": "Summarize @{type=agent,id=task-1,name=Research}",
         "dependentTasks": ["task-1"], "toolsets": []}
      ],
      "variables": [
        {"variableId": "var-1", "variableType": "string", "name": "company",
         "description": "Company to watch", "value": [{"type": "text", "text": "ACME"}]}
      ]
    }

Python attributes are snake_case; the wire form is camelCase.  Models accept
either spelling on input and dump camelCase with ``by_alias=True``.

Task id / title / prompt tolerate absence (coerced to "") because plans come
from partially generated LLM output.  Variables are stricter: they are
user-facing inputs and a bad combination breaks the run form.

Public API:
    WorkflowTask, WorkflowVariable, WorkflowVariableValue, WorkflowPlan
    GenericToolset, PatchData
    parse_workflow_plan()     — validate untrusted data, raise PlanValidationError
    validate_task()           — validate one task payload (used by the patch engine)
    validate_variable()       — validate one variable payload (used by the patch engine)
    normalize_workflow_plan() — copy with every task carrying a toolsets list
    dump_plan()               — camelCase, JSON-safe dict
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from canvas_planner.plan.errors import PlanValidationError

ResourceType = Literal["document", "image", "audio", "video"]
VariableType = Literal["string", "resource"]

RESOURCE_TYPES: tuple[str, ...] = ("document", "image", "audio", "video")

# Fields of PatchData that apply to tasks vs. variables.
TASK_UPDATE_FIELDS: tuple[str, ...] = ("title", "prompt", "dependent_tasks", "toolsets")
VARIABLE_UPDATE_FIELDS: tuple[str, ...] = (
    "variable_type",
    "name",
    "description",
    "required",
    "resource_types",
    "value",
)


class PlanModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class WorkflowTask(PlanModel):
    """One unit of work in the plan; compiled into one canvas node.

    id:              Plan-local, author-chosen symbol (e.g. "task-1").
                     Not globally unique; the compiler maps it to an entity id.
    title:           Display title.
    prompt:          Instruction text. May embed @{type=agent,id=<taskId>,name=<label>}.
    dependent_tasks: Ids of tasks that must complete first (wire: dependentTasks).
    toolsets:        Toolset ids or keys this task may use.
    """

    id: str = ""
    title: str = ""
    prompt: str = ""
    dependent_tasks: Optional[list[str]] = None
    toolsets: list[str] = Field(default_factory=list)

    @field_validator("id", "title", "prompt", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("toolsets", mode="before")
    @classmethod
    def _none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v


# ---------------------------------------------------------------------------
# Variables
# ---------------------------------------------------------------------------


class VariableResource(PlanModel):
    name: str
    file_type: ResourceType


class WorkflowVariableValue(PlanModel):
    type: Literal["text", "resource"] = "text"
    text: Optional[str] = None
    resource: Optional[VariableResource] = None


class WorkflowVariable(PlanModel):
    """A runtime input of the workflow ("User Input" in the canvas).

    variable_id is unique within the plan and never changes once created.
    resource_types only makes sense for resource variables.
    """

    variable_id: str
    variable_type: VariableType = "string"
    name: str
    description: str
    required: bool = False
    resource_types: Optional[list[ResourceType]] = None
    value: list[WorkflowVariableValue]

    @model_validator(mode="after")
    def _resource_types_need_resource_variable(self) -> "WorkflowVariable":
        if self.resource_types and self.variable_type != "resource":
            raise ValueError(
                "resourceTypes is only allowed when variableType is 'resource'"
            )
        return self


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------


class WorkflowPlan(PlanModel):
    title: str = ""
    tasks: list[WorkflowTask] = Field(default_factory=list)
    variables: list[WorkflowVariable] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def get_task(self, task_id: str) -> WorkflowTask | None:
        """Find a task by its plan-local id. Returns None if not found."""
        return next((t for t in self.tasks if t.id == task_id), None)

    def get_variable(self, variable_id: str) -> WorkflowVariable | None:
        """Find a variable by id. Returns None if not found."""
        return next((v for v in self.variables if v.variable_id == variable_id), None)


# ---------------------------------------------------------------------------
# Toolsets (read-only input owned by the tool registry)
# ---------------------------------------------------------------------------


class ToolsetRef(PlanModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    key: Optional[str] = None


class GenericToolset(PlanModel):
    """A tool bundle available in the caller's environment.

    Unknown keys are preserved so the compiled node carries the toolset
    exactly as the registry described it.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    name: str = ""
    type: Literal["regular", "mcp"] = "regular"
    toolset: Optional[ToolsetRef] = None
    selected_tools: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Patch update payload
# ---------------------------------------------------------------------------


class PatchData(PlanModel):
    """Update payload shared by updateTask and updateVariable.

    Only the fields that are set are merged; task updates read
    TASK_UPDATE_FIELDS and variable updates read VARIABLE_UPDATE_FIELDS.
    """

    title: Optional[str] = None
    prompt: Optional[str] = None
    dependent_tasks: Optional[list[str]] = None
    toolsets: Optional[list[str]] = None

    variable_type: Optional[VariableType] = None
    name: Optional[str] = None
    description: Optional[str] = None
    required: Optional[bool] = None
    resource_types: Optional[list[ResourceType]] = None
    value: Optional[list[WorkflowVariableValue]] = None

    def provided(self, fields: tuple[str, ...]) -> dict[str, Any]:
        """Return {field: value} for the given fields that were provided (not None)."""
        return {
            name: getattr(self, name)
            for name in fields
            if getattr(self, name) is not None
        }


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def issues_from_validation_error(
    exc: ValidationError,
    prefix: tuple[str | int, ...] = (),
) -> list[tuple[str, str]]:
    """Convert a pydantic ValidationError into (dotted_path, message) pairs."""
    issues: list[tuple[str, str]] = []
    for err in exc.errors():
        loc = prefix + tuple(err.get("loc", ()))
        path = ".".join(str(part) for part in loc) if loc else "root"
        issues.append((path, err.get("msg", "Invalid value")))
    return issues


def _duplicate_id_issues(plan: WorkflowPlan) -> list[tuple[str, str]]:
    issues: list[tuple[str, str]] = []
    seen_tasks: set[str] = set()
    for i, task in enumerate(plan.tasks):
        if not task.id:
            continue
        if task.id in seen_tasks:
            issues.append((f"tasks.{i}.id", f"Duplicate task id '{task.id}'"))
        seen_tasks.add(task.id)
    seen_vars: set[str] = set()
    for i, var in enumerate(plan.variables):
        if var.variable_id in seen_vars:
            issues.append(
                (f"variables.{i}.variableId", f"Duplicate variable id '{var.variable_id}'")
            )
        seen_vars.add(var.variable_id)
    return issues


def parse_workflow_plan(data: Any) -> WorkflowPlan:
    """Validate untrusted plan data and return a WorkflowPlan.

    Raises PlanValidationError listing every problem with its dotted path,
    e.g. ``[tasks.1.toolsets]: Input should be a valid list``.
    Duplicate task / variable ids are reported after structural validation.
    """
    if isinstance(data, WorkflowPlan):
        plan = data
    else:
        try:
            plan = WorkflowPlan.model_validate(data)
        except ValidationError as exc:
            raise PlanValidationError(
                "Workflow plan", issues_from_validation_error(exc)
            ) from exc

    duplicates = _duplicate_id_issues(plan)
    if duplicates:
        raise PlanValidationError("Workflow plan", duplicates)
    return plan


def validate_task(data: Any) -> WorkflowTask:
    """Validate a single task payload. Raises PlanValidationError."""
    if isinstance(data, WorkflowTask):
        return data
    try:
        return WorkflowTask.model_validate(data)
    except ValidationError as exc:
        raise PlanValidationError("Task", issues_from_validation_error(exc)) from exc


def validate_variable(data: Any, label: str = "Variable") -> WorkflowVariable:
    """Validate a single variable payload. Raises PlanValidationError.

    Always re-runs validation, even for WorkflowVariable instances, so merged
    updates built with model_copy() are checked as a whole.
    """
    if isinstance(data, WorkflowVariable):
        data = data.model_dump()
    try:
        return WorkflowVariable.model_validate(data)
    except ValidationError as exc:
        raise PlanValidationError(label, issues_from_validation_error(exc)) from exc


def normalize_workflow_plan(plan: WorkflowPlan) -> WorkflowPlan:
    """Return a deep copy of *plan* where every task has its own toolsets list."""
    normalized = plan.model_copy(deep=True)
    for task in normalized.tasks:
        task.toolsets = list(task.toolsets or [])
    return normalized


def dump_plan(plan: WorkflowPlan) -> dict[str, Any]:
    """Serialize a plan to the camelCase wire dict."""
    return plan.model_dump(by_alias=True, exclude_none=True, mode="json")
