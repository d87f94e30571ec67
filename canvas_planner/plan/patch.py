"""Patch engine: apply ordered semantic operations to a workflow plan.

apply_patch() works on a deep copy of the plan and applies operations strictly
in list order.  The first operation that fails validation or a referential
check stops the run; the partially edited copy is dropped and the caller gets
a failed PatchResult.  From the caller's side a patch is all-or-nothing, and
the plan passed in is never mutated.  Unlike the compiler, the patch engine
is strict.

Failure kinds (all subclasses of WorkflowPlanError):
  DuplicateError       — createTask / createVariable on an existing id
  NotFoundError        — update / delete on a missing id
  PlanValidationError  — malformed operation, task or variable payload
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from canvas_planner.plan.errors import (
    DuplicateError,
    NotFoundError,
    PlanValidationError,
    WorkflowPlanError,
)
from canvas_planner.plan.patch_ir import (
    PATCH_OP_TYPES,
    CreateTask,
    CreateVariable,
    DeleteTask,
    DeleteVariable,
    PatchOp,
    UpdateTask,
    UpdateTitle,
    UpdateVariable,
    op_from_dict,
)
from canvas_planner.plan.plan_schema import (
    TASK_UPDATE_FIELDS,
    VARIABLE_UPDATE_FIELDS,
    WorkflowPlan,
    parse_workflow_plan,
    validate_task,
    validate_variable,
)

logger = logging.getLogger("canvas_planner.plan.patch")


@dataclass
class PatchResult:
    """Outcome of apply_patch().

    plan:         The patched plan (a new object). None on failure.
    error:        Human-readable failure, prefixed with the operation index and op.
    failure:      The typed error (DuplicateError / NotFoundError / PlanValidationError).
    diff_summary: One line per applied change; "(no changes)" when nothing changed.
    """

    plan: WorkflowPlan | None
    error: str | None = None
    failure: WorkflowPlanError | None = None
    diff_summary: str = "(no changes)"

    @property
    def ok(self) -> bool:
        """True when every operation applied."""
        return self.error is None


# ---------------------------------------------------------------------------
# Per-operation handlers (mutate the working copy)
# ---------------------------------------------------------------------------


def _task_index(plan: WorkflowPlan, task_id: str) -> int:
    return next((i for i, t in enumerate(plan.tasks) if t.id == task_id), -1)


def _variable_index(plan: WorkflowPlan, variable_id: str) -> int:
    return next((i for i, v in enumerate(plan.variables) if v.variable_id == variable_id), -1)


def _create_task(plan: WorkflowPlan, op: CreateTask, diff: list[str]) -> None:
    raw_id = op.task.get("id") if isinstance(op.task, Mapping) else getattr(op.task, "id", None)
    try:
        task = validate_task(op.task).model_copy(deep=True)
    except PlanValidationError as exc:
        exc.op, exc.target_id = op.op, raw_id if isinstance(raw_id, str) else None
        raise
    if not task.id:
        raise PlanValidationError("Task", [("task.id", "Task id must not be empty")], op=op.op)
    if _task_index(plan, task.id) != -1:
        raise DuplicateError(
            f'Task with ID "{task.id}" already exists. Use updateTask to modify existing tasks.',
            op=op.op,
            target_id=task.id,
        )
    plan.tasks.append(task)
    diff.append(f'TASK ADDED: [{task.id}] title="{task.title}"')


def _update_task(plan: WorkflowPlan, op: UpdateTask, diff: list[str]) -> None:
    i = _task_index(plan, op.task_id)
    if i == -1:
        raise NotFoundError(
            f'Task with ID "{op.task_id}" not found. Use createTask to create new tasks.',
            op=op.op,
            target_id=op.task_id,
        )
    updates = copy.deepcopy(op.data.provided(TASK_UPDATE_FIELDS))
    if not updates:
        return
    plan.tasks[i] = plan.tasks[i].model_copy(update=updates)
    diff.append(f"TASK MODIFIED: [{op.task_id}] fields={','.join(sorted(updates))}")


def _delete_task(plan: WorkflowPlan, op: DeleteTask, diff: list[str]) -> None:
    i = _task_index(plan, op.task_id)
    if i == -1:
        raise NotFoundError(
            f'Task with ID "{op.task_id}" not found.',
            op=op.op,
            target_id=op.task_id,
        )
    plan.tasks = [t for t in plan.tasks if t.id != op.task_id]

    # No dependency on the deleted task may survive.
    stripped = 0
    for task in plan.tasks:
        if task.dependent_tasks and op.task_id in task.dependent_tasks:
            task.dependent_tasks = [d for d in task.dependent_tasks if d != op.task_id]
            stripped += 1
    diff.append(f"TASK REMOVED: [{op.task_id}] dependents_updated={stripped}")


def _create_variable(plan: WorkflowPlan, op: CreateVariable, diff: list[str]) -> None:
    raw_id = (
        op.variable.get("variableId") if isinstance(op.variable, Mapping)
        else getattr(op.variable, "variable_id", None)
    )
    try:
        variable = validate_variable(op.variable)
    except PlanValidationError as exc:
        exc.op, exc.target_id = op.op, raw_id if isinstance(raw_id, str) else None
        raise
    if _variable_index(plan, variable.variable_id) != -1:
        raise DuplicateError(
            f'Variable with ID "{variable.variable_id}" already exists. '
            "Use updateVariable to modify existing variables.",
            op=op.op,
            target_id=variable.variable_id,
        )
    plan.variables.append(variable)
    diff.append(f'VARIABLE ADDED: [{variable.variable_id}] name="{variable.name}"')


def _update_variable(plan: WorkflowPlan, op: UpdateVariable, diff: list[str]) -> None:
    i = _variable_index(plan, op.variable_id)
    if i == -1:
        raise NotFoundError(
            f'Variable with ID "{op.variable_id}" not found. '
            "Use createVariable to create new variables.",
            op=op.op,
            target_id=op.variable_id,
        )
    updates = op.data.provided(VARIABLE_UPDATE_FIELDS)
    if not updates:
        return
    merged: dict[str, Any] = plan.variables[i].model_dump()
    for name, value in updates.items():
        merged[name] = (
            [v.model_dump() for v in value] if name == "value" else copy.deepcopy(value)
        )
    # Validate the merged variable as a whole (e.g. resourceTypes vs variableType).
    try:
        plan.variables[i] = validate_variable(merged, label="Variable update")
    except PlanValidationError as exc:
        exc.op, exc.target_id = op.op, op.variable_id
        raise
    diff.append(f"VARIABLE MODIFIED: [{op.variable_id}] fields={','.join(sorted(updates))}")


def _delete_variable(plan: WorkflowPlan, op: DeleteVariable, diff: list[str]) -> None:
    if _variable_index(plan, op.variable_id) == -1:
        raise NotFoundError(
            f'Variable with ID "{op.variable_id}" not found.',
            op=op.op,
            target_id=op.variable_id,
        )
    plan.variables = [v for v in plan.variables if v.variable_id != op.variable_id]
    diff.append(f"VARIABLE REMOVED: [{op.variable_id}]")


def _apply_op(plan: WorkflowPlan, op: PatchOp, diff: list[str]) -> None:
    if isinstance(op, UpdateTitle):
        if op.title is not None:
            plan.title = op.title
            diff.append(f'TITLE UPDATED: "{op.title}"')
    elif isinstance(op, CreateTask):
        _create_task(plan, op, diff)
    elif isinstance(op, UpdateTask):
        _update_task(plan, op, diff)
    elif isinstance(op, DeleteTask):
        _delete_task(plan, op, diff)
    elif isinstance(op, CreateVariable):
        _create_variable(plan, op, diff)
    elif isinstance(op, UpdateVariable):
        _update_variable(plan, op, diff)
    elif isinstance(op, DeleteVariable):
        _delete_variable(plan, op, diff)
    else:
        raise TypeError(f"Unhandled patch operation type: {type(op).__name__}")


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def apply_patch(
    plan: WorkflowPlan | Mapping[str, Any],
    operations: Sequence[PatchOp | Mapping[str, Any]],
) -> PatchResult:
    """Apply *operations* in order to a copy of *plan*.

    Parameters
    ----------
    plan:        Current plan (WorkflowPlan or its wire dict). Never mutated.
    operations:  Typed PatchOp objects or wire dicts ({"op": ..., ...}).

    Returns
    -------
    PatchResult with the new plan on success.  On the first failing
    operation: plan=None, error="Operation <i> (<op>): <message>", and the
    typed error in ``failure``.
    """
    try:
        base = parse_workflow_plan(plan)
    except PlanValidationError as exc:
        logger.info("Patch rejected: base plan is invalid")
        return PatchResult(plan=None, error=exc.message, failure=exc)

    working = base.model_copy(deep=True)
    diff: list[str] = []

    for index, raw_op in enumerate(operations):
        op_name = getattr(raw_op, "op", None) or (
            raw_op.get("op") if isinstance(raw_op, Mapping) else None
        )
        try:
            if isinstance(raw_op, PATCH_OP_TYPES):
                op = raw_op
            else:
                op = op_from_dict(dict(raw_op) if isinstance(raw_op, Mapping) else raw_op)
            _apply_op(working, op, diff)
        except WorkflowPlanError as exc:
            exc.index = index
            if exc.op is None and isinstance(op_name, str):
                exc.op = op_name
            error = f"Operation {index} ({exc.op or 'unknown'}): {exc.message}"
            logger.info("Patch rejected at operation %d (%s): %s", index, exc.op, exc.message)
            return PatchResult(plan=None, error=error, failure=exc)

    logger.debug("Applied %d patch operation(s)", len(operations))
    return PatchResult(
        plan=working,
        diff_summary="\n".join(diff) if diff else "(no changes)",
    )
