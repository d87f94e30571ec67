"""Workflow plan compiler and patch engine.

Entry points:
    compile_workflow_plan(plan, available_toolsets, options, prepare_add_node) → CanvasData
    apply_patch(plan, operations) → PatchResult

Schema (plan_schema.py):
    WorkflowPlan, WorkflowTask, WorkflowVariable — pydantic models, camelCase on the wire
    parse_workflow_plan — validate untrusted plan data
    normalize_workflow_plan — copy with toolsets arrays guaranteed

Patch operations (patch_ir.py):
    UpdateTitle, CreateTask, UpdateTask, DeleteTask,
    CreateVariable, UpdateVariable, DeleteVariable
    op_from_dict / ops_from_json / parse_workflow_plan_patch

Errors (errors.py):
    WorkflowPlanError, PlanValidationError, NotFoundError, DuplicateError
"""

from canvas_planner.plan.canvas import CanvasData, CanvasEdge, CanvasNode, NodeFilter
from canvas_planner.plan.compiler import (
    CompileOptions,
    compile_workflow_plan,
    plan_variable_to_resolved_variable,
)
from canvas_planner.plan.errors import (
    DuplicateError,
    NotFoundError,
    PlanValidationError,
    WorkflowPlanError,
)
from canvas_planner.plan.ids import gen_node_entity_id, gen_unique_id
from canvas_planner.plan.layout import AddNodeResult, PrepareAddNode, prepare_add_node
from canvas_planner.plan.patch import PatchResult, apply_patch
from canvas_planner.plan.patch_ir import (
    CreateTask,
    CreateVariable,
    DeleteTask,
    DeleteVariable,
    PatchOp,
    PlanPatch,
    UpdateTask,
    UpdateTitle,
    UpdateVariable,
    op_from_dict,
    op_to_dict,
    ops_from_json,
    ops_to_json,
    parse_workflow_plan_patch,
)
from canvas_planner.plan.plan_schema import (
    GenericToolset,
    PatchData,
    WorkflowPlan,
    WorkflowTask,
    WorkflowVariable,
    WorkflowVariableValue,
    dump_plan,
    normalize_workflow_plan,
    parse_workflow_plan,
)
from canvas_planner.plan.summary import summarize_workflow_plan

__all__ = [
    # Compiler
    "compile_workflow_plan",
    "CompileOptions",
    "plan_variable_to_resolved_variable",
    "CanvasData",
    "CanvasNode",
    "CanvasEdge",
    "NodeFilter",
    # Layout collaborator
    "prepare_add_node",
    "PrepareAddNode",
    "AddNodeResult",
    # Ids
    "gen_node_entity_id",
    "gen_unique_id",
    # Schema
    "WorkflowPlan",
    "WorkflowTask",
    "WorkflowVariable",
    "WorkflowVariableValue",
    "GenericToolset",
    "PatchData",
    "parse_workflow_plan",
    "normalize_workflow_plan",
    "dump_plan",
    # Patch
    "apply_patch",
    "PatchResult",
    "PatchOp",
    "PlanPatch",
    "UpdateTitle",
    "CreateTask",
    "UpdateTask",
    "DeleteTask",
    "CreateVariable",
    "UpdateVariable",
    "DeleteVariable",
    "op_from_dict",
    "op_to_dict",
    "ops_from_json",
    "ops_to_json",
    "parse_workflow_plan_patch",
    # Summary
    "summarize_workflow_plan",
    # Errors
    "WorkflowPlanError",
    "PlanValidationError",
    "NotFoundError",
    "DuplicateError",
]
