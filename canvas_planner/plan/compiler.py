"""Workflow plan → canvas graph compiler.

Takes a WorkflowPlan (or the raw dict an LLM produced) plus the toolsets
available in the caller's environment and produces a CanvasData with:
  nodes:      one "skillResponse" node per task
  edges:      one edge per (dependency → task) pair
  variables:  canvas-side variable dicts

Pipeline:
  1. Partition tasks into roots then dependents (processing order).
  2. Assign an entity id to every task (full symbol table first).
  3. Resolve agent mentions in every prompt against that table.
  4. Build nodes in processing order; the layout collaborator
     (prepare_add_node) fixes each node's id and position.
  5. Once every node exists, wire dependency edges in plan order.

The compiler never raises on plan content.  Plans are AI-generated and may be
partial: missing ids get a generated symbol, missing text becomes "",
non-list fields become [], unknown toolsets and dependencies are dropped.
Every task still yields exactly one node.

Entity ids are minted fresh on every call, so recompiling the same plan gives
the same structure with different ids.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from canvas_planner.plan.canvas import CanvasData, CanvasEdge, CanvasNode, NodeFilter
from canvas_planner.plan.ids import gen_unique_id
from canvas_planner.plan.layout import PrepareAddNode
from canvas_planner.plan.layout import prepare_add_node as default_prepare_add_node
from canvas_planner.plan.partition import processing_order
from canvas_planner.plan.plan_schema import (
    GenericToolset,
    WorkflowPlan,
    WorkflowTask,
    WorkflowVariable,
)
from canvas_planner.plan.resolver import TASK_NODE_TYPE, assign_entity_ids, resolve_mentions

logger = logging.getLogger("canvas_planner.plan.compiler")

# Stacked layout used when auto_layout is off
_TASK_START_X: int = 0
_ROW_STEP_Y: int = 240


@dataclass
class CompileOptions:
    """Optional compile settings.

    auto_layout:   Let the layout collaborator place nodes (positions start as None).
                   When False, nodes are stacked at x=0, y=index*240.
    default_model: Model info copied into every node's metadata.modelInfo.
    start_nodes:   Nodes already on the canvas; visible to the layout collaborator.
    """

    auto_layout: bool = False
    default_model: dict[str, Any] | None = None
    start_nodes: list[CanvasNode | dict[str, Any]] = field(default_factory=list)


@dataclass
class _TaskView:
    """Tolerant, normalized read of one task."""

    task_id: str
    title: str
    prompt: str
    dependent_tasks: list[str]
    toolsets: list[str]
    node_id: str = ""


# ---------------------------------------------------------------------------
# Input normalization
# ---------------------------------------------------------------------------


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [v for v in value if isinstance(v, str)]


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _task_view(raw: Any) -> _TaskView:
    if isinstance(raw, WorkflowTask):
        task_id, title, prompt = raw.id, raw.title, raw.prompt
        deps, toolsets = raw.dependent_tasks, raw.toolsets
    elif isinstance(raw, Mapping):
        task_id = raw.get("id")
        title, prompt = raw.get("title"), raw.get("prompt")
        deps = raw.get("dependentTasks", raw.get("dependent_tasks"))
        toolsets = raw.get("toolsets")
    else:
        logger.debug("Task entry of type %s is not an object; compiling it empty", type(raw).__name__)
        task_id = title = prompt = deps = toolsets = None

    if not isinstance(task_id, str) or not task_id:
        task_id = f"task-{gen_unique_id()}"
    return _TaskView(
        task_id=task_id,
        title=_text(title),
        prompt=_text(prompt),
        dependent_tasks=_string_list(deps),
        toolsets=_string_list(toolsets),
    )


def _plan_parts(plan: WorkflowPlan | Mapping[str, Any]) -> tuple[list[Any], list[Any]]:
    if isinstance(plan, WorkflowPlan):
        return list(plan.tasks), list(plan.variables)
    if isinstance(plan, Mapping):
        tasks = plan.get("tasks")
        variables = plan.get("variables")
        return (
            list(tasks) if isinstance(tasks, (list, tuple)) else [],
            list(variables) if isinstance(variables, (list, tuple)) else [],
        )
    return [], []


def _toolset_entries(
    toolsets: Iterable[GenericToolset | Mapping[str, Any]] | None,
) -> list[tuple[str | None, str | None, dict[str, Any]]]:
    """Return (id, nested toolset key, serialized toolset) per available toolset."""
    entries: list[tuple[str | None, str | None, dict[str, Any]]] = []
    for ts in toolsets or []:
        if isinstance(ts, GenericToolset):
            raw = ts.model_dump(by_alias=True, exclude_none=True, mode="json")
        elif isinstance(ts, Mapping):
            raw = dict(ts)
        else:
            continue
        nested = raw.get("toolset")
        key = nested.get("key") if isinstance(nested, Mapping) else None
        entries.append((raw.get("id"), key, raw))
    return entries


def _select_toolsets(
    requested: list[str],
    entries: list[tuple[str | None, str | None, dict[str, Any]]],
) -> list[dict[str, Any]]:
    """Resolve toolset ids by exact id, then by nested toolset.key. Unknown ids are dropped."""
    selected: list[dict[str, Any]] = []
    for toolset_id in requested:
        match = next((raw for ts_id, _k, raw in entries if ts_id == toolset_id), None)
        if match is None:
            match = next((raw for _i, key, raw in entries if key == toolset_id), None)
        if match is None:
            logger.debug("Toolset %r not available; dropped from selection", toolset_id)
            continue
        selected.append(copy.deepcopy(match))
    return selected


# ---------------------------------------------------------------------------
# Variables
# ---------------------------------------------------------------------------


def plan_variable_to_resolved_variable(
    variable: WorkflowVariable | Mapping[str, Any],
) -> dict[str, Any]:
    """Map a plan variable to the canvas-side variable dict.

    A value keeps its resource only when both name and fileType are present.
    """
    if isinstance(variable, WorkflowVariable):
        raw: Mapping[str, Any] = variable.model_dump(by_alias=True, mode="json")
    else:
        raw = variable

    raw_values = raw.get("value")
    if not isinstance(raw_values, (list, tuple)):
        raw_values = []

    values: list[dict[str, Any]] = []
    for value in raw_values:
        if not isinstance(value, Mapping):
            continue
        entry: dict[str, Any] = {"type": value.get("type"), "text": value.get("text")}
        resource = value.get("resource")
        if isinstance(resource, Mapping) and resource.get("name") and resource.get("fileType"):
            entry["resource"] = {"name": resource["name"], "fileType": resource["fileType"]}
        values.append(entry)

    return {
        "variableId": raw.get("variableId"),
        "variableType": raw.get("variableType"),
        "name": raw.get("name"),
        "value": values,
        "description": raw.get("description"),
        "required": bool(raw.get("required") or False),
        "resourceTypes": raw.get("resourceTypes"),
    }


# ---------------------------------------------------------------------------
# Compiler
# ---------------------------------------------------------------------------


def compile_workflow_plan(
    plan: WorkflowPlan | Mapping[str, Any],
    available_toolsets: Iterable[GenericToolset | Mapping[str, Any]] | None = None,
    options: CompileOptions | None = None,
    prepare_add_node: PrepareAddNode = default_prepare_add_node,
) -> CanvasData:
    """Compile a workflow plan into canvas nodes, edges and variables.

    Parameters
    ----------
    plan:               WorkflowPlan, or the raw plan dict (camelCase keys).
    available_toolsets: Toolsets of the environment, read-only.
    options:            CompileOptions (auto_layout, default_model, start_nodes).
    prepare_add_node:   Layout collaborator; called once per task.

    Returns
    -------
    CanvasData where len(nodes) == number of tasks and every edge endpoint
    is a node id.  An empty task list yields an empty CanvasData.
    """
    opts = options or CompileOptions()
    raw_tasks, raw_variables = _plan_parts(plan)
    if not raw_tasks:
        return CanvasData()

    views = [_task_view(t) for t in raw_tasks]
    ordered = processing_order(views, lambda v: v.dependent_tasks)

    # Pass 1: complete symbol table before any prompt is touched.
    assignment = assign_entity_ids(v.task_id for v in ordered)
    # Pass 2: mentions may point forward or backward in the list.
    queries = [resolve_mentions(v.prompt, assignment.symbols) for v in ordered]

    toolset_entries = _toolset_entries(available_toolsets)
    start_nodes = [
        n if isinstance(n, CanvasNode) else CanvasNode.from_dict(n)
        for n in opts.start_nodes
    ]

    nodes: list[CanvasNode] = []
    edges: list[CanvasEdge] = []
    task_node_ids: dict[str, str] = {}

    for index, (view, entity_id, query) in enumerate(
        zip(ordered, assignment.entity_ids, queries)
    ):
        connect_to = [
            NodeFilter(type=TASK_NODE_TYPE, entity_id=assignment.symbols[dep], handle_type="source")
            for dep in view.dependent_tasks
            if dep in assignment.symbols and dep != view.task_id
        ]
        position = None if opts.auto_layout else {
            "x": _TASK_START_X,
            "y": index * _ROW_STEP_Y,
        }
        node = CanvasNode(
            type=TASK_NODE_TYPE,
            position=position,
            data={
                "title": view.title,
                "editedTitle": view.title,
                "entityId": entity_id,
                "contentPreview": "",
                "metadata": {
                    "query": query,
                    "selectedToolsets": _select_toolsets(view.toolsets, toolset_entries),
                    "contextItems": [],
                    "status": "init",
                    "modelInfo": copy.deepcopy(opts.default_model),
                },
            },
        )

        result = prepare_add_node(
            node=node,
            nodes=[*start_nodes, *nodes],
            edges=list(edges),
            connect_to=connect_to,
            auto_layout=opts.auto_layout,
        )
        new_node = result.new_node
        nodes.append(new_node)
        view.node_id = new_node.id
        task_node_ids.setdefault(view.task_id, new_node.id)

    # Dependency edges, in plan order, once every node exists.
    seen: set[tuple[str, str]] = set()
    for view in views:
        target = view.node_id
        for dep in view.dependent_tasks:
            source = task_node_ids.get(dep)
            if source is None:
                logger.debug("Task %r depends on unknown task %r; edge skipped", view.task_id, dep)
                continue
            if source == target or (source, target) in seen:
                continue
            seen.add((source, target))
            edges.append(CanvasEdge(id=f"edge-{gen_unique_id()}", source=source, target=target))

    variables = [
        plan_variable_to_resolved_variable(v)
        for v in raw_variables
        if isinstance(v, (WorkflowVariable, Mapping))
    ]

    logger.debug(
        "Compiled plan: %d nodes, %d edges, %d variables",
        len(nodes), len(edges), len(variables),
    )
    return CanvasData(nodes=nodes, edges=edges, variables=variables)
