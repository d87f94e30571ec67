"""Workflow plan MCP tool surface.

Each method wraps one plan operation (validate / compile / patch / summarize)
and returns a ``ToolResult`` envelope.  No business logic beyond unpacking the
arguments and packaging the result; plan errors never escape to the transport.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from canvas_planner.config import Settings
from canvas_planner.plan.compiler import CompileOptions, compile_workflow_plan
from canvas_planner.plan.errors import PlanValidationError, WorkflowPlanError
from canvas_planner.plan.patch import apply_patch
from canvas_planner.plan.patch_ir import ops_from_json, parse_workflow_plan_patch
from canvas_planner.plan.plan_schema import (
    dump_plan,
    normalize_workflow_plan,
    parse_workflow_plan,
)
from canvas_planner.plan.summary import summarize_workflow_plan

logger = logging.getLogger("canvas_planner.mcp.tools")


@dataclass
class ToolResult:
    """Normalized envelope for every tool execution result.

    ok:        True if the tool completed without error.
    summary:   Compact, prompt-safe string for the calling agent.
    facts:     Structured key→value counts extracted from the result.
    data:      Full output (plan, canvas, summary dict).
    error:     Present when ok=False. Dict with keys:
                 type:    Exception class name.
                 message: Human-readable summary.
                 detail:  Structured error (op, target_id, index, issues).
    artifacts: Optional references produced by the tool (e.g. node ids).
    """

    ok: bool
    summary: str
    facts: dict
    data: Any
    error: dict | None
    artifacts: dict | None


def _ok(summary: str, data: Any, artifacts: dict | None = None, **facts: Any) -> ToolResult:
    return ToolResult(ok=True, summary=summary, facts=facts, data=data, error=None, artifacts=artifacts)


def _fail(exc: WorkflowPlanError, message: str | None = None) -> ToolResult:
    message = message or exc.message
    headline = message.splitlines()[0] if message else type(exc).__name__
    return ToolResult(
        ok=False,
        summary=f"Failed: {headline}",
        facts={},
        data=None,
        error={"type": type(exc).__name__, "message": message, "detail": exc.to_dict()},
        artifacts=None,
    )


def _load_json_arg(name: str, value: Any) -> Any:
    """Accept either a decoded JSON value or its string form."""
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise PlanValidationError("Tool argument", [(name, f"Invalid JSON: {exc.msg}")]) from exc


class PlanMCPTools:
    """Workflow plan tools returning ``ToolResult`` envelopes."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or Settings()

    # ==================================================================
    # VALIDATE
    # ==================================================================

    async def validate_workflow_plan(self, plan: Any) -> ToolResult:
        try:
            parsed = normalize_workflow_plan(parse_workflow_plan(_load_json_arg("plan", plan)))
        except WorkflowPlanError as exc:
            return _fail(exc)
        return _ok(
            f"Plan is valid: {len(parsed.tasks)} tasks, {len(parsed.variables)} variables",
            dump_plan(parsed),
            task_count=len(parsed.tasks),
            variable_count=len(parsed.variables),
        )

    # ==================================================================
    # COMPILE
    # ==================================================================

    async def compile_workflow_plan(
        self,
        plan: Any,
        toolsets: Any = None,
        auto_layout: bool | None = None,
    ) -> ToolResult:
        try:
            raw_plan = _load_json_arg("plan", plan)
            raw_toolsets = _load_json_arg("toolsets", toolsets)
        except WorkflowPlanError as exc:
            return _fail(exc)
        if raw_toolsets is not None and not isinstance(raw_toolsets, list):
            return _fail(PlanValidationError("Tool argument", [("toolsets", "Expected a list of toolsets")]))

        options = CompileOptions(
            auto_layout=self._settings.auto_layout if auto_layout is None else bool(auto_layout),
        )
        canvas = compile_workflow_plan(raw_plan, raw_toolsets or [], options)
        node_ids = [n.id for n in canvas.nodes]
        logger.debug("compile_workflow_plan: %d nodes", len(node_ids))
        return _ok(
            f"Compiled {len(canvas.nodes)} nodes, {len(canvas.edges)} edges, "
            f"{len(canvas.variables)} variables",
            canvas.to_dict(),
            artifacts={"node_ids": node_ids},
            node_count=len(canvas.nodes),
            edge_count=len(canvas.edges),
            variable_count=len(canvas.variables),
        )

    # ==================================================================
    # PATCH
    # ==================================================================

    async def patch_workflow_plan(
        self,
        plan: Any,
        operations: Any,
        plan_id: str | None = None,
    ) -> ToolResult:
        try:
            raw_plan = _load_json_arg("plan", plan)
            if isinstance(operations, str):
                try:
                    ops = ops_from_json(operations)
                except ValueError as exc:
                    raise PlanValidationError("Tool argument", [("operations", str(exc))]) from exc
            else:
                ops = parse_workflow_plan_patch({"planId": plan_id, "operations": operations}).operations
        except WorkflowPlanError as exc:
            return _fail(exc)

        result = apply_patch(raw_plan, ops)
        if result.plan is None or result.failure is not None:
            return _fail(result.failure, result.error)
        return _ok(
            f"Applied {len(ops)} operation(s)\n{result.diff_summary}",
            dump_plan(result.plan),
            artifacts={"plan_id": plan_id} if plan_id else None,
            operation_count=len(ops),
            task_count=len(result.plan.tasks),
            variable_count=len(result.plan.variables),
        )

    # ==================================================================
    # SUMMARY
    # ==================================================================

    async def get_workflow_summary(self, plan: Any, plan_id: str | None = None) -> ToolResult:
        try:
            summary = summarize_workflow_plan(
                _load_json_arg("plan", plan),
                prompt_chars=self._settings.summary_prompt_chars,
                plan_id=plan_id,
            )
        except WorkflowPlanError as exc:
            return _fail(exc)
        return _ok(
            f"Plan '{summary['title']}': {summary['taskCount']} tasks, "
            f"{summary['variableCount']} variables",
            summary,
            task_count=summary["taskCount"],
            variable_count=summary["variableCount"],
        )
