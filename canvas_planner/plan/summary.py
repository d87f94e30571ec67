"""Compact plan summary for agent context.

An authoring agent that has been editing a plan over many turns needs the
current task / variable ids before it can write a correct patch, but not the
full prompts.  summarize_workflow_plan() returns just the structure, with each
prompt cut to a short preview.
"""

from __future__ import annotations

from typing import Any, Mapping

from canvas_planner.plan.plan_schema import WorkflowPlan, parse_workflow_plan

DEFAULT_PROMPT_CHARS = 100
_ELLIPSIS = "..."


def truncate_prompt(prompt: str, max_chars: int = DEFAULT_PROMPT_CHARS) -> str:
    """Cut *prompt* to at most *max_chars* characters, marking the cut with '...'."""
    if not prompt or len(prompt) <= max_chars:
        return prompt or ""
    if max_chars <= len(_ELLIPSIS):
        return prompt[:max_chars]
    return prompt[: max_chars - len(_ELLIPSIS)].rstrip() + _ELLIPSIS


def summarize_workflow_plan(
    plan: WorkflowPlan | Mapping[str, Any],
    prompt_chars: int = DEFAULT_PROMPT_CHARS,
    plan_id: str | None = None,
) -> dict[str, Any]:
    """Return the camelCase summary dict of *plan*.

    Raises PlanValidationError when *plan* is a dict that does not validate.
    """
    parsed = parse_workflow_plan(plan)
    summary: dict[str, Any] = {}
    if plan_id:
        summary["planId"] = plan_id
    summary.update({
        "title": parsed.title,
        "taskCount": len(parsed.tasks),
        "variableCount": len(parsed.variables),
        "tasks": [
            {
                "id": t.id,
                "title": t.title,
                "dependentTasks": list(t.dependent_tasks or []),
                "toolsets": list(t.toolsets),
                "prompt": truncate_prompt(t.prompt, prompt_chars),
            }
            for t in parsed.tasks
        ],
        "variables": [
            {
                "variableId": v.variable_id,
                "name": v.name,
                "variableType": v.variable_type,
                "required": v.required,
            }
            for v in parsed.variables
        ],
    })
    return summary
