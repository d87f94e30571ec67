"""Identifier resolver: plan-local task ids → globally unique entity ids.

Task ids are chosen by the plan author (usually an LLM): "task-1", "research".
They collide across plans and are only meaningful inside one plan.  The rest
of the system (execution results, polling, canvas selection) keys everything
by entity id, so the compiler mints one per task and rewrites prompt mentions:

    @{type=agent,id=task-2,name=Second}  →  @{type=agent,id=ar-9f3c…,name=Second}

Resolution is two-pass.  A mention may point at a task declared *later* in the
list, so every entity id must exist before any prompt is rewritten:

    1. assign_entity_ids()  — build the full symbol table, touch no text
    2. resolve_mentions()   — rewrite placeholders using that table

Mentions of unknown task ids are left verbatim; stale references in LLM
output must not fail the compile.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable

from canvas_planner.plan.ids import gen_node_entity_id

logger = logging.getLogger("canvas_planner.plan.resolver")

TASK_NODE_TYPE = "skillResponse"

# @{type=agent,id=<taskId>,name=<label>}; other mention types (toolset, var) never match.
AGENT_MENTION_RE = re.compile(r"@\{type=agent,id=([^,}]+),name=([^}]*)\}")


@dataclass
class EntityAssignment:
    """Result of the assignment pass.

    entity_ids: One entity id per input task, in input order.
    symbols:    task_id → entity_id.  The first task declaring an id owns the
                symbol; later duplicates still get their own entity id.
    """

    entity_ids: list[str] = field(default_factory=list)
    symbols: dict[str, str] = field(default_factory=dict)

    def lookup(self, task_id: str) -> str | None:
        return self.symbols.get(task_id)


def assign_entity_ids(
    task_ids: Iterable[str],
    gen_entity_id: Callable[[str], str] = gen_node_entity_id,
) -> EntityAssignment:
    """Pass 1: mint one entity id per task id, in the order given."""
    assignment = EntityAssignment()
    for task_id in task_ids:
        entity_id = gen_entity_id(TASK_NODE_TYPE)
        assignment.entity_ids.append(entity_id)
        if task_id in assignment.symbols:
            logger.debug("Duplicate task id %r; keeping first symbol binding", task_id)
            continue
        assignment.symbols[task_id] = entity_id
    return assignment


def resolve_mentions(prompt: str, symbols: dict[str, str]) -> str:
    """Pass 2: replace the task id inside every agent mention with its entity id.

    Each placeholder is resolved independently; the name= label and all
    surrounding text are preserved.
    """
    if not prompt or "@{" not in prompt:
        return prompt

    def _sub(m: re.Match[str]) -> str:
        task_id, label = m.group(1), m.group(2)
        entity_id = symbols.get(task_id)
        if entity_id is None:
            logger.debug("Unresolved agent mention %r left as-is", task_id)
            return m.group(0)
        return f"@{{type=agent,id={entity_id},name={label}}}"

    return AGENT_MENTION_RE.sub(_sub, prompt)
