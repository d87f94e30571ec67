"""Layout collaborator contract and the built-in fallback.

The compiler does not do layout math.  For every task it hands a
partially-built node to a ``prepare_add_node`` callable and takes the returned
node's id and position as authoritative.  Canvas frontends inject their own
implementation; ``prepare_add_node`` below is the dependency-free default:

  - keeps an explicit position (non-auto-layout compiles always pass one)
  - in auto-layout mode without a position, drops the node into a simple
    column grid: one column to the right of its source nodes, below whatever
    already occupies that column
  - assigns ``node-<uid>`` when the node has no id
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Protocol

from canvas_planner.plan.canvas import CanvasEdge, CanvasNode, NodeFilter
from canvas_planner.plan.ids import gen_unique_id

# Auto-layout grid constants (pixels)
_GRID_X: int = 400
_GRID_Y: int = 240
_START_X: int = 0
_START_Y: int = 0


@dataclass
class AddNodeResult:
    new_node: CanvasNode


class PrepareAddNode(Protocol):
    def __call__(
        self,
        *,
        node: CanvasNode,
        nodes: list[CanvasNode],
        edges: list[CanvasEdge],
        connect_to: list[NodeFilter],
        auto_layout: bool,
    ) -> AddNodeResult: ...


def _auto_position(
    existing: list[CanvasNode],
    sources: list[CanvasNode],
) -> dict[str, float]:
    """Grid slot for a new node: right of its sources, below its column."""
    if sources:
        x = max((s.position or {}).get("x", _START_X) for s in sources) + _GRID_X
    else:
        x = float(_START_X)
    column_ys = [
        n.position.get("y", _START_Y)
        for n in existing
        if n.position is not None and n.position.get("x", _START_X) == x
    ]
    y = max(column_ys) + _GRID_Y if column_ys else float(_START_Y)
    return {"x": x, "y": y}


def prepare_add_node(
    *,
    node: CanvasNode,
    nodes: list[CanvasNode],
    edges: list[CanvasEdge],
    connect_to: list[NodeFilter],
    auto_layout: bool = False,
) -> AddNodeResult:
    """Finalize *node* for insertion. Never mutates its arguments."""
    new_node = copy.deepcopy(node)

    if new_node.position is None:
        if auto_layout:
            sources = [
                n
                for f in connect_to
                if f.handle_type == "source"
                for n in nodes
                if f.matches(n)
            ]
            new_node.position = _auto_position(nodes, sources)
        else:
            new_node.position = {"x": float(_START_X), "y": float(_START_Y)}

    if not new_node.id:
        new_node.id = f"node-{gen_unique_id()}"

    data = new_node.data
    data.setdefault("title", "Untitled")
    if not data.get("entityId"):
        data["entityId"] = f"entity-{gen_unique_id()}"

    return AddNodeResult(new_node=new_node)
