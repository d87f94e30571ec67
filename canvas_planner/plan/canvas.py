"""Canvas graph types produced by the compiler.

Canonical canvas JSON:
  {
    "nodes": [
      {
        "id": "node-5b1e…",
        "type": "skillResponse",
        "position": {"x": 0, "y": 240},
        "selected": false,
        "data": {
          "title": "Summarize",
          "editedTitle": "Summarize",
          "entityId": "ar-9f3c…",
          "contentPreview": "",
          "metadata": {
            "query": "Summarize @{type=agent,id=ar-77aa…,name=Research}",
            "selectedToolsets": [...],
            "contextItems": [],
            "status": "init",
            "modelInfo": null
          }
        }
      }
    ],
    "edges": [{"id": "edge-…", "source": "node-…", "target": "node-…", "type": "default"}],
    "variables": [...]
  }
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class CanvasNode:
    """A node on the canvas.

    id:       Graph-stable node id (assigned by the layout collaborator).
    type:     Canvas node type; "skillResponse" for compiled tasks.
    data:     Node payload (title, entityId, contentPreview, metadata).
    position: {x, y} or None when not yet placed.
    """

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    position: dict[str, float] | None = None
    id: str = ""
    selected: bool = False

    @property
    def entity_id(self) -> str | None:
        return self.data.get("entityId")

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "data": self.data,
            "selected": self.selected,
        }
        if self.position is not None:
            d["position"] = self.position
        return d

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CanvasNode":
        """Build a node from canvas JSON. Tolerates missing keys."""
        return cls(
            id=raw.get("id", "") or "",
            type=raw.get("type", "") or "",
            data=copy.deepcopy(raw.get("data") or {}),
            position=raw.get("position"),
            selected=bool(raw.get("selected", False)),
        )


@dataclass
class CanvasEdge:
    id: str
    source: str
    target: str
    type: str = "default"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "source": self.source, "target": self.target, "type": self.type}


@dataclass
class NodeFilter:
    """Selects an existing node to wire a new node to.

    handle_type "source": the matched node feeds the new node.
    handle_type "target": the new node feeds the matched node.
    """

    type: str
    entity_id: str
    handle_type: str = "source"

    def matches(self, node: CanvasNode) -> bool:
        return node.type == self.type and node.entity_id == self.entity_id


@dataclass
class CanvasData:
    """Compiler output: nodes, edges and canvas-side variables."""

    nodes: list[CanvasNode] = field(default_factory=list)
    edges: list[CanvasEdge] = field(default_factory=list)
    variables: list[dict[str, Any]] = field(default_factory=list)

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    def get_node(self, node_id: str) -> CanvasNode | None:
        return next((n for n in self.nodes if n.id == node_id), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "variables": self.variables,
        }

    def to_json(self) -> str:
        """Serialize to a compact JSON string (no whitespace)."""
        return json.dumps(self.to_dict(), separators=(",", ":"))
