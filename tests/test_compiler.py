"""Workflow plan compiler: node shape, toolsets, edges, mention resolution, leniency."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from canvas_planner.plan.canvas import CanvasNode
from canvas_planner.plan.compiler import (
    CompileOptions,
    compile_workflow_plan,
    plan_variable_to_resolved_variable,
)
from canvas_planner.plan.layout import AddNodeResult
from canvas_planner.plan.layout import prepare_add_node as default_prepare_add_node
from canvas_planner.plan.plan_schema import GenericToolset, parse_workflow_plan

_TOOLSETS = [
    {"id": "t1", "name": "Web search", "type": "regular", "toolset": {"key": "web_search"}},
    {"id": "t2", "name": "Notion", "type": "mcp", "selectedTools": ["search"]},
]


def _task(task_id, title="", prompt="", deps=None, toolsets=None):
    task = {"id": task_id, "title": title or task_id.upper(), "prompt": prompt, "toolsets": toolsets or []}
    if deps is not None:
        task["dependentTasks"] = deps
    return task


def _node_for(canvas, title):
    return next(n for n in canvas.nodes if n.data["title"] == title)


# ---------------------------------------------------------------------------
# Empty plan / node shape
# ---------------------------------------------------------------------------


class TestNodeShape:
    def test_empty_plan_yields_empty_canvas(self):
        canvas = compile_workflow_plan({"title": "x", "tasks": [], "variables": []})
        assert canvas.to_dict() == {"nodes": [], "edges": [], "variables": []}

    def test_empty_plan_drops_variables_too(self):
        plan = {
            "tasks": [],
            "variables": [{"variableId": "v", "name": "n", "description": "", "value": []}],
        }
        assert compile_workflow_plan(plan).variables == []

    def test_one_skill_response_node_per_task(self):
        canvas = compile_workflow_plan({
            "tasks": [_task("a", "Alpha", "Do A"), _task("b", "Beta", "Do B", deps=["a"])],
        })
        assert len(canvas.nodes) == 2
        alpha = _node_for(canvas, "Alpha")
        assert alpha.type == "skillResponse"
        assert alpha.data["editedTitle"] == "Alpha"
        assert alpha.data["contentPreview"] == ""
        assert alpha.data["entityId"].startswith("ar-")
        assert alpha.data["metadata"]["query"] == "Do A"
        assert alpha.data["metadata"]["status"] == "init"
        assert alpha.data["metadata"]["contextItems"] == []
        assert alpha.id.startswith("node-")

    def test_stacked_positions_in_processing_order(self):
        canvas = compile_workflow_plan({
            "tasks": [_task("b", "Beta", deps=["a"]), _task("a", "Alpha")],
        })
        assert [n.data["title"] for n in canvas.nodes] == ["Alpha", "Beta"]
        assert canvas.nodes[0].position == {"x": 0, "y": 0}
        assert canvas.nodes[1].position == {"x": 0, "y": 240}

    def test_model_info_copied_from_options(self):
        model = {"name": "gpt-4o", "provider": "openai"}
        canvas = compile_workflow_plan(
            {"tasks": [_task("a")]}, options=CompileOptions(default_model=model),
        )
        assert canvas.nodes[0].data["metadata"]["modelInfo"] == model
        assert canvas.nodes[0].data["metadata"]["modelInfo"] is not model

    def test_accepts_workflow_plan_model(self):
        plan = parse_workflow_plan({"tasks": [_task("a", "Alpha", "go")]})
        canvas = compile_workflow_plan(plan)
        assert canvas.nodes[0].data["metadata"]["query"] == "go"


# ---------------------------------------------------------------------------
# Toolsets
# ---------------------------------------------------------------------------


class TestToolsetResolution:
    def test_known_toolsets_selected_unknown_dropped(self):
        canvas = compile_workflow_plan(
            {"tasks": [_task("a", toolsets=["t1", "t2", "ghost"])]}, _TOOLSETS,
        )
        selected = canvas.nodes[0].data["metadata"]["selectedToolsets"]
        assert [ts["id"] for ts in selected] == ["t1", "t2"]

    def test_match_by_nested_key(self):
        canvas = compile_workflow_plan({"tasks": [_task("a", toolsets=["web_search"])]}, _TOOLSETS)
        selected = canvas.nodes[0].data["metadata"]["selectedToolsets"]
        assert [ts["id"] for ts in selected] == ["t1"]

    def test_selected_toolset_is_a_copy(self):
        canvas = compile_workflow_plan({"tasks": [_task("a", toolsets=["t1"])]}, _TOOLSETS)
        canvas.nodes[0].data["metadata"]["selectedToolsets"][0]["name"] = "changed"
        assert _TOOLSETS[0]["name"] == "Web search"

    def test_model_toolsets_keep_extra_fields(self):
        toolsets = [GenericToolset.model_validate({"id": "t9", "name": "X", "custom": 1})]
        canvas = compile_workflow_plan({"tasks": [_task("a", toolsets=["t9"])]}, toolsets)
        selected = canvas.nodes[0].data["metadata"]["selectedToolsets"]
        assert selected[0]["id"] == "t9"
        assert selected[0]["custom"] == 1

    def test_no_available_toolsets(self):
        canvas = compile_workflow_plan({"tasks": [_task("a", toolsets=["t1"])]})
        assert canvas.nodes[0].data["metadata"]["selectedToolsets"] == []


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------


class TestDependencyEdges:
    def test_single_dependency_yields_one_edge(self):
        canvas = compile_workflow_plan({"tasks": [_task("a", "A"), _task("b", "B", deps=["a"])]})
        assert len(canvas.edges) == 1
        edge = canvas.edges[0]
        assert edge.source == _node_for(canvas, "A").id
        assert edge.target == _node_for(canvas, "B").id
        assert edge.type == "default"
        assert edge.id.startswith("edge-")

    def test_unknown_dependency_yields_no_edge(self):
        canvas = compile_workflow_plan({"tasks": [_task("b", "B", deps=["ghost"])]})
        assert len(canvas.nodes) == 1
        assert canvas.edges == []

    def test_self_and_duplicate_dependencies_skipped(self):
        canvas = compile_workflow_plan({
            "tasks": [_task("a", "A"), _task("b", "B", deps=["a", "a", "b"])],
        })
        assert len(canvas.edges) == 1

    def test_chain_and_fan_in(self):
        canvas = compile_workflow_plan({
            "tasks": [
                _task("c", "C", deps=["a", "b"]),
                _task("d", "D", deps=["c"]),
                _task("a", "A"),
                _task("b", "B"),
            ],
        })
        ids = {n.data["title"]: n.id for n in canvas.nodes}
        pairs = {(e.source, e.target) for e in canvas.edges}
        assert pairs == {(ids["A"], ids["C"]), (ids["B"], ids["C"]), (ids["C"], ids["D"])}

    def test_every_edge_endpoint_is_a_node(self):
        canvas = compile_workflow_plan({
            "tasks": [_task("a"), _task("b", deps=["a", "x"]), _task("c", deps=["b", "a"])],
        })
        node_ids = canvas.node_ids()
        assert all(e.source in node_ids and e.target in node_ids for e in canvas.edges)


# ---------------------------------------------------------------------------
# Mentions
# ---------------------------------------------------------------------------


class TestMentionResolution:
    def test_forward_reference_resolves(self):
        canvas = compile_workflow_plan({
            "tasks": [
                _task("task-1", "First", "ref @{type=agent,id=task-2,name=Second}"),
                _task("task-2", "Second", "standalone"),
            ],
        })
        first = _node_for(canvas, "First")
        second = _node_for(canvas, "Second")
        query = first.data["metadata"]["query"]
        assert second.data["entityId"] in query
        assert "task-2" not in query
        assert query == f"ref @{{type=agent,id={second.data['entityId']},name=Second}}"

    def test_multiple_mentions_resolve(self):
        canvas = compile_workflow_plan({
            "tasks": [
                _task("a", "A"),
                _task("b", "B"),
                _task("c", "C", "@{type=agent,id=a,name=A} vs @{type=agent,id=b,name=B}", deps=["a", "b"]),
            ],
        })
        a = _node_for(canvas, "A").data["entityId"]
        b = _node_for(canvas, "B").data["entityId"]
        query = _node_for(canvas, "C").data["metadata"]["query"]
        assert query == f"@{{type=agent,id={a},name=A}} vs @{{type=agent,id={b},name=B}}"

    def test_unknown_mention_left_as_is(self):
        prompt = "see @{type=agent,id=ghost,name=G}"
        canvas = compile_workflow_plan({"tasks": [_task("a", prompt=prompt)]})
        assert canvas.nodes[0].data["metadata"]["query"] == prompt


# ---------------------------------------------------------------------------
# Leniency
# ---------------------------------------------------------------------------


class TestLenientInput:
    def test_missing_fields_still_yield_nodes(self):
        canvas = compile_workflow_plan({
            "tasks": [{}, {"title": "T", "toolsets": "oops", "dependentTasks": 7}, "junk"],
        })
        assert len(canvas.nodes) == 3
        assert canvas.edges == []
        titles = sorted(n.data["title"] for n in canvas.nodes)
        assert titles == ["", "", "T"]

    def test_non_mapping_plan(self):
        assert compile_workflow_plan(None).nodes == []  # type: ignore[arg-type]

    def test_duplicate_task_ids_each_get_a_node(self):
        canvas = compile_workflow_plan({"tasks": [_task("a", "First"), _task("a", "Second")]})
        assert len(canvas.nodes) == 2
        entity_ids = {n.data["entityId"] for n in canvas.nodes}
        assert len(entity_ids) == 2

    @pytest.mark.parametrize("value", [5, True, "text", {"type": "text"}])
    def test_scalar_variable_value_becomes_empty_list(self, value):
        canvas = compile_workflow_plan({
            "tasks": [_task("a", "A")],
            "variables": [{"variableId": "v", "name": "n", "value": value}],
        })
        assert canvas.variables[0]["variableId"] == "v"
        assert canvas.variables[0]["value"] == []

    def test_scalar_value_through_variable_conversion(self):
        assert plan_variable_to_resolved_variable({"variableId": "v", "value": 5})["value"] == []


# ---------------------------------------------------------------------------
# Layout collaborator
# ---------------------------------------------------------------------------


class TestLayoutCollaborator:
    def test_called_once_per_task_with_dependency_filters(self):
        layout = MagicMock(side_effect=default_prepare_add_node)
        canvas = compile_workflow_plan(
            {"tasks": [_task("a", "A"), _task("b", "B", deps=["a", "ghost"])]},
            prepare_add_node=layout,
        )
        assert layout.call_count == 2
        second_call = layout.call_args_list[1].kwargs
        assert len(second_call["nodes"]) == 1
        filters = second_call["connect_to"]
        assert len(filters) == 1
        assert filters[0].entity_id == _node_for(canvas, "A").data["entityId"]
        assert filters[0].handle_type == "source"

    def test_returned_id_and_position_are_authoritative(self):
        def layout(*, node, nodes, edges, connect_to, auto_layout):
            placed = CanvasNode(type=node.type, data=node.data, id=f"fixed-{len(nodes)}",
                                position={"x": 7, "y": 7})
            return AddNodeResult(new_node=placed)

        canvas = compile_workflow_plan(
            {"tasks": [_task("a"), _task("b", deps=["a"])]}, prepare_add_node=layout,
        )
        assert [n.id for n in canvas.nodes] == ["fixed-0", "fixed-1"]
        assert canvas.nodes[0].position == {"x": 7, "y": 7}
        assert (canvas.edges[0].source, canvas.edges[0].target) == ("fixed-0", "fixed-1")

    def test_auto_layout_leaves_position_to_layout(self):
        seen = []

        def layout(*, node, nodes, edges, connect_to, auto_layout):
            seen.append((node.position, auto_layout))
            return default_prepare_add_node(
                node=node, nodes=nodes, edges=edges, connect_to=connect_to, auto_layout=auto_layout,
            )

        canvas = compile_workflow_plan(
            {"tasks": [_task("a"), _task("b", deps=["a"])]},
            options=CompileOptions(auto_layout=True),
            prepare_add_node=layout,
        )
        assert seen == [(None, True), (None, True)]
        assert canvas.nodes[1].position == {"x": 400, "y": 0.0}

    def test_start_nodes_visible_to_layout(self):
        layout = MagicMock(side_effect=default_prepare_add_node)
        start = {"id": "start-node", "type": "start", "data": {"entityId": "start-1"}}
        canvas = compile_workflow_plan(
            {"tasks": [_task("a")]}, options=CompileOptions(start_nodes=[start]), prepare_add_node=layout,
        )
        passed = layout.call_args.kwargs["nodes"]
        assert [n.id for n in passed] == ["start-node"]
        assert canvas.node_ids() != {"start-node"}


# ---------------------------------------------------------------------------
# Recompile / variables
# ---------------------------------------------------------------------------


def test_recompile_is_structurally_identical():
    plan = {
        "tasks": [
            _task("a", "A", "go"),
            _task("b", "B", "after @{type=agent,id=a,name=A}", deps=["a"]),
        ],
    }
    first = compile_workflow_plan(plan)
    second = compile_workflow_plan(plan)
    assert len(first.nodes) == len(second.nodes)
    assert len(first.edges) == len(second.edges)

    def normalized_queries(canvas):
        ids = {n.data["entityId"]: n.data["title"] for n in canvas.nodes}
        out = []
        for n in canvas.nodes:
            q = n.data["metadata"]["query"]
            for entity_id, title in ids.items():
                q = q.replace(entity_id, f"<{title}>")
            out.append(q)
        return out

    assert normalized_queries(first) == normalized_queries(second)
    assert {n.data["entityId"] for n in first.nodes}.isdisjoint(
        {n.data["entityId"] for n in second.nodes}
    )


def test_compile_does_not_mutate_input():
    plan = {"tasks": [_task("a", prompt="@{type=agent,id=a,name=A}", toolsets=["t1"])]}
    compile_workflow_plan(plan, _TOOLSETS)
    assert plan["tasks"][0]["prompt"] == "@{type=agent,id=a,name=A}"
    assert plan["tasks"][0]["toolsets"] == ["t1"]


class TestVariables:
    def test_variables_mapped(self):
        canvas = compile_workflow_plan({
            "tasks": [_task("a")],
            "variables": [{
                "variableId": "var-1",
                "variableType": "string",
                "name": "company",
                "description": "Company",
                "required": True,
                "value": [{"type": "text", "text": "ACME"}],
            }],
        })
        assert canvas.variables == [{
            "variableId": "var-1",
            "variableType": "string",
            "name": "company",
            "value": [{"type": "text", "text": "ACME"}],
            "description": "Company",
            "required": True,
            "resourceTypes": None,
        }]

    @pytest.mark.parametrize(
        "resource,kept",
        [
            ({"name": "a.pdf", "fileType": "document"}, True),
            ({"name": "a.pdf"}, False),
            ({"fileType": "document"}, False),
            (None, False),
        ],
    )
    def test_resource_kept_only_when_complete(self, resource, kept):
        resolved = plan_variable_to_resolved_variable({
            "variableId": "v",
            "variableType": "resource",
            "name": "file",
            "description": "",
            "value": [{"type": "resource", "resource": resource}],
        })
        assert ("resource" in resolved["value"][0]) is kept
        assert resolved["required"] is False
