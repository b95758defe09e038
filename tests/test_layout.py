"""Tests for layout preparation and the layout adapters."""

import asyncio
import copy

import httpx
import pytest

from graph_core import (
    GraphNode,
    GridLayoutAdapter,
    HttpLayoutAdapter,
    LayoutError,
    NON_ROOT_DEFAULT_OPTIONS,
    ROOT_DEFAULT_OPTIONS,
    create_layout_adapter,
    prepare_for_layout,
)
from graph_core.layout import grid_columns


def section_of(container: dict, edge_id: str) -> dict:
    edge = next(e for e in container["edges"] if e["id"] == edge_id)
    return edge["sections"][0]


class TestPrepareForLayout:
    def test_defaults_applied_without_touching_graph(self, nested):
        before = nested.to_json_dict()
        prepared = prepare_for_layout(nested)
        assert nested.to_json_dict() == before

        assert prepared["layoutOptions"]["algorithm"] == "layered"
        assert "width" not in prepared
        g1 = prepared["children"][0]
        assert (g1["width"], g1["height"]) == (100, 100)
        assert g1["layoutOptions"] == NON_ROOT_DEFAULT_OPTIONS["layoutOptions"]
        assert g1["children"][0]["width"] == 100

    def test_node_options_win(self):
        graph = GraphNode.from_json_dict({
            "id": "root",
            "layoutOptions": {"elk.direction": "DOWN"},
            "children": [{"id": "a", "width": 40, "layoutOptions": {"spacing.nodeNode": 5}}],
        })
        prepared = prepare_for_layout(graph)
        assert prepared["layoutOptions"]["elk.direction"] == "DOWN"
        assert prepared["layoutOptions"]["spacing.nodeNode"] == ROOT_DEFAULT_OPTIONS["layoutOptions"]["spacing.nodeNode"]
        child = prepared["children"][0]
        assert child["width"] == 40 and child["height"] == 100
        assert child["layoutOptions"]["spacing.nodeNode"] == 5

    def test_defaults_are_not_shared(self):
        prepared = prepare_for_layout(GraphNode.from_json_dict({"id": "root", "children": [{"id": "a"}]}))
        prepared["children"][0]["layoutOptions"]["x"] = 1
        assert "x" not in NON_ROOT_DEFAULT_OPTIONS["layoutOptions"]


class TestGridColumns:
    @pytest.mark.parametrize("count,expected", [(0, 1), (1, 1), (2, 2), (3, 3), (4, 3), (9, 4), (10, 4)])
    def test_columns(self, count, expected):
        assert grid_columns(count) == expected


class TestGridLayoutAdapter:
    def run(self, graph: dict) -> dict:
        return asyncio.run(GridLayoutAdapter().layout(graph))

    def test_places_children_in_grid(self):
        result = self.run({
            "id": "root",
            "children": [{"id": "a", "width": 100, "height": 100}, {"id": "b", "width": 100, "height": 100}],
        })
        a, b = result["children"]
        assert (a["x"], a["y"]) == (30, 30)
        assert (b["x"], b["y"]) == (160, 30)
        assert (result["x"], result["y"]) == (0, 0)
        assert (result["width"], result["height"]) == (290, 160)

    def test_wraps_rows(self):
        result = self.run({
            "id": "root",
            "children": [{"id": n, "width": 100, "height": 100} for n in "abcd"],
        })
        d = result["children"][3]
        assert (d["x"], d["y"]) == (30, 160)
        assert result["height"] == 2 * 30 + 2 * 100 + 30

    def test_containers_grow_to_fit(self):
        result = self.run({
            "id": "root",
            "children": [{"id": "g", "children": [{"id": "a", "width": 100, "height": 100}]}],
        })
        g = result["children"][0]
        assert (g["width"], g["height"]) == (160, 160)

    def test_input_not_modified(self):
        graph = {"id": "root", "children": [{"id": "a", "width": 100, "height": 100}]}
        before = copy.deepcopy(graph)
        self.run(graph)
        assert graph == before

    def test_aligned_edge_is_straight(self):
        result = self.run({
            "id": "root",
            "children": [{"id": "a", "width": 100, "height": 100}, {"id": "b", "width": 100, "height": 100}],
            "edges": [{"id": "e1", "sources": ["a"], "targets": ["b"]}],
        })
        section = section_of(result, "e1")
        assert section["id"] == "e1_s0"
        assert section["startPoint"] == {"x": 130, "y": 80}
        assert section["endPoint"] == {"x": 160, "y": 80}
        assert section["bendPoints"] == []

    def test_misaligned_edge_gets_orthogonal_bends(self):
        result = self.run({
            "id": "root",
            "children": [{"id": "a", "width": 100, "height": 100}, {"id": "b", "width": 100, "height": 40}],
            "edges": [{"id": "e1", "sources": ["a"], "targets": ["b"]}],
        })
        section = section_of(result, "e1")
        assert section["startPoint"] == {"x": 130, "y": 80}
        assert section["endPoint"] == {"x": 160, "y": 50}
        assert section["bendPoints"] == [{"x": 145, "y": 80}, {"x": 145, "y": 50}]

    def test_vertical_and_backward_edges(self):
        result = self.run({
            "id": "root",
            "children": [{"id": n, "width": 100, "height": 100} for n in "abcd"],
            "edges": [
                {"id": "down", "sources": ["a"], "targets": ["d"]},
                {"id": "back", "sources": ["b"], "targets": ["a"]},
            ],
        })
        down = section_of(result, "down")
        assert down["startPoint"] == {"x": 80, "y": 130}
        assert down["endPoint"] == {"x": 80, "y": 160}
        back = section_of(result, "back")
        assert back["startPoint"] == {"x": 160, "y": 80}
        assert back["endPoint"] == {"x": 130, "y": 80}

    def test_sections_in_owning_container_frame(self):
        result = self.run({
            "id": "root",
            "children": [{
                "id": "g",
                "children": [{"id": "a", "width": 100, "height": 100}, {"id": "b", "width": 100, "height": 100}],
                "edges": [{"id": "e1", "sources": ["a"], "targets": ["b"], "labels": [{"text": "calls"}]}],
            }],
        })
        g = result["children"][0]
        section = section_of(g, "e1")
        assert section["startPoint"] == {"x": 130, "y": 80}
        assert g["edges"][0]["labels"][0] == {"text": "calls", "x": 145, "y": 80}

    def test_output_parses_and_projects(self, nested):
        from graph_core import project_layout

        result = self.run(prepare_for_layout(nested))
        render = project_layout(GraphNode.from_json_dict(result))
        assert render.skipped == []
        assert {e.id for e in render.edges} == {"e1", "e2"}


class TestHttpLayoutAdapter:
    def run(self, handler, graph=None):
        adapter = HttpLayoutAdapter("http://layout.test/layout", transport=httpx.MockTransport(handler))
        return asyncio.run(adapter.layout(graph or {"id": "root"}))

    def test_posts_graph_and_returns_json(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = request.content
            return httpx.Response(200, json={"id": "root", "x": 0, "y": 0})

        result = self.run(handler, {"id": "root", "children": []})
        assert result == {"id": "root", "x": 0, "y": 0}
        assert seen["method"] == "POST"
        assert b'"children"' in seen["body"]

    def test_server_error(self):
        with pytest.raises(LayoutError, match="500"):
            self.run(lambda request: httpx.Response(500, text="boom"))

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(LayoutError, match="unreachable"):
            self.run(handler)

    def test_invalid_json(self):
        with pytest.raises(LayoutError):
            self.run(lambda request: httpx.Response(200, text="not json"))

    def test_unexpected_payload(self):
        with pytest.raises(LayoutError):
            self.run(lambda request: httpx.Response(200, json=[1, 2, 3]))


class TestCreateLayoutAdapter:
    def test_grid(self):
        assert isinstance(create_layout_adapter("grid"), GridLayoutAdapter)

    def test_http(self):
        adapter = create_layout_adapter("http", "http://localhost:9000/layout", timeout=5)
        assert isinstance(adapter, HttpLayoutAdapter)
        assert adapter.timeout == 5

    def test_http_needs_url(self):
        with pytest.raises(ValueError):
            create_layout_adapter("http")

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_layout_adapter("dagre")
