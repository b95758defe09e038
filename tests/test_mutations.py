"""Tests for structural mutations."""

import pytest

from graph_core import (
    BatchOperation,
    BatchOperationError,
    CycleDetected,
    DuplicateEdgeId,
    DuplicateNodeId,
    EdgeNotFound,
    GraphNode,
    GroupNotFound,
    InvalidContainer,
    InvalidOperation,
    NodeNotFound,
    ParentNotFound,
    add_edge,
    add_node,
    batch_update,
    create_node_id,
    delete_edge,
    delete_node,
    group_nodes,
    move_node,
    remove_group,
    structural_hash,
)


def edges_on(graph: GraphNode, container_id: str) -> list[str]:
    return [e.id for e in graph.find_node(container_id).edges]


def child_ids(graph: GraphNode, node_id: str) -> list[str]:
    return [c.id for c in graph.find_node(node_id).children]


class TestAddNode:
    def test_id_derived_from_name(self):
        assert create_node_id("Web App") == "web_app"
        assert create_node_id("API  \tGateway") == "api_gateway"

    def test_appends_to_parent(self, nested):
        add_node("Cache Layer", "g2", nested)
        node = nested.find_node("cache_layer")
        assert node.label == "Cache Layer"
        assert child_ids(nested, "g2") == ["c", "cache_layer"]

    def test_missing_parent(self, siblings):
        before = siblings.to_json_dict()
        with pytest.raises(ParentNotFound):
            add_node("x", "nowhere", siblings)
        assert siblings.to_json_dict() == before

    def test_duplicate_id(self, nested):
        with pytest.raises(DuplicateNodeId):
            add_node("A", "root", nested)

    def test_empty_name(self, siblings):
        with pytest.raises(InvalidOperation):
            add_node("", "root", siblings)

    def test_returns_graph(self, siblings):
        assert add_node("c", "root", siblings) is siblings


class TestDeleteNode:
    def test_cascades_edges_at_every_level(self, nested):
        delete_node("a", nested)
        assert nested.find_node("a") is None
        assert edges_on(nested, "g1") == []
        assert edges_on(nested, "root") == []

    def test_removes_edges_of_whole_subtree(self, nested):
        delete_node("g1", nested)
        assert nested.find_node("b") is None
        assert nested.find_edge("e1") is None
        assert nested.find_edge("e2") is None

    def test_finds_nested_node(self, nested):
        delete_node("c", nested)
        assert child_ids(nested, "g2") == []
        assert nested.find_edge("e2") is None
        assert nested.find_edge("e1") is not None

    def test_missing_node(self, nested):
        with pytest.raises(NodeNotFound):
            delete_node("zzz", nested)

    def test_root_cannot_be_deleted(self, nested):
        with pytest.raises(NodeNotFound):
            delete_node("root", nested)


class TestMoveNode:
    def test_moves_and_rehomes_edges(self, nested):
        move_node("c", "g1", nested)
        assert child_ids(nested, "g1") == ["a", "b", "c"]
        assert child_ids(nested, "g2") == []
        # a and c now share g1
        assert edges_on(nested, "g1") == ["e1", "e2"]
        assert edges_on(nested, "root") == []

    def test_rehomes_outward(self, nested):
        move_node("b", "root", nested)
        assert edges_on(nested, "g1") == []
        assert "e1" in edges_on(nested, "root")

    def test_into_own_descendant_rejected(self, nested):
        before = nested.to_json_dict()
        with pytest.raises(CycleDetected):
            move_node("g1", "a", nested)
        assert nested.to_json_dict() == before

    def test_into_itself_rejected(self, nested):
        with pytest.raises(CycleDetected):
            move_node("g1", "g1", nested)

    def test_root_cannot_move(self, nested):
        with pytest.raises(CycleDetected):
            move_node("root", "d", nested)

    def test_missing_node(self, nested):
        with pytest.raises(NodeNotFound):
            move_node("zzz", "g1", nested)

    def test_missing_parent(self, nested):
        with pytest.raises(ParentNotFound):
            move_node("a", "zzz", nested)


class TestAddEdge:
    def test_root_level_siblings_go_on_root(self, siblings):
        add_edge("e1", None, "A", "B", siblings)
        assert edges_on(siblings, "root") == ["e1"]
        edge = siblings.edges[0]
        assert edge.sources == ["A"] and edge.targets == ["B"]

    def test_deleting_endpoint_removes_edge(self, siblings):
        add_edge("e1", None, "A", "B", siblings)
        delete_node("A", siblings)
        assert siblings.edges == []

    def test_grouped_endpoints_go_on_group(self, siblings):
        group_nodes(["A", "B"], "root", "grp1", siblings)
        add_edge("e1", None, "A", "B", siblings)
        assert edges_on(siblings, "grp1") == ["e1"]
        assert edges_on(siblings, "root") == []

    def test_cross_container_goes_on_lca(self, nested):
        add_edge("e3", None, "b", "c", nested)
        assert "e3" in edges_on(nested, "root")

    def test_container_to_own_child(self, nested):
        add_edge("e3", None, "g1", "a", nested)
        assert "e3" in edges_on(nested, "g1")

    def test_self_loop(self, nested):
        add_edge("loop", None, "d", "d", nested)
        assert edges_on(nested, "d") == ["loop"]

    def test_label(self, siblings):
        add_edge("e1", None, "A", "B", siblings, label="calls")
        assert siblings.edges[0].label == "calls"

    def test_explicit_ancestor_container(self, nested):
        add_edge("e3", "root", "a", "b", nested)
        assert "e3" in edges_on(nested, "root")

    def test_explicit_unrelated_container(self, nested):
        before = nested.to_json_dict()
        with pytest.raises(InvalidContainer):
            add_edge("e3", "g2", "a", "b", nested)
        assert nested.to_json_dict() == before

    def test_explicit_missing_container(self, nested):
        with pytest.raises(ParentNotFound):
            add_edge("e3", "nowhere", "a", "b", nested)

    def test_missing_endpoint(self, nested):
        with pytest.raises(NodeNotFound):
            add_edge("e3", None, "a", "zzz", nested)
        with pytest.raises(NodeNotFound):
            add_edge("e3", None, "zzz", "a", nested)

    def test_duplicate_edge_id(self, nested):
        with pytest.raises(DuplicateEdgeId):
            add_edge("e1", None, "d", "c", nested)

    def test_empty_edge_id(self, nested):
        before = structural_hash(nested)
        with pytest.raises(InvalidOperation):
            add_edge("", None, "a", "c", nested)
        assert structural_hash(nested) == before


class TestDeleteEdge:
    def test_nested_edge(self, nested):
        delete_edge("e1", nested)
        assert edges_on(nested, "g1") == []
        assert edges_on(nested, "root") == ["e2"]

    def test_missing_edge(self, nested):
        with pytest.raises(EdgeNotFound):
            delete_edge("nope", nested)


class TestGroupNodes:
    def test_moves_listed_children_in_order(self, nested):
        group_nodes(["d", "g2"], "root", "outer", nested)
        assert child_ids(nested, "root") == ["g1", "outer"]
        assert child_ids(nested, "outer") == ["d", "g2"]
        assert nested.find_node("outer").label == "outer"

    def test_rehomes_edges_into_group(self, nested):
        group_nodes(["g1", "g2"], "root", "backend", nested)
        # a->c now has backend as its lowest common ancestor
        assert edges_on(nested, "backend") == ["e2"]
        assert edges_on(nested, "root") == []

    def test_not_a_direct_child(self, nested):
        before = nested.to_json_dict()
        with pytest.raises(NodeNotFound):
            group_nodes(["d", "a"], "root", "grp", nested)
        assert nested.to_json_dict() == before

    def test_missing_parent(self, nested):
        with pytest.raises(ParentNotFound):
            group_nodes(["a"], "zzz", "grp", nested)

    def test_existing_group_id(self, nested):
        with pytest.raises(DuplicateNodeId):
            group_nodes(["d"], "root", "g2", nested)

    def test_empty_group_id_keeps_nodes(self, siblings):
        add_edge("e1", None, "A", "B", siblings)
        before = structural_hash(siblings)
        with pytest.raises(InvalidOperation):
            group_nodes(["A", "B"], "root", "", siblings)
        assert structural_hash(siblings) == before
        assert child_ids(siblings, "root") == ["A", "B"]
        assert edges_on(siblings, "root") == ["e1"]

    def test_group_then_ungroup_restores_children(self, nested):
        original = set(child_ids(nested, "root"))
        group_nodes(["g2", "d"], "root", "tmp", nested)
        remove_group("tmp", nested)
        assert set(child_ids(nested, "root")) == original


class TestRemoveGroup:
    def test_children_take_group_position(self):
        graph = GraphNode.from_json_dict({
            "id": "root",
            "children": [
                {"id": "x"},
                {"id": "g", "children": [{"id": "a"}, {"id": "b"}]},
                {"id": "y"},
            ],
        })
        remove_group("g", graph)
        assert child_ids(graph, "root") == ["x", "a", "b", "y"]

    def test_group_edges_rehomed(self, nested):
        remove_group("g1", nested)
        assert sorted(edges_on(nested, "root")) == ["e1", "e2"]
        assert nested.find_node("g1") is None

    def test_edges_referencing_group_dropped(self, nested):
        add_edge("e3", None, "g1", "d", nested)
        remove_group("g1", nested)
        assert nested.find_edge("e3") is None

    def test_missing_group(self, nested):
        with pytest.raises(GroupNotFound):
            remove_group("zzz", nested)

    def test_root_cannot_be_removed(self, nested):
        with pytest.raises(GroupNotFound):
            remove_group("root", nested)


class TestBatchUpdate:
    def test_applies_in_order(self, siblings):
        result = batch_update([
            {"name": "add_node", "nodename": "C", "parentId": "root"},
            {"name": "group_nodes", "nodeIds": ["A", "B"], "parentId": "root", "groupId": "grp"},
            {"name": "add_edge", "edgeId": "e1", "sourceId": "A", "targetId": "B"},
            {"name": "add_edge", "edgeId": "e2", "sourceId": "A", "targetId": "c", "label": "x"},
        ], siblings)
        assert edges_on(result, "grp") == ["e1"]
        assert edges_on(result, "root") == ["e2"]
        assert result.find_edge("e2")[1].label == "x"

    def test_original_untouched_on_success(self, siblings):
        before = siblings.to_json_dict()
        result = batch_update([{"name": "delete_node", "nodeId": "A"}], siblings)
        assert result is not siblings
        assert siblings.to_json_dict() == before

    def test_all_or_nothing(self, siblings):
        before = siblings.to_json_dict()
        with pytest.raises(BatchOperationError) as exc_info:
            batch_update([
                {"name": "add_node", "nodename": "C", "parentId": "root"},
                {"name": "delete_node", "nodeId": "missing"},
                {"name": "add_node", "nodename": "D", "parentId": "root"},
            ], siblings)
        error = exc_info.value
        assert error.index == 1
        assert error.operation == "delete_node"
        assert isinstance(error.cause, NodeNotFound)
        assert error.to_dict()["cause"]["kind"] == "NodeNotFound"
        assert siblings.to_json_dict() == before

    def test_tool_call_shape_with_args(self, siblings):
        result = batch_update([
            {"name": "add_edge", "args": {"edgeId": "e1", "sourceId": "A", "targetId": "B"}},
        ], siblings)
        assert edges_on(result, "root") == ["e1"]

    def test_snake_case_and_models(self, siblings):
        result = batch_update([
            BatchOperation(name="move_node", node_id="B", new_parent_id="A"),
            {"name": "add_node", "node_name": "Z", "parent_id": "A"},
        ], siblings)
        assert child_ids(result, "A") == ["B", "z"]

    def test_unknown_operation(self, siblings):
        with pytest.raises(BatchOperationError) as exc_info:
            batch_update([{"name": "explode"}], siblings)
        assert isinstance(exc_info.value.cause, InvalidOperation)

    def test_missing_arguments(self, siblings):
        with pytest.raises(BatchOperationError) as exc_info:
            batch_update([{"name": "add_edge", "edgeId": "e1", "sourceId": "A"}], siblings)
        assert isinstance(exc_info.value.cause, InvalidOperation)
        assert "target_id" in str(exc_info.value.cause)

    def test_empty_edge_id_is_wrapped(self, siblings):
        with pytest.raises(BatchOperationError) as exc_info:
            batch_update([{"name": "add_edge", "edgeId": "", "sourceId": "A", "targetId": "B"}], siblings)
        assert exc_info.value.index == 0
        assert exc_info.value.to_dict()["cause"]["kind"] == "InvalidOperation"
        assert edges_on(siblings, "root") == []

    def test_empty_batch_returns_copy(self, siblings):
        result = batch_update([], siblings)
        assert result.to_json_dict() == siblings.to_json_dict()


class TestStructuralProperties:
    def test_delete_then_rebuild_matches_hash(self):
        graph = GraphNode(id="root")
        add_node("a", "root", graph)
        add_node("b", "root", graph)
        add_edge("e1", None, "a", "b", graph)
        expected = structural_hash(graph)

        delete_node("a", graph)
        assert structural_hash(graph) != expected
        add_node("a", "root", graph)
        add_edge("e1", None, "a", "b", graph)
        assert structural_hash(graph) == expected

    def test_every_edge_stays_on_lca(self, nested):
        group_nodes(["g1", "d"], "root", "outer", nested)
        move_node("c", "g1", nested)
        add_edge("e3", None, "b", "d", nested)
        remove_group("g1", nested)
        for container, edge in nested.iter_edges():
            lca = nested.lowest_common_ancestor(edge.source, edge.target)
            assert lca.id == container.id, edge.id
