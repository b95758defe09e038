"""Shared fixtures for graph tool tests."""

import pytest

from graph_core import GraphNode


def build(data: dict) -> GraphNode:
    return GraphNode.from_json_dict(data)


@pytest.fixture
def siblings() -> GraphNode:
    """root -> [A, B]"""
    return build({"id": "root", "children": [{"id": "A"}, {"id": "B"}]})


@pytest.fixture
def nested() -> GraphNode:
    """
    root
      g1
        a
        b
      g2
        c
      d
    edges: e1 a->b on g1, e2 a->c on root
    """
    return build({
        "id": "root",
        "children": [
            {
                "id": "g1",
                "children": [{"id": "a"}, {"id": "b"}],
                "edges": [{"id": "e1", "sources": ["a"], "targets": ["b"]}],
            },
            {"id": "g2", "children": [{"id": "c"}]},
            {"id": "d"},
        ],
        "edges": [{"id": "e2", "sources": ["a"], "targets": ["c"]}],
    })
