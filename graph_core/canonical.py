"""
Structural canonical form and hash of a graph.

The canonical form keeps only what the layout depends on structurally:
ids, labels, parent/child relations and edge endpoints. Geometry, layout
options, edge sections and presentation metadata are dropped. Children and
edges are sorted by id and endpoint lists are sorted, so two graphs that
differ only in ordering or geometry produce the same string.
"""

import hashlib
import json
from typing import Any

from .models import GraphEdge, GraphNode


def _canonical_edge(edge: GraphEdge) -> dict[str, Any]:
    result: dict[str, Any] = {
        "id": edge.id,
        "sources": sorted(edge.sources),
        "targets": sorted(edge.targets),
    }
    if edge.label:
        result["label"] = edge.label
    return result


def canonical_tree(node: GraphNode) -> dict[str, Any]:
    """Build the geometry-free, order-free dict for `node` and its subtree."""
    result: dict[str, Any] = {"id": node.id}
    if node.label:
        result["label"] = node.label
    if node.children:
        result["children"] = sorted(
            (canonical_tree(child) for child in node.children),
            key=lambda c: c["id"],
        )
    if node.edges:
        result["edges"] = sorted(
            (_canonical_edge(edge) for edge in node.edges),
            key=lambda e: e["id"],
        )
    return result


def canonical_form(graph: GraphNode) -> str:
    """Deterministic JSON string of the canonical tree."""
    return json.dumps(canonical_tree(graph), sort_keys=True, separators=(",", ":"))


def structural_hash(graph: GraphNode) -> str:
    """SHA-256 hex digest of the canonical form."""
    return hashlib.sha256(canonical_form(graph).encode("utf-8")).hexdigest()
