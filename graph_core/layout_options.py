"""
Layout-engine option bags and input preparation.

The option bags are opaque to this package; they are handed to the layout
engine verbatim. prepare_for_layout builds the engine input from a logical
graph without writing to it.
"""

import copy
from typing import Any

from .models import GraphNode

# Default node box used when geometry is missing after layout
DEFAULT_NODE_WIDTH = 80
DEFAULT_NODE_HEIGHT = 40

ROOT_DEFAULT_OPTIONS: dict[str, Any] = {
    "layoutOptions": {
        "algorithm": "layered",
        "elk.direction": "RIGHT",
        "hierarchyHandling": "INCLUDE_CHILDREN",
        "elk.layered.considerModelOrder": True,
        "elk.layered.considerModelOrder.strategy": "NODES_AND_EDGES",
        "elk.layered.nodePlacement.favorStraightEdges": True,
        "elk.layered.cycleBreaking.strategy": "INTERACTIVE",
        "spacing.edgeNode": 30,
        "spacing.nodeNode": 30,
        "spacing.edgeEdge": 30,
        "spacing.edgeEdgeBetweenLayers": 30,
        "spacing.nodeNodeBetweenLayers": 30,
        "spacing.edgeNodeBetweenLayers": 30,
    }
}

NON_ROOT_DEFAULT_OPTIONS: dict[str, Any] = {
    "width": 100,
    "height": 100,
    "layoutOptions": {
        "nodeLabels.placement": "INSIDE V_TOP H_LEFT",
        "elk.padding": "[top=30.0,left=30.0,bottom=30.0,right=30.0]",
        "elk.layered.nodePlacement.favorStraightEdges": True,
        "elk.layered.priority.shortness": 100,
        "spacing.edgeNode": 30,
        "spacing.nodeNode": 30,
        "spacing.edgeEdge": 30,
        "spacing.edgeEdgeBetweenLayers": 50,
        "spacing.nodeNodeBetweenLayers": 50,
        "spacing.edgeNodeBetweenLayers": 50,
        "edgeLabels.placement": "CENTER",
        "elk.edgeLabels.inline": True,
    },
}


def _apply_defaults(node: dict[str, Any], is_root: bool) -> None:
    if is_root:
        node["layoutOptions"] = {
            **ROOT_DEFAULT_OPTIONS["layoutOptions"],
            **(node.get("layoutOptions") or {}),
        }
    else:
        if node.get("width") is None:
            node["width"] = NON_ROOT_DEFAULT_OPTIONS["width"]
        if node.get("height") is None:
            node["height"] = NON_ROOT_DEFAULT_OPTIONS["height"]
        node["layoutOptions"] = {
            **NON_ROOT_DEFAULT_OPTIONS["layoutOptions"],
            **(node.get("layoutOptions") or {}),
        }
    for child in node.get("children", []):
        _apply_defaults(child, is_root=False)


def prepare_for_layout(graph: GraphNode) -> dict[str, Any]:
    """
    Build layout-engine input for `graph`.

    Root options go on the root; every other node gets a default size when
    it has none plus the non-root options. Options already set on a node
    win over the defaults.
    """
    prepared = copy.deepcopy(graph.to_layout_dict())
    _apply_defaults(prepared, is_root=True)
    return prepared
