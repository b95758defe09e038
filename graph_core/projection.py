"""
Render projection - flat, renderer-agnostic node and edge descriptors.

Combines absolute node geometry with per-side connection points:
- every node gets its global box and, per side, the offsets of its handles
  in node-local space (y offsets on left/right, x offsets on top/bottom)
- every edge gets "side-index" handle ids for both endpoints plus its
  absolute bend points

Edges whose handles cannot be resolved are not emitted; they are reported
in RenderGraph.skipped so a caller can see what was dropped.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from .edge_points import SIDES, EdgePointMap, EndpointRole, Side, box_or_default, build_node_edge_points
from .models import GraphNode, Point
from .positions import AbsoluteMap, compute_absolute_positions

logger = logging.getLogger(__name__)


def handle_id(side: Side, index: int) -> str:
    return f"{side.value}-{index}"


@dataclass
class RenderNode:
    """A positioned node descriptor."""
    id: str
    label: str
    parent_id: Optional[str]
    x: float
    y: float
    width: float
    height: float
    is_container: bool
    handles: dict[str, list[float]] = field(default_factory=dict)
    icon: Optional[str] = None
    style: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "label": self.label,
            "parent_id": self.parent_id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "is_container": self.is_container,
            "handles": self.handles,
        }
        if self.icon is not None:
            result["icon"] = self.icon
        if self.style is not None:
            result["style"] = self.style
        return result


@dataclass
class RenderEdge:
    """An edge descriptor with resolved handles and an absolute polyline."""
    id: str
    source: str
    target: str
    source_handle: str
    target_handle: str
    bend_points: list[Point] = field(default_factory=list)
    label: str = ""
    label_position: Optional[Point] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "source_handle": self.source_handle,
            "target_handle": self.target_handle,
            "bend_points": [p.model_dump() for p in self.bend_points],
            "label": self.label,
            "label_position": self.label_position.model_dump() if self.label_position else None,
        }


@dataclass
class SkippedEdge:
    """Diagnostic for an edge that could not be rendered."""
    edge_id: str
    source_id: str
    target_id: str

    def to_dict(self) -> dict:
        return {"edge_id": self.edge_id, "source_id": self.source_id, "target_id": self.target_id}


@dataclass
class RenderGraph:
    nodes: list[RenderNode] = field(default_factory=list)
    edges: list[RenderEdge] = field(default_factory=list)
    skipped: list[SkippedEdge] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "skipped": [s.to_dict() for s in self.skipped],
        }


def _project_nodes(graph: GraphNode, positions: AbsoluteMap, edge_points: EdgePointMap) -> list[RenderNode]:
    nodes: list[RenderNode] = []
    stack: list[tuple[GraphNode, Optional[str]]] = [(graph, None)]
    while stack:
        node, parent_id = stack.pop()
        box = box_or_default(positions, node.id)
        points = edge_points.for_node(node.id)
        handles = {}
        for side in SIDES:
            if side in (Side.LEFT, Side.RIGHT):
                handles[side.value] = [p.y - box.y for p in points.on(side)]
            else:
                handles[side.value] = [p.x - box.x for p in points.on(side)]

        nodes.append(RenderNode(
            id=node.id,
            label=node.label,
            parent_id=parent_id,
            x=box.x,
            y=box.y,
            width=box.width,
            height=box.height,
            is_container=node.is_container,
            handles=handles,
            icon=node.icon,
            style=node.style,
        ))
        for child in reversed(node.children):
            stack.append((child, node.id))
    return nodes


def project_layout(
    graph: GraphNode,
    positions: Optional[AbsoluteMap] = None,
    edge_points: Optional[EdgePointMap] = None,
) -> RenderGraph:
    """
    Project a layouted graph into render descriptors.

    `positions` and `edge_points` are computed from `graph` when not given.
    """
    if positions is None:
        positions = compute_absolute_positions(graph)
    if edge_points is None:
        edge_points = build_node_edge_points(graph, positions)

    result = RenderGraph(nodes=_project_nodes(graph, positions, edge_points))

    for container, edge in graph.iter_edges():
        source_slot = edge_points.handle_for(edge.source, edge.id, EndpointRole.SOURCE)
        target_slot = edge_points.handle_for(edge.target, edge.id, EndpointRole.TARGET)
        if source_slot is None or target_slot is None:
            logger.warning("Edge '%s' skipped - handle not found (%s -> %s)",
                           edge.id, edge.source, edge.target)
            result.skipped.append(SkippedEdge(edge.id, edge.source, edge.target))
            continue

        label_position = None
        if edge.label_position is not None:
            offset = positions.get(container.id)
            label_position = Point(
                x=edge.label_position.x + (offset.x if offset else 0.0),
                y=edge.label_position.y + (offset.y if offset else 0.0),
            )

        result.edges.append(RenderEdge(
            id=edge.id,
            source=edge.source,
            target=edge.target,
            source_handle=handle_id(*source_slot),
            target_handle=handle_id(*target_slot),
            bend_points=edge_points.bend_points.get(edge.id, []),
            label=edge.label,
            label_position=label_position,
        ))

    return result
