"""
Edge connection points in the global frame.

Edge sections come back from the layout engine in the frame of the
container that owns the edge. For every section this module:
- shifts start, end and bend points by the owning container's global position
- decides which side of the source node the start point sits on, and which
  side of the target node the end point sits on
- appends the point to that node's per-side list, in traversal order, so
  the list index can serve as a stable handle number
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .layout_options import DEFAULT_NODE_HEIGHT, DEFAULT_NODE_WIDTH
from .models import GraphNode, Point
from .positions import AbsoluteBox, AbsoluteMap

logger = logging.getLogger(__name__)


class Side(str, Enum):
    """Sides of a node box, in tie-break order."""
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"


SIDES = (Side.LEFT, Side.RIGHT, Side.TOP, Side.BOTTOM)


class EndpointRole(str, Enum):
    SOURCE = "source"
    TARGET = "target"


@dataclass
class ConnectionPoint:
    """Where one edge endpoint touches a node, in global coordinates."""
    edge_id: str
    x: float
    y: float
    role: EndpointRole
    # Position as given by the layout engine (owning container's frame)
    local_x: float = 0.0
    local_y: float = 0.0

    def to_dict(self) -> dict:
        return {
            "edge_id": self.edge_id,
            "x": self.x,
            "y": self.y,
            "role": self.role.value,
        }


@dataclass
class NodeEdgePoints:
    """Connection points of one node, grouped by side."""
    left: list[ConnectionPoint] = field(default_factory=list)
    right: list[ConnectionPoint] = field(default_factory=list)
    top: list[ConnectionPoint] = field(default_factory=list)
    bottom: list[ConnectionPoint] = field(default_factory=list)

    def on(self, side: Side) -> list[ConnectionPoint]:
        return getattr(self, side.value)

    def find(self, edge_id: str, role: EndpointRole) -> Optional[tuple[Side, int]]:
        """Get the (side, index) recorded for an edge endpoint, if any."""
        for side in SIDES:
            for index, point in enumerate(self.on(side)):
                if point.edge_id == edge_id and point.role == role:
                    return side, index
        return None


@dataclass
class EdgePointMap:
    """Per-node connection points plus absolute bend points per edge."""
    nodes: dict[str, NodeEdgePoints] = field(default_factory=dict)
    bend_points: dict[str, list[Point]] = field(default_factory=dict)

    def for_node(self, node_id: str) -> NodeEdgePoints:
        return self.nodes.get(node_id) or NodeEdgePoints()

    def add(self, node_id: str, side: Side, point: ConnectionPoint) -> None:
        self.nodes.setdefault(node_id, NodeEdgePoints()).on(side).append(point)

    def handle_for(self, node_id: str, edge_id: str, role: EndpointRole) -> Optional[tuple[Side, int]]:
        points = self.nodes.get(node_id)
        if points is None:
            return None
        return points.find(edge_id, role)


def determine_connection_side(box: AbsoluteBox, x: float, y: float) -> Side:
    """
    Pick the side of `box` closest to (x, y).

    Distances are taken to the box's four edge lines; on a tie the earlier
    side in left, right, top, bottom order wins.
    """
    distances = {
        Side.LEFT: abs(x - box.x),
        Side.RIGHT: abs(x - box.right),
        Side.TOP: abs(y - box.y),
        Side.BOTTOM: abs(y - box.bottom),
    }
    return min(SIDES, key=distances.__getitem__)


def box_or_default(positions: AbsoluteMap, node_id: str) -> AbsoluteBox:
    """Absolute box of `node_id`, or a default-sized box at the origin when it has no position."""
    box = positions.get(node_id)
    if box is None:
        return AbsoluteBox(0.0, 0.0, DEFAULT_NODE_WIDTH, DEFAULT_NODE_HEIGHT)
    return box


def build_node_edge_points(graph: GraphNode, positions: AbsoluteMap) -> EdgePointMap:
    """Collect connection and bend points for every edge section in `graph`."""
    result = EdgePointMap()

    for container, edge in graph.iter_edges():
        if not edge.sections:
            logger.debug("Edge '%s' has no sections", edge.id)
            continue

        offset = positions.get(container.id)
        ox = offset.x if offset else 0.0
        oy = offset.y if offset else 0.0
        bends: list[Point] = []

        for section in edge.sections:
            start_x = ox + section.start_point.x
            start_y = oy + section.start_point.y
            side = determine_connection_side(box_or_default(positions, edge.source), start_x, start_y)
            result.add(edge.source, side, ConnectionPoint(
                edge_id=edge.id,
                x=start_x,
                y=start_y,
                role=EndpointRole.SOURCE,
                local_x=section.start_point.x,
                local_y=section.start_point.y,
            ))

            end_x = ox + section.end_point.x
            end_y = oy + section.end_point.y
            side = determine_connection_side(box_or_default(positions, edge.target), end_x, end_y)
            result.add(edge.target, side, ConnectionPoint(
                edge_id=edge.id,
                x=end_x,
                y=end_y,
                role=EndpointRole.TARGET,
                local_x=section.end_point.x,
                local_y=section.end_point.y,
            ))

            bends.extend(Point(x=ox + p.x, y=oy + p.y) for p in section.bend_points)

        result.bend_points[edge.id] = bends

    return result
