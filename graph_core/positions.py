"""
Absolute positions of a layouted graph.

The layout engine places every node relative to its parent's origin. This
module walks the tree once and accumulates offsets into a single global
frame.
"""

from dataclasses import dataclass

from .layout_options import DEFAULT_NODE_HEIGHT, DEFAULT_NODE_WIDTH
from .models import GraphNode


@dataclass
class AbsoluteBox:
    """A node's box in the global frame."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


AbsoluteMap = dict[str, AbsoluteBox]


def compute_absolute_positions(graph: GraphNode) -> AbsoluteMap:
    """
    Map every node id to its global box.

    A node's global position is its parent's global position plus its own
    local x/y. Missing x/y count as 0; missing width/height fall back to the
    default node box.
    """
    positions: AbsoluteMap = {}
    stack = [(graph, 0.0, 0.0)]
    while stack:
        node, offset_x, offset_y = stack.pop()
        abs_x = offset_x + (node.x if node.x is not None else 0.0)
        abs_y = offset_y + (node.y if node.y is not None else 0.0)
        positions[node.id] = AbsoluteBox(
            x=abs_x,
            y=abs_y,
            width=node.width if node.width is not None else DEFAULT_NODE_WIDTH,
            height=node.height if node.height is not None else DEFAULT_NODE_HEIGHT,
        )
        for child in reversed(node.children):
            stack.append((child, abs_x, abs_y))
    return positions
