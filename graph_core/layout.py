"""
Layout adapters - the boundary to the automatic layout engine.

An adapter takes layout-engine JSON (as built by prepare_for_layout) and
returns a copy annotated with:
- x, y per node, relative to the parent's origin, and width/height
- sections per edge (startPoint, endPoint, bendPoints), relative to the
  container that owns the edge

Provides:
- GridLayoutAdapter: deterministic built-in engine (nested grids with
  orthogonal edge routing), used by default and in tests
- HttpLayoutAdapter: delegates to an external layout service over HTTP
"""

import copy
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from .errors import LayoutError
from .layout_options import NON_ROOT_DEFAULT_OPTIONS

logger = logging.getLogger(__name__)


# Default layout parameters
DEFAULT_PADDING = 30
DEFAULT_SPACING_X = 30
DEFAULT_SPACING_Y = 30


class LayoutAdapter(ABC):
    """Turns a sized graph into a positioned, routed graph."""

    @abstractmethod
    async def layout(self, graph: dict[str, Any]) -> dict[str, Any]:
        """Return a layouted copy of `graph`. Must not modify the input."""


# --- Built-in grid engine ---

def grid_columns(count: int) -> int:
    """Number of grid columns for `count` children."""
    if count <= 0:
        return 1
    return min(count, max(3, int(count ** 0.5) + 1))


def grid_layout(
    node: dict[str, Any],
    padding: float = DEFAULT_PADDING,
    spacing_x: float = DEFAULT_SPACING_X,
    spacing_y: float = DEFAULT_SPACING_Y,
) -> dict[str, Any]:
    """
    Arrange every container's children in a grid, innermost first.

    Cells are sized by the largest child; a container grows to fit its grid
    plus padding. Leaves keep their own size (default size if missing).

    Returns:
        The same dict (modified in-place)
    """
    children = node.get("children") or []
    for child in children:
        grid_layout(child, padding, spacing_x, spacing_y)

    if children:
        columns = grid_columns(len(children))
        rows = math.ceil(len(children) / columns)
        cell_w = max(child["width"] for child in children)
        cell_h = max(child["height"] for child in children)

        for i, child in enumerate(children):
            row = i // columns
            col = i % columns
            child["x"] = padding + col * (cell_w + spacing_x)
            child["y"] = padding + row * (cell_h + spacing_y)

        node["width"] = 2 * padding + columns * cell_w + (columns - 1) * spacing_x
        node["height"] = 2 * padding + rows * cell_h + (rows - 1) * spacing_y
    else:
        if node.get("width") is None:
            node["width"] = NON_ROOT_DEFAULT_OPTIONS["width"]
        if node.get("height") is None:
            node["height"] = NON_ROOT_DEFAULT_OPTIONS["height"]

    return node


def _frame_boxes(root: dict[str, Any]) -> dict[str, tuple[float, float, float, float]]:
    """(x, y, width, height) of every node in the root's frame."""
    boxes = {}
    stack = [(root, 0.0, 0.0)]
    while stack:
        node, offset_x, offset_y = stack.pop()
        x = offset_x + node.get("x", 0.0)
        y = offset_y + node.get("y", 0.0)
        boxes[node["id"]] = (x, y, node["width"], node["height"])
        for child in node.get("children") or []:
            stack.append((child, x, y))
    return boxes


def route_between(source: tuple, target: tuple) -> tuple[tuple, tuple, list[tuple]]:
    """
    Route one edge between two boxes.

    Leaves the source on the side facing the target along the dominant axis
    of the centre-to-centre delta and enters the target on the opposite
    side. Two bend points keep the route orthogonal when the endpoints are
    not aligned.
    """
    sx, sy, sw, sh = source
    tx, ty, tw, th = target
    dx = (tx + tw / 2) - (sx + sw / 2)
    dy = (ty + th / 2) - (sy + sh / 2)

    if abs(dx) > abs(dy):
        if dx > 0:
            start, end = (sx + sw, sy + sh / 2), (tx, ty + th / 2)
        else:
            start, end = (sx, sy + sh / 2), (tx + tw, ty + th / 2)
        bends = []
        if start[1] != end[1]:
            mid_x = (start[0] + end[0]) / 2
            bends = [(mid_x, start[1]), (mid_x, end[1])]
    else:
        if dy > 0:
            start, end = (sx + sw / 2, sy + sh), (tx + tw / 2, ty)
        else:
            start, end = (sx + sw / 2, sy), (tx + tw / 2, ty + th)
        bends = []
        if start[0] != end[0]:
            mid_y = (start[1] + end[1]) / 2
            bends = [(start[0], mid_y), (end[0], mid_y)]

    return start, end, bends


def route_edges(root: dict[str, Any]) -> dict[str, Any]:
    """
    Give every edge one section, in its owning container's frame.

    Edges whose endpoints are missing are left without sections.

    Returns:
        The same dict (modified in-place)
    """
    boxes = _frame_boxes(root)
    stack = [root]
    while stack:
        container = stack.pop()
        cx, cy = boxes[container["id"]][:2]
        for edge in container.get("edges") or []:
            source = boxes.get(edge["sources"][0])
            target = boxes.get(edge["targets"][0])
            if source is None or target is None:
                logger.warning("Cannot route edge '%s': endpoint missing", edge["id"])
                continue

            start, end, bends = route_between(source, target)
            edge["sections"] = [{
                "id": f"{edge['id']}_s0",
                "startPoint": {"x": start[0] - cx, "y": start[1] - cy},
                "endPoint": {"x": end[0] - cx, "y": end[1] - cy},
                "bendPoints": [{"x": bx - cx, "y": by - cy} for bx, by in bends],
            }]
            for label in edge.get("labels") or []:
                label["x"] = (start[0] + end[0]) / 2 - cx
                label["y"] = (start[1] + end[1]) / 2 - cy
        stack.extend(container.get("children") or [])
    return root


class GridLayoutAdapter(LayoutAdapter):
    """Deterministic in-process layout: nested grids, orthogonal edges."""

    def __init__(
        self,
        padding: float = DEFAULT_PADDING,
        spacing_x: float = DEFAULT_SPACING_X,
        spacing_y: float = DEFAULT_SPACING_Y,
    ):
        self.padding = padding
        self.spacing_x = spacing_x
        self.spacing_y = spacing_y

    async def layout(self, graph: dict[str, Any]) -> dict[str, Any]:
        result = copy.deepcopy(graph)
        grid_layout(result, self.padding, self.spacing_x, self.spacing_y)
        result.setdefault("x", 0.0)
        result.setdefault("y", 0.0)
        route_edges(result)
        return result


# --- External engine ---

class HttpLayoutAdapter(LayoutAdapter):
    """
    Posts the graph to a layout service and returns its JSON response.

    The service is expected to accept and return layout-engine JSON (an
    elkjs worker behind a small HTTP endpoint, for example).
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def layout(self, graph: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=graph)
        except httpx.HTTPError as e:
            raise LayoutError(f"Layout service unreachable: {e}") from e

        if response.status_code >= 400:
            raise LayoutError(f"Layout service error ({response.status_code}): {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            raise LayoutError("Layout service returned invalid JSON") from e
        if not isinstance(data, dict) or "id" not in data:
            raise LayoutError("Layout service returned an unexpected payload")
        return data


def create_layout_adapter(engine: str = "grid", url: Optional[str] = None, timeout: float = 30.0) -> LayoutAdapter:
    """
    Build the adapter named by `engine`.

    Engines:
    - grid: built-in GridLayoutAdapter
    - http: HttpLayoutAdapter posting to `url`
    """
    if engine == "grid":
        return GridLayoutAdapter()
    if engine == "http":
        if not url:
            raise ValueError("The http layout engine needs a service URL")
        return HttpLayoutAdapter(url, timeout=timeout)
    raise ValueError(f"Unknown layout engine: {engine}")
