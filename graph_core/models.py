"""
Core data models for hierarchical graphs.

These models define the canonical schema for a diagram graph:
- Nodes that own an ordered list of child nodes and the edges between them
- Edges stored on the lowest common ancestor of their endpoints
- Layout-derived geometry (positions, sizes, edge sections) that is
  ephemeral and regenerated on every layout pass

Field Naming Convention:
- Python attributes are snake_case (`layout_options`, `start_point`)
- The layout engine speaks camelCase JSON (`layoutOptions`, `startPoint`);
  both spellings are accepted on input
- Layout-engine `labels: [{text}]` lists are folded into a single `label`
"""

from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Point(BaseModel):
    """A 2D coordinate."""
    x: float = 0.0
    y: float = 0.0


class EdgeSection(BaseModel):
    """One routed polyline of an edge, in the owning container's frame."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    start_point: Point = Field(alias="startPoint")
    end_point: Point = Field(alias="endPoint")
    bend_points: list[Point] = Field(default_factory=list, alias="bendPoints")


class GraphEdge(BaseModel):
    """
    A directed edge between two nodes.

    `sources`/`targets` are single-element lists (the layout engine's shape);
    use the `source`/`target` properties for the endpoint ids.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    sources: list[str] = Field(min_length=1)
    targets: list[str] = Field(min_length=1)
    label: str = ""
    # Layout-derived
    sections: Optional[list[EdgeSection]] = None
    label_position: Optional[Point] = Field(default=None, alias="labelPosition")

    @model_validator(mode="before")
    @classmethod
    def convert_layout_fields(cls, data: Any) -> Any:
        """Fold layout-engine `labels` into `label` and `label_position`."""
        if isinstance(data, dict) and "labels" in data:
            data = dict(data)
            labels = data.pop("labels") or []
            if labels and "label" not in data:
                first = labels[0]
                data["label"] = first.get("text", "")
                has_position = "labelPosition" in data or "label_position" in data
                if "x" in first and "y" in first and not has_position:
                    data["label_position"] = {"x": first["x"], "y": first["y"]}
        return data

    @property
    def source(self) -> str:
        return self.sources[0]

    @property
    def target(self) -> str:
        return self.targets[0]

    def to_layout_dict(self) -> dict:
        """Convert to layout-engine JSON."""
        result: dict[str, Any] = {
            "id": self.id,
            "sources": list(self.sources),
            "targets": list(self.targets),
        }
        if self.label:
            label: dict[str, Any] = {"text": self.label}
            if self.label_position is not None:
                label["x"] = self.label_position.x
                label["y"] = self.label_position.y
            result["labels"] = [label]
        if self.sections is not None:
            result["sections"] = [
                s.model_dump(by_alias=True, exclude_none=True) for s in self.sections
            ]
        return result


class GraphNode(BaseModel):
    """
    A node in the graph tree. The root node is the whole graph.

    A node with children is a container (group). Edges listed on a node
    connect nodes inside its subtree.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    label: str = ""
    children: list["GraphNode"] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    # Layout-derived, relative to the parent's origin
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    layout_options: Optional[dict[str, Any]] = Field(default=None, alias="layoutOptions")
    # Presentation metadata, passed through untouched
    icon: Optional[str] = None
    style: Optional[dict[str, Any]] = None

    @model_validator(mode="before")
    @classmethod
    def convert_layout_fields(cls, data: Any) -> Any:
        """Accept layout-engine JSON: `labels`, `data.icon`/`data.style`, null lists."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "labels" in data:
            labels = data.pop("labels") or []
            if labels and "label" not in data:
                data["label"] = labels[0].get("text", "")
        if isinstance(data.get("data"), dict):
            extra = data.pop("data")
            data.setdefault("icon", extra.get("icon"))
            data.setdefault("style", extra.get("style"))
        for key in ("children", "edges"):
            if key in data and data[key] is None:
                data[key] = []
        return data

    @property
    def is_container(self) -> bool:
        return len(self.children) > 0

    # --- Traversal (soft lookups, never raise) ---

    def iter_nodes(self) -> Iterator["GraphNode"]:
        """Yield this node and every descendant in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def iter_edges(self) -> Iterator[tuple["GraphNode", GraphEdge]]:
        """Yield (owning container, edge) pairs, containers in pre-order."""
        for container in self.iter_nodes():
            for edge in container.edges:
                yield container, edge

    def find_node(self, node_id: str) -> Optional["GraphNode"]:
        for node in self.iter_nodes():
            if node.id == node_id:
                return node
        return None

    def find_parent(self, node_id: str) -> Optional["GraphNode"]:
        """Get the node whose children include `node_id` (None for the root)."""
        for node in self.iter_nodes():
            for child in node.children:
                if child.id == node_id:
                    return node
        return None

    def find_edge(self, edge_id: str) -> Optional[tuple["GraphNode", GraphEdge]]:
        for container, edge in self.iter_edges():
            if edge.id == edge_id:
                return container, edge
        return None

    def path_to(self, node_id: str) -> Optional[list["GraphNode"]]:
        """Get the list of nodes from this node down to `node_id`, inclusive."""
        if self.id == node_id:
            return [self]
        for child in self.children:
            path = child.path_to(node_id)
            if path is not None:
                return [self] + path
        return None

    def lowest_common_ancestor(self, first_id: str, second_id: str) -> Optional["GraphNode"]:
        """
        Find the deepest node that is an ancestor-or-self of both ids.

        Walks both root-to-node paths and keeps the last position at which
        they agree. Returns None if either id is missing.
        """
        first_path = self.path_to(first_id)
        second_path = self.path_to(second_id)
        if first_path is None or second_path is None:
            return None
        common = None
        for a, b in zip(first_path, second_path):
            if a.id != b.id:
                break
            common = a
        return common

    def subtree_ids(self) -> set[str]:
        return {node.id for node in self.iter_nodes()}

    # --- Serialization ---

    def to_layout_dict(self) -> dict:
        """Convert to layout-engine JSON (labels list, camelCase, no nulls)."""
        result: dict[str, Any] = {"id": self.id}
        if self.label:
            result["labels"] = [{"text": self.label}]
        for key in ("x", "y", "width", "height"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.layout_options is not None:
            result["layoutOptions"] = dict(self.layout_options)
        if self.icon is not None or self.style is not None:
            result["data"] = {"icon": self.icon, "style": self.style}
        if self.children:
            result["children"] = [child.to_layout_dict() for child in self.children]
        if self.edges:
            result["edges"] = [edge.to_layout_dict() for edge in self.edges]
        return result

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with layout-engine field names."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_json_dict(cls, data: dict) -> "GraphNode":
        """Create a graph from logical or layout-engine JSON."""
        return cls.model_validate(data)


GraphNode.model_rebuild()


def new_graph(root_id: str = "root", label: str = "") -> GraphNode:
    """Create an empty graph (a lone root node)."""
    return GraphNode(id=root_id, label=label)


def find_node(graph: GraphNode, node_id: str) -> Optional[GraphNode]:
    """Pre-order search for `node_id`; None when absent."""
    return graph.find_node(node_id)
