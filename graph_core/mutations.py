"""
Structural mutations of a graph.

Every operation:
- takes the graph as its last argument, edits it in place and returns it
- checks all of its preconditions before touching the tree, so a failing
  operation leaves the graph exactly as it was
- keeps every edge on the lowest common ancestor of its endpoints

batch_update is the exception to in-place editing: it works on a copy and
only hands the copy back when every operation succeeded.
"""

import logging
import re
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import (
    BatchOperationError,
    CycleDetected,
    DuplicateEdgeId,
    DuplicateNodeId,
    EdgeNotFound,
    GraphError,
    GroupNotFound,
    InvalidContainer,
    InvalidOperation,
    NodeNotFound,
    ParentNotFound,
)
from .models import GraphEdge, GraphNode

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def create_node_id(name: str) -> str:
    """Derive a node id from a display name ("Web App" -> "web_app")."""
    return _WHITESPACE.sub("_", name.lower())


# --- Helpers ---

def _touches(edge: GraphEdge, node_ids: set[str]) -> bool:
    return any(n in node_ids for n in edge.sources) or any(n in node_ids for n in edge.targets)


def _drop_edges_touching(graph: GraphNode, node_ids: set[str]) -> int:
    """Remove every edge, at every level, that references one of `node_ids`."""
    removed = 0
    for container in graph.iter_nodes():
        if not container.edges:
            continue
        kept = [e for e in container.edges if not _touches(e, node_ids)]
        removed += len(container.edges) - len(kept)
        container.edges = kept
    return removed


def _rehome_edges(graph: GraphNode, node_ids: set[str]) -> int:
    """Move every edge touching `node_ids` onto the LCA of its endpoints."""
    moves = []
    for container, edge in graph.iter_edges():
        if not _touches(edge, node_ids):
            continue
        owner = graph.lowest_common_ancestor(edge.source, edge.target)
        if owner is not None and owner.id != container.id:
            moves.append((container, edge, owner))

    for container, edge, owner in moves:
        container.edges = [e for e in container.edges if e is not edge]
        owner.edges.append(edge)
        logger.debug("Re-homed edge '%s' from '%s' to '%s'", edge.id, container.id, owner.id)
    return len(moves)


def _not_found(error: type[GraphError], message: str) -> GraphError:
    logger.warning(message)
    return error(message)


def _require_id(value: str, what: str) -> None:
    if not value:
        raise InvalidOperation(f"{what} must not be empty")


# --- Node operations ---

def add_node(name: str, parent_id: str, graph: GraphNode) -> GraphNode:
    """Add a new leaf named `name` under `parent_id`."""
    node_id = create_node_id(name)
    if not node_id:
        raise InvalidOperation("Node name must not be empty")

    parent = graph.find_node(parent_id)
    if parent is None:
        raise _not_found(ParentNotFound, f"Parent node '{parent_id}' not found")
    if graph.find_node(node_id) is not None:
        raise DuplicateNodeId(f"Node '{node_id}' already exists")

    parent.children.append(GraphNode(id=node_id, label=name))
    logger.debug("add_node '%s' -> parent '%s'", node_id, parent_id)
    return graph


def delete_node(node_id: str, graph: GraphNode) -> GraphNode:
    """
    Delete a node (and its subtree) plus every edge that references it.

    Edges are removed at every container level, including the root, for
    the node itself and for every descendant removed along with it.
    """
    parent = graph.find_parent(node_id)
    if parent is None:
        if graph.id == node_id:
            raise _not_found(NodeNotFound, f"Node '{node_id}' is the root and cannot be deleted")
        raise _not_found(NodeNotFound, f"Node '{node_id}' not found")

    node = next(child for child in parent.children if child.id == node_id)
    removed_ids = node.subtree_ids()
    parent.children = [child for child in parent.children if child.id != node_id]
    dropped = _drop_edges_touching(graph, removed_ids)

    logger.debug("delete_node '%s' (%d nodes, %d edges removed)", node_id, len(removed_ids), dropped)
    return graph


def move_node(node_id: str, new_parent_id: str, graph: GraphNode) -> GraphNode:
    """Move a node under a new parent and re-home the edges of its subtree."""
    node = graph.find_node(node_id)
    if node is None:
        raise _not_found(NodeNotFound, f"Node '{node_id}' not found")
    new_parent = graph.find_node(new_parent_id)
    if new_parent is None:
        raise _not_found(ParentNotFound, f"New parent node '{new_parent_id}' not found")

    moved_ids = node.subtree_ids()
    if new_parent_id in moved_ids:
        logger.warning("Rejected move of '%s' into its own subtree '%s'", node_id, new_parent_id)
        raise CycleDetected(f"Cannot move '{node_id}' into its own descendant '{new_parent_id}'")

    # Every node but the root has a parent, and the root always fails the cycle check.
    old_parent = graph.find_parent(node_id)
    old_parent.children = [child for child in old_parent.children if child.id != node_id]
    new_parent.children.append(node)
    rehomed = _rehome_edges(graph, moved_ids)

    logger.debug("move_node '%s' -> '%s' (%d edges re-homed)", node_id, new_parent_id, rehomed)
    return graph


# --- Edge operations ---

def add_edge(
    edge_id: str,
    container_id: Optional[str],
    source_id: str,
    target_id: str,
    graph: GraphNode,
    label: str = "",
) -> GraphNode:
    """
    Connect `source_id` to `target_id`.

    The edge is stored on `container_id` when given, which must be an
    ancestor-or-self of both endpoints. Otherwise it is stored on the
    lowest common ancestor of the endpoints.
    """
    _require_id(edge_id, "Edge id")
    source_path = graph.path_to(source_id)
    if source_path is None:
        raise _not_found(NodeNotFound, f"Source node '{source_id}' not found")
    target_path = graph.path_to(target_id)
    if target_path is None:
        raise _not_found(NodeNotFound, f"Target node '{target_id}' not found")
    if graph.find_edge(edge_id) is not None:
        raise DuplicateEdgeId(f"Edge '{edge_id}' already exists")

    if container_id is not None:
        owner = graph.find_node(container_id)
        if owner is None:
            raise _not_found(ParentNotFound, f"Container '{container_id}' not found")
        on_source_path = any(n.id == container_id for n in source_path)
        on_target_path = any(n.id == container_id for n in target_path)
        if not (on_source_path and on_target_path):
            raise InvalidContainer(
                f"Container '{container_id}' is not an ancestor of both "
                f"'{source_id}' and '{target_id}'"
            )
    else:
        owner = None
        for a, b in zip(source_path, target_path):
            if a.id != b.id:
                break
            owner = a

    owner.edges.append(GraphEdge(id=edge_id, sources=[source_id], targets=[target_id], label=label))
    logger.debug("add_edge '%s' (%s -> %s) on '%s'", edge_id, source_id, target_id, owner.id)
    return graph


def delete_edge(edge_id: str, graph: GraphNode) -> GraphNode:
    """Delete the first edge with `edge_id`, searching containers root first."""
    found = graph.find_edge(edge_id)
    if found is None:
        raise _not_found(EdgeNotFound, f"Edge '{edge_id}' not found")

    container, edge = found
    container.edges = [e for e in container.edges if e is not edge]
    logger.debug("delete_edge '%s' from '%s'", edge_id, container.id)
    return graph


# --- Group operations ---

def group_nodes(node_ids: list[str], parent_id: str, group_id: str, graph: GraphNode) -> GraphNode:
    """
    Create container `group_id` under `parent_id` and move `node_ids` into it.

    Every id must be a direct child of `parent_id`. Nodes keep the order in
    which they are listed.
    """
    _require_id(group_id, "Group id")
    parent = graph.find_node(parent_id)
    if parent is None:
        raise _not_found(ParentNotFound, f"Parent node '{parent_id}' not found")
    if graph.find_node(group_id) is not None:
        raise DuplicateNodeId(f"Node '{group_id}' already exists")

    children_by_id = {child.id: child for child in parent.children}
    selected: list[GraphNode] = []
    for node_id in node_ids:
        child = children_by_id.pop(node_id, None)
        if child is None:
            raise _not_found(NodeNotFound, f"Node '{node_id}' is not a direct child of '{parent_id}'")
        selected.append(child)

    group = GraphNode(id=group_id, label=group_id, children=selected)
    selected_ids = {child.id for child in selected}
    parent.children = [child for child in parent.children if child.id not in selected_ids]
    parent.children.append(group)

    moved_ids: set[str] = set()
    for child in selected:
        moved_ids |= child.subtree_ids()
    rehomed = _rehome_edges(graph, moved_ids)

    logger.debug("group_nodes '%s' (%d nodes) under '%s', %d edges re-homed",
                 group_id, len(selected), parent_id, rehomed)
    return graph


def remove_group(group_id: str, graph: GraphNode) -> GraphNode:
    """
    Dissolve a group: its children take its place in the parent.

    Edges the group owned are moved to the lowest common ancestor of their
    endpoints. Edges that referenced the group node itself are dropped.
    """
    group = graph.find_node(group_id)
    if group is None:
        raise _not_found(GroupNotFound, f"Group '{group_id}' not found")
    parent = graph.find_parent(group_id)
    if parent is None:
        raise _not_found(GroupNotFound, f"Group '{group_id}' is the root and cannot be removed")

    index = next(i for i, child in enumerate(parent.children) if child.id == group_id)
    parent.children[index:index + 1] = group.children

    orphaned = [e for e in group.edges if not _touches(e, {group_id})]
    dropped = _drop_edges_touching(graph, {group_id}) + len(group.edges) - len(orphaned)
    for edge in orphaned:
        owner = graph.lowest_common_ancestor(edge.source, edge.target) or parent
        owner.edges.append(edge)

    logger.debug("remove_group '%s' (%d children lifted, %d edges re-homed, %d dropped)",
                 group_id, len(group.children), len(orphaned), dropped)
    return graph


# --- Batch ---

class BatchOperation(BaseModel):
    """
    One step of a batch. Argument names follow the agent tool catalog
    (`nodename`, `parentId`, ...); snake_case field names are accepted too.
    Arguments may sit at the top level or under an `args` object.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str
    node_name: Optional[str] = Field(default=None, alias="nodename")
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    node_id: Optional[str] = Field(default=None, alias="nodeId")
    new_parent_id: Optional[str] = Field(default=None, alias="newParentId")
    edge_id: Optional[str] = Field(default=None, alias="edgeId")
    container_id: Optional[str] = Field(default=None, alias="containerId")
    source_id: Optional[str] = Field(default=None, alias="sourceId")
    target_id: Optional[str] = Field(default=None, alias="targetId")
    node_ids: Optional[list[str]] = Field(default=None, alias="nodeIds")
    group_id: Optional[str] = Field(default=None, alias="groupId")
    label: str = ""

    @model_validator(mode="before")
    @classmethod
    def flatten_args(cls, data: Any) -> Any:
        """Accept the tool-call shape `{"name": ..., "args": {...}}`."""
        if isinstance(data, dict) and isinstance(data.get("args"), dict):
            data = dict(data)
            args = data.pop("args")
            data = {**args, **data}
        return data


OPERATION_ARGUMENTS: dict[str, tuple[str, ...]] = {
    "add_node": ("node_name", "parent_id"),
    "delete_node": ("node_id",),
    "move_node": ("node_id", "new_parent_id"),
    "add_edge": ("edge_id", "source_id", "target_id"),
    "delete_edge": ("edge_id",),
    "group_nodes": ("node_ids", "parent_id", "group_id"),
    "remove_group": ("group_id",),
}


def _parse_operation(operation: Union[BatchOperation, dict[str, Any]]) -> BatchOperation:
    if isinstance(operation, BatchOperation):
        op = operation
    else:
        try:
            op = BatchOperation.model_validate(operation)
        except ValidationError as e:
            raise InvalidOperation(f"Malformed operation: {e}") from e

    required = OPERATION_ARGUMENTS.get(op.name)
    if required is None:
        raise InvalidOperation(f"Unknown operation: {op.name}")
    missing = [field for field in required if getattr(op, field) is None]
    if missing:
        raise InvalidOperation(f"Operation '{op.name}' is missing: {', '.join(missing)}")
    return op


def apply_operation(operation: Union[BatchOperation, dict[str, Any]], graph: GraphNode) -> GraphNode:
    """Apply one named operation in place."""
    op = _parse_operation(operation)

    if op.name == "add_node":
        return add_node(op.node_name, op.parent_id, graph)
    if op.name == "delete_node":
        return delete_node(op.node_id, graph)
    if op.name == "move_node":
        return move_node(op.node_id, op.new_parent_id, graph)
    if op.name == "add_edge":
        return add_edge(op.edge_id, op.container_id, op.source_id, op.target_id, graph, label=op.label)
    if op.name == "delete_edge":
        return delete_edge(op.edge_id, graph)
    if op.name == "group_nodes":
        return group_nodes(op.node_ids, op.parent_id, op.group_id, graph)
    return remove_group(op.group_id, graph)


def batch_update(
    operations: Iterable[Union[BatchOperation, dict[str, Any]]],
    graph: GraphNode,
) -> GraphNode:
    """
    Apply operations in order, all or nothing.

    Works on a deep copy of `graph`. Returns the copy when every operation
    succeeds; otherwise raises BatchOperationError and `graph` is untouched.
    """
    working = graph.model_copy(deep=True)
    count = 0
    for index, operation in enumerate(operations):
        if isinstance(operation, BatchOperation):
            name = operation.name
        elif isinstance(operation, dict):
            name = str(operation.get("name", "?"))
        else:
            name = "?"
        try:
            working = apply_operation(operation, working)
        except GraphError as e:
            logger.warning("Batch aborted at operation %d (%s): %s", index, name, e)
            raise BatchOperationError(index, name, e) from e
        count += 1

    logger.debug("batch_update applied %d operations", count)
    return working
