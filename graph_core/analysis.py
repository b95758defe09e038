"""
Graph analysis - Summaries and text outlines of a graph.

Provides analysis functions that can be used by both the backend and MCP tools
to understand graph structure.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import GraphNode


@dataclass
class ConnectedComponent:
    """A connected component of the leaf/container graph formed by edges."""
    node_ids: list[str] = field(default_factory=list)
    edge_count: int = 0

    @property
    def size(self) -> int:
        return len(self.node_ids)


@dataclass
class NodeConnectionInfo:
    """Connection information for a single node."""
    node_id: str
    label: str
    incoming: int = 0   # Edges pointing to this node
    outgoing: int = 0   # Edges pointing from this node

    @property
    def total(self) -> int:
        return self.incoming + self.outgoing


@dataclass
class GraphSummary:
    """Complete summary of a graph's structure."""
    root_id: str
    total_nodes: int
    containers: int
    leaves: int
    total_edges: int
    max_depth: int
    edges_by_container: dict[str, int]
    connected_components: int
    most_connected_nodes: list[NodeConnectionInfo]
    orphan_count: int

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "root_id": self.root_id,
            "total_nodes": self.total_nodes,
            "containers": self.containers,
            "leaves": self.leaves,
            "total_edges": self.total_edges,
            "max_depth": self.max_depth,
            "edges_by_container": self.edges_by_container,
            "connected_components": self.connected_components,
            "most_connected_nodes": [
                {
                    "id": n.node_id,
                    "label": n.label,
                    "connections": n.total,
                    "incoming": n.incoming,
                    "outgoing": n.outgoing
                }
                for n in self.most_connected_nodes
            ],
            "orphan_count": self.orphan_count
        }


def _non_root_nodes(graph: "GraphNode") -> list["GraphNode"]:
    return [node for node in graph.iter_nodes() if node is not graph]


def find_connected_components(graph: "GraphNode") -> list[ConnectedComponent]:
    """
    Find all connected components using BFS.

    Every node except the root takes part; edges are treated as undirected.
    Containment does not connect nodes, only edges do.
    """
    node_ids = [n.id for n in _non_root_nodes(graph)]
    if not node_ids:
        return []

    adjacency: dict[str, set[str]] = {nid: set() for nid in node_ids}
    edges = [edge for _, edge in graph.iter_edges()
             if edge.source in adjacency and edge.target in adjacency]
    for edge in edges:
        adjacency[edge.source].add(edge.target)
        adjacency[edge.target].add(edge.source)

    visited: set[str] = set()
    components: list[ConnectedComponent] = []

    for start_node in node_ids:
        if start_node in visited:
            continue

        component_nodes: list[str] = []
        queue = [start_node]

        while queue:
            current = queue.pop(0)
            if current in visited:
                continue

            visited.add(current)
            component_nodes.append(current)

            for neighbor in adjacency[current]:
                if neighbor not in visited:
                    queue.append(neighbor)

        # both endpoints of an edge land in the same component
        members = set(component_nodes)
        components.append(ConnectedComponent(
            node_ids=component_nodes,
            edge_count=sum(1 for edge in edges if edge.source in members)
        ))

    return components


def calculate_node_connections(graph: "GraphNode") -> dict[str, NodeConnectionInfo]:
    """Map every non-root node id to its incoming/outgoing edge counts."""
    connections: dict[str, NodeConnectionInfo] = {}
    for node in _non_root_nodes(graph):
        connections[node.id] = NodeConnectionInfo(node_id=node.id, label=node.label)

    for _, edge in graph.iter_edges():
        if edge.source in connections:
            connections[edge.source].outgoing += 1
        if edge.target in connections:
            connections[edge.target].incoming += 1

    return connections


def _max_depth(graph: "GraphNode") -> int:
    deepest = 0
    stack = [(graph, 0)]
    while stack:
        node, depth = stack.pop()
        deepest = max(deepest, depth)
        stack.extend((child, depth + 1) for child in node.children)
    return deepest


def summarize_graph(graph: "GraphNode", top_n: int = 5) -> GraphSummary:
    """
    Generate a summary of a graph.

    The root is the graph itself and is not counted as a node. Depth is 0
    for the root, 1 for its children, and so on.

    Args:
        graph: The root of the graph to summarize
        top_n: Number of top connected nodes to include
    """
    nodes = _non_root_nodes(graph)
    containers = sum(1 for n in nodes if n.is_container)

    edges_by_container: dict[str, int] = defaultdict(int)
    total_edges = 0
    for container, _ in graph.iter_edges():
        edges_by_container[container.id] += 1
        total_edges += 1

    connections = calculate_node_connections(graph)
    sorted_by_connections = sorted(
        connections.values(),
        key=lambda x: x.total,
        reverse=True
    )
    most_connected = [n for n in sorted_by_connections[:top_n] if n.total > 0]
    orphan_count = sum(1 for n in connections.values() if n.total == 0)

    return GraphSummary(
        root_id=graph.id,
        total_nodes=len(nodes),
        containers=containers,
        leaves=len(nodes) - containers,
        total_edges=total_edges,
        max_depth=_max_depth(graph),
        edges_by_container=dict(edges_by_container),
        connected_components=len(find_connected_components(graph)),
        most_connected_nodes=most_connected,
        orphan_count=orphan_count
    )


def describe_graph(graph: "GraphNode", indent: str = "  ") -> str:
    """
    Render the graph as an indented outline for agents and the CLI.

    Example:
        root
          ui
            webapp
          api
        edges:
          e1: webapp -> api (on root)
    """
    lines: list[str] = []
    stack = [(graph, 0)]
    while stack:
        node, depth = stack.pop()
        text = node.id
        if node.label and node.label != node.id:
            text += f' "{node.label}"'
        lines.append(f"{indent * depth}{text}")
        stack.extend((child, depth + 1) for child in reversed(node.children))

    edges = list(graph.iter_edges())
    if edges:
        lines.append("edges:")
        for container, edge in edges:
            text = f"{edge.id}: {edge.source} -> {edge.target}"
            if edge.label:
                text += f' "{edge.label}"'
            lines.append(f"{indent}{text} (on {container.id})")

    return "\n".join(lines)
