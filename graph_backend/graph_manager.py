"""
Graph Manager - Graph state, history, and layout for the backend.

This module implements:
- Single graph state management (one graph open at a time)
- Linear undo/redo history using snapshots
- Change callbacks for real-time sync
- Layout through a supersession-guarded LayoutPipeline

Mutations are delegated to graph_core.mutations. A snapshot is taken
before each mutation but only recorded once the mutation succeeds, so a
rejected edit leaves neither the graph nor the history changed.
"""

import logging
from typing import Any, Callable, Optional

from graph_core import (
    GraphNode,
    LayoutAdapter,
    LayoutPipeline,
    LayoutResult,
    GridLayoutAdapter,
    InvalidGraph,
    IssueSeverity,
    create_layout_adapter,
    create_node_id,
    new_graph,
    structural_hash,
    summarize_graph,
    validate_graph,
    validation_summary,
)
from graph_core import mutations

from .config import settings

logger = logging.getLogger(__name__)


class GraphManager:
    """
    Manages a single graph's state, history, and layout.

    The history system works via snapshots:
    - Each successful mutation records the state it started from
    - Undo restores the previous snapshot
    - Redo re-applies a snapshot from the future stack
    """

    def __init__(
        self,
        max_history: int = 100,
        adapter: Optional[LayoutAdapter] = None,
        root_id: str = "root",
    ):
        self._graph: GraphNode = new_graph(root_id)
        self._history: list[dict] = []  # Past states (snapshots)
        self._future: list[dict] = []   # Future states (for redo)
        self._max_history = max_history
        self._on_change_callbacks: list[Callable] = []
        self._pipeline = LayoutPipeline(adapter or GridLayoutAdapter())
        self._pipeline.track(self._graph)

    # --- Properties ---

    @property
    def graph(self) -> GraphNode:
        """Get the current graph."""
        return self._graph

    @property
    def pipeline(self) -> LayoutPipeline:
        return self._pipeline

    @property
    def hash(self) -> str:
        """Structural hash of the current graph."""
        return self._pipeline.latest_hash or structural_hash(self._graph)

    @property
    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._history) > 0

    @property
    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._future) > 0

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for graph changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        """Track the new structure and notify all registered callbacks."""
        self._pipeline.track(self._graph)
        for callback in self._on_change_callbacks:
            callback()

    # --- History Management ---

    def _record(self, snapshot: dict):
        """Push a pre-mutation snapshot onto the history."""
        # New action invalidates redo stack
        self._future.clear()
        self._history.append(snapshot)

        if len(self._history) > self._max_history:
            self._history.pop(0)

    def _mutate(self, operation: Callable[[GraphNode], GraphNode]) -> GraphNode:
        """Run one mutation; history and callbacks only follow a success."""
        snapshot = self._graph.to_json_dict()
        self._graph = operation(self._graph)
        self._record(snapshot)
        self._notify_change()
        return self._graph

    # --- Whole-graph operations ---

    def new_graph(self, root_id: str = "root", label: str = "") -> GraphNode:
        """Replace the graph with an empty one and clear history."""
        self._graph = new_graph(root_id, label)
        self._history.clear()
        self._future.clear()
        self._pipeline.invalidate()
        self._notify_change()
        return self._graph

    def load_graph(self, data: dict[str, Any]) -> GraphNode:
        """
        Replace the graph with `data` (logical or layout-engine JSON).

        Undoable. Raises pydantic's ValidationError (a ValueError) on
        malformed input and InvalidGraph when the graph has ERROR-level
        validation issues.
        """
        graph = GraphNode.from_json_dict(data)
        errors = [i for i in validate_graph(graph) if i.severity == IssueSeverity.ERROR]
        if errors:
            logger.warning("Rejected graph with %d structural errors", len(errors))
            raise InvalidGraph(
                f"Graph has {len(errors)} structural error(s): {errors[0].message}",
                [issue.to_dict() for issue in errors],
            )
        return self._mutate(lambda _: graph)

    # --- Undo/Redo ---

    def undo(self) -> Optional[GraphNode]:
        """Undo the last action."""
        if not self.can_undo:
            return None

        self._future.append(self._graph.to_json_dict())
        self._graph = GraphNode.from_json_dict(self._history.pop())
        self._notify_change()
        return self._graph

    def redo(self) -> Optional[GraphNode]:
        """Redo the last undone action."""
        if not self.can_redo:
            return None

        self._history.append(self._graph.to_json_dict())
        self._graph = GraphNode.from_json_dict(self._future.pop())
        self._notify_change()
        return self._graph

    # --- Mutations ---

    def add_node(self, name: str, parent_id: str) -> GraphNode:
        """Add a node and return it."""
        self._mutate(lambda g: mutations.add_node(name, parent_id, g))
        return self._graph.find_node(create_node_id(name))

    def delete_node(self, node_id: str) -> GraphNode:
        return self._mutate(lambda g: mutations.delete_node(node_id, g))

    def move_node(self, node_id: str, new_parent_id: str) -> GraphNode:
        return self._mutate(lambda g: mutations.move_node(node_id, new_parent_id, g))

    def add_edge(
        self,
        edge_id: str,
        source_id: str,
        target_id: str,
        container_id: Optional[str] = None,
        label: str = "",
    ) -> GraphNode:
        return self._mutate(
            lambda g: mutations.add_edge(edge_id, container_id, source_id, target_id, g, label=label)
        )

    def delete_edge(self, edge_id: str) -> GraphNode:
        return self._mutate(lambda g: mutations.delete_edge(edge_id, g))

    def group_nodes(self, node_ids: list[str], parent_id: str, group_id: str) -> GraphNode:
        return self._mutate(lambda g: mutations.group_nodes(node_ids, parent_id, group_id, g))

    def remove_group(self, group_id: str) -> GraphNode:
        return self._mutate(lambda g: mutations.remove_group(group_id, g))

    def batch_update(self, operations: list) -> GraphNode:
        """Apply a batch as one undoable step."""
        return self._mutate(lambda g: mutations.batch_update(operations, g))

    # --- Layout ---

    async def layout(self) -> Optional[LayoutResult]:
        """
        Lay out the current graph.

        Returns None when the graph changed while the layout engine was
        running; the next call lays out the newer graph.
        """
        return await self._pipeline.run(self._graph)

    # --- Inspection ---

    def validate(self) -> dict:
        issues = validate_graph(self._graph)
        return {
            "issues": [issue.to_dict() for issue in issues],
            "summary": validation_summary(issues),
        }

    def summary(self) -> dict:
        return summarize_graph(self._graph).to_dict()

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return {
            "graph": self._graph.to_json_dict(),
            "hash": self.hash,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "needs_layout": self._pipeline.needs_layout(self._graph),
        }


def create_graph_manager() -> GraphManager:
    """Build a manager from the environment settings."""
    adapter = create_layout_adapter(settings.layout_engine, settings.layout_url, settings.layout_timeout)
    return GraphManager(max_history=settings.max_history, adapter=adapter)


# Global instance for the application
graph_manager = create_graph_manager()
