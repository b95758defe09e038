"""
Graph Tool Core - Hierarchical graph model, mutations, and render geometry.

This module provides the core functionality used by both the backend API
and the MCP tools, ensuring a single source of truth for all graph logic.
"""

from .models import (
    Point,
    EdgeSection,
    GraphEdge,
    GraphNode,
    new_graph,
    find_node,
)

from .errors import (
    GraphError,
    NotFoundError,
    NodeNotFound,
    ParentNotFound,
    EdgeNotFound,
    GroupNotFound,
    CycleDetected,
    DuplicateNodeId,
    DuplicateEdgeId,
    InvalidContainer,
    InvalidOperation,
    InvalidGraph,
    BatchOperationError,
    LayoutError,
)

from .mutations import (
    create_node_id,
    add_node,
    delete_node,
    move_node,
    add_edge,
    delete_edge,
    group_nodes,
    remove_group,
    BatchOperation,
    apply_operation,
    batch_update,
)

from .canonical import canonical_form, structural_hash
from .layout_options import prepare_for_layout, ROOT_DEFAULT_OPTIONS, NON_ROOT_DEFAULT_OPTIONS
from .layout import LayoutAdapter, GridLayoutAdapter, HttpLayoutAdapter, create_layout_adapter
from .positions import AbsoluteBox, compute_absolute_positions
from .edge_points import Side, EndpointRole, ConnectionPoint, EdgePointMap, determine_connection_side, build_node_edge_points
from .projection import RenderNode, RenderEdge, SkippedEdge, RenderGraph, project_layout
from .pipeline import LayoutPipeline, LayoutResult
from .validation import validate_graph, validation_summary, ValidationIssue, IssueSeverity
from .analysis import summarize_graph, describe_graph, GraphSummary

__all__ = [
    # Models
    "Point",
    "EdgeSection",
    "GraphEdge",
    "GraphNode",
    "new_graph",
    "find_node",
    # Errors
    "GraphError",
    "NotFoundError",
    "NodeNotFound",
    "ParentNotFound",
    "EdgeNotFound",
    "GroupNotFound",
    "CycleDetected",
    "DuplicateNodeId",
    "DuplicateEdgeId",
    "InvalidContainer",
    "InvalidOperation",
    "InvalidGraph",
    "BatchOperationError",
    "LayoutError",
    # Mutations
    "create_node_id",
    "add_node",
    "delete_node",
    "move_node",
    "add_edge",
    "delete_edge",
    "group_nodes",
    "remove_group",
    "BatchOperation",
    "apply_operation",
    "batch_update",
    # Canonical form
    "canonical_form",
    "structural_hash",
    # Layout
    "prepare_for_layout",
    "ROOT_DEFAULT_OPTIONS",
    "NON_ROOT_DEFAULT_OPTIONS",
    "LayoutAdapter",
    "GridLayoutAdapter",
    "HttpLayoutAdapter",
    "create_layout_adapter",
    "LayoutPipeline",
    "LayoutResult",
    # Geometry
    "AbsoluteBox",
    "compute_absolute_positions",
    "Side",
    "EndpointRole",
    "ConnectionPoint",
    "EdgePointMap",
    "determine_connection_side",
    "build_node_edge_points",
    "RenderNode",
    "RenderEdge",
    "SkippedEdge",
    "RenderGraph",
    "project_layout",
    # Validation
    "validate_graph",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
    # Analysis
    "summarize_graph",
    "describe_graph",
    "GraphSummary",
]
