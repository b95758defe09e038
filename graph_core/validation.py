"""
Graph validation - Check graphs for structural issues.

The mutation operations keep a graph valid, but graphs also arrive from
outside (PUT /api/graph, a layout service, hand-written JSON). This module
audits such graphs without changing them.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import GraphNode


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a graph."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    edge_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.edge_id:
            result["edge_id"] = self.edge_id
        return result


def validate_graph(graph: "GraphNode") -> list[ValidationIssue]:
    """
    Validate a graph and return a list of issues.

    Checks for:
    - Duplicate node ids - ERROR
    - Duplicate edge ids - ERROR
    - Edge endpoints that do not exist - ERROR
    - Edge owned by a container outside an endpoint's ancestry - ERROR
    - Edge owned by a common ancestor that is not the lowest one - WARNING
    - Edges with more than one source or target - INFO
    - Empty graph (root without children) - INFO

    Args:
        graph: The root of the graph to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    if not graph.children:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Graph has no nodes"
        ))

    node_counts = Counter(node.id for node in graph.iter_nodes())
    for node_id, count in node_counts.items():
        if count > 1:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Node id used {count} times",
                node_id=node_id
            ))

    edge_counts = Counter(edge.id for _, edge in graph.iter_edges())
    for edge_id, count in edge_counts.items():
        if count > 1:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge id used {count} times",
                edge_id=edge_id
            ))

    for container, edge in graph.iter_edges():
        if len(edge.sources) > 1 or len(edge.targets) > 1:
            issues.append(ValidationIssue(
                severity=IssueSeverity.INFO,
                message="Edge has multiple endpoints; only the first source and target are used",
                edge_id=edge.id
            ))

        missing = [nid for nid in (edge.source, edge.target) if nid not in node_counts]
        for node_id in missing:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge references non-existent node: {node_id}",
                edge_id=edge.id,
                node_id=node_id
            ))
        if missing:
            continue

        owner_ids = container.subtree_ids()
        if edge.source not in owner_ids or edge.target not in owner_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge stored on '{container.id}', which does not contain both endpoints",
                edge_id=edge.id,
                node_id=container.id
            ))
            continue

        lca = graph.lowest_common_ancestor(edge.source, edge.target)
        if lca is not None and lca.id != container.id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Edge stored on '{container.id}' but its lowest common ancestor is '{lca.id}'",
                edge_id=edge.id,
                node_id=container.id
            ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(issues),
        "errors": len([i for i in issues if i.severity == IssueSeverity.ERROR]),
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": len([i for i in issues if i.severity == IssueSeverity.ERROR]) == 0
    }
