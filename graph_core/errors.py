"""
Error types raised by the graph core.

Mutation precondition failures derive from GraphError, which is a ValueError
so callers that already map ValueError to a client error keep working.
Each error exposes a `kind` (its class name) for API and tool responses.
"""


class GraphError(ValueError):
    """Base class for structural precondition violations."""

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"kind": self.kind, "message": str(self)}


class NotFoundError(GraphError):
    """A referenced node, edge or group does not exist."""


class NodeNotFound(NotFoundError):
    pass


class ParentNotFound(NotFoundError):
    pass


class EdgeNotFound(NotFoundError):
    pass


class GroupNotFound(NotFoundError):
    pass


class CycleDetected(GraphError):
    """Moving a node into its own subtree."""


class DuplicateNodeId(GraphError):
    pass


class DuplicateEdgeId(GraphError):
    pass


class InvalidContainer(GraphError):
    """An explicit edge container is not an ancestor of both endpoints."""


class InvalidOperation(GraphError):
    """Unusable arguments: unknown batch operation, missing fields, empty name."""


class InvalidGraph(GraphError):
    """A whole graph handed in from outside breaks a structural invariant."""

    def __init__(self, message: str, issues: list[dict]):
        self.issues = issues
        super().__init__(message)

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["issues"] = self.issues
        return result


class BatchOperationError(GraphError):
    """
    A batch failed at one of its operations.

    The graph handed to batch_update is left untouched; `cause` is the
    error raised by the failing operation.
    """

    def __init__(self, index: int, operation: str, cause: GraphError):
        self.index = index
        self.operation = operation
        self.cause = cause
        super().__init__(f"Operation {index} ({operation}) failed: {cause}")

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["index"] = self.index
        result["operation"] = self.operation
        result["cause"] = self.cause.to_dict()
        return result


class LayoutError(Exception):
    """The layout engine failed or returned something unusable."""
