"""
Layout pipeline with hash-based caching and supersession.

Every layout request is tagged with the structural hash of the graph at
request time. The pipeline remembers the latest hash it has seen (from
track() after each mutation, or from the newest run() call). When an
adapter call completes and the latest hash has moved on, the result is
stale and is discarded.

The logical graph is never written: the adapter works on a prepared copy
and the layouted graph is a separate GraphNode.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError

from .canonical import structural_hash
from .errors import LayoutError
from .layout import LayoutAdapter
from .layout_options import prepare_for_layout
from .models import GraphNode
from .projection import RenderGraph, project_layout

logger = logging.getLogger(__name__)


@dataclass
class LayoutResult:
    """A completed layout pass for one structural hash."""
    hash: str
    graph: GraphNode
    render: RenderGraph

    def to_dict(self) -> dict:
        return {
            "hash": self.hash,
            "graph": self.graph.to_json_dict(),
            "render": self.render.to_dict(),
        }


def _presentation(graph: GraphNode) -> dict[str, tuple[Optional[str], Optional[dict[str, Any]]]]:
    return {node.id: (node.icon, node.style) for node in graph.iter_nodes()}


class LayoutPipeline:
    """
    Runs graphs through a LayoutAdapter and caches the latest result.

    Usage:
        pipeline = LayoutPipeline(GridLayoutAdapter())
        result = await pipeline.run(graph)
        if result is None:
            ...  # superseded by a newer mutation
    """

    def __init__(self, adapter: LayoutAdapter):
        self.adapter = adapter
        self._latest_hash: Optional[str] = None
        self._cache: Optional[LayoutResult] = None

    @property
    def latest_hash(self) -> Optional[str]:
        return self._latest_hash

    @property
    def cached(self) -> Optional[LayoutResult]:
        return self._cache

    def track(self, graph: GraphNode) -> str:
        """Record the hash of the current graph. Call after every mutation."""
        self._latest_hash = structural_hash(graph)
        return self._latest_hash

    def needs_layout(self, graph: GraphNode) -> bool:
        """True when the cached result does not match `graph`'s structure."""
        if self._cache is None:
            return True
        return self._cache.hash != structural_hash(graph)

    def invalidate(self) -> None:
        self._cache = None

    async def run(self, graph: GraphNode) -> Optional[LayoutResult]:
        """
        Lay out `graph` and project it for rendering.

        Returns:
            The LayoutResult, or None if a newer graph was tracked while the
            adapter was running

        Raises:
            LayoutError: if the adapter fails or returns an unusable graph
        """
        request_hash = structural_hash(graph)
        self._latest_hash = request_hash

        if self._cache is not None and self._cache.hash == request_hash:
            logger.debug("Layout cache hit for %s", request_hash[:12])
            return self._cache

        prepared = prepare_for_layout(graph)
        presentation = _presentation(graph)

        try:
            output = await self.adapter.layout(prepared)
        except LayoutError:
            raise
        except Exception as e:
            raise LayoutError(f"Layout engine failed: {e}") from e

        if self._latest_hash != request_hash:
            logger.info("Discarding stale layout for %s (latest is %s)",
                        request_hash[:12], (self._latest_hash or "")[:12])
            return None

        try:
            layouted = GraphNode.from_json_dict(output)
        except ValidationError as e:
            raise LayoutError(f"Layout engine returned an invalid graph: {e}") from e

        for node in layouted.iter_nodes():
            if node.id in presentation:
                node.icon, node.style = presentation[node.id]

        result = LayoutResult(hash=request_hash, graph=layouted, render=project_layout(layouted))
        self._cache = result
        logger.info("Layout complete for %s: %d nodes, %d edges, %d skipped",
                    request_hash[:12], len(result.render.nodes),
                    len(result.render.edges), len(result.render.skipped))
        return result
