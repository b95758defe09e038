#!/usr/bin/env python3
"""
Graph Tool MCP Server

Provides MCP tools for AI agents to build and edit the hierarchical graph.
All changes are immediately reflected in the frontend via WebSocket updates.
"""

import json
import os
import urllib.parse
from typing import Any, Optional

import httpx
from mcp.server.fastmcp import FastMCP

from graph_core import GraphNode, describe_graph

# Backend API URL
API_BASE = os.getenv("GRAPH_TOOL_API_BASE", "http://127.0.0.1:8765/api")

# Create MCP server
mcp = FastMCP("graph-tool")


# --- HTTP Client Helper ---

def api_request(method: str, endpoint: str, **kwargs) -> dict:
    """Make a request to the graph tool backend."""
    url = f"{API_BASE}{endpoint}"
    with httpx.Client(timeout=30.0) as client:
        if method == "GET":
            response = client.get(url, params=kwargs.get("params"))
        elif method == "POST":
            response = client.post(url, json=kwargs.get("json"), params=kwargs.get("params"))
        elif method == "PUT":
            response = client.put(url, json=kwargs.get("json"))
        elif method == "DELETE":
            response = client.delete(url)
        else:
            raise ValueError(f"Unknown method: {method}")

        if response.status_code >= 400:
            error = response.json().get("detail", "Unknown error")
            if isinstance(error, dict):
                error = f"{error.get('kind', 'Error')}: {error.get('message', '')}"
            raise Exception(f"API error: {error}")

        return response.json()


def _quote(value: str) -> str:
    return urllib.parse.quote(value, safe="")


# ============================================================================
# INSPECTION TOOLS
# ============================================================================

@mcp.tool()
def graph_display() -> str:
    """
    Display the current graph.

    Returns the graph as an indented outline of node ids (containers above
    their children) followed by every edge and the container that owns it,
    plus the raw graph JSON. Use this before making changes.
    """
    state = api_request("GET", "/graph")
    graph = GraphNode.from_json_dict(state["graph"])
    return json.dumps({
        "outline": describe_graph(graph),
        "hash": state.get("hash"),
        "graph": state["graph"],
    }, indent=2)


@mcp.tool()
def graph_validate() -> str:
    """
    Check the graph for structural problems.

    Reports duplicate ids, dangling edge endpoints, and edges stored on the
    wrong container.
    """
    result = api_request("GET", "/graph/validate")
    return json.dumps(result, indent=2)


@mcp.tool()
def graph_summarize() -> str:
    """Get node/container/edge counts, depth, and the most connected nodes."""
    result = api_request("GET", "/graph/summary")
    return json.dumps(result, indent=2)


# ============================================================================
# NODE TOOLS
# ============================================================================

@mcp.tool()
def graph_add_node(nodename: str, parentId: str = "root") -> str:
    """
    Create a new node and add it under the given parent.

    Args:
        nodename: Name of the new node; its id is the lower-cased name with
            spaces replaced by underscores
        parentId: ID of the parent node where this node will be added
    """
    result = api_request("POST", "/nodes", json={"nodename": nodename, "parentId": parentId})
    return json.dumps(result, indent=2)


@mcp.tool()
def graph_delete_node(nodeId: str) -> str:
    """
    Delete a node, everything inside it, and every edge referencing them.

    Args:
        nodeId: ID of the node to delete
    """
    result = api_request("DELETE", f"/nodes/{_quote(nodeId)}")
    return json.dumps(result, indent=2)


@mcp.tool()
def graph_move_node(nodeId: str, newParentId: str) -> str:
    """
    Move a node to another parent; its edges follow to their new common ancestor.

    Args:
        nodeId: ID of the node to move
        newParentId: ID of the new parent node (not the node itself or inside it)
    """
    result = api_request("POST", f"/nodes/{_quote(nodeId)}/move", json={"newParentId": newParentId})
    return json.dumps(result, indent=2)


# ============================================================================
# EDGE TOOLS
# ============================================================================

@mcp.tool()
def graph_add_edge(
    edgeId: str,
    sourceId: str,
    targetId: str,
    label: str = "",
    containerId: Optional[str] = None
) -> str:
    """
    Add an edge between two nodes, stored at their lowest common ancestor.

    Args:
        edgeId: Unique ID for the new edge
        sourceId: ID of the source node
        targetId: ID of the target node
        label: Optional edge label
        containerId: Optional explicit owner; must contain both endpoints
    """
    result = api_request("POST", "/edges", json={
        "edgeId": edgeId,
        "sourceId": sourceId,
        "targetId": targetId,
        "label": label,
        "containerId": containerId
    })
    return json.dumps(result, indent=2)


@mcp.tool()
def graph_delete_edge(edgeId: str) -> str:
    """
    Delete an edge.

    Args:
        edgeId: ID of the edge to delete
    """
    result = api_request("DELETE", f"/edges/{_quote(edgeId)}")
    return json.dumps(result, indent=2)


# ============================================================================
# GROUP TOOLS
# ============================================================================

@mcp.tool()
def graph_group_nodes(nodeIds: list[str], parentId: str, groupId: str) -> str:
    """
    Create a new group node under a parent and move sibling nodes into it.

    Args:
        nodeIds: IDs of the nodes to group; each must be a direct child of parentId
        parentId: ID of the parent node that contains the nodes
        groupId: ID for the new group node
    """
    result = api_request("POST", "/groups", json={
        "nodeIds": nodeIds,
        "parentId": parentId,
        "groupId": groupId
    })
    return json.dumps(result, indent=2)


@mcp.tool()
def graph_remove_group(groupId: str) -> str:
    """
    Remove a group node by moving its children up to its parent.

    Args:
        groupId: ID of the group to remove
    """
    result = api_request("DELETE", f"/groups/{_quote(groupId)}")
    return json.dumps(result, indent=2)


@mcp.tool()
def graph_batch_update(operations: list[dict[str, Any]]) -> str:
    """
    Execute a series of graph operations in order, all or nothing.

    Each operation is {"name": <tool name without prefix>, "args": {...}},
    e.g. {"name": "add_node", "args": {"nodename": "api", "parentId": "root"}}.
    If any operation fails, none are applied.

    Args:
        operations: List of operations to execute
    """
    result = api_request("POST", "/batch", json={"operations": operations})
    return json.dumps(result, indent=2)


# ============================================================================
# HISTORY AND LAYOUT TOOLS
# ============================================================================

@mcp.tool()
def graph_undo() -> str:
    """Undo the last change."""
    result = api_request("POST", "/undo")
    return json.dumps(result, indent=2)


@mcp.tool()
def graph_redo() -> str:
    """Redo the last undone change."""
    result = api_request("POST", "/redo")
    return json.dumps(result, indent=2)


@mcp.tool()
def graph_layout() -> str:
    """
    Lay out the graph and return render geometry.

    Returns absolute node boxes with per-side handle offsets, and edges with
    source/target handle ids ("side-index") and absolute bend points. Edges
    that could not be attached are listed under "skipped".
    """
    result = api_request("POST", "/layout")
    if result.get("success"):
        result = {"hash": result["hash"], "render": result["render"]}
    return json.dumps(result, indent=2)


if __name__ == "__main__":
    mcp.run()
