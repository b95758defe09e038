#!/usr/bin/env python3
"""Graph tool CLI - subcommands mirroring the graph backend API."""

import argparse
import json
import os
import sys
import urllib.error
import urllib.parse
import urllib.request

from graph_core import GraphNode, describe_graph

API_BASE = os.getenv("GRAPH_TOOL_API_BASE", "http://127.0.0.1:8765/api")


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _api_request(method, endpoint, data=None, params=None):
    """Make a request to the graph tool backend."""
    url = f"{API_BASE}{endpoint}"

    if params:
        filtered = {k: v for k, v in params.items() if v is not None}
        if filtered:
            url = f"{url}?{urllib.parse.urlencode(filtered)}"

    headers = {"Content-Type": "application/json"}
    body = json.dumps(data).encode() if data is not None else None

    req = urllib.request.Request(url, data=body, headers=headers, method=method)

    try:
        with urllib.request.urlopen(req, timeout=30) as response:
            return json.loads(response.read().decode())
    except urllib.error.HTTPError as e:
        error_body = e.read().decode()
        try:
            error_data = json.loads(error_body)
            _json_out({"status": "error", "error": error_data.get("detail", "Unknown error")}, 1)
        except json.JSONDecodeError:
            _json_out({"status": "error", "error": f"API error ({e.code}): {error_body}"}, 1)
    except urllib.error.URLError as e:
        _json_out({"status": "error", "error": f"Connection failed: {e.reason}. Is graph-tool-server running?"}, 1)


def _quote(value):
    """Encode an id for use as a single path segment."""
    return urllib.parse.quote(value, safe="")


def _parse_list_arg(value):
    """Parse a list argument from JSON string or comma-separated ids."""
    if value is None:
        return None
    try:
        parsed = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return [item.strip() for item in value.split(",") if item.strip()]
    return parsed if isinstance(parsed, list) else [parsed]


# ── Graph ────────────────────────────────────────────────────────────────────

def cmd_show(args):
    _json_out(_api_request("GET", "/graph"))


def cmd_describe(args):
    state = _api_request("GET", "/graph")
    graph = GraphNode.from_json_dict(state["graph"])
    _json_out({"hash": state.get("hash"), "outline": describe_graph(graph)})


def cmd_new(args):
    _json_out(_api_request("POST", "/graph/new", data={"rootId": args.root_id}))


# ── Nodes ────────────────────────────────────────────────────────────────────

def cmd_add_node(args):
    _json_out(_api_request("POST", "/nodes", data={"nodename": args.name, "parentId": args.parent_id}))


def cmd_delete_node(args):
    _json_out(_api_request("DELETE", f"/nodes/{_quote(args.node_id)}"))


def cmd_move_node(args):
    _json_out(_api_request("POST", f"/nodes/{_quote(args.node_id)}/move",
                           data={"newParentId": args.new_parent_id}))


# ── Edges ────────────────────────────────────────────────────────────────────

def cmd_add_edge(args):
    _json_out(_api_request("POST", "/edges", data={
        "edgeId": args.edge_id,
        "sourceId": args.source_id,
        "targetId": args.target_id,
        "containerId": args.container_id,
        "label": args.label
    }))


def cmd_delete_edge(args):
    _json_out(_api_request("DELETE", f"/edges/{_quote(args.edge_id)}"))


# ── Groups ───────────────────────────────────────────────────────────────────

def cmd_group(args):
    node_ids = _parse_list_arg(args.node_ids) or []
    _json_out(_api_request("POST", "/groups", data={
        "nodeIds": node_ids,
        "parentId": args.parent_id,
        "groupId": args.group_id
    }))


def cmd_ungroup(args):
    _json_out(_api_request("DELETE", f"/groups/{_quote(args.group_id)}"))


def cmd_batch(args):
    if args.operations == "-":
        raw = sys.stdin.read()
    else:
        raw = args.operations
    try:
        operations = json.loads(raw)
    except json.JSONDecodeError as e:
        _json_out({"status": "error", "error": f"Invalid operations JSON: {e}"}, 1)
    if not isinstance(operations, list):
        _json_out({"status": "error", "error": "Operations must be a JSON list"}, 1)
    _json_out(_api_request("POST", "/batch", data={"operations": operations}))


# ── History / Layout / Analysis ──────────────────────────────────────────────

def cmd_undo(args):
    _json_out(_api_request("POST", "/undo"))


def cmd_redo(args):
    _json_out(_api_request("POST", "/redo"))


def cmd_layout(args):
    result = _api_request("POST", "/layout")
    if args.render_only and result.get("success"):
        result = {"hash": result["hash"], "render": result["render"]}
    _json_out(result)


def cmd_validate(args):
    _json_out(_api_request("GET", "/graph/validate"))


def cmd_summarize(args):
    _json_out(_api_request("GET", "/graph/summary"))


# ── Main ─────────────────────────────────────────────────────────────────────

def build_parser():
    parser = argparse.ArgumentParser(description="Graph tool CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # Graph
    sub.add_parser("show")
    sub.add_parser("describe")

    p = sub.add_parser("new")
    p.add_argument("--root-id", default="root")

    # Nodes
    p = sub.add_parser("add-node")
    p.add_argument("--name", required=True)
    p.add_argument("--parent-id", default="root")

    p = sub.add_parser("delete-node")
    p.add_argument("--node-id", required=True)

    p = sub.add_parser("move-node")
    p.add_argument("--node-id", required=True)
    p.add_argument("--new-parent-id", required=True)

    # Edges
    p = sub.add_parser("add-edge")
    p.add_argument("--edge-id", required=True)
    p.add_argument("--source-id", required=True)
    p.add_argument("--target-id", required=True)
    p.add_argument("--container-id", default=None)
    p.add_argument("--label", default="")

    p = sub.add_parser("delete-edge")
    p.add_argument("--edge-id", required=True)

    # Groups
    p = sub.add_parser("group")
    p.add_argument("--node-ids", required=True)
    p.add_argument("--parent-id", default="root")
    p.add_argument("--group-id", required=True)

    p = sub.add_parser("ungroup")
    p.add_argument("--group-id", required=True)

    p = sub.add_parser("batch")
    p.add_argument("--operations", required=True, help="JSON list, or - to read stdin")

    # History
    sub.add_parser("undo")
    sub.add_parser("redo")

    # Layout and analysis
    p = sub.add_parser("layout")
    p.add_argument("--render-only", action="store_true")

    sub.add_parser("validate")
    sub.add_parser("summarize")

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    cmd_map = {
        "show": cmd_show,
        "describe": cmd_describe,
        "new": cmd_new,
        "add-node": cmd_add_node,
        "delete-node": cmd_delete_node,
        "move-node": cmd_move_node,
        "add-edge": cmd_add_edge,
        "delete-edge": cmd_delete_edge,
        "group": cmd_group,
        "ungroup": cmd_ungroup,
        "batch": cmd_batch,
        "undo": cmd_undo,
        "redo": cmd_redo,
        "layout": cmd_layout,
        "validate": cmd_validate,
        "summarize": cmd_summarize,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
