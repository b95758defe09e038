"""
Graph Tool Backend - FastAPI Application

This is the main entry point for the graph tool backend.
It provides:
- REST API for graph mutations (nodes, edges, groups, batches, undo/redo)
- Layout endpoint returning render-ready geometry
- WebSocket endpoint for real-time updates
- CORS configuration for local frontend development
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import Body, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from graph_core import GraphError, LayoutError, NotFoundError

from .config import configure_logging, settings
from .graph_manager import graph_manager
from .schemas import (
    BatchRequest,
    CreateEdgeRequest,
    CreateNodeRequest,
    GroupNodesRequest,
    MoveNodeRequest,
    NewGraphRequest,
)
from .websocket_manager import ws_manager

logger = logging.getLogger(__name__)


# --- Async change notification ---
# Bridge between sync GraphManager callbacks and async WebSocket broadcasts

_change_event = asyncio.Event()


def on_graph_change():
    """Callback for graph changes - sets event for async handler."""
    _change_event.set()


async def change_broadcaster():
    """Background task that broadcasts changes to WebSocket clients."""
    while True:
        await _change_event.wait()
        _change_event.clear()
        state = graph_manager.get_state()
        await ws_manager.notify_graph_updated(
            state["hash"],
            can_undo=state["can_undo"],
            can_redo=state["can_redo"],
            needs_layout=state["needs_layout"],
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    graph_manager.on_change(on_graph_change)
    broadcaster_task = asyncio.create_task(change_broadcaster())

    yield

    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass


# --- FastAPI App ---

app = FastAPI(
    title="Graph Tool API",
    description="Mutation and layout API for hierarchical diagram graphs",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _http_error(error: ValueError) -> HTTPException:
    """Map a rejected mutation to a client error."""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=error.to_dict())
    if isinstance(error, GraphError):
        return HTTPException(status_code=400, detail=error.to_dict())
    return HTTPException(status_code=400, detail=str(error))


def _graph_response() -> dict:
    return {
        "success": True,
        "graph": graph_manager.graph.to_json_dict(),
        "hash": graph_manager.hash,
    }


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "connections": ws_manager.connection_count}


# --- Graph State ---

@app.get("/api/graph")
async def get_graph():
    """Get the current graph state."""
    return graph_manager.get_state()


@app.put("/api/graph")
async def replace_graph(data: dict = Body(...)):
    """Replace the whole graph (undoable)."""
    try:
        graph_manager.load_graph(data)
    except ValueError as e:
        raise _http_error(e)
    return _graph_response()


@app.post("/api/graph/new")
async def new_graph(request: Optional[NewGraphRequest] = None):
    """Start a new empty graph and clear history."""
    request = request or NewGraphRequest()
    graph_manager.new_graph(root_id=request.root_id, label=request.label)
    return _graph_response()


@app.get("/api/graph/validate")
async def validate_graph():
    """Check the graph for structural issues."""
    return graph_manager.validate()


@app.get("/api/graph/summary")
async def graph_summary():
    """Get counts, depth and most connected nodes."""
    return graph_manager.summary()


# --- Undo/Redo ---

@app.post("/api/undo")
async def undo():
    """Undo the last action."""
    graph = graph_manager.undo()
    if graph is not None:
        return _graph_response()
    return {"success": False, "message": "Nothing to undo"}


@app.post("/api/redo")
async def redo():
    """Redo the last undone action."""
    graph = graph_manager.redo()
    if graph is not None:
        return _graph_response()
    return {"success": False, "message": "Nothing to redo"}


# --- Node Operations ---

@app.post("/api/nodes")
async def create_node(request: CreateNodeRequest):
    """Add a node under a parent."""
    try:
        node = graph_manager.add_node(request.name, request.parent_id)
    except ValueError as e:
        raise _http_error(e)
    return {**_graph_response(), "node": node.to_json_dict()}


@app.delete("/api/nodes/{node_id}")
async def delete_node(node_id: str):
    """Delete a node, its subtree, and every edge touching them."""
    try:
        graph_manager.delete_node(node_id)
    except ValueError as e:
        raise _http_error(e)
    return _graph_response()


@app.post("/api/nodes/{node_id}/move")
async def move_node(node_id: str, request: MoveNodeRequest):
    """Move a node under a new parent."""
    try:
        graph_manager.move_node(node_id, request.new_parent_id)
    except ValueError as e:
        raise _http_error(e)
    return _graph_response()


# --- Edge Operations ---

@app.post("/api/edges")
async def create_edge(request: CreateEdgeRequest):
    """Connect two nodes."""
    try:
        graph_manager.add_edge(
            request.edge_id,
            request.source_id,
            request.target_id,
            container_id=request.container_id,
            label=request.label
        )
    except ValueError as e:
        raise _http_error(e)
    return _graph_response()


@app.delete("/api/edges/{edge_id}")
async def delete_edge(edge_id: str):
    """Delete an edge."""
    try:
        graph_manager.delete_edge(edge_id)
    except ValueError as e:
        raise _http_error(e)
    return _graph_response()


# --- Group Operations ---

@app.post("/api/groups")
async def group_nodes(request: GroupNodesRequest):
    """Wrap sibling nodes in a new group."""
    try:
        graph_manager.group_nodes(request.node_ids, request.parent_id, request.group_id)
    except ValueError as e:
        raise _http_error(e)
    return _graph_response()


@app.delete("/api/groups/{group_id}")
async def remove_group(group_id: str):
    """Dissolve a group into its parent."""
    try:
        graph_manager.remove_group(group_id)
    except ValueError as e:
        raise _http_error(e)
    return _graph_response()


# --- Batch ---

@app.post("/api/batch")
async def batch_update(request: BatchRequest):
    """Apply several operations, all or nothing."""
    try:
        graph_manager.batch_update(request.operations)
    except ValueError as e:
        raise _http_error(e)
    return {**_graph_response(), "applied": len(request.operations)}


# --- Layout ---

@app.post("/api/layout")
async def layout_graph():
    """
    Lay out the current graph and return render geometry.

    A layout overtaken by a newer mutation is reported as stale.
    """
    try:
        result = await graph_manager.layout()
    except LayoutError as e:
        logger.error("Layout failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))

    if result is None:
        return {"success": False, "stale": True, "hash": graph_manager.hash}
    await ws_manager.notify_layout_ready(result.hash)
    return {"success": True, "stale": False, **result.to_dict()}


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Clients connect here to receive hello, graph_updated and layout_ready events.
    """
    await ws_manager.connect(websocket, graph_manager.hash)

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text('{"type": "pong"}')
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)


# --- Run with uvicorn ---

def run():
    """Console entry point: graph-tool-server."""
    configure_logging(settings.log_level)
    logger.info("Starting graph tool backend on %s:%d (layout engine: %s)",
                settings.host, settings.port, settings.layout_engine)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
