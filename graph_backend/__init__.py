"""
Graph Tool Backend - stateful graph service over graph_core.

Holds one graph with undo/redo history, serves it over a FastAPI REST API
and a WebSocket, and ships an argparse CLI that talks to that API.
"""
