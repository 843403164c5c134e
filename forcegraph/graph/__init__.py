"""Graph data model: nodes, links and drag state."""

from .model import DragState, Link, Node, NodeId

__all__ = [
    "DragState",
    "Link",
    "Node",
    "NodeId",
]
