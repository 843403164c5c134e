"""
Graph Model

Nodes and links consumed by the force simulation. Links refer to nodes by
id only; the engine resolves ids to node indices whenever the active node
set is replaced, so a link never owns or outlives a node.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Hashable, Optional, Tuple
import math


NodeId = Hashable


class DragState(Enum):
    """Transient interaction state of a node."""
    IDLE = "idle"
    DRAG_START = "drag_start"
    DRAGGING = "dragging"
    DRAG_END = "drag_end"


@dataclass(eq=False)
class Node:
    """A graph node with simulation state.

    ``x``/``y`` may be left as None; unplaced nodes are seeded near the
    canvas center when the engine loads them.
    """
    id: NodeId
    label: str = ""
    x: Optional[float] = None
    y: Optional[float] = None
    vx: float = 0.0
    vy: float = 0.0

    # Pinned position, set while dragged
    px: Optional[float] = None
    py: Optional[float] = None

    weight: float = 1.0  # Mass used by the charge aggregator
    level: int = 0  # Hierarchical level tag
    radius: float = 10.0  # Hit-test radius in simulation units
    drag_state: DragState = DragState.IDLE

    @property
    def is_pinned(self) -> bool:
        return self.px is not None and self.py is not None

    @property
    def is_placed(self) -> bool:
        """True when the node carries finite coordinates."""
        return (self.x is not None and self.y is not None
                and math.isfinite(self.x) and math.isfinite(self.y))

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def pin(self, x: float, y: float):
        """Hold the node at (x, y) until unpinned."""
        self.px = x
        self.py = y

    def unpin(self):
        self.px = None
        self.py = None

    def distance_to(self, other: 'Node') -> float:
        """Center-to-center distance to another node."""
        dx = self.x - other.x
        dy = self.y - other.y
        return math.sqrt(dx * dx + dy * dy)

    def contains_point(self, x: float, y: float) -> bool:
        """Check if a simulation-space point falls inside the node radius."""
        if not self.is_placed:
            return False
        dx = x - self.x
        dy = y - self.y
        return dx * dx + dy * dy <= self.radius * self.radius


@dataclass
class Link:
    """A spring between two nodes, referenced by id."""
    source: NodeId
    target: NodeId
    distance: Optional[float] = None  # Rest length; None = simulation default
    strength: float = 1.0  # Multiplied by the global link strength

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target

    def touches(self, node_id: NodeId) -> bool:
        """Check if either endpoint is the given node."""
        return self.source == node_id or self.target == node_id

    def other(self, node_id: NodeId) -> Optional[NodeId]:
        """Get the opposite endpoint, or None if the link doesn't touch node_id."""
        if self.source == node_id:
            return self.target
        if self.target == node_id:
            return self.source
        return None
