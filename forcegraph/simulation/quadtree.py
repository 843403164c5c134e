"""
Barnes-Hut Quadtree

Spatial aggregator for O(n log n) charge repulsion. Instead of summing the
repulsion from all N-1 other nodes (O(N^2) per tick), node positions are
partitioned into a region quadtree. Each region caches its total mass and
center of mass, so a region that is small relative to its distance from the
query point can be treated as a single point mass.

The tree is rebuilt from scratch every tick; there is no incremental update.
"""

import hashlib
import math
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Optional, Tuple

from ..graph.model import Node, NodeId

# Coincident points stop subdividing here and share a leaf
MAX_DEPTH = 24

# Fractional padding added around the points when bounds are derived
BOUNDS_PADDING = 0.05


def deterministic_jitter(key: str, scale: float = 0.5) -> Tuple[float, float]:
    """Generate deterministic jitter based on a string key.

    Uses MD5 hash to produce reproducible pseudo-random offsets,
    so layouts are consistent across runs.

    Args:
        key: String to hash (e.g., a node id or "id1|id2" pair)
        scale: Maximum offset magnitude

    Returns:
        (dx, dy) offset tuple in range [-scale, scale]
    """
    h = hashlib.md5(key.encode()).hexdigest()
    # Use first 8 hex chars for x, next 8 for y
    x_val = int(h[:8], 16) / 0xFFFFFFFF  # Normalize to [0, 1]
    y_val = int(h[8:16], 16) / 0xFFFFFFFF
    return (x_val * 2 * scale - scale, y_val * 2 * scale - scale)


def separation_direction(a: NodeId, b: NodeId) -> Tuple[float, float]:
    """Unit vector pushing ``a`` away from ``b`` when they coincide.

    Antisymmetric: the direction for (b, a) is the negation of (a, b), so a
    coincident pair is pushed apart rather than in the same direction.
    """
    ka, kb = str(a), str(b)
    low, high = (ka, kb) if ka <= kb else (kb, ka)
    jx, jy = deterministic_jitter(f"{low}|{high}", 1.0)
    length = math.sqrt(jx * jx + jy * jy)
    if length < 1e-9:
        jx, jy, length = 1.0, 0.0, 1.0
    ux, uy = jx / length, jy / length
    if ka == low:
        return (ux, uy)
    return (-ux, -uy)


class Body(NamedTuple):
    """A point mass inserted into the tree."""
    key: NodeId
    x: float
    y: float
    mass: float


@dataclass(frozen=True)
class Bounds:
    """Square axis-aligned region."""
    min_x: float
    min_y: float
    size: float

    @property
    def max_x(self) -> float:
        return self.min_x + self.size

    @property
    def max_y(self) -> float:
        return self.min_y + self.size

    @property
    def center(self) -> Tuple[float, float]:
        half = self.size / 2
        return (self.min_x + half, self.min_y + half)

    def contains(self, x: float, y: float) -> bool:
        return (self.min_x <= x <= self.max_x and
                self.min_y <= y <= self.max_y)

    def quadrant(self, x: float, y: float) -> int:
        """Index of the child quadrant for a point (0=NW, 1=NE, 2=SW, 3=SE)."""
        cx, cy = self.center
        index = 0
        if x >= cx:
            index += 1
        if y >= cy:
            index += 2
        return index

    def child(self, index: int) -> "Bounds":
        half = self.size / 2
        return Bounds(
            min_x=self.min_x + (half if index & 1 else 0.0),
            min_y=self.min_y + (half if index & 2 else 0.0),
            size=half,
        )

    @classmethod
    def enclosing(cls, points: Iterable[Tuple[float, float]],
                  padding: float = BOUNDS_PADDING) -> Optional["Bounds"]:
        """Smallest padded square containing all points, or None if empty."""
        xs: List[float] = []
        ys: List[float] = []
        for x, y in points:
            xs.append(x)
            ys.append(y)
        if not xs:
            return None

        min_x, max_x = min(xs), max(xs)
        min_y, max_y = min(ys), max(ys)
        size = max(max_x - min_x, max_y - min_y)
        # Single point or all coincident
        if size <= 0:
            size = 1.0
        margin = size * padding
        return cls(min_x - margin, min_y - margin, size + 2 * margin)


class QuadTreeNode:
    """A region of the tree.

    Leaves hold their bodies directly (zero or one, or several coincident
    ones at MAX_DEPTH). Internal nodes hold four children. Both cache the
    total mass and mass-weighted centroid of everything beneath them.
    """

    __slots__ = ("bounds", "depth", "bodies", "children", "mass", "com_x", "com_y")

    def __init__(self, bounds: Bounds, depth: int = 0):
        self.bounds = bounds
        self.depth = depth
        self.bodies: List[Body] = []
        self.children: Optional[List["QuadTreeNode"]] = None
        self.mass = 0.0
        self.com_x = 0.0
        self.com_y = 0.0

    @property
    def is_leaf(self) -> bool:
        return self.children is None

    @property
    def width(self) -> float:
        return self.bounds.size

    def insert(self, body: Body):
        """Insert a body, splitting this region if it would hold two."""
        self._accumulate(body)

        if self.children is not None:
            self._child_for(body).insert(body)
            return

        if not self.bodies:
            self.bodies.append(body)
            return

        coincident = all(b.x == body.x and b.y == body.y for b in self.bodies)
        if coincident or self.depth >= MAX_DEPTH:
            self.bodies.append(body)
            return

        # Split: push existing bodies down, then the new one
        existing = self.bodies
        self.bodies = []
        self.children = [
            QuadTreeNode(self.bounds.child(i), self.depth + 1) for i in range(4)
        ]
        for b in existing:
            self._child_for(b).insert(b)
        self._child_for(body).insert(body)

    def _child_for(self, body: Body) -> "QuadTreeNode":
        return self.children[self.bounds.quadrant(body.x, body.y)]

    def _accumulate(self, body: Body):
        total = self.mass + body.mass
        if total <= 0.0:
            return
        self.com_x = (self.com_x * self.mass + body.x * body.mass) / total
        self.com_y = (self.com_y * self.mass + body.y * body.mass) / total
        self.mass = total


class QuadTree:
    """Barnes-Hut tree over a set of node positions."""

    def __init__(self, bounds: Optional[Bounds]):
        self.root: Optional[QuadTreeNode] = QuadTreeNode(bounds) if bounds else None
        self.size = 0
        # Regions visited by the most recent repulsion query
        self.last_visit_count = 0

    def insert(self, body: Body):
        if self.root is None:
            raise ValueError("Cannot insert into a tree without bounds")
        self.root.insert(body)
        self.size += 1

    def compute_repulsion(self, key: NodeId, x: float, y: float, theta: float,
                          min_distance: float = 1.0) -> Tuple[float, float]:
        """Unit-charge repulsion on the point (x, y) from every other body.

        Each body contributes ``mass / d**2`` directed away from it. The body
        with the same key as the query is skipped.

        Args:
            key: Identity of the query point (its own body is ignored)
            x, y: Query position
            theta: Barnes-Hut threshold; larger is coarser and faster
            min_distance: Distance floor for near or coincident bodies

        Returns:
            (fx, fy) force vector
        """
        self.last_visit_count = 0
        if self.root is None or self.size < 2:
            return (0.0, 0.0)

        force = [0.0, 0.0]
        self._visit(self.root, key, x, y, theta, min_distance, force)
        return (force[0], force[1])

    def _visit(self, region: QuadTreeNode, key: NodeId, x: float, y: float,
               theta: float, min_distance: float, force: List[float]):
        self.last_visit_count += 1

        if region.is_leaf:
            for body in region.bodies:
                if body.key == key:
                    continue
                _add_point_force(force, key, x, y, body.key,
                                 body.x, body.y, body.mass, min_distance)
            return

        # Far field: a region not holding the query point, small relative
        # to its distance, acts as one mass at its centroid
        if not region.bounds.contains(x, y):
            dx = x - region.com_x
            dy = y - region.com_y
            dist = math.sqrt(dx * dx + dy * dy)
            if dist > 0.0 and region.width / dist < theta:
                _add_point_force(force, key, x, y, None,
                                 region.com_x, region.com_y, region.mass, min_distance)
                return

        for child in region.children:
            if child.mass > 0.0:
                self._visit(child, key, x, y, theta, min_distance, force)


def _add_point_force(force: List[float], key: NodeId, x: float, y: float,
                     other_key: Optional[NodeId], ox: float, oy: float,
                     mass: float, min_distance: float):
    dx = x - ox
    dy = y - oy
    dist = math.sqrt(dx * dx + dy * dy)

    if dist > 0.0:
        ux, uy = dx / dist, dy / dist
    elif other_key is not None:
        ux, uy = separation_direction(key, other_key)
    else:
        ux, uy = deterministic_jitter(str(key), 1.0)
        norm = math.sqrt(ux * ux + uy * uy) or 1.0
        ux, uy = ux / norm, uy / norm

    dist = max(dist, min_distance)
    magnitude = mass / (dist * dist)
    force[0] += ux * magnitude
    force[1] += uy * magnitude


def build(nodes: Iterable[Node], bounds: Optional[Bounds] = None) -> QuadTree:
    """
    Build a quadtree over the placed nodes.

    Args:
        nodes: Nodes to insert; unplaced nodes are ignored
        bounds: Root region. If None, the padded square enclosing all nodes.

    Returns:
        QuadTree with mass and centroid cached on every region
    """
    bodies = [
        Body(node.id, node.x, node.y, node.weight)
        for node in nodes
        if node.is_placed
    ]
    if bounds is None:
        bounds = Bounds.enclosing((b.x, b.y) for b in bodies)

    tree = QuadTree(bounds)
    for body in bodies:
        tree.insert(body)
    return tree


def compute_repulsion(tree: QuadTree, target: Node, theta: float,
                      min_distance: float = 1.0) -> Tuple[float, float]:
    """Unit-charge repulsion on a node; (0, 0) for trees of fewer than two bodies."""
    if not target.is_placed:
        return (0.0, 0.0)
    return tree.compute_repulsion(target.id, target.x, target.y, theta, min_distance)
