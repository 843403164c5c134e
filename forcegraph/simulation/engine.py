"""
Force Simulation Engine

Advances a force-directed graph layout one discrete tick at a time:

1. Repulsion - every node pushes every other away (Barnes-Hut approximated)
2. Springs - links pull endpoints toward their rest distance
3. Gravity - nodes drift toward the canvas center

Velocities are damped by friction and a decaying temperature (alpha) scales
charge and gravity so the layout cools and settles. Dragged nodes are pinned:
their position is forced to the pin every tick regardless of force.

Lifecycle:
    UNINITIALIZED -> configure() -> CONFIGURED
    -> set_data() / set_current_level() -> SEEDED
    -> start() -> RUNNING -> tick()* -> SETTLED (alpha < alpha_min)
    SETTLED/RUNNING -> resume() -> RUNNING
    any -> stop() -> STOPPED (terminal)
"""

import logging
import math
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from ..graph.model import DragState, Link, Node, NodeId
from .notifier import RefreshNotifier
from .params import SimulationParameters, get_tick_interval
from .quadtree import build, compute_repulsion, deterministic_jitter, separation_direction
from .scheduler import TickScheduler

logger = logging.getLogger(__name__)


class SimulationState(Enum):
    """Lifecycle states of the engine."""
    UNINITIALIZED = "uninitialized"
    CONFIGURED = "configured"
    SEEDED = "seeded"
    RUNNING = "running"
    SETTLED = "settled"
    STOPPED = "stopped"


class SimulationListener(Protocol):
    """Receives a redraw request after each completed tick."""

    def refresh(self) -> None:
        ...


class SimulationStateError(RuntimeError):
    """Raised when an operation needs a configured engine."""
    pass


@dataclass
class Neighborhood:
    """Links touching a node and the nodes on their far ends."""
    outgoing: List[Link] = field(default_factory=list)  # node is the source
    incoming: List[Link] = field(default_factory=list)  # node is the target
    nodes: List[Node] = field(default_factory=list)


class ForceEngine:
    """
    Force-directed layout simulation.

    Node and link collections are shared with the interaction and render
    layers. All writes happen under one reentrant lock. Redraw requests go
    to a RefreshNotifier after the lock is released, so a slow listener
    never holds up a tick.
    """

    def __init__(
        self,
        listener: Optional[SimulationListener] = None,
        scheduler: Optional[TickScheduler] = None,
        threaded: bool = True,
    ):
        """Create an engine.

        Args:
            listener: Sent at most one refresh() per completed tick, from
                the notifier thread
            scheduler: Scheduler driving tick(). If None and ``threaded``,
                a TickScheduler is created on start().
            threaded: If False, no scheduler is used and the caller drives
                tick() directly.
        """
        self.notifier = RefreshNotifier(listener) if listener is not None else None
        self._scheduler = scheduler
        self._threaded = threaded or scheduler is not None

        self._lock = threading.RLock()
        self._state = SimulationState.UNINITIALIZED
        self._params: Optional[SimulationParameters] = None
        self._alpha = 0.0
        self._current_level: Optional[int] = None
        self.tick_count = 0

        # Full data set as supplied
        self._all_nodes: List[Node] = []
        self._all_links: List[Link] = []
        self._all_index: Dict[NodeId, Node] = {}

        # Active subset for the current level, with index-based link lookup
        self._nodes: List[Node] = []
        self._links: List[Link] = []
        self._index: Dict[NodeId, int] = {}
        self._resolved: List[Tuple[int, int, Link]] = []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> SimulationState:
        return self._state

    @property
    def listener(self) -> Optional[SimulationListener]:
        return self.notifier.listener if self.notifier is not None else None

    @property
    def params(self) -> Optional[SimulationParameters]:
        return self._params

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def is_running(self) -> bool:
        return self._state == SimulationState.RUNNING

    @property
    def is_settled(self) -> bool:
        return self._state == SimulationState.SETTLED

    @property
    def is_stopped(self) -> bool:
        return self._state == SimulationState.STOPPED

    @property
    def current_level(self) -> Optional[int]:
        return self._current_level

    @property
    def nodes(self) -> List[Node]:
        """Active nodes for the current level."""
        return self._nodes

    @property
    def links(self) -> List[Link]:
        """Active links (both endpoints in the active node set)."""
        return self._links

    def snapshot(self) -> Dict[NodeId, Tuple[float, float]]:
        """Consistent copy of active node positions."""
        with self._lock:
            return {node.id: node.position for node in self._nodes}

    def find(self, node_id: NodeId) -> Node:
        """Look up any supplied node by id.

        Raises:
            KeyError: if no node has that id
        """
        return self._all_index[node_id]

    # ------------------------------------------------------------------
    # Configuration and data
    # ------------------------------------------------------------------

    def configure(self, params: SimulationParameters) -> "ForceEngine":
        """Apply validated parameters. Invalid parameters leave the engine untouched."""
        params.validate()
        with self._lock:
            self._params = params
            if self._state == SimulationState.UNINITIALIZED:
                self._state = SimulationState.CONFIGURED
        logger.debug(
            "Configured: size=%.0fx%.0f strength=%.2f friction=%.2f distance=%.1f "
            "charge=%.1f gravity=%.3f theta=%.2f alpha=%.3f",
            params.width, params.height, params.strength, params.friction,
            params.distance, params.charge, params.gravity, params.theta, params.alpha,
        )
        return self

    def set_data(self, nodes: Sequence[Node], links: Sequence[Link]) -> "ForceEngine":
        """Replace the node and link sets wholesale and re-seed.

        Restarts the simulation if it had already been started.
        """
        self._require_configured()
        with self._lock:
            if self._state == SimulationState.STOPPED:
                logger.debug("Ignoring set_data() on stopped engine")
                return self
            self._all_nodes = list(nodes)
            self._all_links = list(links)
            self._all_index = {node.id: node for node in self._all_nodes}
            if len(self._all_index) != len(self._all_nodes):
                logger.warning("Duplicate node ids supplied; later nodes shadow earlier ones")
            restart = self._reseed()
        logger.info("Loaded graph: nodes=%d links=%d active=%d/%d",
                    len(self._all_nodes), len(self._all_links),
                    len(self._nodes), len(self._links))
        if restart:
            self._schedule()
        return self

    def set_current_level(self, level: Optional[int]) -> bool:
        """Switch the active subgraph to ``level`` and its ancestors.

        Nodes whose level tag is <= ``level`` are active; None activates
        every node. Calling with the current level does nothing.

        Returns:
            True if the level changed and the simulation was re-seeded
        """
        self._require_configured()
        with self._lock:
            if level == self._current_level:
                return False
            if self._state == SimulationState.STOPPED:
                logger.debug("Ignoring set_current_level() on stopped engine")
                return False
            previous = self._current_level
            self._current_level = level
            restart = self._reseed()
        logger.info("Level changed %s -> %s: active nodes=%d links=%d",
                    previous, level, len(self._nodes), len(self._links))
        if restart:
            self._schedule()
        return True

    def _require_configured(self):
        if self._params is None:
            raise SimulationStateError("Engine must be configured before use")

    def _reseed(self) -> bool:
        """Filter to the current level, index links, seed positions, reset alpha.

        Caller holds the lock. Returns True if the engine was started and
        should resume ticking.
        """
        level = self._current_level
        if level is None:
            active = list(self._all_nodes)
        else:
            active = [node for node in self._all_nodes if node.level <= level]

        self._nodes = active
        self._index = {node.id: i for i, node in enumerate(active)}

        self._links = []
        self._resolved = []
        dangling = 0
        for link in self._all_links:
            si = self._index.get(link.source)
            ti = self._index.get(link.target)
            if si is None or ti is None:
                dangling += 1
                continue
            self._links.append(link)
            if not link.is_self_loop:
                self._resolved.append((si, ti, link))
        if dangling and logger.isEnabledFor(logging.DEBUG):
            logger.debug("Skipping %d links with endpoints outside the active set", dangling)

        self._seed_positions()
        self._alpha = self._params.alpha

        started = self._state in (SimulationState.RUNNING, SimulationState.SETTLED)
        if started:
            self._state = SimulationState.RUNNING
        else:
            self._state = SimulationState.SEEDED
        return started

    def _seed_positions(self):
        """Place unplaced nodes near the canvas center."""
        cx, cy = self._params.center
        radius = self._params.seed_radius
        seeded = 0
        for node in self._nodes:
            if not node.is_placed:
                jx, jy = deterministic_jitter(str(node.id), radius)
                node.x = cx + jx
                node.y = cy + jy
                seeded += 1
            node.vx = 0.0
            node.vy = 0.0
        if seeded and logger.isEnabledFor(logging.DEBUG):
            logger.debug("Seeded %d unplaced nodes around (%.1f, %.1f)", seeded, cx, cy)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> "ForceEngine":
        """Start (or restart) the simulation at full temperature."""
        self._require_configured()
        with self._lock:
            if self._state == SimulationState.STOPPED:
                logger.debug("Ignoring start() on stopped engine")
                return self
            if self._state == SimulationState.CONFIGURED:
                self._reseed()
            self._alpha = self._params.alpha
            self._state = SimulationState.RUNNING
        logger.info("Simulation started: nodes=%d links=%d alpha=%.3f",
                    len(self._nodes), len(self._links), self._alpha)
        self._schedule()
        return self

    def resume(self) -> "ForceEngine":
        """Re-enter RUNNING with a partial reheat.

        Alpha is raised to ``resume_alpha`` (capped at the initial alpha) but
        never lowered, so a drag perturbs a settled layout locally instead of
        restarting it. No-op unless the engine is running or settled.
        """
        with self._lock:
            if self._state not in (SimulationState.RUNNING, SimulationState.SETTLED):
                return self
            was_settled = self._state == SimulationState.SETTLED
            target = min(self._params.resume_alpha, self._params.alpha)
            self._alpha = max(self._alpha, target)
            self._state = SimulationState.RUNNING
        if was_settled:
            logger.debug("Resumed from settled state (alpha=%.4f)", self._alpha)
        self._schedule()
        return self

    def stop(self):
        """Tear down permanently. Idempotent; no tick fires after this returns."""
        # Stop the scheduler outside the engine lock so an in-flight tick can finish
        if self._scheduler is not None:
            self._scheduler.stop()
        if self.notifier is not None:
            self.notifier.stop()
        with self._lock:
            if self._state == SimulationState.STOPPED:
                return
            self._state = SimulationState.STOPPED
        logger.info("Simulation stopped after %d ticks", self.tick_count)

    end_tick_task = stop

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until requested refreshes have reached the listener.

        Returns:
            False if the timeout expired first
        """
        if self.notifier is None:
            return True
        return self.notifier.flush(timeout)

    @property
    def tick_interval(self) -> float:
        """Scheduler cadence: FORCEGRAPH_TICK_INTERVAL_MS, else the parameters."""
        return get_tick_interval(self._params.tick_interval)

    def _schedule(self):
        """Make sure ticks are being delivered."""
        if not self._threaded:
            return
        interval = self.tick_interval
        if self._scheduler is None:
            self._scheduler = TickScheduler(interval)
        if self._scheduler.is_started:
            self._scheduler.resume()
        else:
            self._scheduler.start(self, interval)

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------

    def pin(self, node_id: NodeId, x: float, y: float):
        """Pin a node at (x, y) and wake the simulation.

        A node in DRAG_START moves to DRAGGING.

        Raises:
            KeyError: if no node has that id
        """
        with self._lock:
            node = self._all_index[node_id]
            node.pin(x, y)
            if node.drag_state == DragState.DRAG_START:
                node.drag_state = DragState.DRAGGING
        self.resume()

    def unpin(self, node_id: NodeId):
        """Release a pinned node back to force integration."""
        with self._lock:
            self._all_index[node_id].unpin()

    def set_drag_state(self, node_id: NodeId, drag_state: DragState):
        """Update a node's drag state.

        DRAG_START pins the node where it is; DRAG_END and IDLE release it.

        Raises:
            KeyError: if no node has that id
        """
        with self._lock:
            node = self._all_index[node_id]
            node.drag_state = drag_state
            if drag_state == DragState.DRAG_START:
                if not node.is_pinned and node.is_placed:
                    node.pin(node.x, node.y)
            elif drag_state in (DragState.DRAG_END, DragState.IDLE):
                node.unpin()

    def get_node(self, x: float, y: float, scale: float = 1.0) -> Optional[Node]:
        """Hit-test a point given in scaled view space.

        Args:
            x, y: Query point with translation already removed
            scale: Current view scale; the point is divided by it

        Returns:
            First active node whose radius contains the point, or None
        """
        if scale <= 0:
            return None
        sx = x / scale
        sy = y / scale
        with self._lock:
            for node in self._nodes:
                if node.contains_point(sx, sy):
                    return node
        return None

    def neighbors(self, node_id: NodeId) -> Neighborhood:
        """Active links touching a node, and the nodes at their other ends."""
        result = Neighborhood()
        with self._lock:
            for link in self._links:
                if not link.touches(node_id):
                    continue
                if link.source == node_id:
                    result.outgoing.append(link)
                else:
                    result.incoming.append(link)
                result.nodes.append(self._nodes[self._index[link.other(node_id)]])
        return result

    # ------------------------------------------------------------------
    # Simulation step
    # ------------------------------------------------------------------

    def tick(self) -> bool:
        """Advance the simulation one step.

        A refresh is requested from the notifier after each moving tick;
        tick() never waits for the listener. If force computation raises,
        the engine moves to STOPPED and the exception propagates.

        Returns:
            True if positions were updated and a refresh requested
        """
        settled = False
        with self._lock:
            if self._state != SimulationState.RUNNING:
                return False

            self._alpha *= self._params.alpha_decay
            if self._alpha < self._params.alpha_min:
                self._state = SimulationState.SETTLED
                settled = True
                # Under the lock so a concurrent resume() cannot be undone
                if self._scheduler is not None:
                    self._scheduler.pause()
            else:
                try:
                    max_speed = self._step()
                except Exception:
                    self._state = SimulationState.STOPPED
                    logger.error("Tick %d failed, simulation stopped", self.tick_count + 1)
                    if self.notifier is not None:
                        self.notifier.stop()
                    raise
                self.tick_count += 1
                if logger.isEnabledFor(logging.DEBUG) and self.tick_count % 50 == 0:
                    logger.debug("Tick %d: alpha=%.4f max_speed=%.3f nodes=%d",
                                 self.tick_count, self._alpha, max_speed, len(self._nodes))

        if settled:
            logger.info("Simulation settled after %d ticks (alpha=%.4f)",
                        self.tick_count, self._alpha)
            return False

        if self.notifier is not None:
            self.notifier.request()
        return True

    def _step(self) -> float:
        """Compute forces and integrate one tick. Caller holds the lock.

        Returns:
            Maximum node speed after integration
        """
        nodes = self._nodes
        if not nodes:
            return 0.0

        params = self._params
        alpha = self._alpha
        count = len(nodes)
        fx = [0.0] * count
        fy = [0.0] * count

        self._add_repulsion_forces(fx, fy, alpha)
        self._add_gravity_forces(fx, fy, alpha)
        self._add_link_forces(fx, fy)

        return self._apply_forces(fx, fy, params.friction, params.max_velocity)

    def _add_repulsion_forces(self, fx: List[float], fy: List[float], alpha: float):
        params = self._params
        if params.charge == 0 or len(self._nodes) < 2:
            return

        # Pinned nodes still repel others
        tree = build(self._nodes)
        k = -params.charge * alpha
        for i, node in enumerate(self._nodes):
            if node.is_pinned:
                continue
            rx, ry = compute_repulsion(tree, node, params.theta, params.min_distance)
            fx[i] += rx * k
            fy[i] += ry * k

    def _add_gravity_forces(self, fx: List[float], fy: List[float], alpha: float):
        params = self._params
        if params.gravity == 0:
            return

        cx, cy = params.center
        k = params.gravity * alpha
        for i, node in enumerate(self._nodes):
            if node.is_pinned:
                continue
            fx[i] += (cx - node.x) * k
            fy[i] += (cy - node.y) * k

    def _add_link_forces(self, fx: List[float], fy: List[float]):
        params = self._params
        nodes = self._nodes
        floor = params.min_distance

        for si, ti, link in self._resolved:
            source = nodes[si]
            target = nodes[ti]

            dx = target.x - source.x
            dy = target.y - source.y
            dist = math.sqrt(dx * dx + dy * dy)
            if dist > 0.0:
                ux, uy = dx / dist, dy / dist
            else:
                ux, uy = separation_direction(target.id, source.id)
            dist = max(dist, floor)

            rest = link.distance if link.distance is not None else params.distance
            # Positive pulls endpoints together, negative pushes apart
            magnitude = params.strength * link.strength * (dist - rest)

            fx[si] += ux * magnitude
            fy[si] += uy * magnitude
            fx[ti] -= ux * magnitude
            fy[ti] -= uy * magnitude

    def _apply_forces(self, fx: List[float], fy: List[float],
                      friction: float, max_velocity: float) -> float:
        max_speed = 0.0
        for i, node in enumerate(self._nodes):
            if node.is_pinned:
                node.x = node.px
                node.y = node.py
                node.vx *= friction
                node.vy *= friction
                continue

            vx = (node.vx + fx[i]) * friction
            vy = (node.vy + fy[i]) * friction

            # Clamp velocity
            speed = math.sqrt(vx * vx + vy * vy)
            if not math.isfinite(speed):
                vx = vy = speed = 0.0
            if speed > max_velocity:
                scale = max_velocity / speed
                vx *= scale
                vy *= scale
                speed = max_velocity

            node.vx = vx
            node.vy = vy
            node.x += vx
            node.y += vy
            max_speed = max(max_speed, speed)

        return max_speed
