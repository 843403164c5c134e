"""
Graph View

Host-side facade over ForceEngine, for a rendering layer that draws nodes
and links onto a pannable, zoomable canvas. It owns the screen transform,
turns pointer positions into hit-tests and pin updates, and tears the
engine down with the view.

Gesture recognition (touch slop, tap vs drag, pinch detection) stays with
the host; this class receives already-classified pointer events.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .graph.model import DragState, Link, Node
from .simulation.engine import ForceEngine, SimulationListener
from .simulation.params import SimulationParameters, load_parameters

logger = logging.getLogger(__name__)

MIN_SCALE = 0.1
MAX_SCALE = 5.0


@dataclass
class ViewTransform:
    """Screen transform: screen = simulation * scale + translate."""
    translate_x: float = 0.0
    translate_y: float = 0.0
    scale: float = 1.0

    def reset(self):
        self.translate_x = 0.0
        self.translate_y = 0.0
        self.scale = 1.0

    def pan(self, dx: float, dy: float):
        self.translate_x += dx
        self.translate_y += dy

    def zoom(self, factor: float, focus_x: float, focus_y: float) -> bool:
        """Scale around a screen-space focus point, clamped to [0.1, 5].

        Returns:
            True if the scale changed
        """
        previous = self.scale
        self.scale = max(MIN_SCALE, min(previous * factor, MAX_SCALE))
        if self.scale == previous:
            return False

        # Keep the focus point fixed on screen
        applied = self.scale / previous
        self.translate_x += (focus_x - self.translate_x) * (1 - applied)
        self.translate_y += (focus_y - self.translate_y) * (1 - applied)
        return True

    def to_simulation(self, x: float, y: float) -> Tuple[float, float]:
        """Convert a screen point to simulation coordinates."""
        return ((x - self.translate_x) / self.scale,
                (y - self.translate_y) / self.scale)

    def to_screen(self, x: float, y: float) -> Tuple[float, float]:
        """Convert a simulation point to screen coordinates."""
        return (x * self.scale + self.translate_x,
                y * self.scale + self.translate_y)


class GraphView:
    """
    Interactive force layout bound to one canvas.

    Usage:
        view = GraphView(width, height, listener=canvas)
        view.set_data(nodes, links)

        # Pointer events from the host
        view.begin_drag(x, y)
        view.drag_to(x, y)
        view.end_drag()

        view.destroy()
    """

    def __init__(
        self,
        width: float,
        height: float,
        listener: Optional[SimulationListener] = None,
        params: Optional[SimulationParameters] = None,
        threaded: bool = True,
    ):
        """Create a view and configure its engine.

        Args:
            width, height: Canvas size
            listener: Receives coalesced refresh() calls as ticks complete
            params: Base parameters; the packaged defaults if None.
                The canvas size always overrides the parameters' size.
            threaded: Run ticks on a background scheduler
        """
        base = params if params is not None else load_parameters()
        self.transform = ViewTransform()
        self.engine = ForceEngine(listener=listener, threaded=threaded)
        self.engine.configure(base.with_size(width, height))

        # Drag selection
        self.dragged: Optional[Node] = None
        self.selected_nodes: List[Node] = []
        self.outgoing_links: List[Link] = []
        self.incoming_links: List[Link] = []
        self._last_x = 0.0
        self._last_y = 0.0

        self._destroyed = False

    @property
    def nodes(self) -> List[Node]:
        return self.engine.nodes

    @property
    def links(self) -> List[Link]:
        return self.engine.links

    @property
    def current_level(self) -> Optional[int]:
        return self.engine.current_level

    def set_data(self, nodes: Sequence[Node], links: Sequence[Link]):
        """Replace the graph and start the simulation."""
        self._clear_selection()
        self.engine.set_data(nodes, links)
        self.engine.start()

    def set_current_level(self, level: Optional[int]) -> bool:
        """Show a different hierarchy level, resetting pan and zoom.

        Returns:
            False if already at ``level``
        """
        if self.engine.current_level == level:
            return False
        self.transform.reset()
        self._clear_selection()
        self.engine.set_current_level(level)
        self.engine.start()
        return True

    def node_at(self, screen_x: float, screen_y: float) -> Optional[Node]:
        """Hit-test a screen point."""
        return self.engine.get_node(
            screen_x - self.transform.translate_x,
            screen_y - self.transform.translate_y,
            self.transform.scale,
        )

    def zoom(self, factor: float, focus_x: float, focus_y: float) -> bool:
        return self.transform.zoom(factor, focus_x, focus_y)

    def begin_drag(self, screen_x: float, screen_y: float) -> Optional[Node]:
        """Start a drag at a screen point.

        If a node is hit it is pinned in place and its links are selected;
        otherwise later drag_to() calls pan the canvas.

        Returns:
            The grabbed node, or None
        """
        self._clear_selection()
        self._last_x = screen_x
        self._last_y = screen_y

        node = self.node_at(screen_x, screen_y)
        if node is None:
            return None

        neighborhood = self.engine.neighbors(node.id)
        self.dragged = node
        self.selected_nodes = neighborhood.nodes
        self.outgoing_links = neighborhood.outgoing
        self.incoming_links = neighborhood.incoming
        self.engine.set_drag_state(node.id, DragState.DRAG_START)
        logger.debug("Drag started on node %s", node.id)
        return node

    def drag_to(self, screen_x: float, screen_y: float) -> bool:
        """Move the dragged node, or pan if nothing was grabbed.

        Returns:
            True if a node was moved
        """
        dx = screen_x - self._last_x
        dy = screen_y - self._last_y
        self._last_x = screen_x
        self._last_y = screen_y

        if self.dragged is None:
            self.transform.pan(dx, dy)
            return False

        sx, sy = self.transform.to_simulation(screen_x, screen_y)
        self.engine.pin(self.dragged.id, sx, sy)
        return True

    def end_drag(self) -> Optional[Node]:
        """Release the dragged node.

        Returns:
            The released node, or None if nothing was dragged
        """
        node = self.dragged
        if node is not None:
            self.engine.set_drag_state(node.id, DragState.DRAG_END)
            logger.debug("Drag ended on node %s", node.id)
        self._clear_selection()
        return node

    def destroy(self):
        """Stop the simulation for good. Safe to call more than once."""
        if self._destroyed:
            return
        self._destroyed = True
        self._clear_selection()
        self.engine.stop()

    def _clear_selection(self):
        self.dragged = None
        self.selected_nodes = []
        self.outgoing_links = []
        self.incoming_links = []
