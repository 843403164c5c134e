"""
forcegraph - Interactive Force-Directed Graph Layout

A render-agnostic simulation engine for force-directed graph layouts:
Barnes-Hut charge repulsion, link springs, gravity and a cooling schedule,
driven by a background tick scheduler and open to drag interaction.
"""

__version__ = "0.1.0"

from .graph.model import DragState, Link, Node
from .simulation.engine import ForceEngine, SimulationListener, SimulationState
from .simulation.params import ConfigurationError, SimulationParameters, load_parameters
from .simulation.scheduler import TickScheduler
from .view import GraphView, ViewTransform

__all__ = [
    "DragState",
    "Link",
    "Node",
    "ForceEngine",
    "SimulationListener",
    "SimulationState",
    "ConfigurationError",
    "SimulationParameters",
    "load_parameters",
    "TickScheduler",
    "GraphView",
    "ViewTransform",
]
