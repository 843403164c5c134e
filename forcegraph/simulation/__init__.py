"""Force simulation: Barnes-Hut aggregator, engine and tick scheduler."""

from .engine import (
    ForceEngine,
    Neighborhood,
    SimulationListener,
    SimulationState,
    SimulationStateError,
)
from .params import (
    ConfigurationError,
    SimulationParameters,
    get_tick_interval,
    load_parameters,
)
from .quadtree import QuadTree, QuadTreeNode, build, compute_repulsion
from .notifier import RefreshNotifier
from .scheduler import TickScheduler

__all__ = [
    "ForceEngine",
    "Neighborhood",
    "SimulationListener",
    "SimulationState",
    "SimulationStateError",
    "ConfigurationError",
    "SimulationParameters",
    "get_tick_interval",
    "load_parameters",
    "QuadTree",
    "QuadTreeNode",
    "build",
    "compute_repulsion",
    "RefreshNotifier",
    "TickScheduler",
]
