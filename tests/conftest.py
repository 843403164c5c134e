"""
Shared test fixtures for forcegraph tests.

Provides reusable parameter sets, small graphs, and engines that are
driven by hand (no background scheduler) for deterministic ticking.
"""

import pytest
from typing import List

from forcegraph.graph.model import Link, Node
from forcegraph.simulation.engine import ForceEngine
from forcegraph.simulation.params import SimulationParameters


class RecordingListener:
    """Counts refresh() calls."""

    def __init__(self):
        self.refresh_count = 0

    def refresh(self):
        self.refresh_count += 1


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def default_params() -> SimulationParameters:
    """Default parameters on an 800x600 canvas."""
    return SimulationParameters(width=800.0, height=600.0)


@pytest.fixture
def quiet_params() -> SimulationParameters:
    """Parameters with charge and gravity disabled, leaving only springs."""
    return SimulationParameters(
        width=800.0,
        height=600.0,
        charge=0.0,
        gravity=0.0,
    )


@pytest.fixture
def triangle_nodes() -> List[Node]:
    """Three placed nodes across two levels."""
    return [
        Node(id="a", label="root", x=400.0, y=300.0, level=0),
        Node(id="b", label="child", x=450.0, y=300.0, level=1),
        Node(id="c", label="child", x=400.0, y=350.0, level=1),
    ]


@pytest.fixture
def triangle_links() -> List[Link]:
    return [
        Link(source="a", target="b"),
        Link(source="a", target="c"),
        Link(source="b", target="c", distance=80.0),
    ]


@pytest.fixture
def manual_engine(listener, default_params) -> ForceEngine:
    """Configured engine without a scheduler; tests call tick() directly."""
    engine = ForceEngine(listener=listener, threaded=False)
    engine.configure(default_params)
    yield engine
    engine.stop()


@pytest.fixture
def running_engine(manual_engine, triangle_nodes, triangle_links) -> ForceEngine:
    """Manual engine loaded with the triangle graph and started."""
    manual_engine.set_data(triangle_nodes, triangle_links)
    manual_engine.start()
    return manual_engine
