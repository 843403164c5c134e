"""
Tests for the screen transform and the GraphView facade.

Views are built with threaded=False so nothing ticks in the background.
"""

import pytest

from forcegraph.graph.model import DragState
from forcegraph.simulation.engine import SimulationState
from forcegraph.simulation.params import SimulationParameters
from forcegraph.view import MAX_SCALE, MIN_SCALE, GraphView, ViewTransform


@pytest.fixture
def view(listener, default_params, triangle_nodes, triangle_links):
    graph_view = GraphView(800.0, 600.0, listener=listener,
                           params=default_params, threaded=False)
    graph_view.set_data(triangle_nodes, triangle_links)
    yield graph_view
    graph_view.destroy()


# =============================================================================
# ViewTransform Tests
# =============================================================================

class TestViewTransform:
    """Tests for pan/zoom arithmetic."""

    def test_identity(self):
        transform = ViewTransform()
        assert transform.to_simulation(12.0, 34.0) == (12.0, 34.0)
        assert transform.to_screen(12.0, 34.0) == (12.0, 34.0)

    def test_pan(self):
        transform = ViewTransform()
        transform.pan(10.0, -5.0)
        assert transform.to_screen(0.0, 0.0) == (10.0, -5.0)
        assert transform.to_simulation(10.0, -5.0) == (0.0, 0.0)

    def test_zoom_keeps_focus_fixed(self):
        transform = ViewTransform()
        before = transform.to_simulation(100.0, 50.0)

        assert transform.zoom(2.0, 100.0, 50.0)

        assert transform.scale == 2.0
        assert transform.to_simulation(100.0, 50.0) == pytest.approx(before)

    def test_zoom_clamped_high(self):
        transform = ViewTransform()
        assert transform.zoom(100.0, 0.0, 0.0)
        assert transform.scale == MAX_SCALE
        assert not transform.zoom(2.0, 0.0, 0.0)
        assert transform.scale == MAX_SCALE

    def test_zoom_clamped_low(self):
        transform = ViewTransform()
        transform.zoom(0.001, 0.0, 0.0)
        assert transform.scale == MIN_SCALE

    def test_clamped_zoom_still_keeps_focus(self):
        transform = ViewTransform(scale=4.0)
        before = transform.to_simulation(200.0, 120.0)

        transform.zoom(10.0, 200.0, 120.0)

        assert transform.scale == MAX_SCALE
        assert transform.to_simulation(200.0, 120.0) == pytest.approx(before)

    def test_round_trip_point(self):
        transform = ViewTransform(translate_x=30.0, translate_y=-20.0, scale=2.5)
        sx, sy = transform.to_screen(7.0, 9.0)
        assert transform.to_simulation(sx, sy) == pytest.approx((7.0, 9.0))

    def test_reset(self):
        transform = ViewTransform(translate_x=1.0, translate_y=2.0, scale=3.0)
        transform.reset()
        assert transform == ViewTransform()


# =============================================================================
# GraphView Tests
# =============================================================================

class TestGraphView:
    """Tests for data loading, hit-testing and teardown."""

    def test_canvas_size_overrides_params(self):
        params = SimulationParameters(width=10.0, height=10.0, charge=-10.0)
        graph_view = GraphView(1024.0, 768.0, params=params, threaded=False)
        try:
            assert graph_view.engine.params.width == 1024.0
            assert graph_view.engine.params.height == 768.0
            assert graph_view.engine.params.charge == -10.0
        finally:
            graph_view.destroy()

    def test_packaged_defaults_used_without_params(self):
        graph_view = GraphView(640.0, 480.0, threaded=False)
        try:
            expected = SimulationParameters().with_size(640.0, 480.0)
            assert graph_view.engine.params == expected
        finally:
            graph_view.destroy()

    def test_set_data_starts_engine(self, view):
        assert view.engine.state == SimulationState.RUNNING
        assert [node.id for node in view.nodes] == ["a", "b", "c"]
        assert len(view.links) == 3

    def test_tick_refreshes_listener(self, view, listener):
        assert view.engine.tick()
        assert view.engine.flush(timeout=2.0)
        assert listener.refresh_count == 1

    def test_node_at_identity(self, view):
        assert view.node_at(402.0, 301.0).id == "a"
        assert view.node_at(10.0, 10.0) is None

    def test_node_at_after_zoom(self, view):
        view.zoom(2.0, 0.0, 0.0)
        assert view.node_at(800.0, 600.0).id == "a"
        assert view.node_at(400.0, 300.0) is None

    def test_node_at_after_pan(self, view):
        view.transform.pan(100.0, 50.0)
        assert view.node_at(500.0, 350.0).id == "a"

    def test_set_current_level_filters_and_resets(self, view):
        view.zoom(2.0, 10.0, 10.0)

        assert view.set_current_level(0)

        assert view.current_level == 0
        assert [node.id for node in view.nodes] == ["a"]
        assert view.links == []
        assert view.transform == ViewTransform()
        assert view.engine.is_running

    def test_set_same_level_is_noop(self, view):
        assert view.set_current_level(1)
        view.zoom(2.0, 0.0, 0.0)

        assert not view.set_current_level(1)
        assert view.transform.scale == 2.0

    def test_destroy_idempotent(self, view):
        view.destroy()
        view.destroy()
        assert view.engine.is_stopped


class TestDragging:
    """Tests for the pointer-driven drag cycle."""

    def test_begin_drag_selects_neighborhood(self, view):
        node = view.begin_drag(400.0, 300.0)

        assert node.id == "a"
        assert view.dragged is node
        assert node.drag_state == DragState.DRAG_START
        assert node.is_pinned
        assert sorted(n.id for n in view.selected_nodes) == ["b", "c"]
        assert len(view.outgoing_links) == 2
        assert view.incoming_links == []

    def test_drag_moves_pinned_node(self, view):
        node = view.begin_drag(400.0, 300.0)

        assert view.drag_to(420.0, 310.0)

        assert node.drag_state == DragState.DRAGGING
        assert (node.px, node.py) == (420.0, 310.0)

    def test_drag_respects_transform(self, view):
        view.zoom(2.0, 0.0, 0.0)
        node = view.begin_drag(800.0, 600.0)

        view.drag_to(840.0, 600.0)

        assert (node.px, node.py) == (420.0, 300.0)

    def test_end_drag_releases(self, view):
        node = view.begin_drag(400.0, 300.0)
        view.drag_to(420.0, 310.0)

        released = view.end_drag()

        assert released is node
        assert node.drag_state == DragState.DRAG_END
        assert not node.is_pinned
        assert view.dragged is None
        assert view.selected_nodes == []

    def test_drag_on_empty_space_pans(self, view):
        assert view.begin_drag(10.0, 10.0) is None

        assert not view.drag_to(30.0, 40.0)
        assert not view.drag_to(35.0, 40.0)

        assert (view.transform.translate_x, view.transform.translate_y) == (25.0, 30.0)

    def test_end_drag_without_node(self, view):
        view.begin_drag(10.0, 10.0)
        assert view.end_drag() is None

    def test_drag_wakes_settled_engine(self, view):
        engine = view.engine
        while engine.tick():
            pass
        assert engine.is_settled

        node = engine.find("a")
        assert view.begin_drag(node.x, node.y) is node
        view.drag_to(node.x + 10.0, node.y)

        assert engine.is_running
        assert engine.alpha == pytest.approx(engine.params.resume_alpha)
