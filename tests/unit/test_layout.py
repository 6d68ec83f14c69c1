"""Tests for the tree, layered and force layout algorithms."""

import pytest
from conftest import boxes_overlap, make_graph

from diagram_core.exceptions import LayoutTimeoutError
from diagram_core.layout import (
    Deadline,
    LayoutAlgorithm,
    LayoutDirection,
    force_layout,
    layered_layout,
    run_algorithm,
    tree_layout,
)
from diagram_core.models import Graph


def placed(graph, positions):
    return [graph.get_node(nid).moved_to(p.x, p.y) for nid, p in positions.items()]


def center_y(node):
    return node.center()[1]


# -----------------------------------------------------------------------------
# Test: tree_layout
# -----------------------------------------------------------------------------

class TestTreeLayout:
    """Tests for tree_layout."""

    def test_levels_along_main_axis(self, tree_graph):
        positions = tree_layout(tree_graph, LayoutDirection.LR)
        assert positions["r"].x == 100
        assert positions["a"].x == positions["b"].x == 330
        assert positions["a1"].x == positions["a2"].x == positions["b1"].x == 560

    def test_parent_centred_over_children(self, tree_graph):
        nodes = {n.id: n for n in placed(tree_graph, tree_layout(tree_graph, LayoutDirection.LR))}
        expected = (center_y(nodes["a"]) + center_y(nodes["b"])) / 2
        assert center_y(nodes["r"]) == pytest.approx(expected)
        expected = (center_y(nodes["a1"]) + center_y(nodes["a2"])) / 2
        assert center_y(nodes["a"]) == pytest.approx(expected)

    def test_no_overlap(self, tree_graph):
        nodes = placed(tree_graph, tree_layout(tree_graph, LayoutDirection.TB))
        for i, a in enumerate(nodes):
            for b in nodes[i + 1:]:
                assert not boxes_overlap(a, b)

    def test_drawing_starts_at_origin_offset(self, tree_graph):
        positions = tree_layout(tree_graph, LayoutDirection.TB)
        assert min(p.x for p in positions.values()) == 100
        assert min(p.y for p in positions.values()) == 100

    def test_reversed_direction_mirrors(self, tree_graph):
        positions = tree_layout(tree_graph, LayoutDirection.RL)
        assert positions["r"].x > positions["a"].x > positions["a1"].x

    def test_non_tree_input_still_places_everything(self, dag_graph, cycle_graph):
        assert set(tree_layout(dag_graph)) == {"s1", "s2", "m", "t"}
        assert set(tree_layout(cycle_graph)) == {"a", "b", "c"}

    def test_empty_graph(self):
        assert tree_layout(Graph()) == {}


# -----------------------------------------------------------------------------
# Test: layered_layout
# -----------------------------------------------------------------------------

class TestLayeredLayout:
    """Tests for layered_layout."""

    def test_ranks_top_to_bottom(self, dag_graph):
        positions = layered_layout(dag_graph, LayoutDirection.TB)
        assert positions["s1"].y == positions["s2"].y == 100
        assert positions["m"].y == 210
        assert positions["t"].y == 320

    def test_ranks_centred_on_widest(self, dag_graph):
        positions = layered_layout(dag_graph, LayoutDirection.TB)
        assert positions["s1"].x == 100
        assert positions["s2"].x == 330
        assert positions["m"].x == positions["t"].x == 215

    def test_bottom_to_top(self, dag_graph):
        positions = layered_layout(dag_graph, LayoutDirection.BT)
        assert positions["t"].y < positions["m"].y < positions["s1"].y

    def test_cycle_is_layered(self, cycle_graph):
        positions = layered_layout(cycle_graph, LayoutDirection.TB)
        assert positions["a"].y < positions["b"].y < positions["c"].y

    def test_custom_spacing(self, dag_graph):
        positions = layered_layout(dag_graph, LayoutDirection.LR, spacing=(40, 20))
        assert positions["m"].x == positions["s1"].x + 150 + 40

    def test_single_node(self):
        positions = layered_layout(make_graph(["a"], []))
        assert (positions["a"].x, positions["a"].y) == (100, 100)


# -----------------------------------------------------------------------------
# Test: force_layout
# -----------------------------------------------------------------------------

class TestForceLayout:
    """Tests for force_layout."""

    def test_places_every_node(self, dense_graph):
        positions = force_layout(dense_graph)
        assert set(positions) == {"a", "b", "c", "d"}
        assert min(p.x for p in positions.values()) == pytest.approx(100)
        assert min(p.y for p in positions.values()) == pytest.approx(100)

    def test_deterministic(self, dense_graph):
        assert force_layout(dense_graph) == force_layout(dense_graph)

    def test_single_node(self):
        positions = force_layout(make_graph(["a"], []))
        assert positions["a"].x == pytest.approx(100)
        assert positions["a"].y == pytest.approx(100)


# -----------------------------------------------------------------------------
# Test: deadlines and dispatch
# -----------------------------------------------------------------------------

class TestDeadline:
    """Tests for Deadline and run_algorithm."""

    def test_expired_deadline_raises(self, tree_graph):
        with pytest.raises(LayoutTimeoutError) as exc_info:
            tree_layout(tree_graph, deadline=Deadline(-1))
        assert exc_info.value.context["stage"] == "tree traversal"

    def test_no_deadline_never_expires(self):
        Deadline().check("anything")

    @pytest.mark.parametrize("algorithm", list(LayoutAlgorithm))
    def test_run_algorithm_dispatch(self, algorithm, dag_graph):
        positions = run_algorithm(algorithm, dag_graph, LayoutDirection.TB, (80, 60), Deadline())
        assert set(positions) == {"s1", "s2", "m", "t"}
