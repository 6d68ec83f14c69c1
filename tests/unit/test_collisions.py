"""Tests for the collision resolver."""

from conftest import boxes_overlap

from diagram_core.collisions import resolve_collisions, resolve_graph_collisions
from diagram_core.models import Graph, GraphNode, Position, Size


def box(node_id, x, y, width=100, height=50, parent_id=None):
    return GraphNode(
        id=node_id,
        position=Position(x=x, y=y),
        size=Size(width=width, height=height),
        parent_id=parent_id,
    )


# -----------------------------------------------------------------------------
# Test: resolve_collisions
# -----------------------------------------------------------------------------

class TestResolveCollisions:
    """Tests for resolve_collisions."""

    def test_separates_along_smaller_overlap(self):
        """Should push apart along Y when the Y overlap is smaller."""
        a, b = resolve_collisions(
            [box("a", 0, 0), box("b", 10, 0)], margin=0, overlap_tolerance=0.5
        )
        assert (a.position.x, a.position.y) == (0, -25)
        assert (b.position.x, b.position.y) == (10, 25)

    def test_tie_pushes_along_x(self):
        a, b = resolve_collisions(
            [box("a", 0, 0, 100, 100), box("b", 0, 0, 100, 100)],
            margin=0,
            overlap_tolerance=0.5,
        )
        assert (a.position.x, a.position.y) == (-50, 0)
        assert (b.position.x, b.position.y) == (50, 0)

    def test_untouched_nodes_are_same_objects(self):
        far = box("far", 1000, 1000)
        unplaced = GraphNode(id="u")
        nodes = [box("a", 0, 0), box("b", 10, 0), far, unplaced]
        result = resolve_collisions(nodes, margin=0, overlap_tolerance=0.5)
        assert result[2] is far
        assert result[3] is unplaced
        assert [n.id for n in result] == ["a", "b", "far", "u"]

    def test_does_not_modify_input(self):
        nodes = [box("a", 0, 0), box("b", 10, 0)]
        resolve_collisions(nodes, margin=0)
        assert nodes[0].position == Position(x=0, y=0)
        assert nodes[1].position == Position(x=10, y=0)

    def test_single_node_is_noop(self):
        only = box("a", 0, 0)
        assert resolve_collisions([only]) == [only]

    def test_overlap_within_tolerance_ignored(self):
        a = box("a", 0, 0)
        b = box("b", 99.8, 0)
        result = resolve_collisions([a, b], margin=0, overlap_tolerance=0.5)
        assert result[0] is a
        assert result[1] is b

    def test_crowd_ends_without_overlap(self):
        """Should clear a pile of stacked boxes given enough iterations."""
        nodes = [box(f"n{i}", i * 5, i * 3) for i in range(8)]
        result = resolve_collisions(nodes, margin=10, overlap_tolerance=0, max_iterations=500)
        for i, a in enumerate(result):
            for b in result[i + 1:]:
                assert not boxes_overlap(a, b, margin=10, tolerance=1e-6)

    def test_margin_defaults_from_settings(self, monkeypatch):
        """Should read the margin from the environment when none is given."""
        monkeypatch.setenv("DIAGRAM_CORE_COLLISION_MARGIN", "0")
        a = box("a", 0, 0)
        b = box("b", 110, 0)
        result = resolve_collisions([a, b])
        assert result[0] is a
        assert result[1] is b

    def test_default_margin_separates_near_boxes(self):
        a, b = resolve_collisions([box("a", 0, 0), box("b", 110, 0)])
        assert b.position.x - (a.position.x + 100) >= 30 - 1e-9


# -----------------------------------------------------------------------------
# Test: resolve_graph_collisions
# -----------------------------------------------------------------------------

class TestResolveGraphCollisions:
    """Tests for sibling-scoped resolution."""

    def test_children_do_not_push_top_level_nodes(self):
        graph = Graph(nodes=[
            box("g", 0, 0, 400, 300),
            box("c1", 0, 0, parent_id="g"),
            box("c2", 10, 0, parent_id="g"),
        ])
        result = resolve_graph_collisions(graph, margin=0, overlap_tolerance=0.5)
        nodes = result.node_map()
        assert nodes["g"].position == Position(x=0, y=0)
        assert not boxes_overlap(nodes["c1"], nodes["c2"], tolerance=0.5)

    def test_keeps_node_order_and_edges(self, tree_graph):
        placed = tree_graph.with_nodes([
            n.moved_to(i * 10, 0) for i, n in enumerate(tree_graph.nodes)
        ])
        result = resolve_graph_collisions(placed, margin=0)
        assert [n.id for n in result.nodes] == [n.id for n in tree_graph.nodes]
        assert len(result.edges) == len(tree_graph.edges)
