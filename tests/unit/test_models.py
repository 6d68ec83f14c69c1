"""Tests for the canonical graph model."""

from diagram_core.models import (
    AnchorSide,
    Graph,
    GraphEdge,
    GraphNode,
    NodeKind,
    Position,
    Size,
)


# -----------------------------------------------------------------------------
# Test: GraphNode
# -----------------------------------------------------------------------------

class TestGraphNode:
    """Tests for GraphNode."""

    def test_unknown_kind_falls_back_to_box(self):
        """Unknown kinds should become the generic box."""
        assert GraphNode(id="a", kind="hexagon").kind == NodeKind.BOX
        assert GraphNode(id="a", kind=None).kind == NodeKind.BOX

    def test_from_json_dict_generator_shape(self):
        """Should accept `type`, `data.label`, width/height and keep extras."""
        node = GraphNode.from_json_dict({
            "id": "a",
            "type": "decision",
            "data": {"label": "Go?", "icon": "aws-s3"},
            "width": 80,
            "height": 40,
            "parentId": "grp",
            "subtitle": "first",
        })
        assert node.kind == NodeKind.DECISION
        assert node.label == "Go?"
        assert node.size == Size(width=80, height=40)
        assert node.parent_id == "grp"
        assert node.attributes == {"icon": "aws-s3", "subtitle": "first"}

    def test_from_json_dict_ignores_non_object_attributes(self):
        """Should treat attribute payloads that are not objects as empty."""
        node = GraphNode.from_json_dict({"id": "a", "attributes": [1, 2], "data": "x"})
        assert node.attributes == {}

    def test_from_json_dict_numeric_id(self):
        """Numeric ids should be stringified."""
        assert GraphNode.from_json_dict({"id": 7}).id == "7"

    def test_resolved_size_defaults(self):
        """Missing sizes should fall back to the kind default."""
        assert GraphNode(id="a").resolved_size() == Size(width=150, height=50)
        assert GraphNode(id="m", kind=NodeKind.MIND_MAP).resolved_size() == Size(width=170, height=44)

    def test_bounds_and_center(self):
        node = GraphNode(id="a", position=Position(x=10, y=20), size=Size(width=100, height=40))
        assert node.bounds() == (10, 20, 110, 60)
        assert node.center() == (60, 40)

    def test_moved_to_returns_copy(self):
        """moved_to should leave the original untouched."""
        node = GraphNode(id="a", position=Position(x=0, y=0))
        moved = node.moved_to(5, 6)
        assert moved.position == Position(x=5, y=6)
        assert node.position == Position(x=0, y=0)

    def test_to_json_dict_omits_unset(self):
        data = GraphNode(id="a", label="A").to_json_dict()
        assert data == {"id": "a", "kind": "box", "label": "A"}


# -----------------------------------------------------------------------------
# Test: GraphEdge
# -----------------------------------------------------------------------------

class TestGraphEdge:
    """Tests for GraphEdge."""

    def test_legacy_from_to(self):
        """Legacy from/to should convert to source/target."""
        edge = GraphEdge.model_validate({"from": "a", "to": "b"})
        assert edge.source == "a"
        assert edge.target == "b"

    def test_handles_become_anchors(self):
        """sourceHandle/targetHandle should map onto anchor sides."""
        edge = GraphEdge.from_json_dict({
            "source": "a",
            "target": "b",
            "sourceHandle": "Right",
            "targetHandle": "middle",
            "data": {"label": "yes"},
        })
        assert edge.source_anchor == AnchorSide.RIGHT
        assert edge.target_anchor is None
        assert edge.label == "yes"

    def test_anchor_members_kept(self):
        """Should keep AnchorSide members passed to the constructor."""
        edge = GraphEdge(source="a", target="b",
                         source_anchor=AnchorSide.RIGHT, target_anchor=AnchorSide.LEFT)
        assert (edge.source_anchor, edge.target_anchor) == (AnchorSide.RIGHT, AnchorSide.LEFT)

    def test_non_string_anchor_ignored(self):
        edge = GraphEdge(source="a", target="b", source_anchor=3, target_anchor=["top"])
        assert (edge.source_anchor, edge.target_anchor) == (None, None)

    def test_from_json_dict_ignores_non_object_attributes(self):
        edge = GraphEdge.from_json_dict({"source": "a", "target": "b", "attributes": [1, 2], "data": "x"})
        assert edge.attributes == {}

    def test_to_json_dict_includes_anchors_when_set(self):
        edge = GraphEdge(id="e", source="a", target="b", source_anchor="top")
        data = edge.to_json_dict()
        assert data["source_anchor"] == "top"
        assert "target_anchor" not in data


# -----------------------------------------------------------------------------
# Test: Graph
# -----------------------------------------------------------------------------

class TestGraph:
    """Tests for Graph invariants."""

    def test_drops_duplicate_nodes_first_wins(self):
        graph = Graph(nodes=[
            GraphNode(id="a", label="first"),
            GraphNode(id="a", label="second"),
        ])
        assert len(graph.nodes) == 1
        assert graph.nodes[0].label == "first"

    def test_drops_dangling_edges(self):
        """Edges must always resolve to existing nodes."""
        graph = Graph(
            nodes=[GraphNode(id="a"), GraphNode(id="b")],
            edges=[
                GraphEdge(id="ok", source="a", target="b"),
                GraphEdge(id="bad", source="a", target="zz"),
            ],
        )
        assert [e.id for e in graph.edges] == ["ok"]

    def test_from_json_dict_skips_malformed_members(self):
        graph = Graph.from_json_dict({
            "nodes": [{"id": "a"}, "junk", {"id": "b", "type": "terminal"}],
            "edges": [{"source": "a"}, {"source": "a", "target": "b", "id": "e1"}, 3],
        })
        assert [n.id for n in graph.nodes] == ["a", "b"]
        assert graph.nodes[1].kind == NodeKind.TERMINAL
        assert [e.id for e in graph.edges] == ["e1"]

    def test_with_nodes_leaves_original_untouched(self):
        graph = Graph(nodes=[GraphNode(id="a")])
        updated = graph.with_nodes([GraphNode(id="a", label="new"), GraphNode(id="b")])
        assert len(graph.nodes) == 1
        assert graph.nodes[0].label == ""
        assert len(updated.nodes) == 2

    def test_lookup_helpers(self):
        graph = Graph(
            nodes=[GraphNode(id="a"), GraphNode(id="b")],
            edges=[GraphEdge(id="e", source="a", target="b")],
        )
        assert graph.get_node("b").id == "b"
        assert graph.get_node("zz") is None
        assert graph.get_edge("e").target == "b"
        assert set(graph.node_map()) == {"a", "b"}

    def test_json_round_trip_keeps_structure(self):
        graph = Graph(
            nodes=[GraphNode(id="a", kind=NodeKind.NOTE, label="A", attributes={"icon": "x"})],
            edges=[],
        )
        restored = Graph.from_json_dict(graph.to_json_dict())
        assert restored.nodes[0].kind == NodeKind.NOTE
        assert restored.nodes[0].attributes == {"icon": "x"}
