"""Shared fixtures for diagram core tests.

Graphs here are small, hand-built shapes that exercise each layout family:
a rooted tree, a DAG with a merge, a dense cycle and a container group.
"""

from typing import Iterable, Optional

import pytest

from diagram_core.config import get_settings
from diagram_core.models import Graph, GraphEdge, GraphNode, NodeKind


def make_graph(
    node_ids: Iterable[str],
    pairs: Iterable[tuple[str, str]],
    kind: NodeKind = NodeKind.BOX,
) -> Graph:
    """Build a graph with one labelled node per id and one edge per pair."""
    nodes = [GraphNode(id=nid, kind=kind, label=nid.upper()) for nid in node_ids]
    edges = [
        GraphEdge(id=f"{source}-{target}", source=source, target=target)
        for source, target in pairs
    ]
    return Graph(nodes=nodes, edges=edges)


def boxes_overlap(a: GraphNode, b: GraphNode, margin: float = 0.0, tolerance: float = 0.0) -> bool:
    """True if the margin-expanded boxes of two nodes overlap beyond tolerance on both axes."""
    ax, ay, ar, ab = a.bounds()
    bx, by, br, bb = b.bounds()
    px = min(ar + margin, br + margin) - max(ax - margin, bx - margin)
    py = min(ab + margin, bb + margin) - max(ay - margin, by - margin)
    return px > tolerance and py > tolerance


def sibling_groups(graph: Graph) -> dict[Optional[str], list[GraphNode]]:
    groups: dict[Optional[str], list[GraphNode]] = {}
    for node in graph.nodes:
        groups.setdefault(node.parent_id, []).append(node)
    return groups


@pytest.fixture(autouse=True)
def fresh_settings():
    """Make every test read settings from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def tree_graph() -> Graph:
    """r -> a, b; a -> a1, a2; b -> b1"""
    return make_graph(
        ["r", "a", "b", "a1", "a2", "b1"],
        [("r", "a"), ("r", "b"), ("a", "a1"), ("a", "a2"), ("b", "b1")],
    )


@pytest.fixture
def dag_graph() -> Graph:
    """Two sources merging into m, then t."""
    return make_graph(
        ["s1", "s2", "m", "t"],
        [("s1", "m"), ("s2", "m"), ("m", "t")],
    )


@pytest.fixture
def cycle_graph() -> Graph:
    """a -> b -> c -> a"""
    return make_graph(["a", "b", "c"], [("a", "b"), ("b", "c"), ("c", "a")])


@pytest.fixture
def dense_graph() -> Graph:
    """Four nodes, six edges, cyclic."""
    return make_graph(
        ["a", "b", "c", "d"],
        [("a", "b"), ("b", "c"), ("c", "d"), ("d", "a"), ("a", "c"), ("b", "d")],
    )


@pytest.fixture
def container_graph() -> Graph:
    """Container g holding c1 -> c2, with top-level x pointing into it."""
    return Graph(
        nodes=[
            GraphNode(id="g", kind=NodeKind.CONTAINER, label="Group"),
            GraphNode(id="c1", label="C1", parent_id="g"),
            GraphNode(id="c2", label="C2", parent_id="g"),
            GraphNode(id="x", label="X"),
        ],
        edges=[
            GraphEdge(id="x-c1", source="x", target="c1"),
            GraphEdge(id="c1-c2", source="c1", target="c2"),
        ],
    )
