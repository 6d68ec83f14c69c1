"""
Layout algorithms for graph nodes.

Provides the three algorithm families the engine chooses between:
- Tree: tidy tree for rooted, mind-map style hierarchies
- Layered: rank-based layout for directed graphs and forests
- Force: spring/repulsion simulation for dense or cyclic graphs

Every function here is pure: it reads node sizes and edges from the graph
it is given and returns a table of top-left positions keyed by node id.
Nothing on the input graph is changed.
"""

import math
import time
from collections import defaultdict
from enum import Enum
from typing import Optional

from .analysis import assign_levels, back_edges, children_map, find_roots
from .exceptions import LayoutTimeoutError
from .models import Graph, Position

# Default layout parameters
DEFAULT_SPACING_X = 80
DEFAULT_SPACING_Y = 60
DEFAULT_START_X = 100
DEFAULT_START_Y = 100

Spacing = tuple[float, float]


class LayoutDirection(str, Enum):
    """Main flow direction of a layout."""
    TB = "TB"  # top to bottom
    BT = "BT"  # bottom to top
    LR = "LR"  # left to right
    RL = "RL"  # right to left

    @property
    def is_vertical(self) -> bool:
        return self in (LayoutDirection.TB, LayoutDirection.BT)

    @property
    def is_reversed(self) -> bool:
        return self in (LayoutDirection.BT, LayoutDirection.RL)


class LayoutAlgorithm(str, Enum):
    """Algorithm families the engine can run."""
    TREE = "tree"
    LAYERED = "layered"
    FORCE = "force"


class Deadline:
    """Wall-clock budget polled by the algorithms between steps."""

    def __init__(self, seconds: Optional[float] = None):
        self.seconds = seconds
        self._expires = None if seconds is None else time.monotonic() + seconds

    def check(self, stage: str) -> None:
        if self._expires is not None and time.monotonic() > self._expires:
            raise LayoutTimeoutError(
                f"Layout exceeded its {self.seconds}s budget",
                {"stage": stage},
            )


def _extents(graph: Graph, direction: LayoutDirection) -> dict[str, tuple[float, float]]:
    """(main, cross) extent of every node for the given flow direction."""
    extents = {}
    for node in graph.nodes:
        size = node.resolved_size()
        if direction.is_vertical:
            extents[node.id] = (size.height, size.width)
        else:
            extents[node.id] = (size.width, size.height)
    return extents


def _gaps(direction: LayoutDirection, spacing: Spacing) -> tuple[float, float]:
    """(main, cross) gap for the given flow direction."""
    spacing_x, spacing_y = spacing
    if direction.is_vertical:
        return spacing_y, spacing_x
    return spacing_x, spacing_y


def _to_positions(
    placed: dict[str, tuple[float, float]],
    extents: dict[str, tuple[float, float]],
    direction: LayoutDirection,
    start_x: float,
    start_y: float,
) -> dict[str, Position]:
    """
    Map (main, cross) top-left coordinates onto x/y, mirroring for BT/RL,
    and translate so the drawing starts at (start_x, start_y).
    """
    raw: dict[str, tuple[float, float]] = {}
    for node_id, (main, cross) in placed.items():
        main_extent = extents[node_id][0]
        if direction.is_reversed:
            main = -main - main_extent
        raw[node_id] = (cross, main) if direction.is_vertical else (main, cross)

    if not raw:
        return {}
    min_x = min(x for x, _ in raw.values())
    min_y = min(y for _, y in raw.values())
    return {
        node_id: Position(x=x - min_x + start_x, y=y - min_y + start_y)
        for node_id, (x, y) in raw.items()
    }


def _level_offsets(
    levels: dict[str, int],
    extents: dict[str, tuple[float, float]],
    main_gap: float,
) -> dict[int, float]:
    """Main-axis offset of each level; a level is as thick as its thickest node."""
    thickness: dict[int, float] = defaultdict(float)
    for node_id, level in levels.items():
        thickness[level] = max(thickness[level], extents[node_id][0])

    offsets: dict[int, float] = {}
    cursor = 0.0
    for level in sorted(thickness):
        offsets[level] = cursor
        cursor += thickness[level] + main_gap
    return offsets


def tree_layout(
    graph: Graph,
    direction: LayoutDirection = LayoutDirection.LR,
    spacing: Spacing = (DEFAULT_SPACING_X, DEFAULT_SPACING_Y),
    deadline: Optional[Deadline] = None,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
) -> dict[str, Position]:
    """
    Arrange a rooted tree (or forest) as a tidy tree.

    Each subtree reserves a band on the cross axis wide enough for its
    children; parents are centred over their children and levels are laid
    along the main axis. Nodes reached a second time (not a tree after all)
    are treated as extra roots so every node still gets a position.

    Args:
        graph: Graph to arrange
        direction: Flow direction from root to leaves
        spacing: Horizontal and vertical gaps between nodes
        deadline: Optional time budget
        start_x: X coordinate of the drawing's left edge
        start_y: Y coordinate of the drawing's top edge

    Returns:
        Top-left position per node id
    """
    deadline = deadline or Deadline()
    if not graph.nodes:
        return {}

    extents = _extents(graph, direction)
    main_gap, cross_gap = _gaps(direction, spacing)
    children = children_map(graph)

    # Spanning forest: claim each node for its first parent only
    roots = find_roots(graph) or [graph.nodes[0].id]
    tree_children: dict[str, list[str]] = {nid: [] for nid in children}
    levels: dict[str, int] = {}
    order: list[str] = []
    pending = list(roots) + [n.id for n in graph.nodes]
    forest_roots: list[str] = []

    for root in pending:
        if root in levels:
            continue
        forest_roots.append(root)
        levels[root] = 0
        stack = [root]
        while stack:
            current = stack.pop()
            order.append(current)
            for child in children[current]:
                if child not in levels:
                    levels[child] = levels[current] + 1
                    tree_children[current].append(child)
                    stack.append(child)
        deadline.check("tree traversal")

    # Post-order: band width of every subtree
    band: dict[str, float] = {}
    for node_id in reversed(order):
        kids = tree_children[node_id]
        own = extents[node_id][1]
        if kids:
            total = sum(band[k] for k in kids) + cross_gap * (len(kids) - 1)
            band[node_id] = max(own, total)
        else:
            band[node_id] = own
    deadline.check("tree measuring")

    level_offsets = _level_offsets(levels, extents, main_gap)

    # Pre-order: place each subtree inside its band
    centers: dict[str, float] = {}
    starts: list[tuple[str, float]] = []
    cursor = 0.0
    for root in forest_roots:
        starts.append((root, cursor))
        cursor += band[root] + cross_gap

    placed: dict[str, tuple[float, float]] = {}
    while starts:
        node_id, band_start = starts.pop()
        kids = tree_children[node_id]
        if kids:
            total = sum(band[k] for k in kids) + cross_gap * (len(kids) - 1)
            child_cursor = band_start + (band[node_id] - total) / 2
            first_center = child_cursor + band[kids[0]] / 2
            for kid in kids:
                starts.append((kid, child_cursor))
                child_cursor += band[kid] + cross_gap
            last_center = child_cursor - cross_gap - band[kids[-1]] / 2
            centers[node_id] = (first_center + last_center) / 2
        else:
            centers[node_id] = band_start + band[node_id] / 2

        cross = centers[node_id] - extents[node_id][1] / 2
        placed[node_id] = (level_offsets[levels[node_id]], cross)
    deadline.check("tree placement")

    return _to_positions(placed, extents, direction, start_x, start_y)


def layered_layout(
    graph: Graph,
    direction: LayoutDirection = LayoutDirection.TB,
    spacing: Spacing = (DEFAULT_SPACING_X, DEFAULT_SPACING_Y),
    deadline: Optional[Deadline] = None,
    sweeps: int = 4,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
) -> dict[str, Position]:
    """
    Arrange a directed graph in ranks.

    Cycles are broken by ignoring DFS back edges, ranks come from the
    longest path to each node, and the order inside each rank is refined
    with alternating barycenter sweeps to reduce crossings. Every rank is
    centred on the widest one.

    Args:
        graph: Graph to arrange
        direction: Flow direction from first rank to last
        spacing: Horizontal and vertical gaps between nodes
        deadline: Optional time budget
        sweeps: Number of down+up barycenter passes

    Returns:
        Top-left position per node id
    """
    deadline = deadline or Deadline()
    if not graph.nodes:
        return {}

    extents = _extents(graph, direction)
    main_gap, cross_gap = _gaps(direction, spacing)
    levels = assign_levels(graph)
    deadline.check("rank assignment")

    ignored = back_edges(graph)
    parents: dict[str, list[str]] = defaultdict(list)
    kids: dict[str, list[str]] = defaultdict(list)
    for edge in graph.edges:
        if edge.source == edge.target or (edge.source, edge.target) in ignored:
            continue
        parents[edge.target].append(edge.source)
        kids[edge.source].append(edge.target)

    ranks: dict[int, list[str]] = defaultdict(list)
    for node in graph.nodes:
        ranks[levels[node.id]].append(node.id)
    max_rank = max(ranks)

    index: dict[str, float] = {}
    for members in ranks.values():
        for i, node_id in enumerate(members):
            index[node_id] = i

    def reorder(rank: int, neighbours: dict[str, list[str]]) -> None:
        members = ranks[rank]
        keyed = []
        for i, node_id in enumerate(members):
            linked = [index[n] for n in neighbours[node_id]]
            key = sum(linked) / len(linked) if linked else index[node_id]
            keyed.append((key, i, node_id))
        keyed.sort()
        ranks[rank] = [node_id for _, _, node_id in keyed]
        for i, node_id in enumerate(ranks[rank]):
            index[node_id] = i

    for _ in range(sweeps):
        for rank in range(1, max_rank + 1):
            if rank in ranks:
                reorder(rank, parents)
        for rank in range(max_rank - 1, -1, -1):
            if rank in ranks:
                reorder(rank, kids)
        deadline.check("crossing reduction")

    level_offsets = _level_offsets(levels, extents, main_gap)

    widths = {
        rank: sum(extents[n][1] for n in members) + cross_gap * (len(members) - 1)
        for rank, members in ranks.items()
    }
    widest = max(widths.values())

    placed: dict[str, tuple[float, float]] = {}
    for rank, members in ranks.items():
        cursor = (widest - widths[rank]) / 2
        for node_id in members:
            placed[node_id] = (level_offsets[rank], cursor)
            cursor += extents[node_id][1] + cross_gap

    return _to_positions(placed, extents, direction, start_x, start_y)


def force_layout(
    graph: Graph,
    spacing: Spacing = (DEFAULT_SPACING_X, DEFAULT_SPACING_Y),
    deadline: Optional[Deadline] = None,
    iterations: int = 200,
    repulsion: float = 20000,
    attraction: float = 0.02,
    damping: float = 0.1,
    min_distance: float = 50,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
) -> dict[str, Position]:
    """
    Arrange nodes using a force-directed layout algorithm.

    Simulates physical forces:
    - All nodes repel each other (like charged particles)
    - Connected nodes attract each other (like springs)

    Nodes start on a circle in node order, so the result depends only on
    structure and sizes.

    Args:
        graph: Graph to arrange
        spacing: Gaps used to size the initial circle
        deadline: Optional time budget
        iterations: Number of simulation iterations
        repulsion: Strength of repulsion between all nodes
        attraction: Strength of attraction along edges
        damping: Factor to reduce movement each iteration
        min_distance: Minimum distance to clamp forces

    Returns:
        Top-left position per node id
    """
    deadline = deadline or Deadline()
    nodes = graph.nodes
    if not nodes:
        return {}

    sizes = {n.id: n.resolved_size() for n in nodes}
    centers: dict[str, list[float]] = {}

    # Initialize with circular layout for better starting positions
    slot = max(max(s.width, s.height) for s in sizes.values()) + max(spacing)
    radius = max(200.0, slot * len(nodes) / (2 * math.pi))
    for i, node in enumerate(nodes):
        angle = 2 * math.pi * i / len(nodes)
        centers[node.id] = [radius * math.cos(angle), radius * math.sin(angle)]

    if len(nodes) > 1:
        for _ in range(iterations):
            forces: dict[str, list[float]] = {n.id: [0.0, 0.0] for n in nodes}

            # Repulsion between all node pairs (Coulomb's law)
            for i, n1 in enumerate(nodes):
                for n2 in nodes[i + 1:]:
                    dx = centers[n1.id][0] - centers[n2.id][0]
                    dy = centers[n1.id][1] - centers[n2.id][1]
                    dist = max(min_distance, math.hypot(dx, dy))
                    force = repulsion / (dist * dist)
                    fx = force * dx / dist
                    fy = force * dy / dist
                    forces[n1.id][0] += fx
                    forces[n1.id][1] += fy
                    forces[n2.id][0] -= fx
                    forces[n2.id][1] -= fy

            # Attraction along edges (Hooke's law)
            for edge in graph.edges:
                if edge.source == edge.target:
                    continue
                dx = centers[edge.target][0] - centers[edge.source][0]
                dy = centers[edge.target][1] - centers[edge.source][1]
                dist = max(min_distance, math.hypot(dx, dy))
                force = dist * attraction
                fx = force * dx / dist
                fy = force * dy / dist
                forces[edge.source][0] += fx
                forces[edge.source][1] += fy
                forces[edge.target][0] -= fx
                forces[edge.target][1] -= fy

            for node in nodes:
                centers[node.id][0] += forces[node.id][0] * damping
                centers[node.id][1] += forces[node.id][1] * damping

            deadline.check("force simulation")

    min_x = min(centers[n.id][0] - sizes[n.id].width / 2 for n in nodes)
    min_y = min(centers[n.id][1] - sizes[n.id].height / 2 for n in nodes)
    return {
        n.id: Position(
            x=centers[n.id][0] - sizes[n.id].width / 2 - min_x + start_x,
            y=centers[n.id][1] - sizes[n.id].height / 2 - min_y + start_y,
        )
        for n in nodes
    }


def run_algorithm(
    algorithm: LayoutAlgorithm,
    graph: Graph,
    direction: LayoutDirection,
    spacing: Spacing,
    deadline: Deadline,
) -> dict[str, Position]:
    """Dispatch on the algorithm tag."""
    if algorithm == LayoutAlgorithm.TREE:
        return tree_layout(graph, direction, spacing, deadline)
    if algorithm == LayoutAlgorithm.LAYERED:
        return layered_layout(graph, direction, spacing, deadline)
    return force_layout(graph, spacing, deadline)
