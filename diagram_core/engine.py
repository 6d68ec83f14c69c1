"""
Layout engine - chooses an algorithm family for a graph, lays out container
contents before their containers, removes leftover overlaps and settles
which side of each node every edge attaches to.

The engine never hands back a half-updated graph: if any step raises or
runs out of time, the caller gets its input graph back with `ok=False`.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from .analysis import describe_shape
from .collisions import resolve_collisions
from .config import get_settings
from .exceptions import LayoutError, LayoutTimeoutError
from .layout import (
    DEFAULT_SPACING_X,
    DEFAULT_SPACING_Y,
    Deadline,
    LayoutAlgorithm,
    LayoutDirection,
    Spacing,
    run_algorithm,
)
from .models import AnchorSide, Graph, GraphEdge, GraphNode, NodeKind, Position, Size

logger = logging.getLogger(__name__)

# Edges per node above which a cyclic graph is drawn with forces
DENSE_GRAPH_THRESHOLD = 1.5
# Preferred width:height of the finished drawing
TARGET_ASPECT_RATIO = 1.6


@dataclass
class LayoutOptions:
    """Caller overrides; anything left as None is inferred or read from settings."""
    direction: Optional[LayoutDirection] = None
    spacing: Optional[Spacing] = None
    algorithm: Optional[LayoutAlgorithm] = None
    timeout_seconds: Optional[float] = None
    group_padding: Optional[float] = None
    collision_margin: Optional[float] = None
    collision_tolerance: Optional[float] = None
    collision_max_iterations: Optional[int] = None


@dataclass
class LayoutResult:
    """Outcome of a layout run. On failure `graph` is the untouched input."""
    graph: Graph
    ok: bool
    algorithm: Optional[LayoutAlgorithm] = None
    direction: Optional[LayoutDirection] = None
    error: Optional[str] = None


def choose_algorithm(graph: Graph) -> LayoutAlgorithm:
    """
    Pick an algorithm family from the shape of the graph.

    - A single rooted tree gets the tree layout
    - A cyclic graph with more than DENSE_GRAPH_THRESHOLD edges per node
      gets the force layout
    - Everything else (forests, DAGs, sparse cycles, loose nodes) gets the
      layered layout
    """
    shape = describe_shape(graph)
    if shape.is_tree:
        return LayoutAlgorithm.TREE
    if shape.is_cyclic and shape.density >= DENSE_GRAPH_THRESHOLD:
        return LayoutAlgorithm.FORCE
    return LayoutAlgorithm.LAYERED


def default_spacing(algorithm: LayoutAlgorithm) -> Spacing:
    if algorithm == LayoutAlgorithm.FORCE:
        return (DEFAULT_SPACING_X, DEFAULT_SPACING_X)
    return (DEFAULT_SPACING_X, DEFAULT_SPACING_Y)


def infer_direction(
    graph: Graph,
    algorithm: LayoutAlgorithm,
    spacing: Optional[Spacing] = None,
) -> LayoutDirection:
    """
    Guess the flow direction when the caller did not choose one.

    Mind maps read left to right. Otherwise the drawing's expected bounding
    box (levels along the main axis, widest level across it) is estimated
    for TB and LR and the one closer to TARGET_ASPECT_RATIO wins. Dense
    graphs keep TB on a tie, since long rank-skipping edges cross less when
    ranks are wide rows.
    """
    if algorithm == LayoutAlgorithm.FORCE or not graph.nodes:
        return LayoutDirection.TB
    if all(n.kind == NodeKind.MIND_MAP for n in graph.nodes):
        return LayoutDirection.LR

    spacing_x, spacing_y = spacing or default_spacing(algorithm)
    shape = describe_shape(graph)
    sizes = [n.resolved_size() for n in graph.nodes]
    avg_w = sum(s.width for s in sizes) / len(sizes) + spacing_x
    avg_h = sum(s.height for s in sizes) / len(sizes) + spacing_y

    def aspect_penalty(width: float, height: float) -> float:
        return abs(math.log((width / height) / TARGET_ASPECT_RATIO))

    tb = aspect_penalty(shape.breadth * avg_w, shape.depth * avg_h)
    lr = aspect_penalty(shape.depth * avg_w, shape.breadth * avg_h)

    if math.isclose(tb, lr):
        if algorithm == LayoutAlgorithm.TREE and shape.density < DENSE_GRAPH_THRESHOLD:
            return LayoutDirection.LR
        return LayoutDirection.TB
    return LayoutDirection.TB if tb < lr else LayoutDirection.LR


def infer_anchor_sides(
    source: GraphNode,
    target: GraphNode,
    direction: Optional[LayoutDirection] = None,
) -> tuple[AnchorSide, AnchorSide]:
    """
    Choose the (source, target) sides for an edge between two placed nodes.

    With a flow direction the edge leaves along the flow (e.g. right side
    to left side for LR) whenever the target lies fully past the source in
    that direction; otherwise it uses the perpendicular sides. Without a
    direction the dominant axis between the two centres decides.
    """
    sx, sy, sright, sbottom = source.bounds()
    tx, ty, tright, tbottom = target.bounds()
    scx, scy = source.center()
    tcx, tcy = target.center()
    dx = tcx - scx
    dy = tcy - scy

    def horizontal() -> tuple[AnchorSide, AnchorSide]:
        if dx >= 0:
            return (AnchorSide.RIGHT, AnchorSide.LEFT)
        return (AnchorSide.LEFT, AnchorSide.RIGHT)

    def vertical() -> tuple[AnchorSide, AnchorSide]:
        if dy >= 0:
            return (AnchorSide.BOTTOM, AnchorSide.TOP)
        return (AnchorSide.TOP, AnchorSide.BOTTOM)

    if direction is None:
        return horizontal() if abs(dx) > abs(dy) else vertical()
    if direction == LayoutDirection.LR:
        return (AnchorSide.RIGHT, AnchorSide.LEFT) if tx >= sright else vertical()
    if direction == LayoutDirection.RL:
        return (AnchorSide.LEFT, AnchorSide.RIGHT) if tright <= sx else vertical()
    if direction == LayoutDirection.TB:
        return (AnchorSide.BOTTOM, AnchorSide.TOP) if ty >= sbottom else horizontal()
    return (AnchorSide.TOP, AnchorSide.BOTTOM) if tbottom <= sy else horizontal()


def layout_graph(graph: Graph, options: Optional[LayoutOptions] = None) -> LayoutResult:
    """
    Lay out a graph and return a new, fully positioned graph.

    Steps:
    1. Children of each container are laid out in the container's own
       coordinate space (innermost containers first) and the container is
       resized to their bounding box plus padding
    2. Top-level nodes are laid out, with edges into containers lifted to
       the container itself
    3. Leftover overlaps among siblings are pushed apart
    4. Edges without anchors get sides matching the final geometry

    The result depends only on structure and sizes, so laying out an
    unchanged graph twice gives the same positions.

    Args:
        graph: Graph to lay out (not modified)
        options: Overrides for direction, spacing, algorithm and limits

    Returns:
        LayoutResult; on any failure `graph` is the input and `ok` is False
    """
    options = options or LayoutOptions()
    if not graph.nodes:
        return LayoutResult(graph=graph, ok=True)

    try:
        return _layout(graph, options)
    except LayoutTimeoutError as e:
        logger.warning("Layout timed out, keeping input graph: %s", e)
        return LayoutResult(graph=graph, ok=False, error=str(e))
    except Exception as e:
        logger.warning("Layout failed, keeping input graph: %s", e, exc_info=True)
        return LayoutResult(graph=graph, ok=False, error=str(e) or type(e).__name__)


def _effective_parents(graph: Graph) -> dict[str, Optional[str]]:
    """
    Container of every node, or None for top-level nodes.

    A parent id that does not exist, or a parent chain that loops back on
    itself, makes the node top-level.
    """
    declared = {n.id: n.parent_id for n in graph.nodes}
    parents: dict[str, Optional[str]] = {}
    for node in graph.nodes:
        parent = node.parent_id if node.parent_id in declared else None
        seen = {node.id}
        current = parent
        while current is not None:
            if current in seen:
                parent = None
                break
            seen.add(current)
            nxt = declared.get(current)
            current = nxt if nxt in declared else None
        parents[node.id] = parent
    return parents


def _depth(node_id: str, parents: dict[str, Optional[str]]) -> int:
    depth = 0
    current = parents[node_id]
    while current is not None:
        depth += 1
        current = parents[current]
    return depth


def _lift(node_id: str, scope: Optional[str], parents: dict[str, Optional[str]]) -> Optional[str]:
    """Ancestor of `node_id` (or itself) whose container is `scope`, if any."""
    current: Optional[str] = node_id
    while current is not None:
        if parents[current] == scope:
            return current
        current = parents[current]
    return None


def _layout(graph: Graph, options: LayoutOptions) -> LayoutResult:
    settings = get_settings()
    timeout = options.timeout_seconds if options.timeout_seconds is not None else settings.layout_timeout_seconds
    padding = options.group_padding if options.group_padding is not None else settings.group_padding
    margin = options.collision_margin if options.collision_margin is not None else settings.layout_collision_margin
    tolerance = options.collision_tolerance if options.collision_tolerance is not None else settings.layout_collision_tolerance
    max_iterations = (
        options.collision_max_iterations
        if options.collision_max_iterations is not None
        else settings.layout_collision_max_iterations
    )
    deadline = Deadline(timeout)

    nodes_by_id = graph.node_map()
    parents = _effective_parents(graph)
    sizes: dict[str, Size] = {n.id: n.resolved_size() for n in graph.nodes}
    local: dict[str, Position] = {}

    containers = {p for p in parents.values() if p is not None}
    scopes: list[Optional[str]] = sorted(containers, key=lambda c: -_depth(c, parents))
    scopes.append(None)

    top_algorithm: Optional[LayoutAlgorithm] = None
    top_direction: Optional[LayoutDirection] = None

    for scope in scopes:
        members = [n for n in graph.nodes if parents[n.id] == scope]
        edges: list[GraphEdge] = []
        seen_pairs: set[tuple[str, str]] = set()
        for edge in graph.edges:
            source = _lift(edge.source, scope, parents)
            target = _lift(edge.target, scope, parents)
            if source is None or target is None or source == target:
                continue
            if (source, target) in seen_pairs:
                continue
            seen_pairs.add((source, target))
            edges.append(GraphEdge(id=edge.id, source=source, target=target))

        subgraph = Graph(
            nodes=[n.model_copy(update={"size": sizes[n.id], "parent_id": None}) for n in members],
            edges=edges,
        )
        algorithm = options.algorithm or choose_algorithm(subgraph)
        spacing = options.spacing or default_spacing(algorithm)
        direction = options.direction or infer_direction(subgraph, algorithm, spacing)

        positions = run_algorithm(algorithm, subgraph, direction, spacing, deadline)
        missing = [n.id for n in subgraph.nodes if n.id not in positions]
        if missing:
            raise LayoutError("Algorithm left nodes unplaced", {"nodes": missing, "algorithm": algorithm.value})

        placed = [n.model_copy(update={"position": positions[n.id]}) for n in subgraph.nodes]
        placed = resolve_collisions(placed, margin, tolerance, max_iterations)
        deadline.check("collision resolution")

        if scope is None:
            for node in placed:
                local[node.id] = node.position
            top_algorithm, top_direction = algorithm, direction
            logger.debug(
                "Laid out %d top-level node(s) with %s/%s", len(placed), algorithm.value, direction.value
            )
            continue

        # Shift children into the container's padded interior and size it
        min_x = min(n.position.x for n in placed)
        min_y = min(n.position.y for n in placed)
        max_x = max(n.position.x + sizes[n.id].width for n in placed)
        max_y = max(n.position.y + sizes[n.id].height for n in placed)
        for node in placed:
            local[node.id] = Position(
                x=node.position.x - min_x + padding,
                y=node.position.y - min_y + padding,
            )
        sizes[scope] = Size(width=max_x - min_x + 2 * padding, height=max_y - min_y + 2 * padding)

    absolute: dict[str, Position] = {}
    for node_id in sorted(nodes_by_id, key=lambda nid: _depth(nid, parents)):
        parent = parents[node_id]
        offset = local[node_id]
        if parent is None:
            absolute[node_id] = offset
        else:
            base = absolute[parent]
            absolute[node_id] = Position(x=base.x + offset.x, y=base.y + offset.y)

    new_nodes = []
    for node in graph.nodes:
        update = {"position": absolute[node.id]}
        if node.id in containers:
            update["size"] = sizes[node.id]
        new_nodes.append(node.model_copy(update=update))

    anchor_direction = None if top_algorithm == LayoutAlgorithm.FORCE else top_direction
    placed_by_id = {n.id: n for n in new_nodes}
    new_edges = []
    for edge in graph.edges:
        if edge.source_anchor is not None and edge.target_anchor is not None:
            new_edges.append(edge)
            continue
        source_side, target_side = infer_anchor_sides(
            placed_by_id[edge.source], placed_by_id[edge.target], anchor_direction
        )
        new_edges.append(edge.model_copy(update={
            "source_anchor": edge.source_anchor or source_side,
            "target_anchor": edge.target_anchor or target_side,
        }))

    return LayoutResult(
        graph=Graph(nodes=new_nodes, edges=new_edges),
        ok=True,
        algorithm=top_algorithm,
        direction=top_direction,
    )
