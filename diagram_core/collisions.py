"""
Post-layout collision resolution.

Pushes overlapping node boxes apart with the naive O(n^2) pairwise pass
(the React Flow node-collision approach). It is meant for small graphs
that a layout has already roughly arranged, never as a layout on its own.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from .config import get_settings
from .models import Graph, GraphNode

logger = logging.getLogger(__name__)


@dataclass
class _Box:
    x: float
    y: float
    width: float
    height: float
    node: GraphNode
    moved: bool = False


def resolve_collisions(
    nodes: list[GraphNode],
    margin: Optional[float] = None,
    overlap_tolerance: Optional[float] = None,
    max_iterations: Optional[int] = None,
) -> list[GraphNode]:
    """
    Push overlapping nodes apart.

    Every positioned node is treated as its bounding box grown by `margin`
    on each side. Each iteration visits every unordered pair; when the
    overlap exceeds `overlap_tolerance` on both axes the pair is separated
    along the axis with the smaller overlap (X on a tie), each box moving
    half the distance. Stops after a pass with no movement or after
    `max_iterations` passes.

    Args:
        nodes: Nodes to separate (not modified)
        margin: Clearance kept around each node
        overlap_tolerance: Overlap ignored on either axis
        max_iterations: Upper bound on full passes

    Returns:
        New list in input order. Nodes that never moved, and nodes without
        a position, are the same objects that were passed in.
    """
    settings = get_settings()
    margin = settings.collision_margin if margin is None else margin
    overlap_tolerance = settings.collision_tolerance if overlap_tolerance is None else overlap_tolerance
    max_iterations = settings.collision_max_iterations if max_iterations is None else max_iterations

    boxes: list[_Box] = []
    for node in nodes:
        if node.position is None:
            continue
        size = node.resolved_size()
        boxes.append(_Box(
            x=node.position.x - margin,
            y=node.position.y - margin,
            width=size.width + margin * 2,
            height=size.height + margin * 2,
            node=node,
        ))

    if len(boxes) < 2:
        return list(nodes)

    for iteration in range(max_iterations):
        moved = False

        for i in range(len(boxes)):
            for j in range(i + 1, len(boxes)):
                a = boxes[i]
                b = boxes[j]

                dx = (a.x + a.width * 0.5) - (b.x + b.width * 0.5)
                dy = (a.y + a.height * 0.5) - (b.y + b.height * 0.5)

                px = (a.width + b.width) * 0.5 - abs(dx)
                py = (a.height + b.height) * 0.5 - abs(dy)

                if px > overlap_tolerance and py > overlap_tolerance:
                    a.moved = b.moved = moved = True
                    if px <= py:
                        shift = (px / 2) * (1 if dx > 0 else -1)
                        a.x += shift
                        b.x -= shift
                    else:
                        shift = (py / 2) * (1 if dy > 0 else -1)
                        a.y += shift
                        b.y -= shift

        if not moved:
            logger.debug("Collisions settled after %d iteration(s)", iteration + 1)
            break

    replaced = {
        id(box.node): box.node.moved_to(box.x + margin, box.y + margin)
        for box in boxes if box.moved
    }
    return [replaced.get(id(node), node) for node in nodes]


def resolve_graph_collisions(
    graph: Graph,
    margin: Optional[float] = None,
    overlap_tolerance: Optional[float] = None,
    max_iterations: Optional[int] = None,
) -> Graph:
    """
    Resolve collisions among siblings only.

    Nodes sharing a `parent_id` (top-level nodes share None) form one group;
    children of a container never push nodes outside it.
    """
    groups: dict[Optional[str], list[GraphNode]] = defaultdict(list)
    for node in graph.nodes:
        groups[node.parent_id].append(node)

    resolved: dict[str, GraphNode] = {}
    for members in groups.values():
        for node in resolve_collisions(members, margin, overlap_tolerance, max_iterations):
            resolved[node.id] = node

    return graph.with_nodes([resolved[n.id] for n in graph.nodes])
