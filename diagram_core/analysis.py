"""
Graph analysis - structural queries used by layout selection and by
mind-map rendering.

Every function here treats the graph as read-only.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from .models import NodeKind

if TYPE_CHECKING:
    from .models import Graph, GraphEdge


@dataclass
class ConnectedComponent:
    """A connected component in the graph."""
    node_ids: list[str] = field(default_factory=list)
    edge_count: int = 0

    @property
    def size(self) -> int:
        return len(self.node_ids)


@dataclass
class GraphShape:
    """Structural summary the layout engine classifies on."""
    node_count: int
    edge_count: int
    component_count: int
    is_tree: bool
    is_cyclic: bool
    density: float       # edges per node
    max_in_degree: int
    depth: int           # number of levels
    breadth: int         # widest level

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "component_count": self.component_count,
            "is_tree": self.is_tree,
            "is_cyclic": self.is_cyclic,
            "density": self.density,
            "max_in_degree": self.max_in_degree,
            "depth": self.depth,
            "breadth": self.breadth,
        }


def find_connected_components(graph: "Graph") -> list[ConnectedComponent]:
    """
    Find all connected components in the graph using BFS.

    A connected component is a set of nodes where every node is reachable
    from every other node (treating edges as undirected).

    Args:
        graph: The graph to analyze

    Returns:
        List of ConnectedComponent objects, in node order of their first member
    """
    if not graph.nodes:
        return []

    node_ids = [n.id for n in graph.nodes]

    adjacency: dict[str, set[str]] = {nid: set() for nid in node_ids}
    edge_members: dict[str, int] = defaultdict(int)
    for edge in graph.edges:
        if edge.source in adjacency and edge.target in adjacency:
            adjacency[edge.source].add(edge.target)
            adjacency[edge.target].add(edge.source)
            edge_members[edge.source] += 1

    visited: set[str] = set()
    components: list[ConnectedComponent] = []

    for start_node in node_ids:
        if start_node in visited:
            continue

        component_nodes: list[str] = []
        queue = deque([start_node])
        visited.add(start_node)

        while queue:
            current = queue.popleft()
            component_nodes.append(current)
            for neighbor in adjacency[current]:
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        components.append(ConnectedComponent(
            node_ids=component_nodes,
            edge_count=sum(edge_members[n] for n in component_nodes),
        ))

    return components


def parent_map(edges: Iterable["GraphEdge"]) -> dict[str, str]:
    """Map each edge target to its source (the last edge wins)."""
    parents: dict[str, str] = {}
    for edge in edges:
        parents[edge.target] = edge.source
    return parents


def children_map(graph: "Graph") -> dict[str, list[str]]:
    """Map each node id to the targets of its outgoing edges, in edge order."""
    children: dict[str, list[str]] = {n.id: [] for n in graph.nodes}
    for edge in graph.edges:
        if edge.source in children and edge.target in children:
            children[edge.source].append(edge.target)
    return children


def in_degrees(graph: "Graph") -> dict[str, int]:
    degrees: dict[str, int] = {n.id: 0 for n in graph.nodes}
    for edge in graph.edges:
        if edge.target in degrees and edge.source in degrees:
            degrees[edge.target] += 1
    return degrees


def find_roots(graph: "Graph") -> list[str]:
    """Nodes with no incoming edges, in node order."""
    degrees = in_degrees(graph)
    return [n.id for n in graph.nodes if degrees[n.id] == 0]


def has_cycle(graph: "Graph") -> bool:
    """
    Detect a directed cycle with an iterative three-colour DFS.

    Self-loops count as cycles.
    """
    children = children_map(graph)
    white, grey, black = 0, 1, 2
    colour: dict[str, int] = {nid: white for nid in children}

    for start in children:
        if colour[start] != white:
            continue
        colour[start] = grey
        stack = [(start, iter(children[start]))]
        while stack:
            node_id, remaining = stack[-1]
            advanced = False
            for child in remaining:
                if colour[child] == grey:
                    return True
                if colour[child] == white:
                    colour[child] = grey
                    stack.append((child, iter(children[child])))
                    advanced = True
                    break
            if not advanced:
                colour[node_id] = black
                stack.pop()

    return False


def is_rooted_tree(graph: "Graph") -> bool:
    """
    True when the graph is a single rooted tree.

    Every node has at most one incoming edge, there is exactly one root,
    the graph is one connected component and it has no cycles.
    """
    if not graph.nodes:
        return False
    if len(graph.edges) != len(graph.nodes) - 1:
        return False
    if any(d > 1 for d in in_degrees(graph).values()):
        return False
    if len(find_roots(graph)) != 1:
        return False
    return len(find_connected_components(graph)) == 1 and not has_cycle(graph)


def back_edges(graph: "Graph") -> set[tuple[str, str]]:
    """
    Edges that close a cycle during a DFS started from the roots (then from
    any unvisited node). Ignoring them leaves an acyclic graph.
    """
    children = children_map(graph)
    roots = find_roots(graph)
    root_set = set(roots)
    order = roots + [n.id for n in graph.nodes if n.id not in root_set]

    on_stack: set[str] = set()
    visited: set[str] = set()
    result: set[tuple[str, str]] = set()

    for start in order:
        if start in visited:
            continue
        visited.add(start)
        on_stack.add(start)
        stack = [(start, iter(children[start]))]
        while stack:
            node_id, remaining = stack[-1]
            advanced = False
            for child in remaining:
                if child in on_stack:
                    result.add((node_id, child))
                elif child not in visited:
                    visited.add(child)
                    on_stack.add(child)
                    stack.append((child, iter(children[child])))
                    advanced = True
                    break
            if not advanced:
                on_stack.discard(node_id)
                stack.pop()

    return result


def assign_levels(graph: "Graph") -> dict[str, int]:
    """
    Longest-path level for every node, ignoring back edges.

    Roots (and nodes only reachable through cycles) sit at level 0.
    """
    ignored = back_edges(graph)
    children: dict[str, list[str]] = {n.id: [] for n in graph.nodes}
    indegree: dict[str, int] = {n.id: 0 for n in graph.nodes}
    for edge in graph.edges:
        pair = (edge.source, edge.target)
        if pair in ignored or edge.source == edge.target:
            continue
        children[edge.source].append(edge.target)
        indegree[edge.target] += 1

    levels: dict[str, int] = {n.id: 0 for n in graph.nodes}
    queue = deque(nid for nid, d in indegree.items() if d == 0)
    while queue:
        current = queue.popleft()
        for child in children[current]:
            levels[child] = max(levels[child], levels[current] + 1)
            indegree[child] -= 1
            if indegree[child] == 0:
                queue.append(child)
    return levels


def describe_shape(graph: "Graph") -> GraphShape:
    """Summarize the structure of a graph for layout selection."""
    node_count = len(graph.nodes)
    levels = assign_levels(graph)
    level_sizes: dict[int, int] = defaultdict(int)
    for level in levels.values():
        level_sizes[level] += 1

    degrees = in_degrees(graph)
    return GraphShape(
        node_count=node_count,
        edge_count=len(graph.edges),
        component_count=len(find_connected_components(graph)),
        is_tree=is_rooted_tree(graph),
        is_cyclic=has_cycle(graph),
        density=len(graph.edges) / node_count if node_count else 0.0,
        max_in_degree=max(degrees.values(), default=0),
        depth=len(level_sizes),
        breadth=max(level_sizes.values(), default=0),
    )


# --- Mind map helpers ---

def descendant_ids(node_id: str, edges: Iterable["GraphEdge"]) -> set[str]:
    """All node ids reachable from `node_id` via outgoing edges."""
    outgoing: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        outgoing[edge.source].append(edge.target)

    result: set[str] = set()
    queue = deque([node_id])
    while queue:
        current = queue.popleft()
        for target in outgoing[current]:
            if target not in result:
                result.add(target)
                queue.append(target)
    result.discard(node_id)
    return result


def hidden_node_ids(graph: "Graph") -> set[str]:
    """Ids hidden because an ancestor mind-map node is collapsed."""
    hidden: set[str] = set()
    for node in graph.nodes:
        if node.kind == NodeKind.MIND_MAP and node.attributes.get("collapsed"):
            hidden |= descendant_ids(node.id, graph.edges)
    return hidden


def child_count(node_id: str, edges: Iterable["GraphEdge"]) -> int:
    return sum(1 for e in edges if e.source == node_id)
