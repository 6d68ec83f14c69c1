"""
Graph validation - Check graphs for structural issues and sanitize
generator output before it reaches the canvas.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .models import NodeKind

if TYPE_CHECKING:
    from .models import Graph


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a graph."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    edge_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.edge_id:
            result["edge_id"] = self.edge_id
        return result


def validate_graph(graph: "Graph") -> list[ValidationIssue]:
    """
    Validate a graph and return a list of issues.

    Dangling edges cannot be reported here: a Graph never stores them.

    Checks for:
    - Orphan nodes (no connections) - WARNING
    - Missing labels on non-text nodes - WARNING
    - Duplicate edges (same source->target) - WARNING
    - Self-referencing edges - WARNING
    - Children pointing at a missing container - ERROR
    - Empty graph - INFO

    Args:
        graph: The graph to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    nodes = graph.nodes
    edges = graph.edges

    if not nodes:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Graph has no nodes"
        ))
        return issues

    node_ids = {n.id for n in nodes}

    connected_nodes: set[str] = set()
    for edge in edges:
        connected_nodes.add(edge.source)
        connected_nodes.add(edge.target)

    # Containers and free text are legitimately unconnected
    standalone_kinds = {NodeKind.CONTAINER, NodeKind.TEXT}
    orphans = [
        n for n in nodes
        if n.id not in connected_nodes and n.kind not in standalone_kinds and not n.parent_id
    ]
    if orphans and len(nodes) > 1:
        orphan_labels = [f"{n.label or '?'} ({n.id})" for n in orphans]
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"Orphan nodes (no connections): {', '.join(orphan_labels)}"
        ))

    for node in nodes:
        if node.kind != NodeKind.TEXT and not node.label.strip():
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Node has empty label",
                node_id=node.id
            ))
        if node.parent_id and node.parent_id not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Node references non-existent container: {node.parent_id}",
                node_id=node.id
            ))

    for edge in edges:
        if edge.source == edge.target:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Self-referencing edge (node points to itself)",
                edge_id=edge.id,
                node_id=edge.source
            ))

    seen_pairs: set[tuple[str, str]] = set()
    for edge in edges:
        pair = (edge.source, edge.target)
        if pair in seen_pairs:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Duplicate edge from {edge.source} to {edge.target}",
                edge_id=edge.id
            ))
        else:
            seen_pairs.add(pair)

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(issues),
        "errors": len([i for i in issues if i.severity == IssueSeverity.ERROR]),
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": len([i for i in issues if i.severity == IssueSeverity.ERROR]) == 0
    }


@dataclass
class SanitizeResult:
    """Generator output with invalid members filtered out."""
    valid: bool
    nodes: list[dict[str, Any]] = field(default_factory=list)
    edges: list[dict[str, Any]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def sanitize_generated_output(raw_nodes: Any, raw_edges: Any) -> SanitizeResult:
    """
    Filter raw generator output down to members that can be applied.

    Nodes need a non-blank, unique string id; unknown kinds are rewritten
    to the generic box. Edges need string endpoints that exist in the
    surviving node set and must not be self-loops. Input dicts are copied,
    never edited.

    Returns:
        SanitizeResult with the surviving objects and one message per drop
    """
    errors: list[str] = []
    nodes = raw_nodes if isinstance(raw_nodes, list) else []
    edges = raw_edges if isinstance(raw_edges, list) else []

    valid_nodes: list[dict[str, Any]] = []
    node_ids: set[str] = set()

    for i, n in enumerate(nodes):
        if not isinstance(n, dict):
            errors.append(f"Node {i}: invalid (not an object)")
            continue
        node_id = n.get("id")
        if not isinstance(node_id, str) or not node_id.strip():
            errors.append(f"Node {i}: missing or invalid id")
            continue
        if node_id in node_ids:
            errors.append(f'Node {i}: duplicate id "{node_id}"')
            continue
        node_ids.add(node_id)

        node = dict(n)
        kind_key = "kind" if "kind" in node else "type"
        node[kind_key] = NodeKind.coerce(node.get(kind_key)).value
        valid_nodes.append(node)

    valid_edges: list[dict[str, Any]] = []
    for i, e in enumerate(edges):
        if not isinstance(e, dict):
            errors.append(f"Edge {i}: invalid (not an object)")
            continue
        source = e.get("source")
        target = e.get("target")
        if not isinstance(source, str) or not isinstance(target, str):
            errors.append(f"Edge {i}: missing source or target")
            continue
        if source not in node_ids:
            errors.append(f'Edge {i}: source "{source}" not in nodes')
            continue
        if target not in node_ids:
            errors.append(f'Edge {i}: target "{target}" not in nodes')
            continue
        if source == target:
            errors.append(f"Edge {i}: self-loop not allowed")
            continue
        valid_edges.append(dict(e))

    return SanitizeResult(
        valid=bool(valid_nodes) and not errors,
        nodes=valid_nodes,
        edges=valid_edges,
        errors=errors,
    )
