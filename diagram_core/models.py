"""
Canonical graph model.

These models define the format-independent schema every converter, the
layout engine and the stream parser agree on:
- Nodes with a visual kind, optional position/size and an open attribute map
- Edges connecting nodes (using source/target naming convention)
- A graph container that never stores dangling edges

Field Naming Convention:
- Edges use `source` and `target` (industry standard from D3, Cytoscape, etc.)
- For backward compatibility, `from`/`to` are accepted on input and converted
- Kind-specific fields (columns, subtitle, icon) live in `attributes`, never
  as ad hoc top-level fields
"""

import logging
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_NODE_WIDTH = 150
DEFAULT_NODE_HEIGHT = 50
MIND_MAP_NODE_WIDTH = 170
MIND_MAP_NODE_HEIGHT = 44


class NodeKind(str, Enum):
    """Visual roles for nodes."""
    BOX = "box"
    DECISION = "decision"
    TERMINAL = "terminal"
    TEXT = "text"
    CONTAINER = "container"
    DATABASE = "database"
    NOTE = "note"
    MIND_MAP = "mindMap"
    DOCUMENT = "document"
    ACTOR = "actor"
    IMAGE = "image"

    @classmethod
    def coerce(cls, value: Any) -> "NodeKind":
        """Map any value onto a kind; unknown or blank values become BOX."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return cls.BOX


class AnchorSide(str, Enum):
    """Side of a node an edge leaves or enters."""
    TOP = "top"
    RIGHT = "right"
    BOTTOM = "bottom"
    LEFT = "left"


class LineStyle(str, Enum):
    """Line styles for edges."""
    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"


class ArrowType(str, Enum):
    """Arrow types for edge endpoints."""
    NONE = "none"
    ARROW = "arrow"       # Open V shape
    FILLED = "filled"     # Filled triangle
    DIAMOND = "diamond"
    CIRCLE = "circle"


def generate_node_id() -> str:
    """Generate a unique node ID."""
    return f"n{uuid.uuid4().hex[:8]}"


def generate_edge_id() -> str:
    """Generate a unique edge ID."""
    return f"e{uuid.uuid4().hex[:8]}"


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


class Size(BaseModel):
    width: float
    height: float


class GraphNode(BaseModel):
    """A node in the canonical graph.

    `position` stays None until a layout runs; `size` stays None until a
    renderer measures the node or a converter reads one from its source.
    """
    id: str = Field(default_factory=generate_node_id)
    kind: NodeKind = NodeKind.BOX
    label: str = ""
    position: Optional[Position] = None
    size: Optional[Size] = None
    color: Optional[str] = None
    parent_id: Optional[str] = None  # Container this node belongs to
    attributes: dict[str, Any] = Field(default_factory=dict)

    @field_validator("kind", mode="before")
    @classmethod
    def coerce_kind(cls, value: Any) -> NodeKind:
        return NodeKind.coerce(value)

    def resolved_size(self) -> Size:
        """Size of the node, falling back to the default for its kind."""
        if self.size is not None and self.size.width > 0 and self.size.height > 0:
            return self.size
        if self.kind == NodeKind.MIND_MAP:
            return Size(width=MIND_MAP_NODE_WIDTH, height=MIND_MAP_NODE_HEIGHT)
        return Size(width=DEFAULT_NODE_WIDTH, height=DEFAULT_NODE_HEIGHT)

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        pos = self.position or Position()
        size = self.resolved_size()
        return (pos.x, pos.y, pos.x + size.width, pos.y + size.height)

    def center(self) -> tuple[float, float]:
        """Get the center point of the node."""
        x, y, right, bottom = self.bounds()
        return ((x + right) / 2, (y + bottom) / 2)

    def moved_to(self, x: float, y: float) -> "GraphNode":
        """Return a copy of this node at a new position."""
        return self.model_copy(update={"position": Position(x=x, y=y)})

    @classmethod
    def from_json_dict(cls, data: dict) -> "GraphNode":
        """Build a node from the generator/UI JSON shape.

        Accepts `type` as an alias of `kind`, a label either top-level or
        under `data`, and `width`/`height` either top-level or under `size`.
        Unrecognised keys are kept in `attributes`.
        """
        payload = dict(data)
        inner = payload.pop("data", None)
        attributes = _mapping(payload.pop("attributes", None))
        if isinstance(inner, dict):
            attributes.update({k: v for k, v in inner.items() if k != "label"})

        label = payload.pop("label", None)
        if label is None and isinstance(inner, dict):
            label = inner.get("label")

        kind = payload.pop("kind", None) or payload.pop("type", None)
        size = payload.pop("size", None)
        width = payload.pop("width", None)
        height = payload.pop("height", None)
        if size is None and width is not None and height is not None:
            size = {"width": width, "height": height}

        parent_id = payload.pop("parent_id", None) or payload.pop("parentId", None)
        known = {
            "id": _optional_str(payload.pop("id", None)),
            "position": payload.pop("position", None),
            "color": payload.pop("color", None),
        }
        attributes.update(payload)

        fields: dict[str, Any] = {k: v for k, v in known.items() if v is not None}
        fields.update(
            kind=kind,
            label="" if label is None else str(label),
            size=size,
            parent_id=parent_id,
            attributes=attributes,
        )
        return cls(**fields)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        result: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "label": self.label,
        }
        if self.position is not None:
            result["position"] = self.position.model_dump()
        if self.size is not None:
            result["size"] = self.size.model_dump()
        if self.color:
            result["color"] = self.color
        if self.parent_id:
            result["parent_id"] = self.parent_id
        if self.attributes:
            result["attributes"] = dict(self.attributes)
        return result


class GraphEdge(BaseModel):
    """
    An edge connecting two nodes.

    Uses `source` and `target` as canonical field names.
    Accepts `from`/`to` on input for backward compatibility.
    """
    id: str = Field(default_factory=generate_edge_id)
    source: str
    target: str
    label: str = ""
    # None means the layout engine decides
    source_anchor: Optional[AnchorSide] = None
    target_anchor: Optional[AnchorSide] = None
    line_style: LineStyle = LineStyle.SOLID
    color: Optional[str] = None
    arrow_start: ArrowType = ArrowType.NONE
    arrow_end: ArrowType = ArrowType.FILLED
    attributes: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert legacy 'from'/'to' fields to 'source'/'target'."""
        if isinstance(data, dict):
            data = dict(data)
            if 'from' in data and 'source' not in data:
                data['source'] = data.pop('from')
            if 'to' in data and 'target' not in data:
                data['target'] = data.pop('to')
        return data

    @field_validator("source_anchor", "target_anchor", mode="before")
    @classmethod
    def coerce_anchor(cls, value: Any) -> Optional[AnchorSide]:
        if isinstance(value, AnchorSide):
            return value
        if not isinstance(value, str) or not value:
            return None
        try:
            return AnchorSide(value.lower())
        except ValueError:
            return None

    @classmethod
    def from_json_dict(cls, data: dict) -> "GraphEdge":
        """Build an edge from the generator/UI JSON shape."""
        payload = dict(data)
        inner = payload.pop("data", None)
        attributes = _mapping(payload.pop("attributes", None))
        if isinstance(inner, dict):
            attributes.update({k: v for k, v in inner.items() if k != "label"})

        label = payload.pop("label", None)
        if label is None and isinstance(inner, dict):
            label = inner.get("label")

        fields: dict[str, Any] = {
            "source": _optional_str(payload.pop("source", None) or payload.pop("from", None)),
            "target": _optional_str(payload.pop("target", None) or payload.pop("to", None)),
            "label": "" if label is None else str(label),
            "source_anchor": payload.pop("source_anchor", None) or payload.pop("sourceHandle", None),
            "target_anchor": payload.pop("target_anchor", None) or payload.pop("targetHandle", None),
        }
        edge_id = payload.pop("id", None)
        if edge_id is not None:
            fields["id"] = str(edge_id)
        for key in ("line_style", "color", "arrow_start", "arrow_end"):
            if payload.get(key) is not None:
                fields[key] = payload.pop(key)
        attributes.update(payload)
        fields["attributes"] = attributes
        return cls(**fields)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        result: dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "label": self.label,
            "line_style": self.line_style.value,
            "arrow_start": self.arrow_start.value,
            "arrow_end": self.arrow_end.value,
        }
        # Only include anchors and color if they're set
        if self.source_anchor:
            result["source_anchor"] = self.source_anchor.value
        if self.target_anchor:
            result["target_anchor"] = self.target_anchor.value
        if self.color:
            result["color"] = self.color
        if self.attributes:
            result["attributes"] = dict(self.attributes)
        return result


class Graph(BaseModel):
    """
    A canonical diagram graph.

    Node ids are unique and every edge endpoint resolves: duplicate nodes
    (after the first) and dangling edges are dropped during validation.
    Callers get new graphs from `with_nodes`/`with_edges`; nothing in the
    core edits a graph it was handed.
    """
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)

    @model_validator(mode="after")
    def drop_invalid_members(self) -> "Graph":
        seen: set[str] = set()
        nodes: list[GraphNode] = []
        for node in self.nodes:
            if node.id in seen:
                logger.debug("Dropping duplicate node id %s", node.id)
                continue
            seen.add(node.id)
            nodes.append(node)

        edges: list[GraphEdge] = []
        for edge in self.edges:
            if edge.source not in seen or edge.target not in seen:
                logger.debug(
                    "Dropping dangling edge %s (%s -> %s)", edge.id, edge.source, edge.target
                )
                continue
            edges.append(edge)

        if len(nodes) != len(self.nodes):
            self.nodes = nodes
        if len(edges) != len(self.edges):
            self.edges = edges
        return self

    def node_map(self) -> dict[str, GraphNode]:
        return {n.id: n for n in self.nodes}

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        """Get a node by ID (O(n) - use node_map() for repeated lookups)."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_edge(self, edge_id: str) -> Optional[GraphEdge]:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def with_nodes(self, nodes: list[GraphNode]) -> "Graph":
        """Return a new graph with the given nodes and this graph's edges."""
        return Graph(nodes=nodes, edges=list(self.edges))

    def with_edges(self, edges: list[GraphEdge]) -> "Graph":
        """Return a new graph with this graph's nodes and the given edges."""
        return Graph(nodes=list(self.nodes), edges=edges)

    def to_json_dict(self) -> dict:
        return {
            "nodes": [n.to_json_dict() for n in self.nodes],
            "edges": [e.to_json_dict() for e in self.edges],
        }

    @classmethod
    def from_json_dict(cls, data: dict) -> "Graph":
        """Create a Graph from a JSON dict (handles generator and legacy shapes).

        Entries that are not objects or fail validation are dropped.
        """
        nodes = _build_members(data.get("nodes") or [], GraphNode.from_json_dict)
        edges = _build_members(data.get("edges") or [], GraphEdge.from_json_dict)
        return cls(nodes=nodes, edges=edges)


def _build_members(raw: list, factory) -> list:
    members = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            members.append(factory(item))
        except (ValidationError, TypeError, ValueError) as e:
            logger.debug("Dropping malformed graph member %r: %s", item.get("id"), e)
    return members


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _mapping(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}
