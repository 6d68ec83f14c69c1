"""
Canonical graph <-> whiteboard elements.

Nodes become shapes with an `ex-` prefixed id and edges become arrows that
reference those ids. Converting back takes two passes because an arrow may
point at a shape that appears later in the list.
"""

import logging
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from ..models import (
    AnchorSide,
    ArrowType,
    Graph,
    GraphEdge,
    GraphNode,
    LineStyle,
    NodeKind,
    Position,
    Size,
)
from .elements import ElementType, WhiteboardElement, coerce_elements

logger = logging.getLogger(__name__)

ELEMENT_ID_PREFIX = "ex-"
EDGE_ID_PREFIX = "ex-e-"

DEFAULT_ELEMENT_WIDTH = 160
DEFAULT_ELEMENT_HEIGHT = 48

FALLBACK_SHAPE = (ElementType.RECTANGLE, "#f1f3f5", "#495057")

# kind -> (element type, background, stroke)
SHAPE_CONFIG: dict[NodeKind, tuple[ElementType, str, str]] = {
    NodeKind.BOX: (ElementType.RECTANGLE, "#e7f5ff", "#1971c2"),
    NodeKind.DOCUMENT: (ElementType.RECTANGLE, "#e7f5ff", "#1971c2"),
    NodeKind.CONTAINER: (ElementType.RECTANGLE, "#e7f5ff", "#1971c2"),
    NodeKind.MIND_MAP: (ElementType.RECTANGLE, "#e7f5ff", "#1971c2"),
    NodeKind.NOTE: (ElementType.RECTANGLE, "#e7f5ff", "#1971c2"),
    NodeKind.DECISION: (ElementType.DIAMOND, "#fff3bf", "#f08c00"),
    NodeKind.TERMINAL: (ElementType.ELLIPSE, "#d3f9d8", "#2f9e44"),
    NodeKind.TEXT: (ElementType.TEXT, "transparent", "#1e1e1e"),
}

ELEMENT_KINDS = {
    ElementType.RECTANGLE.value: NodeKind.BOX,
    ElementType.DIAMOND.value: NodeKind.DECISION,
    ElementType.ELLIPSE.value: NodeKind.TERMINAL,
    ElementType.TEXT.value: NodeKind.TEXT,
    "image": NodeKind.IMAGE,
}

ARROWHEADS = {
    ArrowType.NONE: None,
    ArrowType.ARROW: "arrow",
    ArrowType.FILLED: "triangle",
    ArrowType.DIAMOND: "diamond",
    ArrowType.CIRCLE: "dot",
}
ARROWHEAD_TYPES = {
    "arrow": ArrowType.ARROW,
    "triangle": ArrowType.FILLED,
    "bar": ArrowType.FILLED,
    "diamond": ArrowType.DIAMOND,
    "dot": ArrowType.CIRCLE,
    "circle": ArrowType.CIRCLE,
}


def _element_size(node: GraphNode) -> Size:
    if node.size is not None and node.size.width > 0 and node.size.height > 0:
        return node.size
    return Size(width=DEFAULT_ELEMENT_WIDTH, height=DEFAULT_ELEMENT_HEIGHT)


def graph_to_whiteboard(graph: Graph) -> list[WhiteboardElement]:
    """
    Convert a canonical graph to whiteboard elements.

    Shapes (and their bound label texts) come first, arrows last. The node
    kind travels in `customData.kind`; a node whose label was imported as a
    separate bound text (`attributes["labelElementId"]`) gets that text
    element back, wired through `containerId` and `boundElements`.
    """
    shapes: list[dict[str, Any]] = []
    arrows: list[dict[str, Any]] = []
    external_ids: dict[str, str] = {}

    for node in graph.nodes:
        element_type, bg, stroke = SHAPE_CONFIG.get(node.kind, FALLBACK_SHAPE)
        external_id = f"{ELEMENT_ID_PREFIX}{node.id}"
        external_ids[node.id] = external_id
        pos = node.position or Position()
        size = _element_size(node)

        custom: dict[str, Any] = {"kind": node.kind.value}
        if node.parent_id:
            custom["parentId"] = node.parent_id

        shape: dict[str, Any] = {
            "type": element_type.value,
            "id": external_id,
            "x": pos.x,
            "y": pos.y,
            "width": size.width,
            "height": size.height,
            "backgroundColor": node.color or bg,
            "strokeColor": stroke,
            "customData": custom,
        }

        label_element_id = node.attributes.get("labelElementId")
        if element_type == ElementType.TEXT:
            shape["text"] = node.label
            shapes.append(shape)
        elif label_element_id and node.label:
            shape["boundElements"] = [{"id": str(label_element_id), "type": "text"}]
            shapes.append(shape)
            shapes.append({
                "type": ElementType.TEXT.value,
                "id": str(label_element_id),
                "x": pos.x,
                "y": pos.y,
                "width": size.width,
                "height": size.height,
                "text": node.label,
                "containerId": external_id,
            })
        else:
            if node.label:
                shape["label"] = {"text": node.label}
            shapes.append(shape)

    nodes_by_id = graph.node_map()
    for edge in graph.edges:
        start_id = external_ids.get(edge.source)
        end_id = external_ids.get(edge.target)
        if start_id is None or end_id is None:
            continue

        sx, sy = nodes_by_id[edge.source].center()
        tx, ty = nodes_by_id[edge.target].center()
        arrow: dict[str, Any] = {
            "type": ElementType.ARROW.value,
            "id": f"{EDGE_ID_PREFIX}{edge.id}",
            "x": (sx + tx) / 2 - 50,
            "y": (sy + ty) / 2 - 12,
            "width": 100,
            "height": 24,
            "start": {"id": start_id},
            "end": {"id": end_id},
            "startArrowhead": ARROWHEADS[edge.arrow_start],
            "endArrowhead": ARROWHEADS[edge.arrow_end],
        }
        if edge.label:
            arrow["label"] = {"text": edge.label}
        if edge.color:
            arrow["strokeColor"] = edge.color
        if edge.line_style != LineStyle.SOLID:
            arrow["strokeStyle"] = edge.line_style.value
        anchors = {}
        if edge.source_anchor:
            anchors["sourceAnchor"] = edge.source_anchor.value
        if edge.target_anchor:
            anchors["targetAnchor"] = edge.target_anchor.value
        if anchors:
            arrow["customData"] = anchors
        arrows.append(arrow)

    return [WhiteboardElement.model_validate(el) for el in shapes + arrows]


def _strip_prefix(value: str, prefix: str) -> str:
    return value[len(prefix):] if value.startswith(prefix) and len(value) > len(prefix) else value


def _node_kind(element: WhiteboardElement) -> NodeKind:
    custom = element.custom_data or {}
    if custom.get("kind"):
        return NodeKind.coerce(custom["kind"])
    return ELEMENT_KINDS.get(element.type, NodeKind.BOX)


def _anchor(value: Any) -> Optional[AnchorSide]:
    try:
        return AnchorSide(value)
    except ValueError:
        return None


def _parent_ref(value: Any) -> Optional[str]:
    if isinstance(value, (str, int)) and not isinstance(value, bool) and value != "":
        return str(value)
    return None


def _arrow_type(value: Any, default: ArrowType) -> ArrowType:
    if value is None:
        return ArrowType.NONE
    return ARROWHEAD_TYPES.get(str(value), default)


def whiteboard_to_graph(elements: Iterable[Any]) -> Graph:
    """
    Convert whiteboard elements to a canonical graph.

    Pass one turns every shape and free text into a node and records an
    element id -> node id table; text bound to a shape (`containerId`)
    becomes that node's label instead. Pass two turns arrows and lines into
    edges when both ends resolve through the table; anything else is
    dropped rather than pointed at a guessed node.
    """
    items = coerce_elements(list(elements))

    node_fields: dict[str, dict[str, Any]] = {}
    id_table: dict[str, str] = {}
    bound_texts: list[WhiteboardElement] = []

    for i, element in enumerate(items):
        if element.is_connector:
            continue
        if element.type == ElementType.TEXT.value and element.container_id:
            bound_texts.append(element)
            continue

        element_id = element.id or f"el-{i}"
        if element_id in id_table:
            logger.debug("Dropping element with duplicate id %s", element_id)
            continue
        node_id = _strip_prefix(element_id, ELEMENT_ID_PREFIX)
        if node_id in node_fields:
            node_id = element_id
        if node_id in node_fields:
            logger.debug("Dropping element %s: id collides with an earlier node", element_id)
            continue
        id_table[element_id] = node_id

        custom = element.custom_data or {}
        size = None
        if element.width and element.height and element.width > 0 and element.height > 0:
            size = Size(width=element.width, height=element.height)
        node_fields[node_id] = {
            "id": node_id,
            "kind": _node_kind(element),
            "label": element.label_text(),
            "position": Position(x=element.x, y=element.y),
            "size": size,
            "color": element.background_color,
            "parent_id": _parent_ref(custom.get("parentId")),
        }

    for i, text in enumerate(bound_texts):
        container = id_table.get(text.container_id)
        text_id = text.id or f"text-{i}"
        if text_id in id_table:
            logger.debug("Dropping bound text %s: id already names a shape", text_id)
            continue
        if container is None:
            # Container is gone: keep the text as a free-standing node
            node_id = _strip_prefix(text_id, ELEMENT_ID_PREFIX)
            if node_id in node_fields:
                continue
            id_table[text_id] = node_id
            node_fields[node_id] = {
                "id": node_id,
                "kind": NodeKind.TEXT,
                "label": text.label_text(),
                "position": Position(x=text.x, y=text.y),
            }
            continue
        fields = node_fields[container]
        if not fields["label"]:
            fields["label"] = text.label_text()
        fields["attributes"] = {"labelElementId": text_id}
        id_table[text_id] = container

    nodes: list[GraphNode] = []
    for fields in node_fields.values():
        try:
            nodes.append(GraphNode(**fields))
        except ValidationError as e:
            logger.debug("Dropping element %s: %s", fields["id"], e)
            id_table = {k: v for k, v in id_table.items() if v != fields["id"]}

    edges: list[GraphEdge] = []
    for i, element in enumerate(items):
        if not element.is_connector:
            continue
        start = element.start_id()
        end = element.end_id()
        source = id_table.get(start) if start else None
        target = id_table.get(end) if end else None
        if source is None or target is None:
            logger.debug("Dropping connector %s with unresolved endpoint", element.id)
            continue

        if element.id:
            edge_id = _strip_prefix(_strip_prefix(element.id, EDGE_ID_PREFIX), ELEMENT_ID_PREFIX)
        else:
            edge_id = f"e-{source}-{target}-{len(edges)}"
        custom = element.custom_data or {}
        edge_fields: dict[str, Any] = {
            "id": edge_id,
            "source": source,
            "target": target,
            "label": element.label_text(),
            "source_anchor": _anchor(custom.get("sourceAnchor")),
            "target_anchor": _anchor(custom.get("targetAnchor")),
            "color": element.stroke_color,
        }
        stroke_style = element.extra("strokeStyle")
        if stroke_style in (LineStyle.DASHED.value, LineStyle.DOTTED.value):
            edge_fields["line_style"] = LineStyle(stroke_style)
        model_extra = element.model_extra or {}
        if "startArrowhead" in model_extra:
            edge_fields["arrow_start"] = _arrow_type(model_extra["startArrowhead"], ArrowType.ARROW)
        if "endArrowhead" in model_extra:
            edge_fields["arrow_end"] = _arrow_type(model_extra["endArrowhead"], ArrowType.FILLED)
        elif element.type == ElementType.LINE.value:
            edge_fields["arrow_end"] = ArrowType.NONE
        try:
            edges.append(GraphEdge(**edge_fields))
        except ValidationError as e:
            logger.debug("Dropping connector %s: %s", element.id, e)

    return Graph(nodes=nodes, edges=edges)
