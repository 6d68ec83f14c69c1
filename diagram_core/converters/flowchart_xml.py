"""
Flowchart XML (mxGraph / draw.io) support.

Reading: any of a full `mxfile` (plain or compressed `<diagram>` payloads),
a bare `mxGraphModel`, or just a run of sibling `mxCell` elements is turned
into a canonical graph. Embedded images are skipped, and edges are kept
only when both of their cells became nodes.

Writing: whiteboard skeleton elements can be exported as an `mxfile`
document. There is no structural graph -> XML conversion.
"""

import base64
import logging
import re
import uuid
import zlib
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union
from urllib.parse import unquote

from lxml import etree
from lxml import html as lxml_html

from ..exceptions import ConversionError
from ..models import AnchorSide, ArrowType, Graph, GraphEdge, GraphNode, LineStyle, NodeKind, Position, Size
from .elements import ElementType, coerce_elements

logger = logging.getLogger(__name__)

ROOT_CELL_IDS = frozenset({"0", "1"})

DEFAULT_CELL_WIDTH = 120
DEFAULT_CELL_HEIGHT = 40
MIN_CELL_WIDTH = 40
MIN_CELL_HEIGHT = 24

DEFAULT_FILL = "#e7f5ff"
DEFAULT_STROKE = "#1971c2"

_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>", re.IGNORECASE)
_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=True)

# draw.io arrow names -> canonical arrow heads
_ARROW_NAMES = {
    "none": ArrowType.NONE,
    "open": ArrowType.ARROW,
    "openThin": ArrowType.ARROW,
    "classic": ArrowType.FILLED,
    "classicThin": ArrowType.FILLED,
    "block": ArrowType.FILLED,
    "blockThin": ArrowType.FILLED,
    "diamond": ArrowType.DIAMOND,
    "diamondThin": ArrowType.DIAMOND,
    "oval": ArrowType.CIRCLE,
    "circle": ArrowType.CIRCLE,
}


@dataclass
class CellGeometry:
    x: float = 0.0
    y: float = 0.0
    width: float = DEFAULT_CELL_WIDTH
    height: float = DEFAULT_CELL_HEIGHT


@dataclass
class FlowchartCell:
    """One `mxCell`, with its style string already split into a map."""
    id: str
    value: str = ""
    style: dict[str, str] = field(default_factory=dict)
    vertex: bool = False
    edge: bool = False
    parent: Optional[str] = None
    source: Optional[str] = None
    target: Optional[str] = None
    geometry: Optional[CellGeometry] = None


def parse_style(style: Optional[str]) -> dict[str, str]:
    """
    Split a `key=value;key=value` style string.

    A token without `=` (e.g. `rhombus`, `ellipse`) is a flag and maps to
    "1". Pairs with an empty key or value are ignored.
    """
    out: dict[str, str] = {}
    if not style or not isinstance(style, str):
        return out
    for part in style.split(";"):
        eq = part.find("=")
        if eq >= 0:
            key = part[:eq].strip()
            value = part[eq + 1:].strip()
            if key and value:
                out[key] = value
        elif part.strip():
            out[part.strip()] = "1"
    return out


def _parse_xml(text: Union[str, bytes]) -> etree._Element:
    data = text.encode("utf-8") if isinstance(text, str) else text
    try:
        return etree.fromstring(data, _PARSER)
    except etree.XMLSyntaxError as first_error:
        # A run of sibling cells has no single root element
        body = _XML_DECLARATION.sub("", data.decode("utf-8", errors="replace"))
        try:
            return etree.fromstring(f"<root>{body}</root>".encode("utf-8"), _PARSER)
        except etree.XMLSyntaxError:
            raise ConversionError("Malformed flowchart XML", {"error": str(first_error)}) from first_error


def _inflate_diagram(payload: str) -> str:
    """Decode a compressed `<diagram>` body: base64, raw deflate, URL quoting."""
    try:
        raw = base64.b64decode(payload, validate=False)
        inflated = zlib.decompress(raw, -15)
        return unquote(inflated.decode("utf-8"))
    except (ValueError, zlib.error, UnicodeDecodeError) as e:
        raise ConversionError("Could not decompress diagram payload", {"error": str(e)}) from e


def _graph_root(document: etree._Element, page: int) -> etree._Element:
    diagrams = document.findall(".//diagram")
    if document.tag == "diagram":
        diagrams = [document]
    if not diagrams:
        return document
    if page >= len(diagrams):
        raise ConversionError("Diagram page out of range", {"page": page, "pages": len(diagrams)})

    diagram = diagrams[page]
    model = diagram.find(".//mxGraphModel")
    if model is not None:
        return model

    inner = (diagram.text or "").strip()
    if not inner:
        return diagram
    if not inner.startswith("<"):
        inner = _inflate_diagram(inner)
    return _parse_xml(inner)


def _parse_geometry(cell: etree._Element) -> Optional[CellGeometry]:
    geo = cell.find("mxGeometry")
    if geo is None:
        return None
    try:
        return CellGeometry(
            x=float(geo.get("x") or 0),
            y=float(geo.get("y") or 0),
            width=float(geo.get("width") or DEFAULT_CELL_WIDTH),
            height=float(geo.get("height") or DEFAULT_CELL_HEIGHT),
        )
    except ValueError:
        return None


def parse_cells(xml: Union[str, bytes], page: int = 0) -> list[FlowchartCell]:
    """
    Parse every `mxCell` of one diagram page.

    Cells wrapped in `<UserObject>`/`<object>` take their id and label from
    the wrapper.

    Raises:
        ConversionError: if the XML (or a compressed payload) cannot be read
    """
    root = _graph_root(_parse_xml(xml), page)

    cells: list[FlowchartCell] = []
    for i, cell in enumerate(root.iter("mxCell")):
        wrapper = cell.getparent()
        attrs = dict(cell.attrib)
        value = cell.get("value") or ""
        if wrapper is not None and wrapper.tag in ("UserObject", "object"):
            attrs.setdefault("id", wrapper.get("id"))
            value = wrapper.get("label") or value

        cells.append(FlowchartCell(
            id=attrs.get("id") or f"cell-{i}",
            value=value,
            style=parse_style(attrs.get("style")),
            vertex=attrs.get("vertex") == "1",
            edge=attrs.get("edge") == "1",
            parent=attrs.get("parent"),
            source=attrs.get("source"),
            target=attrs.get("target"),
            geometry=_parse_geometry(cell),
        ))
    return cells


def label_text(value: str, style: dict[str, str]) -> str:
    """Plain text of a cell value; HTML labels are reduced to their text."""
    if style.get("html") != "1" or "<" not in value:
        return value
    try:
        parsed = lxml_html.fromstring(f"<div>{value}</div>")
    except (etree.ParserError, ValueError) as e:
        logger.debug("Keeping raw HTML label: %s", e)
        return value
    for br in parsed.iter("br"):
        br.tail = "\n" + (br.tail or "")
    return parsed.text_content().strip()


def style_to_kind(style: dict[str, str]) -> NodeKind:
    shape = style.get("shape", "").lower()
    if shape == "rhombus" or "rhombus" in style:
        return NodeKind.DECISION
    if shape == "ellipse" or "ellipse" in style:
        return NodeKind.TERMINAL
    if shape == "swimlane" or "swimlane" in style or "group" in style or style.get("container") == "1":
        return NodeKind.CONTAINER
    if shape == "text" or "text" in style:
        return NodeKind.TEXT
    if shape.startswith("cylinder") or shape == "datastore":
        return NodeKind.DATABASE
    if shape == "note":
        return NodeKind.NOTE
    if shape == "document":
        return NodeKind.DOCUMENT
    if shape == "umlactor":
        return NodeKind.ACTOR
    return NodeKind.BOX


def _port_side(rel_x: Optional[str], rel_y: Optional[str]) -> Optional[AnchorSide]:
    """Side of a shape a relative connection point sits on; None when central."""
    if rel_x is None or rel_y is None:
        return None
    try:
        x = float(rel_x)
        y = float(rel_y)
    except ValueError:
        return None
    dx = abs(x - 0.5)
    dy = abs(y - 0.5)
    if dx < 1e-9 and dy < 1e-9:
        return None
    if dx >= dy:
        return AnchorSide.RIGHT if x >= 0.5 else AnchorSide.LEFT
    return AnchorSide.BOTTOM if y >= 0.5 else AnchorSide.TOP


def flowchart_xml_to_graph(xml: Union[str, bytes], page: int = 0) -> Graph:
    """
    Convert flowchart XML to a canonical graph.

    - The document root cells and layers are skipped, as are embedded
      images (`shape=image`) and vertices without geometry
    - Vertex kinds come from style flags: rhombus -> decision,
      ellipse -> terminal, swimlane/group/container -> container,
      text -> text, otherwise box
    - Vertices nested in another vertex keep it as `parent_id` and get
      absolute positions
    - Edges are kept only when both endpoints became nodes

    Unreadable XML gives an empty graph.
    """
    try:
        cells = parse_cells(xml, page)
    except ConversionError as e:
        logger.warning("Could not read flowchart XML: %s", e)
        return Graph()

    by_id = {c.id: c for c in cells}
    skipped = set(ROOT_CELL_IDS)
    for c in cells:
        # The root cell and its direct children (layers) are structural
        if not c.vertex and not c.edge and (c.parent is None or c.parent in skipped):
            skipped.add(c.id)

    def absolute_offset(parent_id: Optional[str]) -> tuple[float, float]:
        x = y = 0.0
        seen: set[str] = set()
        while parent_id and parent_id not in skipped and parent_id not in seen:
            seen.add(parent_id)
            parent = by_id.get(parent_id)
            if parent is None or not parent.vertex or parent.geometry is None:
                break
            x += parent.geometry.x
            y += parent.geometry.y
            parent_id = parent.parent
        return x, y

    edge_ids = {c.id for c in cells if c.edge}
    edge_labels: dict[str, list[str]] = {}
    nodes: list[GraphNode] = []
    node_ids: set[str] = set()

    for c in cells:
        if c.id in skipped or not c.vertex or c.geometry is None:
            continue
        if c.style.get("shape") == "image":
            logger.debug("Skipping embedded image cell %s", c.id)
            continue
        if c.parent in edge_ids:
            # Label floating on an edge
            text = label_text(c.value, c.style).strip()
            if text:
                edge_labels.setdefault(c.parent, []).append(text)
            continue

        dx, dy = absolute_offset(c.parent)
        attributes: dict[str, Any] = {}
        if c.style.get("strokeColor"):
            attributes["strokeColor"] = c.style["strokeColor"]
        fill = c.style.get("fillColor")
        nodes.append(GraphNode(
            id=c.id,
            kind=style_to_kind(c.style),
            label=label_text(c.value, c.style),
            position=Position(x=c.geometry.x + dx, y=c.geometry.y + dy),
            size=Size(
                width=max(c.geometry.width, MIN_CELL_WIDTH),
                height=max(c.geometry.height, MIN_CELL_HEIGHT),
            ),
            color=fill if fill and fill != "none" else None,
            parent_id=c.parent if c.parent and c.parent not in skipped else None,
            attributes=attributes,
        ))
        node_ids.add(c.id)

    edges: list[GraphEdge] = []
    for c in cells:
        if not c.edge or c.id in skipped:
            continue
        if c.source not in node_ids or c.target not in node_ids:
            logger.debug("Dropping edge cell %s with unmapped endpoint", c.id)
            continue

        label = label_text(c.value, c.style).strip()
        if not label and c.id in edge_labels:
            label = " ".join(edge_labels[c.id])
        fields: dict[str, Any] = {
            "id": c.id,
            "source": c.source,
            "target": c.target,
            "label": label,
            "source_anchor": _port_side(c.style.get("exitX"), c.style.get("exitY")),
            "target_anchor": _port_side(c.style.get("entryX"), c.style.get("entryY")),
            "color": c.style.get("strokeColor"),
            "arrow_start": _ARROW_NAMES.get(c.style.get("startArrow", "none"), ArrowType.NONE),
            "arrow_end": _ARROW_NAMES.get(c.style.get("endArrow", "classic"), ArrowType.FILLED),
        }
        if c.style.get("dashed") == "1":
            fields["line_style"] = LineStyle.DOTTED if c.style.get("dashPattern") == "1 1" else LineStyle.DASHED
        edges.append(GraphEdge(**fields))

    # Nested children may precede their container; drop parents that never mapped
    nodes = [
        n if n.parent_id is None or n.parent_id in node_ids else n.model_copy(update={"parent_id": None})
        for n in nodes
    ]
    return Graph(nodes=nodes, edges=edges)


# --- Skeleton export ---

def _new_cell_id() -> str:
    return f"mx-{uuid.uuid4().hex[:7]}"


def _clamp01(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:
        return default
    return max(0.0, min(1.0, number))


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def shape_style(element_type: str, bg: str, stroke: str) -> str:
    base = f"rounded=0;whiteSpace=wrap;html=1;fillColor={bg};strokeColor={stroke};"
    t = element_type.lower()
    if t == ElementType.DIAMOND.value:
        return f"rhombus;{base}"
    if t in (ElementType.ELLIPSE.value, "circle"):
        return f"ellipse;{base}"
    if t == ElementType.TEXT.value:
        return f"text;html=1;align=left;verticalAlign=top;fillColor={bg};strokeColor={stroke};"
    return base


def whiteboard_to_flowchart_xml(elements: Iterable[Any]) -> str:
    """
    Export whiteboard skeleton elements as an `mxfile` document.

    Shapes are written before edges. Text bound to a shape becomes that
    shape's label. Arrows whose ends do not resolve to an exported shape are
    left out, and connection points default to right side -> left side.
    """
    items = coerce_elements(list(elements))
    shapes = [el for el in items if not el.is_connector]
    arrows = [el for el in items if el.is_connector]

    shape_ids = {el.id for el in shapes if el.id}
    bound_labels: dict[str, str] = {}
    for el in shapes:
        if el.type == ElementType.TEXT.value and el.container_id in shape_ids and el.label_text():
            bound_labels.setdefault(el.container_id, el.label_text())

    mxfile = etree.Element("mxfile", host="app.diagrams.net")
    diagram = etree.SubElement(mxfile, "diagram", name="Diagram", id=_new_cell_id())
    model = etree.SubElement(
        diagram, "mxGraphModel",
        dx="1434", dy="780", grid="1", gridSize="10", guides="1", tooltips="1",
        connect="1", arrows="1", fold="1", page="1", pageScale="1",
        pageWidth="827", pageHeight="1169", math="0", shadow="0",
    )
    root = etree.SubElement(model, "root")
    etree.SubElement(root, "mxCell", id="0")
    etree.SubElement(root, "mxCell", id="1", parent="0")

    id_map: dict[str, str] = {}
    used = set(ROOT_CELL_IDS)
    for el in shapes:
        if el.type == ElementType.TEXT.value and el.container_id in shape_ids:
            continue
        cell_id = el.id if el.id and _SAFE_ID.match(el.id) and el.id not in used else _new_cell_id()
        used.add(cell_id)
        if el.id:
            id_map[el.id] = cell_id

        label = bound_labels.get(el.id or "", "") or el.label_text()
        style = shape_style(el.type, el.background_color or DEFAULT_FILL, el.stroke_color or DEFAULT_STROKE)
        cell = etree.SubElement(root, "mxCell", id=cell_id, value=label, style=style, vertex="1", parent="1")
        etree.SubElement(
            cell, "mxGeometry",
            x=_format_number(el.x),
            y=_format_number(el.y),
            width=_format_number(max(el.width or DEFAULT_CELL_WIDTH, MIN_CELL_WIDTH)),
            height=_format_number(max(el.height or DEFAULT_CELL_HEIGHT, MIN_CELL_HEIGHT)),
            attrib={"as": "geometry"},
        )

    for el in arrows:
        start = el.start_id()
        end = el.end_id()
        source = (id_map.get(start) or id_map.get(f"ex-{start}")) if start else None
        target = (id_map.get(end) or id_map.get(f"ex-{end}")) if end else None
        if source is None or target is None:
            logger.debug("Skipping arrow %s with unresolved endpoint", el.id)
            continue

        cell_id = el.id if el.id and _SAFE_ID.match(el.id) and el.id not in used else _new_cell_id()
        used.add(cell_id)
        style = (
            "endArrow=classic;html=1;rounded=1;"
            f"exitX={_format_number(_clamp01(el.extra('exitX'), 1))};exitY={_format_number(_clamp01(el.extra('exitY'), 0.5))};"
            f"entryX={_format_number(_clamp01(el.extra('entryX'), 0))};entryY={_format_number(_clamp01(el.extra('entryY'), 0.5))};"
        )
        cell = etree.SubElement(
            root, "mxCell",
            id=cell_id, value=el.label_text(), style=style, edge="1", parent="1",
            source=source, target=target,
        )
        etree.SubElement(cell, "mxGeometry", relative="1", attrib={"as": "geometry"})

    return etree.tostring(mxfile, pretty_print=True, xml_declaration=True, encoding="UTF-8").decode("utf-8")
