"""Tests for flowchart XML import and skeleton export."""

import base64
import zlib
from urllib.parse import quote

import pytest

from diagram_core.converters.flowchart_xml import (
    flowchart_xml_to_graph,
    label_text,
    parse_cells,
    parse_style,
    style_to_kind,
    whiteboard_to_flowchart_xml,
)
from diagram_core.exceptions import ConversionError
from diagram_core.models import AnchorSide, ArrowType, LineStyle, NodeKind, Position, Size

SIBLING_CELLS = (
    '<mxCell id="2" value="Start" style="ellipse" vertex="1">'
    '<mxGeometry x="0" y="0" width="80" height="40"/></mxCell>'
    '<mxCell id="3" value="Go" style="rhombus" vertex="1">'
    '<mxGeometry x="200" y="0" width="80" height="40"/></mxCell>'
    '<mxCell id="4" edge="1" source="2" target="3"/>'
)

MODEL = """<mxGraphModel><root>
  <mxCell id="0"/>
  <mxCell id="1" parent="0"/>
  <mxCell id="g" value="Services" style="swimlane;html=1;" vertex="1" parent="1">
    <mxGeometry x="100" y="100" width="300" height="200" as="geometry"/>
  </mxCell>
  <mxCell id="c" value="API" style="rounded=1;" vertex="1" parent="g">
    <mxGeometry x="20" y="40" width="120" height="60" as="geometry"/>
  </mxCell>
  <mxCell id="db" value="&lt;b&gt;Users&lt;/b&gt;&lt;br&gt;table" style="shape=cylinder3;html=1;fillColor=#dae8fc;" vertex="1" parent="1">
    <mxGeometry x="500" y="120" width="10" height="10" as="geometry"/>
  </mxCell>
  <mxCell id="img" style="shape=image;image=data:image/png,abc;" vertex="1" parent="1">
    <mxGeometry x="0" y="0" width="50" height="50" as="geometry"/>
  </mxCell>
  <mxCell id="e1" style="edgeStyle=orthogonal;exitX=1;exitY=0.5;entryX=0.5;entryY=0;dashed=1;endArrow=open;" edge="1" parent="1" source="c" target="db">
    <mxGeometry relative="1" as="geometry"/>
  </mxCell>
  <mxCell id="lbl" value="reads" style="edgeLabel;html=1;" vertex="1" parent="e1">
    <mxGeometry x="-0.2" relative="1" as="geometry"/>
  </mxCell>
  <mxCell id="e2" edge="1" parent="1" source="c" target="img">
    <mxGeometry relative="1" as="geometry"/>
  </mxCell>
</root></mxGraphModel>"""


def compressed_mxfile(model_xml: str) -> str:
    compressor = zlib.compressobj(9, zlib.DEFLATED, -15)
    data = compressor.compress(quote(model_xml).encode("utf-8")) + compressor.flush()
    payload = base64.b64encode(data).decode("ascii")
    return f'<mxfile host="test"><diagram id="p1" name="Page-1">{payload}</diagram></mxfile>'


# -----------------------------------------------------------------------------
# Test: style and label helpers
# -----------------------------------------------------------------------------

class TestStyleHelpers:
    """Tests for parse_style, style_to_kind and label_text."""

    def test_parse_style_flags_and_pairs(self):
        assert parse_style("rhombus;whiteSpace=wrap;fillColor=#fff;=x;bad=;") == {
            "rhombus": "1",
            "whiteSpace": "wrap",
            "fillColor": "#fff",
        }
        assert parse_style(None) == {}

    @pytest.mark.parametrize("style, kind", [
        ("rhombus", NodeKind.DECISION),
        ("shape=rhombus", NodeKind.DECISION),
        ("ellipse;html=1", NodeKind.TERMINAL),
        ("swimlane;startSize=23", NodeKind.CONTAINER),
        ("group", NodeKind.CONTAINER),
        ("rounded=0;container=1", NodeKind.CONTAINER),
        ("text;html=1", NodeKind.TEXT),
        ("shape=cylinder3", NodeKind.DATABASE),
        ("shape=note", NodeKind.NOTE),
        ("shape=document", NodeKind.DOCUMENT),
        ("shape=umlActor", NodeKind.ACTOR),
        ("rounded=1", NodeKind.BOX),
    ])
    def test_style_to_kind(self, style, kind):
        assert style_to_kind(parse_style(style)) == kind

    def test_html_label(self):
        assert label_text("<b>Hi</b><br>there", {"html": "1"}) == "Hi\nthere"

    def test_plain_label_untouched(self):
        assert label_text("a < b", {}) == "a < b"


# -----------------------------------------------------------------------------
# Test: flowchart_xml_to_graph
# -----------------------------------------------------------------------------

class TestFlowchartXmlToGraph:
    """Tests for flowchart_xml_to_graph."""

    def test_sibling_cells(self):
        """Should read a bare run of cells into two nodes and one edge."""
        graph = flowchart_xml_to_graph(SIBLING_CELLS)
        start, go = graph.nodes
        assert (start.id, start.kind, start.label) == ("2", NodeKind.TERMINAL, "Start")
        assert (go.id, go.kind, go.label) == ("3", NodeKind.DECISION, "Go")
        assert go.position == Position(x=200, y=0)
        assert go.size == Size(width=80, height=40)
        assert [(e.id, e.source, e.target) for e in graph.edges] == [("4", "2", "3")]
        assert graph.edges[0].arrow_end == ArrowType.FILLED

    def test_with_xml_declaration(self):
        graph = flowchart_xml_to_graph('<?xml version="1.0" encoding="UTF-8"?>' + SIBLING_CELLS)
        assert len(graph.nodes) == 2

    def test_accepts_bytes(self):
        graph = flowchart_xml_to_graph(MODEL.encode("utf-8"))
        assert graph.get_node("c") is not None

    def test_containers_and_absolute_positions(self):
        graph = flowchart_xml_to_graph(MODEL)
        group = graph.get_node("g")
        child = graph.get_node("c")
        assert group.kind == NodeKind.CONTAINER
        assert child.parent_id == "g"
        assert child.position == Position(x=120, y=140)
        assert group.parent_id is None

    def test_root_cells_images_and_edge_labels_are_not_nodes(self):
        graph = flowchart_xml_to_graph(MODEL)
        assert [n.id for n in graph.nodes] == ["g", "c", "db"]

    def test_node_details(self):
        db = flowchart_xml_to_graph(MODEL).get_node("db")
        assert db.kind == NodeKind.DATABASE
        assert db.label == "Users\ntable"
        assert db.color == "#dae8fc"
        assert db.size == Size(width=40, height=24)

    def test_edge_details(self):
        graph = flowchart_xml_to_graph(MODEL)
        assert [e.id for e in graph.edges] == ["e1"]
        edge = graph.edges[0]
        assert edge.label == "reads"
        assert edge.source_anchor == AnchorSide.RIGHT
        assert edge.target_anchor == AnchorSide.TOP
        assert edge.line_style == LineStyle.DASHED
        assert edge.arrow_end == ArrowType.ARROW

    def test_compressed_payload(self):
        graph = flowchart_xml_to_graph(compressed_mxfile(MODEL))
        assert [n.id for n in graph.nodes] == ["g", "c", "db"]
        assert len(graph.edges) == 1

    def test_uncompressed_mxfile_pages(self):
        second = SIBLING_CELLS.replace('id="2"', 'id="x"').replace('source="2"', 'source="x"')
        document = (
            "<mxfile>"
            f"<diagram name='one'>{MODEL}</diagram>"
            f"<diagram name='two'><mxGraphModel><root>{second}</root></mxGraphModel></diagram>"
            "</mxfile>"
        )
        assert [n.id for n in flowchart_xml_to_graph(document).nodes] == ["g", "c", "db"]
        assert [n.id for n in flowchart_xml_to_graph(document, page=1).nodes] == ["x", "3"]
        assert flowchart_xml_to_graph(document, page=5).nodes == []

    def test_user_object_wrapper(self):
        xml = (
            '<root><UserObject id="u1" label="Wrapped" link="https://example.com">'
            '<mxCell style="rounded=1" vertex="1" parent="1">'
            '<mxGeometry x="5" y="6" width="100" height="40" as="geometry"/></mxCell>'
            "</UserObject></root>"
        )
        (node,) = flowchart_xml_to_graph(xml).nodes
        assert (node.id, node.label) == ("u1", "Wrapped")

    def test_dotted_edge(self):
        xml = SIBLING_CELLS.replace('edge="1"', 'edge="1" style="dashed=1;dashPattern=1 1;startArrow=diamond;"')
        edge = flowchart_xml_to_graph(xml).edges[0]
        assert edge.line_style == LineStyle.DOTTED
        assert edge.arrow_start == ArrowType.DIAMOND

    def test_vertex_without_geometry_skipped(self):
        graph = flowchart_xml_to_graph('<mxCell id="2" value="x" vertex="1"/><mxCell id="3" vertex="1"/>')
        assert graph.nodes == []

    def test_malformed_xml_gives_empty_graph(self):
        graph = flowchart_xml_to_graph('<mxCell id="2" value="x"')
        assert graph.nodes == []
        assert graph.edges == []

    def test_malformed_xml_raises_from_parse_cells(self):
        with pytest.raises(ConversionError):
            parse_cells("<<<not xml")

    def test_bad_compressed_payload(self):
        with pytest.raises(ConversionError):
            parse_cells("<mxfile><diagram>not-base64-deflate</diagram></mxfile>")
        assert flowchart_xml_to_graph("<mxfile><diagram>not-base64-deflate</diagram></mxfile>").nodes == []

    def test_entities_not_expanded(self):
        xml = (
            '<!DOCTYPE r [<!ENTITY x SYSTEM "file:///etc/passwd">]>'
            '<root><mxCell id="2" value="&x;" vertex="1"><mxGeometry width="80" height="40"/></mxCell></root>'
        )
        for node in flowchart_xml_to_graph(xml).nodes:
            assert "root:" not in node.label


# -----------------------------------------------------------------------------
# Test: whiteboard_to_flowchart_xml
# -----------------------------------------------------------------------------

class TestWhiteboardToFlowchartXml:
    """Tests for the skeleton export."""

    ELEMENTS = [
        {"type": "rectangle", "id": "ex-r1", "x": 10, "y": 20, "width": 100, "height": 50},
        {"type": "text", "id": "t1", "text": "Inside", "containerId": "ex-r1"},
        {"type": "ellipse", "id": "e1", "x": 300, "y": 20, "width": 80, "height": 80,
         "label": {"text": "Done"}},
        {"type": "diamond", "id": "has space", "x": 600, "y": 20},
        {"type": "arrow", "id": "a1", "start": {"id": "r1"}, "end": {"id": "e1"}, "label": {"text": "next"}},
        {"type": "arrow", "id": "a2", "start": {"id": "e1"}, "end": {"id": "missing"}},
    ]

    def test_document_shape(self):
        xml = whiteboard_to_flowchart_xml(self.ELEMENTS)
        assert xml.startswith("<?xml")
        assert '<mxfile host="app.diagrams.net">' in xml
        assert '<mxCell id="0"/>' in xml
        assert '<mxCell id="1" parent="0"/>' in xml
        assert "exitX=1;exitY=0.5;entryX=0;entryY=0.5;" in xml

    def test_export_reads_back(self):
        graph = flowchart_xml_to_graph(whiteboard_to_flowchart_xml(self.ELEMENTS))
        assert len(graph.nodes) == 3
        rect = graph.get_node("ex-r1")
        assert rect.label == "Inside"
        assert rect.kind == NodeKind.BOX
        assert rect.position == Position(x=10, y=20)
        assert graph.get_node("e1").kind == NodeKind.TERMINAL
        assert graph.get_node("has space") is None
        assert [n.kind for n in graph.nodes].count(NodeKind.DECISION) == 1

        (edge,) = graph.edges
        assert (edge.id, edge.source, edge.target, edge.label) == ("a1", "ex-r1", "e1", "next")
        assert edge.source_anchor == AnchorSide.RIGHT
        assert edge.target_anchor == AnchorSide.LEFT

    def test_connection_points_clamped(self):
        elements = [
            {"type": "rectangle", "id": "a"},
            {"type": "rectangle", "id": "b"},
            {"type": "arrow", "start": {"id": "a"}, "end": {"id": "b"}, "exitX": 3, "exitY": "nan", "entryY": 0.25},
        ]
        xml = whiteboard_to_flowchart_xml(elements)
        assert "exitX=1;exitY=0.5;entryX=0;entryY=0.25;" in xml

    def test_empty_input(self):
        graph = flowchart_xml_to_graph(whiteboard_to_flowchart_xml([]))
        assert graph.nodes == []
