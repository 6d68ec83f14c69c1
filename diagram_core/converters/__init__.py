"""
Format converters between the canonical graph and external diagram formats.

- whiteboard: canonical graph <-> whiteboard elements
- flowchart_xml: flowchart XML -> canonical graph, skeleton -> flowchart XML
- dsl: compact DSL -> whiteboard elements
- normalize: shapes-first ordering and endpoint id repair for skeletons
"""

from .elements import (
    BoundElement,
    ElementBinding,
    ElementType,
    EndpointRef,
    TextLabel,
    WhiteboardElement,
    coerce_elements,
    elements_to_dicts,
)
from .whiteboard import graph_to_whiteboard, whiteboard_to_graph
from .flowchart_xml import (
    FlowchartCell,
    flowchart_xml_to_graph,
    parse_cells,
    parse_style,
    whiteboard_to_flowchart_xml,
)
from .dsl import COLOR_CODES, DSL_TYPES, dsl_to_whiteboard
from .normalize import normalize_skeletons

__all__ = [
    # Elements
    "BoundElement",
    "ElementBinding",
    "ElementType",
    "EndpointRef",
    "TextLabel",
    "WhiteboardElement",
    "coerce_elements",
    "elements_to_dicts",
    # Whiteboard
    "graph_to_whiteboard",
    "whiteboard_to_graph",
    # Flowchart XML
    "FlowchartCell",
    "flowchart_xml_to_graph",
    "parse_cells",
    "parse_style",
    "whiteboard_to_flowchart_xml",
    # DSL
    "COLOR_CODES",
    "DSL_TYPES",
    "dsl_to_whiteboard",
    # Normalization
    "normalize_skeletons",
]
