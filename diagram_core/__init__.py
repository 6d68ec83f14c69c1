"""
Diagram Core - canonical graph model, format converters, layout engine,
collision resolver, incremental stream parser and branch colours.

Everything here is synchronous and pure: functions take a graph (or raw
external data) and return new objects without touching their inputs.
"""

from .models import (
    # Enums
    NodeKind,
    AnchorSide,
    LineStyle,
    ArrowType,
    # Core models
    Position,
    Size,
    GraphNode,
    GraphEdge,
    Graph,
)

from .exceptions import DiagramCoreError, LayoutError, LayoutTimeoutError, ConversionError
from .config import Settings, get_settings
from .logging_utils import configure_logging, get_logger
from .validation import (
    validate_graph,
    validation_summary,
    sanitize_generated_output,
    SanitizeResult,
    ValidationIssue,
    IssueSeverity,
)
from .analysis import describe_shape, find_connected_components, hidden_node_ids, GraphShape
from .collisions import resolve_collisions, resolve_graph_collisions
from .layout import LayoutAlgorithm, LayoutDirection, tree_layout, layered_layout, force_layout
from .engine import (
    LayoutOptions,
    LayoutResult,
    choose_algorithm,
    infer_direction,
    infer_anchor_sides,
    layout_graph,
)
from .streaming import (
    StreamPhase,
    StreamingGraphParser,
    StreamingElementsParser,
    GraphStreamUpdate,
    ElementsStreamUpdate,
    find_complete_object,
    parse_graph_buffer,
    parse_elements_buffer,
)
from .branches import BranchStyle, branch_color, edge_branch_color, node_branch_style

__all__ = [
    # Enums
    "NodeKind",
    "AnchorSide",
    "LineStyle",
    "ArrowType",
    # Models
    "Position",
    "Size",
    "GraphNode",
    "GraphEdge",
    "Graph",
    # Errors
    "DiagramCoreError",
    "LayoutError",
    "LayoutTimeoutError",
    "ConversionError",
    # Config / logging
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    # Validation
    "validate_graph",
    "validation_summary",
    "sanitize_generated_output",
    "SanitizeResult",
    "ValidationIssue",
    "IssueSeverity",
    # Analysis
    "describe_shape",
    "find_connected_components",
    "hidden_node_ids",
    "GraphShape",
    # Collisions
    "resolve_collisions",
    "resolve_graph_collisions",
    # Layout
    "LayoutAlgorithm",
    "LayoutDirection",
    "tree_layout",
    "layered_layout",
    "force_layout",
    "LayoutOptions",
    "LayoutResult",
    "choose_algorithm",
    "infer_direction",
    "infer_anchor_sides",
    "layout_graph",
    # Streaming
    "StreamPhase",
    "StreamingGraphParser",
    "StreamingElementsParser",
    "GraphStreamUpdate",
    "ElementsStreamUpdate",
    "find_complete_object",
    "parse_graph_buffer",
    "parse_elements_buffer",
    # Branch colours
    "BranchStyle",
    "branch_color",
    "edge_branch_color",
    "node_branch_style",
]
