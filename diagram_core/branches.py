"""
Branch colours for mind maps.

Every node hanging off the same first-level child of the root shares one
colour, derived from that child's id rather than stored on the node, so
colours survive re-layout and reload without being persisted.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from .analysis import parent_map
from .models import GraphEdge

BRANCH_STROKE_COLORS = [
    "rgb(59 130 246)",   # blue
    "rgb(34 197 94)",    # green
    "rgb(234 179 8)",    # amber
    "rgb(249 115 22)",   # orange
    "rgb(236 72 153)",   # pink
    "rgb(139 92 246)",   # violet
    "rgb(20 184 166)",   # teal
    "rgb(239 68 68)",    # red
    "rgb(99 102 241)",   # indigo
    "rgb(168 85 247)",   # purple
]

BRANCH_BG_COLORS = [
    "rgb(219 234 254)",
    "rgb(220 252 231)",
    "rgb(254 249 195)",
    "rgb(255 237 213)",
    "rgb(252 231 243)",
    "rgb(237 233 254)",
    "rgb(204 251 241)",
    "rgb(254 226 226)",
    "rgb(224 231 255)",
    "rgb(250 245 255)",
]

BRANCH_TEXT_COLORS = [
    "rgb(30 64 175)",
    "rgb(22 101 52)",
    "rgb(161 98 7)",
    "rgb(154 52 18)",
    "rgb(157 23 77)",
    "rgb(91 33 182)",
    "rgb(19 78 74)",
    "rgb(153 27 27)",
    "rgb(49 46 129)",
    "rgb(88 28 135)",
]

# Used when a node carries its own colour
OVERRIDE_TEXT_COLOR = "rgb(30 41 59)"
OVERRIDE_STROKE_COLOR = "rgb(100 116 139)"


@dataclass(frozen=True)
class BranchStyle:
    bg: str
    text: str
    stroke: str


def walk_to_root(node_id: str, parents: dict[str, str]) -> list[str]:
    """
    Path from the root down to `node_id`.

    Stops at the first repeated node, so a cyclic parent chain yields the
    path built so far instead of looping.
    """
    path = [node_id]
    visited = {node_id}
    current = node_id
    while current in parents:
        parent = parents[current]
        if parent in visited:
            break
        visited.add(parent)
        path.append(parent)
        current = parent
    path.reverse()
    return path


def string_hash(value: str) -> int:
    """32-bit signed `h * 31 + c` hash over UTF-16 code units."""
    h = 0
    data = value.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    return h - 0x100000000 if h >= 0x80000000 else h


def _palette_index(branch_id: str) -> int:
    return abs(string_hash(branch_id)) % len(BRANCH_STROKE_COLORS)


def branch_index(node_id: str, edges: Iterable[GraphEdge]) -> int:
    """Palette index of the branch `node_id` belongs to (the root uses its own id)."""
    path = walk_to_root(node_id, parent_map(edges))
    branch_id = path[1] if len(path) >= 2 else node_id
    return _palette_index(branch_id)


def branch_color(node_id: str, edges: Iterable[GraphEdge]) -> str:
    """Stroke colour of the branch `node_id` belongs to."""
    return BRANCH_STROKE_COLORS[branch_index(node_id, edges)]


def edge_branch_color(source: str, target: str, edges: Iterable[GraphEdge]) -> str:
    """Stroke colour for an edge; edges leaving the root take the target's branch."""
    path = walk_to_root(source, parent_map(edges))
    branch_id = path[1] if len(path) >= 2 else target
    return BRANCH_STROKE_COLORS[_palette_index(branch_id)]


def node_branch_style(
    node_id: str,
    edges: Iterable[GraphEdge],
    override_color: Optional[str] = None,
) -> BranchStyle:
    """Background, text and stroke colours for a mind-map node.

    A non-blank `override_color` becomes the background with neutral text
    and stroke colours.
    """
    if override_color and override_color.strip():
        return BranchStyle(bg=override_color, text=OVERRIDE_TEXT_COLOR, stroke=OVERRIDE_STROKE_COLOR)
    idx = branch_index(node_id, edges)
    return BranchStyle(
        bg=BRANCH_BG_COLORS[idx],
        text=BRANCH_TEXT_COLORS[idx],
        stroke=BRANCH_STROKE_COLORS[idx],
    )
