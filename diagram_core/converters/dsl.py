"""
Compact drawing DSL -> whiteboard elements.

Records look like `{"id": "a", "type": "rect", "x": 0, "y": 0, "w": 120,
"h": 60, "fill": "b", "text": "Start"}`; colours may be one-letter codes
and arrows bind to shapes through `startBind` / `endBind`.
"""

import logging
import random
import time
import uuid
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError

from .elements import ElementType, WhiteboardElement

logger = logging.getLogger(__name__)

COLOR_CODES = {
    "k": "#1e1e1e",
    "w": "#ffffff",
    "r": "#e03131",
    "g": "#2f9e44",
    "b": "#1971c2",
    "y": "#f59f00",
    "p": "#9c36b5",
    "o": "#fd7e14",
    "t": "transparent",
}

DSL_TYPES = {
    "rect": ElementType.RECTANGLE.value,
    "ellipse": ElementType.ELLIPSE.value,
    "diamond": ElementType.DIAMOND.value,
    "arrow": ElementType.ARROW.value,
    "text": ElementType.TEXT.value,
}
SHAPE_TYPES = {"rect", "ellipse", "diamond"}

DEFAULT_STROKE = "#1e1e1e"
DEFAULT_FILL = "transparent"
DEFAULT_FONT_SIZE = 20
DEFAULT_SHAPE_WIDTH = 120
DEFAULT_SHAPE_HEIGHT = 80
CHAR_WIDTH_RATIO = 0.6
LINE_HEIGHT = 1.25


def resolve_color(ref: Any, default: str) -> str:
    if not ref or not isinstance(ref, str):
        return default
    return COLOR_CODES.get(ref, ref)


def text_size(text: str, font_size: float) -> tuple[float, float]:
    """Estimated (width, height) of text: 0.6 em per character, 1.25 em per line."""
    lines = text.split("\n")
    longest = max(len(line) for line in lines)
    return longest * font_size * CHAR_WIDTH_RATIO, len(lines) * font_size * LINE_HEIGHT


def _number(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _random_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:9]}"


def dsl_to_whiteboard(
    records: Iterable[Any],
    id_factory: Optional[Callable[[str], str]] = None,
) -> list[WhiteboardElement]:
    """
    Expand DSL records into full whiteboard elements.

    Pass one creates an element per record (plus a centred, bound text
    element for every shape with inline `text`) and records a DSL id ->
    element id table. Pass two resolves arrow `startBind`/`endBind` and text
    `container` references through that table and adds the matching
    `boundElements` back-references. A reference to an id that produced no
    element is left unbound.

    Args:
        records: DSL records; non-objects and unknown types are skipped
        id_factory: Makes an element id from a DSL id (random suffix by default)

    Returns:
        Shapes and texts first, arrows last
    """
    make_id = id_factory or _random_id
    records = list(records)
    created: list[dict[str, Any]] = []
    id_map: dict[str, str] = {}
    lookup: dict[str, dict[str, Any]] = {}
    inline_labels: dict[str, tuple[dict[str, Any], str]] = {}

    def base(d: dict[str, Any], element_id: str) -> dict[str, Any]:
        return {
            "id": element_id,
            "type": DSL_TYPES.get(d["type"], d["type"]),
            "x": _number(d.get("x"), 0),
            "y": _number(d.get("y"), 0),
            "width": 100,
            "height": 40,
            "angle": 0,
            "strokeColor": resolve_color(d.get("stroke"), DEFAULT_STROKE),
            "backgroundColor": resolve_color(d.get("fill"), DEFAULT_FILL),
            "fillStyle": "solid",
            "strokeWidth": _number(d.get("strokeW"), 2),
            "strokeStyle": "solid",
            "roughness": 1,
            "opacity": 100,
            "groupIds": [],
            "seed": random.randint(0, 2_000_000_000),
            "version": 1,
            "versionNonce": random.randint(0, 2_000_000_000),
            "isDeleted": False,
            "boundElements": [],
            "updated": int(time.time() * 1000),
            "locked": False,
        }

    for i, d in enumerate(records):
        if not isinstance(d, dict) or not d.get("type"):
            continue
        dsl_type = d["type"]
        if not isinstance(dsl_type, str) or dsl_type not in DSL_TYPES:
            logger.debug("Skipping DSL record %d with unsupported type %r", i, dsl_type)
            continue

        dsl_id = str(d.get("id") if d.get("id") is not None else f"e{i}")
        element_id = make_id(dsl_id)
        el = base(d, element_id)

        if dsl_type in SHAPE_TYPES:
            el["width"] = _number(d.get("w"), 0) or DEFAULT_SHAPE_WIDTH
            el["height"] = _number(d.get("h"), 0) or DEFAULT_SHAPE_HEIGHT
            el["roundness"] = {"type": 3 if dsl_type == "rect" else 2}
            if d.get("text"):
                inline_labels[element_id] = (d, dsl_id)
        elif dsl_type == "arrow":
            end_x = _number(d.get("endX"), el["x"] + 100)
            end_y = _number(d.get("endY"), el["y"])
            dx = end_x - el["x"]
            dy = end_y - el["y"]
            el.update({
                "width": abs(dx),
                "height": abs(dy),
                "points": [[0, 0], [dx, dy]],
                "roundness": {"type": 2},
                "startArrowhead": None,
                "endArrowhead": "arrow",
                "startBinding": None,
                "endBinding": None,
                "elbowed": False,
            })
        else:
            text = str(d.get("text") or "Text")
            font_size = _number(d.get("fontSize"), DEFAULT_FONT_SIZE)
            width, height = text_size(text, font_size)
            el.update({
                "text": text,
                "originalText": text,
                "fontSize": font_size,
                "fontFamily": 5,
                "textAlign": "left",
                "verticalAlign": "top",
                "containerId": None,
                "autoResize": True,
                "lineHeight": LINE_HEIGHT,
                "width": width,
                "height": height,
            })

        id_map[dsl_id] = element_id
        lookup[element_id] = el
        created.append(el)

    # Inline shape text becomes a bound, centred text element right after its shape
    ordered: list[dict[str, Any]] = []
    for el in created:
        ordered.append(el)
        label = inline_labels.get(el["id"])
        if label is None:
            continue
        d, dsl_id = label
        text = str(d["text"])
        font_size = _number(d.get("fontSize"), DEFAULT_FONT_SIZE)
        width, height = text_size(text, font_size)
        text_id = make_id(f"{dsl_id}_text")
        text_el = base(d, text_id)
        text_el.update({
            "type": ElementType.TEXT.value,
            "text": text,
            "originalText": text,
            "fontSize": font_size,
            "fontFamily": 5,
            "textAlign": "center",
            "verticalAlign": "middle",
            "containerId": el["id"],
            "autoResize": True,
            "lineHeight": LINE_HEIGHT,
            "width": width,
            "height": height,
            "x": el["x"] + (el["width"] - width) / 2,
            "y": el["y"] + (el["height"] - height) / 2,
        })
        lookup[text_id] = text_el
        ordered.append(text_el)
        el["boundElements"].append({"id": text_id, "type": "text"})

    for i, d in enumerate(records):
        if not isinstance(d, dict) or d.get("type") not in ("arrow", "text"):
            continue
        element_id = id_map.get(str(d.get("id") if d.get("id") is not None else f"e{i}"))
        el = lookup.get(element_id) if element_id else None
        if el is None or el["type"] != DSL_TYPES[d["type"]]:
            continue

        if d["type"] == "arrow":
            for key, binding in (("startBind", "startBinding"), ("endBind", "endBinding")):
                ref = d.get(key)
                target_id = id_map.get(str(ref)) if ref is not None else None
                if target_id is None:
                    if ref is not None:
                        logger.debug("Arrow %s: %s %r does not exist", element_id, key, ref)
                    continue
                el[binding] = {"elementId": target_id, "focus": 0, "gap": 1}
                lookup[target_id]["boundElements"].append({"id": element_id, "type": "arrow"})
        elif d.get("container") is not None:
            container_id = id_map.get(str(d["container"]))
            if container_id is None:
                continue
            el["containerId"] = container_id
            el["textAlign"] = "center"
            el["verticalAlign"] = "middle"
            lookup[container_id]["boundElements"].append({"id": element_id, "type": "text"})

    shapes = [el for el in ordered if el["type"] != ElementType.ARROW.value]
    arrows = [el for el in ordered if el["type"] == ElementType.ARROW.value]
    elements = []
    for el in shapes + arrows:
        try:
            elements.append(WhiteboardElement.model_validate(el))
        except ValidationError as e:
            logger.debug("Dropping DSL element %s: %s", el["id"], e)
    return elements
