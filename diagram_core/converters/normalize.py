"""Skeleton normalization: shapes before connectors, consistent endpoint ids."""

from typing import Any, Iterable, Optional

from .elements import WhiteboardElement, is_connector_type
from .whiteboard import ELEMENT_ID_PREFIX


def normalize_skeletons(
    elements: Iterable[Any],
    extra_shape_ids: Optional[Iterable[str]] = None,
) -> list[dict[str, Any]]:
    """
    Order skeleton elements shapes-first and repair arrow endpoint ids.

    An arrow `start.id` / `end.id` is rewritten to the first of: the id
    itself if a shape has it, the `ex-` prefixed form, or a shape id that
    matches ignoring case. Unmatched ids are left alone.

    Args:
        elements: Skeleton dicts (or WhiteboardElement models); never modified
        extra_shape_ids: Ids of shapes that live outside `elements`, e.g.
            nodes already on the canvas

    Returns:
        New list of dicts: shapes in input order, then connectors
    """
    shapes: list[dict[str, Any]] = []
    arrows: list[dict[str, Any]] = []
    for el in elements:
        if isinstance(el, WhiteboardElement):
            el = el.to_dict()
        if not isinstance(el, dict):
            continue
        (arrows if is_connector_type(el.get("type"), el.get("points")) else shapes).append(el)

    shape_ids = {str(s["id"]) for s in shapes if s.get("id")}
    lower_ids = {sid.lower(): sid for sid in shape_ids}
    for raw in extra_shape_ids or ():
        sid = str(raw)
        shape_ids.add(sid)
        if not sid.startswith(ELEMENT_ID_PREFIX):
            shape_ids.add(f"{ELEMENT_ID_PREFIX}{sid}")
        lower_ids[sid.lower()] = sid

    def ensure_id(value: str) -> str:
        if value in shape_ids:
            return value
        if f"{ELEMENT_ID_PREFIX}{value}" in shape_ids:
            return f"{ELEMENT_ID_PREFIX}{value}"
        return lower_ids.get(value.lower(), value)

    fixed: list[dict[str, Any]] = []
    for arrow in arrows:
        arrow = dict(arrow)
        for key in ("start", "end"):
            ref = arrow.get(key)
            if isinstance(ref, dict) and ref.get("id"):
                arrow[key] = {**ref, "id": ensure_id(str(ref["id"]))}
        fixed.append(arrow)

    return shapes + fixed
