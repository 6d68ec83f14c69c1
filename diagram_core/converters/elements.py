"""
Whiteboard element models.

Covers both the skeleton shape generators emit (`start`/`end` references,
`label.text`) and the full element shape a whiteboard exports
(`startBinding`/`endBinding`, `containerId`, `boundElements`). Keys this
module does not model are kept as extra fields and written back unchanged.
"""

import logging
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class ElementType(str, Enum):
    """Element types the converters understand."""
    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
    DIAMOND = "diamond"
    TEXT = "text"
    ARROW = "arrow"
    LINE = "line"


CONNECTOR_TYPES = {ElementType.ARROW.value, ElementType.LINE.value}


def is_connector_type(element_type: Any, points: Any = None) -> bool:
    """Arrows and plain lines; a line with more than two points is a drawn shape."""
    if element_type == ElementType.ARROW.value:
        return True
    is_path_shape = isinstance(points, list) and len(points) > 2
    return element_type == ElementType.LINE.value and not is_path_shape


class EndpointRef(BaseModel):
    """Skeleton-style arrow endpoint: `{"id": "..."}`."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)


class ElementBinding(BaseModel):
    """Full-element arrow binding."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    element_id: str = Field(alias="elementId")
    focus: float = 0
    gap: float = 1


class BoundElement(BaseModel):
    """Back-reference from a shape to an arrow or text bound to it."""
    id: str
    type: str


class TextLabel(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: str = ""


class WhiteboardElement(BaseModel):
    """A single whiteboard element (shape, text, arrow or line)."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str
    id: Optional[str] = None
    x: float = 0.0
    y: float = 0.0
    width: Optional[float] = None
    height: Optional[float] = None
    text: Optional[str] = None
    label: Optional[TextLabel] = None
    background_color: Optional[str] = Field(default=None, alias="backgroundColor")
    stroke_color: Optional[str] = Field(default=None, alias="strokeColor")
    container_id: Optional[str] = Field(default=None, alias="containerId")
    bound_elements: Optional[list[BoundElement]] = Field(default=None, alias="boundElements")
    start: Optional[EndpointRef] = None
    end: Optional[EndpointRef] = None
    start_binding: Optional[ElementBinding] = Field(default=None, alias="startBinding")
    end_binding: Optional[ElementBinding] = Field(default=None, alias="endBinding")
    points: Optional[list[list[float]]] = None
    custom_data: Optional[dict[str, Any]] = Field(default=None, alias="customData")

    @field_validator("id", "container_id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("x", "y", mode="before")
    @classmethod
    def coerce_coordinate(cls, value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    @field_validator("width", "height", mode="before")
    @classmethod
    def coerce_dimension(cls, value: Any) -> Optional[float]:
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @field_validator("label", mode="before")
    @classmethod
    def coerce_label(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"text": value}
        return value

    @property
    def is_connector(self) -> bool:
        return is_connector_type(self.type, self.points)

    def label_text(self) -> str:
        if self.label is not None and self.label.text:
            return self.label.text
        return self.text or ""

    def start_id(self) -> Optional[str]:
        if self.start is not None and self.start.id:
            return self.start.id
        if self.start_binding is not None:
            return self.start_binding.element_id
        return None

    def end_id(self) -> Optional[str]:
        if self.end is not None and self.end.id:
            return self.end.id
        if self.end_binding is not None:
            return self.end_binding.element_id
        return None

    def extra(self, key: str, default: Any = None) -> Any:
        """Read a key this model does not declare."""
        return (self.model_extra or {}).get(key, default)

    def to_dict(self) -> dict:
        """Convert to the camelCase JSON shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


def coerce_elements(raw: Any) -> list[WhiteboardElement]:
    """
    Validate a raw element list.

    Entries that are already WhiteboardElement pass through; dicts are
    validated; anything else, and dicts that fail validation (e.g. no
    `type`), is dropped.
    """
    if not isinstance(raw, (list, tuple)):
        return []

    elements: list[WhiteboardElement] = []
    for i, item in enumerate(raw):
        if isinstance(item, WhiteboardElement):
            elements.append(item)
            continue
        if not isinstance(item, dict):
            logger.debug("Dropping element %d: not an object", i)
            continue
        try:
            elements.append(WhiteboardElement.model_validate(item))
        except ValidationError as e:
            logger.debug("Dropping element %d (%r): %s", i, item.get("id"), e)
    return elements


def elements_to_dicts(elements: Iterable[WhiteboardElement]) -> list[dict]:
    return [el.to_dict() for el in elements]
