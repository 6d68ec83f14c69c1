"""Exception hierarchy for the diagram core.

These are raised inside the core only. Public converters and the layout
engine catch them and return a degraded-but-safe result instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class DiagramCoreError(Exception):
    """Base exception type for all diagram core errors."""

    message: str
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        if not self.context:
            return self.message
        return f"{self.message} | context={self.context}"


class LayoutError(DiagramCoreError):
    """Raised when a layout algorithm cannot produce positions."""


class LayoutTimeoutError(LayoutError):
    """Raised when a layout algorithm runs past its deadline."""


class ConversionError(DiagramCoreError):
    """Raised when an external document cannot be read at all."""
