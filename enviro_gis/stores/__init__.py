"""Owned-state stores for monitoring locations and shapes."""

from .location_store import LocationStore, validate_location_draft
from .shape_store import (
    AnalysisResult,
    DrawnShape,
    PendingShapeState,
    ShapeStore,
    validate_shape_draft,
)

__all__ = [
    "AnalysisResult",
    "DrawnShape",
    "LocationStore",
    "PendingShapeState",
    "ShapeStore",
    "validate_location_draft",
    "validate_shape_draft",
]
