"""Geometry package: spatial predicates, buffering and geodesic measurement."""

from .measurements import Measurement, format_area, format_length
from .predicates import GeometryPredicates, as_feature, to_geometry

__all__ = [
    "GeometryPredicates",
    "Measurement",
    "as_feature",
    "format_area",
    "format_length",
    "to_geometry",
]
