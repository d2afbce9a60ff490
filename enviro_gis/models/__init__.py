"""Data models package for typed monitoring locations and shapes."""

from .data_models import (
    AirQualityReading,
    Bounds,
    Co2Reading,
    IndustrialReading,
    LayerType,
    LocationDraft,
    MonitoringLocation,
    Reading,
    Shape,
    ShapeCategory,
    ShapeDraft,
    ShapeStyle,
    ShapeType,
    SpatialPredicate,
    TemperatureReading,
    TrafficReading,
    # Helpers
    category_options,
    co2_marker_color,
    parse_timestamp,
    reading_from_dict,
)

__all__ = [
    # Enums
    "LayerType",
    "ShapeCategory",
    "ShapeType",
    "SpatialPredicate",
    # Readings
    "Reading",
    "Co2Reading",
    "AirQualityReading",
    "TemperatureReading",
    "IndustrialReading",
    "TrafficReading",
    # Records
    "MonitoringLocation",
    "LocationDraft",
    "Shape",
    "ShapeDraft",
    "ShapeStyle",
    "Bounds",
    # Helpers
    "category_options",
    "co2_marker_color",
    "parse_timestamp",
    "reading_from_dict",
]
