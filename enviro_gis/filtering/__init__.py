"""Filtering package: criteria, filter engine and preset storage."""

from .criteria import AttributeRange, DateRange, FilterCriteria, FilterPreset, SpatialQuery
from .filter_engine import FilterEngine
from .preset_storage import PresetStorage

__all__ = [
    "AttributeRange",
    "DateRange",
    "FilterCriteria",
    "FilterEngine",
    "FilterPreset",
    "PresetStorage",
    "SpatialQuery",
]
