#!/usr/bin/env python3
"""
Environmental GIS Dashboard - Filter Engine

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Derive the filtered view of monitoring locations from the
current FilterCriteria, and manage named filter presets.

Key Features:
1. Pure apply(criteria, locations): a narrowing pipeline where each axis
   only removes records and axes are independent of order
2. Axes: text, layer type, date range, spatial predicate, attribute ranges
3. Fail-open: spatial errors and absent/non-numeric attributes pass
4. Vectorized spatial axis (Shapely contains_xy / intersects_xy)
5. Presets saved to durable storage (see preset_storage.py)
6. Active-filter count and human-readable summary

Pipeline Order (cheapest first, result is order independent):
    layer type -> text -> date -> attributes -> spatial

Navigation Guide:
- FilterEngine.apply: Pure filtering
- Criteria mutators: update_* / set_* / clear_*
- Presets: save_preset / apply_preset / delete_preset
- Summaries: get_active_filter_count / get_filter_summary

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union
import logging
import math
import time

import numpy as np

from enviro_gis.errors import (
    GeometryError,
    NotFoundError,
    OperationResult,
    StorageError,
    ValidationError,
)
from enviro_gis.filtering.criteria import (
    AttributeRange,
    DateRange,
    FilterCriteria,
    FilterPreset,
    SpatialQuery,
)
from enviro_gis.filtering.preset_storage import PresetStorage
from enviro_gis.geometry.predicates import GeometryPredicates, to_geometry
from enviro_gis.models.data_models import (
    LayerType,
    MonitoringLocation,
    SpatialPredicate,
    parse_timestamp,
)
from enviro_gis.stores.base import ObservableStore

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


# ═══════════════════════════════════════════════════════════════════════════
# 🔎 FILTER AXES
# ═══════════════════════════════════════════════════════════════════════════


def _filter_layer_types(
    locations: List[MonitoringLocation], layer_types: Iterable[LayerType]
) -> List[MonitoringLocation]:
    allowed = set(layer_types)
    if not allowed:
        return locations
    return [loc for loc in locations if loc.layer_type in allowed]


def _filter_text(locations: List[MonitoringLocation], search_text: str) -> List[MonitoringLocation]:
    needle = search_text.strip().lower()
    if not needle:
        return locations
    return [
        loc
        for loc in locations
        if needle in loc.name.lower() or needle in (loc.category or "").lower()
    ]


def _filter_dates(locations: List[MonitoringLocation], date_range: DateRange) -> List[MonitoringLocation]:
    if not date_range.active:
        return locations
    try:
        start = parse_timestamp(date_range.start)
        end = parse_timestamp(date_range.end, end_of_day=True)
    except ValueError as e:
        logger.warning(f"⚠️ Ignoring malformed date range: {e}")
        return locations

    def in_range(loc: MonitoringLocation) -> bool:
        if loc.created_at is None:
            return False
        if start is not None and loc.created_at < start:
            return False
        if end is not None and loc.created_at > end:
            return False
        return True

    return [loc for loc in locations if in_range(loc)]


def _filter_attributes(
    locations: List[MonitoringLocation], attributes: Dict[str, AttributeRange]
) -> List[MonitoringLocation]:
    for name, rng in attributes.items():
        if not rng.populated:
            continue

        def passes(loc: MonitoringLocation, name: str = name, rng: AttributeRange = rng) -> bool:
            value = loc.attribute(name)
            if not isinstance(value, (int, float)) or math.isnan(value):
                return True
            return rng.accepts(value)

        locations = [loc for loc in locations if passes(loc)]
    return locations


# ═══════════════════════════════════════════════════════════════════════════
# ⚙️ FILTER ENGINE
# ═══════════════════════════════════════════════════════════════════════════


class FilterEngine(ObservableStore):
    """
    Current filter criteria, the filtered location view, and presets.

    filtered_locations is recomputed synchronously whenever the criteria or
    the source locations change; listeners are notified afterwards.
    """

    def __init__(
        self,
        predicates: Optional[GeometryPredicates] = None,
        storage: Optional[PresetStorage] = None,
    ) -> None:
        super().__init__()
        self.predicates = predicates or GeometryPredicates()
        self.storage = storage
        self.criteria = FilterCriteria()
        self._locations: List[MonitoringLocation] = []
        self.filtered_locations: List[MonitoringLocation] = []
        self.presets: List[FilterPreset] = storage.load() if storage else []

    # ───────────────────────────────────────────────────────────────────────
    # Pure filtering
    # ───────────────────────────────────────────────────────────────────────

    def apply(
        self, criteria: FilterCriteria, locations: List[MonitoringLocation]
    ) -> List[MonitoringLocation]:
        """
        Filter locations by criteria without touching engine state.

        Input order is preserved. An all-empty criteria returns every record.
        """
        result = list(locations)
        result = _filter_layer_types(result, criteria.layer_types)
        result = _filter_text(result, criteria.search_text)
        result = _filter_dates(result, criteria.date_range)
        result = _filter_attributes(result, criteria.attributes)
        if criteria.spatial_query is not None:
            result = self._filter_spatial(result, criteria.spatial_query)
        return result

    def _filter_spatial(
        self, locations: List[MonitoringLocation], query: SpatialQuery
    ) -> List[MonitoringLocation]:
        if not locations:
            return locations
        lons = np.array([loc.longitude for loc in locations], dtype=float)
        lats = np.array([loc.latitude for loc in locations], dtype=float)
        try:
            mask = self.predicates.point_mask(query.predicate, lons, lats, query.shape)
        except GeometryError as e:
            logger.warning(f"⚠️ Spatial filter failed, passing all records: {e.message}")
            return locations
        return [loc for loc, keep in zip(locations, mask) if keep]

    # ───────────────────────────────────────────────────────────────────────
    # Source data
    # ───────────────────────────────────────────────────────────────────────

    def set_locations(self, locations: List[MonitoringLocation]) -> None:
        self._locations = list(locations)
        self._recompute()

    def _set_criteria(self, criteria: FilterCriteria) -> None:
        self.criteria = criteria
        self._recompute()

    def _recompute(self) -> None:
        self.filtered_locations = self.apply(self.criteria, self._locations)
        self._notify()

    # ───────────────────────────────────────────────────────────────────────
    # Criteria mutators
    # ───────────────────────────────────────────────────────────────────────

    def update_search_text(self, text: str) -> None:
        self._set_criteria(replace(self.criteria, search_text=text or ""))

    def update_layer_types(self, layer_types: Iterable[Union[LayerType, str]]) -> None:
        """Replace the layer-type selection. An empty selection means no restriction.

        Raises:
            ValueError: For a layer type outside the closed set
        """
        parsed: List[LayerType] = []
        for lt in layer_types:
            lt = lt if isinstance(lt, LayerType) else LayerType.from_string(lt)
            if lt not in parsed:
                parsed.append(lt)
        self._set_criteria(replace(self.criteria, layer_types=tuple(parsed)))

    def toggle_layer_type(self, layer_type: Union[LayerType, str]) -> None:
        lt = layer_type if isinstance(layer_type, LayerType) else LayerType.from_string(layer_type)
        current = list(self.criteria.layer_types)
        if lt in current:
            current.remove(lt)
        else:
            current.append(lt)
        self._set_criteria(replace(self.criteria, layer_types=tuple(current)))

    def update_date_range(self, start: Optional[str] = None, end: Optional[str] = None) -> None:
        """Set ISO date bounds (either may be None for an open range).

        Raises:
            ValueError: If a bound is not an ISO date
        """
        parse_timestamp(start)
        parse_timestamp(end)
        self._set_criteria(replace(self.criteria, date_range=DateRange(start or None, end or None)))

    def clear_date_range(self) -> None:
        self._set_criteria(replace(self.criteria, date_range=DateRange()))

    def set_spatial_query(
        self, predicate: Union[SpatialPredicate, str], shape: Dict[str, Any]
    ) -> None:
        """
        Filter by a spatial predicate against a reference Feature.

        Raises:
            ValueError: Unknown predicate
            GeometryError: shape is not a Feature
        """
        if not isinstance(predicate, SpatialPredicate):
            predicate = SpatialPredicate.from_string(predicate)
        to_geometry(shape)
        self._set_criteria(
            replace(self.criteria, spatial_query=SpatialQuery(predicate=predicate, shape=shape))
        )

    def clear_spatial_query(self) -> None:
        self._set_criteria(replace(self.criteria, spatial_query=None))

    def set_attribute_filter(
        self, attribute: str, min_value: Optional[float] = None, max_value: Optional[float] = None
    ) -> None:
        attributes = dict(self.criteria.attributes)
        attributes[attribute] = AttributeRange.from_dict({"min": min_value, "max": max_value})
        self._set_criteria(replace(self.criteria, attributes=attributes))

    def clear_attribute_filter(self, attribute: str) -> None:
        attributes = {k: v for k, v in self.criteria.attributes.items() if k != attribute}
        self._set_criteria(replace(self.criteria, attributes=attributes))

    def clear_all_filters(self) -> None:
        self._set_criteria(FilterCriteria())

    # ───────────────────────────────────────────────────────────────────────
    # Presets
    # ───────────────────────────────────────────────────────────────────────

    def _next_preset_id(self) -> str:
        taken = {p.id for p in self.presets}
        candidate = _now_ms()
        while str(candidate) in taken:
            candidate += 1
        return str(candidate)

    def _persist_presets(self, presets: List[FilterPreset]) -> bool:
        """Write presets to durable storage. False if the write failed."""
        if self.storage is None:
            return True
        return self.storage.save(presets)

    def save_preset(self, name: str) -> OperationResult:
        """Snapshot the current criteria under a name."""
        if not (name or "").strip():
            return OperationResult.failure(ValidationError("Preset name is required"))
        preset = FilterPreset(
            id=self._next_preset_id(),
            name=name.strip(),
            filters=self.criteria,
            created_at=datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z",
        )
        presets = self.presets + [preset]
        if not self._persist_presets(presets):
            return OperationResult.failure(StorageError("Could not save preset, storage is busy"))
        self.presets = presets
        logger.info(f"💾 Saved filter preset '{preset.name}' ({preset.id})")
        self._notify()
        return OperationResult.success(preset)

    def get_preset(self, preset_id: str) -> Optional[FilterPreset]:
        for preset in self.presets:
            if preset.id == preset_id:
                return preset
        return None

    def apply_preset(self, preset: Union[FilterPreset, str]) -> OperationResult:
        """Overwrite the current criteria with a preset's snapshot."""
        if isinstance(preset, str):
            found = self.get_preset(preset)
            if found is None:
                return OperationResult.failure(NotFoundError("Preset not found"))
            preset = found
        self._set_criteria(preset.filters)
        return OperationResult.success(preset)

    def delete_preset(self, preset_id: str) -> OperationResult:
        if self.get_preset(preset_id) is None:
            return OperationResult.failure(NotFoundError("Preset not found"))
        presets = [p for p in self.presets if p.id != preset_id]
        if not self._persist_presets(presets):
            return OperationResult.failure(StorageError("Could not delete preset, storage is busy"))
        self.presets = presets
        self._notify()
        return OperationResult.success(preset_id)

    # ───────────────────────────────────────────────────────────────────────
    # Summaries
    # ───────────────────────────────────────────────────────────────────────

    def get_active_filter_count(self) -> int:
        c = self.criteria
        count = 0
        if c.search_text.strip():
            count += 1
        if c.layer_types:
            count += 1
        if c.date_range.active:
            count += 1
        if c.spatial_query is not None:
            count += 1
        count += len(c.active_attributes)
        return count

    def has_active_filters(self) -> bool:
        return self.get_active_filter_count() > 0

    def get_filter_summary(self) -> str:
        c = self.criteria
        parts: List[str] = []
        if c.search_text.strip():
            parts.append(f'Search: "{c.search_text}"')
        if c.layer_types:
            parts.append(f"Layers: {', '.join(lt.value for lt in c.layer_types)}")
        if c.date_range.active:
            parts.append("Date range active")
        if c.spatial_query is not None:
            parts.append(f"Spatial: {c.spatial_query.predicate.value}")
        attribute_count = len(c.active_attributes)
        if attribute_count > 0:
            parts.append(f"{attribute_count} attribute filter{'s' if attribute_count > 1 else ''}")
        return " | ".join(parts) if parts else "No filters active"
