#!/usr/bin/env python3
"""
Environmental GIS Dashboard - Location Store

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Own the monitoring-location records fetched from the
persistence API and mediate create/update/delete against it.

Key Features:
1. Validation before submission (coordinate ranges, closed layer set,
   layer-specific required readings); no network call on failure
2. Local list updated only after the backing call succeeds
3. Each load fully replaces the list; stale loads are discarded
4. Derived queries: by_layer_type, by_category, count, selection
5. GeoDataFrame view for export and analysis

Error Policy:
- Expected failures (validation, not found, network) resolve to an
  OperationResult; nothing raises past the store boundary

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from typing import Any, Dict, List, Optional, Union
import logging

import geopandas as gpd

from enviro_gis.errors import EnviroGISError, OperationResult, ValidationError
from enviro_gis.models.data_models import (
    READING_ATTRIBUTE_FIELDS,
    READING_FIELDS,
    REQUIRED_READING_FIELDS,
    LayerType,
    LocationDraft,
    MonitoringLocation,
)
from enviro_gis.stores.base import ObservableStore

logger = logging.getLogger(__name__)

CRS_WGS84 = "EPSG:4326"

# ═══════════════════════════════════════════════════════════════════════════
# ✅ VALIDATION
# ═══════════════════════════════════════════════════════════════════════════


def _as_number(value: Any) -> Optional[float]:
    """float(value) for numeric input, None for anything else (bools excluded)."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _check_coordinates(latitude: Any, longitude: Any, errors: List[str]) -> None:
    lat = _as_number(latitude)
    lon = _as_number(longitude)
    if lat is None:
        errors.append("Latitude must be a number")
    elif not -90.0 <= lat <= 90.0:
        errors.append("Latitude must be between -90 and 90")
    if lon is None:
        errors.append("Longitude must be a number")
    elif not -180.0 <= lon <= 180.0:
        errors.append("Longitude must be between -180 and 180")


def validate_location_draft(draft: LocationDraft) -> Dict[str, Any]:
    """
    Validate a location submission and build the API payload.

    Only the reading fields belonging to the draft's layer type are sent.

    Args:
        draft: Form submission

    Returns:
        camelCase payload for the persistence API

    Raises:
        ValidationError: With one message per failed check
    """
    errors: List[str] = []
    if not (draft.name or "").strip():
        errors.append("Name is required")
    if not (draft.category or "").strip():
        errors.append("Category is required")
    _check_coordinates(draft.latitude, draft.longitude, errors)

    layer_type: Optional[LayerType] = None
    try:
        layer_type = LayerType.from_string(draft.layer_type)
    except ValueError:
        errors.append(
            f"Layer type must be one of: {', '.join(LayerType.values())}"
        )

    readings: Dict[str, float] = {}
    if layer_type is not None:
        required = REQUIRED_READING_FIELDS[layer_type]
        for name in READING_ATTRIBUTE_FIELDS[layer_type]:
            raw = draft.fields.get(name)
            if raw is None or raw == "":
                if name in required:
                    errors.append(f"{name} is required for {layer_type.value} layer")
                continue
            value = _as_number(raw)
            if value is None:
                errors.append(f"{name} must be a number")
            else:
                readings[name] = value

    if errors:
        raise ValidationError("; ".join(errors), errors)

    payload: Dict[str, Any] = {
        "name": draft.name.strip(),
        "latitude": float(draft.latitude),
        "longitude": float(draft.longitude),
        "layerType": layer_type.value,
        "category": draft.category.strip(),
    }
    payload.update(readings)
    if draft.description:
        payload["description"] = draft.description
    if draft.source:
        payload["source"] = draft.source
    return payload


def validate_location_update(partial: Dict[str, Any]) -> Dict[str, Any]:
    """Validate the fields present in a partial update.

    Raises:
        ValidationError: If any present field is out of range or malformed
    """
    errors: List[str] = []
    if "name" in partial and not str(partial["name"] or "").strip():
        errors.append("Name cannot be empty")
    if "latitude" in partial or "longitude" in partial:
        _check_coordinates(
            partial.get("latitude", 0.0), partial.get("longitude", 0.0), errors
        )
    if "layerType" in partial:
        try:
            LayerType.from_string(partial["layerType"])
        except ValueError:
            errors.append(f"Layer type must be one of: {', '.join(LayerType.values())}")
    for name in READING_FIELDS:
        if name in partial and partial[name] is not None and _as_number(partial[name]) is None:
            errors.append(f"{name} must be a number")
    if errors:
        raise ValidationError("; ".join(errors), errors)
    return dict(partial)


# ═══════════════════════════════════════════════════════════════════════════
# 📍 LOCATION STORE
# ═══════════════════════════════════════════════════════════════════════════


class LocationStore(ObservableStore):
    """
    Owned list of MonitoringLocation records for the current session.

    Every operation takes the session token explicitly and forwards it to
    the backend; the store never looks one up.
    """

    def __init__(self, api: Any) -> None:
        super().__init__()
        self.api = api
        self._locations: List[MonitoringLocation] = []
        self.loading = False
        self.error: Optional[str] = None
        self.selected_id: Optional[str] = None

    @property
    def locations(self) -> List[MonitoringLocation]:
        return list(self._locations)

    # ───────────────────────────────────────────────────────────────────────
    # Loading
    # ───────────────────────────────────────────────────────────────────────

    def load(self, token: str) -> OperationResult:
        """
        Fetch all locations and replace the local list.

        A response that arrives after a newer load (or invalidate()) started
        is discarded without touching state.
        """
        generation = self._begin_load()
        self.loading = True
        try:
            records = self.api.list_locations(token)
        except EnviroGISError as e:
            if self._is_current(generation):
                self.loading = False
                self.error = e.message
                self._notify()
            logger.error(f"❌ Failed to load locations: {e.message}")
            return OperationResult.failure(e)

        parsed = self._parse_records(records)
        with self._lock:
            if not self._is_current(generation):
                logger.info("Discarding superseded location load")
                return OperationResult(ok=False, error="Superseded by a newer load", kind="stale")
            self._locations = parsed
            self.loading = False
            self.error = None
            if self.selected_id and self.get(self.selected_id) is None:
                self.selected_id = None
        logger.info(f"✅ Loaded {len(parsed)} locations")
        self._notify()
        return OperationResult.success(self.locations)

    @staticmethod
    def _parse_records(records: List[Dict[str, Any]]) -> List[MonitoringLocation]:
        parsed = []
        for record in records:
            try:
                parsed.append(MonitoringLocation.from_dict(record))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"⚠️ Skipping malformed location {record.get('id')}: {e}")
        return parsed

    # ───────────────────────────────────────────────────────────────────────
    # Mutations
    # ───────────────────────────────────────────────────────────────────────

    def create(self, token: str, draft: Union[LocationDraft, Dict[str, Any]]) -> OperationResult:
        """Validate, persist, then append the server record."""
        if isinstance(draft, dict):
            draft = LocationDraft.from_dict(draft)
        try:
            payload = validate_location_draft(draft)
            record = MonitoringLocation.from_dict(self.api.create_location(token, payload))
        except EnviroGISError as e:
            self.error = e.message
            logger.warning(f"⚠️ Location create failed: {e.message}")
            return OperationResult.failure(e)

        with self._lock:
            self._locations.append(record)
            self.error = None
        logger.info(f"✅ Created location {record.id} ({record.layer_type.value})")
        self._notify()
        return OperationResult.success(record)

    def update(self, token: str, location_id: str, partial: Dict[str, Any]) -> OperationResult:
        """Persist a partial update, then replace the local record."""
        try:
            payload = validate_location_update(partial)
            record = MonitoringLocation.from_dict(
                self.api.update_location(token, location_id, payload)
            )
        except EnviroGISError as e:
            self.error = e.message
            logger.warning(f"⚠️ Location update {location_id} failed: {e.message}")
            return OperationResult.failure(e)

        with self._lock:
            self._locations = [
                record if loc.id == record.id else loc for loc in self._locations
            ]
            self.error = None
        self._notify()
        return OperationResult.success(record)

    def delete(self, token: str, location_id: str) -> OperationResult:
        try:
            self.api.delete_location(token, location_id)
        except EnviroGISError as e:
            self.error = e.message
            logger.warning(f"⚠️ Location delete {location_id} failed: {e.message}")
            return OperationResult.failure(e)

        with self._lock:
            self._locations = [loc for loc in self._locations if loc.id != location_id]
            if self.selected_id == location_id:
                self.selected_id = None
            self.error = None
        self._notify()
        return OperationResult.success(location_id)

    # ───────────────────────────────────────────────────────────────────────
    # Derived queries
    # ───────────────────────────────────────────────────────────────────────

    def get(self, location_id: str) -> Optional[MonitoringLocation]:
        for loc in self._locations:
            if loc.id == location_id:
                return loc
        return None

    def by_layer_type(self, layer_type: Union[LayerType, str]) -> List[MonitoringLocation]:
        if isinstance(layer_type, str):
            layer_type = LayerType.from_string(layer_type)
        return [loc for loc in self._locations if loc.layer_type is layer_type]

    def by_category(self, category: str) -> List[MonitoringLocation]:
        return [loc for loc in self._locations if loc.category == category]

    def count(self) -> int:
        return len(self._locations)

    def select(self, location_id: Optional[str]) -> Optional[MonitoringLocation]:
        """Select a location by id (None clears). Unknown ids clear the selection."""
        selected = self.get(location_id) if location_id else None
        self.selected_id = selected.id if selected else None
        self._notify()
        return selected

    @property
    def selected(self) -> Optional[MonitoringLocation]:
        return self.get(self.selected_id) if self.selected_id else None

    def to_geodataframe(self) -> gpd.GeoDataFrame:
        """Locations as point features in EPSG:4326."""
        rows = [loc.to_dict() for loc in self._locations]
        lons = [loc.longitude for loc in self._locations]
        lats = [loc.latitude for loc in self._locations]
        return gpd.GeoDataFrame(
            rows, geometry=gpd.points_from_xy(lons, lats), crs=CRS_WGS84
        )
