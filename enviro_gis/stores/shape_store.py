#!/usr/bin/env python3
"""
Environmental GIS Dashboard - Shape Store

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Own persisted ("saved") shapes and transient ("drawn")
shapes, mediate create/update/delete against the persistence API, and run
the pending-shape confirmation workflow.

Key Features:
1. Saved shapes: load (failures degrade to an empty list), create with
   validation, update/delete reported as not-found on mismatch
2. Drawn shapes: analysis-mode only, never persisted
3. Pending-shape state machine:
       IDLE -> AWAITING_PROPERTIES -> (SAVING | CANCELLED) -> IDLE
   The drawn map layer is rendered provisionally at draw time and either
   confirmed (metadata merged with the server id) or compensated (removed).
4. Analysis results recorded for display/export

Navigation Guide:
- validate_shape_draft: Pre-submission checks
- PendingShapeState / PendingShape: Workflow state
- ShapeStore: Main store class

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import copy
import logging
import uuid

from enviro_gis.errors import EnviroGISError, OperationResult, ValidationError
from enviro_gis.models.data_models import (
    Bounds,
    Shape,
    ShapeCategory,
    ShapeDraft,
    ShapeType,
    is_valid_color,
)
from enviro_gis.stores.base import ObservableStore

logger = logging.getLogger(__name__)

GEOMETRY_TYPES = (
    "Point",
    "MultiPoint",
    "LineString",
    "MultiLineString",
    "Polygon",
    "MultiPolygon",
    "GeometryCollection",
)

# ═══════════════════════════════════════════════════════════════════════════
# ✅ VALIDATION
# ═══════════════════════════════════════════════════════════════════════════


def _check_style(properties: Dict[str, Any], errors: List[str]) -> None:
    for key in ("color", "fillColor"):
        if key in properties and properties[key] is not None and not is_valid_color(properties[key]):
            errors.append(f"{key} must be a hex color or color name")
    if properties.get("fillOpacity") is not None:
        opacity = properties["fillOpacity"]
        if isinstance(opacity, bool) or not isinstance(opacity, (int, float)):
            errors.append("fillOpacity must be a number")
        elif not 0.0 <= opacity <= 1.0:
            errors.append("fillOpacity must be between 0 and 1")


def _check_geometry(geometry: Any, errors: List[str]) -> bool:
    if not isinstance(geometry, dict) or geometry.get("type") not in GEOMETRY_TYPES:
        errors.append("Geometry must be a GeoJSON geometry object")
        return False
    if Bounds.from_geometry(geometry) is None:
        errors.append("Geometry has no coordinates")
        return False
    return True


def validate_shape_draft(draft: ShapeDraft) -> Dict[str, Any]:
    """
    Validate a shape submission and build the API payload.

    Bounds are derived from the geometry when absent; supplied bounds must
    enclose every coordinate.

    Raises:
        ValidationError: With one message per failed check
    """
    errors: List[str] = []
    if not (draft.name or "").strip():
        errors.append("Name is required")
    if draft.category not in ShapeCategory.values():
        errors.append(f"Category must be one of: {', '.join(ShapeCategory.values())}")
    if draft.shape_type not in ShapeType.values():
        errors.append(f"Shape type must be one of: {', '.join(ShapeType.values())}")
    _check_style(draft.properties, errors)
    geometry_ok = _check_geometry(draft.geometry, errors)

    bounds: Optional[Bounds] = None
    if geometry_ok:
        if draft.bounds:
            try:
                bounds = Bounds.from_dict(draft.bounds)
            except (KeyError, TypeError, ValueError):
                errors.append("Bounds must have numeric north/south/east/west")
            else:
                if not bounds.encloses(draft.geometry):
                    errors.append("Bounds do not enclose the geometry")
        else:
            bounds = Bounds.from_geometry(draft.geometry)

    if errors:
        raise ValidationError("; ".join(errors), errors)

    properties = dict(draft.properties)
    properties.setdefault("color", "#3388ff")
    payload: Dict[str, Any] = {
        "name": draft.name.strip(),
        "category": draft.category,
        "shapeType": draft.shape_type,
        "properties": properties,
        "geometry": draft.geometry,
        "bounds": bounds.to_dict() if bounds else None,
    }
    if draft.description:
        payload["description"] = draft.description
    return payload


def validate_shape_update(
    partial: Dict[str, Any], stored_geometry: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Validate the fields present in a partial shape update.

    Bounds sent without a geometry are checked against stored_geometry.
    """
    errors: List[str] = []
    if "name" in partial and not str(partial["name"] or "").strip():
        errors.append("Name cannot be empty")
    if "category" in partial and partial["category"] not in ShapeCategory.values():
        errors.append(f"Category must be one of: {', '.join(ShapeCategory.values())}")
    if "shapeType" in partial and partial["shapeType"] not in ShapeType.values():
        errors.append(f"Shape type must be one of: {', '.join(ShapeType.values())}")
    if "properties" in partial:
        _check_style(partial["properties"] or {}, errors)
    if "geometry" in partial:
        geometry = partial["geometry"] if _check_geometry(partial["geometry"], errors) else None
    else:
        geometry = stored_geometry
    if geometry is not None and partial.get("bounds"):
        try:
            if not Bounds.from_dict(partial["bounds"]).encloses(geometry):
                errors.append("Bounds do not enclose the geometry")
        except (KeyError, TypeError, ValueError):
            errors.append("Bounds must have numeric north/south/east/west")
    if errors:
        raise ValidationError("; ".join(errors), errors)
    return dict(partial)


# ═══════════════════════════════════════════════════════════════════════════
# 🔄 PENDING SHAPE WORKFLOW
# ═══════════════════════════════════════════════════════════════════════════


class PendingShapeState(Enum):
    """States of the draw-then-confirm workflow."""

    IDLE = "idle"
    AWAITING_PROPERTIES = "awaiting_properties"
    SAVING = "saving"
    CANCELLED = "cancelled"


@dataclass
class PendingShape:
    """A drawn shape awaiting name/category/style before being saved."""

    feature: Dict[str, Any]
    shape_type: str
    layer: Any = None  # MapLayer handle rendered provisionally


@dataclass
class DrawnShape:
    """Transient analysis-mode shape. Never reaches the backing store."""

    feature: Dict[str, Any]
    layer: Any = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @property
    def layer_id(self) -> Optional[str]:
        return getattr(self.layer, "id", None)


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of a buffer / intersection / measurement operation.

    Attributes:
        kind: "buffer", "intersection" or "measurement"
        status: "ok", "intersection" or "no_intersection"
        feature: Resulting GeoJSON Feature, if any
        measurement: Formatted measurement dict, if any
        layer_id: Map layer showing the result, if any
    """

    kind: str
    status: str = "ok"
    feature: Optional[Dict[str, Any]] = None
    measurement: Optional[Dict[str, Any]] = None
    layer_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "status": self.status,
            "feature": self.feature,
            "measurement": self.measurement,
            "layerId": self.layer_id,
        }


def _remove_layer(layer: Any) -> None:
    """Compensating removal of a provisional layer (idempotent)."""
    if layer is not None and hasattr(layer, "remove"):
        layer.remove()


# ═══════════════════════════════════════════════════════════════════════════
# 🔷 SHAPE STORE
# ═══════════════════════════════════════════════════════════════════════════


class ShapeStore(ObservableStore):
    """
    Saved and drawn shapes for the current session.

    Every persistence call takes the session token explicitly.
    """

    def __init__(self, api: Any) -> None:
        super().__init__()
        self.api = api
        self._shapes: List[Shape] = []
        self._drawn: List[DrawnShape] = []
        self._analysis_results: List[AnalysisResult] = []
        self.pending_state = PendingShapeState.IDLE
        self.pending: Optional[PendingShape] = None
        self.loading = False
        self.error: Optional[str] = None
        self.selected_id: Optional[str] = None

    @property
    def shapes(self) -> List[Shape]:
        return list(self._shapes)

    @property
    def drawn_shapes(self) -> List[DrawnShape]:
        return list(self._drawn)

    @property
    def analysis_results(self) -> List[AnalysisResult]:
        return list(self._analysis_results)

    # ───────────────────────────────────────────────────────────────────────
    # Saved shapes
    # ───────────────────────────────────────────────────────────────────────

    def load(self, token: str) -> OperationResult:
        """
        Fetch the caller's shapes and replace the saved list.

        Shapes are optional on the dashboard: a failed load leaves an empty
        list and still reports success so it never blocks other data.
        """
        generation = self._begin_load()
        self.loading = True
        try:
            records = self.api.list_shapes(token)
        except EnviroGISError as e:
            logger.warning(f"⚠️ Failed to load shapes, continuing without them: {e.message}")
            records = []

        parsed: List[Shape] = []
        for record in records:
            try:
                parsed.append(Shape.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"⚠️ Skipping malformed shape {record.get('id')}: {e}")

        with self._lock:
            if not self._is_current(generation):
                logger.info("Discarding superseded shape load")
                return OperationResult(ok=False, error="Superseded by a newer load", kind="stale")
            self._shapes = parsed
            self.loading = False
            self.error = None
        self._notify()
        return OperationResult.success(self.shapes)

    def create(self, token: str, draft: Union[ShapeDraft, Dict[str, Any]]) -> OperationResult:
        """Validate, persist, then append the server record."""
        if isinstance(draft, dict):
            draft = ShapeDraft.from_dict(draft)
        try:
            payload = validate_shape_draft(draft)
            record = Shape.from_dict(self.api.create_shape(token, payload))
        except EnviroGISError as e:
            self.error = e.message
            logger.warning(f"⚠️ Shape create failed: {e.message}")
            return OperationResult.failure(e)

        with self._lock:
            self._shapes.append(record)
            self.error = None
        logger.info(f"✅ Saved shape {record.id} '{record.name}'")
        self._notify()
        return OperationResult.success(record)

    def update(self, token: str, shape_id: str, partial: Dict[str, Any]) -> OperationResult:
        try:
            stored = self.get(shape_id)
            payload = validate_shape_update(partial, stored.geometry if stored else None)
            record = Shape.from_dict(self.api.update_shape(token, shape_id, payload))
        except EnviroGISError as e:
            self.error = e.message
            logger.warning(f"⚠️ Shape update {shape_id} failed: {e.message}")
            return OperationResult.failure(e)

        with self._lock:
            self._shapes = [record if s.id == record.id else s for s in self._shapes]
            self.error = None
        self._notify()
        return OperationResult.success(record)

    def delete(self, token: str, shape_id: str) -> OperationResult:
        try:
            self.api.delete_shape(token, shape_id)
        except EnviroGISError as e:
            self.error = e.message
            logger.warning(f"⚠️ Shape delete {shape_id} failed: {e.message}")
            return OperationResult.failure(e)

        with self._lock:
            self._shapes = [s for s in self._shapes if s.id != shape_id]
            if self.selected_id == shape_id:
                self.selected_id = None
            self.error = None
        self._notify()
        return OperationResult.success(shape_id)

    def get(self, shape_id: str) -> Optional[Shape]:
        for s in self._shapes:
            if s.id == shape_id:
                return s
        return None

    def select(self, shape_id: Optional[str]) -> Optional[Shape]:
        selected = self.get(shape_id) if shape_id else None
        self.selected_id = selected.id if selected else None
        self._notify()
        return selected

    def by_category(self, category: Union[ShapeCategory, str]) -> List[Shape]:
        value = category.value if isinstance(category, ShapeCategory) else category
        return [s for s in self._shapes if s.category.value == value]

    def by_shape_type(self, shape_type: Union[ShapeType, str]) -> List[Shape]:
        value = shape_type.value if isinstance(shape_type, ShapeType) else shape_type
        return [s for s in self._shapes if s.shape_type.value == value]

    # ───────────────────────────────────────────────────────────────────────
    # Pending-shape workflow
    # ───────────────────────────────────────────────────────────────────────

    def _transition(self, state: PendingShapeState) -> None:
        logger.debug(f"Pending shape: {self.pending_state.value} -> {state.value}")
        self.pending_state = state
        self._notify()

    def begin_pending(self, feature: Dict[str, Any], shape_type: str, layer: Any = None) -> bool:
        """
        IDLE -> AWAITING_PROPERTIES, capturing the drawn geometry and the
        provisional map layer.

        Returns:
            False if another shape is already pending (the new layer is
            removed, the existing one is kept)
        """
        if self.pending_state is not PendingShapeState.IDLE:
            logger.warning("⚠️ A shape is already awaiting properties; discarding new drawing")
            _remove_layer(layer)
            return False
        self.pending = PendingShape(feature=copy.deepcopy(feature), shape_type=shape_type, layer=layer)
        self._transition(PendingShapeState.AWAITING_PROPERTIES)
        return True

    def confirm_pending(self, token: str, details: Dict[str, Any]) -> OperationResult:
        """
        Save the pending shape with user-supplied properties.

        Args:
            token: Session token
            details: name, category, description and style "properties"

        Returns:
            OperationResult with the persisted Shape. On a validation failure
            the shape stays pending so the dialog can be corrected. On a
            persistence failure the provisional layer is removed and the
            workflow returns to IDLE.
        """
        if self.pending_state is not PendingShapeState.AWAITING_PROPERTIES or self.pending is None:
            return OperationResult.failure(ValidationError("No shape is awaiting properties"))

        pending = self.pending
        draft = ShapeDraft(
            name=details.get("name", ""),
            category=details.get("category", "other"),
            shape_type=details.get("shapeType", pending.shape_type),
            geometry=pending.feature.get("geometry"),
            properties=dict(details.get("properties") or {}),
            description=details.get("description"),
        )
        try:
            payload = validate_shape_draft(draft)
        except ValidationError as e:
            self.error = e.message
            return OperationResult.failure(e)

        self._transition(PendingShapeState.SAVING)
        try:
            record = Shape.from_dict(self.api.create_shape(token, payload))
        except EnviroGISError as e:
            logger.warning(f"⚠️ Saving pending shape failed, removing provisional layer: {e.message}")
            _remove_layer(pending.layer)
            self.pending = None
            self.error = e.message
            self._transition(PendingShapeState.IDLE)
            return OperationResult.failure(e)

        if pending.layer is not None and hasattr(pending.layer, "update_properties"):
            pending.layer.update_properties(record.to_feature()["properties"])
        with self._lock:
            self._shapes.append(record)
            self.pending = None
            self.error = None
        logger.info(f"✅ Saved drawn {record.shape_type.value} as shape {record.id}")
        self._transition(PendingShapeState.IDLE)
        return OperationResult.success(record)

    def cancel_pending(self) -> bool:
        """AWAITING_PROPERTIES -> CANCELLED -> IDLE, removing the provisional layer."""
        if self.pending_state is not PendingShapeState.AWAITING_PROPERTIES:
            return False
        layer = self.pending.layer if self.pending else None
        self._transition(PendingShapeState.CANCELLED)
        _remove_layer(layer)
        self.pending = None
        self._transition(PendingShapeState.IDLE)
        return True

    # ───────────────────────────────────────────────────────────────────────
    # Drawn shapes (analysis mode)
    # ───────────────────────────────────────────────────────────────────────

    def add_drawn(self, feature: Dict[str, Any], layer: Any = None) -> DrawnShape:
        drawn = DrawnShape(feature=copy.deepcopy(feature), layer=layer)
        with self._lock:
            self._drawn.append(drawn)
        self._notify()
        return drawn

    def find_drawn(self, layer_id: str) -> Optional[DrawnShape]:
        for drawn in self._drawn:
            if drawn.layer_id == layer_id or drawn.id == layer_id:
                return drawn
        return None

    def update_drawn(self, layer_id: str, feature: Dict[str, Any]) -> bool:
        drawn = self.find_drawn(layer_id)
        if drawn is None:
            return False
        drawn.feature = copy.deepcopy(feature)
        self._notify()
        return True

    def remove_drawn(self, layer_id: str) -> bool:
        drawn = self.find_drawn(layer_id)
        if drawn is None:
            return False
        with self._lock:
            self._drawn.remove(drawn)
        self._notify()
        return True

    def clear_drawn(self) -> int:
        count = len(self._drawn)
        with self._lock:
            self._drawn = []
        self._notify()
        return count

    def sync_drawn(self, layers: List[Any]) -> List[DrawnShape]:
        """
        Align the drawn list with the live drawing layer, in layer order.

        Layers not yet tracked (imported GeoJSON) are adopted; entries whose
        layer left the map are dropped.
        """
        with self._lock:
            tracked = {d.layer_id: d for d in self._drawn if d.layer_id is not None}
            synced = [
                tracked.get(layer.id) or DrawnShape(feature=layer.to_geojson(), layer=layer)
                for layer in layers
            ]
            changed = [d.id for d in synced] != [d.id for d in self._drawn]
            self._drawn = synced
        if changed:
            logger.debug(f"Drawn shapes synced with drawing layer ({len(synced)} total)")
            self._notify()
        return list(synced)

    def last_drawn(self, n: int = 1) -> List[DrawnShape]:
        """The n most recently drawn shapes, oldest first (fewer if not enough)."""
        if n <= 0:
            return []
        return list(self._drawn[-n:])

    # ───────────────────────────────────────────────────────────────────────
    # Analysis results
    # ───────────────────────────────────────────────────────────────────────

    def add_analysis_result(self, result: AnalysisResult) -> None:
        with self._lock:
            self._analysis_results.append(result)
        self._notify()

    def clear_analysis_results(self) -> None:
        with self._lock:
            self._analysis_results = []
        self._notify()
