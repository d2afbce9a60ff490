#!/usr/bin/env python3
"""
Environmental GIS Dashboard - Spatial Analysis Operations

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Buffer, measurement and intersection workflows against the
most recently drawn shape(s), plus the interactive point-by-point
measurement session.

Key Features:
1. buffer(distance_m): last drawn shape, result added as a styled layer
2. measure(kind): area or length of the last drawn shape, unit formatted
3. intersect(): last two drawn shapes; "no_intersection" when disjoint
4. MeasurementSession: IDLE -> MEASURING state machine with a transient
   polyline and running length

Target Selection:
- Operations act on the tail of ShapeStore.drawn_shapes, not on an
  explicit selection
- With a live surface the list is first synced to the drawing layer, so
  imported features are targets and cleared layers are not

Error Policy:
- Too few drawn shapes -> NoShapeError (no map layer added)
- Malformed target geometry or library failure -> GeometryError

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import logging

from enviro_gis.config_types import CONFIG, StylesConfig
from enviro_gis.errors import GeometryError, NoShapeError
from enviro_gis.geometry.measurements import Measurement, format_area, format_length
from enviro_gis.geometry.predicates import GeometryPredicates
from enviro_gis.stores.shape_store import AnalysisResult, DrawnShape, ShapeStore
from enviro_gis.viewport.controller import MapViewportController

logger = logging.getLogger(__name__)

MEASURE_KINDS = ("area", "length")


# ═══════════════════════════════════════════════════════════════════════════
# 📏 INTERACTIVE MEASUREMENT
# ═══════════════════════════════════════════════════════════════════════════


class MeasurementState(Enum):
    IDLE = "idle"
    MEASURING = "measuring"


class MeasurementSession:
    """
    Click-to-measure polyline.

    While MEASURING, each click appends a vertex; from two vertices on, a
    transient polyline is redrawn and the running length updated. Stopping
    (or toggling again) finalizes the last reading and removes the line.
    """

    def __init__(
        self,
        viewport: MapViewportController,
        predicates: GeometryPredicates,
        line_style: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.viewport = viewport
        self.predicates = predicates
        self.line_style = line_style or CONFIG.styles.measure_line.to_dict()
        self.state = MeasurementState.IDLE
        self.points: List[Tuple[float, float]] = []
        self.current_length: Optional[Measurement] = None
        self.last_reading: Optional[Measurement] = None
        self._line_layer: Any = None

    @property
    def active(self) -> bool:
        return self.state is MeasurementState.MEASURING

    def toggle(self) -> MeasurementState:
        if self.active:
            self.stop()
        else:
            self.start()
        return self.state

    def start(self) -> None:
        self._remove_line()
        self.points = []
        self.current_length = None
        self.state = MeasurementState.MEASURING
        logger.debug("📏 Measurement started")

    def add_point(self, lat: float, lng: float) -> Optional[Measurement]:
        """Append a vertex. Returns the running length once two vertices exist."""
        if not self.active:
            return None
        self.points.append((lat, lng))
        if len(self.points) < 2:
            return None

        feature = {
            "type": "Feature",
            "geometry": {
                "type": "LineString",
                "coordinates": [[p_lng, p_lat] for p_lat, p_lng in self.points],
            },
            "properties": {"measurement": True},
        }
        self._remove_line()
        self._line_layer = self.viewport.add_shape_to_map(
            feature, self.line_style, kind="measure", drawn=False
        )
        self.current_length = format_length(self.predicates.length(feature))
        return self.current_length

    def stop(self) -> Optional[Measurement]:
        """Finalize: keep the last reading, remove the line, return to IDLE."""
        if not self.active:
            return self.last_reading
        if self.current_length is not None:
            self.last_reading = self.current_length
        self._remove_line()
        self.points = []
        self.current_length = None
        self.state = MeasurementState.IDLE
        logger.debug(f"📏 Measurement stopped: {self.last_reading.label if self.last_reading else 'none'}")
        return self.last_reading

    def _remove_line(self) -> None:
        if self._line_layer is not None:
            self._line_layer.remove()
            self._line_layer = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "points": [list(p) for p in self.points],
            "currentLength": self.current_length.to_dict() if self.current_length else None,
            "lastReading": self.last_reading.to_dict() if self.last_reading else None,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 🧪 ANALYSIS OPERATIONS
# ═══════════════════════════════════════════════════════════════════════════


class SpatialAnalysisOperations:
    """
    Analysis workflows over the most recently drawn shapes.

    Results are added to the map (buffer, intersection) and recorded in
    ShapeStore.analysis_results.
    """

    def __init__(
        self,
        shapes: ShapeStore,
        viewport: MapViewportController,
        predicates: Optional[GeometryPredicates] = None,
        styles: StylesConfig = CONFIG.styles,
    ) -> None:
        self.shapes = shapes
        self.viewport = viewport
        self.predicates = predicates or GeometryPredicates()
        self.styles = styles
        self.measurement = MeasurementSession(
            viewport, self.predicates, styles.measure_line.to_dict()
        )
        self.last_message: Optional[str] = None
        self._result_layers: List[Any] = []

    def _targets(self, count: int) -> List[DrawnShape]:
        if self.viewport.has_live_surface:
            self.shapes.sync_drawn(self.viewport.surface.drawn_items)
        drawn = self.shapes.last_drawn(count)
        if len(drawn) < count:
            message = (
                "Please draw a shape first"
                if count == 1
                else f"Please draw at least {count} shapes to calculate intersection"
            )
            raise NoShapeError(message, required=count)
        return drawn

    def _record(self, result: AnalysisResult, message: str) -> AnalysisResult:
        self.shapes.add_analysis_result(result)
        self.last_message = message
        logger.info(f"✅ {message}")
        return result

    # ───────────────────────────────────────────────────────────────────────
    # Operations
    # ───────────────────────────────────────────────────────────────────────

    def buffer(self, distance_m: float = CONFIG.analysis.default_buffer_m) -> AnalysisResult:
        """
        Buffer the last drawn shape and add the result as a map layer.

        Raises:
            NoShapeError: No drawn shape
            GeometryError: Target malformed or buffering failed
        """
        (target,) = self._targets(1)
        feature = self.predicates.buffer(
            target.feature, distance_m, properties={"analysis": "buffer", "distanceMeters": distance_m}
        )
        if feature is None:
            raise GeometryError("Failed to create buffer")

        layer = self.viewport.add_shape_to_map(
            feature, self.styles.buffer.to_dict(), kind="analysis", drawn=False
        )
        if layer is not None:
            self._result_layers.append(layer)
        result = AnalysisResult(
            kind="buffer", feature=feature, layer_id=layer.id if layer else None
        )
        return self._record(result, f"Buffer of {distance_m:g} m created")

    def measure(self, kind: str = "area") -> Measurement:
        """
        Measure the last drawn shape. Does not touch the map.

        Args:
            kind: "area" or "length"

        Raises:
            ValueError: Unknown kind
            NoShapeError: No drawn shape
            GeometryError: Target malformed
        """
        if kind not in MEASURE_KINDS:
            raise ValueError(f"Measurement kind must be one of {MEASURE_KINDS}, got {kind!r}")
        (target,) = self._targets(1)
        if kind == "area":
            measurement = format_area(self.predicates.area(target.feature))
        else:
            measurement = format_length(self.predicates.length(target.feature))

        result = AnalysisResult(kind="measurement", measurement=measurement.to_dict())
        self._record(result, f"{kind.capitalize()}: {measurement.label}")
        return measurement

    def intersect(self) -> AnalysisResult:
        """
        Intersect the last two drawn shapes.

        Returns:
            AnalysisResult with status "intersection" (feature, layer and
            formatted area) or "no_intersection"

        Raises:
            NoShapeError: Fewer than two drawn shapes
            GeometryError: A target is malformed
        """
        first, second = self._targets(2)
        feature = self.predicates.intersection(
            second.feature, first.feature, properties={"analysis": "intersection"}
        )
        if feature is None:
            return self._record(
                AnalysisResult(kind="intersection", status="no_intersection"),
                "No intersection found",
            )

        layer = self.viewport.add_shape_to_map(
            feature, self.styles.intersection.to_dict(), kind="analysis", drawn=False
        )
        if layer is not None:
            self._result_layers.append(layer)
        area = format_area(self.predicates.area(feature))
        result = AnalysisResult(
            kind="intersection",
            status="intersection",
            feature=feature,
            measurement=area.to_dict(),
            layer_id=layer.id if layer else None,
        )
        return self._record(result, f"Intersection area: {area.label}")

    def clear_analysis(self) -> None:
        """Remove analysis layers, stop measuring and forget results."""
        for layer in self._result_layers:
            layer.remove()
        self._result_layers = []
        if self.measurement.active:
            self.measurement.stop()
        self.shapes.clear_analysis_results()
        self.last_message = None
