#!/usr/bin/env python3
"""
Environmental GIS Dashboard - Orchestration

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Compose the stores, filter engine, viewport controller and
analysis operations into one dashboard session, and wire live map-surface
events to store mutations.

Data Flow:
    MapSurface events ──► Dashboard handlers ──► ShapeStore / MeasurementSession
    LocationStore ──(subscribe)──► FilterEngine.set_locations
    FilterEngine.filtered_locations + viewport layer visibility ──► visible_locations()

Event Routing:
- draw_created: analysis mode -> transient drawn list; otherwise the
  pending-shape workflow (the layer stays on the map provisionally)
- draw_edited / draw_deleted: keep the drawn list in step with the layer
- click: a vertex for the measurement session when one is active

Key Entry Points:
- create_backend(): ApiClient when an API URL is configured, else in-memory
- Dashboard.refresh(token): load locations and shapes
- Dashboard.switch_mode(): toggle analysis mode, discarding drawn shapes

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from typing import Any, Dict, List, Optional, Union
import logging

from enviro_gis.analysis.spatial_analysis import SpatialAnalysisOperations
from enviro_gis.backend.api_client import ApiClient
from enviro_gis.backend.memory_backend import InMemoryBackend
from enviro_gis.config_types import CONFIG, ApiConfig, AppConfig
from enviro_gis.errors import OperationResult, ValidationError
from enviro_gis.exporters import (
    export_locations_to_csv,
    export_shapes_to_geojson,
    import_shapes_from_geojson,
)
from enviro_gis.filtering.filter_engine import FilterEngine
from enviro_gis.filtering.preset_storage import PresetStorage
from enviro_gis.geometry.predicates import GeometryPredicates
from enviro_gis.models.data_models import LocationDraft, MonitoringLocation, ShapeType
from enviro_gis.stores.location_store import LocationStore
from enviro_gis.stores.shape_store import ShapeStore
from enviro_gis.viewport.controller import MapViewportController
from enviro_gis.viewport.surface import MapLayer, MapSurface, popup_html

logger = logging.getLogger(__name__)


def create_backend(api_config: ApiConfig = CONFIG.api) -> Any:
    """Persistence backend for the configured API (in-memory when unset)."""
    if api_config.base_url:
        return ApiClient(api_config.base_url, api_config.timeout_s)
    logger.info("No API URL configured, using in-memory backend")
    return InMemoryBackend()


class Dashboard:
    """
    One dashboard session.

    Args:
        api: Persistence backend (ApiClient or InMemoryBackend)
        storage: Preset storage; None keeps presets in memory only
        config: Application configuration
    """

    def __init__(
        self,
        api: Any,
        storage: Optional[PresetStorage] = None,
        config: AppConfig = CONFIG,
    ) -> None:
        self.config = config
        self.predicates = GeometryPredicates(config.analysis.buffer_resolution)
        self.locations = LocationStore(api)
        self.shapes = ShapeStore(api)
        self.filters = FilterEngine(self.predicates, storage)
        self.viewport = MapViewportController(config.map, config.layers, config.styles.default_shape)
        self.analysis = SpatialAnalysisOperations(
            self.shapes, self.viewport, self.predicates, config.styles
        )
        self.surface: Optional[MapSurface] = None
        self._saved_layers: List[MapLayer] = []
        self.last_message: Optional[str] = None

        self.locations.subscribe(self._sync_filter_source)

    def _sync_filter_source(self) -> None:
        self.filters.set_locations(self.locations.locations)

    # ═══════════════════════════════════════════════════════════════════════
    # 🗺️ MAP SURFACE WIRING
    # ═══════════════════════════════════════════════════════════════════════

    def attach_surface(self, surface: Optional[MapSurface] = None) -> MapSurface:
        """Attach (or create) the live map surface and subscribe to its events."""
        if surface is None:
            surface = MapSurface(center=self.viewport.center, zoom=self.viewport.zoom)
        self.surface = surface
        self.viewport.attach_surface(surface)
        surface.on("draw_created", self._on_draw_created)
        surface.on("draw_edited", self._on_draw_edited)
        surface.on("draw_deleted", self._on_draw_deleted)
        surface.on("click", self._on_click)
        return surface

    def _on_draw_created(self, payload: Dict[str, Any]) -> None:
        feature = payload.get("feature")
        geometry_type = ((feature or {}).get("geometry") or {}).get("type", "")
        shape_type = payload.get("shapeType") or ShapeType.for_geometry(geometry_type).value
        layer = self.viewport.add_shape_to_map(feature, kind="drawn", drawn=True)
        if layer is None:
            logger.warning("⚠️ Drawn feature could not be rendered, ignoring")
            return

        if self.viewport.analysis_mode:
            self.shapes.add_drawn(layer.to_geojson(), layer)
            logger.debug(f"Analysis shape drawn ({shape_type}), {len(self.shapes.drawn_shapes)} total")
        else:
            self.shapes.begin_pending(layer.to_geojson(), shape_type, layer)

    def _on_draw_edited(self, payload: Dict[str, Any]) -> None:
        layer_id = payload.get("layerId")
        feature = payload.get("feature") or {}
        layer = self.surface.get_layer(layer_id) if self.surface else None
        if layer is not None and feature.get("geometry"):
            layer.set_geometry(feature["geometry"])
        self.shapes.update_drawn(layer_id, layer.to_geojson() if layer else feature)

    def _on_draw_deleted(self, payload: Dict[str, Any]) -> None:
        layer_id = payload.get("layerId")
        if self.surface is not None:
            self.surface.remove_layer(layer_id)
        self.shapes.remove_drawn(layer_id)

    def _on_click(self, payload: Dict[str, Any]) -> None:
        if not self.analysis.measurement.active:
            return
        try:
            lat = float(payload.get("lat"))
            lng = float(payload.get("lng"))
        except (AttributeError, TypeError, ValueError) as e:
            raise ValidationError("Click needs numeric lat and lng") from e
        self.analysis.measurement.add_point(lat, lng)

    # ═══════════════════════════════════════════════════════════════════════
    # 🔄 DATA
    # ═══════════════════════════════════════════════════════════════════════

    def refresh(self, token: str) -> OperationResult:
        """Load locations and shapes. Shape failures never block locations."""
        self.shapes.load(token)
        result = self.locations.load(token)
        if result.ok:
            self.last_message = f"Loaded {len(result.value)} locations"
        else:
            self.last_message = result.error
        return result

    def visible_locations(self) -> List[MonitoringLocation]:
        """Filtered locations whose monitoring layer is currently visible."""
        visible = set(self.viewport.visible_layer_ids())
        return [loc for loc in self.filters.filtered_locations if loc.layer_type.value in visible]

    def create_location(self, token: str, draft: Union[LocationDraft, Dict[str, Any]]) -> OperationResult:
        result = self.locations.create(token, draft)
        self.last_message = "Location created" if result.ok else result.error
        return result

    def update_location(self, token: str, location_id: str, partial: Dict[str, Any]) -> OperationResult:
        result = self.locations.update(token, location_id, partial)
        self.last_message = "Location updated" if result.ok else result.error
        return result

    def delete_location(self, token: str, location_id: str) -> OperationResult:
        result = self.locations.delete(token, location_id)
        self.last_message = "Location deleted" if result.ok else result.error
        return result

    def select_location(self, location_id: Optional[str]) -> Optional[MonitoringLocation]:
        """Select a location and fly the map to it."""
        location = self.locations.select(location_id)
        if location is not None:
            self.viewport.fly_to(location.latitude, location.longitude)
        return location

    # ═══════════════════════════════════════════════════════════════════════
    # 🔷 SHAPES
    # ═══════════════════════════════════════════════════════════════════════

    def confirm_pending_shape(self, token: str, details: Dict[str, Any]) -> OperationResult:
        result = self.shapes.confirm_pending(token, details)
        self.last_message = "Shape saved" if result.ok else result.error
        return result

    def cancel_pending_shape(self) -> bool:
        return self.shapes.cancel_pending()

    def show_saved_shapes(self) -> List[MapLayer]:
        """Render every saved shape with its own style, replacing earlier renders."""
        for layer in self._saved_layers:
            layer.remove()
        self._saved_layers = []
        for shape in self.shapes.shapes:
            feature = shape.to_feature()
            layer = self.viewport.add_shape_to_map(
                feature, shape.properties.to_dict(), kind="saved", drawn=False
            )
            if layer is not None:
                layer.popup = popup_html({"name": shape.name, "category": shape.category.value})
                self._saved_layers.append(layer)
        return list(self._saved_layers)

    def export_geojson(self) -> Dict[str, Any]:
        """FeatureCollection of the live drawing layer's shapes."""
        if self.surface is None:
            return export_shapes_to_geojson([])
        return export_shapes_to_geojson(self.surface.drawn_items)

    def import_geojson(self, data: Union[str, Dict[str, Any]]) -> List[MapLayer]:
        """
        Validate GeoJSON and load it onto the drawing layer.

        Raises:
            GeometryError: Malformed GeoJSON
        """
        collection = import_shapes_from_geojson(data)
        if not self.viewport.has_live_surface:
            return []
        layers = self.surface.add_geojson(collection, style=self.config.styles.imported.to_dict())
        if self.viewport.analysis_mode:
            self.shapes.sync_drawn(self.surface.drawn_items)
        self.last_message = f"Imported {len(layers)} features"
        return layers

    def export_locations_csv(self) -> str:
        return export_locations_to_csv(self.visible_locations())

    # ═══════════════════════════════════════════════════════════════════════
    # 🎛️ MODES
    # ═══════════════════════════════════════════════════════════════════════

    def switch_mode(self) -> bool:
        """
        Toggle analysis mode.

        Drawn shapes belong to one mode only: the transient list, the live
        drawing layer and any analysis output are discarded, and a pending
        shape is cancelled.
        """
        if self.shapes.pending is not None:
            self.shapes.cancel_pending()
        self.analysis.clear_analysis()
        self.shapes.clear_drawn()
        self.viewport.clear_drawn_items()
        enabled = self.viewport.toggle_analysis_mode()
        logger.info(f"🎛️ Analysis mode {'on' if enabled else 'off'}")
        return enabled

    def snapshot(self) -> Dict[str, Any]:
        """JSON view of the whole dashboard state."""
        return {
            "viewport": self.viewport.snapshot(),
            "locationCount": self.locations.count(),
            "visibleLocationCount": len(self.visible_locations()),
            "shapeCount": len(self.shapes.shapes),
            "drawnShapeCount": len(self.shapes.drawn_shapes),
            "pendingShape": self.shapes.pending_state.value,
            "filters": self.filters.criteria.to_dict(),
            "activeFilterCount": self.filters.get_active_filter_count(),
            "filterSummary": self.filters.get_filter_summary(),
            "measurement": self.analysis.measurement.to_dict(),
            "analysisResults": [r.to_dict() for r in self.shapes.analysis_results],
            "message": self.last_message,
        }
