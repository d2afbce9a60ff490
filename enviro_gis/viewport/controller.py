#!/usr/bin/env python3
"""
Environmental GIS Dashboard - Map Viewport Controller

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Own map center/zoom, drawing/analysis modes, the active
drawing tool and per-layer visibility/opacity. Expose imperative viewport
operations against an attached MapSurface.

Key Features:
1. Layer table seeded from CONFIG.layers
2. Analysis mode forces drawing mode on; leaving analysis keeps drawing mode
3. Surface operations are no-ops until a ready surface is attached
4. add_shape_to_map returns a layer handle or None

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from enviro_gis.config_types import CONFIG, LayerConfig, MapConfig, PathStyleConfig
from enviro_gis.models.data_models import Bounds
from enviro_gis.viewport.surface import MapLayer, MapSurface

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayerState:
    """Display state of one monitoring layer."""

    id: str
    name: str
    color: str
    visible: bool = True
    opacity: float = 0.8

    @classmethod
    def from_config(cls, layer: LayerConfig) -> "LayerState":
        return cls(
            id=layer.id,
            name=layer.name,
            color=layer.color,
            visible=layer.visible,
            opacity=layer.opacity,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "visible": self.visible,
            "opacity": self.opacity,
        }


def _clamp_opacity(opacity: float) -> float:
    return max(0.0, min(1.0, float(opacity)))


def _is_feature(feature: Any) -> bool:
    return (
        isinstance(feature, dict)
        and feature.get("type") == "Feature"
        and isinstance(feature.get("geometry"), dict)
        and "type" in feature["geometry"]
        and ("coordinates" in feature["geometry"] or "geometries" in feature["geometry"])
    )


class MapViewportController:
    """
    Viewport state plus operations on the live map surface.

    Args:
        map_config: Default center/zoom
        layers: Initial layer table (defaults to CONFIG.layers)
        default_style: Style for shapes added without explicit options
    """

    def __init__(
        self,
        map_config: MapConfig = CONFIG.map,
        layers: Sequence[LayerConfig] = CONFIG.layers,
        default_style: PathStyleConfig = CONFIG.styles.default_shape,
    ) -> None:
        self._map_config = map_config
        self._layer_defaults = tuple(layers)
        self._default_style = default_style
        self.center: Tuple[float, float] = map_config.center
        self.zoom: int = map_config.zoom
        self.drawing_mode = False
        self.analysis_mode = False
        self.selected_tool: Optional[str] = None
        self.layers: Dict[str, LayerState] = {
            layer.id: LayerState.from_config(layer) for layer in self._layer_defaults
        }
        self.surface: Optional[MapSurface] = None

    # ───────────────────────────────────────────────────────────────────────
    # Surface
    # ───────────────────────────────────────────────────────────────────────

    def attach_surface(self, surface: Optional[MapSurface]) -> None:
        self.surface = surface
        if surface is not None:
            logger.info(f"🗺️ Map surface attached (ready={surface.ready})")

    @property
    def has_live_surface(self) -> bool:
        return self.surface is not None and self.surface.ready

    def fly_to(self, lat: float, lng: float, zoom: Optional[int] = None) -> bool:
        """Move the view. No-op (returns False) without a live surface."""
        if not self.has_live_surface:
            return False
        zoom = self._map_config.fly_to_zoom if zoom is None else zoom
        self.surface.fly_to(lat, lng, zoom)
        self.center = (lat, lng)
        self.zoom = zoom
        return True

    def get_map_bounds(self) -> Optional[Bounds]:
        if not self.has_live_surface:
            return None
        return self.surface.get_bounds()

    def clear_drawn_items(self) -> int:
        """Remove transient drawing content from the live map only."""
        if not self.has_live_surface:
            return 0
        return self.surface.clear_drawn_items()

    def add_shape_to_map(
        self,
        feature: Any,
        style_options: Optional[Dict[str, Any]] = None,
        kind: str = "shape",
        drawn: bool = True,
    ) -> Optional[MapLayer]:
        """
        Render a Feature on the live map.

        Returns:
            Layer handle, or None without a live surface or for a malformed
            feature
        """
        if not self.has_live_surface:
            return None
        if not _is_feature(feature):
            logger.warning("⚠️ add_shape_to_map: not a GeoJSON Feature, ignoring")
            return None
        style = self._default_style.to_dict()
        style.update(style_options or {})
        return self.surface.add_layer(feature, style=style, kind=kind, drawn=drawn)

    # ───────────────────────────────────────────────────────────────────────
    # View state
    # ───────────────────────────────────────────────────────────────────────

    def set_center(self, lat: float, lng: float) -> None:
        self.center = (lat, lng)

    def set_zoom(self, zoom: int) -> None:
        self.zoom = zoom

    # ───────────────────────────────────────────────────────────────────────
    # Layers
    # ───────────────────────────────────────────────────────────────────────

    def toggle_layer_visibility(self, layer_id: str, explicit: Optional[bool] = None) -> bool:
        """
        Toggle a layer, or set it when `explicit` is given.

        Returns:
            New visibility

        Raises:
            KeyError: If layer_id is unknown
        """
        layer = self._require_layer(layer_id)
        visible = (not layer.visible) if explicit is None else bool(explicit)
        self.layers[layer_id] = replace(layer, visible=visible)
        return visible

    def set_layer_opacity(self, layer_id: str, opacity: float) -> float:
        """Set opacity clamped to [0, 1]. Returns the stored value."""
        layer = self._require_layer(layer_id)
        clamped = _clamp_opacity(opacity)
        self.layers[layer_id] = replace(layer, opacity=clamped)
        return clamped

    def get_visible_layers(self) -> List[LayerState]:
        return [layer for layer in self.layers.values() if layer.visible]

    def visible_layer_ids(self) -> List[str]:
        return [layer.id for layer in self.get_visible_layers()]

    def get_layer_by_id(self, layer_id: str) -> Optional[LayerState]:
        return self.layers.get(layer_id)

    def reset_layers(self) -> None:
        self.layers = {layer.id: LayerState.from_config(layer) for layer in self._layer_defaults}

    def _require_layer(self, layer_id: str) -> LayerState:
        layer = self.layers.get(layer_id)
        if layer is None:
            raise KeyError(f"Layer not found: {layer_id}")
        return layer

    # ───────────────────────────────────────────────────────────────────────
    # Modes
    # ───────────────────────────────────────────────────────────────────────

    def toggle_drawing_mode(self) -> bool:
        self.drawing_mode = not self.drawing_mode
        return self.drawing_mode

    def set_drawing_mode(self, enabled: bool) -> None:
        self.drawing_mode = bool(enabled)

    def toggle_analysis_mode(self) -> bool:
        """Flip analysis mode. Enabling it also enables drawing mode."""
        self.analysis_mode = not self.analysis_mode
        if self.analysis_mode:
            self.drawing_mode = True
        return self.analysis_mode

    def set_selected_tool(self, tool: Optional[str]) -> None:
        self.selected_tool = tool

    def snapshot(self) -> Dict[str, Any]:
        """JSON view of viewport state."""
        return {
            "center": list(self.center),
            "zoom": self.zoom,
            "drawingMode": self.drawing_mode,
            "analysisMode": self.analysis_mode,
            "selectedTool": self.selected_tool,
            "layers": [layer.to_dict() for layer in self.layers.values()],
            "surfaceAttached": self.has_live_surface,
        }
