#!/usr/bin/env python3
"""
Environmental GIS Dashboard - Live Map Surface

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: In-process model of the rendering surface the dashboard
drives. It holds vector layers with style directives, a drawn-items
group, and the current view. It also dispatches user-interaction events
(draw_created, draw_edited, draw_deleted, click) to subscribers.

Key Features:
1. Layer registry (add / get / list / remove; remove is idempotent)
2. drawn_items group for transient drawing-layer content
3. Readiness flag: mutations before the surface is ready are no-ops
4. Web-mercator view bounds from center/zoom/pixel size
5. GeoJSON loading with key:value popups

Navigation Guide:
- MapLayer: Handle for one rendered layer
- MapSurface: Registry + view + event dispatch

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import copy
import html
import itertools
import logging
import math

from enviro_gis.models.data_models import Bounds

logger = logging.getLogger(__name__)

# Leaflet tile size in pixels
TILE_SIZE = 256

SURFACE_EVENTS = ("draw_created", "draw_edited", "draw_deleted", "click")

EventHandler = Callable[[Dict[str, Any]], None]


# ═══════════════════════════════════════════════════════════════════════════
# 🧩 LAYER HANDLE
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class MapLayer:
    """Handle for a layer rendered on a MapSurface.

    Attributes:
        id: Surface-assigned layer id
        feature: GeoJSON Feature rendered by this layer
        style: Path style directives (color, weight, opacity, fillOpacity)
        kind: "shape", "drawn", "saved", "analysis", "measure" or "import"
        popup: Popup HTML, if any
    """

    id: str
    feature: Dict[str, Any]
    style: Dict[str, Any] = field(default_factory=dict)
    kind: str = "shape"
    popup: Optional[str] = None
    surface: Optional["MapSurface"] = field(default=None, repr=False, compare=False)

    @property
    def on_map(self) -> bool:
        return self.surface is not None and self.surface.has_layer(self.id)

    def remove(self) -> bool:
        """Remove from the surface. Safe to call repeatedly."""
        if self.surface is None:
            return False
        return self.surface.remove_layer(self.id)

    def update_properties(self, properties: Dict[str, Any]) -> None:
        self.feature.setdefault("properties", {}).update(properties)

    def set_geometry(self, geometry: Dict[str, Any]) -> None:
        self.feature["geometry"] = geometry

    def to_geojson(self) -> Dict[str, Any]:
        """Copy of the rendered Feature."""
        return copy.deepcopy(self.feature)


# ═══════════════════════════════════════════════════════════════════════════
# 🗺️ MAP SURFACE
# ═══════════════════════════════════════════════════════════════════════════


class MapSurface:
    """
    Live map surface.

    Layer mutations are ignored until `ready` is True. The drawn-items group
    holds transient drawing content; other layers (saved shapes, analysis
    results, imports) are independent of it.
    """

    def __init__(
        self,
        center: Tuple[float, float] = (51.505, -0.09),
        zoom: int = 13,
        size_px: Tuple[int, int] = (1024, 768),
        ready: bool = True,
    ) -> None:
        self.center = center
        self.zoom = zoom
        self.size_px = size_px
        self.ready = ready
        self._layers: Dict[str, MapLayer] = {}
        self._drawn_ids: List[str] = []
        self._ids = itertools.count(1)
        self._handlers: Dict[str, List[EventHandler]] = {name: [] for name in SURFACE_EVENTS}

    def set_ready(self, ready: bool = True) -> None:
        self.ready = ready
        logger.debug(f"Map surface ready={ready}")

    # ───────────────────────────────────────────────────────────────────────
    # Layers
    # ───────────────────────────────────────────────────────────────────────

    def add_layer(
        self,
        feature: Dict[str, Any],
        style: Optional[Dict[str, Any]] = None,
        kind: str = "shape",
        popup: Optional[str] = None,
        drawn: bool = False,
    ) -> Optional[MapLayer]:
        """
        Render a Feature as a new layer.

        Args:
            feature: GeoJSON Feature (copied)
            style: Path style directives
            kind: Layer role
            popup: Popup HTML
            drawn: Also add to the drawn-items group

        Returns:
            Layer handle, or None if the surface is not ready
        """
        if not self.ready:
            logger.debug("Map surface not ready, ignoring add_layer")
            return None
        layer = MapLayer(
            id=f"layer-{next(self._ids)}",
            feature=copy.deepcopy(feature),
            style=dict(style or {}),
            kind=kind,
            popup=popup,
            surface=self,
        )
        layer.feature.setdefault("properties", {})
        self._layers[layer.id] = layer
        if drawn:
            self._drawn_ids.append(layer.id)
        return layer

    def remove_layer(self, layer: Union[MapLayer, str]) -> bool:
        """Remove a layer. Returns False if it was already gone."""
        layer_id = layer.id if isinstance(layer, MapLayer) else layer
        if not self.ready:
            return False
        removed = self._layers.pop(layer_id, None)
        if layer_id in self._drawn_ids:
            self._drawn_ids.remove(layer_id)
        return removed is not None

    def has_layer(self, layer_id: str) -> bool:
        return layer_id in self._layers

    def get_layer(self, layer_id: str) -> Optional[MapLayer]:
        return self._layers.get(layer_id)

    def list_layers(self, kind: Optional[str] = None) -> List[MapLayer]:
        return [layer for layer in self._layers.values() if kind is None or layer.kind == kind]

    # ───────────────────────────────────────────────────────────────────────
    # Drawn items
    # ───────────────────────────────────────────────────────────────────────

    def add_to_drawn_items(self, layer: MapLayer) -> None:
        if self.ready and layer.id in self._layers and layer.id not in self._drawn_ids:
            self._drawn_ids.append(layer.id)

    @property
    def drawn_items(self) -> List[MapLayer]:
        """Layers in the drawing group, oldest first."""
        return [self._layers[layer_id] for layer_id in self._drawn_ids]

    def clear_drawn_items(self) -> int:
        """Remove every drawn-items layer from the map. Returns how many."""
        if not self.ready:
            return 0
        count = 0
        for layer_id in list(self._drawn_ids):
            if self.remove_layer(layer_id):
                count += 1
        return count

    # ───────────────────────────────────────────────────────────────────────
    # View
    # ───────────────────────────────────────────────────────────────────────

    def fly_to(self, lat: float, lng: float, zoom: int) -> None:
        if not self.ready:
            return
        self.center = (lat, lng)
        self.zoom = zoom

    def get_bounds(self) -> Bounds:
        """Visible bounds for the current center/zoom and pixel size."""
        lat, lng = self.center
        world_px = TILE_SIZE * (2 ** self.zoom)
        half_w, half_h = self.size_px[0] / 2.0, self.size_px[1] / 2.0

        deg_per_px = 360.0 / world_px
        west = max(-180.0, lng - half_w * deg_per_px)
        east = min(180.0, lng + half_w * deg_per_px)

        # Latitude extent through web-mercator y
        y = world_px / 2.0 - world_px * math.log(
            math.tan(math.pi / 4.0 + math.radians(lat) / 2.0)
        ) / (2.0 * math.pi)

        def y_to_lat(py: float) -> float:
            n = math.pi - 2.0 * math.pi * py / world_px
            return math.degrees(math.atan(math.sinh(n)))

        north = y_to_lat(max(0.0, y - half_h))
        south = y_to_lat(min(float(world_px), y + half_h))
        return Bounds(north=north, south=south, east=east, west=west)

    # ───────────────────────────────────────────────────────────────────────
    # GeoJSON
    # ───────────────────────────────────────────────────────────────────────

    def add_geojson(
        self,
        data: Dict[str, Any],
        style: Optional[Dict[str, Any]] = None,
        kind: str = "import",
        drawn: bool = True,
    ) -> List[MapLayer]:
        """
        Render a FeatureCollection (or single Feature), one layer per feature.

        Features with properties get a key:value popup.
        """
        if not self.ready:
            return []
        features = data.get("features", []) if data.get("type") == "FeatureCollection" else [data]
        layers = []
        for feature in features:
            layer = self.add_layer(
                feature,
                style=style,
                kind=kind,
                popup=popup_html(feature.get("properties") or {}),
                drawn=drawn,
            )
            if layer is not None:
                layers.append(layer)
        return layers

    # ───────────────────────────────────────────────────────────────────────
    # Events
    # ───────────────────────────────────────────────────────────────────────

    def on(self, event: str, handler: EventHandler) -> None:
        if event not in self._handlers:
            raise KeyError(f"Unknown map event: {event}")
        self._handlers[event].append(handler)

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        """Dispatch a user-interaction event to subscribers."""
        if event not in self._handlers:
            raise KeyError(f"Unknown map event: {event}")
        for handler in list(self._handlers[event]):
            handler(payload)


def popup_html(properties: Dict[str, Any]) -> Optional[str]:
    """`<strong>key:</strong> value` lines joined by <br>, or None if empty."""
    if not properties:
        return None
    return "<br>".join(
        f"<strong>{html.escape(str(key))}:</strong> {html.escape(str(value))}"
        for key, value in properties.items()
    )
