"""Map viewport: live surface model and viewport controller."""

from .controller import LayerState, MapViewportController
from .surface import MapLayer, MapSurface, popup_html

__all__ = ["LayerState", "MapLayer", "MapSurface", "MapViewportController", "popup_html"]
