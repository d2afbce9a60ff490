"""
Unit tests for the map viewport controller and live map surface.

Tests:
1. Surface operations are no-ops without a live surface
2. Layer visibility toggling / explicit set / unknown id
3. Opacity clamping
4. Analysis mode forces drawing mode
5. clear_drawn_items leaves non-drawing layers alone
6. GeoJSON loading with key:value popups

Run with: python -m pytest _tests/test_viewport_controller.py -v
"""

import pytest


FEATURE = {
    "type": "Feature",
    "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]]},
    "properties": {"name": "Box"},
}


class TestSurfaceOperations:
    """fly_to / add_shape_to_map / get_map_bounds."""

    def test_no_surface_is_noop(self):
        from enviro_gis.viewport.controller import MapViewportController

        controller = MapViewportController()
        assert controller.fly_to(51.5, -0.1) is False
        assert controller.add_shape_to_map(FEATURE) is None
        assert controller.get_map_bounds() is None
        assert controller.clear_drawn_items() == 0

    def test_surface_not_ready_is_noop(self):
        from enviro_gis.viewport.controller import MapViewportController
        from enviro_gis.viewport.surface import MapSurface

        controller = MapViewportController()
        controller.attach_surface(MapSurface(ready=False))
        assert controller.add_shape_to_map(FEATURE) is None

    def test_fly_to_default_zoom(self):
        from enviro_gis.viewport.controller import MapViewportController
        from enviro_gis.viewport.surface import MapSurface

        controller = MapViewportController()
        surface = MapSurface()
        controller.attach_surface(surface)

        assert controller.fly_to(48.85, 2.35) is True
        assert surface.center == (48.85, 2.35)
        assert surface.zoom == 15, "fly_to defaults to zoom 15"
        assert controller.fly_to(48.85, 2.35, 10)
        assert controller.zoom == 10

    def test_bounds_contain_center(self):
        from enviro_gis.viewport.controller import MapViewportController
        from enviro_gis.viewport.surface import MapSurface

        controller = MapViewportController()
        controller.attach_surface(MapSurface(center=(51.505, -0.09), zoom=13))
        bounds = controller.get_map_bounds()

        assert bounds.south < 51.505 < bounds.north
        assert bounds.west < -0.09 < bounds.east

    def test_add_shape_style_and_malformed(self):
        from enviro_gis.viewport.controller import MapViewportController
        from enviro_gis.viewport.surface import MapSurface

        controller = MapViewportController()
        controller.attach_surface(MapSurface())

        layer = controller.add_shape_to_map(FEATURE, {"color": "#ff0000"})
        assert layer is not None
        assert layer.style["color"] == "#ff0000"
        assert layer.style["fillOpacity"] == 0.2, "Default style fills missing options"

        assert controller.add_shape_to_map({"type": "Feature"}) is None
        assert controller.add_shape_to_map(FEATURE["geometry"]) is None

    def test_clear_drawn_items_only(self):
        from enviro_gis.viewport.controller import MapViewportController
        from enviro_gis.viewport.surface import MapSurface

        controller = MapViewportController()
        surface = MapSurface()
        controller.attach_surface(surface)
        drawn = controller.add_shape_to_map(FEATURE, drawn=True)
        saved = controller.add_shape_to_map(FEATURE, kind="saved", drawn=False)

        assert controller.clear_drawn_items() == 1
        assert not drawn.on_map
        assert saved.on_map, "Layers outside the drawing group are untouched"
        assert drawn.remove() is False, "Removing twice is harmless"


class TestLayers:
    """Per-layer visibility and opacity."""

    def test_default_table(self):
        from enviro_gis.viewport.controller import MapViewportController

        controller = MapViewportController()
        assert controller.visible_layer_ids() == ["co2", "air_quality", "temperature", "industrial", "traffic"]
        assert controller.get_layer_by_id("co2").color == "#ff6b6b"

    def test_toggle_and_explicit(self):
        from enviro_gis.viewport.controller import MapViewportController

        controller = MapViewportController()
        assert controller.toggle_layer_visibility("traffic") is False
        assert "traffic" not in controller.visible_layer_ids()
        assert controller.toggle_layer_visibility("traffic", True) is True
        assert controller.toggle_layer_visibility("traffic", True) is True, "Explicit set is idempotent"

    def test_unknown_layer(self):
        from enviro_gis.viewport.controller import MapViewportController

        with pytest.raises(KeyError):
            MapViewportController().toggle_layer_visibility("noise")

    @pytest.mark.parametrize("requested,stored", [(1.5, 1.0), (-0.2, 0.0), (0.35, 0.35)])
    def test_opacity_clamped(self, requested, stored):
        from enviro_gis.viewport.controller import MapViewportController

        controller = MapViewportController()
        assert controller.set_layer_opacity("co2", requested) == stored
        assert controller.get_layer_by_id("co2").opacity == stored

    def test_reset(self):
        from enviro_gis.viewport.controller import MapViewportController

        controller = MapViewportController()
        controller.toggle_layer_visibility("co2")
        controller.reset_layers()
        assert controller.get_layer_by_id("co2").visible


class TestModes:
    """Drawing / analysis mode coupling."""

    def test_analysis_forces_drawing(self):
        from enviro_gis.viewport.controller import MapViewportController

        controller = MapViewportController()
        assert controller.drawing_mode is False
        assert controller.toggle_analysis_mode() is True
        assert controller.drawing_mode is True, "Analysis mode requires drawing"

        assert controller.toggle_analysis_mode() is False
        assert controller.drawing_mode is True, "Leaving analysis keeps drawing as set"

    def test_snapshot(self):
        from enviro_gis.viewport.controller import MapViewportController

        controller = MapViewportController()
        controller.set_selected_tool("rectangle")
        snapshot = controller.snapshot()
        assert snapshot["center"] == [51.505, -0.09]
        assert snapshot["zoom"] == 13
        assert snapshot["selectedTool"] == "rectangle"
        assert snapshot["surfaceAttached"] is False


class TestSurface:
    """MapSurface GeoJSON loading and events."""

    def test_add_geojson_popups(self):
        from enviro_gis.viewport.surface import MapSurface

        surface = MapSurface()
        collection = {
            "type": "FeatureCollection",
            "features": [FEATURE, dict(FEATURE, properties={})],
        }
        layers = surface.add_geojson(collection, style={"color": "#3388ff"})

        assert len(layers) == 2
        assert layers[0].popup == "<strong>name:</strong> Box"
        assert layers[1].popup is None
        assert [layer.id for layer in surface.drawn_items] == [layer.id for layer in layers]

    def test_popup_escapes_html(self):
        from enviro_gis.viewport.surface import popup_html

        html = popup_html({"name": "<b>x</b>", "level": 420})
        assert html == "<strong>name:</strong> &lt;b&gt;x&lt;/b&gt;<br><strong>level:</strong> 420"

    def test_unknown_event(self):
        from enviro_gis.viewport.surface import MapSurface

        with pytest.raises(KeyError):
            MapSurface().emit("zoomend", {})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
