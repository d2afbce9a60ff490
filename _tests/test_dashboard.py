"""
Unit tests for the Dashboard session wiring.

Tests:
1. draw_created routes to the pending workflow or the drawn list by mode
2. Mode switch discards drawn shapes and the drawing layer
3. Visible locations follow filters and layer visibility
4. Map clicks feed an active measurement session
5. GeoJSON import onto the drawing layer (and into analysis targets)

Run with: python -m pytest _tests/test_dashboard.py -v
"""

import pytest


TOKEN = "user-a"

SQUARE = {
    "type": "Feature",
    "geometry": {
        "type": "Polygon",
        "coordinates": [[[-0.1, 51.5], [-0.09, 51.5], [-0.09, 51.51], [-0.1, 51.51], [-0.1, 51.5]]],
    },
    "properties": {},
}


def _dashboard():
    from enviro_gis.backend.memory_backend import InMemoryBackend
    from enviro_gis.dashboard import Dashboard

    dashboard = Dashboard(InMemoryBackend())
    surface = dashboard.attach_surface()
    return dashboard, surface


class TestDrawEvents:
    """draw_created / draw_edited / draw_deleted routing."""

    def test_draw_outside_analysis_is_pending(self):
        from enviro_gis.stores.shape_store import PendingShapeState

        dashboard, surface = _dashboard()
        surface.emit("draw_created", {"feature": SQUARE})

        assert dashboard.shapes.pending_state is PendingShapeState.AWAITING_PROPERTIES
        assert dashboard.shapes.pending.shape_type == "polygon"
        assert dashboard.shapes.drawn_shapes == []
        assert len(surface.drawn_items) == 1, "Provisional layer is on the map"

    def test_confirm_pending_saves_shape(self):
        dashboard, surface = _dashboard()
        surface.emit("draw_created", {"feature": SQUARE})

        result = dashboard.confirm_pending_shape(TOKEN, {"name": "Park", "category": "environmental"})

        assert result.ok, result.error
        assert [s.name for s in dashboard.shapes.shapes] == ["Park"]
        assert surface.drawn_items[0].feature["properties"]["id"] == result.value.id
        assert dashboard.last_message == "Shape saved"

    def test_cancel_pending_removes_layer(self):
        dashboard, surface = _dashboard()
        surface.emit("draw_created", {"feature": SQUARE})

        assert dashboard.cancel_pending_shape()
        assert surface.drawn_items == []

    def test_draw_in_analysis_mode(self):
        dashboard, surface = _dashboard()
        dashboard.switch_mode()
        surface.emit("draw_created", {"feature": SQUARE})

        assert dashboard.shapes.pending is None
        assert len(dashboard.shapes.drawn_shapes) == 1

    def test_edit_and_delete_track_drawn_list(self):
        dashboard, surface = _dashboard()
        dashboard.switch_mode()
        surface.emit("draw_created", {"feature": SQUARE})
        layer_id = surface.drawn_items[0].id

        moved = {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [1.0, 2.0]},
            "properties": {},
        }
        surface.emit("draw_edited", {"layerId": layer_id, "feature": moved})
        assert dashboard.shapes.drawn_shapes[0].feature["geometry"] == moved["geometry"]

        surface.emit("draw_deleted", {"layerId": layer_id})
        assert dashboard.shapes.drawn_shapes == []
        assert surface.get_layer(layer_id) is None


class TestModeSwitch:
    """switch_mode() clears mode-scoped state."""

    def test_switch_clears_drawn(self):
        dashboard, surface = _dashboard()
        assert dashboard.switch_mode() is True
        surface.emit("draw_created", {"feature": SQUARE})
        dashboard.analysis.buffer(100.0)

        assert dashboard.switch_mode() is False
        assert dashboard.shapes.drawn_shapes == []
        assert surface.drawn_items == []
        assert surface.list_layers("analysis") == [], "Analysis output is discarded"

    def test_switch_cancels_pending(self):
        from enviro_gis.stores.shape_store import PendingShapeState

        dashboard, surface = _dashboard()
        surface.emit("draw_created", {"feature": SQUARE})
        dashboard.switch_mode()
        assert dashboard.shapes.pending_state is PendingShapeState.IDLE


class TestLocations:
    """Location mutations flow into the filter engine."""

    def test_create_feeds_filters_and_visibility(self):
        dashboard, _ = _dashboard()
        created = dashboard.create_location(
            TOKEN,
            {"name": "Station", "latitude": 51.5, "longitude": -0.1, "layerType": "co2", "co2Level": 410},
        )
        dashboard.create_location(
            TOKEN,
            {"name": "Junction", "latitude": 51.51, "longitude": -0.11,
             "layerType": "traffic", "category": "intersection"},
        )
        assert created.ok, created.error
        assert len(dashboard.filters.filtered_locations) == 2

        dashboard.viewport.toggle_layer_visibility("traffic")
        assert [loc.name for loc in dashboard.visible_locations()] == ["Station"]

        dashboard.filters.update_layer_types(["traffic"])
        assert dashboard.visible_locations() == [], "Hidden layer wins over the filter"

    def test_refresh_loads_and_syncs(self):
        from enviro_gis.backend.memory_backend import InMemoryBackend
        from enviro_gis.dashboard import Dashboard

        api = InMemoryBackend()
        api.create_location(TOKEN, {"name": "A", "latitude": 1.0, "longitude": 2.0,
                                    "layerType": "co2", "category": "monitoring_station",
                                    "co2Level": 400})
        dashboard = Dashboard(api)

        result = dashboard.refresh(TOKEN)
        assert result.ok
        assert dashboard.last_message == "Loaded 1 locations"
        assert [loc.name for loc in dashboard.filters.filtered_locations] == ["A"]

    def test_select_flies_to_location(self):
        dashboard, surface = _dashboard()
        location = dashboard.create_location(
            TOKEN, {"name": "S", "latitude": 48.85, "longitude": 2.35, "layerType": "co2", "co2Level": 400}
        ).value

        dashboard.select_location(location.id)
        assert surface.center == (48.85, 2.35)
        assert surface.zoom == 15

    def test_csv_export_uses_visible_locations(self):
        dashboard, _ = _dashboard()
        dashboard.create_location(
            TOKEN, {"name": "S", "latitude": 1.0, "longitude": 2.0, "layerType": "co2", "co2Level": 400}
        )
        dashboard.viewport.toggle_layer_visibility("co2")
        assert len(dashboard.export_locations_csv().strip().splitlines()) == 1, "Header only"


class TestMeasurementClicks:
    """click events while measuring."""

    def test_clicks_add_vertices(self):
        dashboard, surface = _dashboard()
        surface.emit("click", {"lat": 0.0, "lng": 0.0})
        assert dashboard.analysis.measurement.points == [], "Ignored while idle"

        dashboard.analysis.measurement.toggle()
        surface.emit("click", {"lat": 0.0, "lng": 0.0})
        surface.emit("click", {"lat": 0.0, "lng": 0.01})

        reading = dashboard.analysis.measurement.last_reading
        assert reading.raw == pytest.approx(1113.19, abs=1.0)

    def test_click_without_coordinates_rejected(self):
        from enviro_gis.errors import ValidationError

        dashboard, surface = _dashboard()
        dashboard.analysis.measurement.toggle()

        with pytest.raises(ValidationError):
            surface.emit("click", {"lng": 0.0})
        with pytest.raises(ValidationError):
            surface.emit("click", {"lat": "north", "lng": 0.0})
        assert dashboard.analysis.measurement.points == [], "Bad clicks add no vertex"


class TestImportExport:
    """GeoJSON round trip through the drawing layer."""

    def test_import_uses_imported_style(self):
        dashboard, surface = _dashboard()
        layers = dashboard.import_geojson({"type": "FeatureCollection", "features": [SQUARE]})

        assert len(layers) == 1
        assert layers[0].style["weight"] == 3
        assert surface.drawn_items == layers
        assert dashboard.last_message == "Imported 1 features"

        exported = dashboard.export_geojson()
        assert exported["features"][0]["geometry"] == SQUARE["geometry"]

    def test_import_in_analysis_mode_is_measurable(self):
        dashboard, _ = _dashboard()
        dashboard.switch_mode()
        dashboard.import_geojson({"type": "FeatureCollection", "features": [SQUARE]})

        assert len(dashboard.shapes.drawn_shapes) == 1
        area = dashboard.analysis.measure("area")
        assert area.raw > 0, "Imported features are analysis targets"

    def test_import_rejects_bad_document(self):
        from enviro_gis.errors import GeometryError

        dashboard, surface = _dashboard()
        with pytest.raises(GeometryError):
            dashboard.import_geojson("{oops")
        assert surface.list_layers() == []

    def test_snapshot_keys(self):
        dashboard, _ = _dashboard()
        snapshot = dashboard.snapshot()
        assert snapshot["pendingShape"] == "idle"
        assert snapshot["filterSummary"] == "No filters active"
        assert snapshot["viewport"]["surfaceAttached"] is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
