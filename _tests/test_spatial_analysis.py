"""
Unit tests for spatial analysis operations and the measurement session.

Tests:
1. Too few drawn shapes -> NoShapeError, no map layer added; targets follow the drawing layer
2. Buffer adds a styled result layer outside the drawing group
3. Measure area/length of the last drawn shape
4. Intersect: overlap vs no intersection
5. Click-to-measure session lifecycle

Run with: python -m pytest _tests/test_spatial_analysis.py -v
"""

from typing import Any, Dict

import pytest


def _box(west: float, south: float, east: float, north: float) -> Dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": {
            "type": "Polygon",
            "coordinates": [
                [[west, south], [east, south], [east, north], [west, north], [west, south]]
            ],
        },
        "properties": {},
    }


def _setup():
    from enviro_gis.analysis.spatial_analysis import SpatialAnalysisOperations
    from enviro_gis.backend.memory_backend import InMemoryBackend
    from enviro_gis.stores.shape_store import ShapeStore
    from enviro_gis.viewport.controller import MapViewportController
    from enviro_gis.viewport.surface import MapSurface

    surface = MapSurface()
    viewport = MapViewportController()
    viewport.attach_surface(surface)
    shapes = ShapeStore(InMemoryBackend())
    analysis = SpatialAnalysisOperations(shapes, viewport)
    return surface, viewport, shapes, analysis


def _draw(viewport, shapes, feature):
    layer = viewport.add_shape_to_map(feature, kind="drawn", drawn=True)
    return shapes.add_drawn(layer.to_geojson(), layer)


class TestTargets:
    """Operations need enough drawn shapes."""

    def test_intersect_with_one_shape(self):
        """intersect() with a single drawn shape fails and adds no layer."""
        from enviro_gis.errors import NoShapeError

        surface, viewport, shapes, analysis = _setup()
        _draw(viewport, shapes, _box(0, 0, 1, 1))
        layer_count = len(surface.list_layers())

        with pytest.raises(NoShapeError) as excinfo:
            analysis.intersect()
        assert excinfo.value.required == 2
        assert len(surface.list_layers()) == layer_count, "No map layer may be added"
        assert surface.list_layers("analysis") == []

    def test_buffer_without_shape(self):
        from enviro_gis.errors import NoShapeError

        _, _, _, analysis = _setup()
        with pytest.raises(NoShapeError) as excinfo:
            analysis.buffer(100.0)
        assert excinfo.value.message == "Please draw a shape first"

    def test_imported_layer_is_a_target(self):
        surface, _, shapes, analysis = _setup()
        surface.add_geojson(_box(0, 0, 1, 1), kind="import", drawn=True)

        area = analysis.measure("area")

        assert area.unit == "square kilometers"
        assert len(shapes.drawn_shapes) == 1, "Imported layer adopted into the drawn list"

    def test_cleared_drawing_layer_leaves_no_target(self):
        from enviro_gis.errors import NoShapeError

        _, viewport, shapes, analysis = _setup()
        _draw(viewport, shapes, _box(0, 0, 1, 1))
        viewport.clear_drawn_items()

        with pytest.raises(NoShapeError):
            analysis.buffer(100.0)
        assert shapes.drawn_shapes == []


class TestBuffer:
    """buffer(distance_m)."""

    def test_buffer_layer(self):
        surface, viewport, shapes, analysis = _setup()
        _draw(viewport, shapes, _box(-0.10, 51.50, -0.09, 51.51))

        result = analysis.buffer(250.0)

        assert result.kind == "buffer"
        assert result.feature["geometry"]["type"] == "Polygon"
        layer = surface.get_layer(result.layer_id)
        assert layer is not None, "Buffer result is rendered"
        assert layer.style["color"] == "#ff4444"
        assert layer.kind == "analysis"
        assert layer not in surface.drawn_items, "Results are not part of the drawing group"
        assert shapes.analysis_results == [result]

    def test_buffer_uses_last_drawn(self):
        from enviro_gis.geometry.predicates import GeometryPredicates

        _, viewport, shapes, analysis = _setup()
        _draw(viewport, shapes, _box(10.0, 10.0, 10.01, 10.01))
        last = _box(-0.10, 51.50, -0.09, 51.51)
        _draw(viewport, shapes, last)

        result = analysis.buffer(100.0)
        assert GeometryPredicates().contains(result.feature, last)


class TestMeasure:
    """measure(kind)."""

    def test_area_and_length(self):
        _, viewport, shapes, analysis = _setup()
        _draw(viewport, shapes, _box(0.0, 0.0, 0.01, 0.01))

        area = analysis.measure("area")
        assert area.unit == "square kilometers"
        assert area.value == pytest.approx(1.2308, rel=0.01)

        perimeter = analysis.measure("length")
        assert perimeter.unit == "kilometers"
        assert perimeter.value == pytest.approx(4.438, rel=0.01)

    def test_measure_does_not_touch_map(self):
        surface, viewport, shapes, analysis = _setup()
        _draw(viewport, shapes, _box(0.0, 0.0, 0.01, 0.01))
        before = len(surface.list_layers())
        analysis.measure("area")
        assert len(surface.list_layers()) == before

    def test_unknown_kind(self):
        _, viewport, shapes, analysis = _setup()
        _draw(viewport, shapes, _box(0.0, 0.0, 0.01, 0.01))
        with pytest.raises(ValueError):
            analysis.measure("volume")


class TestIntersect:
    """intersect() on the last two drawn shapes."""

    def test_overlap(self):
        surface, viewport, shapes, analysis = _setup()
        _draw(viewport, shapes, _box(0.0, 0.0, 0.02, 0.02))
        _draw(viewport, shapes, _box(0.01, 0.01, 0.03, 0.03))

        result = analysis.intersect()

        assert result.status == "intersection"
        assert surface.get_layer(result.layer_id).style["color"] == "#00ff00"
        assert result.measurement["unit"] == "square kilometers"
        assert analysis.last_message.startswith("Intersection area:")

    def test_disjoint(self):
        surface, viewport, shapes, analysis = _setup()
        _draw(viewport, shapes, _box(0.0, 0.0, 0.01, 0.01))
        _draw(viewport, shapes, _box(1.0, 1.0, 1.01, 1.01))

        result = analysis.intersect()

        assert result.status == "no_intersection"
        assert result.feature is None
        assert surface.list_layers("analysis") == []
        assert analysis.last_message == "No intersection found"

    def test_clear_analysis(self):
        surface, viewport, shapes, analysis = _setup()
        _draw(viewport, shapes, _box(0.0, 0.0, 0.01, 0.01))
        analysis.buffer(50.0)

        analysis.clear_analysis()
        assert surface.list_layers("analysis") == []
        assert shapes.analysis_results == []


class TestMeasurementSession:
    """IDLE -> MEASURING -> IDLE."""

    def test_lifecycle(self):
        from enviro_gis.analysis.spatial_analysis import MeasurementState

        surface, _, _, analysis = _setup()
        session = analysis.measurement

        assert session.add_point(0.0, 0.0) is None, "Clicks are ignored while idle"
        assert session.toggle() is MeasurementState.MEASURING

        assert session.add_point(0.0, 0.0) is None, "One vertex has no length yet"
        reading = session.add_point(0.0, 0.01)
        assert reading.unit == "kilometers"
        assert reading.raw == pytest.approx(1113.19, abs=1.0)
        assert len(surface.list_layers("measure")) == 1

        session.add_point(0.0, 0.02)
        assert len(surface.list_layers("measure")) == 1, "Polyline is redrawn, not stacked"

        final = session.stop()
        assert session.state is MeasurementState.IDLE
        assert final.raw == pytest.approx(2226.39, abs=2.0)
        assert surface.list_layers("measure") == [], "Polyline removed on stop"
        assert session.to_dict()["lastReading"]["unit"] == "kilometers"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
