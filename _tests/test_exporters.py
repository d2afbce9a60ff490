"""
Unit tests for GeoJSON and CSV import/export.

Tests:
1. Export -> import keeps feature count and geometries
2. Import validation (bad JSON, wrong type, malformed feature)
3. Export file name format
4. Location CSV columns and values

Run with: python -m pytest _tests/test_exporters.py -v
"""

from datetime import date

import pytest


FEATURES = [
    {
        "type": "Feature",
        "geometry": {
            "type": "Polygon",
            "coordinates": [[[-0.1, 51.5], [-0.08, 51.5], [-0.08, 51.51], [-0.1, 51.5]]],
        },
        "properties": {"name": "Triangle"},
    },
    {
        "type": "Feature",
        "geometry": {"type": "LineString", "coordinates": [[-0.1, 51.5], [-0.09, 51.52]]},
        "properties": {},
    },
]


class TestGeoJSONRoundTrip:
    """Export of the drawing group and re-import."""

    def test_round_trip_from_drawn_items(self):
        """import(export()) has the same features and geometries."""
        import json

        from enviro_gis.exporters import export_shapes_to_geojson, import_shapes_from_geojson
        from enviro_gis.viewport.surface import MapSurface

        surface = MapSurface()
        for feature in FEATURES:
            surface.add_layer(feature, drawn=True)

        exported = export_shapes_to_geojson(surface.drawn_items)
        imported = import_shapes_from_geojson(json.dumps(exported))

        assert imported["type"] == "FeatureCollection"
        assert len(imported["features"]) == len(FEATURES)
        for original, restored in zip(FEATURES, imported["features"]):
            assert restored["geometry"] == original["geometry"]
            assert restored["properties"] == original["properties"]

    def test_export_is_detached_from_layers(self):
        """Exported features are copies with no layer handles."""
        from enviro_gis.exporters import export_shapes_to_geojson
        from enviro_gis.viewport.surface import MapSurface

        surface = MapSurface()
        layer = surface.add_layer(FEATURES[0], drawn=True)
        exported = export_shapes_to_geojson([layer])

        exported["features"][0]["properties"]["name"] = "changed"
        assert layer.feature["properties"]["name"] == "Triangle"
        assert set(exported["features"][0]) == {"type", "geometry", "properties"}

    def test_saved_shapes_collection(self):
        from enviro_gis.exporters import shapes_to_feature_collection
        from enviro_gis.models.data_models import Shape

        shape = Shape.from_dict(
            {
                "id": "7",
                "name": "Zone",
                "category": "research",
                "shapeType": "polygon",
                "geometry": FEATURES[0]["geometry"],
                "properties": {"color": "#123456"},
            }
        )
        collection = shapes_to_feature_collection([shape])
        properties = collection["features"][0]["properties"]
        assert properties["id"] == "7"
        assert properties["category"] == "research"
        assert properties["color"] == "#123456"


class TestGeoJSONImportValidation:
    """import_shapes_from_geojson rejects bad documents."""

    @pytest.mark.parametrize(
        "payload",
        [
            "{not json",
            '{"type": "Polygon", "coordinates": []}',
            {"type": "FeatureCollection"},
            {"type": "FeatureCollection", "features": [{"type": "Feature", "geometry": None}]},
            ["not", "a", "document"],
        ],
    )
    def test_rejected(self, payload):
        from enviro_gis.errors import GeometryError
        from enviro_gis.exporters import import_shapes_from_geojson

        with pytest.raises(GeometryError):
            import_shapes_from_geojson(payload)

    def test_single_feature_wrapped(self):
        from enviro_gis.exporters import import_shapes_from_geojson

        feature = dict(FEATURES[1])
        feature.pop("properties")
        collection = import_shapes_from_geojson(feature)
        assert len(collection["features"]) == 1
        assert collection["features"][0]["properties"] == {}


class TestFileNames:
    """Export file naming and writing."""

    def test_geojson_filename(self):
        from enviro_gis.exporters import geojson_filename

        assert geojson_filename(date(2024, 5, 1)) == "map-shapes-2024-05-01.geojson"

    def test_write_geojson(self, tmp_path):
        import json

        from enviro_gis.exporters import export_shapes_to_geojson, write_geojson

        path = write_geojson(export_shapes_to_geojson(FEATURES), tmp_path / "out" / "shapes.geojson")
        assert json.loads(path.read_text(encoding="utf-8"))["features"][0]["properties"]["name"] == "Triangle"


class TestLocationCSV:
    """CSV export via pandas."""

    def test_columns_and_values(self, tmp_path):
        import pandas as pd

        from enviro_gis.exporters import LOCATION_CSV_COLUMNS, export_locations_to_csv
        from enviro_gis.models.data_models import MonitoringLocation

        location = MonitoringLocation.from_dict(
            {
                "id": "1",
                "name": "Station A",
                "latitude": 51.505,
                "longitude": -0.09,
                "layerType": "co2",
                "category": "monitoring_station",
                "co2Level": 420.5,
            }
        )
        csv_path = tmp_path / "locations.csv"
        text = export_locations_to_csv([location], csv_path)

        assert text.splitlines()[0] == ",".join(LOCATION_CSV_COLUMNS)
        df = pd.read_csv(csv_path)
        assert df.loc[0, "name"] == "Station A"
        assert df.loc[0, "co2Level"] == pytest.approx(420.5)
        assert df.loc[0, "unit"] == "ppm"

    def test_empty_export_has_header(self):
        from enviro_gis.exporters import LOCATION_CSV_COLUMNS, export_locations_to_csv

        assert export_locations_to_csv([]).strip() == ",".join(LOCATION_CSV_COLUMNS)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
