"""
Unit tests for LocationStore.

Tests:
1. CO2 scenario: create at (51.505, -0.09) with co2Level 420.5
2. Coordinate validation never reaches the network
3. Layer-specific required readings
4. Stale loads are discarded
5. Not-found and network failures resolve to OperationResult

Run with: python -m pytest _tests/test_location_store.py -v
"""

from unittest.mock import Mock

import pytest


def _co2_form(**overrides):
    form = {
        "name": "Station A",
        "latitude": 51.505,
        "longitude": -0.09,
        "layerType": "co2",
        "category": "monitoring_station",
        "co2Level": 420.5,
    }
    form.update(overrides)
    return form


class TestCreate:
    """Validation and persistence on create."""

    def test_co2_location_scenario(self):
        """A CO2 location with no description is created and indexed by layer type."""
        from enviro_gis.backend.memory_backend import InMemoryBackend
        from enviro_gis.stores.location_store import LocationStore

        store = LocationStore(InMemoryBackend())
        result = store.create("token-a", _co2_form())

        assert result.ok, f"Create failed: {result.error}"
        co2 = store.by_layer_type("co2")
        assert len(co2) == 1, "Created location should be listed under co2"
        assert co2[0].reading.co2_level == pytest.approx(420.5)
        assert co2[0].unit == "ppm"
        assert co2[0].description is None
        assert co2[0].marker_color() == "#28a745"

    @pytest.mark.parametrize(
        "latitude,longitude",
        [(91.0, 0.0), (-90.5, 0.0), (0.0, 180.5), (0.0, -181.0), ("north", 0.0)],
    )
    def test_invalid_coordinates_skip_network(self, latitude, longitude):
        """Out-of-range coordinates fail validation without calling the API."""
        from enviro_gis.stores.location_store import LocationStore

        api = Mock()
        store = LocationStore(api)
        result = store.create("token-a", _co2_form(latitude=latitude, longitude=longitude))

        assert not result.ok, "Invalid coordinates must not succeed"
        assert result.kind == "validation"
        api.create_location.assert_not_called()
        assert store.count() == 0

    @pytest.mark.parametrize("latitude,longitude", [(90.0, 180.0), (-90.0, -180.0), (0.0, 0.0)])
    def test_boundary_coordinates_accepted(self, latitude, longitude):
        from enviro_gis.backend.memory_backend import InMemoryBackend
        from enviro_gis.stores.location_store import LocationStore

        store = LocationStore(InMemoryBackend())
        result = store.create("token-a", _co2_form(latitude=latitude, longitude=longitude))
        assert result.ok, f"({latitude}, {longitude}) should be valid: {result.error}"

    def test_co2_requires_level(self):
        from enviro_gis.stores.location_store import LocationStore

        api = Mock()
        form = _co2_form()
        del form["co2Level"]
        result = LocationStore(api).create("token-a", form)

        assert not result.ok
        assert any("co2Level is required" in e for e in result.errors), result.errors
        api.create_location.assert_not_called()

    def test_unknown_layer_type(self):
        from enviro_gis.stores.location_store import LocationStore

        result = LocationStore(Mock()).create("token-a", _co2_form(layerType="noise"))
        assert not result.ok
        assert result.kind == "validation"

    def test_payload_only_carries_layer_fields(self):
        """A temperature submission does not send co2Level."""
        from enviro_gis.models.data_models import LocationDraft
        from enviro_gis.stores.location_store import validate_location_draft

        draft = LocationDraft.from_dict(
            {
                "name": "Roof",
                "latitude": 51.5,
                "longitude": -0.1,
                "layerType": "temperature",
                "category": "weather_station",
                "temperature": "18.5",
                "co2Level": 400,
            }
        )
        payload = validate_location_draft(draft)
        assert payload["temperature"] == pytest.approx(18.5)
        assert "co2Level" not in payload

    def test_listeners_notified(self):
        from enviro_gis.backend.memory_backend import InMemoryBackend
        from enviro_gis.stores.location_store import LocationStore

        store = LocationStore(InMemoryBackend())
        calls = []
        unsubscribe = store.subscribe(lambda: calls.append(store.count()))
        store.create("token-a", _co2_form())
        unsubscribe()
        store.create("token-a", _co2_form(name="Station B"))

        assert calls == [1], f"Listener should fire once before unsubscribing, got {calls}"


class TestLoad:
    """Loading and ownership scoping."""

    def test_load_replaces_list(self):
        from enviro_gis.backend.memory_backend import InMemoryBackend
        from enviro_gis.stores.location_store import LocationStore

        backend = InMemoryBackend()
        LocationStore(backend).create("token-a", _co2_form())

        store = LocationStore(backend)
        result = store.load("token-a")
        assert result.ok
        assert store.count() == 1

    def test_other_users_records_hidden(self):
        from enviro_gis.backend.memory_backend import InMemoryBackend
        from enviro_gis.stores.location_store import LocationStore

        backend = InMemoryBackend()
        LocationStore(backend).create("token-a", _co2_form())

        store = LocationStore(backend)
        store.load("token-b")
        assert store.count() == 0, "Locations of another user must not be visible"

    def test_stale_load_discarded(self):
        """A load superseded while in flight does not overwrite state."""
        from enviro_gis.stores.location_store import LocationStore

        api = Mock()
        store = LocationStore(api)
        record = dict(_co2_form(), id="1")

        def superseded(token):
            store.invalidate()
            return [record]

        api.list_locations.side_effect = superseded
        result = store.load("token-a")

        assert not result.ok
        assert result.kind == "stale"
        assert store.locations == [], "Stale response must not be applied"

    def test_network_failure(self):
        from enviro_gis.errors import NetworkError
        from enviro_gis.stores.location_store import LocationStore

        api = Mock()
        api.list_locations.side_effect = NetworkError("Service unavailable", status=503)
        store = LocationStore(api)
        result = store.load("token-a")

        assert not result.ok
        assert result.kind == "network"
        assert store.error == "Service unavailable"

    def test_malformed_record_skipped(self):
        from enviro_gis.stores.location_store import LocationStore

        api = Mock()
        api.list_locations.return_value = [
            dict(_co2_form(), id="1"),
            {"id": "2", "name": "Broken"},
        ]
        store = LocationStore(api)
        store.load("token-a")
        assert [loc.id for loc in store.locations] == ["1"]


class TestUpdateDelete:
    """Partial updates and deletes."""

    def test_update_and_delete(self):
        from enviro_gis.backend.memory_backend import InMemoryBackend
        from enviro_gis.stores.location_store import LocationStore

        store = LocationStore(InMemoryBackend())
        created = store.create("token-a", _co2_form()).value

        updated = store.update("token-a", created.id, {"co2Level": 510})
        assert updated.ok, updated.error
        assert store.get(created.id).marker_color() == "#dc3545"

        deleted = store.delete("token-a", created.id)
        assert deleted.ok
        assert store.count() == 0

    def test_update_unknown_is_not_found(self):
        from enviro_gis.backend.memory_backend import InMemoryBackend
        from enviro_gis.stores.location_store import LocationStore

        result = LocationStore(InMemoryBackend()).update("token-a", "999", {"name": "x"})
        assert not result.ok
        assert result.kind == "not_found"

    def test_update_rejects_bad_latitude(self):
        from enviro_gis.stores.location_store import LocationStore

        api = Mock()
        result = LocationStore(api).update("token-a", "1", {"latitude": 120})
        assert result.kind == "validation"
        api.update_location.assert_not_called()

    def test_geodataframe(self):
        from enviro_gis.backend.memory_backend import InMemoryBackend
        from enviro_gis.stores.location_store import LocationStore

        store = LocationStore(InMemoryBackend())
        store.create("token-a", _co2_form())
        gdf = store.to_geodataframe()

        assert len(gdf) == 1
        assert gdf.crs.to_epsg() == 4326
        assert gdf.geometry.iloc[0].x == pytest.approx(-0.09)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
