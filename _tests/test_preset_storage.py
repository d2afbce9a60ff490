"""
Unit tests for filter preset storage.

Tests:
1. Save/load round trip through the JSON file
2. Corrupt JSON and non-array documents reset to empty
3. Malformed entries are skipped
4. Lock timeouts degrade instead of raising

Run with: python -m pytest _tests/test_preset_storage.py -v
"""

import json

import pytest


def _preset(preset_id: str = "1700000000000", name: str = "CO2 only"):
    from enviro_gis.filtering.criteria import FilterCriteria, FilterPreset
    from enviro_gis.models.data_models import LayerType

    return FilterPreset(
        id=preset_id,
        name=name,
        filters=FilterCriteria(search_text="camden", layer_types=(LayerType.CO2,)),
        created_at="2024-01-10T12:00:00Z",
    )


class TestRoundTrip:
    """Persisted array format."""

    def test_save_then_load(self, tmp_path):
        from enviro_gis.filtering.preset_storage import PresetStorage

        storage = PresetStorage(str(tmp_path))
        assert storage.load() == [], "Missing file reads as empty"
        assert storage.save([_preset()])

        loaded = storage.load()
        assert loaded == [_preset()], "Loaded preset should equal the saved one"

    def test_file_is_flat_array(self, tmp_path):
        from enviro_gis.filtering.preset_storage import PresetStorage

        storage = PresetStorage(str(tmp_path))
        storage.save([_preset()])

        raw = json.loads((tmp_path / "filterPresets.json").read_text(encoding="utf-8"))
        assert isinstance(raw, list)
        assert raw[0]["filters"]["layerTypes"] == ["co2"]
        assert raw[0]["filters"]["spatialQuery"] == {"type": None, "shape": None}

    def test_save_overwrites(self, tmp_path):
        from enviro_gis.filtering.preset_storage import PresetStorage

        storage = PresetStorage(str(tmp_path))
        storage.save([_preset("1"), _preset("2")])
        storage.save([_preset("2")])
        assert [p.id for p in storage.load()] == ["2"]


class TestCorruption:
    """Corrupt storage resets to empty."""

    def test_corrupt_json_resets(self, tmp_path):
        from enviro_gis.filtering.preset_storage import PresetStorage

        storage = PresetStorage(str(tmp_path))
        storage.path.write_text("{not json", encoding="utf-8")

        assert storage.load() == []
        assert json.loads(storage.path.read_text(encoding="utf-8")) == [], "File reset to []"

    def test_non_array_resets(self, tmp_path):
        from enviro_gis.filtering.preset_storage import PresetStorage

        storage = PresetStorage(str(tmp_path))
        storage.path.write_text('{"presets": []}', encoding="utf-8")
        assert storage.load() == []

    def test_malformed_entry_skipped(self, tmp_path):
        from enviro_gis.filtering.preset_storage import PresetStorage

        storage = PresetStorage(str(tmp_path))
        good = _preset().to_dict()
        storage.path.write_text(json.dumps([{"name": "no id"}, good]), encoding="utf-8")

        assert [p.id for p in storage.load()] == [good["id"]]

    def test_non_object_sections_skipped(self, tmp_path):
        from enviro_gis.filtering.filter_engine import FilterEngine
        from enviro_gis.filtering.preset_storage import PresetStorage

        storage = PresetStorage(str(tmp_path))
        storage.path.write_text(
            json.dumps([
                {"id": "1", "name": "x", "filters": "oops"},
                {"id": "2", "name": "y", "filters": {"dateRange": 5}},
                {"id": "3", "name": "z", "filters": {"attributes": {"co2Level": []}}},
                "not a preset",
            ]),
            encoding="utf-8",
        )

        assert storage.load() == [], "Every entry has a non-object section"
        assert FilterEngine(storage=storage).presets == [], "Engine startup must survive bad entries"


class TestLocking:
    """Lock timeouts degrade gracefully."""

    def test_timeout_on_load_and_save(self, tmp_path):
        from unittest.mock import patch

        import filelock

        from enviro_gis.filtering.preset_storage import PresetStorage

        storage = PresetStorage(str(tmp_path))
        with patch.object(filelock.FileLock, "acquire", side_effect=filelock.Timeout(str(storage.lock_path))):
            assert storage.load() == []
            assert storage.save([_preset()]) is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
