"""
Environmental GIS Export Module - GeoJSON and CSV.

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Move shapes and locations in and out of the dashboard.

Export Formats:
- GeoJSON: FeatureCollection of drawn/saved shapes. Import then export
  reproduces the same geometries and properties; map-layer handles are
  never serialized.
- CSV: Monitoring locations (one row per record) via pandas

Key Entry Points:
- export_shapes_to_geojson(): Drawn-items layers / features -> FeatureCollection
- shapes_to_feature_collection(): Saved Shape records -> FeatureCollection
- import_shapes_from_geojson(): Validate + normalize an incoming collection
- export_locations_to_csv(): Location list -> CSV text or file

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import copy
import io
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from enviro_gis.errors import GeometryError
from enviro_gis.geometry.predicates import to_geometry
from enviro_gis.models.data_models import MonitoringLocation, Shape

logger = logging.getLogger(__name__)

LOCATION_CSV_COLUMNS = [
    "id",
    "name",
    "latitude",
    "longitude",
    "layerType",
    "category",
    "co2Level",
    "pm25Level",
    "pm10Level",
    "temperature",
    "unit",
    "description",
    "source",
    "createdAt",
    "updatedAt",
]


# ═══════════════════════════════════════════════════════════════════════════
# 🔧 HELPER FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════


def geojson_filename(day: Optional[date] = None) -> str:
    """Download name for a shapes export, e.g. "map-shapes-2024-05-01.geojson"."""
    day = day or date.today()
    return f"map-shapes-{day.isoformat()}.geojson"


def _feature_of(item: Any) -> Dict[str, Any]:
    if hasattr(item, "to_geojson"):
        return item.to_geojson()
    if hasattr(item, "to_feature"):
        return item.to_feature()
    return copy.deepcopy(item)


# ═══════════════════════════════════════════════════════════════════════════
# 🗺️ GEOJSON EXPORT / IMPORT
# ═══════════════════════════════════════════════════════════════════════════


def export_shapes_to_geojson(items: Iterable[Any]) -> Dict[str, Any]:
    """
    Build a FeatureCollection from map layers, Shape records or Feature dicts.

    Args:
        items: MapLayer handles (drawn items), Shape records, or Features

    Returns:
        GeoJSON FeatureCollection
    """
    features = []
    for item in items:
        feature = _feature_of(item)
        feature.setdefault("properties", {})
        features.append(feature)
    return {"type": "FeatureCollection", "features": features}


def shapes_to_feature_collection(shapes: Iterable[Shape]) -> Dict[str, Any]:
    return {"type": "FeatureCollection", "features": [s.to_feature() for s in shapes]}


def import_shapes_from_geojson(data: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Parse and validate GeoJSON for loading onto the map.

    Args:
        data: JSON text, a FeatureCollection, or a single Feature

    Returns:
        Normalized FeatureCollection (deep copy; every feature has properties)

    Raises:
        GeometryError: Invalid JSON, wrong document type, or a malformed feature
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise GeometryError(f"Invalid GeoJSON: {e}") from e
    if not isinstance(data, dict):
        raise GeometryError("GeoJSON must be a FeatureCollection or Feature")

    if data.get("type") == "FeatureCollection":
        raw_features = data.get("features")
        if not isinstance(raw_features, list):
            raise GeometryError("FeatureCollection has no features array")
    elif data.get("type") == "Feature":
        raw_features = [data]
    else:
        raise GeometryError(f"Unsupported GeoJSON type: {data.get('type')!r}")

    features: List[Dict[str, Any]] = []
    for index, feature in enumerate(raw_features):
        try:
            to_geometry(feature)
        except GeometryError as e:
            raise GeometryError(f"Feature {index}: {e.message}") from e
        normalized = copy.deepcopy(feature)
        normalized["properties"] = dict(normalized.get("properties") or {})
        features.append(normalized)

    logger.info(f"📥 Imported {len(features)} features from GeoJSON")
    return {"type": "FeatureCollection", "features": features}


def write_geojson(collection: Dict[str, Any], path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(collection, f, indent=2)
    logger.info(f"📤 Wrote {len(collection.get('features', []))} features to {path.name}")
    return path


# ═══════════════════════════════════════════════════════════════════════════
# 📤 CSV EXPORT
# ═══════════════════════════════════════════════════════════════════════════


def locations_to_dataframe(locations: Iterable[MonitoringLocation]) -> pd.DataFrame:
    """One row per location with a fixed column order."""
    rows = [loc.to_dict() for loc in locations]
    if not rows:
        return pd.DataFrame(columns=LOCATION_CSV_COLUMNS)
    df = pd.DataFrame(rows)
    for column in LOCATION_CSV_COLUMNS:
        if column not in df.columns:
            df[column] = None
    return df[LOCATION_CSV_COLUMNS]


def export_locations_to_csv(
    locations: Iterable[MonitoringLocation], csv_path: Optional[Path] = None
) -> str:
    """
    Export locations as CSV.

    Args:
        locations: Records to export
        csv_path: Optional file to write (overwritten)

    Returns:
        CSV text
    """
    df = locations_to_dataframe(locations)
    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    text = buffer.getvalue()
    if csv_path is not None:
        Path(csv_path).write_text(text, encoding="utf-8")
        logger.info(f"📤 Exported {len(df)} locations to {Path(csv_path).name}")
    return text
