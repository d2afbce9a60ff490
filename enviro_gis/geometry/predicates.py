#!/usr/bin/env python3
"""
Environmental GIS Dashboard - Geometry Predicates

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Answer spatial questions about points and user-drawn
features using Shapely, with geodesic measurement via pyproj.

Key Features:
1. within / intersects / contains predicates (contains is within, swapped)
2. Geodesic-aware buffer (azimuthal equidistant projection in km)
3. Geodesic area and length on the WGS84 ellipsoid
4. Intersection of two features
5. Vectorized point-in-feature masks for the filter engine

Error Policy:
- Input that is not a Feature (or a point / Shapely geometry) raises
  GeometryError
- Failures inside the geometry library (buffer, intersection) yield None

Navigation Guide:
- GeometryPredicates: Stateless service class
- to_geometry / as_feature: Conversion helpers

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from typing import Any, Dict, Optional, Sequence
import logging

import numpy as np
import shapely
from pyproj import Geod, Transformer
from pyproj.exceptions import ProjError
from shapely.errors import GEOSException
from shapely.geometry import Point, mapping, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform

from enviro_gis.config_types import CONFIG
from enviro_gis.errors import GeometryError
from enviro_gis.models.data_models import SpatialPredicate

# ═══════════════════════════════════════════════════════════════════════════
# 🔧 CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════

# Coordinate reference systems
CRS_WGS84 = "EPSG:4326"  # GPS coordinates (lon, lat)

# Geodesic calculator on the WGS84 ellipsoid
GEOD = Geod(ellps="WGS84")

# Logging
logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# 🔁 CONVERSION HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def _is_point_pair(subject: Any) -> bool:
    return (
        isinstance(subject, (tuple, list))
        and len(subject) == 2
        and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in subject)
    )


def to_geometry(subject: Any) -> BaseGeometry:
    """
    Convert a predicate operand to a Shapely geometry.

    Args:
        subject: (lon, lat) pair, GeoJSON Feature dict, or Shapely geometry

    Returns:
        Shapely geometry in WGS84 lon/lat

    Raises:
        GeometryError: If subject is not a Feature or its geometry is malformed
    """
    if isinstance(subject, BaseGeometry):
        return subject
    if _is_point_pair(subject):
        return Point(float(subject[0]), float(subject[1]))
    if not isinstance(subject, dict) or subject.get("type") != "Feature":
        raise GeometryError(f"Expected a GeoJSON Feature, got {type(subject).__name__}")

    geometry = subject.get("geometry")
    if not isinstance(geometry, dict):
        raise GeometryError("Feature has no geometry")
    try:
        geom = shape(geometry)
    except (GEOSException, ValueError, TypeError, KeyError, IndexError, AttributeError) as e:
        raise GeometryError(f"Malformed feature geometry: {e}") from e
    if geom.is_empty:
        raise GeometryError("Feature geometry is empty")
    return geom


def as_feature(
    geom: BaseGeometry, properties: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Wrap a Shapely geometry as a GeoJSON Feature dict."""
    return {
        "type": "Feature",
        "geometry": mapping(geom),
        "properties": dict(properties or {}),
    }


# ═══════════════════════════════════════════════════════════════════════════
# 📐 GEOMETRY PREDICATES SERVICE
# ═══════════════════════════════════════════════════════════════════════════


class GeometryPredicates:
    """
    Stateless spatial predicates and measurements.

    Coordinates are WGS84 lon/lat throughout. Distances are meters and
    areas square meters; buffering converts to kilometers internally.
    """

    def __init__(self, buffer_resolution: int = CONFIG.analysis.buffer_resolution) -> None:
        self.buffer_resolution = buffer_resolution

    # ───────────────────────────────────────────────────────────────────────
    # Predicates
    # ───────────────────────────────────────────────────────────────────────

    def within(self, subject: Any, reference: Any) -> bool:
        """True if subject lies in the interior of reference."""
        a = to_geometry(subject)
        b = to_geometry(reference)
        try:
            return bool(a.within(b))
        except GEOSException as e:
            raise GeometryError(f"within failed: {e}") from e

    def intersects(self, subject: Any, reference: Any) -> bool:
        """True if subject touches or lies inside reference."""
        a = to_geometry(subject)
        b = to_geometry(reference)
        try:
            return bool(a.intersects(b))
        except GEOSException as e:
            raise GeometryError(f"intersects failed: {e}") from e

    def contains(self, container: Any, subject: Any) -> bool:
        """True if container contains subject. Defined as within(subject, container)."""
        return self.within(subject, container)

    def evaluate(self, predicate: SpatialPredicate, point: Sequence[float], reference: Any) -> bool:
        """
        Evaluate a filter predicate for a (lon, lat) point against a reference.

        `contains` asks whether the reference contains the point.
        """
        if predicate is SpatialPredicate.WITHIN:
            return self.within(point, reference)
        if predicate is SpatialPredicate.INTERSECTS:
            return self.intersects(point, reference)
        return self.contains(reference, point)

    def point_mask(
        self,
        predicate: SpatialPredicate,
        lons: np.ndarray,
        lats: np.ndarray,
        reference: Any,
    ) -> np.ndarray:
        """
        Vectorized evaluate() over arrays of point coordinates.

        Args:
            predicate: Filter predicate
            lons: Longitudes
            lats: Latitudes
            reference: Feature to test against

        Returns:
            Boolean array, True where the point passes

        Raises:
            GeometryError: If reference is malformed or the library fails
        """
        ref = to_geometry(reference)
        try:
            if predicate is SpatialPredicate.INTERSECTS:
                return np.asarray(shapely.intersects_xy(ref, lons, lats), dtype=bool)
            # within(point, ref) and contains(ref, point) coincide for points
            return np.asarray(shapely.contains_xy(ref, lons, lats), dtype=bool)
        except GEOSException as e:
            raise GeometryError(f"Spatial predicate failed: {e}") from e

    # ───────────────────────────────────────────────────────────────────────
    # Constructive operations
    # ───────────────────────────────────────────────────────────────────────

    def buffer(
        self,
        feature: Any,
        distance_m: float,
        properties: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Expand a feature outward by distance_m meters.

        The geometry is projected to an azimuthal equidistant CRS centred on
        its centroid with kilometer units, buffered by distance_m / 1000, and
        projected back to WGS84.

        Args:
            feature: GeoJSON Feature (or point / Shapely geometry)
            distance_m: Buffer distance in meters (>= 0)
            properties: Properties for the returned Feature

        Returns:
            Buffered polygon Feature, or None if the geometry library failed

        Raises:
            GeometryError: If feature is not a Feature or distance is negative
        """
        geom = to_geometry(feature)
        if distance_m < 0:
            raise GeometryError(f"Buffer distance must be non-negative, got {distance_m}")

        distance_km = distance_m / 1000.0
        try:
            centroid = geom.centroid
            aeqd = (
                f"+proj=aeqd +lat_0={centroid.y} +lon_0={centroid.x} "
                f"+datum=WGS84 +units=km +no_defs"
            )
            to_local = Transformer.from_crs(CRS_WGS84, aeqd, always_xy=True)
            to_wgs84 = Transformer.from_crs(aeqd, CRS_WGS84, always_xy=True)

            local = transform(to_local.transform, geom)
            buffered = local.buffer(distance_km, quad_segs=self.buffer_resolution)
            result = transform(to_wgs84.transform, buffered)
        except (GEOSException, ProjError, ValueError) as e:
            logger.warning(f"⚠️ Buffer of {distance_m}m failed: {e}")
            return None

        if result.is_empty:
            return None
        return as_feature(result, properties)

    def intersection(
        self,
        feature_a: Any,
        feature_b: Any,
        properties: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Intersection of two features.

        Returns:
            Feature of the shared region, or None if they do not overlap
            (for two areal inputs, touching edges do not count)

        Raises:
            GeometryError: If either input is not a Feature
        """
        a = to_geometry(feature_a)
        b = to_geometry(feature_b)
        try:
            if not a.intersects(b):
                return None
            result = a.intersection(b)
        except GEOSException as e:
            logger.warning(f"⚠️ Intersection failed: {e}")
            return None

        if result.is_empty:
            return None
        if a.area > 0 and b.area > 0 and result.area == 0:
            return None
        return as_feature(result, properties)

    # ───────────────────────────────────────────────────────────────────────
    # Measurements (SI)
    # ───────────────────────────────────────────────────────────────────────

    def area(self, feature: Any) -> float:
        """Geodesic area in square meters (0 for points and lines)."""
        geom = to_geometry(feature)
        return self._geodesic_area(geom)

    def length(self, feature: Any) -> float:
        """Geodesic length in meters. For polygons this is the perimeter."""
        geom = to_geometry(feature)
        if geom.geom_type in ("Point", "MultiPoint"):
            return 0.0
        try:
            return float(GEOD.geometry_length(geom))
        except (ProjError, ValueError, TypeError) as e:
            logger.warning(f"⚠️ Length computation failed: {e}")
            return 0.0

    def _geodesic_area(self, geom: BaseGeometry) -> float:
        if geom.geom_type == "Polygon":
            return abs(GEOD.geometry_area_perimeter(geom)[0])
        if geom.geom_type in ("MultiPolygon", "GeometryCollection"):
            return float(sum(self._geodesic_area(part) for part in geom.geoms))
        return 0.0
