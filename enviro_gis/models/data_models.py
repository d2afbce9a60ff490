"""
Typed data models for environmental monitoring and drawn shapes.

Architectural Overview:
=======================
This module contains immutable dataclasses that replace the loosely typed
dictionaries exchanged with the persistence API. The layer-specific numeric
payload of a monitoring location is a tagged union: one reading dataclass
per LayerType, each carrying only its relevant fields.

Key Interactions:
-----------------
- Input: from_dict() parses the camelCase wire format returned by the API
- Output: to_dict() produces the same wire format (round-trips)
- Navigation: Use VS Code outline (Ctrl+Shift+O) for quick navigation

Data Flow:
----------
1. LocationStore / ShapeStore receive wire dicts from ApiClient
2. Records are parsed into MonitoringLocation / Shape
3. FilterEngine reads MonitoringLocation.point and .attribute()
4. Shape.to_feature() feeds the map surface and GeoJSON export

MODIFICATION POINT: Add a new layer type by adding a LayerType member,
a reading dataclass, and an entry in READING_TYPES.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Tuple, Union


# ═══════════════════════════════════════════════════════════════════════════
# 🏷️ ENUMS SECTION
# ═══════════════════════════════════════════════════════════════════════════


class LayerType(Enum):
    """Closed category of environmental data a monitoring point represents."""

    CO2 = "co2"
    AIR_QUALITY = "air_quality"
    TEMPERATURE = "temperature"
    INDUSTRIAL = "industrial"
    TRAFFIC = "traffic"

    @classmethod
    def from_string(cls, s: str) -> "LayerType":
        """Convert string to LayerType.

        Args:
            s: String like "co2", "air_quality"

        Returns:
            Matching LayerType enum member

        Raises:
            ValueError: If s is not one of the closed set
        """
        for member in cls:
            if member.value == s:
                return member
        raise ValueError(f"Unknown layer type: {s!r}")

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class ShapeCategory(Enum):
    """Closed set of categories a persisted shape may carry."""

    ENVIRONMENTAL = "environmental"
    MONITORING = "monitoring"
    INDUSTRIAL = "industrial"
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    RESEARCH = "research"
    RESTRICTED = "restricted"
    OTHER = "other"

    @classmethod
    def from_string(cls, s: str) -> "ShapeCategory":
        """Convert string to ShapeCategory, with fallback to OTHER.

        Used when reading records (e.g. imported GeoJSON) where an unknown
        category should not reject the whole feature. Validation of new
        shapes uses values() instead.
        """
        for member in cls:
            if member.value == s:
                return member
        return cls.OTHER

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class ShapeType(Enum):
    """Drawing tool that produced a shape."""

    POLYGON = "polygon"
    CIRCLE = "circle"
    RECTANGLE = "rectangle"
    POLYLINE = "polyline"
    MARKER = "marker"

    @classmethod
    def from_string(cls, s: str) -> "ShapeType":
        """Convert string to ShapeType, with fallback to POLYGON."""
        for member in cls:
            if member.value == s:
                return member
        return cls.POLYGON

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]

    @classmethod
    def for_geometry(cls, geometry_type: str) -> "ShapeType":
        """Best-effort shape type for a raw GeoJSON geometry type."""
        if geometry_type in ("Point", "MultiPoint"):
            return cls.MARKER
        if geometry_type in ("LineString", "MultiLineString"):
            return cls.POLYLINE
        return cls.POLYGON


class SpatialPredicate(Enum):
    """Predicate used by the spatial filter axis."""

    WITHIN = "within"
    INTERSECTS = "intersects"
    CONTAINS = "contains"

    @classmethod
    def from_string(cls, s: str) -> "SpatialPredicate":
        """Convert string to SpatialPredicate.

        Raises:
            ValueError: If s is not within/intersects/contains
        """
        for member in cls:
            if member.value == s:
                return member
        raise ValueError(f"Unknown spatial predicate: {s!r}")


# ═══════════════════════════════════════════════════════════════════════════
# 🕒 TIMESTAMP HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def parse_timestamp(value: Any, end_of_day: bool = False) -> Optional[datetime]:
    """Parse an ISO date/datetime into a naive UTC datetime.

    Args:
        value: ISO string, datetime, date or None
        end_of_day: For date-only input, return 23:59:59.999999 instead of 00:00

    Returns:
        Naive UTC datetime, or None for empty input

    Raises:
        ValueError: If value is a non-empty string that is not ISO formatted
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.max if end_of_day else time.min)
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        if end_of_day and len(text) == 10:
            parsed = datetime.combine(parsed.date(), time.max)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat() + "Z"


# ═══════════════════════════════════════════════════════════════════════════
# 📊 LAYER READINGS (tagged union keyed by LayerType)
# ═══════════════════════════════════════════════════════════════════════════


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


@dataclass(frozen=True)
class Co2Reading:
    """CO2 concentration in ppm."""

    co2_level: float

    layer_type: ClassVar[LayerType] = LayerType.CO2
    unit: ClassVar[Optional[str]] = "ppm"

    def attributes(self) -> Dict[str, Optional[float]]:
        return {"co2Level": self.co2_level}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Co2Reading":
        return cls(co2_level=float(d["co2Level"]))


@dataclass(frozen=True)
class AirQualityReading:
    """Particulate matter concentrations in µg/m³ (either may be absent)."""

    pm25_level: Optional[float] = None
    pm10_level: Optional[float] = None

    layer_type: ClassVar[LayerType] = LayerType.AIR_QUALITY
    unit: ClassVar[Optional[str]] = "μg/m³"

    def attributes(self) -> Dict[str, Optional[float]]:
        return {"pm25Level": self.pm25_level, "pm10Level": self.pm10_level}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AirQualityReading":
        return cls(
            pm25_level=_optional_float(d.get("pm25Level")),
            pm10_level=_optional_float(d.get("pm10Level")),
        )


@dataclass(frozen=True)
class TemperatureReading:
    """Air temperature in °C."""

    temperature: float

    layer_type: ClassVar[LayerType] = LayerType.TEMPERATURE
    unit: ClassVar[Optional[str]] = "°C"

    def attributes(self) -> Dict[str, Optional[float]]:
        return {"temperature": self.temperature}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TemperatureReading":
        return cls(temperature=float(d["temperature"]))


@dataclass(frozen=True)
class IndustrialReading:
    """Industrial source; no universally required numeric field."""

    layer_type: ClassVar[LayerType] = LayerType.INDUSTRIAL
    unit: ClassVar[Optional[str]] = None

    def attributes(self) -> Dict[str, Optional[float]]:
        return {}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "IndustrialReading":
        return cls()


@dataclass(frozen=True)
class TrafficReading:
    """Traffic monitor; no universally required numeric field."""

    layer_type: ClassVar[LayerType] = LayerType.TRAFFIC
    unit: ClassVar[Optional[str]] = None

    def attributes(self) -> Dict[str, Optional[float]]:
        return {}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TrafficReading":
        return cls()


Reading = Union[
    Co2Reading, AirQualityReading, TemperatureReading, IndustrialReading, TrafficReading
]

READING_TYPES: Dict[LayerType, type] = {
    LayerType.CO2: Co2Reading,
    LayerType.AIR_QUALITY: AirQualityReading,
    LayerType.TEMPERATURE: TemperatureReading,
    LayerType.INDUSTRIAL: IndustrialReading,
    LayerType.TRAFFIC: TrafficReading,
}

# Numeric wire fields each layer type requires on create
REQUIRED_READING_FIELDS: Dict[LayerType, Tuple[str, ...]] = {
    LayerType.CO2: ("co2Level",),
    LayerType.AIR_QUALITY: (),
    LayerType.TEMPERATURE: ("temperature",),
    LayerType.INDUSTRIAL: (),
    LayerType.TRAFFIC: (),
}

# Numeric wire fields each layer type carries
READING_ATTRIBUTE_FIELDS: Dict[LayerType, Tuple[str, ...]] = {
    LayerType.CO2: ("co2Level",),
    LayerType.AIR_QUALITY: ("pm25Level", "pm10Level"),
    LayerType.TEMPERATURE: ("temperature",),
    LayerType.INDUSTRIAL: (),
    LayerType.TRAFFIC: (),
}

READING_FIELDS: Tuple[str, ...] = ("co2Level", "pm25Level", "pm10Level", "temperature")


def reading_from_dict(layer_type: LayerType, d: Dict[str, Any]) -> Reading:
    """Build the reading variant for layer_type from wire fields."""
    return READING_TYPES[layer_type].from_dict(d)


# Suggested categories offered by the location form (not validated)
CATEGORY_OPTIONS: Dict[LayerType, Tuple[str, ...]] = {
    LayerType.CO2: ("industrial", "vehicle", "natural", "monitoring_station"),
    LayerType.AIR_QUALITY: ("pm25", "pm10", "ozone", "no2"),
    LayerType.TEMPERATURE: ("weather_station", "urban_heat", "climate_monitoring"),
    LayerType.INDUSTRIAL: ("factory", "power_plant", "refinery", "chemical_plant"),
    LayerType.TRAFFIC: ("highway", "intersection", "parking", "public_transport"),
}


def category_options(layer_type: Optional[LayerType]) -> Tuple[str, ...]:
    if layer_type is None:
        return ("monitoring_station",)
    return CATEGORY_OPTIONS.get(layer_type, ("monitoring_station",))


def co2_marker_color(co2_level: float) -> str:
    """Marker color for a CO2 reading: green, yellow above 450, red above 500."""
    if co2_level > 500:
        return "#dc3545"
    if co2_level > 450:
        return "#ffc107"
    return "#28a745"


# ═══════════════════════════════════════════════════════════════════════════
# 📍 MONITORING LOCATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class MonitoringLocation:
    """Immutable monitoring point as returned by the persistence API.

    Coordinates are WGS84 degrees. The layer-specific payload lives in
    `reading`, whose variant always matches `layer_type`.
    """

    id: str
    name: str
    latitude: float
    longitude: float
    layer_type: LayerType
    category: str
    reading: Reading
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_id: Optional[str] = None
    description: Optional[str] = None
    source: Optional[str] = None

    @property
    def point(self) -> Tuple[float, float]:
        """(lon, lat) in GeoJSON axis order."""
        return (self.longitude, self.latitude)

    @property
    def unit(self) -> Optional[str]:
        return self.reading.unit

    def attribute(self, name: str) -> Optional[float]:
        """Numeric attribute by wire name, or None if this variant lacks it."""
        if name == "latitude":
            return self.latitude
        if name == "longitude":
            return self.longitude
        return self.reading.attributes().get(name)

    def marker_color(self, default: str = "#3388ff") -> str:
        if isinstance(self.reading, Co2Reading):
            return co2_marker_color(self.reading.co2_level)
        return default

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MonitoringLocation":
        """Parse a wire record.

        Layer-specific fields are read from the top level, falling back to a
        nested "properties" mapping.

        Raises:
            ValueError / KeyError: If the record is malformed
        """
        props = dict(d.get("properties") or {})
        props.update({k: d[k] for k in READING_FIELDS if k in d})
        layer_type = LayerType.from_string(d.get("layerType", "co2"))
        return cls(
            id=str(d["id"]),
            name=d["name"],
            latitude=float(d["latitude"]),
            longitude=float(d["longitude"]),
            layer_type=layer_type,
            category=d.get("category", "monitoring_station"),
            reading=reading_from_dict(layer_type, props),
            created_at=parse_timestamp(d.get("createdAt")),
            updated_at=parse_timestamp(d.get("updatedAt")),
            user_id=d.get("userId"),
            description=d.get("description") or props.get("description"),
            source=d.get("source") or props.get("source"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to camelCase wire format."""
        d: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "layerType": self.layer_type.value,
            "category": self.category,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
            "userId": self.user_id,
        }
        d.update(self.reading.attributes())
        if self.unit is not None:
            d["unit"] = self.unit
        if self.description is not None:
            d["description"] = self.description
        if self.source is not None:
            d["source"] = self.source
        return d


@dataclass(frozen=True)
class LocationDraft:
    """Unvalidated location form submission.

    Values are kept as submitted so validation can report bad input instead
    of failing on construction.
    """

    name: str
    latitude: Any
    longitude: Any
    layer_type: str
    category: str = "monitoring_station"
    fields: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None
    source: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LocationDraft":
        return cls(
            name=d.get("name", ""),
            latitude=d.get("latitude"),
            longitude=d.get("longitude"),
            layer_type=d.get("layerType", ""),
            category=d.get("category", "monitoring_station"),
            fields={k: d[k] for k in READING_FIELDS if k in d},
            description=d.get("description"),
            source=d.get("source"),
        )


# ═══════════════════════════════════════════════════════════════════════════
# 🔷 SHAPES
# ═══════════════════════════════════════════════════════════════════════════


def iter_positions(geometry: Dict[str, Any]) -> Iterator[Tuple[float, float]]:
    """Yield every (x, y) position in a GeoJSON geometry, any nesting depth."""
    if geometry.get("type") == "GeometryCollection":
        for part in geometry.get("geometries", []):
            yield from iter_positions(part)
        return

    def walk(coords: Any) -> Iterator[Tuple[float, float]]:
        if (
            isinstance(coords, (list, tuple))
            and len(coords) >= 2
            and all(isinstance(c, (int, float)) for c in coords[:2])
        ):
            yield (float(coords[0]), float(coords[1]))
            return
        if isinstance(coords, (list, tuple)):
            for item in coords:
                yield from walk(item)

    yield from walk(geometry.get("coordinates", []))


@dataclass(frozen=True)
class Bounds:
    """Lat/lon bounding box of a shape."""

    north: float
    south: float
    east: float
    west: float

    @classmethod
    def from_geometry(cls, geometry: Dict[str, Any]) -> Optional["Bounds"]:
        """Derive bounds from a GeoJSON geometry, or None if it has no positions."""
        positions = list(iter_positions(geometry))
        if not positions:
            return None
        lons = [p[0] for p in positions]
        lats = [p[1] for p in positions]
        return cls(north=max(lats), south=min(lats), east=max(lons), west=min(lons))

    def encloses(self, geometry: Dict[str, Any], tolerance: float = 1e-9) -> bool:
        for lon, lat in iter_positions(geometry):
            if not (self.south - tolerance <= lat <= self.north + tolerance):
                return False
            if not (self.west - tolerance <= lon <= self.east + tolerance):
                return False
        return True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Bounds":
        return cls(
            north=float(d["north"]),
            south=float(d["south"]),
            east=float(d["east"]),
            west=float(d["west"]),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"north": self.north, "south": self.south, "east": self.east, "west": self.west}


_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_COLOR_TOKEN = re.compile(r"^[a-zA-Z]+$")


def is_valid_color(value: Any) -> bool:
    """Hex (#rgb / #rrggbb) or a CSS color keyword."""
    return isinstance(value, str) and bool(
        _HEX_COLOR.match(value) or _COLOR_TOKEN.match(value)
    )


@dataclass(frozen=True)
class ShapeStyle:
    """Style properties of a shape. Unknown keys are carried in `extra`."""

    color: str = "#3388ff"
    fill_color: Optional[str] = None
    fill_opacity: Optional[float] = None
    weight: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN: ClassVar[Tuple[str, ...]] = ("color", "fillColor", "fillOpacity", "weight")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ShapeStyle":
        return cls(
            color=d.get("color", "#3388ff"),
            fill_color=d.get("fillColor"),
            fill_opacity=_optional_float(d.get("fillOpacity")),
            weight=_optional_float(d.get("weight")),
            extra={k: v for k, v in d.items() if k not in cls._KNOWN},
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = dict(self.extra)
        d["color"] = self.color
        if self.fill_color is not None:
            d["fillColor"] = self.fill_color
        if self.fill_opacity is not None:
            d["fillOpacity"] = self.fill_opacity
        if self.weight is not None:
            d["weight"] = self.weight
        return d


@dataclass(frozen=True)
class Shape:
    """Persisted shape owned by a user.

    Invariant: `bounds`, when present, encloses every position of `geometry`.
    """

    id: str
    name: str
    category: ShapeCategory
    shape_type: ShapeType
    properties: ShapeStyle
    geometry: Dict[str, Any]
    description: Optional[str] = None
    bounds: Optional[Bounds] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Shape":
        bounds = d.get("bounds")
        geometry = d["geometry"]
        return cls(
            id=str(d["id"]),
            name=d["name"],
            category=ShapeCategory.from_string(d.get("category", "other")),
            shape_type=ShapeType.from_string(d.get("shapeType", "polygon")),
            properties=ShapeStyle.from_dict(d.get("properties") or {}),
            geometry=geometry,
            description=d.get("description"),
            bounds=Bounds.from_dict(bounds) if bounds else Bounds.from_geometry(geometry),
            user_id=d.get("userId"),
            created_at=parse_timestamp(d.get("createdAt")),
            updated_at=parse_timestamp(d.get("updatedAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "shapeType": self.shape_type.value,
            "properties": self.properties.to_dict(),
            "geometry": self.geometry,
            "bounds": self.bounds.to_dict() if self.bounds else None,
            "userId": self.user_id,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    def to_feature(self) -> Dict[str, Any]:
        """GeoJSON Feature with identity, metadata and style in properties."""
        properties: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "shapeType": self.shape_type.value,
        }
        if self.description:
            properties["description"] = self.description
        properties.update(self.properties.to_dict())
        return {"type": "Feature", "geometry": self.geometry, "properties": properties}


@dataclass(frozen=True)
class ShapeDraft:
    """Unvalidated shape submission from the property dialog."""

    name: str
    category: str
    shape_type: str
    geometry: Any
    properties: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None
    bounds: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ShapeDraft":
        return cls(
            name=d.get("name", ""),
            category=d.get("category", ""),
            shape_type=d.get("shapeType", ""),
            geometry=d.get("geometry"),
            properties=dict(d.get("properties") or {}),
            description=d.get("description"),
            bounds=d.get("bounds"),
        )
