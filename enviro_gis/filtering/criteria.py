"""
Filter criteria and presets.

A FilterCriteria value is an immutable snapshot of the five filter axes.
An axis with no active value (empty text, empty layer set, no dates, no
spatial query, no populated attribute range) does not filter. Presets wrap
a named, timestamped snapshot; re-applying one re-evaluates against
current data.

Wire format (camelCase, matches the persisted preset array):
    {
        "searchText": str,
        "layerTypes": [str],
        "dateRange": {"start": str|null, "end": str|null},
        "spatialQuery": {"type": str|null, "shape": Feature|null},
        "attributes": {name: {"min": float|null, "max": float|null}}
    }
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
import logging
import math

from enviro_gis.models.data_models import LayerType, SpatialPredicate

logger = logging.getLogger(__name__)


def _optional_number(value: Any) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    number = float(value)
    if math.isnan(number):
        return None
    return number


def _mapping(value: Any, label: str) -> Dict[str, Any]:
    """Treat None as empty; reject anything that is not a JSON object."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"{label} must be an object, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class DateRange:
    """Open or closed ISO date range on createdAt."""

    start: Optional[str] = None
    end: Optional[str] = None

    @property
    def active(self) -> bool:
        return bool(self.start) or bool(self.end)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"start": self.start or None, "end": self.end or None}

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "DateRange":
        d = _mapping(d, "dateRange")
        return cls(start=d.get("start") or None, end=d.get("end") or None)


@dataclass(frozen=True)
class SpatialQuery:
    """Predicate plus reference Feature for the spatial axis."""

    predicate: SpatialPredicate
    shape: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.predicate.value, "shape": self.shape}

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> Optional["SpatialQuery"]:
        """None when either half is missing or the predicate is unknown."""
        d = _mapping(d, "spatialQuery")
        if not d or not d.get("type") or not d.get("shape"):
            return None
        try:
            return cls(predicate=SpatialPredicate.from_string(d["type"]), shape=d["shape"])
        except ValueError as e:
            logger.warning(f"⚠️ Ignoring spatial query: {e}")
            return None


@dataclass(frozen=True)
class AttributeRange:
    """Inclusive numeric bounds on one attribute. Either bound may be absent."""

    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def populated(self) -> bool:
        return self.min is not None or self.max is not None

    def accepts(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {"min": self.min, "max": self.max}

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "AttributeRange":
        d = _mapping(d, "attribute range")
        return cls(min=_optional_number(d.get("min")), max=_optional_number(d.get("max")))


@dataclass(frozen=True)
class FilterCriteria:
    """Snapshot of all five filter axes."""

    search_text: str = ""
    layer_types: Tuple[LayerType, ...] = ()
    date_range: DateRange = field(default_factory=DateRange)
    spatial_query: Optional[SpatialQuery] = None
    attributes: Dict[str, AttributeRange] = field(default_factory=dict)

    @property
    def active_attributes(self) -> Dict[str, AttributeRange]:
        return {name: rng for name, rng in self.attributes.items() if rng.populated}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "searchText": self.search_text,
            "layerTypes": [lt.value for lt in self.layer_types],
            "dateRange": self.date_range.to_dict(),
            "spatialQuery": (
                self.spatial_query.to_dict() if self.spatial_query else {"type": None, "shape": None}
            ),
            "attributes": {name: rng.to_dict() for name, rng in self.attributes.items()},
        }

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "FilterCriteria":
        """Parse a criteria dict. Unknown layer types are dropped with a warning."""
        d = _mapping(d, "filters")
        search_text = d.get("searchText") or ""
        if not isinstance(search_text, str):
            raise TypeError(f"searchText must be a string, got {type(search_text).__name__}")
        layer_types = []
        for value in d.get("layerTypes") or []:
            try:
                lt = LayerType.from_string(value)
            except ValueError as e:
                logger.warning(f"⚠️ Ignoring layer type in filter: {e}")
                continue
            if lt not in layer_types:
                layer_types.append(lt)
        return cls(
            search_text=search_text,
            layer_types=tuple(layer_types),
            date_range=DateRange.from_dict(d.get("dateRange")),
            spatial_query=SpatialQuery.from_dict(d.get("spatialQuery")),
            attributes={
                name: AttributeRange.from_dict(rng)
                for name, rng in _mapping(d.get("attributes"), "attributes").items()
            },
        )


@dataclass(frozen=True)
class FilterPreset:
    """Named, timestamped FilterCriteria snapshot."""

    id: str
    name: str
    filters: FilterCriteria
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "filters": self.filters.to_dict(),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FilterPreset":
        d = _mapping(d, "preset")
        return cls(
            id=str(d["id"]),
            name=d["name"],
            filters=FilterCriteria.from_dict(d.get("filters")),
            created_at=d.get("createdAt", ""),
        )
