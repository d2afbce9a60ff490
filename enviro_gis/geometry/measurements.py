"""
Unit formatting for geodesic measurements.

Raw results are always SI (meters, square meters). Conversion to the
largest sensible unit is a presentation step layered on top.
"""

from dataclasses import dataclass
from typing import Any, Dict

from enviro_gis.config_types import CONFIG

M2_PER_HECTARE = 10_000.0
M2_PER_KM2 = 1_000_000.0
M_PER_KM = 1_000.0


@dataclass(frozen=True)
class Measurement:
    """A formatted measurement.

    Attributes:
        value: Numeric value in `unit`
        unit: Human-readable unit name ("square kilometers", "meters", ...)
        raw: SI value (m or m²)
        kind: "area" or "length"
    """

    value: float
    unit: str
    raw: float
    kind: str

    @property
    def label(self) -> str:
        return f"{self.value:.2f} {self.unit}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "value": self.value,
            "unit": self.unit,
            "raw": self.raw,
            "label": self.label,
        }


def format_area(
    area_m2: float,
    hectare_threshold_m2: float = CONFIG.analysis.hectare_threshold_m2,
    square_km_threshold_m2: float = CONFIG.analysis.square_km_threshold_m2,
) -> Measurement:
    """Express an area in m², hectares or km².

    Args:
        area_m2: Area in square meters
        hectare_threshold_m2: Switch to hectares at or above this area
        square_km_threshold_m2: Switch to square kilometers at or above this area

    Returns:
        Measurement with raw=area_m2
    """
    if area_m2 >= square_km_threshold_m2:
        return Measurement(area_m2 / M2_PER_KM2, "square kilometers", area_m2, "area")
    if area_m2 >= hectare_threshold_m2:
        return Measurement(area_m2 / M2_PER_HECTARE, "hectares", area_m2, "area")
    return Measurement(area_m2, "square meters", area_m2, "area")


def format_length(
    length_m: float, km_threshold_m: float = CONFIG.analysis.km_threshold_m
) -> Measurement:
    """Express a length in meters, or kilometers at or above km_threshold_m."""
    if length_m >= km_threshold_m:
        return Measurement(length_m / M_PER_KM, "kilometers", length_m, "length")
    return Measurement(length_m, "meters", length_m, "length")
