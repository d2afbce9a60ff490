#!/usr/bin/env python3
"""
Environmental GIS Dashboard - Configuration Types

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Centralized, typed configuration using frozen dataclasses
for immutability and type safety.

This follows the Typed Configuration Architecture pattern:
- config.py defines CONFIG_DATA dictionary (user edits this)
- config_types.py defines frozen dataclasses (this file)
- CONFIG module-level instance for orchestrator access
- Business logic receives primitives or the sub-config it needs

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# ═══════════════════════════════════════════════════════════════════════════
# 🌐 API CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ApiConfig:
    """Configuration for the persistence API client."""

    base_url: str = ""
    timeout_s: float = 10.0
    retries: int = 2
    retry_delay_s: float = 0.5

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ApiConfig":
        """Create from dictionary."""
        return cls(
            base_url=d.get("base_url", ""),
            timeout_s=float(d.get("timeout_s", 10.0)),
            retries=int(d.get("retries", 2)),
            retry_delay_s=float(d.get("retry_delay_s", 0.5)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "base_url": self.base_url,
            "timeout_s": self.timeout_s,
            "retries": self.retries,
            "retry_delay_s": self.retry_delay_s,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 🗺️ MAP CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class MapConfig:
    """Configuration for the default viewport."""

    center_lat: float = 51.505
    center_lon: float = -0.09
    zoom: int = 13
    fly_to_zoom: int = 15

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MapConfig":
        """Create from dictionary."""
        center = d.get("center", [51.505, -0.09])
        return cls(
            center_lat=(
                center[0] if isinstance(center, list) else d.get("center_lat", 51.505)
            ),
            center_lon=(
                center[1] if isinstance(center, list) else d.get("center_lon", -0.09)
            ),
            zoom=d.get("zoom", 13),
            fly_to_zoom=d.get("fly_to_zoom", 15),
        )

    @property
    def center(self) -> Tuple[float, float]:
        """Center as (lat, lon)."""
        return (self.center_lat, self.center_lon)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "center": [self.center_lat, self.center_lon],
            "zoom": self.zoom,
            "fly_to_zoom": self.fly_to_zoom,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 🧭 LAYER CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class LayerConfig:
    """Default display settings for one monitoring layer."""

    id: str
    name: str
    color: str = "#3388ff"
    visible: bool = True
    opacity: float = 0.8

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LayerConfig":
        """Create from dictionary."""
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            color=d.get("color", "#3388ff"),
            visible=bool(d.get("visible", True)),
            opacity=float(d.get("opacity", 0.8)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "visible": self.visible,
            "opacity": self.opacity,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 🎨 STYLE CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class PathStyleConfig:
    """Styling for a rendered vector path (polygon or polyline)."""

    color: str = "#3388ff"
    weight: int = 2
    opacity: float = 0.8
    fill_opacity: float = 0.2

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PathStyleConfig":
        """Create from dictionary."""
        return cls(
            color=d.get("color", "#3388ff"),
            weight=d.get("weight", 2),
            opacity=d.get("opacity", 0.8),
            fill_opacity=d.get("fill_opacity", 0.2),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to Leaflet-style path options."""
        return {
            "color": self.color,
            "weight": self.weight,
            "opacity": self.opacity,
            "fillOpacity": self.fill_opacity,
        }


@dataclass(frozen=True)
class StylesConfig:
    """Named styles used by analysis, import and measurement."""

    buffer: PathStyleConfig = PathStyleConfig(color="#ff4444")
    intersection: PathStyleConfig = PathStyleConfig(
        color="#00ff00", weight=3, fill_opacity=0.3
    )
    default_shape: PathStyleConfig = PathStyleConfig()
    imported: PathStyleConfig = PathStyleConfig(weight=3)
    measure_line: PathStyleConfig = PathStyleConfig(
        weight=3, opacity=1.0, fill_opacity=0.0
    )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StylesConfig":
        """Create from dictionary."""
        defaults = cls()
        return cls(
            buffer=(
                PathStyleConfig.from_dict(d["buffer"]) if "buffer" in d else defaults.buffer
            ),
            intersection=(
                PathStyleConfig.from_dict(d["intersection"])
                if "intersection" in d
                else defaults.intersection
            ),
            default_shape=(
                PathStyleConfig.from_dict(d["default_shape"])
                if "default_shape" in d
                else defaults.default_shape
            ),
            imported=(
                PathStyleConfig.from_dict(d["imported"])
                if "imported" in d
                else defaults.imported
            ),
            measure_line=(
                PathStyleConfig.from_dict(d["measure_line"])
                if "measure_line" in d
                else defaults.measure_line
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "buffer": self.buffer.to_dict(),
            "intersection": self.intersection.to_dict(),
            "defaultShape": self.default_shape.to_dict(),
            "imported": self.imported.to_dict(),
            "measureLine": self.measure_line.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════════════════
# 📐 ANALYSIS CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class AnalysisConfig:
    """Unit thresholds and buffer parameters."""

    hectare_threshold_m2: float = 10_000.0
    square_km_threshold_m2: float = 1_000_000.0
    km_threshold_m: float = 1_000.0
    buffer_resolution: int = 32
    default_buffer_m: float = 1000.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AnalysisConfig":
        """Create from dictionary."""
        return cls(
            hectare_threshold_m2=float(d.get("hectare_threshold_m2", 10_000.0)),
            square_km_threshold_m2=float(d.get("square_km_threshold_m2", 1_000_000.0)),
            km_threshold_m=float(d.get("km_threshold_m", 1_000.0)),
            buffer_resolution=int(d.get("buffer_resolution", 32)),
            default_buffer_m=float(d.get("default_buffer_m", 1000.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "hectare_threshold_m2": self.hectare_threshold_m2,
            "square_km_threshold_m2": self.square_km_threshold_m2,
            "km_threshold_m": self.km_threshold_m,
            "buffer_resolution": self.buffer_resolution,
            "default_buffer_m": self.default_buffer_m,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 💾 PRESET + SERVER CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class PresetConfig:
    """Where filter presets are persisted."""

    directory: str = ""
    storage_key: str = "filterPresets"
    lock_timeout_s: float = 10.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PresetConfig":
        """Create from dictionary."""
        return cls(
            directory=d.get("directory", ""),
            storage_key=d.get("storage_key", "filterPresets"),
            lock_timeout_s=float(d.get("lock_timeout_s", 10.0)),
        )


@dataclass(frozen=True)
class ServerConfig:
    """Flask server binding."""

    host: str = "127.0.0.1"
    port: int = 5060
    max_sessions: int = 100

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ServerConfig":
        """Create from dictionary."""
        return cls(
            host=d.get("host", "127.0.0.1"),
            port=int(d.get("port", 5060)),
            max_sessions=max(1, int(d.get("max_sessions", 100))),
        )


# ═══════════════════════════════════════════════════════════════════════════
# 🏗️ ROOT CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class AppConfig:
    """Root configuration combining all sections."""

    api: ApiConfig = field(default_factory=ApiConfig)
    map: MapConfig = field(default_factory=MapConfig)
    layers: Tuple[LayerConfig, ...] = ()
    styles: StylesConfig = field(default_factory=StylesConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    presets: PresetConfig = field(default_factory=PresetConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AppConfig":
        """Create from the CONFIG_DATA dictionary."""
        return cls(
            api=ApiConfig.from_dict(d.get("api", {})),
            map=MapConfig.from_dict(d.get("map", {})),
            layers=tuple(LayerConfig.from_dict(layer) for layer in d.get("layers", [])),
            styles=StylesConfig.from_dict(d.get("styles", {})),
            analysis=AnalysisConfig.from_dict(d.get("analysis", {})),
            presets=PresetConfig.from_dict(d.get("presets", {})),
            server=ServerConfig.from_dict(d.get("server", {})),
        )

    def layer(self, layer_id: str) -> Optional[LayerConfig]:
        """Look up a layer's defaults by id."""
        for layer in self.layers:
            if layer.id == layer_id:
                return layer
        return None

    def to_frontend_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for frontend JSON API."""
        return {
            "map": self.map.to_dict(),
            "layers": [layer.to_dict() for layer in self.layers],
            "styles": self.styles.to_dict(),
            "analysis": self.analysis.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════════════════
# 📌 MODULE-LEVEL CONFIG INSTANCE
# ═══════════════════════════════════════════════════════════════════════════

from enviro_gis.config import CONFIG_DATA

# Edit config.py to change settings (restart server after changes)
CONFIG: AppConfig = AppConfig.from_dict(CONFIG_DATA)


def get_frontend_config() -> Dict[str, Any]:
    """
    Get configuration for frontend JavaScript.

    Returns a dict suitable for JSON serialization and use in the frontend.
    """
    return CONFIG.to_frontend_dict()
