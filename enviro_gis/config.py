#!/usr/bin/env python3
"""
Environmental GIS Dashboard - Configuration

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Configuration dictionary for the monitoring dashboard core.
This is the user-facing configuration file - edit values here.

Pattern:
- config.py defines the CONFIG_DATA dictionary (edit this)
- config_types.py defines typed dataclasses and loads from CONFIG_DATA

Configuration Sections:
1. api: Persistence API location and timeouts
2. map: Default viewport
3. layers: Monitoring layer table (name, color, visibility, opacity)
4. styles: Analysis / import / measurement styling
5. analysis: Unit thresholds and buffer resolution
6. presets: Filter preset storage location
7. server: Flask host/port, dashboard session cap

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar

T = TypeVar("T")


def _env_or_default(
    key: str, default: T, type_fn: Optional[Callable[[str], T]] = None
) -> T:
    """
    Get value from environment variable or use default.

    Args:
        key: Environment variable name (e.g., "ENVIRO_GIS_API_URL")
        default: Default value if env var not set
        type_fn: Optional type conversion function (e.g., float, int)

    Returns:
        Value from environment (converted) or default
    """
    val = os.getenv(key)
    if val is not None:
        if type_fn is not None:
            return type_fn(val)
        return val  # type: ignore
    return default


# ═══════════════════════════════════════════════════════════════════════════
# 🔧 ENVIRONMENT VARIABLE OVERRIDES
# ═══════════════════════════════════════════════════════════════════════════
# ENVIRO_GIS_API_URL      - base URL of the location/shape persistence API
# ENVIRO_GIS_API_TIMEOUT  - float seconds (default: 10.0)
# ENVIRO_GIS_PRESET_DIR   - directory holding filterPresets.json
# ENVIRO_GIS_PORT         - int, Flask port (default: 5060)
# ═══════════════════════════════════════════════════════════════════════════

_DEFAULT_PRESET_DIR = str(Path.home() / ".enviro_gis")

# ═══════════════════════════════════════════════════════════════════════════
# ⚙️ MASTER CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════

CONFIG_DATA: Dict[str, Any] = {
    # ═══════════════════════════════════════════════════════════════════════
    # 🌐 PERSISTENCE API
    # ═══════════════════════════════════════════════════════════════════════
    "api": {
        # Empty base_url = use the in-memory backend (development / tests)
        "base_url": _env_or_default("ENVIRO_GIS_API_URL", ""),
        "timeout_s": _env_or_default("ENVIRO_GIS_API_TIMEOUT", 10.0, float),
        "retries": 2,
        "retry_delay_s": 0.5,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🗺️ MAP SETTINGS
    # ═══════════════════════════════════════════════════════════════════════
    "map": {
        "center": [51.505, -0.09],  # [lat, lon]
        "zoom": 13,
        "fly_to_zoom": 15,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🧭 MONITORING LAYERS
    # ═══════════════════════════════════════════════════════════════════════
    "layers": [
        {"id": "co2", "name": "CO2 Emissions", "color": "#ff6b6b", "visible": True, "opacity": 0.8},
        {"id": "air_quality", "name": "Air Quality", "color": "#4ecdc4", "visible": True, "opacity": 0.8},
        {"id": "temperature", "name": "Temperature", "color": "#45b7d1", "visible": True, "opacity": 0.8},
        {"id": "industrial", "name": "Industrial", "color": "#f9ca24", "visible": True, "opacity": 0.8},
        {"id": "traffic", "name": "Traffic", "color": "#6c5ce7", "visible": True, "opacity": 0.8},
    ],
    # ═══════════════════════════════════════════════════════════════════════
    # 🎨 STYLES
    # ═══════════════════════════════════════════════════════════════════════
    "styles": {
        # Buffer result polygons (red)
        "buffer": {"color": "#ff4444", "weight": 2, "opacity": 0.8, "fill_opacity": 0.2},
        # Intersection result polygons (green)
        "intersection": {"color": "#00ff00", "weight": 3, "opacity": 0.8, "fill_opacity": 0.3},
        # Shapes drawn / added without explicit style
        "default_shape": {"color": "#3388ff", "weight": 2, "opacity": 0.8, "fill_opacity": 0.2},
        # Imported GeoJSON
        "imported": {"color": "#3388ff", "weight": 3, "opacity": 0.8, "fill_opacity": 0.2},
        # Interactive measurement polyline
        "measure_line": {"color": "#3388ff", "weight": 3, "opacity": 1.0, "fill_opacity": 0.0},
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 📐 ANALYSIS
    # ═══════════════════════════════════════════════════════════════════════
    "analysis": {
        "hectare_threshold_m2": 10_000.0,
        "square_km_threshold_m2": 1_000_000.0,
        "km_threshold_m": 1_000.0,
        "buffer_resolution": 32,  # Segments per quarter circle
        "default_buffer_m": 1000.0,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 💾 FILTER PRESETS
    # ═══════════════════════════════════════════════════════════════════════
    "presets": {
        "directory": _env_or_default("ENVIRO_GIS_PRESET_DIR", _DEFAULT_PRESET_DIR),
        "storage_key": "filterPresets",
        "lock_timeout_s": 10.0,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🖥️ SERVER
    # ═══════════════════════════════════════════════════════════════════════
    "server": {
        "host": "127.0.0.1",
        "port": _env_or_default("ENVIRO_GIS_PORT", 5060, int),
        "max_sessions": _env_or_default("ENVIRO_GIS_MAX_SESSIONS", 100, int),
    },
}
