"""
Environmental GIS Dashboard Core

Monitoring locations, drawn shapes, spatial filtering and analysis for an
environmental-monitoring map dashboard.
"""

from enviro_gis.config_types import CONFIG
from enviro_gis.dashboard import Dashboard

__all__ = ["CONFIG", "Dashboard"]
