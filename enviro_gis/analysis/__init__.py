"""Spatial analysis: buffer, measurement and intersection workflows."""

from .spatial_analysis import MeasurementSession, MeasurementState, SpatialAnalysisOperations

__all__ = ["MeasurementSession", "MeasurementState", "SpatialAnalysisOperations"]
