"""Closed-form distance math and formatting."""

from .distance import EARTH_RADIUS_M, format_distance, haversine_meters, meters_to_km, meters_to_miles

__all__ = ["EARTH_RADIUS_M", "format_distance", "haversine_meters", "meters_to_km", "meters_to_miles"]
