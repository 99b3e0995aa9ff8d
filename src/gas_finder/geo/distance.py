from __future__ import annotations

import math

from gas_finder.models import Coordinate

EARTH_RADIUS_M = 6_371_000.0
METERS_PER_MILE = 1609.344


def haversine_meters(origin: Coordinate, destination: Coordinate) -> float:
    """Great-circle distance between two coordinates, in meters."""
    phi1, phi2 = math.radians(origin.lat), math.radians(destination.lat)
    dphi = math.radians(destination.lat - origin.lat)
    dlam = math.radians(destination.lng - origin.lng)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def meters_to_km(meters: float) -> float:
    return meters / 1000


def meters_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE


def format_distance(meters: float | None) -> str:
    """Metric display text: ``"850 m"``, ``"1.4 km"``, ``"12 km"``."""
    if meters is None or math.isnan(meters):
        return ""
    if meters < 1000:
        return f"{round(meters)} m"
    km = meters_to_km(meters)
    return f"{km:.1f} km" if km < 10 else f"{km:.0f} km"
