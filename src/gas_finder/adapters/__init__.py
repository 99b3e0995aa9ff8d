"""Boundaries to the map engine and the Google web services."""

from .google_places import GooglePlacesClient
from .headless_map import HeadlessMap, HeadlessMapCapability, HeadlessMarker, load_headless_capability
from .map_capability import (
    DEFAULT_MAP_OPTIONS,
    InfoSurface,
    MapCapability,
    MapCapabilityLoader,
    MapHandle,
    MarkerObject,
)

__all__ = [
    "DEFAULT_MAP_OPTIONS",
    "GooglePlacesClient",
    "HeadlessMap",
    "HeadlessMapCapability",
    "HeadlessMarker",
    "InfoSurface",
    "MapCapability",
    "MapCapabilityLoader",
    "MapHandle",
    "MarkerObject",
    "load_headless_capability",
]
