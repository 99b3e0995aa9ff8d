from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ControllerState(str, Enum):
    """Lifecycle states of the viewport synchronization controller."""

    UNINITIALIZED = "uninitialized"
    AWAITING_CAPABILITY = "awaiting_capability"
    IDLE = "idle"
    FETCHING = "fetching"
    ERROR = "error"


class CapabilityStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class GeolocationErrorCode(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    POSITION_UNAVAILABLE = "POSITION_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    UNSUPPORTED = "UNSUPPORTED"
    UNKNOWN = "UNKNOWN"


class PermissionState(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Coordinate:
    lat: float
    lng: float

    def close_to(self, other: Coordinate, epsilon: float) -> bool:
        """True when both axes differ by no more than ``epsilon`` degrees."""
        return abs(self.lat - other.lat) <= epsilon and abs(self.lng - other.lng) <= epsilon


@dataclass(frozen=True, slots=True)
class Place:
    id: str
    name: str
    position: Coordinate
    vicinity: str | None = None
    rating: float | None = None
    distance_meters: float | None = None
    distance_text: str | None = None
    duration_text: str | None = None


@dataclass(slots=True)
class ViewportState:
    center: Coordinate
    radius_meters: int


@dataclass(frozen=True, slots=True)
class GeoError:
    code: GeolocationErrorCode
    message: str


@dataclass(slots=True)
class NearbySearchResponse:
    """Raw nearby-search payload as reported by the provider."""

    status: str
    results: Any = field(default_factory=list)


@dataclass(slots=True)
class DistanceMatrixResponse:
    """One origin row of a distance matrix; ``elements`` align with the destinations."""

    status: str
    elements: Any = field(default_factory=list)
