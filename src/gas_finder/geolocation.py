"""User position tracking with permission and error reporting."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from gas_finder.errors import GeolocationError
from gas_finder.models import Coordinate, GeoError, GeolocationErrorCode, PermissionState

MAX_ERROR_MESSAGE_LENGTH = 180

_USER_MESSAGES = {
    GeolocationErrorCode.PERMISSION_DENIED: (
        "Location permission denied. Enable location access for better results "
        "or pan the map to refine search."
    ),
    GeolocationErrorCode.POSITION_UNAVAILABLE: (
        "Unable to determine your location. Please try again or move the map to search other areas."
    ),
    GeolocationErrorCode.TIMEOUT: (
        "Taking too long to get your location. You can refresh or move the map to continue."
    ),
}


@dataclass(slots=True)
class PositionOptions:
    high_accuracy: bool = True
    timeout_seconds: float = 10.0
    maximum_age_seconds: float = 30.0


class PositionSource(Protocol):
    """Device or platform capability that can report the user's position."""

    async def current_position(
        self,
        *,
        high_accuracy: bool,
        timeout_seconds: float,
        maximum_age_seconds: float,
    ) -> Coordinate:
        """Return a fix or raise ``GeolocationError``."""

    async def permission_state(self) -> PermissionState:
        """Return the current location permission."""


class StaticPositionSource:
    """Position source backed by a fixed coordinate (CLI flags or settings)."""

    def __init__(
        self,
        coordinate: Coordinate | None,
        *,
        permission: PermissionState = PermissionState.UNKNOWN,
        supported: bool = True,
    ) -> None:
        self.coordinate = coordinate
        self.permission = permission
        self.supported = supported

    async def current_position(
        self,
        *,
        high_accuracy: bool,
        timeout_seconds: float,
        maximum_age_seconds: float,
    ) -> Coordinate:
        if not self.supported:
            raise GeolocationError(GeolocationErrorCode.UNSUPPORTED, "Geolocation is not supported on this device.")
        if self.permission == PermissionState.DENIED:
            raise GeolocationError(GeolocationErrorCode.PERMISSION_DENIED, "User denied geolocation.")
        if self.coordinate is None:
            raise GeolocationError(GeolocationErrorCode.POSITION_UNAVAILABLE, "No position configured.")
        return self.coordinate

    async def permission_state(self) -> PermissionState:
        return self.permission


class GeoPositionProvider:
    """Holds the latest user position, permission and error for the rest of the app."""

    def __init__(
        self,
        source: PositionSource,
        options: PositionOptions | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._source = source
        self._options = options or PositionOptions()
        self._logger = logger or logging.getLogger("gas_finder.geolocation")
        self._coords: Coordinate | None = None
        self._error: GeoError | None = None
        self._permission = PermissionState.UNKNOWN
        self._request_id = 0
        self._listeners: list[Callable[[Coordinate | None], None]] = []
        self._fixed = asyncio.Event()

    @property
    def coords(self) -> Coordinate | None:
        return self._coords

    @property
    def error(self) -> GeoError | None:
        return self._error

    @property
    def permission(self) -> PermissionState:
        return self._permission

    def subscribe(self, listener: Callable[[Coordinate | None], None]) -> None:
        """Call ``listener`` with the new position whenever a fix changes it."""
        self._listeners.append(listener)

    async def refresh(self) -> Coordinate | None:
        """Request a new fix. Only the newest request may update state."""
        self._request_id += 1
        request_id = self._request_id
        await self._read_permission()

        try:
            coords = await self._source.current_position(
                high_accuracy=self._options.high_accuracy,
                timeout_seconds=self._options.timeout_seconds,
                maximum_age_seconds=self._options.maximum_age_seconds,
            )
        except GeolocationError as exc:
            self._record_error(request_id, exc.code, exc.message)
            return self._coords
        except Exception as exc:  # noqa: BLE001 - a failing source must not block the first fix.
            self._logger.warning("geolocation_source_failed", extra={"error": f"{type(exc).__name__}: {exc}"})
            self._record_error(request_id, GeolocationErrorCode.UNKNOWN, str(exc) or type(exc).__name__)
            return self._coords

        if request_id != self._request_id:
            self._logger.debug("geolocation_stale_fix_dropped", extra={"request_id": request_id})
            return self._coords

        self._error = None
        changed = coords != self._coords
        self._coords = coords
        self._fixed.set()
        if changed:
            for listener in list(self._listeners):
                listener(coords)
        return coords

    async def wait_for_fix(self, timeout: float) -> Coordinate | None:
        """Wait until the first refresh settles (fix or error), at most ``timeout`` seconds."""
        if self._coords is not None:
            return self._coords
        try:
            await asyncio.wait_for(self._fixed.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            self._logger.info("geolocation_fix_wait_timed_out", extra={"timeout": timeout})
        return self._coords

    def _record_error(self, request_id: int, code: GeolocationErrorCode, message: str) -> None:
        if request_id != self._request_id:
            return
        self._error = GeoError(code=code, message=message[:MAX_ERROR_MESSAGE_LENGTH])
        self._logger.info("geolocation_error", extra={"code": code.value})
        self._fixed.set()

    async def _read_permission(self) -> None:
        try:
            self._permission = await self._source.permission_state()
        except Exception:  # noqa: BLE001 - permission probing is best effort.
            self._permission = PermissionState.UNKNOWN


def describe_geolocation_error(error: GeoError | None) -> str:
    """Short user-facing text for a geolocation error (empty when there is none)."""
    if error is None:
        return ""
    return _USER_MESSAGES.get(error.code, GeolocationError.user_message)
