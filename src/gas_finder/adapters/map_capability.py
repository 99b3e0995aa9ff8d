"""Boundary for the map rendering engine and its asynchronous loader."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol

from gas_finder.errors import CapabilityLoadError
from gas_finder.models import CapabilityStatus, Coordinate

DEFAULT_MAP_OPTIONS: dict[str, Any] = {
    "zoom": 13,
    "map_id": "nearby-gas-finder",
    "disable_default_ui": True,
    "zoom_control": True,
    "map_type_control": True,
    "street_view_control": False,
    "fullscreen_control": False,
}


class MarkerObject(Protocol):
    """Engine-side marker owned by the marker lifecycle manager."""

    def set_position(self, position: Coordinate) -> None:
        """Move the marker."""

    def set_highlighted(self, highlighted: bool) -> None:
        """Start or stop the highlight animation."""

    def add_click_listener(self, callback: Callable[[], None]) -> None:
        """Invoke ``callback`` whenever the marker is clicked."""

    def remove(self) -> None:
        """Detach the marker from the map and release it."""


class InfoSurface(Protocol):
    """Popup bubble anchored to a marker; one per map."""

    def open(self, content: str, anchor: MarkerObject) -> None:
        """Show ``content`` next to ``anchor``, moving away from any previous anchor."""

    def close(self) -> None:
        """Hide the popup."""


class MapHandle(Protocol):
    """A live map instance."""

    def pan_to(self, center: Coordinate) -> None:
        """Animate the view to ``center``."""

    def get_center(self) -> Coordinate | None:
        """Return the current view center."""

    def add_idle_listener(self, callback: Callable[[], None]) -> None:
        """Invoke ``callback`` each time the view settles after a pan or zoom."""

    def create_marker(self, position: Coordinate, *, title: str, kind: str = "place") -> MarkerObject:
        """Place a new marker on the map."""

    def create_info_surface(self) -> InfoSurface:
        """Create the popup bubble."""


class MapCapability(Protocol):
    """Loaded map SDK able to build map instances."""

    def create_map(self, container: str, center: Coordinate, options: dict[str, Any]) -> MapHandle:
        """Build a map in ``container`` centered on ``center``."""


class MapCapabilityLoader:
    """Loads the map capability once and reports its status."""

    def __init__(
        self,
        factory: Callable[[], Awaitable[MapCapability]],
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._factory = factory
        self._logger = logger or logging.getLogger("gas_finder.adapters.map_capability")
        self._status = CapabilityStatus.IDLE
        self._error: str | None = None
        self._capability: MapCapability | None = None
        self._loading: asyncio.Task[MapCapability] | None = None

    @property
    def status(self) -> CapabilityStatus:
        return self._status

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def capability(self) -> MapCapability | None:
        return self._capability

    async def load(self) -> MapCapability:
        """Return the capability, loading it on first use.

        Concurrent callers share the same load. A failed load is terminal and
        raises ``CapabilityLoadError`` on every call.
        """
        if self._status == CapabilityStatus.READY and self._capability is not None:
            return self._capability
        if self._status == CapabilityStatus.ERROR:
            raise CapabilityLoadError(self._error or "Map capability failed to load")

        if self._loading is None:
            self._status = CapabilityStatus.LOADING
            self._logger.info("map_capability_loading")
            self._loading = asyncio.ensure_future(self._load_once())
        return await asyncio.shield(self._loading)

    async def _load_once(self) -> MapCapability:
        try:
            capability = await self._factory()
        except CapabilityLoadError as exc:
            self._fail(str(exc) or CapabilityLoadError.user_message)
            raise
        except Exception as exc:  # noqa: BLE001 - any loader failure is terminal for the capability.
            self._logger.exception("map_capability_failed")
            self._fail(CapabilityLoadError.user_message)
            raise CapabilityLoadError(CapabilityLoadError.user_message) from exc

        self._capability = capability
        self._status = CapabilityStatus.READY
        self._logger.info("map_capability_ready")
        return capability

    def _fail(self, message: str) -> None:
        self._error = message
        self._status = CapabilityStatus.ERROR
        self._logger.warning("map_capability_error", extra={"error": message})
