"""Viewport synchronization: one authoritative center driving fetch and enrich cycles.

The controller owns ``ViewportState`` and the request epoch. Every cycle is
tagged with the epoch current when it started; the epoch is bumped
synchronously before the new cycle's first await, and a cycle may publish
results (or report its error) only if its epoch is still current when it
finishes. Superseded cycles keep running in the background and are ignored.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from gas_finder.adapters.map_capability import DEFAULT_MAP_OPTIONS, MapCapabilityLoader, MapHandle
from gas_finder.enrichment import DistanceEnrichmentService
from gas_finder.errors import CapabilityLoadError, ProviderQueryError
from gas_finder.feature_flags import ENABLE_DISTANCE_MATRIX
from gas_finder.geolocation import GeoPositionProvider
from gas_finder.markers import MarkerLifecycleManager
from gas_finder.models import ControllerState, Coordinate, Place, ViewportState
from gas_finder.places import PlaceQueryService


@dataclass(slots=True)
class ViewportOptions:
    default_center: Coordinate = Coordinate(lat=39.8283, lng=-98.5795)
    radius_meters: int = 5000
    result_limit: int = 50
    category_tag: str = "gas_station"
    debounce_seconds: float = 0.5
    center_epsilon: float = 1e-7
    initial_fix_timeout_seconds: float = 10.0
    map_options: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_MAP_OPTIONS))

    @classmethod
    def from_settings(cls, settings: Any) -> ViewportOptions:
        return cls(
            default_center=settings.default_center,
            radius_meters=settings.search_radius_m,
            result_limit=settings.result_limit,
            category_tag=settings.category_tag,
            debounce_seconds=settings.debounce_seconds,
            center_epsilon=settings.center_epsilon,
            initial_fix_timeout_seconds=settings.initial_fix_timeout_seconds,
        )


def _ignore(*_: Any) -> None:
    return None


class ViewportSyncController:
    """Reconciles geolocation, map movement and external re-centering into fetch cycles."""

    def __init__(
        self,
        loader: MapCapabilityLoader,
        geolocation: GeoPositionProvider,
        places: PlaceQueryService,
        enrichment: DistanceEnrichmentService,
        markers: MarkerLifecycleManager,
        *,
        options: ViewportOptions | None = None,
        flags: Mapping[str, bool] | None = None,
        on_places: Callable[[list[Place]], None] | None = None,
        on_error: Callable[[str], None] | None = None,
        on_loading: Callable[[bool], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loader = loader
        self._geo = geolocation
        self._places_service = places
        self._enrichment = enrichment
        self._markers = markers
        self._options = options or ViewportOptions()
        self._flags = flags or {}
        self._on_places = on_places or _ignore
        self._on_error = on_error or _ignore
        self._on_loading = on_loading or _ignore
        self._logger = logger or logging.getLogger("gas_finder.viewport")

        self._state = ControllerState.UNINITIALIZED
        self._epoch = 0
        self._viewport: ViewportState | None = None
        self._requested_center: Coordinate | None = None
        self._map: MapHandle | None = None
        self._places: list[Place] = []
        self._selected_id: str | None = None
        self._last_error: str | None = None
        self._starting: asyncio.Task[None] | None = None
        self._debounce: asyncio.Task[None] | None = None
        self._cycles: set[asyncio.Task[None]] = set()
        self._closed = False

        self._geo.subscribe(self.update_user_position)

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def viewport(self) -> ViewportState | None:
        return self._viewport

    @property
    def places(self) -> list[Place]:
        return list(self._places)

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    @property
    def map_handle(self) -> MapHandle | None:
        return self._map

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def use_network_method(self) -> bool:
        return bool(self._flags.get(ENABLE_DISTANCE_MATRIX, False))

    async def start(self, container: str = "map") -> None:
        """Acquire the map, pick the initial center and run the first cycle.

        Overlapping calls share one startup, so the map is created at most once.
        """
        if self._starting is None:
            self._starting = asyncio.get_running_loop().create_task(self._start(container), name="viewport-start")
        await asyncio.shield(self._starting)

    async def _start(self, container: str) -> None:
        self._state = ControllerState.AWAITING_CAPABILITY
        try:
            capability = await self._loader.load()
        except CapabilityLoadError as exc:
            self._state = ControllerState.ERROR
            self._last_error = exc.user_message
            self._logger.error("map_capability_unavailable", extra={"error": str(exc)})
            self._on_error(exc.user_message)
            raise

        center = self._requested_center
        if center is None:
            fix = self._geo.coords or await self._geo.wait_for_fix(self._options.initial_fix_timeout_seconds)
            center = self._requested_center or fix or self._options.default_center
        if self._closed:
            return

        self._map = capability.create_map(container, center, self._options.map_options)
        self._map.add_idle_listener(self._on_map_idle)
        self._markers.attach(self._map)
        self._markers.sync_user_marker(self._geo.coords)
        self._viewport = ViewportState(center=center, radius_meters=self._options.radius_meters)
        self._state = ControllerState.IDLE
        self._logger.info("viewport_started", extra={"lat": center.lat, "lng": center.lng})
        self._begin_cycle(center, reason="initial")

    def set_center(self, center: Coordinate) -> bool:
        """Re-center immediately (no debounce). Returns False when ``center`` is already current."""
        if self._closed:
            return False
        if self._map is None or self._viewport is None:
            self._requested_center = center
            return True
        if center == self._viewport.center:
            self._logger.debug("set_center_deduplicated", extra={"lat": center.lat, "lng": center.lng})
            return False

        self._viewport.center = center
        live = self._map.get_center()
        if live is None or not live.close_to(center, self._options.center_epsilon):
            self._map.pan_to(center)
        self._begin_cycle(center, reason="set_center")
        return True

    def refresh(self) -> None:
        """Run a new cycle for the current center."""
        if self._closed or self._viewport is None:
            return
        self._begin_cycle(self._viewport.center, reason="refresh")

    def select(self, place_id: str | None) -> None:
        self._selected_id = place_id
        self._markers.reconcile(self._places, place_id)

    def update_user_position(self, position: Coordinate | None) -> None:
        """Move the user marker and re-enrich the current area from the new origin."""
        if self._closed:
            return
        self._markers.sync_user_marker(position)
        if self._map is not None:
            self.refresh()

    async def wait_until_settled(self) -> None:
        """Wait for any pending debounce and every outstanding cycle to finish."""
        while True:
            pending = {task for task in (self._debounce, *self._cycles) if task is not None and not task.done()}
            if not pending:
                return
            await asyncio.wait(pending)

    def close(self) -> None:
        """Tear down timers, in-flight cycles and markers. The map itself is kept."""
        self._closed = True
        self._epoch += 1
        self._cancel_debounce()
        for task in list(self._cycles):
            task.cancel()
        self._markers.clear()
        self._logger.info("viewport_closed")

    def _on_map_idle(self) -> None:
        if self._closed:
            return
        self._cancel_debounce()
        self._debounce = asyncio.get_running_loop().create_task(self._settle_after_quiet_window())

    async def _settle_after_quiet_window(self) -> None:
        await asyncio.sleep(self._options.debounce_seconds)
        self._debounce = None
        self._on_map_settled()

    def _on_map_settled(self) -> None:
        if self._map is None or self._viewport is None or self._closed:
            return
        live = self._map.get_center()
        if live is None or live.close_to(self._viewport.center, self._options.center_epsilon):
            return
        self._viewport.center = live
        self._begin_cycle(live, reason="map_settled")

    def _cancel_debounce(self) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None

    def _begin_cycle(self, center: Coordinate, *, reason: str) -> None:
        self._epoch += 1
        epoch = self._epoch
        self._state = ControllerState.FETCHING
        self._logger.info(
            "cycle_started",
            extra={"epoch": epoch, "reason": reason, "lat": center.lat, "lng": center.lng},
        )
        self._on_loading(True)

        task = asyncio.get_running_loop().create_task(
            self._run_cycle(epoch, center, self._geo.coords),
            name=f"viewport-cycle-{epoch}",
        )
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)

    async def _run_cycle(self, epoch: int, center: Coordinate, origin: Coordinate | None) -> None:
        try:
            fetched = await self._places_service.fetch_nearby(
                center,
                self._options.radius_meters,
                self._options.category_tag,
                self._options.result_limit,
            )
            enriched = await self._enrichment.enrich(origin, fetched, self.use_network_method)
        except ProviderQueryError as exc:
            self._fail_cycle(epoch, exc)
        except Exception as exc:  # noqa: BLE001 - no cycle failure may escape the controller.
            self._logger.exception("cycle_crashed", extra={"epoch": epoch})
            self._fail_cycle(epoch, exc)
        else:
            self._publish(epoch, enriched)
        finally:
            if epoch == self._epoch:
                self._on_loading(False)

    def _publish(self, epoch: int, places: Sequence[Place]) -> None:
        if epoch != self._epoch:
            self._logger.debug("stale_cycle_discarded", extra={"epoch": epoch, "current_epoch": self._epoch})
            return

        self._places = list(places)
        self._last_error = None
        self._markers.reconcile(self._places, self._selected_id)
        self._state = ControllerState.IDLE
        self._logger.info("cycle_published", extra={"epoch": epoch, "places": len(self._places)})
        self._on_places(list(self._places))

    def _fail_cycle(self, epoch: int, exc: Exception) -> None:
        if epoch != self._epoch:
            self._logger.debug("stale_cycle_error_discarded", extra={"epoch": epoch})
            return

        message = ProviderQueryError.user_message
        self._state = ControllerState.ERROR
        self._last_error = message
        self._logger.warning("cycle_failed", extra={"epoch": epoch, "error": f"{type(exc).__name__}: {exc}"})
        self._on_error(message)
        self._state = ControllerState.IDLE
