from __future__ import annotations

import asyncio
import math
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import urlencode

from gas_finder.adapters.map_capability import MapCapabilityLoader
from gas_finder.enrichment import DistanceEnrichmentService
from gas_finder.geolocation import GeoPositionProvider, describe_geolocation_error
from gas_finder.markers import MarkerLifecycleManager
from gas_finder.models import Coordinate, Place
from gas_finder.places import PlaceQueryService
from gas_finder.viewport import ViewportOptions, ViewportSyncController

DIRECTIONS_URL = "https://www.google.com/maps/dir/"


@dataclass(slots=True)
class StationPage:
    items: list[Place]
    page: int
    pages: int
    total: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.pages


def paginate(stations: list[Place], page: int, page_size: int = 10) -> StationPage:
    """Slice ``stations`` into a 1-based page, clamping ``page`` into range."""
    pages = max(1, math.ceil(len(stations) / page_size))
    page = min(max(page, 1), pages)
    start = (page - 1) * page_size
    return StationPage(items=stations[start : start + page_size], page=page, pages=pages, total=len(stations))


def directions_url(station: Place, user_position: Coordinate | None) -> str:
    """Google Maps driving directions link from the user (if known) to ``station``."""
    origin = f"{user_position.lat},{user_position.lng}" if user_position else ""
    destination = f"{station.position.lat},{station.position.lng}"
    query = urlencode({"api": "1", "origin": origin, "destination": destination, "travelmode": "driving"})
    return f"{DIRECTIONS_URL}?{query}"


class GasFinderApp:
    """Application shell state fed by the viewport controller."""

    def __init__(
        self,
        *,
        loader: MapCapabilityLoader,
        geolocation: GeoPositionProvider,
        places: PlaceQueryService,
        enrichment: DistanceEnrichmentService,
        flags: Mapping[str, bool] | None = None,
        options: ViewportOptions | None = None,
        highlight_seconds: float = 1.4,
        page_size: int = 10,
    ) -> None:
        self.geolocation = geolocation
        self.page_size = page_size
        self.stations: list[Place] = []
        self.selected_station: Place | None = None
        self.loading = False
        self.list_error = ""

        self.markers = MarkerLifecycleManager(on_select=self.select_station, highlight_seconds=highlight_seconds)
        self.controller = ViewportSyncController(
            loader,
            geolocation,
            places,
            enrichment,
            self.markers,
            options=options,
            flags=flags,
            on_places=self._handle_places,
            on_error=self._handle_error,
            on_loading=self._handle_loading,
        )
        self._locate_task: asyncio.Task[Coordinate | None] | None = None

    @property
    def geo_error_message(self) -> str:
        return describe_geolocation_error(self.geolocation.error)

    async def start(self, container: str = "map") -> None:
        """Request a location fix and bring up the map; the first search follows."""
        self._locate_task = asyncio.get_running_loop().create_task(self.geolocation.refresh())
        await self.controller.start(container)

    async def locate_me(self) -> Coordinate | None:
        return await self.geolocation.refresh()

    def search_at(self, center: Coordinate) -> bool:
        return self.controller.set_center(center)

    def select_station(self, station: Place | None) -> None:
        self.selected_station = station
        self.controller.select(station.id if station else None)

    def close_details(self) -> None:
        self.select_station(None)

    def page(self, number: int) -> StationPage:
        return paginate(self.stations, number, self.page_size)

    def directions_for_selected(self) -> str | None:
        if self.selected_station is None:
            return None
        return directions_url(self.selected_station, self.geolocation.coords)

    async def wait_until_settled(self) -> None:
        if self._locate_task is not None:
            await self._locate_task
        await self.controller.wait_until_settled()

    def close(self) -> None:
        if self._locate_task is not None and not self._locate_task.done():
            self._locate_task.cancel()
        self.controller.close()

    def _handle_places(self, places: list[Place]) -> None:
        self.stations = places
        self.list_error = ""
        if self.selected_station is not None:
            self.selected_station = next((p for p in places if p.id == self.selected_station.id), self.selected_station)

    def _handle_error(self, message: str) -> None:
        self.list_error = message

    def _handle_loading(self, loading: bool) -> None:
        self.loading = loading
