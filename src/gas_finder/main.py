"""CLI entrypoint for Nearby Gas Finder."""

from __future__ import annotations

import asyncio

import typer
from rich import print
from rich.table import Table

from gas_finder.adapters.google_places import GooglePlacesClient
from gas_finder.adapters.headless_map import HeadlessMap, load_headless_capability
from gas_finder.adapters.map_capability import MapCapabilityLoader
from gas_finder.app import GasFinderApp
from gas_finder.config import settings
from gas_finder.enrichment import DistanceEnrichmentService
from gas_finder.errors import GasFinderError
from gas_finder.feature_flags import ENABLE_DISTANCE_MATRIX, parse_feature_flags
from gas_finder.geo import format_distance, haversine_meters
from gas_finder.geolocation import GeoPositionProvider, PositionOptions, StaticPositionSource
from gas_finder.models import Coordinate
from gas_finder.places import PlaceQueryService
from gas_finder.telemetry.logging import configure_logging
from gas_finder.viewport import ViewportOptions

app = typer.Typer(help="Nearby Gas Finder")


@app.callback()
def _main(log_level: str = typer.Option(None, help="Override GAS_FINDER_LOG_LEVEL")) -> None:
    configure_logging(log_level or settings.log_level)


def _mask(secret: str | None) -> str | None:
    if not secret:
        return None
    return f"{secret[:4]}…" if len(secret) > 4 else "…"


def _stations_table(finder: GasFinderApp, page: int) -> Table:
    view = finder.page(page)
    table = Table(title=f"Nearby gas stations (page {view.page} of {view.pages}, {view.total} results)")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Vicinity")
    table.add_column("Rating", justify="right")
    table.add_column("Distance", justify="right")
    table.add_column("ETA", justify="right")

    offset = (view.page - 1) * finder.page_size
    for index, station in enumerate(view.items, start=offset + 1):
        distance = station.distance_text or format_distance(station.distance_meters) or "Distance unavailable"
        table.add_row(
            str(index),
            station.name or "Gas station",
            station.vicinity or "",
            f"{station.rating:.1f}" if station.rating is not None else "",
            distance,
            station.duration_text or "",
        )
    return table


@app.command()
def start() -> None:
    """Show runtime configuration."""
    print(
        {
            "app_name": settings.app_name,
            "google_maps_api_key": _mask(settings.google_maps_api_key),
            "places_base_url": settings.places_base_url,
            "feature_flags": dict(settings.flags),
            "default_center": settings.default_center,
            "search_radius_m": settings.search_radius_m,
            "result_limit": settings.result_limit,
            "category_tag": settings.category_tag,
        }
    )


@app.command()
def nearby(
    lat: float = typer.Option(None, help="Search center latitude (defaults to the user position or default center)"),
    lng: float = typer.Option(None, help="Search center longitude"),
    user_lat: float = typer.Option(None, help="User latitude used for distances"),
    user_lng: float = typer.Option(None, help="User longitude used for distances"),
    page: int = typer.Option(1, help="Result page to show"),
    distance_matrix: bool = typer.Option(None, help="Force the road-distance method on or off"),
) -> None:
    """Search for gas stations around a point and list them with distances."""
    flags = dict(settings.flags)
    if distance_matrix is not None:
        flags[ENABLE_DISTANCE_MATRIX] = distance_matrix

    user_position = Coordinate(user_lat, user_lng) if user_lat is not None and user_lng is not None else None
    center = Coordinate(lat, lng) if lat is not None and lng is not None else None

    async def _run() -> tuple[GasFinderApp, int]:
        async with GooglePlacesClient(
            settings.google_maps_api_key,
            base_url=settings.places_base_url,
            timeout_seconds=settings.request_timeout_seconds,
        ) as client:
            finder = GasFinderApp(
                loader=MapCapabilityLoader(load_headless_capability),
                geolocation=GeoPositionProvider(StaticPositionSource(user_position), PositionOptions()),
                places=PlaceQueryService(client),
                enrichment=DistanceEnrichmentService(client, timeout_seconds=settings.request_timeout_seconds),
                flags=flags,
                options=ViewportOptions.from_settings(settings),
                highlight_seconds=settings.highlight_seconds,
                page_size=settings.page_size,
            )
            if center is not None:
                finder.search_at(center)
            try:
                await finder.start()
                await finder.wait_until_settled()
                map_handle = finder.controller.map_handle
                placed = len(map_handle.live_markers("place")) if isinstance(map_handle, HeadlessMap) else 0
            finally:
                finder.close()
            return finder, placed

    try:
        finder, markers_placed = asyncio.run(_run())
    except GasFinderError as exc:
        print({"error": exc.user_message})
        raise typer.Exit(code=1)

    if finder.geo_error_message:
        print({"location": finder.geo_error_message})
    if finder.list_error:
        print({"error": finder.list_error})
        raise typer.Exit(code=1)
    if not finder.stations:
        print("No stations found for this area. Try a larger radius or another center.")
        return

    print(_stations_table(finder, page))
    print({"markers_placed": markers_placed})


@app.command()
def distance(lat1: float, lng1: float, lat2: float, lng2: float) -> None:
    """Straight-line distance between two points."""
    meters = haversine_meters(Coordinate(lat1, lng1), Coordinate(lat2, lng2))
    print({"meters": round(meters, 3), "text": format_distance(meters)})


@app.command()
def flags(text: str = typer.Argument(None, help="Flag string; defaults to GAS_FINDER_FEATURE_FLAGS")) -> None:
    """Show parsed feature flags."""
    print(dict(parse_feature_flags(text if text is not None else settings.feature_flags)))


if __name__ == "__main__":
    app()
