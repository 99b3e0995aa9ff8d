"""Nearby place queries against the search provider."""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import BaseModel, ConfigDict, ValidationError

from gas_finder.errors import ProviderQueryError
from gas_finder.models import Coordinate, NearbySearchResponse, Place

SUCCESS_STATUSES = {"OK", "ZERO_RESULTS"}


class NearbySearchProvider(Protocol):
    async def nearby_search(self, location: Coordinate, radius_meters: int, category: str) -> NearbySearchResponse:
        """Return the provider's nearby-search payload for ``category`` around ``location``."""


class _LatLng(BaseModel):
    lat: float
    lng: float


class _Geometry(BaseModel):
    location: _LatLng


class _ProviderPlace(BaseModel):
    """Subset of the provider's place record the pipeline relies on."""

    model_config = ConfigDict(extra="ignore")

    place_id: str
    name: str = ""
    vicinity: str | None = None
    rating: float | None = None
    geometry: _Geometry

    def to_place(self) -> Place:
        location = self.geometry.location
        return Place(
            id=self.place_id,
            name=self.name,
            vicinity=self.vicinity,
            rating=self.rating,
            position=Coordinate(lat=location.lat, lng=location.lng),
        )


class PlaceQueryService:
    """Fetches a bounded list of nearby places; every call is a fresh request."""

    def __init__(self, provider: NearbySearchProvider, *, logger: logging.Logger | None = None) -> None:
        self._provider = provider
        self._logger = logger or logging.getLogger("gas_finder.places")

    async def fetch_nearby(
        self,
        center: Coordinate,
        radius_meters: int,
        category_tag: str,
        limit: int,
    ) -> list[Place]:
        """Return at most ``limit`` places in provider order.

        Raises ``ProviderQueryError`` on a non-success status or malformed payload.
        """
        try:
            response = await self._provider.nearby_search(center, radius_meters, category_tag)
        except ProviderQueryError:
            raise
        except Exception as exc:  # noqa: BLE001 - provider transport failures become query failures.
            raise ProviderQueryError("Places nearby search failed") from exc

        if response.status not in SUCCESS_STATUSES:
            raise ProviderQueryError(f"Places nearby search failed with status {response.status}")
        if response.status == "ZERO_RESULTS" and not response.results:
            return []
        if not isinstance(response.results, list):
            raise ProviderQueryError("Places nearby search returned a malformed payload")

        try:
            places = [_ProviderPlace.model_validate(item).to_place() for item in response.results[:limit]]
        except ValidationError as exc:
            raise ProviderQueryError("Places nearby search returned a malformed place") from exc

        self._logger.info(
            "nearby_places_fetched",
            extra={"category": category_tag, "returned": len(response.results), "kept": len(places)},
        )
        return places
