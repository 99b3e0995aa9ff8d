"""Distance and ETA enrichment for fetched places."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Protocol, Sequence

from gas_finder.errors import EnrichmentError
from gas_finder.geo import format_distance, haversine_meters
from gas_finder.models import Coordinate, DistanceMatrixResponse, Place


class DistanceMatrixProvider(Protocol):
    async def distance_matrix(self, origin: Coordinate, destinations: list[Coordinate]) -> DistanceMatrixResponse:
        """Return one element per destination, in destination order."""


class DistanceEnrichmentService:
    """Attaches distance (and ETA when available) to every place.

    The road-network method is tried first when enabled; any failure falls back
    to great-circle distance for the whole batch.
    """

    def __init__(
        self,
        provider: DistanceMatrixProvider | None = None,
        *,
        timeout_seconds: float = 8.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self._provider = provider
        self._timeout_seconds = timeout_seconds
        self._logger = logger or logging.getLogger("gas_finder.enrichment")

    async def enrich(
        self,
        origin: Coordinate | None,
        places: Sequence[Place],
        use_network_method: bool,
    ) -> list[Place]:
        if use_network_method and origin is not None and places and self._provider is not None:
            try:
                return await self._enrich_by_network(origin, places)
            except Exception as exc:  # noqa: BLE001 - every network failure recovers through haversine.
                self._logger.warning(
                    "distance_matrix_fallback",
                    extra={"places": len(places), "error": f"{type(exc).__name__}: {exc}"},
                )

        return self._enrich_by_haversine(origin, places)

    async def _enrich_by_network(self, origin: Coordinate, places: Sequence[Place]) -> list[Place]:
        destinations = [place.position for place in places]
        try:
            response = await asyncio.wait_for(
                self._provider.distance_matrix(origin, destinations),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise EnrichmentError(f"Distance Matrix timed out after {self._timeout_seconds}s") from exc

        if response.status != "OK":
            raise EnrichmentError(f"Distance Matrix failed with status {response.status}")
        elements = response.elements
        if not isinstance(elements, list) or len(elements) != len(places):
            raise EnrichmentError("Distance Matrix elements do not align with the requested destinations")

        # elements[i] answers destinations[i]; zip keeps that pairing explicit.
        return [replace(place, **self._element_fields(element)) for place, element in zip(places, elements)]

    @staticmethod
    def _element_fields(element: Any) -> dict[str, Any]:
        if not isinstance(element, dict) or element.get("status", "OK") != "OK":
            raise EnrichmentError("Distance Matrix element failed")

        distance = element.get("distance") or {}
        meters = distance.get("value")
        if not isinstance(meters, (int, float)) or isinstance(meters, bool):
            raise EnrichmentError("Distance Matrix element has no distance value")

        duration = element.get("duration") or {}
        return {
            "distance_meters": float(meters),
            "distance_text": distance.get("text") or format_distance(meters),
            "duration_text": duration.get("text"),
        }

    @staticmethod
    def _enrich_by_haversine(origin: Coordinate | None, places: Sequence[Place]) -> list[Place]:
        if origin is None:
            return [replace(p, distance_meters=None, distance_text=None, duration_text=None) for p in places]

        enriched: list[Place] = []
        for place in places:
            meters = haversine_meters(origin, place.position)
            enriched.append(
                replace(place, distance_meters=meters, distance_text=format_distance(meters), duration_text=None)
            )
        return enriched
