"""Google Places Nearby Search and Distance Matrix web-service client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from gas_finder.errors import CapabilityLoadError, EnrichmentError, ProviderQueryError
from gas_finder.models import Coordinate, DistanceMatrixResponse, NearbySearchResponse

DEFAULT_BASE_URL = "https://maps.googleapis.com/maps/api"
# The web service rejects requests with more destinations than this.
MAX_DESTINATIONS_PER_REQUEST = 25

logger = logging.getLogger("gas_finder.adapters.google_places")


def _latlng(coordinate: Coordinate) -> str:
    return f"{coordinate.lat},{coordinate.lng}"


class GooglePlacesClient:
    """Async client for the two Google endpoints the pipeline needs.

    Pass ``client`` to share a connection pool (or a mock transport in tests);
    otherwise one ``httpx.AsyncClient`` is created and owned by this instance.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 8.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise CapabilityLoadError(
                "Google Maps API key missing. Set GAS_FINDER_GOOGLE_MAPS_API_KEY in your environment."
            )
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> GooglePlacesClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def nearby_search(self, location: Coordinate, radius_meters: int, category: str) -> NearbySearchResponse:
        params = {"location": _latlng(location), "radius": str(radius_meters), "type": category}
        try:
            payload = await self._get_json("/place/nearbysearch/json", params)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("nearby_search_transport_failed", extra={"error": f"{type(exc).__name__}: {exc}"})
            raise ProviderQueryError("Places nearby search failed") from exc

        status = str(payload.get("status", "UNKNOWN_ERROR"))
        if payload.get("error_message"):
            logger.warning("nearby_search_provider_error", extra={"status": status, "error": payload["error_message"]})
        return NearbySearchResponse(status=status, results=payload.get("results"))

    async def distance_matrix(self, origin: Coordinate, destinations: list[Coordinate]) -> DistanceMatrixResponse:
        """One element per destination, in order, batching past the per-request destination cap."""
        elements: list[Any] = []
        for start in range(0, len(destinations), MAX_DESTINATIONS_PER_REQUEST):
            batch = await self._distance_matrix_batch(origin, destinations[start : start + MAX_DESTINATIONS_PER_REQUEST])
            if batch.status != "OK" or not isinstance(batch.elements, list):
                return batch
            elements.extend(batch.elements)
        return DistanceMatrixResponse(status="OK", elements=elements)

    async def _distance_matrix_batch(self, origin: Coordinate, destinations: list[Coordinate]) -> DistanceMatrixResponse:
        params = {
            "origins": _latlng(origin),
            "destinations": "|".join(_latlng(d) for d in destinations),
            "mode": "driving",
            "units": "metric",
        }
        try:
            payload = await self._get_json("/distancematrix/json", params)
        except (httpx.HTTPError, ValueError) as exc:
            raise EnrichmentError("Distance Matrix request failed") from exc

        status = str(payload.get("status", "UNKNOWN_ERROR"))
        rows = payload.get("rows") or []
        elements = rows[0].get("elements") if rows and isinstance(rows[0], dict) else None
        return DistanceMatrixResponse(status=status, elements=elements)

    async def _get_json(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        response = await self._client.get(f"{self._base_url}{path}", params={**params, "key": self._api_key})
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected payload type from {path}: {type(payload).__name__}")
        return payload
