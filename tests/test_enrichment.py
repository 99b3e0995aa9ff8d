from __future__ import annotations

import asyncio

import pytest

from gas_finder.enrichment import DistanceEnrichmentService
from gas_finder.geo import haversine_meters
from gas_finder.models import Coordinate, DistanceMatrixResponse, Place

ORIGIN = Coordinate(39.8283, -98.5795)
PLACES = [
    Place(id="a", name="Alpha", position=Coordinate(39.8300, -98.5800)),
    Place(id="b", name="Bravo", position=Coordinate(39.9000, -98.5000)),
    Place(id="c", name="Charlie", position=Coordinate(40.5000, -98.0000)),
]


def _element(index: int) -> dict:
    return {
        "status": "OK",
        "distance": {"value": 1000 * (index + 1), "text": f"{index + 1}.0 km road"},
        "duration": {"value": 60 * (index + 1), "text": f"{index + 1} mins"},
    }


class StubMatrixProvider:
    def __init__(self, response: DistanceMatrixResponse | None = None, error: Exception | None = None, delay: float = 0) -> None:
        self.response = response
        self.error = error
        self.delay = delay
        self.calls: list[tuple[Coordinate, list[Coordinate]]] = []

    async def distance_matrix(self, origin: Coordinate, destinations: list[Coordinate]) -> DistanceMatrixResponse:
        self.calls.append((origin, destinations))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


def _assert_haversine(enriched: list[Place]) -> None:
    assert [p.id for p in enriched] == [p.id for p in PLACES]
    for original, place in zip(PLACES, enriched):
        assert place.distance_meters == pytest.approx(haversine_meters(ORIGIN, original.position), abs=1e-3)
        assert place.distance_text
        assert place.duration_text is None
        assert place.position == original.position
        assert place.name == original.name


def test_network_method_results_stay_index_aligned() -> None:
    provider = StubMatrixProvider(DistanceMatrixResponse(status="OK", elements=[_element(i) for i in range(3)]))

    enriched = asyncio.run(DistanceEnrichmentService(provider).enrich(ORIGIN, PLACES, True))

    assert [p.id for p in enriched] == ["a", "b", "c"]
    assert [p.distance_meters for p in enriched] == [1000.0, 2000.0, 3000.0]
    assert [p.distance_text for p in enriched] == ["1.0 km road", "2.0 km road", "3.0 km road"]
    assert [p.duration_text for p in enriched] == ["1 mins", "2 mins", "3 mins"]
    assert provider.calls[0][1] == [p.position for p in PLACES]


def test_network_method_formats_distance_when_text_is_missing() -> None:
    elements = [{"status": "OK", "distance": {"value": 850}}, _element(1), _element(2)]
    provider = StubMatrixProvider(DistanceMatrixResponse(status="OK", elements=elements))

    enriched = asyncio.run(DistanceEnrichmentService(provider).enrich(ORIGIN, PLACES, True))

    assert enriched[0].distance_text == "850 m"
    assert enriched[0].duration_text is None


def test_flag_off_uses_haversine_without_calling_provider() -> None:
    provider = StubMatrixProvider(DistanceMatrixResponse(status="OK", elements=[_element(i) for i in range(3)]))

    enriched = asyncio.run(DistanceEnrichmentService(provider).enrich(ORIGIN, PLACES, False))

    _assert_haversine(enriched)
    assert provider.calls == []


@pytest.mark.parametrize(
    "provider",
    [
        StubMatrixProvider(error=RuntimeError("Distance Matrix failed")),
        StubMatrixProvider(DistanceMatrixResponse(status="OVER_QUERY_LIMIT", elements=[])),
        StubMatrixProvider(DistanceMatrixResponse(status="OK", elements=[_element(0), _element(1)])),
        StubMatrixProvider(DistanceMatrixResponse(status="OK", elements=None)),
        StubMatrixProvider(
            DistanceMatrixResponse(status="OK", elements=[_element(0), {"status": "ZERO_RESULTS"}, _element(2)])
        ),
        StubMatrixProvider(DistanceMatrixResponse(status="OK", elements=[_element(0), {"status": "OK"}, _element(2)])),
    ],
)
def test_any_network_failure_falls_back_to_haversine_for_whole_batch(provider: StubMatrixProvider) -> None:
    enriched = asyncio.run(DistanceEnrichmentService(provider).enrich(ORIGIN, PLACES, True))

    _assert_haversine(enriched)


def test_network_timeout_falls_back() -> None:
    provider = StubMatrixProvider(DistanceMatrixResponse(status="OK", elements=[_element(i) for i in range(3)]), delay=1)

    enriched = asyncio.run(DistanceEnrichmentService(provider, timeout_seconds=0.01).enrich(ORIGIN, PLACES, True))

    _assert_haversine(enriched)


def test_unknown_origin_leaves_distance_fields_absent() -> None:
    provider = StubMatrixProvider(DistanceMatrixResponse(status="OK", elements=[_element(i) for i in range(3)]))

    enriched = asyncio.run(DistanceEnrichmentService(provider).enrich(None, PLACES, True))

    assert [p.id for p in enriched] == ["a", "b", "c"]
    assert all(p.distance_meters is None and p.distance_text is None and p.duration_text is None for p in enriched)
    assert provider.calls == []


def test_empty_input_returns_empty_list() -> None:
    provider = StubMatrixProvider(DistanceMatrixResponse(status="OK", elements=[]))

    assert asyncio.run(DistanceEnrichmentService(provider).enrich(ORIGIN, [], True)) == []
    assert provider.calls == []


def test_enrichment_does_not_mutate_input() -> None:
    asyncio.run(DistanceEnrichmentService().enrich(ORIGIN, PLACES, False))

    assert all(p.distance_meters is None for p in PLACES)
