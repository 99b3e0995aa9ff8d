from __future__ import annotations

import asyncio

from gas_finder.errors import GeolocationError
from gas_finder.geolocation import GeoPositionProvider, StaticPositionSource, describe_geolocation_error
from gas_finder.models import Coordinate, GeoError, GeolocationErrorCode, PermissionState


class ScriptedSource:
    """Answers each position request with whatever the test resolves it to."""

    def __init__(self) -> None:
        self.requests: list[asyncio.Future] = []

    async def current_position(self, *, high_accuracy: bool, timeout_seconds: float, maximum_age_seconds: float) -> Coordinate:
        future = asyncio.get_running_loop().create_future()
        self.requests.append(future)
        return await future

    async def permission_state(self) -> PermissionState:
        return PermissionState.GRANTED


def test_fix_sets_coords_permission_and_notifies_listeners() -> None:
    seen: list[Coordinate | None] = []

    async def _run() -> GeoPositionProvider:
        provider = GeoPositionProvider(StaticPositionSource(Coordinate(1.0, 2.0), permission=PermissionState.GRANTED))
        provider.subscribe(seen.append)
        await provider.refresh()
        await provider.refresh()
        return provider

    provider = asyncio.run(_run())
    assert provider.coords == Coordinate(1.0, 2.0)
    assert provider.permission == PermissionState.GRANTED
    assert provider.error is None
    assert seen == [Coordinate(1.0, 2.0)]


def test_denied_permission_is_recoverable_error() -> None:
    async def _run() -> GeoPositionProvider:
        provider = GeoPositionProvider(StaticPositionSource(Coordinate(1.0, 2.0), permission=PermissionState.DENIED))
        assert await provider.refresh() is None
        return provider

    provider = asyncio.run(_run())
    assert provider.coords is None
    assert provider.error.code == GeolocationErrorCode.PERMISSION_DENIED
    assert provider.permission == PermissionState.DENIED
    assert describe_geolocation_error(provider.error).startswith("Location permission denied")


def test_unsupported_source_reports_unsupported() -> None:
    async def _run() -> GeoPositionProvider:
        provider = GeoPositionProvider(StaticPositionSource(None, supported=False))
        await provider.refresh()
        return provider

    assert asyncio.run(_run()).error.code == GeolocationErrorCode.UNSUPPORTED


def test_only_newest_request_updates_state() -> None:
    async def _run() -> GeoPositionProvider:
        source = ScriptedSource()
        provider = GeoPositionProvider(source)
        first = asyncio.create_task(provider.refresh())
        await asyncio.sleep(0)
        second = asyncio.create_task(provider.refresh())
        await asyncio.sleep(0)

        source.requests[1].set_result(Coordinate(20.0, 20.0))
        await second
        source.requests[0].set_result(Coordinate(10.0, 10.0))
        await first
        return provider

    assert asyncio.run(_run()).coords == Coordinate(20.0, 20.0)


def test_stale_error_does_not_overwrite_newer_fix() -> None:
    async def _run() -> GeoPositionProvider:
        source = ScriptedSource()
        provider = GeoPositionProvider(source)
        first = asyncio.create_task(provider.refresh())
        await asyncio.sleep(0)
        second = asyncio.create_task(provider.refresh())
        await asyncio.sleep(0)

        source.requests[1].set_result(Coordinate(20.0, 20.0))
        await second
        source.requests[0].set_exception(GeolocationError(GeolocationErrorCode.TIMEOUT, "slow"))
        await first
        return provider

    provider = asyncio.run(_run())
    assert provider.error is None
    assert provider.coords == Coordinate(20.0, 20.0)


def test_error_message_is_truncated() -> None:
    async def _run() -> GeoPositionProvider:
        source = ScriptedSource()
        provider = GeoPositionProvider(source)
        task = asyncio.create_task(provider.refresh())
        await asyncio.sleep(0)
        source.requests[0].set_exception(GeolocationError(GeolocationErrorCode.UNKNOWN, "x" * 500))
        await task
        return provider

    assert len(asyncio.run(_run()).error.message) == 180


def test_wait_for_fix_times_out_without_position() -> None:
    async def _run() -> Coordinate | None:
        provider = GeoPositionProvider(ScriptedSource())
        return await provider.wait_for_fix(timeout=0.01)

    assert asyncio.run(_run()) is None


def test_user_messages_per_error_code() -> None:
    assert describe_geolocation_error(None) == ""
    assert "Unable to determine" in describe_geolocation_error(GeoError(GeolocationErrorCode.POSITION_UNAVAILABLE, ""))
    assert "Taking too long" in describe_geolocation_error(GeoError(GeolocationErrorCode.TIMEOUT, ""))
    assert describe_geolocation_error(GeoError(GeolocationErrorCode.UNKNOWN, "")) == GeolocationError.user_message


class BrokenSource:
    async def current_position(self, *, high_accuracy: bool, timeout_seconds: float, maximum_age_seconds: float) -> Coordinate:
        raise OSError("location service crashed")

    async def permission_state(self) -> PermissionState:
        return PermissionState.PROMPT


def test_unexpected_source_failure_is_recorded_as_unknown_error() -> None:
    async def _run() -> tuple[GeoPositionProvider, Coordinate | None, Coordinate | None]:
        provider = GeoPositionProvider(BrokenSource())
        refreshed = await provider.refresh()
        waited = await asyncio.wait_for(provider.wait_for_fix(timeout=30), timeout=1)
        return provider, refreshed, waited

    provider, refreshed, waited = asyncio.run(_run())
    assert refreshed is None
    assert waited is None
    assert provider.error.code == GeolocationErrorCode.UNKNOWN
    assert "location service crashed" in provider.error.message
    assert describe_geolocation_error(provider.error) == GeolocationError.user_message
