from __future__ import annotations

import asyncio

from gas_finder.adapters.headless_map import HeadlessMap
from gas_finder.markers import MarkerLifecycleManager, info_surface_content
from gas_finder.models import Coordinate, Place

CENTER = Coordinate(39.8283, -98.5795)


def _place(place_id: str, lat: float, lng: float = -98.58, **extra) -> Place:
    return Place(id=place_id, name=f"Station {place_id}", position=Coordinate(lat, lng), **extra)


def _attached(**kwargs) -> tuple[MarkerLifecycleManager, HeadlessMap]:
    map_ = HeadlessMap("map", CENTER, {})
    manager = MarkerLifecycleManager(**kwargs)
    manager.attach(map_)
    return manager, map_


def test_reconcile_converges_on_latest_ids_and_keeps_shared_markers() -> None:
    manager, map_ = _attached()
    first = [_place("a", 39.81), _place("b", 39.82), _place("c", 39.83)]
    manager.reconcile(first, None)
    marker_b = manager.marker_for("b")
    marker_a = manager.marker_for("a")

    second = [_place("b", 39.825), _place("d", 39.84)]
    manager.reconcile(second, None)

    assert manager.marker_ids == {"b", "d"}
    assert manager.marker_for("b") is marker_b
    assert marker_b.position == Coordinate(39.825, -98.58)
    assert marker_a.removed is True
    assert {m.title for m in map_.live_markers("place")} == {"Station b", "Station d"}
    assert len(map_.markers) == 4


def test_selected_marker_is_the_only_highlighted_one() -> None:
    manager, _ = _attached()
    places = [_place("a", 39.81), _place("b", 39.82)]

    manager.reconcile(places, "b")
    assert manager.marker_for("b").highlighted is True
    assert manager.marker_for("a").highlighted is False

    manager.reconcile(places, "a")
    assert manager.marker_for("a").highlighted is True
    assert manager.marker_for("b").highlighted is False

    manager.reconcile(places, None)
    assert not any(manager.marker_for(pid).highlighted for pid in ("a", "b"))


def test_highlight_clears_itself_after_the_animation_window() -> None:
    async def _run() -> tuple[bool, bool]:
        manager, _ = _attached(highlight_seconds=0.01)
        manager.reconcile([_place("a", 39.81)], "a")
        during = manager.marker_for("a").highlighted
        await asyncio.sleep(0.05)
        return during, manager.marker_for("a").highlighted

    during, after = asyncio.run(_run())
    assert during is True
    assert after is False


def test_click_selects_latest_place_and_moves_single_info_surface() -> None:
    selected: list[Place] = []
    manager, map_ = _attached(on_select=selected.append)
    manager.reconcile([_place("a", 39.81), _place("b", 39.82)], None)
    manager.reconcile([_place("a", 39.81, distance_text="1.2 km"), _place("b", 39.82)], None)

    manager.marker_for("a").click()
    surface = map_.info_surfaces[0]
    assert selected[-1].distance_text == "1.2 km"
    assert surface.anchor is manager.marker_for("a")
    assert "1.2 km" in surface.content

    manager.marker_for("b").click()
    assert [p.id for p in selected] == ["a", "b"]
    assert surface.anchor is manager.marker_for("b")
    assert len(map_.info_surfaces) == 1


def test_info_surface_closes_when_its_marker_leaves_the_results() -> None:
    manager, map_ = _attached()
    manager.reconcile([_place("a", 39.81), _place("b", 39.82)], None)
    manager.marker_for("a").click()
    surface = map_.info_surfaces[0]

    manager.reconcile([_place("b", 39.82)], None)

    assert surface.is_open is False
    assert surface.anchor is None


def test_info_surface_stays_open_when_another_marker_is_removed() -> None:
    manager, map_ = _attached()
    manager.reconcile([_place("a", 39.81), _place("b", 39.82)], None)
    manager.marker_for("b").click()
    surface = map_.info_surfaces[0]

    manager.reconcile([_place("b", 39.82)], None)

    assert surface.is_open is True
    assert surface.anchor is manager.marker_for("b")


def test_user_marker_follows_known_position() -> None:
    manager, map_ = _attached()

    manager.sync_user_marker(CENTER)
    user_marker = manager.user_marker
    manager.sync_user_marker(Coordinate(40.0, -98.0))

    assert manager.user_marker is user_marker
    assert user_marker.position == Coordinate(40.0, -98.0)
    assert user_marker.kind == "user"

    manager.sync_user_marker(None)
    assert manager.user_marker is None
    assert user_marker.removed is True
    assert map_.live_markers("user") == []


def test_clear_removes_everything() -> None:
    manager, map_ = _attached()
    manager.reconcile([_place("a", 39.81), _place("b", 39.82)], "a")
    manager.sync_user_marker(CENTER)
    manager.marker_for("a").click()

    manager.clear()

    assert manager.marker_ids == set()
    assert map_.live_markers() == []
    assert map_.info_surfaces[0].is_open is False


def test_reconcile_before_attach_is_a_no_op() -> None:
    manager = MarkerLifecycleManager()

    manager.reconcile([_place("a", 39.81)], "a")

    assert manager.marker_ids == set()


def test_info_surface_content_escapes_text() -> None:
    content = info_surface_content(_place("a", 1.0, vicinity="Fish & Chips <Rd>"))

    assert "Fish &amp; Chips &lt;Rd&gt;" in content
    assert "Station a" in content
