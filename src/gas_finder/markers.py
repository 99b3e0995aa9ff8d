"""Keeps map markers in step with the latest enriched place list."""

from __future__ import annotations

import asyncio
import html
import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from gas_finder.adapters.map_capability import InfoSurface, MapHandle, MarkerObject
from gas_finder.models import Coordinate, Place

USER_MARKER_TITLE = "You are here"


@dataclass(slots=True)
class _TrackedMarker:
    marker: MarkerObject
    place: Place


def info_surface_content(place: Place) -> str:
    """Popup markup for a place marker."""
    parts = [f'<div class="place-name">{html.escape(place.name or "Station")}</div>']
    if place.vicinity:
        parts.append(f'<div class="place-vicinity">{html.escape(place.vicinity)}</div>')
    if place.distance_text:
        parts.append(f'<div class="place-distance"><strong>{html.escape(place.distance_text)}</strong></div>')
    return "".join(parts)


class MarkerLifecycleManager:
    """Sole owner of place markers, the user marker and the shared info surface."""

    def __init__(
        self,
        on_select: Callable[[Place], None] | None = None,
        *,
        highlight_seconds: float = 1.4,
        logger: logging.Logger | None = None,
    ) -> None:
        self._on_select = on_select
        self._highlight_seconds = highlight_seconds
        self._logger = logger or logging.getLogger("gas_finder.markers")
        self._map: MapHandle | None = None
        self._info_surface: InfoSurface | None = None
        self._info_anchor_id: str | None = None
        self._markers: dict[str, _TrackedMarker] = {}
        self._user_marker: MarkerObject | None = None
        self._highlight_timer: asyncio.TimerHandle | None = None

    @property
    def marker_ids(self) -> set[str]:
        return set(self._markers)

    @property
    def user_marker(self) -> MarkerObject | None:
        return self._user_marker

    def marker_for(self, place_id: str) -> MarkerObject | None:
        tracked = self._markers.get(place_id)
        return tracked.marker if tracked else None

    def set_on_select(self, on_select: Callable[[Place], None] | None) -> None:
        self._on_select = on_select

    def attach(self, map_handle: MapHandle) -> None:
        """Bind to the live map. The info surface is created once here."""
        if self._map is map_handle:
            return
        self._map = map_handle
        self._info_surface = map_handle.create_info_surface()

    def reconcile(self, places: Sequence[Place], selected_id: str | None) -> None:
        if self._map is None:
            self._logger.debug("marker_reconcile_skipped_without_map")
            return

        target = {place.id: place for place in places}
        for place_id in [pid for pid in self._markers if pid not in target]:
            tracked = self._markers.pop(place_id)
            tracked.marker.remove()
            if place_id == self._info_anchor_id:
                self._close_info_surface()

        created = 0
        for place_id, place in target.items():
            tracked = self._markers.get(place_id)
            if tracked is None:
                marker = self._map.create_marker(place.position, title=place.name, kind="place")
                marker.add_click_listener(self._click_handler(place_id))
                self._markers[place_id] = _TrackedMarker(marker=marker, place=place)
                created += 1
            else:
                if tracked.place.position != place.position:
                    tracked.marker.set_position(place.position)
                tracked.place = place

        self._apply_highlight(selected_id)
        self._logger.debug(
            "markers_reconciled",
            extra={"live": len(self._markers), "created": created, "selected_id": selected_id},
        )

    def sync_user_marker(self, position: Coordinate | None) -> None:
        if self._map is None:
            return
        if position is None:
            if self._user_marker is not None:
                self._user_marker.remove()
                self._user_marker = None
            return
        if self._user_marker is None:
            self._user_marker = self._map.create_marker(position, title=USER_MARKER_TITLE, kind="user")
        else:
            self._user_marker.set_position(position)

    def clear(self) -> None:
        """Remove every marker and close the info surface."""
        self._cancel_highlight_timer()
        for tracked in self._markers.values():
            tracked.marker.remove()
        self._markers.clear()
        self.sync_user_marker(None)
        self._close_info_surface()

    def _click_handler(self, place_id: str) -> Callable[[], None]:
        def _handle() -> None:
            tracked = self._markers.get(place_id)
            if tracked is None:
                return
            if self._on_select is not None:
                self._on_select(tracked.place)
            if self._info_surface is not None:
                self._info_surface.open(info_surface_content(tracked.place), tracked.marker)
                self._info_anchor_id = place_id

        return _handle

    def _close_info_surface(self) -> None:
        self._info_anchor_id = None
        if self._info_surface is not None:
            self._info_surface.close()

    def _apply_highlight(self, selected_id: str | None) -> None:
        self._cancel_highlight_timer()
        selected: MarkerObject | None = None
        for place_id, tracked in self._markers.items():
            if place_id == selected_id:
                selected = tracked.marker
            else:
                tracked.marker.set_highlighted(False)

        if selected is None:
            return
        selected.set_highlighted(True)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Outside an event loop the highlight stays until the next reconcile.
            return
        self._highlight_timer = loop.call_later(self._highlight_seconds, selected.set_highlighted, False)

    def _cancel_highlight_timer(self) -> None:
        if self._highlight_timer is not None:
            self._highlight_timer.cancel()
            self._highlight_timer = None
