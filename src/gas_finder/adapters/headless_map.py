"""In-memory map engine.

Records markers, pans and popups instead of drawing them, so the pipeline can
run from the CLI and in CI where no browser map exists. ``drag_to`` and
``HeadlessMarker.click`` stand in for user interaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from gas_finder.models import Coordinate


@dataclass(slots=True, eq=False)
class HeadlessMarker:
    position: Coordinate
    title: str
    kind: str = "place"
    highlighted: bool = False
    removed: bool = False
    _click_listeners: list[Callable[[], None]] = field(default_factory=list)

    def set_position(self, position: Coordinate) -> None:
        self.position = position

    def set_highlighted(self, highlighted: bool) -> None:
        self.highlighted = highlighted

    def add_click_listener(self, callback: Callable[[], None]) -> None:
        self._click_listeners.append(callback)

    def remove(self) -> None:
        self.removed = True
        self.highlighted = False

    def click(self) -> None:
        for callback in list(self._click_listeners):
            callback()


@dataclass(slots=True)
class HeadlessInfoSurface:
    content: str | None = None
    anchor: HeadlessMarker | None = None

    @property
    def is_open(self) -> bool:
        return self.anchor is not None

    def open(self, content: str, anchor: HeadlessMarker) -> None:
        self.content = content
        self.anchor = anchor

    def close(self) -> None:
        self.content = None
        self.anchor = None


class HeadlessMap:
    """Map instance that keeps its view and overlays in memory."""

    def __init__(self, container: str, center: Coordinate, options: dict[str, Any]) -> None:
        self.container = container
        self.options = dict(options)
        self._center = center
        self._idle_listeners: list[Callable[[], None]] = []
        self.markers: list[HeadlessMarker] = []
        self.info_surfaces: list[HeadlessInfoSurface] = []
        self.pan_history: list[Coordinate] = []

    def pan_to(self, center: Coordinate) -> None:
        self.pan_history.append(center)
        self._center = center
        self._emit_idle()

    def get_center(self) -> Coordinate | None:
        return self._center

    def add_idle_listener(self, callback: Callable[[], None]) -> None:
        self._idle_listeners.append(callback)

    def create_marker(self, position: Coordinate, *, title: str, kind: str = "place") -> HeadlessMarker:
        marker = HeadlessMarker(position=position, title=title, kind=kind)
        self.markers.append(marker)
        return marker

    def create_info_surface(self) -> HeadlessInfoSurface:
        surface = HeadlessInfoSurface()
        self.info_surfaces.append(surface)
        return surface

    def drag_to(self, center: Coordinate) -> None:
        """Simulate a user pan/zoom that settles on ``center``."""
        self._center = center
        self._emit_idle()

    def live_markers(self, kind: str | None = None) -> list[HeadlessMarker]:
        return [m for m in self.markers if not m.removed and (kind is None or m.kind == kind)]

    def _emit_idle(self) -> None:
        for callback in list(self._idle_listeners):
            callback()


class HeadlessMapCapability:
    """Map capability that builds ``HeadlessMap`` instances."""

    def __init__(self) -> None:
        self.maps: list[HeadlessMap] = []

    def create_map(self, container: str, center: Coordinate, options: dict[str, Any]) -> HeadlessMap:
        map_ = HeadlessMap(container, center, options)
        self.maps.append(map_)
        return map_


async def load_headless_capability() -> HeadlessMapCapability:
    return HeadlessMapCapability()
