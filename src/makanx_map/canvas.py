"""
Read-only map canvas used by the customer event map and the vendor's
"my booth" view.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from . import geometry, overlay
from .events import EventHandler
from .gestures import GestureRecognizer
from .types import Booth, Point, Venue
from .viewport import VIEWING, ViewportController, ViewProfile

logger = logging.getLogger(__name__)


class MapCanvas:
    """Pan/zoom map with selectable booths.

    The host reports pointer events together with the booth id the pointer
    went down on (hit-test with ``element_at`` if the toolkit cannot tell).
    A tap on a booth reports that booth's vendor through
    ``on_booth_click(vendor_id)``; a tap on empty space (or on a booth with
    no vendor) reports None.

    With ``view_only`` the active vendor is highlighted but the view never
    jumps to it.
    """

    def __init__(self, profile: ViewProfile = VIEWING, view_only: bool = False):
        self.viewport = ViewportController(profile, view_only=view_only)
        self.recognizer = GestureRecognizer(self.viewport)
        self.venue: Venue | None = None
        self._booths: list[Booth] = []
        self._active_vendor_id: str | None = None
        self._wait_minutes: dict[str, float] = {}

        self.on_booth_click = EventHandler()
        self.on_episode_end = self.recognizer.on_episode_end
        self.recognizer.on_tap.add_listener(self._handle_tap)

    @property
    def view_only(self) -> bool:
        return self.viewport.view_only

    @property
    def booths(self) -> list[Booth]:
        return self._booths

    @property
    def active_vendor_id(self) -> str | None:
        return self._active_vendor_id

    @property
    def active_booth_id(self) -> str | None:
        booth = self._booth_for_vendor(self._active_vendor_id)
        return booth.id if booth else None

    def load(self, venue: Venue, booths: Iterable[Booth]) -> None:
        self.venue = venue
        self.viewport.set_map(
            venue.image_url,
            venue.natural_width,
            venue.natural_height,
            venue.layout_version,
        )
        self.set_booths(booths)

    def set_booths(self, booths: Iterable[Booth]) -> None:
        self._booths = list(booths)
        self._focus_active()

    def set_wait_minutes(self, wait_minutes: Mapping[str, float]) -> None:
        self._wait_minutes = dict(wait_minutes)

    def set_active_vendor(self, vendor_id: str | None) -> None:
        self._active_vendor_id = vendor_id
        self._focus_active()

    def set_container_size(self, width: float, height: float) -> None:
        self.viewport.set_container_size(width, height)

    def image_loaded(self, width: float, height: float) -> None:
        self.viewport.set_natural_size(width, height)

    # Input
    def pointer_down(self, pointer_id: int, x: float, y: float, booth_id: str | None = None) -> None:
        self.recognizer.pointer_down(pointer_id, x, y, target=booth_id)

    def pointer_move(self, pointer_id: int, x: float, y: float) -> None:
        self.recognizer.pointer_move(pointer_id, x, y)

    def pointer_up(self, pointer_id: int, x: float, y: float) -> None:
        self.recognizer.pointer_up(pointer_id, x, y)

    def pointer_cancel(self, pointer_id: int, x: float, y: float) -> None:
        self.recognizer.pointer_cancel(pointer_id, x, y)

    def pointer_leave(self, pointer_id: int, x: float, y: float) -> None:
        self.recognizer.pointer_leave(pointer_id, x, y)

    def wheel(self, delta_y: float, x: float, y: float) -> None:
        self.recognizer.wheel(delta_y, x, y)

    def zoom_in(self) -> None:
        self.viewport.zoom_in()

    def zoom_out(self) -> None:
        self.viewport.zoom_out()

    def fit(self) -> bool:
        return self.viewport.fit()

    # Output
    def frame(self) -> overlay.OverlayFrame:
        transform = self.viewport.transform
        width, height = self.viewport.known_map_size
        world_w, world_h = self.viewport.world_size
        return overlay.OverlayFrame(
            transform=transform,
            map_rect=overlay.map_rect(transform, world_w, world_h),
            booths=overlay.project_booths(
                self._booths,
                transform,
                width,
                height,
                active_booth_id=self.active_booth_id,
                wait_minutes=self._wait_minutes,
            ),
        )

    def element_at(self, x: float, y: float) -> str | None:
        """Booth id drawn at a screen point (topmost first), or None."""
        for shape in reversed(self.frame().booths):
            rect = shape.rect
            if rect.x <= x <= rect.x + rect.w and rect.y <= y <= rect.y + rect.h:
                return shape.booth_id
        return None

    def _handle_tap(self, target: str | None, position: Point) -> None:
        booth = self._find(target)
        vendor_id = booth.vendor_id if booth else None
        self.on_booth_click.invoke(vendor_id)

    def _focus_active(self) -> None:
        booth = self._booth_for_vendor(self._active_vendor_id)
        if booth is None:
            return
        width, height = self.viewport.known_map_size
        self.viewport.focus_on(geometry.resolve_rect(booth, width, height))

    def _booth_for_vendor(self, vendor_id: str | None) -> Booth | None:
        if vendor_id is None:
            return None
        for booth in self._booths:
            if booth.vendor_id == vendor_id:
                return booth
        return None

    def _find(self, booth_id: str | None) -> Booth | None:
        if booth_id is None:
            return None
        for booth in self._booths:
            if booth.id == booth_id:
                return booth
        return None
