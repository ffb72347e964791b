"""
Organizer authoring on top of the map viewport.

Two editors live here:

- OrganizerMapCanvas: booth move/resize. Moves are applied to a temporary
  overlay rect while the pointer is down; the booth list itself is only
  touched when the pointer lifts and the final rect is committed.
- AnchorCanvas: point-by-point collection of entrances, walkway points,
  blocked-zone polygons and the allowed area, all normalized to the map.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum

from . import geometry, overlay
from .events import EventHandler
from .gestures import GestureKind, GestureRecognizer
from .types import AnchorSet, Booth, BoothPatch, Point, Rect, Venue
from .viewport import AUTHORING, ViewportController, ViewProfile

logger = logging.getLogger(__name__)

MIN_BOOTH_SIZE = 20.0


class DragMode(str, Enum):
    MOVE = "move"
    RESIZE = "resize"


@dataclass
class BoothDragSession:
    """One booth move/resize, from booth pointer-down to pointer-up."""

    booth_id: str
    mode: DragMode
    origin: Rect
    start: Point
    pointer_id: int
    temp_rect: Rect | None = None

    def rect_at(self, x: float, y: float, scale: float, min_size: float) -> Rect:
        """The booth rect for the pointer at screen ``(x, y)``."""
        # Editing happens in world space, so screen deltas are divided by scale
        dx = (x - self.start.x) / scale
        dy = (y - self.start.y) / scale
        if self.mode is DragMode.MOVE:
            return replace(
                self.origin,
                x=round(self.origin.x + dx),
                y=round(self.origin.y + dy),
            )
        return replace(
            self.origin,
            w=max(min_size, round(self.origin.w + dx)),
            h=max(min_size, round(self.origin.h + dy)),
        )

    def update(self, x: float, y: float, scale: float, min_size: float) -> Rect:
        self.temp_rect = self.rect_at(x, y, scale, min_size)
        return self.temp_rect

    def is_unmoved(self, rect: Rect, scale: float, min_size: float) -> bool:
        # Fractional origins snap on the first update; that alone is not a move
        return rect == self.origin or rect == self.rect_at(
            self.start.x, self.start.y, scale, min_size
        )


def build_geometry_patch(
    session: BoothDragSession,
    final: Rect,
    map_width: float | None,
    map_height: float | None,
) -> BoothPatch:
    """Partial update for a finished drag, with normalized fields when possible."""
    if session.mode is DragMode.MOVE:
        patch = BoothPatch(pos_x=final.x, pos_y=final.y)
    else:
        patch = BoothPatch(width=final.w, height=final.h)

    if map_width and map_height:
        x_norm, y_norm, w_norm, h_norm = geometry.normalize_rect(final, map_width, map_height)
        patch.pos_x_norm = x_norm
        patch.pos_y_norm = y_norm
        patch.width_norm = w_norm
        patch.height_norm = h_norm
    return patch


class _CanvasBase:
    """Viewport plus recognizer plumbing shared by the authoring canvases."""

    def __init__(self, profile: ViewProfile):
        self.viewport = ViewportController(profile)
        self.recognizer = GestureRecognizer(self.viewport)
        self.image_url: str | None = None

    @property
    def on_view_change(self) -> EventHandler:
        return self.viewport.on_view_change

    @property
    def known_map_size(self) -> tuple[float | None, float | None]:
        return self.viewport.known_map_size

    def set_venue(self, venue: Venue) -> None:
        self.image_url = venue.image_url
        self.viewport.set_map(
            venue.image_url,
            venue.natural_width,
            venue.natural_height,
            venue.layout_version,
        )

    def set_container_size(self, width: float, height: float) -> None:
        self.viewport.set_container_size(width, height)

    def image_loaded(self, width: float, height: float) -> None:
        self.viewport.set_natural_size(width, height)

    def wheel(self, delta_y: float, x: float, y: float) -> None:
        self.recognizer.wheel(delta_y, x, y)

    def zoom_in(self) -> None:
        self.viewport.zoom_in()

    def zoom_out(self) -> None:
        self.viewport.zoom_out()

    def fit(self) -> bool:
        return self.viewport.fit()


class OrganizerMapCanvas(_CanvasBase):
    """Booth placement editor.

    Pointer-downs on a booth start a move (or a resize when they hit the
    selected booth's handle); everything else pans and zooms the map.
    Committed geometry is announced through ``on_booth_update(booth_id,
    patch)``; selection changes through ``on_booth_select(booth_id | None)``.
    """

    def __init__(self, profile: ViewProfile = AUTHORING, min_booth_size: float = MIN_BOOTH_SIZE):
        super().__init__(profile)
        self.min_booth_size = min_booth_size
        self._booths: list[Booth] = []
        self._selected_booth_id: str | None = None
        self._drag: BoothDragSession | None = None

        self.on_booth_select = EventHandler()
        self.on_booth_update = EventHandler()
        self.on_episode_end = self.recognizer.on_episode_end

        self.recognizer.on_tap.add_listener(self._handle_map_tap)

    # State
    @property
    def booths(self) -> list[Booth]:
        return self._booths

    @property
    def selected_booth_id(self) -> str | None:
        return self._selected_booth_id

    @property
    def drag_session(self) -> BoothDragSession | None:
        return self._drag

    def set_booths(self, booths: Iterable[Booth]) -> None:
        self._booths = list(booths)
        if self._selected_booth_id and self._find(self._selected_booth_id) is None:
            self._selected_booth_id = None

    def select_booth(self, booth_id: str | None) -> None:
        if booth_id == self._selected_booth_id:
            return
        self._selected_booth_id = booth_id
        self.on_booth_select.invoke(booth_id)

    def resolve(self, booth: Booth) -> Rect:
        width, height = self.known_map_size
        return geometry.resolve_rect(booth, width, height)

    # Pointer input
    def pointer_down(
        self,
        pointer_id: int,
        x: float,
        y: float,
        booth_id: str | None = None,
        on_handle: bool = False,
    ) -> None:
        if self._drag is not None:
            return
        booth = self._find(booth_id) if booth_id else None
        # A finger joining an active map gesture becomes part of it, booth or not
        if booth is None or self.recognizer.session is not None:
            self.recognizer.pointer_down(pointer_id, x, y)
            return

        # The resize handle only exists on the already-selected booth
        resize = on_handle and booth.id == self._selected_booth_id
        self.select_booth(booth.id)
        self._drag = BoothDragSession(
            booth_id=booth.id,
            mode=DragMode.RESIZE if resize else DragMode.MOVE,
            origin=self.resolve(booth),
            start=Point(x, y),
            pointer_id=pointer_id,
        )

    def pointer_move(self, pointer_id: int, x: float, y: float) -> None:
        drag = self._drag
        if drag is not None and pointer_id == drag.pointer_id:
            drag.update(x, y, self.viewport.scale, self.min_booth_size)
            return
        self.recognizer.pointer_move(pointer_id, x, y)

    def pointer_up(self, pointer_id: int, x: float, y: float) -> None:
        self._end_pointer(pointer_id, x, y)

    def pointer_cancel(self, pointer_id: int, x: float, y: float) -> None:
        self._end_pointer(pointer_id, x, y)

    def pointer_leave(self, pointer_id: int, x: float, y: float) -> None:
        self._end_pointer(pointer_id, x, y)

    def frame(self) -> overlay.OverlayFrame:
        width, height = self.known_map_size
        world_w, world_h = self.viewport.world_size
        overrides = None
        if self._drag is not None and self._drag.temp_rect is not None:
            overrides = {self._drag.booth_id: self._drag.temp_rect}
        transform = self.viewport.transform
        return overlay.OverlayFrame(
            transform=transform,
            map_rect=overlay.map_rect(transform, world_w, world_h),
            booths=overlay.project_booths(
                self._booths,
                transform,
                width,
                height,
                selected_booth_id=self._selected_booth_id,
                overrides=overrides,
            ),
        )

    def _end_pointer(self, pointer_id: int, x: float, y: float) -> None:
        drag = self._drag
        if drag is None or pointer_id != drag.pointer_id:
            self.recognizer.pointer_up(pointer_id, x, y)
            return

        self._drag = None
        scale = self.viewport.scale
        final = drag.update(x, y, scale, self.min_booth_size)
        if drag.is_unmoved(final, scale, self.min_booth_size):
            self.recognizer.on_episode_end.invoke(GestureKind.TAP)
            return

        width, height = self.known_map_size
        patch = build_geometry_patch(drag, final, width, height)
        logger.debug(f"Booth {drag.booth_id} {drag.mode.value} committed: {final}")
        self.recognizer.on_episode_end.invoke(
            GestureKind.DRAG if drag.mode is DragMode.MOVE else GestureKind.RESIZE
        )
        self.on_booth_update.invoke(drag.booth_id, patch)

    def _handle_map_tap(self, target: str | None, position: Point) -> None:
        # Empty-space tap clears the selection
        self.select_booth(None)

    def _find(self, booth_id: str | None) -> Booth | None:
        for booth in self._booths:
            if booth.id == booth_id:
                return booth
        return None


class AnchorMode(str, Enum):
    ENTRANCE = "ENTRANCE"
    WALKWAY = "WALKWAY"
    BLOCKED = "BLOCKED"
    ALLOWED = "ALLOWED"


def add_anchor_point(anchors: AnchorSet, mode: AnchorMode, point: Point) -> AnchorSet:
    """Return a copy of ``anchors`` with one normalized point appended."""
    if mode is AnchorMode.ENTRANCE:
        return replace(anchors, entrances=[*anchors.entrances, point])
    if mode is AnchorMode.WALKWAY:
        return replace(anchors, walkway=[*anchors.walkway, point])
    if mode is AnchorMode.BLOCKED:
        zones = [list(zone) for zone in anchors.blocked_zones] or [[]]
        zones[-1].append(point)
        return replace(anchors, blocked_zones=zones)
    allowed = [*(anchors.allowed_area or []), point]
    return replace(anchors, allowed_area=allowed)


class AnchorCanvas(_CanvasBase):
    """Anchor annotation editor.

    Taps inside the map add a point in the active mode; with no mode the map
    only pans and zooms. Nothing is sent to the server here: the whole
    document is saved explicitly by the hosting session.
    """

    def __init__(self, profile: ViewProfile = AUTHORING, anchors: AnchorSet | None = None):
        super().__init__(profile)
        self.mode: AnchorMode | None = None
        self._anchors = anchors or AnchorSet()
        self.on_change = EventHandler()
        self.recognizer.on_tap.add_listener(self._handle_tap)

    @property
    def anchors(self) -> AnchorSet:
        return self._anchors

    def set_anchors(self, anchors: AnchorSet) -> None:
        self._anchors = anchors

    def set_mode(self, mode: AnchorMode | None) -> None:
        self.mode = mode

    def add_point(self, point: Point) -> bool:
        """Append a normalized point in the current mode. False when inert."""
        if self.mode is None:
            return False
        self._update(add_anchor_point(self._anchors, self.mode, point))
        return True

    def start_blocked_zone(self) -> None:
        """Open a new blocked polygon unless the last one is still empty."""
        zones = self._anchors.blocked_zones
        if zones and not zones[-1]:
            return
        self._update(replace(self._anchors, blocked_zones=[*zones, []]))

    def undo_walkway(self) -> None:
        if self._anchors.walkway:
            self._update(replace(self._anchors, walkway=self._anchors.walkway[:-1]))

    def clear_walkway(self) -> None:
        self._update(replace(self._anchors, walkway=[]))

    def clear_blocked_zones(self) -> None:
        self._update(replace(self._anchors, blocked_zones=[]))

    def clear_allowed_area(self) -> None:
        self._update(replace(self._anchors, allowed_area=None))

    def pointer_down(self, pointer_id: int, x: float, y: float) -> None:
        self.recognizer.pointer_down(pointer_id, x, y)

    def pointer_move(self, pointer_id: int, x: float, y: float) -> None:
        self.recognizer.pointer_move(pointer_id, x, y)

    def pointer_up(self, pointer_id: int, x: float, y: float) -> None:
        self.recognizer.pointer_up(pointer_id, x, y)

    def pointer_cancel(self, pointer_id: int, x: float, y: float) -> None:
        self.recognizer.pointer_cancel(pointer_id, x, y)

    def pointer_leave(self, pointer_id: int, x: float, y: float) -> None:
        self.recognizer.pointer_leave(pointer_id, x, y)

    def screen_to_normalized(self, x: float, y: float) -> Point | None:
        """Normalized map position under a screen point; None off the map."""
        world = self.viewport.screen_to_world(x, y)
        width, height = self.viewport.world_size
        nx, ny = world.x / width, world.y / height
        if not (0.0 <= nx <= 1.0 and 0.0 <= ny <= 1.0):
            return None
        return Point(nx, ny)

    def frame(self) -> overlay.OverlayFrame:
        width, height = self.viewport.world_size
        transform = self.viewport.transform
        return overlay.OverlayFrame(
            transform=transform,
            map_rect=overlay.map_rect(transform, width, height),
            anchors=overlay.project_anchors(self._anchors, transform, width, height),
        )

    def _handle_tap(self, target: str | None, position: Point) -> None:
        if self.mode is None:
            return
        point = self.screen_to_normalized(position.x, position.y)
        if point is None:
            logger.debug(f"Ignoring anchor tap outside the map at {position}")
            return
        self.add_point(point)

    def _update(self, anchors: AnchorSet) -> None:
        self._anchors = anchors
        self.on_change.invoke(anchors)
