"""
Gesture recognition for pointer (mouse, touch, stylus) and wheel input.

A gesture episode runs from the first pointer-down to the last pointer
lifting. Within an episode the recognizer is always in exactly one state:

    Idle -> MaybeDrag -> Drag
    Idle -> Pinch               (2+ pointers down)
    Pinch -> MaybeDrag          (one finger lifts; current pose is the new baseline)

A single pointer only starts panning once it has moved more than
``tap_move_px`` on either axis. Until then nothing moves, so a pointer that
lifts without crossing the threshold is a clean tap and is reported with the
target that received the pointer-down (a booth id, or None for empty space).

Coordinates are container-relative screen pixels.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from . import geometry
from .events import EventHandler
from .types import Point, ViewportTransform
from .viewport import ViewportController

logger = logging.getLogger(__name__)


class GestureMode(str, Enum):
    NONE = "none"
    MAYBE_DRAG = "maybe-drag"
    DRAG = "drag"
    PINCH = "pinch"


class GestureKind(str, Enum):
    """How a finished episode was classified."""

    TAP = "tap"
    PAN = "pan"
    PINCH = "pinch"
    DRAG = "drag"
    RESIZE = "resize"
    INERT = "inert"


@dataclass(frozen=True)
class Idle:
    mode = GestureMode.NONE


@dataclass(frozen=True)
class MaybeDrag:
    start: Point
    start_transform: ViewportTransform
    target: str | None = None
    # False once the episode has pinched; it can no longer end as a tap
    tap_eligible: bool = True
    mode = GestureMode.MAYBE_DRAG


@dataclass(frozen=True)
class Drag:
    start: Point
    start_transform: ViewportTransform
    mode = GestureMode.DRAG


@dataclass(frozen=True)
class Pinch:
    start_transform: ViewportTransform
    start_distance: float
    start_midpoint: Point
    mode = GestureMode.PINCH


GestureState = Idle | MaybeDrag | Drag | Pinch


@dataclass
class PointerSession:
    """Per-episode record; discarded when the last pointer lifts."""

    pointers: dict[int, Point] = field(default_factory=dict)
    state: GestureState = field(default_factory=Idle)
    kind: GestureKind = GestureKind.INERT

    @property
    def mode(self) -> GestureMode:
        return self.state.mode


def exceeds_tap_threshold(dx: float, dy: float, threshold: float) -> bool:
    return abs(dx) > threshold or abs(dy) > threshold


class GestureRecognizer:
    """Turns raw pointer and wheel events into viewport changes and taps."""

    def __init__(self, viewport: ViewportController, tap_move_px: float | None = None):
        self.viewport = viewport
        self.tap_move_px = (
            tap_move_px if tap_move_px is not None else viewport.profile.tap_move_px
        )
        self._session: PointerSession | None = None

        # on_tap(target, position) fires for taps; target is the down-time element
        # id or None, position the screen point where the pointer went down
        self.on_tap = EventHandler()
        # on_episode_end(kind) fires once per episode
        self.on_episode_end = EventHandler()

    @property
    def session(self) -> PointerSession | None:
        return self._session

    @property
    def mode(self) -> GestureMode:
        return self._session.mode if self._session else GestureMode.NONE

    def pointer_down(
        self, pointer_id: int, x: float, y: float, target: str | None = None
    ) -> None:
        if self._session is None:
            self._session = PointerSession()
        session = self._session
        session.pointers[pointer_id] = Point(x, y)

        if len(session.pointers) >= 2:
            self._begin_pinch(session)
            return

        session.state = MaybeDrag(
            start=Point(x, y),
            start_transform=self.viewport.transform,
            target=target,
        )

    def pointer_move(self, pointer_id: int, x: float, y: float) -> None:
        session = self._session
        if session is None or pointer_id not in session.pointers:
            return
        session.pointers[pointer_id] = Point(x, y)
        state = session.state

        if isinstance(state, Pinch):
            if len(session.pointers) < 2:
                return
            p1, p2 = self._pinch_pair(session)
            if state.start_distance == 0:
                # Coincident start has no usable ratio; measure from here instead
                self._begin_pinch(session)
                return
            ratio = geometry.distance(p1, p2) / state.start_distance
            next_scale = self.viewport.bounds.clamp(state.start_transform.scale * ratio)
            self.viewport.zoom_around_point(
                next_scale, state.start_midpoint.x, state.start_midpoint.y
            )
            return

        if len(session.pointers) != 1:
            return

        if isinstance(state, MaybeDrag):
            dx = x - state.start.x
            dy = y - state.start.y
            if not exceeds_tap_threshold(dx, dy, self.tap_move_px):
                return
            state = Drag(start=state.start, start_transform=state.start_transform)
            session.state = state
            if session.kind is GestureKind.INERT:
                session.kind = GestureKind.PAN

        if isinstance(state, Drag):
            self._apply_drag(state, x, y)

    def pointer_up(self, pointer_id: int, x: float, y: float) -> None:
        self._end_pointer(pointer_id, x, y)

    def pointer_cancel(self, pointer_id: int, x: float, y: float) -> None:
        self._end_pointer(pointer_id, x, y)

    def pointer_leave(self, pointer_id: int, x: float, y: float) -> None:
        self._end_pointer(pointer_id, x, y)

    def wheel(self, delta_y: float, x: float, y: float) -> None:
        """Desktop wheel zoom anchored at the cursor."""
        factor = 1 + (-delta_y * self.viewport.profile.wheel_sensitivity)
        self.viewport.zoom_around_point(self.viewport.scale * factor, x, y)

    def reset(self) -> None:
        self._session = None

    def _begin_pinch(self, session: PointerSession) -> None:
        p1, p2 = self._pinch_pair(session)
        session.state = Pinch(
            start_transform=self.viewport.transform,
            start_distance=geometry.distance(p1, p2),
            start_midpoint=geometry.midpoint(p1, p2),
        )
        session.kind = GestureKind.PINCH

    @staticmethod
    def _pinch_pair(session: PointerSession) -> tuple[Point, Point]:
        points = list(session.pointers.values())
        return points[0], points[1]

    def _apply_drag(self, state: Drag, x: float, y: float) -> None:
        # Screen-space pan: translate follows the pointer 1:1 regardless of scale
        start = state.start_transform
        self.viewport.set_transform(
            ViewportTransform(
                translate_x=start.translate_x + (x - state.start.x),
                translate_y=start.translate_y + (y - state.start.y),
                scale=start.scale,
            )
        )

    def _end_pointer(self, pointer_id: int, x: float, y: float) -> None:
        session = self._session
        if session is None or pointer_id not in session.pointers:
            return
        del session.pointers[pointer_id]
        remaining = len(session.pointers)
        state = session.state

        if remaining >= 2:
            self._begin_pinch(session)
            return

        if remaining == 1:
            if isinstance(state, Pinch):
                (last,) = session.pointers.values()
                session.state = MaybeDrag(
                    start=last,
                    start_transform=self.viewport.transform,
                    tap_eligible=False,
                )
            return

        # Last pointer lifted: classify and close the episode
        if isinstance(state, MaybeDrag):
            dx = x - state.start.x
            dy = y - state.start.y
            if exceeds_tap_threshold(dx, dy, self.tap_move_px):
                self._apply_drag(
                    Drag(start=state.start, start_transform=state.start_transform), x, y
                )
                if session.kind is GestureKind.INERT:
                    session.kind = GestureKind.PAN
            elif state.tap_eligible:
                session.kind = GestureKind.TAP

        self._session = None
        if session.kind is GestureKind.TAP:
            logger.debug(f"Tap on {state.target!r} at {state.start}")
            self.on_tap.invoke(state.target, state.start)
        self.on_episode_end.invoke(session.kind)
