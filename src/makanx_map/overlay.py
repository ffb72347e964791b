"""Projection of booths and anchors into screen space.

Everything here is a pure function of (transform, map size, entities). The
results are plain records a host can draw with any toolkit. Booth geometry is
read only through geometry.resolve_rect.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from . import geometry
from .types import AnchorSet, Booth, Point, Rect, ViewportTransform

RESIZE_HANDLE_SIZE = 16.0

BLOCKED_FILL = "rgba(239, 68, 68, 0.25)"
BLOCKED_STROKE = "#ef4444"
ALLOWED_FILL = "rgba(34, 197, 94, 0.2)"
ALLOWED_STROKE = "#22c55e"
WALKWAY_STROKE = "#3b82f6"


class BoothVisualState(str, Enum):
    NORMAL = "normal"
    ACTIVE = "active"
    SELECTED = "selected"
    DRAGGING = "dragging"


@dataclass(frozen=True)
class BoothShape:
    booth_id: str
    rect: Rect
    world_rect: Rect
    state: BoothVisualState
    label: str
    vendor_id: str | None = None
    vendor_name: str | None = None
    wait_badge: str | None = None
    resize_handle: Rect | None = None

    @property
    def title(self) -> str:
        """Text shown in the booth: the vendor name, else the label placeholder."""
        return self.vendor_name if self.vendor_id else self.label


@dataclass(frozen=True)
class Polygon:
    points: list[Point]
    fill: str
    stroke: str


@dataclass(frozen=True)
class AnchorOverlay:
    entrances: list[Point] = field(default_factory=list)
    walkway_markers: list[Point] = field(default_factory=list)
    walkway_path: list[Point] = field(default_factory=list)
    blocked_zones: list[Polygon] = field(default_factory=list)
    allowed_area: Polygon | None = None


@dataclass(frozen=True)
class OverlayFrame:
    """One renderable frame: map placement, booths (draw order) and anchors."""

    transform: ViewportTransform
    map_rect: Rect
    booths: list[BoothShape] = field(default_factory=list)
    anchors: AnchorOverlay | None = None


def wait_badge(minutes: float | None) -> str | None:
    if minutes is None:
        return None
    return f"~{round(minutes)} min"


def project_booths(
    booths: Iterable[Booth],
    transform: ViewportTransform,
    map_width: float | None,
    map_height: float | None,
    active_booth_id: str | None = None,
    selected_booth_id: str | None = None,
    overrides: Mapping[str, Rect] | None = None,
    wait_minutes: Mapping[str, float] | None = None,
) -> list[BoothShape]:
    """Project booths to screen rectangles.

    ``overrides`` carries temporary world rects (an in-progress drag) that
    replace the booth's stored geometry for display only. The highlighted
    booth is moved to the end so it draws on top.
    """
    shapes: list[BoothShape] = []
    raised: list[BoothShape] = []
    for booth in booths:
        world = geometry.resolve_rect(booth, map_width, map_height)
        dragging = overrides is not None and booth.id in overrides
        if dragging:
            world = overrides[booth.id]

        if dragging:
            state = BoothVisualState.DRAGGING
        elif booth.id == selected_booth_id:
            state = BoothVisualState.SELECTED
        elif booth.id == active_booth_id:
            state = BoothVisualState.ACTIVE
        else:
            state = BoothVisualState.NORMAL

        handle = None
        if booth.id == selected_booth_id:
            handle = geometry.rect_to_screen(
                Rect(
                    world.x + world.w - RESIZE_HANDLE_SIZE,
                    world.y + world.h - RESIZE_HANDLE_SIZE,
                    RESIZE_HANDLE_SIZE,
                    RESIZE_HANDLE_SIZE,
                ),
                transform,
            )

        shape = BoothShape(
            booth_id=booth.id,
            rect=geometry.rect_to_screen(world, transform),
            world_rect=world,
            state=state,
            label=booth.label,
            vendor_id=booth.vendor_id,
            vendor_name=booth.vendor.name if booth.vendor else None,
            wait_badge=wait_badge((wait_minutes or {}).get(booth.id)) if booth.vendor else None,
            resize_handle=handle,
        )
        if state is BoothVisualState.NORMAL:
            shapes.append(shape)
        else:
            raised.append(shape)
    return shapes + raised


def project_anchors(
    anchors: AnchorSet,
    transform: ViewportTransform,
    map_width: float,
    map_height: float,
) -> AnchorOverlay:
    """Project normalized anchor points through world space onto the screen."""

    def to_screen(point: Point) -> Point:
        return geometry.world_to_screen(
            Point(point.x * map_width, point.y * map_height), transform
        )

    walkway = [to_screen(p) for p in anchors.walkway]
    blocked = [
        Polygon([to_screen(p) for p in zone], BLOCKED_FILL, BLOCKED_STROKE)
        for zone in anchors.blocked_zones
        if zone
    ]
    allowed = None
    if anchors.allowed_area:
        allowed = Polygon(
            [to_screen(p) for p in anchors.allowed_area], ALLOWED_FILL, ALLOWED_STROKE
        )

    return AnchorOverlay(
        entrances=[to_screen(p) for p in anchors.entrances],
        walkway_markers=walkway,
        walkway_path=walkway if len(walkway) >= 2 else [],
        blocked_zones=blocked,
        allowed_area=allowed,
    )


def map_rect(transform: ViewportTransform, map_width: float, map_height: float) -> Rect:
    return geometry.rect_to_screen(Rect(0.0, 0.0, map_width, map_height), transform)
