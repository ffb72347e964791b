"""Coordinate transforms between screen, world and normalized map space.

Three spaces are involved:

1. Screen: container-relative pixels as reported by pointer events.
2. World: map-space pixels sized ``map_width x map_height``.
3. Normalized: fractions in [0, 1] of the map's natural size.

``screen = world * scale + translate`` and its inverse are the only mappings
between screen and world. Everything here is pure arithmetic.
"""

from __future__ import annotations

import math

from .types import Booth, Point, Rect, ScaleBounds, ViewportTransform

DEFAULT_MAP_SIZE = 1000.0


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def world_size(
    map_width: float | None,
    map_height: float | None,
    default: float = DEFAULT_MAP_SIZE,
) -> tuple[float, float]:
    """Return usable world dimensions, substituting the default for 0/None."""
    width = map_width if map_width and map_width > 0 else default
    height = map_height if map_height and map_height > 0 else default
    return float(width), float(height)


def world_to_screen(point: Point, transform: ViewportTransform) -> Point:
    return Point(
        point.x * transform.scale + transform.translate_x,
        point.y * transform.scale + transform.translate_y,
    )


def screen_to_world(point: Point, transform: ViewportTransform) -> Point:
    return Point(
        (point.x - transform.translate_x) / transform.scale,
        (point.y - transform.translate_y) / transform.scale,
    )


def rect_to_screen(rect: Rect, transform: ViewportTransform) -> Rect:
    origin = world_to_screen(Point(rect.x, rect.y), transform)
    return Rect(origin.x, origin.y, rect.w * transform.scale, rect.h * transform.scale)


def resolve_rect(booth: Booth, map_width: float | None, map_height: float | None) -> Rect:
    """Return a booth's world rectangle.

    Normalized geometry wins whenever all four fractions are present and the
    map size is known; otherwise the absolute fields are used as-is. Every
    render and hit-test path reads booth geometry through this function.
    """
    if booth.has_normalized and map_width and map_height:
        return Rect(
            booth.pos_x_norm * map_width,
            booth.pos_y_norm * map_height,
            booth.width_norm * map_width,
            booth.height_norm * map_height,
        )
    return Rect(booth.pos_x, booth.pos_y, booth.width, booth.height)


def normalize_rect(
    rect: Rect, map_width: float, map_height: float
) -> tuple[float, float, float, float]:
    """Express a world rectangle as fractions of the map size."""
    return (
        rect.x / map_width,
        rect.y / map_height,
        rect.w / map_width,
        rect.h / map_height,
    )


def fit_to_container(
    container_width: float,
    container_height: float,
    map_width: float | None,
    map_height: float | None,
    bounds: ScaleBounds,
    max_fit_scale: float | None = None,
) -> ViewportTransform | None:
    """Scale the map to fit the container and center it.

    Returns None while the container has no size yet; the caller must defer
    fitting rather than apply a non-finite transform.
    """
    if container_width <= 0 or container_height <= 0:
        return None

    world_w, world_h = world_size(map_width, map_height)
    scale = bounds.clamp(min(container_width / world_w, container_height / world_h))
    if max_fit_scale is not None:
        scale = min(scale, max_fit_scale)

    return ViewportTransform(
        translate_x=(container_width - world_w * scale) / 2,
        translate_y=(container_height - world_h * scale) / 2,
        scale=scale,
    )


def zoom_around_point(
    transform: ViewportTransform,
    target_scale: float,
    anchor_x: float,
    anchor_y: float,
    bounds: ScaleBounds,
) -> ViewportTransform:
    """Change scale while keeping the world point under the anchor fixed."""
    scale = bounds.clamp(target_scale)
    world = screen_to_world(Point(anchor_x, anchor_y), transform)
    return ViewportTransform(
        translate_x=anchor_x - world.x * scale,
        translate_y=anchor_y - world.y * scale,
        scale=scale,
    )


def pan(transform: ViewportTransform, dx: float, dy: float) -> ViewportTransform:
    return ViewportTransform(
        translate_x=transform.translate_x + dx,
        translate_y=transform.translate_y + dy,
        scale=transform.scale,
    )


def center_on(
    rect: Rect,
    container_width: float,
    container_height: float,
    scale: float,
) -> ViewportTransform:
    """Place a world rectangle's centroid at the container center."""
    center = rect.center
    return ViewportTransform(
        translate_x=container_width / 2 - center.x * scale,
        translate_y=container_height / 2 - center.y * scale,
        scale=scale,
    )


def view_center(
    transform: ViewportTransform, container_width: float, container_height: float
) -> Point:
    """World point currently displayed at the middle of the container."""
    return screen_to_world(Point(container_width / 2, container_height / 2), transform)


def distance(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def midpoint(a: Point, b: Point) -> Point:
    return Point((a.x + b.x) / 2, (a.y + b.y) / 2)


def is_finite_transform(transform: ViewportTransform) -> bool:
    return (
        math.isfinite(transform.translate_x)
        and math.isfinite(transform.translate_y)
        and math.isfinite(transform.scale)
        and transform.scale > 0
    )
