"""
Viewport controller owning the pan offset and zoom scale of a map view.

The controller is the single writer of the view transform. Gesture input,
zoom buttons, fit and focus requests all go through it, and every change is
announced through ``on_transform_changed`` and ``on_view_change``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from . import geometry
from .events import EventHandler
from .types import Point, Rect, ScaleBounds, ViewportTransform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewProfile:
    """Zoom behaviour for one view context."""

    bounds: ScaleBounds
    zoom_step: float = 0.2
    wheel_sensitivity: float = 0.001
    focus_scale: float = 1.2
    # Fit never zooms in past this scale (None: only the bounds apply)
    max_fit_scale: float | None = None
    tap_move_px: float = 8.0
    default_map_size: float = geometry.DEFAULT_MAP_SIZE


VIEWING = ViewProfile(bounds=ScaleBounds(0.5, 3.0))
AUTHORING = ViewProfile(bounds=ScaleBounds(0.2, 5.0), max_fit_scale=1.0)


class ViewportController:
    """Owns ``{translate_x, translate_y, scale}`` for one map view.

    The transform is recomputed from scratch whenever the map identity
    (image, declared size or layout version) changes. A fit requested before
    the container has a size is remembered and applied once it does.
    """

    def __init__(self, profile: ViewProfile = VIEWING, view_only: bool = False):
        self.profile = profile
        self.view_only = view_only

        self._transform = ViewportTransform()
        self._container_width = 0.0
        self._container_height = 0.0

        self._image_url: str | None = None
        self._declared_width: float | None = None
        self._declared_height: float | None = None
        self._natural_width: float | None = None
        self._natural_height: float | None = None
        self._layout_version: object = None

        self._fit_pending = True

        self.on_transform_changed = EventHandler()
        self.on_view_change = EventHandler()

    # Properties
    @property
    def transform(self) -> ViewportTransform:
        return self._transform

    @property
    def scale(self) -> float:
        return self._transform.scale

    @property
    def bounds(self) -> ScaleBounds:
        return self.profile.bounds

    @property
    def container_size(self) -> tuple[float, float]:
        return self._container_width, self._container_height

    @property
    def has_container(self) -> bool:
        return self._container_width > 0 and self._container_height > 0

    @property
    def fit_pending(self) -> bool:
        return self._fit_pending

    @property
    def declared_size(self) -> tuple[float | None, float | None]:
        return self._declared_width, self._declared_height

    @property
    def known_map_size(self) -> tuple[float | None, float | None]:
        """Declared map size, else the loaded image size; (None, None) if neither."""
        if self._declared_width and self._declared_height:
            return self._declared_width, self._declared_height
        if self._natural_width and self._natural_height:
            return self._natural_width, self._natural_height
        return None, None

    @property
    def world_size(self) -> tuple[float, float]:
        """Declared map size, else the image's natural size, else the default."""
        width = self._declared_width or self._natural_width
        height = self._declared_height or self._natural_height
        return geometry.world_size(width, height, self.profile.default_map_size)

    # Layout inputs
    def set_container_size(self, width: float, height: float) -> None:
        self._container_width = max(0.0, float(width))
        self._container_height = max(0.0, float(height))
        if self._fit_pending:
            self.fit()

    def set_map(
        self,
        image_url: str | None,
        map_width: float | None = None,
        map_height: float | None = None,
        layout_version: object = None,
    ) -> bool:
        """Point the view at a (possibly new) map. Returns True if it re-fit."""
        map_width = map_width or None
        map_height = map_height or None
        changed = (
            image_url != self._image_url
            or map_width != self._declared_width
            or map_height != self._declared_height
            or layout_version != self._layout_version
        )
        if not changed:
            return False

        if image_url != self._image_url:
            self._natural_width = None
            self._natural_height = None
        self._image_url = image_url
        self._declared_width = map_width
        self._declared_height = map_height
        self._layout_version = layout_version
        logger.debug(
            f"Map changed (image={image_url}, layout={layout_version}); re-fitting"
        )
        self._fit_pending = True
        self.fit()
        return True

    def set_natural_size(self, width: float, height: float) -> None:
        """Record the loaded image's pixel size (used when none was declared)."""
        previous = self.world_size
        self._natural_width = width or None
        self._natural_height = height or None
        if self.world_size != previous:
            self._fit_pending = True
            self.fit()

    # Operations
    def fit(self) -> bool:
        """Fit the whole map into the container. False if deferred."""
        world_w, world_h = self.world_size
        fitted = geometry.fit_to_container(
            self._container_width,
            self._container_height,
            world_w,
            world_h,
            self.bounds,
            self.profile.max_fit_scale,
        )
        if fitted is None:
            self._fit_pending = True
            return False
        self._fit_pending = False
        self.set_transform(fitted)
        return True

    def set_transform(self, transform: ViewportTransform) -> None:
        if not geometry.is_finite_transform(transform):
            logger.warning(f"Ignoring non-finite transform {transform}")
            return
        self._transform = transform
        self.on_transform_changed.invoke(transform)
        center = self.view_center()
        if center is not None:
            self.on_view_change.invoke(center)

    def pan_by(self, dx: float, dy: float) -> None:
        self.set_transform(geometry.pan(self._transform, dx, dy))

    def zoom_around_point(self, target_scale: float, anchor_x: float, anchor_y: float) -> None:
        self.set_transform(
            geometry.zoom_around_point(
                self._transform, target_scale, anchor_x, anchor_y, self.bounds
            )
        )

    def zoom_in(self) -> None:
        self._zoom_about_center(self.scale + self.profile.zoom_step)

    def zoom_out(self) -> None:
        self._zoom_about_center(self.scale - self.profile.zoom_step)

    def focus_on(self, rect: Rect) -> bool:
        """Center on a world rect at the focus scale. No-op for view-only maps."""
        if self.view_only or not self.has_container:
            return False
        scale = self.bounds.clamp(self.profile.focus_scale)
        self.set_transform(
            geometry.center_on(rect, self._container_width, self._container_height, scale)
        )
        return True

    def view_center(self) -> Point | None:
        if not self.has_container:
            return None
        return geometry.view_center(
            self._transform, self._container_width, self._container_height
        )

    def screen_to_world(self, x: float, y: float) -> Point:
        return geometry.screen_to_world(Point(x, y), self._transform)

    def world_to_screen(self, x: float, y: float) -> Point:
        return geometry.world_to_screen(Point(x, y), self._transform)

    def _zoom_about_center(self, target_scale: float) -> None:
        self.zoom_around_point(
            target_scale, self._container_width / 2, self._container_height / 2
        )
