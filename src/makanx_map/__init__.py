"""
MakanX map engine

Headless interactive venue map for food-fair events: pan/zoom viewports with
pointer and pinch gestures, booth overlays with wait-time badges, organizer
booth placement and anchor annotation, and an async client for the MakanX
REST API.

Main Classes:
    MapCanvas: customer / vendor map view
    OrganizerMapCanvas: booth move and resize editor
    AnchorCanvas: entrance, walkway and zone annotation editor
    MakanxApi: async REST client

Examples:
    # Print a fitted layout (after installation)
    makanx-map layout demo-fair --width 1280 --height 800

    # Drive a canvas programmatically
    from makanx_map import MapCanvas
    canvas = MapCanvas()
    canvas.set_container_size(800, 600)
    canvas.load(venue, booths)
    canvas.pointer_down(1, 120, 80, booth_id="b-a1")
    canvas.pointer_up(1, 121, 80)
    frame = canvas.frame()
"""

from importlib.metadata import PackageNotFoundError, version

from .api import ApiError, MakanxApi
from .canvas import MapCanvas
from .editing import AnchorCanvas, AnchorMode, OrganizerMapCanvas
from .gestures import GestureKind, GestureRecognizer
from .types import AnchorSet, Booth, BoothPatch, Point, Rect, Venue, ViewportTransform
from .viewport import AUTHORING, VIEWING, ViewportController, ViewProfile

__all__ = [
    # Canvases
    "MapCanvas",
    "OrganizerMapCanvas",
    "AnchorCanvas",
    "AnchorMode",
    # Engine parts
    "ViewportController",
    "ViewProfile",
    "VIEWING",
    "AUTHORING",
    "GestureRecognizer",
    "GestureKind",
    # Remote API
    "MakanxApi",
    "ApiError",
    # Data types
    "AnchorSet",
    "Booth",
    "BoothPatch",
    "Point",
    "Rect",
    "Venue",
    "ViewportTransform",
]

try:
    __version__ = version("makanx-map")
except PackageNotFoundError:
    __version__ = "unknown"
