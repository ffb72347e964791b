"""
Data types for the MakanX map engine.

All types use snake_case naming; the camelCase wire shapes live in adapters.py.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class _Unset:
    """Marker for a partial-update field that was not supplied."""

    _instance: "_Unset | None" = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


@dataclass(frozen=True)
class Point:
    """A 2D point in whichever space the caller is working in."""

    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle (top-left corner plus size)."""

    x: float
    y: float
    w: float
    h: float

    @property
    def center(self) -> Point:
        return Point(self.x + self.w / 2, self.y + self.h / 2)


@dataclass(frozen=True)
class ViewportTransform:
    """Translation plus uniform scale mapping world space onto screen space."""

    translate_x: float = 0.0
    translate_y: float = 0.0
    scale: float = 1.0


@dataclass(frozen=True)
class ScaleBounds:
    """Inclusive zoom limits for one view context."""

    min_scale: float
    max_scale: float

    def clamp(self, scale: float) -> float:
        return max(self.min_scale, min(self.max_scale, scale))


@dataclass
class VendorRef:
    """Vendor summary embedded in a booth."""

    id: str
    name: str


@dataclass
class Vendor:
    """Vendor record as listed in the organizer editor."""

    id: str
    name: str
    category: str | None = None
    price_min: float = 0.0
    price_max: float = 0.0
    description: str | None = None
    avg_prep_time: float = 0.0
    image_url: str | None = None


@dataclass
class Booth:
    """Booth geometry plus its (optional) vendor assignment.

    Geometry is held in absolute world pixels and, when the server has
    migrated the booth, additionally as fractions of the map size. Read it
    through geometry.resolve_rect, never directly.
    """

    id: str
    label: str = ""
    pos_x: float = 0.0
    pos_y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    pos_x_norm: float | None = None
    pos_y_norm: float | None = None
    width_norm: float | None = None
    height_norm: float | None = None
    vendor: VendorRef | None = None
    queue_min: float | None = None

    @property
    def vendor_id(self) -> str | None:
        return self.vendor.id if self.vendor else None

    @property
    def has_normalized(self) -> bool:
        return (
            self.pos_x_norm is not None
            and self.pos_y_norm is not None
            and self.width_norm is not None
            and self.height_norm is not None
        )


@dataclass
class BoothPatch:
    """Partial booth update; None (or UNSET for vendor_id) means "leave as is"."""

    label: str | None = None
    pos_x: float | None = None
    pos_y: float | None = None
    width: float | None = None
    height: float | None = None
    pos_x_norm: float | None = None
    pos_y_norm: float | None = None
    width_norm: float | None = None
    height_norm: float | None = None
    # None unassigns the vendor, UNSET leaves the assignment untouched
    vendor_id: Any = UNSET

    def is_empty(self) -> bool:
        return self.vendor_id is UNSET and all(
            getattr(self, name) is None
            for name in (
                "label",
                "pos_x",
                "pos_y",
                "width",
                "height",
                "pos_x_norm",
                "pos_y_norm",
                "width_norm",
                "height_norm",
            )
        )


@dataclass
class Venue:
    """Read-only snapshot of an event's map."""

    id: str
    display_name: str
    image_url: str | None = None
    natural_width: float | None = None
    natural_height: float | None = None
    # Opaque token; any change means "discard the cached fit"
    layout_version: Any = 0
    slug: str | None = None


@dataclass
class AnchorSet:
    """Organizer annotations, all points normalized to the map image."""

    entrances: list[Point] = field(default_factory=list)
    walkway: list[Point] = field(default_factory=list)
    # The polygon under edit is always the last element
    blocked_zones: list[list[Point]] = field(default_factory=list)
    allowed_area: list[Point] | None = None


@dataclass
class EditorState:
    """Everything the organizer scheduler page renders from."""

    venue: Venue
    booths: list[Booth] = field(default_factory=list)
    vendors: list[Vendor] = field(default_factory=list)

    def find_booth(self, booth_id: str | None) -> Booth | None:
        if booth_id is None:
            return None
        for booth in self.booths:
            if booth.id == booth_id:
                return booth
        return None


@dataclass
class SalesSummary:
    """Revenue totals for an event (amounts in cents)."""

    event_id: str
    event_name: str
    total_revenue: int = 0
    completed_orders: int = 0
    vendors: list[dict[str, Any]] = field(default_factory=list)


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PREPARING = "PREPARING"
    READY = "READY"
    COMPLETED = "COMPLETED"


@dataclass
class OrderDetail:
    """Customer-facing order status."""

    id: str
    status: OrderStatus
    estimated_ready_at: str | None = None
    estimated_prep_min: float | None = None
    booth_label: str | None = None


@dataclass
class WaitTime:
    """Queue estimate for one booth."""

    booth_id: str
    active_orders_count: int = 0
    queue_min: float = 0.0
    updated_at: str | None = None


class UserRole(str, Enum):
    CUSTOMER = "CUSTOMER"
    VENDOR = "VENDOR"
    ORGANIZER = "ORGANIZER"


@dataclass
class AuthUser:
    """Logged-in user as returned by the auth endpoints."""

    id: str
    name: str
    email: str
    role: UserRole
    vendor_id: str | None = None
    event_id: str | None = None
    must_reset_password: bool = False


@dataclass
class CartItem:
    """One line in the customer's basket."""

    menu_item_id: str
    name: str
    price: float
    quantity: int
    vendor_id: str
    vendor_name: str
    booth_id: str
    event_id: str


@dataclass
class MapSnapshot:
    """A venue with its booths, as served to customers and vendors."""

    venue: Venue
    booths: list[Booth] = field(default_factory=list)
    # Set only for the vendor's own map
    my_booth_id: str | None = None


@dataclass
class VendorOrder:
    """An order in a vendor's queue."""

    id: str
    status: OrderStatus
    created_at: str | None = None
    total_amount: int = 0
    estimated_prep_min: float | None = None
    customer_name: str = ""
    items: list[dict[str, Any]] = field(default_factory=list)
