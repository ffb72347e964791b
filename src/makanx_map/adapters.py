"""
Adapters for converting between snake_case Python types and the camelCase
JSON shapes of the MakanX REST API.

This is the only module that knows wire field names.
"""

import json
import logging
import math
import re
from typing import Any

from .types import (
    UNSET,
    AnchorSet,
    AuthUser,
    Booth,
    BoothPatch,
    CartItem,
    EditorState,
    MapSnapshot,
    OrderDetail,
    OrderStatus,
    Point,
    SalesSummary,
    UserRole,
    Vendor,
    VendorOrder,
    VendorRef,
    Venue,
    WaitTime,
)

logger = logging.getLogger(__name__)

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)

_PATCH_FIELDS = {
    "label": "label",
    "pos_x": "posX",
    "pos_y": "posY",
    "width": "width",
    "height": "height",
    "pos_x_norm": "posXNorm",
    "pos_y_norm": "posYNorm",
    "width_norm": "widthNorm",
    "height_norm": "heightNorm",
}


def to_absolute_url(path_or_url: str | None, base_url: str | None) -> str | None:
    """Resolve a server-relative asset path against the API base URL."""
    if not path_or_url:
        return None
    if _ABSOLUTE_URL.match(path_or_url):
        return path_or_url
    base = (base_url or "").rstrip("/")
    path = path_or_url if path_or_url.startswith("/") else f"/{path_or_url}"
    return f"{base}{path}" if base else path


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def vendor_ref_from_wire(data: dict[str, Any] | None) -> VendorRef | None:
    if not data or not data.get("id"):
        return None
    return VendorRef(id=str(data["id"]), name=data.get("name") or "")


def booth_from_wire(data: dict[str, Any]) -> Booth:
    """Convert a booth payload (absolute and/or normalized geometry)."""
    vendor = vendor_ref_from_wire(data.get("vendor"))
    if vendor is None and data.get("vendorId"):
        vendor = VendorRef(id=str(data["vendorId"]), name=data.get("vendorName") or "")

    return Booth(
        id=str(data["id"]),
        label=data.get("label") or "",
        pos_x=_optional_float(data.get("posX")) or 0.0,
        pos_y=_optional_float(data.get("posY")) or 0.0,
        width=_optional_float(data.get("width")) or 0.0,
        height=_optional_float(data.get("height")) or 0.0,
        pos_x_norm=_optional_float(data.get("posXNorm")),
        pos_y_norm=_optional_float(data.get("posYNorm")),
        width_norm=_optional_float(data.get("widthNorm")),
        height_norm=_optional_float(data.get("heightNorm")),
        vendor=vendor,
        queue_min=_optional_float(data.get("queueMin")),
    )


def booth_patch_to_wire(patch: BoothPatch) -> dict[str, Any]:
    """Serialize only the supplied fields of a partial booth update."""
    result: dict[str, Any] = {}
    for attr, wire_name in _PATCH_FIELDS.items():
        value = getattr(patch, attr)
        if value is not None:
            result[wire_name] = value
    if patch.vendor_id is not UNSET:
        result["vendorId"] = patch.vendor_id
    return result


def vendor_from_wire(data: dict[str, Any]) -> Vendor:
    return Vendor(
        id=str(data["id"]),
        name=data.get("name") or "",
        category=data.get("category"),
        price_min=_optional_float(data.get("priceMin")) or 0.0,
        price_max=_optional_float(data.get("priceMax")) or 0.0,
        description=data.get("description"),
        avg_prep_time=_optional_float(data.get("avgPrepTime")) or 0.0,
        image_url=data.get("imageUrl"),
    )


def vendor_to_wire(vendor: Vendor) -> dict[str, Any]:
    return {
        "name": vendor.name,
        "category": vendor.category,
        "priceMin": vendor.price_min,
        "priceMax": vendor.price_max,
        "description": vendor.description,
        "avgPrepTime": vendor.avg_prep_time,
    }


def venue_from_wire(data: dict[str, Any], base_url: str | None = None) -> Venue:
    """Convert an event payload; a map file takes precedence over a map image."""
    raw_url = data.get("mapFileUrl") or data.get("mapImageUrl")
    width = _optional_float(data.get("mapWidth"))
    height = _optional_float(data.get("mapHeight"))
    return Venue(
        id=str(data["id"]),
        display_name=data.get("name") or "",
        image_url=to_absolute_url(raw_url, base_url),
        natural_width=width if width else None,
        natural_height=height if height else None,
        layout_version=data.get("layoutVersion", 0),
        slug=data.get("slug"),
    )


def _point_from_wire(data: Any) -> Point:
    x = _optional_float(data.get("x")) or 0.0
    y = _optional_float(data.get("y")) or 0.0
    return Point(max(0.0, min(1.0, x)), max(0.0, min(1.0, y)))


def _point_to_wire(point: Point) -> dict[str, float]:
    return {"x": point.x, "y": point.y}


def anchors_from_wire(data: dict[str, Any]) -> AnchorSet:
    allowed = data.get("allowedArea")
    return AnchorSet(
        entrances=[_point_from_wire(p) for p in data.get("entrances") or []],
        walkway=[_point_from_wire(p) for p in data.get("walkway") or []],
        blocked_zones=[
            [_point_from_wire(p) for p in zone]
            for zone in data.get("blockedZones") or []
        ],
        allowed_area=(
            [_point_from_wire(p) for p in allowed] if allowed is not None else None
        ),
    )


def anchors_to_wire(anchors: AnchorSet) -> dict[str, Any]:
    result: dict[str, Any] = {
        "entrances": [_point_to_wire(p) for p in anchors.entrances],
        "walkway": [_point_to_wire(p) for p in anchors.walkway],
        "blockedZones": [
            [_point_to_wire(p) for p in zone] for zone in anchors.blocked_zones
        ],
    }
    if anchors.allowed_area is not None:
        result["allowedArea"] = [_point_to_wire(p) for p in anchors.allowed_area]
    return result


def anchors_from_json(blob: str | None) -> AnchorSet:
    """Parse the serialized anchor document, falling back to an empty set."""
    if not blob:
        return AnchorSet()
    try:
        data = json.loads(blob)
        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")
        return anchors_from_wire(data)
    except (ValueError, TypeError, AttributeError) as e:
        logger.error(f"Failed to parse map anchors, starting empty: {e}")
        return AnchorSet()


def anchors_to_json(anchors: AnchorSet) -> str:
    return json.dumps(anchors_to_wire(anchors))


def order_from_wire(data: dict[str, Any]) -> OrderDetail:
    booth = data.get("booth") or {}
    return OrderDetail(
        id=str(data["id"]),
        status=OrderStatus(data.get("status", OrderStatus.PENDING.value)),
        estimated_ready_at=data.get("estimatedReadyAt"),
        estimated_prep_min=_optional_float(data.get("estimatedPrepMin")),
        booth_label=booth.get("label"),
    )


def wait_time_from_wire(data: dict[str, Any]) -> WaitTime:
    return WaitTime(
        booth_id=str(data.get("boothId", "")),
        active_orders_count=int(data.get("activeOrdersCount") or 0),
        queue_min=_optional_float(data.get("queueMin")) or 0.0,
        updated_at=data.get("updatedAt"),
    )


def sales_from_wire(data: dict[str, Any]) -> SalesSummary:
    event = data.get("event") or {}
    return SalesSummary(
        event_id=str(event.get("id", "")),
        event_name=event.get("name") or "",
        total_revenue=int(event.get("totalRevenue") or 0),
        completed_orders=int(event.get("completedOrders") or 0),
        vendors=list(data.get("vendors") or []),
    )


def user_from_wire(data: dict[str, Any]) -> AuthUser:
    return AuthUser(
        id=str(data["id"]),
        name=data.get("name") or "",
        email=data.get("email") or "",
        role=UserRole(data.get("role", UserRole.CUSTOMER.value)),
        vendor_id=data.get("vendorId"),
        event_id=data.get("eventId"),
        must_reset_password=bool(data.get("mustResetPassword", False)),
    )


def user_to_wire(user: AuthUser) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "vendorId": user.vendor_id,
        "eventId": user.event_id,
        "mustResetPassword": user.must_reset_password,
    }


def cart_item_from_wire(data: dict[str, Any]) -> CartItem:
    return CartItem(
        menu_item_id=str(data["menuItemId"]),
        name=data.get("name") or "",
        price=float(data.get("price") or 0),
        quantity=int(data.get("quantity") or 1),
        vendor_id=str(data.get("vendorId", "")),
        vendor_name=data.get("vendorName") or "",
        booth_id=str(data.get("boothId", "")),
        event_id=str(data.get("eventId", "")),
    )


def cart_item_to_wire(item: CartItem) -> dict[str, Any]:
    return {
        "menuItemId": item.menu_item_id,
        "name": item.name,
        "price": item.price,
        "quantity": item.quantity,
        "vendorId": item.vendor_id,
        "vendorName": item.vendor_name,
        "boothId": item.booth_id,
        "eventId": item.event_id,
    }


def vendor_order_from_wire(data: dict[str, Any]) -> VendorOrder:
    customer = data.get("customer") or {}
    return VendorOrder(
        id=str(data["id"]),
        status=OrderStatus(data.get("status", OrderStatus.PENDING.value)),
        created_at=data.get("createdAt"),
        total_amount=int(data.get("totalAmount") or 0),
        estimated_prep_min=_optional_float(data.get("estimatedPrepMin")),
        customer_name=customer.get("name") or "",
        items=list(data.get("items") or []),
    )


def map_snapshot_from_wire(data: dict[str, Any], base_url: str | None = None) -> MapSnapshot:
    """Accept both the flat customer shape and the ``{event, booths}`` shape."""
    event = data.get("event") or data
    booths = data.get("booths")
    if booths is None:
        booths = event.get("booths") or []
    return MapSnapshot(
        venue=venue_from_wire(event, base_url),
        booths=[booth_from_wire(b) for b in booths],
        my_booth_id=data.get("myBoothId"),
    )


def editor_from_wire(data: dict[str, Any], base_url: str | None = None) -> EditorState:
    return EditorState(
        venue=venue_from_wire(data["event"], base_url),
        booths=[booth_from_wire(b) for b in data.get("booths") or []],
        vendors=[vendor_from_wire(v) for v in data.get("vendors") or []],
    )
