"""
In-memory development server speaking the MakanX REST contract.

Used by the test-suite (through ``httpx.ASGITransport``) and by the
``makanx-map stub-server`` command for trying the engine without a backend.
Records are stored in their camelCase wire shape.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, File, Header, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, confloat, constr

logger = logging.getLogger(__name__)

MAX_LABEL = 64
ACTIVE_STATUSES = ("PENDING", "PREPARING")
ORDER_STATUSES = ("PENDING", "PREPARING", "READY", "COMPLETED")
TOKEN_PREFIX = "stub-token-"


class LoginBody(BaseModel):
    email: str
    password: str


class BoothCreateBody(BaseModel):
    label: constr(max_length=MAX_LABEL) = "New Booth"  # type: ignore[valid-type]
    posX: float = 0.0
    posY: float = 0.0
    width: confloat(gt=0) = 100.0  # type: ignore[valid-type]
    height: confloat(gt=0) = 100.0  # type: ignore[valid-type]


class BoothPatchBody(BaseModel):
    """Partial booth update; only fields present in the request are applied."""

    label: constr(max_length=MAX_LABEL) | None = None  # type: ignore[valid-type]
    posX: float | None = None
    posY: float | None = None
    width: confloat(gt=0) | None = None  # type: ignore[valid-type]
    height: confloat(gt=0) | None = None  # type: ignore[valid-type]
    posXNorm: float | None = None
    posYNorm: float | None = None
    widthNorm: confloat(gt=0) | None = None  # type: ignore[valid-type]
    heightNorm: confloat(gt=0) | None = None  # type: ignore[valid-type]
    vendorId: str | None = None


class VendorPatchBody(BaseModel):
    name: constr(min_length=1) | None = None  # type: ignore[valid-type]
    category: str | None = None
    priceMin: float | None = None
    priceMax: float | None = None
    description: str | None = None
    avgPrepTime: float | None = None


class AnchorsBody(BaseModel):
    mapAnchorsJson: str = Field(default="")


class OrderStatusBody(BaseModel):
    status: str


class StubStore:
    """Thread-safe in-memory event, booth, vendor and order records."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.events: dict[str, dict[str, Any]] = {}
        self.booths: dict[str, dict[str, Any]] = {}
        self.vendors: dict[str, dict[str, Any]] = {}
        self.orders: dict[str, dict[str, Any]] = {}
        self.users: dict[str, dict[str, Any]] = {}
        self.passwords: dict[str, str] = {}
        self.uploads: dict[str, bytes] = {}

    # Seeding
    def add_event(self, slug: str, name: str, **fields: Any) -> dict[str, Any]:
        with self._lock:
            event = {
                "id": fields.pop("id", f"evt-{slug}"),
                "slug": slug,
                "name": name,
                "mapImageUrl": None,
                "mapFileUrl": None,
                "mapWidth": None,
                "mapHeight": None,
                "layoutVersion": 1,
                "mapAnchorsJson": "",
            }
            event.update(fields)
            self.events[slug] = event
            return event

    def add_vendor(self, event_slug: str, name: str, **fields: Any) -> dict[str, Any]:
        with self._lock:
            vendor = {
                "id": fields.pop("id", f"v-{uuid.uuid4().hex[:8]}"),
                "eventSlug": event_slug,
                "name": name,
                "category": None,
                "priceMin": 0.0,
                "priceMax": 0.0,
                "description": None,
                "avgPrepTime": 5.0,
                "imageUrl": None,
            }
            vendor.update(fields)
            self.vendors[vendor["id"]] = vendor
            return vendor

    def add_booth(self, event_slug: str, label: str, **fields: Any) -> dict[str, Any]:
        with self._lock:
            self._require_event(event_slug)
            booth = {
                "id": fields.pop("id", f"b-{uuid.uuid4().hex[:8]}"),
                "eventSlug": event_slug,
                "label": label,
                "posX": 0.0,
                "posY": 0.0,
                "width": 100.0,
                "height": 100.0,
                "posXNorm": None,
                "posYNorm": None,
                "widthNorm": None,
                "heightNorm": None,
                "vendorId": None,
            }
            booth.update(fields)
            if booth["vendorId"]:
                self._release_vendor(booth["vendorId"], keep=booth["id"])
            self.booths[booth["id"]] = booth
            return booth

    def add_user(self, email: str, password: str, role: str, **fields: Any) -> dict[str, Any]:
        with self._lock:
            user = {
                "id": fields.pop("id", f"u-{uuid.uuid4().hex[:8]}"),
                "name": fields.pop("name", email.split("@")[0]),
                "email": email,
                "role": role,
                "vendorId": None,
                "eventId": None,
                "mustResetPassword": False,
            }
            user.update(fields)
            self.users[user["id"]] = user
            self.passwords[email] = password
            return user

    def add_order(self, booth_id: str, status: str = "PENDING", **fields: Any) -> dict[str, Any]:
        with self._lock:
            booth = self._require_booth(booth_id)
            order = {
                "id": fields.pop("id", f"ord-{uuid.uuid4().hex[:12]}"),
                "boothId": booth_id,
                "vendorId": booth["vendorId"],
                "status": status,
                "createdAt": datetime.now(timezone.utc).isoformat(),
                "estimatedPrepMin": None,
                "estimatedReadyAt": None,
                "totalAmount": 0,
                "items": [],
                "customer": {"name": "Guest"},
            }
            order.update(fields)
            self.orders[order["id"]] = order
            return order

    # Auth
    def login(self, email: str, password: str) -> tuple[str, dict[str, Any]]:
        with self._lock:
            if self.passwords.get(email) != password:
                raise HTTPException(status_code=401, detail="Invalid email or password")
            user = next(u for u in self.users.values() if u["email"] == email)
            return f"{TOKEN_PREFIX}{user['id']}", dict(user)

    def user_for_token(self, authorization: str | None) -> dict[str, Any]:
        token = (authorization or "").removeprefix("Bearer ").strip()
        user = self.users.get(token.removeprefix(TOKEN_PREFIX)) if token else None
        if user is None:
            raise HTTPException(status_code=401, detail="Unauthorized")
        return user

    # Views
    def booth_view(self, booth: dict[str, Any]) -> dict[str, Any]:
        view = {k: v for k, v in booth.items() if k not in ("eventSlug", "vendorId")}
        vendor = self.vendors.get(booth["vendorId"]) if booth["vendorId"] else None
        view["vendor"] = {"id": vendor["id"], "name": vendor["name"]} if vendor else None
        view["vendorId"] = vendor["id"] if vendor else None
        return view

    def event_view(self, event: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in event.items() if k != "mapAnchorsJson"}

    def event_booths(self, slug: str) -> list[dict[str, Any]]:
        return [b for b in self.booths.values() if b["eventSlug"] == slug]

    def wait_time(self, booth_id: str) -> dict[str, Any]:
        with self._lock:
            booth = self._require_booth(booth_id)
            vendor = self.vendors.get(booth["vendorId"]) if booth["vendorId"] else None
            active = [
                o
                for o in self.orders.values()
                if o["boothId"] == booth_id and o["status"] in ACTIVE_STATUSES
            ]
            prep = vendor["avgPrepTime"] if vendor else 0.0
            return {
                "boothId": booth_id,
                "activeOrdersCount": len(active),
                "queueMin": len(active) * prep,
                "updatedAt": datetime.now(timezone.utc).isoformat(),
            }

    # Mutations
    def patch_booth(self, booth_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            booth = self._require_booth(booth_id)
            if "vendorId" in changes:
                vendor_id = changes["vendorId"] or None
                if vendor_id is not None:
                    self._require_vendor(vendor_id)
                    self._release_vendor(vendor_id, keep=booth_id)
                changes["vendorId"] = vendor_id
            booth.update(changes)
            return booth

    def delete_booth(self, booth_id: str) -> None:
        with self._lock:
            self._require_booth(booth_id)
            del self.booths[booth_id]

    def upload_map(self, slug: str, filename: str, content: bytes) -> dict[str, Any]:
        with self._lock:
            event = self._require_event(slug)
            path = f"/uploads/{slug}/{uuid.uuid4().hex[:8]}-{filename}"
            self.uploads[path] = content
            event["mapFileUrl"] = path
            event["layoutVersion"] = int(event.get("layoutVersion") or 0) + 1
            logger.info(f"Map uploaded for {slug}: {path} (layout {event['layoutVersion']})")
            return event

    def delete_vendor(self, vendor_id: str) -> None:
        with self._lock:
            self._require_vendor(vendor_id)
            self._release_vendor(vendor_id)
            del self.vendors[vendor_id]

    def sales(self, slug: str) -> dict[str, Any]:
        with self._lock:
            event = self._require_event(slug)
            booth_ids = {b["id"] for b in self.event_booths(slug)}
            completed = [
                o
                for o in self.orders.values()
                if o["boothId"] in booth_ids and o["status"] == "COMPLETED"
            ]
            per_vendor: dict[str, dict[str, Any]] = {}
            for order in completed:
                vendor = self.vendors.get(order["vendorId"] or "")
                if vendor is None:
                    continue
                entry = per_vendor.setdefault(
                    vendor["id"],
                    {"id": vendor["id"], "name": vendor["name"], "totalRevenue": 0, "completedOrders": 0},
                )
                entry["totalRevenue"] += order["totalAmount"]
                entry["completedOrders"] += 1
            return {
                "event": {
                    "id": event["id"],
                    "name": event["name"],
                    "totalRevenue": sum(o["totalAmount"] for o in completed),
                    "completedOrders": len(completed),
                },
                "vendors": list(per_vendor.values()),
            }

    def _release_vendor(self, vendor_id: str, keep: str | None = None) -> None:
        # One booth per vendor
        for booth in self.booths.values():
            if booth["vendorId"] == vendor_id and booth["id"] != keep:
                booth["vendorId"] = None

    def _require_event(self, slug: str) -> dict[str, Any]:
        event = self.events.get(slug)
        if event is None:
            raise HTTPException(status_code=404, detail=f"Event {slug} not found")
        return event

    def _require_booth(self, booth_id: str) -> dict[str, Any]:
        booth = self.booths.get(booth_id)
        if booth is None:
            raise HTTPException(status_code=404, detail=f"Booth {booth_id} not found")
        return booth

    def _require_vendor(self, vendor_id: str) -> dict[str, Any]:
        vendor = self.vendors.get(vendor_id)
        if vendor is None:
            raise HTTPException(status_code=404, detail=f"Vendor {vendor_id} not found")
        return vendor


def seed_demo(store: StubStore) -> StubStore:
    """A small food fair for trying things out."""
    store.add_event("demo-fair", "Demo Food Fair", mapWidth=1200, mapHeight=800)
    satay = store.add_vendor(
        "demo-fair", "Satay Corner", id="v-satay", category="Food", avgPrepTime=6.0
    )
    teh = store.add_vendor(
        "demo-fair", "Teh Tarik Bar", id="v-teh", category="Beverage", avgPrepTime=3.0
    )
    store.add_vendor("demo-fair", "Kueh House", id="v-kueh", category="Dessert")
    store.add_booth("demo-fair", "A1", id="b-a1", posX=100, posY=100, vendorId=satay["id"])
    store.add_booth("demo-fair", "A2", id="b-a2", posX=260, posY=100, vendorId=teh["id"])
    store.add_booth("demo-fair", "A3", id="b-a3", posX=420, posY=100)
    store.add_user("organizer@example.com", "password", "ORGANIZER", id="u-org", eventId="evt-demo-fair")
    store.add_user(
        "satay@example.com", "password", "VENDOR", id="u-satay", vendorId=satay["id"], eventId="evt-demo-fair"
    )
    store.add_order("b-a1", "PREPARING", id="ord-demo-000001", totalAmount=1200)
    return store


def create_app(store: StubStore | None = None) -> FastAPI:
    """Create the FastAPI application serving the stub contract."""
    store = store if store is not None else seed_demo(StubStore())
    app = FastAPI(title="MakanX Stub API", version="1.0.0")
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.get("/")
    def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.post("/auth/login")
    def login(body: LoginBody) -> dict[str, Any]:
        token, user = store.login(body.email, body.password)
        return {"token": token, "user": user}

    # Customer and vendor maps
    @app.get("/customer/event/{slug}/map")
    def customer_map(slug: str) -> dict[str, Any]:
        with store._lock:
            event = store.event_view(store._require_event(slug))
            booths = []
            for booth in store.event_booths(slug):
                view = store.booth_view(booth)
                if booth["vendorId"]:
                    view["queueMin"] = store.wait_time(booth["id"])["queueMin"]
                booths.append(view)
            event["booths"] = booths
            return event

    @app.get("/events/{event_id}/map")
    def event_map(event_id: str) -> dict[str, Any]:
        with store._lock:
            event = next((e for e in store.events.values() if e["id"] == event_id), None)
            if event is None:
                raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
            return {
                "event": store.event_view(event),
                "booths": [store.booth_view(b) for b in store.event_booths(event["slug"])],
            }

    @app.get("/vendor/event-map")
    def vendor_map(authorization: str | None = Header(default=None)) -> dict[str, Any]:
        with store._lock:
            user = store.user_for_token(authorization)
            vendor = store.vendors.get(user.get("vendorId") or "")
            if vendor is None:
                raise HTTPException(status_code=404, detail="No vendor profile")
            event = store._require_event(vendor["eventSlug"])
            booths = store.event_booths(event["slug"])
            mine = next((b["id"] for b in booths if b["vendorId"] == vendor["id"]), None)
            return {
                "event": store.event_view(event),
                "booths": [store.booth_view(b) for b in booths],
                "myBoothId": mine,
            }

    # Organizer editor
    @app.get("/organizer/events/{slug}/editor")
    def editor(slug: str) -> dict[str, Any]:
        with store._lock:
            event = store._require_event(slug)
            vendors = [
                {k: v for k, v in vendor.items() if k != "eventSlug"}
                for vendor in store.vendors.values()
                if vendor["eventSlug"] == slug
            ]
            return {
                "event": store.event_view(event),
                "booths": [store.booth_view(b) for b in store.event_booths(slug)],
                "vendors": vendors,
            }

    @app.get("/organizer/events/{slug}/map-anchors")
    def get_anchors(slug: str) -> dict[str, Any]:
        return {"mapAnchorsJson": store._require_event(slug)["mapAnchorsJson"] or None}

    @app.put("/organizer/events/{slug}/map-anchors")
    def put_anchors(slug: str, body: AnchorsBody) -> dict[str, Any]:
        with store._lock:
            event = store._require_event(slug)
            event["mapAnchorsJson"] = body.mapAnchorsJson
            return {"ok": True}

    @app.post("/organizer/events/{slug}/booths")
    def create_booth(slug: str, body: BoothCreateBody) -> dict[str, Any]:
        booth = store.add_booth(slug, body.label, **body.model_dump(exclude={"label"}))
        return store.booth_view(booth)

    @app.patch("/organizer/booths/{booth_id}")
    def patch_booth(booth_id: str, body: BoothPatchBody) -> dict[str, Any]:
        changes = {name: getattr(body, name) for name in body.model_fields_set}
        # Only the vendor can be cleared; every other field needs a value
        nulls = sorted(
            name for name, value in changes.items() if value is None and name != "vendorId"
        )
        if nulls:
            raise HTTPException(status_code=422, detail=f"{', '.join(nulls)} must not be null")
        return store.booth_view(store.patch_booth(booth_id, changes))

    @app.delete("/organizer/booths/{booth_id}")
    def delete_booth(booth_id: str) -> dict[str, Any]:
        store.delete_booth(booth_id)
        return {"ok": True}

    @app.post("/organizer/events/{slug}/map-upload")
    async def upload_map(slug: str, map_file: UploadFile = File(..., alias="map")) -> dict[str, Any]:
        content = await map_file.read()
        event = store.upload_map(slug, map_file.filename or "map", content)
        return store.event_view(event)

    @app.patch("/organizer/vendors/{vendor_id}")
    def patch_vendor(vendor_id: str, body: VendorPatchBody) -> dict[str, Any]:
        with store._lock:
            vendor = store._require_vendor(vendor_id)
            vendor.update({name: getattr(body, name) for name in body.model_fields_set})
            return copy.deepcopy(vendor)

    @app.delete("/organizer/vendors/{vendor_id}")
    def delete_vendor(vendor_id: str) -> dict[str, Any]:
        store.delete_vendor(vendor_id)
        return {"ok": True}

    @app.get("/organizer/events/{slug}/sales")
    def sales(slug: str) -> dict[str, Any]:
        return store.sales(slug)

    # Customer
    @app.get("/vendors/{vendor_id}")
    def vendor_detail(vendor_id: str) -> dict[str, Any]:
        return copy.deepcopy(store._require_vendor(vendor_id))

    @app.get("/customer/orders/{order_id}")
    def order_detail(order_id: str) -> dict[str, Any]:
        with store._lock:
            order = store.orders.get(order_id)
            if order is None:
                raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
            booth = store.booths.get(order["boothId"])
            result = copy.deepcopy(order)
            result["booth"] = {"label": booth["label"] if booth else None}
            return result

    @app.get("/customer/booth/{booth_id}/wait-time")
    def wait_time(booth_id: str) -> dict[str, Any]:
        return store.wait_time(booth_id)

    # Vendor
    @app.get("/vendor/orders")
    def vendor_orders(authorization: str | None = Header(default=None)) -> list[dict[str, Any]]:
        with store._lock:
            user = store.user_for_token(authorization)
            return [
                copy.deepcopy(o)
                for o in store.orders.values()
                if o["vendorId"] and o["vendorId"] == user.get("vendorId")
            ]

    @app.patch("/vendor/orders/{order_id}/status")
    def update_order_status(order_id: str, body: OrderStatusBody) -> dict[str, Any]:
        if body.status not in ORDER_STATUSES:
            raise HTTPException(status_code=400, detail=f"Unknown status {body.status}")
        with store._lock:
            order = store.orders.get(order_id)
            if order is None:
                raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
            order["status"] = body.status
            return copy.deepcopy(order)

    return app


def run_uvicorn_in_thread(
    app: FastAPI, host: str = "127.0.0.1", port: int = 8800
) -> tuple[threading.Thread, "uvicorn.Server"]:
    """Spawn a Uvicorn server for the given FastAPI app in a background thread."""
    import uvicorn

    config = uvicorn.Config(
        app=app, host=host, port=port, log_level="warning", lifespan="off"
    )
    server = uvicorn.Server(config=config)
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()
    return thread, server
