"""Tests for the async REST client against the in-memory stub API."""

import asyncio
import json

import httpx
import pytest

from makanx_map.api import ApiError, MakanxApi
from makanx_map.stub_server import StubStore, create_app, seed_demo
from makanx_map.types import UNSET, AnchorSet, BoothPatch, OrderStatus, Point, UserRole

BASE = "http://stub"


@pytest.fixture
def store():
    return seed_demo(StubStore())


def run(store, scenario, token=None):
    """Run ``scenario(api)`` against a fresh app over ASGITransport."""

    async def main():
        transport = httpx.ASGITransport(app=create_app(store))
        async with MakanxApi(BASE, token=token, transport=transport) as api:
            return await scenario(api)

    return asyncio.run(main())


class TestAuth:
    """Tests for login and bearer tokens."""

    def test_login(self, store):
        """A correct password returns a token and the user."""
        token, user = run(store, lambda api: api.login("satay@example.com", "password"))
        assert token == "stub-token-u-satay"
        assert user.role is UserRole.VENDOR
        assert user.vendor_id == "v-satay"

    def test_bad_password(self, store):
        """A wrong password is a 401 ApiError."""
        with pytest.raises(ApiError) as excinfo:
            run(store, lambda api: api.login("satay@example.com", "nope"))
        assert excinfo.value.status == 401
        assert "Invalid email or password" in excinfo.value.message

    def test_vendor_map_needs_token(self, store):
        """The vendor map is only served to an authenticated vendor."""
        with pytest.raises(ApiError) as excinfo:
            run(store, lambda api: api.vendor_map())
        assert excinfo.value.status == 401

        snapshot = run(store, lambda api: api.vendor_map(), token="stub-token-u-satay")
        assert snapshot.my_booth_id == "b-a1"
        assert len(snapshot.booths) == 3


class TestMaps:
    """Tests for map endpoints."""

    def test_customer_map(self, store):
        """The flat customer shape carries booths and queue estimates."""
        snapshot = run(store, lambda api: api.customer_map("demo-fair"))
        assert snapshot.venue.display_name == "Demo Food Fair"
        assert snapshot.venue.natural_width == 1200
        booths = {b.id: b for b in snapshot.booths}
        assert booths["b-a1"].vendor.name == "Satay Corner"
        assert booths["b-a1"].queue_min == 6.0
        assert booths["b-a3"].vendor is None

    def test_event_map_by_id(self, store):
        """The {event, booths} shape is accepted too."""
        snapshot = run(store, lambda api: api.event_map("evt-demo-fair"))
        assert snapshot.venue.slug == "demo-fair"
        assert [b.id for b in snapshot.booths] == ["b-a1", "b-a2", "b-a3"]

    def test_unknown_event(self, store):
        """Missing events are a 404."""
        with pytest.raises(ApiError) as excinfo:
            run(store, lambda api: api.customer_map("nope"))
        assert excinfo.value.status == 404


class TestOrganizer:
    """Tests for organizer endpoints."""

    def test_patch_moves_vendor(self, store):
        """Assigning a vendor to another booth releases the old booth."""

        async def scenario(api):
            await api.update_booth("b-a3", BoothPatch(vendor_id="v-satay"))
            return await api.editor("demo-fair")

        state = run(store, scenario)
        assert state.find_booth("b-a3").vendor_id == "v-satay"
        assert state.find_booth("b-a1").vendor is None
        assert {v.id for v in state.vendors} == {"v-satay", "v-teh", "v-kueh"}

    def test_patch_sends_only_given_fields(self, store):
        """Fields not in the patch are left as they were."""
        run(store, lambda api: api.update_booth("b-a2", BoothPatch(pos_x=300)))
        booth = store.booths["b-a2"]
        assert booth["posX"] == 300
        assert booth["posY"] == 100
        assert booth["vendorId"] == "v-teh"

    def test_patch_unassigns_vendor(self, store):
        """An explicit None vendor clears the assignment."""
        run(store, lambda api: api.update_booth("b-a2", BoothPatch(vendor_id=None)))
        assert store.booths["b-a2"]["vendorId"] is None

    def test_invalid_geometry_rejected(self, store):
        """Non-positive sizes are a validation error."""
        with pytest.raises(ApiError) as excinfo:
            run(store, lambda api: api.update_booth("b-a2", BoothPatch(width=0)))
        assert excinfo.value.status == 422

    def test_null_label_rejected(self, store):
        """Only vendorId may be sent as null in a booth update."""

        async def main():
            transport = httpx.ASGITransport(app=create_app(store))
            async with httpx.AsyncClient(transport=transport, base_url=BASE) as client:
                return await client.patch("/organizer/booths/b-a2", json={"label": None})

        response = asyncio.run(main())
        assert response.status_code == 422
        assert response.json()["detail"] == "label must not be null"
        assert store.booths["b-a2"]["label"] == "A2"

    def test_create_and_delete_booth(self, store):
        """A created booth is returned and can be removed again."""

        async def scenario(api):
            booth = await api.create_booth("demo-fair", "New Booth", 10, 20, 100, 100)
            await api.delete_booth(booth.id)
            return booth

        booth = run(store, scenario)
        assert booth.label == "New Booth"
        assert (booth.pos_x, booth.pos_y) == (10, 20)
        assert booth.id not in store.booths

    def test_anchors_round_trip(self, store):
        """Saved anchors come back from the anchors endpoint."""
        anchors = AnchorSet(
            entrances=[Point(0.1, 0.2)],
            blocked_zones=[[Point(0.3, 0.3), Point(0.4, 0.3)]],
        )

        async def scenario(api):
            empty = await api.get_anchors("demo-fair")
            await api.save_anchors("demo-fair", anchors)
            return empty, await api.get_anchors("demo-fair")

        empty, loaded = run(store, scenario)
        assert empty == AnchorSet()
        assert loaded == anchors
        assert json.loads(store.events["demo-fair"]["mapAnchorsJson"])["entrances"] == [
            {"x": 0.1, "y": 0.2}
        ]

    def test_upload_map_bumps_layout(self, store):
        """A multipart upload sets the map file and a new layout version."""

        async def scenario(api):
            await api.upload_map("demo-fair", "hall.png", b"\x89PNG", "image/png")
            return await api.editor("demo-fair")

        state = run(store, scenario)
        assert state.venue.layout_version == 2
        assert state.venue.image_url.startswith(f"{BASE}/uploads/demo-fair/")
        assert list(store.uploads.values()) == [b"\x89PNG"]

    def test_sales(self, store):
        """Completed orders count towards revenue."""
        store.add_order("b-a2", "COMPLETED", totalAmount=350)
        summary = run(store, lambda api: api.sales("demo-fair"))
        assert summary.total_revenue == 350
        assert summary.completed_orders == 1
        assert summary.vendors[0]["id"] == "v-teh"


class TestCustomerAndVendor:
    """Tests for order and wait-time endpoints."""

    def test_order_and_wait_time(self, store):
        """Order status and queue estimate come from the stub records."""

        async def scenario(api):
            return await api.order("ord-demo-000001"), await api.booth_wait_time("b-a1")

        order, wait = run(store, scenario)
        assert order.status is OrderStatus.PREPARING
        assert order.booth_label == "A1"
        assert wait.active_orders_count == 1
        assert wait.queue_min == 6.0

    def test_vendor_orders_and_status(self, store):
        """A vendor sees its orders and can advance them."""

        async def scenario(api):
            await api.update_order_status("ord-demo-000001", OrderStatus.READY)
            return await api.vendor_orders()

        orders = run(store, scenario, token="stub-token-u-satay")
        assert [(o.id, o.status) for o in orders] == [("ord-demo-000001", OrderStatus.READY)]


class TestTransportErrors:
    """Tests for error shaping with a mock transport."""

    def test_empty_body_uses_reason_phrase(self):
        """An error without a body reports the reason phrase."""

        async def main():
            transport = httpx.MockTransport(lambda request: httpx.Response(503))
            async with MakanxApi(BASE, transport=transport) as api:
                await api.sales("x")

        with pytest.raises(ApiError) as excinfo:
            asyncio.run(main())
        assert excinfo.value.status == 503
        assert excinfo.value.message == "Service Unavailable"

    def test_headers(self):
        """JSON requests carry the content type and bearer token."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        async def main():
            async with MakanxApi(BASE, token="t0k", transport=httpx.MockTransport(handler)) as api:
                return await api.update_booth("b 1", BoothPatch(label="X", vendor_id=UNSET))

        assert asyncio.run(main()) is None
        request = seen[0]
        assert request.method == "PATCH"
        assert request.url.path == "/organizer/booths/b 1"
        assert request.headers["Authorization"] == "Bearer t0k"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {"label": "X"}

    def test_login_sends_no_token(self):
        """Login never sends a stale bearer token."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200,
                json={"token": "new", "user": {"id": "u1", "role": "CUSTOMER"}},
            )

        async def main():
            async with MakanxApi(BASE, token="old", transport=httpx.MockTransport(handler)) as api:
                return await api.login("a@b.c", "pw")

        token, user = asyncio.run(main())
        assert token == "new"
        assert "Authorization" not in seen[0].headers
