"""
Async client for the MakanX REST API.

All requests go through ``MakanxApi._request``: JSON bodies (multipart only
for map uploads), a bearer token when one is set, and ``ApiError`` for any
non-2xx response. Transport-level failures surface as ``httpx.HTTPError``.
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from . import adapters
from .config import ClientConfig
from .types import (
    AnchorSet,
    AuthUser,
    Booth,
    BoothPatch,
    EditorState,
    MapSnapshot,
    OrderDetail,
    OrderStatus,
    SalesSummary,
    Vendor,
    VendorOrder,
    WaitTime,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ApiError(Exception):
    """Non-2xx response from the API.

    ``message`` is the response body text, or the reason phrase when the
    body is empty.
    """

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(message)


def _seg(value: str) -> str:
    return quote(str(value), safe="")


class MakanxApi:
    """Thin typed façade over the MakanX endpoints."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "MakanxApi":
        return cls(
            config.api_base_url,
            token=token,
            timeout=config.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "MakanxApi":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        files: dict[str, Any] | None = None,
        auth: bool = True,
    ) -> Any:
        headers: dict[str, str] = {}
        # httpx writes the multipart boundary header itself
        if files is None:
            headers["Content-Type"] = "application/json"
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        logger.debug(f"{method} {path}")
        response = await self._client.request(
            method, path, json=json, files=files, headers=headers
        )
        if not response.is_success:
            message = response.text or response.reason_phrase
            logger.debug(f"{method} {path} failed with {response.status_code}: {message}")
            raise ApiError(response.status_code, message)
        if not response.content:
            return None
        return response.json()

    # Auth
    async def login(self, email: str, password: str) -> tuple[str, AuthUser]:
        data = await self._request(
            "POST", "/auth/login", json={"email": email, "password": password}, auth=False
        )
        return data["token"], adapters.user_from_wire(data["user"])

    # Maps
    async def customer_map(self, slug: str) -> MapSnapshot:
        data = await self._request("GET", f"/customer/event/{_seg(slug)}/map")
        return adapters.map_snapshot_from_wire(data, self.base_url)

    async def event_map(self, event_id: str) -> MapSnapshot:
        data = await self._request("GET", f"/events/{_seg(event_id)}/map")
        return adapters.map_snapshot_from_wire(data, self.base_url)

    async def vendor_map(self) -> MapSnapshot:
        data = await self._request("GET", "/vendor/event-map")
        return adapters.map_snapshot_from_wire(data, self.base_url)

    # Organizer editor
    async def editor(self, slug: str) -> EditorState:
        data = await self._request("GET", f"/organizer/events/{_seg(slug)}/editor")
        return adapters.editor_from_wire(data, self.base_url)

    async def get_anchors(self, slug: str) -> AnchorSet:
        data = await self._request("GET", f"/organizer/events/{_seg(slug)}/map-anchors")
        return adapters.anchors_from_json((data or {}).get("mapAnchorsJson"))

    async def save_anchors(self, slug: str, anchors: AnchorSet) -> None:
        await self._request(
            "PUT",
            f"/organizer/events/{_seg(slug)}/map-anchors",
            json={"mapAnchorsJson": adapters.anchors_to_json(anchors)},
        )

    async def create_booth(
        self,
        slug: str,
        label: str,
        pos_x: float,
        pos_y: float,
        width: float,
        height: float,
    ) -> Booth | None:
        data = await self._request(
            "POST",
            f"/organizer/events/{_seg(slug)}/booths",
            json={"label": label, "posX": pos_x, "posY": pos_y, "width": width, "height": height},
        )
        return adapters.booth_from_wire(data) if isinstance(data, dict) and "id" in data else None

    async def update_booth(self, booth_id: str, patch: BoothPatch) -> None:
        await self._request(
            "PATCH",
            f"/organizer/booths/{_seg(booth_id)}",
            json=adapters.booth_patch_to_wire(patch),
        )

    async def delete_booth(self, booth_id: str) -> None:
        await self._request("DELETE", f"/organizer/booths/{_seg(booth_id)}")

    async def upload_map(
        self,
        slug: str,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> None:
        await self._request(
            "POST",
            f"/organizer/events/{_seg(slug)}/map-upload",
            files={"map": (filename, content, content_type)},
        )

    async def update_vendor(self, vendor: Vendor) -> None:
        await self._request(
            "PATCH",
            f"/organizer/vendors/{_seg(vendor.id)}",
            json=adapters.vendor_to_wire(vendor),
        )

    async def delete_vendor(self, vendor_id: str) -> None:
        await self._request("DELETE", f"/organizer/vendors/{_seg(vendor_id)}")

    async def sales(self, slug: str) -> SalesSummary:
        data = await self._request("GET", f"/organizer/events/{_seg(slug)}/sales")
        return adapters.sales_from_wire(data)

    # Customer
    async def vendor_detail(self, vendor_id: str) -> Vendor:
        data = await self._request("GET", f"/vendors/{_seg(vendor_id)}")
        return adapters.vendor_from_wire(data)

    async def order(self, order_id: str) -> OrderDetail:
        data = await self._request("GET", f"/customer/orders/{_seg(order_id)}")
        return adapters.order_from_wire(data)

    async def booth_wait_time(self, booth_id: str) -> WaitTime:
        data = await self._request("GET", f"/customer/booth/{_seg(booth_id)}/wait-time")
        return adapters.wait_time_from_wire(data)

    # Vendor
    async def vendor_orders(self) -> list[VendorOrder]:
        data = await self._request("GET", "/vendor/orders")
        return [adapters.vendor_order_from_wire(o) for o in data or []]

    async def update_order_status(self, order_id: str, status: OrderStatus) -> None:
        await self._request(
            "PATCH",
            f"/vendor/orders/{_seg(order_id)}/status",
            json={"status": OrderStatus(status).value},
        )
