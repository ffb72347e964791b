"""
Periodic refreshers for order status, booth wait times and vendor orders.

Each poller owns one asyncio task. The first tick runs immediately, then
one tick per interval; a tick that fails is logged and the next one runs
on schedule.
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import httpx

from .api import ApiError, MakanxApi
from .config import ClientConfig
from .events import EventHandler
from .notifications import Notifier
from .types import Booth, OrderDetail, OrderStatus, VendorOrder

logger = logging.getLogger(__name__)

ORDER_STATUS_INTERVAL = 7.0
WAIT_TIME_INTERVAL = 12.0
VENDOR_ORDERS_INTERVAL = 5.0

ALL = "ALL"


class Poller:
    """Runs ``tick`` every ``interval`` seconds until stopped."""

    def __init__(self, interval: float, tick: Callable[[], Awaitable[Any]], name: str = "poller"):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.name = name
        self._tick = tick
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        logger.debug(f"{self.name} started ({self.interval}s)")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug(f"{self.name} stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self._tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.debug(f"{self.name} tick failed: {e}")
            await asyncio.sleep(self.interval)


class OrderStatusWatcher:
    """Follows one order and raises a banner when it becomes ready or completes."""

    def __init__(self, api: MakanxApi, order_id: str, interval: float = ORDER_STATUS_INTERVAL):
        self.api = api
        self.order_id = order_id
        self.order: OrderDetail | None = None
        self.banner = ""
        self._last_status: OrderStatus | None = None
        self.poller = Poller(interval, self.refresh, name=f"order-{order_id}")

        self.on_update = EventHandler()
        self.on_banner = EventHandler()

    @classmethod
    def from_config(
        cls, api: MakanxApi, order_id: str, config: ClientConfig
    ) -> "OrderStatusWatcher":
        return cls(api, order_id, config.order_poll_interval)

    @property
    def pickup_code(self) -> str:
        return self.order_id[-6:]

    async def refresh(self) -> OrderDetail:
        order = await self.api.order(self.order_id)
        self.order = order
        previous, self._last_status = self._last_status, order.status
        self.on_update.invoke(order)

        # The first observation only establishes the baseline
        if previous is None or previous == order.status:
            return order
        if order.status is OrderStatus.READY:
            self._set_banner(
                f"Your order is READY at Booth {order.booth_label or ''}. Code: {self.pickup_code}"
            )
        elif order.status is OrderStatus.COMPLETED:
            self._set_banner("Order completed. Thanks!")
        return order

    def start(self) -> None:
        self.poller.start()

    async def stop(self) -> None:
        await self.poller.stop()

    def _set_banner(self, text: str) -> None:
        self.banner = text
        self.on_banner.invoke(text)


class WaitTimePoller:
    """Refreshes queue estimates for every booth that has a vendor."""

    def __init__(
        self,
        api: MakanxApi,
        booths: Callable[[], Iterable[Booth]],
        interval: float = WAIT_TIME_INTERVAL,
    ):
        self.api = api
        self._booths = booths
        self.wait_minutes: dict[str, float] = {}
        self.poller = Poller(interval, self.refresh, name="wait-times")
        self.on_update = EventHandler()

    async def refresh(self) -> dict[str, float]:
        results: dict[str, float] = {}
        for booth in self._booths():
            if booth.vendor_id is None:
                continue
            try:
                wait = await self.api.booth_wait_time(booth.id)
            except (ApiError, httpx.HTTPError) as e:
                logger.debug(f"Wait time for booth {booth.id} unavailable: {e}")
                continue
            results[booth.id] = wait.queue_min or 0.0
        self.wait_minutes = results
        self.on_update.invoke(results)
        return results

    def start(self) -> None:
        self.poller.start()

    async def stop(self) -> None:
        await self.poller.stop()


class VendorOrdersPoller:
    """Vendor order queue with a status filter."""

    def __init__(
        self,
        api: MakanxApi,
        interval: float = VENDOR_ORDERS_INTERVAL,
        notifier: Notifier | None = None,
    ):
        self.api = api
        self.notifier = notifier or Notifier()
        self.orders: list[VendorOrder] = []
        self.error: str | None = None
        self.loading = True
        self.status_filter: str = ALL
        self.poller = Poller(interval, self.refresh, name="vendor-orders")
        self.on_update = EventHandler()

    @classmethod
    def from_config(cls, api: MakanxApi, config: ClientConfig) -> "VendorOrdersPoller":
        return cls(
            api,
            config.vendor_orders_poll_interval,
            notifier=Notifier(config.notification_ttl),
        )

    @property
    def visible_orders(self) -> list[VendorOrder]:
        if self.status_filter == ALL:
            return list(self.orders)
        return [o for o in self.orders if o.status.value == self.status_filter]

    def set_filter(self, status: OrderStatus | str) -> None:
        self.status_filter = status.value if isinstance(status, OrderStatus) else status

    async def refresh(self) -> None:
        try:
            self.orders = await self.api.vendor_orders()
            self.error = None
        except (ApiError, httpx.HTTPError) as e:
            self.error = str(e) or "Failed to load orders"
        finally:
            self.loading = False
        self.on_update.invoke(self.orders)

    async def update_status(self, order_id: str, status: OrderStatus) -> bool:
        try:
            await self.api.update_order_status(order_id, status)
        except (ApiError, httpx.HTTPError) as e:
            self.notifier.error(f"Failed to update status: {e}")
            return False
        await self.refresh()
        return True

    def start(self) -> None:
        self.poller.start()

    async def stop(self) -> None:
        await self.poller.stop()
