"""
Page controllers tying the canvases to the remote API.

Each session owns its canvas, a Notifier for toasts and the load/error
state of one page. Remote failures are caught here and turned into toasts
or an inline ``error`` string.
"""

import asyncio
import logging
from dataclasses import replace

import httpx

from .api import ApiError, MakanxApi
from .background import BackgroundTasks
from .canvas import MapCanvas
from .config import ClientConfig
from .editing import AnchorCanvas, OrganizerMapCanvas
from .events import EventHandler
from .notifications import Notifier
from .polling import WAIT_TIME_INTERVAL, WaitTimePoller
from .properties import DEFAULT_DEBOUNCE, BoothPropertiesForm
from .types import (
    UNSET,
    AnchorSet,
    BoothPatch,
    EditorState,
    MapSnapshot,
    Point,
    SalesSummary,
    Vendor,
    VendorRef,
)
from .viewport import VIEWING

logger = logging.getLogger(__name__)

REMOTE_ERRORS = (ApiError, httpx.HTTPError)

NEW_BOOTH_LABEL = "New Booth"
NEW_BOOTH_SIZE = 100.0
UNKNOWN_VENDOR_NAME = "Vendor"


def error_message(exc: BaseException, default: str) -> str:
    return str(exc) or default


def apply_booth_patch(state: EditorState, booth_id: str, patch: BoothPatch) -> EditorState:
    """Apply a partial update locally.

    Assigning a vendor also removes it from whichever other booth held it,
    mirroring the one-booth-per-vendor rule the server enforces.
    """
    vendor_ref = UNSET
    if patch.vendor_id is not UNSET:
        if patch.vendor_id:
            name = next(
                (v.name for v in state.vendors if v.id == patch.vendor_id),
                UNKNOWN_VENDOR_NAME,
            )
            vendor_ref = VendorRef(id=patch.vendor_id, name=name)
        else:
            vendor_ref = None

    changes = {
        name: value
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
        if (value := getattr(patch, name)) is not None
    }

    booths = []
    for booth in state.booths:
        if booth.id == booth_id:
            booth = replace(booth, **changes)
            if vendor_ref is not UNSET:
                booth = replace(booth, vendor=vendor_ref)
        elif vendor_ref and booth.vendor_id == vendor_ref.id:
            booth = replace(booth, vendor=None)
        booths.append(booth)
    return replace(state, booths=booths)


class SchedulerSession:
    """Organizer booth scheduler: map editing, booth properties, vendors, sales."""

    def __init__(
        self,
        api: MakanxApi,
        slug: str,
        notifier: Notifier | None = None,
        canvas: OrganizerMapCanvas | None = None,
        debounce: float = DEFAULT_DEBOUNCE,
    ):
        self.api = api
        self.slug = slug
        self.notifier = notifier or Notifier()
        self.canvas = canvas or OrganizerMapCanvas()
        self.form = BoothPropertiesForm(self.update_booth, self.delete_booth, debounce)

        self.state: EditorState | None = None
        self.loading = True
        self.error = ""
        self.sales: SalesSummary | None = None
        self._updates = BackgroundTasks("booth update")

        self.canvas.on_booth_update.add_listener(self.handle_booth_update)
        self.canvas.on_booth_select.add_listener(self._handle_select)

    @classmethod
    def from_config(cls, api: MakanxApi, slug: str, config: ClientConfig) -> "SchedulerSession":
        """Build a scheduler with the authoring profile and editing settings of ``config``."""
        return cls(
            api,
            slug,
            notifier=Notifier(config.notification_ttl),
            canvas=OrganizerMapCanvas(config.authoring_profile(), config.min_booth_size),
            debounce=config.autosave_debounce,
        )

    @property
    def selected_booth_id(self) -> str | None:
        return self.canvas.selected_booth_id

    async def load(self) -> bool:
        try:
            state = await self.api.editor(self.slug)
        except REMOTE_ERRORS as e:
            self.error = error_message(e, "Failed to load event data")
            logger.error(f"Loading editor for {self.slug} failed: {self.error}")
            return False
        finally:
            self.loading = False

        self.error = ""
        self._set_state(state)
        return True

    def handle_booth_update(self, booth_id: str, patch: BoothPatch) -> None:
        """Pointer-up commit from the canvas: local patch now, remote write queued."""
        self._apply_local(booth_id, patch)
        self._updates.spawn(self._push_booth_update(booth_id, patch))

    async def update_booth(self, booth_id: str, patch: BoothPatch) -> None:
        self._apply_local(booth_id, patch)
        await self._push_booth_update(booth_id, patch)

    async def add_booth(self) -> bool:
        center = self.canvas.viewport.view_center() or Point(0.0, 0.0)
        half = NEW_BOOTH_SIZE / 2
        try:
            await self.api.create_booth(
                self.slug,
                NEW_BOOTH_LABEL,
                center.x - half,
                center.y - half,
                NEW_BOOTH_SIZE,
                NEW_BOOTH_SIZE,
            )
        except REMOTE_ERRORS as e:
            self.notifier.error(error_message(e, "Failed to create booth"))
            return False
        self.notifier.success("Booth created")
        await self.load()
        return True

    async def delete_booth(self, booth_id: str) -> bool:
        try:
            await self.api.delete_booth(booth_id)
        except REMOTE_ERRORS as e:
            self.notifier.error(error_message(e, "Failed to delete booth"))
            return False
        self.notifier.success("Booth deleted")
        self.canvas.select_booth(None)
        await self.load()
        return True

    async def upload_map(
        self, filename: str, content: bytes, content_type: str = "application/octet-stream"
    ) -> bool:
        self.notifier.success("Uploading map...")
        try:
            await self.api.upload_map(self.slug, filename, content, content_type)
        except REMOTE_ERRORS as e:
            self.notifier.error(error_message(e, "Failed to upload map"))
            return False
        self.notifier.success("Map uploaded successfully")
        await self.load()
        return True

    async def edit_vendor(self, vendor: Vendor) -> bool:
        try:
            await self.api.update_vendor(vendor)
        except REMOTE_ERRORS as e:
            self.notifier.error(error_message(e, "Failed to update vendor"))
            return False
        self.notifier.success("Vendor updated")
        await self.load()
        return True

    async def delete_vendor(self, vendor_id: str) -> bool:
        try:
            await self.api.delete_vendor(vendor_id)
        except REMOTE_ERRORS as e:
            self.notifier.error(error_message(e, "Failed to delete vendor"))
            return False
        self.notifier.success("Vendor deleted")
        await self.load()
        return True

    async def fetch_sales(self) -> SalesSummary | None:
        try:
            self.sales = await self.api.sales(self.slug)
        except REMOTE_ERRORS as e:
            self.notifier.error(error_message(e, "Failed to load sales"))
            return None
        return self.sales

    async def drain(self) -> None:
        """Wait for queued booth writes (and the reloads they trigger)."""
        await self._updates.drain()
        await self.form.drain()

    def _apply_local(self, booth_id: str, patch: BoothPatch) -> None:
        if self.state is None:
            return
        self.state = apply_booth_patch(self.state, booth_id, patch)
        self.canvas.set_booths(self.state.booths)

    async def _push_booth_update(self, booth_id: str, patch: BoothPatch) -> None:
        try:
            await self.api.update_booth(booth_id, patch)
        except REMOTE_ERRORS as e:
            self.notifier.error(error_message(e, "Failed to update booth"))
        # Server state wins either way
        await self.load()

    def _set_state(self, state: EditorState) -> None:
        self.state = state
        self.canvas.set_venue(state.venue)
        self.canvas.set_booths(state.booths)
        if self.form.booth_id is not None and state.find_booth(self.form.booth_id) is None:
            self.form.close()

    def _handle_select(self, booth_id: str | None) -> None:
        booth = self.state.find_booth(booth_id) if self.state else None
        self.form.select(booth)


class AnchorEditorSession:
    """Organizer anchor editor: loads the map and its anchors, saves explicitly."""

    def __init__(
        self,
        api: MakanxApi,
        slug: str,
        notifier: Notifier | None = None,
        canvas: AnchorCanvas | None = None,
    ):
        self.api = api
        self.slug = slug
        self.notifier = notifier or Notifier()
        self.canvas = canvas or AnchorCanvas()
        self.state: EditorState | None = None
        self.loading = True
        self.error = ""

    @classmethod
    def from_config(
        cls, api: MakanxApi, slug: str, config: ClientConfig
    ) -> "AnchorEditorSession":
        return cls(
            api,
            slug,
            notifier=Notifier(config.notification_ttl),
            canvas=AnchorCanvas(config.authoring_profile()),
        )

    @property
    def anchors(self) -> AnchorSet:
        return self.canvas.anchors

    async def load(self) -> bool:
        editor, anchors = await asyncio.gather(
            self.api.editor(self.slug),
            self.api.get_anchors(self.slug),
            return_exceptions=True,
        )
        self.loading = False
        for result in (editor, anchors):
            if isinstance(result, BaseException) and not isinstance(result, REMOTE_ERRORS):
                raise result

        if isinstance(editor, BaseException):
            self.error = error_message(editor, "Event not found")
            logger.error(f"Loading anchor editor for {self.slug} failed: {self.error}")
            return False
        if isinstance(anchors, BaseException):
            logger.warning(f"Map anchors for {self.slug} unavailable, starting empty: {anchors}")
            anchors = AnchorSet()

        self.error = ""
        self.state = editor
        self.canvas.set_venue(editor.venue)
        self.canvas.set_anchors(anchors)
        return True

    async def save(self) -> bool:
        try:
            await self.api.save_anchors(self.slug, self.canvas.anchors)
        except REMOTE_ERRORS as e:
            logger.error(f"Saving anchors for {self.slug} failed: {e}")
            self.notifier.error("Failed to save")
            return False
        self.notifier.success("Saved!")
        return True


class CustomerMapSession:
    """Customer event map with live wait-time badges."""

    def __init__(
        self,
        api: MakanxApi,
        slug: str,
        canvas: MapCanvas | None = None,
        wait_time_interval: float = WAIT_TIME_INTERVAL,
    ):
        self.api = api
        self.slug = slug
        self.canvas = canvas or MapCanvas(VIEWING)
        self.snapshot: MapSnapshot | None = None
        self.loading = True
        self.error = ""
        self.wait_times = WaitTimePoller(api, lambda: self.canvas.booths, wait_time_interval)

        # on_open_booth(booth_id) fires when a vendor booth is tapped
        self.on_open_booth = EventHandler()
        self.canvas.on_booth_click.add_listener(self._handle_booth_click)
        self.wait_times.on_update.add_listener(self.canvas.set_wait_minutes)

    @classmethod
    def from_config(cls, api: MakanxApi, slug: str, config: ClientConfig) -> "CustomerMapSession":
        return cls(
            api,
            slug,
            canvas=MapCanvas(config.viewing_profile()),
            wait_time_interval=config.wait_time_poll_interval,
        )

    async def load(self) -> bool:
        try:
            snapshot = await self.api.customer_map(self.slug)
        except REMOTE_ERRORS as e:
            logger.error(f"Loading customer map {self.slug} failed: {e}")
            self.error = "Failed to load event map"
            return False
        finally:
            self.loading = False

        self.error = ""
        self.snapshot = snapshot
        self.canvas.load(snapshot.venue, snapshot.booths)
        self.canvas.set_wait_minutes(
            {b.id: b.queue_min for b in snapshot.booths if b.queue_min is not None}
        )
        return True

    def start(self) -> None:
        self.wait_times.start()

    async def stop(self) -> None:
        await self.wait_times.stop()

    def _handle_booth_click(self, vendor_id: str | None) -> None:
        self.canvas.set_active_vendor(vendor_id)
        if vendor_id is None:
            return
        for booth in self.canvas.booths:
            if booth.vendor_id == vendor_id:
                self.on_open_booth.invoke(booth.id)
                return


class VendorMapSession:
    """A vendor's read-only view of the event map with their booth highlighted."""

    def __init__(self, api: MakanxApi, vendor_id: str | None, canvas: MapCanvas | None = None):
        self.api = api
        self.vendor_id = vendor_id
        self.canvas = canvas or MapCanvas(VIEWING, view_only=True)
        self.snapshot: MapSnapshot | None = None
        self.loading = True
        self.error: str | None = None

    @classmethod
    def from_config(
        cls, api: MakanxApi, vendor_id: str | None, config: ClientConfig
    ) -> "VendorMapSession":
        return cls(api, vendor_id, canvas=MapCanvas(config.viewing_profile(), view_only=True))

    @property
    def has_map(self) -> bool:
        return self.snapshot is not None and bool(self.snapshot.venue.image_url)

    @property
    def is_assigned(self) -> bool:
        return self.snapshot is not None and bool(self.snapshot.my_booth_id)

    async def load(self) -> bool:
        try:
            snapshot = await self.api.vendor_map()
        except REMOTE_ERRORS as e:
            self.error = error_message(e, "Failed to load map")
            return False
        finally:
            self.loading = False

        self.error = None
        self.snapshot = snapshot
        self.canvas.load(snapshot.venue, snapshot.booths)
        self.canvas.set_active_vendor(self.vendor_id)
        return True
