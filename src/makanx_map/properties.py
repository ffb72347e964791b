"""
Booth properties form with debounced autosave.

Every edit restarts a single timer; when it fires, one update is sent
carrying the complete current field set (trimmed label, vendor id or None).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .background import BackgroundTasks
from .types import Booth, BoothPatch

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.35

UpdateCallback = Callable[[str, BoothPatch], Awaitable[Any]]
DeleteCallback = Callable[[str], Awaitable[Any]]


class Debouncer:
    """Runs an async callback once, ``delay`` seconds after the last schedule()."""

    def __init__(self, delay: float, callback: Callable[..., Awaitable[Any]]):
        self.delay = delay
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None
        self._tasks = BackgroundTasks("debounced")

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, *args: Any) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, args)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def drain(self) -> None:
        await self._tasks.drain()

    def _fire(self, args: tuple[Any, ...]) -> None:
        self._handle = None
        self._tasks.spawn(self._callback(*args))


class BoothPropertiesForm:
    """Label/vendor editor for the selected booth."""

    def __init__(
        self,
        on_update: UpdateCallback,
        on_delete: DeleteCallback | None = None,
        debounce: float = DEFAULT_DEBOUNCE,
    ):
        self._on_update = on_update
        self._on_delete = on_delete
        self._debouncer = Debouncer(debounce, self._submit)

        self.booth_id: str | None = None
        self.label = ""
        # "" means no vendor selected
        self.vendor_id = ""
        self.saving = False

    @property
    def debounce(self) -> float:
        return self._debouncer.delay

    @property
    def autosave_pending(self) -> bool:
        return self._debouncer.pending

    def select(self, booth: Booth | None) -> None:
        """Switch target booth. A pending autosave for the old booth is dropped."""
        self._debouncer.cancel()
        if booth is None:
            self.booth_id = None
            self.label = ""
            self.vendor_id = ""
            return
        self.booth_id = booth.id
        self.label = booth.label
        self.vendor_id = booth.vendor_id or ""

    def set_label(self, label: str) -> None:
        self.label = label
        self._schedule()

    def set_vendor(self, vendor_id: str | None) -> None:
        self.vendor_id = vendor_id or ""
        self._schedule()

    def build_patch(self) -> BoothPatch:
        return BoothPatch(label=self.label.strip(), vendor_id=self.vendor_id or None)

    async def save_now(self) -> None:
        self._debouncer.cancel()
        if self.booth_id is None:
            return
        await self._submit(self.booth_id, self.build_patch())

    async def delete(self, confirm: Callable[[], bool] | None = None) -> bool:
        """Delete the booth (after ``confirm``, when given) and close the form."""
        if self.booth_id is None or self._on_delete is None:
            return False
        if confirm is not None and not confirm():
            return False
        self._debouncer.cancel()
        self.saving = True
        try:
            await self._on_delete(self.booth_id)
        finally:
            self.saving = False
        self.close()
        return True

    def close(self) -> None:
        self.select(None)

    async def drain(self) -> None:
        await self._debouncer.drain()

    def _schedule(self) -> None:
        if self.booth_id is None:
            return
        # Snapshot now so the write matches what was on screen when typing stopped
        self._debouncer.schedule(self.booth_id, self.build_patch())

    async def _submit(self, booth_id: str, patch: BoothPatch) -> None:
        logger.debug(f"Saving booth {booth_id} properties: {patch}")
        self.saving = True
        try:
            await self._on_update(booth_id, patch)
        finally:
            self.saving = False
