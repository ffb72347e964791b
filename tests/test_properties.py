"""Tests for the booth properties form and its debounced autosave."""

import asyncio

from makanx_map.background import BackgroundTasks
from makanx_map.properties import BoothPropertiesForm, Debouncer
from makanx_map.types import Booth, VendorRef

DEBOUNCE = 0.05


def make_form(calls, deletes=None):
    async def on_update(booth_id, patch):
        calls.append((booth_id, patch))

    async def on_delete(booth_id):
        if deletes is not None:
            deletes.append(booth_id)

    return BoothPropertiesForm(on_update, on_delete, debounce=DEBOUNCE)


BOOTH = Booth(id="b1", label="A1", vendor=VendorRef("v1", "Satay"))


class TestDebouncer:
    """Tests for Debouncer."""

    def test_only_last_schedule_fires(self):
        """Rapid schedules collapse into one call with the last arguments."""
        fired = []

        async def callback(value):
            fired.append(value)

        async def scenario():
            debouncer = Debouncer(DEBOUNCE, callback)
            for value in "abc":
                debouncer.schedule(value)
                await asyncio.sleep(0.01)
            assert debouncer.pending
            await asyncio.sleep(DEBOUNCE * 3)
            await debouncer.drain()
            assert not debouncer.pending

        asyncio.run(scenario())
        assert fired == ["c"]

    def test_cancel(self):
        """A cancelled timer never fires."""
        fired = []

        async def callback():
            fired.append(True)

        async def scenario():
            debouncer = Debouncer(DEBOUNCE, callback)
            debouncer.schedule()
            debouncer.cancel()
            await asyncio.sleep(DEBOUNCE * 3)

        asyncio.run(scenario())
        assert fired == []


class TestBoothPropertiesForm:
    """Tests for BoothPropertiesForm."""

    def test_typing_burst_saves_once(self):
        """Three quick keystrokes then a pause send exactly one update."""
        calls = []

        async def scenario():
            form = make_form(calls)
            form.select(BOOTH)
            for label in ("N", "No", "Noo "):
                form.set_label(label)
                await asyncio.sleep(0.01)
            await asyncio.sleep(DEBOUNCE * 4)
            await form.drain()

        asyncio.run(scenario())
        assert len(calls) == 1
        booth_id, patch = calls[0]
        assert booth_id == "b1"
        assert patch.label == "Noo"
        assert patch.vendor_id == "v1"

    def test_vendor_cleared_sends_none(self):
        """Choosing no vendor sends an explicit None."""
        calls = []

        async def scenario():
            form = make_form(calls)
            form.select(BOOTH)
            form.set_vendor(None)
            await asyncio.sleep(DEBOUNCE * 3)
            await form.drain()

        asyncio.run(scenario())
        assert calls[0][1].vendor_id is None
        assert calls[0][1].label == "A1"

    def test_switching_booth_drops_pending_save(self):
        """Selecting another booth cancels the old booth's timer."""
        calls = []

        async def scenario():
            form = make_form(calls)
            form.select(BOOTH)
            form.set_label("Changed")
            form.select(Booth(id="b2", label="B"))
            assert form.label == "B"
            assert form.vendor_id == ""
            await asyncio.sleep(DEBOUNCE * 3)
            await form.drain()

        asyncio.run(scenario())
        assert calls == []

    def test_save_now(self):
        """save_now sends immediately and cancels the timer."""
        calls = []

        async def scenario():
            form = make_form(calls)
            form.select(BOOTH)
            form.set_label("Now")
            await form.save_now()
            assert not form.autosave_pending
            assert not form.saving
            await asyncio.sleep(DEBOUNCE * 3)

        asyncio.run(scenario())
        assert [c[1].label for c in calls] == ["Now"]

    def test_no_booth_no_save(self):
        """Edits without a selected booth do nothing."""
        calls = []

        async def scenario():
            form = make_form(calls)
            form.set_label("x")
            assert not form.autosave_pending
            await form.save_now()

        asyncio.run(scenario())
        assert calls == []

    def test_delete_with_confirmation(self):
        """Delete asks first and closes the form on success."""
        deletes = []

        async def scenario():
            form = make_form([], deletes)
            form.select(BOOTH)
            assert await form.delete(confirm=lambda: False) is False
            assert form.booth_id == "b1"
            assert await form.delete(confirm=lambda: True) is True
            assert form.booth_id is None

        asyncio.run(scenario())
        assert deletes == ["b1"]


class TestBackgroundTasks:
    """Tests for BackgroundTasks."""

    def test_failures_are_contained(self):
        """A failing task is logged and drain still completes."""
        order = []

        async def ok(n):
            order.append(n)

        async def boom():
            raise RuntimeError("boom")

        async def scenario():
            tasks = BackgroundTasks("test")
            tasks.spawn(ok(1))
            tasks.spawn(boom())
            tasks.spawn(ok(2))
            await tasks.drain()
            assert len(tasks) == 0

        asyncio.run(scenario())
        assert order == [1, 2]
