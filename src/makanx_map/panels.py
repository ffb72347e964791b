"""
Sheet and list state for the map pages.

``BottomSheet`` is the generic layout primitive; ``ToolsSheet`` and
``VendorDetailSheet`` are the two concrete sheets built on it. Callers pick
the one they need.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

import httpx

from .api import ApiError, MakanxApi
from .types import Vendor

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"
ALL_CATEGORIES = ("ALL", "All")

DEFAULT_SNAP_POINTS = (25.0, 50.0, 80.0)


def vendor_category(vendor: Vendor) -> str:
    return (vendor.category or "").strip() or UNCATEGORIZED


def vendor_categories(vendors: Iterable[Vendor]) -> list[str]:
    """Distinct categories, blank ones grouped as Uncategorized, sorted."""
    return sorted({vendor_category(v) for v in vendors})


def filter_vendors(
    vendors: Iterable[Vendor], search: str = "", category: str = "ALL"
) -> list[Vendor]:
    needle = search.strip().lower()
    return [
        v
        for v in vendors
        if (not needle or needle in v.name.lower())
        and (category in ALL_CATEGORIES or vendor_category(v) == category)
    ]


@dataclass
class BottomSheet:
    """Open/closed state and snap position of a sheet anchored to the bottom.

    Snap points are heights in percent of the viewport, lowest first.
    """

    snap_points: tuple[float, ...] = DEFAULT_SNAP_POINTS
    initial_snap: int = 0
    header: str | None = None
    is_open: bool = False
    snap_index: int = field(init=False)

    def __post_init__(self):
        if not self.snap_points:
            raise ValueError("a bottom sheet needs at least one snap point")
        self.snap_index = self._clamp(self.initial_snap)

    @property
    def height_percent(self) -> float:
        return self.snap_points[self.snap_index] if self.is_open else 0.0

    def open(self, snap: int | None = None) -> None:
        self.is_open = True
        self.snap_index = self._clamp(self.initial_snap if snap is None else snap)

    def close(self) -> None:
        self.is_open = False

    def snap_to(self, index: int) -> None:
        self.snap_index = self._clamp(index)

    def expand(self) -> None:
        self.snap_to(self.snap_index + 1)

    def collapse(self) -> None:
        self.snap_to(self.snap_index - 1)

    def _clamp(self, index: int) -> int:
        return max(0, min(len(self.snap_points) - 1, index))


class ToolsSheet:
    """Anchor editor tool tray."""

    def __init__(self, sheet: BottomSheet | None = None):
        self.sheet = sheet or BottomSheet(snap_points=(20.0, 45.0), header="Tools")

    @property
    def is_open(self) -> bool:
        return self.sheet.is_open

    def toggle(self) -> None:
        if self.sheet.is_open:
            self.sheet.close()
        else:
            self.sheet.open()


class VendorDetailSheet:
    """Vendor details for the booth the customer tapped.

    A vendor that cannot be fetched leaves ``vendor`` as None, which the
    host shows as "Vendor details not available".
    """

    def __init__(self, api: MakanxApi, sheet: BottomSheet | None = None):
        self.api = api
        self.sheet = sheet or BottomSheet()
        self.vendor_id: str | None = None
        self.booth_label: str | None = None
        self.vendor: Vendor | None = None
        self.loading = False

    @property
    def is_open(self) -> bool:
        return self.sheet.is_open

    @property
    def available(self) -> bool:
        return self.vendor is not None

    async def show(self, vendor_id: str | None, booth_label: str | None = None) -> Vendor | None:
        self.vendor_id = vendor_id
        self.booth_label = booth_label
        self.vendor = None
        if not vendor_id:
            self.sheet.close()
            return None

        self.sheet.open()
        self.loading = True
        try:
            vendor = await self.api.vendor_detail(vendor_id)
        except (ApiError, httpx.HTTPError) as e:
            logger.debug(f"Vendor {vendor_id} details unavailable: {e}")
            vendor = None
        finally:
            self.loading = False
        # A newer show() may have replaced the target meanwhile
        if self.vendor_id == vendor_id:
            self.vendor = vendor
        return vendor

    def close(self) -> None:
        self.vendor_id = None
        self.vendor = None
        self.sheet.close()
