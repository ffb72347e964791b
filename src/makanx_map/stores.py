"""
Explicitly scoped client stores: the login session and the customer cart.

Both persist through a ``KeyValueStorage`` (string keys, string values), so a
host can back them with memory, a JSON file, or its own storage.
"""

import json
import logging
import os
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Protocol

from . import adapters
from .events import EventHandler
from .types import AuthUser, CartItem

logger = logging.getLogger(__name__)

TOKEN_KEY = "makanx_token"
USER_KEY = "makanx_user"
CART_KEY = "makanx_cart"


class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage, mostly for tests."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """All keys in one JSON object on disk, rewritten on every change."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._data = self._read()

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._write()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._write()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Ignoring unreadable storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Ignoring storage file {self.path}: not a JSON object")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data), encoding="utf-8")
        os.replace(tmp, self.path)


class SessionStore:
    """Current token and user, persisted across restarts."""

    def __init__(self, storage: KeyValueStorage):
        self._storage = storage
        self.token: str | None = None
        self.user: AuthUser | None = None
        self.on_change = EventHandler()

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None and self.user is not None

    def restore(self) -> bool:
        """Load a persisted session; both token and user must be present."""
        token = self._storage.get(TOKEN_KEY)
        raw_user = self._storage.get(USER_KEY)
        if not token or not raw_user:
            return False
        try:
            user = adapters.user_from_wire(json.loads(raw_user))
        except (ValueError, TypeError, KeyError) as e:
            logger.error(f"Ignoring stored user that could not be parsed: {e}")
            return False
        self.token = token
        self.user = user
        self.on_change.invoke(self)
        return True

    def login(self, token: str, user: AuthUser) -> None:
        self.token = token
        self.user = user
        self._storage.set(TOKEN_KEY, token)
        self._storage.set(USER_KEY, json.dumps(adapters.user_to_wire(user)))
        logger.info(f"Logged in as {user.email} ({user.role.value})")
        self.on_change.invoke(self)

    def logout(self) -> None:
        self.token = None
        self.user = None
        self._storage.remove(TOKEN_KEY)
        self._storage.remove(USER_KEY)
        self.on_change.invoke(self)


class CartStore:
    """Single-booth basket.

    Items from a different booth can only be added by replacing the basket,
    which needs the ``confirm_replace`` callback to agree.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        confirm_replace: Callable[[], bool] | None = None,
    ):
        self._storage = storage
        self._confirm_replace = confirm_replace or (lambda: False)
        self.items: list[CartItem] = []
        self.on_change = EventHandler()

    @property
    def booth_id(self) -> str | None:
        return self.items[0].booth_id if self.items else None

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def total(self) -> float:
        return sum(item.price * item.quantity for item in self.items)

    def restore(self) -> None:
        raw = self._storage.get(CART_KEY)
        if not raw:
            self.items = []
            return
        try:
            self.items = [adapters.cart_item_from_wire(d) for d in json.loads(raw)]
        except (ValueError, TypeError, KeyError) as e:
            logger.error(f"Discarding stored cart that could not be parsed: {e}")
            self.items = []

    def add(self, item: CartItem) -> bool:
        """Add an item. Returns False if the basket was kept unchanged."""
        current_booth = self.booth_id
        if current_booth is not None and current_booth != item.booth_id:
            if not self._confirm_replace():
                return False
            self._commit([item])
            return True

        for i, existing in enumerate(self.items):
            if existing.menu_item_id == item.menu_item_id:
                items = list(self.items)
                items[i] = replace(existing, quantity=existing.quantity + item.quantity)
                self._commit(items)
                return True

        self._commit([*self.items, item])
        return True

    def remove(self, menu_item_id: str) -> None:
        self._commit([i for i in self.items if i.menu_item_id != menu_item_id])

    def update_quantity(self, menu_item_id: str, delta: int) -> None:
        """Change an item's quantity by ``delta``; it never drops below 1."""
        self._commit(
            [
                replace(i, quantity=max(1, i.quantity + delta))
                if i.menu_item_id == menu_item_id
                else i
                for i in self.items
            ]
        )

    def clear(self) -> None:
        self._commit([])

    def _commit(self, items: list[CartItem]) -> None:
        self.items = items
        self._storage.set(CART_KEY, json.dumps([adapters.cart_item_to_wire(i) for i in items]))
        self.on_change.invoke(self)
