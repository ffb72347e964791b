"""Tests for the session and cart stores."""

import json

from makanx_map.stores import (
    CART_KEY,
    TOKEN_KEY,
    USER_KEY,
    CartStore,
    JsonFileStorage,
    MemoryStorage,
    SessionStore,
)
from makanx_map.types import AuthUser, CartItem, UserRole

USER = AuthUser(id="u1", name="Ana", email="ana@example.com", role=UserRole.VENDOR, vendor_id="v1")


def item(menu_item_id="m1", booth_id="b1", quantity=1, price=3.5):
    return CartItem(
        menu_item_id=menu_item_id, name="Satay", price=price, quantity=quantity,
        vendor_id="v1", vendor_name="Satay Corner", booth_id=booth_id, event_id="e1",
    )


class TestJsonFileStorage:
    """Tests for JsonFileStorage."""

    def test_persists_between_instances(self, tmp_path):
        """Values written by one instance are read by the next."""
        path = tmp_path / "state" / "session.json"
        JsonFileStorage(path).set("k", "v")
        assert JsonFileStorage(path).get("k") == "v"
        assert not (tmp_path / "state" / "session.json.tmp").exists()

    def test_remove(self, tmp_path):
        """Removed keys are gone from disk."""
        path = tmp_path / "session.json"
        storage = JsonFileStorage(path)
        storage.set("a", "1")
        storage.remove("a")
        assert json.loads(path.read_text()) == {}

    def test_corrupt_file_ignored(self, tmp_path):
        """An unreadable file starts empty."""
        path = tmp_path / "session.json"
        path.write_text("{not json")
        assert JsonFileStorage(path).get("a") is None
        path.write_text("[1, 2]")
        assert JsonFileStorage(path).get("a") is None


class TestSessionStore:
    """Tests for SessionStore."""

    def test_login_restore_logout(self):
        """A stored login survives a restart until logout."""
        storage = MemoryStorage()
        SessionStore(storage).login("tok", USER)

        restored = SessionStore(storage)
        assert restored.restore()
        assert restored.is_authenticated
        assert restored.user == USER

        restored.logout()
        assert storage.get(TOKEN_KEY) is None
        assert storage.get(USER_KEY) is None
        assert not restored.is_authenticated

    def test_needs_both_keys(self):
        """A token without a user is not a session."""
        session = SessionStore(MemoryStorage({TOKEN_KEY: "tok"}))
        assert not session.restore()
        assert not session.is_authenticated

    def test_corrupt_user(self):
        """An unparseable user is ignored."""
        session = SessionStore(MemoryStorage({TOKEN_KEY: "tok", USER_KEY: "{oops"}))
        assert not session.restore()
        assert session.token is None

    def test_change_events(self):
        """Login and logout notify listeners."""
        session = SessionStore(MemoryStorage())
        seen = []
        session.on_change.add_listener(lambda s: seen.append(s.is_authenticated))
        session.login("tok", USER)
        session.logout()
        assert seen == [True, False]


class TestCartStore:
    """Tests for CartStore."""

    def test_same_item_merges(self):
        """Adding an item twice raises its quantity."""
        cart = CartStore(MemoryStorage())
        cart.add(item())
        cart.add(item(quantity=2))
        assert len(cart.items) == 1
        assert cart.item_count == 3
        assert cart.total == 10.5

    def test_other_booth_needs_confirmation(self):
        """A declined replacement keeps the basket."""
        cart = CartStore(MemoryStorage())
        cart.add(item())
        assert cart.add(item("m2", booth_id="b2")) is False
        assert cart.booth_id == "b1"

    def test_other_booth_replaces_when_confirmed(self):
        """An accepted replacement starts a new basket."""
        cart = CartStore(MemoryStorage(), confirm_replace=lambda: True)
        cart.add(item())
        assert cart.add(item("m2", booth_id="b2"))
        assert [i.menu_item_id for i in cart.items] == ["m2"]
        assert cart.booth_id == "b2"

    def test_quantity_floor_and_remove(self):
        """Quantity never drops below one; remove and clear empty the basket."""
        cart = CartStore(MemoryStorage())
        cart.add(item())
        cart.add(item("m2"))
        cart.update_quantity("m1", -5)
        assert cart.items[0].quantity == 1
        cart.remove("m1")
        assert [i.menu_item_id for i in cart.items] == ["m2"]
        cart.clear()
        assert cart.items == []
        assert cart.booth_id is None

    def test_restore(self):
        """A persisted basket is restored and a corrupt one discarded."""
        storage = MemoryStorage()
        CartStore(storage).add(item(quantity=2))
        cart = CartStore(storage)
        cart.restore()
        assert cart.items == [item(quantity=2)]

        storage.set(CART_KEY, '{"bad": true}')
        cart.restore()
        assert cart.items == []
