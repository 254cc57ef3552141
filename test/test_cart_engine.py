from __future__ import annotations

import json
import random

from medicart.application.cart_engine import CartEngine
from medicart.infrastructure.cart_storage import CartStorage
from medicart.infrastructure.kv_store import InMemoryKeyValueStore

from conftest import make_product


def test_add_new_item_snapshots_product(cart):
    p = make_product("p1", price=120, stock=3, rx=True)
    res = cart.add(p, 2)

    assert res.ok
    assert res.message == "Added Product p1 to cart"
    item = cart.get("p1")
    assert item.quantity == 2
    assert item.stock_limit == 3
    assert item.unit_price == 120
    assert item.unit_label == "tablets"
    assert item.requires_prescription is True
    assert cart.requires_prescription()


def test_add_default_quantity_is_one(cart):
    assert cart.add(make_product("p1")).ok
    assert cart.get("p1").quantity == 1


def test_add_existing_merges_and_refreshes_stock(cart):
    cart.add(make_product("p1", stock=2), 1)
    res = cart.add(make_product("p1", price=90, stock=10), 4)

    assert res.ok
    item = cart.get("p1")
    assert item.quantity == 5
    assert item.stock_limit == 10
    assert item.unit_price == 90


def test_add_beyond_stock_on_existing_is_rejected():
    store = InMemoryKeyValueStore()
    cart = CartEngine(CartStorage(store))
    cart.add(make_product("p1", price=300, stock=1), 1)
    before = store.get("cart")

    res = cart.add(make_product("p1", price=300, stock=1), 1)

    assert not res.ok
    assert res.reason == "stock_exceeded"
    assert res.limit == 1
    assert res.message == "Only 1 items available in stock"
    assert cart.get("p1").quantity == 1
    assert store.get("cart") == before


def test_add_new_item_beyond_stock_is_rejected(cart):
    res = cart.add(make_product("p1", stock=2), 3)
    assert not res.ok
    assert res.limit == 2
    assert "p1" not in cart
    assert cart.is_empty


def test_add_out_of_stock_product_is_rejected(cart):
    res = cart.add(make_product("p1", stock=0))
    assert not res.ok
    assert res.limit == 0


def test_add_non_positive_quantity_is_rejected(cart):
    res = cart.add(make_product("p1"), 0)
    assert not res.ok
    assert res.reason == "invalid_quantity"
    assert cart.is_empty


def test_update_quantity_replaces(cart):
    cart.add(make_product("p1", stock=5), 1)
    res = cart.update_quantity("p1", 4)
    assert res.ok
    assert cart.get("p1").quantity == 4


def test_update_quantity_above_stock_keeps_prior_quantity(cart):
    cart.add(make_product("p1", stock=3), 2)
    res = cart.update_quantity("p1", 4)
    assert not res.ok
    assert res.limit == 3
    assert cart.get("p1").quantity == 2


def test_update_quantity_zero_or_negative_removes(cart):
    cart.add(make_product("p1"), 1)
    cart.add(make_product("p2"), 1)
    assert cart.update_quantity("p1", 0).ok
    assert cart.update_quantity("p2", -3).ok
    assert cart.is_empty


def test_update_quantity_unknown_product_is_noop(cart):
    cart.add(make_product("p1"), 1)
    assert cart.update_quantity("nope", 2).ok
    assert [i.product_id for i in cart.items()] == ["p1"]


def test_remove_and_remove_absent(cart):
    cart.add(make_product("p1"), 1)
    res = cart.remove("p1")
    assert res.ok and res.message == "Removed Product p1 from cart"
    assert cart.remove("p1").ok
    assert cart.is_empty


def test_clear_empties_and_persists(store, cart):
    cart.add(make_product("p1"), 1)
    cart.add(make_product("p2"), 2)
    assert cart.clear().ok
    assert len(cart) == 0
    assert json.loads(store.get("cart")) == []


def test_insertion_order_is_kept(cart):
    for pid in ("c", "a", "b"):
        cart.add(make_product(pid), 1)
    cart.update_quantity("c", 3)
    assert [i.product_id for i in cart.items()] == ["c", "a", "b"]


def test_every_successful_mutation_is_persisted(store, cart):
    cart.add(make_product("p1", stock=5), 2)
    assert json.loads(store.get("cart"))[0]["quantity"] == 2
    cart.update_quantity("p1", 5)
    assert json.loads(store.get("cart"))[0]["quantity"] == 5
    cart.remove("p1")
    assert json.loads(store.get("cart")) == []


def test_engine_rehydrates_from_storage(store, cart):
    cart.add(make_product("p1", stock=5), 2)
    cart.add(make_product("p2", stock=5), 1)

    again = CartEngine(CartStorage(store))
    assert again.items() == cart.items()


def test_reload_picks_up_changes_from_another_engine(store):
    tab_a = CartEngine(CartStorage(store))
    tab_b = CartEngine(CartStorage(store))
    tab_a.add(make_product("p1"), 1)

    assert tab_b.is_empty
    tab_b.reload()
    assert "p1" in tab_b


def test_failed_persistence_write_does_not_raise():
    class BrokenStore(InMemoryKeyValueStore):
        def set(self, key, value):
            raise ConnectionError("store offline")

    cart = CartEngine(CartStorage(BrokenStore()))
    assert cart.add(make_product("p1"), 1).ok
    assert cart.get("p1").quantity == 1


def test_random_operations_never_break_stock_invariant(cart):
    rnd = random.Random(1234)
    pids = ["p1", "p2", "p3", "p4"]
    for _ in range(500):
        op = rnd.choice(["add", "update", "remove", "clear"])
        pid = rnd.choice(pids)
        if op == "add":
            cart.add(make_product(pid, price=rnd.randint(1, 200), stock=rnd.randint(0, 6)), rnd.randint(1, 4))
        elif op == "update":
            cart.update_quantity(pid, rnd.randint(-1, 8))
        elif op == "remove":
            cart.remove(pid)
        elif rnd.random() < 0.05:
            cart.clear()

        items = cart.items()
        assert all(1 <= i.quantity <= i.stock_limit for i in items)
        assert cart.totals().item_count == sum(i.quantity for i in items)
        assert cart.validate().valid == bool(items)
