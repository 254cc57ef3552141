from __future__ import annotations

import ujson as json

import pytest

from medicart.domain.entities import LineItem
from medicart.infrastructure.cart_storage import CartStorage, decode_cart, encode_cart
from medicart.domain.errors import PersistenceCorrupt
from medicart.infrastructure.kv_store import InMemoryKeyValueStore, MongoKeyValueStore

from conftest import make_product


def _items():
    return [
        LineItem.from_product(make_product("p1", price=120.5, stock=4, rx=True), 2),
        LineItem.from_product(make_product("p2", price=0, stock=1), 1),
    ]


def test_round_trip():
    store = InMemoryKeyValueStore()
    storage = CartStorage(store)
    storage.save(_items())
    assert storage.load() == _items()


def test_stored_shape_matches_storefront():
    raw = json.loads(encode_cart(_items()[:1]))
    assert raw == [{
        "product": "p1",
        "name": "Product p1",
        "price": 120.5,
        "image": "https://cdn.example/p1.png",
        "unit": "tablets",
        "quantity": 2,
        "stock": 4,
        "requiresPrescription": True,
    }]


def test_missing_image_uses_placeholder():
    item = LineItem.from_dict({"product": "x", "name": "X", "price": 1, "quantity": 1, "stock": 1})
    assert item.image_url == "/placeholder.png"


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_absent_or_empty_payload_loads_empty(raw):
    store = InMemoryKeyValueStore({} if raw is None else {"cart": raw})
    assert CartStorage(store).load() == []


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        '{"product": "p1"}',
        '[{"product": "p1", "quantity": "many", "stock": 1, "price": 1}]',
        '[{"product": "p1", "quantity": 0, "stock": 1, "price": 1}]',
        '[1, 2, 3]',
        '[{"product": "p1", "quantity": 1, "stock": 1, "price": 1},'
        ' {"product": "p1", "quantity": 1, "stock": 1, "price": 1}]',
        '[{"product": "p1", "quantity": 1, "stock": 1, "price": 1e999}]',
        '[{"product": "p1", "quantity": 1, "stock": 1, "price": "NaN"}]',
    ],
)
def test_corrupted_payload_is_discarded(raw):
    store = InMemoryKeyValueStore({"cart": raw})
    assert CartStorage(store).load() == []
    assert store.get("cart") is None


def test_decode_raises_persistence_corrupt():
    with pytest.raises(PersistenceCorrupt):
        decode_cart("nope")


@pytest.mark.parametrize("price", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_price_is_rejected(price):
    d = {"product": "p1", "name": "P", "price": price, "quantity": 1, "stock": 1}
    with pytest.raises(ValueError):
        LineItem.from_dict(d)
    with pytest.raises(PersistenceCorrupt):
        decode_cart(json.dumps([{**d, "price": str(price)}]))


def test_rehydration_does_not_recheck_stock():
    raw = json.dumps([{"product": "p1", "name": "A", "price": 10, "quantity": 9, "stock": 2}])
    items = CartStorage(InMemoryKeyValueStore({"cart": raw})).load()
    assert items[0].quantity == 9


class FakeCollection:
    def __init__(self):
        self.docs = {}

    def find_one(self, flt):
        return self.docs.get(flt["_id"])

    def replace_one(self, flt, doc, upsert=False):
        assert upsert
        self.docs[flt["_id"]] = doc

    def delete_one(self, flt):
        self.docs.pop(flt["_id"], None)


def test_mongo_store_round_trip():
    col = FakeCollection()
    storage = CartStorage(MongoKeyValueStore(col))
    storage.save(_items())
    assert col.docs["cart"]["_id"] == "cart"
    assert storage.load() == _items()

    col.docs["cart"]["value"] = "garbage"
    assert storage.load() == []
    assert "cart" not in col.docs
