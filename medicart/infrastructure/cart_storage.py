# medicart/medicart/infrastructure/cart_storage.py
from __future__ import annotations

import ujson as json
import logging
from typing import Iterable, List

from medicart.core.config import CART_STORAGE_KEY
from medicart.domain.entities import LineItem
from medicart.domain.errors import PersistenceCorrupt
from medicart.domain.repositories import KeyValueStore

log = logging.getLogger("app.cart_storage")


def encode_cart(items: Iterable[LineItem]) -> str:
    return json.dumps([i.to_dict() for i in items], ensure_ascii=False)


def decode_cart(raw: str) -> List[LineItem]:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise PersistenceCorrupt(f"cart payload is not JSON: {e}") from e
    if not isinstance(data, list):
        raise PersistenceCorrupt(f"cart payload must be a list, got {type(data).__name__}")
    try:
        items = [LineItem.from_dict(d) for d in data]
    except ValueError as e:
        raise PersistenceCorrupt(str(e)) from e
    seen = set()
    for it in items:
        if it.product_id in seen:
            raise PersistenceCorrupt(f"duplicate product in cart payload: {it.product_id}")
        seen.add(it.product_id)
    return items


class CartStorage:
    """
    Round-trips the cart's line items through the durable key-value store.

    Rehydrated items are trusted as-is (no stock re-check); a payload that
    cannot be decoded is dropped and the cart starts empty.
    """

    def __init__(self, store: KeyValueStore, key: str = CART_STORAGE_KEY) -> None:
        self.store = store
        self.key = key

    def load(self) -> List[LineItem]:
        raw = self.store.get(self.key)
        if raw is None or not raw.strip():
            return []
        try:
            items = decode_cart(raw)
        except PersistenceCorrupt as e:
            log.warning("Discarding corrupted cart under %r: %s", self.key, e)
            self.store.delete(self.key)
            return []
        log.info("Rehydrated cart with %d line items", len(items))
        return items

    def save(self, items: Iterable[LineItem]) -> None:
        self.store.set(self.key, encode_cart(items))
