# medicart/medicart/application/cart_engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional

from medicart.application.cart_validator import ValidationResult, validate_cart
from medicart.application.pricing import DEFAULT_DELIVERY_POLICY, DeliveryPolicy, compute_totals
from medicart.domain.entities import LineItem, Product, Totals
from medicart.domain.errors import INVALID_QUANTITY, STOCK_EXCEEDED, errmsg
from medicart.infrastructure.cart_storage import CartStorage

log = logging.getLogger("app.cart_engine")


@dataclass(frozen=True)
class MutationResult:
    ok: bool
    reason: Optional[str] = None
    limit: Optional[int] = None
    message: str = ""

    def to_dict(self) -> dict:
        return {"ok": self.ok, "reason": self.reason, "limit": self.limit, "message": self.message}


def _ok(message: str = "") -> MutationResult:
    return MutationResult(ok=True, message=message)


def _stock_exceeded(limit: int) -> MutationResult:
    return MutationResult(
        ok=False,
        reason=STOCK_EXCEEDED,
        limit=limit,
        message=errmsg.STOCK_LIMIT.format(limit=limit),
    )


class CartEngine:
    """
    Stock-aware line-item store.

    Owns the cart's line items (keyed by product id, insertion ordered) and is
    the only way to change them. Mutations never raise: a refused change
    leaves the cart as it was and comes back as MutationResult(ok=False).
    Every successful mutation is written through to storage.
    """

    def __init__(self, storage: CartStorage, delivery_policy: DeliveryPolicy = DEFAULT_DELIVERY_POLICY) -> None:
        self.storage = storage
        self.delivery_policy = delivery_policy
        self._items: Dict[str, LineItem] = {}
        self.reload()

    # ----------------------------
    # Reads
    # ----------------------------
    def items(self) -> List[LineItem]:
        return list(self._items.values())

    def get(self, product_id: str) -> Optional[LineItem]:
        return self._items.get(product_id)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._items

    @property
    def is_empty(self) -> bool:
        return not self._items

    def totals(self) -> Totals:
        return compute_totals(self._items.values(), self.delivery_policy)

    def validate(self, current_stock: Optional[Mapping[str, Optional[int]]] = None) -> ValidationResult:
        return validate_cart(self._items.values(), current_stock=current_stock)

    def requires_prescription(self) -> bool:
        return any(it.requires_prescription for it in self._items.values())

    # ----------------------------
    # Mutations
    # ----------------------------
    def add(self, product: Product, quantity: int = 1) -> MutationResult:
        if quantity < 1:
            return MutationResult(ok=False, reason=INVALID_QUANTITY, message=errmsg.QUANTITY_POSITIVE)

        existing = self._items.get(product.id)
        if existing is not None:
            new_quantity = existing.quantity + quantity
            if new_quantity > product.stock:
                log.info("add rejected: %s wants %d, stock=%d", product.id, new_quantity, product.stock)
                return _stock_exceeded(product.stock)
            # refresh the snapshot from the product as it is now
            self._items[product.id] = LineItem.from_product(product, new_quantity)
            self._persist()
            return _ok(errmsg.UPDATED.format(name=product.name))

        if quantity > product.stock:
            log.info("add rejected: %s wants %d, stock=%d", product.id, quantity, product.stock)
            return _stock_exceeded(product.stock)

        self._items[product.id] = LineItem.from_product(product, quantity)
        self._persist()
        return _ok(errmsg.ADDED.format(name=product.name))

    def update_quantity(self, product_id: str, quantity: int) -> MutationResult:
        if quantity <= 0:
            return self.remove(product_id)

        item = self._items.get(product_id)
        if item is None:
            return _ok()
        if quantity > item.stock_limit:
            log.info("update rejected: %s wants %d, stock=%d", product_id, quantity, item.stock_limit)
            return _stock_exceeded(item.stock_limit)

        self._items[product_id] = replace(item, quantity=quantity)
        self._persist()
        return _ok(errmsg.UPDATED.format(name=item.name))

    def remove(self, product_id: str) -> MutationResult:
        item = self._items.pop(product_id, None)
        if item is None:
            return _ok()
        self._persist()
        return _ok(errmsg.REMOVED.format(name=item.name))

    def clear(self) -> MutationResult:
        self._items.clear()
        self._persist()
        return _ok(errmsg.CLEARED)

    def reload(self) -> None:
        """Re-read the persisted cart, dropping in-memory state."""
        self._items = {it.product_id: it for it in self.storage.load()}

    def _persist(self) -> None:
        try:
            self.storage.save(self._items.values())
        except Exception:
            # in-memory cart stays authoritative; the write is retried on the next mutation
            log.exception("Failed to persist cart (%d items)", len(self._items))
