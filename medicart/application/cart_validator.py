# medicart/medicart/application/cart_validator.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional

from medicart.domain.entities import LineItem
from medicart.domain.errors import errmsg


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": list(self.errors)}


def validate_cart(
    items: Iterable[LineItem],
    current_stock: Optional[Mapping[str, Optional[int]]] = None,
) -> ValidationResult:
    """
    Gate for entering checkout and for final submission.

    current_stock: optional product_id -> stock figures fetched from the
    catalog just now. None for a product means it no longer exists.
    Products absent from the mapping are checked against their snapshot only.
    """
    items = list(items)
    errors: List[str] = []
    if not items:
        errors.append(errmsg.CART_EMPTY)

    for it in items:
        limit = it.stock_limit
        if current_stock is not None and it.product_id in current_stock:
            fresh = current_stock[it.product_id]
            if fresh is None:
                errors.append(errmsg.ITEM_UNAVAILABLE.format(name=it.name))
                continue
            limit = fresh
        if it.quantity > limit:
            errors.append(errmsg.ITEM_OVER_STOCK.format(name=it.name, limit=limit))

    return ValidationResult(valid=not errors, errors=errors)
