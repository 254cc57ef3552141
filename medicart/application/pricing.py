# medicart/medicart/application/pricing.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from medicart.core.config import DELIVERY_FEE, FREE_DELIVERY_THRESHOLD
from medicart.domain.entities import LineItem, Totals


@dataclass(frozen=True)
class DeliveryPolicy:
    free_threshold: float = 500.0
    fee: float = 50.0

    def fee_for(self, subtotal: float) -> float:
        return 0.0 if subtotal >= self.free_threshold else self.fee


DEFAULT_DELIVERY_POLICY = DeliveryPolicy(free_threshold=FREE_DELIVERY_THRESHOLD, fee=DELIVERY_FEE)


def compute_totals(items: Iterable[LineItem], policy: DeliveryPolicy = DEFAULT_DELIVERY_POLICY) -> Totals:
    """Derive totals from the line items; recomputed on every read, never stored."""
    subtotal = 0.0
    item_count = 0
    for it in items:
        subtotal += it.unit_price * it.quantity
        item_count += it.quantity
    fee = policy.fee_for(subtotal)
    return Totals(subtotal=subtotal, delivery_fee=fee, total=subtotal + fee, item_count=item_count)
