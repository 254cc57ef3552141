# medicart/medicart/domain/entities.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from medicart.core.config import PLACEHOLDER_IMAGE


@dataclass(frozen=True)
class Product:
    """Catalog snapshot of a product, as served by the storefront backend."""
    id: str
    name: str
    price: float
    stock: int
    unit: str
    image_url: str | None = None
    requires_prescription: bool = False

    @classmethod
    def from_api(cls, doc: Dict[str, Any]) -> "Product":
        image = None
        images = doc.get("images")
        if isinstance(images, list) and images:
            first = images[0]
            image = first.get("url") if isinstance(first, dict) else str(first)
        elif isinstance(doc.get("imagesURL"), str):
            image = doc["imagesURL"]
        return cls(
            id=str(doc.get("_id") or doc.get("id") or ""),
            name=str(doc.get("name") or "").strip(),
            price=max(0.0, float(doc.get("price") or 0)),
            stock=max(0, int(doc.get("stock") or 0)),
            unit=str(doc.get("unit") or ""),
            image_url=image,
            requires_prescription=bool(doc.get("requiresPrescription", False)),
        )


@dataclass(frozen=True)
class LineItem:
    product_id: str
    name: str
    unit_price: float
    image_url: str
    unit_label: str
    quantity: int
    stock_limit: int
    requires_prescription: bool = False

    @classmethod
    def from_product(cls, product: Product, quantity: int) -> "LineItem":
        return cls(
            product_id=product.id,
            name=product.name,
            unit_price=product.price,
            image_url=product.image_url or PLACEHOLDER_IMAGE,
            unit_label=product.unit,
            quantity=quantity,
            stock_limit=product.stock,
            requires_prescription=product.requires_prescription,
        )

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        # same shape the web storefront keeps in localStorage
        return {
            "product": self.product_id,
            "name": self.name,
            "price": self.unit_price,
            "image": self.image_url,
            "unit": self.unit_label,
            "quantity": self.quantity,
            "stock": self.stock_limit,
            "requiresPrescription": self.requires_prescription,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LineItem":
        if not isinstance(d, dict):
            raise ValueError(f"line item must be an object, got {type(d).__name__}")
        try:
            product_id = str(d["product"])
            quantity = int(d["quantity"])
            stock = int(d["stock"])
            price = float(d["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid line item: {e}") from e
        if not product_id or quantity < 1 or stock < 0 or price < 0 or not math.isfinite(price):
            raise ValueError(f"Invalid line item: {d!r}")
        return cls(
            product_id=product_id,
            name=str(d.get("name") or ""),
            unit_price=price,
            image_url=str(d.get("image") or PLACEHOLDER_IMAGE),
            unit_label=str(d.get("unit") or ""),
            quantity=quantity,
            stock_limit=stock,
            requires_prescription=bool(d.get("requiresPrescription", False)),
        )


@dataclass(frozen=True)
class Totals:
    subtotal: float
    delivery_fee: float
    total: float
    item_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "delivery_fee": self.delivery_fee,
            "total": self.total,
            "item_count": self.item_count,
        }


@dataclass
class DeliveryAddress:
    street: str = ""
    city: str = ""
    area: str = ""

    def is_complete(self) -> bool:
        return bool(self.street.strip() and self.city.strip() and self.area.strip())

    def to_dict(self) -> Dict[str, str]:
        return {"street": self.street, "city": self.city, "area": self.area}


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class OrderLine:
    product_id: str
    name: str
    price: float
    quantity: int

    def to_dict(self) -> Dict[str, Any]:
        return {"product": self.product_id, "name": self.name, "price": self.price, "quantity": self.quantity}


@dataclass(frozen=True)
class OrderRequest:
    items: List[OrderLine]
    delivery_address: DeliveryAddress
    payment_method: str
    special_instructions: str = ""
    prescription: Optional[Attachment] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "items": [i.to_dict() for i in self.items],
            "deliveryAddress": self.delivery_address.to_dict(),
            "paymentMethod": self.payment_method,
            "specialInstructions": self.special_instructions or "",
        }


@dataclass(frozen=True)
class OrderReceipt:
    order_id: str
    data: Dict[str, Any] = field(default_factory=dict)
