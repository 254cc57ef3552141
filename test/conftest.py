from __future__ import annotations

import threading
from typing import Dict, List, Optional

import pytest

from medicart.application.cart_engine import CartEngine
from medicart.application.pricing import DeliveryPolicy
from medicart.domain.entities import OrderReceipt, OrderRequest, Product
from medicart.domain.errors import SubmissionFailed
from medicart.domain.repositories import CatalogReadRepo, OrderGateway
from medicart.infrastructure.cart_storage import CartStorage
from medicart.infrastructure.kv_store import InMemoryKeyValueStore


def make_product(pid: str = "p1", price: float = 100.0, stock: int = 5, rx: bool = False, name: str | None = None) -> Product:
    return Product(
        id=pid,
        name=name or f"Product {pid}",
        price=price,
        stock=stock,
        unit="tablets",
        image_url=f"https://cdn.example/{pid}.png",
        requires_prescription=rx,
    )


class FakeCatalog(CatalogReadRepo):
    def __init__(self, products: List[Product]) -> None:
        self.products: Dict[str, Product] = {p.id: p for p in products}

    def by_id(self, product_id: str) -> Optional[Product]:
        return self.products.get(product_id)


class FakeOrderGateway(OrderGateway):
    """Records requests; fails while `fail` is set; optionally blocks until released."""

    def __init__(self) -> None:
        self.requests: List[OrderRequest] = []
        self.fail: Optional[str] = None
        self.block = False
        self.entered = threading.Event()
        self.release = threading.Event()

    def create_order(self, request: OrderRequest) -> OrderReceipt:
        self.requests.append(request)
        self.entered.set()
        if self.block:
            self.release.wait(timeout=5)
        if self.fail:
            raise SubmissionFailed(self.fail, status_code=500)
        return OrderReceipt(order_id=f"ORD-{len(self.requests):04d}", data={"success": True})


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store():
    return InMemoryKeyValueStore({"token": "t0k3n"})


@pytest.fixture
def cart(store):
    return CartEngine(CartStorage(store), delivery_policy=DeliveryPolicy(free_threshold=500, fee=50))


@pytest.fixture
def orders():
    return FakeOrderGateway()
