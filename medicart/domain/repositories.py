# medicart/medicart/domain/repositories.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from medicart.domain.entities import OrderReceipt, OrderRequest, Product


class KeyValueStore(ABC):
    """Durable client-side string store (the storefront's localStorage)."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...


class CatalogReadRepo(ABC):
    @abstractmethod
    def by_id(self, product_id: str) -> Optional[Product]: ...


class OrderGateway(ABC):
    @abstractmethod
    def create_order(self, request: OrderRequest) -> OrderReceipt:
        """Place the order. Raises SubmissionFailed on any failure."""
