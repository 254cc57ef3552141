# medicart/medicart/infrastructure/storefront_api.py
from __future__ import annotations

import ujson as json
import logging
from typing import Any, Dict, List, Optional

import requests

from medicart.core.config import (
    STOREFRONT_API_TIMEOUT,
    STOREFRONT_API_URL,
    TOKEN_STORAGE_KEY,
    USER_STORAGE_KEY,
)
from medicart.domain.entities import OrderReceipt, OrderRequest, Product
from medicart.domain.errors import SubmissionFailed, errmsg
from medicart.domain.repositories import CatalogReadRepo, KeyValueStore, OrderGateway

log = logging.getLogger("app.storefront_api")


class StorefrontSession:
    """
    Thin wrapper over requests.Session for the storefront backend.
    Adds the bearer token kept in the client store; a 401 drops the stored
    credentials so the next checkout attempt is sent back to login.
    """

    def __init__(
        self,
        store: KeyValueStore,
        base_url: str = STOREFRONT_API_URL,
        timeout: float = STOREFRONT_API_TIMEOUT,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.store = store
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self) -> Dict[str, str]:
        token = self.store.get(TOKEN_STORAGE_KEY)
        return {"Authorization": f"Bearer {token}"} if token else {}

    def request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = self.base_url + path
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        r = self.http.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        if r.status_code == 401:
            log.info("Backend rejected credentials; clearing stored token")
            self.store.delete(TOKEN_STORAGE_KEY)
            self.store.delete(USER_STORAGE_KEY)
        return r


def _json_or_empty(r: requests.Response) -> Dict[str, Any]:
    try:
        data = r.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {"data": data}


class HttpOrderGateway(OrderGateway):
    def __init__(self, session: StorefrontSession) -> None:
        self.session = session

    def create_order(self, request: OrderRequest) -> OrderReceipt:
        # always multipart: the backend reads the order from the "data" field
        files: Dict[str, Any] = {"data": (None, json.dumps(request.to_payload(), ensure_ascii=False))}
        if request.prescription is not None:
            p = request.prescription
            files["prescription"] = (p.filename, p.content, p.content_type)

        try:
            r = self.session.request("POST", "/orders", files=files)
        except requests.RequestException as e:
            log.warning("Order submission transport error: %s", e)
            raise SubmissionFailed(errmsg.ORDER_FAILED) from e

        body = _json_or_empty(r)
        if not r.ok or not body.get("success"):
            message = body.get("message") or errmsg.ORDER_FAILED
            log.warning("Order submission rejected (%s): %s", r.status_code, message)
            raise SubmissionFailed(message, status_code=r.status_code)

        data = body.get("data") or {}
        order = data.get("order", data) if isinstance(data, dict) else {}
        order_id = str(order.get("_id") or order.get("id") or order.get("orderNumber") or "")
        log.info("Order placed: %s", order_id or "<no id>")
        return OrderReceipt(order_id=order_id, data=order)

    # --- order tracking (reached from the completion step) ---
    def my_orders(self, page: Optional[int] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {k: v for k, v in (("page", page), ("limit", limit)) if v is not None}
        r = self.session.request("GET", "/orders/myorders", params=params)
        r.raise_for_status()
        data = _json_or_empty(r).get("data") or []
        if isinstance(data, dict):
            data = data.get("orders") or []
        return list(data)

    def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        r = self.session.request("GET", f"/orders/{order_id}")
        if r.status_code == 404:
            return None
        r.raise_for_status()
        return _json_or_empty(r).get("data")

    def cancel_order(self, order_id: str, reason: str) -> Dict[str, Any]:
        r = self.session.request("PUT", f"/orders/{order_id}/cancel", json={"reason": reason})
        r.raise_for_status()
        return _json_or_empty(r).get("data") or {}


class HttpCatalog(CatalogReadRepo):
    def __init__(self, session: StorefrontSession) -> None:
        self.session = session

    def by_id(self, product_id: str) -> Optional[Product]:
        r = self.session.request("GET", f"/products/{product_id}")
        if r.status_code == 404:
            return None
        r.raise_for_status()
        data = _json_or_empty(r).get("data")
        if isinstance(data, dict) and isinstance(data.get("product"), dict):
            data = data["product"]
        if not isinstance(data, dict):
            log.warning("Unexpected product payload for %s", product_id)
            return None
        return Product.from_api(data)
