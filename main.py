from __future__ import annotations

import logging
import uvicorn
from fastapi import FastAPI
from pymongo import MongoClient
from dotenv import load_dotenv
load_dotenv()
from medicart.api.routes import router
from medicart.core.config import (
    HOST, PORT, STORAGE_BACKEND, MONGO_URI, MONGO_DB, MONGO_STORAGE_COL, STOREFRONT_API_URL,
)

from medicart.application.cart_engine import CartEngine
from medicart.infrastructure.cart_storage import CartStorage
from medicart.infrastructure.kv_store import InMemoryKeyValueStore, MongoKeyValueStore
from medicart.infrastructure.storefront_api import HttpCatalog, HttpOrderGateway, StorefrontSession

log = logging.getLogger("app")
app = FastAPI(title="MediCart Storefront")
app.include_router(router)

_mongo_client: MongoClient | None = None


@app.on_event("startup")
def on_startup() -> None:
    global _mongo_client

    if STORAGE_BACKEND == "memory":
        log.warning("STORAGE_BACKEND=memory: cart will not survive a restart")
        store = InMemoryKeyValueStore()
    else:
        _mongo_client = MongoClient(MONGO_URI, serverSelectionTimeoutMS=3000)
        store = MongoKeyValueStore(_mongo_client[MONGO_DB][MONGO_STORAGE_COL])

    api = StorefrontSession(store, base_url=STOREFRONT_API_URL)
    cart = CartEngine(CartStorage(store))

    # DI for routes.py
    app.state.store = store
    app.state.cart = cart
    app.state.catalog = HttpCatalog(api)
    app.state.orders = HttpOrderGateway(api)
    app.state.checkout = None

    log.info("Startup complete (%d line items in cart)", len(cart))


@app.on_event("shutdown")
def on_shutdown() -> None:
    global _mongo_client
    if _mongo_client:
        _mongo_client.close()


if __name__ == "__main__":
    uvicorn.run("main:app", host=HOST, port=PORT, reload=False)
