# medicart/medicart/core/config.py
from __future__ import annotations
import os
import logging

# Storefront REST backend (orders, catalog)
STOREFRONT_API_URL: str = os.getenv("STOREFRONT_API_URL", "http://127.0.0.1:5000/api")
STOREFRONT_API_TIMEOUT: float = float(os.getenv("STOREFRONT_API_TIMEOUT", "15"))

# Durable key-value store
STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "mongo").lower()  # "mongo" | "memory"
MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://127.0.0.1:27017")
MONGO_DB: str = os.getenv("MONGO_DB", "medicart")
MONGO_STORAGE_COL: str = os.getenv("MONGO_STORAGE_COL", "client_storage")

CART_STORAGE_KEY: str = os.getenv("CART_STORAGE_KEY", "cart")
TOKEN_STORAGE_KEY: str = os.getenv("TOKEN_STORAGE_KEY", "token")
USER_STORAGE_KEY: str = os.getenv("USER_STORAGE_KEY", "user")

# Free delivery over Rs. 500, flat fee otherwise
FREE_DELIVERY_THRESHOLD: float = float(os.getenv("FREE_DELIVERY_THRESHOLD", "500"))
DELIVERY_FEE: float = float(os.getenv("DELIVERY_FEE", "50"))

PLACEHOLDER_IMAGE: str = "/placeholder.png"

HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "8081"))

# Global logging (module-level loggers inherit this)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
