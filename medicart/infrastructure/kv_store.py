# =========================
# FILE: medicart/medicart/infrastructure/kv_store.py
# =========================
from __future__ import annotations

import logging
import time
from typing import Dict, Optional

from pymongo.collection import Collection

from medicart.domain.repositories import KeyValueStore

log = logging.getLogger("app.kv_store")


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class MongoKeyValueStore(KeyValueStore):
    """
    One document per key: {_id: key, value: <str>, updated_at: <epoch>}.
    Writes are upserts, so the collection needs no setup.
    """

    def __init__(self, col: Collection) -> None:
        self._col = col

    def get(self, key: str) -> Optional[str]:
        doc = self._col.find_one({"_id": key})
        if not doc:
            return None
        value = doc.get("value")
        if value is None:
            return None
        if not isinstance(value, str):
            log.warning("Non-string value stored under %r; treating as text", key)
            return str(value)
        return value

    def set(self, key: str, value: str) -> None:
        self._col.replace_one(
            {"_id": key},
            {"_id": key, "value": value, "updated_at": time.time()},
            upsert=True,
        )

    def delete(self, key: str) -> None:
        self._col.delete_one({"_id": key})
