from __future__ import annotations

import json
from typing import Optional

from pydantic import ValidationError

from offersync.logging_utils import get_logger
from offersync.models import CacheRecord
from offersync.repositories.kv_store import KeyValueStore

logger = get_logger(__name__)


class CatalogCacheRepo:
    """Read, write and clear the single cached catalog record.

    Persistence is best effort: unreadable data is reported as a missing
    record and failed writes are logged and dropped.
    """

    def __init__(self, store: KeyValueStore, key: str) -> None:
        self._store = store
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def read(self) -> Optional[CacheRecord]:
        try:
            raw = self._store.get_item(self._key)
        except (OSError, ValueError):
            logger.warning("Error reading offers cache %r", self._key, exc_info=True)
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return CacheRecord.model_validate(data)
        except (ValueError, ValidationError) as exc:
            logger.warning("Ignoring corrupt offers cache %r: %s", self._key, exc)
            return None

    def write(self, record: CacheRecord) -> None:
        try:
            raw = json.dumps(record.to_storage(), ensure_ascii=False)
            self._store.set_item(self._key, raw)
        except (OSError, TypeError, ValueError):
            logger.warning("Error writing offers cache %r", self._key, exc_info=True)

    def clear(self) -> None:
        try:
            self._store.remove_item(self._key)
        except (OSError, ValueError):
            logger.warning("Error clearing offers cache %r", self._key, exc_info=True)
