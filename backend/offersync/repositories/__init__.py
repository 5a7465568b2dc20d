"""Persistence for the cached catalog."""

from offersync.repositories.cache_repo import CatalogCacheRepo
from offersync.repositories.kv_store import (
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    StorageUnavailableError,
)

__all__ = [
    "CatalogCacheRepo",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "StorageUnavailableError",
]
