"""Key-value backends for the catalog cache.

A backend holds string values under string keys, like browser local storage.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from threading import Lock
from typing import Protocol


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class StorageUnavailableError(OSError):
    """Raised by a backend that refuses reads or writes."""


class MemoryStore:
    """In-process store, used by tests and as a throwaway backend."""

    def __init__(self, initial: dict[str, str] | None = None, *, read_only: bool = False) -> None:
        self._items: dict[str, str] = dict(initial or {})
        self.read_only = read_only

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.read_only:
            raise StorageUnavailableError("storage is read-only")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        if self.read_only:
            raise StorageUnavailableError("storage is read-only")
        self._items.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._items


class JsonFileStore:
    """Store all keys in one JSON object on disk.

    Writes go through a temporary file and `os.replace`, so a crash never
    leaves a half-written file behind.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid store file (expected JSON object): {self._path}")
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _write_all(self, items: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        try:
            tmp_path.write_text(json.dumps(items, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            try:
                items = self._read_all()
            except ValueError:
                items = {}
            items[key] = value
            self._write_all(items)

    def remove_item(self, key: str) -> None:
        with self._lock:
            try:
                items = self._read_all()
            except ValueError:
                items = {}
            if key not in items:
                return
            del items[key]
            self._write_all(items)
