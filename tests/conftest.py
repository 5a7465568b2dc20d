"""Shared fixtures for the offersync tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
BACKEND = ROOT / "backend"

# Ensure the backend package is importable without installing.
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from offersync.fetcher import (  # noqa: E402
    ConditionalFetcher,
    FetchOutcome,
    Validators,
)
from offersync.models import CacheRecord  # noqa: E402
from offersync.repositories import CatalogCacheRepo, MemoryStore  # noqa: E402

HOUR_MS = 60 * 60 * 1000
TTL_MS = 24 * HOUR_MS
NOW_MS = 1_760_000_000_000
CACHE_KEY = "coolvoce-offers-cache-v1"
CATALOG_URL = "https://offers.example/data/offers.json"


class FakeClock:
    def __init__(self, now_ms: int = NOW_MS) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


class ScriptedFetcher(ConditionalFetcher):
    """Fetcher that returns queued outcomes and records every call."""

    def __init__(self, *outcomes: FetchOutcome, on_fetch: Callable[[], None] | None = None) -> None:
        super().__init__(None)
        self._outcomes = list(outcomes)
        self._on_fetch = on_fetch
        self.calls: list[tuple[str, Validators | None]] = []

    async def fetch(
        self,
        url: str,
        validators: Validators | None = None,
        *,
        timeout_sec: float | None = None,
    ) -> FetchOutcome:
        self.calls.append((url, validators))
        if self._on_fetch is not None:
            self._on_fetch()
        if not self._outcomes:
            raise AssertionError("unexpected fetch")
        return self._outcomes.pop(0)


@pytest.fixture()
def sample_payload() -> dict[str, Any]:
    return {
        "PROMO10": {"label": "Promo 10", "desc": ["5GB extra"]},
        "BASE5": {"label": "Base 5", "desc": ["100 minuti", "1GB"]},
    }


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def repo(store: MemoryStore) -> CatalogCacheRepo:
    return CatalogCacheRepo(store, CACHE_KEY)


def make_record(
    payload: dict[str, Any],
    *,
    age_ms: int,
    tag: str | None = "v1",
    ts: str | None = "Mon, 01 Sep 2025 10:00:00 GMT",
) -> CacheRecord:
    return CacheRecord(
        validator_tag=tag,
        validator_timestamp=ts,
        fetched_at=NOW_MS - age_ms,
        payload=payload,
    )
