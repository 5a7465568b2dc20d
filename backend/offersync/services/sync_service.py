"""Catalog sync: serve from cache, revalidate, fetch, notify."""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Any, Callable, Optional

import httpx

from offersync.config import OfferSyncSettings, settings
from offersync.events import EventNotifier
from offersync.fetcher import (
    ConditionalFetcher,
    FetchFresh,
    FetchNotModified,
    FetchOutcome,
    Validators,
    dump_outcome,
)
from offersync.logging_utils import get_logger
from offersync.models import CacheRecord, CatalogChange, OfferDescriptor, parse_offers, same_content
from offersync.repositories import CatalogCacheRepo, JsonFileStore

logger = get_logger(__name__)


class SyncState(str, Enum):
    COLD_START = "cold_start"
    OFFLINE = "offline"
    SERVE_FRESH_CACHE = "serve_fresh_cache"
    BLOCKING_FETCH = "blocking_fetch"
    SETTLED = "settled"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _validators(record: Optional[CacheRecord]) -> Optional[Validators]:
    if record is None or not record.has_validators():
        return None
    return Validators(record.validator_tag, record.validator_timestamp)


class CatalogSyncService:
    """Keep the offer catalog in sync with its origin.

    `load()` reads the cached record and picks one strategy:

    - no networked transport: serve the cache (or an empty catalog), no fetch;
    - fresh cache: serve it at once and revalidate in the background;
    - stale or missing cache: fetch first, then serve.

    "catalog ready" fires once per run after the catalog is settled.
    "catalog changed" fires only after that, and only when the fetched
    content differs from what consumers already saw. The first population of
    an empty cache is not a change.
    """

    def __init__(
        self,
        repo: CatalogCacheRepo,
        fetcher: ConditionalFetcher,
        *,
        catalog_url: str,
        ttl_ms: int,
        transport_available: bool = True,
        notifier: EventNotifier | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._repo = repo
        self._fetcher = fetcher
        self._catalog_url = catalog_url
        self._ttl_ms = ttl_ms
        self._transport_available = transport_available
        self._notifier = notifier or EventNotifier()
        self._clock = clock

        self._catalog: dict[str, Any] = {}
        self._state = SyncState.COLD_START
        self._last_strategy: SyncState | None = None
        self._inflight: dict[str, asyncio.Task[dict[str, Any]]] = {}
        self._revalidating: dict[str, asyncio.Task[None]] = {}

    @classmethod
    def from_settings(
        cls,
        cfg: OfferSyncSettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        notifier: EventNotifier | None = None,
    ) -> "CatalogSyncService":
        cfg = cfg or settings
        repo = CatalogCacheRepo(JsonFileStore(cfg.cache_path), cfg.cache_key)
        fetcher = ConditionalFetcher(client, timeout_sec=cfg.fetch_timeout_sec)
        return cls(
            repo,
            fetcher,
            catalog_url=cfg.catalog_url,
            ttl_ms=cfg.ttl_ms,
            transport_available=cfg.transport_available(),
            notifier=notifier,
        )

    @property
    def catalog(self) -> dict[str, Any]:
        return self._catalog

    @property
    def notifier(self) -> EventNotifier:
        return self._notifier

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def last_strategy(self) -> SyncState | None:
        return self._last_strategy

    def offers(self) -> dict[str, OfferDescriptor]:
        return parse_offers(self._catalog)

    def clear_cache(self) -> None:
        self._repo.clear()
        logger.info("Offers cache cleared")

    async def load(self) -> dict[str, Any]:
        """Run one orchestration and return the served catalog.

        Concurrent calls share the run already in flight for the same URL.
        """
        running = self._inflight.get(self._catalog_url)
        if running is not None:
            logger.debug("Offers load already in flight; joining it")
            return await asyncio.shield(running)

        url = self._catalog_url
        task = asyncio.get_running_loop().create_task(self._run())
        self._inflight[url] = task
        task.add_done_callback(lambda _t: self._inflight.pop(url, None))
        return await asyncio.shield(task)

    async def wait_background(self) -> None:
        """Wait for background revalidations started by earlier loads."""
        while self._revalidating:
            await asyncio.gather(*list(self._revalidating.values()), return_exceptions=True)

    async def _run(self) -> dict[str, Any]:
        self._state = SyncState.COLD_START
        record = self._repo.read()

        if not self._transport_available:
            self._enter(SyncState.OFFLINE)
            if record is not None:
                self._catalog = record.payload
                logger.info("Offers loaded from cache (no network transport)")
            else:
                self._catalog = {}
                logger.warning("No network transport and no cached offers available")
            self._settle()
            return self._catalog

        if record is not None and record.is_fresh(self._clock(), self._ttl_ms):
            self._enter(SyncState.SERVE_FRESH_CACHE)
            self._catalog = record.payload
            logger.info("Offers loaded from cache (within TTL)")
            self._settle()
            self._schedule_revalidation(record)
            return self._catalog

        self._enter(SyncState.BLOCKING_FETCH)
        self._catalog = record.payload if record is not None else {}
        baseline = record.payload if record is not None else None
        try:
            outcome = await self._fetcher.fetch(self._catalog_url, _validators(record))
            change = self._apply_outcome(outcome, record, baseline)
        except Exception:
            logger.exception("Offers fetch failed; serving the last known catalog")
            change = None
        self._settle()
        if change is not None:
            self._notifier.notify_changed(change)
        return self._catalog

    def _enter(self, state: SyncState) -> None:
        self._state = state
        self._last_strategy = state

    def _settle(self) -> None:
        self._state = SyncState.SETTLED
        self._notifier.notify_ready()

    def _schedule_revalidation(self, record: CacheRecord) -> None:
        url = self._catalog_url
        if url in self._revalidating:
            logger.debug("Background refresh already running for %s", url)
            return
        task = asyncio.get_running_loop().create_task(self._revalidate(record))
        self._revalidating[url] = task
        task.add_done_callback(lambda _t: self._revalidating.pop(url, None))

    async def _revalidate(self, record: CacheRecord) -> None:
        try:
            outcome = await self._fetcher.fetch(self._catalog_url, _validators(record))
            change = self._apply_outcome(outcome, record, self._catalog)
        except Exception:
            logger.exception("Offers background refresh failed")
            return
        if change is not None:
            self._notifier.notify_changed(change)

    def _stamp(self, record: Optional[CacheRecord]) -> int:
        now = self._clock()
        if record is not None and record.fetched_at > now:
            return record.fetched_at
        return now

    def _apply_outcome(
        self,
        outcome: FetchOutcome,
        record: Optional[CacheRecord],
        baseline: Optional[dict[str, Any]],
    ) -> Optional[CatalogChange]:
        logger.debug("Offers fetch outcome: %s", dump_outcome(outcome))

        if isinstance(outcome, FetchFresh):
            fetched_at = self._stamp(record)
            self._repo.write(
                CacheRecord(
                    validator_tag=outcome.validator_tag,
                    validator_timestamp=outcome.validator_timestamp,
                    fetched_at=fetched_at,
                    payload=outcome.payload,
                )
            )
            if baseline is None:
                self._catalog = outcome.payload
                logger.info(
                    "Offers loaded from %s (ETag: %s, Last-Modified: %s)",
                    self._catalog_url,
                    outcome.validator_tag,
                    outcome.validator_timestamp,
                )
                return None
            if same_content(baseline, outcome.payload):
                logger.info("Offers data unchanged; cache timestamp refreshed")
                return None
            self._catalog = outcome.payload
            logger.info("New offers data loaded and cache updated")
            return CatalogChange(
                validator_tag=outcome.validator_tag,
                validator_timestamp=outcome.validator_timestamp,
                fetched_at=fetched_at,
            )

        if isinstance(outcome, FetchNotModified):
            if record is None:
                logger.warning("Server returned 304 but no cached offers are present")
                return None
            self._repo.write(record.model_copy(update={"fetched_at": self._stamp(record)}))
            logger.info("Offers not modified; cache TTL refreshed")
            return None

        logger.warning(
            "Offers fetch failed (%s): %s; keeping last known catalog",
            outcome.kind.value,
            outcome.cause,
        )
        return None
