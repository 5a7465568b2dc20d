from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import httpx
import pytest
from conftest import CACHE_KEY, CATALOG_URL, TTL_MS, FakeClock, ScriptedFetcher, make_record

from offersync import cli
from offersync.config import OfferSyncSettings
from offersync.fetcher import FetchFailed, FetchFresh, FailureKind
from offersync.repositories import CatalogCacheRepo, JsonFileStore, MemoryStore
from offersync.services import CatalogSyncService


def _patch_service(monkeypatch: pytest.MonkeyPatch, service: CatalogSyncService) -> None:
    monkeypatch.setattr(cli.CatalogSyncService, "from_settings", classmethod(lambda cls: service))


def _service(repo: CatalogCacheRepo, fetcher: ScriptedFetcher) -> CatalogSyncService:
    return CatalogSyncService(
        repo, fetcher, catalog_url=CATALOG_URL, ttl_ms=TTL_MS, clock=FakeClock()
    )


def test_cli_sync(monkeypatch: pytest.MonkeyPatch, capsys, sample_payload) -> None:
    repo = CatalogCacheRepo(MemoryStore(), CACHE_KEY)
    _patch_service(monkeypatch, _service(repo, ScriptedFetcher(FetchFresh(sample_payload, "v1", None))))
    monkeypatch.setattr(sys, "argv", ["offersync", "sync"])

    cli.main()

    out = capsys.readouterr().out
    assert "Offers: 2" in out
    assert "Strategy: blocking_fetch" in out
    assert "Changed: no" in out
    assert repo.read() is not None


def test_cli_show_falls_back_to_cache(monkeypatch: pytest.MonkeyPatch, capsys, sample_payload) -> None:
    repo = CatalogCacheRepo(MemoryStore(), CACHE_KEY)
    repo.write(make_record(sample_payload, age_ms=TTL_MS * 2))
    fetcher = ScriptedFetcher(FetchFailed(FailureKind.NETWORK, "offline"))
    _patch_service(monkeypatch, _service(repo, fetcher))
    monkeypatch.setattr(sys, "argv", ["offersync", "show"])

    cli.main()

    out = capsys.readouterr().out
    assert "PROMO10: Promo 10" in out
    assert "    5GB extra" in out


def test_cli_clear(monkeypatch: pytest.MonkeyPatch, capsys, sample_payload) -> None:
    repo = CatalogCacheRepo(MemoryStore(), CACHE_KEY)
    repo.write(make_record(sample_payload, age_ms=0))
    _patch_service(monkeypatch, _service(repo, ScriptedFetcher()))
    monkeypatch.setattr(sys, "argv", ["offersync", "clear"])

    cli.main()

    assert repo.read() is None
    assert "Cache cleared" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [["offersync"], ["offersync", "bogus"]])
def test_cli_usage_errors(monkeypatch: pytest.MonkeyPatch, argv: list[str]) -> None:
    _patch_service(
        monkeypatch, _service(CatalogCacheRepo(MemoryStore(), CACHE_KEY), ScriptedFetcher())
    )
    monkeypatch.setattr(sys, "argv", argv)

    with pytest.raises(SystemExit) as exc:
        cli.main()
    assert exc.value.code == 1


def test_service_from_settings_uses_file_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, sample_payload) -> None:
    monkeypatch.setenv("OFFERSYNC_CATALOG_URL", CATALOG_URL)
    monkeypatch.setenv("OFFERSYNC_CACHE_PATH", str(tmp_path / "offers_cache.json"))
    monkeypatch.setenv("OFFERSYNC_NETWORK_ENABLED", "true")
    cfg = OfferSyncSettings(_env_file=None)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=sample_payload, headers={"ETag": '"v1"'})

    async def _go() -> dict:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            service = CatalogSyncService.from_settings(cfg, client=client)
            catalog = await service.load()
            await service.wait_background()
            return catalog

    assert asyncio.run(_go()) == sample_payload
    stored = CatalogCacheRepo(JsonFileStore(tmp_path / "offers_cache.json"), cfg.cache_key).read()
    assert stored is not None
    assert stored.validator_tag == '"v1"'
