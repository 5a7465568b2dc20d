"""CLI ligero para sincronizar el catalogo de ofertas."""

from __future__ import annotations

import asyncio
import sys

from offersync.config import settings
from offersync.logging_utils import configure_logging, get_logger
from offersync.services import CatalogSyncService

_USAGE = "Usage: offersync sync | offersync show | offersync clear"


async def _sync(service: CatalogSyncService) -> None:
    changes: list[str] = []
    service.notifier.on_changed(lambda detail: changes.append(detail.reason.value))

    await service.load()
    strategy = service.last_strategy.value if service.last_strategy else "unknown"
    await service.wait_background()

    print(f"Offers: {len(service.catalog)}")
    print(f"Strategy: {strategy}")
    print(f"Changed: {'yes' if changes else 'no'}")


async def _show(service: CatalogSyncService) -> None:
    await service.load()
    await service.wait_background()
    offers = service.offers()
    if not offers:
        print("(no offers)")
        return
    for code, offer in offers.items():
        print(f"{code}: {offer.label}")
        for line in offer.desc:
            print(f"    {line}")


def main() -> None:
    """CLI entry point (commands: 'sync', 'show', 'clear')."""
    configure_logging(force=True)
    logger = get_logger(__name__)

    if len(sys.argv) < 2:
        logger.error(_USAGE)
        print(_USAGE)
        sys.exit(1)

    cmd = sys.argv[1]
    service = CatalogSyncService.from_settings()

    if cmd == "sync":
        logger.info("Syncing offers from %s", settings.catalog_url)
        asyncio.run(_sync(service))
    elif cmd == "show":
        asyncio.run(_show(service))
    elif cmd == "clear":
        service.clear_cache()
        print(f"Cache cleared: {settings.cache_path}")
    else:
        logger.error("Unknown command: %s", cmd)
        logger.error(_USAGE)
        print(_USAGE)
        sys.exit(1)


if __name__ == "__main__":
    main()
