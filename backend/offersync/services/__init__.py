"""Catalog sync services."""

from offersync.services.sync_service import CatalogSyncService, SyncState

__all__ = ["CatalogSyncService", "SyncState"]
