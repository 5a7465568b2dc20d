"""Central configuration for the offer catalog sync.

Values come from the environment and from `backend/offersync/.env`, read with
pydantic-settings.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Paths
PACKAGE_DIR = Path(__file__).resolve().parent
if PACKAGE_DIR.parent.name == "backend":
    REPO_ROOT = PACKAGE_DIR.parent.parent
else:
    REPO_ROOT = PACKAGE_DIR.parent

OFFERSYNC_ENV_PATH = PACKAGE_DIR / ".env"
OFFERSYNC_ENV_EXAMPLE = PACKAGE_DIR / ".env.example"

DEFAULT_CATALOG_URL = "http://localhost:8000/data/offers.json"
DEFAULT_CACHE_PATH = REPO_ROOT / "data" / "cache" / "offers_cache.json"
DEFAULT_CACHE_KEY = "coolvoce-offers-cache-v1"


def _ensure_env_file() -> None:
    """Create `backend/offersync/.env` from its `.env.example` when missing."""
    if OFFERSYNC_ENV_PATH.exists():
        return
    if not OFFERSYNC_ENV_EXAMPLE.exists():
        return
    try:
        OFFERSYNC_ENV_PATH.write_text(
            OFFERSYNC_ENV_EXAMPLE.read_text(encoding="utf-8"), encoding="utf-8"
        )
    except OSError:
        # Instalaciones de solo lectura: se usa solo el entorno.
        pass


_ensure_env_file()


class OfferSyncSettings(BaseSettings):
    """Settings for the catalog sync, logging included."""

    model_config = SettingsConfigDict(
        env_file=str(OFFERSYNC_ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ########################################
    # Recurso del catalogo
    ########################################
    catalog_url: str = Field(default=DEFAULT_CATALOG_URL, validation_alias="OFFERSYNC_CATALOG_URL")
    fetch_timeout_sec: float = Field(default=10.0, validation_alias="OFFERSYNC_FETCH_TIMEOUT_SEC")
    network_enabled: bool = Field(default=True, validation_alias="OFFERSYNC_NETWORK_ENABLED")

    ########################################
    # Cache local
    ########################################
    cache_path: Path = Field(default=DEFAULT_CACHE_PATH, validation_alias="OFFERSYNC_CACHE_PATH")
    cache_key: str = Field(default=DEFAULT_CACHE_KEY, validation_alias="OFFERSYNC_CACHE_KEY")
    ttl_hours: float = Field(default=24.0, validation_alias="OFFERSYNC_TTL_HOURS")

    ########################################
    # Logging
    ########################################
    log_enabled: bool = Field(default=False, validation_alias="OFFERSYNC_LOG_ENABLED")
    log_to_file: bool = Field(default=False, validation_alias="OFFERSYNC_LOG_TO_FILE")
    log_file_name: str = Field(default="offersync.log", validation_alias="OFFERSYNC_LOG_FILE_NAME")
    log_debug: bool = Field(default=False, validation_alias="OFFERSYNC_LOG_DEBUG")

    @field_validator("cache_path", mode="after")
    @classmethod
    def _anchor_cache_path(cls, value: Path) -> Path:
        """Relative cache paths live under the repo root, not the working directory."""
        value = value.expanduser()
        if value.is_absolute():
            return value
        return (REPO_ROOT / value).resolve()

    @property
    def ttl_ms(self) -> int:
        return int(self.ttl_hours * 60 * 60 * 1000)

    def transport_available(self) -> bool:
        """False when the network is switched off or the catalog is a local file."""
        if not self.network_enabled:
            return False
        scheme = (urlsplit(self.catalog_url).scheme or "").lower()
        return scheme in {"http", "https"}


settings = OfferSyncSettings()


def reload_offersync_settings() -> None:
    """Reload `settings` in place from the environment and `.env`."""
    new_settings = OfferSyncSettings()
    for field_name in OfferSyncSettings.model_fields:
        setattr(settings, field_name, getattr(new_settings, field_name))
