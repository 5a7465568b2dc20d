"""Pydantic models for the cached catalog and the change notification."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from offersync.logging_utils import get_logger

logger = get_logger(__name__)


class OfferDescriptor(BaseModel):
    """Offer entry as shown to consumers: a label and description lines."""

    label: str
    desc: list[str] = Field(default_factory=list)


class CacheRecord(BaseModel):
    """Single persisted cache entry for the catalog.

    Serialised with the short names used on disk (`etag`, `lastModified`,
    `timestamp`, `data`); the long names are accepted when reading.
    """

    model_config = ConfigDict(populate_by_name=True)

    validator_tag: str | None = Field(
        default=None,
        validation_alias=AliasChoices("etag", "validatorTag", "validator_tag"),
        serialization_alias="etag",
    )
    validator_timestamp: str | None = Field(
        default=None,
        validation_alias=AliasChoices("lastModified", "validatorTimestamp", "validator_timestamp"),
        serialization_alias="lastModified",
    )
    fetched_at: int = Field(
        validation_alias=AliasChoices("timestamp", "fetchedAt", "fetched_at"),
        serialization_alias="timestamp",
    )
    payload: dict[str, Any] = Field(
        validation_alias=AliasChoices("data", "payload"),
        serialization_alias="data",
    )

    def has_validators(self) -> bool:
        return bool(self.validator_tag or self.validator_timestamp)

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.fetched_at

    def is_fresh(self, now_ms: int, ttl_ms: int) -> bool:
        return self.age_ms(now_ms) < ttl_ms

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ChangeReason(str, Enum):
    FETCHED = "fetched"


class CatalogChange(BaseModel):
    """Detail carried by the "catalog changed" notification."""

    model_config = ConfigDict(populate_by_name=True)

    reason: ChangeReason = ChangeReason.FETCHED
    validator_tag: str | None = Field(default=None, alias="validatorTag")
    validator_timestamp: str | None = Field(default=None, alias="validatorTimestamp")
    fetched_at: int = Field(alias="fetchedAt")


def canonical_payload(payload: Mapping[str, Any] | None) -> str:
    """Stable JSON form of a catalog, used for content comparison."""
    return json.dumps(
        payload if payload is not None else {},
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    )


def same_content(left: Mapping[str, Any] | None, right: Mapping[str, Any] | None) -> bool:
    return canonical_payload(left) == canonical_payload(right)


def parse_offers(payload: Mapping[str, Any]) -> dict[str, OfferDescriptor]:
    """Build the typed offer view of a raw catalog.

    Only descriptions given as a list of lines are accepted; any other shape is
    dropped with an error so the offer still shows up without text.
    """
    offers: dict[str, OfferDescriptor] = {}
    for code, raw in payload.items():
        if not isinstance(raw, dict):
            logger.warning("Skipping offer %r: entry is not an object", code)
            continue
        label = raw.get("label")
        if not isinstance(label, str) or not label.strip():
            label = str(code)
        desc = raw.get("desc")
        lines: list[str] = []
        if isinstance(desc, list):
            lines = [str(line) for line in desc]
        elif desc:
            logger.error(
                'Offer %r has an invalid "desc" (expected a list of lines); description dropped',
                code,
            )
        offers[str(code)] = OfferDescriptor(label=label, desc=lines)
    return offers
