"""Conditional GET of the offer catalog.

The fetcher never raises for network problems: every call ends in one of
`FetchFresh`, `FetchNotModified` or `FetchFailed`.
"""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Union

import httpx

from offersync.logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_FETCH_TIMEOUT_SEC = 10.0


class FailureKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    BAD_STATUS = "bad_status"
    PARSE = "parse"


@dataclass(frozen=True)
class Validators:
    validator_tag: str | None = None
    validator_timestamp: str | None = None

    def headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.validator_tag:
            headers["If-None-Match"] = self.validator_tag
        if self.validator_timestamp:
            headers["If-Modified-Since"] = self.validator_timestamp
        return headers


@dataclass(frozen=True)
class FetchFresh:
    payload: dict[str, Any] = field(default_factory=dict)
    validator_tag: str | None = None
    validator_timestamp: str | None = None


@dataclass(frozen=True)
class FetchNotModified:
    pass


@dataclass(frozen=True)
class FetchFailed:
    kind: FailureKind
    cause: str = ""


FetchOutcome = Union[FetchFresh, FetchNotModified, FetchFailed]

_NO_STORE_HEADERS = {
    "Accept": "application/json",
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}


class ConditionalFetcher:
    """Fetch the catalog, revalidating with ETag / Last-Modified when known."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout_sec: float = DEFAULT_FETCH_TIMEOUT_SEC,
    ) -> None:
        self._client = client
        self._timeout_sec = timeout_sec

    @property
    def timeout_sec(self) -> float:
        return self._timeout_sec

    @asynccontextmanager
    async def _client_context(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(follow_redirects=True) as client:
            yield client

    def build_headers(self, validators: Validators | None) -> dict[str, str]:
        headers = dict(_NO_STORE_HEADERS)
        if validators is not None:
            headers.update(validators.headers())
        return headers

    async def fetch(
        self,
        url: str,
        validators: Validators | None = None,
        *,
        timeout_sec: float | None = None,
    ) -> FetchOutcome:
        deadline = self._timeout_sec if timeout_sec is None else timeout_sec
        headers = self.build_headers(validators)
        try:
            async with self._client_context() as client:
                return await asyncio.wait_for(
                    self._request(client, url, headers, deadline),
                    timeout=deadline,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("Offers fetch timeout after %ss: %s", deadline, url)
            return FetchFailed(FailureKind.TIMEOUT, f"timeout after {deadline}s")
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as exc:
            logger.warning("Offers fetch failed: %s (%s)", url, exc)
            return FetchFailed(FailureKind.NETWORK, str(exc) or exc.__class__.__name__)

    async def _request(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: dict[str, str],
        timeout_sec: float,
    ) -> FetchOutcome:
        request = client.build_request("GET", url, headers=headers, timeout=timeout_sec)
        response = await client.send(request, stream=True)
        try:
            return await self._classify(response)
        finally:
            await response.aclose()

    async def _classify(self, response: httpx.Response) -> FetchOutcome:
        status = response.status_code
        if status == httpx.codes.NOT_MODIFIED:
            return FetchNotModified()
        if status != httpx.codes.OK:
            logger.warning(
                "Unexpected HTTP status while loading offers: %s %s",
                status,
                response.reason_phrase,
            )
            return FetchFailed(FailureKind.BAD_STATUS, f"HTTP {status}")

        await response.aread()
        try:
            data = response.json()
        except (ValueError, UnicodeDecodeError) as exc:
            logger.warning("Offers body is not valid JSON: %s", exc)
            return FetchFailed(FailureKind.PARSE, str(exc))
        if not isinstance(data, dict):
            logger.warning("Offers body is not a JSON object (got %s)", type(data).__name__)
            return FetchFailed(FailureKind.PARSE, f"expected object, got {type(data).__name__}")

        return FetchFresh(
            payload=data,
            validator_tag=response.headers.get("ETag"),
            validator_timestamp=response.headers.get("Last-Modified"),
        )


def dump_outcome(outcome: FetchOutcome) -> str:
    """Short text form of an outcome for logs and the CLI."""
    if isinstance(outcome, FetchFresh):
        return json.dumps(
            {
                "outcome": "fresh",
                "offers": len(outcome.payload),
                "etag": outcome.validator_tag,
                "lastModified": outcome.validator_timestamp,
            }
        )
    if isinstance(outcome, FetchNotModified):
        return json.dumps({"outcome": "not_modified"})
    return json.dumps({"outcome": "failed", "kind": outcome.kind.value, "cause": outcome.cause})
