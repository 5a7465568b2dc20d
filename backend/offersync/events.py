"""Catalog notifications owned by a sync service instance."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Optional

from offersync.logging_utils import get_logger
from offersync.models import CatalogChange

logger = get_logger(__name__)


class CatalogEvent(str, Enum):
    READY = "offers:loaded"
    CHANGED = "offers:updated"


Handler = Callable[[Optional[CatalogChange]], None]


class EventNotifier:
    """Observer list for "catalog ready" and "catalog changed".

    Handlers are called in subscription order. A handler that raises is
    logged and skipped; the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._handlers: dict[CatalogEvent, list[Handler]] = {event: [] for event in CatalogEvent}

    def subscribe(self, event: CatalogEvent | str, handler: Handler) -> Callable[[], None]:
        key = CatalogEvent(event)
        self._handlers[key].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[key]:
                self._handlers[key].remove(handler)

        return unsubscribe

    def on_ready(self, handler: Callable[[], None]) -> Callable[[], None]:
        return self.subscribe(CatalogEvent.READY, lambda _detail: handler())

    def on_changed(self, handler: Callable[[CatalogChange], None]) -> Callable[[], None]:
        def _call(detail: Optional[CatalogChange]) -> None:
            if detail is not None:
                handler(detail)

        return self.subscribe(CatalogEvent.CHANGED, _call)

    def notify_ready(self) -> None:
        self._dispatch(CatalogEvent.READY, None)

    def notify_changed(self, detail: CatalogChange) -> None:
        self._dispatch(CatalogEvent.CHANGED, detail)

    def _dispatch(self, event: CatalogEvent, detail: Optional[CatalogChange]) -> None:
        for handler in list(self._handlers[event]):
            try:
                handler(detail)
            except Exception:
                logger.exception("%s handler error", event.value)
