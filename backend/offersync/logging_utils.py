"""Configuracion de logging para offersync.

El logger `offersync` sigue los ajustes `OFFERSYNC_LOG_*`. Los cambios en
`backend/offersync/.env` se aplican en la siguiente llamada de log (como mucho
una comprobacion cada medio segundo).
"""

from __future__ import annotations

import atexit
import logging
import time
from contextlib import suppress
from dataclasses import dataclass, field
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from queue import Queue
from threading import Lock
from typing import Any, Optional

from offersync.config import OFFERSYNC_ENV_PATH, REPO_ROOT, OfferSyncSettings

_ROOT_LOGGER_NAME = "offersync"
_DISABLED_LEVEL = logging.CRITICAL + 10
_BASE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DEBUG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(filename)s:%(lineno)d | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_CHECK_INTERVAL_SEC = 0.5

Signature = tuple[bool, bool, str, bool]


@dataclass
class _LoggingState:
    signature: Optional[Signature] = None
    env_mtime: Optional[float] = None
    last_check: Optional[float] = None
    listener: Optional[QueueListener] = None
    file_handlers: list[logging.Handler] = field(default_factory=list)
    atexit_registered: bool = False

    def reset(self) -> None:
        self.signature = None
        self.env_mtime = None
        self.last_check = None


_state = _LoggingState()
_config_lock = Lock()


def _resolve_path(file_name: str | Path) -> Path:
    name = str(file_name).strip() or "offersync.log"
    path = Path(name)
    if path.is_absolute():
        return path
    return (REPO_ROOT / "logs" / path).resolve()


def _env_mtime() -> Optional[float]:
    try:
        return OFFERSYNC_ENV_PATH.stat().st_mtime
    except FileNotFoundError:
        return None


def _stop_listener() -> None:
    if _state.listener is None:
        return
    _state.listener.stop()
    for handler in _state.file_handlers:
        with suppress(Exception):
            handler.close()
    _state.listener = None
    _state.file_handlers = []


def reset_logging_state() -> None:
    """Drop the cached configuration so the next call reconfigures."""
    _stop_listener()
    _state.reset()


def _due_for_check() -> bool:
    now = time.monotonic()
    if _state.last_check is None or (now - _state.last_check) >= _CHECK_INTERVAL_SEC:
        _state.last_check = now
        return True
    return False


def _signature(cfg: Any) -> Signature:
    file_path = str(_resolve_path(cfg.log_file_name)) if cfg.log_to_file else ""
    return (bool(cfg.log_enabled), bool(cfg.log_to_file), file_path, bool(cfg.log_debug))


def _queued_file_handler(cfg: Any, level: int, formatter: logging.Formatter) -> logging.Handler:
    log_path = _resolve_path(cfg.log_file_name)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8", delay=True)
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)

    queue: Queue[logging.LogRecord] = Queue(-1)
    queue_handler = QueueHandler(queue)
    queue_handler.setLevel(level)
    listener = QueueListener(queue, file_handler, respect_handler_level=True)
    listener.start()
    _state.listener = listener
    _state.file_handlers = [file_handler]
    if not _state.atexit_registered:
        atexit.register(_stop_listener)
        _state.atexit_registered = True
    return queue_handler


def _apply(cfg: Any) -> None:
    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    _stop_listener()
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        with suppress(Exception):
            handler.close()
    logger.propagate = False

    if not cfg.log_enabled:
        logger.disabled = True
        logger.setLevel(_DISABLED_LEVEL)
        logger.addHandler(logging.NullHandler())
        return

    level = logging.DEBUG if cfg.log_debug else logging.INFO
    logger.disabled = False
    logger.setLevel(level)
    formatter = logging.Formatter(_DEBUG_FORMAT if cfg.log_debug else _BASE_FORMAT, _DATE_FORMAT)

    if cfg.log_to_file:
        logger.addHandler(_queued_file_handler(cfg, level, formatter))
    else:
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(level)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)


def configure_logging(force: bool = False) -> None:
    """Configure the `offersync` logger from the current settings."""
    if not force and _state.signature is not None:
        if not _due_for_check() or _state.env_mtime == _env_mtime():
            return

    with _config_lock:
        _state.env_mtime = _env_mtime()
        cfg = OfferSyncSettings()
        signature = _signature(cfg)
        if not force and _state.signature == signature:
            return
        _state.signature = signature
        _apply(cfg)


class _ReloadingAdapter(logging.LoggerAdapter):
    def isEnabledFor(self, level: int) -> bool:  # noqa: N802
        configure_logging()
        return self.logger.isEnabledFor(level)


def get_logger(name: str | None = None) -> logging.LoggerAdapter[logging.Logger]:
    """Return a package logger that follows `.env` changes."""
    configure_logging()
    return _ReloadingAdapter(logging.getLogger(name or _ROOT_LOGGER_NAME), {})
