from __future__ import annotations

import atexit
import copy
import logging
import logging.config
import queue
import sys
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Optional

import structlog

from clipscout.infrastructure.config.schema import AppConfig

log = structlog.get_logger(__name__)

# Loggers that get the configured level explicitly (uvicorn for `serve`,
# noisy client libraries otherwise inherit from root).
_MANAGED_LOGGERS: dict[str, dict[str, Any]] = {
    "uvicorn": {"level": "INFO"},
    "uvicorn.error": {"level": "INFO"},
    "uvicorn.access": {"level": "INFO"},
}

_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")

_QUEUE_LISTENER: Optional[QueueListener] = None


def _drop_color_message(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    # uvicorn adds "color_message" next to "message"; keep only one.
    event_dict.pop("color_message", None)
    return event_dict


def _add_record_created_timestamp_utc(
    _: Any, __: Any, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """
    Stamp foreign (non-structlog) records with their creation time, not the
    time the background listener formats them.

    ProcessorFormatter sets event_dict["_record"] for foreign records.
    """
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        event_dict["timestamp"] = dt.isoformat().replace("+00:00", "Z")
    return event_dict


def _renderer(config: AppConfig) -> structlog.typing.Processor:
    if config.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def _processor_formatter(config: AppConfig) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            _drop_color_message,
            structlog.contextvars.merge_contextvars,
            _add_record_created_timestamp_utc,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(config),
        ],
    )


def build_logging_config(config: AppConfig) -> dict[str, Any]:
    """
    Build a uvicorn-compatible dictConfig rendered through structlog.

    Handed to ``uvicorn.run(log_config=...)`` by ``clipscout serve``.
    """
    level = config.log_level
    loggers = copy.deepcopy(_MANAGED_LOGGERS)
    for logger_cfg in loggers.values():
        logger_cfg["level"] = level

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structlog": {
                "()": structlog.stdlib.ProcessorFormatter,
                "foreign_pre_chain": [
                    _drop_color_message,
                    structlog.contextvars.merge_contextvars,
                    _add_record_created_timestamp_utc,
                    structlog.stdlib.add_logger_name,
                    structlog.stdlib.add_log_level,
                ],
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    _renderer(config),
                ],
            },
        },
        "handlers": {
            "default": {
                "formatter": "structlog",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": loggers,
        "root": {"handlers": ["default"], "level": level},
    }


def _stop_async_listener() -> None:
    global _QUEUE_LISTENER
    if _QUEUE_LISTENER is not None:
        try:
            _QUEUE_LISTENER.stop()
        finally:
            _QUEUE_LISTENER = None


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int) -> None:
        super().__init__()
        self._max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self._max_level


class _MinLevelFilter(logging.Filter):
    def __init__(self, min_level: int) -> None:
        super().__init__()
        self._min_level = min_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self._min_level


class _StructlogPreservingQueueHandler(QueueHandler):
    """QueueHandler that keeps structlog event dicts intact."""

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # QueueHandler.prepare() would set record.msg = record.getMessage(),
        # destroying the dict msg ProcessorFormatter expects.
        return copy.copy(record)


def _enable_async_logging(config: AppConfig) -> None:
    """
    Route ALL stdlib logging through a QueueHandler; emit via QueueListener
    in a background thread so the event loop never blocks on log I/O.

    The CLI prints result JSON on stdout, so both handlers write to stderr.
    """
    global _QUEUE_LISTENER

    _stop_async_listener()

    formatter = _processor_formatter(config)

    info_handler = logging.StreamHandler(stream=sys.stderr)
    info_handler.setFormatter(formatter)
    info_handler.addFilter(_MaxLevelFilter(logging.WARNING))

    error_handler = logging.StreamHandler(stream=sys.stderr)
    error_handler.setFormatter(formatter)
    error_handler.addFilter(_MinLevelFilter(logging.ERROR))

    q: queue.Queue[logging.LogRecord] = queue.Queue()  # unbounded; non-dropping

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_StructlogPreservingQueueHandler(q))
    root.setLevel(config.log_level)

    # Ensure all known loggers propagate into root (so they go through the queue)
    for name in list(logging.root.manager.loggerDict.keys()):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(config.log_level)

    if config.log_level == "DEBUG":
        quiet_level = logging.INFO
    else:
        quiet_level = logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    _QUEUE_LISTENER = QueueListener(
        q, info_handler, error_handler, respect_handler_level=True
    )
    _QUEUE_LISTENER.start()
    atexit.register(_stop_async_listener)


def configure_logging(config: AppConfig) -> dict[str, Any]:
    """
    Configure structlog + stdlib logging.

    Returns the dictConfig (for uvicorn), but actual emission is wired
    through QueueHandler/QueueListener.
    """
    structlog.configure(
        processors=[
            _drop_color_message,
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    cfg = build_logging_config(config)
    logging.config.dictConfig(cfg)

    _enable_async_logging(config)

    log.info(
        "logging_configured", log_format=config.log_format, log_level=config.log_level
    )
    return cfg
