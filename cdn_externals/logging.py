"""Structured logging — host-side configuration and per-plugin level filtering.

``setup_logging`` is for processes that own their output (the CLI).
``get_logger`` is what library objects use: a logger carrying its own
threshold, so a plugin's ``loglevel`` holds whatever the host configured and
two plugins in one process keep separate levels.
"""

from __future__ import annotations

import logging
import logging.config
import os

import structlog

LOGGER_NAME = "cdn_externals"
DEFAULT_PLUGIN_LEVEL = "ERROR"


def to_level(level: str | int) -> int:
    """``"warning"`` / ``"WARNING"`` / ``30`` -> ``30``."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown log level {level!r}")
    return value


def get_logger(name: str, level: str | int | None = None):
    """Return a structlog logger for *name*.

    With *level*, events below it are dropped by the logger itself before any
    processor runs. Without it, filtering is left to the host configuration.
    Processors and the logger factory are still the host's, resolved lazily.
    """
    if level is None:
        return structlog.get_logger(name)
    return structlog.wrap_logger(
        None,
        wrapper_class=structlog.make_filtering_bound_logger(to_level(level)),
        logger_factory_args=(name,),
    )


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Route structlog through stdlib logging on stderr.

    Explicit arguments win; otherwise reads from environment variables:
        CDN_EXTERNALS_LOG_LEVEL  — log level (default: INFO)
        CDN_EXTERNALS_LOG_FORMAT — console | json (default: console)
    """
    log_level = logging.getLevelName(
        to_level(level or os.environ.get("CDN_EXTERNALS_LOG_LEVEL", "INFO"))
    )
    log_format = (fmt or os.environ.get("CDN_EXTERNALS_LOG_FORMAT", "console")).lower()
    shared = _shared_processors()

    structlog.configure(
        processors=[structlog.stdlib.filter_by_level]
        + shared
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": shared,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        _renderer(log_format),
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "structlog",
                },
            },
            "root": {"handlers": ["stderr"], "level": log_level},
            "loggers": {
                LOGGER_NAME: {"level": log_level},
                "httpx": {"level": "WARNING"},
                "httpcore": {"level": "WARNING"},
            },
        }
    )
