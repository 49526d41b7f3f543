"""Logging setup for the CLI and the refresh flow.

Log lines carry the farm/sensor context passed through ``extra=`` as
``key=value`` pairs after the message, e.g.::

    2024-12-10T08:00:01 | WARNING | agroclimate.engine | ThreadPoolExecutor-0_1 |
    Error processing sensor: timeout | farm=Casa_Olmo sensor="Parcela 4.2"
    reason=error_processing_sensor

Sensor names are display names and often contain spaces, so such values are
quoted. Sensors are processed in a thread pool, hence the thread name column.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from logging.config import dictConfig
from typing import Any

from agroclimate.config import get_settings

_DEFAULT_EXTRA_KEYS = (
    "farm_id",
    "sensor",
    "index",
    "mode",
    "reason",
    "data_points",
    "sensor_count",
    "elapsed_ms",
)

# Shorter labels for the most frequent keys
_LABELS = {
    "farm_id": "farm",
    "data_points": "rows",
    "sensor_count": "sensors",
    "elapsed_ms": "elapsed",
}

_VALUE_FORMATTERS: dict[str, Callable[[Any], str]] = {
    "elapsed_ms": lambda ms: f"{ms}ms",
}

# Third-party loggers that are noisy at INFO
_QUIET_LOGGERS = ("urllib3", "httpx")

_configured = False


def _format_value(key: str, value: Any) -> str:
    formatter = _VALUE_FORMATTERS.get(key)
    text = formatter(value) if formatter else str(value)
    if not text or any(ch.isspace() or ch in "=|\"" for ch in text):
        return '"' + text.replace('"', '\\"') + '"'
    return text


class ContextualFormatter(logging.Formatter):
    """Appends selected ``extra=`` attributes to the formatted message."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        extra_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)  # type: ignore[arg-type]
        self._extra_keys: Sequence[str] = tuple(extra_keys or _DEFAULT_EXTRA_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{_LABELS.get(key, key)}={_format_value(key, value)}"
            for key in self._extra_keys
            if (value := getattr(record, key, None)) is not None
        ]
        if context:
            return f"{message} | {' '.join(context)}"
        return message


def configure_logging(level: str | int | None = None) -> None:
    """Configure application-wide logging once per process.

    Args:
        level: Overrides ``LOG_LEVEL`` from settings (the CLI passes DEBUG
            for ``--debug``).
    """
    global _configured
    if _configured:
        return

    log_level = level if level is not None else get_settings().log_level

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "contextual": {
                    "()": "agroclimate.logging_config.ContextualFormatter",
                    "fmt": "%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                    "style": "%",
                    "extra_keys": list(_DEFAULT_EXTRA_KEYS),
                }
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "level": log_level,
                    "formatter": "contextual",
                }
            },
            "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
            "root": {"handlers": ["default"], "level": log_level},
        }
    )

    _configured = True
