from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict, Iterable, Sequence

from settings import get_settings

# ``extra`` keys the store, importer and API attach to their log records.
_CONTEXT_KEYS = (
    "database_path",
    "tag",
    "resolution_tier",
    "row_count",
    "deleted",
    "from_version",
    "to_version",
    "row_number",
    "reason",
)

# Third-party loggers that are too chatty at the application level.
_QUIET_LOGGERS = ("httpx", "httpcore", "multipart")

_configured = False


class ContextualFormatter(logging.Formatter):
    """Append ``key=value`` pairs for known context keys to each message."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        context_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._context_keys: Sequence[str] = tuple(context_keys or _CONTEXT_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{key}={getattr(record, key)}"
            for key in self._context_keys
            if getattr(record, key, None) is not None
        ]
        if not context:
            return message
        return f"{message} | {' '.join(context)}"


def _build_config(log_level: str | int) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "contextual": {
                "()": "logging_config.ContextualFormatter",
                "fmt": "%(asctime)sZ | %(levelname)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
                "context_keys": list(_CONTEXT_KEYS),
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "contextual",
            }
        },
        "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
        "root": {"handlers": ["console"], "level": log_level},
    }


def configure_logging(level: str | int | None = None, force: bool = False) -> None:
    """Configure process-wide logging once; ``force`` re-applies it."""
    global _configured
    if _configured and not force:
        return

    log_level = level if level is not None else get_settings().log_level
    dictConfig(_build_config(log_level))
    _configured = True
