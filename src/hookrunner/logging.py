"""Structured logging configuration.

Every record is emitted as one JSON object per line on stdout, which keeps the
daemon log file greppable and machine-readable.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import IO, Any

# Attributes every LogRecord carries; anything else was passed via ``extra=``.
_STANDARD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}

# Context that identifies which delivery or workflow a line belongs to. These
# are lifted to the top level so ``grep '"workflow": "review"'`` works.
CONTEXT_KEYS: tuple[str, ...] = ("workflow", "event_type", "delivery")


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON.

    ``pid`` and the thread name are included because a daemon and its launch
    threads share one log file.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        fields = {
            key: value
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        }

        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "pid": record.process,
            "thread": record.threadName,
        }
        for key in CONTEXT_KEYS:
            if key in fields:
                payload[key] = fields.pop(key)
        payload["message"] = record.getMessage()
        if fields:
            payload["extra"] = fields

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        # Payload values such as Paths and enums are not JSON-native.
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str, stream: IO[str] | None = None) -> None:
    """Install the JSON handler on the root logger.

    uvicorn is started with ``log_config=None`` so its loggers propagate here too.
    """

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    # Access logs duplicate the dispatcher's own per-request records.
    logging.getLogger("uvicorn.access").setLevel(max(root.level, logging.WARNING))
