"""Structured (one JSON object per line) logging to stdout."""

import json
import logging
import os
import sys
from datetime import datetime, timezone

_HANDLER_NAME = "_fleetscaler_stream_handler"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(level=None) -> None:
    """Install a single JSON stdout handler on the root logger (idempotent)."""
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO").upper()
    root = logging.getLogger()

    handler = None
    for h in root.handlers:
        if getattr(h, _HANDLER_NAME, False):
            handler = h
            break
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        setattr(handler, _HANDLER_NAME, True)
        root.addHandler(handler)

    handler.setFormatter(JsonFormatter())
    root.setLevel(level)
