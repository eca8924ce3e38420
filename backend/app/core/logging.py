# backend/app/core/logging.py
"""
Structured logging for the API.

JSON lines in deployed environments, plain text locally. Request-scoped ids
passed through ``extra=`` (chapter_id, user_id, ...) are lifted into the
JSON document when present.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

EXTRA_FIELDS = (
    "chapter_id",
    "user_id",
    "path",
    "error_code",
    "invitation_id",
    "status_code",
)

_HANDLER_NAME = "app-structured"


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = str(val)
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """
    Install the app handler on the root logger. Safe to call more than once
    (create_application runs per test).
    """
    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
