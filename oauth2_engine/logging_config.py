"""
Logging configuration for the OAuth 2.0 engine.

The engine itself only emits records through module loggers. Applications
embedding it may call ``setup_global_logging`` to get structured output:
- ``OAUTH_LOG_FORMAT=json`` (default): one JSON object per line
- ``OAUTH_LOG_FORMAT=plain``: classic ``asctime - name - level - message``
"""

import json
import logging
import os
from datetime import UTC, datetime

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JsonFormatter(logging.Formatter):
    """
    JSON log formatter.

    Structured context passed as ``extra={"extra_fields": {...}}`` is merged
    into the top-level object.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "severity": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            entry.update(extra_fields)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_global_logging(level: str | int | None = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level; defaults to ``OAUTH_LOG_LEVEL`` or INFO
    """
    if level is None:
        level = os.getenv("OAUTH_LOG_LEVEL", "INFO").upper()

    handler = logging.StreamHandler()
    if os.getenv("OAUTH_LOG_FORMAT", "json").lower() == "plain":
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    else:
        handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    # Replace existing handlers to avoid duplicate logs
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
