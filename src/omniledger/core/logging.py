"""
Logging setup for OmniLedger.

Everything logs under the ``omniledger`` logger. Ledger events attach
their transaction id, kind, accounts and amount through ``extra`` so the
JSON format can emit them as fields a log shipper can index.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

LOGGER_NAME = "omniledger"

# Attributes callers may attach to a record via ``extra``
LEDGER_FIELDS = ("transaction_id", "kind", "account_ids", "amount")

TEXT_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """Renders each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for field in LEDGER_FIELDS:
            if hasattr(record, field):
                payload[field] = getattr(record, field)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: int | str = logging.INFO, fmt: str = "text") -> logging.Logger:
    """
    Install a single stdout handler on the omniledger logger.

    Calling it again replaces the handler instead of adding another.

    Args:
        level: Logging level (e.g., logging.INFO, "DEBUG")
        fmt: "text" for human-readable lines or "json" for log shippers

    Returns:
        The configured logger instance.

    Raises:
        ValueError: If fmt is not a known format
    """
    if fmt == "json":
        formatter: logging.Formatter = JsonFormatter()
    elif fmt == "text":
        formatter = logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)
    else:
        raise ValueError(f"Unknown log format: {fmt!r}")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Host applications keep their own root handlers
    logger.propagate = False

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a child logger of omniledger."""
    if name:
        return logging.getLogger(f"{LOGGER_NAME}.{name}")
    return logging.getLogger(LOGGER_NAME)
