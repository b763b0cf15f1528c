"""
FairGate Logging

Structured JSON logging for the fairgate logger namespace.

Library code only calls logging.getLogger(__name__); handlers are attached
by configure_logging(), which the CLI calls and services may call.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional, TextIO

LOGGER_NAME = "fairgate"

# LogRecord attributes copied into the JSON entry when a caller passes
# them through `extra=`.
EXTRA_FIELDS = (
    "application_id",
    "market_id",
    "market_pack",
    "policy_version",
    "transition_id",
    "violation_codes",
    "pack_hash_short",
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Attach a single stream handler to the fairgate logger.

    Calling it again replaces the handler instead of stacking a second one.
    """
    logger = logging.getLogger(LOGGER_NAME)
    level_value = logging.getLevelName(level.upper())
    if not isinstance(level_value, int):
        raise ValueError(f"Unknown log level: {level}")
    logger.setLevel(level_value)

    for handler in list(logger.handlers):
        if getattr(handler, "_fairgate", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler._fairgate = True  # type: ignore[attr-defined]
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s"
        ))
    logger.addHandler(handler)
    return logger
