"""
ClaimRouter Logging Setup (Structured JSON)

Modules log through logging.getLogger(__name__) under the "claimrouter"
namespace. Services call configure_logging() once at startup.
"""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

# Extra fields copied into the JSON line when set on the record
EXTRA_FIELDS = (
    "claim_id",
    "request_id",
    "event_type",
    "recommendation",
    "status",
    "duration_ms",
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
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


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach a JSON stream handler to the "claimrouter" logger.

    Level comes from the argument, else CLAIMROUTER_LOG_LEVEL, else INFO.
    Calling it again only updates the level.
    """
    level_name = (level or os.getenv("CLAIMROUTER_LOG_LEVEL", "INFO")).upper()
    logger = logging.getLogger("claimrouter")
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    if not any(isinstance(h.formatter, JSONFormatter) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
    return logger
