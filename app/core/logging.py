"""Logging setup."""

import logging
import sys
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import jsonlogger

from app.core.config import settings


class LedgerJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps every record with time, level and service."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.APP_NAME


def setup_logging(level: str | None = None, json: bool | None = None) -> None:
    """Configure the root logger once for the whole process."""
    logger = logging.getLogger()
    logger.setLevel(level or settings.LOG_LEVEL)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    use_json = settings.LOG_JSON if json is None else json
    if use_json:
        formatter: logging.Formatter = LedgerJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s"
        )
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
