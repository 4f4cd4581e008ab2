"""
Structured JSON logging for sale operations.

Every sale module logs through logging.getLogger(__name__) with an
``event`` field in ``extra`` (``sale.capital_invested``, ``signature.replay``,
``vesting.released``, ...). setup_logging() attaches JSON handlers to the
package logger so those records come out as one JSON object per line:

    from legion_sales.core.logging_config import setup_logging

    setup_logging(log_file="/var/log/legion/sales.json")
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from . import config

DEFAULT_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"


class SaleJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping service, environment and call site on each record."""

    def __init__(
        self,
        fmt: str = DEFAULT_FORMAT,
        environment: Optional[str] = None,
        service_name: str = "legion_sales",
    ):
        super().__init__(fmt=fmt)
        self.timestamp = True
        self.environment = environment or "production"
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        log_record["environment"] = self.environment
        log_record["service"] = self.service_name
        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def setup_logging(
    name: str = "legion_sales",
    log_file: Optional[str] = None,
    level: Optional[str] = None,
    environment: Optional[str] = None,
    enable_console: bool = True,
    max_bytes: int = 50 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure JSON output for a logger and everything propagating to it.

    Unset arguments fall back to LEGION_SALES_LOG_FILE,
    LEGION_SALES_LOG_LEVEL and LEGION_SALES_ENVIRONMENT. Calling it again
    replaces the previous handlers.
    """
    level_no = getattr(logging, (level or config.LOG_LEVEL).upper())
    log_file = log_file or config.LOG_FILE

    logger = logging.getLogger(name)
    logger.setLevel(level_no)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = SaleJsonFormatter(
        environment=environment or config.ENVIRONMENT,
        service_name=name.split(".")[0],
    )

    handlers: list[logging.Handler] = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count
            )
        )

    for handler in handlers:
        handler.setLevel(level_no)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(name: str, log_file: Optional[str] = None) -> logging.Logger:
    """Return name's logger, configuring it on first use."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logging(name=name, log_file=log_file)
    return logger
