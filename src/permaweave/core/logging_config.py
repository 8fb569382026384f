"""
JSON logging for permaweave.

Every module logs through ``logging.getLogger(__name__)`` and tags records
with ``extra={"event": ...}``; nothing is configured on import. Applications
call ``setup_logging()`` once to get one JSON object per line on stdout and,
when ``PERMAWEAVE_LOG_FILE`` (or ``log_file``) is set, a rotating file:

    setup_logging(level="DEBUG")
    # {"timestamp": "...Z", "level": "info", "name": "permaweave.contracts.loader",
    #  "message": "Contract abc loaded", "event": "contract.loaded", ...}
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from permaweave.core import config

_ROTATE_BYTES = 50 * 1024 * 1024
_ROTATE_BACKUPS = 5


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Adds a UTC timestamp, the deployment environment, the service and the
    emitting function to each record."""

    def __init__(self, environment: Optional[str] = None, service_name: str = "permaweave"):
        super().__init__(fmt="%(timestamp)s %(level)s %(name)s %(message)s")
        self.environment = environment or config.ENVIRONMENT
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_record["timestamp"] = created.isoformat().replace("+00:00", "Z")
        log_record["level"] = log_record.get("level") or record.levelname.lower()
        log_record["environment"] = self.environment
        log_record["service"] = self.service_name
        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def setup_logging(
    name: str = "permaweave",
    log_file: Optional[str] = None,
    level: Optional[str] = None,
    environment: Optional[str] = None,
    enable_console: bool = True,
) -> logging.Logger:
    """Attach JSON handlers to logger ``name``, replacing any it had.

    Arguments left unset come from ``permaweave.core.config``. A log file
    that cannot be opened is reported on the logger and skipped.
    """
    level_no = getattr(logging, (level or config.LOG_LEVEL).upper())
    log_file = log_file or config.LOG_FILE
    formatter = CustomJsonFormatter(
        environment=environment or config.ENVIRONMENT,
        service_name=name.split(".")[0],
    )

    logger = logging.getLogger(name)
    logger.setLevel(level_no)
    logger.handlers = []

    handlers: list[logging.Handler] = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                logging.handlers.RotatingFileHandler(
                    log_file, maxBytes=_ROTATE_BYTES, backupCount=_ROTATE_BACKUPS
                )
            )
        except OSError as e:
            logger.warning(
                f"Log file {log_file} unavailable: {e}",
                extra={"event": "logging.file_handler_failed"},
            )

    for handler in handlers:
        handler.setLevel(level_no)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def get_logger(name: str, log_file: Optional[str] = None, level: Optional[str] = None) -> logging.Logger:
    """Logger ``name``, configured by ``setup_logging`` unless it already has handlers."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    return setup_logging(name=name, log_file=log_file, level=level)
