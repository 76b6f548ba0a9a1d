import json
import logging
import os
import sys
from logging import Logger
from typing import List, Optional

LOGGER_PREFIX = "ledger_aggregation"

# Record attributes copied into JSON output when a call site passes them via ``extra``.
CONTEXT_FIELDS = ("round_index", "client_id", "status", "engine_id")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, including round context when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(
    level: Optional[str] = None,
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> Logger:
    """
    Attach handlers to the package logger and return it.

    The level falls back to ``LOG_LEVEL`` and then INFO. Calling this again
    replaces the handlers installed by the previous call.
    """
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    package_logger = logging.getLogger(LOGGER_PREFIX)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    if json_output:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, level_name, logging.INFO))
    package_logger.propagate = False
    return package_logger


def get_logger(name: str) -> Logger:
    if name.startswith(LOGGER_PREFIX):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")
