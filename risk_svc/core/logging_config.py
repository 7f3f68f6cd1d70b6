"""
Structured logging for the risk service.

Every log line is a single JSON object on stdout:

{
    "timestamp": "2024-01-15T10:30:00.123Z",
    "level": "INFO",
    "logger": "services.prediction_service",
    "message": "Prediction successful",
    "service": "risk_svc",
    "request_id": "1705314600000_3f2a9c1de",
    "extra": {"prediction_id": "req_1705314600000_k3j9x2a1b", "risk_level": "Low Risk"}
}

request_id is the inbound HTTP request's id (set by LoggingMiddleware);
prediction_id in `extra` is the id returned to the client for that
prediction. LOG_LEVEL and LOG_FORMAT ("json" or "text") override the
arguments of setup_logging().
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional

from core.datetime_utils import iso_timestamp

APP_LOGGERS = ("core", "api", "services", "main")
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

# =============================================================================
# REQUEST ID CONTEXT
# =============================================================================

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def clear_request_id() -> None:
    request_id_var.set(None)


# =============================================================================
# FORMATTERS
# =============================================================================

# Attributes every LogRecord has; anything else came in through extra=
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def _record_request_id(record: logging.LogRecord) -> Optional[str]:
    # Explicit extra={"request_id": ...} wins over the ambient context
    return getattr(record, "request_id", None) or get_request_id()


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter with UTC timestamps."""

    def __init__(self, service: str = "risk_svc"):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": iso_timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service,
        }

        request_id = _record_request_id(record)
        if request_id:
            entry["request_id"] = request_id

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key != "request_id" and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable format for local development, with request id when known."""

    def __init__(self):
        super().__init__(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        request_id = _record_request_id(record)
        return f"{line} [{request_id}]" if request_id else line


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_uvicorn: bool = True
) -> None:
    """
    Configure the root logger for the application.

    Called once from the lifespan handler in main.py. Application and
    (optionally) uvicorn loggers drop their own handlers and propagate to
    the root handler so all output shares one format.
    """
    level = os.environ.get("LOG_LEVEL", level).upper()
    json_format = os.environ.get("LOG_FORMAT", "json" if json_format else "text").lower() == "json"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_format else TextFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    names = APP_LOGGERS + UVICORN_LOGGERS if include_uvicorn else APP_LOGGERS
    for name in names:
        logger = logging.getLogger(name)
        logger.handlers = []
        logger.propagate = True
        if name in APP_LOGGERS:
            logger.setLevel(level)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"level": level, "format": "json" if json_format else "text"}
    )
