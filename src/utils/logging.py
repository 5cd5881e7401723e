"""
Structured logging configuration for COCO Dataset Management API.
Provides consistent, production-ready logging across the application.
"""

import logging
import sys
import json
from datetime import datetime, timezone
from typing import Optional

from src.config import settings, is_local_environment


# LogRecord attributes that are not user supplied extras
_RESERVED_RECORD_KEYS = {
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "lineno", "funcName", "created", "msecs",
    "relativeCreated", "thread", "threadName", "processName",
    "process", "exc_info", "exc_text", "stack_info", "getMessage",
    "taskName", "message"
}


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""

        # Base log entry
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        # Add exception info if present
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Add extra fields from record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class LocalFormatter(logging.Formatter):
    """Colorized formatter for local development."""

    # Color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors for local development."""

        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        reset = self.COLORS['RESET']

        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]

        message = f"{color}[{timestamp}] {record.levelname:8s}{reset} "
        message += f"{record.name:20s} {record.getMessage()}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


def setup_logging() -> None:
    """Configure logging for the application."""

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if is_local_environment():
        formatter = LocalFormatter()
    else:
        formatter = StructuredFormatter()

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Suppress noisy third-party loggers in production
    if not is_local_environment():
        logging.getLogger("uvicorn").setLevel(logging.WARNING)
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("motor").setLevel(logging.WARNING)
        logging.getLogger("pymongo").setLevel(logging.WARNING)

    app_logger = logging.getLogger("coco_dataset_api")
    app_logger.info(f"Logging configured - Level: {settings.log_level}, Environment: {settings.environment.value}")


# Application logger instance
logger = logging.getLogger("coco_dataset_api")


def log_batch_write(collection: str, batch_number: int, total_batches: int,
                    size: int, inserted: int, error: Optional[str] = None) -> None:
    """Log the outcome of a single insert batch with structured data."""

    log_data = {
        "db_collection": collection,
        "batch_number": batch_number,
        "total_batches": total_batches,
        "batch_size": size,
        "inserted_count": inserted
    }

    if error is None:
        logger.info(f"Batch {batch_number}/{total_batches} inserted into {collection}", extra=log_data)
    else:
        log_data["batch_error"] = error
        logger.error(f"Error inserting batch {batch_number}/{total_batches} into {collection}: {error}",
                     extra=log_data)


def log_database_operation(operation: str, collection: str, duration_ms: float,
                           count: Optional[int] = None, **kwargs) -> None:
    """Log database operation with structured data."""

    log_data = {
        "db_operation": operation,
        "db_collection": collection,
        "operation_time_ms": duration_ms,
        **kwargs
    }

    if count is not None:
        log_data["result_count"] = count

    logger.debug("Database operation", extra=log_data)
