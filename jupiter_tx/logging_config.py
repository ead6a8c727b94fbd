"""
Structured Logging Configuration

Provides:
- Correlation IDs so every log line of one pipeline run can be grouped
- JSON formatting for machine parsing
- Human-readable console output
- Keyword extras on log calls via StructuredLogger
"""

import contextvars
import json
import logging
import logging.handlers
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union
from uuid import uuid4


correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)
flow_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "flow", default=None
)

# Libraries that may echo transaction or key material at DEBUG
QUIET_LOGGERS = ("solana", "solders", "httpx", "httpcore")


class CorrelationContext:
    """Context manager tagging log lines with a run id and flow name."""

    def __init__(self, correlation_id: Optional[str] = None, flow: Optional[str] = None):
        self.correlation_id = correlation_id or str(uuid4())
        self.flow = flow
        self._tokens = []

    def __enter__(self):
        self._tokens.append((correlation_id_var, correlation_id_var.set(self.correlation_id)))
        if self.flow:
            self._tokens.append((flow_var, flow_var.set(self.flow)))
        return self

    def __exit__(self, *args):
        for var, token in reversed(self._tokens):
            var.reset(token)


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(
        self,
        include_traceback: bool = True,
        extra_fields: Optional[Dict[str, Any]] = None,
    ):
        super().__init__()
        self.include_traceback = include_traceback
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": _timestamp(record).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = correlation_id_var.get()
        if correlation_id:
            log_data["correlation_id"] = correlation_id
        flow = flow_var.get()
        if flow:
            log_data["flow"] = flow

        log_data.update(self.extra_fields)

        if record.exc_info and self.include_traceback:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        return json.dumps(log_data, default=str)


class StructuredFormatter(logging.Formatter):
    """Human-readable structured formatter for console output."""

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color
        self.colors = {
            "DEBUG": "\033[36m",
            "INFO": "\033[32m",
            "WARNING": "\033[33m",
            "ERROR": "\033[31m",
            "CRITICAL": "\033[35m",
            "RESET": "\033[0m",
        }

    def format(self, record: logging.LogRecord) -> str:
        timestamp = _timestamp(record).strftime("%Y-%m-%d %H:%M:%S")

        level = record.levelname
        if self.use_color and sys.stderr.isatty():
            color = self.colors.get(level, "")
            reset = self.colors["RESET"]
            level = f"{color}{level}{reset}"

        parts = [
            f"[{timestamp}]",
            f"[{level}]",
            f"[{record.name}]",
            record.getMessage(),
        ]

        context_parts = []
        correlation_id = correlation_id_var.get()
        if correlation_id:
            context_parts.append(f"run={correlation_id[:8]}")
        flow = flow_var.get()
        if flow:
            context_parts.append(f"flow={flow}")
        if hasattr(record, "extra_data"):
            context_parts.extend(f"{k}={v}" for k, v in record.extra_data.items())

        if context_parts:
            parts.append(f"[{', '.join(context_parts)}]")

        if record.exc_info:
            exc_text = "".join(traceback.format_exception(*record.exc_info))
            parts.append(f"\n{exc_text}")

        return " ".join(parts)


class StructuredLogger:
    """Logger wrapper accepting keyword extras."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def _log_with_extra(
        self, level: int, msg: str, extra_data: Optional[Dict[str, Any]] = None, **kwargs
    ):
        if extra_data:
            kwargs.setdefault("extra", {})["extra_data"] = extra_data
        self._logger.log(level, msg, **kwargs)

    def info(self, msg: str, **extra_data):
        self._log_with_extra(logging.INFO, msg, extra_data or None)

    def warning(self, msg: str, **extra_data):
        self._log_with_extra(logging.WARNING, msg, extra_data or None)


def setup_logging(
    level: Union[str, int] = logging.INFO,
    json_format: bool = False,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    extra_fields: Optional[Dict[str, Any]] = None,
) -> logging.Logger:
    """
    Configure logging for the CLI.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit JSON lines on stderr instead of the console format
        log_file: Optional rotating log file (always JSON)
        max_bytes: Max size of log file before rotation
        backup_count: Number of backup files to keep
        extra_fields: Additional fields to include in JSON logs

    Returns:
        Configured root logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    if json_format:
        console_handler.setFormatter(JSONFormatter(extra_fields=extra_fields))
    else:
        console_handler.setFormatter(StructuredFormatter(use_color=True))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(JSONFormatter(extra_fields=extra_fields))
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return root_logger


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(name))


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()
