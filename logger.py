"""
Structured logging for the Voice & PDF Chat backend.

Provides consistent, parseable logging for flows, the session store and
provider adapters, with a human-readable console format and an optional
JSON file sink.
"""

import os
import sys
import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from functools import wraps
import traceback

from errors import ChatBackendError


class StructuredFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if getattr(record, "extra_data", None):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console formatter with colors."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m"
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S")

        msg = f"{color}[{timestamp}] {record.levelname:8}{reset} | {record.name}: {record.getMessage()}"

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            data_str = ", ".join(f"{k}={v}" for k, v in extra_data.items())
            msg += f" | {data_str}"

        if record.exc_info:
            msg += f"\n{self.formatException(record.exc_info)}"

        return msg


class AppLogger:
    """Application logger that accepts keyword fields as structured data."""

    _instances: Dict[str, 'AppLogger'] = {}

    def __init__(self, name: str, level: Optional[str] = None):
        """
        Initialize logger.

        Args:
            name: Logger name (usually module name)
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        """
        self.name = name
        self.level = level or os.getenv("LOG_LEVEL", "INFO")
        self.logger = logging.getLogger(name)
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        if self.logger.handlers:
            return

        self.logger.setLevel(getattr(logging, self.level.upper(), logging.INFO))

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(ConsoleFormatter())
        self.logger.addHandler(console_handler)

        log_file = os.getenv("LOG_FILE")
        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(file_handler)

        self.logger.propagate = False

    def _log(self, level: int, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        if not self.logger.isEnabledFor(level):
            return
        record = self.logger.makeRecord(
            self.name, level, "", 0, message, (), None
        )
        if extra:
            record.extra_data = extra
        self.logger.handle(record)

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, kwargs or None)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, kwargs or None)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, kwargs or None)

    def error(self, message: str, exc_info: bool = False, **kwargs) -> None:
        if exc_info:
            kwargs["traceback"] = traceback.format_exc()
        self._log(logging.ERROR, message, kwargs or None)

    def critical(self, message: str, exc_info: bool = False, **kwargs) -> None:
        if exc_info:
            kwargs["traceback"] = traceback.format_exc()
        self._log(logging.CRITICAL, message, kwargs or None)

    def request(self, method: str, path: str, status: int, duration_ms: float, **kwargs) -> None:
        """Log a completed HTTP request."""
        self.info(
            f"{method} {path} -> {status}",
            method=method,
            path=path,
            status=status,
            duration_ms=round(duration_ms, 2),
            **kwargs
        )

    def provider_call(self, provider: str, operation: str, success: bool, **kwargs) -> None:
        """Log a call to an external provider (speech, embeddings, PDF fetch)."""
        level = logging.INFO if success else logging.WARNING
        status = "SUCCESS" if success else "FAILED"
        self._log(
            level,
            f"Provider [{provider}] {operation}: {status}",
            {"provider": provider, "operation": operation, "success": success, **kwargs}
        )

    def vector_query(self, collection: str, results_count: int, duration_ms: float, **kwargs) -> None:
        """Log a vector store query."""
        self.info(
            f"Vector query on '{collection}': {results_count} results",
            collection=collection,
            results=results_count,
            duration_ms=round(duration_ms, 2),
            **kwargs
        )

    def llm_call(self, model: str, prompt_tokens: Optional[int] = None,
                 response_tokens: Optional[int] = None, **kwargs) -> None:
        """Log a language model call."""
        self.info(
            f"LLM call to {model}",
            model=model,
            prompt_tokens=prompt_tokens,
            response_tokens=response_tokens,
            **kwargs
        )

    def session_event(self, event: str, session_id: str, **kwargs) -> None:
        """Log a session lifecycle or persistence event."""
        self.info(
            f"Session {event}",
            event=event,
            session_id=session_id,
            **kwargs
        )


def get_logger(name: str) -> AppLogger:
    """
    Get or create a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        AppLogger instance
    """
    if name not in AppLogger._instances:
        AppLogger._instances[name] = AppLogger(name)
    return AppLogger._instances[name]


def log_async_function_call(logger: Optional[AppLogger] = None):
    """
    Decorator to log async function entry/exit.

    Args:
        logger: Optional logger instance
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            nonlocal logger
            if logger is None:
                logger = get_logger(func.__module__)

            func_name = func.__name__
            logger.debug(f"Entering {func_name}", args_count=len(args), kwargs_keys=list(kwargs.keys()))

            try:
                result = await func(*args, **kwargs)
                logger.debug(f"Exiting {func_name}", success=True)
                return result
            except ChatBackendError as e:
                # 4xx errors log at WARNING
                log = logger.warning if e.status_code < 500 else logger.error
                log(f"{type(e).__name__} in {func_name}: {e.message}", error_type=type(e).__name__, status=e.status_code)
                raise
            except Exception as e:
                logger.error(f"Exception in {func_name}: {str(e)}", error_type=type(e).__name__)
                raise

        return wrapper
    return decorator
