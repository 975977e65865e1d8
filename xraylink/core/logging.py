"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""Logging infrastructure with correlation tracking.

This module provides structured logging for the integration engine: correlation
IDs that follow a request across asyncio tasks, redaction of credentials and
bearer tokens, Rich console output and an optional JSON log file.
"""

import json
import logging
import os
import re
import sys
import time
import uuid
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from datetime import datetime
from re import Pattern
from typing import Any

from rich.logging import RichHandler

ROOT_LOGGER_NAME = "xraylink"

# ContextVar rather than thread-local storage so each asyncio task sees its own ID
_correlation_id: ContextVar[str | None] = ContextVar("xraylink_correlation_id", default=None)


class CorrelationIdManager:
    """
    Manages correlation IDs for the current execution context.

    Values live in a ContextVar, so concurrent reconciliation tasks spawned with
    asyncio.gather inherit the ID of the request that created them.
    """

    def get_correlation_id(self) -> str:
        """Get the current correlation ID or generate a new one."""
        current = _correlation_id.get()
        if not current:
            current = f"xraylink-{uuid.uuid4()}"
            _correlation_id.set(current)
        return current

    def current_correlation_id(self) -> str | None:
        """Return the active correlation ID without creating one."""
        return _correlation_id.get()

    def set_correlation_id(self, correlation_id: str) -> None:
        """Set the current correlation ID."""
        _correlation_id.set(correlation_id)

    def clear_correlation_id(self) -> None:
        """Clear the current correlation ID."""
        _correlation_id.set(None)


# Global correlation ID manager instance
correlation_manager = CorrelationIdManager()


class LogRedactor:
    """
    Redacts sensitive information from log messages.

    Xray credentials travel as ``client_id``/``client_secret`` pairs and the
    token is a long JWT, so both key-value forms and bare JWTs are scrubbed.
    """

    def __init__(self) -> None:
        self.patterns: dict[str, Pattern] = {
            "secret": re.compile(
                r'(client_secret|clientSecret|xrayClientSecret|password|secret)["\']?\s*[:=]\s*["\']?([^"\'&\s,}]+)',
                re.IGNORECASE,
            ),
            "token": re.compile(
                r'(token|api[_-]?key)["\']?\s*[:=]\s*["\']?([^"\'&\s,}]{8,})', re.IGNORECASE
            ),
            "bearer_token": re.compile(r"(Authorization|Bearer)[\"']?\s*[:=]?\s*[\"']?([^\"'&\s]{8,})"),
            "jwt": re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\b"),
        }

    def redact(self, message: str) -> str:
        """Redact sensitive information from the message."""
        if not isinstance(message, str):
            return message

        for field, pattern in self.patterns.items():
            if field == "jwt":
                message = pattern.sub("[REDACTED]", message)
            else:
                # Keep the key, drop the value
                message = pattern.sub(r"\1: [REDACTED]", message)
        return message


# Global redactor instance
redactor = LogRedactor()


class ContextFilter(logging.Filter):
    """
    Stamps every record with the correlation ID and redacts its message.

    Attached to handlers rather than loggers so that records from any module
    under the ``xraylink`` hierarchy are covered.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        current = correlation_manager.current_correlation_id()
        if current:
            record.correlation_id = current
        if isinstance(record.msg, str):
            record.msg = redactor.redact(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                redactor.redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs log records as JSON.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "correlation_id"):
            log_data["correlation_id"] = record.correlation_id

        if getattr(record, "context_data", None):
            log_data["context"] = record.context_data

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, default=str)


class RichContextFormatter(logging.Formatter):
    """
    Formatter for Rich console output with context data.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        context_data = getattr(record, "context_data", None)
        if context_data:
            context_str = " ".join(f"[{k}={v}]" for k, v in context_data.items())
            message = f"{message} {context_str}"

        if hasattr(record, "correlation_id"):
            message = f"{message} [correlation_id={record.correlation_id}]"

        return message


@asynccontextmanager
async def log_operation(
    logger: logging.Logger,
    operation_name: str,
    level: int = logging.INFO,
    context: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Async context manager for logging operations with timing and context tracking.

    Args:
    ----
        logger: The logger instance to use
        operation_name: Name of the operation being performed
        level: Log level to use
        context: Additional context data to include in the logs

    Yields:
    ------
        The context dict, so the body can attach details to the completion record

    Raises:
    ------
        Exception: Re-raises any exception that occurs within the context

    """
    start_time = time.monotonic()
    context = dict(context or {})
    context["operation_id"] = str(uuid.uuid4())[:8]

    logger.log(level, f"Starting {operation_name}", extra={"context_data": context})

    try:
        yield context
    except Exception as e:
        duration = time.monotonic() - start_time
        error_context = {
            **context,
            "error_type": type(e).__name__,
            "error": str(e),
            "duration": f"{duration:.2f}s",
        }
        logger.error(
            f"Failed {operation_name} after {duration:.2f}s",
            extra={"context_data": error_context},
        )
        raise

    duration = time.monotonic() - start_time
    logger.log(
        level,
        f"Completed {operation_name} in {duration:.2f}s",
        extra={"context_data": context},
    )


@contextmanager
def correlation_id(correlation_id: str | None = None) -> Iterator[str]:
    """
    Context manager for setting a correlation ID for the current context.

    Args:
    ----
        correlation_id: ID to use, or None to generate a new one

    Yields:
    ------
        str: The current correlation ID (either provided or generated)

    """
    token = _correlation_id.set(correlation_id or f"xraylink-{uuid.uuid4()}")
    try:
        yield correlation_manager.get_correlation_id()
    finally:
        _correlation_id.reset(token)


def _plain_format(include_timestamp: bool) -> str:
    if include_timestamp:
        return "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    return "[%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    level: int | str = logging.INFO,
    log_file: str | None = None,
    json_format: bool = False,
    include_timestamp: bool = True,
    use_rich: bool = True,
) -> None:
    """
    Configure application logging.

    Args:
    ----
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL or integer)
        log_file: Optional path to log file
        json_format: Whether to use JSON format for logs
        include_timestamp: Whether to include timestamps in logs
        use_rich: Whether to use Rich for console output

    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    context_filter = ContextFilter()
    handlers: list[logging.Handler] = []

    if use_rich:
        console_handler: logging.Handler = RichHandler(
            rich_tracebacks=True, markup=False, show_time=include_timestamp
        )
        console_handler.setFormatter(RichContextFormatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        if json_format:
            console_handler.setFormatter(JSONFormatter())
        else:
            console_handler.setFormatter(logging.Formatter(_plain_format(include_timestamp)))
    handlers.append(console_handler)

    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        if json_format:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(_plain_format(include_timestamp)))
        handlers.append(file_handler)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    for handler in handlers:
        handler.addFilter(context_filter)
        logger.addHandler(handler)

    logger.debug(f"Logging configured with level {logging.getLevelName(level)}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger inside the xraylink hierarchy.

    Args:
    ----
        name: Name of the logger, typically __name__

    Returns:
    -------
        A logger whose records flow through the configured xraylink handlers

    """
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
