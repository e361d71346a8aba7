"""Structured logging for transcript-rag.

Provides configurable logging with:
- Verbosity levels shared by the CLI and library callers
- Text or JSON record formatting
- Console and optional file handlers
- Per-session context binding for correction requests
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Any

ROOT_LOGGER_NAME = "transcript_rag"

# Attributes present on every LogRecord; anything else came in via ``extra``
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


class LogLevel(IntEnum):
    """Log verbosity levels."""

    QUIET = 0  # Only errors
    NORMAL = 1  # Errors + warnings
    VERBOSE = 2  # Errors + warnings + info
    DEBUG = 3  # Everything including per-stage pipeline traces


@dataclass
class LogConfig:
    """Configuration for logging.

    Attributes:
        level: Verbosity level
        log_file: Optional path to log file
        json_format: Use JSON format for logs
        include_timestamp: Include timestamp in logs
        include_context: Include context dict in logs
        color: Use colored output (console only)
    """

    level: LogLevel = LogLevel.NORMAL
    log_file: Path | None = None
    json_format: bool = False
    include_timestamp: bool = True
    include_context: bool = True
    color: bool = True


class Colors:
    """ANSI color codes."""

    RESET = "\033[0m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Collect the non-standard attributes attached to a record."""
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs structured log records.

    Supports both text and JSON formats with optional coloring.
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.GRAY,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.RED,
    }

    def __init__(
        self,
        json_format: bool = False,
        include_timestamp: bool = True,
        include_context: bool = True,
        color: bool = True,
    ):
        super().__init__()
        self.json_format = json_format
        self.include_timestamp = include_timestamp
        self.include_context = include_context
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record."""
        if self.json_format:
            return self._format_json(record)
        return self._format_text(record)

    def _format_json(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "logger": record.name,
        }

        if self.include_timestamp:
            data["timestamp"] = datetime.fromtimestamp(record.created).isoformat()

        if self.include_context:
            extra = {}
            for key, value in _record_context(record).items():
                try:
                    json.dumps(value)
                    extra[key] = value
                except (TypeError, ValueError):
                    extra[key] = str(value)
            if extra:
                data["context"] = extra

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        return json.dumps(data)

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{Colors.RESET}" if self.color else text

    def _format_text(self, record: logging.LogRecord) -> str:
        parts = []

        if self.include_timestamp:
            stamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
            parts.append(self._paint(stamp, Colors.GRAY))

        level_color = self.LEVEL_COLORS.get(record.levelno, Colors.RESET)
        parts.append(self._paint(record.levelname.upper()[:5].ljust(5), level_color))

        # Long module paths keep their tail
        name = record.name if len(record.name) <= 24 else "..." + record.name[-21:]
        parts.append(self._paint(f"{name:>24}", Colors.CYAN))

        parts.append(record.getMessage())
        line = " | ".join(parts)

        context = _record_context(record) if self.include_context else {}
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            line += " " + self._paint(f"[{pairs}]", Colors.GRAY)

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


class RagLogger(logging.Logger):
    """Logger that carries bound context into every record."""

    def __init__(self, name: str, level: int = logging.NOTSET):
        super().__init__(name, level)
        self._context: dict[str, Any] = {}

    def with_context(self, **context: Any) -> "RagLogger":
        """Create a child logger with additional bound context.

        Args:
            **context: Context key-value pairs (e.g. session_id)

        Returns:
            Logger with context bound
        """
        bound = RagLogger(self.name, self.level)
        bound.parent = self.parent
        bound.handlers = self.handlers
        bound.propagate = self.propagate
        bound._context = {**self._context, **context}
        return bound

    def _log(
        self,
        level: int,
        msg: object,
        args: tuple,
        exc_info: Any = None,
        extra: dict | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
    ) -> None:
        merged_extra = {**self._context, **(extra or {})}
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=merged_extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


_LEVELS = {
    LogLevel.QUIET: logging.ERROR,
    LogLevel.NORMAL: logging.WARNING,
    LogLevel.VERBOSE: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}

_config: LogConfig = LogConfig()
_initialized: bool = False


def _handler(handler: logging.Handler, level: int, formatter: StructuredFormatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: LogConfig | None = None) -> None:
    """(Re)install handlers on the ``transcript_rag`` logger tree.

    The console handler follows the configured verbosity; the optional
    file handler always records debug output with full context.

    Args:
        config: Logging configuration (keeps the current one if None)
    """
    global _config, _initialized

    if config:
        _config = config

    logging.setLoggerClass(RagLogger)
    level = _LEVELS[_config.level]

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG if _config.log_file else level)
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()

    root.addHandler(
        _handler(
            logging.StreamHandler(sys.stderr),
            level,
            StructuredFormatter(
                json_format=_config.json_format,
                include_timestamp=_config.include_timestamp,
                include_context=_config.include_context,
                color=_config.color and sys.stderr.isatty(),
            ),
        )
    )

    if _config.log_file:
        _config.log_file.parent.mkdir(parents=True, exist_ok=True)
        root.addHandler(
            _handler(
                logging.FileHandler(_config.log_file, encoding="utf-8"),
                logging.DEBUG,
                StructuredFormatter(json_format=_config.json_format, color=False),
            )
        )

    _initialized = True


def get_logger(name: str) -> RagLogger:
    """Get a logger for the given name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger
    """
    if not _initialized:
        configure_logging()

    logger = logging.getLogger(name)
    if not isinstance(logger, RagLogger):
        # Created before RagLogger was installed; wrap it so with_context works
        wrapped = RagLogger(name, logger.level)
        wrapped.parent = logger.parent
        wrapped.handlers = logger.handlers
        logger = wrapped

    return logger  # type: ignore[return-value]


def set_verbosity(level: LogLevel) -> None:
    """Set global verbosity level."""
    _config.level = level
    configure_logging(_config)


def enable_file_logging(log_file: Path) -> None:
    """Enable logging to a file."""
    _config.log_file = log_file
    configure_logging(_config)


class LogContext:
    """Context manager for temporary process-wide logging context.

    Intended for single-threaded entry points such as CLI commands; request
    handlers should prefer ``RagLogger.with_context``.

    Example:
        with LogContext(command="correct", corpus="talk.json"):
            logger.info("Starting correction")
    """

    def __init__(self, **context: Any):
        self.context = context
        self._old_factory = None

    def __enter__(self) -> "LogContext":
        self._old_factory = logging.getLogRecordFactory()
        old_factory = self._old_factory
        context = self.context

        def factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
            record = old_factory(*args, **kwargs)
            for key, value in context.items():
                setattr(record, key, value)
            return record

        logging.setLogRecordFactory(factory)
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: Any) -> None:
        if self._old_factory:
            logging.setLogRecordFactory(self._old_factory)


def log_operation_start(logger: logging.Logger, operation: str, **context: Any) -> None:
    """Log the start of an operation."""
    logger.info(f"Starting: {operation}", extra=context)


def log_operation_complete(
    logger: logging.Logger,
    operation: str,
    duration_ms: float | None = None,
    **context: Any,
) -> None:
    """Log the completion of an operation.

    Args:
        logger: Logger to use
        operation: Operation name
        duration_ms: Optional duration in milliseconds
        **context: Additional context
    """
    if duration_ms is not None:
        context["duration_ms"] = round(duration_ms, 2)
    logger.info(f"Completed: {operation}", extra=context)


def log_operation_failed(
    logger: logging.Logger,
    operation: str,
    error: Exception,
    **context: Any,
) -> None:
    """Log a failed operation."""
    context["error_type"] = type(error).__name__
    context["error_message"] = str(error)
    logger.error(f"Failed: {operation}", extra=context)
