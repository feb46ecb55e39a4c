"""Logging configuration for scansplit.

This module provides logging configuration with support for:
- Environment variable-based log level control
- JSON formatting for production monitoring
- Rotating JSON file output
"""

import logging
import logging.handlers
import json
import os
import sys
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Union
from pathlib import Path


# Attributes every LogRecord carries; anything else came in through `extra`.
_RESERVED_ATTRS = frozenset([
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info', 'taskName',
])


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for structured logging."""

    def __init__(self, include_context: bool = True):
        """
        Initialize JSON formatter.

        Args:
            include_context: Whether to include module/function/line fields
        """
        super().__init__()
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_data: Dict[str, Any] = {
            'timestamp': timestamp.isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if self.include_context:
            log_data['module'] = record.module
            log_data['function'] = record.funcName
            log_data['line'] = record.lineno

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Format log records in human-readable format with optional colors."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
        'RESET': '\033[0m'
    }

    def __init__(self, use_colors: bool = False, include_context: bool = False):
        if include_context:
            fmt = '[%(levelname)s] %(asctime)s - %(name)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s'
        else:
            fmt = '[%(levelname)s] %(asctime)s - %(name)s - %(message)s'

        super().__init__(fmt=fmt, datefmt='%Y-%m-%d %H:%M:%S')
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        # Records from get_logger(..., extra={"table": ..., "scan_index": ...})
        table = getattr(record, 'table', None)
        if table is not None:
            scan_index = getattr(record, 'scan_index', None)
            formatted += f" [{table}" + (f"#{scan_index}]" if scan_index is not None else "]")

        if self.use_colors:
            color = self.COLORS.get(record.levelname, '')
            reset = self.COLORS['RESET']
            return f"{color}{formatted}{reset}"

        return formatted


def get_log_level_from_env() -> int:
    """
    Get log level from environment variable.

    Environment variables checked (in order):
    1. SCANSPLIT_LOG_LEVEL
    2. LOG_LEVEL

    Returns:
        Logging level (default: INFO)
    """
    level_name = os.environ.get('SCANSPLIT_LOG_LEVEL') or os.environ.get('LOG_LEVEL', 'INFO')
    level_name = level_name.upper()

    level_map = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'WARN': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL,
    }

    return level_map.get(level_name, logging.INFO)


def get_log_format_from_env() -> str:
    """Return SCANSPLIT_LOG_FORMAT ('json', 'human', 'simple'), default 'human'."""
    return os.environ.get('SCANSPLIT_LOG_FORMAT', 'human').lower()


def setup_logging(
    level: Optional[int] = None,
    format_type: Optional[str] = None,
    log_file: Optional[Path] = None,
    use_colors: bool = False,
    include_context: bool = False
) -> None:
    """
    Configure the root logger for scansplit.

    Args:
        level: Logging level (defaults to SCANSPLIT_LOG_LEVEL or INFO)
        format_type: Format type ('json', 'human', 'simple')
        log_file: Optional path to log file
        use_colors: Use ANSI colors in console output
        include_context: Include module/function context in logs

    Environment Variables:
        SCANSPLIT_LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        SCANSPLIT_LOG_FORMAT: Set format (json, human, simple)
        SCANSPLIT_LOG_FILE: Path to log file
        LOG_LEVEL: Fallback for log level

    Examples:
        >>> setup_logging()

        >>> setup_logging(level=logging.DEBUG, format_type='json')

        >>> setup_logging(
        ...     format_type='json',
        ...     log_file=Path('logs/scansplit.log'),
        ...     include_context=True
        ... )
    """
    if level is None:
        level = get_log_level_from_env()

    if format_type is None:
        format_type = get_log_format_from_env()

    if log_file is None:
        log_file_env = os.environ.get('SCANSPLIT_LOG_FILE')
        if log_file_env:
            log_file = Path(log_file_env)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)

    formatter: logging.Formatter
    if format_type == 'json':
        formatter = JSONFormatter(include_context=include_context)
    elif format_type == 'simple':
        formatter = logging.Formatter('%(levelname)s: %(message)s')
    else:  # human
        formatter = HumanReadableFormatter(use_colors=use_colors, include_context=include_context)

    # stderr keeps stdout free for --print-config output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(level)
        # File logs are always JSON
        file_handler.setFormatter(JSONFormatter(include_context=True))
        root_logger.addHandler(file_handler)


def get_logger(name: str, extra: Optional[Dict[str, Any]] = None) -> Union[logging.Logger, logging.LoggerAdapter]:
    """
    Get a logger with optional extra context.

    Args:
        name: Logger name (typically __name__)
        extra: Extra context to include in all log messages

    Example:
        >>> logger = get_logger(__name__, extra={'table': 'events'})
        >>> logger.info("Computing splits")
    """
    logger = logging.getLogger(name)

    if extra:
        return logging.LoggerAdapter(logger, extra)

    return logger


def log_performance(logger: Union[logging.Logger, logging.LoggerAdapter], operation: str, duration_seconds: float, **metrics: Any) -> None:
    """
    Log performance metrics.

    Example:
        >>> log_performance(logger, "compute_splits", duration_seconds=0.42, splits=128)
    """
    logger.info(
        f"Performance: {operation} completed in {duration_seconds:.2f}s",
        extra={
            'operation': operation,
            'duration_seconds': duration_seconds,
            **metrics
        }
    )
