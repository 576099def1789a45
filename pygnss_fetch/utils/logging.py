"""
Logging utilities for pygnss-fetch.

Uses structlog for structured logging with optional JSON output, plus a
small console printer for the per-unit status lines users follow while a
batch runs.
"""

from __future__ import annotations

import logging
import sys
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import structlog


def setup_logging(
    level: str = "INFO",
    log_dir: Path | str | None = None,
    log_to_file: bool = False,
    log_to_console: bool = True,
    json_format: bool = False,
) -> None:
    """Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files
        log_to_file: Whether to log to file
        log_to_console: Whether to log to console
        json_format: Use JSON format for logs
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        handlers.append(console_handler)

    if log_to_file and log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path / "pygnss_fetch.log")
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        format="%(message)s",
        force=True,
    )

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return structlog.get_logger(name)


class MessageType(str, Enum):
    """Message types for console status output."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    LIST = "LIST"


class StatusPrinter:
    """Formatted status printer for batch runs.

    Usage:
        printer = StatusPrinter()
        printer.info("successfully downloaded zimm0450.21o")
        printer.error("failed to download zimm0450.21o")

        # Capture output in tests
        lines = []
        printer = StatusPrinter(output_func=lines.append)
    """

    PREFIXES = {
        MessageType.INFO: "GNSS-FETCH INFO",
        MessageType.WARNING: "GNSS-FETCH WARNING",
        MessageType.ERROR: "GNSS-FETCH ERROR",
        MessageType.LIST: "",
    }

    def __init__(self, output_func: Callable[[str], Any] | None = None):
        """Initialize printer.

        Args:
            output_func: Function to use for output (default: print)
        """
        self._output = output_func or print
        # worker threads share one printer
        self._lock = threading.Lock()

    def print_message(self, msg_type: MessageType | str, message: str) -> None:
        """Print formatted message.

        Args:
            msg_type: Message type (from MessageType enum or string)
            message: Message text
        """
        if isinstance(msg_type, str):
            msg_type = MessageType(msg_type.upper())

        if msg_type == MessageType.LIST:
            line = f"{'':<20}  - {message}"
        else:
            line = f"{self.PREFIXES[msg_type]:<20}: {message}"

        with self._lock:
            self._output(line)

    def info(self, message: str) -> None:
        """Print info message."""
        self.print_message(MessageType.INFO, message)

    def warning(self, message: str) -> None:
        """Print warning message."""
        self.print_message(MessageType.WARNING, message)

    def error(self, message: str) -> None:
        """Print error message."""
        self.print_message(MessageType.ERROR, message)

    def list_item(self, message: str) -> None:
        """Print list item."""
        self.print_message(MessageType.LIST, message)
