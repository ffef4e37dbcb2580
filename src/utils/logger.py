"""
Probe Logger

This module provides diagnostic logging for the probe, with configurable
verbosity levels and structured output. Diagnostics go to stderr because
stdout carries the status line.
"""

from typing import Optional, TextIO
from datetime import datetime
from enum import IntEnum
import sys
import os
sys.path.insert(0, '..')
from config import DEFAULT_LOG_LEVEL


class LogLevel(IntEnum):
    """Log level enumeration."""
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    CRITICAL = 4


class ProbeLogger:
    """
    Logger for probe events.

    Provides structured logging with timestamps and categories.

    Attributes:
        name: Logger name
        level: Minimum log level
        stream: Terminal stream for messages
        file: Optional file for logging
    """

    # Color codes for terminal output
    COLORS = {
        LogLevel.DEBUG: '\033[36m',     # Cyan
        LogLevel.INFO: '\033[32m',      # Green
        LogLevel.WARNING: '\033[33m',   # Yellow
        LogLevel.ERROR: '\033[31m',     # Red
        LogLevel.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(
        self,
        name: str = "Probe",
        level: int = DEFAULT_LOG_LEVEL,
        log_file: Optional[str] = None,
        stream: Optional[TextIO] = None,
        use_colors: Optional[bool] = None,
        include_timestamp: bool = True
    ):
        """
        Initialize logger.

        Args:
            name: Logger name
            level: Minimum log level
            log_file: Optional file path for logging
            stream: Terminal stream (stderr if None)
            use_colors: Use ANSI colors (auto-detected from the stream if None)
            include_timestamp: Include timestamps in log messages
        """
        self.name = name
        self.level = level
        self.stream = stream if stream is not None else sys.stderr
        if use_colors is None:
            use_colors = hasattr(self.stream, 'isatty') and self.stream.isatty()
        self.use_colors = use_colors
        self.include_timestamp = include_timestamp

        self.file: Optional[TextIO] = None
        if log_file:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            self.file = open(log_file, 'w')

        # Message counts
        self.message_counts = {level: 0 for level in LogLevel}

    def _format_message(
        self,
        level: LogLevel,
        message: str,
        category: Optional[str] = None
    ) -> str:
        """Format a log message."""
        parts = []

        if self.include_timestamp:
            parts.append(f"[{datetime.now().strftime('%H:%M:%S.%f')}]")

        level_str = level.name.ljust(8)
        if self.use_colors:
            level_str = f"{self.COLORS[level]}{level_str}{self.RESET}"
        parts.append(level_str)

        parts.append(f"[{self.name}]")

        if category:
            parts.append(f"[{category}]")

        parts.append(message)

        return " ".join(parts)

    def _log(
        self,
        level: LogLevel,
        message: str,
        category: Optional[str] = None
    ):
        """Log a message."""
        if level < self.level:
            return

        self.message_counts[level] += 1
        formatted = self._format_message(level, message, category)

        self.stream.write(formatted + '\n')
        self.stream.flush()

        if self.file:
            # Strip color codes for file
            clean = formatted
            for color in self.COLORS.values():
                clean = clean.replace(color, '')
            clean = clean.replace(self.RESET, '')
            self.file.write(clean + '\n')
            self.file.flush()

    def debug(self, message: str, category: Optional[str] = None):
        """Log debug message."""
        self._log(LogLevel.DEBUG, message, category)

    def info(self, message: str, category: Optional[str] = None):
        """Log info message."""
        self._log(LogLevel.INFO, message, category)

    def warning(self, message: str, category: Optional[str] = None):
        """Log warning message."""
        self._log(LogLevel.WARNING, message, category)

    def error(self, message: str, category: Optional[str] = None):
        """Log error message."""
        self._log(LogLevel.ERROR, message, category)

    def critical(self, message: str, category: Optional[str] = None):
        """Log critical message."""
        self._log(LogLevel.CRITICAL, message, category)

    # Convenience methods for probe events
    def probe_sent(self, seq: int, size: int):
        """Log probe sent event."""
        self.debug(f"Probe {seq} sent, size={size}B", "TX")

    def probe_received(self, seq: int, valid: bool):
        """Log probe received event."""
        status = "OK" if valid else "BAD CHECKSUM"
        self.debug(f"Probe {seq} received, {status}", "RX")

    def checksum_mismatch(self, seq: int, got: int, expected: int):
        """Log a dropped probe."""
        self.warning(f"Dropping probe {seq}: checksum 0x{got:02x} != 0x{expected:02x}", "RX")

    def malformed(self, length: int):
        self.warning(f"Dropping {length}-byte datagram, too short for a probe", "RX")

    def peer_unreachable(self):
        self.debug("Peer port unreachable, still waiting for it", "TX")

    def wake(self, readable: bool, writable: bool, report: bool, wait: float):
        """Trace one reactor wake-up."""
        self.debug(f"r:{readable:d} w:{writable:d} o:{report:d} next wait={wait * 1e6:.0f}us", "WAKE")

    def session_start(self, params: dict):
        """Log session start."""
        param_str = ", ".join(f"{k}={v}" for k, v in params.items())
        self.info(f"Session started: {param_str}", "SESSION")

    def session_end(self, reason: str):
        """Log session end."""
        self.info(f"Session ended: {reason}", "SESSION")

    def close(self):
        """Close log file if open."""
        if self.file:
            self.file.close()
            self.file = None

    def __del__(self):
        """Cleanup on deletion."""
        self.close()

