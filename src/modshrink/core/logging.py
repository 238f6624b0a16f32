"""Centralized logging for modshrink.

Provides unified logging across all stages with 4 verbosity levels:
- QUIET (0): Warnings + errors
- NORMAL (1): Info + warnings + errors
- VERBOSE (2): Detailed info
- DEBUG (3): Everything including per-file decisions

Usage:
    from modshrink.core.logging import get_logger, set_verbosity

    logger = get_logger(__name__)
    set_verbosity(2)  # VERBOSE

    logger.debug("Skipping 16-bit PNG")
    logger.verbose("Extracted 120 files")
    logger.info("Archive written")
    logger.warning("Cleanup failed")
    logger.error("Minification failed")
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from enum import IntEnum

from modshrink.core.log_bus import LogRecord, get_log_bus


class VerbosityLevel(IntEnum):
    """Verbosity levels for modshrink."""

    QUIET = 0  # Warnings + errors
    NORMAL = 1  # Info + warnings + errors
    VERBOSE = 2  # Detailed info
    DEBUG = 3  # Everything


LEVEL_NAMES: dict[str, VerbosityLevel] = {
    "quiet": VerbosityLevel.QUIET,
    "normal": VerbosityLevel.NORMAL,
    "verbose": VerbosityLevel.VERBOSE,
    "debug": VerbosityLevel.DEBUG,
}

# Global verbosity level
_VERBOSITY: VerbosityLevel = VerbosityLevel.NORMAL

# Color support
_USE_COLORS: bool = True

_LOG_SINK: Callable[[str], None] | None = None
_SINK_ADAPTER: Callable[[LogRecord], None] | None = None


def set_verbosity(level: int | str | VerbosityLevel) -> None:
    """Set global verbosity level.

    Args:
        level: Verbosity level (0-3, level name or VerbosityLevel enum)
    """
    global _VERBOSITY

    if isinstance(level, str):
        level = LEVEL_NAMES[level.strip().lower()]
    elif isinstance(level, int):
        level = VerbosityLevel(level)

    _VERBOSITY = level


def get_verbosity() -> VerbosityLevel:
    """Get current verbosity level."""
    return _VERBOSITY


def set_colors(enabled: bool) -> None:
    """Enable or disable colored output."""
    global _USE_COLORS
    _USE_COLORS = enabled


def set_log_sink(sink: Callable[[str], None] | None) -> None:
    """Route plain log lines to a single callback.

    Thin adapter over LogBus; passing None removes the previous sink.

    Args:
        sink: Callback receiving a single log line, or None to disable.
    """
    global _LOG_SINK
    global _SINK_ADAPTER

    if _SINK_ADAPTER is not None:
        get_log_bus().unsubscribe_all(_SINK_ADAPTER)
        _SINK_ADAPTER = None

    _LOG_SINK = sink

    if sink is None:
        return

    def _adapter(rec: LogRecord) -> None:
        sink(rec.plain)

    _SINK_ADAPTER = _adapter
    get_log_bus().subscribe_all(_adapter)


def get_log_sink() -> Callable[[str], None] | None:
    """Get the current log sink callback (if any)."""
    return _LOG_SINK


class ModShrinkLogger:
    """Logger with verbosity support."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "VERBOSE": "\033[34m",  # Blue
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "RESET": "\033[0m",
    }

    def __init__(self, name: str):
        """Initialize logger.

        Args:
            name: Logger name (usually module name)
        """
        self.name = name

    def _should_log(self, level: VerbosityLevel) -> bool:
        return level <= _VERBOSITY

    def _format_message(self, level: str, message: str, stream: object) -> str:
        """Format log message, colored when writing to a terminal.

        Args:
            level: Log level name
            message: Message text
            stream: Target stream

        Returns:
            Formatted message
        """
        isatty = getattr(stream, "isatty", None)
        if _USE_COLORS and isatty is not None and isatty():
            color = self.COLORS.get(level, "")
            reset = self.COLORS["RESET"]
            return f"{color}[{level.lower()}]{reset} {message}"
        return f"[{level.lower()}] {message}"

    def _log(self, level: VerbosityLevel, level_name: str, message: str) -> None:
        if not self._should_log(level):
            return

        plain = f"[{level_name.lower()}] {message}"
        get_log_bus().publish(LogRecord(level_name=level_name, plain=plain, logger_name=self.name))

        stream = sys.stderr if level_name in ("WARNING", "ERROR") else sys.stdout
        print(self._format_message(level_name, message, stream), file=stream)

    def debug(self, message: str) -> None:
        """Log debug message (verbosity >= DEBUG)."""
        self._log(VerbosityLevel.DEBUG, "DEBUG", message)

    def verbose(self, message: str) -> None:
        """Log verbose message (verbosity >= VERBOSE)."""
        self._log(VerbosityLevel.VERBOSE, "VERBOSE", message)

    def info(self, message: str) -> None:
        """Log info message (verbosity >= NORMAL)."""
        self._log(VerbosityLevel.NORMAL, "INFO", message)

    def warning(self, message: str) -> None:
        """Log warning message (verbosity >= QUIET)."""
        self._log(VerbosityLevel.QUIET, "WARNING", message)

    def error(self, message: str) -> None:
        """Log error message (always shown)."""
        self._log(VerbosityLevel.QUIET, "ERROR", message)


# Logger registry
_LOGGERS: dict[str, ModShrinkLogger] = {}


def get_logger(name: str = __name__) -> ModShrinkLogger:
    """Get logger instance for module.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    if name not in _LOGGERS:
        _LOGGERS[name] = ModShrinkLogger(name)

    return _LOGGERS[name]
