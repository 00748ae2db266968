"""Structured logging utilities.

Search progress is emitted as one JSON object per line on stderr, so that
results printed on stdout stay machine-readable.
"""

from __future__ import annotations

import json
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, TextIO

LEVELS = {"DEBUG": 0, "INFO": 1, "WARN": 2, "ERROR": 3}

_default_level = "INFO"


@dataclass
class LogRecord:
    """Structured log record."""

    level: str
    message: str
    timestamp: float = field(default_factory=time.time)
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "message": self.message,
            "timestamp": self.timestamp,
            **self.data,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class StructuredLogger:
    """Simple structured logger with JSON output."""

    def __init__(
        self,
        name: str,
        output: TextIO | None = None,
        min_level: str | None = None,
    ) -> None:
        self.name = name
        self._output = output
        self._min_level = LEVELS.get((min_level or _default_level).upper(), 1)

    @property
    def output(self) -> TextIO:
        # Resolved lazily so pytest's capsys/capfd replacement of stderr is honoured
        return self._output or sys.stderr

    def is_enabled(self, level: str) -> bool:
        return LEVELS.get(level, 0) >= self._min_level

    def set_level(self, level: str) -> None:
        self._min_level = LEVELS.get(level.upper(), 1)

    def _log(self, level: str, message: str, **data: Any) -> None:
        if not self.is_enabled(level):
            return

        record = LogRecord(level=level, message=message, data={"logger": self.name, **data})
        print(record.to_json(), file=self.output)

    def debug(self, message: str, **data: Any) -> None:
        self._log("DEBUG", message, **data)

    def info(self, message: str, **data: Any) -> None:
        self._log("INFO", message, **data)

    def warn(self, message: str, **data: Any) -> None:
        self._log("WARN", message, **data)

    def error(self, message: str, **data: Any) -> None:
        self._log("ERROR", message, **data)

    @contextmanager
    def timer(self, operation: str, **data: Any):
        """Context manager for timing operations.

        Usage:
            with logger.timer("partition", gauge=120):
                run_partition(...)
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            self.debug(f"{operation} completed", elapsed_ms=elapsed * 1000, **data)


# Global logger cache
_loggers: dict[str, StructuredLogger] = {}


def get_logger(name: str) -> StructuredLogger:
    """Get or create a structured logger.

    Args:
        name: Logger name (typically __name__).

    Returns:
        StructuredLogger instance.
    """
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name)
    return _loggers[name]


def set_log_level(level: str) -> None:
    """Set minimum log level for existing and future loggers.

    Args:
        level: One of DEBUG, INFO, WARN, ERROR.
    """
    global _default_level

    if level.upper() not in LEVELS:
        raise ValueError(f"Unknown log level {level!r}; expected one of {sorted(LEVELS)}")
    _default_level = level.upper()
    for logger in _loggers.values():
        logger.set_level(level)


def get_log_level() -> str:
    """Current default level for new loggers."""
    return _default_level
