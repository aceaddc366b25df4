"""
Structured logging for playback lifecycle events.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, TextIO


class LogLevel(Enum):
    """Log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def numeric(self) -> int:
        """Get numeric log level."""
        return {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }[self.value]


@dataclass
class LogRecord:
    """A structured log record.

    Attributes:
        level: Log level.
        event: Event name/type.
        message: Human-readable message.
        timestamp: Unix timestamp.
        data: Additional structured data.
    """

    level: str
    event: str
    message: str = ""
    timestamp: float = field(default_factory=time.time)
    data: dict[str, Any] = field(default_factory=dict)

    # Context fields (set by logger)
    logger_name: str = ""
    thread_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        d = asdict(self)
        d.update(d.pop("data", {}))
        return d

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)


class StructuredLogger:
    """Structured event log with JSON or human-readable output.

    Example:
        log = StructuredLogger("spatial_playback")

        log.track_started(track_index=1, emitters=5)
        # {"level": "info", "event": "track_started", "track": 2, ...}

        session_log = log.bind(installation="hall-a")
        session_log.engine_command("start", ok=True)
        # every record carries installation="hall-a"
    """

    def __init__(
        self,
        name: str = "spatial_playback",
        level: LogLevel = LogLevel.INFO,
        output: TextIO | None = None,
        json_format: bool = True,
    ):
        """Initialize the logger.

        Args:
            name: Logger name.
            level: Minimum log level.
            output: Output stream (default: stderr).
            json_format: Output as JSON (vs. human-readable).
        """
        self.name = name
        self._level = level
        self._output = output or sys.stderr
        self._json_format = json_format
        self._context: dict[str, Any] = {}
        self._lock = threading.Lock()

    @property
    def level(self) -> LogLevel:
        return self._level

    def bind(self, **context: Any) -> "StructuredLogger":
        """Create a new logger with bound context."""
        new_logger = StructuredLogger(
            name=self.name,
            level=self._level,
            output=self._output,
            json_format=self._json_format,
        )
        new_logger._context = {**self._context, **context}
        return new_logger

    def _log(self, level: LogLevel, event: str, message: str = "", **data: Any) -> None:
        if level.numeric < self._level.numeric:
            return

        record = LogRecord(
            level=level.value,
            event=event,
            message=message,
            data={**self._context, **data},
            logger_name=self.name,
            thread_name=threading.current_thread().name,
        )
        self._emit(record)

    def _emit(self, record: LogRecord) -> None:
        with self._lock:
            if self._json_format:
                line = record.to_json()
            else:
                line = self._format_human(record)
            print(line, file=self._output)

    def _format_human(self, record: LogRecord) -> str:
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.timestamp))

        parts = [
            f"[{timestamp}]",
            f"[{record.level.upper()}]",
            f"[{record.event}]",
        ]
        if record.message:
            parts.append(record.message)
        if record.data:
            data_str = " ".join(f"{k}={v}" for k, v in record.data.items())
            parts.append(f"({data_str})")

        return " ".join(parts)

    def debug(self, event: str, message: str = "", **data: Any) -> None:
        self._log(LogLevel.DEBUG, event, message, **data)

    def info(self, event: str, message: str = "", **data: Any) -> None:
        self._log(LogLevel.INFO, event, message, **data)

    def warning(self, event: str, message: str = "", **data: Any) -> None:
        self._log(LogLevel.WARNING, event, message, **data)

    def error(self, event: str, message: str = "", **data: Any) -> None:
        self._log(LogLevel.ERROR, event, message, **data)

    # Convenience methods for playback events

    def engine_command(self, command: str, ok: bool, error: Exception | None = None, **extra: Any) -> None:
        """Log the outcome of a lifecycle command."""
        if ok:
            self.info("engine_command", f"{command} succeeded", command=command, ok=True, **extra)
        else:
            self.error(
                "engine_command",
                f"{command} failed: {error}",
                command=command,
                ok=False,
                error_type=type(error).__name__ if error else None,
                **extra,
            )

    def track_started(self, track_index: int, emitters: int, **extra: Any) -> None:
        """Log the start of a play cycle."""
        self.info(
            "track_started",
            f"Track {track_index + 1} playing on {emitters} emitters",
            track=track_index + 1,
            emitters=emitters,
            **extra,
        )

    def preload_started(self, track_index: int, **extra: Any) -> None:
        self.debug("preload_started", f"Loading track {track_index + 1}", track=track_index + 1, **extra)

    def preload_failed(self, track_index: int, error: Exception, **extra: Any) -> None:
        """Log a failed pre-load (retried at track end)."""
        self.warning(
            "preload_failed",
            str(error),
            track=track_index + 1,
            error_type=type(error).__name__,
            **extra,
        )

    def transition_complete(self, from_track: int, to_track: int, reason: str = "", **extra: Any) -> None:
        """Log a completed track swap."""
        self.info(
            "transition_complete",
            f"Track {from_track + 1} -> {to_track + 1}",
            from_track=from_track + 1,
            to_track=to_track + 1,
            reason=reason,
            **extra,
        )


_global_logger: StructuredLogger | None = None


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    output: TextIO | None = None,
    json_format: bool = True,
) -> StructuredLogger:
    """Configure the global event log.

    Args:
        level: Log level.
        output: Output stream.
        json_format: Use JSON format.

    Returns:
        Configured logger.
    """
    global _global_logger

    if isinstance(level, str):
        level = LogLevel(level)

    _global_logger = StructuredLogger(
        name="spatial_playback",
        level=level,
        output=output,
        json_format=json_format,
    )
    return _global_logger


def get_logger(name: str = "spatial_playback") -> StructuredLogger:
    """Get the global event log, creating a default one if needed."""
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name)

    return _global_logger
