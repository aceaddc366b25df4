"""
Monitoring - Structured playback event log.

Example:
    from spatial_playback.monitoring import configure_logging

    log = configure_logging(level="info", json_format=False)
    log.track_started(track_index=0, emitters=5)
"""

from spatial_playback.monitoring.logging import (
    LogLevel,
    LogRecord,
    StructuredLogger,
    configure_logging,
    get_logger,
)

__all__ = [
    "LogLevel",
    "LogRecord",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]
