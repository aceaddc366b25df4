"""
Playback Module - Track assignment, emitter chains and gapless scheduling.

Components:
    TrackAssignment     - Validated (emitter, slot) -> source mapping
    EmitterChain        - Source -> analyser tap -> spatial stage -> output
    PlaybackSession     - One emitter's current/next tracks and state
    PlaybackScheduler   - Pre-loads and swaps tracks on the reference clock

Usage:
    from spatial_playback.playback import PlaybackScheduler

    scheduler = PlaybackScheduler(emitters, backend)
    scheduler.initialize(0)
    scheduler.play()
"""

from spatial_playback.playback.assignment import (
    AUDIO_SUFFIXES,
    FILENAME_PATTERN,
    TrackAssignment,
)

from spatial_playback.playback.events import (
    ClockWatch,
    MediaEvent,
    MediaEventKind,
)

from spatial_playback.playback.graph import AnalyserTap, EmitterChain

from spatial_playback.playback.session import (
    VALID_TRANSITIONS,
    PlaybackSession,
    SessionState,
    is_valid_transition,
)

from spatial_playback.playback.scheduler import (
    PendingLoad,
    PlaybackScheduler,
    SchedulerConfig,
)

__all__ = [
    # Assignment
    "AUDIO_SUFFIXES",
    "FILENAME_PATTERN",
    "TrackAssignment",
    # Events
    "ClockWatch",
    "MediaEvent",
    "MediaEventKind",
    # Graph
    "AnalyserTap",
    "EmitterChain",
    # Sessions
    "VALID_TRANSITIONS",
    "PlaybackSession",
    "SessionState",
    "is_valid_transition",
    # Scheduler
    "PendingLoad",
    "PlaybackScheduler",
    "SchedulerConfig",
]
