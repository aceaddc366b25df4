"""
Spatial Playback - Listener-centric playback of tracks placed in space.

Architecture:
    SpatialField -> Emitters -> PlaybackScheduler -> EmitterChain -> Backend
                                      ^                    ^
                              media clock events     ListenerSimulation pose

Public API (stable):
    SpatialPlaybackEngine   - Main interface. assign(), start(), tick().
    EngineConfig            - Engine configuration (dict / YAML).
    CommandResult           - Returned by lifecycle commands.
    TrackAssignment         - Which source each emitter plays per slot.
    DirectionalInput        - Manual steering for one tick.

Subpackages:
    spatial     - Geometry, listener motion, panning
    playback    - Assignment, chains, sessions, scheduler
    analysis    - Loudness metering
    backends    - Media decode and output (memory, sounddevice)
    monitoring  - Structured event log

Example:
    from spatial_playback import EngineConfig, SpatialPlaybackEngine

    engine = SpatialPlaybackEngine(EngineConfig())
    engine.assign("~/Music/installation")
    engine.start()
    engine.run(max_ticks=600)
    print(engine.loudness(0))
    engine.destroy()
"""

from spatial_playback.config import EngineConfig
from spatial_playback.engine import CommandResult, EngineSnapshot, SpatialPlaybackEngine
from spatial_playback.errors import (
    AssignmentError,
    DecodeError,
    GraphError,
    InvalidTransitionError,
    PlaybackError,
)
from spatial_playback.playback.assignment import TrackAssignment
from spatial_playback.playback.session import SessionState
from spatial_playback.spatial.listener import DirectionalInput, ListenerPose

__version__ = "1.0.0"

__all__ = [
    # Core
    "SpatialPlaybackEngine",
    "EngineConfig",
    "CommandResult",
    "EngineSnapshot",
    "TrackAssignment",
    "SessionState",
    "DirectionalInput",
    "ListenerPose",
    # Errors
    "PlaybackError",
    "AssignmentError",
    "DecodeError",
    "GraphError",
    "InvalidTransitionError",
    # Version
    "__version__",
]
