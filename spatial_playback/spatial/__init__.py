"""
Spatial Module - Emitter geometry, listener motion and panning.

Components:
    Vector2D            - 2D vector on the horizontal plane
    SpatialField        - Emitters evenly placed on a circle
    Attenuation         - Distance falloff shared by emitters
    ListenerSimulation  - Bounded random walk / manual steering
    SpatialStage        - Listener-relative pan and distance gain

Usage:
    from spatial_playback.spatial import Boundaries, ListenerSimulation

    sim = ListenerSimulation(Boundaries(soft=2.0, hard=5.0))
    state = sim.tick()
"""

from spatial_playback.spatial.vector import Vector2D

from spatial_playback.spatial.field import (
    Attenuation,
    DistanceModel,
    Emitter,
    SpatialField,
    TrackSlot,
    polygon_positions,
)

from spatial_playback.spatial.listener import (
    GOLDEN_RATIO,
    NO_INPUT,
    Boundaries,
    DirectionalInput,
    ListenerPose,
    ListenerSimulation,
    ListenerState,
    MotionParameters,
    MotionState,
)

from spatial_playback.spatial.panner import SpatialStage

__all__ = [
    # Vector
    "Vector2D",
    # Field
    "Attenuation",
    "DistanceModel",
    "Emitter",
    "SpatialField",
    "TrackSlot",
    "polygon_positions",
    # Listener
    "GOLDEN_RATIO",
    "NO_INPUT",
    "Boundaries",
    "DirectionalInput",
    "ListenerPose",
    "ListenerSimulation",
    "ListenerState",
    "MotionParameters",
    "MotionState",
    # Panning
    "SpatialStage",
]
