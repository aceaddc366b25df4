"""
Analysis Module - Signal measurements for non-audio feedback.

Example:
    from spatial_playback.analysis import LoudnessMeter

    meter = LoudnessMeter()
    brightness = meter.measure(tap)
"""

from spatial_playback.analysis.loudness import (
    EPSILON,
    SILENCE_FLOOR_DB,
    LoudnessConfig,
    LoudnessMeter,
    rms_to_intensity,
    signal_intensity,
)

__all__ = [
    "EPSILON",
    "SILENCE_FLOOR_DB",
    "LoudnessConfig",
    "LoudnessMeter",
    "rms_to_intensity",
    "signal_intensity",
]
