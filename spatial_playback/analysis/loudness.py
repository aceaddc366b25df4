"""
Loudness Meter - Per-emitter intensity for visual feedback.

Reduces the most recent time-domain window of an emitter's live signal to
a single value in [0, 1]:

    rms -> 20*log10(rms + eps) dB -> [floor_db, 0] mapped to [0, 1], clamped

The meter only reads the analyser tap. It never touches playback and may
be called at frame rate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from spatial_playback.playback.graph import AnalyserTap

SILENCE_FLOOR_DB = -60.0
EPSILON = 1e-10


@dataclass(frozen=True)
class LoudnessConfig:
    """
    Attributes:
        window_size: Samples per analysis window
        floor_db: Level mapped to 0.0 (0 dBFS maps to 1.0)
    """
    window_size: int = 2048
    floor_db: float = SILENCE_FLOOR_DB

    def __post_init__(self):
        if self.window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {self.window_size}")
        if self.floor_db >= 0:
            raise ValueError(f"floor_db must be < 0, got {self.floor_db}")


def rms_to_intensity(rms: float, floor_db: float = SILENCE_FLOOR_DB) -> float:
    """Map an RMS amplitude to [0, 1] on a decibel scale."""
    level_db = 20 * np.log10(rms + EPSILON)
    intensity = (level_db - floor_db) / -floor_db
    return float(min(1.0, max(0.0, intensity)))


def signal_intensity(samples: np.ndarray, floor_db: float = SILENCE_FLOOR_DB) -> float:
    """Intensity of a block of float samples (empty block -> 0.0)."""
    if samples is None or len(samples) == 0:
        return 0.0
    samples = np.asarray(samples, dtype=np.float64)
    rms = float(np.sqrt(np.mean(samples ** 2)))
    return rms_to_intensity(rms, floor_db)


class LoudnessMeter:
    """
    Snapshot loudness of emitter signals.

    Example:
        meter = LoudnessMeter()
        value = meter.measure(scheduler.tap(0))  # 0.0 .. 1.0
    """

    def __init__(self, config: LoudnessConfig | None = None):
        self.config = config or LoudnessConfig()

    def measure(self, tap: "AnalyserTap | None") -> float:
        """Intensity of the tap's latest window; 0.0 when nothing is live."""
        if tap is None:
            return 0.0
        window = tap.latest(self.config.window_size)
        if window is None:
            return 0.0
        return signal_intensity(window, self.config.floor_db)
