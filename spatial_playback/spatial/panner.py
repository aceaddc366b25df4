"""
Spatial Stage - Listener-relative panning and distance gain.

Each emitter chain ends in one SpatialStage. The stage is fixed at the
emitter's position; the backend hands it the current listener pose when it
renders a block.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from spatial_playback.spatial.field import Attenuation
from spatial_playback.spatial.listener import ListenerPose
from spatial_playback.spatial.vector import Vector2D


@dataclass
class SpatialStage:
    """Equal-power stereo panner with distance attenuation."""

    position: Vector2D
    attenuation: Attenuation

    def gains(self, pose: ListenerPose) -> tuple[float, float]:
        """
        Left/right gains for the given listener pose.

        Azimuth is measured in the listener frame (0 = ahead, positive =
        right) and mapped to a constant-power pan law.
        """
        local = pose.to_local(self.position)
        distance = local.length()
        gain = self.attenuation.gain(distance)

        if distance == 0:
            pan = 0.0
        else:
            azimuth = math.atan2(local.x, local.z)
            pan = max(-1.0, min(1.0, math.sin(azimuth)))

        angle = (pan + 1) * math.pi / 4  # 0 to pi/2
        return math.cos(angle) * gain, math.sin(angle) * gain

    def process(self, samples: np.ndarray, pose: ListenerPose) -> np.ndarray:
        """Mono block in, (frames, 2) stereo block out."""
        left, right = self.gains(pose)
        out = np.empty((len(samples), 2), dtype=np.float32)
        out[:, 0] = samples * left
        out[:, 1] = samples * right
        return out
