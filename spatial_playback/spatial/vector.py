"""
Vector2D - Minimal 2D vector math on the horizontal (x, z) plane.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass
class Vector2D:
    """2D vector in meters.

    Coordinate system:
        x: Left (-) / Right (+)
        z: Behind (-) / Front (+)
    """

    x: float = 0.0
    z: float = 0.0

    def length(self) -> float:
        """Euclidean length."""
        return math.sqrt(self.x * self.x + self.z * self.z)

    def normalized(self) -> "Vector2D":
        """Return unit vector (zero vector stays zero)."""
        length = self.length()
        if length == 0:
            return Vector2D(0.0, 0.0)
        return Vector2D(self.x / length, self.z / length)

    def dot(self, other: "Vector2D") -> float:
        return self.x * other.x + self.z * other.z

    def distance_to(self, other: "Vector2D") -> float:
        return (self - other).length()

    def angle(self) -> float:
        """Angle from the +x axis in radians."""
        return math.atan2(self.z, self.x)

    def copy(self) -> "Vector2D":
        return Vector2D(self.x, self.z)

    def __add__(self, other: "Vector2D") -> "Vector2D":
        return Vector2D(self.x + other.x, self.z + other.z)

    def __sub__(self, other: "Vector2D") -> "Vector2D":
        return Vector2D(self.x - other.x, self.z - other.z)

    def __mul__(self, scalar: float) -> "Vector2D":
        return Vector2D(self.x * scalar, self.z * scalar)

    __rmul__ = __mul__

    def __neg__(self) -> "Vector2D":
        return Vector2D(-self.x, -self.z)
