"""
Spatial Field - Static emitter geometry and distance attenuation.

Features:
    - N emitters evenly spaced on a circle (regular polygon)
    - Optional winding for star orderings
    - Shared distance attenuation (linear / inverse / exponential)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

from spatial_playback.spatial.vector import Vector2D


class DistanceModel(str, Enum):
    """Distance falloff model applied by the spatial stage."""
    LINEAR = "linear"
    INVERSE = "inverse"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class Attenuation:
    """
    Distance attenuation shared by all emitters.

    Follows the Web Audio panner semantics: distances below
    ref_distance play at full gain, the linear model reaches its floor at
    max_distance, inverse and exponential keep falling beyond it.
    """

    ref_distance: float = 1.0
    max_distance: float = 15.0
    rolloff_factor: float = 1.0
    distance_model: DistanceModel = DistanceModel.INVERSE

    def __post_init__(self):
        if self.ref_distance <= 0:
            raise ValueError(f"ref_distance must be > 0, got {self.ref_distance}")
        if self.max_distance <= self.ref_distance:
            raise ValueError(
                f"max_distance must be > ref_distance, got {self.max_distance}"
            )
        if self.rolloff_factor < 0:
            raise ValueError(f"rolloff_factor must be >= 0, got {self.rolloff_factor}")
        # Accept plain strings from config files
        object.__setattr__(self, "distance_model", DistanceModel(self.distance_model))

    def gain(self, distance: float) -> float:
        """Gain multiplier (0-1) for a listener at `distance` meters."""
        ref = self.ref_distance
        distance = max(distance, ref)

        if self.distance_model == DistanceModel.LINEAR:
            distance = min(distance, self.max_distance)
            rolloff = min(self.rolloff_factor, 1.0)
            return 1.0 - rolloff * (distance - ref) / (self.max_distance - ref)

        if self.distance_model == DistanceModel.EXPONENTIAL:
            return (distance / ref) ** (-self.rolloff_factor)

        return ref / (ref + self.rolloff_factor * (distance - ref))


def polygon_positions(
    n: int,
    radius: float,
    angular_offset: float = 0.0,
    winding: int = 1,
) -> list[Vector2D]:
    """
    Place n points evenly on a circle.

    Point i sits at angle `angular_offset + winding * 2*pi*i / n`.
    A winding of 2 with five points visits the vertices as a pentagram.

    Args:
        n: Number of points (>= 1)
        radius: Circle radius in meters
        angular_offset: Rotation of the first point in radians
        winding: Step between consecutive points, in vertices

    Returns:
        Ordered list of n positions
    """
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    if radius <= 0:
        raise ValueError(f"radius must be > 0, got {radius}")

    step = winding * 2 * math.pi / n
    return [
        Vector2D(
            radius * math.cos(angular_offset + step * i),
            radius * math.sin(angular_offset + step * i),
        )
        for i in range(n)
    ]


@dataclass
class TrackSlot:
    """One entry of an emitter's ordered track list."""

    title: str = ""
    source: str | None = None

    @property
    def assigned(self) -> bool:
        return self.source is not None


@dataclass
class Emitter:
    """
    A fixed point in space that plays an ordered sequence of tracks.

    Created once from static geometry; track sources are filled in later
    by a TrackAssignment.
    """

    index: int
    position: Vector2D
    name: str = ""
    tracks: list[TrackSlot] = field(default_factory=list)
    attenuation: Attenuation = field(default_factory=Attenuation)

    @property
    def track_count(self) -> int:
        return len(self.tracks)

    def source_for(self, track_index: int) -> str | None:
        return self.tracks[track_index].source


class SpatialField:
    """
    Fixed layout of N emitters around the center.

    Example:
        field = SpatialField(emitter_count=5, radius=5.0)
        for emitter in field.build_emitters(track_count=4):
            print(emitter.name, emitter.position)
    """

    def __init__(
        self,
        emitter_count: int = 5,
        radius: float = 5.0,
        angular_offset: float = 0.0,
        winding: int = 1,
        attenuation: Attenuation | None = None,
    ):
        self.emitter_count = emitter_count
        self.radius = radius
        self.angular_offset = angular_offset
        self.winding = winding
        self.attenuation = attenuation or Attenuation()
        self.positions = polygon_positions(emitter_count, radius, angular_offset, winding)

    def build_emitters(
        self,
        track_count: int,
        names: list[str] | None = None,
        track_titles: list[list[str]] | None = None,
    ) -> list[Emitter]:
        """Create one Emitter per position with empty track slots."""
        names = names or []
        track_titles = track_titles or []

        emitters = []
        for index, position in enumerate(self.positions):
            titles = track_titles[index] if index < len(track_titles) else []
            slots = [
                TrackSlot(title=titles[slot] if slot < len(titles) else f"Track {slot + 1}")
                for slot in range(track_count)
            ]
            emitters.append(Emitter(
                index=index,
                position=position.copy(),
                name=names[index] if index < len(names) else f"Emitter {index + 1}",
                tracks=slots,
                attenuation=self.attenuation,
            ))
        return emitters
