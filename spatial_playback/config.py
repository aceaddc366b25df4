"""
Engine configuration.

Every tunable constant of the installation lives here: emitter geometry,
listener boundaries and motion, distance attenuation, transition timing
and loudness analysis. Configurations round-trip through plain dicts and
YAML files.

Example config.yaml:

    emitter_count: 5
    track_count: 4
    radius: 5.0
    boundaries:
      soft: 2.0
      hard: 5.0
    scheduler:
      lead_time: 12.0
    attenuation:
      distance_model: inverse
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from spatial_playback.analysis.loudness import LoudnessConfig
from spatial_playback.playback.scheduler import SchedulerConfig
from spatial_playback.spatial.field import Attenuation, Emitter, SpatialField
from spatial_playback.spatial.listener import Boundaries, MotionParameters

DEFAULT_EMITTER_NAMES = [
    "Fissures in Green (2011)",
    "Pathsplitter (Yellow-Red) (2012)",
    "Landscape in Black and Grey (2013)",
    "White Light Under the Door (2014)",
    "Hellgrün (Small New World) (2015)",
]

DEFAULT_TRACK_TITLES = [
    ["Rain at the Station", "Still Life with Cicadas, Waterfall and Radu", "Silent Prayer", "Langhalsen"],
    ["Canon a2", "Canon a3", "Canon a4", "Canon a5"],
    ["The Chords of the Grosse Mühl", "Six-Part Panorama", "Building a World", "The Disappearance of a World"],
    ["Electricity", "Heat", "Light", "Gas"],
    ["Malachite", "Bird Warnings", "The River is a Green-Brown God", "Emerald Twilight"],
]

# Nested sections and the dataclass each one is built from
_SECTIONS = {
    "boundaries": Boundaries,
    "motion": MotionParameters,
    "attenuation": Attenuation,
    "scheduler": SchedulerConfig,
    "loudness": LoudnessConfig,
}


@dataclass
class EngineConfig:
    """Complete engine configuration.

    Attributes:
        emitter_count: Number of emitters on the circle.
        track_count: Track slots per emitter.
        radius: Emitter circle radius in meters.
        angular_offset: Angle of the first emitter in radians.
        winding: Vertex step between consecutive emitters (2 = pentagram).
        boundaries: Listener soft/hard radii. Defaults to the golden-ratio
            split of `radius` (soft r/phi^2, hard r/phi).
        motion: Listener motion constants.
        attenuation: Distance falloff shared by all emitters.
        scheduler: Transition timing.
        loudness: Loudness analysis window.
        tick_rate: Simulation ticks per second.
        sample_rate: Output sample rate.
        block_size: Frames per rendered block.
        backend: Media backend name ("sounddevice" or "memory").
        emitter_names: Display name per emitter.
        track_titles: Display titles per emitter and slot.
    """
    emitter_count: int = 5
    track_count: int = 4
    radius: float = 5.0
    angular_offset: float = -math.pi / 2
    winding: int = 2
    boundaries: Boundaries | None = None
    motion: MotionParameters = field(default_factory=MotionParameters)
    attenuation: Attenuation = field(default_factory=Attenuation)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    loudness: LoudnessConfig = field(default_factory=LoudnessConfig)
    tick_rate: float = 60.0
    sample_rate: int = 44100
    block_size: int = 1024
    backend: str = "sounddevice"
    emitter_names: list[str] = field(default_factory=lambda: list(DEFAULT_EMITTER_NAMES))
    track_titles: list[list[str]] = field(default_factory=lambda: [list(t) for t in DEFAULT_TRACK_TITLES])

    def __post_init__(self):
        if self.emitter_count < 1:
            raise ValueError(f"emitter_count must be >= 1, got {self.emitter_count}")
        if self.track_count < 1:
            raise ValueError(f"track_count must be >= 1, got {self.track_count}")
        if self.radius <= 0:
            raise ValueError(f"radius must be > 0, got {self.radius}")
        if self.tick_rate <= 0:
            raise ValueError(f"tick_rate must be > 0, got {self.tick_rate}")
        if self.sample_rate <= 0 or self.block_size <= 0:
            raise ValueError(
                f"sample_rate and block_size must be > 0, got {self.sample_rate}, {self.block_size}"
            )

        if self.boundaries is None:
            self.boundaries = Boundaries.from_golden_ratio(self.radius)
        if self.motion.return_epsilon >= self.boundaries.soft:
            raise ValueError(
                f"motion.return_epsilon ({self.motion.return_epsilon}) must be inside "
                f"the soft boundary ({self.boundaries.soft})"
            )

    @property
    def tick_interval(self) -> float:
        return 1.0 / self.tick_rate

    def build_field(self) -> SpatialField:
        return SpatialField(
            emitter_count=self.emitter_count,
            radius=self.radius,
            angular_offset=self.angular_offset,
            winding=self.winding,
            attenuation=self.attenuation,
        )

    def build_emitters(self) -> list[Emitter]:
        """Emitters with titled but unassigned track slots."""
        return self.build_field().build_emitters(
            self.track_count,
            names=self.emitter_names,
            track_titles=self.track_titles,
        )

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain Python types."""
        data = asdict(self)
        data["attenuation"]["distance_model"] = self.attenuation.distance_model.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineConfig:
        """Build from a dict; missing keys keep their defaults.

        Raises:
            ValueError: On unknown keys or invalid values
        """
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        for name, section_cls in _SECTIONS.items():
            value = data.get(name)
            if isinstance(value, dict):
                section_known = {f.name for f in fields(section_cls)}
                bad = set(value) - section_known
                if bad:
                    raise ValueError(f"Unknown keys in {name}: {', '.join(sorted(bad))}")
                data[name] = section_cls(**value)

        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
        return cls.from_dict(data)

    def to_yaml(self, path: str | Path) -> None:
        with open(Path(path), "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False, allow_unicode=True)
