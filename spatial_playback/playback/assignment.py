"""
Track Assignment - Which source each emitter plays for each track slot.

Assignments are validated up front: exactly emitters x tracks sources,
every (emitter, slot) exactly once. The engine never invents or drops a
mapping.

Filename convention (1-based, slot optionally zero-padded):

    1.1 Rain at the Station.flac     -> emitter 0, slot 0
    3.02 Building a World.wav        -> emitter 2, slot 1
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from spatial_playback.errors import AssignmentError
from spatial_playback.spatial.field import Emitter

logger = logging.getLogger(__name__)

FILENAME_PATTERN = re.compile(r"^(\d+)\.0?(\d+)")

AUDIO_SUFFIXES = frozenset({".wav", ".flac", ".ogg", ".mp3", ".aif", ".aiff"})


@dataclass(frozen=True)
class TrackAssignment:
    """Validated (emitter, slot) -> source mapping."""

    emitter_count: int
    track_count: int
    sources: Mapping[tuple[int, int], str] = field(default_factory=dict)

    def __post_init__(self):
        expected = self.emitter_count * self.track_count
        if len(self.sources) != expected:
            raise AssignmentError(
                f"Expected {expected} sources ({self.emitter_count} emitters x "
                f"{self.track_count} tracks), got {len(self.sources)}",
                expected=expected,
                received=len(self.sources),
            )
        for emitter, slot in self.sources:
            if not (0 <= emitter < self.emitter_count and 0 <= slot < self.track_count):
                raise AssignmentError(
                    f"Slot ({emitter}, {slot}) is outside {self.emitter_count}x{self.track_count}",
                    details={"emitter": emitter, "slot": slot},
                )

    def __len__(self) -> int:
        return len(self.sources)

    def source(self, emitter: int, slot: int) -> str:
        return self.sources[(emitter, slot)]

    def apply(self, emitters: list[Emitter]) -> None:
        """Write sources into the emitters' track slots."""
        if len(emitters) != self.emitter_count:
            raise AssignmentError(
                f"Assignment covers {self.emitter_count} emitters, field has {len(emitters)}",
                expected=self.emitter_count,
                received=len(emitters),
            )
        for emitter in emitters:
            if emitter.track_count != self.track_count:
                raise AssignmentError(
                    f"Emitter {emitter.index} has {emitter.track_count} slots, "
                    f"assignment has {self.track_count}",
                )
            for slot, track in enumerate(emitter.tracks):
                track.source = self.sources[(emitter.index, slot)]

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[tuple[int, int], str],
        emitter_count: int,
        track_count: int,
    ) -> "TrackAssignment":
        return cls(emitter_count, track_count, dict(mapping))

    @classmethod
    def from_paths(
        cls,
        paths: Iterable[str | Path],
        emitter_count: int,
        track_count: int,
        pattern: re.Pattern[str] = FILENAME_PATTERN,
    ) -> "TrackAssignment":
        """Associate files by name; names that don't match are ignored.

        Raises:
            AssignmentError: On duplicates, out-of-range indices or a
                wrong number of matching files
        """
        sources: dict[tuple[int, int], str] = {}
        for path in paths:
            path = Path(path)
            match = pattern.match(path.name)
            if not match:
                logger.debug("Ignoring %s (name does not match)", path.name)
                continue

            key = (int(match.group(1)) - 1, int(match.group(2)) - 1)
            if key in sources:
                raise AssignmentError(
                    f"{path.name} and {Path(sources[key]).name} both claim "
                    f"emitter {key[0] + 1}, track {key[1] + 1}",
                    details={"emitter": key[0], "slot": key[1]},
                )
            sources[key] = str(path)

        return cls(emitter_count, track_count, sources)

    @classmethod
    def from_directory(
        cls,
        directory: str | Path,
        emitter_count: int,
        track_count: int,
        pattern: re.Pattern[str] = FILENAME_PATTERN,
    ) -> "TrackAssignment":
        directory = Path(directory)
        if not directory.is_dir():
            raise AssignmentError(f"Not a directory: {directory}")
        paths = sorted(
            p for p in directory.iterdir()
            if p.is_file() and p.suffix.lower() in AUDIO_SUFFIXES
        )
        return cls.from_paths(paths, emitter_count, track_count, pattern)
