"""
Memory Backend - Offline backend for tests and dry runs.

Sources are registered in memory (arrays or generated tones) or read from
files on disk. The media clock only moves when advance() renders audio.
Decode failures can be injected per source.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from spatial_playback.backends.base import MediaBackend
from spatial_playback.backends.device import decode_file
from spatial_playback.errors import DecodeError

logger = logging.getLogger(__name__)


class MemoryBackend(MediaBackend):
    """In-memory media backend.

    Example:
        backend = MemoryBackend(sample_rate=1000)
        backend.add_tone("1.1", duration=20.0)
        track = backend.load("1.1")
        track.play()
        backend.advance(8.0)   # media clock now at 8 s for attached chains
    """

    def __init__(self, sample_rate: int = 8000, block_size: int = 256):
        super().__init__(sample_rate=sample_rate, block_size=block_size)
        self._sources: dict[str, np.ndarray] = {}
        self.fail_sources: set[str] = set()
        self.decode_calls: list[str] = []
        self.started = False

    @property
    def name(self) -> str:
        return "memory"

    def add_source(self, name: str, samples: np.ndarray) -> None:
        self._sources[name] = np.asarray(samples, dtype=np.float32)

    def add_tone(
        self,
        name: str,
        duration: float,
        frequency: float = 440.0,
        amplitude: float = 0.5,
    ) -> np.ndarray:
        """Register a sine tone and return its samples."""
        t = np.arange(int(duration * self.sample_rate), dtype=np.float32) / self.sample_rate
        samples = (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)
        self.add_source(name, samples)
        return samples

    def add_silence(self, name: str, duration: float) -> None:
        self.add_source(name, np.zeros(int(duration * self.sample_rate), dtype=np.float32))

    def fail(self, *names: str) -> None:
        """Make later decodes of these sources fail."""
        self.fail_sources.update(names)

    def heal(self, *names: str) -> None:
        self.fail_sources.difference_update(names)

    def decode(self, source: str) -> np.ndarray:
        self.decode_calls.append(source)
        if source in self.fail_sources:
            raise DecodeError(source, f"Injected decode failure for {source!r}")
        if source in self._sources:
            return self._sources[source].copy()
        if Path(source).is_file():
            return decode_file(source, self.sample_rate)
        raise DecodeError(source, f"Unknown source {source!r}")

    def advance(self, seconds: float) -> np.ndarray:
        """Render `seconds` of output block by block and return the mix."""
        total = int(round(seconds * self.sample_rate))
        blocks = []
        while total > 0:
            frames = min(self.block_size, total)
            blocks.append(self.render(frames))
            total -= frames
        if not blocks:
            return np.zeros((0, 2), dtype=np.float32)
        return np.concatenate(blocks)

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False
