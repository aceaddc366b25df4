"""
Emitter Chain - The audio graph owned by one playback session.

    decoded track -> analyser tap -> spatial stage -> backend output

Wiring rules:
    - A chain carries at most one source at a time
    - connect() on a wired chain is a GraphError
    - disconnect() always drops the source reference, even when the
      backend fails to detach, so nothing is leaked
    - Only the scheduler connects or disconnects chains
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

import numpy as np

from spatial_playback.errors import GraphError
from spatial_playback.spatial.listener import ListenerPose
from spatial_playback.spatial.panner import SpatialStage

if TYPE_CHECKING:
    from spatial_playback.backends.base import DecodedTrack, MediaBackend

logger = logging.getLogger(__name__)


class AnalyserTap:
    """Ring buffer holding the most recent samples that passed the chain."""

    def __init__(self, capacity: int = 2048):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._buffer = np.zeros(capacity, dtype=np.float32)
        self._write_pos = 0
        self._filled = 0
        self._lock = threading.Lock()

    @property
    def has_signal(self) -> bool:
        return self._filled > 0

    def write(self, block: np.ndarray) -> None:
        block = np.asarray(block, dtype=np.float32)
        if len(block) == 0:
            return
        with self._lock:
            if len(block) >= self.capacity:
                self._buffer[:] = block[-self.capacity:]
                self._write_pos = 0
                self._filled = self.capacity
                return

            end = self._write_pos + len(block)
            if end <= self.capacity:
                self._buffer[self._write_pos:end] = block
            else:
                split = self.capacity - self._write_pos
                self._buffer[self._write_pos:] = block[:split]
                self._buffer[:end - self.capacity] = block[split:]
            self._write_pos = end % self.capacity
            self._filled = min(self.capacity, self._filled + len(block))

    def latest(self, n: int | None = None) -> np.ndarray | None:
        """Copy of the newest n samples in time order, or None if empty."""
        with self._lock:
            if self._filled == 0:
                return None
            n = min(n or self.capacity, self._filled)
            start = (self._write_pos - n) % self.capacity
            if start + n <= self.capacity:
                return self._buffer[start:start + n].copy()
            return np.concatenate([
                self._buffer[start:],
                self._buffer[:start + n - self.capacity],
            ])

    def clear(self) -> None:
        with self._lock:
            self._buffer.fill(0.0)
            self._write_pos = 0
            self._filled = 0


class EmitterChain:
    """
    One emitter's signal path.

    Example:
        chain = EmitterChain(0, SpatialStage(emitter.position, emitter.attenuation))
        chain.connect(track, backend)
        ...
        chain.disconnect()
    """

    def __init__(
        self,
        emitter_index: int,
        stage: SpatialStage,
        tap: AnalyserTap | None = None,
    ):
        self.emitter_index = emitter_index
        self.stage = stage
        self.tap = tap or AnalyserTap()
        self.source: DecodedTrack | None = None
        self.output: MediaBackend | None = None
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self.source is not None

    def connect(self, source: "DecodedTrack", output: "MediaBackend") -> None:
        """Wire a source into this chain and the chain into the output."""
        if self.source is not None:
            raise GraphError(
                self.emitter_index,
                f"chain already carries {self.source.source!r}; disconnect first",
            )
        try:
            output.attach(self)
        except GraphError:
            raise
        except Exception as e:
            raise GraphError(self.emitter_index, f"attach failed: {e}") from e

        with self._lock:
            self.source = source
            self.output = output
        logger.debug("Emitter %d connected to %s", self.emitter_index, source.source)

    def disconnect(self) -> None:
        """Unwire the current source. No-op on an empty chain."""
        with self._lock:
            source, output = self.source, self.output
            self.source = None
            self.output = None
        self.tap.clear()

        if source is None or output is None:
            return
        try:
            output.detach(self)
        except GraphError:
            raise
        except Exception as e:
            raise GraphError(self.emitter_index, f"detach failed: {e}") from e
        logger.debug("Emitter %d disconnected from %s", self.emitter_index, source.source)

    def pull(self, frames: int, pose: ListenerPose) -> np.ndarray:
        """Render one stereo block through the tap and spatial stage."""
        with self._lock:
            source = self.source
        if source is None:
            return np.zeros((frames, 2), dtype=np.float32)

        samples = source.read(frames)
        self.tap.write(samples)
        return self.stage.process(samples, pose)
