"""
Backend Base - Media decode and output contract.

BACKEND CONTRACT:
    Backends MUST:
        - Decode an opaque source reference to mono float32 PCM at the
          backend's sample_rate (decode())
        - Mix every attached EmitterChain into a stereo block (render())
        - Apply the latest listener pose pushed with set_listener()
        - Tolerate render() running on another thread than the scheduler

    Backends MUST NOT:
        - Connect or disconnect chains on their own (the scheduler owns wiring)
        - Interpret track order or emitter identity
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np

from spatial_playback.errors import DecodeError, GraphError, PlaybackError
from spatial_playback.spatial.listener import ListenerPose

if TYPE_CHECKING:
    from spatial_playback.playback.graph import EmitterChain

logger = logging.getLogger(__name__)


class DecodedTrack:
    """
    A decoded, playable media resource with its own media clock.

    The clock only moves while the track is playing and the backend
    pulls samples through read(). Reaching the last sample sets `ended`.
    """

    def __init__(self, source: str, samples: np.ndarray, sample_rate: int):
        self.source = source
        self.sample_rate = sample_rate
        self._samples = np.ascontiguousarray(samples, dtype=np.float32)
        self._length = len(self._samples)
        self._position = 0
        self._playing = False
        self._ended = False
        self._released = False
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"DecodedTrack({self.source!r}, {self.current_time:.2f}/{self.duration:.2f}s)"

    @property
    def duration(self) -> float:
        return self._length / self.sample_rate

    @property
    def current_time(self) -> float:
        return self._position / self.sample_rate

    @property
    def remaining(self) -> float:
        return max(0.0, self.duration - self.current_time)

    @property
    def playing(self) -> bool:
        return self._playing

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def released(self) -> bool:
        return self._released

    def play(self) -> None:
        with self._lock:
            if self._released:
                raise PlaybackError(f"Track {self.source!r} was released")
            if not self._ended:
                self._playing = True

    def pause(self) -> None:
        """Stop the clock. Pausing an ended or released track is a no-op."""
        with self._lock:
            self._playing = False

    def release(self) -> None:
        with self._lock:
            self._playing = False
            self._released = True
            self._samples = np.zeros(0, dtype=np.float32)

    def read(self, frames: int) -> np.ndarray:
        """Next `frames` samples; silence when paused, padded at the end."""
        out = np.zeros(frames, dtype=np.float32)
        with self._lock:
            if not self._playing or self._released:
                return out
            chunk = self._samples[self._position:self._position + frames]
            out[:len(chunk)] = chunk
            self._position += len(chunk)
            if self._position >= self._length:
                self._ended = True
                self._playing = False
        return out


class MediaBackend(ABC):
    """Base class for media backends with mixing and chain bookkeeping."""

    def __init__(self, sample_rate: int = 44100, block_size: int = 1024):
        self.sample_rate = int(sample_rate)
        self.block_size = int(block_size)
        self._chains: list[EmitterChain] = []
        self._pose = ListenerPose()
        self._lock = threading.Lock()

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier."""
        ...

    @abstractmethod
    def decode(self, source: str) -> np.ndarray:
        """Decode a source to mono float32 PCM at self.sample_rate."""
        ...

    def load(self, source: str) -> DecodedTrack:
        """Decode a source into a DecodedTrack.

        Raises:
            DecodeError: If the source cannot be decoded or is empty
        """
        try:
            samples = self.decode(source)
        except DecodeError:
            raise
        except Exception as e:
            raise DecodeError(source, f"Cannot decode {source!r}: {e}") from e

        if samples is None or len(samples) == 0:
            raise DecodeError(source, f"{source!r} contains no audio")
        return DecodedTrack(source, samples, self.sample_rate)

    @property
    def attached(self) -> tuple["EmitterChain", ...]:
        with self._lock:
            return tuple(self._chains)

    @property
    def listener(self) -> ListenerPose:
        return self._pose

    def attach(self, chain: "EmitterChain") -> None:
        with self._lock:
            if chain in self._chains:
                raise GraphError(chain.emitter_index, "chain is already attached to the output")
            self._chains.append(chain)

    def detach(self, chain: "EmitterChain") -> None:
        with self._lock:
            if chain not in self._chains:
                raise GraphError(chain.emitter_index, "chain is not attached to the output")
            self._chains.remove(chain)

    def set_listener(self, pose: ListenerPose) -> None:
        self._pose = pose

    def render(self, frames: int) -> np.ndarray:
        """Mix all attached chains into a (frames, 2) float32 block."""
        with self._lock:
            chains = list(self._chains)
        pose = self._pose

        mix = np.zeros((frames, 2), dtype=np.float32)
        for chain in chains:
            mix += chain.pull(frames, pose)
        np.clip(mix, -1.0, 1.0, out=mix)
        return mix

    def start(self) -> None:
        """Open the output. Offline backends have nothing to open."""

    def stop(self) -> None:
        """Close the output, keeping decoded tracks and wiring."""

    def close(self) -> None:
        self.stop()
        with self._lock:
            if self._chains:
                logger.debug("Closing %s backend with %d chains attached", self.name, len(self._chains))
            self._chains.clear()
