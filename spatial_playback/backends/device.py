"""
SoundDevice Backend - Real-time output through PortAudio.

Decodes files with soundfile (down-mixed to mono, resampled to the output
rate) and renders the emitter mix from a sounddevice callback. The callback
thread is the media clock: tracks advance only as blocks are rendered.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import soundfile as sf

from spatial_playback.backends.base import MediaBackend

logger = logging.getLogger(__name__)


def resample_linear(audio: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    """Linear interpolation resampling."""
    if from_rate == to_rate or len(audio) == 0:
        return audio
    new_length = int(len(audio) * to_rate / from_rate)
    if new_length == 0:
        return np.zeros(0, dtype=np.float32)
    indices = np.linspace(0, len(audio) - 1, new_length)
    return np.interp(indices, np.arange(len(audio)), audio).astype(np.float32)


def decode_file(source: str | Path, sample_rate: int) -> np.ndarray:
    """Read an audio file as mono float32 at `sample_rate`."""
    path = Path(source)
    data, file_rate = sf.read(str(path), dtype="float32", always_2d=True)
    mono = data.mean(axis=1).astype(np.float32)
    if file_rate != sample_rate:
        logger.debug("Resampling %s from %d Hz to %d Hz", path.name, file_rate, sample_rate)
        mono = resample_linear(mono, file_rate, sample_rate)
    return mono


class SoundDeviceBackend(MediaBackend):
    """Backend playing through the default (or given) audio device.

    Example:
        backend = SoundDeviceBackend(sample_rate=48000)
        backend.start()
        ...
        backend.close()
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        block_size: int = 1024,
        device: int | str | None = None,
        latency: str | float = "high",
    ):
        super().__init__(sample_rate=sample_rate, block_size=block_size)
        self.device = device
        self.latency = latency
        self._stream = None

    @property
    def name(self) -> str:
        return "sounddevice"

    @property
    def running(self) -> bool:
        return self._stream is not None

    def decode(self, source: str) -> np.ndarray:
        return decode_file(source, self.sample_rate)

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.debug("Output stream status: %s", status)
        outdata[:] = self.render(frames)

    def start(self) -> None:
        if self._stream is not None:
            return

        import sounddevice as sd

        self._stream = sd.OutputStream(
            samplerate=self.sample_rate,
            channels=2,
            dtype="float32",
            blocksize=self.block_size,
            latency=self.latency,
            device=self.device,
            callback=self._callback,
        )
        self._stream.start()
        logger.info("Output stream started (%d Hz, block %d)", self.sample_rate, self.block_size)

    def stop(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        stream.stop()
        stream.close()
        logger.info("Output stream stopped")
