"""
Media backends - decode sources and render the emitter mix.

Backends:
    memory       - Offline, in-memory sources (tests, dry runs)
    sounddevice  - soundfile decoding + PortAudio output
"""

from __future__ import annotations

import logging

from spatial_playback.backends.base import DecodedTrack, MediaBackend
from spatial_playback.backends.memory import MemoryBackend

logger = logging.getLogger(__name__)


def load_backend(backend: str = "sounddevice", **kwargs) -> MediaBackend:
    """Create a media backend by name.

    Args:
        backend: "sounddevice" or "memory"
        **kwargs: Backend options (sample_rate, block_size, device, ...)

    Raises:
        ValueError: If the backend name is unknown
    """
    if backend == "memory":
        return MemoryBackend(**kwargs)

    if backend == "sounddevice":
        from spatial_playback.backends.device import SoundDeviceBackend
        return SoundDeviceBackend(**kwargs)

    raise ValueError(f"Unknown backend: {backend!r} (expected 'sounddevice' or 'memory')")


__all__ = [
    "DecodedTrack",
    "MediaBackend",
    "MemoryBackend",
    "load_backend",
]
