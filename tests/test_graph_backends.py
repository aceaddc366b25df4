"""
Tests for emitter chains, decoded tracks and media backends.
"""

import numpy as np
import pytest
import soundfile as sf

from spatial_playback.backends import MemoryBackend, load_backend
from spatial_playback.backends.base import DecodedTrack
from spatial_playback.backends.device import SoundDeviceBackend, decode_file, resample_linear
from spatial_playback.errors import DecodeError, GraphError, PlaybackError
from spatial_playback.playback.graph import AnalyserTap, EmitterChain
from spatial_playback.spatial import Attenuation, ListenerPose, SpatialStage, Vector2D


def make_chain(index=0, position=Vector2D(0.0, 1.0)):
    return EmitterChain(index, SpatialStage(position, Attenuation()))


class TestAnalyserTap:
    """Tests for the analyser ring buffer."""

    def test_empty(self):
        tap = AnalyserTap(8)
        assert not tap.has_signal
        assert tap.latest() is None

    def test_latest_in_time_order(self):
        tap = AnalyserTap(8)
        tap.write(np.arange(6, dtype=np.float32))
        tap.write(np.arange(6, 10, dtype=np.float32))
        np.testing.assert_array_equal(tap.latest(), np.arange(2, 10, dtype=np.float32))
        np.testing.assert_array_equal(tap.latest(3), [7, 8, 9])

    def test_partial_fill(self):
        tap = AnalyserTap(8)
        tap.write(np.ones(3, dtype=np.float32))
        assert len(tap.latest()) == 3

    def test_block_larger_than_capacity(self):
        tap = AnalyserTap(4)
        tap.write(np.arange(10, dtype=np.float32))
        np.testing.assert_array_equal(tap.latest(), [6, 7, 8, 9])

    def test_clear(self):
        tap = AnalyserTap(4)
        tap.write(np.ones(4, dtype=np.float32))
        tap.clear()
        assert tap.latest() is None

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            AnalyserTap(0)


class TestDecodedTrack:
    """Tests for DecodedTrack."""

    def make_track(self, seconds=1.0, rate=100):
        return DecodedTrack("t", np.ones(int(seconds * rate), dtype=np.float32), rate)

    def test_silent_until_played(self):
        track = self.make_track()
        assert not track.read(10).any()
        assert track.current_time == 0.0

    def test_clock_advances_while_playing(self):
        track = self.make_track()
        track.play()
        track.read(50)
        assert track.current_time == pytest.approx(0.5)
        assert track.remaining == pytest.approx(0.5)

    def test_end_is_padded_and_flagged(self):
        track = self.make_track()
        track.play()
        track.read(90)
        block = track.read(20)
        assert block[:10].all()
        assert not block[10:].any()
        assert track.ended
        assert not track.playing

    def test_play_after_end_is_noop(self):
        track = self.make_track()
        track.play()
        track.read(200)
        track.play()
        assert not track.playing

    def test_pause_after_release_is_safe(self):
        track = self.make_track()
        track.release()
        track.pause()
        assert track.released

    def test_play_after_release_raises(self):
        track = self.make_track()
        track.release()
        with pytest.raises(PlaybackError):
            track.play()


class TestEmitterChain:
    """Tests for chain wiring."""

    def test_connect_and_disconnect(self):
        backend = MemoryBackend()
        chain = make_chain()
        track = DecodedTrack("a", np.ones(100, dtype=np.float32), backend.sample_rate)

        chain.connect(track, backend)
        assert chain.connected
        assert backend.attached == (chain,)

        chain.disconnect()
        assert not chain.connected
        assert backend.attached == ()

    def test_second_source_is_refused(self):
        backend = MemoryBackend()
        chain = make_chain()
        chain.connect(DecodedTrack("a", np.ones(10), 8000), backend)
        with pytest.raises(GraphError):
            chain.connect(DecodedTrack("b", np.ones(10), 8000), backend)

    def test_disconnect_empty_is_noop(self):
        make_chain().disconnect()

    def test_disconnect_clears_tap(self):
        backend = MemoryBackend()
        chain = make_chain()
        track = DecodedTrack("a", np.ones(1000, dtype=np.float32), backend.sample_rate)
        chain.connect(track, backend)
        track.play()
        backend.render(64)
        assert chain.tap.has_signal

        chain.disconnect()
        assert not chain.tap.has_signal

    def test_detach_failure_still_drops_source(self):
        backend = MemoryBackend()
        chain = make_chain(index=3)
        chain.connect(DecodedTrack("a", np.ones(10), 8000), backend)
        backend.detach(chain)

        with pytest.raises(GraphError) as exc_info:
            chain.disconnect()
        assert exc_info.value.emitter_index == 3
        assert not chain.connected

    def test_pull_feeds_tap_and_stage(self):
        chain = make_chain(position=Vector2D(2.0, 0.0))
        backend = MemoryBackend()
        track = DecodedTrack("a", np.full(100, 0.5, dtype=np.float32), backend.sample_rate)
        chain.connect(track, backend)
        track.play()

        out = chain.pull(10, ListenerPose())
        assert out.shape == (10, 2)
        assert out[0, 1] > out[0, 0]
        np.testing.assert_allclose(chain.tap.latest(), np.full(10, 0.5))


class TestMemoryBackend:
    """Tests for MemoryBackend."""

    def test_load_registered_tone(self):
        backend = MemoryBackend(sample_rate=1000)
        backend.add_tone("x", duration=2.0)
        track = backend.load("x")
        assert track.duration == pytest.approx(2.0)
        assert backend.decode_calls == ["x"]

    def test_unknown_source(self):
        with pytest.raises(DecodeError) as exc_info:
            MemoryBackend().load("missing")
        assert exc_info.value.source == "missing"

    def test_injected_failure(self):
        backend = MemoryBackend()
        backend.add_silence("x", 1.0)
        backend.fail("x")
        with pytest.raises(DecodeError):
            backend.load("x")
        backend.heal("x")
        assert backend.load("x").duration == pytest.approx(1.0)

    def test_empty_source_is_rejected(self):
        backend = MemoryBackend()
        backend.add_source("empty", np.zeros(0))
        with pytest.raises(DecodeError):
            backend.load("empty")

    def test_reads_files_from_disk(self, tmp_path):
        path = tmp_path / "1.1 Rain.wav"
        sf.write(str(path), np.zeros((500, 2), dtype=np.float32), 1000)
        backend = MemoryBackend(sample_rate=1000)
        assert backend.load(str(path)).duration == pytest.approx(0.5)

    def test_render_mixes_and_clips(self):
        backend = MemoryBackend(sample_rate=1000)
        for i in range(3):
            chain = make_chain(index=i, position=Vector2D(0.0, 0.5))
            track = DecodedTrack(str(i), np.ones(100, dtype=np.float32), 1000)
            chain.connect(track, backend)
            track.play()
        mix = backend.render(10)
        assert mix.shape == (10, 2)
        assert mix.max() <= 1.0

    def test_advance_moves_attached_tracks(self):
        backend = MemoryBackend(sample_rate=1000, block_size=100)
        backend.add_tone("x", duration=5.0)
        track = backend.load("x")
        chain = make_chain()
        chain.connect(track, backend)
        track.play()

        out = backend.advance(1.25)
        assert out.shape == (1250, 2)
        assert track.current_time == pytest.approx(1.25)

    def test_set_listener(self):
        backend = MemoryBackend()
        pose = ListenerPose(position=Vector2D(1.0, 2.0))
        backend.set_listener(pose)
        assert backend.listener is pose

    def test_close_drops_chains(self):
        backend = MemoryBackend()
        make_chain().connect(DecodedTrack("a", np.ones(10), 8000), backend)
        backend.close()
        assert backend.attached == ()


class TestFileDecoding:
    """Tests for soundfile decoding and resampling."""

    def test_downmix_to_mono(self, tmp_path):
        path = tmp_path / "stereo.wav"
        data = np.stack([np.full(100, 0.5), np.full(100, -0.5)], axis=1).astype(np.float32)
        sf.write(str(path), data, 1000)
        mono = decode_file(path, 1000)
        assert mono.shape == (100,)
        np.testing.assert_allclose(mono, 0.0, atol=1e-4)

    def test_resamples(self, tmp_path):
        path = tmp_path / "tone.wav"
        sf.write(str(path), np.zeros(1000, dtype=np.float32), 1000)
        assert len(decode_file(path, 2000)) == 2000

    def test_resample_linear_identity(self):
        audio = np.arange(10, dtype=np.float32)
        assert resample_linear(audio, 100, 100) is audio

    def test_device_backend_decode_failure(self, tmp_path):
        backend = SoundDeviceBackend(sample_rate=1000)
        with pytest.raises(DecodeError):
            backend.load(str(tmp_path / "nope.wav"))
        assert not backend.running


class TestLoadBackend:
    """Tests for load_backend()."""

    def test_memory(self):
        backend = load_backend("memory", sample_rate=1000)
        assert isinstance(backend, MemoryBackend)
        assert backend.sample_rate == 1000

    def test_sounddevice(self):
        backend = load_backend("sounddevice", sample_rate=22050)
        assert backend.name == "sounddevice"

    def test_unknown(self):
        with pytest.raises(ValueError):
            load_backend("jack")
