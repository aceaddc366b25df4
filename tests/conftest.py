"""
Shared fixtures for spatial playback tests.

The memory backend keeps the media clock under test control: tracks only
advance when backend.advance() renders audio, and scheduler events only
fire when pump() runs.
"""

import random
from concurrent.futures import Executor, Future

import pytest

from spatial_playback.backends.memory import MemoryBackend
from spatial_playback.monitoring.logging import LogLevel, StructuredLogger
from spatial_playback.playback.assignment import TrackAssignment
from spatial_playback.playback.scheduler import PlaybackScheduler, SchedulerConfig
from spatial_playback.spatial.field import SpatialField

EMITTERS = 5
TRACKS = 4
TRACK_SECONDS = 30.0
SAMPLE_RATE = 1000


def source_name(emitter: int, slot: int) -> str:
    """Source id in the "<emitter>.<slot>" naming scheme (1-based)."""
    return f"{emitter + 1}.{slot + 1}"


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        future.set_running_or_notify_cancel()
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)
        return future


class DeferredExecutor(Executor):
    """Holds submitted work until run_pending() is called.

    With start_running=True the futures are marked running on submit, so
    cancel() fails the way it does for a load already in progress.
    """

    def __init__(self, start_running: bool = False):
        self.start_running = start_running
        self.pending = []

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        if self.start_running:
            future.set_running_or_notify_cancel()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_pending(self) -> int:
        pending, self.pending = self.pending, []
        ran = 0
        for future, fn, args, kwargs in pending:
            if not self.start_running and not future.set_running_or_notify_cancel():
                continue
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                future.set_exception(e)
            else:
                future.set_result(result)
            ran += 1
        return ran


class FakeClock:
    """Monotonic clock moved by hand."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def backend():
    """Memory backend with a 30 s tone for every (emitter, slot)."""
    backend = MemoryBackend(sample_rate=SAMPLE_RATE, block_size=100)
    for emitter in range(EMITTERS):
        for slot in range(TRACKS):
            backend.add_tone(
                source_name(emitter, slot),
                duration=TRACK_SECONDS,
                frequency=110.0 * (slot + 1),
            )
    return backend


@pytest.fixture
def assignment():
    return TrackAssignment.from_mapping(
        {(e, s): source_name(e, s) for e in range(EMITTERS) for s in range(TRACKS)},
        emitter_count=EMITTERS,
        track_count=TRACKS,
    )


@pytest.fixture
def emitters(assignment):
    emitters = SpatialField(emitter_count=EMITTERS, radius=5.0).build_emitters(TRACKS)
    assignment.apply(emitters)
    return emitters


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def quiet_log():
    """Event log that drops everything below CRITICAL."""
    return StructuredLogger(level=LogLevel.CRITICAL)


@pytest.fixture
def make_scheduler(emitters, backend, clock, quiet_log):
    """Factory for schedulers wired to the shared backend and clock."""
    created = []

    def factory(executor=None, **config):
        scheduler = PlaybackScheduler(
            emitters,
            backend,
            config=SchedulerConfig(**config),
            executor=executor or InlineExecutor(),
            clock=clock,
            event_log=quiet_log,
        )
        created.append(scheduler)
        return scheduler

    yield factory

    for scheduler in created:
        scheduler.destroy()


@pytest.fixture
def rng():
    return random.Random(1234)
