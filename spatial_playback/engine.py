"""
Spatial Playback Engine - The public surface of the installation.

Composes the emitter field, listener simulation, playback scheduler,
loudness meter and media backend. Two clocks drive it:

    simulation clock   tick() / run(); moves the listener, feeds the pose
                       to the backend, pumps scheduler events
    media clock        the backend's playback position; decides when
                       tracks change

Lifecycle commands (assign, start, pause, resume, skip, destroy) return
a CommandResult and never raise. Queries (pose, loudness, snapshot) are
pure reads.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from concurrent.futures import Executor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

from spatial_playback.analysis.loudness import LoudnessMeter
from spatial_playback.backends import MediaBackend, load_backend
from spatial_playback.config import EngineConfig
from spatial_playback.errors import AssignmentError, InvalidTransitionError, PlaybackError
from spatial_playback.monitoring.logging import StructuredLogger, get_logger
from spatial_playback.playback.assignment import TrackAssignment
from spatial_playback.playback.scheduler import PlaybackScheduler
from spatial_playback.playback.session import SessionState
from spatial_playback.spatial.listener import (
    DirectionalInput,
    ListenerPose,
    ListenerSimulation,
    MotionState,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a lifecycle command."""
    ok: bool
    message: str = ""
    error: Exception | None = None

    def __bool__(self) -> bool:
        return self.ok


@dataclass(frozen=True)
class EngineSnapshot:
    """Everything a visualizer needs for one frame."""
    pose: ListenerPose
    motion: MotionState
    loudness: tuple[float, ...]
    track_index: int
    state: SessionState
    running: bool
    emitters: tuple[tuple[float, float], ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": [self.pose.position.x, self.pose.position.z],
            "rotation": self.pose.rotation,
            "motion": self.motion.value,
            "loudness": list(self.loudness),
            "track": self.track_index + 1,
            "state": self.state.value,
            "running": self.running,
            "emitters": [list(p) for p in self.emitters],
        }


class SpatialPlaybackEngine:
    """
    Listener-centric multi-emitter playback.

    Example:
        engine = SpatialPlaybackEngine(EngineConfig())
        engine.assign("~/Music/installation")
        if engine.start():
            engine.run(stop_event=stop)
        engine.destroy()
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        backend: MediaBackend | None = None,
        rng: random.Random | None = None,
        executor: Executor | None = None,
        clock: Callable[[], float] = time.monotonic,
        event_log: StructuredLogger | None = None,
    ):
        self.config = config or EngineConfig()
        self.backend = backend or load_backend(
            self.config.backend,
            sample_rate=self.config.sample_rate,
            block_size=self.config.block_size,
        )
        self.emitters = self.config.build_emitters()
        self.listener = ListenerSimulation(
            self.config.boundaries,
            self.config.motion,
            rng=rng,
        )
        self.meter = LoudnessMeter(self.config.loudness)
        self.scheduler: PlaybackScheduler | None = None
        self.assignment: TrackAssignment | None = None

        self._executor = executor
        self._clock = clock
        self._event_log = event_log or get_logger()
        self._running = False

    def __enter__(self) -> "SpatialPlaybackEngine":
        return self

    def __exit__(self, *exc) -> None:
        self.destroy()

    @property
    def running(self) -> bool:
        """True while audio plays and the listener moves."""
        return self._running

    @property
    def state(self) -> SessionState:
        if self.scheduler is None:
            return SessionState.IDLE
        return self.scheduler.state

    @property
    def track_index(self) -> int:
        if self.scheduler is None:
            return 0
        return self.scheduler.track_index

    # =========================================================================
    # Commands
    # =========================================================================

    def assign(
        self,
        assignment: TrackAssignment | Mapping[tuple[int, int], str] | str | Path,
    ) -> CommandResult:
        """Set which source each emitter plays per track slot.

        Accepts a TrackAssignment, an (emitter, slot) -> source mapping or a
        directory of files named "<emitter>.<slot> ...".
        """
        def action() -> str:
            if self.scheduler is not None and self.scheduler.state is not SessionState.IDLE:
                raise InvalidTransitionError(
                    self.scheduler.state.value,
                    SessionState.IDLE.value,
                    "Cannot reassign tracks while a session exists; destroy first",
                )
            count, slots = self.config.emitter_count, self.config.track_count
            if isinstance(assignment, TrackAssignment):
                resolved = assignment
            elif isinstance(assignment, (str, Path)):
                resolved = TrackAssignment.from_directory(assignment, count, slots)
            else:
                resolved = TrackAssignment.from_mapping(assignment, count, slots)

            resolved.apply(self.emitters)
            self.assignment = resolved
            return f"Assigned {len(resolved)} sources"

        return self._command("assign", action)

    def start(self, track_index: int = 0) -> CommandResult:
        """Load `track_index` on every emitter and start playback."""
        def action() -> str:
            if self._running:
                return "Already playing"
            if self.assignment is None:
                raise AssignmentError("No tracks assigned")

            if self.scheduler is None:
                self.scheduler = PlaybackScheduler(
                    self.emitters,
                    self.backend,
                    config=self.config.scheduler,
                    executor=self._executor,
                    clock=self._clock,
                    event_log=self._event_log,
                )
            if self.scheduler.state is SessionState.IDLE:
                self.scheduler.initialize(track_index)

            self.backend.start()
            self.scheduler.play()
            self._running = True
            return f"Playing track {self.scheduler.track_index + 1}"

        return self._command("start", action)

    def pause(self) -> CommandResult:
        def action() -> str:
            self._require_scheduler().pause()
            self._running = False
            return "Paused"

        return self._command("pause", action)

    def resume(self) -> CommandResult:
        def action() -> str:
            self._require_scheduler().resume()
            self._running = True
            return "Resumed"

        return self._command("resume", action)

    def toggle(self) -> CommandResult:
        """Play/pause button: start, pause or resume as appropriate."""
        if self._running:
            return self.pause()
        if self.scheduler is not None and self.scheduler.state is not SessionState.IDLE:
            return self.resume()
        return self.start()

    def skip(self) -> CommandResult:
        """Move every emitter to the next track slot now."""
        def action() -> str:
            scheduler = self._require_scheduler()
            scheduler.advance()
            return f"Skipped to track {scheduler.track_index + 1}"

        return self._command("skip", action)

    def destroy(self) -> CommandResult:
        """Stop output and release every loaded track. Idempotent."""
        def action() -> str:
            self._running = False
            if self.scheduler is not None:
                self.scheduler.destroy()
                self.scheduler = None
            self.backend.stop()
            return "Destroyed"

        return self._command("destroy", action)

    def _command(self, name: str, action: Callable[[], str]) -> CommandResult:
        try:
            message = action()
        except PlaybackError as e:
            logger.warning("%s failed: %s", name, e)
            self._event_log.engine_command(name, ok=False, error=e)
            return CommandResult(ok=False, message=e.message, error=e)
        except Exception as e:
            logger.exception("%s failed unexpectedly", name)
            self._event_log.engine_command(name, ok=False, error=e)
            return CommandResult(ok=False, message=str(e), error=e)

        self._event_log.engine_command(name, ok=True)
        return CommandResult(ok=True, message=message)

    def _require_scheduler(self) -> PlaybackScheduler:
        if self.scheduler is None:
            raise InvalidTransitionError(
                SessionState.IDLE.value,
                SessionState.PLAYING.value,
                "Playback has not been started",
            )
        return self.scheduler

    # =========================================================================
    # Simulation clock
    # =========================================================================

    def tick(self, control: DirectionalInput | None = None) -> None:
        """Advance the simulation by one step."""
        if self._running:
            self.listener.tick(control)
        self.backend.set_listener(self.listener.pose())
        if self.scheduler is not None:
            self.scheduler.pump()

    def run(
        self,
        tick_rate: float | None = None,
        input_source: Callable[[], DirectionalInput | None] | None = None,
        stop_event: threading.Event | None = None,
        max_ticks: int | None = None,
        on_tick: Callable[[EngineSnapshot], None] | None = None,
    ) -> int:
        """Tick at a fixed rate until stopped.

        Args:
            tick_rate: Ticks per second (default: config.tick_rate)
            input_source: Called once per tick for the held directions
            stop_event: Set from another thread to stop the loop
            max_ticks: Stop after this many ticks
            on_tick: Receives a snapshot after every tick

        Returns:
            Number of ticks run
        """
        interval = 1.0 / (tick_rate or self.config.tick_rate)
        stop_event = stop_event or threading.Event()
        ticks = 0
        deadline = time.monotonic()

        while not stop_event.is_set():
            if max_ticks is not None and ticks >= max_ticks:
                break

            control = input_source() if input_source else None
            self.tick(control)
            ticks += 1
            if on_tick:
                on_tick(self.snapshot())

            deadline += interval
            delay = deadline - time.monotonic()
            if delay > 0:
                stop_event.wait(delay)
            else:
                # Running behind; don't try to catch up with a burst of ticks
                deadline = time.monotonic()

        return ticks

    # =========================================================================
    # Queries
    # =========================================================================

    def pose(self) -> ListenerPose:
        return self.listener.pose()

    def loudness(self, emitter_index: int) -> float:
        """Current intensity (0-1) of one emitter; 0.0 when nothing plays."""
        if not 0 <= emitter_index < len(self.emitters):
            raise IndexError(f"No emitter {emitter_index} (have {len(self.emitters)})")
        if self.scheduler is None:
            return 0.0
        return self.meter.measure(self.scheduler.tap(emitter_index))

    def snapshot(self) -> EngineSnapshot:
        return EngineSnapshot(
            pose=self.pose(),
            motion=self.listener.state.motion,
            loudness=tuple(self.loudness(i) for i in range(len(self.emitters))),
            track_index=self.track_index,
            state=self.state,
            running=self._running,
            emitters=tuple((e.position.x, e.position.z) for e in self.emitters),
        )
