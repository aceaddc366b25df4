"""
Playback Scheduler - Gapless track transitions across all emitters.

All emitters play the same track slot at the same time. Emitter 0's track
is the reference clock: when it gets within `lead_time` of its end the next
slot is decoded in the background, and when it ends every emitter swaps to
the prepared tracks together. If emitter 0 is unwired or fails to start,
the first emitter that is playing takes over as the reference.

Threading:
    - Loads run on an executor and only touch the backend's decoder
    - Everything else (wiring, state, event handling) runs on the thread
      that calls pump() and the commands, one tick at a time

Failure policy:
    - Errors inside event handlers are logged; state is left as it was
    - Errors from commands (initialize, advance) propagate to the caller
"""

from __future__ import annotations

import logging
import queue
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, Sequence

from spatial_playback.backends.base import DecodedTrack, MediaBackend
from spatial_playback.errors import AssignmentError, GraphError, InvalidTransitionError, PlaybackError
from spatial_playback.monitoring.logging import StructuredLogger
from spatial_playback.playback.events import ClockWatch, MediaEvent, MediaEventKind
from spatial_playback.playback.graph import AnalyserTap, EmitterChain
from spatial_playback.playback.session import PlaybackSession, SessionState
from spatial_playback.spatial.field import Emitter
from spatial_playback.spatial.panner import SpatialStage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerConfig:
    """Transition timing.

    Attributes:
        lead_time: Seconds before the reference track ends at which the
            next slot starts loading.
        end_wait_timeout: How long the end handler waits for an in-flight
            load before loading synchronously.
        end_retry_interval: Seconds between end re-attempts after a failed
            fallback load.
        max_workers: Loader threads for the default executor.
        tap_size: Samples kept by each emitter's analyser tap.
    """
    lead_time: float = 12.0
    end_wait_timeout: float = 5.0
    end_retry_interval: float = 1.0
    max_workers: int = 1
    tap_size: int = 2048

    def __post_init__(self):
        if self.lead_time < 0:
            raise ValueError(f"lead_time must be >= 0, got {self.lead_time}")
        if self.end_wait_timeout < 0:
            raise ValueError(f"end_wait_timeout must be >= 0, got {self.end_wait_timeout}")
        if self.end_retry_interval <= 0:
            raise ValueError(f"end_retry_interval must be > 0, got {self.end_retry_interval}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.tap_size < 1:
            raise ValueError(f"tap_size must be >= 1, got {self.tap_size}")


@dataclass
class PendingLoad:
    """An asynchronous load of one track slot for every emitter."""
    track_index: int
    future: Future


def _release_late_load(future: Future) -> None:
    """Done-callback for abandoned loads: free whatever was decoded."""
    if future.cancelled() or future.exception() is not None:
        return
    tracks = future.result()
    for track in tracks:
        track.release()
    logger.debug("Released late load of %d tracks", len(tracks))


class PlaybackScheduler:
    """
    Drives every emitter's session through the track sequence.

    Example:
        scheduler = PlaybackScheduler(emitters, backend)
        scheduler.initialize(0)
        scheduler.play()
        while running:
            scheduler.pump()      # once per simulation tick
        scheduler.destroy()
    """

    def __init__(
        self,
        emitters: Sequence[Emitter],
        backend: MediaBackend,
        config: SchedulerConfig | None = None,
        executor: Executor | None = None,
        clock: Callable[[], float] = time.monotonic,
        event_log: StructuredLogger | None = None,
    ):
        if not emitters:
            raise ValueError("At least one emitter is required")
        track_counts = {e.track_count for e in emitters}
        if len(track_counts) != 1 or 0 in track_counts:
            raise ValueError(f"Emitters must share a non-zero track count, got {sorted(track_counts)}")

        self.backend = backend
        self.config = config or SchedulerConfig()
        self.track_count = track_counts.pop()
        self.sessions = [
            PlaybackSession(
                emitter=emitter,
                chain=EmitterChain(
                    emitter.index,
                    SpatialStage(emitter.position, emitter.attenuation),
                    AnalyserTap(self.config.tap_size),
                ),
            )
            for emitter in emitters
        ]

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="track-loader",
        )
        self._clock = clock
        self._event_log = event_log

        self._events: queue.Queue[MediaEvent] = queue.Queue()
        self._watch: ClockWatch | None = None
        self._cycle = 0
        self._pending: PendingLoad | None = None
        self._audible = False
        self._end_pending = False
        self._retry_at = 0.0
        self._swapping = False

    # -- queries

    @property
    def state(self) -> SessionState:
        return self.sessions[0].state

    @property
    def track_index(self) -> int:
        return self.sessions[0].track_index

    @property
    def next_index(self) -> int:
        return (self.track_index + 1) % self.track_count

    @property
    def audible(self) -> bool:
        return self._audible

    @property
    def next_prepared(self) -> bool:
        return self.state is SessionState.READY

    @property
    def loading(self) -> bool:
        return self._pending is not None

    @property
    def end_pending(self) -> bool:
        """True while an observed end is waiting for a successful swap."""
        return self._end_pending

    @property
    def cycle(self) -> int:
        return self._cycle

    @property
    def reference(self) -> DecodedTrack | None:
        """The track whose clock gates transitions.

        Emitter 0's track, unless that emitter is unwired or failed to
        start; then the first emitter that is actually playing.
        """
        if self._watch is not None:
            return self._watch.track
        return self.sessions[0].current

    def tap(self, emitter_index: int) -> AnalyserTap | None:
        """The emitter's analyser tap, or None while nothing is wired."""
        session = self.sessions[emitter_index]
        if not session.chain.connected:
            return None
        return session.chain.tap

    # -- commands

    def initialize(self, track_index: int = 0) -> None:
        """Load and wire every emitter's track for `track_index`.

        Raises:
            InvalidTransitionError: If already initialized or destroyed
            AssignmentError: If an emitter has no source for the slot
            DecodeError: If any source fails to load (nothing stays loaded)
        """
        if self.state is not SessionState.IDLE:
            raise InvalidTransitionError(
                self.state.value,
                SessionState.PLAYING.value,
                "Scheduler is already initialized",
            )
        track_index %= self.track_count

        tracks = self._load_tracks(track_index)
        for session, track in zip(self.sessions, tracks):
            session.current = track
            session.track_index = track_index
            self._wire(session)
            session.transition(SessionState.PLAYING)

        logger.info("Initialized %d emitters on track %d", len(self.sessions), track_index + 1)

    def play(self) -> None:
        """Start (or restart) every current track and arm the clock watch."""
        self._ensure_started()
        live: list[PlaybackSession] = []
        for session in self.sessions:
            if session.current is None:
                continue
            try:
                session.current.play()
            except PlaybackError as e:
                logger.warning("Emitter %d failed to play: %s", session.index, e)
                continue
            if session.chain.connected:
                live.append(session)
        self._audible = True

        if self._watch is not None and any(s.current is self._watch.track for s in live):
            return
        if not live:
            logger.warning("No emitter is playing; track %d has no clock", self.track_index + 1)
            self._watch = None
            return

        reference = live[0].current
        if live[0].index != self.sessions[0].index:
            logger.warning("Emitter %d is silent; following emitter %d's clock",
                           self.sessions[0].index, live[0].index)
        self._cycle += 1
        self._watch = ClockWatch(reference, self._cycle, self.config.lead_time)
        if self._event_log:
            self._event_log.track_started(self.track_index, len(self.sessions), cycle=self._cycle)

    def pause(self) -> None:
        """Stop output on every emitter. The prepared next track is kept."""
        self._ensure_started()
        for session in self.sessions:
            if session.current is not None:
                session.current.pause()
        self._audible = False

    def resume(self) -> None:
        self.play()

    def prepare_next(self) -> bool:
        """Start loading the next slot in the background.

        Returns:
            True if a load was submitted; False if one is already in flight,
            the next track is already prepared or the scheduler isn't playing.
        """
        if self.state is not SessionState.PLAYING or self._pending is not None:
            return False

        track_index = self.next_index
        future = self._executor.submit(self._load_tracks, track_index)
        self._pending = PendingLoad(track_index, future)
        logger.debug("Pre-loading track %d", track_index + 1)
        if self._event_log:
            self._event_log.preload_started(track_index)
        return True

    def advance(self) -> None:
        """Skip to the next slot now.

        Raises:
            InvalidTransitionError: If not started, destroyed or mid-swap
            DecodeError: If the next slot cannot be loaded
        """
        if self._swapping or self.state is SessionState.TRANSITIONING:
            raise InvalidTransitionError(
                self.state.value,
                SessionState.TRANSITIONING.value,
                "A transition is already in progress",
            )
        self._ensure_started()

        if self.state is not SessionState.READY:
            self._prepare_now()
        self._swap(reason="skip")

    def pump(self) -> None:
        """Process media clock events. Call once per simulation tick."""
        if self.state is SessionState.DESTROYED:
            return

        self._harvest()
        self._poll_clock()
        self._drain()

        if self._end_pending and self._clock() >= self._retry_at:
            logger.info("Retrying transition to track %d", self.next_index + 1)
            try:
                self._handle_end()
            except Exception:
                logger.exception("End retry failed")

    def destroy(self) -> None:
        """Release everything. Safe to call repeatedly and mid-load."""
        if self.state is SessionState.DESTROYED:
            return

        self._audible = False
        self._watch = None
        self._end_pending = False

        pending, self._pending = self._pending, None
        if pending is not None and not pending.future.cancel():
            pending.future.add_done_callback(_release_late_load)

        for session in self.sessions:
            self._unwire(session)
            for track in (session.current, session.next):
                if track is not None:
                    track.release()
            session.current = None
            session.next = None
            session.transition(SessionState.DESTROYED)

        while True:
            try:
                self._events.get_nowait()
            except queue.Empty:
                break

        if self._owns_executor:
            self._executor.shutdown(wait=False)
        logger.info("Scheduler destroyed")

    # -- event handling

    def _harvest(self) -> None:
        pending = self._pending
        if pending is None or not pending.future.done():
            return
        self._pending = None

        try:
            tracks = pending.future.result()
        except Exception as e:
            logger.warning("Pre-load of track %d failed, retrying at track end: %s", pending.track_index + 1, e)
            if self._event_log:
                self._event_log.preload_failed(pending.track_index, e)
            return

        if self.state is not SessionState.PLAYING or pending.track_index != self.next_index:
            logger.debug("Discarding stale load of track %d", pending.track_index + 1)
            for track in tracks:
                track.release()
            return
        self._store_next(tracks)

    def _poll_clock(self) -> None:
        if self._watch is None:
            return
        for event in self._watch.poll():
            self._events.put(event)

    def _drain(self) -> None:
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return

            if event.cycle != self._cycle:
                logger.debug("Dropping %s from stale cycle %d", event.kind.value, event.cycle)
                continue
            try:
                self._dispatch(event)
            except Exception:
                logger.exception("Error handling %s event", event.kind.value)

    def _dispatch(self, event: MediaEvent) -> None:
        if event.kind is MediaEventKind.NEAR_END:
            logger.debug("Near end of track %d at %.2fs", self.track_index + 1, event.media_time)
            self.prepare_next()
        elif event.kind is MediaEventKind.ENDED:
            logger.debug("Track %d ended", self.track_index + 1)
            self._end_pending = True
            self._handle_end()

    def _handle_end(self) -> None:
        if self.state is not SessionState.READY:
            try:
                self._prepare_now()
            except PlaybackError as e:
                self._retry_at = self._clock() + self.config.end_retry_interval
                logger.warning(
                    "Track %d could not be loaded at track end, retrying in %.1fs: %s",
                    self.next_index + 1, self.config.end_retry_interval, e,
                )
                return
        self._swap(reason="ended")

    # -- loading

    def _load_tracks(self, track_index: int) -> list[DecodedTrack]:
        """Decode slot `track_index` for every emitter, all or nothing."""
        tracks: list[DecodedTrack] = []
        try:
            for session in self.sessions:
                source = session.emitter.source_for(track_index)
                if source is None:
                    raise AssignmentError(
                        f"Emitter {session.index} has no source for track {track_index + 1}",
                        details={"emitter": session.index, "slot": track_index},
                    )
                tracks.append(self.backend.load(source))
        except Exception:
            for track in tracks:
                track.release()
            raise
        return tracks

    def _prepare_now(self) -> None:
        """Make the next slot ready, blocking if necessary.

        Waits up to end_wait_timeout for an in-flight load; falls back to a
        synchronous load when there is none or it failed.
        """
        pending, self._pending = self._pending, None
        track_index = self.next_index

        if pending is not None:
            try:
                tracks = pending.future.result(timeout=self.config.end_wait_timeout)
            except FutureTimeout:
                logger.warning(
                    "Pre-load of track %d still running after %.1fs, loading synchronously",
                    pending.track_index + 1, self.config.end_wait_timeout,
                )
                pending.future.add_done_callback(_release_late_load)
            except Exception as e:
                logger.warning("Pre-load of track %d failed, loading synchronously: %s", pending.track_index + 1, e)
                if self._event_log:
                    self._event_log.preload_failed(pending.track_index, e)
            else:
                self._store_next(tracks)
                return

        self._store_next(self._load_tracks(track_index))

    def _store_next(self, tracks: list[DecodedTrack]) -> None:
        for session, track in zip(self.sessions, tracks):
            session.next = track
            session.transition(SessionState.READY)
        logger.debug("Track %d ready", self.next_index + 1)

    # -- wiring

    def _wire(self, session: PlaybackSession) -> None:
        try:
            session.chain.connect(session.current, self.backend)
        except GraphError as e:
            logger.warning("%s; emitter silent until the next transition", e)

    def _unwire(self, session: PlaybackSession) -> None:
        try:
            session.chain.disconnect()
        except GraphError as e:
            logger.warning("%s", e)

    def _swap(self, reason: str) -> None:
        """Replace every current track with the prepared next one."""
        from_index = self.track_index
        to_index = self.next_index
        was_audible = self._audible

        self._swapping = True
        try:
            for session in self.sessions:
                session.transition(SessionState.TRANSITIONING)

            for session in self.sessions:
                self._unwire(session)
                old = session.current
                if old is not None:
                    if not old.ended:
                        old.pause()
                    old.release()

                session.current, session.next = session.next, None
                session.track_index = to_index
                if session.current is not None:
                    self._wire(session)
                session.transition(SessionState.PLAYING)

            self._watch = None
            self._end_pending = False
        finally:
            self._swapping = False

        logger.info("Track %d -> %d (%s)", from_index + 1, to_index + 1, reason)
        if self._event_log:
            self._event_log.transition_complete(from_index, to_index, reason=reason)

        if was_audible:
            self.play()

    def _ensure_started(self) -> None:
        if self.state is SessionState.IDLE:
            raise InvalidTransitionError(
                SessionState.IDLE.value,
                SessionState.PLAYING.value,
                "Scheduler has not been initialized",
            )
        if self.state is SessionState.DESTROYED:
            raise InvalidTransitionError(
                SessionState.DESTROYED.value,
                SessionState.PLAYING.value,
                "Scheduler was destroyed",
            )
