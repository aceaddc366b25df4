"""
Playback Session - Per-emitter playback state.

Every emitter owns one session: the current track, the prepared next
track and the chain that carries the current one to the output. All
sessions of a scheduler move through the lifecycle in lockstep.

    IDLE -> PLAYING <-> READY -> TRANSITIONING -> PLAYING ...
                                    any state -> DESTROYED
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from spatial_playback.errors import InvalidTransitionError
from spatial_playback.playback.graph import EmitterChain
from spatial_playback.spatial.field import Emitter

if TYPE_CHECKING:
    from spatial_playback.backends.base import DecodedTrack

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Session lifecycle states."""
    IDLE = "idle"
    PLAYING = "playing"
    READY = "ready"                  # next track decoded, waiting for the swap
    TRANSITIONING = "transitioning"
    DESTROYED = "destroyed"


# Valid state transitions (from -> to)
VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.IDLE: {SessionState.PLAYING, SessionState.DESTROYED},
    SessionState.PLAYING: {SessionState.READY, SessionState.DESTROYED},
    SessionState.READY: {SessionState.TRANSITIONING, SessionState.DESTROYED},
    SessionState.TRANSITIONING: {SessionState.PLAYING, SessionState.DESTROYED},
    SessionState.DESTROYED: set(),
}


def is_valid_transition(from_state: SessionState, to_state: SessionState) -> bool:
    """Check if a state transition is valid."""
    return to_state in VALID_TRANSITIONS.get(from_state, set())


@dataclass
class PlaybackSession:
    """One emitter's playback state.

    `current` is what the chain carries; `next` is only set while READY.
    They never point at the same track.
    """
    emitter: Emitter
    chain: EmitterChain
    current: DecodedTrack | None = None
    next: DecodedTrack | None = None
    track_index: int = 0
    state: SessionState = SessionState.IDLE

    @property
    def index(self) -> int:
        return self.emitter.index

    @property
    def next_prepared(self) -> bool:
        return self.state is SessionState.READY

    @property
    def alive(self) -> bool:
        return self.state is not SessionState.DESTROYED

    def transition(self, to_state: SessionState) -> None:
        """Move to `to_state`.

        Raises:
            InvalidTransitionError: If the move is not in VALID_TRANSITIONS
        """
        if not is_valid_transition(self.state, to_state):
            raise InvalidTransitionError(
                self.state.value,
                to_state.value,
                details={"emitter": self.index},
            )
        logger.debug("Emitter %d: %s -> %s", self.index, self.state.value, to_state.value)
        self.state = to_state
