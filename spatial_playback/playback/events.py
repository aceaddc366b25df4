"""
Media clock events.

A ClockWatch observes the reference track (normally emitter 0) for one
play cycle and produces at most one NEAR_END and one ENDED event for it.
Events are stamped with the cycle they belong to; the scheduler drops
events whose cycle is no longer current.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from spatial_playback.backends.base import DecodedTrack


class MediaEventKind(Enum):
    NEAR_END = "near_end"
    ENDED = "ended"


@dataclass(frozen=True)
class MediaEvent:
    kind: MediaEventKind
    cycle: int
    media_time: float = 0.0
    timestamp: float = field(default_factory=time.monotonic)


class ClockWatch:
    """Near-end and end triggers for one play cycle."""

    def __init__(self, track: "DecodedTrack", cycle: int, lead_time: float):
        self.track = track
        self.cycle = cycle
        self.lead_time = lead_time
        self.near_end_fired = False
        self.end_fired = False

    def poll(self) -> list[MediaEvent]:
        """Events that became due since the last poll."""
        events: list[MediaEvent] = []
        if self.end_fired:
            return events

        now = self.track.current_time
        if not self.near_end_fired and self.track.remaining <= self.lead_time:
            self.near_end_fired = True
            events.append(MediaEvent(MediaEventKind.NEAR_END, self.cycle, now))

        if self.track.ended:
            self.end_fired = True
            events.append(MediaEvent(MediaEventKind.ENDED, self.cycle, now))

        return events
