"""
Listener Simulation - Bounded random walk with manual override.

The listener drifts on its own (damped random acceleration) or follows
directional input. Two radial boundaries keep it near the emitters:

    soft boundary   Crossing it latches a RETURNING state. While latched,
                    a fixed impulse toward the center is added every tick.
                    The latch only releases once the listener is back within
                    `return_epsilon` of the center, not merely inside the
                    soft boundary. Only autonomous ticks evaluate the
                    latch; manual steering leaves it as it is.
    hard boundary   Position is projected back onto the circle and the
                    velocity is reflected and halved.

Forward vector convention: (sin(rotation), cos(rotation)). Rotation 0
faces +z; increasing rotation turns toward +x.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from spatial_playback.spatial.vector import Vector2D

GOLDEN_RATIO = (1 + math.sqrt(5)) / 2


class MotionState(Enum):
    """Autonomous motion phase."""

    FREE = "free"
    """Drifting; no restoring force."""

    RETURNING = "returning"
    """Soft boundary was crossed; pulled toward the center until near it."""


@dataclass(frozen=True)
class Boundaries:
    """Soft and hard radii around the center, 0 < soft < hard."""

    soft: float
    hard: float

    def __post_init__(self):
        if not 0 < self.soft < self.hard:
            raise ValueError(
                f"Boundaries must satisfy 0 < soft < hard, got soft={self.soft}, hard={self.hard}"
            )

    @classmethod
    def from_golden_ratio(cls, radius: float) -> "Boundaries":
        """Derive both radii from the emitter radius (soft r/phi^2, hard r/phi)."""
        return cls(soft=radius / GOLDEN_RATIO ** 2, hard=radius / GOLDEN_RATIO)


@dataclass(frozen=True)
class MotionParameters:
    """Per-tick motion constants."""

    acceleration: float = 0.005
    rotation_acceleration: float = 0.005
    damping: float = 0.97
    restoring_impulse: float = 0.002
    return_epsilon: float = 1.0
    move_step: float = 0.05
    turn_step: float = 0.03
    bounce: float = -0.5

    def __post_init__(self):
        if not 0.0 < self.damping <= 1.0:
            raise ValueError(f"damping must be in (0, 1], got {self.damping}")
        if self.return_epsilon <= 0:
            raise ValueError(f"return_epsilon must be > 0, got {self.return_epsilon}")


@dataclass(frozen=True)
class DirectionalInput:
    """Snapshot of held directional keys for one tick."""

    forward: bool = False
    backward: bool = False
    left: bool = False
    right: bool = False

    @property
    def active(self) -> bool:
        return self.forward or self.backward or self.left or self.right

    @classmethod
    def from_keys(cls, keys: Iterable[str]) -> "DirectionalInput":
        """Build from key names (arrows, WASD or up/down/left/right)."""
        held = {key.lower() for key in keys}
        return cls(
            forward=bool(held & {"up", "arrowup", "w"}),
            backward=bool(held & {"down", "arrowdown", "s"}),
            left=bool(held & {"left", "arrowleft", "a"}),
            right=bool(held & {"right", "arrowright", "d"}),
        )


NO_INPUT = DirectionalInput()


@dataclass(frozen=True)
class ListenerPose:
    """Read-only listener pose handed to the audio backend and visualizer."""

    position: Vector2D = field(default_factory=Vector2D)
    rotation: float = 0.0

    @property
    def forward(self) -> Vector2D:
        return Vector2D(math.sin(self.rotation), math.cos(self.rotation))

    @property
    def right(self) -> Vector2D:
        return Vector2D(math.cos(self.rotation), -math.sin(self.rotation))

    def to_local(self, point: Vector2D) -> Vector2D:
        """World point to listener-relative (x = right, z = forward)."""
        relative = point - self.position
        return Vector2D(relative.dot(self.right), relative.dot(self.forward))


@dataclass
class ListenerState:
    """Mutable listener state, advanced once per tick."""

    position: Vector2D = field(default_factory=Vector2D)
    velocity: Vector2D = field(default_factory=Vector2D)
    rotation: float = 0.0
    rotation_velocity: float = 0.0
    motion: MotionState = MotionState.FREE

    @property
    def hit_boundary(self) -> bool:
        return self.motion is MotionState.RETURNING

    @property
    def distance_from_center(self) -> float:
        return self.position.length()


class ListenerSimulation:
    """
    Advances the listener once per simulation tick.

    Pure computation: no I/O, no waiting. Given the same input and the same
    random draws a tick always produces the same state.

    Example:
        sim = ListenerSimulation(Boundaries(soft=2.0, hard=5.0), rng=random.Random(7))
        for _ in range(60):
            sim.tick()
        pose = sim.pose()
    """

    def __init__(
        self,
        boundaries: Boundaries,
        params: MotionParameters | None = None,
        rng: random.Random | None = None,
        state: ListenerState | None = None,
    ):
        self.boundaries = boundaries
        self.params = params or MotionParameters()
        if self.params.return_epsilon >= boundaries.soft:
            raise ValueError(
                f"return_epsilon ({self.params.return_epsilon}) must be inside the soft boundary ({boundaries.soft})"
            )
        self._rng = rng or random.Random()
        self.state = state or ListenerState()

    def tick(self, control: DirectionalInput | None = None) -> ListenerState:
        """Advance one step. Manual input, when active, replaces drift."""
        if control is not None and control.active:
            self._steer(control)
        else:
            self._drift()

        self._clamp()
        return self.state

    def pose(self) -> ListenerPose:
        return ListenerPose(position=self.state.position.copy(), rotation=self.state.rotation)

    def forward(self) -> Vector2D:
        return self.pose().forward

    def reset(self) -> None:
        self.state = ListenerState()

    def _drift(self) -> None:
        state = self.state
        p = self.params
        rng = self._rng

        state.velocity = state.velocity + Vector2D(
            (rng.random() - 0.5) * p.acceleration,
            (rng.random() - 0.5) * p.acceleration,
        )
        state.rotation_velocity += (rng.random() - 0.5) * p.rotation_acceleration

        # Damping precedes integration (semi-implicit Euler)
        state.velocity = state.velocity * p.damping
        state.rotation_velocity *= p.damping

        self._update_latch()
        if state.motion is MotionState.RETURNING:
            state.velocity = state.velocity - state.position.normalized() * p.restoring_impulse

        state.position = state.position + state.velocity
        state.rotation += state.rotation_velocity

    def _steer(self, control: DirectionalInput) -> None:
        state = self.state
        p = self.params

        if control.left:
            state.rotation -= p.turn_step
        if control.right:
            state.rotation += p.turn_step

        forward = Vector2D(math.sin(state.rotation), math.cos(state.rotation))
        if control.forward:
            state.position = state.position + forward * p.move_step
        if control.backward:
            state.position = state.position - forward * p.move_step

    def _clamp(self) -> None:
        state = self.state
        hard = self.boundaries.hard
        if state.position.length() > hard:
            angle = state.position.angle()
            radius = hard
            state.position = Vector2D(radius * math.cos(angle), radius * math.sin(angle))
            # Rounding can land a few ulps outside the circle
            while state.position.length() > hard:
                radius = math.nextafter(radius, 0.0)
                state.position = Vector2D(radius * math.cos(angle), radius * math.sin(angle))
            state.velocity = state.velocity * self.params.bounce

    def _update_latch(self) -> None:
        state = self.state
        distance = state.position.length()
        if distance > self.boundaries.soft:
            state.motion = MotionState.RETURNING
        elif state.motion is MotionState.RETURNING and distance <= self.params.return_epsilon:
            state.motion = MotionState.FREE
