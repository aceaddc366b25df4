"""
Tests for the listener simulation: drift, steering, boundaries and the
return latch.
"""

import math
import random

import pytest

from spatial_playback.spatial.listener import (
    GOLDEN_RATIO,
    NO_INPUT,
    Boundaries,
    DirectionalInput,
    ListenerSimulation,
    ListenerState,
    MotionParameters,
    MotionState,
)
from spatial_playback.spatial.vector import Vector2D


@pytest.fixture
def boundaries():
    return Boundaries(soft=2.0, hard=5.0)


class TestBoundaries:
    """Tests for Boundaries."""

    def test_requires_soft_below_hard(self):
        with pytest.raises(ValueError):
            Boundaries(soft=3.0, hard=3.0)
        with pytest.raises(ValueError):
            Boundaries(soft=0.0, hard=1.0)

    def test_golden_ratio_policy(self):
        b = Boundaries.from_golden_ratio(5.0)
        assert b.hard == pytest.approx(5.0 / GOLDEN_RATIO)
        assert b.soft == pytest.approx(5.0 / GOLDEN_RATIO ** 2)
        assert b.hard / b.soft == pytest.approx(GOLDEN_RATIO)

    def test_return_epsilon_must_be_inside_soft(self):
        with pytest.raises(ValueError):
            ListenerSimulation(Boundaries(soft=1.0, hard=2.0), MotionParameters(return_epsilon=1.0))


class TestDirectionalInput:
    """Tests for DirectionalInput."""

    def test_no_input_is_inactive(self):
        assert not NO_INPUT.active

    def test_from_keys(self):
        control = DirectionalInput.from_keys(["ArrowUp", "a"])
        assert control.forward
        assert control.left
        assert not control.backward
        assert not control.right
        assert control.active

    def test_unknown_keys_ignored(self):
        assert not DirectionalInput.from_keys(["space", "q"]).active


class TestDrift:
    """Tests for autonomous motion."""

    def test_starts_at_center(self, boundaries):
        sim = ListenerSimulation(boundaries, rng=random.Random(0))
        assert sim.state.position == Vector2D()
        assert sim.state.motion is MotionState.FREE

    def test_same_seed_same_path(self, boundaries):
        """Given the same random draws a tick always produces the same state."""
        a = ListenerSimulation(boundaries, rng=random.Random(42))
        b = ListenerSimulation(boundaries, rng=random.Random(42))
        for _ in range(200):
            a.tick()
            b.tick()
        assert a.state == b.state

    def test_drift_moves_the_listener(self, boundaries):
        sim = ListenerSimulation(boundaries, rng=random.Random(3))
        for _ in range(100):
            sim.tick()
        assert sim.state.position.length() > 0

    def test_velocity_is_damped(self, boundaries):
        params = MotionParameters(acceleration=0.0, rotation_acceleration=0.0)
        state = ListenerState(velocity=Vector2D(0.1, 0.0), rotation_velocity=0.1)
        sim = ListenerSimulation(boundaries, params, rng=random.Random(0), state=state)
        sim.tick()
        assert sim.state.velocity.x == pytest.approx(0.097)
        assert sim.state.rotation_velocity == pytest.approx(0.097)
        assert sim.state.position.x == pytest.approx(0.097)


class TestHardBoundary:
    """Tests for the hard clamp."""

    def test_clamps_and_bounces(self, boundaries):
        params = MotionParameters(acceleration=0.0, rotation_acceleration=0.0)
        state = ListenerState(position=Vector2D(4.95, 0.0), velocity=Vector2D(0.2, 0.0))
        sim = ListenerSimulation(boundaries, params, rng=random.Random(0), state=state)
        sim.tick()

        assert sim.state.position.length() == pytest.approx(5.0)
        assert sim.state.velocity.x < 0

    def test_never_escapes_over_long_runs(self, boundaries):
        """1000 ticks with 5 emitters' worth of field: always within hard."""
        sim = ListenerSimulation(boundaries, rng=random.Random(2024))
        for _ in range(1000):
            sim.tick()
            assert sim.state.position.length() <= boundaries.hard

    def test_manual_input_cannot_escape(self, boundaries):
        sim = ListenerSimulation(boundaries, rng=random.Random(0))
        forward = DirectionalInput(forward=True)
        for _ in range(500):
            sim.tick(forward)
            assert sim.state.position.length() <= boundaries.hard
        assert sim.state.position.length() == pytest.approx(boundaries.hard)

    def test_aggressive_motion_stays_inside(self, boundaries):
        params = MotionParameters(acceleration=2.0, damping=1.0)
        sim = ListenerSimulation(boundaries, params, rng=random.Random(9))
        for _ in range(1000):
            sim.tick()
            assert sim.state.position.length() <= boundaries.hard

    def test_projection_lands_inside_the_circle(self, boundaries):
        """Clamped positions never round to just outside the hard radius."""
        params = MotionParameters(acceleration=0.0, rotation_acceleration=0.0)
        for i in range(2000):
            angle = 2 * math.pi * i / 2000
            direction = Vector2D(math.cos(angle), math.sin(angle))
            state = ListenerState(position=direction * 4.99, velocity=direction * 0.1)
            sim = ListenerSimulation(boundaries, params, rng=random.Random(0), state=state)
            sim.tick()
            assert sim.state.position.length() <= boundaries.hard
            assert sim.state.position.length() == pytest.approx(boundaries.hard)


class TestReturnLatch:
    """Tests for the soft-boundary hysteresis."""

    def make_sim(self, boundaries, position, motion=MotionState.FREE):
        params = MotionParameters(acceleration=0.0, rotation_acceleration=0.0)
        state = ListenerState(position=position, motion=motion)
        return ListenerSimulation(boundaries, params, rng=random.Random(0), state=state)

    def test_crossing_soft_latches(self, boundaries):
        sim = self.make_sim(boundaries, Vector2D(2.5, 0.0))
        sim.tick()
        assert sim.state.motion is MotionState.RETURNING
        assert sim.state.hit_boundary

    def test_pull_starts_on_the_crossing_tick(self, boundaries):
        sim = self.make_sim(boundaries, Vector2D(2.5, 0.0))
        sim.tick()
        assert sim.state.velocity.x == pytest.approx(-0.002)

    def test_manual_ticks_leave_latch_alone(self, boundaries):
        sim = self.make_sim(boundaries, Vector2D(2.5, 0.0))
        sim.tick(DirectionalInput(forward=True))
        assert sim.state.motion is MotionState.FREE

        sim = self.make_sim(boundaries, Vector2D(0.5, 0.0), MotionState.RETURNING)
        sim.tick(DirectionalInput(backward=True))
        assert sim.state.motion is MotionState.RETURNING

    def test_latch_holds_inside_soft(self, boundaries):
        """Back inside the soft boundary is not enough to release."""
        sim = self.make_sim(boundaries, Vector2D(1.5, 0.0), MotionState.RETURNING)
        sim.tick()
        assert sim.state.motion is MotionState.RETURNING

    def test_latch_releases_near_center(self, boundaries):
        sim = self.make_sim(boundaries, Vector2D(0.5, 0.0), MotionState.RETURNING)
        sim.tick()
        assert sim.state.motion is MotionState.FREE

    def test_returning_pulls_toward_center(self, boundaries):
        sim = self.make_sim(boundaries, Vector2D(1.5, 0.0), MotionState.RETURNING)
        sim.tick()
        assert sim.state.velocity.x == pytest.approx(-0.002)
        assert sim.state.position.x < 1.5

    def test_free_inside_soft_has_no_pull(self, boundaries):
        sim = self.make_sim(boundaries, Vector2D(1.5, 0.0))
        sim.tick()
        assert sim.state.velocity.x == 0.0
        assert sim.state.motion is MotionState.FREE

    def test_latched_listener_eventually_returns(self, boundaries):
        """Restoring impulse brings the listener back and frees it."""
        sim = self.make_sim(boundaries, Vector2D(2.5, 0.0))
        seen_free = False
        for _ in range(2000):
            sim.tick()
            if sim.state.motion is MotionState.FREE:
                seen_free = True
                break
        assert seen_free
        assert sim.state.position.length() <= 1.0


class TestSteering:
    """Tests for manual input."""

    def test_forward_moves_along_facing(self, boundaries):
        sim = ListenerSimulation(boundaries, rng=random.Random(0))
        sim.tick(DirectionalInput(forward=True))
        assert sim.state.position.x == pytest.approx(0.0)
        assert sim.state.position.z == pytest.approx(0.05)

    def test_backward(self, boundaries):
        sim = ListenerSimulation(boundaries, rng=random.Random(0))
        sim.tick(DirectionalInput(backward=True))
        assert sim.state.position.z == pytest.approx(-0.05)

    def test_turning(self, boundaries):
        sim = ListenerSimulation(boundaries, rng=random.Random(0))
        sim.tick(DirectionalInput(right=True))
        assert sim.state.rotation == pytest.approx(0.03)
        sim.tick(DirectionalInput(left=True))
        sim.tick(DirectionalInput(left=True))
        assert sim.state.rotation == pytest.approx(-0.03)

    def test_input_replaces_drift(self, boundaries):
        """While keys are held the random walk consumes no draws."""
        rng = random.Random(5)
        sim = ListenerSimulation(boundaries, rng=rng)
        before = rng.getstate()
        sim.tick(DirectionalInput(left=True))
        assert rng.getstate() == before

    def test_turn_then_forward(self, boundaries):
        sim = ListenerSimulation(boundaries, rng=random.Random(0))
        sim.state.rotation = math.pi / 2
        sim.tick(DirectionalInput(forward=True))
        assert sim.state.position.x == pytest.approx(0.05)
        assert sim.forward().x == pytest.approx(1.0)

    def test_pose_is_a_copy(self, boundaries):
        sim = ListenerSimulation(boundaries, rng=random.Random(0))
        pose = sim.pose()
        sim.tick(DirectionalInput(forward=True))
        assert pose.position.z == 0.0

    def test_reset(self, boundaries):
        sim = ListenerSimulation(boundaries, rng=random.Random(0))
        sim.tick(DirectionalInput(forward=True))
        sim.reset()
        assert sim.state.position == Vector2D()
