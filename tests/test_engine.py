"""
Tests for the message-driven engine and its worker thread.
"""

import logging
import queue
from types import SimpleNamespace

import pytest

from gravsim import engine as engine_module
from gravsim.config import PhysicsProfile
from gravsim.engine import PhysicsEngine, PhysicsWorker
from gravsim.errors import ConfigurationOutOfRangeError
from gravsim.messages import (
    Init,
    ReplaceParticles,
    SetDampening,
    SetDomainSize,
    SetFriction,
    SetPaused,
    SetSpeed,
    StepResult,
)
from gravsim.state import ParticleSnapshot, SimulationState

# Generous: the first tick includes JIT compilation
RESULT_TIMEOUT = 30.0


def two_particles():
    return (
        ParticleSnapshot(x=100.0, y=100.0, vx=1.0, mass=10.0, radius=2.0),
        ParticleSnapshot(x=400.0, y=100.0, vx=-1.0, mass=10.0, radius=2.0),
    )


class TestEngineMessages:

    def test_init_accepts_snapshots_and_dicts(self):
        engine = PhysicsEngine()
        accepted = engine.init(
            [two_particles()[0], {'x': 10.0, 'y': 20.0, 'mass': 3.0, 'size': 4.0}],
            1000.0,
        )
        assert accepted == 2
        assert engine.n_particles == 2
        assert engine.state.domain_size == 1000.0
        assert engine.snapshot()[1].radius == 4.0

    def test_init_skips_invalid_particles(self, caplog):
        engine = PhysicsEngine()
        with caplog.at_level(logging.WARNING, logger="gravsim"):
            accepted = engine.init(
                [
                    {'x': 1.0, 'y': 1.0, 'mass': -5.0, 'radius': 1.0},
                    {'x': float('nan'), 'y': 1.0, 'mass': 1.0, 'radius': 1.0},
                    {'x': 1.0, 'y': 1.0, 'radius': 1.0},
                    "not a particle",
                    {'x': 1.0, 'y': 1.0, 'mass': 1.0, 'radius': 1.0},
                ],
                500.0,
            )
        assert accepted == 1
        assert engine.n_particles == 1
        assert sum("Rejected particle" in r.message for r in caplog.records) == 4

    def test_init_resets_time(self):
        engine = PhysicsEngine()
        engine.init(two_particles(), 1000.0)
        engine.tick()
        engine.tick()
        engine.init(two_particles(), 1000.0)
        assert engine.state.time == 0.0
        assert engine.state.timestep_count == 0

    def test_init_rejects_bad_domain_size(self):
        engine = PhysicsEngine()
        engine.init(two_particles(), 1000.0)
        with pytest.raises(ConfigurationOutOfRangeError):
            engine.init(two_particles()[:1], -1.0)
        assert engine.n_particles == 2
        assert engine.state.domain_size == 1000.0

    def test_replace_particles_keeps_time_and_tunables(self):
        engine = PhysicsEngine()
        engine.init(two_particles(), 1000.0)
        engine.set_friction(0.3)
        engine.tick()
        t = engine.state.time

        engine.handle(ReplaceParticles((ParticleSnapshot(x=5.0, y=5.0),)))

        assert engine.n_particles == 1
        assert engine.state.time == t
        assert engine.state.friction == 0.3

    @pytest.mark.parametrize("message, attribute, value", [
        (SetSpeed(2.5), 'speed_multiplier', 2.5),
        (SetFriction(0.2), 'friction', 0.2),
        (SetDampening(0.7), 'dampening', 0.7),
        (SetDomainSize(1234.0), 'domain_size', 1234.0),
        (SetPaused(True), 'paused', True),
    ])
    def test_setters(self, message, attribute, value):
        engine = PhysicsEngine()
        engine.handle(message)
        assert getattr(engine.state, attribute) == value

    @pytest.mark.parametrize("message, attribute", [
        (SetSpeed(0.0), 'speed_multiplier'),
        (SetSpeed(-1.0), 'speed_multiplier'),
        (SetFriction(-0.1), 'friction'),
        (SetDampening(1.5), 'dampening'),
        (SetDampening(-0.5), 'dampening'),
        (SetDomainSize(0.0), 'domain_size'),
        (SetFriction(float('nan')), 'friction'),
    ])
    def test_out_of_range_setters_leave_state_unchanged(self, message, attribute):
        engine = PhysicsEngine()
        before = getattr(engine.state, attribute)
        with pytest.raises(ConfigurationOutOfRangeError):
            engine.handle(message)
        assert getattr(engine.state, attribute) == before

    def test_unknown_message(self):
        engine = PhysicsEngine()
        with pytest.raises(TypeError):
            engine.handle(object())


class TestEngineTick:

    def test_tick_returns_step_result(self):
        engine = PhysicsEngine()
        engine.init(two_particles(), 1000.0)
        result = engine.tick()
        assert isinstance(result, StepResult)
        assert result.timestep == 1
        assert len(result.particles) == 2
        assert all(isinstance(p, ParticleSnapshot) for p in result.particles)

    def test_paused_tick_returns_none(self):
        engine = PhysicsEngine()
        engine.init(two_particles(), 1000.0)
        engine.set_paused(True)
        before = engine.snapshot()
        assert engine.tick() is None
        assert engine.snapshot() == before
        assert engine.paused

        engine.set_paused(False)
        assert engine.tick() is not None

    def test_results_are_copies(self):
        """Arena changes after a tick never show up in an earlier result."""
        engine = PhysicsEngine()
        engine.init(two_particles(), 1000.0)
        first = engine.tick()
        x_before = first.particles[0].x

        engine.state.positions[0, 0] = 999.0
        engine.tick()

        assert first.particles[0].x == x_before

    def test_snapshot_accumulator_is_reset(self):
        engine = PhysicsEngine()
        engine.init(two_particles(), 1000.0)
        result = engine.tick()
        assert all(p.ax == 0.0 and p.ay == 0.0 for p in result.particles)


class TestPhysicsWorker:

    def test_worker_publishes_results(self):
        worker = PhysicsWorker()
        worker.post(Init(two_particles(), 1000.0))
        worker.start()
        try:
            result = worker.outbox.get(timeout=RESULT_TIMEOUT)
            assert isinstance(result, StepResult)
            assert len(result.particles) == 2

            second = worker.outbox.get(timeout=RESULT_TIMEOUT)
            assert second.timestep > result.timestep
        finally:
            worker.stop()
        assert not worker.is_alive()
        assert worker.ticks_completed >= 2

    def test_worker_discards_bad_messages_and_keeps_running(self, caplog):
        worker = PhysicsWorker()
        worker.post(Init(two_particles(), 1000.0))
        worker.post(SetDampening(7.0))
        worker.post("garbage")
        with caplog.at_level(logging.WARNING, logger="gravsim"):
            worker.start()
            try:
                worker.outbox.get(timeout=RESULT_TIMEOUT)
                worker.outbox.get(timeout=RESULT_TIMEOUT)
            finally:
                worker.stop()
        assert worker.engine.state.dampening != 7.0
        assert sum("Discarded message" in r.message for r in caplog.records) == 2

    def test_paused_worker_emits_nothing(self):
        worker = PhysicsWorker()
        worker.post(Init(two_particles(), 1000.0))
        worker.post(SetPaused(True))
        worker.start()
        try:
            with pytest.raises(queue.Empty):
                worker.outbox.get(timeout=0.5)
        finally:
            worker.stop()
        assert worker.ticks_completed == 0
        assert worker.engine.state.timestep_count == 0

    def test_outbox_drops_oldest(self):
        worker = PhysicsWorker(max_pending_results=2)
        results = [StepResult(particles=(), timestep=k, time=0.0) for k in range(1, 5)]
        for r in results:
            worker._publish(r)
        assert worker.outbox.qsize() == 2
        assert [worker.outbox.get_nowait().timestep for _ in range(2)] == [3, 4]

    def test_stop_before_start(self):
        worker = PhysicsWorker()
        worker.stop()
        assert not worker.is_alive()


class FakeClock:

    def __init__(self):
        self.now = 0.0

    def monotonic(self):
        return self.now


class SlowEngine:
    """Engine stub whose ticks take a scripted amount of clock time."""

    def __init__(self, clock, tick_durations):
        self.profile = PhysicsProfile(steps_per_second=10)
        self.state = SimulationState()
        self.clock = clock
        self.tick_durations = list(tick_durations)
        self.tick_times = []

    def handle(self, message):
        pass

    def tick(self):
        self.tick_times.append(self.clock.now)
        if self.tick_durations:
            self.clock.now += self.tick_durations.pop(0)
        return None


class RecordingStopEvent:
    """Stop event whose wait() advances the fake clock and records the delay."""

    def __init__(self, clock, max_waits):
        self.clock = clock
        self.max_waits = max_waits
        self.delays = []
        self._set = False

    def is_set(self):
        return self._set

    def set(self):
        self._set = True

    def wait(self, delay):
        self.delays.append(delay)
        self.clock.now += delay
        if len(self.delays) >= self.max_waits:
            self._set = True
        return self._set


class TestWorkerCadence:
    """Fixed-rate loop timing, driven by a fake monotonic clock."""

    def _run(self, monkeypatch, tick_durations, max_waits=3):
        clock = FakeClock()
        monkeypatch.setattr(engine_module, 'time', SimpleNamespace(monotonic=clock.monotonic))
        engine = SlowEngine(clock, tick_durations)
        worker = PhysicsWorker(engine)
        worker._stop_event = RecordingStopEvent(clock, max_waits)
        worker.run()
        return engine, worker

    def test_on_schedule_waits_one_period(self, monkeypatch):
        engine, worker = self._run(monkeypatch, [0.0, 0.0, 0.0])
        assert worker._stop_event.delays == pytest.approx([0.1, 0.1, 0.1])
        assert engine.tick_times == pytest.approx([0.0, 0.1, 0.2])

    def test_slow_tick_reanchors_instead_of_bursting(self, monkeypatch):
        """A tick that overruns by several periods restarts the schedule from now."""
        engine, worker = self._run(monkeypatch, [0.35])

        # Next tick runs straight away, then the cadence resumes one period apart
        assert engine.tick_times == pytest.approx([0.0, 0.35, 0.45, 0.55])
        assert worker._stop_event.delays == pytest.approx([0.1, 0.1, 0.1])

    def test_small_overrun_catches_up(self, monkeypatch):
        """Falling behind by less than a period keeps the original schedule."""
        engine, worker = self._run(monkeypatch, [0.15])

        assert engine.tick_times == pytest.approx([0.0, 0.15, 0.2, 0.3])
        assert worker._stop_event.delays == pytest.approx([0.05, 0.1, 0.1])
