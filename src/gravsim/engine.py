"""
Message-driven physics engine and its fixed-cadence worker thread.

PhysicsEngine owns the particle arena and applies boundary messages between
ticks. PhysicsWorker runs an engine on a dedicated thread: the UI side posts
messages to `inbox` and reads StepResult objects from `outbox`. The two sides
share no mutable state; every particle crossing the boundary is a snapshot
copy.

Threading model
- The worker thread is the only thread that touches the engine once started.
- Messages are drained only between ticks, so every configuration change and
  particle replacement takes effect atomically at the start of the next tick.
- Ticks run at profile.steps_per_second of wall-clock time from a monotonic
  clock. speed_multiplier scales simulated time per tick, not the tick rate.
"""

import logging
import queue
import threading
import time
from typing import Iterable, List, Optional

from gravsim import constants as const
from gravsim.config import (
    PhysicsProfile,
    check_dampening,
    check_domain_size,
    check_friction,
    check_speed_multiplier,
)
from gravsim.errors import GravSimError, InvalidParticleError
from gravsim.evolution import step_simulation
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

logger = logging.getLogger("gravsim")


class PhysicsEngine:
    """
    Single-threaded engine driven by boundary messages.

    Paused/Running is the only state machine: while paused, tick() is a no-op
    and returns None.
    """

    def __init__(self, profile: Optional[PhysicsProfile] = None,
                 domain_size: float = const.DEFAULT_DOMAIN_SIZE):
        self.profile = profile if profile is not None else PhysicsProfile()
        self.profile.validate()
        self.state = SimulationState(n_total=0, domain_size=check_domain_size(domain_size))

    @property
    def paused(self) -> bool:
        return self.state.paused

    @property
    def n_particles(self) -> int:
        return self.state.n_total

    def _ingest(self, particles: Iterable) -> List[ParticleSnapshot]:
        """Validate incoming particles, skipping the ones that are malformed."""
        accepted = []
        for i, p in enumerate(particles):
            try:
                if isinstance(p, ParticleSnapshot):
                    accepted.append(p)
                elif isinstance(p, dict):
                    accepted.append(ParticleSnapshot.from_dict(p))
                else:
                    raise InvalidParticleError(f"unsupported particle type {type(p).__name__}")
            except InvalidParticleError as e:
                logger.warning(f"Rejected particle #{i}: {e}")
        return accepted

    def init(self, particles: Iterable, domain_size: float) -> int:
        """
        (Re)initialize the particle set and bounds; resets simulated time.

        Returns:
            Number of particles accepted
        """
        domain_size = check_domain_size(domain_size)
        accepted = self._ingest(particles)

        self.state.domain_size = domain_size
        self.state.load_snapshots(accepted)
        self.state.time = 0.0
        self.state.timestep_count = 0

        logger.info(f"Engine initialized with {len(accepted)} particles, domain size {domain_size:g}")
        return len(accepted)

    def replace_particles(self, particles: Iterable) -> int:
        """
        Swap in a complete new particle set.

        Returns:
            Number of particles accepted
        """
        accepted = self._ingest(particles)
        self.state.load_snapshots(accepted)
        logger.info(f"Particle set replaced: {len(accepted)} particles")
        return len(accepted)

    def set_paused(self, paused: bool) -> None:
        self.state.paused = bool(paused)
        logger.info("Simulation paused" if self.state.paused else "Simulation resumed")

    def set_speed(self, multiplier: float) -> None:
        self.state.speed_multiplier = check_speed_multiplier(multiplier)

    def set_friction(self, value: float) -> None:
        self.state.friction = check_friction(value)

    def set_dampening(self, value: float) -> None:
        self.state.dampening = check_dampening(value)

    def set_domain_size(self, size: float) -> None:
        self.state.domain_size = check_domain_size(size)

    def handle(self, message) -> None:
        """
        Apply one inbound boundary message.

        Raises:
            ConfigurationOutOfRangeError: for out-of-range tunables (state unchanged)
            TypeError: for an unknown message type
        """
        if isinstance(message, Init):
            self.init(message.particles, message.domain_size)
        elif isinstance(message, ReplaceParticles):
            self.replace_particles(message.particles)
        elif isinstance(message, SetPaused):
            self.set_paused(message.paused)
        elif isinstance(message, SetSpeed):
            self.set_speed(message.multiplier)
        elif isinstance(message, SetFriction):
            self.set_friction(message.value)
        elif isinstance(message, SetDampening):
            self.set_dampening(message.value)
        elif isinstance(message, SetDomainSize):
            self.set_domain_size(message.size)
        else:
            raise TypeError(f"Unknown message type: {type(message).__name__}")

    def snapshot(self) -> List[ParticleSnapshot]:
        """Deep copy of the current particle set."""
        return self.state.to_snapshots()

    def tick(self) -> Optional[StepResult]:
        """
        Run one fixed step.

        Returns:
            StepResult, or None while paused
        """
        report = step_simulation(self.state, self.profile)
        if report is None:
            return None

        logger.debug(
            f"Step {report.timestep}: {report.n_particles} particles, "
            f"{report.n_collisions} collisions"
        )
        return StepResult(
            particles=tuple(self.snapshot()),
            timestep=report.timestep,
            time=report.time,
            n_collisions=report.n_collisions,
            n_culled=report.n_culled,
        )


class PhysicsWorker(threading.Thread):
    """
    Runs a PhysicsEngine at a fixed wall-clock cadence on its own thread.

    Usage:
        worker = PhysicsWorker()
        worker.start()
        worker.post(Init(particles, 5000.0))
        result = worker.outbox.get(timeout=1.0)
        worker.stop()
    """

    def __init__(self, engine: Optional[PhysicsEngine] = None,
                 inbox: Optional[queue.Queue] = None,
                 outbox: Optional[queue.Queue] = None,
                 max_pending_results: int = 4):
        super().__init__(name="gravsim-physics", daemon=True)
        self.engine = engine if engine is not None else PhysicsEngine()
        self.inbox = inbox if inbox is not None else queue.Queue()
        self.outbox = outbox if outbox is not None else queue.Queue(maxsize=max_pending_results)
        self.period = self.engine.profile.physics_step_ms / 1000.0
        self.ticks_completed = 0
        self._stop_event = threading.Event()

    def post(self, message) -> None:
        """Queue a boundary message; it is applied before the next tick."""
        self.inbox.put(message)

    def stop(self, timeout: Optional[float] = 2.0) -> None:
        """Ask the loop to finish and wait for the thread to exit."""
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout)

    def _drain_inbox(self) -> None:
        while True:
            try:
                message = self.inbox.get_nowait()
            except queue.Empty:
                return
            try:
                self.engine.handle(message)
            except (GravSimError, TypeError) as e:
                logger.warning(f"Discarded message {message!r}: {e}")

    def _publish(self, result: StepResult) -> None:
        """Hand a result to the consumer, dropping the oldest if it lags behind."""
        while True:
            try:
                self.outbox.put_nowait(result)
                return
            except queue.Full:
                try:
                    self.outbox.get_nowait()
                except queue.Empty:
                    pass

    def run(self) -> None:
        logger.info(f"Physics worker started ({1.0 / self.period:.0f} steps/s)")
        next_tick = time.monotonic()

        while not self._stop_event.is_set():
            self._drain_inbox()

            try:
                result = self.engine.tick()
            except Exception:
                logger.exception(f"Tick {self.engine.state.timestep_count + 1} failed; step skipped")
                result = None

            if result is not None:
                self.ticks_completed += 1
                self._publish(result)

            next_tick += self.period
            delay = next_tick - time.monotonic()
            if delay < -self.period:
                # Too far behind to catch up; re-anchor instead of bursting
                next_tick = time.monotonic()
                delay = 0.0
            if delay > 0:
                self._stop_event.wait(delay)

        logger.info(f"Physics worker stopped after {self.ticks_completed} ticks")
