"""
Simulation state management for the gravity/collision simulation.

This module defines the two particle representations:

- ParticleSnapshot: an immutable, validated value used to move particle data
  across the engine boundary (UI thread, recorder, tests). It is the only
  cross-boundary contract.
- SimulationState: the engine-owned arena. All live particles are stored in
  contiguous NumPy arrays so the JIT-compiled kernels in gravsim.physics can
  operate on them directly.

Snapshots are always copies. Nothing outside the engine ever holds a view into
the arena arrays.
"""

import math
from dataclasses import dataclass, asdict
from typing import Iterable, List

import numpy as np

from gravsim import constants as const
from gravsim.errors import InvalidParticleError


@dataclass(frozen=True)
class ParticleSnapshot:
    """
    Deep-copied state of one particle.

    Fields are world-space position (x, y), velocity (vx, vy), the force
    accumulator (ax, ay), mass and radius ("size").

    Raises:
        InvalidParticleError: if any field is non-finite, mass <= 0 or
            radius < 0
    """

    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    ax: float = 0.0
    ay: float = 0.0
    mass: float = 1.0
    radius: float = 0.0

    def __post_init__(self):
        for name in ('x', 'y', 'vx', 'vy', 'ax', 'ay', 'mass', 'radius'):
            value = getattr(self, name)
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise InvalidParticleError(f"{name} must be a real number, got {value!r}")
            if not math.isfinite(value):
                raise InvalidParticleError(f"{name} must be finite, got {value}")
            object.__setattr__(self, name, value)

        if self.mass <= 0:
            raise InvalidParticleError(f"mass must be positive, got {self.mass}")
        if self.radius < 0:
            raise InvalidParticleError(f"radius must be non-negative, got {self.radius}")

    def to_dict(self) -> dict:
        """Plain-dict wire form."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'ParticleSnapshot':
        """
        Build a snapshot from its wire form.

        Accepts `size` as an alias of `radius`. Missing velocity and
        acceleration components default to zero.
        """
        try:
            radius = data['radius'] if 'radius' in data else data['size']
            return cls(
                x=data['x'],
                y=data['y'],
                vx=data.get('vx', 0.0),
                vy=data.get('vy', 0.0),
                ax=data.get('ax', 0.0),
                ay=data.get('ay', 0.0),
                mass=data['mass'],
                radius=radius,
            )
        except KeyError as e:
            raise InvalidParticleError(f"particle is missing field {e.args[0]!r}")


class SimulationState:
    """
    Arena of live particles plus the runtime tunables.

    Physics arrays (row i is particle i, order is stable within a step):
    - positions: (N, 2) world coordinates
    - velocities: (N, 2)
    - accelerations: (N, 2) force accumulator. Zeroed at the start of every
      step and again after integration; it never carries over between steps.
    - masses: (N,) strictly positive
    - radii: (N,) non-negative

    Tunables (only changed between ticks):
    - domain_size: side length of the square bounds [0, domain_size]²
    - friction >= 0, dampening in [0, 1], speed_multiplier > 0, paused
    """

    def __init__(self, n_total: int = 0, domain_size: float = const.DEFAULT_DOMAIN_SIZE):
        """
        Initialize an arena with n_total zeroed particle slots.

        Args:
            n_total: Number of particles
            domain_size: Side length of the square simulation domain
        """
        self.positions = np.zeros((n_total, 2), dtype=np.float64)
        self.velocities = np.zeros((n_total, 2), dtype=np.float64)
        self.accelerations = np.zeros((n_total, 2), dtype=np.float64)
        self.masses = np.ones(n_total, dtype=np.float64)
        self.radii = np.zeros(n_total, dtype=np.float64)

        self.domain_size = float(domain_size)
        self.friction = const.DEFAULT_FRICTION
        self.dampening = const.DEFAULT_DAMPENING
        self.speed_multiplier = const.DEFAULT_SPEED_MULTIPLIER
        self.paused = False

        # Simulation metadata
        self.time = 0.0
        self.timestep_count = 0

        # Coincident pairs seen in the last tick
        self.degenerate_pairs = 0

    @property
    def n_total(self) -> int:
        """Number of live particles."""
        return len(self.masses)

    @classmethod
    def from_snapshots(cls, snapshots: Iterable[ParticleSnapshot],
                       domain_size: float = const.DEFAULT_DOMAIN_SIZE) -> 'SimulationState':
        """Copy snapshots into a fresh arena."""
        snapshots = list(snapshots)
        state = cls(n_total=len(snapshots), domain_size=domain_size)
        state.load_snapshots(snapshots)
        return state

    def load_snapshots(self, snapshots: List[ParticleSnapshot]) -> None:
        """
        Replace every particle in the arena with copies of snapshots.

        Tunables and time are left untouched.
        """
        n = len(snapshots)
        self.positions = np.zeros((n, 2), dtype=np.float64)
        self.velocities = np.zeros((n, 2), dtype=np.float64)
        self.accelerations = np.zeros((n, 2), dtype=np.float64)
        self.masses = np.ones(n, dtype=np.float64)
        self.radii = np.zeros(n, dtype=np.float64)
        self.degenerate_pairs = 0

        for i, p in enumerate(snapshots):
            self.positions[i] = (p.x, p.y)
            self.velocities[i] = (p.vx, p.vy)
            self.accelerations[i] = (p.ax, p.ay)
            self.masses[i] = p.mass
            self.radii[i] = p.radius

    def snapshot_at(self, i: int) -> ParticleSnapshot:
        """Copy out particle i."""
        return ParticleSnapshot(
            x=float(self.positions[i, 0]),
            y=float(self.positions[i, 1]),
            vx=float(self.velocities[i, 0]),
            vy=float(self.velocities[i, 1]),
            ax=float(self.accelerations[i, 0]),
            ay=float(self.accelerations[i, 1]),
            mass=float(self.masses[i]),
            radius=float(self.radii[i]),
        )

    def to_snapshots(self) -> List[ParticleSnapshot]:
        """Copy out every particle, in arena order."""
        return [self.snapshot_at(i) for i in range(self.n_total)]

    def keep(self, mask: np.ndarray) -> int:
        """
        Compact the arena to the particles selected by mask.

        Args:
            mask: Boolean array of shape (N,), True for particles to keep

        Returns:
            Number of particles removed
        """
        removed = int(self.n_total - np.count_nonzero(mask))
        if removed == 0:
            return 0

        self.positions = self.positions[mask].copy()
        self.velocities = self.velocities[mask].copy()
        self.accelerations = self.accelerations[mask].copy()
        self.masses = self.masses[mask].copy()
        self.radii = self.radii[mask].copy()
        return removed

    def __repr__(self) -> str:
        """String representation of simulation state."""
        lines = [
            f"SimulationState(time={self.time:.3f} s, step={self.timestep_count})",
            f"  Particles: {self.n_total}",
            f"  Domain: {self.domain_size:g} x {self.domain_size:g}",
            f"  friction={self.friction:g}, dampening={self.dampening:g}, "
            f"speed={self.speed_multiplier:g}x, paused={self.paused}",
        ]
        return "\n".join(lines)
