"""
Boundary message protocol between the physics engine and its UI/renderer.

Inbound messages are posted to the engine; StepResult is emitted once per
completed tick. Particle payloads are tuples of ParticleSnapshot (or plain
dicts in the same shape) and are always copied on the way in and out.
"""

from dataclasses import dataclass
from typing import Tuple, Union

from gravsim.state import ParticleSnapshot

ParticleData = Union[ParticleSnapshot, dict]


@dataclass(frozen=True)
class Init:
    """(Re)initialize the particle set and the domain bounds."""
    particles: Tuple[ParticleData, ...]
    domain_size: float


@dataclass(frozen=True)
class ReplaceParticles:
    """Full replacement of the particle set (add-one, clear-all)."""
    particles: Tuple[ParticleData, ...]


@dataclass(frozen=True)
class SetPaused:
    paused: bool


@dataclass(frozen=True)
class SetSpeed:
    multiplier: float


@dataclass(frozen=True)
class SetFriction:
    value: float


@dataclass(frozen=True)
class SetDampening:
    value: float


@dataclass(frozen=True)
class SetDomainSize:
    size: float


@dataclass(frozen=True)
class StepResult:
    """Deep-copied particle set after one completed tick."""
    particles: Tuple[ParticleSnapshot, ...]
    timestep: int
    time: float
    n_collisions: int = 0
    n_culled: int = 0
