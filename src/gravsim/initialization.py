"""
Initialization functions for the gravity/collision simulation.

Scenes are built as lists of ParticleSnapshot so they pass through the same
validation as particles spawned at runtime.
"""

from typing import List, Optional, Tuple

import numpy as np

from gravsim.config import (
    SimulationParameters,
    check_dampening,
    check_domain_size,
    check_friction,
    check_speed_multiplier,
)
from gravsim.state import ParticleSnapshot, SimulationState


def ring_particles(
    center: Tuple[float, float],
    count: int,
    radius: float,
    mass: float,
    size: float,
    tangential_speed: float = 0.0
) -> List[ParticleSnapshot]:
    """
    Place bodies evenly around a circle with tangential velocities.

    Args:
        center: (x, y) centre of the ring
        count: Number of bodies
        radius: Ring radius [world units]
        mass: Mass of every body
        size: Radius of every body
        tangential_speed: Speed perpendicular to the radius (counter-clockwise)

    Notes:
        - Angular spacing: Δθ = 2π / N
        - Velocity direction: (-sin θ, cos θ)
    """
    cx, cy = center
    particles = []
    for i in range(count):
        theta = 2.0 * np.pi * i / count
        particles.append(ParticleSnapshot(
            x=cx + radius * np.cos(theta),
            y=cy + radius * np.sin(theta),
            vx=-tangential_speed * np.sin(theta),
            vy=tangential_speed * np.cos(theta),
            mass=mass,
            radius=size,
        ))
    return particles


def random_field_particles(
    count: int,
    domain_size: float,
    mass_range: Tuple[float, float],
    size_range: Tuple[float, float],
    max_speed: float,
    rng: np.random.Generator
) -> List[ParticleSnapshot]:
    """
    Scatter particles uniformly over the domain.

    Masses are drawn log-uniformly, sizes and velocity components uniformly.
    """
    if count == 0:
        return []

    positions = rng.uniform(0.0, domain_size, size=(count, 2))
    log_masses = rng.uniform(np.log10(mass_range[0]), np.log10(mass_range[1]), size=count)
    masses = 10.0 ** log_masses
    sizes = rng.uniform(size_range[0], size_range[1], size=count)

    angles = rng.uniform(0.0, 2.0 * np.pi, size=count)
    speeds = rng.uniform(0.0, max_speed, size=count) if max_speed > 0 else np.zeros(count)

    return [
        ParticleSnapshot(
            x=positions[i, 0],
            y=positions[i, 1],
            vx=speeds[i] * np.cos(angles[i]),
            vy=speeds[i] * np.sin(angles[i]),
            mass=masses[i],
            radius=sizes[i],
        )
        for i in range(count)
    ]


def initialize_simulation(params: SimulationParameters, seed: Optional[int] = 42) -> SimulationState:
    """
    Build the initial state described by params.

    Args:
        params: SimulationParameters
        seed: Seed for the random field

    Returns:
        SimulationState with ring bodies first, then the random field
    """
    rng = np.random.default_rng(seed)
    center = (params.domain_size / 2.0, params.domain_size / 2.0)

    snapshots = ring_particles(
        center,
        params.ring_count,
        params.ring_radius,
        params.ring_mass,
        params.ring_size,
        params.ring_speed
    )
    snapshots += random_field_particles(
        params.field_count,
        params.domain_size,
        (params.field_mass_min, params.field_mass_max),
        (params.field_size_min, params.field_size_max),
        params.field_speed_max,
        rng
    )

    state = SimulationState.from_snapshots(snapshots, domain_size=check_domain_size(params.domain_size))
    state.friction = check_friction(params.friction)
    state.dampening = check_dampening(params.dampening)
    state.speed_multiplier = check_speed_multiplier(params.speed_multiplier)
    state.paused = params.paused
    return state
