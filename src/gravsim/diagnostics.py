"""
Runtime diagnostics for simulation health checks.

This module provides:
- Kinetic and (softened, scaled) potential energy
- Total momentum and centre of mass
- A health check that flags non-finite values, stray particles and
  unresolved overlaps
"""

import numpy as np
from numba import jit

from gravsim.config import PhysicsProfile
from gravsim.state import SimulationState


def total_kinetic_energy(state: SimulationState) -> float:
    """KE = Σ ½ m v²"""
    if state.n_total == 0:
        return 0.0
    v_squared = np.sum(state.velocities**2, axis=1)
    return float(0.5 * np.sum(state.masses * v_squared))


def total_momentum(state: SimulationState) -> np.ndarray:
    """P = Σ m v, shape (2,)"""
    if state.n_total == 0:
        return np.zeros(2)
    return np.sum(state.masses[:, None] * state.velocities, axis=0)


def center_of_mass(state: SimulationState) -> np.ndarray:
    """Mass-weighted mean position, shape (2,). NaN for an empty state."""
    if state.n_total == 0:
        return np.full(2, np.nan)
    return np.sum(state.masses[:, None] * state.positions, axis=0) / np.sum(state.masses)


@jit(nopython=True)
def _pairwise_potential(positions, masses, radii, scaled_g, softening_factor, min_distance_factor):
    total = 0.0
    n_total = len(masses)
    for i in range(n_total):
        for j in range(i + 1, n_total):
            dx = positions[j, 0] - positions[i, 0]
            dy = positions[j, 1] - positions[i, 1]
            min_distance = (radii[i] + radii[j]) * min_distance_factor
            softened_dist_sq = max(dx * dx + dy * dy, min_distance * min_distance * softening_factor)
            if softened_dist_sq > 0.0:
                total -= scaled_g * masses[i] * masses[j] / np.sqrt(softened_dist_sq)
    return total


def total_potential_energy(state: SimulationState, profile: PhysicsProfile) -> float:
    """
    PE = -Σ G_scaled m_i m_j / r_soft over unordered pairs.

    Uses the same softened distance as the force law so the two stay consistent.
    """
    if state.n_total < 2:
        return 0.0
    return float(_pairwise_potential(
        state.positions, state.masses, state.radii,
        profile.scaled_g, profile.softening_factor, profile.min_distance_factor
    ))


def check_state_health(state: SimulationState, profile: PhysicsProfile) -> list:
    """
    Inspect a state between ticks.

    Returns:
        List of warning messages. Empty list if nothing looks wrong.
    """
    warnings = []

    if state.n_total == 0:
        return warnings

    if not np.all(np.isfinite(state.positions)) or not np.all(np.isfinite(state.velocities)):
        warnings.append("CRITICAL: non-finite position or velocity - numerical instability!")
        return warnings

    if np.any(state.masses <= 0):
        warnings.append("CRITICAL: particle with non-positive mass in the arena")

    lower = -profile.cull_margin
    upper = state.domain_size + profile.cull_margin
    outside = np.any((state.positions < lower) | (state.positions > upper), axis=1)
    if np.any(outside):
        warnings.append(f"WARNING: {int(np.sum(outside))} particle(s) outside the culling bounds")

    # Overlaps left after a tick are expected only for 3+ body pile-ups
    diff = state.positions[None, :, :] - state.positions[:, None, :]
    dist = np.sqrt(np.sum(diff**2, axis=2))
    contact = (state.radii[None, :] + state.radii[:, None]) * profile.min_distance_factor
    overlapping = np.triu(dist < contact * (1.0 - 1e-9), k=1)
    n_overlapping = int(np.sum(overlapping))
    if n_overlapping:
        warnings.append(f"INFO: {n_overlapping} particle pair(s) closer than their contact distance")

    return warnings
