"""
Time evolution engine for the gravity/collision simulation.

One fixed step (tick) runs, in order:
  1. Reset the force accumulator
  2. Pair pass: every unordered pair is either a collision or a gravitational
     interaction, evaluated against start-of-step positions and velocities
  3. Apply collision impulses and overlap corrections
  4. Semi-implicit Euler integration with optional friction
  5. Drop particles whose state became non-finite
  6. Cull particles outside the domain plus margin

A paused state makes the tick a no-op.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from tqdm import tqdm

from gravsim.config import PhysicsProfile, SimulationParameters
from gravsim.physics import (
    accumulate_pair_interactions,
    integrate_particles,
    step_dt,
    inside_bounds_mask,
    finite_mask,
)
from gravsim.state import SimulationState

logger = logging.getLogger("gravsim")


@dataclass
class StepReport:
    """Counts describing what happened during one tick."""

    timestep: int
    time: float
    dt: float
    n_particles: int
    n_collisions: int = 0
    n_degenerate: int = 0
    n_dropped: int = 0
    n_culled: int = 0


def cull_particles(state: SimulationState, margin: float) -> int:
    """
    Remove every particle outside [-margin, domain_size + margin]².

    Returns:
        Number of particles removed
    """
    if state.n_total == 0:
        return 0
    mask = inside_bounds_mask(state.positions, state.domain_size, margin)
    return state.keep(mask)


def drop_non_finite(state: SimulationState) -> int:
    """
    Remove particles whose position or velocity is NaN or infinite.

    Valid input cannot produce these; when it happens anyway the offending
    particle is removed so it cannot poison every other pair next tick.
    """
    if state.n_total == 0:
        return 0
    mask = finite_mask(state.positions, state.velocities)
    dropped = state.keep(mask)
    if dropped:
        logger.warning(
            f"Dropped {dropped} particle(s) with non-finite position/velocity "
            f"at step {state.timestep_count}"
        )
    return dropped


def step_simulation(state: SimulationState, profile: PhysicsProfile) -> Optional[StepReport]:
    """
    Advance the state by one fixed step.

    Args:
        state: SimulationState (modified in place)
        profile: Physics constants

    Returns:
        StepReport for the completed tick, or None if the state is paused
    """
    if state.paused:
        return None

    dt = step_dt(profile.physics_step_ms, state.speed_multiplier)
    n_collisions = 0
    n_degenerate = 0

    if state.n_total > 0:
        # 1. Force accumulator starts every step at zero
        state.accelerations[:] = 0.0

        # 2. Pair pass against the start-of-step arrays
        velocity_deltas = np.zeros_like(state.velocities)
        position_deltas = np.zeros_like(state.positions)
        with np.errstate(all='ignore'):
            n_collisions, n_degenerate = accumulate_pair_interactions(
                state.positions,
                state.velocities,
                state.masses,
                state.radii,
                state.accelerations,
                velocity_deltas,
                position_deltas,
                profile.scaled_g,
                profile.softening_factor,
                profile.min_distance_factor,
                state.dampening
            )

            # 3. Collision results become visible only after the pair loop
            state.velocities += velocity_deltas
            state.positions += position_deltas

            # 4. Integrate
            integrate_particles(
                state.positions,
                state.velocities,
                state.accelerations,
                dt,
                state.friction,
                profile.velocity_epsilon
            )

        # Zero-radius coincident pairs stay coincident; warn only when the count rises
        if n_degenerate > state.degenerate_pairs:
            logger.warning(
                f"{n_degenerate} coincident particle pair(s) at step {state.timestep_count}; "
                f"resolved along the fallback normal"
            )
        elif n_degenerate:
            logger.debug(f"{n_degenerate} coincident particle pair(s) persist at step {state.timestep_count}")

    state.degenerate_pairs = int(n_degenerate)

    # 5. Drop corrupted particles, 6. cull
    n_dropped = drop_non_finite(state)
    n_culled = cull_particles(state, profile.cull_margin)

    state.time += dt
    state.timestep_count += 1

    report = StepReport(
        timestep=state.timestep_count,
        time=state.time,
        dt=dt,
        n_particles=state.n_total,
        n_collisions=int(n_collisions),
        n_degenerate=int(n_degenerate),
        n_dropped=n_dropped,
        n_culled=n_culled,
    )

    if n_culled:
        logger.debug(f"Step {report.timestep}: culled {n_culled} particle(s), {state.n_total} remain")
    return report


def evolve_system(
    state: SimulationState,
    profile: PhysicsProfile,
    n_steps: int,
    show_progress: bool = True,
    recorder=None,
    output_interval: int = 1
) -> dict:
    """
    Evolve the simulation forward for n_steps ticks.

    This is the batch driver used by scripts and tests. The real-time driver
    is gravsim.engine.PhysicsWorker.

    Args:
        state: SimulationState (modified in place)
        profile: Physics constants
        n_steps: Number of ticks to run (paused ticks count but do nothing)
        show_progress: Whether to show a tqdm progress bar
        recorder: Optional SimulationRecorder receiving frames
        output_interval: Record every output_interval completed ticks

    Returns:
        Dictionary with simulation statistics:
        - total_collisions, total_degenerate, total_culled, total_dropped
        - final_time, final_timestep, final_particle_count
    """
    stats = {
        'total_collisions': 0,
        'total_degenerate': 0,
        'total_culled': 0,
        'total_dropped': 0,
    }

    if recorder is not None:
        recorder.record_frame(state)

    if show_progress:
        pbar = tqdm(total=n_steps, desc="Evolving system", unit="steps")

    for step in range(n_steps):
        report = step_simulation(state, profile)

        if report is not None:
            stats['total_collisions'] += report.n_collisions
            stats['total_degenerate'] += report.n_degenerate
            stats['total_culled'] += report.n_culled
            stats['total_dropped'] += report.n_dropped

            if recorder is not None and report.timestep % output_interval == 0:
                recorder.record_frame(state)

        if show_progress:
            pbar.update(1)
            if report is not None and report.n_culled:
                pbar.set_postfix({'particles': state.n_total})

    if show_progress:
        pbar.close()

    stats['final_time'] = state.time
    stats['final_timestep'] = state.timestep_count
    stats['final_particle_count'] = state.n_total
    return stats


def run_simulation(
    params: SimulationParameters,
    seed: int = 42,
    show_progress: bool = True,
    recorder=None
) -> tuple:
    """
    Run a complete batch simulation from initialization to completion.

    Args:
        params: SimulationParameters object
        seed: Random seed for the random field
        show_progress: Whether to show progress bar
        recorder: Optional SimulationRecorder

    Returns:
        (state, stats) tuple
    """
    from gravsim.initialization import initialize_simulation

    state = initialize_simulation(params, seed=seed)
    logger.info(f"Running simulation: {params.n_steps} steps, {state.n_total} particles")

    stats = evolve_system(
        state, params.profile, params.n_steps,
        show_progress=show_progress,
        recorder=recorder,
        output_interval=params.output_interval
    )

    logger.info(
        f"Simulation complete: t={state.time:.2f} s, {state.n_total} particles remain, "
        f"{stats['total_collisions']} collisions, {stats['total_culled']} culled"
    )
    return state, stats
