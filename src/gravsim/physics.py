"""
Physics kernels for the gravity/collision simulation.

All performance-critical functions are JIT-compiled with Numba for near-C performance.
These functions must be Numba-compatible (NumPy arrays and scalars, no Python objects).
Tunables (scaled G, softening, dampening, ...) are passed in as arguments rather
than read from module globals, because Numba freezes globals at compile time.

Each unordered pair of particles is handled by exactly one of two branches per step:

- PAIR_FORCE: softened Newtonian attraction, added to the force accumulator
- PAIR_COLLISION: impulse along the contact normal plus positional separation

Pair evaluation reads only the start-of-step positions and velocities. Collision
results are written to separate delta buffers and applied by the caller after the
pair loop, so no pair ever sees another pair's writes within the same step.
"""

import numpy as np
from numba import jit

from gravsim import constants as const

# Outcome tags for the per-pair branch decision
PAIR_FORCE = 0
PAIR_COLLISION = 1


@jit(nopython=True)
def classify_pair(dist, min_distance):
    """
    Decide which branch handles a pair.

    Coincident particles always collide, even when both radii are zero, so the
    force branch never divides by a zero distance.
    """
    if dist < min_distance or dist == 0.0:
        return PAIR_COLLISION
    return PAIR_FORCE


@jit(nopython=True)
def gravitational_force(dx, dy, dist, min_distance, mass_p, mass_q,
                        scaled_g, softening_factor):
    """
    Calculate the softened gravitational force exerted on p by q.

    F = G_scaled × m_p × m_q / max(r², minDistance² × softening) along (dx, dy)/r

    Args:
        dx, dy: Displacement from p to q [world units]
        dist: |(dx, dy)|, must be > 0
        min_distance: Collision threshold for this pair
        mass_p, mass_q: Particle masses
        scaled_g: G × SCALE_FACTOR
        softening_factor: Fraction of minDistance² used as the distance floor

    Returns:
        (fx, fy): Force on p. The force on q is (-fx, -fy).
    """
    dist_sq = dx * dx + dy * dy
    softened_dist_sq = max(dist_sq, min_distance * min_distance * softening_factor)

    force = scaled_g * mass_p * mass_q / softened_dist_sq

    fx = force * dx / dist
    fy = force * dy / dist
    return fx, fy


@jit(nopython=True)
def resolve_collision(dx, dy, dist, min_distance,
                      vpx, vpy, vqx, vqy, mass_p, mass_q, dampening):
    """
    Resolve an overlapping pair as a collision with restitution 1 - dampening.

    Contact model: the impulse is applied only while the pair is approaching
    along the normal (vRelN < 0). A pair that is already separating keeps its
    velocities and only receives the positional correction, so it is never
    pulled back together.

    Impulse:
        n = (dx, dy) / dist
        j = -(1 + e) × vRelN / (1/m_p + 1/m_q)
        v_p -= j n / m_p,  v_q += j n / m_q

    Positional correction:
        overlap = minDistance - dist, split inversely by mass so that the pair
        ends exactly minDistance apart.

    Args:
        dx, dy: Displacement from p to q
        dist: |(dx, dy)|, may be zero
        min_distance: (r_p + r_q) × MIN_DISTANCE_FACTOR
        vpx, vpy, vqx, vqy: Start-of-step velocities
        mass_p, mass_q: Particle masses
        dampening: 0 = perfectly elastic, 1 = perfectly inelastic along n

    Returns:
        (dvpx, dvpy, dvqx, dvqy, dxp, dyp, dxq, dyq, degenerate)
        Velocity and position deltas for p and q, and whether the fallback
        normal had to be used because dist == 0.
    """
    degenerate = False
    if dist > 0.0:
        nx = dx / dist
        ny = dy / dist
    else:
        nx = const.FALLBACK_NORMAL_X
        ny = const.FALLBACK_NORMAL_Y
        degenerate = True

    dvpx = 0.0
    dvpy = 0.0
    dvqx = 0.0
    dvqy = 0.0

    v_rel_n = (vqx - vpx) * nx + (vqy - vpy) * ny
    if v_rel_n < 0.0:
        restitution = 1.0 - dampening
        impulse = -(1.0 + restitution) * v_rel_n / (1.0 / mass_p + 1.0 / mass_q)
        dvpx = -impulse * nx / mass_p
        dvpy = -impulse * ny / mass_p
        dvqx = impulse * nx / mass_q
        dvqy = impulse * ny / mass_q

    overlap = min_distance - dist
    total_mass = mass_p + mass_q
    share_p = overlap * mass_q / total_mass
    share_q = overlap * mass_p / total_mass

    return (dvpx, dvpy, dvqx, dvqy,
            -share_p * nx, -share_p * ny, share_q * nx, share_q * ny,
            degenerate)


@jit(nopython=True)
def accumulate_pair_interactions(positions, velocities, masses, radii,
                                 accelerations, velocity_deltas, position_deltas,
                                 scaled_g, softening_factor, min_distance_factor,
                                 dampening):
    """
    Run the O(N²) pair pass over every unordered pair (i, j), i < j.

    Args:
        positions: (N, 2), read only
        velocities: (N, 2), read only
        masses: (N,)
        radii: (N,)
        accelerations: (N, 2) force accumulator, incremented in place
        velocity_deltas: (N, 2) collision impulses, incremented in place
        position_deltas: (N, 2) overlap corrections, incremented in place
        scaled_g: G × SCALE_FACTOR
        softening_factor: Softening floor as a fraction of minDistance²
        min_distance_factor: Multiplier on the radius sum for contact
        dampening: Collision dampening in [0, 1]

    Returns:
        (n_collisions, n_degenerate)

    Notes:
        - Every pair takes exactly one branch (force or collision)
        - Newton's third law: each force is computed once and applied to both
    """
    n_total = len(masses)
    n_collisions = 0
    n_degenerate = 0

    for i in range(n_total):
        for j in range(i + 1, n_total):
            dx = positions[j, 0] - positions[i, 0]
            dy = positions[j, 1] - positions[i, 1]
            dist = np.sqrt(dx * dx + dy * dy)
            min_distance = (radii[i] + radii[j]) * min_distance_factor

            if classify_pair(dist, min_distance) == PAIR_COLLISION:
                (dvpx, dvpy, dvqx, dvqy,
                 dxp, dyp, dxq, dyq, degenerate) = resolve_collision(
                    dx, dy, dist, min_distance,
                    velocities[i, 0], velocities[i, 1],
                    velocities[j, 0], velocities[j, 1],
                    masses[i], masses[j], dampening
                )
                velocity_deltas[i, 0] += dvpx
                velocity_deltas[i, 1] += dvpy
                velocity_deltas[j, 0] += dvqx
                velocity_deltas[j, 1] += dvqy
                position_deltas[i, 0] += dxp
                position_deltas[i, 1] += dyp
                position_deltas[j, 0] += dxq
                position_deltas[j, 1] += dyq

                n_collisions += 1
                if degenerate:
                    n_degenerate += 1
            else:
                fx, fy = gravitational_force(
                    dx, dy, dist, min_distance, masses[i], masses[j],
                    scaled_g, softening_factor
                )
                accelerations[i, 0] += fx / masses[i]
                accelerations[i, 1] += fy / masses[i]
                accelerations[j, 0] -= fx / masses[j]
                accelerations[j, 1] -= fy / masses[j]

    return n_collisions, n_degenerate


@jit(nopython=True)
def integrate_particles(positions, velocities, accelerations, dt,
                        friction, velocity_epsilon):
    """
    Advance all particles one step with semi-implicit (symplectic) Euler.

    1. v += a × dt
    2. if friction > 0: v *= max(0, 1 - friction × dt), snap |v| < ε to 0
    3. x += v × dt   (uses the updated velocity)
    4. a = 0

    Args:
        positions: (N, 2), modified in place
        velocities: (N, 2), modified in place
        accelerations: (N, 2), consumed and reset to zero
        dt: Simulated time step [s]
        friction: Velocity damping rate per second, >= 0
        velocity_epsilon: Speed below which the particle is stopped
    """
    n_total = len(positions)

    friction_factor = 1.0
    if friction > 0.0:
        friction_factor = 1.0 - friction * dt
        if friction_factor < 0.0:
            friction_factor = 0.0

    for i in range(n_total):
        vx = velocities[i, 0] + accelerations[i, 0] * dt
        vy = velocities[i, 1] + accelerations[i, 1] * dt

        if friction > 0.0:
            vx *= friction_factor
            vy *= friction_factor
            if np.sqrt(vx * vx + vy * vy) < velocity_epsilon:
                vx = 0.0
                vy = 0.0

        velocities[i, 0] = vx
        velocities[i, 1] = vy

        positions[i, 0] += vx * dt
        positions[i, 1] += vy * dt

        accelerations[i, 0] = 0.0
        accelerations[i, 1] = 0.0


def step_dt(physics_step_ms: float, speed_multiplier: float) -> float:
    """Simulated seconds covered by one fixed step."""
    return (physics_step_ms / 1000.0) * speed_multiplier


def inside_bounds_mask(positions: np.ndarray, domain_size: float, margin: float) -> np.ndarray:
    """
    Boolean mask of particles within [-margin, domain_size + margin] on both axes.
    """
    lower = -margin
    upper = domain_size + margin
    return np.all((positions >= lower) & (positions <= upper), axis=1)


def finite_mask(positions: np.ndarray, velocities: np.ndarray) -> np.ndarray:
    """Boolean mask of particles whose position and velocity are all finite."""
    return np.all(np.isfinite(positions), axis=1) & np.all(np.isfinite(velocities), axis=1)
