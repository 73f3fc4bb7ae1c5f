"""
Physical and numerical constants used throughout the simulation.

CANONICAL PHYSICS PROFILE:
These are the default values of gravsim.config.PhysicsProfile. They are
tunables chosen so that forces are meaningful at the world scale used by the
viewer (a square of a few thousand units, masses from 1e3 to 1e12), not
physical law. Override them through the `physics_profile` section of a YAML
config rather than editing this module.

Units:
- Distance: world units
- Time: seconds of simulated time
- Mass: arbitrary mass units
"""

# Newtonian gravitational constant (SI value, used as-is in world units)
G = 6.67430e-11

# Global force multiplier applied on top of G
SCALE_FACTOR = 1.0e8

# softenedDistSq = max(distSq, minDistance² × SOFTENING_FACTOR)
SOFTENING_FACTOR = 0.5

# minDistance = (r_p + r_q) × MIN_DISTANCE_FACTOR; closer pairs collide
MIN_DISTANCE_FACTOR = 1.5

# Speeds below this snap to exactly zero when friction is active
VELOCITY_EPSILON = 1.0e-10

# Particles further than this outside the domain are removed [world units]
CULL_MARGIN = 50.0

# Fixed wall-clock cadence of the physics loop
STEPS_PER_SECOND = 60
PHYSICS_STEP_MS = 1000.0 / STEPS_PER_SECOND

# Defaults for the runtime tunables
DEFAULT_DOMAIN_SIZE = 5000.0
DEFAULT_FRICTION = 0.01
DEFAULT_DAMPENING = 0.05
DEFAULT_SPEED_MULTIPLIER = 1.0

# Fallback collision normal when two particles coincide exactly
FALLBACK_NORMAL_X = 1.0
FALLBACK_NORMAL_Y = 0.0
