"""
Configuration management for the gravity/collision simulation.

This module handles loading and parsing YAML configuration files and holds
the range checks applied at the configuration boundary. Out-of-range values
are rejected with ConfigurationOutOfRangeError; they never reach a tick.
"""

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from gravsim import constants as const
from gravsim.errors import ConfigurationOutOfRangeError


def _require_finite(name: str, value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigurationOutOfRangeError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ConfigurationOutOfRangeError(f"{name} must be finite, got {value}")
    return value


def check_friction(value: float) -> float:
    """Friction must be >= 0."""
    value = _require_finite("friction", value)
    if value < 0:
        raise ConfigurationOutOfRangeError(f"friction must be >= 0, got {value}")
    return value


def check_dampening(value: float) -> float:
    """Dampening must lie in [0, 1]."""
    value = _require_finite("dampening", value)
    if not 0.0 <= value <= 1.0:
        raise ConfigurationOutOfRangeError(f"dampening must be in [0, 1], got {value}")
    return value


def check_speed_multiplier(value: float) -> float:
    """Speed multiplier must be > 0."""
    value = _require_finite("speed_multiplier", value)
    if value <= 0:
        raise ConfigurationOutOfRangeError(f"speed_multiplier must be > 0, got {value}")
    return value


def check_domain_size(value: float) -> float:
    """Domain size must be > 0."""
    value = _require_finite("domain_size", value)
    if value <= 0:
        raise ConfigurationOutOfRangeError(f"domain_size must be > 0, got {value}")
    return value


@dataclass
class PhysicsProfile:
    """
    Tunable constants of the force, collision and integration model.

    The defaults are the canonical profile from gravsim.constants. Several
    variants of these numbers exist in older builds of the viewer (no
    SCALE_FACTOR, a 1.0× contact buffer, epsilons down to 1e-20); they are all
    expressible as a profile.
    """

    gravitational_constant: float = const.G
    scale_factor: float = const.SCALE_FACTOR
    softening_factor: float = const.SOFTENING_FACTOR
    min_distance_factor: float = const.MIN_DISTANCE_FACTOR
    velocity_epsilon: float = const.VELOCITY_EPSILON
    cull_margin: float = const.CULL_MARGIN
    steps_per_second: float = const.STEPS_PER_SECOND

    @property
    def scaled_g(self) -> float:
        """G × SCALE_FACTOR, the constant actually used in the force law."""
        return self.gravitational_constant * self.scale_factor

    @property
    def physics_step_ms(self) -> float:
        """Wall-clock period of one fixed step [ms]."""
        return 1000.0 / self.steps_per_second

    def validate(self) -> None:
        """
        Raise ConfigurationOutOfRangeError if any constant is unusable.
        """
        for name in ('gravitational_constant', 'scale_factor', 'softening_factor',
                     'min_distance_factor', 'velocity_epsilon', 'cull_margin',
                     'steps_per_second'):
            _require_finite(name, getattr(self, name))

        if self.gravitational_constant < 0 or self.scale_factor < 0:
            raise ConfigurationOutOfRangeError("gravitational_constant and scale_factor must be >= 0")
        if self.softening_factor < 0:
            raise ConfigurationOutOfRangeError(f"softening_factor must be >= 0, got {self.softening_factor}")
        if self.min_distance_factor <= 0:
            raise ConfigurationOutOfRangeError(f"min_distance_factor must be > 0, got {self.min_distance_factor}")
        if self.velocity_epsilon < 0:
            raise ConfigurationOutOfRangeError(f"velocity_epsilon must be >= 0, got {self.velocity_epsilon}")
        if self.cull_margin < 0:
            raise ConfigurationOutOfRangeError(f"cull_margin must be >= 0, got {self.cull_margin}")
        if self.steps_per_second <= 0:
            raise ConfigurationOutOfRangeError(f"steps_per_second must be > 0, got {self.steps_per_second}")


@dataclass
class SimulationParameters:
    """
    Container for all simulation parameters.

    Units are world units (distance), seconds of simulated time and arbitrary
    mass units, matching gravsim.constants.
    """

    # Metadata
    simulation_name: str = "gravsim"
    output_directory: str = "./results"

    # Domain and runtime tunables
    domain_size: float = const.DEFAULT_DOMAIN_SIZE
    friction: float = const.DEFAULT_FRICTION
    dampening: float = const.DEFAULT_DAMPENING
    speed_multiplier: float = const.DEFAULT_SPEED_MULTIPLIER
    paused: bool = False

    profile: PhysicsProfile = field(default_factory=PhysicsProfile)

    # Ring of bodies around the domain centre
    ring_count: int = 5
    ring_radius: float = 300.0
    ring_mass: float = 2000.0
    ring_size: float = 15.0
    ring_speed: float = 2.0

    # Uniform random field
    field_count: int = 0
    field_mass_min: float = 1000.0
    field_mass_max: float = 5000.0
    field_size_min: float = 5.0
    field_size_max: float = 20.0
    field_speed_max: float = 0.0

    # Simulation control
    n_steps: int = 600
    output_interval: int = 10  # steps between recorded frames

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[str] = None

    @property
    def total_particle_count(self) -> int:
        """Particles created by initialize_simulation."""
        return self.ring_count + self.field_count

    def validate(self) -> list:
        """
        Perform sanity checks on configuration parameters.

        Returns:
            List of warning/error messages. Empty list if all checks pass.
        """
        warnings = []

        for name, check in (('domain_size', check_domain_size),
                            ('friction', check_friction),
                            ('dampening', check_dampening),
                            ('speed_multiplier', check_speed_multiplier)):
            try:
                check(getattr(self, name))
            except ConfigurationOutOfRangeError as e:
                warnings.append(f"ERROR: {e}")

        try:
            self.profile.validate()
        except ConfigurationOutOfRangeError as e:
            warnings.append(f"ERROR: {e}")

        if self.ring_count < 0 or self.field_count < 0:
            warnings.append("ERROR: particle counts must be >= 0")

        if self.ring_count > 0:
            if self.ring_mass <= 0:
                warnings.append(f"ERROR: ring mass must be positive, got {self.ring_mass}")
            if self.ring_size < 0:
                warnings.append(f"ERROR: ring size must be >= 0, got {self.ring_size}")
            if self.ring_radius > self.domain_size / 2:
                warnings.append(
                    f"WARNING: ring radius ({self.ring_radius:g}) reaches outside the domain "
                    f"({self.domain_size:g}); bodies may be culled immediately"
                )
            if self.ring_count > 1:
                spacing = 2.0 * self.ring_radius * math.sin(math.pi / self.ring_count)
                contact = 2.0 * self.ring_size * self.profile.min_distance_factor
                if spacing < contact:
                    warnings.append(
                        f"WARNING: ring bodies start in contact (spacing {spacing:.1f} < {contact:.1f})"
                    )

        if self.field_count > 0:
            if self.field_mass_min <= 0 or self.field_mass_min > self.field_mass_max:
                warnings.append("ERROR: field mass range must satisfy 0 < min <= max")
            if self.field_size_min < 0 or self.field_size_min > self.field_size_max:
                warnings.append("ERROR: field size range must satisfy 0 <= min <= max")
            if self.field_speed_max < 0:
                warnings.append("ERROR: field max speed must be >= 0")

        if self.n_steps <= 0:
            warnings.append(f"ERROR: n_steps must be positive, got {self.n_steps}")
        if self.output_interval <= 0:
            warnings.append(f"ERROR: output_interval must be positive, got {self.output_interval}")

        if self.friction * self.profile.physics_step_ms / 1000.0 * self.speed_multiplier >= 1.0:
            warnings.append(
                "WARNING: friction × dt >= 1; every particle will stop after a single step"
            )

        return warnings

    @classmethod
    def from_yaml(cls, filepath: str) -> 'SimulationParameters':
        """
        Load configuration from YAML file.

        Every section is optional; missing keys keep their defaults.

        Args:
            filepath: Path to YAML configuration file

        Returns:
            SimulationParameters object

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        def to_float(value: Any) -> float:
            """Convert value to float, handling YAML quirks with scientific notation."""
            if isinstance(value, str):
                return float(value)
            return float(value)

        def to_int(value: Any) -> int:
            """Convert value to int."""
            return int(value)

        def to_bool(value: Any) -> bool:
            """Convert value to bool."""
            if isinstance(value, str):
                return value.lower() in ('true', 'yes', '1')
            return bool(value)

        config_path = Path(filepath)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}

        defaults = cls()
        profile_defaults = PhysicsProfile()

        domain = config.get('domain', {})
        runtime = config.get('runtime', {})
        profile_data = config.get('physics_profile', {})
        initial = config.get('initial_conditions', {})
        ring = initial.get('ring', {})
        random_field = initial.get('random_field', {})
        control = config.get('simulation_control', {})
        logging_opts = config.get('logging', {})

        profile = PhysicsProfile(
            gravitational_constant=to_float(profile_data.get('gravitational_constant', profile_defaults.gravitational_constant)),
            scale_factor=to_float(profile_data.get('scale_factor', profile_defaults.scale_factor)),
            softening_factor=to_float(profile_data.get('softening_factor', profile_defaults.softening_factor)),
            min_distance_factor=to_float(profile_data.get('min_distance_factor', profile_defaults.min_distance_factor)),
            velocity_epsilon=to_float(profile_data.get('velocity_epsilon', profile_defaults.velocity_epsilon)),
            cull_margin=to_float(profile_data.get('cull_margin', profile_defaults.cull_margin)),
            steps_per_second=to_float(profile_data.get('steps_per_second', profile_defaults.steps_per_second)),
        )

        return cls(
            simulation_name=config.get('simulation_name', defaults.simulation_name),
            output_directory=config.get('output_directory', defaults.output_directory),
            domain_size=to_float(domain.get('size', defaults.domain_size)),
            friction=to_float(runtime.get('friction', defaults.friction)),
            dampening=to_float(runtime.get('dampening', defaults.dampening)),
            speed_multiplier=to_float(runtime.get('speed_multiplier', defaults.speed_multiplier)),
            paused=to_bool(runtime.get('paused', defaults.paused)),
            profile=profile,
            ring_count=to_int(ring.get('count', defaults.ring_count)),
            ring_radius=to_float(ring.get('radius', defaults.ring_radius)),
            ring_mass=to_float(ring.get('mass', defaults.ring_mass)),
            ring_size=to_float(ring.get('size', defaults.ring_size)),
            ring_speed=to_float(ring.get('tangential_speed', defaults.ring_speed)),
            field_count=to_int(random_field.get('count', defaults.field_count)),
            field_mass_min=to_float(random_field.get('mass_min', defaults.field_mass_min)),
            field_mass_max=to_float(random_field.get('mass_max', defaults.field_mass_max)),
            field_size_min=to_float(random_field.get('size_min', defaults.field_size_min)),
            field_size_max=to_float(random_field.get('size_max', defaults.field_size_max)),
            field_speed_max=to_float(random_field.get('speed_max', defaults.field_speed_max)),
            n_steps=to_int(control.get('n_steps', defaults.n_steps)),
            output_interval=to_int(control.get('output_interval_steps', defaults.output_interval)),
            log_level=str(logging_opts.get('level', defaults.log_level)),
            log_format=logging_opts.get('format', defaults.log_format),
            log_file=logging_opts.get('log_file', defaults.log_file),
        )

    def __repr__(self):
        """Human-readable representation."""
        lines = [
            f"Simulation: {self.simulation_name}",
            f"Domain: {self.domain_size:g} x {self.domain_size:g}",
            f"Ring: {self.ring_count} bodies at r={self.ring_radius:g}, "
            f"mass={self.ring_mass:.2e}, size={self.ring_size:g}",
            f"Random field: {self.field_count} particles",
            f"Total particles: {self.total_particle_count}",
            f"friction={self.friction:g}, dampening={self.dampening:g}, "
            f"speed={self.speed_multiplier:g}x",
            f"Steps: {self.n_steps} (dt={self.profile.physics_step_ms:.3f} ms x {self.speed_multiplier:g})",
        ]
        return "\n".join(lines)
