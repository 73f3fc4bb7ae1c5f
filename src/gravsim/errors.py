"""
Exception types raised at the simulation's ingestion and configuration
boundaries. Nothing in here is raised from inside a tick.
"""


class GravSimError(Exception):
    """Base class for all gravsim errors."""


class InvalidParticleError(GravSimError, ValueError):
    """Particle data that must never enter the simulation (mass <= 0, NaN, ...)."""


class ConfigurationOutOfRangeError(GravSimError, ValueError):
    """A tunable was set outside its allowed range."""
