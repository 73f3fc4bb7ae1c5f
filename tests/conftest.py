"""
Pytest configuration for the gravity/collision simulation tests.

This file ensures the gravsim package is importable from tests without
installing it, and provides small shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add src/ to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / 'src'))

from gravsim.config import PhysicsProfile  # noqa: E402
from gravsim.state import ParticleSnapshot, SimulationState  # noqa: E402


@pytest.fixture
def profile():
    """Canonical physics profile."""
    return PhysicsProfile()


@pytest.fixture
def make_state():
    """Build a SimulationState from (x, y, vx, vy, mass, radius) tuples."""
    def _make(rows, domain_size=5000.0, friction=0.0, dampening=0.0, speed_multiplier=1.0):
        snapshots = [
            ParticleSnapshot(x=x, y=y, vx=vx, vy=vy, mass=m, radius=r)
            for (x, y, vx, vy, m, r) in rows
        ]
        state = SimulationState.from_snapshots(snapshots, domain_size=domain_size)
        state.friction = friction
        state.dampening = dampening
        state.speed_multiplier = speed_multiplier
        return state
    return _make
