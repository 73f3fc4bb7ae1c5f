"""
Tests for particle snapshots and the simulation arena.
"""

import numpy as np
import pytest

from gravsim.errors import InvalidParticleError
from gravsim.state import ParticleSnapshot, SimulationState


class TestParticleSnapshot:

    def test_defaults(self):
        p = ParticleSnapshot(x=1, y=2)
        assert (p.vx, p.vy, p.ax, p.ay) == (0.0, 0.0, 0.0, 0.0)
        assert p.mass == 1.0
        assert p.radius == 0.0
        assert isinstance(p.x, float)

    @pytest.mark.parametrize("kwargs", [
        dict(mass=0.0),
        dict(mass=-1.0),
        dict(radius=-0.1),
        dict(vx=float('inf')),
        dict(ay=float('nan')),
        dict(mass="heavy"),
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(InvalidParticleError):
            ParticleSnapshot(x=0.0, y=0.0, **kwargs)

    def test_is_also_value_error(self):
        with pytest.raises(ValueError):
            ParticleSnapshot(x=float('nan'), y=0.0)

    def test_immutable(self):
        p = ParticleSnapshot(x=0.0, y=0.0)
        with pytest.raises(AttributeError):
            p.x = 5.0

    def test_from_dict_size_alias(self):
        p = ParticleSnapshot.from_dict({'x': 1.0, 'y': 2.0, 'mass': 3.0, 'size': 4.0})
        assert p.radius == 4.0
        assert p.vx == 0.0

    def test_from_dict_missing_field(self):
        with pytest.raises(InvalidParticleError, match="mass"):
            ParticleSnapshot.from_dict({'x': 1.0, 'y': 2.0, 'radius': 1.0})

    def test_to_dict_keys(self):
        d = ParticleSnapshot(x=1.0, y=2.0, mass=3.0, radius=4.0).to_dict()
        assert set(d) == {'x', 'y', 'vx', 'vy', 'ax', 'ay', 'mass', 'radius'}
        assert ParticleSnapshot.from_dict(d) == ParticleSnapshot(x=1.0, y=2.0, mass=3.0, radius=4.0)


class TestSimulationState:

    def test_empty_arena(self):
        state = SimulationState()
        assert state.n_total == 0
        assert state.positions.shape == (0, 2)
        assert state.to_snapshots() == []

    def test_from_snapshots(self):
        snaps = [
            ParticleSnapshot(x=1.0, y=2.0, vx=3.0, vy=4.0, mass=5.0, radius=6.0),
            ParticleSnapshot(x=7.0, y=8.0, mass=9.0),
        ]
        state = SimulationState.from_snapshots(snaps, domain_size=100.0)
        assert state.n_total == 2
        assert state.domain_size == 100.0
        np.testing.assert_array_equal(state.positions, [[1.0, 2.0], [7.0, 8.0]])
        np.testing.assert_array_equal(state.velocities[0], [3.0, 4.0])
        np.testing.assert_array_equal(state.masses, [5.0, 9.0])
        assert state.to_snapshots() == snaps

    def test_snapshots_do_not_alias_arena(self):
        state = SimulationState.from_snapshots([ParticleSnapshot(x=1.0, y=1.0)])
        snap = state.snapshot_at(0)
        state.positions[0, 0] = 50.0
        assert snap.x == 1.0

    def test_load_snapshots_keeps_tunables(self):
        state = SimulationState.from_snapshots([ParticleSnapshot(x=1.0, y=1.0)])
        state.friction = 0.4
        state.time = 3.0
        state.load_snapshots([ParticleSnapshot(x=2.0, y=2.0), ParticleSnapshot(x=3.0, y=3.0)])
        assert state.n_total == 2
        assert state.friction == 0.4
        assert state.time == 3.0

    def test_keep_compacts_in_order(self):
        state = SimulationState.from_snapshots(
            [ParticleSnapshot(x=float(i), y=0.0, mass=float(i + 1)) for i in range(4)]
        )
        removed = state.keep(np.array([True, False, True, False]))
        assert removed == 2
        np.testing.assert_array_equal(state.masses, [1.0, 3.0])
        assert state.accelerations.shape == (2, 2)

    def test_keep_all_is_noop(self):
        state = SimulationState.from_snapshots([ParticleSnapshot(x=1.0, y=1.0)])
        positions = state.positions
        assert state.keep(np.array([True])) == 0
        assert state.positions is positions

    def test_repr(self):
        assert "Particles: 0" in repr(SimulationState())
