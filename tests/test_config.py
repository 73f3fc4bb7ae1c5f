"""
Tests for configuration loading and range checks.
"""

from pathlib import Path

import pytest
import yaml

from gravsim import constants as const
from gravsim.config import (
    PhysicsProfile,
    SimulationParameters,
    check_dampening,
    check_domain_size,
    check_friction,
    check_speed_multiplier,
)
from gravsim.errors import ConfigurationOutOfRangeError

DEFAULT_CONFIG = Path(__file__).parent.parent / 'configs' / 'default_config.yaml'


class TestRangeChecks:

    def test_accepts_boundaries(self):
        assert check_friction(0) == 0.0
        assert check_dampening(0.0) == 0.0
        assert check_dampening(1.0) == 1.0
        assert check_speed_multiplier("2.5") == 2.5
        assert check_domain_size(1) == 1.0

    @pytest.mark.parametrize("check, value", [
        (check_friction, -1e-9),
        (check_dampening, 1.0001),
        (check_dampening, -0.0001),
        (check_speed_multiplier, 0.0),
        (check_domain_size, -10.0),
        (check_domain_size, float('inf')),
        (check_friction, None),
    ])
    def test_rejects(self, check, value):
        with pytest.raises(ConfigurationOutOfRangeError):
            check(value)


class TestPhysicsProfile:

    def test_canonical_values(self):
        profile = PhysicsProfile()
        assert profile.scaled_g == pytest.approx(6.6743e-3)
        assert profile.physics_step_ms == pytest.approx(1000.0 / 60.0)
        assert profile.min_distance_factor == 1.5
        assert profile.cull_margin == 50.0
        profile.validate()

    @pytest.mark.parametrize("kwargs", [
        dict(min_distance_factor=0.0),
        dict(steps_per_second=0.0),
        dict(softening_factor=-0.5),
        dict(velocity_epsilon=float('nan')),
        dict(cull_margin=-1.0),
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigurationOutOfRangeError):
            PhysicsProfile(**kwargs).validate()


class TestSimulationParameters:

    def test_defaults_validate_cleanly(self):
        params = SimulationParameters()
        assert params.validate() == []
        assert params.total_particle_count == 5
        assert params.domain_size == const.DEFAULT_DOMAIN_SIZE

    def test_load_default_config(self):
        params = SimulationParameters.from_yaml(str(DEFAULT_CONFIG))
        assert params.simulation_name == "five_body_ring"
        assert params.domain_size == 5000.0
        assert params.friction == 0.01
        assert params.dampening == 0.05
        assert params.ring_count == 5
        assert params.ring_speed == 2.0
        assert params.output_interval == 10
        assert params.log_file is None
        assert params.profile.scale_factor == 1e8
        assert params.validate() == []

    def test_partial_config_keeps_defaults(self, tmp_path):
        path = tmp_path / 'partial.yaml'
        path.write_text(yaml.safe_dump({'runtime': {'friction': 0.5}}))
        params = SimulationParameters.from_yaml(str(path))
        assert params.friction == 0.5
        assert params.dampening == const.DEFAULT_DAMPENING
        assert params.profile == PhysicsProfile()

    def test_empty_config(self, tmp_path):
        path = tmp_path / 'empty.yaml'
        path.write_text("")
        params = SimulationParameters.from_yaml(str(path))
        assert params.n_steps == 600

    def test_string_scientific_notation(self, tmp_path):
        path = tmp_path / 'sci.yaml'
        path.write_text("physics_profile:\n  scale_factor: '1e6'\n")
        params = SimulationParameters.from_yaml(str(path))
        assert params.profile.scale_factor == 1e6

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SimulationParameters.from_yaml(str(tmp_path / 'nope.yaml'))

    def test_validate_reports_errors(self):
        params = SimulationParameters(dampening=2.0, friction=-1.0, n_steps=0)
        problems = params.validate()
        errors = [p for p in problems if p.startswith("ERROR")]
        assert len(errors) == 3

    def test_validate_warns_on_touching_ring(self):
        params = SimulationParameters(ring_count=50, ring_radius=100.0)
        problems = params.validate()
        assert any("start in contact" in p for p in problems)
        assert not any(p.startswith("ERROR") for p in problems)

    def test_validate_warns_on_heavy_friction(self):
        params = SimulationParameters(friction=120.0)
        assert any("friction" in p and p.startswith("WARNING") for p in params.validate())

    def test_repr(self):
        assert "Domain: 5000 x 5000" in repr(SimulationParameters())

    def test_repr_reports_total_particle_count(self):
        params = SimulationParameters(ring_count=4, field_count=9)
        assert params.total_particle_count == 13
        assert "Total particles: 13" in repr(params)
