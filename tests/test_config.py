import numpy as np
import pytest

from macfluid import (ConfigurationError, DomainConfig, InvalidDimensionError,
                      SimulationConfig, SolverConfig)


def test_defaults_are_valid():
    config = SimulationConfig()
    config.validate()
    assert config.domain.width == 32.0
    assert config.solver.frame_duration == pytest.approx(1 / 30)
    assert config.solver.cfl_coefficient == 2.0
    assert config.solver.gravity == (0.0, -0.098)
    assert config.solver.pressure_method == "cg"


def test_from_dict_fills_in_defaults():
    config = SimulationConfig.from_dict({"solver": {"cfl_coefficient": 1.5, "gravity": [0, -1]}})
    assert config.domain == DomainConfig()
    assert config.solver.cfl_coefficient == 1.5
    assert config.solver.gravity == (0.0, -1.0)


def test_empty_dict():
    assert SimulationConfig.from_dict({}) == SimulationConfig()
    assert SimulationConfig.from_dict(None) == SimulationConfig()


@pytest.mark.parametrize("data", [
    {"domian": {}},
    {"domain": {"depth": 3}},
    {"solver": {"cfl": 2}},
])
def test_unknown_keys_rejected(data):
    with pytest.raises(ConfigurationError):
        SimulationConfig.from_dict(data)


@pytest.mark.parametrize("domain", [{"width": 0}, {"height": -3}, {"width": "big"}, {"width": True}])
def test_bad_domain(domain):
    with pytest.raises(InvalidDimensionError):
        SimulationConfig.from_dict({"domain": domain})


def test_numpy_scalar_domain_is_valid():
    DomainConfig(width=np.int64(16), height=np.float32(9.5)).validate()


@pytest.mark.parametrize("solver", [
    {"frame_duration": 0},
    {"cfl_coefficient": -1},
    {"pressure_method": "multigrid"},
    {"pressure_tolerance": 0},
    {"max_pressure_iterations": 0},
    {"particles_per_cell": -1},
    {"max_substeps": 0},
    {"gravity": [0, 1, 2]},
    {"gravity": ["up", "down"]},
])
def test_bad_solver(solver):
    with pytest.raises(ConfigurationError):
        SimulationConfig.from_dict({"solver": solver})


def test_section_must_be_mapping():
    with pytest.raises(ConfigurationError):
        SimulationConfig.from_dict({"solver": [1, 2]})


def test_yaml_round_trip(tmp_path):
    config = SimulationConfig(
        domain=DomainConfig(width=20, height=10.5),
        solver=SolverConfig(pressure_method="gauss_seidel", gravity=(0.1, -0.2)),
    )
    path = tmp_path / "sim.yaml"
    config.save(path)
    assert SimulationConfig.from_yaml(path) == config


def test_yaml_file(tmp_path):
    path = tmp_path / "sim.yaml"
    path.write_text("domain:\n  width: 12\nsolver:\n  max_pressure_iterations: 50\n")
    config = SimulationConfig.from_yaml(path)
    assert config.domain.width == 12
    assert config.domain.height == 32.0
    assert config.solver.max_pressure_iterations == 50


def test_missing_yaml(tmp_path):
    with pytest.raises(ConfigurationError):
        SimulationConfig.from_yaml(tmp_path / "nope.yaml")


def test_broken_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("domain: [unclosed\n")
    with pytest.raises(ConfigurationError):
        SimulationConfig.from_yaml(path)
