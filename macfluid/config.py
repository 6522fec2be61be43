"""
config.py — Simulation Configuration
=====================================
Dataclasses for the domain and the solver, loadable from YAML:

    domain:
      width: 64
      height: 48
    solver:
      cfl_coefficient: 1.5
      pressure_method: gauss_seidel

Every section is optional; missing keys keep their defaults. Unknown keys
are rejected so that typos do not silently fall back to defaults.
"""

import math
import numbers
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import yaml

from .errors import ConfigurationError, InvalidDimensionError
from .forces import GRAVITY
from .solver import DEFAULT_MAX_ITERATIONS, DEFAULT_TOLERANCE, METHOD_CG, PRESSURE_METHODS


def _build(cls, data: Dict[str, Any], section: str):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigurationError(f"'{section}' must be a mapping, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown keys in '{section}': {', '.join(unknown)}")
    return cls(**data)


@dataclass
class DomainConfig:
    """Simulation domain size, in cell units.

    Attributes:
        width, height: domain extent; the grid has ceil(width) x ceil(height) cells
    """

    width: float = 32.0
    height: float = 32.0

    def validate(self):
        for name in ("width", "height"):
            value = getattr(self, name)
            if (isinstance(value, bool) or not isinstance(value, numbers.Real)
                    or not math.isfinite(value) or value <= 0):
                raise InvalidDimensionError(f"{name} must be positive and finite, got {value!r}")


@dataclass
class SolverConfig:
    """Time integration and pressure solve settings.

    Attributes:
        frame_duration: simulated time advanced per frame
        cfl_coefficient: substep bound, dt <= cfl_coefficient / max speed
        gravity: uniform body force (fx, fy)
        pressure_method: "cg", "gauss_seidel" or "none"
        pressure_tolerance: max divergence left after a projection
        max_pressure_iterations: iteration cap of the pressure solve
        initial_pressure: pressure seeded into every cell on reset
        particles_per_cell: tracers per cell along each axis on reset
        min_velocity: max speed at or below which a substep spans the rest of the frame
        max_substeps: substeps allowed per frame before giving up
    """

    frame_duration: float = 1.0 / 30.0
    cfl_coefficient: float = 2.0
    gravity: Tuple[float, float] = GRAVITY
    pressure_method: str = METHOD_CG
    pressure_tolerance: float = DEFAULT_TOLERANCE
    max_pressure_iterations: int = DEFAULT_MAX_ITERATIONS
    initial_pressure: float = 1.0
    particles_per_cell: int = 4
    min_velocity: float = 1e-9
    max_substeps: int = 10000

    def __post_init__(self):
        self.gravity = tuple(float(g) for g in self.gravity)

    def validate(self):
        if not self.frame_duration > 0:
            raise ConfigurationError("frame_duration must be positive")
        if not self.cfl_coefficient > 0:
            raise ConfigurationError("cfl_coefficient must be positive")
        if len(self.gravity) != 2 or not all(math.isfinite(g) for g in self.gravity):
            raise ConfigurationError(f"gravity must be two finite numbers, got {self.gravity!r}")
        if self.pressure_method not in PRESSURE_METHODS:
            raise ConfigurationError(
                f"Unknown pressure method: {self.pressure_method!r}. Use one of {PRESSURE_METHODS}."
            )
        if not self.pressure_tolerance > 0:
            raise ConfigurationError("pressure_tolerance must be positive")
        if int(self.max_pressure_iterations) < 1:
            raise ConfigurationError("max_pressure_iterations must be at least 1")
        if int(self.particles_per_cell) < 0:
            raise ConfigurationError("particles_per_cell must not be negative")
        if self.min_velocity < 0:
            raise ConfigurationError("min_velocity must not be negative")
        if int(self.max_substeps) < 1:
            raise ConfigurationError("max_substeps must be at least 1")


@dataclass
class SimulationConfig:
    """Everything needed to build a FluidSolver."""

    domain: DomainConfig = field(default_factory=DomainConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)

    def validate(self):
        self.domain.validate()
        self.solver.validate()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationConfig":
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config must be a mapping, got {type(data).__name__}")
        unknown = sorted(set(data) - {"domain", "solver"})
        if unknown:
            raise ConfigurationError(f"Unknown config sections: {', '.join(unknown)}")
        try:
            config = cls(
                domain=_build(DomainConfig, data.get("domain"), "domain"),
                solver=_build(SolverConfig, data.get("solver"), "solver"),
            )
            config.validate()
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
        return config

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SimulationConfig":
        """Load and validate a YAML config file."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Could not parse {path}: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["solver"]["gravity"] = list(self.solver.gravity)
        return data

    def save(self, path: Union[str, Path]):
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)
