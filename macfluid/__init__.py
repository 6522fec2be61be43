"""
macfluid/ — 2D MAC-Grid Fluid Solver
=====================================
Exports the main interfaces.

Renderers import: FluidRenderer, MACGrid
Applications import: FluidSolver, Signal, SimulationConfig
"""

from .cell import Cell, CellType, Neighbor, NO_NEIGHBOR, X, Y
from .config import DomainConfig, SimulationConfig, SolverConfig
from .errors import (ConfigurationError, FluidSimError, InvalidDimensionError,
                     SimulationError)
from .events import Signal
from .grid import MACGrid
from .renderer import FluidRenderer
from .simulation import FluidSolver
from .solver import METHOD_CG, METHOD_GAUSS_SEIDEL, METHOD_NONE

__all__ = [
    "Cell", "CellType", "Neighbor", "NO_NEIGHBOR", "X", "Y",
    "DomainConfig", "SimulationConfig", "SolverConfig",
    "ConfigurationError", "FluidSimError", "InvalidDimensionError", "SimulationError",
    "Signal", "MACGrid", "FluidRenderer", "FluidSolver",
    "METHOD_CG", "METHOD_GAUSS_SEIDEL", "METHOD_NONE",
]
