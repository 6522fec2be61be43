"""
renderer.py — What the Solver Draws Into
=========================================
A renderer receives the finished frame: the grid and the particle positions.
Both are handed over for reading only; a renderer must not change solver
state.
"""

from abc import ABC, abstractmethod

import numpy as np

from .grid import MACGrid


class FluidRenderer(ABC):
    """Anything FluidSolver.draw() can hand a ready frame to."""

    @abstractmethod
    def draw(self, grid: MACGrid, particles: np.ndarray) -> None:
        """
        Present one frame.

        Args:
            grid      : The solver's current grid
            particles : (n, 2) read-only array of tracer positions
        """
