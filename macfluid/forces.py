"""
forces.py — External Body Forces
=================================
Applies uniform body forces (gravity) to the velocity field each substep.

The force is added to both staggered components of every cell, fluid or
solid alike. There is no mass weighting: the fluid has unit density
everywhere, so force and acceleration are the same thing here.
"""

import numpy as np

from .cell import X, Y
from .grid import MACGrid


# ── Default body force ────────────────────────────────────────────────────────
GRAVITY = (0.0, -0.098)    # cells / time unit²


def apply_global_velocity(grid: MACGrid, velocity):
    """Add the same (du, dv) to every cell's X and Y velocity samples."""
    du, dv = (float(c) for c in np.asarray(velocity, dtype=np.float64).reshape(2))
    for cell in grid:
        cell.velocity[X] += du
        cell.velocity[Y] += dv


def apply_body_force(grid: MACGrid, force=GRAVITY, dt: float = 1.0):
    """
    Integrate a uniform body force over one timestep: v += force * dt.

    Args:
        force : (fx, fy) acceleration, gravity by default
        dt    : Timestep
    """
    apply_global_velocity(grid, np.asarray(force, dtype=np.float64) * dt)
