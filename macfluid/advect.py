"""
advect.py — Semi-Lagrangian Advection
======================================
This is what makes the fluid look like it's *actually flowing*.

The algorithm (per staggered sample):
  1. Start at the face where the sample lives.
  2. Trace BACKWARD along the velocity field by one timestep (dt).
     → "Where did the fluid at this face come FROM?"
  3. Clamp that position into the domain.
  4. Sample the OLD velocity field there (bilinear interpolation).
  5. Stage the matching component on the cell.

X-samples and Y-samples live on different faces, so they are traced from
different positions and advected independently.

Every sample reads the same frozen snapshot of the old field. New values go
into each cell's staged buffer and only become current once every cell has
been staged (stage → commit), so no update ever sees a half-updated field.

Key reference: Jos Stam, "Stable Fluids" (SIGGRAPH 1999)
"""

import numpy as np

from .cell import X, Y
from .grid import MACGrid


def face_positions(grid: MACGrid) -> tuple[np.ndarray, np.ndarray]:
    """
    Continuous positions of every X-face and Y-face sample, in flat cell order.

    Returns:
        (x_faces, y_faces), each of shape (cols * rows, 2)
          x_faces[i] = (col,       row + 0.5)
          y_faces[i] = (col + 0.5, row      )
    """
    cols, rows = grid.shape
    col, row = np.meshgrid(
        np.arange(cols, dtype=np.float64),
        np.arange(rows, dtype=np.float64),
        indexing='xy'
    )
    col, row = col.ravel(), row.ravel()
    x_faces = np.column_stack((col, row + 0.5))
    y_faces = np.column_stack((col + 0.5, row))
    return x_faces, y_faces


def advect_velocity(grid: MACGrid, dt: float):
    """
    Advect the velocity field through itself (self-advection).

    Modifies: every cell's staged_velocity, then velocity (via commit)
    """
    # Freeze the old field once; every trace and sample reads this snapshot
    snapshot = grid.velocity_field()
    x_faces, y_faces = face_positions(grid)

    # ── X-faces ───────────────────────────────────────────────────────────
    x_back = grid.clamp_position(x_faces - dt * grid.sample_velocity(x_faces, snapshot))
    staged_u = grid.sample_velocity(x_back, snapshot)[:, X]

    # ── Y-faces ───────────────────────────────────────────────────────────
    y_back = grid.clamp_position(y_faces - dt * grid.sample_velocity(y_faces, snapshot))
    staged_v = grid.sample_velocity(y_back, snapshot)[:, Y]

    for cell, su, sv in zip(grid, staged_u, staged_v):
        cell.staged_velocity[X] = float(su)
        cell.staged_velocity[Y] = float(sv)

    # Commit only after every cell is staged
    for cell in grid:
        cell.commit_staged_velocity()


def advect_particles(grid: MACGrid, particles: np.ndarray, dt: float) -> np.ndarray:
    """
    Move massless tracers one step along the current velocity field.

    Particles are visualization state only: they never feed back into the
    grid. Positions that would leave the domain are clamped to its edge.

    Returns:
        New (n, 2) array of particle positions.
    """
    if len(particles) == 0:
        return np.array(particles, dtype=np.float64).reshape(0, 2)
    moved = particles + dt * grid.sample_velocity(particles)
    return grid.clamp_position(moved)
