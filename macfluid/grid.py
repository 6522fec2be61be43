"""
grid.py — 2D MAC (Marker-and-Cell) Staggered Grid
==================================================
The foundation of the entire simulation.

Layout on a single cell (cell units, dx = dy = 1):
  - Pressure lives at the CELL CENTER       → (col + 0.5, row + 0.5)
  - X-velocity lives on the NEGATIVE-X FACE → (col,       row + 0.5)
  - Y-velocity lives on the NEGATIVE-Y FACE → (col + 0.5, row      )

Cells are stored in one flat, row-major list (index = row * cols + col).
Each cell links to its +X, +Y and +X+Y neighbors by flat index, so the
grid can be copied or rebuilt without leaving stale references behind.

Bulk operations (sampling, divergence) pull the per-cell values into numpy
arrays indexed [col, row] and work on those.
"""

import math
from typing import Optional

import numpy as np

from .cell import Cell, CellType, Neighbor, NO_NEIGHBOR, X, Y
from .errors import InvalidDimensionError, SimulationError


def _bilinear_interpolate(field: np.ndarray, x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """
    Bilinear interpolation of a 2D sample array at fractional indices.

    field[i, j] is the sample at index-space position (i, j). Query
    positions are clamped to [0, n-1] on each axis, so queries past the
    last sample take the edge value instead of extrapolating.
    """
    nx, ny = field.shape

    x = np.clip(x, 0.0, nx - 1)
    y = np.clip(y, 0.0, ny - 1)

    x0 = np.floor(x).astype(np.intp)
    y0 = np.floor(y).astype(np.intp)
    x1 = np.minimum(x0 + 1, nx - 1)
    y1 = np.minimum(y0 + 1, ny - 1)

    tx = x - x0
    ty = y - y0

    c00 = field[x0, y0]
    c10 = field[x1, y0]
    c01 = field[x0, y1]
    c11 = field[x1, y1]

    c0 = c00 * (1 - tx) + c10 * tx
    c1 = c01 * (1 - tx) + c11 * tx
    return c0 * (1 - ty) + c1 * ty


def _validate_dimension(name: str, value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidDimensionError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(value) or value <= 0.0:
        raise InvalidDimensionError(f"{name} must be positive and finite, got {value}")
    return value


class MACGrid:
    """
    Dense 2D array of Cells with forward-neighbor links.

    Usage:
        grid = MACGrid(8, 8)
        grid[3, 2].velocity[X] = 1.0
        grid.get_velocity((3.0, 2.5))   # → array([1.0, ...])
    """

    def __init__(self, width: float, height: float):
        """
        Args:
            width  : Domain width in cell units (columns = ceil(width))
            height : Domain height in cell units (rows = ceil(height))
        """
        self.width = _validate_dimension("width", width)
        self.height = _validate_dimension("height", height)

        self.cols = math.ceil(self.width)
        self.rows = math.ceil(self.height)

        self.cells = [Cell() for _ in range(self.cols * self.rows)]
        self._link_neighbors()

    def _link_neighbors(self):
        cols, rows = self.cols, self.rows
        for row in range(rows):
            for col in range(cols):
                cell = self.cells[row * cols + col]
                has_x = col + 1 < cols
                has_y = row + 1 < rows
                cell.neighbors[Neighbor.POS_X] = row * cols + col + 1 if has_x else NO_NEIGHBOR
                cell.neighbors[Neighbor.POS_Y] = (row + 1) * cols + col if has_y else NO_NEIGHBOR
                cell.neighbors[Neighbor.POS_XY] = (
                    (row + 1) * cols + col + 1 if has_x and has_y else NO_NEIGHBOR
                )
                cell.all_neighbors_present = has_x and has_y

    # ── Indexed access ────────────────────────────────────────────────────

    @property
    def shape(self) -> tuple[int, int]:
        """(cols, rows) — the shape of every array this grid hands out."""
        return self.cols, self.rows

    def __len__(self):
        return len(self.cells)

    def __iter__(self):
        return iter(self.cells)

    def index(self, col: int, row: int) -> int:
        if not (0 <= col < self.cols and 0 <= row < self.rows):
            raise IndexError(f"cell ({col}, {row}) outside {self.cols}x{self.rows} grid")
        return row * self.cols + col

    def __getitem__(self, key) -> Cell:
        """grid[col, row] (fractional coordinates are floored) or grid[flat_index]."""
        if isinstance(key, tuple):
            col, row = key
            return self.cells[self.index(math.floor(col), math.floor(row))]
        return self.cells[key]

    def neighbor(self, cell: Cell, which: Neighbor) -> Optional[Cell]:
        """The linked neighbor of `cell`, or None at the grid edge."""
        link = cell.neighbors[which]
        if link == NO_NEIGHBOR:
            return None
        return self.cells[link]

    def copy(self) -> "MACGrid":
        """Same-sized grid with every cell's values copied and links rebuilt."""
        grid = MACGrid(self.width, self.height)
        for target, source in zip(grid.cells, self.cells):
            target.assign(source)
        return grid

    # ── Bulk field access ─────────────────────────────────────────────────

    def _gather(self, values) -> np.ndarray:
        flat = np.fromiter(values, dtype=np.float64, count=len(self.cells))
        return flat.reshape(self.rows, self.cols).T.copy()

    def velocity_field(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Snapshot of the staggered velocity as two (cols, rows) arrays.
        u[c, r] is the X-face sample of cell (c, r), v[c, r] its Y-face sample.
        """
        u = self._gather(c.velocity[X] for c in self.cells)
        v = self._gather(c.velocity[Y] for c in self.cells)
        return u, v

    def set_velocity_field(self, u: np.ndarray, v: np.ndarray):
        u_flat = np.asarray(u, dtype=np.float64).T.ravel()
        v_flat = np.asarray(v, dtype=np.float64).T.ravel()
        for cell, cu, cv in zip(self.cells, u_flat, v_flat):
            cell.velocity[X] = float(cu)
            cell.velocity[Y] = float(cv)

    def pressure_field(self) -> np.ndarray:
        return self._gather(c.pressure for c in self.cells)

    def set_pressure_field(self, pressure: np.ndarray):
        for cell, p in zip(self.cells, np.asarray(pressure, dtype=np.float64).T.ravel()):
            cell.pressure = float(p)

    def fluid_mask(self) -> np.ndarray:
        flat = np.fromiter((c.is_fluid for c in self.cells), dtype=bool, count=len(self.cells))
        return flat.reshape(self.rows, self.cols).T.copy()

    # ── Sampling ──────────────────────────────────────────────────────────

    def clamp_position(self, positions) -> np.ndarray:
        """Clip positions (shape (2,) or (n, 2)) into [0, width] x [0, height]."""
        positions = np.array(positions, dtype=np.float64)
        positions[..., 0] = np.clip(positions[..., 0], 0.0, self.width)
        positions[..., 1] = np.clip(positions[..., 1], 0.0, self.height)
        return positions

    def sample_velocity(self, positions, field=None) -> np.ndarray:
        """
        Interpolated velocity at arbitrary continuous positions.

        Each component is bilinearly interpolated from its own staggered
        samples: X from (col, row + 0.5), Y from (col + 0.5, row).

        Args:
            positions : shape (2,) or (n, 2), in cell units
            field     : optional (u, v) snapshot to sample instead of the
                        grid's current values

        Returns:
            Array of the same shape as `positions`.
        """
        points = self.clamp_position(positions)
        if not np.isfinite(points).all():
            raise SimulationError("Cannot sample velocity at a non-finite position")
        single = points.ndim == 1
        points = np.atleast_2d(points)

        u, v = field if field is not None else self.velocity_field()
        px, py = points[:, 0], points[:, 1]

        vel = np.empty_like(points)
        vel[:, X] = _bilinear_interpolate(u, px, py - 0.5)
        vel[:, Y] = _bilinear_interpolate(v, px - 0.5, py)
        return vel[0] if single else vel

    def get_velocity(self, position) -> np.ndarray:
        """Interpolated velocity vector at a single position."""
        return self.sample_velocity(np.asarray(position, dtype=np.float64).reshape(2))

    # ── Diagnostics ───────────────────────────────────────────────────────

    def get_velocity_divergence(self, col: int, row: int) -> float:
        """
        Net outflow of cell (col, row).

        div = (u_out - u_in) / dx + (v_out - v_in) / dy, with the outflow
        samples taken from the +X and +Y neighbors. A missing neighbor is a
        wall: zero outflow through that face.
        """
        cell = self[col, row]
        pos_x = self.neighbor(cell, Neighbor.POS_X)
        pos_y = self.neighbor(cell, Neighbor.POS_Y)
        u_out = pos_x.velocity[X] if pos_x is not None else 0.0
        v_out = pos_y.velocity[Y] if pos_y is not None else 0.0
        return (u_out - cell.velocity[X]) + (v_out - cell.velocity[Y])

    def divergence_field(self) -> np.ndarray:
        """get_velocity_divergence for every cell, as a (cols, rows) array."""
        u, v = self.velocity_field()
        u_out = np.zeros_like(u)
        v_out = np.zeros_like(v)
        u_out[:-1, :] = u[1:, :]
        v_out[:, :-1] = v[:, 1:]
        return (u_out - u) + (v_out - v)

    def get_max_velocity(self) -> np.ndarray:
        """
        The (u, v) sample pair with the largest magnitude.
        Used to bound the time step; a zero vector for an empty grid.
        """
        if not self.cells:
            return np.zeros(2)
        u, v = self.velocity_field()
        speed = np.hypot(u, v)
        c, r = np.unravel_index(np.argmax(speed), speed.shape)
        return np.array([u[c, r], v[c, r]])

    # ── Boundary conditions ───────────────────────────────────────────────

    def set_boundary(self):
        """
        Enforce no-penetration at the four outer walls.

        - Bottom row:    Y-velocity = 0
        - Top row:       X and Y velocity = 0, cells become SOLID
        - Left column:   X-velocity = 0
        - Right column:  X and Y velocity = 0, cells become SOLID

        The top row's Y-face and the right column's X-face are the walls
        between the fluid interior and the solid ring.
        """
        rows, cols = self.rows, self.cols

        for col in range(cols):
            self[col, 0].velocity[Y] = 0.0
            top = self[col, rows - 1]
            top.velocity[X] = 0.0
            top.velocity[Y] = 0.0
            top.cell_type = CellType.SOLID

        for row in range(rows):
            self[0, row].velocity[X] = 0.0
            right = self[cols - 1, row]
            right.velocity[X] = 0.0
            right.velocity[Y] = 0.0
            right.cell_type = CellType.SOLID

    def __repr__(self):
        max_div = np.abs(self.divergence_field()).max()
        max_vel = np.linalg.norm(self.get_max_velocity())
        fluid = int(self.fluid_mask().sum())
        return (
            f"MACGrid({self.cols}x{self.rows}, fluid cells={fluid})\n"
            f"  velocity  : max_magnitude={max_vel:.4f}\n"
            f"  divergence: max={max_div:.6f} (target: ~0)"
        )
