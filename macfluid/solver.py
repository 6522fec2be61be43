"""
solver.py — Pressure Projection
================================
The pressure projection step enforces INCOMPRESSIBILITY:
  div(v) = 0 in every fluid cell

After advection and body forces, the velocity field is generally NOT
divergence-free (fluid "piles up" in some cells). We fix this by:
  1. Computing the divergence of the current velocity field
  2. Solving a discrete Poisson equation for pressure
  3. Applying the pressure gradient to the face velocities

Which faces take part
---------------------
A face is OPEN when the two cells it separates both exist and are FLUID.
Every other face (grid edge, or touching a SOLID cell) is a wall: it carries
no flux in the divergence and the pressure gradient never changes it. This
folds the no-flow wall condition into the linear system itself, so the wall
zeroing done afterwards by MACGrid.set_boundary() does not undo the solve.

The linear system
-----------------
For a fluid cell i with k_i open faces:

    dt * (k_i * p_i - sum of p_j across open faces) = -div_i

i.e. A p = b with A = dt * (negative Laplacian, wall terms dropped) and
b = -divergence. A is symmetric positive semi-definite (constant pressure is
in its null space for an enclosed region), which is fine for both solvers
because the open-face divergence of an enclosed region always sums to zero.

After the gradient is applied the remaining divergence in cell i is exactly
-(b - A p)_i, so the solver residual IS the leftover divergence.

The method switch lives here: "cg" assembles a scipy.sparse matrix and runs
conjugate gradients, "gauss_seidel" relaxes the same operator in place,
"none" skips projection entirely.
"""

import logging
import time

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from .errors import ConfigurationError, SimulationError
from .grid import MACGrid

logger = logging.getLogger(__name__)


# ── Method switch ─────────────────────────────────────────────────────────────
METHOD_CG = "cg"
METHOD_GAUSS_SEIDEL = "gauss_seidel"
METHOD_NONE = "none"
PRESSURE_METHODS = (METHOD_CG, METHOD_GAUSS_SEIDEL, METHOD_NONE)

DEFAULT_TOLERANCE = 1e-6
DEFAULT_MAX_ITERATIONS = 500


def open_faces(fluid: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Which staggered faces are open, given the (cols, rows) fluid mask.

    open_x[c, r] refers to the X-face owned by cell (c, r), i.e. the face
    between (c-1, r) and (c, r). open_y[c, r] likewise for (c, r-1)/(c, r).
    """
    open_x = np.zeros_like(fluid, dtype=bool)
    open_y = np.zeros_like(fluid, dtype=bool)
    open_x[1:, :] = fluid[1:, :] & fluid[:-1, :]
    open_y[:, 1:] = fluid[:, 1:] & fluid[:, :-1]
    return open_x, open_y


def fluid_divergence(u: np.ndarray, v: np.ndarray,
                     open_x: np.ndarray, open_y: np.ndarray) -> np.ndarray:
    """Divergence of every cell, counting flux through open faces only."""
    flux_x = np.where(open_x, u, 0.0)
    flux_y = np.where(open_y, v, 0.0)
    out_x = np.zeros_like(flux_x)
    out_y = np.zeros_like(flux_y)
    out_x[:-1, :] = flux_x[1:, :]
    out_y[:, :-1] = flux_y[:, 1:]
    return (out_x - flux_x) + (out_y - flux_y)


def _face_counts(open_x: np.ndarray, open_y: np.ndarray) -> np.ndarray:
    """Number of open faces around each cell (the diagonal of A / dt)."""
    k = open_x.astype(np.float64) + open_y
    k[:-1, :] += open_x[1:, :]
    k[:, :-1] += open_y[:, 1:]
    return k


def _neighbor_sum(p: np.ndarray, open_x: np.ndarray, open_y: np.ndarray) -> np.ndarray:
    """Sum of neighbor pressures across open faces."""
    s = np.zeros_like(p)
    s[1:, :] += np.where(open_x[1:, :], p[:-1, :], 0.0)     # -X neighbor
    s[:-1, :] += np.where(open_x[1:, :], p[1:, :], 0.0)     # +X neighbor
    s[:, 1:] += np.where(open_y[:, 1:], p[:, :-1], 0.0)     # -Y neighbor
    s[:, :-1] += np.where(open_y[:, 1:], p[:, 1:], 0.0)     # +Y neighbor
    return s


def apply_poisson_operator(p: np.ndarray, open_x: np.ndarray, open_y: np.ndarray,
                           dt: float) -> np.ndarray:
    """Matrix-free A @ p on the (cols, rows) layout."""
    return dt * (_face_counts(open_x, open_y) * p - _neighbor_sum(p, open_x, open_y))


def assemble_poisson_matrix(open_x: np.ndarray, open_y: np.ndarray,
                            dt: float) -> tuple[sp.csr_matrix, np.ndarray]:
    """
    Assemble A as a sparse matrix over the cells that have open faces.

    Returns:
        (A, ids) where ids[c, r] is the unknown index of cell (c, r),
        or -1 if the cell does not take part in the solve.
    """
    k = _face_counts(open_x, open_y)
    active = k > 0
    n = int(active.sum())

    ids = np.full(k.shape, -1, dtype=np.intp)
    ids[active] = np.arange(n)

    row_idx = [ids[active]]
    col_idx = [ids[active]]
    values = [dt * k[active]]

    # Each open face couples the two cells it separates, symmetrically
    pairs = (
        (ids[:-1, :][open_x[1:, :]], ids[1:, :][open_x[1:, :]]),
        (ids[:, :-1][open_y[:, 1:]], ids[:, 1:][open_y[:, 1:]]),
    )
    for a, b in pairs:
        row_idx += [a, b]
        col_idx += [b, a]
        values += [np.full(len(a), -dt), np.full(len(a), -dt)]

    A = sp.coo_matrix(
        (np.concatenate(values), (np.concatenate(row_idx), np.concatenate(col_idx))),
        shape=(n, n)
    ).tocsr()
    return A, ids


def _max_residual(p, rhs, open_x, open_y, dt, active) -> float:
    if not active.any():
        return 0.0
    r = rhs - apply_poisson_operator(p, open_x, open_y, dt)
    return float(np.abs(r[active]).max())


def _solve_cg(p0: np.ndarray, rhs: np.ndarray, open_x: np.ndarray, open_y: np.ndarray,
              dt: float, tolerance: float, max_iterations: int):
    """
    Conjugate gradients on the assembled sparse system, warm-started from
    the current pressures.

    Returns: (pressure (cols, rows), iterations, converged, max |residual|)
    """
    A, ids = assemble_poisson_matrix(open_x, open_y, dt)
    active = ids >= 0
    pressure = p0.copy()
    if A.shape[0] == 0:
        return pressure, 0, True, 0.0

    b = rhs[active]
    x0 = p0[active]

    iterations = 0

    def _count(_xk):
        nonlocal iterations
        iterations += 1

    x, info = spla.cg(A, b, x0=x0, rtol=0.0, atol=tolerance,
                      maxiter=max_iterations, callback=_count)
    if info < 0:
        raise SimulationError(f"Pressure CG received illegal input (info={info})")

    pressure[active] = x
    residual = float(np.abs(b - A @ x).max())
    return pressure, iterations, info == 0, residual


def _solve_gauss_seidel(p0: np.ndarray, rhs: np.ndarray, open_x: np.ndarray,
                        open_y: np.ndarray, dt: float, tolerance: float,
                        max_iterations: int):
    """
    Red-black Gauss-Seidel on the same operator.

    Cells are split checkerboard-wise; every open-face neighbor of a red cell
    is black and vice versa, so each half can be updated in one vectorized
    sweep using the freshest values of the other half:

      p_i = (b_i / dt + sum of open-face neighbors) / k_i

    Stops once max |b - A p| <= tolerance, or after max_iterations sweeps.

    Returns: (pressure (cols, rows), iterations, converged, max |residual|)
    """
    k = _face_counts(open_x, open_y)
    active = k > 0
    safe_k = np.where(active, k, 1.0)
    source = rhs / dt

    p = p0.copy()
    c, r = np.indices(p.shape)
    red = (c + r) % 2 == 0
    colors = (red & active, ~red & active)

    iterations = 0
    residual = _max_residual(p, rhs, open_x, open_y, dt, active)
    while residual > tolerance and iterations < max_iterations:
        for color in colors:
            s = _neighbor_sum(p, open_x, open_y)
            p[color] = ((source + s) / safe_k)[color]
        iterations += 1
        residual = _max_residual(p, rhs, open_x, open_y, dt, active)

    return p, iterations, residual <= tolerance, residual


def _subtract_pressure_gradient(u: np.ndarray, v: np.ndarray, p: np.ndarray,
                                open_x: np.ndarray, open_y: np.ndarray, dt: float):
    """
    v_new = v_old - dt * grad(p), on open faces only.

    Per fluid cell this is: subtract dt * p from its own X/Y face and add
    dt * p to the +X/+Y neighbor's face. A uniform pressure therefore moves
    nothing. Modifies u and v in place.
    """
    u[1:, :] += np.where(open_x[1:, :], dt * (p[:-1, :] - p[1:, :]), 0.0)
    v[:, 1:] += np.where(open_y[:, 1:], dt * (p[:, :-1] - p[:, 1:]), 0.0)


def project(grid: MACGrid, dt: float, method: str = METHOD_CG,
            tolerance: float = DEFAULT_TOLERANCE,
            max_iterations: int = DEFAULT_MAX_ITERATIONS) -> dict:
    """
    Pressure projection: make the velocity field divergence-free.

    Running out of iterations is not an error: the best pressure found so
    far is applied and a warning is logged. The next substep's projection
    picks up whatever divergence is left.

    Args:
        grid           : The MACGrid to modify in place
        dt             : Substep size
        method         : "cg", "gauss_seidel" or "none"
        tolerance      : Target max |divergence| left in any fluid cell
        max_iterations : Hard cap on solver iterations

    Returns:
        dict with timing, iteration and divergence metrics
    """
    if method not in PRESSURE_METHODS:
        raise ConfigurationError(
            f"Unknown pressure method: {method!r}. Use one of {PRESSURE_METHODS}."
        )
    if not dt > 0.0:
        raise SimulationError(f"Projection timestep must be positive, got {dt}")

    t_start = time.perf_counter()

    fluid = grid.fluid_mask()
    u, v = grid.velocity_field()
    open_x, open_y = open_faces(fluid)
    divergence = fluid_divergence(u, v, open_x, open_y)
    div_before = float(np.abs(divergence[fluid]).max()) if fluid.any() else 0.0

    if method == METHOD_NONE:
        return {
            "method": method,
            "time_ms": (time.perf_counter() - t_start) * 1000,
            "iterations": 0,
            "converged": False,
            "residual": div_before,
            "divergence_before_max": div_before,
            "divergence_after_max": div_before,
        }

    rhs = -divergence
    p0 = grid.pressure_field()
    if method == METHOD_CG:
        pressure, iterations, converged, residual = _solve_cg(
            p0, rhs, open_x, open_y, dt, tolerance, max_iterations)
    else:
        pressure, iterations, converged, residual = _solve_gauss_seidel(
            p0, rhs, open_x, open_y, dt, tolerance, max_iterations)

    if not converged:
        logger.warning("Pressure solve (%s) stopped at %d iterations, residual %.3e > %.1e",
                       method, iterations, residual, tolerance)

    grid.set_pressure_field(pressure)
    _subtract_pressure_gradient(u, v, pressure, open_x, open_y, dt)
    grid.set_velocity_field(u, v)

    div_after = fluid_divergence(u, v, open_x, open_y)
    div_after_max = float(np.abs(div_after[fluid]).max()) if fluid.any() else 0.0

    return {
        "method": method,
        "time_ms": (time.perf_counter() - t_start) * 1000,
        "iterations": iterations,
        "converged": converged,
        "residual": residual,
        "divergence_before_max": div_before,
        "divergence_after_max": div_after_max,
    }
