"""
simulation.py — Frame Loop and CFL Substepping
===============================================
This is the complete simulation that ties everything together.
One call to `advance_frame()` advances the fluid by one frame of simulated
time (1/30 by default), split into as many substeps as stability requires.

Physics pipeline per substep:
  1. Advect velocity (semi-Lagrangian, stage → commit)
  2. Apply body force (gravity)
  3. Project velocity (enforce incompressibility)
  4. Enforce the outer walls
  5. Move the tracer particles

Substep size follows the CFL condition:
  dt = min(remaining frame time, cfl_coefficient / max speed)
"""

import logging
import math
import time
from typing import Optional

import numpy as np

from .advect import advect_particles, advect_velocity
from .cell import CellType, X, Y
from .config import DomainConfig, SimulationConfig, SolverConfig
from .errors import SimulationError
from .events import Signal
from .forces import apply_body_force
from .grid import MACGrid
from .renderer import FluidRenderer
from .solver import project

logger = logging.getLogger(__name__)

STAGES = ("advect", "forces", "project", "boundary", "particles")


class FluidSolver:
    """
    The complete 2D MAC-grid fluid simulation.

    Usage:
        reset = Signal()
        solver = FluidSolver(32, 32, reset_signal=reset)
        for frame in range(100):
            solver.advance_frame()
            solver.draw(renderer)      # renderer.draw(grid, particles)
    """

    def __init__(self, width: float, height: float,
                 config: Optional[SolverConfig] = None,
                 reset_signal: Optional[Signal] = None):
        """
        Args:
            width, height : Domain size in cell units (fixed for the solver's life)
            config        : Solver settings (defaults if omitted)
            reset_signal  : Optional Signal; emitting it requests a reset
        """
        DomainConfig(width=width, height=height).validate()
        self.config = config or SolverConfig()
        self.config.validate()

        self.width = float(width)
        self.height = float(height)

        self.grid: Optional[MACGrid] = None
        self.particles = np.zeros((0, 2))
        self.frame_ready = False
        self.frame = 0
        self.last_substeps: list[float] = []
        self.perf_log: list[dict] = []

        self._advancing = False
        self._reset_pending = False

        self.reset()

        self._reset_signal = reset_signal
        if reset_signal is not None:
            reset_signal.connect(self.request_reset)

    @classmethod
    def from_config(cls, config: SimulationConfig,
                    reset_signal: Optional[Signal] = None) -> "FluidSolver":
        config.validate()
        return cls(config.domain.width, config.domain.height,
                   config=config.solver, reset_signal=reset_signal)

    def close(self):
        """Stop listening for reset requests."""
        if self._reset_signal is not None:
            self._reset_signal.disconnect(self.request_reset)
            self._reset_signal = None

    # ── Reset ─────────────────────────────────────────────────────────────

    def reset(self):
        """
        Rebuild the grid and particles from the demo initial condition.

        Every cell is FLUID with pressure `initial_pressure` and a
        deterministic sinusoidal velocity (sin keeps the values in
        [-0.5, 0.5]; the field is arbitrary and may be divergent).
        Each cell is seeded with an n x n lattice of tracer particles.
        """
        grid = MACGrid(self.width, self.height)
        n = int(self.config.particles_per_cell)
        offsets = (np.arange(n, dtype=np.float64) + 1.0) / (n + 1.0)

        particles = []
        for row in range(grid.rows):
            for col in range(grid.cols):
                cell = grid[col, row]
                cell.cell_type = CellType.FLUID
                cell.pressure = float(self.config.initial_pressure)
                cell.velocity[X] = math.sin(col * 45.215 + row * 88.15468) / 2
                cell.velocity[Y] = math.sin(col * 2.548 + row * 121.1215) / 2

                for ox in offsets:
                    for oy in offsets:
                        particles.append((col + ox, row + oy))

        self.grid = grid
        self.particles = np.array(particles, dtype=np.float64).reshape(-1, 2)
        self.frame_ready = False
        self.frame = 0
        self.last_substeps = []
        logger.info("Reset %dx%d grid with %d particles",
                    grid.cols, grid.rows, len(self.particles))

    def request_reset(self):
        """
        Reset handler for the injected signal.

        A reset that arrives while a frame is being advanced is held back
        and applied once that frame is done, never mid-substep.
        """
        if self._advancing:
            logger.debug("Reset requested mid-frame; deferring")
            self._reset_pending = True
        else:
            self.reset()

    # ── Substep stages ────────────────────────────────────────────────────

    def advect_velocity(self, dt: float):
        advect_velocity(self.grid, dt)

    def apply_body_force(self, dt: float):
        apply_body_force(self.grid, self.config.gravity, dt)

    def project_pressure(self, dt: float) -> dict:
        return project(self.grid, dt,
                       method=self.config.pressure_method,
                       tolerance=self.config.pressure_tolerance,
                       max_iterations=int(self.config.max_pressure_iterations))

    def enforce_boundaries(self):
        self.grid.set_boundary()

    def move_particles(self, dt: float):
        self.particles = advect_particles(self.grid, self.particles, dt)

    def advance_time_step(self, dt: float, timings: Optional[dict] = None) -> dict:
        """
        Run one full substep of size dt.

        Args:
            dt      : Substep size
            timings : Optional dict; per-stage wall time (ms) is added to it

        Returns:
            The pressure projection metrics of this substep.
        """
        timings = timings if timings is not None else dict.fromkeys(STAGES, 0.0)

        t0 = time.perf_counter()
        self.advect_velocity(dt)
        t1 = time.perf_counter()
        self.apply_body_force(dt)
        t2 = time.perf_counter()
        proj_metrics = self.project_pressure(dt)
        t3 = time.perf_counter()
        self.enforce_boundaries()
        t4 = time.perf_counter()
        self.move_particles(dt)
        t5 = time.perf_counter()

        for stage, (start, end) in zip(STAGES, ((t0, t1), (t1, t2), (t2, t3), (t3, t4), (t4, t5))):
            timings[stage] = timings.get(stage, 0.0) + (end - start) * 1000

        logger.debug("Substep dt=%.5f | pressure iters=%d residual=%.2e",
                     dt, proj_metrics["iterations"], proj_metrics["residual"])
        return proj_metrics

    # ── Frame loop ────────────────────────────────────────────────────────

    def compute_time_step(self, remaining: float) -> float:
        """
        CFL-bounded substep size, never longer than `remaining`.

        A (near-)zero max speed spans the rest of the frame instead of
        dividing by zero.
        """
        speed = float(np.linalg.norm(self.grid.get_max_velocity()))
        if not math.isfinite(speed):
            raise SimulationError(f"Velocity field is no longer finite (max speed {speed})")
        if speed <= self.config.min_velocity:
            return remaining
        return min(remaining, self.config.cfl_coefficient / speed)

    def advance_frame(self) -> dict:
        """
        Advance the simulation by one frame and mark it ready for drawing.

        A previous frame that was never drawn is simply superseded.

        Returns performance metrics dict for benchmarking.
        """
        t_total_start = time.perf_counter()
        if self.frame_ready:
            logger.debug("Frame %d was never drawn; superseding it", self.frame)

        remaining = self.config.frame_duration
        substeps = []
        timings = dict.fromkeys(STAGES, 0.0)
        proj_metrics = {}

        self._advancing = True
        try:
            while remaining > 0.0:
                if len(substeps) >= self.config.max_substeps:
                    raise SimulationError(
                        f"Frame needed more than {self.config.max_substeps} substeps"
                    )
                dt = self.compute_time_step(remaining)
                proj_metrics = self.advance_time_step(dt, timings)
                substeps.append(dt)
                # The last substep lands exactly on the frame boundary
                remaining = 0.0 if dt >= remaining else remaining - dt
        except Exception:
            # A failed frame still honors a reset requested during it
            self._apply_pending_reset()
            raise
        finally:
            self._advancing = False

        self.last_substeps = substeps
        self.frame += 1
        self.frame_ready = True

        t_total = (time.perf_counter() - t_total_start) * 1000
        metrics = {
            "frame"              : self.frame,
            "substeps"           : len(substeps),
            "substep_sizes"      : list(substeps),
            "total_ms"           : t_total,
            "fps"                : 1000.0 / t_total if t_total > 0 else 0,
            "advect_ms"          : timings["advect"],
            "forces_ms"          : timings["forces"],
            "project_ms"         : timings["project"],
            "boundary_ms"        : timings["boundary"],
            "particles_ms"       : timings["particles"],
            "pressure_iterations": proj_metrics.get("iterations", 0),
            "pressure_converged" : proj_metrics.get("converged", False),
            "pressure_residual"  : proj_metrics.get("residual", 0.0),
            "divergence_max"     : self._fluid_divergence_max(),
        }
        self.perf_log.append(metrics)
        self._apply_pending_reset()
        return metrics

    def _apply_pending_reset(self):
        if self._reset_pending:
            self._reset_pending = False
            self.reset()

    def draw(self, renderer: FluidRenderer) -> bool:
        """
        Hand a ready frame to the renderer and mark it consumed.

        Returns:
            True if a frame was drawn; False (and nothing happens) otherwise,
            in which case the renderer keeps showing the previous frame.
        """
        if not self.frame_ready:
            return False
        particles = self.particles.view()
        particles.flags.writeable = False
        renderer.draw(self.grid, particles)
        self.frame_ready = False
        return True

    # ── Introspection ─────────────────────────────────────────────────────

    def _fluid_divergence_max(self) -> float:
        fluid = self.grid.fluid_mask()
        if not fluid.any():
            return 0.0
        return float(np.abs(self.grid.divergence_field()[fluid]).max())

    def get_snapshot(self) -> dict:
        """Copies of the current fields, for visualization or analysis."""
        u, v = self.grid.velocity_field()
        return {
            "frame"      : self.frame,
            "velocity_u" : u,
            "velocity_v" : v,
            "pressure"   : self.grid.pressure_field(),
            "divergence" : self.grid.divergence_field(),
            "fluid"      : self.grid.fluid_mask(),
            "particles"  : self.particles.copy(),
        }

    def print_status(self):
        """Pretty-print current simulation state."""
        g = self.grid
        div = g.divergence_field()
        fluid = g.fluid_mask()
        p = g.pressure_field()
        print(f"\n{'='*50}")
        print(f"  Frame: {self.frame}  |  Method: {self.config.pressure_method}")
        print(f"  Grid      : {g.cols}x{g.rows}, fluid cells={int(fluid.sum())}")
        print(f"  Velocity  : max={np.linalg.norm(g.get_max_velocity()):.4f}")
        if fluid.any():
            print(f"  Divergence: max={np.abs(div[fluid]).max():.6f}, "
                  f"mean={np.abs(div[fluid]).mean():.8f}")
        print(f"  Pressure  : max={p.max():.4f}, min={p.min():.4f}")
        print(f"  Particles : {len(self.particles)}")
        if self.perf_log:
            last = self.perf_log[-1]
            print(f"  Perf      : {last['total_ms']:.1f}ms/frame ({last['fps']:.1f} FPS), "
                  f"{last['substeps']} substep(s)")
        print(f"{'='*50}")
