import numpy as np
import pytest

from macfluid import FluidRenderer, FluidSolver, MACGrid, SolverConfig


class RecordingRenderer(FluidRenderer):
    """Keeps every frame it is handed."""

    def __init__(self):
        self.frames = []

    def draw(self, grid, particles):
        self.frames.append((grid, particles))


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def grid():
    return MACGrid(4, 4)


@pytest.fixture
def random_grid():
    """6x5 grid with reproducible random velocities on every face."""
    g = MACGrid(6, 5)
    rng = np.random.default_rng(7)
    u = rng.uniform(-1.0, 1.0, g.shape)
    v = rng.uniform(-1.0, 1.0, g.shape)
    g.set_velocity_field(u, v)
    return g


@pytest.fixture
def solver():
    return FluidSolver(8, 8)


@pytest.fixture
def still_solver():
    """Solver with zero velocity everywhere and no gravity."""
    s = FluidSolver(6, 6, config=SolverConfig(gravity=(0.0, 0.0)))
    for cell in s.grid:
        cell.velocity = [0.0, 0.0]
    return s
