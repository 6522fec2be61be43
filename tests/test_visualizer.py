from types import SimpleNamespace

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pytest  # noqa: E402

from macfluid import FluidRenderer, FluidSolver, MACGrid, Signal  # noqa: E402
from visualizer import FluidVisualizer, cell_center_speed  # noqa: E402


@pytest.fixture
def viz():
    reset = Signal()
    solver = FluidSolver(6, 4, reset_signal=reset)
    v = FluidVisualizer(solver, reset_signal=reset)
    yield v
    plt.close(v.fig)


def test_is_a_renderer(viz):
    assert isinstance(viz, FluidRenderer)


def test_cell_center_speed():
    g = MACGrid(3, 2)
    g.set_velocity_field(np.full((3, 2), 2.0), np.zeros((3, 2)))
    speed = cell_center_speed(g)
    assert speed.shape == (3, 2)
    np.testing.assert_allclose(speed[:2, :], 2.0)
    np.testing.assert_allclose(speed[2, :], 1.0)     # +X face is the wall


def test_update_steps_and_draws(viz):
    artists = viz.update(0)
    assert viz.frames_drawn == 1
    assert viz.solver.frame == 1
    assert not viz.solver.frame_ready
    assert len(viz.scatter.get_offsets()) == len(viz.solver.particles)
    assert viz.title_text in artists


def test_reset_key(viz):
    viz.update(0)
    viz._on_key(SimpleNamespace(key="r"))
    assert viz.solver.frame == 0


def test_save_gif(viz, tmp_path):
    path = tmp_path / "fluid.gif"
    viz.save_gif(str(path), fps=5, frames=2)
    assert path.exists()
    assert path.stat().st_size > 0
    assert viz.solver.frame >= 2
