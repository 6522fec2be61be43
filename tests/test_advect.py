import numpy as np
import pytest

from macfluid import MACGrid, SimulationError, X, Y
from macfluid.advect import advect_particles, advect_velocity, face_positions


def test_face_positions_follow_flat_order():
    g = MACGrid(3, 2)
    x_faces, y_faces = face_positions(g)
    assert x_faces.shape == (6, 2)
    np.testing.assert_array_equal(x_faces[0], [0.0, 0.5])
    np.testing.assert_array_equal(x_faces[1], [1.0, 0.5])
    np.testing.assert_array_equal(x_faces[3], [0.0, 1.5])
    np.testing.assert_array_equal(y_faces[4], [1.5, 1.0])


def test_uniform_flow_is_unchanged(grid):
    grid.set_velocity_field(np.full((4, 4), 0.3), np.full((4, 4), -0.2))
    advect_velocity(grid, 0.5)
    u, v = grid.velocity_field()
    np.testing.assert_allclose(u, 0.3)
    np.testing.assert_allclose(v, -0.2)


def test_zero_timestep_keeps_field(random_grid):
    before = random_grid.velocity_field()
    advect_velocity(random_grid, 0.0)
    after = random_grid.velocity_field()
    np.testing.assert_allclose(after[0], before[0])
    np.testing.assert_allclose(after[1], before[1])


def test_every_sample_reads_the_old_field(random_grid):
    # Expected values computed cell by cell against an untouched copy
    frozen = random_grid.copy()
    dt = 0.4
    expected = {}
    for col in range(frozen.cols):
        for row in range(frozen.rows):
            x_face = np.array([col, row + 0.5])
            y_face = np.array([col + 0.5, row])
            x_src = frozen.clamp_position(x_face - dt * frozen.get_velocity(x_face))
            y_src = frozen.clamp_position(y_face - dt * frozen.get_velocity(y_face))
            expected[col, row] = (frozen.get_velocity(x_src)[X], frozen.get_velocity(y_src)[Y])

    advect_velocity(random_grid, dt)

    for (col, row), (eu, ev) in expected.items():
        cell = random_grid[col, row]
        assert cell.velocity[X] == pytest.approx(eu)
        assert cell.velocity[Y] == pytest.approx(ev)
        assert cell.staged_velocity == cell.velocity


def test_shear_flow_is_carried_downstream():
    # u depends on row only, v is zero: tracing along x stays on the same row
    g = MACGrid(8, 4)
    u = np.tile(np.array([0.1, 0.2, 0.3, 0.4]), (8, 1))
    g.set_velocity_field(u, np.zeros((8, 4)))
    advect_velocity(g, 1.0)
    np.testing.assert_allclose(g.velocity_field()[0], u)


def test_particles_stay_put_in_still_fluid(grid):
    particles = np.array([[1.5, 1.5], [2.25, 0.75]])
    moved = advect_particles(grid, particles, 0.1)
    np.testing.assert_array_equal(moved, particles)


def test_particles_follow_uniform_flow(grid):
    grid.set_velocity_field(np.full((4, 4), 1.0), np.full((4, 4), 0.5))
    moved = advect_particles(grid, np.array([[1.0, 1.0]]), 0.2)
    np.testing.assert_allclose(moved, [[1.2, 1.1]])


def test_particles_are_clamped_to_the_domain(grid):
    grid.set_velocity_field(np.full((4, 4), 50.0), np.full((4, 4), -50.0))
    moved = advect_particles(grid, np.array([[3.5, 0.5], [0.1, 3.9]]), 1.0)
    np.testing.assert_allclose(moved, [[4.0, 0.0], [4.0, 0.0]])


def test_nan_particle_raises(grid):
    with pytest.raises(SimulationError):
        advect_particles(grid, np.array([[1.0, 1.0], [np.nan, 2.0]]), 0.1)


def test_no_particles(grid):
    moved = advect_particles(grid, np.zeros((0, 2)), 1.0)
    assert moved.shape == (0, 2)
