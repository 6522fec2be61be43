from argparse import Namespace

from main import build_solver


def test_build_solver_overrides(tmp_path):
    path = tmp_path / "sim.yaml"
    path.write_text("domain:\n  width: 9\n  height: 9\nsolver:\n  pressure_method: cg\n")
    args = Namespace(config=str(path), width=None, height=5.0, method="gauss_seidel")

    solver = build_solver(args)

    assert solver.grid.shape == (9, 5)
    assert solver.config.pressure_method == "gauss_seidel"


def test_build_solver_defaults():
    solver = build_solver(Namespace(config=None, width=4, height=4, method=None))
    assert solver.grid.shape == (4, 4)
    assert solver.config.pressure_method == "cg"
