"""
main.py — Entry Point
======================
Runs the 2D MAC-grid fluid solver live, headless or as a benchmark.

Usage:
    python main.py                        # Headless run (default)
    python main.py --mode live            # Live visualization, "r" resets
    python main.py --mode benchmark       # Per-stage timing breakdown
    python main.py --config sim.yaml      # Load domain/solver settings
"""

import argparse
import logging

import numpy as np

from macfluid import FluidSolver, Signal, SimulationConfig
from macfluid.solver import PRESSURE_METHODS


def build_solver(args, reset_signal: Signal = None) -> FluidSolver:
    """FluidSolver from --config, with --width/--height/--method overriding it."""
    config = SimulationConfig.from_yaml(args.config) if args.config else SimulationConfig()
    if args.width is not None:
        config.domain.width = args.width
    if args.height is not None:
        config.domain.height = args.height
    if args.method is not None:
        config.solver.pressure_method = args.method
    return FluidSolver.from_config(config, reset_signal=reset_signal)


def run_live(args):
    """Live interactive visualization."""
    from visualizer import FluidVisualizer

    reset = Signal()
    solver = build_solver(args, reset_signal=reset)

    print(f"Starting live simulation ({solver.grid.cols}x{solver.grid.rows})...")
    print("Press 'r' to reset, close the window to exit.\n")

    viz = FluidVisualizer(solver, reset_signal=reset)
    viz.run(fps=30, frames=args.frames)
    solver.close()


def run_headless(args):
    """Run simulation without display — prints stats every 10 frames."""
    solver = build_solver(args)
    frames = args.frames

    print(f"\nHeadless simulation | {solver.grid.cols}x{solver.grid.rows} | {frames} frames")
    print(f"{'─'*60}")

    total_times = []
    for f in range(frames):
        metrics = solver.advance_frame()
        total_times.append(metrics["total_ms"])

        if f % 10 == 0:
            print(f"  Frame {f:03d} | {metrics['total_ms']:6.1f}ms "
                  f"({metrics['fps']:.1f} FPS) | "
                  f"substeps={metrics['substeps']} | "
                  f"div_max={metrics['divergence_max']:.2e}")

    print(f"\n{'─'*60}")
    print(f"  Average: {np.mean(total_times):.1f}ms/frame ({1000/np.mean(total_times):.1f} FPS)")
    print(f"  Min:     {np.min(total_times):.1f}ms")
    print(f"  Max:     {np.max(total_times):.1f}ms")
    solver.print_status()


def run_benchmark(args):
    """
    Detailed performance breakdown.
    Shows how long each stage of the substep takes.
    """
    solver = build_solver(args)
    frames = args.frames

    print(f"\n{'='*60}")
    print(f"  BENCHMARK | {solver.grid.cols}x{solver.grid.rows} | "
          f"{solver.config.pressure_method} | {frames} frames")
    print(f"{'='*60}")

    # Warm up
    for _ in range(5):
        solver.advance_frame()

    logs = [solver.advance_frame() for _ in range(frames)]

    keys = ["advect_ms", "forces_ms", "project_ms", "boundary_ms",
            "particles_ms", "total_ms"]

    print(f"\n{'Stage':<20} {'Mean':>8} {'Min':>8} {'Max':>8}")
    print(f"{'─'*50}")
    for k in keys:
        vals = [m[k] for m in logs]
        print(f"  {k:<18} {np.mean(vals):>7.1f}ms {np.min(vals):>7.1f}ms {np.max(vals):>7.1f}ms")

    iters = [m["pressure_iterations"] for m in logs]
    total_vals = [m["total_ms"] for m in logs]
    print(f"\n{'─'*50}")
    print(f"  Pressure iterations (last substep): mean={np.mean(iters):.1f}, max={np.max(iters)}")
    print(f"  FPS (physics only): {1000/np.mean(total_vals):.1f}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="2D MAC-Grid Fluid Simulation")
    parser.add_argument(
        "--mode", choices=["live", "headless", "benchmark"],
        default="headless",
        help="Run mode (default: headless)"
    )
    parser.add_argument("--width",  type=float, default=None, help="Domain width in cells")
    parser.add_argument("--height", type=float, default=None, help="Domain height in cells")
    parser.add_argument("--frames", type=int, default=100, help="Number of frames")
    parser.add_argument("--method", choices=PRESSURE_METHODS, default=None,
                        help="Pressure solver")
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.mode == "live":
        run_live(args)
    elif args.mode == "headless":
        run_headless(args)
    elif args.mode == "benchmark":
        run_benchmark(args)
