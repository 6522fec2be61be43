"""
visualizer.py — Live Speed + Tracer Viewer
===========================================
Renders two views of the 2D fluid:
  - Left:  speed magnitude at cell centers (heat map)
  - Right: the tracer particles over the solid/fluid mask

Uses matplotlib FuncAnimation for real-time updates.
Press "r" in the window to emit the reset signal.
"""

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.animation as animation
from matplotlib.colors import LinearSegmentedColormap

from macfluid import FluidRenderer, FluidSolver, MACGrid, Signal

# Custom flow colormap: black → deep blue → cyan → white
FLOW_COLORS = ["#000000", "#0a1a40", "#00b4d8", "#ffffff"]
flow_cmap = LinearSegmentedColormap.from_list("flow", FLOW_COLORS)


def cell_center_speed(grid: MACGrid) -> np.ndarray:
    """
    Average each cell's two X-faces and two Y-faces to its center and return
    the speed, shape (cols, rows). Missing +X/+Y faces count as walls.
    """
    u, v = grid.velocity_field()
    u_next = np.zeros_like(u)
    v_next = np.zeros_like(v)
    u_next[:-1, :] = u[1:, :]
    v_next[:, :-1] = v[:, 1:]
    uc = 0.5 * (u + u_next)
    vc = 0.5 * (v + v_next)
    return np.hypot(uc, vc)


class FluidVisualizer(FluidRenderer):
    """
    Real-time viewer of the fluid simulation.

    Usage (standalone):
        from macfluid import FluidSolver, Signal
        from visualizer import FluidVisualizer

        reset = Signal()
        solver = FluidSolver(32, 32, reset_signal=reset)
        viz = FluidVisualizer(solver, reset_signal=reset)
        viz.run()  # Opens live window
    """

    def __init__(self, solver: FluidSolver, reset_signal: Signal = None,
                 max_speed: float = 1.0):
        """
        Args:
            solver       : FluidSolver instance to step and draw
            reset_signal : Emitted when "r" is pressed (None = no reset key)
            max_speed    : Upper end of the speed color scale
        """
        self.solver = solver
        self.reset_signal = reset_signal
        self.max_speed = max_speed
        self.frames_drawn = 0

        self._setup_figure()

    def _setup_figure(self):
        """Initialize the matplotlib figure with 2 subplots."""
        self.fig, self.axes = plt.subplots(1, 2, figsize=(11, 5))
        self.fig.patch.set_facecolor('#0a0a0a')

        grid = self.solver.grid
        extent = (0, grid.cols, 0, grid.rows)
        dummy = np.zeros((grid.rows, grid.cols))

        for ax, title in zip(self.axes, ("speed |v|", "tracers")):
            ax.set_facecolor('#0a0a0a')
            ax.set_title(title, color='#aaaaaa', fontsize=9, fontfamily='monospace')
            ax.set_xticks([])
            ax.set_yticks([])
            ax.set_xlim(0, grid.width)
            ax.set_ylim(0, grid.height)
            for spine in ax.spines.values():
                spine.set_edgecolor('#333333')

        self.speed_img = self.axes[0].imshow(
            dummy, cmap=flow_cmap,
            vmin=0, vmax=self.max_speed,
            interpolation='bilinear',
            origin='lower',
            extent=extent,
            aspect='equal'
        )
        self.solid_img = self.axes[1].imshow(
            dummy, cmap='gray',
            vmin=0, vmax=1,
            interpolation='nearest',
            origin='lower',
            extent=extent,
            aspect='equal'
        )
        self.scatter = self.axes[1].scatter(
            [], [], s=1.0, c='#00b4d8', linewidths=0
        )

        self.title_text = self.fig.suptitle(
            "Fluid Sim — Frame 0",
            color='#cccccc', fontsize=10, fontfamily='monospace'
        )

        self.fig.canvas.mpl_connect('key_press_event', self._on_key)
        plt.tight_layout()

    def _on_key(self, event):
        if event.key == 'r' and self.reset_signal is not None:
            self.reset_signal.emit()

    def draw(self, grid: MACGrid, particles: np.ndarray):
        """Update the artists from a ready frame (FluidRenderer interface)."""
        self.speed_img.set_data(cell_center_speed(grid).T)
        self.solid_img.set_data((~grid.fluid_mask()).astype(float).T * 0.3)
        self.scatter.set_offsets(np.asarray(particles).reshape(-1, 2))
        self.frames_drawn += 1

    def update(self, frame_num):
        """FuncAnimation callback: advance one frame, then draw it."""
        metrics = self.solver.advance_frame()
        self.solver.draw(self)

        self.title_text.set_text(
            f"Fluid Sim — Frame {metrics['frame']} | "
            f"{metrics['fps']:.1f} FPS | "
            f"{metrics['substeps']} substep(s) | "
            f"div_max={metrics['divergence_max']:.5f}"
        )

        return [self.speed_img, self.solid_img, self.scatter, self.title_text]

    def run(self, fps: int = 30, frames: int = 500):
        """
        Open the window and keep stepping the solver.

        Args:
            fps    : Target animation frame rate
            frames : Total frames to render
        """
        interval_ms = 1000 // fps
        self.anim = animation.FuncAnimation(
            self.fig,
            self.update,
            frames=frames,
            interval=interval_ms,
            blit=False
        )
        plt.show()

    def save_gif(self, path: str = "fluid_sim.gif", fps: int = 30, frames: int = 100):
        """Render `frames` frames into a GIF with Pillow."""
        print(f"Rendering {frames} frames to {path}...")
        self.anim = animation.FuncAnimation(
            self.fig, self.update, frames=frames, interval=1000 // fps, blit=False
        )
        writer = animation.PillowWriter(fps=fps)
        self.anim.save(path, writer=writer)
        print(f"Saved: {path}")
