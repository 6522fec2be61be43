"""
cell.py — One Sample of the MAC Grid
=====================================
A Cell does not store a velocity *vector*. On a MAC grid each velocity
component lives on a different face of the cell:

    velocity[X]  → negative-X face   (col,       row + 0.5)
    velocity[Y]  → negative-Y face   (col + 0.5, row      )
    pressure     → cell center       (col + 0.5, row + 0.5)

Neighbor links are flat indices into the owning grid's storage, never
object references. Only the grid writes them.
"""

from enum import Enum, IntEnum


# Velocity component indices
X = 0
Y = 1

NO_NEIGHBOR = -1


class CellType(Enum):
    FLUID = "fluid"
    SOLID = "solid"


class Neighbor(IntEnum):
    """Forward neighbors a cell links to."""
    POS_X = 0
    POS_Y = 1
    POS_XY = 2


NEIGHBOR_COUNT = len(Neighbor)


class Cell:
    """
    Pressure, staggered velocity and a staging buffer for one grid cell.

    Copying a cell copies its values only. The copy comes back unlinked;
    re-linking is the grid's job.
    """

    __slots__ = ("pressure", "velocity", "staged_velocity", "cell_type",
                 "all_neighbors_present", "neighbors")

    def __init__(self):
        self.pressure = 0.0
        self.velocity = [0.0, 0.0]
        self.staged_velocity = [0.0, 0.0]
        self.cell_type = CellType.FLUID
        self.all_neighbors_present = False
        self.neighbors = [NO_NEIGHBOR] * NEIGHBOR_COUNT

    @property
    def is_fluid(self) -> bool:
        return self.cell_type is CellType.FLUID

    def assign(self, other: "Cell") -> "Cell":
        """
        Copy the value fields of `other` into this cell.

        Links and `all_neighbors_present` belong to whichever grid owns this
        cell, so they are left alone.
        """
        self.pressure = other.pressure
        self.velocity = list(other.velocity)
        self.staged_velocity = list(other.staged_velocity)
        self.cell_type = other.cell_type
        return self

    def copy(self) -> "Cell":
        """Detached value copy: same values, no links."""
        return Cell().assign(self)

    def __copy__(self):
        return self.copy()

    def __deepcopy__(self, memo):
        return self.copy()

    def commit_staged_velocity(self):
        """Make the staged velocity current. The staged buffer is kept as is."""
        self.velocity[X] = self.staged_velocity[X]
        self.velocity[Y] = self.staged_velocity[Y]

    def __repr__(self):
        return (f"Cell(pressure={self.pressure:.4f}, "
                f"velocity=({self.velocity[X]:.4f}, {self.velocity[Y]:.4f}), "
                f"type={self.cell_type.value})")
