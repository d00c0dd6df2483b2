"""
Grid Planning

Turns a bounding box and a step (or a target resolution along the largest
axis) into a regular grid:

    dims[axis] = ceil(size[axis] / step) + 1
    cell(i, j, k) = min + (i, j, k) * step

The extra cell per axis makes the last probe sit on or past the max face.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import math
import numpy as np

from .bounds import BoundingBox
from .errors import InvalidStepError


DEFAULT_RESOLUTION = 32


@dataclass(frozen=True)
class GridSpec:
    """
    Regular grid anchored at the bounding-box minimum.

    Attributes:
        origin: World position of cell (0, 0, 0)
        step: Edge length of one cell
        dims: Cell counts (nx, ny, nz), each >= 1
    """

    origin: np.ndarray
    step: float
    dims: Tuple[int, int, int]

    @property
    def total_cells(self) -> int:
        nx, ny, nz = self.dims
        return nx * ny * nz

    def cell(self, i: int, j: int, k: int) -> np.ndarray:
        """World position of a cell's probe point."""
        return self.origin + np.array([i, j, k], dtype=np.float64) * self.step

    def row_points(self, j: int, k: int) -> np.ndarray:
        """
        Probe points for the row of cells (0..nx-1, j, k).

        Returns:
            (nx, 3) float64 array
        """
        nx = self.dims[0]
        points = np.empty((nx, 3), dtype=np.float64)
        points[:, 0] = self.origin[0] + np.arange(nx) * self.step
        points[:, 1] = self.origin[1] + j * self.step
        points[:, 2] = self.origin[2] + k * self.step
        return points

    def flat_index(self, i: int, j: int, k: int) -> int:
        nx, ny, _ = self.dims
        return i + j * nx + k * nx * ny

    def as_dict(self) -> dict:
        return {
            "origin": self.origin.tolist(),
            "step": self.step,
            "dims": list(self.dims),
        }


def _validate_positive(value: float, name: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidStepError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise InvalidStepError(f"{name} must be positive and finite, got {value}")
    return value


class GridPlanner:
    """
    Plans grid dimensions from bounds.

    Either an absolute step or a target resolution along the largest axis
    may be given; an explicit step wins when both are present.
    """

    def __init__(self, resolution: int = DEFAULT_RESOLUTION):
        self.resolution = resolution

    def derive_step(self, bounds: BoundingBox, resolution: Optional[float] = None) -> float:
        """
        Step such that the largest axis spans `resolution` cells.

        Raises:
            InvalidStepError: If the resolution is invalid or the mesh has
                zero extent on every axis
        """
        resolution = _validate_positive(
            self.resolution if resolution is None else resolution, "resolution"
        )
        return _validate_positive(float(np.max(bounds.size)) / resolution, "step")

    def plan(
        self,
        bounds: BoundingBox,
        step: Optional[float] = None,
        resolution: Optional[float] = None
    ) -> GridSpec:
        """
        Compute the grid for a bounding box.

        Args:
            bounds: Mesh bounds
            step: Absolute cell size (takes precedence)
            resolution: Target cell count along the largest axis

        Returns:
            GridSpec

        Raises:
            InvalidStepError: On non-positive or non-finite step/resolution
        """
        if step is None:
            step = self.derive_step(bounds, resolution)
        else:
            step = _validate_positive(step, "step")

        dims = tuple(
            max(1, int(math.ceil(float(extent) / step)) + 1)
            for extent in bounds.size
        )
        return GridSpec(origin=np.array(bounds.min, dtype=np.float64), step=step, dims=dims)


def plan_grid(
    bounds: BoundingBox,
    step: Optional[float] = None,
    resolution: Optional[float] = None
) -> GridSpec:
    """Shortcut for GridPlanner().plan(...)."""
    return GridPlanner().plan(bounds, step=step, resolution=resolution)
