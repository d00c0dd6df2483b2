"""
Voxel Grid Store

Dense 3D array of optional RGB colors indexed [x, y, z]. A store is created
empty at the start of a voxelization pass, written cell by cell during that
pass, then frozen and handed read-only to the mesh-building stage.

Memory consideration: a 128³ grid = 128³ × (3 × 8 + 1) bytes ≈ 51 MB
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, List, Iterator, NamedTuple
import numpy as np

from .color import clamp_unit, to_rgb255, from_rgb255

Color = Tuple[float, float, float]


class Voxel(NamedTuple):
    """An occupied cell: grid index, world position and unit-range color."""
    index: Tuple[int, int, int]
    position: np.ndarray
    color: Color


@dataclass
class VoxelGridStore:
    """
    Dense voxel store with unit-range RGB colors.

    Coordinate system: cell (x, y, z) sits at origin + (x, y, z) * step.
    """

    size_x: int
    size_y: int
    size_z: int
    origin: np.ndarray = field(default_factory=lambda: np.zeros(3))
    step: float = 1.0
    _colors: np.ndarray = field(init=False, repr=False)
    _occupied: np.ndarray = field(init=False, repr=False)
    _frozen: bool = field(init=False, repr=False, default=False)

    def __post_init__(self):
        """Allocate an all-empty grid."""
        if min(self.size_x, self.size_y, self.size_z) < 1:
            raise ValueError(f"Grid dimensions must be >= 1, got {self.shape}")
        self.origin = np.asarray(self.origin, dtype=np.float64).reshape(3)
        self._colors = np.zeros((self.size_x, self.size_y, self.size_z, 3), dtype=np.float64)
        self._occupied = np.zeros((self.size_x, self.size_y, self.size_z), dtype=bool)

    @classmethod
    def from_grid_spec(cls, spec) -> "VoxelGridStore":
        nx, ny, nz = spec.dims
        return cls(nx, ny, nz, origin=spec.origin, step=spec.step)

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Get grid dimensions (x, y, z)."""
        return (self.size_x, self.size_y, self.size_z)

    @property
    def total_cells(self) -> int:
        return self.size_x * self.size_y * self.size_z

    @property
    def colors(self) -> np.ndarray:
        """Raw (X, Y, Z, 3) color array; meaningless where unoccupied."""
        return self._colors

    @property
    def occupancy(self) -> np.ndarray:
        """Boolean occupancy mask."""
        return self._occupied

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "VoxelGridStore":
        """Make the store read-only. Returns self."""
        self._frozen = True
        self._colors.flags.writeable = False
        self._occupied.flags.writeable = False
        return self

    def flat_index(self, x: int, y: int, z: int) -> int:
        """Deterministic linear index x + y*nx + z*nx*ny."""
        return x + y * self.size_x + z * self.size_x * self.size_y

    def world_position(self, x: int, y: int, z: int) -> np.ndarray:
        return self.origin + np.array([x, y, z], dtype=np.float64) * self.step

    def set_voxel(self, x: int, y: int, z: int, color):
        """
        Mark a cell occupied with a unit-range RGB color.

        Out-of-bounds coordinates are ignored.

        Raises:
            RuntimeError: If the store is frozen
        """
        self._check_writable()
        if not self._in_bounds(x, y, z):
            return
        self._colors[x, y, z] = clamp_unit(color)
        self._occupied[x, y, z] = True

    def set_row(self, y: int, z: int, row: List[Optional[Color]]):
        """
        Write a full X row; None entries stay empty.

        Args:
            y, z: Row coordinates
            row: size_x colors or None
        """
        self._check_writable()
        if len(row) != self.size_x:
            raise ValueError(f"Row length {len(row)} != size_x {self.size_x}")
        for x, color in enumerate(row):
            if color is not None:
                self._colors[x, y, z] = clamp_unit(color)
                self._occupied[x, y, z] = True

    def get_voxel(self, x: int, y: int, z: int) -> Optional[Color]:
        """
        Get voxel color at coordinates.

        Returns:
            RGB tuple or None if empty/out of bounds
        """
        if not self.is_solid(x, y, z):
            return None
        c = self._colors[x, y, z]
        return (float(c[0]), float(c[1]), float(c[2]))

    def is_solid(self, x: int, y: int, z: int) -> bool:
        """Check if a voxel exists at the given coordinates."""
        if not self._in_bounds(x, y, z):
            return False
        return bool(self._occupied[x, y, z])

    def count_voxels(self) -> int:
        """Count the number of occupied cells."""
        return int(np.count_nonzero(self._occupied))

    def iterate_voxels(self, world: bool = True) -> Iterator[Voxel]:
        """
        Iterate over occupied cells in x-major index order.

        Args:
            world: If True, positions are world coordinates; otherwise raw
                grid indices as floats
        """
        for x, y, z in np.argwhere(self._occupied):
            x, y, z = int(x), int(y), int(z)
            position = (
                self.world_position(x, y, z) if world
                else np.array([x, y, z], dtype=np.float64)
            )
            yield Voxel((x, y, z), position, self.get_voxel(x, y, z))

    def to_sparse(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Convert to sparse representation.

        Returns:
            Tuple of (coordinates (N, 3) int, colors (N, 3) float)
        """
        coords = np.argwhere(self._occupied)
        colors = self._colors[self._occupied]
        return coords, colors

    @property
    def occupied_bounds(self) -> Tuple[Tuple[int, int, int], Tuple[int, int, int]]:
        """Tight index bounds around occupied cells (max exclusive)."""
        occupied = np.argwhere(self._occupied)
        if len(occupied) == 0:
            return ((0, 0, 0), (0, 0, 0))
        return (
            tuple(int(v) for v in occupied.min(axis=0)),
            tuple(int(v) for v in occupied.max(axis=0) + 1),
        )

    @classmethod
    def from_nested(cls, cells, step: float = 1.0, origin=None) -> "VoxelGridStore":
        """
        Build a store from nested [x][y][z] lists of 0-255 RGB triples or None.

        Returns:
            Frozen VoxelGridStore
        """
        size_x = len(cells)
        size_y = max((len(col) for col in cells), default=0)
        size_z = max((len(row) for col in cells for row in col), default=0)
        store = cls(
            max(size_x, 1), max(size_y, 1), max(size_z, 1),
            origin=np.zeros(3) if origin is None else origin,
            step=step,
        )
        for x, col in enumerate(cells):
            for y, row in enumerate(col):
                for z, rgb in enumerate(row):
                    if rgb is not None:
                        store.set_voxel(x, y, z, from_rgb255(rgb))
        return store.freeze()

    def to_nested(self) -> list:
        """Nested [x][y][z] lists of 0-255 RGB triples or None."""
        return [
            [
                [
                    to_rgb255(self._colors[x, y, z]) if self._occupied[x, y, z] else None
                    for z in range(self.size_z)
                ]
                for y in range(self.size_y)
            ]
            for x in range(self.size_x)
        ]

    def _in_bounds(self, x: int, y: int, z: int) -> bool:
        return (
            0 <= x < self.size_x and
            0 <= y < self.size_y and
            0 <= z < self.size_z
        )

    def _check_writable(self):
        if self._frozen:
            raise RuntimeError("VoxelGridStore is frozen; voxelization pass already finished")
