"""
Voxel Mesh Builder

Rebuilds a renderable mesh from a populated VoxelGridStore. Every occupied
cell becomes one flat-colored cube centered at index * voxel_size; the
assembly is then translated so its bounding-box center sits at the origin.

Two equivalent output forms:
1. Merged: all cubes in a single MeshData (one draw call)
2. Instanced: one shared cube + one transform and one color per voxel
"""

from dataclasses import dataclass
from typing import List, NamedTuple
import numpy as np
import trimesh

from .voxel_grid import VoxelGridStore, Voxel


# Outward normals, one per cube face: -X, +X, -Y, +Y, -Z, +Z
FACE_NORMALS = np.array([
    [-1, 0, 0],
    [1, 0, 0],
    [0, -1, 0],
    [0, 1, 0],
    [0, 0, -1],
    [0, 0, 1],
], dtype=np.float64)

# Corners of a [-1, 1]³ cube, counter-clockwise seen from outside
FACE_CORNERS = np.array([
    [[-1, -1, -1], [-1, -1, 1], [-1, 1, 1], [-1, 1, -1]],   # -X
    [[1, -1, -1], [1, 1, -1], [1, 1, 1], [1, -1, 1]],       # +X
    [[-1, -1, -1], [1, -1, -1], [1, -1, 1], [-1, -1, 1]],   # -Y
    [[-1, 1, -1], [-1, 1, 1], [1, 1, 1], [1, 1, -1]],       # +Y
    [[-1, -1, -1], [-1, 1, -1], [1, 1, -1], [1, -1, -1]],   # -Z
    [[-1, -1, 1], [1, -1, 1], [1, 1, 1], [-1, 1, 1]],       # +Z
], dtype=np.float64)

VERTICES_PER_CUBE = 24
INDICES_PER_CUBE = 36


class MeshData(NamedTuple):
    """Container for mesh geometry data."""
    vertices: np.ndarray     # (N, 3) float32 positions
    normals: np.ndarray      # (N, 3) float32 normals
    colors: np.ndarray       # (N, 3) float32 RGB in [0, 1]
    indices: np.ndarray      # (M,) uint32 triangle indices

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    def to_trimesh(self) -> trimesh.Trimesh:
        """Hand the mesh to trimesh with 0-255 RGBA vertex colors."""
        rgba = np.empty((len(self.colors), 4), dtype=np.uint8)
        rgba[:, :3] = np.floor(np.clip(self.colors, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
        rgba[:, 3] = 255
        return trimesh.Trimesh(
            vertices=self.vertices,
            faces=self.indices.reshape(-1, 3),
            vertex_normals=self.normals,
            vertex_colors=rgba,
            process=False,
        )


def empty_mesh() -> MeshData:
    return MeshData(
        vertices=np.zeros((0, 3), dtype=np.float32),
        normals=np.zeros((0, 3), dtype=np.float32),
        colors=np.zeros((0, 3), dtype=np.float32),
        indices=np.zeros((0,), dtype=np.uint32)
    )


def cube_geometry(edge: float):
    """
    Flat-shaded cube centered at the origin.

    Args:
        edge: Edge length

    Returns:
        (vertices (24, 3), normals (24, 3), indices (36,))
    """
    vertices = FACE_CORNERS.reshape(-1, 3) * (edge / 2.0)
    normals = np.repeat(FACE_NORMALS, 4, axis=0)

    # Two triangles per face: 0, 1, 2 and 0, 2, 3
    quad = np.array([0, 1, 2, 0, 2, 3], dtype=np.int64)
    indices = (quad[None, :] + 4 * np.arange(6)[:, None]).reshape(-1)
    return vertices, normals, indices


@dataclass
class VoxelModel:
    """Merged voxel mesh plus the recentering translation applied to it."""

    mesh: MeshData
    translation: np.ndarray
    cube_count: int

    def to_trimesh(self) -> trimesh.Trimesh:
        return self.mesh.to_trimesh()


@dataclass
class InstancedVoxels:
    """Instanced voxel mesh: one cube primitive, N transforms and colors."""

    cube: MeshData
    transforms: np.ndarray    # (N, 4, 4) float64, recentering included
    colors: np.ndarray        # (N, 3) float32
    translation: np.ndarray

    @property
    def cube_count(self) -> int:
        return len(self.transforms)

    def to_mesh(self) -> MeshData:
        """Expand instances into the equivalent merged mesh."""
        n = self.cube_count
        if n == 0:
            return empty_mesh()

        offsets = self.transforms[:, :3, 3]
        base = self.cube.vertices.astype(np.float64)
        vertices = (base[None, :, :] + offsets[:, None, :]).reshape(-1, 3)
        indices = (
            self.cube.indices.astype(np.int64)[None, :]
            + VERTICES_PER_CUBE * np.arange(n)[:, None]
        ).reshape(-1)

        return MeshData(
            vertices=vertices.astype(np.float32),
            normals=np.tile(self.cube.normals, (n, 1)).astype(np.float32),
            colors=np.repeat(self.colors, VERTICES_PER_CUBE, axis=0).astype(np.float32),
            indices=indices.astype(np.uint32),
        )

    def to_trimesh(self) -> trimesh.Trimesh:
        return self.to_mesh().to_trimesh()


class VoxelMeshBuilder:
    """
    Builds cube geometry from a voxel store. The store is only read.
    """

    def __init__(self, voxel_size: float = 1.0, inset: float = 0.0, center: bool = True):
        """
        Initialize the builder.

        Args:
            voxel_size: Spacing between neighbouring cube centers
            inset: Cosmetic gap shrinking each cube side by this amount
            center: If True, center the assembly at the origin
        """
        if not np.isfinite(voxel_size) or voxel_size <= 0:
            raise ValueError(f"voxel_size must be positive, got {voxel_size}")
        if inset < 0 or inset * 2 >= voxel_size:
            raise ValueError("inset must satisfy 0 <= inset < voxel_size / 2")

        self.voxel_size = float(voxel_size)
        self.inset = float(inset)
        self.center = center

    @property
    def edge(self) -> float:
        return self.voxel_size - 2 * self.inset

    def voxels(self, store: VoxelGridStore) -> List[Voxel]:
        """Occupied cells positioned at index * voxel_size."""
        return [
            Voxel(v.index, np.array(v.index, dtype=np.float64) * self.voxel_size, v.color)
            for v in store.iterate_voxels(world=False)
        ]

    def _translation(self, positions: np.ndarray) -> np.ndarray:
        if not self.center or len(positions) == 0:
            return np.zeros(3)
        # Cubes are symmetric, so the box center equals the center of their centers
        return -(positions.min(axis=0) + positions.max(axis=0)) / 2

    def build(self, store: VoxelGridStore) -> VoxelModel:
        """
        Emit one merged mesh with one cube per occupied cell.

        Returns:
            VoxelModel; empty mesh and zero translation for an empty store
        """
        voxels = self.voxels(store)
        if not voxels:
            return VoxelModel(mesh=empty_mesh(), translation=np.zeros(3), cube_count=0)

        positions = np.array([v.position for v in voxels])
        colors = np.array([v.color for v in voxels], dtype=np.float64)
        translation = self._translation(positions)

        cube_v, cube_n, cube_i = cube_geometry(self.edge)
        n = len(voxels)

        vertices = (cube_v[None, :, :] + (positions + translation)[:, None, :]).reshape(-1, 3)
        indices = (cube_i[None, :] + VERTICES_PER_CUBE * np.arange(n)[:, None]).reshape(-1)

        mesh = MeshData(
            vertices=vertices.astype(np.float32),
            normals=np.tile(cube_n, (n, 1)).astype(np.float32),
            colors=np.repeat(colors, VERTICES_PER_CUBE, axis=0).astype(np.float32),
            indices=indices.astype(np.uint32),
        )
        return VoxelModel(mesh=mesh, translation=translation, cube_count=n)

    def build_instanced(self, store: VoxelGridStore) -> InstancedVoxels:
        """
        Emit a shared cube plus one transform and one color per occupied cell.
        """
        cube_v, cube_n, cube_i = cube_geometry(self.edge)
        cube = MeshData(
            vertices=cube_v.astype(np.float32),
            normals=cube_n.astype(np.float32),
            colors=np.ones((VERTICES_PER_CUBE, 3), dtype=np.float32),
            indices=cube_i.astype(np.uint32),
        )

        voxels = self.voxels(store)
        positions = np.array([v.position for v in voxels]).reshape(-1, 3)
        translation = self._translation(positions)

        transforms = np.tile(np.eye(4), (len(voxels), 1, 1))
        transforms[:, :3, 3] = positions + translation

        colors = np.array([v.color for v in voxels], dtype=np.float32).reshape(-1, 3)
        return InstancedVoxels(cube=cube, transforms=transforms, colors=colors, translation=translation)
