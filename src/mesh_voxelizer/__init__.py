"""
Mesh Voxelizer
==============

Samples an arbitrary triangle mesh into a regular grid of colored voxels and
rebuilds the grid as a single renderable cube mesh.

Key Features:
- Bounding-box driven grid planning (absolute step or target resolution)
- Numba-accelerated ray/triangle intersection
- Parity (inside/outside) and six-direction nearest-surface sampling
- Barycentric vertex-color interpolation with material/white fallback
- Chunked, cooperative scanning with progress reporting (sync or asyncio)
- Merged or instanced cube meshes, handed over as trimesh objects

Example Usage:
    from mesh_voxelizer import MeshVoxelizer

    voxelizer = MeshVoxelizer(resolution=32)
    voxelizer.load("model.glb")
    voxelizer.voxelize()
    voxelizer.build_mesh()
    voxelizer.export("voxels.glb")
"""

__version__ = "1.0.0"
__author__ = "Mesh Voxelizer Team"

from .errors import (
    VoxelizationError,
    EmptyMeshError,
    InvalidStepError,
    IntersectionFailure,
    VoxelizationCancelled,
)
from .mesh import Material, Primitive, MeshDocument
from .bounds import BoundingBox, BoundsCalculator, compute_bounds
from .grid import GridSpec, GridPlanner, plan_grid
from .color import SurfaceColorResolver, SurfaceHit
from .occupancy import OccupancyEngine, Strategy, ColorMode
from .scheduler import BatchScheduler, ScanState
from .voxel_grid import VoxelGridStore, Voxel
from .voxelizer import Voxelizer, VoxelizeOptions, ScanResult, splat_vertices
from .voxel_mesh import VoxelMeshBuilder, VoxelModel, InstancedVoxels, MeshData
from .generator import MeshVoxelizer

__all__ = [
    "VoxelizationError",
    "EmptyMeshError",
    "InvalidStepError",
    "IntersectionFailure",
    "VoxelizationCancelled",
    "Material",
    "Primitive",
    "MeshDocument",
    "BoundingBox",
    "BoundsCalculator",
    "compute_bounds",
    "GridSpec",
    "GridPlanner",
    "plan_grid",
    "SurfaceColorResolver",
    "SurfaceHit",
    "OccupancyEngine",
    "Strategy",
    "ColorMode",
    "BatchScheduler",
    "ScanState",
    "VoxelGridStore",
    "Voxel",
    "Voxelizer",
    "VoxelizeOptions",
    "ScanResult",
    "splat_vertices",
    "VoxelMeshBuilder",
    "VoxelModel",
    "InstancedVoxels",
    "MeshData",
    "MeshVoxelizer",
]
