"""
Main MeshVoxelizer Class

This is the primary interface for the mesh voxelization pipeline.
It orchestrates:
1. Mesh loading (trimesh) or an in-memory MeshDocument
2. Optional normalization to a target size
3. Voxelization (parity or multi-directional sampling)
4. Cube mesh rebuilding (merged or instanced)
5. Hand-off to trimesh for export

Example Usage:
    voxelizer = MeshVoxelizer(step=0.1, strategy="multi-directional")
    voxelizer.load("model.glb")
    voxelizer.voxelize()
    voxelizer.build_mesh(voxel_size=0.24)
    voxelizer.export("voxels.glb")
"""

from pathlib import Path
from typing import Optional, Union
import numpy as np

from .ingestion import MeshLoader
from .mesh import MeshDocument
from .voxelizer import Voxelizer, VoxelizeOptions, ScanResult, splat_vertices
from .voxel_grid import VoxelGridStore
from .voxel_mesh import VoxelMeshBuilder, VoxelModel, InstancedVoxels


class MeshVoxelizer:
    """
    High-level interface for mesh-to-voxel conversion.

    Attributes:
        options: Voxelization options
        document: The loaded mesh document
        result: The last voxelization result
        model: The last rebuilt voxel mesh
    """

    def __init__(self, options: Optional[VoxelizeOptions] = None, **kwargs):
        """
        Initialize the MeshVoxelizer.

        Args:
            options: Full VoxelizeOptions; if omitted, kwargs build one
            **kwargs: VoxelizeOptions fields (step, resolution, strategy, ...)
        """
        self.options = options or VoxelizeOptions(**kwargs)
        self._document: Optional[MeshDocument] = None
        self._result: Optional[ScanResult] = None
        self._model: Optional[Union[VoxelModel, InstancedVoxels]] = None

    def load(self, path: Union[str, Path], double_sided: Optional[bool] = None) -> "MeshVoxelizer":
        """
        Load a mesh file through trimesh.

        Returns:
            self for method chaining
        """
        self._document = MeshLoader(double_sided=double_sided).load(path)
        self._result = None
        self._model = None
        return self

    def load_document(self, document: MeshDocument) -> "MeshVoxelizer":
        """Use an in-memory mesh document."""
        self._document = document
        self._result = None
        self._model = None
        return self

    def normalize(self, model_size: float) -> "MeshVoxelizer":
        """Scale and center the document so its diagonal equals model_size."""
        self._document = self._require_document().normalized(model_size)
        return self

    def voxelize(self) -> "MeshVoxelizer":
        """Run a synchronous voxelization pass."""
        self._result = Voxelizer(self.options).voxelize(self._require_document())
        self._model = None
        return self

    async def voxelize_async(self) -> "MeshVoxelizer":
        """Run a voxelization pass on the current asyncio event loop."""
        self._result = await Voxelizer(self.options).voxelize_async(self._require_document())
        self._model = None
        return self

    def splat_vertices(self, resolution: Optional[int] = None) -> "MeshVoxelizer":
        """Populate the grid by vertex splatting instead of ray sampling."""
        resolution = int(self.options.resolution) if resolution is None else resolution
        self._result = splat_vertices(self._require_document(), resolution)
        self._model = None
        return self

    def build_mesh(
        self,
        voxel_size: Optional[float] = None,
        inset: float = 0.0,
        instanced: bool = False,
        center: bool = True
    ) -> "MeshVoxelizer":
        """
        Rebuild a cube mesh from the voxel grid.

        Args:
            voxel_size: Cube spacing (defaults to the grid step)
            inset: Cosmetic gap per cube side
            instanced: Emit InstancedVoxels instead of a merged mesh
            center: Center the assembly at the origin

        Returns:
            self for method chaining
        """
        if self._result is None:
            raise RuntimeError("No voxel grid. Call voxelize() first.")

        builder = VoxelMeshBuilder(
            voxel_size=self._result.grid.step if voxel_size is None else voxel_size,
            inset=inset,
            center=center,
        )
        if instanced:
            self._model = builder.build_instanced(self._result.store)
        else:
            self._model = builder.build(self._result.store)
        return self

    def to_trimesh(self):
        """Get the rebuilt mesh as a trimesh.Trimesh (builds it if needed)."""
        if self._model is None:
            self.build_mesh()
        return self._model.to_trimesh()

    def export(self, output_path: Union[str, Path]):
        """
        Export the rebuilt mesh; trimesh picks the format from the suffix.
        """
        mesh = self.to_trimesh()
        if len(mesh.vertices) == 0:
            raise ValueError("Cannot export empty mesh")
        mesh.export(str(output_path))

    def _require_document(self) -> MeshDocument:
        if self._document is None:
            raise RuntimeError("No mesh loaded. Call load() first.")
        return self._document

    @property
    def document(self) -> Optional[MeshDocument]:
        """Get the current mesh document."""
        return self._document

    @property
    def result(self) -> Optional[ScanResult]:
        """Get the last voxelization result."""
        return self._result

    @property
    def grid(self) -> Optional[VoxelGridStore]:
        """Get the current voxel store."""
        return None if self._result is None else self._result.store

    @property
    def model(self) -> Optional[Union[VoxelModel, InstancedVoxels]]:
        """Get the rebuilt voxel mesh."""
        return self._model

    @property
    def diagnostics(self) -> Optional[dict]:
        """Intermediate quantities recorded when debug is enabled."""
        return None if self._result is None else self._result.diagnostics

    @property
    def voxel_count(self) -> int:
        """Get the number of occupied cells."""
        if self._result is None:
            return 0
        return self._result.store.count_voxels()

    def preview(self) -> dict:
        """
        Get a preview of the current state.

        Returns:
            Dictionary with current state information
        """
        info = {
            "mesh_loaded": self._document is not None,
            "voxelized": self._result is not None,
            "meshed": self._model is not None,
        }

        if self._document is not None:
            info["vertex_count"] = self._document.vertex_count
            info["triangle_count"] = self._document.triangle_count

        if self._result is not None:
            info["grid_size"] = self._result.store.shape
            info["step"] = self._result.grid.step
            info["voxel_count"] = self.voxel_count

        if self._model is not None:
            info["cube_count"] = self._model.cube_count
            info["translation"] = np.asarray(self._model.translation).tolist()

        return info
