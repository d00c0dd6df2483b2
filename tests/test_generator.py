"""
Integration tests for the Mesh Voxelizer.
"""

import sys
from pathlib import Path
import asyncio
import tempfile
import threading
import numpy as np
import trimesh
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from mesh_voxelizer import MeshVoxelizer, VoxelizeOptions
from mesh_voxelizer.bounds import compute_bounds
from mesh_voxelizer.ingestion import MeshLoader
from mesh_voxelizer.mesh import MeshDocument, Primitive
from mesh_voxelizer.voxel_mesh import InstancedVoxels
from mesh_voxelizer.errors import (
    EmptyMeshError, InvalidStepError, VoxelizationCancelled
)
from mesh_voxelizer import cli

from mesh_fixtures import CUBE_CORNERS, CUBE_FACES, box_document


GREEN = np.tile([0.0, 1.0, 0.0], (8, 1))

CORNER_COLORS = np.array([
    [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0], [1.0, 1.0, 0.0],
    [1.0, 0.0, 1.0], [0.0, 1.0, 1.0], [0.5, 0.5, 0.5], [0.1, 0.2, 0.3],
])


def _colored_trimesh():
    rgba = np.zeros((8, 4), dtype=np.uint8)
    rgba[:, 1] = 255
    rgba[:, 3] = 255
    return trimesh.Trimesh(
        vertices=CUBE_CORNERS, faces=CUBE_FACES, vertex_colors=rgba, process=False
    )


class TestMeshVoxelizer(unittest.TestCase):
    """Integration tests for MeshVoxelizer."""

    def test_basic_pipeline(self):
        """Test basic voxelization pipeline."""
        voxelizer = MeshVoxelizer(step=0.25)
        voxelizer.load_document(box_document(vertex_colors=GREEN))
        voxelizer.voxelize()
        voxelizer.build_mesh()

        store = voxelizer.grid
        assert store.shape == (5, 5, 5)
        assert store.frozen
        # Every interior probe is occupied
        assert store.occupancy[1:4, 1:4, 1:4].all()
        assert voxelizer.voxel_count >= 27

        assert voxelizer.model.cube_count == voxelizer.voxel_count
        assert np.allclose(voxelizer.model.mesh.colors, [0.0, 1.0, 0.0])

        info = voxelizer.preview()
        assert info["voxelized"] and info["meshed"]
        assert info["step"] == 0.25

    def test_resolution(self):
        """Test grid derived from the default resolution."""
        voxelizer = MeshVoxelizer().load_document(box_document(size=(2.0, 1.0, 1.0)))
        voxelizer.voxelize()

        assert voxelizer.result.grid.step == 2.0 / 32
        assert voxelizer.grid.shape == (33, 17, 17)

    def test_parity_pipeline(self):
        """Test parity voxelization of a closed box."""
        voxelizer = MeshVoxelizer(step=0.3, strategy="parity")
        voxelizer.load_document(box_document(size=(1.0, 0.7, 1.0)))
        voxelizer.voxelize()

        store = voxelizer.grid
        assert store.shape == (5, 4, 5)
        assert store.occupancy[1:4, 1:3, 1:4].all()
        # Past the max faces
        assert not store.occupancy[4].any()
        assert not store.occupancy[:, 3].any()
        assert not store.occupancy[:, :, 4].any()
        assert np.allclose(store.get_voxel(1, 1, 1), (0.92, 0.28, 0.28))

    def test_parity_fills_unit_box(self):
        """Test parity voxelization has no holes along the face diagonals."""
        voxelizer = MeshVoxelizer(step=0.25, strategy="parity")
        voxelizer.load_document(box_document()).voxelize()

        store = voxelizer.grid
        assert store.shape == (5, 5, 5)
        assert store.occupancy[1:4, 1:4, 1:4].all()
        for i in (1, 2, 3):
            assert store.is_solid(i, i, 2)

    def test_debug_diagnostics(self):
        """Test diagnostics recorded in debug mode."""
        voxelizer = MeshVoxelizer(step=0.25, debug=True)
        voxelizer.load_document(box_document()).voxelize()

        diag = voxelizer.diagnostics
        assert diag["dims"] == [5, 5, 5]
        assert diag["step"] == 0.25
        assert diag["strategy"] == "multi-directional"
        assert diag["total_cells"] == 125
        assert diag["occupied"] == voxelizer.voxel_count
        assert len(diag["layer_timings"]) == 5
        assert diag["bounds"] == {"min": [0.0, 0.0, 0.0], "max": [1.0, 1.0, 1.0]}
        assert diag["size"] == [1.0, 1.0, 1.0]

        quiet = MeshVoxelizer(step=0.25).load_document(box_document()).voxelize()
        assert quiet.diagnostics is None

    def test_progress(self):
        """Test progress callback through the facade."""
        reports = []
        voxelizer = MeshVoxelizer(step=0.25, batch_size=2, on_progress=reports.append)
        voxelizer.load_document(box_document()).voxelize()

        assert len(reports) == 25
        assert reports[-1] == 1.0

    def test_async_matches_sync(self):
        """Test the asyncio driver gives the same grid."""
        doc = box_document(vertex_colors=CORNER_COLORS)
        sync = MeshVoxelizer(step=0.25).load_document(doc).voxelize()
        run = asyncio.run(MeshVoxelizer(step=0.25, batch_size=1).load_document(doc).voxelize_async())

        assert np.array_equal(sync.grid.occupancy, run.grid.occupancy)
        assert np.allclose(sync.grid.colors, run.grid.colors)

    def test_cancel(self):
        """Test cancellation leaves no result behind."""
        cancel = threading.Event()
        cancel.set()
        voxelizer = MeshVoxelizer(step=0.25, cancel_event=cancel)
        voxelizer.load_document(box_document())

        with self.assertRaises(VoxelizationCancelled):
            voxelizer.voxelize()
        assert voxelizer.result is None

    def test_instanced_build(self):
        """Test instanced mesh output."""
        voxelizer = MeshVoxelizer(step=0.5).load_document(box_document())
        voxelizer.voxelize().build_mesh(voxel_size=0.24, inset=0.02, instanced=True)

        model = voxelizer.model
        assert isinstance(model, InstancedVoxels)
        assert model.cube_count == voxelizer.voxel_count
        assert len(voxelizer.to_trimesh().vertices) == 24 * model.cube_count

    def test_splat_vertices(self):
        """Test vertex splatting."""
        voxelizer = MeshVoxelizer().load_document(box_document(vertex_colors=CORNER_COLORS))
        voxelizer.splat_vertices(4)

        store = voxelizer.grid
        assert store.shape == (4, 4, 4)
        assert store.frozen
        # Corners on the max faces land at index 4 and are dropped
        assert voxelizer.voxel_count == 1
        assert store.get_voxel(0, 0, 0) == (1.0, 0.0, 0.0)

    def test_splat_material_fallback(self):
        """Test splatting without vertex colors."""
        doc = MeshDocument([Primitive(
            positions=[[0, 0, 0], [0.5, 0.5, 0.5], [2, 2, 2]],
            faces=[[0, 1, 2]],
        )])
        voxelizer = MeshVoxelizer().load_document(doc).splat_vertices(2)

        assert voxelizer.voxel_count == 1
        assert voxelizer.grid.get_voxel(0, 0, 0) == (1.0, 1.0, 1.0)

        with self.assertRaises(InvalidStepError):
            voxelizer.splat_vertices(0)
        with self.assertRaises(InvalidStepError):
            voxelizer.splat_vertices(2.5)

    def test_normalize(self):
        """Test scaling to a target diagonal."""
        voxelizer = MeshVoxelizer().load_document(
            box_document(size=(3.0, 4.0, 12.0), origin=(5.0, 5.0, 5.0))
        )
        voxelizer.normalize(26.0)

        bounds = compute_bounds(voxelizer.document)
        assert np.allclose(bounds.min, [-3.0, -4.0, -12.0])
        assert np.allclose(bounds.max, [3.0, 4.0, 12.0])
        assert np.isclose(np.linalg.norm(bounds.size), 26.0)

        with self.assertRaises(ValueError):
            voxelizer.normalize(0)

    def test_stats(self):
        """Test mesh statistics."""
        stats = box_document(vertex_colors=GREEN).stats()
        assert stats["primitive_count"] == 1
        assert stats["vertex_count"] == 8
        assert stats["triangle_count"] == 12
        assert stats["has_vertex_colors"]
        assert stats["materials"] == ["box"]
        assert stats["bounds"] == {"min": [0.0, 0.0, 0.0], "max": [1.0, 1.0, 1.0]}

        assert MeshDocument([]).stats()["bounds"] is None

    def test_errors(self):
        """Test precondition and ordering errors."""
        with self.assertRaises(RuntimeError):
            MeshVoxelizer().voxelize()

        with self.assertRaises(RuntimeError):
            MeshVoxelizer().load_document(box_document()).build_mesh()

        empty = MeshVoxelizer().load_document(MeshDocument([]))
        with self.assertRaises(EmptyMeshError):
            empty.voxelize()
        assert empty.result is None

        with self.assertRaises(InvalidStepError):
            MeshVoxelizer(step=0.0).load_document(box_document()).voxelize()
        with self.assertRaises(InvalidStepError):
            MeshVoxelizer(step=-1.0).load_document(box_document()).voxelize()

        with self.assertRaises(ValueError):
            VoxelizeOptions(progress_unit="cell")
        with self.assertRaises(ValueError):
            VoxelizeOptions(strategy="sideways")

    def test_export(self):
        """Test export through trimesh."""
        voxelizer = MeshVoxelizer(step=0.5).load_document(box_document()).voxelize()

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "voxels.ply"
            voxelizer.export(path)
            assert path.exists()

            loaded = trimesh.load(str(path), process=False)
            assert len(loaded.faces) == 12 * voxelizer.voxel_count


class TestMeshLoader(unittest.TestCase):
    """Tests for trimesh ingestion."""

    def test_vertex_colors(self):
        """Test per-vertex colors come through in unit range."""
        document = MeshLoader().load_scene(_colored_trimesh())

        assert len(document.primitives) == 1
        prim = document.primitives[0]
        assert prim.has_vertex_colors
        assert np.allclose(prim.colors, [0.0, 1.0, 0.0])
        assert prim.triangle_count == 12

    def test_scene_transform(self):
        """Test node transforms are kept on primitives."""
        transform = np.eye(4)
        transform[:3, 3] = [0.0, 0.0, 10.0]
        scene = trimesh.Scene()
        scene.add_geometry(_colored_trimesh(), transform=transform)

        document = MeshLoader().load_scene(scene)
        bounds = compute_bounds(document)
        assert np.allclose(bounds.min, [0.0, 0.0, 10.0])
        assert np.allclose(bounds.max, [1.0, 1.0, 11.0])

    def test_pbr_material(self):
        """Test base color factor and double-sided flag."""
        material = trimesh.visual.material.PBRMaterial(
            baseColorFactor=[255, 0, 0, 255], doubleSided=False
        )
        visual = trimesh.visual.TextureVisuals(material=material)

        normalized = MeshLoader().material_from_visual(visual)
        assert normalized.material_color() == (1.0, 0.0, 0.0)
        assert not normalized.double_sided

        forced = MeshLoader(double_sided=True).material_from_visual(visual)
        assert forced.double_sided

    def test_no_material(self):
        """Test visuals without a material."""
        material = MeshLoader().material_from_visual(_colored_trimesh().visual)
        assert material.base_color is None
        assert material.double_sided

    def test_load_file(self):
        """Test loading from disk."""
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "cube.ply"
            _colored_trimesh().export(str(path))

            document = MeshLoader().load(path)
            assert document.triangle_count == 12
            assert document.has_vertex_colors

        with self.assertRaises(FileNotFoundError):
            MeshLoader().load(Path(tmp) / "missing.glb")


class TestCLI(unittest.TestCase):
    """Tests for the meshvox command."""

    def test_end_to_end(self):
        """Test file in, voxel mesh out."""
        with tempfile.TemporaryDirectory() as tmp:
            source = Path(tmp) / "cube.ply"
            output = Path(tmp) / "voxels.ply"
            _colored_trimesh().export(str(source))

            code = cli.main([str(source), "-o", str(output), "--step", "0.5", "--inset", "0.05"])
            assert code == 0
            assert output.exists()

    def test_missing_input(self):
        """Test a missing input file."""
        assert cli.main(["does-not-exist.glb"]) == 1

    def test_bad_step(self):
        """Test that errors become a non-zero exit code."""
        with tempfile.TemporaryDirectory() as tmp:
            source = Path(tmp) / "cube.ply"
            _colored_trimesh().export(str(source))
            assert cli.main([str(source), "--step", "-1"]) == 1


if __name__ == "__main__":
    unittest.main(verbosity=2)
