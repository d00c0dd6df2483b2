"""
Tests for bounds computation and grid planning.
"""

import sys
from pathlib import Path
import math
import numpy as np
import unittest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from mesh_voxelizer.bounds import BoundingBox, compute_bounds
from mesh_voxelizer.grid import GridPlanner, plan_grid
from mesh_voxelizer.mesh import MeshDocument, Primitive
from mesh_voxelizer.errors import EmptyMeshError, InvalidStepError

from mesh_fixtures import box_document, box_primitive


def _box(lo, hi):
    return BoundingBox(min=np.array(lo, dtype=float), max=np.array(hi, dtype=float))


class TestBoundsCalculator(unittest.TestCase):
    """Tests for BoundsCalculator."""

    def test_all_vertices_inside(self):
        rng = np.random.default_rng(7)
        positions = rng.normal(size=(50, 3)) * 3.0
        faces = np.arange(48).reshape(-1, 3)
        doc = MeshDocument([Primitive(positions=positions, faces=faces)])

        box = compute_bounds(doc)
        assert np.all(box.min <= box.max)
        for p in positions:
            assert box.contains(p)

    def test_transform_applied(self):
        transform = np.eye(4)
        transform[:3, 3] = [10.0, -2.0, 0.5]
        doc = MeshDocument([box_primitive(transform=transform)])

        box = compute_bounds(doc)
        assert np.allclose(box.min, [10.0, -2.0, 0.5])
        assert np.allclose(box.max, [11.0, -1.0, 1.5])

    def test_multiple_primitives(self):
        doc = MeshDocument([
            box_primitive(origin=(-1, -1, -1)),
            box_primitive(origin=(2, 0, 0), size=(1, 3, 1)),
        ])
        box = compute_bounds(doc)
        assert np.allclose(box.min, [-1, -1, -1])
        assert np.allclose(box.max, [3, 3, 1])

    def test_empty_mesh(self):
        with self.assertRaises(EmptyMeshError):
            compute_bounds(MeshDocument([]))

        empty_prim = Primitive(positions=np.zeros((0, 3)), faces=np.zeros((0, 3)))
        with self.assertRaises(EmptyMeshError):
            compute_bounds(MeshDocument([empty_prim]))


class TestGridPlanner(unittest.TestCase):
    """Tests for GridPlanner."""

    def test_dims_formula(self):
        bounds = _box([0, 0, 0], [2.0, 1.0, 0.3])
        grid = plan_grid(bounds, step=0.25)
        expected = tuple(math.ceil(s / 0.25) + 1 for s in (2.0, 1.0, 0.3))
        assert grid.dims == expected
        assert grid.dims == (9, 5, 3)

    def test_halving_step(self):
        bounds = _box([0, 0, 0], [2.0, 2.0, 2.0])
        coarse = plan_grid(bounds, step=0.5)
        fine = plan_grid(bounds, step=0.25)
        assert coarse.dims == (5, 5, 5)
        assert fine.dims == (9, 9, 9)

    def test_flat_axis_has_one_cell(self):
        grid = plan_grid(_box([0, 0, 0], [1.0, 1.0, 0.0]), step=0.5)
        assert grid.dims == (3, 3, 1)

    def test_step_from_resolution(self):
        bounds = _box([0, 0, 0], [4.0, 2.0, 1.0])
        grid = GridPlanner(resolution=8).plan(bounds)
        assert grid.step == 0.5
        assert grid.dims == (9, 5, 3)

        # Explicit step wins over resolution
        assert plan_grid(bounds, step=1.0, resolution=8).step == 1.0

    def test_invalid_step(self):
        bounds = _box([0, 0, 0], [1, 1, 1])
        for bad in (0.0, -1.0, float("nan"), float("inf")):
            with self.assertRaises(InvalidStepError):
                plan_grid(bounds, step=bad)

    def test_invalid_resolution(self):
        bounds = _box([0, 0, 0], [1, 1, 1])
        for bad in (0, -4, float("nan")):
            with self.assertRaises(InvalidStepError):
                plan_grid(bounds, resolution=bad)

    def test_zero_extent_cannot_derive_step(self):
        with self.assertRaises(InvalidStepError):
            plan_grid(_box([1, 1, 1], [1, 1, 1]))

    def test_cell_positions(self):
        grid = plan_grid(compute_bounds(box_document(origin=(1, 2, 3))), step=0.5)
        assert np.allclose(grid.cell(0, 0, 0), [1, 2, 3])
        assert np.allclose(grid.cell(2, 1, 0), [2.0, 2.5, 3.0])

        row = grid.row_points(1, 2)
        assert row.shape == (grid.dims[0], 3)
        assert np.allclose(row[0], grid.cell(0, 1, 2))
        assert np.allclose(row[-1], grid.cell(grid.dims[0] - 1, 1, 2))

    def test_flat_index(self):
        grid = plan_grid(_box([0, 0, 0], [1, 1, 1]), step=0.5)
        nx, ny, _ = grid.dims
        assert grid.flat_index(0, 0, 0) == 0
        assert grid.flat_index(1, 2, 1) == 1 + 2 * nx + nx * ny
        assert grid.total_cells == 27


if __name__ == "__main__":
    unittest.main(verbosity=2)
