"""
Tests for chunked scanning, progress reporting and cancellation.
"""

import sys
from pathlib import Path
import asyncio
import threading
import numpy as np
import unittest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from mesh_voxelizer.bounds import compute_bounds
from mesh_voxelizer.grid import plan_grid
from mesh_voxelizer.occupancy import OccupancyEngine
from mesh_voxelizer.scheduler import BatchScheduler
from mesh_voxelizer.errors import VoxelizationCancelled

from mesh_fixtures import box_document


def _setup(step=0.25, **kwargs):
    doc = box_document()
    grid = plan_grid(compute_bounds(doc), step=step)
    engine = OccupancyEngine(doc.triangle_soup(), strategy="parity")
    return grid, BatchScheduler(engine, **kwargs)


class TestBatchScheduler(unittest.TestCase):
    """Tests for BatchScheduler."""

    def test_row_progress(self):
        reports = []
        grid, scheduler = _setup(batch_size=2, on_progress=reports.append)

        state = scheduler.run(grid)
        nx, ny, nz = grid.dims

        assert state.done
        assert len(reports) == ny * nz
        assert all(a <= b for a, b in zip(reports, reports[1:]))
        assert reports[-1] == 1.0
        assert np.isclose(reports[0], nx / grid.total_cells)

    def test_layer_progress(self):
        reports = []
        grid, scheduler = _setup(progress_unit="layer", on_progress=reports.append)

        scheduler.run(grid)
        assert len(reports) == grid.dims[2]
        assert all(a <= b for a, b in zip(reports, reports[1:]))
        assert reports[-1] == 1.0

    def test_iter_chunks(self):
        grid, scheduler = _setup(batch_size=2)
        layers = []
        state = None
        for state in scheduler.iter_chunks(grid):
            layers.append(state.next_layer)

        # 5 layers in chunks of 2
        assert grid.dims[2] == 5
        assert layers == [2, 4, 5]
        assert state.done

        store = scheduler.finish(state)
        assert store.frozen
        assert len(state.layer_timings) == 5

    def test_chunks_match_single_pass(self):
        grid, small = _setup(batch_size=1)
        _, large = _setup(batch_size=100)

        a = small.finish(small.run(grid))
        b = large.finish(large.run(grid))
        assert np.array_equal(a.occupancy, b.occupancy)
        assert np.allclose(a.colors[a.occupancy], b.colors[b.occupancy])
        # Includes the cells on the top and bottom diagonals
        assert a.occupancy[1:4, 1:4, 1:4].all()
        assert a.count_voxels() >= 27

    def test_async_driver(self):
        reports = []
        grid, scheduler = _setup(batch_size=1, on_progress=reports.append)

        state = asyncio.run(scheduler.run_async(grid))
        assert state.done
        assert reports[-1] == 1.0
        assert scheduler.finish(state).count_voxels() > 0

    def test_cancel(self):
        cancel = threading.Event()
        grid, scheduler = _setup(batch_size=1, cancel_event=cancel)

        chunks = scheduler.iter_chunks(grid)
        state = next(chunks)
        assert state.next_layer == 1

        cancel.set()
        with self.assertRaises(VoxelizationCancelled):
            next(chunks)

    def test_cancel_before_start(self):
        cancel = threading.Event()
        cancel.set()
        grid, scheduler = _setup(cancel_event=cancel)
        with self.assertRaises(VoxelizationCancelled):
            scheduler.run(grid)

    def test_finish_incomplete(self):
        grid, scheduler = _setup(batch_size=1)
        state, done = scheduler.run_chunk(scheduler.start(grid))
        assert not done
        with self.assertRaises(RuntimeError):
            scheduler.finish(state)

    def test_invalid_settings(self):
        with self.assertRaises(ValueError):
            _setup(batch_size=0)
        with self.assertRaises(ValueError):
            _setup(progress_unit="cell")


if __name__ == "__main__":
    unittest.main(verbosity=2)
