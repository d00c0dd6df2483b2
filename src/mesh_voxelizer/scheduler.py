"""
Batch Scheduling

Drives an OccupancyEngine over every cell of a grid in chunks of Z layers.
The core step is run_chunk(state) -> (state, done); drivers decide how
control is yielded between chunks:

- run():        synchronous loop, yields the thread with time.sleep(0)
- iter_chunks(): generator, the caller resumes it explicitly
- run_async():  coroutine, awaits asyncio.sleep(0) between chunks

Progress is reported as completed_cells / total_cells after every row (or
every layer), is monotonically non-decreasing and ends at exactly 1.0.
"""

from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple, Any
import asyncio
import logging
import time

from .grid import GridSpec
from .occupancy import OccupancyEngine
from .voxel_grid import VoxelGridStore
from .errors import VoxelizationCancelled

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
PROGRESS_UNITS = ("row", "layer")


@dataclass
class ScanState:
    """Progress of one voxelization pass. Owns its store until finished."""

    grid: GridSpec
    store: VoxelGridStore
    next_layer: int = 0
    completed_cells: int = 0
    layer_timings: List[float] = field(default_factory=list)

    @property
    def total_cells(self) -> int:
        return self.grid.total_cells

    @property
    def done(self) -> bool:
        return self.next_layer >= self.grid.dims[2]

    @property
    def progress(self) -> float:
        return self.completed_cells / self.total_cells


class BatchScheduler:
    """
    Chunked, cooperative driver for an OccupancyEngine.
    """

    def __init__(
        self,
        engine: OccupancyEngine,
        batch_size: int = DEFAULT_BATCH_SIZE,
        progress_unit: str = "row",
        on_progress: Optional[Callable[[float], None]] = None,
        cancel_event: Optional[Any] = None
    ):
        """
        Initialize the scheduler.

        Args:
            engine: Occupancy classifier
            batch_size: Z layers processed per chunk (>= 1)
            progress_unit: "row" or "layer" progress granularity
            on_progress: Callback receiving a fraction in [0, 1]
            cancel_event: Object with is_set(); checked at chunk boundaries
        """
        if int(batch_size) < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if progress_unit not in PROGRESS_UNITS:
            raise ValueError(f"progress_unit must be one of {PROGRESS_UNITS}")

        self.engine = engine
        self.batch_size = int(batch_size)
        self.progress_unit = progress_unit
        self.on_progress = on_progress
        self.cancel_event = cancel_event

    def start(self, grid: GridSpec) -> ScanState:
        """Allocate an empty store and a fresh state for a grid."""
        return ScanState(grid=grid, store=VoxelGridStore.from_grid_spec(grid))

    def run_chunk(self, state: ScanState) -> Tuple[ScanState, bool]:
        """
        Process up to batch_size Z layers.

        Returns:
            (state, done)

        Raises:
            VoxelizationCancelled: If the cancel event is set
        """
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise VoxelizationCancelled(
                f"Cancelled at layer {state.next_layer}/{state.grid.dims[2]}"
            )

        _, ny, nz = state.grid.dims
        end = min(state.next_layer + self.batch_size, nz)

        for z in range(state.next_layer, end):
            layer_start = time.perf_counter()

            for y in range(ny):
                row = self.engine.classify_row(state.grid.row_points(y, z))
                state.store.set_row(y, z, row)
                state.completed_cells += len(row)
                if self.progress_unit == "row":
                    self._report(state)

            if self.progress_unit == "layer":
                self._report(state)

            elapsed = time.perf_counter() - layer_start
            state.layer_timings.append(elapsed)
            logger.debug("Layer %d/%d done in %.4fs", z + 1, nz, elapsed)

        state.next_layer = end
        return state, state.done

    def finish(self, state: ScanState) -> VoxelGridStore:
        """Freeze and release the store of a completed pass."""
        if not state.done:
            raise RuntimeError("Voxelization pass is not complete")
        return state.store.freeze()

    def iter_chunks(self, grid: GridSpec) -> Iterator[ScanState]:
        """
        Generator driver: yields the state after every chunk.

        The last yielded state is done; pass it to finish().
        """
        state = self.start(grid)
        done = False
        while not done:
            state, done = self.run_chunk(state)
            yield state

    def run(self, grid: GridSpec) -> ScanState:
        """Synchronous driver; yields the thread between chunks."""
        state = None
        for state in self.iter_chunks(grid):
            time.sleep(0)
        return state

    async def run_async(self, grid: GridSpec) -> ScanState:
        """Asyncio driver; suspends on the event loop between chunks."""
        state = self.start(grid)
        done = False
        while not done:
            state, done = self.run_chunk(state)
            await asyncio.sleep(0)
        return state

    def _report(self, state: ScanState):
        if self.on_progress is not None:
            self.on_progress(state.progress)
