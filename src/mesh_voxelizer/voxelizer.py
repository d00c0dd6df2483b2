"""
Voxelization Engine

This module provides:
- VoxelizeOptions: the configuration surface of a voxelization pass
- Voxelizer: bounds -> grid plan -> chunked occupancy scan -> frozen store
- splat_vertices: vertex splatting into a resolution³ grid

Preconditions (non-empty mesh, valid step/resolution) are checked before
any store is allocated, so a failed pass never returns a partial grid.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union
import logging
import time
import numpy as np

from .mesh import MeshDocument, WHITE
from .bounds import BoundingBox, BoundsCalculator
from .grid import GridPlanner, GridSpec, DEFAULT_RESOLUTION
from .occupancy import OccupancyEngine, Strategy, ColorMode
from .scheduler import BatchScheduler, ScanState, DEFAULT_BATCH_SIZE, PROGRESS_UNITS
from .voxel_grid import VoxelGridStore
from .errors import InvalidStepError

logger = logging.getLogger(__name__)


@dataclass
class VoxelizeOptions:
    """
    Options for a voxelization pass.

    Attributes:
        step: Absolute cell size; when None it is derived from resolution
        resolution: Target cell count along the largest bounding-box axis
        strategy: "parity" or "multi-directional"
        color_mode: "interpolate" or "nearest-vertex" (multi-directional only)
        batch_size: Z layers per chunk
        progress_unit: "row" or "layer"
        on_progress: Progress callback, fraction in [0, 1]
        debug: Record intermediate quantities in ScanResult.diagnostics
        cancel_event: Object with is_set(), checked once per chunk
    """

    step: Optional[float] = None
    resolution: float = DEFAULT_RESOLUTION
    strategy: Union[str, Strategy] = Strategy.MULTI_DIRECTIONAL
    color_mode: Union[str, ColorMode] = ColorMode.INTERPOLATE
    batch_size: int = DEFAULT_BATCH_SIZE
    progress_unit: str = "row"
    on_progress: Optional[Callable[[float], None]] = field(default=None, repr=False)
    debug: bool = False
    cancel_event: Optional[Any] = field(default=None, repr=False)

    def __post_init__(self):
        if not isinstance(self.strategy, Strategy):
            self.strategy = Strategy(self.strategy)
        if not isinstance(self.color_mode, ColorMode):
            self.color_mode = ColorMode(self.color_mode)
        if self.progress_unit not in PROGRESS_UNITS:
            raise ValueError(f"progress_unit must be one of {PROGRESS_UNITS}")
        if int(self.batch_size) < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")


@dataclass
class ScanResult:
    """Output of a voxelization pass."""

    store: VoxelGridStore
    grid: GridSpec
    bounds: BoundingBox
    diagnostics: Optional[dict] = None

    @property
    def voxel_count(self) -> int:
        return self.store.count_voxels()


class Voxelizer:
    """
    Engine for converting triangle meshes to voxel grids.

    The voxelizer handles:
    - Bounding box and grid planning
    - Occupancy classification (parity or multi-directional)
    - Chunked scanning with progress reporting
    """

    def __init__(self, options: Optional[VoxelizeOptions] = None):
        """
        Initialize the voxelizer.

        Args:
            options: Pass configuration (defaults if omitted)
        """
        self.options = options or VoxelizeOptions()
        self.bounds_calculator = BoundsCalculator()
        self.planner = GridPlanner(resolution=self.options.resolution)
        self._result: Optional[ScanResult] = None

    def plan(self, document: MeshDocument):
        """
        Validate preconditions and plan the grid.

        Returns:
            (bounds, grid)

        Raises:
            EmptyMeshError: No vertices
            InvalidStepError: Bad step or resolution
        """
        bounds = self.bounds_calculator.compute(document)
        grid = self.planner.plan(bounds, step=self.options.step)
        logger.info(
            "Grid %s step=%.6g over bounds %s..%s (%s)",
            "x".join(str(d) for d in grid.dims), grid.step,
            np.round(bounds.min, 6).tolist(), np.round(bounds.max, 6).tolist(),
            self.options.strategy.value,
        )
        return bounds, grid

    def scheduler(self, document: MeshDocument) -> BatchScheduler:
        """Build the engine and scheduler for a document."""
        engine = OccupancyEngine(
            document.triangle_soup(),
            strategy=self.options.strategy,
            color_mode=self.options.color_mode,
        )
        return BatchScheduler(
            engine,
            batch_size=self.options.batch_size,
            progress_unit=self.options.progress_unit,
            on_progress=self.options.on_progress,
            cancel_event=self.options.cancel_event,
        )

    def voxelize(self, document: MeshDocument) -> ScanResult:
        """
        Voxelize a mesh document synchronously.

        Args:
            document: Mesh document

        Returns:
            ScanResult holding a frozen VoxelGridStore
        """
        bounds, grid = self.plan(document)
        scheduler = self.scheduler(document)

        start = time.perf_counter()
        state = scheduler.run(grid)
        return self._complete(scheduler, state, bounds, time.perf_counter() - start)

    async def voxelize_async(self, document: MeshDocument) -> ScanResult:
        """Voxelize on an asyncio event loop, suspending between chunks."""
        bounds, grid = self.plan(document)
        scheduler = self.scheduler(document)

        start = time.perf_counter()
        state = await scheduler.run_async(grid)
        return self._complete(scheduler, state, bounds, time.perf_counter() - start)

    def _complete(
        self,
        scheduler: BatchScheduler,
        state: ScanState,
        bounds: BoundingBox,
        elapsed: float
    ) -> ScanResult:
        store = scheduler.finish(state)
        occupied = store.count_voxels()
        logger.info("Voxelized %d/%d cells in %.2fs", occupied, store.total_cells, elapsed)

        diagnostics = None
        if self.options.debug:
            diagnostics = {
                "bounds": bounds.as_dict(),
                "size": bounds.size.tolist(),
                "dims": list(state.grid.dims),
                "step": state.grid.step,
                "strategy": self.options.strategy.value,
                "layer_timings": list(state.layer_timings),
                "total_cells": state.total_cells,
                "occupied": occupied,
            }

        self._result = ScanResult(store=store, grid=state.grid, bounds=bounds, diagnostics=diagnostics)
        return self._result

    @property
    def result(self) -> Optional[ScanResult]:
        """Get the last scan result."""
        return self._result


def splat_vertices(document: MeshDocument, resolution: int = DEFAULT_RESOLUTION) -> ScanResult:
    """
    Drop every vertex into a resolution³ grid.

    Each world-space vertex lands in cell floor((v - min) / step) with
    step = max(size) / resolution; indices outside the grid are dropped.
    The cell takes the vertex color, else the material base color, else
    white. Later vertices overwrite earlier ones.

    Note: a vertex on the max face of the largest axis floors to index
    `resolution` and is dropped, so the outermost layer of extreme vertices
    never appears in the grid.

    Args:
        document: Mesh document
        resolution: Cells per axis

    Returns:
        ScanResult with a frozen store
    """
    if isinstance(resolution, bool) or int(resolution) != resolution or resolution < 1:
        raise InvalidStepError(f"resolution must be a positive integer, got {resolution}")
    resolution = int(resolution)

    bounds = BoundsCalculator().compute(document)
    planner = GridPlanner(resolution=resolution)
    step = planner.derive_step(bounds)

    store = VoxelGridStore(resolution, resolution, resolution, origin=bounds.min, step=step)

    for prim in document.primitives:
        world = prim.world_positions()
        indices = np.floor((world - bounds.min) / step).astype(np.int64)

        material_color = prim.material.material_color()
        fallback = material_color if material_color is not None else WHITE

        for i, (x, y, z) in enumerate(indices):
            if not (0 <= x < resolution and 0 <= y < resolution and 0 <= z < resolution):
                continue
            color = prim.colors[i] if prim.colors is not None else fallback
            store.set_voxel(int(x), int(y), int(z), color)

    grid = GridSpec(origin=np.array(bounds.min, dtype=np.float64), step=step,
                    dims=(resolution, resolution, resolution))
    return ScanResult(store=store.freeze(), grid=grid, bounds=bounds)
