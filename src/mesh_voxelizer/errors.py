"""
Error taxonomy for the voxelization pipeline.

Precondition failures (empty mesh, bad step) abort a pass before any grid
is allocated. IntersectionFailure is raised by the ray-cast layer and is
recovered locally by the occupancy engine.
"""


class VoxelizationError(Exception):
    """Base class for all voxelization errors."""


class EmptyMeshError(VoxelizationError, ValueError):
    """The mesh has no vertices, so no bounds can be defined."""


class InvalidStepError(VoxelizationError, ValueError):
    """Grid step or resolution is non-positive or non-finite."""


class IntersectionFailure(VoxelizationError, ArithmeticError):
    """A ray test could not be performed (degenerate direction or origin)."""


class VoxelizationCancelled(VoxelizationError):
    """The pass was cancelled at a chunk boundary."""
