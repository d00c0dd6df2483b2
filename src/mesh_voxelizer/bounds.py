"""
Axis-aligned bounding box computation over a mesh document.
"""

from dataclasses import dataclass
import logging
import numpy as np

from .mesh import MeshDocument
from .errors import EmptyMeshError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box with min <= max on every axis."""

    min: np.ndarray
    max: np.ndarray

    @property
    def size(self) -> np.ndarray:
        return self.max - self.min

    @property
    def center(self) -> np.ndarray:
        return (self.min + self.max) / 2

    def contains(self, point, tolerance: float = 0.0) -> bool:
        """Check whether a point lies inside the box (inclusive)."""
        p = np.asarray(point, dtype=np.float64)
        return bool(np.all(p >= self.min - tolerance) and np.all(p <= self.max + tolerance))

    def as_dict(self) -> dict:
        return {"min": self.min.tolist(), "max": self.max.tolist()}


class BoundsCalculator:
    """
    Scans every world-space vertex once and accumulates componentwise
    minimum and maximum.
    """

    def compute(self, document: MeshDocument) -> BoundingBox:
        """
        Compute the bounding box of a mesh document.

        Args:
            document: Mesh document; node transforms are applied

        Returns:
            BoundingBox

        Raises:
            EmptyMeshError: If the document has no vertices
        """
        positions = document.world_positions()
        if len(positions) == 0:
            raise EmptyMeshError("Mesh has no vertices; bounds are undefined")

        box = BoundingBox(min=positions.min(axis=0), max=positions.max(axis=0))
        logger.debug("Bounds min=%s max=%s", box.min, box.max)
        return box


def compute_bounds(document: MeshDocument) -> BoundingBox:
    """Shortcut for BoundsCalculator().compute(document)."""
    return BoundsCalculator().compute(document)
