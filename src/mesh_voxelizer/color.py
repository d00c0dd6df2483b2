"""
Color Management Module

Handles:
- Unit-range <-> 0-255 channel conversion at serialization boundaries
- Clamping of interpolated colors
- HSL softening of material colors for parity-classified voxels
- Surface color resolution for ray hits (SurfaceColorResolver)

Resolution precedence for a surface hit:
1. Per-vertex color (barycentric interpolation, or the nearest colored
   vertex within PROXIMITY_THRESHOLD when no barycentric data is available)
2. Material base color factor (alpha ignored)
3. Opaque white
"""

from typing import Tuple, Optional, NamedTuple
import colorsys
import numpy as np
from scipy.spatial import cKDTree

from .mesh import TriangleSoup, WHITE


# Nearest-vertex colors farther away than this are ignored (world units)
PROXIMITY_THRESHOLD = 0.01


def clamp_unit(color) -> Tuple[float, float, float]:
    """Clamp RGB channels to [0, 1]."""
    c = np.clip(np.asarray(color, dtype=np.float64)[:3], 0.0, 1.0)
    return (float(c[0]), float(c[1]), float(c[2]))


def to_rgb255(color) -> Tuple[int, int, int]:
    """
    Convert a unit-range RGB color to integer channels.

    Uses round-half-up, i.e. floor(c * 255 + 0.5).
    """
    c = np.floor(np.asarray(color, dtype=np.float64)[:3] * 255.0 + 0.5)
    c = np.clip(c, 0, 255).astype(int)
    return (int(c[0]), int(c[1]), int(c[2]))


def from_rgb255(rgb) -> Tuple[float, float, float]:
    """Convert 0-255 RGB channels to unit range."""
    r, g, b = rgb[:3]
    return (r / 255.0, g / 255.0, b / 255.0)


def soften_color(color) -> Tuple[float, float, float]:
    """
    Pull a color toward a paler tone: (h, s, l) -> (h, s * 0.8, l * 0.8 + 0.2).

    Args:
        color: Unit-range RGB

    Returns:
        Softened unit-range RGB
    """
    r, g, b = clamp_unit(color)
    h, l, s = colorsys.rgb_to_hls(r, g, b)
    return clamp_unit(colorsys.hls_to_rgb(h, l * 0.8 + 0.2, s * 0.8))


class SurfaceHit(NamedTuple):
    """
    A point on the surface to be colored.

    weights is None when only the hit point is known; the resolver then
    falls back to nearest-vertex lookup.
    """
    triangle: int
    point: np.ndarray
    weights: Optional[np.ndarray] = None


class SurfaceColorResolver:
    """
    Resolves RGB colors for surface hits on a TriangleSoup.

    All results are clamped to [0, 1]. The resolver never fails: missing
    data falls through the precedence chain down to white.
    """

    def __init__(
        self,
        soup: TriangleSoup,
        proximity_threshold: float = PROXIMITY_THRESHOLD
    ):
        """
        Initialize the resolver.

        Args:
            soup: Packed triangles with per-corner and material colors
            proximity_threshold: Max distance for nearest-vertex colors
        """
        self.soup = soup
        self.proximity_threshold = proximity_threshold
        self._tree: Optional[cKDTree] = None
        self._tree_colors: Optional[np.ndarray] = None

    def resolve(self, hit: SurfaceHit) -> Tuple[float, float, float]:
        """
        Resolve the color of a surface hit.

        Args:
            hit: SurfaceHit with triangle index and optional barycentric weights

        Returns:
            Unit-range RGB tuple
        """
        if hit.weights is not None:
            color = self.interpolate(hit.triangle, hit.weights)
        else:
            color = self.nearest_vertex_color(hit.point)

        if color is not None:
            return color
        return self.material_color(hit.triangle)

    def interpolate(self, triangle: int, weights) -> Optional[Tuple[float, float, float]]:
        """
        Barycentric blend of the triangle's vertex colors.

        Returns:
            Clamped RGB, or None if the triangle carries no vertex colors
        """
        if not self.soup.has_vertex_color[triangle]:
            return None
        w = np.asarray(weights, dtype=np.float64).reshape(3)
        return clamp_unit(w @ self.soup.corner_colors[triangle])

    def nearest_vertex_color(self, point) -> Optional[Tuple[float, float, float]]:
        """
        Color of the closest colored vertex, if within the proximity threshold.
        """
        tree = self._vertex_tree()
        if tree is None:
            return None

        distance, index = tree.query(np.asarray(point, dtype=np.float64).reshape(3))
        if not np.isfinite(distance) or distance >= self.proximity_threshold:
            return None
        return clamp_unit(self._tree_colors[index])

    def material_color(self, triangle: int) -> Tuple[float, float, float]:
        """Material base color of a triangle, or white."""
        if self.soup.has_material_color[triangle]:
            return clamp_unit(self.soup.material_colors[triangle])
        return WHITE

    def parity_color(self, triangle: int) -> Tuple[float, float, float]:
        """Softened material color used by the parity strategy; white if none."""
        if self.soup.has_material_color[triangle]:
            return soften_color(self.soup.material_colors[triangle])
        return WHITE

    def _vertex_tree(self) -> Optional[cKDTree]:
        """Lazily build a KD-tree over all colored triangle corners."""
        if self._tree is None:
            colored = self.soup.has_vertex_color
            if not np.any(colored):
                return None
            corners = self.soup.triangles[colored].reshape(-1, 3)
            self._tree_colors = self.soup.corner_colors[colored].reshape(-1, 3)
            self._tree = cKDTree(corners)
        return self._tree
