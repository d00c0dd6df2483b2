"""
Occupancy Classification

Decides, for each probe point, whether the grid cell is occupied and with
which color. Two interchangeable strategies sit behind one engine:

- PARITY: one +Z ray, odd count of distinct crossings = inside. Fast, but
  assumes a closed two-manifold surface; open meshes are misclassified near
  their boundaries and this is not corrected.
- MULTI_DIRECTIONAL: six axis rays, the globally nearest hit wins and its
  color is resolved from the surface. No hit in any direction = empty.
"""

from enum import Enum
from typing import List, Optional, Tuple, Union
import logging
import numpy as np

from .mesh import TriangleSoup
from .color import SurfaceColorResolver, SurfaceHit
from .raycast import cast_rays, count_crossings
from .errors import IntersectionFailure

logger = logging.getLogger(__name__)

Color = Tuple[float, float, float]


class Strategy(Enum):
    """Occupancy classification strategies."""
    PARITY = "parity"
    MULTI_DIRECTIONAL = "multi-directional"


class ColorMode(Enum):
    """How multi-directional hits are colored."""
    INTERPOLATE = "interpolate"          # barycentric vertex-color blend
    NEAREST_VERTEX = "nearest-vertex"    # closest colored vertex within threshold


PARITY_DIRECTION = np.array([0.0, 0.0, 1.0])

# Enumeration order doubles as the tie-break order for equal distances
SAMPLE_DIRECTIONS = np.array([
    [0, 1, 0],   # +Y
    [0, -1, 0],  # -Y
    [1, 0, 0],   # +X
    [-1, 0, 0],  # -X
    [0, 0, 1],   # +Z
    [0, 0, -1],  # -Z
], dtype=np.float64)

# Distances closer than this count as equal
TIE_EPSILON = 1e-9

# Barycentric slack so probes aimed exactly at a shared edge still register
# a hit; parity merges the resulting duplicate crossings
EDGE_TOLERANCE = 1e-9


def _coerce(enum_cls, value):
    return value if isinstance(value, enum_cls) else enum_cls(value)


class OccupancyEngine:
    """
    Classifies probe points against a triangle soup.

    The engine is stateless between calls; each cell is classified
    independently, so callers may partition cells freely.
    """

    def __init__(
        self,
        soup: TriangleSoup,
        strategy: Union[str, Strategy] = Strategy.MULTI_DIRECTIONAL,
        color_mode: Union[str, ColorMode] = ColorMode.INTERPOLATE,
        resolver: Optional[SurfaceColorResolver] = None
    ):
        """
        Initialize the engine.

        Args:
            soup: Packed world-space triangles
            strategy: Strategy enum or its string value
            color_mode: ColorMode enum or its string value
            resolver: Color resolver (built from the soup if omitted)
        """
        self.soup = soup
        self.strategy = _coerce(Strategy, strategy)
        self.color_mode = _coerce(ColorMode, color_mode)
        self.resolver = resolver or SurfaceColorResolver(soup)
        self.directions = SAMPLE_DIRECTIONS

    def classify(self, point) -> Optional[Color]:
        """
        Classify a single probe point.

        Returns:
            RGB color if occupied, None if empty
        """
        return self.classify_row(np.asarray(point, dtype=np.float64).reshape(1, 3))[0]

    def classify_row(self, points: np.ndarray) -> List[Optional[Color]]:
        """
        Classify a batch of probe points (typically one grid row).

        Args:
            points: (N, 3) probe points

        Returns:
            List of N entries, each an RGB tuple or None
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(self.soup) == 0:
            return [None] * len(points)

        if self.strategy is Strategy.PARITY:
            return self._classify_parity(points)
        return self._classify_nearest(points)

    def _classify_parity(self, points: np.ndarray) -> List[Optional[Color]]:
        try:
            crossings = count_crossings(
                points, PARITY_DIRECTION, self.soup, edge_tolerance=EDGE_TOLERANCE
            )
        except IntersectionFailure as e:
            logger.debug("Parity ray skipped: %s", e)
            return [None] * len(points)

        result: List[Optional[Color]] = []
        for i in range(len(points)):
            if crossings.count[i] % 2 == 1:
                result.append(self.resolver.parity_color(int(crossings.triangle[i])))
            else:
                result.append(None)
        return result

    def _classify_nearest(self, points: np.ndarray) -> List[Optional[Color]]:
        n = len(points)
        best_t = np.full(n, np.inf)
        best_tri = np.full(n, -1, dtype=np.int64)
        best_u = np.zeros(n)
        best_v = np.zeros(n)
        best_dir = np.zeros(n, dtype=np.int64)

        for d, direction in enumerate(self.directions):
            try:
                hits = cast_rays(
                    points, direction, self.soup,
                    edge_tolerance=EDGE_TOLERANCE
                )
            except IntersectionFailure as e:
                logger.debug("Direction %s skipped: %s", direction.tolist(), e)
                continue

            # Strict improvement only; earlier directions win ties
            better = (hits.triangle >= 0) & (hits.distance < best_t - TIE_EPSILON)
            best_t[better] = hits.distance[better]
            best_tri[better] = hits.triangle[better]
            best_u[better] = hits.u[better]
            best_v[better] = hits.v[better]
            best_dir[better] = d

        result: List[Optional[Color]] = []
        for i in range(n):
            tri = int(best_tri[i])
            if tri < 0:
                result.append(None)
                continue

            point = points[i] + best_t[i] * self.directions[best_dir[i]]
            weights = None
            if self.color_mode is ColorMode.INTERPOLATE:
                weights = np.array([1.0 - best_u[i] - best_v[i], best_u[i], best_v[i]])

            result.append(self.resolver.resolve(
                SurfaceHit(triangle=tri, point=point, weights=weights)
            ))
        return result
