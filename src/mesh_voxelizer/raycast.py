"""
Ray/Triangle Intersection Kernels with Numba JIT Compilation

Moller-Trumbore intersection of one ray direction against every triangle of
a packed TriangleSoup, for a whole row of probe origins at once:

- cast_rays: nearest hit per origin with barycentrics (nearest-surface sampling)
- count_crossings: number of distinct surface crossings per origin (parity)

A ray through a shared edge or vertex hits every triangle meeting there at
the same distance; count_crossings merges such hits into one crossing.

Barycentric convention: hit = (1 - u - v) * A + u * B + v * C
"""

from typing import NamedTuple
import numpy as np
from numba import njit

from .mesh import TriangleSoup
from .errors import IntersectionFailure


# Below this |det| the ray is parallel to the triangle plane (or the
# triangle is degenerate) and the pair is skipped.
DET_EPSILON = 1e-12

# Hits closer than this (relative to max(1, t)) are the same crossing
CROSSING_EPSILON = 1e-9


class RayHits(NamedTuple):
    """Per-origin nearest hits for one direction."""
    distance: np.ndarray   # (N,) nearest hit distance, inf if none
    triangle: np.ndarray   # (N,) nearest triangle index, -1 if none
    u: np.ndarray          # (N,) barycentric weight of corner B
    v: np.ndarray          # (N,) barycentric weight of corner C

    def hit(self, i: int) -> bool:
        return self.triangle[i] >= 0

    def weights(self, i: int) -> np.ndarray:
        """Barycentric weights (w_a, w_b, w_c) of the nearest hit."""
        u, v = self.u[i], self.v[i]
        return np.array([1.0 - u - v, u, v])


class Crossings(NamedTuple):
    """Per-origin surface crossings for one direction."""
    count: np.ndarray      # (N,) distinct crossings ahead of the origin
    triangle: np.ndarray   # (N,) first triangle crossed, -1 if none
    distance: np.ndarray   # (N,) distance to the first crossing, inf if none


@njit(cache=True)
def _cast_row(
    origins: np.ndarray,
    direction: np.ndarray,
    triangles: np.ndarray,
    cull: np.ndarray,
    use_cull: bool,
    edge_tolerance: float
):
    """
    Intersect rays origins[i] + t * direction (t >= 0) with all triangles.

    Returns:
        (best_t, best_tri, best_u, best_v)
    """
    n = origins.shape[0]
    num_tris = triangles.shape[0]

    best_t = np.full(n, np.inf)
    best_tri = np.full(n, -1, dtype=np.int64)
    best_u = np.zeros(n)
    best_v = np.zeros(n)

    dx, dy, dz = direction[0], direction[1], direction[2]

    for tri in range(num_tris):
        ax, ay, az = triangles[tri, 0, 0], triangles[tri, 0, 1], triangles[tri, 0, 2]
        e1x = triangles[tri, 1, 0] - ax
        e1y = triangles[tri, 1, 1] - ay
        e1z = triangles[tri, 1, 2] - az
        e2x = triangles[tri, 2, 0] - ax
        e2y = triangles[tri, 2, 1] - ay
        e2z = triangles[tri, 2, 2] - az

        # p = direction x e2
        px = dy * e2z - dz * e2y
        py = dz * e2x - dx * e2z
        pz = dx * e2y - dy * e2x

        det = e1x * px + e1y * py + e1z * pz
        if abs(det) < DET_EPSILON:
            continue
        # det < 0: ray travels along the face normal (back face)
        if use_cull and cull[tri] and det < 0.0:
            continue
        inv_det = 1.0 / det

        for i in range(n):
            sx = origins[i, 0] - ax
            sy = origins[i, 1] - ay
            sz = origins[i, 2] - az

            u = (sx * px + sy * py + sz * pz) * inv_det
            if u < -edge_tolerance or u > 1.0 + edge_tolerance:
                continue

            qx = sy * e1z - sz * e1y
            qy = sz * e1x - sx * e1z
            qz = sx * e1y - sy * e1x

            v = (dx * qx + dy * qy + dz * qz) * inv_det
            if v < -edge_tolerance or u + v > 1.0 + edge_tolerance:
                continue

            t = (e2x * qx + e2y * qy + e2z * qz) * inv_det
            if t < 0.0:
                continue

            if t < best_t[i]:
                best_t[i] = t
                best_tri[i] = tri
                best_u[i] = u
                best_v[i] = v

    return best_t, best_tri, best_u, best_v


@njit(cache=True)
def _count_row(
    origins: np.ndarray,
    direction: np.ndarray,
    triangles: np.ndarray,
    edge_tolerance: float,
    merge_epsilon: float
):
    """
    Count distinct crossings of rays origins[i] + t * direction (t >= 0).

    Hit distances are collected per origin, sorted, and runs of equal
    distances are counted once.

    Returns:
        (counts, first_tri, first_t)
    """
    n = origins.shape[0]
    num_tris = triangles.shape[0]

    counts = np.zeros(n, dtype=np.int64)
    first_tri = np.full(n, -1, dtype=np.int64)
    first_t = np.full(n, np.inf)
    hit_t = np.empty(num_tris)

    dx, dy, dz = direction[0], direction[1], direction[2]

    for i in range(n):
        k = 0
        for tri in range(num_tris):
            ax, ay, az = triangles[tri, 0, 0], triangles[tri, 0, 1], triangles[tri, 0, 2]
            e1x = triangles[tri, 1, 0] - ax
            e1y = triangles[tri, 1, 1] - ay
            e1z = triangles[tri, 1, 2] - az
            e2x = triangles[tri, 2, 0] - ax
            e2y = triangles[tri, 2, 1] - ay
            e2z = triangles[tri, 2, 2] - az

            px = dy * e2z - dz * e2y
            py = dz * e2x - dx * e2z
            pz = dx * e2y - dy * e2x

            det = e1x * px + e1y * py + e1z * pz
            if abs(det) < DET_EPSILON:
                continue
            inv_det = 1.0 / det

            sx = origins[i, 0] - ax
            sy = origins[i, 1] - ay
            sz = origins[i, 2] - az

            u = (sx * px + sy * py + sz * pz) * inv_det
            if u < -edge_tolerance or u > 1.0 + edge_tolerance:
                continue

            qx = sy * e1z - sz * e1y
            qy = sz * e1x - sx * e1z
            qz = sx * e1y - sy * e1x

            v = (dx * qx + dy * qy + dz * qz) * inv_det
            if v < -edge_tolerance or u + v > 1.0 + edge_tolerance:
                continue

            t = (e2x * qx + e2y * qy + e2z * qz) * inv_det
            if t < 0.0:
                continue

            hit_t[k] = t
            k += 1
            if t < first_t[i]:
                first_t[i] = t
                first_tri[i] = tri

        if k == 0:
            continue

        ts = np.sort(hit_t[:k])
        distinct = 1
        last = ts[0]
        for j in range(1, k):
            if ts[j] - last > merge_epsilon * max(1.0, abs(ts[j])):
                distinct += 1
                last = ts[j]
        counts[i] = distinct

    return counts, first_tri, first_t


def _prepare(origins, direction):
    """Validate and normalize ray inputs."""
    direction = np.asarray(direction, dtype=np.float64).reshape(3)
    length = float(np.linalg.norm(direction))
    if not np.isfinite(length) or length == 0.0:
        raise IntersectionFailure(f"Degenerate ray direction {direction.tolist()}")

    origins = np.ascontiguousarray(origins, dtype=np.float64).reshape(-1, 3)
    if not np.all(np.isfinite(origins)):
        raise IntersectionFailure("Non-finite ray origin")
    return origins, direction / length


def cast_rays(
    origins: np.ndarray,
    direction,
    soup: TriangleSoup,
    cull_backfaces: bool = True,
    edge_tolerance: float = 0.0
) -> RayHits:
    """
    Cast one ray per origin along a shared direction.

    Args:
        origins: (N, 3) probe points
        direction: Ray direction; normalized here so distances are in
            world units
        soup: Packed triangles
        cull_backfaces: Honor the soup's per-triangle cull flags
        edge_tolerance: Slack on the barycentric bounds; a positive value
            lets rays through a shared edge register on both triangles

    Returns:
        RayHits

    Raises:
        IntersectionFailure: Zero-length or non-finite direction, or
            non-finite origins
    """
    origins, direction = _prepare(origins, direction)
    t, tri, u, v = _cast_row(
        origins,
        direction,
        np.ascontiguousarray(soup.triangles, dtype=np.float64),
        np.ascontiguousarray(soup.cull_backfaces, dtype=np.bool_),
        cull_backfaces,
        float(edge_tolerance),
    )
    return RayHits(distance=t, triangle=tri, u=u, v=v)


def count_crossings(
    origins: np.ndarray,
    direction,
    soup: TriangleSoup,
    edge_tolerance: float = 0.0,
    merge_epsilon: float = CROSSING_EPSILON
) -> Crossings:
    """
    Count the distinct surface crossings ahead of each origin.

    Every triangle counts regardless of its cull flag. Hits at the same
    distance (a shared edge or vertex) are one crossing.

    Args:
        origins: (N, 3) probe points
        direction: Ray direction
        soup: Packed triangles
        edge_tolerance: Slack on the barycentric bounds
        merge_epsilon: Relative distance below which hits are merged

    Returns:
        Crossings

    Raises:
        IntersectionFailure: Zero-length or non-finite direction, or
            non-finite origins
    """
    origins, direction = _prepare(origins, direction)
    counts, tri, t = _count_row(
        origins,
        direction,
        np.ascontiguousarray(soup.triangles, dtype=np.float64),
        float(edge_tolerance),
        float(merge_epsilon),
    )
    return Crossings(count=counts, triangle=tri, distance=t)
