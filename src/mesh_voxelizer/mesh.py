"""
Mesh Document Model

In-memory form of the triangle soup handed over by an external loader:
- Material: fallback base color + double-sided flag
- Primitive: positions, faces, optional per-vertex colors, world transform
- MeshDocument: ordered primitives with summary statistics
- TriangleSoup: world-space triangles packed into flat numpy arrays for
  the ray-cast kernels and the color resolver

Material color is normalized once here, at ingestion, so nothing downstream
has to inspect material kinds while sampling.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, List, NamedTuple
import numpy as np


WHITE = (1.0, 1.0, 1.0)


@dataclass(frozen=True)
class Material:
    """
    Normalized material description.

    Attributes:
        name: Material name (informational)
        base_color: RGBA base color factor in unit range, or None
        double_sided: If False, back faces are culled by directional rays
    """

    name: str = ""
    base_color: Optional[Tuple[float, float, float, float]] = None
    double_sided: bool = True

    def material_color(self) -> Optional[Tuple[float, float, float]]:
        """RGB part of the base color factor (alpha ignored), or None."""
        if self.base_color is None:
            return None
        r, g, b = self.base_color[:3]
        return (float(r), float(g), float(b))


@dataclass
class Primitive:
    """
    One drawable primitive of a mesh document.

    Attributes:
        positions: (N, 3) local vertex positions
        faces: (M, 3) vertex indices, one row per triangle
        colors: Optional (N, 3) or (N, 4) per-vertex colors in unit range
        material: Owning material
        transform: (4, 4) node world transform applied before any scan
    """

    positions: np.ndarray
    faces: np.ndarray
    colors: Optional[np.ndarray] = None
    material: Material = field(default_factory=Material)
    transform: np.ndarray = field(default_factory=lambda: np.eye(4))

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=np.float64).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.int64).reshape(-1, 3)
        self.transform = np.asarray(self.transform, dtype=np.float64).reshape(4, 4)

        if self.colors is not None:
            colors = np.asarray(self.colors, dtype=np.float64)
            if colors.ndim != 2 or colors.shape[1] not in (3, 4):
                raise ValueError("Vertex colors must have shape (N, 3) or (N, 4)")
            if len(colors) != len(self.positions):
                raise ValueError(
                    f"Expected {len(self.positions)} vertex colors, got {len(colors)}"
                )
            self.colors = colors[:, :3]

        if len(self.faces) and (self.faces.min() < 0 or self.faces.max() >= len(self.positions)):
            raise ValueError("Face index out of range")

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.faces)

    @property
    def has_vertex_colors(self) -> bool:
        return self.colors is not None

    def world_positions(self) -> np.ndarray:
        """Vertex positions with the node transform applied."""
        m = self.transform
        return self.positions @ m[:3, :3].T + m[:3, 3]


class TriangleSoup(NamedTuple):
    """Packed world-space triangles with everything the resolver needs."""
    triangles: np.ndarray           # (T, 3, 3) float64 corner positions
    corner_colors: np.ndarray       # (T, 3, 3) float64 per-corner RGB
    has_vertex_color: np.ndarray    # (T,) bool
    material_colors: np.ndarray     # (T, 3) float64
    has_material_color: np.ndarray  # (T,) bool
    cull_backfaces: np.ndarray      # (T,) bool

    def __len__(self) -> int:
        return len(self.triangles)


@dataclass
class MeshDocument:
    """
    Ordered collection of primitives; the voxelizer's input.
    """

    primitives: List[Primitive] = field(default_factory=list)

    @property
    def vertex_count(self) -> int:
        return sum(p.vertex_count for p in self.primitives)

    @property
    def triangle_count(self) -> int:
        return sum(p.triangle_count for p in self.primitives)

    @property
    def has_vertex_colors(self) -> bool:
        return any(p.has_vertex_colors for p in self.primitives)

    def world_positions(self) -> np.ndarray:
        """All vertex positions in world space, shape (N, 3)."""
        if not self.primitives:
            return np.zeros((0, 3), dtype=np.float64)
        return np.vstack([p.world_positions() for p in self.primitives])

    def triangle_soup(self) -> TriangleSoup:
        """
        Pack every triangle into flat arrays.

        Returns:
            TriangleSoup with one row per triangle across all primitives
        """
        tris, corner_colors, has_vc = [], [], []
        mat_colors, has_mat, cull = [], [], []

        for prim in self.primitives:
            count = prim.triangle_count
            if count == 0:
                continue

            world = prim.world_positions()
            tris.append(world[prim.faces])

            if prim.colors is not None:
                corner_colors.append(prim.colors[prim.faces])
                has_vc.append(np.ones(count, dtype=bool))
            else:
                corner_colors.append(np.zeros((count, 3, 3)))
                has_vc.append(np.zeros(count, dtype=bool))

            color = prim.material.material_color()
            mat_colors.append(np.tile(color if color is not None else WHITE, (count, 1)))
            has_mat.append(np.full(count, color is not None))
            cull.append(np.full(count, not prim.material.double_sided))

        if not tris:
            return TriangleSoup(
                triangles=np.zeros((0, 3, 3)),
                corner_colors=np.zeros((0, 3, 3)),
                has_vertex_color=np.zeros(0, dtype=bool),
                material_colors=np.zeros((0, 3)),
                has_material_color=np.zeros(0, dtype=bool),
                cull_backfaces=np.zeros(0, dtype=bool),
            )

        return TriangleSoup(
            triangles=np.concatenate(tris).astype(np.float64),
            corner_colors=np.concatenate(corner_colors).astype(np.float64),
            has_vertex_color=np.concatenate(has_vc),
            material_colors=np.concatenate(mat_colors).astype(np.float64),
            has_material_color=np.concatenate(has_mat),
            cull_backfaces=np.concatenate(cull),
        )

    def normalized(self, model_size: float) -> "MeshDocument":
        """
        Return a copy scaled so the bounding-box diagonal equals model_size,
        with the bounding-box center moved to the origin.

        Args:
            model_size: Target diagonal length in world units

        Returns:
            New MeshDocument sharing vertex data but with updated transforms
        """
        from .bounds import compute_bounds

        if not np.isfinite(model_size) or model_size <= 0:
            raise ValueError(f"model_size must be positive, got {model_size}")

        bounds = compute_bounds(self)
        diagonal = float(np.linalg.norm(bounds.size))
        if diagonal == 0.0:
            raise ValueError("Cannot normalize a mesh with a zero-size bounding box")

        scale = model_size / diagonal
        fit = np.eye(4)
        fit[:3, :3] *= scale
        fit[:3, 3] = -bounds.center * scale

        return MeshDocument([
            Primitive(
                positions=p.positions,
                faces=p.faces,
                colors=p.colors,
                material=p.material,
                transform=fit @ p.transform,
            )
            for p in self.primitives
        ])

    def stats(self) -> dict:
        """
        Summarize the document.

        Returns:
            Dictionary with primitive/vertex/triangle counts, vertex color
            presence, material names and bounds (None for an empty mesh)
        """
        from .bounds import compute_bounds
        from .errors import EmptyMeshError

        try:
            box = compute_bounds(self)
            bounds = {"min": box.min.tolist(), "max": box.max.tolist()}
        except EmptyMeshError:
            bounds = None

        return {
            "primitive_count": len(self.primitives),
            "vertex_count": self.vertex_count,
            "triangle_count": self.triangle_count,
            "has_vertex_colors": self.has_vertex_colors,
            "materials": sorted({p.material.name or "unnamed" for p in self.primitives}),
            "bounds": bounds,
        }
