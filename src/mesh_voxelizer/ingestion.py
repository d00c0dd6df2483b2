"""
Mesh Ingestion Module

This module handles:
- Loading mesh files through trimesh (glTF/GLB, OBJ, PLY, STL, ...)
- Flattening a scene graph into primitives with their world transforms
- Normalizing vertex colors (COLOR_0) and material base colors to unit range
- Deciding the material color capability once, at load time
"""

from pathlib import Path
from typing import Optional, Union
import logging
import numpy as np
import trimesh

from .mesh import Material, Primitive, MeshDocument

logger = logging.getLogger(__name__)


def _unit_rgba(value) -> Optional[tuple]:
    """Convert a trimesh color (uint8 or float, RGB or RGBA) to unit RGBA."""
    if value is None:
        return None
    arr = np.asarray(value).reshape(-1)
    if arr.size < 3:
        return None
    if arr.dtype.kind in "ui" or arr.max() > 1.0:
        arr = arr.astype(np.float64) / 255.0
    else:
        arr = arr.astype(np.float64)
    if arr.size == 3:
        arr = np.append(arr, 1.0)
    return tuple(float(c) for c in arr[:4])


class MeshLoader:
    """
    Adapter from trimesh geometry to MeshDocument.

    Key features:
    - Scene graph traversal with per-node world transforms
    - Per-vertex colors when the visual carries them
    - PBR baseColorFactor / simple diffuse as material fallback color
    """

    def __init__(self, double_sided: Optional[bool] = None):
        """
        Initialize the loader.

        Args:
            double_sided: Force the double-sided flag on every material;
                None keeps the material's own flag (True when it has none)
        """
        self.double_sided = double_sided
        self._document: Optional[MeshDocument] = None

    def load(self, path: Union[str, Path]) -> MeshDocument:
        """
        Load a mesh file.

        Args:
            path: Any format trimesh can read

        Returns:
            MeshDocument
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Mesh not found: {path}")

        scene = trimesh.load(str(path), force="scene")
        document = self.load_scene(scene)
        logger.info(
            "Loaded %s: %d primitives, %d vertices, %d triangles",
            path.name, len(document.primitives), document.vertex_count, document.triangle_count,
        )
        return document

    def load_scene(self, scene: Union[trimesh.Scene, trimesh.Trimesh]) -> MeshDocument:
        """
        Flatten a trimesh scene (or a single mesh) into a MeshDocument.
        """
        if isinstance(scene, trimesh.Trimesh):
            self._document = MeshDocument([self.primitive_from_trimesh(scene)])
            return self._document

        primitives = []
        for node_name in scene.graph.nodes_geometry:
            transform, geometry_name = scene.graph[node_name]
            geometry = scene.geometry.get(geometry_name)
            if not isinstance(geometry, trimesh.Trimesh):
                logger.debug("Skipping non-triangle geometry %s", geometry_name)
                continue
            primitives.append(self.primitive_from_trimesh(geometry, transform))

        self._document = MeshDocument(primitives)
        return self._document

    def primitive_from_trimesh(
        self,
        mesh: trimesh.Trimesh,
        transform: Optional[np.ndarray] = None
    ) -> Primitive:
        """
        Convert one trimesh mesh to a Primitive.

        Args:
            mesh: Source mesh
            transform: Node world transform (identity if None)
        """
        visual = mesh.visual
        colors = None
        if getattr(visual, "kind", None) in ("vertex", "face"):
            colors = np.asarray(visual.vertex_colors, dtype=np.float64)[:, :4] / 255.0

        return Primitive(
            positions=np.asarray(mesh.vertices, dtype=np.float64),
            faces=np.asarray(mesh.faces, dtype=np.int64),
            colors=colors,
            material=self.material_from_visual(visual),
            transform=np.eye(4) if transform is None else transform,
        )

    def material_from_visual(self, visual) -> Material:
        """Normalize whatever material a visual carries."""
        material = getattr(visual, "material", None)
        if material is None:
            return Material(double_sided=True if self.double_sided is None else self.double_sided)

        base = getattr(material, "baseColorFactor", None)
        if base is None:
            base = getattr(material, "diffuse", None)

        double_sided = self.double_sided
        if double_sided is None:
            flag = getattr(material, "doubleSided", None)
            double_sided = True if flag is None else bool(flag)

        return Material(
            name=getattr(material, "name", None) or "",
            base_color=_unit_rgba(base),
            double_sided=double_sided,
        )

    @property
    def document(self) -> MeshDocument:
        """Get the last loaded document."""
        if self._document is None:
            raise RuntimeError("No mesh loaded")
        return self._document
