#!/usr/bin/env python3
"""
Mesh Voxelizer Demo Script

This script demonstrates the full voxelization pipeline by:
1. Creating synthetic test meshes with trimesh (no model files needed)
2. Voxelizing them with both occupancy strategies
3. Rebuilding cube meshes and exporting them
4. Printing statistics and timings

Run with: python examples/demo.py
"""

import sys
from pathlib import Path
import numpy as np
import time
import trimesh

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mesh_voxelizer import MeshVoxelizer
from mesh_voxelizer.ingestion import MeshLoader


def gradient_colors(vertices: np.ndarray) -> np.ndarray:
    """
    Color vertices by their normalized position (x -> red, y -> green, z -> blue).

    Returns:
        (N, 4) uint8 RGBA
    """
    lo = vertices.min(axis=0)
    span = np.maximum(vertices.max(axis=0) - lo, 1e-9)
    rgba = np.full((len(vertices), 4), 255, dtype=np.uint8)
    rgba[:, :3] = np.round((vertices - lo) / span * 255).astype(np.uint8)
    return rgba


def create_test_sphere() -> trimesh.Trimesh:
    """Vertex-colored icosphere."""
    mesh = trimesh.creation.icosphere(subdivisions=3, radius=1.0)
    mesh.visual.vertex_colors = gradient_colors(mesh.vertices)
    return mesh


def create_test_box() -> trimesh.Trimesh:
    """Flat-colored box without vertex colors."""
    return trimesh.creation.box(extents=(2.0, 1.0, 0.5))


def create_test_scene() -> trimesh.Scene:
    """Two colored cylinders placed by scene-graph transforms."""
    scene = trimesh.Scene()
    for offset in (-1.0, 1.0):
        cylinder = trimesh.creation.cylinder(radius=0.4, height=2.0, sections=24)
        cylinder.visual.vertex_colors = gradient_colors(cylinder.vertices)
        transform = np.eye(4)
        transform[0, 3] = offset
        scene.add_geometry(cylinder, transform=transform)
    return scene


def run_demo():
    """Run the demonstration."""
    print("=" * 60)
    print("Mesh Voxelizer - Demo")
    print("=" * 60)
    print()

    # Create output directory
    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    test_meshes = [
        ("sphere", create_test_sphere()),
        ("box", create_test_box()),
        ("cylinders", create_test_scene()),
    ]

    total_start = time.time()

    for name, geometry in test_meshes:
        print(f"\n--- Processing: {name} ---")

        document = MeshLoader().load_scene(geometry)
        stats = document.stats()
        print(f"Input: {stats['vertex_count']} vertices, {stats['triangle_count']} triangles")

        print("\nTesting strategies:")

        for strategy in ("multi-directional", "parity"):
            voxelizer = MeshVoxelizer(resolution=24, strategy=strategy)
            voxelizer.load_document(document)

            vox_start = time.time()
            voxelizer.voxelize()
            vox_time = time.time() - vox_start

            mesh_start = time.time()
            voxelizer.build_mesh(inset=voxelizer.result.grid.step * 0.05)
            mesh_time = time.time() - mesh_start

            info = voxelizer.preview()
            print(f"  {strategy}:")
            print(f"    Grid: {info['grid_size']}, step {info['step']:.4f}")
            print(f"    Voxelization: {vox_time*1000:.1f}ms")
            print(f"    Voxel count: {info['voxel_count']}")
            print(f"    Mesh build: {mesh_time*1000:.1f}ms")
            print(f"    Triangles: {voxelizer.model.mesh.triangle_count}")

            path = output_dir / f"{name}_{strategy}.glb"
            try:
                voxelizer.export(path)
                print(f"    Saved: {path}")
            except ValueError as e:
                print(f"    Export skipped: {e}")

    total_time = time.time() - total_start

    print("\n" + "=" * 60)
    print(f"Demo complete! Total time: {total_time:.2f}s")
    print(f"Output files in: {output_dir}")
    print("=" * 60)

    return 0


def benchmark_resolution():
    """Benchmark voxelization time against grid resolution."""
    print("\n--- Resolution Benchmark ---\n")

    document = MeshLoader().load_scene(create_test_sphere())

    for resolution in (8, 16, 32, 48):
        for strategy in ("parity", "multi-directional"):
            voxelizer = MeshVoxelizer(resolution=resolution, strategy=strategy)
            voxelizer.load_document(document)

            start = time.time()
            voxelizer.voxelize()
            elapsed = time.time() - start

            print(f"Resolution {resolution:3d} {strategy:>17}: "
                  f"{elapsed*1000:8.1f}ms, {voxelizer.voxel_count} voxels")
        print()


if __name__ == "__main__":
    run_demo()

    # Uncomment to run benchmark
    # benchmark_resolution()
