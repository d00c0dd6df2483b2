"""
Command-Line Interface for Mesh Voxelizer

Usage:
    meshvox model.glb -o voxels.glb
    meshvox model.glb --step 0.1 --strategy parity -o voxels.obj
    meshvox model.glb --resolution 48 --voxel-size 0.24 --inset 0.03 --stats

"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from . import __version__
from .generator import MeshVoxelizer
from .voxelizer import VoxelizeOptions
from .errors import VoxelizationError


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="meshvox",
        description="Mesh Voxelizer - Sample a triangle mesh into colored voxels and rebuild it as cubes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  meshvox model.glb -o voxels.glb
      Voxelize with 32 cells along the longest axis

  meshvox model.glb --step 0.1 --strategy parity -o voxels.obj
      Fixed cell size, fast inside/outside test

  meshvox model.glb --splat --resolution 64 -o points.ply
      Drop mesh vertices straight into a 64^3 grid

Strategies:
  multi-directional - Six axis rays, nearest surface color (default)
  parity            - One +Z ray, odd crossings = inside (closed meshes only)
        """
    )

    parser.add_argument("input", help="Input mesh file (any format trimesh reads)")
    parser.add_argument("-o", "--output", help="Output mesh path (default: <input>_voxels.glb)")

    # Grid settings
    grid = parser.add_mutually_exclusive_group()
    grid.add_argument("--step", type=float, help="Grid cell size in world units")
    grid.add_argument(
        "--resolution", type=float, default=32,
        help="Cells along the longest axis when --step is not given (default: 32)"
    )

    parser.add_argument(
        "-s", "--strategy",
        choices=["multi-directional", "parity"],
        default="multi-directional",
        help="Occupancy strategy (default: multi-directional)"
    )
    parser.add_argument(
        "--color-mode",
        choices=["interpolate", "nearest-vertex"],
        default="interpolate",
        help="How surface hits are colored (default: interpolate)"
    )
    parser.add_argument(
        "--splat", action="store_true",
        help="Vertex splatting instead of ray sampling"
    )
    parser.add_argument(
        "--batch-size", type=int, default=100,
        help="Z layers per chunk (default: 100)"
    )
    parser.add_argument(
        "--normalize", type=float, metavar="SIZE",
        help="Scale the model so its bounding-box diagonal equals SIZE"
    )
    parser.add_argument(
        "--single-sided", action="store_true",
        help="Cull back faces for every material"
    )

    # Mesh rebuild settings
    parser.add_argument("--voxel-size", type=float, help="Cube size in output (default: grid step)")
    parser.add_argument("--inset", type=float, default=0.0, help="Gap per cube side (default: 0)")
    parser.add_argument("--instanced", action="store_true", help="Build the instanced form")
    parser.add_argument("--no-center", action="store_true", help="Don't center the mesh at origin")

    # Misc
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--debug", action="store_true", help="Debug logging and diagnostics")
    parser.add_argument("--progress", action="store_true", help="Print progress")
    parser.add_argument("--stats", action="store_true", help="Print mesh and grid statistics")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def _print_progress(fraction: float):
    print(f"\rVoxelizing: {fraction * 100:5.1f}%", end="", file=sys.stderr, flush=True)
    if fraction >= 1.0:
        print(file=sys.stderr)


def configure_logging(verbose: bool, debug: bool):
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.debug)

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return 1

    output_path = Path(args.output) if args.output else input_path.with_name(
        f"{input_path.stem}_voxels.glb"
    )

    start_time = time.time()

    try:
        options = VoxelizeOptions(
            step=args.step,
            resolution=args.resolution,
            strategy=args.strategy,
            color_mode=args.color_mode,
            batch_size=args.batch_size,
            on_progress=_print_progress if args.progress else None,
            debug=args.debug,
        )
        voxelizer = MeshVoxelizer(options)
        voxelizer.load(input_path, double_sided=False if args.single_sided else None)

        if args.stats:
            stats = voxelizer.document.stats()
            print("\nMesh Statistics:")
            print(f"  Primitives: {stats['primitive_count']}")
            print(f"  Vertices: {stats['vertex_count']}")
            print(f"  Triangles: {stats['triangle_count']}")
            print(f"  Vertex colors: {stats['has_vertex_colors']}")
            print(f"  Materials: {', '.join(stats['materials'])}")

        if args.normalize:
            voxelizer.normalize(args.normalize)

        if args.splat:
            voxelizer.splat_vertices(int(args.resolution))
        else:
            voxelizer.voxelize()

        voxelizer.build_mesh(
            voxel_size=args.voxel_size,
            inset=args.inset,
            instanced=args.instanced,
            center=not args.no_center,
        )

        if args.stats:
            info = voxelizer.preview()
            print("\nVoxel Statistics:")
            print(f"  Grid size: {info['grid_size']}")
            print(f"  Step: {info['step']:.6g}")
            print(f"  Voxels: {info['voxel_count']}")
            print(f"  Cubes: {info['cube_count']}")

        if args.debug and voxelizer.diagnostics:
            timings = voxelizer.diagnostics["layer_timings"]
            print(f"  Layers: {len(timings)}, slowest {max(timings):.4f}s")

        voxelizer.export(output_path)

        if args.verbose:
            print(f"Exported: {output_path}")
            print(f"\nCompleted in {time.time() - start_time:.2f}s")

        return 0

    except (VoxelizationError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose or args.debug:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
