#!/usr/bin/env python3
"""
Mesh Import Report
==================

Imports an Abaqus, Comsol, Gmsh or Elfen mesh and prints what the canonical
mesh contains.

Usage:
    python3 mesh_report.py <mesh_file>
    python3 mesh_report.py part.inp --dim 3
    python3 mesh_report.py model.txt --format comsol
    python3 mesh_report.py wing.msh --export-stats stats.json
    python3 mesh_report.py wing.msh --verbose

Options:
    --format NAME    Format name or extension, overriding the file extension
    --dim N          Force the spatial dimension (1, 2 or 3)
    --export-stats   Export the mesh summary to a JSON file
    --verbose        Log driver progress
"""

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from meshimport import (
    CanonicalMesh,
    MalformedRecordError,
    MeshImportError,
    TruncatedError,
    import_mesh_file,
)


def _option(argv: List[str], name: str) -> Optional[str]:
    if name in argv:
        idx = argv.index(name)
        if idx + 1 < len(argv):
            return argv[idx + 1]
    return None


def print_concise_report(mesh: CanonicalMesh, path: Path) -> None:
    """Print a concise report of the imported mesh"""
    print("\n" + "="*75)
    print("MESH IMPORT REPORT: " + path.name)
    print("="*75)

    print(f"\nMESH PROPERTIES:")
    print(f"  • Format:         {mesh.source_format.value:>12}")
    print(f"  • Dimension:      {mesh.spatial_dimension:>11}D")
    print(f"  • Nodes:          {len(mesh.nodes):>12,}")
    print(f"  • Elements:       {mesh.element_count:>12,}")
    if mesh.boundary_only:
        print(f"  • Boundary only:  {'yes':>12}  (no {mesh.spatial_dimension}D elements)")

    print(f"\nELEMENT BLOCKS ({len(mesh.blocks)}):")
    for block in mesh.blocks:
        label = f"{block.kind.value}/{block.order.name.lower()}"
        markers = sorted(int(m) for m in set(block.markers.tolist()))
        print(f"  • {label:22s}: {len(block):10,}  markers {markers}")

    if mesh.marker_names:
        print(f"\nREGIONS ({len(mesh.marker_names)}):")
        for marker_id, name in sorted(mesh.marker_names.items()):
            print(f"  • {marker_id:>4}  {name}")

    print("\n" + "="*75 + "\n")


def export_stats(mesh: CanonicalMesh, filepath: str) -> None:
    """Export the mesh summary to a JSON file"""
    with open(filepath, 'w') as f:
        json.dump(mesh.summary(), f, indent=2)

    print(f"Statistics exported to {filepath}")


def main(argv: Optional[List[str]] = None):
    """Main entry point; exits with 0, 1 (not found), 3 (malformed) or 4 (unsupported)"""
    argv = sys.argv[1:] if argv is None else argv
    if not argv or argv[0].startswith("--"):
        print(__doc__)
        sys.exit(1)

    mesh_file = Path(argv[0])
    verbose = '--verbose' in argv
    source_format = _option(argv, '--format')
    export_stats_arg = _option(argv, '--export-stats')
    dim_arg = _option(argv, '--dim')

    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    spatial_dimension = None
    if dim_arg is not None:
        if dim_arg not in ("1", "2", "3"):
            print(f"❌ Error: --dim must be 1, 2 or 3, got {dim_arg}")
            sys.exit(1)
        spatial_dimension = int(dim_arg)

    if not mesh_file.exists():
        print(f"❌ Error: File not found: {mesh_file}")
        sys.exit(1)

    try:
        if verbose:
            print(f"Importing {mesh_file}...\n")

        mesh = import_mesh_file(mesh_file, source_format=source_format,
                                spatial_dimension=spatial_dimension)
        print_concise_report(mesh, mesh_file)

        if export_stats_arg:
            try:
                export_stats(mesh, export_stats_arg)
            except OSError as e:
                print(f"Warning: Could not export statistics: {e}")

        sys.exit(0)

    except (MalformedRecordError, TruncatedError) as e:
        print(f"\n❌ Corrupted file: {e}")
        sys.exit(3)

    except MeshImportError as e:
        print(f"\n❌ Unsupported input: {e}")
        sys.exit(4)

    except FileNotFoundError:
        print(f"❌ Error: File not found: {mesh_file}")
        sys.exit(1)

    except OSError as e:
        print(f"❌ Error: Cannot read {mesh_file}: {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        print(f"\n⏹️  Import interrupted by user")
        sys.exit(130)


if __name__ == '__main__':
    main()
