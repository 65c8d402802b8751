"""
model2js — convert a 3D model file into a ``vs``/``fs`` mesh module.

Usage:
  model2js model.obj
  model2js scene.glb -o shapes/ --target-size 1.0
"""

import argparse
import logging
import math
import sys
from pathlib import Path

import config
import serializer
from mesh import MeshError, UnsupportedFormatError
from processors import supported_extensions
from processors.model3d import convert_file

logger = logging.getLogger(__name__)


def _positive_size(value: str) -> float:
    try:
        size = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if not math.isfinite(size) or size <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive number: {value!r}")
    return size


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="model2js",
        description="Convert a 3D model to a wireframe mesh module",
        epilog=f"Supported formats: {', '.join(supported_extensions())}",
    )
    parser.add_argument("input", help="Input model file")
    parser.add_argument("-o", "--output-dir", type=Path, default=Path.cwd(),
                        help="Directory for <basename>.js (default: current directory)")
    parser.add_argument("--target-size", type=_positive_size, default=None,
                        help="Longest side after normalization (default: 1.5)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = config.load_settings()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    source = Path(args.input)
    target_size = (args.target_size if args.target_size is not None
                   else settings.target_size)
    print(f"Converting: {source}")

    try:
        conversion = convert_file(source, target_size)
        out_path = serializer.write(
            conversion.mesh, args.output_dir / f"{source.stem}.js")
    except UnsupportedFormatError as e:
        parser.print_usage(sys.stderr)
        print(f"Error converting {source}: {e}", file=sys.stderr)
        return 1
    except (MeshError, OSError) as e:
        print(f"Error converting {source}: {e}", file=sys.stderr)
        return 1

    mesh = conversion.mesh
    sx, sy, sz = conversion.source_bounds.size
    print(f"Format detected: {conversion.format.value.upper()}")
    print(f"  Original size: {sx:.2f} x {sy:.2f} x {sz:.2f}")
    print(f"  Scale factor: {conversion.scale:.4f}")
    print(f"  Normalized to: ±{target_size / 2:.2f}")
    print("Converted successfully!")
    print(f"  Vertices: {mesh.vertex_count}")
    print(f"  Faces: {mesh.face_count}")
    print(f"  Output: {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
