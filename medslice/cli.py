"""Command line interface for inspecting files and exporting slices.

Usage:
    medslice info scan.nii.gz
    medslice slice scan.nii.gz --orientation coronal --index 40 -o coronal.png
    medslice slice series/*.png --center 40 --width 400 -o axial.png
"""

import argparse
import logging
import sys
from pathlib import Path

from PIL import Image

from medslice.errors import MedsliceError
from medslice.formats import load_file
from medslice.normalize import WindowLevel
from medslice.stack import assemble_stack, load_stack_directory
from medslice.volume import Orientation, clamp_index, default_slice_indices, render_slice

logger = logging.getLogger(__name__)


def _load(paths):
    if len(paths) == 1:
        return load_file(paths[0])
    files = []
    for path in map(Path, paths):
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        files.append((path.name, path.read_bytes()))
    return assemble_stack(files)


def cmd_info(args):
    for path in args.paths:
        loaded = load_file(path)
        data = loaded.data
        print(f"{loaded.filename}")
        print(f"  type:       {loaded.file_type.value}")
        print(f"  dimensions: {data.width} x {data.height} x {data.depth}")
        print(f"  element:    {data.kind.value}")
        print(f"  spacing:    {', '.join(f'{s:g}' for s in data.spacing)}")
    return 0


def cmd_slice(args):
    if args.directory:
        loaded = load_stack_directory(args.paths[0], args.pattern)
    else:
        loaded = _load(args.paths)

    orientation = Orientation(args.orientation)
    index = args.index
    if index is None:
        index = default_slice_indices(loaded.data)[orientation]
    index = clamp_index(loaded.data, orientation, index)

    window = None
    if args.center is not None and args.width is not None:
        window = WindowLevel(center=args.center, width=args.width)
    elif args.center is not None or args.width is not None:
        raise SystemExit("--center and --width must be given together")

    result = render_slice(loaded.data, orientation, index, window)
    Image.fromarray(result.pixels).save(args.output)
    print(
        f"Wrote {orientation.value} slice {index} of {loaded.filename} to {args.output} "
        f"(source range {result.source_min:g}..{result.source_max:g})"
    )
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        prog="medslice",
        description="Decode medical image files and export orthogonal slices",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    info = subparsers.add_parser("info", help="Print dimensions and element type")
    info.add_argument("paths", nargs="+", help="Files to inspect")
    info.set_defaults(func=cmd_info)

    slice_parser = subparsers.add_parser("slice", help="Export one slice as PNG")
    slice_parser.add_argument(
        "paths", nargs="+", help="One volume, or several single-slice files to stack"
    )
    slice_parser.add_argument(
        "--orientation", choices=[o.value for o in Orientation], default="axial"
    )
    slice_parser.add_argument(
        "--index", type=int, default=None, help="Slice index (default: middle slice)"
    )
    slice_parser.add_argument("--center", type=float, default=None, help="Window center")
    slice_parser.add_argument("--width", type=float, default=None, help="Window width")
    slice_parser.add_argument(
        "--directory", action="store_true", help="Treat the path as a folder of slices"
    )
    slice_parser.add_argument("--pattern", default="*", help="Glob used with --directory")
    slice_parser.add_argument("-o", "--output", required=True, help="Output PNG path")
    slice_parser.set_defaults(func=cmd_slice)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (MedsliceError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
