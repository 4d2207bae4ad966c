from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import cv2
import numpy as np

from .pipeline import DEFAULT_MAX_DIM, ConversionResult, auto_optimize, convert
from .schema import ConversionParameters, ModuleStyle, from_json_file

SUPPORTED_SUFFIXES: Sequence[str] = (".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff")
COMMANDS = {"convert", "batch"}


def _collect_images(root: Path) -> List[Path]:
    if root.is_file():
        return [root] if root.suffix.lower() in SUPPORTED_SUFFIXES else []
    return sorted(
        path
        for path in root.rglob("*")
        if path.is_file() and path.suffix.lower() in SUPPORTED_SUFFIXES
    )


def load_pixels(path: str | Path) -> Optional[np.ndarray]:
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        return None
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)


def _write_json(path: Path, payload: object) -> None:
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)


def build_parameters(args: argparse.Namespace) -> ConversionParameters:
    params = from_json_file(args.config) if args.config else ConversionParameters()
    overrides: Dict[str, object] = {}
    if args.threshold is not None:
        overrides["threshold_factor"] = args.threshold
    if args.spacing is not None:
        overrides["spacing"] = args.spacing
    if args.style is not None:
        overrides["style"] = args.style
    if args.module_size is not None:
        overrides["module_size"] = args.module_size
    return params.with_overrides(**overrides) if overrides else params


def convert_image(
    pixels: np.ndarray,
    params: ConversionParameters,
    *,
    optimize: bool = False,
    max_dim: int = DEFAULT_MAX_DIM,
    workers: Optional[int] = None,
) -> Dict[str, object]:
    if optimize:
        best, result = auto_optimize(pixels, params, max_dim=max_dim, max_workers=workers)
        return {"result": result, "optimization": best.to_dict()}
    return {"result": convert(pixels, params, max_dim=max_dim), "optimization": None}


def _describe(result: ConversionResult) -> str:
    summary = result.summary()
    return (
        f"module={summary['module_size']} grid={summary['grid_columns']}x{summary['grid_rows']} "
        f"shapes={summary['shapes']}"
    )


def _run_convert(args: argparse.Namespace) -> None:
    params = build_parameters(args).validate()
    pixels = load_pixels(args.image)
    if pixels is None:
        raise FileNotFoundError(f"Unable to load image: {args.image}")

    outcome = convert_image(
        pixels,
        params,
        optimize=args.optimize,
        max_dim=args.max_dim,
        workers=args.workers,
    )
    result: ConversionResult = outcome["result"]  # type: ignore[assignment]

    output = Path(args.output).expanduser() if args.output else Path(args.image).with_suffix(".svg")
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(result.svg, encoding="utf-8")

    if args.metadata:
        payload = result.summary()
        payload["optimization"] = outcome["optimization"]
        _write_json(Path(args.metadata).expanduser(), payload)

    if not args.quiet:
        print(f"{Path(args.image).name} -> {output} ({_describe(result)})")


def process_directory(
    image_dir: str,
    output_dir: str,
    params: Optional[ConversionParameters] = None,
    *,
    limit: int | None = None,
    optimize: bool = False,
    max_dim: int = DEFAULT_MAX_DIM,
    workers: Optional[int] = None,
    verbose: bool = True,
) -> List[dict]:
    params = (params or ConversionParameters()).validate()
    root = Path(image_dir).expanduser()
    images = _collect_images(root)
    if limit is not None and limit > 0:
        images = images[:limit]
    if not images:
        raise FileNotFoundError(f"No supported images found in {image_dir}")

    output = Path(output_dir).expanduser()
    output.mkdir(parents=True, exist_ok=True)

    summary: List[dict] = []
    for idx, image_path in enumerate(images, start=1):
        pixels = load_pixels(image_path)
        if pixels is None:
            if verbose:
                print(f"[{idx}/{len(images)}] Skipping {image_path} (failed to load).")
            continue

        outcome = convert_image(
            pixels,
            params,
            optimize=optimize,
            max_dim=max_dim,
            workers=workers,
        )
        result: ConversionResult = outcome["result"]  # type: ignore[assignment]
        target = output / f"{image_path.stem}.svg"
        target.write_text(result.svg, encoding="utf-8")

        entry = {"image": str(image_path), "svg": str(target), **result.summary()}
        entry["optimization"] = outcome["optimization"]
        summary.append(entry)

        if verbose:
            print(f"[{idx}/{len(images)}] {image_path.name} -> {_describe(result)}")

    _write_json(output / "summary.json", summary)
    return summary


def _run_batch(args: argparse.Namespace) -> None:
    process_directory(
        image_dir=args.image_dir,
        output_dir=args.output,
        params=build_parameters(args),
        limit=args.limit,
        optimize=args.optimize,
        max_dim=args.max_dim,
        workers=args.workers,
        verbose=not args.quiet,
    )


def _add_conversion_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None, help="JSON file with conversion parameters.")
    parser.add_argument("--threshold", type=float, default=None, help="Threshold factor (0.4-0.7).")
    parser.add_argument("--spacing", type=float, default=None, help="Module spacing (0.05-0.15).")
    parser.add_argument(
        "--style",
        default=None,
        help=f"Module style: {', '.join(style.value for style in ModuleStyle)}.",
    )
    parser.add_argument("--module-size", type=int, default=None, help="Fixed module size in pixels.")
    parser.add_argument("--optimize", action="store_true", help="Search for the best parameters first.")
    parser.add_argument("--workers", type=int, default=None, help="Threads used by --optimize.")
    parser.add_argument("--max-dim", type=int, default=DEFAULT_MAX_DIM)
    parser.add_argument("--quiet", action="store_true")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rebuild a clean vector module grid from a scanned QR-style image."
    )
    subparsers = parser.add_subparsers(dest="command")

    convert_parser = subparsers.add_parser("convert", help="Convert a single image to SVG.")
    convert_parser.add_argument("image", help="Input raster image.")
    convert_parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output SVG path (defaults to the image path with .svg).",
    )
    convert_parser.add_argument("--metadata", default=None, help="Write a JSON summary here.")
    _add_conversion_options(convert_parser)

    batch_parser = subparsers.add_parser("batch", help="Convert every image in a directory.")
    batch_parser.add_argument("image_dir", help="Directory containing raster images.")
    batch_parser.add_argument(
        "-o",
        "--output",
        default="vector_outputs",
        help="Directory where SVG files and summary.json are written.",
    )
    batch_parser.add_argument("--limit", type=int, default=None)
    _add_conversion_options(batch_parser)

    return parser


def _inject_default_command(argv: List[str]) -> List[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in COMMANDS or first.startswith("-"):
        return argv
    return ["convert", *argv]


def main(argv: List[str] | None = None) -> None:
    args_list = sys.argv[1:] if argv is None else argv
    parser = build_parser()
    parsed = parser.parse_args(_inject_default_command(args_list))

    if parsed.command == "convert":
        _run_convert(parsed)
        return

    if parsed.command == "batch":
        _run_batch(parsed)
        return

    parser.print_help()


__all__ = ["build_parameters", "convert_image", "load_pixels", "main", "process_directory"]
