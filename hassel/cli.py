from __future__ import annotations

import argparse
from dataclasses import replace
import logging
from pathlib import Path
import sys
from typing import Optional

from .config import AppConfig
from .dimensions import Axis, resolve_dimensions
from .engine import compress, format_file_size
from .errors import HasselError, MetadataServiceError
from .metadata import MetadataAnalyzer
from .presets import PRESET_NAMES, apply_preset
from .report import build_report, save_report_json
from .results import CompressionResult, Dimensions, ImageState
from .settings import EXT_TO_FORMAT, RESIZE_UNITS, CompressionSettings
from .source import load_source_file
from .units import to_display, to_pixels


logger = logging.getLogger(__name__)


def _parse_size(text: str) -> Dimensions:
    """Accept "1000x800" (or "1000X800")."""
    t = text.strip().lower()
    if "x" not in t:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {text!r}")
    a, b = t.split("x", 1)
    try:
        return Dimensions(int(a), int(b))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {text!r}") from None


def _parse_quality(text: str) -> float:
    """Accept 0.8 or 80."""
    q = float(text)
    if q > 1:
        q = q / 100
    if not 0 < q <= 1:
        raise argparse.ArgumentTypeError("quality must be in (0, 1] or 1-100")
    return q


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="hassel",
        description="Resize and re-encode an image locally",
    )
    p.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    sub = p.add_subparsers(dest="command", required=True)

    c = sub.add_parser("compress", help="Compress a single image")
    c.add_argument("input", help="Image file to compress")
    c.add_argument("--out", default=None, help="Output directory (default: next to the input)")

    # Format
    c.add_argument(
        "--format",
        choices=sorted(EXT_TO_FORMAT),
        default=None,
        help="Output format (default: same as input)",
    )

    # Strength
    c.add_argument("--quality", type=_parse_quality, default=None, help="Quality, 0-1 or 1-100 (default 0.8)")
    c.add_argument("--target-kb", type=int, default=None, help="Aim for at most this many KB (overrides --quality)")

    # Resize
    c.add_argument("--width", type=float, default=None, help="Width, in --unit")
    c.add_argument("--height", type=float, default=None, help="Height, in --unit")
    c.add_argument("--unit", choices=RESIZE_UNITS, default="px", help="Unit for --width/--height (default: px)")
    c.add_argument("--no-aspect-lock", action="store_true", help="Let width and height change independently")

    c.add_argument("--preset", choices=PRESET_NAMES, default=None, help="Start from a named preset")
    c.add_argument("--report", action="store_true", help="Write a JSON report next to the output")
    c.add_argument("--analyze", action="store_true", help="Ask Gemini for alt text and tags (needs GEMINI_API_KEY)")

    u = sub.add_parser("convert", help="Convert a dimension between units")
    u.add_argument("value", type=float)
    u.add_argument("--from", dest="from_unit", choices=RESIZE_UNITS, required=True)
    u.add_argument("--to", dest="to_unit", choices=RESIZE_UNITS, required=True)
    u.add_argument("--original", type=_parse_size, required=True, help="Original size, e.g. 1000x800")
    u.add_argument("--axis", choices=("width", "height"), default="width")

    return p


def setup_logging(verbosity: int, config: AppConfig) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = getattr(logging, config.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = AppConfig.from_env()
    setup_logging(args.verbose, config)

    try:
        if args.command == "compress":
            return _compress(args, config)
        if args.command == "convert":
            return _convert(args)
    except HasselError as ex:
        print(f"error: {ex}", file=sys.stderr)
        return 1

    parser.print_help()
    return 2


def _build_settings(
    args: argparse.Namespace, base: CompressionSettings, original: Dimensions
) -> tuple[CompressionSettings, Optional[Axis]]:
    """Settings plus the axis that drives the aspect lock, if one was given."""
    s = base

    if args.preset:
        s = apply_preset(args.preset, s, original)

    if args.format:
        s = s.with_format(EXT_TO_FORMAT[args.format], args.format)

    if args.quality is not None:
        s = replace(s, quality=args.quality)
    if args.target_kb is not None:
        s = replace(s, target_size_kb=args.target_kb if args.target_kb > 0 else None)

    lock = not args.no_aspect_lock
    s = replace(s, maintain_aspect_ratio=lock, resize_unit=args.unit)

    if args.width is None and args.height is None:
        return s, None

    width = to_pixels(args.width, args.unit, True, original) if args.width is not None else s.width
    height = to_pixels(args.height, args.unit, False, original) if args.height is not None else s.height

    # Only one given: that one drives. Both given: width wins when locked.
    axis: Optional[Axis] = None
    if args.width is not None and args.height is None:
        axis = "width"
    elif args.height is not None and args.width is None:
        axis = "height"

    dims = resolve_dimensions(Dimensions(width, height), original, lock, axis)
    return replace(s, width=dims.width, height=dims.height), axis


def _compress(args: argparse.Namespace, config: AppConfig) -> int:
    src_path = Path(args.input)
    source = load_source_file(src_path)

    settings, axis = _build_settings(args, CompressionSettings.for_source(source), source.dimensions)
    result = compress(source, settings, axis)

    out_dir = Path(args.out) if args.out else src_path.parent
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / result.file_name
    out_path.write_bytes(result.data)

    state = ImageState(
        name=source.name,
        original_size=source.size,
        original_dimensions=source.dimensions,
        source=source.data,
        compressed=result.data,
        compressed_size=result.size,
        compressed_dimensions=result.dimensions,
        result=result,
    )

    print("\n=== Result ===")
    print("Output     :", out_path)
    print(f"Dimensions : {source.dimensions.width}x{source.dimensions.height} -> "
          f"{result.dimensions.width}x{result.dimensions.height}")
    print(f"Size       : {format_file_size(source.size)} -> {format_file_size(result.size)} ({state.size_diff_label})")
    if result.target_met is False:
        print(f"Target     : {settings.target_size_kb} KB not reachable, best effort written")

    if args.report:
        report_path = out_dir / (Path(result.file_name).stem + ".json")
        save_report_json(build_report(state, settings), report_path)
        print("Report     :", report_path)

    if args.analyze:
        _analyze(result, config)

    return 0


def _analyze(result: CompressionResult, config: AppConfig) -> None:
    with MetadataAnalyzer(config) as analyzer:
        if not analyzer.available:
            logger.info("Image analysis unavailable: no API key")
            return
        try:
            meta = analyzer.submit(result).result()
        except MetadataServiceError as ex:
            # Never fails the run: the image is already written.
            print(f"warning: {ex}", file=sys.stderr)
            return

    if meta is None:
        return
    print("\n=== Metadata ===")
    print("Alt text   :", meta.alt_text)
    print("Description:", meta.description)
    print("Tags       :", ", ".join(meta.tags))


def _convert(args: argparse.Namespace) -> int:
    original: Dimensions = args.original
    is_width = args.axis == "width"

    px = to_pixels(args.value, args.from_unit, is_width, original)
    length = original.width if is_width else original.height
    print(to_display(px, args.to_unit, length))
    return 0
