from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .controller import ConversionController
from .errors import ConversionError
from .presets import PRESET_NAMES, apply_preset
from .report import build_report, save_report_json
from .saver import LocalFileSaver
from .settings import ConversionParameters, ConverterConfig, load_config
from .sizes import format_size


logger = logging.getLogger(__name__)


def _parse_size(text: str) -> tuple[int, int]:
    """
    Accept "800x600" (also "800X600" or "800*600").
    """
    t = text.strip().lower().replace("*", "x")
    if "x" not in t:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {text!r}")
    a, b = t.split("x", 1)
    try:
        w, h = int(a), int(b)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {text!r}") from None
    if w <= 0 or h <= 0:
        raise argparse.ArgumentTypeError("width and height must be positive")
    return w, h


def _add_conversion_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("input", help="Image file to convert")

    # Format
    fmt = p.add_mutually_exclusive_group()
    fmt.add_argument("--jpeg", action="store_true", help="Output JPEG (default)")
    fmt.add_argument("--png", action="store_true", help="Output PNG")
    fmt.add_argument("--webp", action="store_true", help="Output WebP")
    fmt.add_argument("--bmp", action="store_true", help="Output BMP")
    fmt.add_argument("--gif", action="store_true", help="Output GIF")

    p.add_argument("--quality", type=int, default=80, help="JPEG/WebP quality (1-100), default 80")
    p.add_argument("--resize", type=_parse_size, default=None, metavar="WxH", help='Resize to exact size, e.g. "800x600"')
    p.add_argument("--preset", choices=PRESET_NAMES, default=None, help="Apply a named preset")
    p.add_argument("--config", type=Path, default=None, help="JSON config file")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ice",
        description="Image Convert & Estimate",
    )
    sub = p.add_subparsers(dest="command", required=True)

    est = sub.add_parser("estimate", help="Show the size an image would have after conversion")
    _add_conversion_args(est)

    conv = sub.add_parser("convert", help="Convert an image and save it")
    _add_conversion_args(conv)
    conv.add_argument("--out", required=True, help="Output directory")
    conv.add_argument("--overwrite", action="store_true", help="Overwrite the output file if it exists")
    conv.add_argument("--embed-ratio", action="store_true", help='Put the ratio in the name, e.g. "photo-42pct-reduced.webp"')
    conv.add_argument("--report", type=Path, default=None, help="Write a JSON report to this path")

    return p


def _build_parameters(args: argparse.Namespace) -> ConversionParameters:
    if args.png:
        out_fmt = "png"
    elif args.webp:
        out_fmt = "webp"
    elif args.bmp:
        out_fmt = "bmp"
    elif args.gif:
        out_fmt = "gif"
    else:
        out_fmt = "jpeg"  # default

    width = height = None
    if args.resize:
        width, height = args.resize

    params = ConversionParameters(
        format=out_fmt,
        quality=int(args.quality),
        resize=args.resize is not None,
        width=width,
        height=height,
    )

    if args.preset:
        params = apply_preset(args.preset, params)
    return params


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config) if args.config else ConverterConfig()
        params = _build_parameters(args)
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    saver = None
    if args.command == "convert":
        if args.embed_ratio:
            config = ConverterConfig(**{**config.__dict__, "embed_ratio_in_name": True})
        saver = LocalFileSaver(Path(args.out), overwrite=bool(args.overwrite))

    controller = ConversionController(config=config, saver=saver, parameters=params)

    try:
        source = controller.accept_file(Path(args.input))
        controller.wait()

        estimate = controller.estimate
        if estimate is None:
            raise controller.last_error or ConversionError("No estimate available")

        print("\n=== Estimate ===")
        print(f"Input      : {source.name} ({source.mime_type}, {source.width}x{source.height})")
        print(f"Original   : {format_size(source.original_size)}")
        print(f"Output     : {params.format.upper()} {estimate.width}x{estimate.height}"
              + (f" @ quality {params.quality}" if params.quality_enabled else ""))
        print(f"Estimated  : {format_size(estimate.encoded_size)}")
        print(f"Ratio      : {estimate.compression_ratio_percent}%")

        if args.command == "estimate":
            return 0

        artifact = controller.convert()
        out_path = controller.download(artifact)
        print("\nWritten    :", out_path)

        if args.report:
            save_report_json(build_report(source, artifact, out_path), args.report)
            print("Report     :", args.report)
        return 0

    except FileNotFoundError as e:
        print(f"error: file not found: {e.filename}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: cannot read {e.filename or args.input}: {e.strerror or e}", file=sys.stderr)
        return 1
    except ConversionError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
