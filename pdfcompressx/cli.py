"""Command line interface for :mod:`pdfcompressx`."""

from __future__ import annotations

import argparse
import logging
from argparse import ArgumentParser, _SubParsersAction
from typing import Sequence

from .compressor import compress_pdf
from .exceptions import PDFCompressXError
from .info import get_compression_info
from .options import TARGET_RESOLUTIONS, TIERS, CompressionOptions
from .utils import get_logger, sizeof_fmt


def _configure_compress(subparsers: _SubParsersAction[ArgumentParser]) -> None:
    parser = subparsers.add_parser("compress", help="Compress a PDF file")
    parser.add_argument("input", help="Input PDF file")
    parser.add_argument("output", help="Destination for compressed PDF")
    parser.add_argument("--tier", choices=TIERS, default="medium", help="Compression tier")
    parser.add_argument(
        "--dpi", type=int, choices=TARGET_RESOLUTIONS, default=150, help="Target image resolution"
    )
    parser.add_argument("--quality", type=int, default=75, help="JPEG quality (10-100)")
    parser.add_argument("--no-jpeg", action="store_true", help="Keep image encodings")
    parser.add_argument("--keep-metadata", action="store_true", help="Keep per-object XMP metadata")
    parser.add_argument("--strip-annotations", action="store_true", help="Remove annotations and forms")
    parser.add_argument("--strip-outlines", action="store_true", help="Remove bookmarks")
    parser.add_argument("--ascii-streams", action="store_true", help="ASCII85-wrap content streams on the high tier")
    parser.add_argument("--ignore-encryption", action="store_true", help="Try to open encrypted input")
    parser.add_argument("--validate", action="store_true", help="Re-parse the output after writing")
    parser.set_defaults(handler=_run_compress)


def _configure_info(subparsers: _SubParsersAction[ArgumentParser]) -> None:
    parser = subparsers.add_parser("info", help="Show compression-relevant details of a PDF")
    parser.add_argument("input", help="Input PDF file")
    parser.set_defaults(handler=_run_info)


def _build_options(args: argparse.Namespace) -> CompressionOptions:
    return CompressionOptions(
        tier=args.tier,
        target_image_resolution=args.dpi,
        strip_metadata=not args.keep_metadata,
        strip_annotations=args.strip_annotations,
        strip_outlines=args.strip_outlines,
        recode_images_as_jpeg=not args.no_jpeg,
        jpeg_quality=args.quality,
        ignore_encryption=args.ignore_encryption,
        ascii_encode_streams=args.ascii_streams,
    )


def _run_compress(args: argparse.Namespace) -> int:
    result = compress_pdf(args.input, args.output, _build_options(args), post_validate=args.validate)
    print(
        f"{result.input_path} -> {result.output_path}: "
        f"{sizeof_fmt(result.original_size)} -> {sizeof_fmt(result.output_size)} "
        f"({result.ratio_percent}% saved, tier {result.tier_used})"
    )
    for line in result.applied_optimizations:
        print(f"  - {line}")
    return 0


def _run_info(args: argparse.Namespace) -> int:
    info = get_compression_info(args.input)
    dpi = f"{info.average_image_dpi:.0f}" if info.average_image_dpi is not None else "n/a"
    print(f"File size:         {sizeof_fmt(info.file_size_bytes)}")
    print(f"Pages:             {info.page_count}")
    print(f"Images:            {info.image_count} (average {dpi} DPI)")
    print(f"Fonts:             {info.font_count}")
    print(f"Metadata:          {'yes' if info.has_metadata else 'no'}")
    print(f"Potential savings: {sizeof_fmt(info.potential_savings_bytes)}")
    return 0


def _create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pdfcompressx", description="Structure-level PDF compression")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True
    _configure_compress(subparsers)
    _configure_info(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _create_parser()
    args = parser.parse_args(argv)
    logger = get_logger("pdfcompressx")
    logger.setLevel(logging.DEBUG if args.verbose else logging.WARNING)
    try:
        return args.handler(args)
    except (PDFCompressXError, FileNotFoundError, ValueError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
