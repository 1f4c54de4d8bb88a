"""Command-line entry point for heading outline extraction.

Run against one file::

    outline-extractor document.pdf -o results.json

or with no PDF argument to process every PDF in the input directory.
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional

import cv2

from . import __version__
from .config import Settings
from .document_pipeline import DocumentProcessor
from .layout_types import ProcessingResult
from .ocr import tesseract_version

logger = logging.getLogger(__name__)

ProcessorFactory = Callable[[Settings], DocumentProcessor]


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="outline-extractor",
        description="Extract the title and H1-H4 heading outline of PDF documents.",
    )
    p.add_argument("pdf", nargs="?", type=Path, help="PDF to process; omit for batch mode.")
    p.add_argument("--dpi", type=int, default=None, help="Render DPI (default: 100).")
    p.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Output JSON file (default: output/heading_schema.json).",
    )
    p.add_argument("--input-dir", type=Path, default=None, help="Batch mode input directory.")
    p.add_argument("--output-dir", type=Path, default=None, help="Batch mode output directory.")
    p.add_argument(
        "--model-dir",
        action="append",
        default=None,
        help="Layout model directory or file; may be repeated.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable verbose logging.")
    p.add_argument("--version", "-v", action="store_true", help="Show version information.")
    return p


def _settings_from_args(args: argparse.Namespace, settings: Settings) -> Settings:
    updates = {}
    if args.dpi is not None:
        updates["dpi"] = args.dpi
    if args.input_dir is not None:
        updates["input_dir"] = args.input_dir
    if args.output_dir is not None:
        updates["output_dir"] = args.output_dir
        updates["default_output"] = args.output_dir / "heading_schema.json"
    if args.model_dir:
        updates["model_dirs"] = tuple(args.model_dir)
    return replace(settings, **updates) if updates else settings


def _version_text() -> str:
    tesseract = tesseract_version()
    return "\n".join(
        [
            "PDF outline extractor",
            f"Version: {__version__}",
            "Features:",
            "  + PyMuPDF rendering",
            f"  + OpenCV {cv2.__version__} (ONNX layout backend)",
            f"  {'+' if tesseract else '-'} Tesseract {tesseract or 'not found'}",
            "  + Sequential page processing",
        ]
    )


def _print_summary(result: ProcessingResult, output: Optional[Path], verbose: bool) -> None:
    if not result.success:
        print(f"Processing failed for {result.source_path}: {result.error_message}")
        return
    print("Processing completed successfully!")
    print(f"  Title: {result.title}")
    print(f"  Headings found: {len(result.headings)}")
    print(f"  Processing time: {result.processing_time_seconds:.2f}s")
    if output is not None:
        print(f"  Output saved to: {output}")
    if verbose:
        counts = result.level_counts()
        print("  " + ", ".join(f"{level}: {count}" for level, count in counts.items()))


def main(
    argv: Optional[List[str]] = None,
    processor_factory: ProcessorFactory = DocumentProcessor,
) -> int:
    args = build_arg_parser().parse_args(argv)

    if args.version:
        print(_version_text())
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = _settings_from_args(args, Settings.from_env())
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1

    if args.pdf is not None:
        if not args.pdf.is_file():
            print(f"Error: PDF file not found: {args.pdf}")
            return 1
        output = args.output or settings.default_output
        logger.debug("Configuration: pdf=%s output=%s dpi=%d", args.pdf, output, settings.dpi)
        result = processor_factory(settings).process_pdf(args.pdf, output)
        _print_summary(result, output, args.verbose)
        return 0 if result.success else 1

    results = processor_factory(settings).process_directory(
        settings.input_dir, settings.output_dir
    )
    for result in results:
        output = None
        if result.success and result.source_path:
            output = settings.output_dir / f"{Path(result.source_path).stem}.json"
        _print_summary(result, output, args.verbose)

    succeeded = sum(1 for r in results if r.success)
    print(f"Processed {len(results)} document(s), {succeeded} succeeded.")
    return 0 if succeeded else 1


if __name__ == "__main__":
    raise SystemExit(main())
