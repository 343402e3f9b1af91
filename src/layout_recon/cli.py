"""
Command-line interface for the Layout Reconstruction Pipeline.

Usage:
    layout-recon --input <payload_json|pdf|image> --output <output_dir> [options]

Examples:
    # Rebuild a document from recognition payloads
    layout-recon --input ocr_pages.json --output ./output --format all

    # Run local OCR on a PDF first
    layout-recon --input document.pdf --output ./output --format docx --dpi 300
"""

import sys
import argparse
import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Dict, Any

from . import __version__

logger = logging.getLogger("layout_recon")

FORMAT_CHOICES = ["json", "text", "markdown", "html", "docx", "all"]


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="layout-recon",
        description="Layout Reconstruction Pipeline - Rebuild lines, paragraphs and tables from positional OCR",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Rebuild from recognition payloads and export all formats:
    layout-recon --input pages.json --output ./output --format all

  OCR a PDF locally, then rebuild:
    layout-recon --input document.pdf --output ./output --lang eng --dpi 300

  Process only specific pages with 4 workers:
    layout-recon --input pages.json --output ./output --pages 1-5 --workers 4
        """
    )

    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Recognition payload JSON, PDF, image, or folder of images"
    )

    parser.add_argument(
        "--output", "-o",
        required=True,
        help="Output directory for generated files"
    )

    parser.add_argument(
        "--format", "-f",
        nargs="+",
        default=["json", "markdown"],
        choices=FORMAT_CHOICES,
        help="Output format(s) (default: json markdown)"
    )

    parser.add_argument(
        "--pages",
        type=str,
        default=None,
        help="Page range to process, e.g., '1-5' or '1,3,5' (default: all)"
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker threads for page processing (default: sequential)"
    )

    # Thresholds
    parser.add_argument(
        "--line-tolerance",
        type=float,
        default=None,
        help="Line clustering tolerance in px (default: 3)"
    )

    parser.add_argument(
        "--paragraph-gap",
        type=float,
        default=None,
        help="Paragraph gap multiplier of the average line height (default: 1.8)"
    )

    parser.add_argument(
        "--column-tolerance",
        type=float,
        default=None,
        help="Heuristic table column tolerance in px (default: 15)"
    )

    parser.add_argument(
        "--include-tables-in-text",
        action="store_true",
        help="Render tables tab-separated in plain text output"
    )

    # Local OCR
    parser.add_argument(
        "--dpi",
        type=int,
        default=300,
        help="DPI for PDF to image conversion (default: 300)"
    )

    parser.add_argument(
        "--lang",
        default="eng",
        help="Tesseract language(s) for image/PDF input (default: eng)"
    )

    parser.add_argument(
        "--ocr-timeout",
        type=float,
        default=60.0,
        help="Per-page Tesseract timeout in seconds (default: 60)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def parse_page_range(page_str: str, max_pages: int) -> List[int]:
    """Parse page range string to list of page numbers."""
    pages = []

    for part in page_str.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                start, end = part.split("-", 1)
                start = max(1, int(start))
                end = min(int(end), max_pages)
                pages.extend(range(start, end + 1))
            else:
                page = int(part)
                if 1 <= page <= max_pages:
                    pages.append(page)
        except ValueError:
            raise ValueError(f"invalid page range: {part!r}") from None

    return sorted(set(pages))


def build_config(args):
    """Apply command-line overrides on top of get_config()."""
    from .config import get_config

    config = get_config()
    if args.line_tolerance is not None:
        config.line = replace(config.line, tolerance=args.line_tolerance)
    if args.paragraph_gap is not None:
        config.paragraph = replace(config.paragraph, gap_multiplier=args.paragraph_gap)
    if args.column_tolerance is not None:
        config.table = replace(
            config.table,
            column_tolerance=args.column_tolerance,
            column_grid=args.column_tolerance
        )
    if args.include_tables_in_text:
        config.export = replace(config.export, plain_text_include_tables=True)
    if args.workers is not None:
        config.max_workers = args.workers
    return config


def load_pages(args, input_path: Path) -> Optional[List[Dict[str, Any]]]:
    """Load recognition payloads, running local OCR for images and PDFs."""
    from .utils.io import detect_input_type, load_page_payloads, load_pdf, load_image, load_images_from_folder
    from .utils.ocr_text import TesseractWordSource

    input_type = detect_input_type(input_path)
    logger.info(f"Input type detected: {input_type}")

    if input_type == "json":
        return load_page_payloads(input_path)

    if input_type == "pdf":
        images = load_pdf(input_path, dpi=args.dpi)
    elif input_type == "image":
        images = [load_image(input_path)]
    elif input_type == "image_folder":
        images = load_images_from_folder(input_path)
    else:
        logger.error(f"Unsupported input type: {input_type}")
        return None

    source = TesseractWordSource(language=args.lang, timeout=args.ocr_timeout)
    source.check_available()
    return source.recognize_pages(images)


def run_pipeline(args) -> int:
    """Run the layout reconstruction pipeline."""
    from .utils.io import ensure_dir
    from .utils.assembler import DocumentAssembler
    from .utils.export import DocumentExporter

    start_time = time.time()

    output_dir = ensure_dir(args.output)
    input_path = Path(args.input)
    config = build_config(args)

    pages = load_pages(args, input_path)
    if pages is None:
        return 1
    if not pages:
        logger.error("No pages to process")
        return 1

    logger.info(f"Loaded {len(pages)} page(s)")

    if args.pages:
        page_indices = parse_page_range(args.pages, len(pages))
        pages = [pages[i - 1] for i in page_indices]
        logger.info(f"Processing pages: {page_indices}")

    assembler = DocumentAssembler(config)
    document = assembler.process_document(pages, source_file=str(input_path))

    exporter = DocumentExporter(output_dir, input_path.stem, config.export)
    for fmt, path in exporter.export(document, args.format).items():
        logger.info(f"Exported {fmt}: {path}")

    elapsed = time.time() - start_time
    metrics = document.metrics

    if not args.quiet:
        print("\n" + "=" * 60)
        print("LAYOUT RECONSTRUCTION COMPLETE")
        print("=" * 60)
        print(f"Source: {input_path}")
        print(f"Output: {output_dir}")
        print(f"Pages processed: {metrics.pages_processed} (failed: {metrics.pages_failed})")
        print(f"Processing time: {elapsed:.2f}s")
        print()
        print("Metrics:")
        print(f"  Mean word confidence: {metrics.global_confidence:.1f}")
        print(f"  Words: {metrics.words_total} (in tables: {metrics.words_in_tables})")
        print(f"  Lines: {metrics.lines_total} (excluded: {metrics.lines_excluded})")
        print(f"  Paragraphs: {metrics.paragraphs_total}")
        print(f"  Tables: {metrics.tables_total} "
              f"(regions skipped: {metrics.table_regions_skipped})")
        print("=" * 60)

    return 1 if metrics.pages_failed and not metrics.pages_processed else 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    from .config import LayoutReconError, get_config

    parser = setup_argparser()
    args = parser.parse_args(argv)

    if args.pages:
        try:
            parse_page_range(args.pages, 0)
        except ValueError as e:
            parser.error(str(e))

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    if args.verbose or get_config().debug_mode:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    try:
        exit_code = run_pipeline(args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        exit_code = 130
    except (LayoutReconError, FileNotFoundError, RuntimeError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
