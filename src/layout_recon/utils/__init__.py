"""
Utility modules for the layout reconstruction pipeline.
"""

from .ingest import BoundingBox, Word, TableCellGeometry, TableGeometry, PageInput, ingest_page, ingest_words
from .lines import Line, cluster_lines
from .paragraphs import paragraph_breaks, segment_paragraphs
from .tables import (
    Table, TableCell, TableDetection, TableDetectionStrategy,
    GeometryTableStrategy, HeuristicTableStrategy, TableReconstructor, detect_tables,
)
from .exclusion import exclude_consumed_lines
from .layout import Alignment, ParagraphBlock, TableBlock, LayoutDocumentBuilder, build_layout, plain_text
from .assembler import DocumentAssembler, Document, PageContext, PageResult
from .io import load_page_payloads, load_pdf, load_image, save_json, load_json, ensure_dir
from .export import PlainTextExporter, MarkdownExporter, HtmlExporter, DocxExporter, DocumentExporter

__all__ = [
    # Ingest
    "BoundingBox", "Word", "TableCellGeometry", "TableGeometry", "PageInput",
    "ingest_page", "ingest_words",
    # Lines and paragraphs
    "Line", "cluster_lines", "paragraph_breaks", "segment_paragraphs",
    # Tables
    "Table", "TableCell", "TableDetection", "TableDetectionStrategy",
    "GeometryTableStrategy", "HeuristicTableStrategy", "TableReconstructor", "detect_tables",
    "exclude_consumed_lines",
    # Layout
    "Alignment", "ParagraphBlock", "TableBlock", "LayoutDocumentBuilder", "build_layout", "plain_text",
    # Assembly
    "DocumentAssembler", "Document", "PageContext", "PageResult",
    # IO
    "load_page_payloads", "load_pdf", "load_image", "save_json", "load_json", "ensure_dir",
    # Export
    "PlainTextExporter", "MarkdownExporter", "HtmlExporter", "DocxExporter", "DocumentExporter",
]
