"""
Layout Reconstruction Pipeline
==============================

Rebuilds structured documents from positional OCR output.
Turns unordered recognized words (and optional table geometry) into
reading-order lines, paragraphs, tables and styled layout blocks.

Main components:
- Word ingestion from provider payloads
- Line clustering and paragraph segmentation
- Table reconstruction (geometry-assisted and heuristic)
- Layout block building (indent, alignment, font size, spacing)
- Plain text, Markdown, HTML and DOCX export
"""

__version__ = "1.0.0"
__author__ = "Layout Reconstruction Team"
