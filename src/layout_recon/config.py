"""
Configuration and constants for the layout reconstruction pipeline.

This module provides:
- Heuristic thresholds for line, paragraph and table reconstruction
- Layout styling constants (font size, indent, spacing)
- Export settings
- Environment overrides
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

logger = logging.getLogger("layout_recon")


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class LineConfig:
    """Line clustering configuration."""
    # Words whose y0 snaps to the same multiple of this value share a line
    tolerance: float = 3.0


@dataclass
class ParagraphConfig:
    """Paragraph segmentation configuration."""
    # Break when the vertical gap exceeds avg line height * multiplier
    gap_multiplier: float = 1.8


@dataclass
class TableConfig:
    """Table reconstruction configuration."""
    min_rows: int = 2
    min_cols: int = 2
    # Row 0 becomes the header when every cell is shorter than this
    header_max_chars: int = 20
    # Heuristic strategy
    candidate_gap_ratio: float = 1.5  # gap vs. average word width
    column_grid: float = 15.0  # x0 snapping grid (px)
    column_tolerance: float = 15.0  # column match tolerance (px)
    min_aligned_columns: int = 2
    min_column_lines: int = 2  # lines a column position must recur in
    # Geometry strategy: regions whose declared grid is larger are skipped
    max_grid_cells: int = 10000


@dataclass
class LayoutConfig:
    """Layout block styling configuration."""
    # Font size (half-points) from line height
    line_height_ratio: float = 1.3
    px_to_pt: float = 0.75
    min_font_size: int = 18
    max_font_size: int = 48
    default_line_height: float = 20.0
    # Indent (twips) per pixel of offset from the content's left edge
    indent_scale: float = 1.5
    # Alignment tolerance as a fraction of content width
    alignment_tolerance: float = 0.15
    # Spacing after (twips): (relative gap threshold, min, max), largest first
    spacing_scale: float = 0.5
    spacing_steps: Tuple[Tuple[float, int, int], ...] = (
        (2.5, 120, 240),
        (1.5, 60, 180),
        (1.1, 30, 120),
    )
    spacing_default: Tuple[int, int] = (0, 60)
    # Heading / subtitle detection relative to the page-average font size
    heading_ratio: float = 1.5
    subtitle_ratio: float = 1.2
    # Lines above this size (half-points) are titles regardless of the average
    title_font_size: int = 32


@dataclass
class ExportConfig:
    """Export configuration."""
    # DOCX page setup (twips), A4
    docx_page_width: int = 11906
    docx_page_height: int = 16838
    docx_margin: int = 720
    docx_page_separator: str = "────────────────────────────────────"
    # Markdown
    include_page_breaks: bool = True
    # Plain text
    plain_text_include_tables: bool = False


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    line: LineConfig = field(default_factory=LineConfig)
    paragraph: ParagraphConfig = field(default_factory=ParagraphConfig)
    table: TableConfig = field(default_factory=TableConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    # Global settings
    debug_mode: bool = False
    max_workers: Optional[int] = None  # None = process pages sequentially
    max_pages: Optional[int] = None  # None = process all pages


# ============================================================================
# Default Configuration Instance
# ============================================================================

def _env_float(name: str) -> Optional[float]:
    value = os.environ.get(name)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={value!r}")
        return None


def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    tolerance = _env_float("LAYOUT_RECON_LINE_TOLERANCE")
    if tolerance is not None and tolerance > 0:
        config.line.tolerance = tolerance

    gap = _env_float("LAYOUT_RECON_PARAGRAPH_GAP")
    if gap is not None and gap > 0:
        config.paragraph.gap_multiplier = gap

    column_tolerance = _env_float("LAYOUT_RECON_COLUMN_TOLERANCE")
    if column_tolerance is not None and column_tolerance > 0:
        config.table.column_tolerance = column_tolerance
        config.table.column_grid = column_tolerance

    header_chars = _env_float("LAYOUT_RECON_HEADER_MAX_CHARS")
    if header_chars is not None and header_chars > 0:
        config.table.header_max_chars = int(header_chars)

    if os.environ.get("LAYOUT_RECON_DEBUG", "").lower() == "true":
        config.debug_mode = True

    return config


# ============================================================================
# JSON Schema Version
# ============================================================================

JSON_SCHEMA_VERSION = "1.0"


# ============================================================================
# Exceptions
# ============================================================================

class LayoutReconError(Exception):
    """Base class for pipeline errors."""


class PayloadError(LayoutReconError):
    """Raised when a page payload cannot be interpreted at all."""


class GeometryError(LayoutReconError):
    """Raised when a table region has unresolvable row/column extents."""


class OCRError(LayoutReconError):
    """Raised when the local OCR engine fails after all retries."""
