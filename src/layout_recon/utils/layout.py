"""
Layout document builder for layout reconstruction.

Provides:
- Render-agnostic layout blocks (styled paragraph lines, tables)
- Font size, indent, alignment and spacing estimation from line geometry
- Heading / subtitle flags relative to the page-average font size
- Table placement at the vertical position of their source lines
- Plain text rendering of a block sequence

Sizes are in DOCX units: font sizes in half-points, indent and spacing in
twips.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Dict, Any, Sequence, Union

import numpy as np

from ..config import LayoutConfig, ParagraphConfig
from .ingest import BoundingBox, round_half_up
from .lines import Line
from .paragraphs import average_line_height, paragraph_breaks
from .tables import Table

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes and Enums
# ============================================================================

class Alignment(Enum):
    """Horizontal paragraph alignment."""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


@dataclass
class ParagraphBlock:
    """One styled line of free text."""
    text: str
    indent: int = 0
    alignment: Alignment = Alignment.LEFT
    font_size: int = 24
    spacing_after: int = 0
    bold: bool = False
    italic: bool = False
    paragraph_index: int = 0
    bbox: Optional[BoundingBox] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "paragraph",
            "text": self.text,
            "indent": self.indent,
            "alignment": self.alignment.value,
            "font_size": self.font_size,
            "spacing_after": self.spacing_after,
            "bold": self.bold,
            "italic": self.italic,
            "paragraph_index": self.paragraph_index,
            "bbox": self.bbox.to_dict() if self.bbox is not None else None
        }


@dataclass
class TableBlock:
    """A table placed in the block stream."""
    table: Table

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "table", **self.table.to_dict()}


LayoutBlock = Union[ParagraphBlock, TableBlock]


# ============================================================================
# Layout Document Builder
# ============================================================================

def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class _ContentExtent:
    min_x: float
    max_x: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def center(self) -> float:
        return (self.min_x + self.max_x) / 2


class LayoutDocumentBuilder:
    """
    Converts surviving lines and reconstructed tables into layout blocks.
    """

    def __init__(
        self,
        config: Optional[LayoutConfig] = None,
        paragraph_config: Optional[ParagraphConfig] = None
    ):
        self.config = config or LayoutConfig()
        self.paragraph_config = paragraph_config or ParagraphConfig()

    def font_size(self, line_height: float, fallback_height: float) -> int:
        """Estimated font size in half-points."""
        height = line_height if line_height > 0 else fallback_height
        if height <= 0:
            height = self.config.default_line_height
        points = (height / self.config.line_height_ratio) * self.config.px_to_pt
        size = round_half_up(points * 2)
        return int(_clamp(size, self.config.min_font_size, self.config.max_font_size))

    def indent(self, line: Line, extent: _ContentExtent) -> int:
        """Left indent in twips relative to the content's left edge."""
        return max(0, round_half_up((line.bbox.x0 - extent.min_x) * self.config.indent_scale))

    def alignment(self, line: Line, extent: _ContentExtent) -> Alignment:
        width = extent.width
        if width <= 0:
            return Alignment.LEFT

        tolerance = width * self.config.alignment_tolerance
        line_center = (line.bbox.x0 + line.bbox.x1) / 2
        if abs(line_center - extent.center) < tolerance:
            return Alignment.CENTER
        if abs(line.bbox.x1 - extent.max_x) < tolerance:
            return Alignment.RIGHT
        return Alignment.LEFT

    def spacing_after(self, gap: float, avg_line_height: float) -> int:
        """Spacing after a line in twips, stepped by the relative gap."""
        ratio = gap / avg_line_height if avg_line_height > 0 else 0.0
        value = gap * self.config.spacing_scale

        for threshold, low, high in self.config.spacing_steps:
            if ratio > threshold:
                return int(_clamp(round_half_up(value), low, high))

        low, high = self.config.spacing_default
        return int(_clamp(round_half_up(value), low, high))

    def build(self, lines: Sequence[Line], tables: Sequence[Table] = ()) -> List[LayoutBlock]:
        """
        Build the ordered block sequence for one page.

        Args:
            lines: Free-text lines (table-consumed lines already removed),
                sorted top to bottom
            tables: Reconstructed tables of the page

        Returns:
            Ordered list of ParagraphBlock and TableBlock
        """
        paragraphs = self._paragraph_blocks(lines)
        blocks: List[LayoutBlock] = list(paragraphs)

        if not tables:
            return blocks

        # Insert from the bottom so earlier insertion points stay valid
        placements = []
        for order, table in enumerate(tables):
            position = self._insertion_index(table, paragraphs)
            placements.append((position, order, table))

        for position, _, table in sorted(placements, key=lambda p: (-p[0], -p[1])):
            blocks.insert(position, TableBlock(table=table))

        return blocks

    def _insertion_index(self, table: Table, paragraphs: Sequence[ParagraphBlock]) -> int:
        top = table.top
        if top is None:
            return len(paragraphs)
        for index, block in enumerate(paragraphs):
            if block.bbox is not None and block.bbox.y0 > top:
                return index
        return len(paragraphs)

    def _paragraph_blocks(self, lines: Sequence[Line]) -> List[ParagraphBlock]:
        if not lines:
            return []

        avg_height = average_line_height(lines)
        if avg_height <= 0:
            avg_height = self.config.default_line_height

        extent = _ContentExtent(
            min_x=min(line.bbox.x0 for line in lines),
            max_x=max(line.bbox.x1 for line in lines),
        )
        breaks = paragraph_breaks(lines, self.paragraph_config.gap_multiplier)
        sizes = [self.font_size(line.height, avg_height) for line in lines]
        avg_size = float(np.mean(sizes))

        blocks: List[ParagraphBlock] = []
        paragraph_index = -1
        for i, line in enumerate(lines):
            if breaks[i]:
                paragraph_index += 1

            if i + 1 < len(lines):
                gap = lines[i + 1].bbox.y0 - line.bbox.y1
                spacing = self.spacing_after(gap, avg_height)
            else:
                spacing = 0

            ratio = sizes[i] / avg_size if avg_size > 0 else 1.0
            bold = ratio > self.config.heading_ratio or sizes[i] > self.config.title_font_size
            italic = self.config.subtitle_ratio < ratio <= self.config.heading_ratio

            blocks.append(ParagraphBlock(
                text=line.text,
                indent=self.indent(line, extent),
                alignment=self.alignment(line, extent),
                font_size=sizes[i],
                spacing_after=spacing,
                bold=bold,
                italic=italic,
                paragraph_index=paragraph_index,
                bbox=line.bbox,
            ))

        logger.debug(f"Built {len(blocks)} paragraph blocks in {paragraph_index + 1} paragraphs")
        return blocks


def build_layout(
    lines: Sequence[Line],
    tables: Sequence[Table] = (),
    config: Optional[LayoutConfig] = None,
    paragraph_config: Optional[ParagraphConfig] = None
) -> List[LayoutBlock]:
    """Convenience function for building layout blocks."""
    return LayoutDocumentBuilder(config, paragraph_config).build(lines, tables)


# ============================================================================
# Plain Text
# ============================================================================

def plain_text(blocks: Sequence[LayoutBlock], include_tables: bool = False) -> str:
    """
    Render blocks as plain text.

    Paragraphs are separated by a blank line, lines within a paragraph by a
    newline. Tables are omitted unless ``include_tables`` is set, in which
    case they are rendered tab-separated as their own chunk.
    """
    chunks: List[str] = []
    current: List[str] = []
    current_index: Optional[int] = None

    def flush():
        if current:
            chunks.append("\n".join(current))
            current.clear()

    for block in blocks:
        if isinstance(block, TableBlock):
            if include_tables:
                flush()
                current_index = None
                chunks.append(block.table.to_text())
            continue

        if block.paragraph_index != current_index:
            flush()
            current_index = block.paragraph_index
        current.append(block.text)
    flush()

    return "\n\n".join(chunks)
