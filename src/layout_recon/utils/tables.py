"""
Table reconstruction module for layout reconstruction.

Provides:
- Geometry-assisted reconstruction from a table recognition pass
- Heuristic detection from line geometry when no such pass is available
- Header row inference
- Multiple output formats (Markdown, HTML, CSV, JSON)

Both strategies share the TableDetectionStrategy interface and report the
indices of the words they consumed, so free text never repeats table content.
"""

import logging
import csv
import io
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Dict, Any, Sequence, Set, FrozenSet

from ..config import TableConfig, GeometryError
from .ingest import BoundingBox, TableGeometry, Word, snap
from .lines import Line

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class TableCell:
    """A single reconstructed table cell."""
    row: int
    col: int
    text: str
    is_header: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row": self.row,
            "col": self.col,
            "text": self.text,
            "is_header": self.is_header
        }


@dataclass
class Table:
    """A reconstructed table."""
    rows: List[List[str]]
    headers: Optional[List[str]] = None
    bbox: Optional[BoundingBox] = None
    method: str = ""
    cells: List[TableCell] = field(default_factory=list)

    @property
    def num_rows(self) -> int:
        return len(self.rows)

    @property
    def num_cols(self) -> int:
        return max((len(r) for r in self.rows), default=0)

    @property
    def top(self) -> Optional[float]:
        return self.bbox.y0 if self.bbox is not None else None

    def _width(self) -> int:
        return max(self.num_cols, len(self.headers or []))

    def _padded(self, row: Sequence[str]) -> List[str]:
        width = self._width()
        return list(row) + [""] * (width - len(row))

    def to_markdown(self) -> str:
        """Build Markdown table representation."""
        if not self.rows:
            return ""

        width = self._width()
        header = self._padded(self.headers) if self.headers else [""] * width

        lines = ["| " + " | ".join(_escape_markdown(c) for c in header) + " |"]
        lines.append("| " + " | ".join("---" for _ in range(width)) + " |")
        for row in self.rows:
            lines.append("| " + " | ".join(_escape_markdown(c) for c in self._padded(row)) + " |")

        return "\n".join(lines)

    def to_html(self) -> str:
        """Build HTML table representation."""
        if not self.rows:
            return ""

        lines = ['<table>']

        if self.headers:
            lines.append('  <thead>')
            lines.append('    <tr>')
            for cell in self._padded(self.headers):
                lines.append(f'      <th>{escape_html(cell)}</th>')
            lines.append('    </tr>')
            lines.append('  </thead>')

        lines.append('  <tbody>')
        for row in self.rows:
            lines.append('    <tr>')
            for cell in self._padded(row):
                lines.append(f'      <td>{escape_html(cell)}</td>')
            lines.append('    </tr>')
        lines.append('  </tbody>')

        lines.append('</table>')

        return "\n".join(lines)

    def to_csv(self) -> str:
        """Build CSV representation."""
        if not self.rows:
            return ""

        output = io.StringIO()
        writer = csv.writer(output)

        if self.headers:
            writer.writerow(self._padded(self.headers))
        for row in self.rows:
            writer.writerow(self._padded(row))

        return output.getvalue()

    def to_text(self) -> str:
        """Tab-separated rows, header first."""
        rows = ([self.headers] if self.headers else []) + self.rows
        return "\n".join("\t".join(row) for row in rows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": [list(r) for r in self.rows],
            "headers": list(self.headers) if self.headers is not None else None,
            "num_rows": self.num_rows,
            "num_cols": self.num_cols,
            "method": self.method,
            "bbox": self.bbox.to_dict() if self.bbox is not None else None,
            "cells": [c.to_dict() for c in self.cells]
        }


@dataclass
class TableDetection:
    """Result of running a table detection strategy on one page."""
    tables: List[Table] = field(default_factory=list)
    consumed: FrozenSet[int] = frozenset()
    skipped_regions: int = 0
    strategy: str = ""


def escape_html(text: str) -> str:
    """Escape HTML special characters."""
    return (text
        .replace('&', '&amp;')
        .replace('<', '&lt;')
        .replace('>', '&gt;')
        .replace('"', '&quot;')
    )


def _escape_markdown(text: str) -> str:
    return text.replace("|", "\\|")


# ============================================================================
# Shared Helpers
# ============================================================================

def normalize_cell_text(text: str) -> str:
    """Collapse whitespace and newlines, trim."""
    return " ".join(text.split())


def infer_header(
    rows: List[List[str]],
    declared: Optional[Sequence[str]] = None,
    max_chars: int = 20
) -> Tuple[Optional[List[str]], List[List[str]]]:
    """
    Pick the header row of a table.

    A declared header wins. Otherwise row 0 is promoted when its cell count
    differs from row 1's or all of its cells are short.

    Args:
        rows: Table rows (empty rows already removed)
        declared: Header texts declared by the recognition pass
        max_chars: Cells shorter than this count as short

    Returns:
        Tuple of (headers or None, body rows)
    """
    if declared:
        return list(declared), rows

    if len(rows) >= 2:
        first, second = rows[0], rows[1]
        if len(first) != len(second) or all(len(cell) < max_chars for cell in first):
            return first, rows[1:]

    return None, rows


def _build_cells(rows: List[List[str]], header_promoted: bool) -> List[TableCell]:
    return [
        TableCell(row=r, col=c, text=text, is_header=header_promoted and r == 0)
        for r, row in enumerate(rows)
        for c, text in enumerate(row)
    ]


def _finish_table(
    rows: List[List[str]],
    num_cols: int,
    declared_header: Optional[Sequence[str]],
    bbox: Optional[BoundingBox],
    method: str,
    config: TableConfig
) -> Optional[Table]:
    """Apply the discard rule and header inference to a dense grid."""
    rows = [row for row in rows if any(cell for cell in row)]

    if len(rows) < config.min_rows or num_cols < config.min_cols:
        logger.debug(f"Discarding {method} table: {len(rows)}x{num_cols} grid")
        return None

    headers, body = infer_header(rows, declared_header, config.header_max_chars)
    promoted = headers is not None and not declared_header

    return Table(
        rows=body,
        headers=headers,
        bbox=bbox,
        method=method,
        cells=_build_cells(rows, promoted),
    )


def _reading_order(lines: Sequence[Line]) -> List[Tuple[int, Word]]:
    return [
        (index, word)
        for line in lines
        for index, word in zip(line.indices, line.words)
    ]


# ============================================================================
# Strategy Interface
# ============================================================================

class TableDetectionStrategy(ABC):
    """Detects tables on one page and reports the words they consume."""

    name = ""

    @abstractmethod
    def detect(self, lines: Sequence[Line], config: TableConfig) -> TableDetection:
        """
        Detect tables.

        Args:
            lines: Page lines in reading order
            config: Table thresholds

        Returns:
            TableDetection with emitted tables and consumed word indices
        """


# ============================================================================
# Geometry-Assisted Strategy
# ============================================================================

@dataclass
class _CellInfo:
    bounds: BoundingBox
    declared_text: str = ""
    texts: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        if self.texts:
            return normalize_cell_text(" ".join(self.texts))
        return normalize_cell_text(self.declared_text)


class GeometryTableStrategy(TableDetectionStrategy):
    """Assigns words to cells declared by a table recognition pass."""

    name = "geometry"

    def __init__(self, regions: Sequence[TableGeometry]):
        self.regions = list(regions)

    def detect(self, lines: Sequence[Line], config: TableConfig) -> TableDetection:
        ordered = _reading_order(lines)
        consumed: Set[int] = set()
        tables: List[Table] = []
        skipped = 0

        for region_index, region in enumerate(self.regions):
            try:
                table, used = self._reconstruct(region, ordered, consumed, config)
            except GeometryError as e:
                logger.warning(f"Skipping table region {region_index}: {e}")
                skipped += 1
                continue

            if table is None:
                continue

            tables.append(table)
            consumed.update(used)

        return TableDetection(
            tables=tables,
            consumed=frozenset(consumed),
            skipped_regions=skipped,
            strategy=self.name
        )

    def _cell_map(
        self,
        region: TableGeometry,
        config: TableConfig
    ) -> Tuple[Dict[Tuple[int, int], _CellInfo], int, int]:
        """Validate the declared cells and index them by (row, col)."""
        if not region.cells:
            raise GeometryError("region declares no cells")

        cells: Dict[Tuple[int, int], _CellInfo] = {}
        max_row = max_col = -1

        for cell in region.cells:
            if cell.row is None or cell.col is None:
                raise GeometryError("cell without row/column start")
            if cell.row < 0 or cell.col < 0:
                raise GeometryError(f"negative cell index ({cell.row}, {cell.col})")
            if cell.row_span is None or cell.col_span is None:
                raise GeometryError(f"cell ({cell.row}, {cell.col}) has unusable end index")
            if cell.row_span < 1 or cell.col_span < 1:
                raise GeometryError(f"cell ({cell.row}, {cell.col}) ends before it starts")
            if cell.bounds is None:
                raise GeometryError(f"cell ({cell.row}, {cell.col}) has no corner points")

            key = (cell.row, cell.col)
            if key in cells:
                logger.debug(f"Duplicate cell {key}, keeping first declaration")
            else:
                cells[key] = _CellInfo(bounds=cell.bounds, declared_text=cell.text)

            max_row = max(max_row, cell.row_end)
            max_col = max(max_col, cell.col_end)

        if (max_row + 1) * (max_col + 1) > config.max_grid_cells:
            raise GeometryError(
                f"grid of {max_row + 1}x{max_col + 1} exceeds {config.max_grid_cells} cells"
            )

        ordered = {key: cells[key] for key in sorted(cells)}
        return ordered, max_row + 1, max_col + 1

    def _reconstruct(
        self,
        region: TableGeometry,
        ordered_words: Sequence[Tuple[int, Word]],
        already_consumed: Set[int],
        config: TableConfig
    ) -> Tuple[Optional[Table], Set[int]]:
        cells, num_rows, num_cols = self._cell_map(region, config)
        outer = BoundingBox.union_all(info.bounds for info in cells.values())

        used: Set[int] = set()
        for index, word in ordered_words:
            if index in already_consumed:
                continue
            cx, cy = word.bbox.center
            if not outer.contains_point(cx, cy):
                continue
            for info in cells.values():
                if info.bounds.contains_point(cx, cy):
                    info.texts.append(word.text)
                    used.add(index)
                    break

        grid = [["" for _ in range(num_cols)] for _ in range(num_rows)]
        for (row, col), info in cells.items():
            grid[row][col] = info.text

        table = _finish_table(grid, num_cols, region.header, outer, self.name, config)
        if table is None:
            return None, set()
        return table, used


# ============================================================================
# Heuristic Strategy
# ============================================================================

class HeuristicTableStrategy(TableDetectionStrategy):
    """Detects tables from column-aligned runs of lines."""

    name = "heuristic"

    def detect(self, lines: Sequence[Line], config: TableConfig) -> TableDetection:
        tables: List[Table] = []
        consumed: Set[int] = set()
        run: List[Line] = []

        def flush():
            if len(run) >= config.min_rows:
                table, used = self._extract(run, config)
                if table is not None:
                    tables.append(table)
                    consumed.update(used)
            run.clear()

        for line in lines:
            if self.is_row_candidate(line, config):
                if not run or self.is_aligned(line, run[-1], config):
                    run.append(line)
                else:
                    flush()
                    run.append(line)
            else:
                flush()
        flush()

        return TableDetection(tables=tables, consumed=frozenset(consumed), strategy=self.name)

    @staticmethod
    def is_row_candidate(line: Line, config: TableConfig) -> bool:
        """A line with at least two words and one clearly wide gap."""
        if len(line.words) < 2:
            return False
        limit = line.average_word_width * config.candidate_gap_ratio
        return any(gap > limit for gap in line.word_gaps())

    @staticmethod
    def is_aligned(line: Line, other: Line, config: TableConfig) -> bool:
        """True when enough snapped word positions of two lines coincide."""
        if len(line.words) < 2 or len(other.words) < 2:
            return False
        cols = [snap(w.bbox.x0, config.column_grid) for w in line.words]
        other_cols = [snap(w.bbox.x0, config.column_grid) for w in other.words]
        aligned = sum(
            1 for c in cols
            if any(abs(c - d) < config.column_tolerance for d in other_cols)
        )
        return aligned >= config.min_aligned_columns

    def _columns(self, run: Sequence[Line], config: TableConfig) -> List[float]:
        occurrences: Dict[float, int] = {}
        for line in run:
            for x in {snap(w.bbox.x0, config.column_grid) for w in line.words}:
                occurrences[x] = occurrences.get(x, 0) + 1
        return sorted(x for x, count in occurrences.items() if count >= config.min_column_lines)

    def _extract(self, run: Sequence[Line], config: TableConfig) -> Tuple[Optional[Table], Set[int]]:
        columns = self._columns(run, config)
        if len(columns) < config.min_cols:
            return None, set()

        grid: List[List[str]] = []
        used: Set[int] = set()
        for line in run:
            cell_words: List[List[str]] = [[] for _ in columns]
            for index, word in zip(line.indices, line.words):
                distances = [abs(word.bbox.x0 - x) for x in columns]
                best = min(range(len(columns)), key=lambda i: (distances[i], i))
                if distances[best] >= config.column_tolerance:
                    continue
                cell_words[best].append(word.text)
                used.add(index)
            grid.append([normalize_cell_text(" ".join(words)) for words in cell_words])

        bbox = BoundingBox.union_all(line.bbox for line in run)
        table = _finish_table(grid, len(columns), None, bbox, self.name, config)
        if table is None:
            return None, set()
        return table, used


# ============================================================================
# Table Reconstructor Main Class
# ============================================================================

def select_table_strategy(geometry: Optional[Sequence[TableGeometry]] = None) -> TableDetectionStrategy:
    """Geometry-assisted when a recognition pass is available, else heuristic."""
    if geometry:
        return GeometryTableStrategy(geometry)
    return HeuristicTableStrategy()


class TableReconstructor:
    """
    Main table reconstruction interface.

    Selects the strategy from the available input and logs what it found.
    """

    def __init__(self, config: Optional[TableConfig] = None):
        self.config = config or TableConfig()

    def reconstruct(
        self,
        lines: Sequence[Line],
        geometry: Optional[Sequence[TableGeometry]] = None
    ) -> TableDetection:
        """
        Reconstruct the tables of one page.

        Args:
            lines: Page lines in reading order
            geometry: Optional table recognition regions

        Returns:
            TableDetection with tables and consumed word indices
        """
        strategy = select_table_strategy(geometry)
        detection = strategy.detect(lines, self.config)

        if detection.tables or detection.skipped_regions:
            logger.info(
                f"{strategy.name} strategy found {len(detection.tables)} tables "
                f"({len(detection.consumed)} words, {detection.skipped_regions} regions skipped)"
            )
        return detection


def detect_tables(
    lines: Sequence[Line],
    geometry: Optional[Sequence[TableGeometry]] = None,
    config: Optional[TableConfig] = None
) -> TableDetection:
    """Convenience wrapper around TableReconstructor."""
    return TableReconstructor(config).reconstruct(lines, geometry)
