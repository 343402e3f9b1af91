"""
Word ingestion module for layout reconstruction.

Provides:
- Canonical geometry types (BoundingBox, Word)
- Canonical table geometry (TableCellGeometry, TableGeometry)
- Normalization of provider recognition payloads into those types

Supports:
- Baidu-style items ({words, location{left,top,width,height}, probability})
- Tesseract-style items ({text, bbox{x0,y0,x1,y1}, confidence})
- Table recognition regions ({tableBounds, cells[row_start..col_end, words], header})

Provider field names stop here; downstream modules only see canonical types.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Dict, Any, Iterable, Mapping, Sequence

from ..config import PayloadError

logger = logging.getLogger(__name__)


# ============================================================================
# Geometry Helpers
# ============================================================================

def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity."""
    return int(math.floor(value + 0.5))


def snap(value: float, grid: float) -> float:
    """Snap a coordinate to the nearest multiple of ``grid``."""
    if grid <= 0:
        return value
    return round_half_up(value / grid) * grid


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box in page coordinates."""
    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x0 + self.x1) / 2, (self.y0 + self.y1) / 2)

    def contains_point(self, x: float, y: float) -> bool:
        return self.x0 <= x <= self.x1 and self.y0 <= y <= self.y1

    def union(self, other: 'BoundingBox') -> 'BoundingBox':
        return BoundingBox(
            min(self.x0, other.x0),
            min(self.y0, other.y0),
            max(self.x1, other.x1),
            max(self.y1, other.y1),
        )

    def to_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x0, self.y0, self.x1, self.y1)

    def to_dict(self) -> Dict[str, float]:
        return {"x0": self.x0, "y0": self.y0, "x1": self.x1, "y1": self.y1}

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> 'BoundingBox':
        return cls(x, y, x + w, y + h)

    @classmethod
    def empty(cls) -> 'BoundingBox':
        return cls(0.0, 0.0, 0.0, 0.0)

    @classmethod
    def union_all(cls, boxes: Iterable['BoundingBox']) -> Optional['BoundingBox']:
        result = None
        for box in boxes:
            result = box if result is None else result.union(box)
        return result

    @classmethod
    def from_points(cls, points: Any) -> Optional['BoundingBox']:
        """Bounding box of corner points given as {x, y} dicts or [x, y] pairs."""
        if not isinstance(points, Sequence) or isinstance(points, (str, bytes)):
            return None
        xs: List[float] = []
        ys: List[float] = []
        for point in points:
            if isinstance(point, Mapping):
                x, y = _to_number(point.get("x")), _to_number(point.get("y"))
            elif isinstance(point, Sequence) and not isinstance(point, (str, bytes)) and len(point) >= 2:
                x, y = _to_number(point[0]), _to_number(point[1])
            else:
                continue
            if x is None or y is None:
                continue
            xs.append(x)
            ys.append(y)
        if not xs:
            return None
        return cls(min(xs), min(ys), max(xs), max(ys))


@dataclass(frozen=True)
class Word:
    """A recognized text fragment."""
    text: str
    bbox: BoundingBox
    confidence: float = 0.0

    @property
    def height(self) -> float:
        return self.bbox.height

    @property
    def width(self) -> float:
        return self.bbox.width

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "bbox": self.bbox.to_dict(),
            "confidence": self.confidence
        }


@dataclass(frozen=True)
class TableCellGeometry:
    """A cell declared by the table recognition pass.

    Fields are ``None`` when the provider value was missing or unusable.
    """
    row: Optional[int]
    col: Optional[int]
    row_span: Optional[int] = 1
    col_span: Optional[int] = 1
    bounds: Optional[BoundingBox] = None
    # Text the recognition pass read inside the cell, if any
    text: str = ""

    @property
    def row_end(self) -> Optional[int]:
        if self.row is None or self.row_span is None:
            return None
        return self.row + self.row_span - 1

    @property
    def col_end(self) -> Optional[int]:
        if self.col is None or self.col_span is None:
            return None
        return self.col + self.col_span - 1


@dataclass
class TableGeometry:
    """One table region from the table recognition pass."""
    cells: List[TableCellGeometry] = field(default_factory=list)
    bounds: Optional[BoundingBox] = None
    header: List[str] = field(default_factory=list)


@dataclass
class PageInput:
    """Canonical input for one page."""
    words: List[Word] = field(default_factory=list)
    tables: List[TableGeometry] = field(default_factory=list)

    @property
    def has_geometry(self) -> bool:
        return bool(self.tables)


# ============================================================================
# Value Parsing
# ============================================================================

def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _to_int(value: Any) -> Optional[int]:
    number = _to_number(value)
    if number is None or number != int(number):
        return None
    return int(number)


def _item_text(item: Mapping) -> str:
    text = item.get("words")
    if not isinstance(text, str):
        text = item.get("text")
    return text.strip() if isinstance(text, str) else ""


# ============================================================================
# Word Ingestion
# ============================================================================

def _baidu_bbox(location: Any) -> BoundingBox:
    if not isinstance(location, Mapping):
        return BoundingBox.empty()
    left = _to_number(location.get("left")) or 0.0
    top = _to_number(location.get("top")) or 0.0
    width = _to_number(location.get("width")) or 0.0
    height = _to_number(location.get("height")) or 0.0
    return BoundingBox.from_xywh(left, top, width, height)


def _corner_bbox(bbox: Any) -> BoundingBox:
    if not isinstance(bbox, Mapping):
        return BoundingBox.empty()
    return BoundingBox(
        _to_number(bbox.get("x0")) or 0.0,
        _to_number(bbox.get("y0")) or 0.0,
        _to_number(bbox.get("x1")) or 0.0,
        _to_number(bbox.get("y1")) or 0.0,
    )


def _probability_to_confidence(probability: Any) -> float:
    if isinstance(probability, Mapping):
        probability = probability.get("average")
    value = _to_number(probability)
    if value is None:
        return 0.0
    return min(100.0, max(0.0, value * 100))


def ingest_word(item: Mapping) -> Optional[Word]:
    """
    Normalize one provider recognition item into a Word.

    Args:
        item: Provider item (Baidu or Tesseract shaped)

    Returns:
        Word, or None when the item carries no text
    """
    text = _item_text(item)
    if not text:
        return None

    if "location" in item or "bbox" not in item:
        # Missing location keeps the word with an all-zero box
        bbox = _baidu_bbox(item.get("location"))
        confidence = _probability_to_confidence(item.get("probability"))
    else:
        bbox = _corner_bbox(item.get("bbox"))
        confidence = _to_number(item.get("confidence")) or 0.0
        confidence = min(100.0, max(0.0, confidence))

    return Word(text=text, bbox=bbox, confidence=confidence)


def ingest_words(items: Optional[Iterable[Any]]) -> List[Word]:
    """Normalize a list of provider items, skipping unusable entries."""
    words: List[Word] = []
    if not items:
        return words
    skipped = 0
    for item in items:
        if not isinstance(item, Mapping):
            skipped += 1
            continue
        word = ingest_word(item)
        if word is None:
            skipped += 1
            continue
        words.append(word)
    if skipped:
        logger.debug(f"Skipped {skipped} recognition items without usable text")
    return words


# ============================================================================
# Table Geometry Ingestion
# ============================================================================

def _span(start: Optional[int], end_value: Any) -> Optional[int]:
    if start is None:
        return None
    if end_value is None:
        return 1
    end = _to_int(end_value)
    if end is None:
        return None
    return end - start + 1


def ingest_cell(item: Mapping) -> TableCellGeometry:
    """Normalize one declared table cell."""
    row = _to_int(item.get("row_start"))
    col = _to_int(item.get("col_start"))
    return TableCellGeometry(
        row=row,
        col=col,
        row_span=_span(row, item.get("row_end")),
        col_span=_span(col, item.get("col_end")),
        bounds=BoundingBox.from_points(item.get("cell_location")),
        text=_item_text(item),
    )


def ingest_table(item: Mapping) -> TableGeometry:
    """Normalize one table recognition region."""
    raw_cells = item.get("cells")
    if raw_cells is None:
        raw_cells = item.get("body")
    cells = [
        ingest_cell(cell) for cell in (raw_cells or [])
        if isinstance(cell, Mapping)
    ]

    bounds_points = item.get("tableBounds")
    if bounds_points is None:
        bounds_points = item.get("table_location")

    header: List[str] = []
    for entry in item.get("header") or []:
        if isinstance(entry, str):
            text = entry.strip()
        elif isinstance(entry, Mapping):
            text = _item_text(entry)
        else:
            continue
        if text:
            header.append(text)

    return TableGeometry(
        cells=cells,
        bounds=BoundingBox.from_points(bounds_points),
        header=header,
    )


def ingest_tables(items: Optional[Iterable[Any]]) -> List[TableGeometry]:
    """Normalize all table regions of a page."""
    if not items:
        return []
    return [ingest_table(item) for item in items if isinstance(item, Mapping)]


def ingest_page(payload: Any) -> PageInput:
    """
    Normalize a full page payload.

    Args:
        payload: Mapping with ``words`` (or ``words_result``) and optional
            ``tables`` (or ``tables_result``)

    Returns:
        PageInput with canonical words and table geometry

    Raises:
        PayloadError: If the payload is not a mapping
    """
    if not isinstance(payload, Mapping):
        raise PayloadError(f"Page payload must be a mapping, got {type(payload).__name__}")

    raw_words = payload.get("words")
    if raw_words is None:
        raw_words = payload.get("words_result")
    raw_tables = payload.get("tables")
    if raw_tables is None:
        raw_tables = payload.get("tables_result")

    page = PageInput(words=ingest_words(raw_words), tables=ingest_tables(raw_tables))
    logger.debug(f"Ingested {len(page.words)} words, {len(page.tables)} table regions")
    return page
