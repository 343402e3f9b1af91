"""
Line clustering module for layout reconstruction.

Groups words into visual text lines by snapping each word's top edge to a
tolerance grid. Single pass, no iterative clustering; the result depends only
on word geometry, never on input order.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple, Any

import numpy as np

from .ingest import BoundingBox, Word, snap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Line:
    """A cluster of words sharing one visual text line."""
    words: Tuple[Word, ...]
    indices: Tuple[int, ...]  # positions of the words in the ingested list
    bbox: BoundingBox
    font_size_estimate: float
    key: float = 0.0

    @property
    def text(self) -> str:
        return " ".join(w.text for w in self.words)

    @property
    def height(self) -> float:
        return self.bbox.height

    @property
    def average_word_width(self) -> float:
        if not self.words:
            return 0.0
        return float(np.mean([w.width for w in self.words]))

    def word_gaps(self) -> List[float]:
        """Horizontal gaps between adjacent words."""
        return [
            self.words[i].bbox.x0 - self.words[i - 1].bbox.x1
            for i in range(1, len(self.words))
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "bbox": self.bbox.to_dict(),
            "font_size_estimate": round(self.font_size_estimate, 3),
            "words": [w.to_dict() for w in self.words]
        }


def _word_order(word: Word) -> Tuple:
    b = word.bbox
    return (b.x0, b.y0, b.x1, b.y1, word.text, word.confidence)


def build_line(members: Sequence[Tuple[int, Word]], key: float = 0.0) -> Line:
    """Build a Line from (index, word) pairs, ordered left to right."""
    ordered = sorted(members, key=lambda m: _word_order(m[1]))
    words = tuple(w for _, w in ordered)
    return Line(
        words=words,
        indices=tuple(i for i, _ in ordered),
        bbox=BoundingBox.union_all(w.bbox for w in words),
        font_size_estimate=float(np.mean([w.height for w in words])),
        key=key,
    )


def cluster_lines(words: Sequence[Word], tolerance: float = 3.0) -> List[Line]:
    """
    Group words into lines.

    Args:
        words: Ingested words
        tolerance: Snapping grid for the top edge (px)

    Returns:
        Lines sorted top to bottom, each with words sorted left to right
    """
    if not words:
        return []

    groups: Dict[float, List[Tuple[int, Word]]] = {}
    for index, word in enumerate(words):
        key = snap(word.bbox.y0, tolerance)
        groups.setdefault(key, []).append((index, word))

    lines = [build_line(groups[key], key) for key in sorted(groups)]
    logger.debug(f"Clustered {len(words)} words into {len(lines)} lines")
    return lines
