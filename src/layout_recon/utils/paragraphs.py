"""
Paragraph segmentation for layout reconstruction.

A paragraph is a run of consecutive lines without a large vertical gap.
Paragraphs are carried as break flags on the line stream.
"""

import logging
from typing import List, Sequence

import numpy as np

from .lines import Line

logger = logging.getLogger(__name__)


def average_line_height(lines: Sequence[Line]) -> float:
    if not lines:
        return 0.0
    return float(np.mean([line.height for line in lines]))


def line_gap(upper: Line, lower: Line) -> float:
    """Vertical whitespace between two consecutive lines."""
    return lower.bbox.y0 - upper.bbox.y1


def paragraph_breaks(lines: Sequence[Line], gap_multiplier: float = 1.8) -> List[bool]:
    """
    Flag the lines that start a new paragraph.

    Args:
        lines: Lines sorted by y0
        gap_multiplier: Break when gap > average line height * multiplier

    Returns:
        One flag per line; the first line always starts a paragraph
    """
    if not lines:
        return []

    threshold = average_line_height(lines) * gap_multiplier
    flags = [True]
    for upper, lower in zip(lines, lines[1:]):
        flags.append(line_gap(upper, lower) > threshold)
    return flags


def segment_paragraphs(lines: Sequence[Line], gap_multiplier: float = 1.8) -> List[List[Line]]:
    """Group lines into paragraphs."""
    paragraphs: List[List[Line]] = []
    for line, starts_paragraph in zip(lines, paragraph_breaks(lines, gap_multiplier)):
        if starts_paragraph:
            paragraphs.append([])
        paragraphs[-1].append(line)
    logger.debug(f"Segmented {len(lines)} lines into {len(paragraphs)} paragraphs")
    return paragraphs
