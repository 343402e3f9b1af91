"""
Table word exclusion.

Removes lines whose words were all assigned to table cells so free text does
not repeat table content. Partially consumed lines are kept whole.
"""

import logging
from typing import AbstractSet, List, Sequence, Tuple

from .lines import Line

logger = logging.getLogger(__name__)


def is_fully_consumed(line: Line, consumed: AbstractSet[int]) -> bool:
    """True when every word of the line belongs to a table cell."""
    if not line.indices:
        return False
    return all(index in consumed for index in line.indices)


def exclude_consumed_lines(
    lines: Sequence[Line],
    consumed: AbstractSet[int]
) -> Tuple[List[Line], List[Line]]:
    """
    Split lines into free-text lines and table-consumed lines.

    Args:
        lines: Page lines in reading order
        consumed: Word indices assigned to table cells

    Returns:
        Tuple of (kept lines, excluded lines), both in input order
    """
    if not consumed:
        return list(lines), []

    kept: List[Line] = []
    excluded: List[Line] = []
    partial = 0
    for line in lines:
        if is_fully_consumed(line, consumed):
            excluded.append(line)
        else:
            if any(index in consumed for index in line.indices):
                partial += 1
            kept.append(line)

    if partial:
        logger.debug(f"{partial} partially consumed lines kept in free text")
    return kept, excluded
