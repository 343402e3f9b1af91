"""
Tests for line clustering and paragraph segmentation.
"""

import pytest
import random
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from layout_recon.utils.ingest import BoundingBox, Word
from layout_recon.utils.lines import cluster_lines
from layout_recon.utils.paragraphs import (
    average_line_height,
    line_gap,
    paragraph_breaks,
    segment_paragraphs,
)


def _word(text, x0, y0, x1, y1, confidence=90.0):
    return Word(text=text, bbox=BoundingBox(x0, y0, x1, y1), confidence=confidence)


class TestLineClustering:
    """Tests for cluster_lines."""

    def test_two_lines_jitter_free(self):
        """Two words on the first line, one on the second."""
        words = [
            _word("Name", 0, 0, 40, 20),
            _word("Age", 60, 0, 100, 20),
            _word("Alice", 0, 30, 40, 50),
        ]
        lines = cluster_lines(words, tolerance=5)
        assert [line.text for line in lines] == ["Name Age", "Alice"]
        assert lines[0].bbox == BoundingBox(0, 0, 100, 20)
        assert lines[0].font_size_estimate == 20

    def test_words_ordered_left_to_right(self):
        """Members are sorted by x0 whatever the input order."""
        words = [_word("world", 50, 1, 90, 15), _word("hello", 0, 0, 40, 14)]
        lines = cluster_lines(words, tolerance=3)
        assert len(lines) == 1
        assert lines[0].text == "hello world"
        assert lines[0].indices == (1, 0)

    def test_jitter_within_tolerance(self):
        """Small vertical jitter stays on one line."""
        words = [_word("a", 0, 10, 10, 20), _word("b", 20, 10.4, 30, 21), _word("c", 40, 9.6, 50, 19)]
        assert len(cluster_lines(words, tolerance=3)) == 1

    def test_lines_sorted_by_key(self):
        """Lines come out top to bottom."""
        words = [_word("low", 0, 100, 30, 110), _word("top", 0, 0, 30, 10), _word("mid", 0, 50, 30, 60)]
        assert [line.text for line in cluster_lines(words)] == ["top", "mid", "low"]

    def test_order_independence(self):
        """Shuffling the input does not change the lines."""
        words = [_word(f"w{i}", (i % 4) * 50, (i // 4) * 25, (i % 4) * 50 + 40, (i // 4) * 25 + 18)
                 for i in range(20)]
        expected = [line.text for line in cluster_lines(words)]
        rng = random.Random(7)
        for _ in range(5):
            shuffled = words[:]
            rng.shuffle(shuffled)
            assert [line.text for line in cluster_lines(shuffled)] == expected

    def test_degenerate_boxes(self):
        """All-zero boxes cluster without errors."""
        words = [_word("x", 0, 0, 0, 0), _word("y", 0, 0, 0, 0)]
        lines = cluster_lines(words)
        assert len(lines) == 1
        assert lines[0].height == 0

    def test_empty(self):
        """No words, no lines."""
        assert cluster_lines([]) == []


class TestParagraphSegmentation:
    """Tests for the paragraph gap rule."""

    def _lines(self, tops, height=20):
        words = [_word(f"line{i}", 0, top, 100, top + height) for i, top in enumerate(tops)]
        return cluster_lines(words)

    def test_close_lines_single_paragraph(self):
        """A 10px gap under 1.8x a 20px line height keeps one paragraph."""
        lines = self._lines([0, 30])
        assert paragraph_breaks(lines) == [True, False]

    def test_break_on_large_gap(self):
        """A gap above the threshold starts a paragraph."""
        lines = self._lines([0, 30, 100])
        assert line_gap(lines[1], lines[2]) == 50
        assert paragraph_breaks(lines) == [True, False, True]
        assert [len(p) for p in segment_paragraphs(lines)] == [2, 1]

    def test_gap_equal_to_threshold_does_not_break(self):
        """The rule is strictly greater than."""
        lines = self._lines([0, 56])  # gap 36 == 1.8 * 20
        assert paragraph_breaks(lines) == [True, False]

    def test_gap_law(self):
        """Break flags agree with gap > multiplier * average height."""
        lines = self._lines([0, 25, 70, 95, 180, 205])
        threshold = average_line_height(lines) * 1.8
        flags = paragraph_breaks(lines)
        for i in range(1, len(lines)):
            assert flags[i] == (line_gap(lines[i - 1], lines[i]) > threshold)

    def test_custom_multiplier(self):
        """The multiplier is configurable."""
        lines = self._lines([0, 30])
        assert paragraph_breaks(lines, gap_multiplier=0.4) == [True, True]

    def test_empty(self):
        """No lines, no paragraphs."""
        assert paragraph_breaks([]) == []
        assert segment_paragraphs([]) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
