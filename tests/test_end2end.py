"""
End-to-end integration tests for the Layout Reconstruction Pipeline.
"""

import pytest
import json
import random
import threading
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from layout_recon.config import PipelineConfig, LineConfig
from layout_recon.utils.assembler import DocumentAssembler, PageContext
from layout_recon.utils.layout import ParagraphBlock, TableBlock


def _item(text, left, top, width, height, probability=0.9):
    return {
        "words": text,
        "location": {"left": left, "top": top, "width": width, "height": height},
        "probability": probability,
    }


def _cell(row, col, x0, y0, x1, y1):
    return {
        "row_start": row, "row_end": row, "col_start": col, "col_end": col,
        "cell_location": [{"x": x0, "y": y0}, {"x": x1, "y": y0}, {"x": x1, "y": y1}, {"x": x0, "y": y1}],
    }


def _blocks_json(page):
    return json.dumps([b.to_dict() for b in page.blocks], sort_keys=True)


class TestEndToEnd:
    """End-to-end integration tests."""

    @pytest.fixture
    def prose_page(self):
        return {"words": [
            _item("Name", 0, 0, 40, 20),
            _item("Age", 60, 0, 40, 20),
            _item("Alice", 0, 30, 40, 20),
        ]}

    @pytest.fixture
    def grid_page(self):
        return {
            "words": [
                _item("H1", 15, 5, 20, 10),
                _item("H2", 140, 5, 20, 10),
                _item("v1", 15, 50, 20, 10),
                _item("v2", 140, 50, 20, 10),
                _item("Summary", 0, 120, 80, 20),
            ],
            "tables_result": [{
                "table_location": [{"x": 0, "y": 0}, {"x": 200, "y": 80}],
                "body": [
                    _cell(0, 0, 0, 0, 100, 40),
                    _cell(0, 1, 100, 0, 200, 40),
                    _cell(1, 0, 0, 40, 100, 80),
                    _cell(1, 1, 100, 40, 200, 80),
                ],
            }],
        }

    @pytest.fixture
    def assembler(self):
        return DocumentAssembler(PipelineConfig(line=LineConfig(tolerance=5)))

    def test_two_lines_one_paragraph(self, assembler, prose_page):
        """Two lines, no table, one paragraph."""
        page = assembler.process_page(prose_page)

        assert [line.text for line in page.lines] == ["Name Age", "Alice"]
        assert page.tables == []
        assert page.table_strategy == "heuristic"
        assert [b.paragraph_index for b in page.blocks] == [0, 0]
        assert page.plain_text == "Name Age\nAlice"

    def test_2x2_grid_header_promoted(self, assembler, grid_page):
        """Geometry path builds the table and removes its words from free text."""
        page = assembler.process_page(grid_page)

        assert len(page.tables) == 1
        assert page.tables[0].headers == ["H1", "H2"]
        assert page.tables[0].rows == [["v1", "v2"]]
        assert page.table_strategy == "geometry"

        assert isinstance(page.blocks[0], TableBlock)
        assert isinstance(page.blocks[1], ParagraphBlock)
        assert page.plain_text == "Summary"

    def test_exclusivity(self, assembler, grid_page):
        """No table word appears in plain text; no word sits in two cells."""
        page = assembler.process_page(grid_page)
        for word in ("H1", "H2", "v1", "v2"):
            assert word not in page.plain_text

        texts = [c.text for t in page.tables for c in t.cells if c.text]
        assert len(texts) == len(set(texts))
        assert len(page.excluded_lines) == 2

    def test_idempotence(self, assembler, grid_page):
        """Repeated runs give byte-identical blocks."""
        first = _blocks_json(assembler.process_page(grid_page))
        for _ in range(3):
            assert _blocks_json(assembler.process_page(grid_page)) == first

    def test_order_independence(self, assembler, grid_page):
        """Shuffled words give the same lines, tables and blocks."""
        expected = assembler.process_page(grid_page)
        rng = random.Random(11)
        for _ in range(5):
            shuffled = dict(grid_page)
            shuffled["words"] = grid_page["words"][:]
            rng.shuffle(shuffled["words"])
            page = assembler.process_page(shuffled)
            assert [line.text for line in page.lines] == [line.text for line in expected.lines]
            assert [t.to_dict()["rows"] for t in page.tables] == [t.to_dict()["rows"] for t in expected.tables]
            assert [b.to_dict()["type"] for b in page.blocks] == [b.to_dict()["type"] for b in expected.blocks]
            assert page.plain_text == expected.plain_text

    def test_malformed_region_words_fall_back(self, assembler, grid_page):
        """Words of a malformed region stay in free text."""
        grid_page["words"].append(_item("loose", 320, 10, 40, 10))
        grid_page["tables_result"].insert(0, {
            "body": [
                {"row_start": 0, "row_end": "bad", "col_start": 0, "col_end": 0,
                 "cell_location": [[300, 0], [400, 40]]},
            ],
        })
        page = assembler.process_page(grid_page)

        assert page.skipped_regions == 1
        assert len(page.tables) == 1
        assert "loose" in page.plain_text

    def test_table_invariants(self, assembler, grid_page):
        """Every emitted table has rows of equal width and at least 2 columns."""
        page = assembler.process_page(grid_page)
        for table in page.tables:
            assert table.num_rows >= 1
            assert table.num_cols >= 2
            assert len({len(row) for row in table.rows}) == 1

    def test_empty_page(self, assembler):
        """No text is not an error."""
        page = assembler.process_page({"words": []})
        assert page.status == "empty"
        assert page.blocks == []
        assert page.plain_text == ""

    def test_table_only_page(self, assembler):
        """A page with table recognition but no word list still yields its table."""
        cells = []
        for (row, col, x0, y0, x1, y1), text in zip(
            [(0, 0, 0, 0, 100, 40), (0, 1, 100, 0, 200, 40), (1, 0, 0, 40, 100, 80), (1, 1, 100, 40, 200, 80)],
            ["H1", "H2", "v1", "v2"],
        ):
            cell = _cell(row, col, x0, y0, x1, y1)
            cell["words"] = text
            cells.append(cell)

        page = assembler.process_page({"words": [], "tables_result": [{"body": cells}]})

        assert page.status == "success"
        assert page.table_strategy == "geometry"
        assert page.tables[0].headers == ["H1", "H2"]
        assert page.tables[0].rows == [["v1", "v2"]]
        assert len(page.blocks) == 1 and isinstance(page.blocks[0], TableBlock)
        assert page.plain_text == ""

    def test_page_context(self, prose_page):
        """The context carries the page number and config."""
        assembler = DocumentAssembler()
        context = PageContext(config=PipelineConfig(line=LineConfig(tolerance=100)), page_number=7)
        page = assembler.process_page(prose_page, context)
        assert page.page_number == 7
        assert len(page.lines) == 1


class TestMultiPageDocument:
    """Tests for multi-page documents."""

    @pytest.fixture
    def pages(self):
        return [
            {"words": [_item(f"page{i}", 0, 0, 60, 20), _item("text", 0, 30, 40, 20)]}
            for i in range(1, 6)
        ]

    def test_sequential(self, pages):
        """Pages keep their order and numbering."""
        doc = DocumentAssembler().process_document(pages, source_file="pages.json")
        assert [p.page_number for p in doc.pages] == [1, 2, 3, 4, 5]
        assert doc.metrics.pages_processed == 5
        assert doc.metrics.words_total == 10
        assert "page3" in doc.markdown

    def test_workers_preserve_order(self, pages):
        """Threaded processing returns pages in input order."""
        doc = DocumentAssembler().process_document(pages, max_workers=3)
        assert [p.plain_text.split("\n")[0] for p in doc.pages] == [f"page{i}" for i in range(1, 6)]

    def test_failed_page_isolated(self, pages):
        """A broken page fails alone."""
        pages[1] = "not a page"
        doc = DocumentAssembler().process_document(pages)
        assert doc.pages[1].status == "failed"
        assert doc.pages[1].blocks == []
        assert doc.pages[1].error
        assert all(p.status == "success" for i, p in enumerate(doc.pages) if i != 1)
        assert doc.metrics.pages_failed == 1

    def test_cancellation(self, pages):
        """Pages not started after cancellation produce no blocks."""
        event = threading.Event()
        event.set()
        doc = DocumentAssembler().process_document(pages, cancel_event=event)
        assert all(p.status == "cancelled" for p in doc.pages)
        assert all(p.blocks == [] for p in doc.pages)
        assert doc.metrics.pages_cancelled == 5

    def test_max_pages(self, pages):
        """max_pages limits the processed pages."""
        doc = DocumentAssembler(PipelineConfig(max_pages=2)).process_document(pages)
        assert len(doc.pages) == 2

    def test_to_dict(self, pages):
        """The JSON envelope serializes cleanly."""
        doc = DocumentAssembler().process_document(pages, source_file="in.json")
        data = doc.to_dict()
        assert data["source_file"] == "in.json"
        assert data["schema_version"] == "1.0"
        assert len(data["pages"]) == 5
        assert data["pages"][0]["blocks"][0]["type"] == "paragraph"
        json.dumps(data)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
