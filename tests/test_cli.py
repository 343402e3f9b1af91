"""
Tests for the command-line interface.
"""

import pytest
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from layout_recon.cli import build_config, main, parse_page_range, setup_argparser


def _item(text, left, top, width, height):
    return {"words": text, "location": {"left": left, "top": top, "width": width, "height": height}}


class TestPageRange:
    """Tests for parse_page_range."""

    def test_ranges_and_singles(self):
        """Ranges and single pages combine and are clipped."""
        assert parse_page_range("1-3,5", 10) == [1, 2, 3, 5]
        assert parse_page_range("4-20", 6) == [4, 5, 6]
        assert parse_page_range("0,2,99", 5) == [2]

    def test_invalid_range_raises(self):
        """Malformed parts raise ValueError naming the part."""
        with pytest.raises(ValueError, match="1-"):
            parse_page_range("1-", 5)
        with pytest.raises(ValueError, match="'a'"):
            parse_page_range("2,a", 5)


class TestArguments:
    """Tests for argument handling."""

    def test_threshold_overrides(self):
        """Command-line thresholds reach the pipeline config."""
        args = setup_argparser().parse_args([
            "-i", "in.json", "-o", "out",
            "--line-tolerance", "4", "--paragraph-gap", "2", "--column-tolerance", "12",
            "--workers", "3", "--include-tables-in-text",
        ])
        config = build_config(args)
        assert config.line.tolerance == 4
        assert config.paragraph.gap_multiplier == 2
        assert config.table.column_tolerance == 12
        assert config.max_workers == 3
        assert config.export.plain_text_include_tables


class TestMain:
    """Tests for the full CLI run."""

    def test_json_input(self, tmp_path):
        """A payload file produces the requested outputs."""
        payload = tmp_path / "scan.json"
        payload.write_text(json.dumps({"pages": [
            {"words": [_item("Hello", 0, 0, 50, 20), _item("world", 0, 30, 50, 20)]},
            {"words": [_item("Second", 0, 0, 60, 20)]},
        ]}), encoding="utf-8")
        out = tmp_path / "out"

        with pytest.raises(SystemExit) as exc:
            main(["-i", str(payload), "-o", str(out), "-f", "json", "text", "--pages", "1", "-q"])

        assert exc.value.code == 0
        assert (out / "scan.txt").read_text(encoding="utf-8") == "Hello\nworld"
        data = json.loads((out / "scan.json").read_text(encoding="utf-8"))
        assert len(data["pages"]) == 1

    def test_invalid_page_range_is_usage_error(self, tmp_path, capsys):
        """A bad --pages value exits with a usage error, not a traceback."""
        with pytest.raises(SystemExit) as exc:
            main(["-i", str(tmp_path / "in.json"), "-o", str(tmp_path / "out"), "--pages", "1-"])
        assert exc.value.code == 2
        assert "invalid page range" in capsys.readouterr().err

    def test_debug_env_enables_debug_logging(self, tmp_path, monkeypatch):
        """LAYOUT_RECON_DEBUG=true raises the log level to DEBUG."""
        monkeypatch.setenv("LAYOUT_RECON_DEBUG", "true")
        root = logging.getLogger()
        monkeypatch.setattr(root, "level", root.level)
        payload = tmp_path / "scan.json"
        payload.write_text(json.dumps({"pages": [{"words": [_item("Hi", 0, 0, 20, 20)]}]}), encoding="utf-8")

        with pytest.raises(SystemExit):
            main(["-i", str(payload), "-o", str(tmp_path / "out"), "-f", "json"])
        assert root.level == logging.DEBUG

    def test_unsupported_input(self, tmp_path):
        """Unknown inputs exit with an error code."""
        bad = tmp_path / "notes.txt"
        bad.write_text("x")
        with pytest.raises(SystemExit) as exc:
            main(["-i", str(bad), "-o", str(tmp_path / "out"), "-q"])
        assert exc.value.code == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
