"""
Tests for the Tesseract word source.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

pytesseract = pytest.importorskip("pytesseract")

from layout_recon.config import OCRError
from layout_recon.utils.ingest import BoundingBox, ingest_page
from layout_recon.utils.ocr_text import TesseractWordSource


def _data():
    return {
        "text": ["", "Hello", "world", "  ", "ignored"],
        "conf": ["-1", "96.5", "88", "50", "-1"],
        "left": [0, 10, 70, 0, 5],
        "top": [0, 20, 21, 0, 5],
        "width": [500, 50, 60, 0, 10],
        "height": [400, 15, 14, 0, 10],
    }


class TestTesseractWordSource:
    """Tests for TesseractWordSource."""

    @pytest.fixture
    def image(self):
        return np.full((100, 200), 255, dtype=np.uint8)

    def test_payload_shape(self, monkeypatch, image):
        """Words become provider-shaped items; empty and -1 rows are skipped."""
        calls = {}

        def fake_image_to_data(img, **kwargs):
            calls.update(kwargs, size=img.size, mode=img.mode)
            return _data()

        monkeypatch.setattr(pytesseract, "image_to_data", fake_image_to_data)
        payload = TesseractWordSource(language="deu", timeout=5).recognize(image)

        assert [w["words"] for w in payload["words"]] == ["Hello", "world"]
        assert payload["words"][0]["location"] == {"left": 10, "top": 20, "width": 50, "height": 15}
        assert payload["words"][0]["probability"] == pytest.approx(0.965)
        assert calls["lang"] == "deu"
        assert calls["timeout"] == 5
        assert calls["size"] == (200, 100)
        assert calls["mode"] == "L"

    def test_payload_ingests(self, monkeypatch, image):
        """The payload goes through normal ingestion."""
        monkeypatch.setattr(pytesseract, "image_to_data", lambda img, **kwargs: _data())
        page = ingest_page(TesseractWordSource().recognize(image))
        assert page.words[1].bbox == BoundingBox(70, 21, 130, 35)
        assert page.words[1].confidence == pytest.approx(88.0)

    def test_retries_then_succeeds(self, monkeypatch, image):
        """Transient failures are retried."""
        attempts = []

        def flaky(img, **kwargs):
            attempts.append(1)
            if len(attempts) < 2:
                raise RuntimeError("Tesseract process timeout")
            return _data()

        monkeypatch.setattr(pytesseract, "image_to_data", flaky)
        payload = TesseractWordSource(max_retries=2, retry_delay=0).recognize(image)
        assert len(attempts) == 2
        assert len(payload["words"]) == 2

    def test_gives_up_after_retries(self, monkeypatch, image):
        """Persistent failures raise OCRError."""
        def broken(img, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(pytesseract, "image_to_data", broken)
        with pytest.raises(OCRError):
            TesseractWordSource(max_retries=1, retry_delay=0).recognize(image)

    def test_recognize_pages(self, monkeypatch, image):
        """One payload per image."""
        monkeypatch.setattr(pytesseract, "image_to_data", lambda img, **kwargs: _data())
        payloads = TesseractWordSource().recognize_pages([image, image])
        assert len(payloads) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
