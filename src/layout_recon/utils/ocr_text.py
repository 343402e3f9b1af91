"""
Local word source using Tesseract.

Turns page images into recognition payloads shaped like the cloud provider's
word list ({words, location, probability}), so images and PDFs go through the
same ingestion path as provider JSON.
"""

import logging
import time
from typing import List, Dict, Any, Optional, Sequence

import numpy as np

from ..config import OCRError

logger = logging.getLogger(__name__)


class TesseractWordSource:
    """Word-level recognition with per-page timeout and bounded retries."""

    def __init__(
        self,
        language: str = "eng",
        config: str = "--oem 3 --psm 3",
        timeout: float = 60.0,
        max_retries: int = 2,
        retry_delay: float = 1.0
    ):
        self.language = language
        self.config = config
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.retry_delay = retry_delay

    @staticmethod
    def check_available() -> str:
        """Return the Tesseract version or raise OCRError."""
        try:
            import pytesseract
            return str(pytesseract.get_tesseract_version())
        except Exception as e:
            raise OCRError(
                f"Tesseract not available: {e}\n"
                "Install with: pip install pytesseract\n"
                "Also install Tesseract: https://github.com/tesseract-ocr/tesseract"
            )

    def _prepare(self, image: np.ndarray):
        """Grayscale PIL image for Tesseract."""
        from PIL import Image

        if len(image.shape) == 3:
            import cv2
            image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        return Image.fromarray(image)

    def _image_to_data(self, image) -> Dict[str, List[Any]]:
        import pytesseract

        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            try:
                return pytesseract.image_to_data(
                    image,
                    lang=self.language,
                    config=self.config,
                    timeout=self.timeout,
                    output_type=pytesseract.Output.DICT
                )
            except Exception as e:
                last_error = e
                logger.warning(f"Tesseract attempt {attempt + 1}/{self.max_retries + 1} failed: {e}")
                if attempt < self.max_retries and self.retry_delay > 0:
                    time.sleep(self.retry_delay)

        raise OCRError(f"Tesseract failed after {self.max_retries + 1} attempts: {last_error}")

    def recognize(self, image: np.ndarray) -> Dict[str, Any]:
        """
        Recognize the words of one page image.

        Args:
            image: Page image (BGR or grayscale)

        Returns:
            Page payload with a ``words`` list

        Raises:
            OCRError: If Tesseract keeps failing
        """
        data = self._image_to_data(self._prepare(image))

        words = []
        for i in range(len(data['text'])):
            text = str(data['text'][i]).strip()
            conf = float(data['conf'][i])
            if not text or conf < 0:  # -1 marks layout rows without text
                continue
            words.append({
                "words": text,
                "location": {
                    "left": int(data['left'][i]),
                    "top": int(data['top'][i]),
                    "width": int(data['width'][i]),
                    "height": int(data['height'][i])
                },
                "probability": conf / 100.0
            })

        logger.debug(f"Tesseract recognized {len(words)} words")
        return {"words": words}

    def recognize_pages(self, images: Sequence[np.ndarray]) -> List[Dict[str, Any]]:
        """Recognize pages sequentially."""
        payloads = []
        for i, image in enumerate(images, 1):
            logger.info(f"Running OCR on page {i}/{len(images)}")
            payloads.append(self.recognize(image))
        return payloads
