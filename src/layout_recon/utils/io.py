"""
I/O utilities for the layout reconstruction pipeline.

Handles:
- Recognition payload files (JSON)
- PDF rasterization and image loading for the local OCR source
- JSON serialization
- Input type detection
"""

import json
import logging
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import List, Union, Optional, Any, Dict

import numpy as np

from ..config import PayloadError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp')


# ============================================================================
# Recognition Payloads
# ============================================================================

def load_page_payloads(json_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Load page payloads from a JSON file.

    Accepts a single page object, a list of page objects, or an object with
    a ``pages`` list.

    Args:
        json_path: Path to the JSON file

    Returns:
        List of raw page payloads in page order

    Raises:
        PayloadError: If the file does not hold page objects
    """
    data = load_json(json_path)

    if isinstance(data, dict) and isinstance(data.get("pages"), list):
        pages = data["pages"]
    elif isinstance(data, list):
        pages = data
    elif isinstance(data, dict):
        pages = [data]
    else:
        raise PayloadError(f"Unsupported payload file structure in {json_path}")

    bad = [i for i, page in enumerate(pages, 1) if not isinstance(page, dict)]
    if bad:
        raise PayloadError(f"Pages {bad} in {json_path} are not JSON objects")

    logger.info(f"Loaded {len(pages)} page payloads from {json_path}")
    return pages


# ============================================================================
# PDF to Image Conversion
# ============================================================================

def load_pdf(
    pdf_path: Union[str, Path],
    dpi: int = 300,
    first_page: Optional[int] = None,
    last_page: Optional[int] = None
) -> List[np.ndarray]:
    """
    Convert PDF pages to images using pdf2image (poppler backend).

    Args:
        pdf_path: Path to the PDF file
        dpi: Resolution for rendering
        first_page: First page to convert (1-indexed, None = first)
        last_page: Last page to convert (1-indexed, None = last)

    Returns:
        List of numpy arrays (BGR format) representing each page

    Raises:
        FileNotFoundError: If PDF file doesn't exist
        RuntimeError: If the PDF cannot be parsed or poppler is missing
    """
    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        raise FileNotFoundError(f"PDF file not found: {pdf_path}")

    try:
        from pdf2image import convert_from_path
        from pdf2image.exceptions import PDFPageCountError, PDFSyntaxError
    except ImportError:
        raise ImportError(
            "pdf2image is required. Install with: pip install pdf2image\n"
            "Also ensure poppler is installed on your system."
        )

    logger.info(f"Rasterizing PDF: {pdf_path} at {dpi} DPI")
    try:
        pil_images = convert_from_path(
            pdf_path,
            dpi=dpi,
            first_page=first_page,
            last_page=last_page,
            fmt='png',
            thread_count=4
        )
    except (PDFPageCountError, PDFSyntaxError) as e:
        raise RuntimeError(f"Failed to parse PDF: {e}")
    except Exception as e:
        if "poppler" in str(e).lower():
            raise RuntimeError("Poppler is not installed (poppler-utils / brew install poppler)")
        raise

    images = []
    for pil_img in pil_images:
        img_array = np.array(pil_img)
        # RGB -> BGR for OpenCV compatibility
        if len(img_array.shape) == 3 and img_array.shape[2] == 3:
            img_array = img_array[:, :, ::-1].copy()
        images.append(img_array)

    logger.info(f"Converted {len(images)} pages from PDF")
    return images


# ============================================================================
# Image Loading
# ============================================================================

def load_image(image_path: Union[str, Path], grayscale: bool = False) -> np.ndarray:
    """
    Load an image from file.

    Raises:
        FileNotFoundError: If image file doesn't exist
        ValueError: If image cannot be decoded
    """
    import cv2

    image_path = Path(image_path)
    if not image_path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    flag = cv2.IMREAD_GRAYSCALE if grayscale else cv2.IMREAD_COLOR
    img = cv2.imread(str(image_path), flag)

    if img is None:
        raise ValueError(f"Could not decode image: {image_path}")

    logger.debug(f"Loaded image: {image_path}, shape: {img.shape}")
    return img


def load_images_from_folder(folder: Union[str, Path]) -> List[np.ndarray]:
    """Load every image in a folder, sorted by file name."""
    folder = Path(folder)
    paths = sorted(p for p in folder.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS)
    return [load_image(p) for p in paths]


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy values, enums and dataclasses."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, Enum):
            return obj.value
        if hasattr(obj, 'to_dict'):
            return obj.to_dict()
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def load_json(json_path: Union[str, Path]) -> Any:
    """Load data from a JSON file."""
    json_path = Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"JSON file not found: {json_path}")

    with open(json_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def ensure_dir(path: Union[str, Path]) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


# ============================================================================
# File Type Detection
# ============================================================================

def detect_input_type(input_path: Union[str, Path]) -> str:
    """
    Detect the type of input file or directory.

    Returns:
        One of: 'json', 'pdf', 'image', 'image_folder', 'unknown'
    """
    input_path = Path(input_path)

    if input_path.is_dir():
        has_images = any(f.suffix.lower() in IMAGE_EXTENSIONS for f in input_path.iterdir())
        return 'image_folder' if has_images else 'unknown'

    if not input_path.exists():
        return 'unknown'

    suffix = input_path.suffix.lower()
    if suffix == '.json':
        return 'json'
    if suffix == '.pdf':
        return 'pdf'
    if suffix in IMAGE_EXTENSIONS:
        return 'image'

    return 'unknown'
