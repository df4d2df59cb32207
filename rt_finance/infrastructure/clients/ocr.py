"""Tesseract OCR client for receipt photos"""

import io
import pytesseract
from PIL import Image, UnidentifiedImageError

from rt_finance.domain.exceptions import OCRError
from rt_finance.config import settings


class TesseractOCR:
    """Reads raw text out of an image with the local Tesseract binary"""

    def __init__(self, language: str | None = None):
        self.language = language or settings.ocr_language

    def recognize(self, image_bytes: bytes) -> str:
        """
        Run OCR over an encoded image (JPEG/PNG/...).

        Raises:
            OCRError: Image cannot be decoded or Tesseract fails
        """
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                return pytesseract.image_to_string(img.convert("RGB"), lang=self.language)
        except UnidentifiedImageError as e:
            raise OCRError("Uploaded file is not a readable image") from e
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
            raise OCRError(f"Tesseract failed: {e}") from e
