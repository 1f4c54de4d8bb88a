"""Tesseract OCR for cropped page regions."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import pytesseract

from .image_io import bgr_to_pil

logger = logging.getLogger(__name__)


class TesseractOcr:
    """Recognizes the text in one image crop; failures come back as ``""``."""

    def __init__(
        self,
        psm: int = 6,
        lang: str = "eng",
        tesseract_cmd: Optional[str] = None,
    ) -> None:
        self.psm = psm
        self.lang = lang
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def recognize(self, crop: np.ndarray) -> str:
        if crop is None or crop.size == 0:
            return ""
        try:
            text = pytesseract.image_to_string(
                bgr_to_pil(crop), lang=self.lang, config=f"--psm {self.psm}"
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as exc:
            logger.warning("OCR failed: %s", exc)
            return ""

        lines = [line.strip() for line in text.splitlines() if line.strip()]
        return " ".join(lines)


def tesseract_version() -> Optional[str]:
    try:
        return str(pytesseract.get_tesseract_version())
    except (pytesseract.TesseractNotFoundError, OSError):
        return None
