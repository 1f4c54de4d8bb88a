"""PDF collaborators built on PyMuPDF: rasterizing, title lookup, table zones."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator, List, Optional, Union

import fitz  # PyMuPDF
import numpy as np

from .image_io import decode_bgr_image
from .layout_types import BBox

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_FILENAME_SEPARATORS = re.compile(r"[_\-.]+")


class DocumentNotFoundError(FileNotFoundError):
    """Raised when the input PDF does not exist."""


class RasterizationError(RuntimeError):
    """Raised when a PDF cannot be opened or a page cannot be rendered."""


def _open_document(pdf_path: PathLike) -> "fitz.Document":
    path = Path(pdf_path)
    if not path.is_file():
        raise DocumentNotFoundError(f"PDF file not found: {path}")
    try:
        return fitz.open(str(path))
    except Exception as exc:
        raise RasterizationError(f"Cannot open PDF {path}: {exc}") from exc


class PdfRasterizer:
    """Renders PDF pages to BGR images, one page at a time."""

    def page_count(self, pdf_path: PathLike) -> int:
        with _open_document(pdf_path) as doc:
            return doc.page_count

    def render(self, pdf_path: PathLike, dpi: int) -> Iterator[np.ndarray]:
        with _open_document(pdf_path) as doc:
            logger.info("Converting %d pages at %d DPI", doc.page_count, dpi)
            for index in range(doc.page_count):
                try:
                    pix = doc.load_page(index).get_pixmap(dpi=dpi)
                    image = decode_bgr_image(pix.tobytes("png"))
                except Exception as exc:
                    raise RasterizationError(
                        f"Failed to render page {index + 1}: {exc}"
                    ) from exc
                yield image


def read_pdf_title(pdf_path: PathLike) -> Optional[str]:
    """Return the PDF metadata title, or None when absent or unreadable."""
    try:
        with _open_document(pdf_path) as doc:
            title = (doc.metadata or {}).get("title") or ""
    except (DocumentNotFoundError, RasterizationError) as exc:
        logger.debug("No metadata title for %s: %s", pdf_path, exc)
        return None
    title = title.strip()
    return title or None


def title_from_filename(pdf_path: PathLike) -> str:
    """Readable title from a file name: ``annual_report-2024`` -> ``Annual Report 2024``."""
    stem = Path(pdf_path).stem
    words = _FILENAME_SEPARATORS.sub(" ", stem).split()
    title = " ".join(word[0].upper() + word[1:] for word in words)
    return title or stem


class TableLocator:
    """Finds table-like zones from the text block arrangement of a PDF page.

    A page with at least ``min_blocks`` text blocks, of which two or more
    left-aligned columns hold two or more blocks each, yields one zone
    enclosing every block. Zones are in page-image pixels for ``dpi``.
    """

    def __init__(self, min_blocks: int = 6, alignment_tolerance: float = 10.0) -> None:
        self.min_blocks = min_blocks
        self.alignment_tolerance = alignment_tolerance

    def find_tables(self, pdf_path: PathLike, page_number: int, dpi: int) -> List[BBox]:
        try:
            with _open_document(pdf_path) as doc:
                if page_number < 1 or page_number > doc.page_count:
                    logger.warning("Page %d out of range for table detection", page_number)
                    return []
                blocks = [
                    (x0, y0, x1, y1)
                    for x0, y0, x1, y1, _text, _no, block_type in doc.load_page(
                        page_number - 1
                    ).get_text("blocks")
                    if block_type == 0
                ]
        except Exception as exc:
            logger.warning("Table detection failed for page %d: %s", page_number, exc)
            return []

        zones = self._zones_from_blocks(blocks, dpi / 72.0)
        if zones:
            logger.info("Detected %d table(s) on page %d", len(zones), page_number)
        return zones

    def _zones_from_blocks(self, blocks: List[tuple], scale: float) -> List[BBox]:
        if len(blocks) < self.min_blocks:
            return []

        columns: List[List[tuple]] = []
        for block in blocks:
            for column in columns:
                if abs(column[0][0] - block[0]) < self.alignment_tolerance:
                    column.append(block)
                    break
            else:
                columns.append([block])

        if sum(1 for column in columns if len(column) >= 2) < 2:
            return []

        min_x = min(b[0] for b in blocks)
        min_y = min(b[1] for b in blocks)
        max_x = max(b[2] for b in blocks)
        max_y = max(b[3] for b in blocks)
        return [
            (
                int(min_x * scale),
                int(min_y * scale),
                int(max_x * scale),
                int(max_y * scale),
            )
        ]


class NullTableLocator:
    """Table locator that never reports a table."""

    def find_tables(self, pdf_path: PathLike, page_number: int, dpi: int) -> List[BBox]:
        return []
