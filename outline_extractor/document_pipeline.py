"""Whole-document orchestration: rasterize, walk pages in order, write the outline."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import List, Optional, Protocol, Union

from .artifacts import write_result_json
from .config import Settings
from .heading_classifier import HeadingClassifier
from .layout_analysis import LayoutDetector
from .layout_types import BBox, HeadingInfo, ProcessingResult
from .ocr import TesseractOcr
from .page_pipeline import PagePipeline
from .pdf_render import (
    NullTableLocator,
    PdfRasterizer,
    TableLocator,
    read_pdf_title,
    title_from_filename,
)
from .text_corrector import TextCorrector

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class TableZoneLocator(Protocol):
    def find_tables(self, pdf_path: PathLike, page_number: int, dpi: int) -> List[BBox]: ...


def resolve_title(pdf_path: PathLike) -> str:
    return read_pdf_title(pdf_path) or title_from_filename(pdf_path)


class DocumentProcessor:
    """Extracts the heading outline of PDF documents.

    Pages are processed strictly one after another, so only one page image
    is held at a time. The layout detector is initialized once and reused
    for every document this processor handles.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        detector: Optional[LayoutDetector] = None,
        rasterizer: Optional[PdfRasterizer] = None,
        table_locator: Optional[TableZoneLocator] = None,
        page_pipeline: Optional[PagePipeline] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.rasterizer = rasterizer or PdfRasterizer()

        if table_locator is None:
            table_locator = TableLocator() if self.settings.detect_tables else NullTableLocator()
        self.table_locator = table_locator

        if page_pipeline is None:
            if detector is None:
                detector = LayoutDetector(model_dirs=self.settings.model_locations)
                detector.initialize()
            page_pipeline = PagePipeline(
                detector=detector,
                ocr=TesseractOcr(
                    psm=self.settings.ocr_psm, tesseract_cmd=self.settings.tesseract_cmd
                ),
                classifier=HeadingClassifier(),
                corrector=self._build_corrector(),
            )
        self.page_pipeline = page_pipeline

    def _build_corrector(self) -> TextCorrector:
        corrector = TextCorrector(aggressive=self.settings.aggressive_correction)
        if self.settings.corrections_file:
            corrector.load_custom_corrections(self.settings.corrections_file)
        return corrector

    def process_pdf(
        self, pdf_path: PathLike, output_path: Optional[PathLike] = None
    ) -> ProcessingResult:
        """Process one PDF; the outline is written only after a fully successful run."""
        start = time.perf_counter()
        result = ProcessingResult(source_path=str(pdf_path))
        dpi = self.settings.dpi

        try:
            logger.info("Processing PDF: %s", pdf_path)
            page_count = self.rasterizer.page_count(pdf_path)
            if page_count == 0:
                result.error_message = "No pages could be converted from PDF"
                logger.error("%s: %s", pdf_path, result.error_message)
                return result

            result.title = resolve_title(pdf_path)
            self.page_pipeline.classifier.set_document_context(result.title, page_count)

            headings: List[HeadingInfo] = []
            for page_number, image in enumerate(self.rasterizer.render(pdf_path, dpi), start=1):
                tables = self.table_locator.find_tables(pdf_path, page_number, dpi)
                page = self.page_pipeline.process_page(image, page_number, tables)
                headings.extend(page.headings)
            result.headings = headings
            logger.info("Found %d headings in %s", len(headings), pdf_path)

            if output_path is not None:
                write_result_json(result=result, out_file=output_path)
                logger.info("Results saved to: %s", output_path)
            result.success = True
        except Exception as exc:
            result.error_message = str(exc)
            logger.error("Processing failed for %s: %s", pdf_path, exc)
        finally:
            result.processing_time_seconds = time.perf_counter() - start

        if result.success:
            logger.info(
                "Processing completed successfully in %.2fs", result.processing_time_seconds
            )
        return result

    def process_directory(
        self, input_dir: PathLike, output_dir: PathLike
    ) -> List[ProcessingResult]:
        """Batch mode: one ``<stem>.json`` per PDF; failures do not stop the batch."""
        input_path = Path(input_dir)
        if not input_path.is_dir():
            logger.error("Input directory not found: %s", input_path)
            return []

        pdf_files = sorted(
            p for p in input_path.iterdir() if p.is_file() and p.suffix.lower() == ".pdf"
        )
        if not pdf_files:
            logger.warning("No PDF files found in %s", input_path)

        results: List[ProcessingResult] = []
        for pdf_file in pdf_files:
            out_file = Path(output_dir) / f"{pdf_file.stem}.json"
            results.append(self.process_pdf(pdf_file, out_file))
        return results
