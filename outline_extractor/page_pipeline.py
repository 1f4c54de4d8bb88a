"""Per-page heading extraction: layout -> crop -> OCR -> correct -> classify."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol, Sequence

import numpy as np

from .heading_classifier import HeadingClassifier
from .image_io import crop_region
from .layout_post import clamp_bbox, overlaps_any
from .layout_types import (
    BBox,
    Detection,
    HeadingInfo,
    HeadingLevel,
    LayoutRegion,
    PageResult,
)
from .text_corrector import TextCorrector

logger = logging.getLogger(__name__)

HEADING_CANDIDATE_LABELS = frozenset({"title", "paragraph_title", "text"})
TABLE_OVERLAP_THRESHOLD = 0.3
MIN_TEXT_LENGTH = 3


class Detector(Protocol):
    def detect_layout(self, image: np.ndarray) -> List[Detection]: ...


class OcrEngine(Protocol):
    def recognize(self, crop: np.ndarray) -> str: ...


class PagePipeline:
    """Turns one page image into zero or more headings."""

    def __init__(
        self,
        detector: Detector,
        ocr: OcrEngine,
        classifier: Optional[HeadingClassifier] = None,
        corrector: Optional[TextCorrector] = None,
    ) -> None:
        self.detector = detector
        self.ocr = ocr
        self.classifier = classifier or HeadingClassifier()
        self.corrector = corrector or TextCorrector()

    def process_page(
        self,
        image: np.ndarray,
        page_number: int,
        table_regions: Sequence[BBox] = (),
    ) -> PageResult:
        """Extract headings from one page.

        Any failure is logged and reported in ``PageResult.errors``; the page
        then contributes no headings.
        """
        try:
            headings = self._extract_headings(image, page_number, table_regions)
        except Exception as exc:
            logger.exception("Error processing page %d", page_number)
            return PageResult(page_number=page_number, errors=[str(exc)])
        return PageResult(page_number=page_number, headings=headings)

    def _extract_headings(
        self, image: np.ndarray, page_number: int, table_regions: Sequence[BBox]
    ) -> List[HeadingInfo]:
        height, width = image.shape[:2]
        detections = self.detector.detect_layout(image)
        logger.info("Page %d: detected %d layout regions", page_number, len(detections))

        headings: List[HeadingInfo] = []
        for detection in self._candidates(detections):
            bbox = clamp_bbox(*detection.bbox_xyxy, width=width, height=height)
            if bbox is None:
                continue
            if overlaps_any(bbox, table_regions, TABLE_OVERLAP_THRESHOLD):
                logger.debug("Page %d: skipping region %s inside a table", page_number, bbox)
                continue

            region = LayoutRegion(
                bbox=bbox, label=detection.label, confidence=detection.confidence
            )
            heading = self._classify_region(image, region, page_number)
            if heading is not None:
                headings.append(heading)
                logger.info(
                    "Page %d: found %s heading %r", page_number, heading.level, heading.text[:50]
                )
        return headings

    @staticmethod
    def _candidates(detections: Iterable[Detection]) -> Iterable[Detection]:
        return (det for det in detections if det.label in HEADING_CANDIDATE_LABELS)

    def _classify_region(
        self, image: np.ndarray, region: LayoutRegion, page_number: int
    ) -> Optional[HeadingInfo]:
        text = self._read_text(image, region.bbox, page_number)
        if len(text) < MIN_TEXT_LENGTH:
            return None

        corrected = self.corrector.correct_text(text)
        level = self.classifier.determine_heading_level(
            corrected, region.label, region.bbox, page_number
        )
        if level == HeadingLevel.UNKNOWN:
            return None

        return HeadingInfo(
            level=level.value,
            text=corrected,
            page=page_number,
            bbox=region.bbox,
            confidence=region.confidence,
        )

    def _read_text(self, image: np.ndarray, bbox: BBox, page_number: int) -> str:
        """OCR one region; a failing engine means no text for this region only."""
        try:
            return self.ocr.recognize(crop_region(image, bbox))
        except Exception as exc:
            logger.warning("Page %d: OCR failed for region %s: %s", page_number, bbox, exc)
            return ""
