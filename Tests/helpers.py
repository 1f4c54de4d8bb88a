"""Stub collaborators shared by the pipeline tests."""

from pathlib import Path
from typing import Iterable, List, Optional

import numpy as np

from outline_extractor.layout_types import Detection
from outline_extractor.pdf_render import RasterizationError


def blank_page(width: int = 1000, height: int = 1200) -> np.ndarray:
    return np.full((height, width, 3), 255, dtype=np.uint8)


def title_detection(x1=100, y1=50, x2=900, y2=150, confidence=0.95) -> Detection:
    return Detection(
        x1=x1, y1=y1, x2=x2, y2=y2, confidence=confidence, class_id=10, label="title"
    )


class StubDetector:
    def __init__(self, detections: Optional[List[Detection]] = None, error: Exception = None):
        self.detections = detections or []
        self.error = error
        self.calls = 0

    def detect_layout(self, image):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.detections)


class CountingOcr:
    """Returns the given texts in order, repeating the last one."""

    def __init__(self, texts: Iterable[str]):
        self.texts = list(texts)
        self.crops = []

    @property
    def calls(self) -> int:
        return len(self.crops)

    def recognize(self, crop):
        self.crops.append(crop)
        index = min(len(self.crops), len(self.texts)) - 1
        return self.texts[index] if self.texts else ""


class StubRasterizer:
    """Serves in-memory page images; ``fail_on`` names files whose later pages fail."""

    def __init__(self, pages: List[np.ndarray], fail_on=(), fail_at_page: int = 2):
        self.pages = pages
        self.fail_on = set(fail_on)
        self.fail_at_page = fail_at_page
        self.render_calls = 0

    def page_count(self, pdf_path) -> int:
        return len(self.pages)

    def render(self, pdf_path, dpi):
        self.render_calls += 1
        for number, page in enumerate(self.pages, start=1):
            if Path(pdf_path).name in self.fail_on and number >= self.fail_at_page:
                raise RasterizationError(f"Failed to render page {number}: broken stream")
            yield page


class RecordingTableLocator:
    def __init__(self, zones=None):
        self.zones = zones or []
        self.calls = []

    def find_tables(self, pdf_path, page_number, dpi):
        self.calls.append((page_number, dpi))
        return list(self.zones)
