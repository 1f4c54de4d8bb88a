"""Data structures for layout detection and heading extraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


BBox = Tuple[int, int, int, int]


class HeadingLevel(str, Enum):
    H1 = "H1"
    H2 = "H2"
    H3 = "H3"
    H4 = "H4"
    UNKNOWN = "UNKNOWN"


@dataclass
class Detection:
    """One candidate region produced by the layout model, in page-image pixels."""

    x1: float
    y1: float
    x2: float
    y2: float
    confidence: float
    class_id: int
    label: str

    @property
    def bbox_xyxy(self) -> Tuple[float, float, float, float]:
        return (self.x1, self.y1, self.x2, self.y2)

    @property
    def area(self) -> float:
        return max(0.0, self.x2 - self.x1) * max(0.0, self.y2 - self.y1)


@dataclass(frozen=True)
class LayoutRegion:
    """Classifier-facing view of a detection."""

    bbox: BBox
    label: str
    confidence: float


@dataclass(frozen=True)
class HeadingInfo:
    """A single accepted heading."""

    level: str
    text: str
    page: int
    bbox: BBox
    confidence: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "level": self.level,
            "text": self.text,
            "page": self.page,
            "bbox": list(self.bbox),
            "confidence": self.confidence,
        }


@dataclass
class LayoutAnalysisResult:
    """Structured result for layout detection on one page image."""

    image_width: int
    image_height: int
    detections: List[Detection] = field(default_factory=list)
    used_fallback: bool = False
    model_info: Dict[str, object] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)


@dataclass
class PageResult:
    """Headings found on one page plus any recovered errors."""

    page_number: int
    headings: List[HeadingInfo] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class ProcessingResult:
    """Document-level outcome of a heading extraction run."""

    title: str = ""
    headings: List[HeadingInfo] = field(default_factory=list)
    success: bool = False
    error_message: str = ""
    processing_time_seconds: float = 0.0
    source_path: Optional[str] = None

    def to_outline(self) -> Dict[str, object]:
        return {
            "title": self.title,
            "outline": [heading.to_dict() for heading in self.headings],
        }

    def level_counts(self) -> Dict[str, int]:
        counts = {level.value: 0 for level in HeadingLevel if level != HeadingLevel.UNKNOWN}
        for heading in self.headings:
            counts[heading.level] = counts.get(heading.level, 0) + 1
        return counts
