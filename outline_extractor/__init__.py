"""Heading outline extraction for PDF documents.

Pages are rendered to images, segmented by a YOLO layout model, OCR'd and
classified into a title plus H1-H4 headings.
"""

__version__ = "1.0.0"

from .document_pipeline import DocumentProcessor  # noqa: E402,F401
from .heading_classifier import HeadingClassifier  # noqa: E402,F401
from .layout_analysis import LayoutDetector  # noqa: E402,F401
from .layout_types import (  # noqa: E402,F401
    Detection,
    HeadingInfo,
    HeadingLevel,
    LayoutRegion,
    ProcessingResult,
)
from .page_pipeline import PagePipeline  # noqa: E402,F401
