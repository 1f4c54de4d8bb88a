"""Rule-based heading level classification for OCR'd layout regions.

Evidence is consulted in a fixed order and the first acceptable answer wins:

1. obvious body text is rejected outright;
2. the layout label from the detector, if it maps to a level whose length
   bounds the text satisfies;
3. keyword/regex pattern families (H1, then H4, H3, H2);
4. structural shape, for regions the detector labeled plain ``text``.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, Optional, Sequence, Tuple

from .layout_types import BBox, HeadingLevel

logger = logging.getLogger(__name__)

Predicate = Callable[[str], bool]

# label -> level; anything not listed is not a heading
LAYOUT_LABEL_LEVELS: Dict[str, HeadingLevel] = {
    "title": HeadingLevel.H1,
    "text": HeadingLevel.H2,
    "list": HeadingLevel.H3,
    "figure": HeadingLevel.UNKNOWN,
    "table": HeadingLevel.UNKNOWN,
    "header": HeadingLevel.UNKNOWN,
    "footer": HeadingLevel.UNKNOWN,
    "reference": HeadingLevel.UNKNOWN,
    "equation": HeadingLevel.UNKNOWN,
}

# level -> (min chars, max chars, max words)
LEVEL_BOUNDS: Dict[HeadingLevel, Tuple[int, int, int]] = {
    HeadingLevel.H1: (10, 150, 20),
    HeadingLevel.H2: (5, 120, 15),
    HeadingLevel.H3: (3, 100, 12),
    HeadingLevel.H4: (3, 80, 10),
}

_BODY_TEXT_STARTS = ("the ", "this ", "in ", "for ", "with ", "as ")

_H1_PREFIXES = (
    "abstract",
    "introduction",
    "executive summary",
    "conclusion",
    "appendix",
    "summary",
)
_H1_NUMBERED = re.compile(r"^(chapter|section|part|phase)\s+[IVX0-9]", re.IGNORECASE)

_H2_VOCABULARY = frozenset(
    {
        "background",
        "methodology",
        "results",
        "discussion",
        "references",
        "bibliography",
        "acknowledgments",
    }
)
_H2_PREFIXES = ("timeline:", "evaluation", "funding")
_H2_SUBSECTION = re.compile(r"^\d+\.\d+")

_H3_NUMBERED = re.compile(r"^\d+\.?\s")
_H3_LETTERED = re.compile(r"^[a-z]\)\s", re.IGNORECASE)

_H4_NUMERIC_DATE = re.compile(r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b")
_H4_MONTH_DATE = re.compile(
    r"\b(january|february|march|april|may|june|july|august|september|october"
    r"|november|december)\s+\d{1,2},?\s+\d{4}",
    re.IGNORECASE,
)
_H4_TIMELINE = re.compile(r"\btimeline:\s*", re.IGNORECASE)

_STRUCTURE_NUMBERED = re.compile(r"^\s*(?:\d+\.|\d+\.\d+\.?|[IVX]+\.?|[A-Z]\.)\s")
_MAJOR_SECTION = re.compile(r"^\s*(?:\d+\.|\d+\s+[A-Z]|[IVX]+\.)\s")


def word_count(text: str) -> int:
    return len(text.split())


def _h1_keywords(text: str) -> bool:
    lower = text.lower()
    return lower.startswith(_H1_PREFIXES) or "phase i" in lower


def _h1_numbered(text: str) -> bool:
    return bool(_H1_NUMBERED.search(text))


def _h2_keywords(text: str) -> bool:
    lower = text.lower()
    return lower in _H2_VOCABULARY or lower.startswith(_H2_PREFIXES)


def _h2_subsection(text: str) -> bool:
    return bool(_H2_SUBSECTION.search(text))


def _h3_list_marker(text: str) -> bool:
    return bool(_H3_NUMBERED.search(text) or _H3_LETTERED.search(text))


def _h3_colon(text: str) -> bool:
    return text.endswith(":") and 5 < len(text) < 60


def _h4_date(text: str) -> bool:
    return bool(
        _H4_NUMERIC_DATE.search(text)
        or _H4_MONTH_DATE.search(text)
        or _H4_TIMELINE.search(text)
    )


def _h4_bullet(text: str) -> bool:
    return text[:1] in ("-", "*") and len(text) < 50


# H1 and H4 are the least ambiguous signals, so they are tried first.
PATTERN_RULES: Tuple[Tuple[HeadingLevel, Tuple[Predicate, ...]], ...] = (
    (HeadingLevel.H1, (_h1_keywords, _h1_numbered)),
    (HeadingLevel.H4, (_h4_date, _h4_bullet)),
    (HeadingLevel.H3, (_h3_list_marker, _h3_colon)),
    (HeadingLevel.H2, (_h2_keywords, _h2_subsection)),
)


class HeadingClassifier:
    """Assigns a heading level to a recognized text region."""

    def __init__(
        self,
        pattern_rules: Sequence[Tuple[HeadingLevel, Sequence[Predicate]]] = PATTERN_RULES,
    ) -> None:
        self.pattern_rules = pattern_rules
        self.document_title = ""
        self.total_pages = 0

    def set_document_context(self, title: str, total_pages: int) -> None:
        self.document_title = title
        self.total_pages = total_pages

    def determine_heading_level(
        self,
        text: str,
        layout_label: str = "",
        bbox: Optional[BBox] = None,
        page_number: int = 1,
    ) -> HeadingLevel:
        if len(text) < 3:
            return HeadingLevel.UNKNOWN
        if self.is_likely_body_text(text):
            logger.debug("Rejected as body text: %r", text[:50])
            return HeadingLevel.UNKNOWN

        layout_level = self.classify_by_layout_label(layout_label)
        if layout_level != HeadingLevel.UNKNOWN and self.validate_heading_candidate(
            text, layout_level
        ):
            return layout_level

        pattern_level = self.classify_by_patterns(text, page_number)
        if pattern_level != HeadingLevel.UNKNOWN and self.validate_heading_candidate(
            text, pattern_level
        ):
            return pattern_level

        if layout_label == "text" and self.has_heading_structure(text):
            return self.classify_by_structure(text, page_number)

        return HeadingLevel.UNKNOWN

    @staticmethod
    def is_likely_body_text(text: str) -> bool:
        words = word_count(text)
        if len(text) > 200 or words > 25:
            return True
        if text.endswith(".") and len(text) > 50:
            return True
        if text.count(".") + text.count("!") + text.count("?") > 1:
            return True
        if text.lower().startswith(_BODY_TEXT_STARTS) and words > 8:
            return True
        return False

    @staticmethod
    def classify_by_layout_label(label: str) -> HeadingLevel:
        return LAYOUT_LABEL_LEVELS.get(label, HeadingLevel.UNKNOWN)

    def classify_by_patterns(self, text: str, page_number: int = 1) -> HeadingLevel:
        for level, predicates in self.pattern_rules:
            if any(predicate(text) for predicate in predicates):
                return level
            # Long first-page lines count as title evidence.
            if level == HeadingLevel.H1 and page_number == 1 and len(text) > 20:
                return level
        return HeadingLevel.UNKNOWN

    @staticmethod
    def validate_heading_candidate(text: str, level: HeadingLevel) -> bool:
        bounds = LEVEL_BOUNDS.get(level)
        if bounds is None:
            return False
        min_chars, max_chars, max_words = bounds
        return min_chars <= len(text) <= max_chars and word_count(text) <= max_words

    @staticmethod
    def has_heading_structure(text: str) -> bool:
        if not text:
            return False
        if _STRUCTURE_NUMBERED.search(text):
            return True
        if text.endswith(":") and 5 < len(text) < 80:
            return True

        if 3 < len(text) < 50:
            letters = [c for c in text if c.isalpha()]
            if len(letters) > 2 and not any(c.islower() for c in letters):
                return True

        capitalized = 0
        total = 0
        for word in text.split():
            if total >= 10:
                break
            if word[0].isalpha():
                total += 1
                if word[0].isupper():
                    capitalized += 1
        return 2 <= total <= 8 and capitalized / total >= 0.7

    @staticmethod
    def classify_by_structure(text: str, page_number: int = 1) -> HeadingLevel:
        words = word_count(text)

        if page_number == 1 and len(text) > 20 and words >= 3:
            return HeadingLevel.H1
        if _MAJOR_SECTION.search(text):
            return HeadingLevel.H1 if words <= 6 else HeadingLevel.H2
        if text.endswith(":"):
            return HeadingLevel.H3 if words <= 4 else HeadingLevel.H4

        if words <= 3:
            return HeadingLevel.H4
        if words <= 6:
            return HeadingLevel.H3
        if words <= 10:
            return HeadingLevel.H2
        return HeadingLevel.UNKNOWN

    @staticmethod
    def classify_by_length(text: str) -> HeadingLevel:
        """Word-count-only guess, used for diagnostics rather than the main decision."""
        words = word_count(text)
        if words <= 1:
            return HeadingLevel.H4
        if words <= 6:
            return HeadingLevel.H3
        if words <= 12:
            return HeadingLevel.H2
        if words >= 25:
            return HeadingLevel.UNKNOWN
        return HeadingLevel.H3
