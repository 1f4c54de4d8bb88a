"""Dictionary and regex based clean-up of OCR output."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Pattern, Tuple, Union

logger = logging.getLogger(__name__)

_WORD_FIXES: Tuple[Tuple[str, str], ...] = (
    ("rnatch", "match"), ("vvork", "work"), ("cornpany", "company"),
    ("rnoney", "money"), ("rnanage", "manage"), ("rnarket", "market"),
    ("tilie", "title"), ("nieet", "meet"), ("rnust", "must"),
    ("vvill", "will"), ("vvith", "with"), ("vvhen", "when"),
    ("vvhere", "where"), ("vvhat", "what"), ("vvhy", "why"),
    ("rnight", "might"), ("rnore", "more"), ("rnark", "mark"),
    # technical terms
    ("Aadile", "Agile"), ("aadile", "agile"),
    ("Testina", "Testing"), ("testina", "testing"),
    ("Entrv", "Entry"), ("entrv", "entry"),
    ("lntroduction", "Introduction"),
    ("Reguirements", "Requirements"), ("reguirements", "requirements"),
    ("Develooment", "Development"), ("develooment", "development"),
    ("Manaaement", "Management"), ("manaaement", "management"),
    ("Orqanization", "Organization"), ("orqanization", "organization"),
    ("Backaround", "Background"), ("backaround", "background"),
    ("Technoloaical", "Technological"), ("technoloaical", "technological"),
    # spelling
    ("recieve", "receive"), ("seperate", "separate"), ("occured", "occurred"),
    ("definately", "definitely"), ("managment", "management"),
    ("enviroment", "environment"), ("accomodate", "accommodate"),
    ("begining", "beginning"), ("beleive", "believe"), ("occassion", "occasion"),
    ("profesional", "professional"), ("recomend", "recommend"),
    ("neccessary", "necessary"), ("accross", "across"), ("untill", "until"),
    ("thier", "their"), ("freind", "friend"), ("sence", "sense"),
    # document vocabulary
    ("qgovernance", "governance"), ("decision-makina", "decision-making"),
    ("fundina", "funding"), ("reallv", "really"), ("librarv", "library"),
    ("fullv", "fully"), ("aovernment", "government"), ("tc", "to"),
    ("Strateqy", "Strategy"),
    # label punctuation
    ("timeline-", "Timeline:"), ("summary-", "Summary:"),
    ("background-", "Background:"), ("guidance-", "Guidance:"),
)

# Context-free character confusions. These also rewrite correct words that
# happen to contain the sequence (e.g. "class" -> "dass").
_CHARACTER_FIXES: Tuple[Tuple[str, str], ...] = (
    ("rn", "m"), ("vv", "w"), ("ii", "ll"), ("oo", "co"), ("cl", "d"),
)

_REGEX_FIXES: Tuple[Tuple[Pattern[str], str], ...] = (
    (re.compile(r"(\d)\s+(\d)"), r"\1.\2"),
    (re.compile(r"(\d)\s*\.\s+(\d)"), r"\1.\2"),
    (re.compile(r"\b(\d+)lst\b"), r"\1st"),
    (re.compile(r"\b(\d+)ncl\b"), r"\1nd"),
    (re.compile(r"\b(\d+)rcl\b"), r"\1rd"),
)

_WHITESPACE = re.compile(r"\s+")


class TextCorrector:
    """Pure ``str -> str`` normalization of OCR text.

    Substitutions are applied in table order: word-level fixes first, then
    the single-sequence character confusions, then (aggressive mode only)
    the regex repairs for numbering and ordinals.
    """

    def __init__(self, aggressive: bool = False) -> None:
        self.aggressive = aggressive
        self.basic_fixes: Dict[str, str] = dict(_WORD_FIXES)
        self.basic_fixes.update(_CHARACTER_FIXES)
        self.regex_fixes: List[Tuple[Pattern[str], str]] = list(_REGEX_FIXES)

    def correct_text(self, text: str) -> str:
        if not text:
            return text
        result = self.apply_basic_fixes(text)
        if self.aggressive:
            result = self.apply_regex_fixes(result)
        return result

    def apply_basic_fixes(self, text: str) -> str:
        result = text
        for wrong, right in self.basic_fixes.items():
            result = result.replace(wrong, right)
        return _WHITESPACE.sub(" ", result).strip()

    def apply_regex_fixes(self, text: str) -> str:
        result = text
        for pattern, replacement in self.regex_fixes:
            result = pattern.sub(replacement, result)
        return result

    def load_custom_corrections(self, file_path: Union[str, Path]) -> int:
        """Merge ``wrong=right`` lines from a file; returns how many were read."""
        path = Path(file_path)
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            logger.warning("Could not open corrections file %s: %s", path, exc)
            return 0

        loaded = 0
        for line in lines:
            wrong, sep, right = line.partition("=")
            if not sep or not wrong:
                continue
            self.basic_fixes[wrong] = right
            loaded += 1
        logger.debug("Loaded %d custom corrections from %s", loaded, path)
        return loaded

    @staticmethod
    def is_valid_correction(original: str, corrected: str) -> bool:
        if not corrected:
            return False
        if len(corrected) > len(original) * 2:
            return False
        if len(original) > len(corrected) * 2:
            return False
        return True
