# fundex/pipelines/gst_extraction.py
"""
Find a GSTIN (Indian GST registration number) in OCR text.

GSTIN layout (15 chars):
    2 digits state code (01-37) + 10 char PAN + entity digit + 'Z' + check char
    e.g. 27AABCU9603R1ZM

Three passes, first hit wins:
1. KeywordAnchoredPass - lines with gstin / tax id / vat ... and the 3 lines after
2. DocumentPass        - whole text (whitespace collapsed), full grammar
3. LoosePass           - any 15-char run starting with 2 digits and 'Z' at offset 13
"""

import re
import logging
from typing import List, Optional, Sequence

from fundex.config.scoring_tables import GSTTables, get_scoring_tables

logger = logging.getLogger(__name__)


def clean_gst(candidate: str) -> str:
    """Uppercase and strip embedded whitespace."""
    return re.sub(r"\s", "", candidate).upper()


def is_plausible_gst(candidate: str, tables: GSTTables) -> bool:
    """Length, state code range and sentinel position."""
    if len(candidate) != tables.length:
        return False
    if not candidate[:2].isdigit():
        return False
    state_code = int(candidate[:2])
    if not tables.state_code_min <= state_code <= tables.state_code_max:
        return False
    return candidate[tables.sentinel_offset] == tables.sentinel


class GSTPass:
    name = "base"

    def __init__(self, tables: GSTTables):
        self.tables = tables
        self._patterns = [re.compile(p, re.IGNORECASE) for p in tables.patterns]

    def _first_valid(self, text: str, patterns: Sequence["re.Pattern"]) -> Optional[str]:
        for pattern in patterns:
            for match in pattern.finditer(text):
                candidate = clean_gst(match.group(0))
                if is_plausible_gst(candidate, self.tables):
                    return candidate
        return None

    def find(self, text: str) -> Optional[str]:
        raise NotImplementedError


class KeywordAnchoredPass(GSTPass):
    name = "keyword"

    def find(self, text: str) -> Optional[str]:
        lines = [line.strip() for line in text.split("\n")]
        window = self.tables.keyword_window

        for i, line in enumerate(lines):
            lower = line.lower()
            if not any(k in lower for k in self.tables.keywords):
                continue
            for j in range(i, min(i + window, len(lines))):
                found = self._first_valid(lines[j], self._patterns)
                if found:
                    return found
        return None


class DocumentPass(GSTPass):
    name = "document"

    def find(self, text: str) -> Optional[str]:
        return self._first_valid(re.sub(r"\s+", " ", text), self._patterns)


class LoosePass(GSTPass):
    name = "loose"

    def find(self, text: str) -> Optional[str]:
        compact = re.sub(r"\s", "", text)
        # Lookahead so overlapping runs are all tried
        loose = re.compile(f"(?=({self.tables.loose_pattern}))", re.IGNORECASE)
        for match in loose.finditer(compact):
            candidate = match.group(1).upper()
            if is_plausible_gst(candidate, self.tables):
                return candidate
        return None


class GSTExtractor:
    """Ordered GSTIN passes; returns the first match or None."""

    DEFAULT_PASSES = (KeywordAnchoredPass, DocumentPass, LoosePass)

    def __init__(self, tables: Optional[GSTTables] = None, passes: Optional[Sequence[type]] = None):
        self.tables = tables or get_scoring_tables().gst
        self.passes: List[GSTPass] = [cls(self.tables) for cls in (passes or self.DEFAULT_PASSES)]

    def extract_gst(self, text: Optional[str]) -> Optional[str]:
        if not text:
            return None

        for gst_pass in self.passes:
            found = gst_pass.find(text)
            if found:
                logger.info(f"🏢 Found GSTIN {found} ({gst_pass.name} pass)")
                return found

        logger.info("No GST number found in receipt")
        return None


def extract_gst_from_bill(text: Optional[str]) -> Optional[str]:
    return GSTExtractor().extract_gst(text)
