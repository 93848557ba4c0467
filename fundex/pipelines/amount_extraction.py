# fundex/pipelines/amount_extraction.py
"""
Find the receipt total in OCR text.

Three strategies run in order; the first one that produces any candidate
wins and the rest are skipped:

1. KeywordProximityStrategy - amounts on or just below a "total" keyword line
2. BottomSectionStrategy    - largest amount in the bottom 30% of the receipt
3. LargestAmountStrategy    - largest (de-duplicated) amount anywhere

Among the winning strategy's candidates the highest confidence is returned,
first-found on ties. This is a best reasonable guess, not an exact parser.
"""

import logging
from typing import List, Optional, Sequence

from fundex.config.scoring_tables import AmountTables, WeightedPattern, get_scoring_tables
from fundex.schemas.receipt import AmountCandidate

logger = logging.getLogger(__name__)


def _parse_amount(s: str) -> Optional[float]:
    try:
        return float(s.replace(",", ""))
    except (ValueError, AttributeError):
        return None


def _split_lines(text: str) -> List[str]:
    return [line.strip() for line in text.split("\n") if line.strip()]


def _iter_amounts(line: str, patterns: Sequence[WeightedPattern]):
    """Yield (amount, pattern) for every pattern match in a line."""
    for pattern in patterns:
        for match in pattern.regex.finditer(line):
            amount = _parse_amount(match.group(1))
            if amount is not None:
                yield amount, pattern


class AmountStrategy:
    """One way of finding total candidates. Returns [] when it has nothing."""

    name = "base"

    def __init__(self, tables: AmountTables):
        self.tables = tables

    def find(self, lines: List[str]) -> List[AmountCandidate]:
        raise NotImplementedError


class KeywordProximityStrategy(AmountStrategy):
    """Amounts on a total-keyword line or the lines right after it."""

    name = "keyword"

    def find(self, lines: List[str]) -> List[AmountCandidate]:
        t = self.tables
        found: List[AmountCandidate] = []

        for i, line in enumerate(lines):
            lower = line.lower()
            for kw in t.total_keywords:
                if kw.keyword not in lower:
                    continue
                logger.debug(f"Found '{kw.keyword}' in line {i}: {line!r}")

                for j in range(i, min(i + t.keyword_window, len(lines))):
                    for amount, pattern in _iter_amounts(lines[j], t.amount_patterns):
                        if t.keyword_min_amount < amount < t.max_amount:
                            found.append(AmountCandidate(
                                amount=amount,
                                confidence=kw.priority + pattern.priority,
                                source=f"keyword-based ({kw.keyword})",
                                line=lines[j],
                                line_number=j,
                            ))
        return found


class BottomSectionStrategy(AmountStrategy):
    """Largest amount in the last part of the receipt."""

    name = "bottom"

    def find(self, lines: List[str]) -> List[AmountCandidate]:
        t = self.tables
        start = int(len(lines) * (1.0 - t.bottom_fraction))
        bottom: List[AmountCandidate] = []

        for offset, line in enumerate(lines[start:]):
            for amount, pattern in _iter_amounts(line, t.amount_patterns):
                if t.bottom_min_amount < amount < t.max_amount:
                    bottom.append(AmountCandidate(
                        amount=amount,
                        confidence=pattern.priority + t.bottom_bonus,
                        source="bottom-section",
                        line=line,
                        line_number=start + offset,
                    ))

        if not bottom:
            return []
        # sorted() is stable, so the first-found wins among equal amounts
        return [sorted(bottom, key=lambda c: c.amount, reverse=True)[0]]


class LargestAmountStrategy(AmountStrategy):
    """Largest distinct amount anywhere in the document."""

    name = "largest"

    def find(self, lines: List[str]) -> List[AmountCandidate]:
        t = self.tables
        everything: List[AmountCandidate] = []

        for i, line in enumerate(lines):
            for amount, _ in _iter_amounts(line, t.amount_patterns):
                if t.fallback_min_amount < amount < t.max_amount:
                    everything.append(AmountCandidate(
                        amount=amount,
                        confidence=t.fallback_confidence,
                        source="largest-amount",
                        line=line,
                        line_number=i,
                    ))

        unique: List[AmountCandidate] = []
        for cand in sorted(everything, key=lambda c: c.amount, reverse=True):
            if not any(abs(u.amount - cand.amount) < t.duplicate_tolerance for u in unique):
                unique.append(cand)

        return unique[:1]


class AmountExtractor:
    """
    Chain of amount strategies.

    Args:
        tables: keyword/pattern tables (defaults to the process-wide tables)
        strategies: strategy classes to try, in order
    """

    DEFAULT_STRATEGIES = (KeywordProximityStrategy, BottomSectionStrategy, LargestAmountStrategy)

    def __init__(self, tables: Optional[AmountTables] = None, strategies: Optional[Sequence[type]] = None):
        self.tables = tables or get_scoring_tables().amount
        self.strategies = [cls(self.tables) for cls in (strategies or self.DEFAULT_STRATEGIES)]

    def extract_candidate(self, text: Optional[str]) -> Optional[AmountCandidate]:
        if not text:
            return None

        lines = _split_lines(text)
        for strategy in self.strategies:
            candidates = strategy.find(lines)
            if not candidates:
                logger.debug(f"Amount strategy '{strategy.name}' found nothing")
                continue

            best = candidates[0]
            for cand in candidates[1:]:
                if cand.confidence > best.confidence:
                    best = cand
            logger.info(
                f"💰 Best amount: ₹{best.amount} (confidence {best.confidence}, {best.source})"
            )
            return best

        logger.info("No amount found in receipt")
        return None

    def extract_amount(self, text: Optional[str]) -> Optional[float]:
        """Most likely total on the receipt, or None."""
        cand = self.extract_candidate(text)
        return cand.amount if cand else None


def extract_amount_from_bill(text: Optional[str]) -> Optional[float]:
    return AmountExtractor().extract_amount(text)
