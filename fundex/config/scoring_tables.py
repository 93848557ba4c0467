"""
Tunable keyword, pattern and penalty tables for receipt analysis.

Every heuristic constant used by the extractors and the fraud scorer lives
here as ranked (pattern, weight) tables rather than in branching code, so the
rules can be tuned and tested independently of the extraction logic.

The defaults below are the production tables. A YAML file with the same
shape (see resources/scoring_tables.yaml) can override any section; it is
validated with pydantic and fails fast on malformed input.
"""

import re
import logging
from pathlib import Path
from typing import List, Optional, Union
from functools import lru_cache

import yaml
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

class WeightedKeyword(BaseModel):
    """A keyword and how strongly it indicates the thing we look for."""
    keyword: str
    priority: int

    @model_validator(mode="after")
    def _lowercase(self):
        self.keyword = self.keyword.lower()
        return self


class WeightedPattern(BaseModel):
    """A regex (group 1 = the value) with a reliability weight."""
    name: str
    pattern: str
    priority: int = 0

    @model_validator(mode="after")
    def _check_compiles(self):
        try:
            re.compile(self.pattern)
        except re.error as e:
            raise ValueError(f"Pattern '{self.name}' does not compile: {e}")
        return self

    @property
    def regex(self) -> "re.Pattern":
        # re keeps its own compile cache
        return re.compile(self.pattern, re.IGNORECASE)


# ---------------------------------------------------------------------------
# Amount extraction
# ---------------------------------------------------------------------------

DEFAULT_TOTAL_KEYWORDS = [
    # Definitive total indicators
    ("grand total", 10),
    ("net total", 10),
    ("total amount", 10),
    ("amount payable", 10),
    ("total payable", 10),
    ("final amount", 10),
    ("balance due", 10),
    # Common total indicators
    ("total:", 8),
    ("total =", 8),
    ("total rs", 8),
    ("total inr", 8),
    ("bill amount", 8),
    ("invoice total", 8),
    # Possible total indicators
    ("net amount", 6),
    ("payable amount", 6),
    ("amount due", 6),
    # Generic
    ("total", 5),
]

DEFAULT_AMOUNT_PATTERNS = [
    ("currency_prefixed", r"(?:rs\.?|inr|₹)\s*(\d{1,3}(?:,\d{3})*(?:\.\d{2})?)", 10),
    ("decimal", r"\b(\d{1,3}(?:,\d{3})*\.\d{2})\b", 8),
    ("thousands_comma", r"\b(\d{1,3}(?:,\d{3})+)\b", 7),
    ("after_colon", r"[:=]\s*(\d{1,3}(?:,\d{3})*(?:\.\d{2})?)", 6),
    ("standalone", r"\b(\d{3,})\b", 3),
]


class AmountTables(BaseModel):
    """Tables and bounds for the total-amount extractor."""
    total_keywords: List[WeightedKeyword] = Field(
        default_factory=lambda: [WeightedKeyword(keyword=k, priority=p) for k, p in DEFAULT_TOTAL_KEYWORDS]
    )
    amount_patterns: List[WeightedPattern] = Field(
        default_factory=lambda: [WeightedPattern(name=n, pattern=p, priority=w) for n, p, w in DEFAULT_AMOUNT_PATTERNS]
    )

    # Keyword line plus the next two
    keyword_window: int = 3
    keyword_min_amount: float = 0.0

    # Receipts put the total near the bottom
    bottom_fraction: float = 0.3
    bottom_bonus: int = 3
    bottom_min_amount: float = 10.0

    fallback_confidence: int = 2
    fallback_min_amount: float = 50.0
    duplicate_tolerance: float = 1.0

    max_amount: float = 10_000_000.0

    @model_validator(mode="after")
    def _check_bounds(self):
        if not 0.0 < self.bottom_fraction <= 1.0:
            raise ValueError("bottom_fraction must be in (0, 1]")
        if self.keyword_window < 1:
            raise ValueError("keyword_window must be >= 1")
        return self


# ---------------------------------------------------------------------------
# GSTIN extraction / validation
# ---------------------------------------------------------------------------

STRICT_GST_PATTERN = r"\b[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]\b"
RELAXED_GST_PATTERN = r"[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][A-Z0-9]Z[A-Z0-9]"
LOOSE_GST_PATTERN = r"[0-9]{2}[A-Z0-9]{13}"


class GSTTables(BaseModel):
    """GSTIN grammar and the keywords that anchor it on a receipt."""
    keywords: List[str] = Field(default_factory=lambda: [
        "gstin", "gst no", "gst number", "gst:", "gstin:",
        "tax id", "tin", "vat", "tax no",
    ])
    # Keyword line plus the next three
    keyword_window: int = 4
    patterns: List[str] = Field(default_factory=lambda: [STRICT_GST_PATTERN, RELAXED_GST_PATTERN])
    loose_pattern: str = LOOSE_GST_PATTERN

    length: int = 15
    sentinel: str = "Z"
    sentinel_offset: int = 13
    state_code_min: int = 1
    state_code_max: int = 37


# ---------------------------------------------------------------------------
# Fraud scoring
# ---------------------------------------------------------------------------

class MismatchBand(BaseModel):
    """Penalty applied when |detected - claimed| / claimed exceeds a percentage."""
    above_percent: float
    code: str
    severity: str
    points: int


class OcrQualityBand(BaseModel):
    """Penalty applied when fewer than `below_length` characters were read."""
    below_length: int
    code: str
    points: int
    message: str


class RiskBand(BaseModel):
    """Lowest score (inclusive) for a risk level, and what to tell the admin."""
    min_score: int
    level: str
    recommendation: str


class FraudTables(BaseModel):
    """Point values of the additive fraud model."""
    no_amount_points: int = 20
    # Ordered from most to least severe; first matching band wins
    mismatch_bands: List[MismatchBand] = Field(default_factory=lambda: [
        MismatchBand(above_percent=50, code="SEVERE_AMOUNT_MISMATCH", severity="high", points=35),
        MismatchBand(above_percent=20, code="MODERATE_AMOUNT_MISMATCH", severity="moderate", points=25),
        MismatchBand(above_percent=5, code="MINOR_AMOUNT_MISMATCH", severity="low", points=15),
    ])
    # Differences up to this many rupees are rounding, not mismatch
    mismatch_abs_tolerance: float = 1.0

    gst_not_found_points: int = 25
    gst_invalid_points: int = 30
    gst_not_verified_points: int = 0
    gst_not_checked_points: int = 20

    ocr_failed_points: int = 15
    ocr_quality_bands: List[OcrQualityBand] = Field(default_factory=lambda: [
        OcrQualityBand(below_length=50, code="LOW_OCR_QUALITY", points=15,
                       message="Very little text extracted from receipt"),
        OcrQualityBand(below_length=100, code="MODERATE_OCR_QUALITY", points=10,
                       message="Limited text extracted from receipt"),
    ])

    overspending_points: int = 20

    # Highest band first
    risk_bands: List[RiskBand] = Field(default_factory=lambda: [
        RiskBand(min_score=80, level="CRITICAL",
                 recommendation="REJECT - Critical fraud risk detected. Immediate investigation required."),
        RiskBand(min_score=60, level="HIGH",
                 recommendation="FLAG - High fraud risk. Requires thorough admin review before approval."),
        RiskBand(min_score=40, level="MEDIUM",
                 recommendation="REVIEW - Moderate concerns. Admin should carefully verify all details."),
        RiskBand(min_score=20, level="LOW",
                 recommendation="CAUTION - Minor concerns noted. Quick admin verification recommended."),
        RiskBand(min_score=0, level="MINIMAL",
                 recommendation="APPROVE - Low fraud risk. Standard verification sufficient."),
    ])

    auto_flag_threshold: int = 50

    @model_validator(mode="after")
    def _check_ordering(self):
        points = [b.points for b in self.mismatch_bands]
        if points != sorted(points, reverse=True):
            raise ValueError("mismatch_bands must be ordered from most to least severe")
        if self.gst_invalid_points <= self.gst_not_found_points:
            raise ValueError("an invalid GSTIN must cost more than a missing one")
        mins = [b.min_score for b in self.risk_bands]
        if mins != sorted(mins, reverse=True) or len(set(mins)) != len(mins):
            raise ValueError("risk_bands must be strictly descending by min_score")
        if mins and mins[-1] != 0:
            raise ValueError("the lowest risk band must start at 0")
        levels = [b.level for b in self.risk_bands]
        if sorted(levels) != sorted(["MINIMAL", "LOW", "MEDIUM", "HIGH", "CRITICAL"]):
            raise ValueError("risk_bands must cover exactly MINIMAL, LOW, MEDIUM, HIGH, CRITICAL")
        self.ocr_quality_bands = sorted(self.ocr_quality_bands, key=lambda b: b.below_length)
        return self


class ScoringTables(BaseModel):
    """All tables used by the receipt pipeline."""
    amount: AmountTables = Field(default_factory=AmountTables)
    gst: GSTTables = Field(default_factory=GSTTables)
    fraud: FraudTables = Field(default_factory=FraudTables)


def load_scoring_tables(path: Optional[Union[str, Path]] = None) -> ScoringTables:
    """
    Load scoring tables, optionally overridden from a YAML file.

    Sections missing from the file keep their defaults.
    """
    if path is None:
        return ScoringTables()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Scoring tables file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping at top-level, got {type(data).__name__}")

    tables = ScoringTables(**data)
    logger.info(f"Loaded scoring tables from {path}")
    return tables


@lru_cache(maxsize=1)
def get_scoring_tables() -> ScoringTables:
    """Default tables for this process (env FUNDEX_SCORING_TABLES may point to a YAML override)."""
    from fundex.config.settings import FundexConfig
    return load_scoring_tables(FundexConfig.from_env().scoring_tables_path)
