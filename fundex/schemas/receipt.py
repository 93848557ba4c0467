# fundex/schemas/receipt.py

from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional
from enum import Enum


class RiskLevel(str, Enum):
    MINIMAL = "MINIMAL"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class InvalidExpenseInput(ValueError):
    """Raised when a caller submits an expense the engine refuses to guess about."""


@dataclass
class AmountCandidate:
    """
    One guess at the receipt total.

    Only `amount` is persisted (as the expense's detected amount); the rest
    explains where the guess came from.
    """
    amount: float
    confidence: int
    source: str                        # e.g. "keyword-based (grand total)", "bottom-section"
    line: str = ""
    line_number: Optional[int] = None


@dataclass
class GSTValidationResult:
    """
    Outcome of checking a GSTIN.

    `valid` is only ever False for a structurally malformed number (or when
    none was found). Registry silence never makes a well-formed GSTIN invalid.
    """
    valid: bool
    found: bool = True
    format_valid: bool = False
    api_verified: bool = False
    gst_number: Optional[str] = None
    business_name: Optional[str] = None
    status: Optional[str] = None
    registration_date: Optional[str] = None
    address: Optional[str] = None
    state_code: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def not_found(cls, error: str = "No GST number found in the text") -> "GSTValidationResult":
        return cls(valid=False, found=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BillAnalysis:
    """What OCR + extraction produced for one receipt image."""
    success: bool
    text: Optional[str] = None
    amount: Optional[float] = None
    gst_number: Optional[str] = None
    text_length: int = 0
    amount_candidate: Optional[AmountCandidate] = None
    error: Optional[str] = None


@dataclass
class FraudInput:
    """
    Everything the fraud scorer looks at for one expense.

    None means "signal unavailable", never "error".
    """
    claimed_amount: float
    detected_amount: Optional[float] = None
    gst_validation: Optional[GSTValidationResult] = None
    ocr_text: Optional[str] = None
    remaining_budget: Optional[float] = None


@dataclass
class FraudSignal:
    """A single triggered penalty."""
    code: str                           # stable id, e.g. SEVERE_AMOUNT_MISMATCH
    points: int
    description: str                    # human-readable reason
    evidence: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FraudAnalysis:
    """
    Fraud verdict for a single expense.

    - score: 0-100, higher is more suspicious
    - flags: ordered human-readable reasons (one per triggered signal)
    - signals: the same reasons with codes, points and evidence
    - details: evidence grouped by concern (amountMismatch, gstIssue, ...)
    """
    score: int
    risk_level: RiskLevel
    flags: List[str]
    recommendation: str
    signals: List[FraudSignal] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def flag_codes(self) -> List[str]:
        return [s.code for s in self.signals]

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable dict for persistence."""
        return {
            "score": self.score,
            "risk_level": self.risk_level.value,
            "flags": list(self.flags),
            "recommendation": self.recommendation,
            "signals": [s.to_dict() for s in self.signals],
            "details": dict(self.details),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FraudAnalysis":
        return cls(
            score=int(d.get("score", 0)),
            risk_level=RiskLevel(d.get("risk_level", RiskLevel.MINIMAL.value)),
            flags=list(d.get("flags") or []),
            recommendation=d.get("recommendation", ""),
            signals=[FraudSignal(**s) for s in (d.get("signals") or [])],
            details=dict(d.get("details") or {}),
        )


@dataclass
class ReliabilityResult:
    """Positive 0-100 reliability rating of an expense submission."""
    score: int
    rating: str
    color: str
    recommendation: str
    breakdown: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    flags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ReceiptAnalysis:
    """Full result of running one receipt through the pipeline."""
    bill: BillAnalysis
    gst_validation: Optional[GSTValidationResult]
    fraud: FraudAnalysis
    reliability: Optional[ReliabilityResult] = None
    remaining_budget: Optional[float] = None
    auto_flagged: bool = False
