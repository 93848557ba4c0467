# fundex/pipelines/fraud_scoring.py
"""
Additive fraud score for a single expense.

Each independent concern (amount, GSTIN, OCR quality, budget) contributes at
most one penalty from its table; the score is the clamped sum. Missing inputs
are scored as "signal unavailable", never raised.

Point values come from FraudTables and are heuristic constants, not fitted.
"""

import logging
from typing import List, Optional, Tuple, Dict, Any

from fundex.config.scoring_tables import FraudTables, get_scoring_tables
from fundex.schemas.receipt import (
    FraudAnalysis, FraudInput, FraudSignal, GSTValidationResult, RiskLevel,
)

logger = logging.getLogger(__name__)

MAX_SCORE = 100


def _fmt(amount: float) -> str:
    return f"₹{amount:,.2f}"


class FraudScorer:
    """
    Turns claimed/detected amounts, GST validation, OCR text and remaining
    budget into a FraudAnalysis.
    """

    def __init__(self, tables: Optional[FraudTables] = None):
        self.tables = tables or get_scoring_tables().fraud

    # ------------------------------------------------------------------
    # Individual checks. Each returns (signal or None, details entry).
    # ------------------------------------------------------------------

    def _check_amount(self, claimed: float, detected: Optional[float]) -> Tuple[Optional[FraudSignal], Dict[str, Any]]:
        t = self.tables
        if detected is None or detected <= 0:
            return FraudSignal(
                code="NO_AMOUNT_DETECTED",
                points=t.no_amount_points,
                description="Amount undetectable: could not read a total from the receipt",
            ), {"ocrIssue": "Could not detect amount from receipt"}

        difference = abs(detected - claimed)
        if difference <= t.mismatch_abs_tolerance:
            return None, {}

        percentage_diff = (difference / claimed * 100) if claimed > 0 else 100.0

        for band in t.mismatch_bands:
            if percentage_diff > band.above_percent:
                evidence = {
                    "severity": band.severity,
                    "claimed": claimed,
                    "detected": detected,
                    "difference": round(difference, 2),
                    "percentageDiff": round(percentage_diff, 2),
                }
                return FraudSignal(
                    code=band.code,
                    points=band.points,
                    description=(
                        f"Amount mismatch: claimed {_fmt(claimed)}, receipt shows {_fmt(detected)} "
                        f"({percentage_diff:.1f}% difference)"
                    ),
                    evidence=evidence,
                ), {"amountMismatch": evidence}

        return None, {}

    def _check_gst(self, gst: Optional[GSTValidationResult]) -> Tuple[Optional[FraudSignal], Dict[str, Any]]:
        t = self.tables
        if gst is None:
            return FraudSignal(
                code="GST_NOT_CHECKED",
                points=t.gst_not_checked_points,
                description="GST validation was not performed",
            ), {"gstIssue": "GST validation was not performed"}

        if not gst.found:
            return FraudSignal(
                code="NO_GST_NUMBER",
                points=t.gst_not_found_points,
                description="No GST number found on receipt",
            ), {"gstIssue": "No GST number found on receipt"}

        if not gst.valid:
            return FraudSignal(
                code="INVALID_GST",
                points=t.gst_invalid_points,
                description=f"Invalid GST number: {gst.gst_number}",
                evidence={"gstNumber": gst.gst_number, "error": gst.error},
            ), {"gstIssue": "GST number is invalid or not registered"}

        if not gst.api_verified:
            return FraudSignal(
                code="GST_NOT_API_VERIFIED",
                points=t.gst_not_verified_points,
                description=f"GST number {gst.gst_number} has a valid format but could not be confirmed in the registry",
                evidence={"gstNumber": gst.gst_number, "error": gst.error},
            ), {"gstIssue": "GST format valid but could not verify online"}

        return None, {}

    def _check_ocr(self, text: Optional[str]) -> Tuple[Optional[FraudSignal], Dict[str, Any]]:
        t = self.tables
        if not text:
            return FraudSignal(
                code="OCR_FAILED",
                points=t.ocr_failed_points,
                description="OCR processing failed completely",
            ), {"ocrQuality": "OCR processing failed completely"}

        length = len(text)
        for band in t.ocr_quality_bands:
            if length < band.below_length:
                return FraudSignal(
                    code=band.code,
                    points=band.points,
                    description=band.message,
                    evidence={"textLength": length},
                ), {"ocrQuality": band.message}
        return None, {}

    def _check_budget(self, claimed: float, remaining: Optional[float]) -> Tuple[Optional[FraudSignal], Dict[str, Any]]:
        if remaining is None or claimed <= remaining:
            return None, {}

        evidence = {
            "claimed": claimed,
            "remaining": remaining,
            "overspend": round(claimed - remaining, 2),
        }
        return FraudSignal(
            code="OVERSPENDING",
            points=self.tables.overspending_points,
            description=(
                f"Overspending beyond approved amount: claimed {_fmt(claimed)} "
                f"with only {_fmt(remaining)} remaining"
            ),
            evidence=evidence,
        ), {"overspending": evidence}

    # ------------------------------------------------------------------
    # Risk mapping
    # ------------------------------------------------------------------

    def risk_level_for(self, score: int) -> RiskLevel:
        for band in self.tables.risk_bands:
            if score >= band.min_score:
                return RiskLevel(band.level)
        return RiskLevel.MINIMAL

    def recommendation_for(self, level: RiskLevel) -> str:
        for band in self.tables.risk_bands:
            if band.level == level.value:
                return band.recommendation
        return ""

    # ------------------------------------------------------------------

    def score(self, data: FraudInput) -> FraudAnalysis:
        """Score one expense. Never raises on missing signals."""
        claimed = float(data.claimed_amount or 0.0)

        signals: List[FraudSignal] = []
        details: Dict[str, Any] = {}

        checks = (
            self._check_amount(claimed, data.detected_amount),
            self._check_gst(data.gst_validation),
            self._check_ocr(data.ocr_text),
            self._check_budget(claimed, data.remaining_budget),
        )
        for signal, detail in checks:
            if signal is not None:
                signals.append(signal)
            details.update(detail)

        total = sum(s.points for s in signals)
        score = max(0, min(MAX_SCORE, total))
        level = self.risk_level_for(score)

        analysis = FraudAnalysis(
            score=score,
            risk_level=level,
            flags=[s.description for s in signals],
            recommendation=self.recommendation_for(level),
            signals=signals,
            details=details,
        )
        logger.info(f"🎯 Fraud score {score}/100 ({level.value}), flags: {analysis.flag_codes}")
        return analysis

    def should_auto_flag(self, analysis: FraudAnalysis) -> bool:
        return analysis.score >= self.tables.auto_flag_threshold


def calculate_fraud_score(data: FraudInput) -> FraudAnalysis:
    return FraudScorer().score(data)
