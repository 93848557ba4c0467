# fundex/pipelines/reliability.py
"""
Expense reliability score - the positive counterpart of the fraud score.

0-100, higher is more reliable:
1. Document quality (40) - OCR text volume, amount detected
2. Amount accuracy  (30) - claimed vs detected amount
3. Compliance       (20) - GSTIN presence/verification, receipt completeness
4. Spending pattern (10) - within remaining budget
"""

from typing import Optional, List, Tuple

from fundex.schemas.receipt import GSTValidationResult, ReliabilityResult
from fundex.utils.rounding import round_half_up


# (min_score, rating, color, recommendation), highest first
RATINGS: List[Tuple[int, str, str, str]] = [
    (90, "EXCELLENT", "green", "Highly reliable expense - approve with confidence"),
    (75, "GOOD", "blue", "Reliable expense - standard approval process"),
    (60, "FAIR", "yellow", "Acceptable expense - quick verification recommended"),
    (40, "NEEDS REVIEW", "orange", "Requires careful review before approval"),
    (0, "POOR", "red", "Significant concerns - thorough investigation required"),
]

# (max percentage difference, points), tightest first
AMOUNT_ACCURACY_BANDS: List[Tuple[float, int]] = [
    (2, 30),
    (5, 25),
    (10, 20),
    (20, 10),
]


def _pct(score: int, max_score: int) -> int:
    return round_half_up(score / max_score * 100)


class ReliabilityScorer:

    def _document_quality(self, ocr_text: Optional[str], detected_amount: Optional[float], flags: List[str]) -> dict:
        score = 0
        if ocr_text:
            length = len(ocr_text)
            if length >= 200:
                score += 20
            elif length >= 100:
                score += 15
            elif length >= 50:
                score += 10
            else:
                score += 5
                flags.append("Low OCR quality - receipt may be unclear")
        else:
            flags.append("OCR failed - manual verification required")

        if detected_amount:
            score += 20
        else:
            score += 5
            flags.append("Amount not auto-detected from receipt")

        return {"score": score, "max_score": 40, "percentage": _pct(score, 40)}

    def _amount_accuracy(self, claimed: float, detected: Optional[float], flags: List[str]) -> dict:
        if not detected or not claimed:
            # Partial credit, a human has to check the receipt anyway
            return {
                "score": 15, "max_score": 30, "percentage": 50,
                "note": "Amount not auto-detected - manual verification needed",
            }

        diff_pct = abs(detected - claimed) / claimed * 100
        score = 0
        for limit, points in AMOUNT_ACCURACY_BANDS:
            if diff_pct <= limit:
                score = points
                break

        if score == 0:
            flags.append(f"Large amount difference: {diff_pct:.1f}%")
        elif score == 10:
            flags.append(f"Moderate amount difference: {diff_pct:.1f}%")
        elif score == 20:
            flags.append(f"Minor amount difference: {diff_pct:.1f}%")

        return {
            "score": score, "max_score": 30, "percentage": _pct(score, 30),
            "claimed": claimed, "detected": detected,
            "difference": f"{diff_pct:.2f}%",
        }

    def _compliance(self, gst: Optional[GSTValidationResult], ocr_text: Optional[str], flags: List[str]) -> dict:
        score = 0
        if gst is not None and gst.found:
            score += 15 if gst.api_verified else 12
        else:
            score += 5
            if gst is not None:
                flags.append("No GST number found on receipt")

        score += 5 if ocr_text and len(ocr_text) > 100 else 2

        return {
            "score": score, "max_score": 20, "percentage": _pct(score, 20),
            "gst_found": bool(gst and gst.found),
            "gst_verified": bool(gst and gst.api_verified),
        }

    def _spending_pattern(self, claimed: float, remaining: Optional[float], flags: List[str]) -> dict:
        score = 10
        if remaining is not None and claimed and claimed > remaining:
            over_pct = (claimed - remaining) / remaining * 100 if remaining > 0 else float("inf")
            if over_pct <= 5:
                score = 7
                flags.append("Slight budget overspend")
            elif over_pct <= 10:
                score = 5
                flags.append("Moderate budget overspend")
            else:
                score = 0
                flags.append("Significant budget overspend")
        return {"score": score, "max_score": 10, "percentage": _pct(score, 10)}

    def score(
        self,
        claimed_amount: float,
        detected_amount: Optional[float] = None,
        gst_validation: Optional[GSTValidationResult] = None,
        ocr_text: Optional[str] = None,
        remaining_budget: Optional[float] = None,
    ) -> ReliabilityResult:
        flags: List[str] = []
        breakdown = {
            "document_quality": self._document_quality(ocr_text, detected_amount, flags),
            "amount_accuracy": self._amount_accuracy(claimed_amount, detected_amount, flags),
            "compliance": self._compliance(gst_validation, ocr_text, flags),
            "spending_pattern": self._spending_pattern(claimed_amount, remaining_budget, flags),
        }

        total = max(0, min(100, sum(part["score"] for part in breakdown.values())))

        for min_score, rating, color, recommendation in RATINGS:
            if total >= min_score:
                break

        return ReliabilityResult(
            score=total,
            rating=rating,
            color=color,
            recommendation=recommendation,
            breakdown=breakdown,
            flags=flags,
        )
