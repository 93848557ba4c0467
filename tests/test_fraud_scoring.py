"""
Tests for the additive fraud scorer.

Scenarios:
- A: clean receipt, verified GSTIN, within budget -> MINIMAL
- B: half the claimed amount on the receipt, no GSTIN, over budget -> HIGH
- C: OCR returned nothing -> still a valid analysis with "amount undetectable"
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from fundex.config.scoring_tables import FraudTables
from fundex.pipelines.fraud_scoring import FraudScorer, calculate_fraud_score
from fundex.schemas.receipt import FraudAnalysis, FraudInput, GSTValidationResult, RiskLevel

GOOD_TEXT = (
    "SHARMA STORES\nGSTIN: 27AABCU9603R1ZM\nRice 5kg 2500.00\nDal 2kg 2500.00\n"
    "Grand Total: Rs. 5,000.00\nThank you for shopping with us"
)

VERIFIED_GST = GSTValidationResult(
    valid=True, found=True, format_valid=True, api_verified=True,
    gst_number="27AABCU9603R1ZM", business_name="Sharma Stores",
)
UNVERIFIED_GST = GSTValidationResult(
    valid=True, found=True, format_valid=True, api_verified=False,
    gst_number="27AABCU9603R1ZM", error="API verification unavailable - format validated only",
)
INVALID_GST = GSTValidationResult(valid=False, found=True, gst_number="27AABCU9603R1XM")
NO_GST = GSTValidationResult.not_found()


@pytest.fixture
def scorer():
    return FraudScorer(tables=FraudTables())


def _clean_input(**overrides) -> FraudInput:
    data = dict(
        claimed_amount=5000,
        detected_amount=5000,
        gst_validation=VERIFIED_GST,
        ocr_text=GOOD_TEXT,
        remaining_budget=10000,
    )
    data.update(overrides)
    return FraudInput(**data)


class TestScenarios:

    def test_scenario_a_clean_receipt(self, scorer):
        assert len(GOOD_TEXT) >= 100
        analysis = scorer.score(_clean_input())
        assert analysis.score == 0
        assert analysis.risk_level == RiskLevel.MINIMAL
        assert analysis.flags == []
        assert analysis.recommendation.startswith("APPROVE")

    def test_scenario_b_mismatch_no_gst_overspend(self, scorer):
        analysis = scorer.score(_clean_input(
            claimed_amount=10000,
            detected_amount=5000,
            gst_validation=NO_GST,
            remaining_budget=8000,
        ))
        assert analysis.flag_codes == ["MODERATE_AMOUNT_MISMATCH", "NO_GST_NUMBER", "OVERSPENDING"]
        assert analysis.score == 70
        assert analysis.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)
        assert "amountMismatch" in analysis.details
        assert "overspending" in analysis.details

    def test_scenario_c_no_text(self, scorer):
        analysis = scorer.score(FraudInput(claimed_amount=5000))
        assert isinstance(analysis, FraudAnalysis)
        assert analysis.flag_codes == ["NO_AMOUNT_DETECTED", "GST_NOT_CHECKED", "OCR_FAILED"]
        assert any(f.startswith("Amount undetectable") for f in analysis.flags)
        assert analysis.score == 55
        assert analysis.risk_level == RiskLevel.MEDIUM


class TestAmountSignal:

    @pytest.mark.parametrize("detected,code", [
        (1000, "SEVERE_AMOUNT_MISMATCH"),   # 80% off
        (3500, "MODERATE_AMOUNT_MISMATCH"), # 30% off
        (4500, "MINOR_AMOUNT_MISMATCH"),    # 10% off
    ])
    def test_mismatch_bands(self, scorer, detected, code):
        analysis = scorer.score(_clean_input(detected_amount=detected))
        assert analysis.flag_codes == [code]

    def test_within_five_percent_is_fine(self, scorer):
        assert scorer.score(_clean_input(detected_amount=4800)).score == 0

    def test_rounding_difference_ignored(self, scorer):
        analysis = scorer.score(_clean_input(claimed_amount=10, detected_amount=10.9))
        assert "amountMismatch" not in analysis.details

    def test_zero_detected_counts_as_missing(self, scorer):
        assert scorer.score(_clean_input(detected_amount=0)).flag_codes == ["NO_AMOUNT_DETECTED"]

    def test_zero_claim_against_real_receipt(self, scorer):
        analysis = scorer.score(_clean_input(claimed_amount=0, detected_amount=500))
        assert analysis.flag_codes == ["SEVERE_AMOUNT_MISMATCH"]


class TestGSTSignal:

    def test_invalid_costs_more_than_missing(self, scorer):
        invalid = scorer.score(_clean_input(gst_validation=INVALID_GST))
        missing = scorer.score(_clean_input(gst_validation=NO_GST))
        assert invalid.flag_codes == ["INVALID_GST"]
        assert missing.flag_codes == ["NO_GST_NUMBER"]
        assert invalid.score > missing.score

    def test_unverified_is_flagged_but_not_penalized(self, scorer):
        analysis = scorer.score(_clean_input(gst_validation=UNVERIFIED_GST))
        assert analysis.flag_codes == ["GST_NOT_API_VERIFIED"]
        assert analysis.score == 0


class TestOcrSignal:

    def test_short_text(self, scorer):
        assert scorer.score(_clean_input(ocr_text="x" * 30)).flag_codes == ["LOW_OCR_QUALITY"]

    def test_medium_text(self, scorer):
        assert scorer.score(_clean_input(ocr_text="x" * 80)).flag_codes == ["MODERATE_OCR_QUALITY"]


class TestScoreProperties:

    def test_risk_bands_exhaustive(self, scorer):
        expected = {
            0: RiskLevel.MINIMAL, 19: RiskLevel.MINIMAL,
            20: RiskLevel.LOW, 39: RiskLevel.LOW,
            40: RiskLevel.MEDIUM, 59: RiskLevel.MEDIUM,
            60: RiskLevel.HIGH, 79: RiskLevel.HIGH,
            80: RiskLevel.CRITICAL, 100: RiskLevel.CRITICAL,
        }
        for score in range(101):
            level = scorer.risk_level_for(score)
            assert isinstance(level, RiskLevel)
            if score in expected:
                assert level == expected[score]

    def test_monotonic_under_added_evidence(self, scorer):
        steps = [
            {},
            {"gst_validation": NO_GST},
            {"gst_validation": NO_GST, "detected_amount": 4500},
            {"gst_validation": NO_GST, "detected_amount": 4500, "remaining_budget": 100},
            {"gst_validation": NO_GST, "detected_amount": 4500, "remaining_budget": 100, "ocr_text": "x" * 60},
        ]
        scores = [scorer.score(_clean_input(**s)).score for s in steps]
        assert scores == sorted(scores)
        assert all(0 <= s <= 100 for s in scores)

    def test_clamped_to_100(self):
        tables = FraudTables(no_amount_points=60, gst_not_checked_points=60, ocr_failed_points=60)
        analysis = FraudScorer(tables=tables).score(FraudInput(claimed_amount=100, remaining_budget=0))
        assert analysis.score == 100
        assert analysis.risk_level == RiskLevel.CRITICAL

    def test_deterministic(self, scorer):
        data = _clean_input(detected_amount=3000, gst_validation=NO_GST)
        assert scorer.score(data).to_dict() == scorer.score(data).to_dict()

    def test_auto_flag_threshold(self, scorer):
        assert scorer.should_auto_flag(scorer.score(FraudInput(claimed_amount=5000)))
        assert not scorer.should_auto_flag(scorer.score(_clean_input()))

    def test_round_trip_dict(self, scorer):
        analysis = scorer.score(_clean_input(gst_validation=NO_GST))
        restored = FraudAnalysis.from_dict(analysis.to_dict())
        assert restored.score == analysis.score
        assert restored.flag_codes == analysis.flag_codes

    def test_module_helper(self):
        assert calculate_fraud_score(_clean_input()).score == 0
