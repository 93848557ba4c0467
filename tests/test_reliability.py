"""
Tests for the expense reliability score and the text reports.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from fundex.config.scoring_tables import FraudTables
from fundex.models.trust import TrustScoreResult
from fundex.pipelines.fraud_scoring import FraudScorer
from fundex.pipelines.reliability import ReliabilityScorer
from fundex.schemas.receipt import FraudInput, GSTValidationResult
from fundex.trust.aggregator import build_trust_score
from fundex.utils.report_formatter import (
    ReportFormatter, generate_fraud_report, generate_reliability_report,
)

LONG_TEXT = "x" * 250
VERIFIED = GSTValidationResult(valid=True, api_verified=True, format_valid=True, gst_number="27AABCU9603R1ZM")


class TestReliabilityScorer:

    def setup_method(self):
        self.scorer = ReliabilityScorer()

    def test_perfect_expense(self):
        result = self.scorer.score(5000, 5000, VERIFIED, LONG_TEXT, 10000)
        assert result.score == 100
        assert result.rating == "EXCELLENT"
        assert result.flags == []

    def test_nothing_readable(self):
        result = self.scorer.score(5000)
        # 5 (amount fallback) + 15 (partial accuracy) + 5 + 2 (compliance) + 10
        assert result.score == 37
        assert result.rating == "POOR"
        assert "OCR failed - manual verification required" in result.flags

    def test_moderate_difference(self):
        result = self.scorer.score(1000, 850, VERIFIED, LONG_TEXT)
        assert result.breakdown["amount_accuracy"]["score"] == 10
        assert any(f.startswith("Moderate amount difference") for f in result.flags)

    def test_overspend_bands(self):
        slight = self.scorer.score(1040, 1040, VERIFIED, LONG_TEXT, 1000)
        large = self.scorer.score(2000, 2000, VERIFIED, LONG_TEXT, 1000)
        assert slight.breakdown["spending_pattern"]["score"] == 7
        assert large.breakdown["spending_pattern"]["score"] == 0

    def test_score_is_sum_of_parts(self):
        result = self.scorer.score(1000, 700, None, "x" * 60, 500)
        assert result.score == sum(p["score"] for p in result.breakdown.values())


class TestReports:

    def test_fraud_report(self):
        analysis = FraudScorer(tables=FraudTables()).score(FraudInput(claimed_amount=5000))
        report = generate_fraud_report(analysis)
        assert "FRAUD ANALYSIS REPORT" in report
        assert "Fraud Score: 55/100" in report
        assert "Risk Level: MEDIUM" in report
        assert "Flags Detected (3)" in report
        assert "ocrIssue" in report

    def test_clean_fraud_report_has_no_flag_section(self):
        analysis = FraudScorer(tables=FraudTables()).score(FraudInput(
            claimed_amount=500, detected_amount=500, gst_validation=VERIFIED, ocr_text=LONG_TEXT,
        ))
        assert "Flags Detected" not in generate_fraud_report(analysis)

    def test_reliability_report(self):
        result = ReliabilityScorer().score(5000, 5000, VERIFIED, LONG_TEXT, 10000)
        report = generate_reliability_report(result)
        assert "Reliability Score: 100/100" in report
        assert "1. Document Quality: 40/40 (100%)" in report
        assert "4. Spending Pattern: 10/10 (100%)" in report
        assert "No concerns detected" in report

    def test_trust_summary(self):
        result = build_trust_score("ngo_1", [], [], [], [])
        summary = ReportFormatter.trust_score_summary(result)
        assert "trust score 100/100" in summary
        assert "Fraud: 40/40" in summary

    def test_trust_summary_marks_stale(self):
        result = TrustScoreResult(org_id="ngo_1", score=70, calculated_at="2024-01-01T00:00:00", stale=True)
        assert "stale" in ReportFormatter.trust_score_summary(result)
