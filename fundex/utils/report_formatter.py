# fundex/utils/report_formatter.py
"""
Plain-text reports for admins reviewing an expense.

Used in logs and by the batch scripts; the API returns structured JSON.
"""

import json
from typing import List

from fundex.models.trust import TrustScoreResult
from fundex.schemas.receipt import FraudAnalysis, ReliabilityResult

RULE = "━" * 34

_RELIABILITY_SECTIONS = [
    ("document_quality", "Document Quality"),
    ("amount_accuracy", "Amount Accuracy"),
    ("compliance", "Compliance"),
    ("spending_pattern", "Spending Pattern"),
]


class ReportFormatter:
    """Format scoring results for human review."""

    @staticmethod
    def fraud_report(analysis: FraudAnalysis) -> str:
        lines: List[str] = [
            "🔍 FRAUD ANALYSIS REPORT",
            RULE,
            f"📊 Fraud Score: {analysis.score}/100",
            f"⚠️  Risk Level: {analysis.risk_level.value}",
            f"💡 Recommendation: {analysis.recommendation}",
            "",
        ]

        if analysis.flags:
            lines.append(f"🚩 Flags Detected ({len(analysis.flags)}):")
            for i, flag in enumerate(analysis.flags, 1):
                lines.append(f"   {i}. {flag}")
            lines.append("")

        if analysis.details:
            lines.append("📋 Details:")
            for key, value in analysis.details.items():
                if isinstance(value, (dict, list)):
                    value = json.dumps(value, indent=2, default=str)
                lines.append(f"   • {key}: {value}")

        lines.append(RULE)
        return "\n".join(lines) + "\n"

    @staticmethod
    def reliability_report(result: ReliabilityResult) -> str:
        lines: List[str] = [
            "📊 EXPENSE RELIABILITY REPORT",
            RULE,
            f"🎯 Reliability Score: {result.score}/100",
            f"⭐ Rating: {result.rating}",
            f"💡 Recommendation: {result.recommendation}",
            "",
            "📋 Score Breakdown:",
        ]

        for i, (key, label) in enumerate(_RELIABILITY_SECTIONS, 1):
            part = result.breakdown.get(key)
            if not part:
                continue
            lines.append(f"   {i}. {label}: {part['score']}/{part['max_score']} ({part['percentage']}%)")
        lines.append("")

        if result.flags:
            lines.append(f"🚩 Notes ({len(result.flags)}):")
            for i, flag in enumerate(result.flags, 1):
                lines.append(f"   {i}. {flag}")
        else:
            lines.append("✅ No concerns detected")

        lines.append(RULE)
        return "\n".join(lines) + "\n"

    @staticmethod
    def trust_score_summary(result: TrustScoreResult) -> str:
        lines = [f"🏛️  {result.org_id}: trust score {result.score}/100"]
        if result.breakdown is not None:
            b = result.breakdown
            for label, part in (
                ("Fraud", b.fraud),
                ("Utilization", b.utilization),
                ("Transparency", b.transparency),
                ("Donor confidence", b.donor_confidence),
            ):
                lines.append(f"   {label}: {part.score}/{part.max_score} - {part.details}")
        if result.stale:
            lines.append("   (stale: served from cache after a failed recompute)")
        return "\n".join(lines)


def generate_fraud_report(analysis: FraudAnalysis) -> str:
    return ReportFormatter.fraud_report(analysis)


def generate_reliability_report(result: ReliabilityResult) -> str:
    return ReportFormatter.reliability_report(result)
