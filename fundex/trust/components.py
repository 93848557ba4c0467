"""
Trust score components.

Four independent, pure calculations over an organization's records. Each is
clamped to its own maximum; the aggregator only sums them.

    fraud             40  inverse of the mean expense fraud score
    utilization       30  verified spend vs approved allocation
    transparency      20  expense verification + request processing rates
    donor confidence  10  campaign success + active campaign progress
"""

from typing import Sequence

from fundex.models.records import (
    Campaign, CampaignStatus, Donation, Expense, FundRequest,
    FundRequestStatus, VerificationStatus,
)
from fundex.models.trust import (
    DonorConfidenceComponent, FraudComponent, FundMetrics,
    TransparencyComponent, UtilizationComponent,
)
from fundex.utils.rounding import round_half_up

FRAUD_MAX = 40
UTILIZATION_MAX = 30
TRANSPARENCY_MAX = 20
DONOR_CONFIDENCE_MAX = 10

HIGH_RISK_FRAUD_SCORE = 60
CAMPAIGN_SUCCESS_RATIO = 0.8
NEUTRAL_PERCENT = 50.0


def _clamp(value: float, upper: int) -> int:
    return int(max(0, min(upper, value)))


def _approved_spend(expenses: Sequence[Expense]) -> float:
    return sum(e.amount_spent or 0.0 for e in expenses if e.verification_status == VerificationStatus.APPROVED)


def _approved_allocation(requests: Sequence[FundRequest]) -> float:
    return sum(r.approved_amount or 0.0 for r in requests if r.status == FundRequestStatus.APPROVED)


def calculate_fraud_component(expenses: Sequence[Expense]) -> FraudComponent:
    if not expenses:
        return FraudComponent(score=FRAUD_MAX, details="No expenses submitted yet")

    avg = sum(e.fraud_score or 0 for e in expenses) / len(expenses)
    high_risk = sum(1 for e in expenses if (e.fraud_score or 0) >= HIGH_RISK_FRAUD_SCORE)

    return FraudComponent(
        score=_clamp(round_half_up(FRAUD_MAX * (1 - avg / 100)), FRAUD_MAX),
        details=f"Average fraud score: {avg:.1f}/100",
        avg_fraud_score=round(avg, 1),
        total_expenses=len(expenses),
        high_risk_expenses=high_risk,
        high_risk_percentage=round(high_risk / len(expenses) * 100, 1),
    )


def utilization_score(rate: float) -> int:
    """
    Banded curve over utilization %.

    80-95% is the healthy spend-down zone (full marks); overspending loses
    2 points per percent over 100; under 70% scales linearly to 20.
    """
    if 80 <= rate <= 95:
        score = 30
    elif 70 <= rate < 80:
        score = 25
    elif 95 < rate <= 100:
        score = 28
    elif rate > 100:
        score = max(0, 30 - (rate - 100) * 2)
    else:
        score = (rate / 70) * 20
    return _clamp(round_half_up(score), UTILIZATION_MAX)


def calculate_utilization_component(expenses: Sequence[Expense], requests: Sequence[FundRequest]) -> UtilizationComponent:
    approved = [r for r in requests if r.status == FundRequestStatus.APPROVED]
    if not approved:
        return UtilizationComponent(score=UTILIZATION_MAX, details="No fund requests approved yet")

    total_approved = _approved_allocation(approved)
    total_spent = _approved_spend(expenses)
    rate = (total_spent / total_approved * 100) if total_approved > 0 else 0.0

    return UtilizationComponent(
        score=utilization_score(rate),
        details=f"{rate:.1f}% of approved funds utilized",
        utilization_rate=round(rate, 1),
        total_approved=total_approved,
        total_spent=total_spent,
    )


def calculate_transparency_component(expenses: Sequence[Expense], requests: Sequence[FundRequest]) -> TransparencyComponent:
    half = TRANSPARENCY_MAX // 2

    verified = sum(1 for e in expenses if e.verification_status == VerificationStatus.APPROVED)
    if expenses:
        verification_rate = verified / len(expenses) * 100
        expense_points = round_half_up(verification_rate / 100 * half)
    else:
        # Benefit of the doubt
        verification_rate = 100.0
        expense_points = half

    processed = sum(1 for r in requests if r.status != FundRequestStatus.PENDING)
    if requests:
        processing_rate = processed / len(requests) * 100
        request_points = round_half_up(processing_rate / 100 * half)
    else:
        processing_rate = 100.0
        request_points = half

    return TransparencyComponent(
        score=_clamp(expense_points + request_points, TRANSPARENCY_MAX),
        details=f"{verification_rate:.1f}% expenses verified",
        verification_rate=round(verification_rate, 1),
        verified_expenses=verified,
        total_expenses=len(expenses),
        processing_rate=round(processing_rate, 1),
        processed_requests=processed,
        total_requests=len(requests),
    )


def _progress(campaign: Campaign) -> float:
    if campaign.target_amount <= 0:
        return 0.0
    return campaign.raised_amount / campaign.target_amount * 100


def calculate_donor_confidence_component(campaigns: Sequence[Campaign]) -> DonorConfidenceComponent:
    if not campaigns:
        return DonorConfidenceComponent(
            score=DONOR_CONFIDENCE_MAX,
            details="New NGO - building track record",
        )

    completed = [c for c in campaigns if c.status == CampaignStatus.COMPLETED]
    successful = [c for c in completed if c.raised_amount >= c.target_amount * CAMPAIGN_SUCCESS_RATIO]
    success_rate = (len(successful) / len(completed) * 100) if completed else NEUTRAL_PERCENT

    active = [c for c in campaigns if c.status == CampaignStatus.ACTIVE]
    avg_progress = (sum(_progress(c) for c in active) / len(active)) if active else NEUTRAL_PERCENT

    score = round_half_up((success_rate * 0.6 + avg_progress * 0.4) / 10)

    return DonorConfidenceComponent(
        score=_clamp(score, DONOR_CONFIDENCE_MAX),
        details=f"{success_rate:.0f}% campaign success rate",
        success_rate=round(success_rate, 1),
        completed_campaigns=len(completed),
        successful_campaigns=len(successful),
        avg_progress=round(avg_progress, 1),
    )


def calculate_fund_metrics(
    campaigns: Sequence[Campaign],
    donations: Sequence[Donation],
    expenses: Sequence[Expense],
    requests: Sequence[FundRequest],
) -> FundMetrics:
    total_raised = sum(d.amount or 0.0 for d in donations)
    total_allocated = _approved_allocation(requests)
    total_spent = _approved_spend(expenses)

    return FundMetrics(
        total_raised=total_raised,
        total_allocated=total_allocated,
        total_spent=total_spent,
        available_funds=total_raised - total_allocated,
        utilization_percentage=round(total_spent / total_raised * 100, 1) if total_raised > 0 else 0.0,
        total_donors=len({d.donor_id for d in donations if d.donor_id}),
        total_campaigns=len(campaigns),
        active_campaigns=sum(1 for c in campaigns if c.status == CampaignStatus.ACTIVE),
        completed_campaigns=sum(1 for c in campaigns if c.status == CampaignStatus.COMPLETED),
    )
