"""
Pydantic models for NGO trust scores.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class FraudComponent(BaseModel):
    """Inverse of the average expense fraud score (40 points max)."""
    score: int = Field(ge=0, le=40)
    max_score: int = 40
    details: str
    avg_fraud_score: float = 0.0
    total_expenses: int = 0
    high_risk_expenses: int = 0
    high_risk_percentage: float = 0.0


class UtilizationComponent(BaseModel):
    """How closely verified spend tracks approved allocation (30 points max)."""
    score: int = Field(ge=0, le=30)
    max_score: int = 30
    details: str
    utilization_rate: float = 100.0
    total_approved: float = 0.0
    total_spent: float = 0.0


class TransparencyComponent(BaseModel):
    """Expense verification and request processing rates (20 points max)."""
    score: int = Field(ge=0, le=20)
    max_score: int = 20
    details: str
    verification_rate: float = 100.0
    verified_expenses: int = 0
    total_expenses: int = 0
    processing_rate: float = 100.0
    processed_requests: int = 0
    total_requests: int = 0


class DonorConfidenceComponent(BaseModel):
    """Campaign success and in-progress funding health (10 points max)."""
    score: int = Field(ge=0, le=10)
    max_score: int = 10
    details: str
    success_rate: float = 0.0
    completed_campaigns: int = 0
    successful_campaigns: int = 0
    avg_progress: float = 50.0


class TrustScoreBreakdown(BaseModel):
    fraud: FraudComponent
    utilization: UtilizationComponent
    transparency: TransparencyComponent
    donor_confidence: DonorConfidenceComponent

    @property
    def total(self) -> int:
        return (
            self.fraud.score
            + self.utilization.score
            + self.transparency.score
            + self.donor_confidence.score
        )


class FundMetrics(BaseModel):
    """Money flow figures shown to donors. Not fed back into the score."""
    total_raised: float = 0.0
    total_allocated: float = 0.0
    total_spent: float = 0.0
    available_funds: float = 0.0
    utilization_percentage: float = 0.0
    total_donors: int = 0
    total_campaigns: int = 0
    active_campaigns: int = 0
    completed_campaigns: int = 0


class TrustScoreResult(BaseModel):
    """What a trust-score read returns."""
    org_id: str
    score: int = Field(ge=0, le=100)
    breakdown: Optional[TrustScoreBreakdown] = None
    fund_metrics: FundMetrics = Field(default_factory=FundMetrics)
    calculated_at: datetime

    # Served from the organization cache rather than recomputed
    cached: bool = False
    # Recompute failed and the last good value was served instead
    stale: bool = False
