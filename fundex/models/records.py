"""
Pydantic models for the records the trust engine reads and writes.

These mirror the platform's persisted entities. The engine only relies on
claimed amounts, approved-amount ceilings, status enums and timestamps;
everything else is carried along for the surrounding application.
"""

import uuid
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from enum import Enum


def _new_id() -> str:
    return uuid.uuid4().hex


class VerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    FLAGGED = "flagged"


class FundRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CampaignStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class FraudAnalysisRecord(BaseModel):
    """Persisted slice of a FraudAnalysis."""
    flags: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)
    recommendation: Optional[str] = None


class Expense(BaseModel):
    """An expense a volunteer submitted against an approved fund request."""
    id: str = Field(default_factory=_new_id)
    ngo_id: str
    request_id: Optional[str] = Field(None, description="Originating fund request")
    volunteer_id: Optional[str] = None

    amount_spent: float = Field(0.0, ge=0.0, description="Claimed amount")
    description: str = ""
    category: str = "general"
    receipt_image: Optional[str] = None
    proof_image: Optional[str] = None

    # OCR
    ocr_extracted: Optional[str] = None
    detected_amount: Optional[float] = None
    fraud_flags: List[str] = Field(default_factory=list)

    # GST
    gst_number: Optional[str] = None
    gst_valid: Optional[bool] = None
    gst_business_name: Optional[str] = None
    gst_status: Optional[str] = None
    gst_api_verified: bool = False
    gst_validation_error: Optional[str] = None

    # Fraud detection
    fraud_score: int = Field(0, ge=0, le=100)
    fraud_risk_level: str = "MINIMAL"
    fraud_analysis: FraudAnalysisRecord = Field(default_factory=FraudAnalysisRecord)

    # Verification
    verification_status: VerificationStatus = VerificationStatus.PENDING
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    flagged_reason: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class FundRequest(BaseModel):
    """A volunteer's request for funds, approved (or not) by an admin."""
    id: str = Field(default_factory=_new_id)
    ngo_id: str
    volunteer_id: Optional[str] = None
    campaign_id: Optional[str] = None
    purpose: str = ""
    requested_amount: float = Field(0.0, ge=0.0)
    approved_amount: float = Field(0.0, ge=0.0)
    status: FundRequestStatus = FundRequestStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Campaign(BaseModel):
    id: str = Field(default_factory=_new_id)
    ngo_id: str
    title: str = ""
    target_amount: float = Field(0.0, ge=0.0)
    raised_amount: float = Field(0.0, ge=0.0)
    status: CampaignStatus = CampaignStatus.ACTIVE
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Donation(BaseModel):
    id: str = Field(default_factory=_new_id)
    ngo_id: str
    donor_id: Optional[str] = None
    campaign_id: Optional[str] = None
    amount: float = Field(0.0, ge=0.0)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class TrustScoreCache(BaseModel):
    """Last computed trust score, stored on the organization."""
    score: int = Field(ge=0, le=100)
    last_calculated_at: datetime
    breakdown: Dict[str, Any] = Field(default_factory=dict)
    fund_metrics: Dict[str, Any] = Field(default_factory=dict)


class Organization(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = ""
    trust_score: Optional[TrustScoreCache] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
