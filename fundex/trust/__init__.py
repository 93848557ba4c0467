"""
NGO Trust Score Module

Aggregates an organization's expense, fund-request, campaign and donation
records into a 0-100 trust score:
- Fraud (40): inverse of average expense fraud score
- Utilization (30): verified spend vs approved funds
- Transparency (20): verification and request processing rates
- Donor confidence (10): campaign success and progress
"""

from .aggregator import (
    OrganizationNotFound,
    TrustScoreAggregator,
    TrustScoreService,
    TrustScoreUnavailable,
    build_trust_score,
)
from .cache import InMemoryTrustScoreCache, RecordStoreTrustScoreCache, TrustScoreCacheStore

__all__ = [
    "OrganizationNotFound",
    "TrustScoreAggregator",
    "TrustScoreService",
    "TrustScoreUnavailable",
    "build_trust_score",
    "TrustScoreCacheStore",
    "InMemoryTrustScoreCache",
    "RecordStoreTrustScoreCache",
]
