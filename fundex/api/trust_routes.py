"""
API routes for NGO trust scores.

Endpoints:
- GET /trust-score/{org_id} - Cached trust score (recomputed after 24h); 404 for unknown organizations
"""

from fastapi import APIRouter, Depends, HTTPException

from fundex.api.deps import get_trust_service
from fundex.trust.aggregator import OrganizationNotFound, TrustScoreService, TrustScoreUnavailable

router = APIRouter(prefix="/trust-score", tags=["trust"])


@router.get("/{org_id}")
def get_trust_score(
    org_id: str,
    recalculate: bool = False,
    service: TrustScoreService = Depends(get_trust_service),
):
    try:
        result = service.get_trust_score(org_id, force_recalculate=recalculate)
    except OrganizationNotFound:
        raise HTTPException(status_code=404, detail=f"Organization not found: {org_id}")
    except TrustScoreUnavailable:
        raise HTTPException(status_code=503, detail="Trust score analysis unavailable")
    return result.model_dump(mode="json")
