"""
Tests for the cached trust score service.
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from fundex.models.records import (
    Campaign, CampaignStatus, Donation, Expense, FundRequest, FundRequestStatus,
    Organization, TrustScoreCache, VerificationStatus,
)
from fundex.repository.record_store import InMemoryRecordStore
from fundex.trust import (
    InMemoryTrustScoreCache,
    OrganizationNotFound,
    RecordStoreTrustScoreCache,
    TrustScoreAggregator,
    TrustScoreService,
    TrustScoreUnavailable,
)

NGO = "ngo_1"


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def store():
    store = InMemoryRecordStore()
    store.save_organization(Organization(id=NGO, name="Helping Hands"))
    store.save_fund_request(FundRequest(
        ngo_id=NGO, requested_amount=10000, approved_amount=10000, status=FundRequestStatus.APPROVED,
    ))
    for _ in range(4):
        store.save_expense(Expense(
            ngo_id=NGO, amount_spent=2125, fraud_score=20, verification_status=VerificationStatus.APPROVED,
        ))
    store.save_campaign(Campaign(ngo_id=NGO, target_amount=1000, raised_amount=900, status=CampaignStatus.COMPLETED))
    store.save_donation(Donation(ngo_id=NGO, donor_id="d1", amount=15000))
    return store


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0))


def _service(store, clock, cache=None, aggregator=None):
    return TrustScoreService(
        aggregator=aggregator or TrustScoreAggregator(store, max_workers=4),
        cache=cache or InMemoryTrustScoreCache(),
        ttl=timedelta(hours=24),
        clock=clock,
    )


class TestAggregator:

    def test_fan_out_reads_every_collection(self, store):
        result = TrustScoreAggregator(store).compute_trust_score(NGO)
        assert result.breakdown.fraud.total_expenses == 4
        assert result.breakdown.utilization.utilization_rate == 85.0
        assert result.fund_metrics.total_raised == 15000
        assert result.score == result.breakdown.total

    def test_unknown_org_raises_before_reading(self, store):
        store.list_expenses = MagicMock()
        with pytest.raises(OrganizationNotFound):
            TrustScoreAggregator(store).compute_trust_score("ngo_missing")
        store.list_expenses.assert_not_called()

    def test_read_failure_propagates(self, store):
        store.list_campaigns = MagicMock(side_effect=RuntimeError("db down"))
        with pytest.raises(RuntimeError):
            TrustScoreAggregator(store).compute_trust_score(NGO)


class TestTrustScoreCache:

    def test_first_read_computes_and_writes_back(self, store, clock):
        cache = InMemoryTrustScoreCache()
        service = _service(store, clock, cache=cache)

        result = service.get_trust_score(NGO)
        service.flush()

        assert result.cached is False
        entry = cache.get(NGO)
        assert entry.score == result.score
        assert entry.last_calculated_at == clock.now

    def test_reads_within_ttl_are_identical(self, store, clock):
        service = _service(store, clock)
        first = service.get_trust_score(NGO)
        service.flush()

        # New evidence does not invalidate the cache
        store.save_expense(Expense(ngo_id=NGO, amount_spent=100, fraud_score=100))
        clock.advance(hours=23, minutes=59)
        second = service.get_trust_score(NGO)

        assert second.cached is True
        assert second.score == first.score
        assert second.fund_metrics.model_dump_json() == first.fund_metrics.model_dump_json()
        assert second.breakdown.model_dump() == first.breakdown.model_dump()
        assert second.calculated_at == first.calculated_at

    def test_stale_cache_recomputed(self, store, clock):
        aggregator = MagicMock(wraps=TrustScoreAggregator(store))
        service = _service(store, clock, aggregator=aggregator)
        service.get_trust_score(NGO)
        service.flush()

        clock.advance(hours=24)
        result = service.get_trust_score(NGO)

        assert result.cached is False
        assert aggregator.compute_trust_score.call_count == 2

    def test_force_recalculate(self, store, clock):
        aggregator = MagicMock(wraps=TrustScoreAggregator(store))
        service = _service(store, clock, aggregator=aggregator)
        service.get_trust_score(NGO)
        service.flush()

        service.get_trust_score(NGO, force_recalculate=True)
        assert aggregator.compute_trust_score.call_count == 2


class TestFailureHandling:

    def test_write_back_failure_does_not_reach_caller(self, store, clock):
        cache = MagicMock(spec=InMemoryTrustScoreCache)
        cache.get.return_value = None
        cache.put.side_effect = OSError("disk full")
        service = _service(store, clock, cache=cache)

        result = service.get_trust_score(NGO)
        service.flush()

        assert result.score > 0
        cache.put.assert_called_once()

    def test_recompute_failure_serves_stale_value(self, store, clock):
        cache = InMemoryTrustScoreCache()
        cache.put(NGO, TrustScoreCache(score=77, last_calculated_at=clock.now - timedelta(days=3)))
        aggregator = MagicMock()
        aggregator.compute_trust_score.side_effect = RuntimeError("db down")

        result = _service(store, clock, cache=cache, aggregator=aggregator).get_trust_score(NGO)

        assert result.score == 77
        assert result.stale is True
        assert result.cached is True

    def test_recompute_failure_without_cache_raises(self, store, clock):
        aggregator = MagicMock()
        aggregator.compute_trust_score.side_effect = RuntimeError("db down")

        with pytest.raises(TrustScoreUnavailable):
            _service(store, clock, aggregator=aggregator).get_trust_score(NGO)


class TestRecordStoreCache:

    def test_cache_lives_on_organization(self, store, clock):
        service = _service(store, clock, cache=RecordStoreTrustScoreCache(store))
        result = service.get_trust_score(NGO)
        service.flush()

        org = store.get_organization(NGO)
        assert org.name == "Helping Hands"
        assert org.trust_score.score == result.score
        assert org.trust_score.fund_metrics["total_raised"] == 15000

    def test_unknown_org_is_not_created(self, store, clock):
        service = _service(store, clock, cache=RecordStoreTrustScoreCache(store))

        for org_id in ("typo1", "typo2", "typo3"):
            with pytest.raises(OrganizationNotFound):
                service.get_trust_score(org_id)
        service.flush()

        assert [o.id for o in store.list_organizations()] == [NGO]

    def test_put_for_missing_org_is_dropped(self, store):
        cache = RecordStoreTrustScoreCache(store)
        cache.put("ngo_gone", TrustScoreCache(score=100, last_calculated_at=datetime(2024, 1, 1)))

        assert cache.get("ngo_gone") is None
        assert store.get_organization("ngo_gone") is None
