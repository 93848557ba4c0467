"""
NGO trust score aggregation.

TrustScoreAggregator reads an organization's four record collections in
parallel and sums the component scores. TrustScoreService sits in front of
it with a time-boxed cache: fresh entries are served verbatim, stale or
missing ones are recomputed and written back without blocking the read.
"""

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence, Set

from fundex.config.settings import FundexConfig
from fundex.models.records import (
    Campaign, Donation, Expense, FundRequest, TrustScoreCache,
)
from fundex.models.trust import FundMetrics, TrustScoreBreakdown, TrustScoreResult
from fundex.repository.record_store import RecordStore
from fundex.trust.cache import RecordStoreTrustScoreCache, TrustScoreCacheStore
from fundex.trust.components import (
    calculate_donor_confidence_component,
    calculate_fraud_component,
    calculate_fund_metrics,
    calculate_transparency_component,
    calculate_utilization_component,
)

logger = logging.getLogger(__name__)


class TrustScoreUnavailable(RuntimeError):
    """No trust score could be computed and none was cached."""


class OrganizationNotFound(LookupError):
    """The organization id does not exist in the record store."""


def build_trust_score(
    org_id: str,
    expenses: Sequence[Expense],
    requests: Sequence[FundRequest],
    campaigns: Sequence[Campaign],
    donations: Sequence[Donation],
    calculated_at: Optional[datetime] = None,
) -> TrustScoreResult:
    """Pure scoring step over already-loaded records."""
    breakdown = TrustScoreBreakdown(
        fraud=calculate_fraud_component(expenses),
        utilization=calculate_utilization_component(expenses, requests),
        transparency=calculate_transparency_component(expenses, requests),
        donor_confidence=calculate_donor_confidence_component(campaigns),
    )

    return TrustScoreResult(
        org_id=org_id,
        score=max(0, min(100, breakdown.total)),
        breakdown=breakdown,
        fund_metrics=calculate_fund_metrics(campaigns, donations, expenses, requests),
        calculated_at=calculated_at or datetime.utcnow(),
    )


class TrustScoreAggregator:
    """Computes a fresh trust score from the record store."""

    def __init__(self, store: RecordStore, max_workers: int = 4):
        self.store = store
        self.max_workers = max(1, max_workers)

    def compute_trust_score(self, org_id: str, calculated_at: Optional[datetime] = None) -> TrustScoreResult:
        """
        Read all four collections concurrently, then score.

        Any read failure propagates; the service decides what to serve.
        """
        if self.store.get_organization(org_id) is None:
            raise OrganizationNotFound(org_id)

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="trust-read") as pool:
            f_expenses = pool.submit(self.store.list_expenses, org_id)
            f_requests = pool.submit(self.store.list_fund_requests, org_id)
            f_campaigns = pool.submit(self.store.list_campaigns, org_id)
            f_donations = pool.submit(self.store.list_donations, org_id)

            expenses = f_expenses.result()
            requests = f_requests.result()
            campaigns = f_campaigns.result()
            donations = f_donations.result()

        logger.info(
            f"Loaded records for {org_id}: {len(expenses)} expenses, {len(requests)} requests, "
            f"{len(campaigns)} campaigns, {len(donations)} donations"
        )
        return build_trust_score(org_id, expenses, requests, campaigns, donations, calculated_at)


def _from_cache(org_id: str, entry: TrustScoreCache, stale: bool = False) -> TrustScoreResult:
    return TrustScoreResult(
        org_id=org_id,
        score=entry.score,
        breakdown=TrustScoreBreakdown.model_validate(entry.breakdown) if entry.breakdown else None,
        fund_metrics=FundMetrics.model_validate(entry.fund_metrics or {}),
        calculated_at=entry.last_calculated_at,
        cached=True,
        stale=stale,
    )


def _to_cache(result: TrustScoreResult) -> TrustScoreCache:
    return TrustScoreCache(
        score=result.score,
        last_calculated_at=result.calculated_at,
        breakdown=result.breakdown.model_dump(mode="json") if result.breakdown else {},
        fund_metrics=result.fund_metrics.model_dump(mode="json"),
    )


class TrustScoreService:
    """
    Cached trust score reads.

    - cache younger than the TTL: returned as-is (cached=True)
    - otherwise: recomputed synchronously, then written back on an executor;
      a failed write is logged and never reaches the caller
    - recompute failure: last cached value with stale=True, or
      TrustScoreUnavailable when nothing was ever cached
    - unknown organization: OrganizationNotFound, nothing is cached
    """

    def __init__(
        self,
        aggregator: TrustScoreAggregator,
        cache: TrustScoreCacheStore,
        ttl: timedelta = timedelta(hours=24),
        executor: Optional[Executor] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.aggregator = aggregator
        self.cache = cache
        self.ttl = ttl
        self.clock = clock
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="trust-cache")
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()

    @classmethod
    def from_config(cls, store: RecordStore, config: Optional[FundexConfig] = None) -> "TrustScoreService":
        config = config or FundexConfig.from_env()
        return cls(
            aggregator=TrustScoreAggregator(store, max_workers=config.trust_score_workers),
            cache=RecordStoreTrustScoreCache(store),
            ttl=timedelta(hours=config.trust_cache_ttl_hours),
        )

    def is_fresh(self, entry: TrustScoreCache) -> bool:
        return self.clock() - entry.last_calculated_at < self.ttl

    def get_trust_score(self, org_id: str, force_recalculate: bool = False) -> TrustScoreResult:
        entry = self.cache.get(org_id)

        if entry is not None and not force_recalculate and self.is_fresh(entry):
            logger.info(f"Serving cached trust score for {org_id} ({entry.score})")
            return _from_cache(org_id, entry)

        try:
            result = self.aggregator.compute_trust_score(org_id, calculated_at=self.clock())
        except OrganizationNotFound:
            logger.warning(f"Trust score requested for unknown organization {org_id}")
            raise
        except Exception as e:
            if entry is not None:
                logger.warning(f"⚠️ Trust score recompute failed for {org_id}, serving stale cache: {e}")
                return _from_cache(org_id, entry, stale=True)
            logger.error(f"❌ Trust score unavailable for {org_id}: {e}")
            raise TrustScoreUnavailable(f"Trust score unavailable for {org_id}") from e

        logger.info(f"✅ Trust score for {org_id}: {result.score}/100")
        self._schedule_write_back(org_id, result)
        return result

    def _schedule_write_back(self, org_id: str, result: TrustScoreResult) -> Future:
        future = self._executor.submit(self.cache.put, org_id, _to_cache(result))
        with self._pending_lock:
            self._pending.add(future)

        def _done(f: Future) -> None:
            with self._pending_lock:
                self._pending.discard(f)
            exc = f.exception()
            if exc is not None:
                logger.warning(f"Trust score cache write failed for {org_id} (dropped): {exc}")

        future.add_done_callback(_done)
        return future

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding cache writes. Used by scripts and tests."""
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
