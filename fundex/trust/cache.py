"""
Trust score cache stores.

The service never keeps scores in module state; it is handed one of these.
An entry is the organization's last TrustScoreCache (score, breakdown, fund
metrics and the time it was computed).
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from fundex.models.records import TrustScoreCache
from fundex.repository.record_store import RecordStore

logger = logging.getLogger(__name__)


class TrustScoreCacheStore(ABC):
    """Keyed by organization id."""

    @abstractmethod
    def get(self, org_id: str) -> Optional[TrustScoreCache]:
        raise NotImplementedError

    @abstractmethod
    def put(self, org_id: str, entry: TrustScoreCache) -> None:
        raise NotImplementedError


class InMemoryTrustScoreCache(TrustScoreCacheStore):
    """Dict-backed store, mainly for tests and one-off scripts."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, TrustScoreCache] = {}

    def get(self, org_id: str) -> Optional[TrustScoreCache]:
        with self._lock:
            entry = self._entries.get(org_id)
            return entry.model_copy(deep=True) if entry else None

    def put(self, org_id: str, entry: TrustScoreCache) -> None:
        with self._lock:
            self._entries[org_id] = entry.model_copy(deep=True)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RecordStoreTrustScoreCache(TrustScoreCacheStore):
    """Reads and writes the cache embedded in the Organization record."""

    def __init__(self, store: RecordStore):
        self.store = store

    def get(self, org_id: str) -> Optional[TrustScoreCache]:
        org = self.store.get_organization(org_id)
        return org.trust_score if org else None

    def put(self, org_id: str, entry: TrustScoreCache) -> None:
        if not self.store.update_trust_cache(org_id, entry):
            logger.warning(f"⚠️ Organization {org_id} not found, trust score not cached")
