# fundex/repository/record_store.py
"""
Repository layer for the records the trust engine reads and writes.

Goal:
- Give the rest of the code a simple, stable interface:
    - list_expenses / list_fund_requests / list_campaigns / list_donations
    - save_expense (fraud fields), update_trust_cache (organization cache)
- Hide whether we use:
    - an in-memory store (tests, scripts) OR
    - SQLite on disk (local dev / small deployments)
"""

import os
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from fundex.models.records import (
    Campaign, Donation, Expense, FundRequest, Organization, TrustScoreCache,
)

M = TypeVar("M", bound=BaseModel)


# ---------------------------------------------------------------------------
# 1. Abstract Repository Interface
# ---------------------------------------------------------------------------

class RecordStore(ABC):
    """
    Abstract base class for organization records.

    Implementations:
    - InMemoryRecordStore: dicts guarded by a lock
    - SqliteRecordStore:   one table per collection, JSON payloads
    """

    # Organizations -------------------------------------------------------

    @abstractmethod
    def get_organization(self, org_id: str) -> Optional[Organization]:
        raise NotImplementedError

    @abstractmethod
    def save_organization(self, org: Organization) -> str:
        raise NotImplementedError

    @abstractmethod
    def list_organizations(self) -> List[Organization]:
        raise NotImplementedError

    @abstractmethod
    def update_trust_cache(self, org_id: str, cache: TrustScoreCache) -> bool:
        """
        Replace only the cached trust score of an existing organization.

        Never creates an organization; returns False when org_id is unknown.
        """
        raise NotImplementedError

    # Expenses ------------------------------------------------------------

    @abstractmethod
    def get_expense(self, expense_id: str) -> Optional[Expense]:
        raise NotImplementedError

    @abstractmethod
    def save_expense(self, expense: Expense) -> str:
        raise NotImplementedError

    @abstractmethod
    def list_expenses(self, ngo_id: str) -> List[Expense]:
        raise NotImplementedError

    @abstractmethod
    def list_all_expenses(self) -> List[Expense]:
        raise NotImplementedError

    def list_expenses_for_request(self, request_id: str, ngo_id: str) -> List[Expense]:
        return [e for e in self.list_expenses(ngo_id) if e.request_id == request_id]

    # Fund requests -------------------------------------------------------

    @abstractmethod
    def get_fund_request(self, request_id: str) -> Optional[FundRequest]:
        raise NotImplementedError

    @abstractmethod
    def save_fund_request(self, request: FundRequest) -> str:
        raise NotImplementedError

    @abstractmethod
    def list_fund_requests(self, ngo_id: str) -> List[FundRequest]:
        raise NotImplementedError

    # Campaigns / donations -----------------------------------------------

    @abstractmethod
    def save_campaign(self, campaign: Campaign) -> str:
        raise NotImplementedError

    @abstractmethod
    def list_campaigns(self, ngo_id: str) -> List[Campaign]:
        raise NotImplementedError

    @abstractmethod
    def save_donation(self, donation: Donation) -> str:
        raise NotImplementedError

    @abstractmethod
    def list_donations(self, ngo_id: str) -> List[Donation]:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# 2. In-memory implementation
# ---------------------------------------------------------------------------

class InMemoryRecordStore(RecordStore):
    """Keeps everything in dicts. Safe to share between threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._orgs: Dict[str, Organization] = {}
        self._expenses: Dict[str, Expense] = {}
        self._requests: Dict[str, FundRequest] = {}
        self._campaigns: Dict[str, Campaign] = {}
        self._donations: Dict[str, Donation] = {}

    def _put(self, table: Dict[str, M], record: M) -> str:
        with self._lock:
            table[record.id] = record.model_copy(deep=True)
        return record.id

    def _get(self, table: Dict[str, M], record_id: str) -> Optional[M]:
        with self._lock:
            record = table.get(record_id)
            return record.model_copy(deep=True) if record else None

    def _by_ngo(self, table: Dict[str, M], ngo_id: str) -> List[M]:
        with self._lock:
            return [r.model_copy(deep=True) for r in table.values() if r.ngo_id == ngo_id]

    def get_organization(self, org_id: str) -> Optional[Organization]:
        return self._get(self._orgs, org_id)

    def save_organization(self, org: Organization) -> str:
        return self._put(self._orgs, org)

    def list_organizations(self) -> List[Organization]:
        with self._lock:
            return [o.model_copy(deep=True) for o in self._orgs.values()]

    def update_trust_cache(self, org_id: str, cache: TrustScoreCache) -> bool:
        with self._lock:
            org = self._orgs.get(org_id)
            if org is None:
                return False
            self._orgs[org_id] = org.model_copy(update={"trust_score": cache.model_copy(deep=True)})
        return True

    def get_expense(self, expense_id: str) -> Optional[Expense]:
        return self._get(self._expenses, expense_id)

    def save_expense(self, expense: Expense) -> str:
        return self._put(self._expenses, expense)

    def list_expenses(self, ngo_id: str) -> List[Expense]:
        return self._by_ngo(self._expenses, ngo_id)

    def list_all_expenses(self) -> List[Expense]:
        with self._lock:
            return [e.model_copy(deep=True) for e in self._expenses.values()]

    def get_fund_request(self, request_id: str) -> Optional[FundRequest]:
        return self._get(self._requests, request_id)

    def save_fund_request(self, request: FundRequest) -> str:
        return self._put(self._requests, request)

    def list_fund_requests(self, ngo_id: str) -> List[FundRequest]:
        return self._by_ngo(self._requests, ngo_id)

    def save_campaign(self, campaign: Campaign) -> str:
        return self._put(self._campaigns, campaign)

    def list_campaigns(self, ngo_id: str) -> List[Campaign]:
        return self._by_ngo(self._campaigns, ngo_id)

    def save_donation(self, donation: Donation) -> str:
        return self._put(self._donations, donation)

    def list_donations(self, ngo_id: str) -> List[Donation]:
        return self._by_ngo(self._donations, ngo_id)


# ---------------------------------------------------------------------------
# 3. SQLite implementation
# ---------------------------------------------------------------------------

_TABLES: Dict[str, Type[BaseModel]] = {
    "organizations": Organization,
    "expenses": Expense,
    "fund_requests": FundRequest,
    "campaigns": Campaign,
    "donations": Donation,
}


class SqliteRecordStore(RecordStore):
    """
    SQLite storage. Each record is stored as its pydantic JSON payload with
    `id` and `ngo_id` pulled out into indexed columns.
    """

    def __init__(self, db_path: str = "data/fundex.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _get_connection(self):
        """Get database connection with context manager."""
        conn = sqlite3.connect(str(self.db_path), timeout=10)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        with self._get_connection() as conn:
            cursor = conn.cursor()
            for table in _TABLES:
                cursor.execute(f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id TEXT PRIMARY KEY,
                        ngo_id TEXT,
                        payload TEXT NOT NULL,
                        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                    )
                """)
                cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_ngo ON {table}(ngo_id)")

    def _put(self, table: str, record: BaseModel) -> str:
        with self._get_connection() as conn:
            conn.execute(
                f"""
                INSERT INTO {table} (id, ngo_id, payload, updated_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(id) DO UPDATE SET
                    ngo_id=excluded.ngo_id, payload=excluded.payload, updated_at=CURRENT_TIMESTAMP
                """,
                (record.id, getattr(record, "ngo_id", None), record.model_dump_json()),
            )
        return record.id

    def _get(self, table: str, record_id: str) -> Optional[BaseModel]:
        with self._get_connection() as conn:
            row = conn.execute(f"SELECT payload FROM {table} WHERE id = ?", (record_id,)).fetchone()
        if row is None:
            return None
        return _TABLES[table].model_validate_json(row["payload"])

    def _by_ngo(self, table: str, ngo_id: Optional[str]) -> List[BaseModel]:
        with self._get_connection() as conn:
            if ngo_id is None:
                rows = conn.execute(f"SELECT payload FROM {table} ORDER BY rowid").fetchall()
            else:
                rows = conn.execute(
                    f"SELECT payload FROM {table} WHERE ngo_id = ? ORDER BY rowid", (ngo_id,)
                ).fetchall()
        model = _TABLES[table]
        return [model.model_validate_json(r["payload"]) for r in rows]

    def get_organization(self, org_id: str) -> Optional[Organization]:
        return self._get("organizations", org_id)

    def save_organization(self, org: Organization) -> str:
        return self._put("organizations", org)

    def list_organizations(self) -> List[Organization]:
        return self._by_ngo("organizations", None)

    def update_trust_cache(self, org_id: str, cache: TrustScoreCache) -> bool:
        # Patches trust_score in place; the rest of the stored payload is untouched
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE organizations
                SET payload = json_set(payload, '$.trust_score', json(?)), updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (cache.model_dump_json(), org_id),
            )
            return cursor.rowcount > 0

    def get_expense(self, expense_id: str) -> Optional[Expense]:
        return self._get("expenses", expense_id)

    def save_expense(self, expense: Expense) -> str:
        return self._put("expenses", expense)

    def list_expenses(self, ngo_id: str) -> List[Expense]:
        return self._by_ngo("expenses", ngo_id)

    def list_all_expenses(self) -> List[Expense]:
        return self._by_ngo("expenses", None)

    def get_fund_request(self, request_id: str) -> Optional[FundRequest]:
        return self._get("fund_requests", request_id)

    def save_fund_request(self, request: FundRequest) -> str:
        return self._put("fund_requests", request)

    def list_fund_requests(self, ngo_id: str) -> List[FundRequest]:
        return self._by_ngo("fund_requests", ngo_id)

    def save_campaign(self, campaign: Campaign) -> str:
        return self._put("campaigns", campaign)

    def list_campaigns(self, ngo_id: str) -> List[Campaign]:
        return self._by_ngo("campaigns", ngo_id)

    def save_donation(self, donation: Donation) -> str:
        return self._put("donations", donation)

    def list_donations(self, ngo_id: str) -> List[Donation]:
        return self._by_ngo("donations", ngo_id)


def get_record_store(db_path: Optional[str] = None) -> RecordStore:
    """
    Factory to obtain a RecordStore implementation.

    Controlled by env var:
        FUNDEX_STORE_BACKEND = "sqlite" | "memory"

    Defaults to SQLite at FUNDEX_DB_PATH.
    """
    backend = os.getenv("FUNDEX_STORE_BACKEND", "sqlite").lower()

    if backend == "memory":
        return InMemoryRecordStore()

    return SqliteRecordStore(db_path or os.getenv("FUNDEX_DB_PATH", "data/fundex.db"))
