#!/usr/bin/env python3
"""
Recalculate fraud scores for stored expenses.

Uses what is already persisted on each expense (OCR text, detected amount,
GST fields); no OCR or registry calls are made. By default only expenses
that were never scored (fraud score 0) are touched.

Usage:
    python scripts/recalculate_fraud_scores.py
    python scripts/recalculate_fraud_scores.py --all --db data/fundex.db
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fundex.models.records import VerificationStatus
from fundex.pipelines.bill_analysis import rescore_expense
from fundex.pipelines.fraud_scoring import FraudScorer
from fundex.repository.record_store import RecordStore, SqliteRecordStore

logger = logging.getLogger(__name__)

# No fund request context for historical expenses
DEFAULT_REMAINING_BALANCE = 10000.0


def recalculate(store: RecordStore, rescore_all: bool = False,
                remaining_balance: float = DEFAULT_REMAINING_BALANCE) -> dict:
    scorer = FraudScorer()

    stats = {"updated": 0, "skipped": 0, "errors": 0, "flagged": 0}

    for expense in store.list_all_expenses():
        if not rescore_all and expense.fraud_score > 0:
            stats["skipped"] += 1
            continue
        try:
            updated = rescore_expense(expense, scorer, remaining_budget=remaining_balance)
            if updated.fraud_score >= scorer.tables.auto_flag_threshold:
                updated.verification_status = VerificationStatus.FLAGGED
                stats["flagged"] += 1
            store.save_expense(updated)
            stats["updated"] += 1
            print(f"   ✅ {expense.id}: {expense.fraud_score} -> {updated.fraud_score} ({updated.fraud_risk_level})")
        except Exception as e:
            logger.error(f"❌ Error updating expense {expense.id}: {e}")
            stats["errors"] += 1

    return stats


def main():
    parser = argparse.ArgumentParser(description="Recalculate fraud scores for stored expenses")
    parser.add_argument("--db", default="data/fundex.db", help="SQLite database path")
    parser.add_argument("--all", action="store_true", help="Rescore every expense, not just unscored ones")
    parser.add_argument(
        "--remaining-balance",
        type=float,
        default=DEFAULT_REMAINING_BALANCE,
        help="Remaining budget assumed for every expense",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    store = SqliteRecordStore(args.db)
    stats = recalculate(store, rescore_all=args.all, remaining_balance=args.remaining_balance)

    print("\n" + "=" * 60)
    print("📊 FRAUD SCORE RECALCULATION")
    print("=" * 60)
    print(f"   Updated: {stats['updated']}")
    print(f"   Skipped: {stats['skipped']}")
    print(f"   Flagged: {stats['flagged']}")
    print(f"   Errors:  {stats['errors']}")


if __name__ == "__main__":
    main()
