#!/usr/bin/env python3
"""
Recompute and cache the trust score of every organization.

Usage:
    python scripts/recalculate_trust_scores.py
    python scripts/recalculate_trust_scores.py --org ngo_123 --db data/fundex.db
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fundex.config.settings import FundexConfig
from fundex.repository.record_store import RecordStore, SqliteRecordStore
from fundex.trust.aggregator import OrganizationNotFound, TrustScoreService, TrustScoreUnavailable
from fundex.utils.report_formatter import ReportFormatter

logger = logging.getLogger(__name__)


def recalculate(store: RecordStore, org_ids: Optional[List[str]] = None,
                config: Optional[FundexConfig] = None) -> dict:
    service = TrustScoreService.from_config(store, config)
    org_ids = org_ids or [org.id for org in store.list_organizations()]

    stats = {"updated": 0, "errors": 0}
    try:
        for org_id in org_ids:
            try:
                result = service.get_trust_score(org_id, force_recalculate=True)
            except OrganizationNotFound:
                logger.error(f"❌ Organization not found: {org_id}")
                stats["errors"] += 1
                continue
            except TrustScoreUnavailable as e:
                logger.error(f"❌ {e}")
                stats["errors"] += 1
                continue
            print(ReportFormatter.trust_score_summary(result))
            stats["updated"] += 1
        service.flush()
    finally:
        service.shutdown()

    return stats


def main():
    parser = argparse.ArgumentParser(description="Recalculate NGO trust scores")
    parser.add_argument("--db", default="data/fundex.db", help="SQLite database path")
    parser.add_argument("--org", action="append", dest="orgs", help="Organization id (repeatable); default all")
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    stats = recalculate(SqliteRecordStore(args.db), org_ids=args.orgs)

    print("\n" + "=" * 60)
    print(f"🏛️  Trust scores updated: {stats['updated']}, errors: {stats['errors']}")
    print("=" * 60)


if __name__ == "__main__":
    main()
