#!/usr/bin/env python3
# backend/scripts/sync_prices.py
"""
Run one price sync cycle outside the API (cron, systemd timer).

    python backend/scripts/sync_prices.py            # sync every asset
    python backend/scripts/sync_prices.py --backup   # then write a backup file

Exit status is 1 when the cycle failed (no asset updated), 0 otherwise.
"""

import argparse
import logging
import sys

from bullion.database import SessionLocal, engine
from bullion.models import Base
from bullion.services import BackupService, PriceHistoryStore, PriceSyncService
from bullion.utils import correlation_scope, setup_logging

logger = logging.getLogger(__name__)


def run(backup: bool = False) -> int:
    Base.metadata.create_all(bind=engine)
    store = PriceHistoryStore()

    db = SessionLocal()
    try:
        with correlation_scope(prefix="sync"):
            report = PriceSyncService(store=store).sync_all(db)
            for failure in report.failed:
                logger.warning(f"Asset {failure.asset_id}: {failure.reason.value} ({failure.message})")

        if backup:
            with correlation_scope(prefix="backup"):
                service = BackupService(store=store)
                service.save_to_file(service.export(db))
    finally:
        db.close()

    return 1 if report.status == "failed" else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Refresh asset prices once.")
    parser.add_argument("--backup", action="store_true", help="write a backup file after syncing")
    parser.add_argument("--log-level", default=None, help="override LOG_LEVEL")
    args = parser.parse_args()

    setup_logging(level=args.log_level)
    sys.exit(run(backup=args.backup))
