"""Script to reconcile payment schedules, ledger entries and transactions."""

import argparse
import asyncio
import json

from components.core.clock import system_clock
from components.core.init_db import db_manager
from components.core.log import configure_logging
from components.reconciliation.service import ReconciliationService

async def reconcile(user_id=None, dry_run=False):
    """Run one reconciliation sweep and print its report."""
    configure_logging()
    async with db_manager.get_db() as db:
        report = await ReconciliationService(db, system_clock).sweep(user_id, dry_run=dry_run)
    print(json.dumps(report.as_dict(), indent=2))
    return report

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--user-id", type=int, default=None, help="Only reconcile this user's payments")
    parser.add_argument("--dry-run", action="store_true", help="Report drift without writing")
    args = parser.parse_args()
    asyncio.run(reconcile(args.user_id, args.dry_run))
