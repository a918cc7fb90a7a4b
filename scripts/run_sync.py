#!/usr/bin/env python3
"""Run one full employee sync (directory + roster -> Cosmos DB).

Meant for a scheduler (cron, container job). Run from the project root:

    python3 scripts/run_sync.py [--dry-run] [--roster PATH] [--verbose]

Exit status is 0 when the sync finished (even with per-employee errors in
the report), 1 when it was aborted.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from eotm.core.config import Settings  # noqa: E402
from eotm.core.cosmos import CosmosDatabase  # noqa: E402
from eotm.core.wiring import build_services  # noqa: E402
from eotm.models.employee import SyncResult  # noqa: E402
from eotm.services.directory_service import GraphDirectoryService  # noqa: E402
from eotm.services.sync_service import SyncFatalError  # noqa: E402

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Synchronize employees from the directory and the roster file",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute creates/updates/deactivations without writing",
    )
    parser.add_argument(
        "--roster",
        default=None,
        help="Roster file (.xlsx or .csv); overrides EMPLOYEE_ROSTER_PATH",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return parser.parse_args(argv)


def log_report(result: SyncResult, dry_run: bool = False) -> None:
    logger.info("=" * 50)
    logger.info("Sync %s", "planned" if dry_run else "complete")
    logger.info("New: %d", result.new_users)
    logger.info("Updated: %d", result.updated_users)
    logger.info("Deactivated: %d", result.deactivated_users)
    logger.info("Skipped (excluded from sync): %d", result.skipped_users)
    logger.info("Processed: %d", result.total_processed)
    logger.info(
        "Roster matches: %d (unmatched directory: %d, unmatched roster: %d)",
        result.matched_external_records,
        result.unmatched_azure_employees,
        result.unmatched_external_records,
    )
    for error in result.errors:
        logger.warning("Error%s: %s", f" [{error.employee_id}]" if error.employee_id else "", error.message)
    if dry_run:
        logger.info("[DRY RUN] Nothing was written.")


async def run_sync(args: argparse.Namespace) -> int:
    settings = Settings()
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")

    if args.roster:
        settings.EMPLOYEE_ROSTER_PATH = args.roster

    database = CosmosDatabase()
    directory = GraphDirectoryService()
    await database.initialize(settings)
    await directory.initialize(settings)
    try:
        if not database.initialized:
            logger.error("Cosmos DB is not configured. Exiting.")
            return 1

        services = build_services(settings, database, directory)
        try:
            result = await services.sync.run_full_sync(dry_run=args.dry_run)
        except SyncFatalError as e:
            logger.error("Sync aborted: %s", e)
            return 1
    finally:
        await database.close()
        await directory.close()

    log_report(result, dry_run=args.dry_run)
    return 0


def main() -> None:
    args = parse_args()
    sys.exit(asyncio.run(run_sync(args)))


if __name__ == "__main__":
    main()
