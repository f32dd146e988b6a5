"""
Command-line entry point for the AdPulse daily ETL batch.

This module is what the external scheduler invokes. It configures logging,
opens the database pool, runs one batch and closes the pool again.

Usage:
    python -m adpulse.main                       # all businesses
    python -m adpulse.main --business-id biz_1   # repeatable
    python -m adpulse.main --ensure-schema       # create missing tables first
    python -m adpulse.main --print-schedule      # print CRON_ETL_SCHEDULE and exit

Example crontab entry for the default schedule:
    0 3 * * * cd /srv/adpulse && python -m adpulse.main
"""

import argparse
import asyncio
import logging
from typing import List, Optional, Sequence

from adpulse.core.config import get_settings
from adpulse.core.database import close_db, ensure_schema, init_db
from adpulse.jobs.etl_batch import run_batch
from adpulse.models import BatchRunSummary

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='adpulse-etl',
        description='Run one AdPulse ETL batch (ingestion, pattern analysis, experiment results).',
    )
    parser.add_argument(
        '--business-id',
        dest='business_ids',
        action='append',
        metavar='ID',
        help='Restrict the batch to this business (repeatable).',
    )
    parser.add_argument(
        '--ensure-schema',
        action='store_true',
        help='Create missing tables and indexes before running.',
    )
    parser.add_argument(
        '--print-schedule',
        action='store_true',
        help='Print the configured cron expression and exit.',
    )
    return parser


async def run(business_ids: Optional[List[str]] = None, create_schema: bool = False) -> BatchRunSummary:
    """Open the pool, run one batch and always close the pool."""
    await init_db()
    logger.info("Database connection pool initialized")
    try:
        if create_schema:
            await ensure_schema()
        return await run_batch(business_ids)
    finally:
        await close_db()
        logger.info("Database connection pool closed")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    if args.print_schedule:
        print(settings.cron_etl_schedule)
        return 0

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    summary = asyncio.run(run(args.business_ids, create_schema=args.ensure_schema))
    logger.info(f"Batch summary: {summary.model_dump_json()}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
