"""
Batch jobs for AdPulse.

This module provides the daily ETL batch (etl_batch.py): platform ingestion,
pattern analysis and experiment result computation in one run.

Scheduling is external: a cron job, Kubernetes CronJob or similar invokes
`python -m adpulse.main` (or run_batch() directly) on the CRON_ETL_SCHEDULE
expression.

Usage:
    from adpulse.jobs import run_batch

    summary = await run_batch()
"""

from adpulse.jobs.etl_batch import ETLOrchestrator, run_batch, tag_record


__all__ = [
    'ETLOrchestrator',
    'run_batch',
    'tag_record',
]
