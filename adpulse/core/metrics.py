"""
Prometheus counters for the ETL batch.

The counters live in the default prometheus_client registry so any exporter
the hosting process runs (push gateway, /metrics endpoint, textfile collector)
picks them up without extra wiring. Exported sample names carry the
`_total` suffix added by prometheus_client.

Counters:
- etl_jobs_total: batch runs started
- etl_job_failures_total{platform}: platform syncs that failed for a business
- etl_pages_fetched_total{platform}: platform pages successfully fetched
- etl_retry_total{platform}: retried platform requests
"""

from prometheus_client import Counter


etl_jobs = Counter(
    'etl_jobs',
    'Total ETL batch runs started',
)

etl_job_failures = Counter(
    'etl_job_failures',
    'Total failed platform syncs',
    ['platform'],
)

etl_pages_fetched = Counter(
    'etl_pages_fetched',
    'Total platform pages fetched',
    ['platform'],
)

etl_retry = Counter(
    'etl_retry',
    'Total retried platform requests',
    ['platform'],
)


__all__ = [
    'etl_jobs',
    'etl_job_failures',
    'etl_pages_fetched',
    'etl_retry',
]
