"""
Daily ETL Batch for AdPulse.

This module runs one end-to-end batch: ingest yesterday's ad performance from
every connected platform integration, refresh each business's pattern
insights, then recompute the results of every running experiment.

Batch Flow:
1. Increment etl_jobs_total; create fresh ConcurrencyGates and one
   httpx.AsyncClient for the whole batch
2. Load platform integrations; sync only those that are connected, do not
   need reauthorization and are not in the error state
3. Process businesses concurrently. Per business:
   - build the ad id -> content/experiment tag mapping once
   - sync each platform concurrently and in isolation: fetch all pages,
     normalize, tag, upsert, then mark the integration synced
   - run pattern analysis for the business
4. Compute results for every active experiment that has started; expired
   experiments are completed by the calculator
5. Return a BatchRunSummary

Failure Isolation:
- A failing platform is logged, counted in etl_job_failures_total{platform}
  and leaves the integration's sync state untouched
- A failing analysis or experiment computation is logged and skipped
- run_batch() does not raise for per-entity failures

Scheduling:
The engine does not schedule itself. An external scheduler invokes
run_batch() (see adpulse.main); CRON_ETL_SCHEDULE holds the intended cron
expression, '0 3 * * *' by default.

Usage:
    from adpulse.jobs import run_batch

    summary = await run_batch()
    summary = await run_batch(business_ids=['biz_1'])
"""

import asyncio
import logging
import random
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from adpulse.core.config import Settings, get_settings
from adpulse.core.metrics import etl_job_failures, etl_jobs
from adpulse.models import (
    AdTag,
    BatchRunSummary,
    PerformanceRecord,
    PlatformIntegration,
    VariantName,
    utc_now,
)
from adpulse.services.alerts import AlertService
from adpulse.services.experiments import ExperimentResultsCalculator
from adpulse.services.fetcher import ConcurrencyGates, RateLimitedFetcher
from adpulse.services.pattern_analyzer import PatternSignificanceAnalyzer
from adpulse.services.platforms import PlatformAdapter, build_adapters
from adpulse.services.repository import AdPulseRepository

# Configure module logger
logger = logging.getLogger(__name__)


def tag_record(record: PerformanceRecord, tag: Optional[AdTag]) -> PerformanceRecord:
    """Attach content and experiment attribution to a normalized record."""
    if tag is None:
        return record
    return record.model_copy(update=tag.model_dump())


class ETLOrchestrator:
    """
    Runs the daily batch.

    Args:
        repository: Data access (AdPulseRepository or a compatible fake).
        alerts: Alert sink with an async send(alert).
        settings: Application settings; defaults to get_settings().
        analyzer: Pattern analyzer; built from the repository when omitted.
        calculator: Experiment results calculator; built when omitted.
        adapters: Platform adapters by platform; build_adapters() when omitted.
        transport: Optional httpx transport for the batch client (tests pass
            httpx.MockTransport).
        token_decryptor: Optional callable turning a stored access token into
            a usable one.
        sleep: Sleep function used for retry backoff and page delays.
        random_fn: Jitter source for retry backoff.
        clock: Returns the current timezone-aware time.
    """

    def __init__(
        self,
        repository: Any,
        alerts: Any,
        settings: Optional[Settings] = None,
        analyzer: Optional[PatternSignificanceAnalyzer] = None,
        calculator: Optional[ExperimentResultsCalculator] = None,
        adapters: Optional[Dict[Any, PlatformAdapter]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        token_decryptor: Optional[Callable[[str], str]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        random_fn: Callable[[], float] = random.random,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repository = repository
        self.alerts = alerts
        self.settings = settings or get_settings()
        self.analyzer = analyzer or PatternSignificanceAnalyzer(repository, self.settings)
        self.calculator = calculator or ExperimentResultsCalculator(repository, alerts, self.settings)
        self.adapters = adapters or build_adapters(self.settings)
        self._transport = transport
        self._token_decryptor = token_decryptor
        self._sleep = sleep
        self._random = random_fn
        self._clock = clock

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    async def run_batch(self, business_ids: Optional[List[str]] = None) -> BatchRunSummary:
        """
        Run one ETL batch.

        Args:
            business_ids: Restrict the batch to these businesses. All
                businesses with platform integrations when None.

        Returns:
            BatchRunSummary with per-stage counters.
        """
        started_at = self._clock()
        report_date = (started_at - timedelta(days=1)).date()
        summary = BatchRunSummary(started_at=started_at, report_date=report_date)

        etl_jobs.inc()
        logger.info(f"Starting ETL batch for {report_date}")

        integrations = await self.repository.list_platform_integrations(business_ids)
        by_business: Dict[str, List[PlatformIntegration]] = {}
        for integration in integrations:
            if not integration.is_eligible:
                summary.integrations_skipped += 1
                logger.debug(
                    f"Skipping {integration.platform.value} integration for business "
                    f"{integration.business_id} (status={integration.status.value}, "
                    f"needs_reauth={integration.needs_reauth})"
                )
                continue
            by_business.setdefault(integration.business_id, []).append(integration)

        gates = ConcurrencyGates(
            global_limit=self.settings.etl_global_concurrency,
            per_business_limit=self.settings.etl_business_concurrency,
        )

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self.settings.etl_request_timeout_seconds,
        ) as client:
            fetcher = RateLimitedFetcher(
                client,
                gates,
                self.repository,
                self.alerts,
                self.settings,
                sleep=self._sleep,
                random_fn=self._random,
            )
            await asyncio.gather(*(
                self._process_business(fetcher, business_id, business_integrations, report_date, summary)
                for business_id, business_integrations in by_business.items()
            ))

        summary.businesses_processed = len(by_business)

        await self._compute_experiments(business_ids, summary)

        summary.finished_at = self._clock()
        logger.info(
            f"ETL batch complete: {summary.businesses_processed} businesses, "
            f"{summary.platforms_synced} platforms synced, {summary.platforms_failed} failed, "
            f"{summary.records_upserted} records, {summary.insights_generated} insights, "
            f"{summary.experiments_computed} experiments computed"
        )
        return summary

    # -------------------------------------------------------------------------
    # Per-business ingestion
    # -------------------------------------------------------------------------

    async def build_ad_tags(self, business_id: str) -> Dict[str, AdTag]:
        """
        Map each ad id of a business to its content and, when the content is
        one arm of an active experiment, to that experiment and arm.
        """
        content_records = await self.repository.get_content_records(business_id)
        experiments = await self.repository.get_active_experiments(business_id)

        arms: Dict[str, Tuple[str, VariantName]] = {}
        for experiment in experiments:
            arms[experiment.content_id_original] = (experiment.id, VariantName.ORIGINAL)
            arms[experiment.content_id_variant] = (experiment.id, VariantName.VARIANT)

        tags: Dict[str, AdTag] = {}
        for content in content_records:
            if not content.ad_id:
                continue
            experiment_id, variant = arms.get(content.id, (None, None))
            tags[content.ad_id] = AdTag(
                content_id=content.id,
                generated_from_insight_id=content.generated_from_insight_id,
                experiment_id=experiment_id,
                variant=variant,
            )
        return tags

    async def _process_business(
        self,
        fetcher: RateLimitedFetcher,
        business_id: str,
        integrations: List[PlatformIntegration],
        report_date,
        summary: BatchRunSummary,
    ) -> None:
        try:
            tags = await self.build_ad_tags(business_id)
        except Exception:
            logger.exception(f"Failed to load content tags for business {business_id}; skipping ingestion")
            for integration in integrations:
                etl_job_failures.labels(platform=integration.platform.value).inc()
            summary.platforms_failed += len(integrations)
            return

        await asyncio.gather(*(
            self._sync_platform(fetcher, integration, tags, report_date, summary)
            for integration in integrations
        ))

        try:
            insights = await self.analyzer.analyze(business_id)
            summary.insights_generated += len(insights)
        except Exception:
            logger.exception(f"Pattern analysis failed for business {business_id}")
            summary.analysis_failures += 1

    async def _sync_platform(
        self,
        fetcher: RateLimitedFetcher,
        integration: PlatformIntegration,
        tags: Dict[str, AdTag],
        report_date,
        summary: BatchRunSummary,
    ) -> None:
        business_id = integration.business_id
        platform = integration.platform

        try:
            adapter = self.adapters[platform]
            if self._token_decryptor is not None:
                integration = integration.model_copy(
                    update={'access_token': self._token_decryptor(integration.access_token)}
                )

            request = adapter.build_initial_request(integration, report_date)
            items = await fetcher.fetch_all_pages(request, adapter, business_id)

            records = [
                tag_record(record, tags.get(record.ad_id))
                for record in adapter.normalize(items, business_id, report_date)
            ]
            written = await self.repository.upsert_performance_records(records)
            await self.repository.mark_integration_synced(business_id, platform, self._clock())
        except Exception:
            logger.exception(f"{platform.value} sync failed for business {business_id}")
            etl_job_failures.labels(platform=platform.value).inc()
            summary.platforms_failed += 1
            return

        summary.platforms_synced += 1
        summary.records_upserted += written
        logger.info(f"Synced {written} {platform.value} records for business {business_id}")

    # -------------------------------------------------------------------------
    # Experiments
    # -------------------------------------------------------------------------

    async def _compute_experiments(
        self,
        business_ids: Optional[List[str]],
        summary: BatchRunSummary,
    ) -> None:
        now = self._clock()
        try:
            experiments = await self.repository.list_active_experiments(
                business_ids=business_ids,
                started_before=now,
            )
        except Exception:
            logger.exception("Failed to load active experiments")
            return

        for experiment in experiments:
            try:
                await self.calculator.compute_results(experiment.id, now=now)
            except Exception:
                logger.exception(f"Failed to compute results for experiment {experiment.id}")
                summary.experiment_failures += 1
                continue

            summary.experiments_computed += 1
            if experiment.end_date < now:
                summary.experiments_completed += 1


async def run_batch(business_ids: Optional[List[str]] = None) -> BatchRunSummary:
    """
    Run one batch against the configured database and alert sink.

    The database pool must be initialized (adpulse.core.database.init_db) or
    is created lazily on first use.
    """
    settings = get_settings()
    orchestrator = ETLOrchestrator(
        repository=AdPulseRepository(),
        alerts=AlertService(settings),
        settings=settings,
    )
    return await orchestrator.run_batch(business_ids)
