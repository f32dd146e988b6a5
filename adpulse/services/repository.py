"""
AdPulse Repository

Data access for everything the engine reads and writes, on top of the asyncpg
pool from adpulse.core.database and the parameterized SQL in adpulse.sql.

Key Features:
- Platform integrations: listing and sync/error state updates
- Content records with parsed elements, keyed by metadata.adId
- Idempotent bulk upsert of performance records on their natural key
- Full replacement of a business's pattern insights
- Experiments, per-variant aggregation and the cached experiment result

JSONB columns are written as json.dumps(...) with an explicit ::jsonb cast and
decoded on read, so no connection-level codec is required.
"""

import json
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from adpulse.core.database import get_db_pool
from adpulse.models import (
    ConfidenceInterval,
    ContentElement,
    ContentRecord,
    Experiment,
    ExperimentArms,
    ExperimentResult,
    ExperimentSplit,
    ExperimentStatus,
    PatternInsight,
    PerformanceRecord,
    Platform,
    PlatformIntegration,
    VariantName,
    VariantStats,
)
from adpulse.sql import (
    AGGREGATE_EXPERIMENT_PERFORMANCE,
    INSERT_EMPTY_EXPERIMENT_RESULT,
    INSERT_EXPERIMENT,
    MARK_INTEGRATION_ERROR,
    MARK_INTEGRATION_SYNCED,
    REPLACE_PATTERN_INSIGHTS,
    SELECT_CONTENT_WITH_AD,
    SELECT_EXPERIMENT,
    SELECT_EXPERIMENT_RESULT,
    SELECT_PATTERN_INSIGHTS,
    SELECT_PERFORMANCE_RECORDS,
    UPDATE_EXPERIMENT_STATUS,
    UPSERT_EXPERIMENT_RESULT,
    UPSERT_PERFORMANCE_RECORD,
    get_active_experiments_query,
    get_platform_integrations_query,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Row Conversion Helpers
# =============================================================================


def _decode_json(value: Any) -> Any:
    """asyncpg returns jsonb as text unless a codec is registered."""
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def _parse_elements(raw: Any) -> List[ContentElement]:
    elements: List[ContentElement] = []
    for entry in _decode_json(raw) or []:
        if not isinstance(entry, dict) or not entry.get('type') or entry.get('value') is None:
            continue
        elements.append(ContentElement(type=str(entry['type']), value=str(entry['value'])))
    return elements


def integration_from_row(row: Any) -> PlatformIntegration:
    return PlatformIntegration(
        business_id=row['business_id'],
        platform=row['platform'],
        account_id=row['account_id'],
        access_token=row['access_token'],
        is_connected=row['is_connected'],
        needs_reauth=row['needs_reauth'],
        status=row['status'],
        error_message=row['error_message'],
        last_synced=row['last_synced'],
    )


def content_from_row(row: Any) -> ContentRecord:
    return ContentRecord(
        id=row['id'],
        business_id=row['business_id'],
        ad_id=row['ad_id'],
        generated_from_insight_id=row['generated_from_insight_id'],
        parsed_content=_parse_elements(row['parsed_content']),
    )


def performance_from_row(row: Any) -> PerformanceRecord:
    return PerformanceRecord(
        business_id=row['business_id'],
        platform=row['platform'],
        ad_id=row['ad_id'],
        date=row['date'],
        impressions=row['impressions'],
        clicks=row['clicks'],
        leads=row['leads'],
        spend=row['spend'],
        experiment_id=row['experiment_id'],
        variant=row['variant'],
        content_id=row['content_id'],
        generated_from_insight_id=row['generated_from_insight_id'],
    )


def experiment_from_row(row: Any) -> Experiment:
    return Experiment(
        id=row['id'],
        business_id=row['business_id'],
        name=row['name'],
        content_id_original=row['content_id_original'],
        content_id_variant=row['content_id_variant'],
        split=ExperimentSplit(original=row['split_original'], variant=row['split_variant']),
        start_date=row['start_date'],
        end_date=row['end_date'],
        status=row['status'],
    )


def experiment_result_from_row(row: Any) -> ExperimentResult:
    return ExperimentResult(
        experiment_id=row['experiment_id'],
        results=ExperimentArms.model_validate(_decode_json(row['results'])),
        lift=row['lift'],
        p_value=row['p_value'],
        is_significant=row['is_significant'],
        confidence_interval=ConfidenceInterval(lower=row['ci_lower'], upper=row['ci_upper']),
        last_updated=row['last_updated'],
    )


def performance_record_args(record: PerformanceRecord) -> tuple:
    """Positional arguments for UPSERT_PERFORMANCE_RECORD."""
    return (
        record.business_id,
        record.platform.value,
        record.ad_id,
        record.date,
        record.impressions,
        record.clicks,
        record.leads,
        record.spend,
        record.experiment_id,
        record.variant.value if record.variant else None,
        record.content_id,
        record.generated_from_insight_id,
    )


# =============================================================================
# Repository
# =============================================================================


class AdPulseRepository:
    """
    PostgreSQL-backed repository used by the ETL, the analyzers and the
    experiment lifecycle functions.

    Every method acquires its own connection from the shared pool.
    """

    # -------------------------------------------------------------------------
    # Platform integrations
    # -------------------------------------------------------------------------

    async def list_platform_integrations(
        self,
        business_ids: Optional[List[str]] = None,
    ) -> List[PlatformIntegration]:
        pool = await get_db_pool()
        query = get_platform_integrations_query(filter_business_ids=business_ids is not None)
        args = [list(business_ids)] if business_ids is not None else []

        async with pool.acquire() as conn:
            rows = await conn.fetch(query, *args)

        return [integration_from_row(row) for row in rows]

    async def mark_integration_synced(
        self,
        business_id: str,
        platform: Platform,
        synced_at: datetime,
    ) -> None:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            await conn.execute(MARK_INTEGRATION_SYNCED, business_id, platform.value, synced_at)

    async def mark_integration_error(
        self,
        business_id: str,
        platform: Platform,
        message: str,
    ) -> None:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            await conn.execute(MARK_INTEGRATION_ERROR, business_id, platform.value, message)

    # -------------------------------------------------------------------------
    # Content
    # -------------------------------------------------------------------------

    async def get_content_records(self, business_id: str) -> List[ContentRecord]:
        """Content of a business that has been published as an ad."""
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(SELECT_CONTENT_WITH_AD, business_id)

        return [content_from_row(row) for row in rows]

    # -------------------------------------------------------------------------
    # Performance records and pattern insights
    # -------------------------------------------------------------------------

    async def upsert_performance_records(self, records: Iterable[PerformanceRecord]) -> int:
        """
        Upsert records on (business_id, platform, ad_id, date).

        Returns:
            Number of records written.
        """
        args = [performance_record_args(record) for record in records]
        if not args:
            return 0

        pool = await get_db_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(UPSERT_PERFORMANCE_RECORD, args)

        logger.info(f"Upserted {len(args)} rows to performance_record")
        return len(args)

    async def get_performance_records(self, business_id: str) -> List[PerformanceRecord]:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(SELECT_PERFORMANCE_RECORDS, business_id)

        return [performance_from_row(row) for row in rows]

    async def replace_pattern_insights(self, business_id: str, insights: List[PatternInsight]) -> None:
        payload = json.dumps([insight.model_dump(mode='json') for insight in insights])

        pool = await get_db_pool()
        async with pool.acquire() as conn:
            await conn.execute(REPLACE_PATTERN_INSIGHTS, business_id, payload)

    async def get_pattern_insights(self, business_id: str) -> List[PatternInsight]:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            raw = await conn.fetchval(SELECT_PATTERN_INSIGHTS, business_id)

        if raw is None:
            return []
        return [PatternInsight.model_validate(item) for item in _decode_json(raw)]

    # -------------------------------------------------------------------------
    # Experiments
    # -------------------------------------------------------------------------

    async def insert_experiment(self, experiment: Experiment, initial_result: ExperimentResult) -> None:
        """Insert an experiment together with its empty result row."""
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    INSERT_EXPERIMENT,
                    experiment.id,
                    experiment.business_id,
                    experiment.name,
                    experiment.content_id_original,
                    experiment.content_id_variant,
                    experiment.split.original,
                    experiment.split.variant,
                    experiment.start_date,
                    experiment.end_date,
                    experiment.status.value,
                )
                await conn.execute(
                    INSERT_EMPTY_EXPERIMENT_RESULT,
                    experiment.id,
                    json.dumps(initial_result.results.model_dump(mode='json')),
                )

    async def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(SELECT_EXPERIMENT, experiment_id)

        return experiment_from_row(row) if row is not None else None

    async def list_active_experiments(
        self,
        business_ids: Optional[List[str]] = None,
        started_before: Optional[datetime] = None,
    ) -> List[Experiment]:
        """
        Active experiments, optionally restricted to some businesses and to
        those whose start_date is not after `started_before`.
        """
        query = get_active_experiments_query(
            filter_business_ids=business_ids is not None,
            started_only=started_before is not None,
        )
        args: List[Any] = []
        if business_ids is not None:
            args.append(list(business_ids))
        if started_before is not None:
            args.append(started_before)

        pool = await get_db_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(query, *args)

        return [experiment_from_row(row) for row in rows]

    async def get_active_experiments(self, business_id: str) -> List[Experiment]:
        return await self.list_active_experiments(business_ids=[business_id])

    async def update_experiment_status(self, experiment_id: str, status: ExperimentStatus) -> bool:
        """
        Returns:
            True when an experiment with this id exists and was updated.
        """
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            command_status = await conn.execute(UPDATE_EXPERIMENT_STATUS, experiment_id, status.value)

        # asyncpg returns the command tag, e.g. "UPDATE 1"
        return str(command_status).split()[-1] != '0'

    async def aggregate_experiment_performance(
        self,
        experiment_id: str,
        window_start: date,
        window_end: date,
    ) -> Dict[VariantName, VariantStats]:
        """
        Sum impressions, clicks and leads per variant over tagged records with
        window_start <= date <= window_end. Missing variants are zero.
        """
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                AGGREGATE_EXPERIMENT_PERFORMANCE, experiment_id, window_start, window_end
            )

        totals = {variant: VariantStats() for variant in VariantName}
        for row in rows:
            totals[VariantName(row['variant'])] = VariantStats(
                impressions=int(row['impressions']),
                clicks=int(row['clicks']),
                conversions=int(row['conversions']),
            )
        return totals

    async def upsert_experiment_result(self, result: ExperimentResult) -> None:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            await conn.execute(
                UPSERT_EXPERIMENT_RESULT,
                result.experiment_id,
                json.dumps(result.results.model_dump(mode='json')),
                result.lift,
                result.p_value,
                result.is_significant,
                result.confidence_interval.lower,
                result.confidence_interval.upper,
                result.last_updated,
            )

    async def get_experiment_result(self, experiment_id: str) -> Optional[ExperimentResult]:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(SELECT_EXPERIMENT_RESULT, experiment_id)

        return experiment_result_from_row(row) if row is not None else None
