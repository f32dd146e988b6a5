"""
SQL module for the AdPulse engine.

Provides the table definitions and parameterized SQL for:
- Performance records, content and pattern insights (performance_queries)
- Experiments and experiment results (experiment_queries)
- Platform integrations (integration_queries)
- Table and index DDL (schema)

All queries use asyncpg positional parameters ($1, $2, ...) and are executed
by adpulse.services.repository.
"""

from adpulse.sql.schema import SCHEMA_STATEMENTS
from adpulse.sql.performance_queries import (
    UPSERT_PERFORMANCE_RECORD,
    SELECT_PERFORMANCE_RECORDS,
    AGGREGATE_EXPERIMENT_PERFORMANCE,
    SELECT_CONTENT_WITH_AD,
    REPLACE_PATTERN_INSIGHTS,
    SELECT_PATTERN_INSIGHTS,
)
from adpulse.sql.experiment_queries import (
    INSERT_EXPERIMENT,
    SELECT_EXPERIMENT,
    UPDATE_EXPERIMENT_STATUS,
    INSERT_EMPTY_EXPERIMENT_RESULT,
    UPSERT_EXPERIMENT_RESULT,
    SELECT_EXPERIMENT_RESULT,
    get_active_experiments_query,
)
from adpulse.sql.integration_queries import (
    MARK_INTEGRATION_SYNCED,
    MARK_INTEGRATION_ERROR,
    get_platform_integrations_query,
)


__all__ = [
    'SCHEMA_STATEMENTS',
    # performance_queries
    'UPSERT_PERFORMANCE_RECORD',
    'SELECT_PERFORMANCE_RECORDS',
    'AGGREGATE_EXPERIMENT_PERFORMANCE',
    'SELECT_CONTENT_WITH_AD',
    'REPLACE_PATTERN_INSIGHTS',
    'SELECT_PATTERN_INSIGHTS',
    # experiment_queries
    'INSERT_EXPERIMENT',
    'SELECT_EXPERIMENT',
    'UPDATE_EXPERIMENT_STATUS',
    'INSERT_EMPTY_EXPERIMENT_RESULT',
    'UPSERT_EXPERIMENT_RESULT',
    'SELECT_EXPERIMENT_RESULT',
    'get_active_experiments_query',
    # integration_queries
    'MARK_INTEGRATION_SYNCED',
    'MARK_INTEGRATION_ERROR',
    'get_platform_integrations_query',
]
