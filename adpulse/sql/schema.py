"""
PostgreSQL table definitions for the AdPulse engine.

Every statement is idempotent (IF NOT EXISTS) and is applied in order by
adpulse.core.database.ensure_schema().

Tables:
    platform_integration: One row per (business_id, platform) connection
    content:              Generated content with parsed elements and its ad id
    performance_record:   Daily ad metrics, unique per (business_id, platform, ad_id, date)
    pattern_insight:      Latest pattern insights per business (replaced on every run)
    experiment:           Two-variant experiments with a split constrained to sum to 100
    experiment_result:    Cached result per experiment (1:1)
"""

from typing import List


CREATE_PLATFORM_INTEGRATION = """
    CREATE TABLE IF NOT EXISTS platform_integration (
        business_id     TEXT NOT NULL,
        platform        TEXT NOT NULL CHECK (platform IN ('meta', 'google')),
        account_id      TEXT NOT NULL,
        access_token    TEXT NOT NULL,
        is_connected    BOOLEAN NOT NULL DEFAULT TRUE,
        needs_reauth    BOOLEAN NOT NULL DEFAULT FALSE,
        status          TEXT NOT NULL DEFAULT 'connected' CHECK (status IN ('connected', 'error')),
        error_message   TEXT,
        last_synced     TIMESTAMPTZ,
        updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (business_id, platform)
    )
"""

CREATE_CONTENT = """
    CREATE TABLE IF NOT EXISTS content (
        id                          TEXT PRIMARY KEY,
        business_id                 TEXT NOT NULL,
        metadata                    JSONB NOT NULL DEFAULT '{}'::jsonb,
        parsed_content              JSONB NOT NULL DEFAULT '[]'::jsonb,
        generated_from_insight_id   TEXT,
        created_at                  TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""

CREATE_CONTENT_INDEX = """
    CREATE INDEX IF NOT EXISTS idx_content_business_ad
        ON content (business_id, (metadata->>'adId'))
"""

CREATE_PERFORMANCE_RECORD = """
    CREATE TABLE IF NOT EXISTS performance_record (
        business_id                 TEXT NOT NULL,
        platform                    TEXT NOT NULL,
        ad_id                       TEXT NOT NULL,
        date                        DATE NOT NULL,
        impressions                 BIGINT NOT NULL DEFAULT 0 CHECK (impressions >= 0),
        clicks                      BIGINT NOT NULL DEFAULT 0 CHECK (clicks >= 0),
        leads                       BIGINT NOT NULL DEFAULT 0 CHECK (leads >= 0),
        spend                       DOUBLE PRECISION NOT NULL DEFAULT 0 CHECK (spend >= 0),
        experiment_id               TEXT,
        variant                     TEXT CHECK (variant IN ('original', 'variant')),
        content_id                  TEXT,
        generated_from_insight_id   TEXT,
        created_at                  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at                  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (business_id, platform, ad_id, date)
    )
"""

CREATE_PERFORMANCE_EXPERIMENT_INDEX = """
    CREATE INDEX IF NOT EXISTS idx_performance_record_experiment
        ON performance_record (experiment_id, variant, date)
        WHERE experiment_id IS NOT NULL
"""

CREATE_PATTERN_INSIGHT = """
    CREATE TABLE IF NOT EXISTS pattern_insight (
        business_id     TEXT PRIMARY KEY,
        insights        JSONB NOT NULL DEFAULT '[]'::jsonb,
        updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""

CREATE_EXPERIMENT = """
    CREATE TABLE IF NOT EXISTS experiment (
        id                      TEXT PRIMARY KEY,
        business_id             TEXT NOT NULL,
        name                    TEXT NOT NULL,
        content_id_original     TEXT NOT NULL,
        content_id_variant      TEXT NOT NULL,
        split_original          INTEGER NOT NULL CHECK (split_original BETWEEN 1 AND 99),
        split_variant           INTEGER NOT NULL CHECK (split_variant BETWEEN 1 AND 99),
        start_date              TIMESTAMPTZ NOT NULL,
        end_date                TIMESTAMPTZ NOT NULL,
        status                  TEXT NOT NULL DEFAULT 'active'
                                CHECK (status IN ('active', 'paused', 'completed')),
        created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        CHECK (split_original + split_variant = 100),
        CHECK (end_date >= start_date)
    )
"""

CREATE_EXPERIMENT_RESULT = """
    CREATE TABLE IF NOT EXISTS experiment_result (
        experiment_id       TEXT PRIMARY KEY REFERENCES experiment (id) ON DELETE CASCADE,
        results             JSONB NOT NULL,
        lift                DOUBLE PRECISION NOT NULL DEFAULT 0,
        p_value             DOUBLE PRECISION NOT NULL DEFAULT 1,
        is_significant      BOOLEAN NOT NULL DEFAULT FALSE,
        ci_lower            DOUBLE PRECISION NOT NULL DEFAULT 0,
        ci_upper            DOUBLE PRECISION NOT NULL DEFAULT 0,
        last_updated        TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""

SCHEMA_STATEMENTS: List[str] = [
    CREATE_PLATFORM_INTEGRATION,
    CREATE_CONTENT,
    CREATE_CONTENT_INDEX,
    CREATE_PERFORMANCE_RECORD,
    CREATE_PERFORMANCE_EXPERIMENT_INDEX,
    CREATE_PATTERN_INSIGHT,
    CREATE_EXPERIMENT,
    CREATE_EXPERIMENT_RESULT,
]
