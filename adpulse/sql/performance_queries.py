"""
Parameterized SQL for performance records, content and pattern insights.

All writes are idempotent: performance rows upsert on their natural key and
pattern insights replace the single row kept per business.
"""


# Natural key: (business_id, platform, ad_id, date)
UPSERT_PERFORMANCE_RECORD = """
    INSERT INTO performance_record (
        business_id, platform, ad_id, date,
        impressions, clicks, leads, spend,
        experiment_id, variant, content_id, generated_from_insight_id,
        created_at, updated_at
    ) VALUES (
        $1, $2, $3, $4,
        $5, $6, $7, $8,
        $9, $10, $11, $12,
        NOW(), NOW()
    )
    ON CONFLICT (business_id, platform, ad_id, date)
    DO UPDATE SET
        impressions = EXCLUDED.impressions,
        clicks = EXCLUDED.clicks,
        leads = EXCLUDED.leads,
        spend = EXCLUDED.spend,
        experiment_id = EXCLUDED.experiment_id,
        variant = EXCLUDED.variant,
        content_id = EXCLUDED.content_id,
        generated_from_insight_id = EXCLUDED.generated_from_insight_id,
        updated_at = NOW()
"""

SELECT_PERFORMANCE_RECORDS = """
    SELECT
        business_id, platform, ad_id, date,
        impressions, clicks, leads, spend,
        experiment_id, variant, content_id, generated_from_insight_id
    FROM performance_record
    WHERE business_id = $1
    ORDER BY date, platform, ad_id
"""

# $1 experiment_id, $2 window start (date), $3 window end (date), both inclusive
AGGREGATE_EXPERIMENT_PERFORMANCE = """
    SELECT
        variant,
        COALESCE(SUM(impressions), 0) AS impressions,
        COALESCE(SUM(clicks), 0) AS clicks,
        COALESCE(SUM(leads), 0) AS conversions
    FROM performance_record
    WHERE experiment_id = $1
      AND variant IS NOT NULL
      AND date >= $2
      AND date <= $3
    GROUP BY variant
"""

SELECT_CONTENT_WITH_AD = """
    SELECT
        id,
        business_id,
        metadata->>'adId' AS ad_id,
        generated_from_insight_id,
        parsed_content
    FROM content
    WHERE business_id = $1
      AND metadata->>'adId' IS NOT NULL
"""

REPLACE_PATTERN_INSIGHTS = """
    INSERT INTO pattern_insight (business_id, insights, updated_at)
    VALUES ($1, $2::jsonb, NOW())
    ON CONFLICT (business_id)
    DO UPDATE SET
        insights = EXCLUDED.insights,
        updated_at = NOW()
"""

SELECT_PATTERN_INSIGHTS = """
    SELECT insights
    FROM pattern_insight
    WHERE business_id = $1
"""
