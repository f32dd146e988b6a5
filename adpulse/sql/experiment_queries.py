"""
Parameterized SQL for experiments and their cached results.
"""

from typing import List


EXPERIMENT_COLUMNS = """
    id, business_id, name, content_id_original, content_id_variant,
    split_original, split_variant, start_date, end_date, status
"""

INSERT_EXPERIMENT = """
    INSERT INTO experiment (
        id, business_id, name, content_id_original, content_id_variant,
        split_original, split_variant, start_date, end_date, status,
        created_at, updated_at
    ) VALUES (
        $1, $2, $3, $4, $5,
        $6, $7, $8, $9, $10,
        NOW(), NOW()
    )
"""

SELECT_EXPERIMENT = f"""
    SELECT {EXPERIMENT_COLUMNS}
    FROM experiment
    WHERE id = $1
"""

UPDATE_EXPERIMENT_STATUS = """
    UPDATE experiment
    SET status = $2, updated_at = NOW()
    WHERE id = $1
"""

# Created together with the experiment; later computations overwrite it
INSERT_EMPTY_EXPERIMENT_RESULT = """
    INSERT INTO experiment_result (
        experiment_id, results, lift, p_value, is_significant,
        ci_lower, ci_upper, last_updated
    ) VALUES ($1, $2::jsonb, 0, 1, FALSE, 0, 0, NOW())
    ON CONFLICT (experiment_id) DO NOTHING
"""

UPSERT_EXPERIMENT_RESULT = """
    INSERT INTO experiment_result (
        experiment_id, results, lift, p_value, is_significant,
        ci_lower, ci_upper, last_updated
    ) VALUES ($1, $2::jsonb, $3, $4, $5, $6, $7, $8)
    ON CONFLICT (experiment_id)
    DO UPDATE SET
        results = EXCLUDED.results,
        lift = EXCLUDED.lift,
        p_value = EXCLUDED.p_value,
        is_significant = EXCLUDED.is_significant,
        ci_lower = EXCLUDED.ci_lower,
        ci_upper = EXCLUDED.ci_upper,
        last_updated = EXCLUDED.last_updated
"""

SELECT_EXPERIMENT_RESULT = """
    SELECT
        experiment_id, results, lift, p_value, is_significant,
        ci_lower, ci_upper, last_updated
    FROM experiment_result
    WHERE experiment_id = $1
"""


def get_active_experiments_query(
    filter_business_ids: bool = False,
    started_only: bool = False,
) -> str:
    """
    Generate SQL selecting active experiments.

    Parameters are numbered in the order the filters are enabled:
    the business id array first (text[]), then the reference time
    (timestamptz) compared against start_date.

    Args:
        filter_business_ids: Restrict to business_id = ANY($n::text[]).
        started_only: Restrict to experiments whose start_date <= $n.

    Returns:
        str: Parameterized PostgreSQL query string.

    Example:
        >>> sql = get_active_experiments_query(filter_business_ids=True, started_only=True)
        >>> rows = await conn.fetch(sql, ['biz_1'], now)
    """
    where_conditions: List[str] = ["status = 'active'"]
    param_index = 1

    if filter_business_ids:
        where_conditions.append(f"business_id = ANY(${param_index}::text[])")
        param_index += 1

    if started_only:
        where_conditions.append(f"start_date <= ${param_index}")
        param_index += 1

    where_clause = " AND ".join(where_conditions)

    return f"""
    SELECT {EXPERIMENT_COLUMNS}
    FROM experiment
    WHERE {where_clause}
    ORDER BY start_date, id
    """
