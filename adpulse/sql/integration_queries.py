"""
Parameterized SQL for platform integrations (the ETL's credential source).
"""

from typing import Optional


INTEGRATION_COLUMNS = """
    business_id, platform, account_id, access_token,
    is_connected, needs_reauth, status, error_message, last_synced
"""


def get_platform_integrations_query(filter_business_ids: bool = False) -> str:
    """
    Generate SQL selecting platform integrations.

    All integrations are returned, eligible or not; the orchestrator decides
    which ones to sync so that skipped integrations can be counted.

    Args:
        filter_business_ids: Restrict to business_id = ANY($1::text[]).

    Returns:
        str: Parameterized PostgreSQL query string.
    """
    where_clause: Optional[str] = None
    if filter_business_ids:
        where_clause = "WHERE business_id = ANY($1::text[])"

    return f"""
    SELECT {INTEGRATION_COLUMNS}
    FROM platform_integration
    {where_clause or ''}
    ORDER BY business_id, platform
    """


# Successful sync clears any previous error
MARK_INTEGRATION_SYNCED = """
    UPDATE platform_integration
    SET last_synced = $3,
        status = 'connected',
        error_message = NULL,
        updated_at = NOW()
    WHERE business_id = $1 AND platform = $2
"""

MARK_INTEGRATION_ERROR = """
    UPDATE platform_integration
    SET status = 'error',
        error_message = $3,
        updated_at = NOW()
    WHERE business_id = $1 AND platform = $2
"""
