"""
Core infrastructure package for the AdPulse engine.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL database connectivity via asyncpg
- Prometheus counters for the ETL batch

This module re-exports key components from submodules for convenient importing:

    from adpulse.core import get_settings, get_db_pool

Instead of:

    from adpulse.core.config import get_settings
    from adpulse.core.database import get_db_pool

Components Re-exported:
    Settings: Pydantic settings class with all configuration parameters
    get_settings: Function returning the cached Settings singleton
    init_db: Async function to initialize the database connection pool
    close_db: Async function to close the database connection pool
    get_db_pool: Async function to get the database connection pool
    ensure_schema: Async function creating missing tables
"""

# =============================================================================
# Re-exports from adpulse.core.config
# =============================================================================
from adpulse.core.config import Settings, get_settings

# =============================================================================
# Re-exports from adpulse.core.database
# =============================================================================
from adpulse.core.database import init_db, close_db, get_db_pool, ensure_schema


__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Database pool lifecycle (from database.py)
    'init_db',
    'close_db',
    'get_db_pool',
    'ensure_schema',
]
