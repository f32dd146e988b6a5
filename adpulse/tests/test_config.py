"""
Tests for environment-driven settings.
"""

import pytest
from pydantic import ValidationError

from adpulse.core.config import Settings, get_settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in ('DATABASE_URL', 'SLACK_WEBHOOK_URL', 'CRON_ETL_SCHEDULE', 'ETL_MAX_RETRIES'):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


class TestSettings:

    def test_defaults(self, clean_env) -> None:
        clean_env.setenv('DATABASE_URL', 'postgresql://u:p@db:5432/adpulse')

        settings = Settings(_env_file=None)

        assert settings.cron_etl_schedule == '0 3 * * *'
        assert settings.slack_webhook_url is None
        assert (settings.etl_global_concurrency, settings.etl_business_concurrency) == (5, 3)
        assert settings.etl_max_retries == 5
        assert (settings.etl_backoff_base_ms, settings.etl_backoff_jitter_ms, settings.etl_backoff_max_ms) == (
            1000, 1000, 30000
        )
        assert settings.pattern_min_ads == 3
        assert settings.pattern_min_uplift == pytest.approx(0.15)
        assert settings.pattern_max_insights == 5

    def test_environment_overrides(self, clean_env) -> None:
        clean_env.setenv('DATABASE_URL', 'postgresql://u:p@db:5432/adpulse')
        clean_env.setenv('CRON_ETL_SCHEDULE', '30 2 * * *')
        clean_env.setenv('ETL_MAX_RETRIES', '2')

        settings = Settings(_env_file=None)

        assert settings.cron_etl_schedule == '30 2 * * *'
        assert settings.etl_max_retries == 2

    def test_database_url_is_required(self, clean_env) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_get_settings_is_cached(self, clean_env) -> None:
        clean_env.setenv('DATABASE_URL', 'postgresql://u:p@db:5432/adpulse')

        assert get_settings() is get_settings()
