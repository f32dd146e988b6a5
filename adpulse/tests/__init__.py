'''
AdPulse Engine Test Suite

Test Modules:
-------------
- test_statistics.py: chi-square, Wilson and lift/uplift intervals, zero safety
- test_fetcher.py: pagination, retry/backoff, exhaustion handling, concurrency gates
- test_platforms.py: Meta and Google Ads request building and normalization
- test_content_index.py: element index construction and candidate selection
- test_pattern_analyzer.py: pattern thresholds, ranking and replacement
- test_variant_assignment.py: determinism, uniformity and split validation
- test_experiments.py: lift arithmetic, auto-completion, lifecycle functions
- test_etl_batch.py: end-to-end batch, idempotency and failure isolation
- test_repository.py: SQL and row mapping against a mocked asyncpg pool
- test_alerts.py: logging and Slack webhook delivery
- test_config.py / test_main.py: settings loading and the CLI entry point

Running Tests:
--------------
    pip install -e ".[test]"
    pytest

See conftest.py for shared fixtures and fakes.
'''

__all__ = []
