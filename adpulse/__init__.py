"""
AdPulse Engine Package.

Ad-performance ETL and statistical analysis engine: ingests daily ad metrics
from Meta and Google Ads, detects content elements associated with higher
click-through rates, and computes A/B experiment results.

Subpackages:
    - core: Configuration, database pool and Prometheus counters
    - models: Pydantic schemas and enums
    - services: Fetching, platform adapters, statistics, analysis and persistence
    - jobs: The daily ETL batch
    - sql: Table definitions and parameterized SQL
"""

__version__ = "1.0.0"
