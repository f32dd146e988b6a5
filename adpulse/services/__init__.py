"""
AdPulse Services Module

This module contains the business logic of the AdPulse engine.

Services:
- statistics: Chi-square, Wilson and lift confidence intervals (pure functions)
- fetcher: Rate-limited, retrying, paginating platform client
- platforms: Meta and Google Ads request building and normalization
- content_index: Content element to ad id index
- pattern_analyzer: Content element significance analysis
- variant_assignment: Deterministic experiment arm assignment
- experiments: Experiment result computation and lifecycle
- alerts: Logged and Slack-delivered operational alerts
- repository: asyncpg data access

Analysis and assignment logic is pure; services that touch the database or
the network receive their collaborators through their constructors so tests
can substitute fakes.
"""

# =============================================================================
# Statistics
# =============================================================================

from adpulse.services.statistics import (
    safe_rate,
    chi_square_statistic,
    chi_square_p_value,
    chi_square_test,
    proportion_confidence_interval,
    lift_confidence_interval,
    uplift_confidence_interval,
)

# =============================================================================
# Fetching and Platforms
# =============================================================================

from adpulse.services.fetcher import (
    ConcurrencyGates,
    PageRequest,
    PlatformRequestError,
    RateLimitedFetcher,
    RetryExhaustedError,
)
from adpulse.services.platforms import (
    GoogleAdsAdapter,
    MetaAdapter,
    PlatformAdapter,
    build_adapters,
)

# =============================================================================
# Analysis and Experiments
# =============================================================================

from adpulse.services.content_index import ContentElementIndex, split_key
from adpulse.services.pattern_analyzer import PatternSignificanceAnalyzer
from adpulse.services.variant_assignment import assign, bucket_for
from adpulse.services.experiments import (
    ExperimentNotFoundError,
    ExperimentResultsCalculator,
    create_experiment,
    get_results,
    summarize_experiment,
    update_experiment_status,
)

# =============================================================================
# Infrastructure
# =============================================================================

from adpulse.services.alerts import AlertService
from adpulse.services.repository import AdPulseRepository


__all__ = [
    # Statistics
    'safe_rate',
    'chi_square_statistic',
    'chi_square_p_value',
    'chi_square_test',
    'proportion_confidence_interval',
    'lift_confidence_interval',
    'uplift_confidence_interval',
    # Fetching and platforms
    'ConcurrencyGates',
    'PageRequest',
    'PlatformRequestError',
    'RateLimitedFetcher',
    'RetryExhaustedError',
    'GoogleAdsAdapter',
    'MetaAdapter',
    'PlatformAdapter',
    'build_adapters',
    # Analysis and experiments
    'ContentElementIndex',
    'split_key',
    'PatternSignificanceAnalyzer',
    'assign',
    'bucket_for',
    'ExperimentNotFoundError',
    'ExperimentResultsCalculator',
    'create_experiment',
    'get_results',
    'summarize_experiment',
    'update_experiment_status',
    # Infrastructure
    'AlertService',
    'AdPulseRepository',
]
