"""
Package initialization file for AdPulse models.

Exports all Pydantic schemas and enumerations from schemas.py and enums.py,
making them importable from adpulse.models directly.

Usage:
    from adpulse.models import (
        Experiment,
        ExperimentResult,
        PerformanceRecord,
        Platform,
    )
"""

# =============================================================================
# Enums
# =============================================================================

from adpulse.models.enums import (
    AlertLevel,
    ExperimentStatus,
    IntegrationStatus,
    Platform,
    VariantName,
)

# =============================================================================
# Schemas
# =============================================================================

from adpulse.models.schemas import (
    # Ingestion
    PerformanceRecord,
    AdTag,
    ContentElement,
    ContentRecord,
    # Pattern insights
    PartitionStats,
    ConfidenceInterval,
    PatternPerformance,
    PatternInsight,
    # Experiments
    ExperimentSplit,
    Experiment,
    VariantStats,
    ExperimentArms,
    ExperimentResult,
    # Integrations, alerts, runs
    PlatformIntegration,
    Alert,
    BatchRunSummary,
    utc_now,
)


__all__ = [
    # Enums
    'AlertLevel',
    'ExperimentStatus',
    'IntegrationStatus',
    'Platform',
    'VariantName',
    # Ingestion
    'PerformanceRecord',
    'AdTag',
    'ContentElement',
    'ContentRecord',
    # Pattern insights
    'PartitionStats',
    'ConfidenceInterval',
    'PatternPerformance',
    'PatternInsight',
    # Experiments
    'ExperimentSplit',
    'Experiment',
    'VariantStats',
    'ExperimentArms',
    'ExperimentResult',
    # Integrations, alerts, runs
    'PlatformIntegration',
    'Alert',
    'BatchRunSummary',
    'utc_now',
]
