"""
Enumeration definitions for the AdPulse engine.

All enums inherit from both `str` and `Enum` to ensure JSON serialization
compatibility with Pydantic models and so the stored database values are the
plain enum values.
"""

from enum import Enum


class Platform(str, Enum):
    """
    External ad platforms the ETL ingests from.

    Values: ['meta', 'google']

    The value is also the `platform` label on every ETL Prometheus counter
    and the `platform` column of performance_record / platform_integration.
    """
    META = "meta"
    GOOGLE = "google"


class ExperimentStatus(str, Enum):
    """
    Lifecycle state of an A/B experiment.

    Values: ['active', 'paused', 'completed']

    - active: Created state; results are computed on each batch
    - paused: Manually paused; excluded from results computation
    - completed: Set manually or automatically once end_date has passed
    """
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class VariantName(str, Enum):
    """Arm of a two-variant experiment."""
    ORIGINAL = "original"
    VARIANT = "variant"


class AlertLevel(str, Enum):
    """
    Severity of an operational alert.

    Values: ['info', 'warning', 'error']
    """
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class IntegrationStatus(str, Enum):
    """
    Sync status of a platform integration.

    Values: ['connected', 'error']

    An integration in 'error' is skipped by the ETL until it is reconnected
    by the external OAuth layer.
    """
    CONNECTED = "connected"
    ERROR = "error"
