"""
Pydantic models for the AdPulse engine.

This module provides type-safe data validation for everything the engine
reads, computes and persists: normalized performance rows, content records
and their parsed elements, pattern insights, experiments with their cached
results, platform integrations, alerts and batch run summaries.

Validation rules enforced at construction time:
- Performance counters (impressions, clicks, leads, spend) are non-negative
- An experiment split has both shares in 1..99 and sums to exactly 100
- An experiment end_date is not before its start_date
- Naive experiment datetimes are interpreted as UTC

All models use Pydantic v2 syntax with proper field validation and examples.
"""

from datetime import datetime, timezone, date as DateType
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from adpulse.models.enums import (
    AlertLevel,
    ExperimentStatus,
    IntegrationStatus,
    Platform,
    VariantName,
)


def utc_now() -> datetime:
    """Timezone-aware current time used for every timestamp the engine writes."""
    return datetime.now(timezone.utc)


# =============================================================================
# Ingestion Models
# =============================================================================


class PerformanceRecord(BaseModel):
    """
    One day of delivery metrics for one ad on one platform.

    Natural key: (business_id, platform, ad_id, date). The ETL upserts on this
    key, so re-ingesting the same day overwrites instead of duplicating.
    Experiment and content tags are attached by the ETL from the business's
    content records and active experiments.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "business_id": "biz_123",
                "platform": "meta",
                "ad_id": "23851234567890",
                "date": "2026-10-17",
                "impressions": 1200,
                "clicks": 48,
                "leads": 3,
                "spend": 25.4,
                "experiment_id": None,
                "variant": None,
                "content_id": "content_42",
                "generated_from_insight_id": None,
            }
        }
    )

    business_id: str = Field(..., min_length=1)
    platform: Platform
    ad_id: str = Field(..., min_length=1)
    date: DateType
    impressions: int = Field(default=0, ge=0)
    clicks: int = Field(default=0, ge=0)
    leads: int = Field(default=0, ge=0)
    spend: float = Field(default=0.0, ge=0)
    experiment_id: Optional[str] = None
    variant: Optional[VariantName] = None
    content_id: Optional[str] = None
    generated_from_insight_id: Optional[str] = None


class AdTag(BaseModel):
    """Content and experiment attribution attached to every record of one ad."""
    content_id: str
    generated_from_insight_id: Optional[str] = None
    experiment_id: Optional[str] = None
    variant: Optional[VariantName] = None


class ContentElement(BaseModel):
    """A single parsed element of a piece of content (headline, phrase, visual motif)."""
    type: str = Field(..., min_length=1)
    value: str

    @property
    def key(self) -> str:
        """Element key in the "type:value" form used by the pattern analyzer."""
        return f"{self.type}:{self.value}"


class ContentRecord(BaseModel):
    """
    A piece of generated content as seen by the engine.

    ad_id comes from the content's metadata.adId once the content has been
    published as an ad. Content without an ad id carries no performance and
    is ignored by both the tag mapping and the element index.
    """
    id: str
    business_id: str
    ad_id: Optional[str] = None
    generated_from_insight_id: Optional[str] = None
    parsed_content: List[ContentElement] = Field(default_factory=list)


# =============================================================================
# Pattern Insight Models
# =============================================================================


class PartitionStats(BaseModel):
    """Aggregated delivery of the ads on one side of an element partition."""
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0
    sample_size: int = 0


class ConfidenceInterval(BaseModel):
    lower: float = 0.0
    upper: float = 0.0


class PatternPerformance(BaseModel):
    with_element: PartitionStats
    without_element: PartitionStats
    uplift: float
    confidence: float
    confidence_interval: Optional[ConfidenceInterval] = None


class PatternInsight(BaseModel):
    """
    A content element whose presence is associated with a higher CTR.

    Only emitted when at least pattern_min_ads ads carry the element, the
    relative CTR uplift reaches pattern_min_uplift and the chi-square test is
    significant. confidence is 1 - p_value.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "element": "Free shipping today",
                "element_type": "headline",
                "performance": {
                    "with_element": {"impressions": 3000, "clicks": 150, "ctr": 0.05, "sample_size": 3},
                    "without_element": {"impressions": 3000, "clicks": 90, "ctr": 0.03, "sample_size": 3},
                    "uplift": 0.6667,
                    "confidence": 0.9999,
                    "confidence_interval": {"lower": 0.6161, "upper": 0.7173},
                },
            }
        }
    )

    element: str
    element_type: str
    performance: PatternPerformance


# =============================================================================
# Experiment Models
# =============================================================================


class ExperimentSplit(BaseModel):
    """
    Traffic split between the two arms, in percent.

    Each share must be within 1..99 and the two must sum to exactly 100.
    """
    original: int = Field(..., ge=1, le=99)
    variant: int = Field(..., ge=1, le=99)

    @model_validator(mode='after')
    def check_sum(self) -> 'ExperimentSplit':
        if self.original + self.variant != 100:
            raise ValueError(
                f"split must sum to 100, got {self.original} + {self.variant}"
            )
        return self


class Experiment(BaseModel):
    """
    A two-variant content experiment.

    Created active; becomes completed explicitly or automatically once
    end_date has passed during a results computation; may be paused manually.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "exp_1",
                "business_id": "biz_123",
                "name": "Headline test",
                "content_id_original": "content_1",
                "content_id_variant": "content_2",
                "split": {"original": 50, "variant": 50},
                "start_date": "2026-10-01T00:00:00Z",
                "end_date": "2026-10-31T00:00:00Z",
                "status": "active",
            }
        }
    )

    id: str = Field(default_factory=lambda: str(uuid4()))
    business_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    content_id_original: str
    content_id_variant: str
    split: ExperimentSplit
    start_date: datetime
    end_date: datetime
    status: ExperimentStatus = ExperimentStatus.ACTIVE

    @field_validator('start_date', 'end_date')
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode='after')
    def check_dates(self) -> 'Experiment':
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class VariantStats(BaseModel):
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    conversion_rate: float = 0.0


class ExperimentArms(BaseModel):
    original: VariantStats = Field(default_factory=VariantStats)
    variant: VariantStats = Field(default_factory=VariantStats)


class ExperimentResult(BaseModel):
    """
    Cached outcome of an experiment, one row per experiment.

    lift is the relative conversion-rate difference of the variant over the
    original in percent; confidence_interval bounds that lift at 95%.
    Rebuilt from performance records on every computation.
    """
    experiment_id: str
    results: ExperimentArms = Field(default_factory=ExperimentArms)
    lift: float = 0.0
    p_value: float = 1.0
    is_significant: bool = False
    confidence_interval: ConfidenceInterval = Field(default_factory=ConfidenceInterval)
    last_updated: datetime = Field(default_factory=utc_now)


# =============================================================================
# Integration, Alert and Run Models
# =============================================================================


class PlatformIntegration(BaseModel):
    """Connection of one business to one ad platform."""
    business_id: str
    platform: Platform
    account_id: str
    access_token: str
    is_connected: bool = True
    needs_reauth: bool = False
    status: IntegrationStatus = IntegrationStatus.CONNECTED
    error_message: Optional[str] = None
    last_synced: Optional[datetime] = None

    @property
    def is_eligible(self) -> bool:
        """Whether the ETL should sync this integration."""
        return (
            self.is_connected
            and not self.needs_reauth
            and self.status != IntegrationStatus.ERROR
        )


class Alert(BaseModel):
    level: AlertLevel
    message: str
    source: str
    business_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class BatchRunSummary(BaseModel):
    """Counters describing one run_batch() invocation."""
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    report_date: Optional[DateType] = None
    businesses_processed: int = 0
    integrations_skipped: int = 0
    platforms_synced: int = 0
    platforms_failed: int = 0
    records_upserted: int = 0
    insights_generated: int = 0
    analysis_failures: int = 0
    experiments_computed: int = 0
    experiments_completed: int = 0
    experiment_failures: int = 0
