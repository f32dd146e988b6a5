"""
Experiment Results and Lifecycle

This module computes the cached result of a two-variant experiment from the
performance records tagged with it, and provides the small lifecycle API
around experiments (create, change status, read results).

Result Computation:
1. Load the experiment (ExperimentNotFoundError when missing)
2. Complete it when it is active and its end_date has passed
3. Sum impressions, clicks and leads (conversions) per variant over
   [start_date, min(end_date, now)]
4. conversion_rate = conversions / impressions (0 when no impressions)
5. lift = (variant_rate - original_rate) / original_rate * 100 (0 when the
   original rate is 0)
6. 2x2 chi-square on conversions vs non-conversions; significant when
   p < experiment_significance_level
7. 95% confidence interval for the lift
8. Upsert the single result row; when the experiment just completed with a
   significant result, send an info alert with the lift

Usage:
    calculator = ExperimentResultsCalculator(repository, alerts)
    result = await calculator.compute_results('exp_1')
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Protocol, Union

from adpulse.core.config import Settings, get_settings
from adpulse.models import (
    Alert,
    AlertLevel,
    ConfidenceInterval,
    Experiment,
    ExperimentArms,
    ExperimentResult,
    ExperimentStatus,
    VariantName,
    VariantStats,
    utc_now,
)
from adpulse.services.statistics import chi_square_test, lift_confidence_interval, safe_rate

# Configure module logger
logger = logging.getLogger(__name__)


class ExperimentNotFoundError(Exception):
    """No experiment exists with the requested id."""

    def __init__(self, experiment_id: str) -> None:
        super().__init__(f"Experiment {experiment_id} not found")
        self.experiment_id = experiment_id


class ExperimentRepository(Protocol):
    async def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        ...

    async def insert_experiment(self, experiment: Experiment, initial_result: ExperimentResult) -> None:
        ...

    async def update_experiment_status(self, experiment_id: str, status: ExperimentStatus) -> bool:
        ...

    async def aggregate_experiment_performance(self, experiment_id: str, window_start: Any, window_end: Any) -> Dict[VariantName, VariantStats]:
        ...

    async def upsert_experiment_result(self, result: ExperimentResult) -> None:
        ...

    async def get_experiment_result(self, experiment_id: str) -> Optional[ExperimentResult]:
        ...


# =============================================================================
# Pure Computation
# =============================================================================


def with_rate(stats: VariantStats) -> VariantStats:
    return stats.model_copy(
        update={'conversion_rate': safe_rate(stats.conversions, stats.impressions)}
    )


def summarize_experiment(
    experiment_id: str,
    original: VariantStats,
    variant: VariantStats,
    significance_level: float = 0.05,
    computed_at: Optional[datetime] = None,
) -> ExperimentResult:
    """
    Build an ExperimentResult from the per-variant totals.

    Example:
        >>> result = summarize_experiment(
        ...     'exp_1',
        ...     VariantStats(impressions=1000, conversions=100),
        ...     VariantStats(impressions=1000, conversions=150),
        ... )
        >>> round(result.lift, 1)
        50.0
    """
    original = with_rate(original)
    variant = with_rate(variant)

    lift = safe_rate(variant.conversion_rate - original.conversion_rate, original.conversion_rate) * 100

    _, p_value = chi_square_test([
        [original.conversions, max(original.impressions - original.conversions, 0)],
        [variant.conversions, max(variant.impressions - variant.conversions, 0)],
    ])

    _, lower, upper = lift_confidence_interval(
        original.conversions, original.impressions,
        variant.conversions, variant.impressions,
    )

    return ExperimentResult(
        experiment_id=experiment_id,
        results=ExperimentArms(original=original, variant=variant),
        lift=lift,
        p_value=p_value,
        is_significant=p_value < significance_level,
        confidence_interval=ConfidenceInterval(lower=lower, upper=upper),
        last_updated=computed_at or utc_now(),
    )


def _as_utc_date(value: datetime):
    return value.astimezone(timezone.utc).date()


# =============================================================================
# Results Calculator
# =============================================================================


class ExperimentResultsCalculator:
    """Recomputes and stores experiment results; completes expired experiments."""

    def __init__(
        self,
        repository: ExperimentRepository,
        alerts: Any,
        settings: Optional[Settings] = None,
    ) -> None:
        self.repository = repository
        self.alerts = alerts
        self.settings = settings or get_settings()

    async def compute_results(self, experiment_id: str, now: Optional[datetime] = None) -> ExperimentResult:
        """
        Recompute the result of one experiment.

        Args:
            experiment_id: Experiment to compute.
            now: Reference time; defaults to the current UTC time.

        Returns:
            The stored ExperimentResult.

        Raises:
            ExperimentNotFoundError: No experiment has this id.
        """
        now = now or utc_now()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        experiment = await self.repository.get_experiment(experiment_id)
        if experiment is None:
            raise ExperimentNotFoundError(experiment_id)

        just_completed = False
        if experiment.status == ExperimentStatus.ACTIVE and experiment.end_date < now:
            await self.repository.update_experiment_status(experiment_id, ExperimentStatus.COMPLETED)
            experiment = experiment.model_copy(update={'status': ExperimentStatus.COMPLETED})
            just_completed = True
            logger.info(f"Experiment {experiment_id} reached its end date and was completed")

        window_end = min(experiment.end_date, now)
        totals = await self.repository.aggregate_experiment_performance(
            experiment_id,
            _as_utc_date(experiment.start_date),
            _as_utc_date(window_end),
        )

        result = summarize_experiment(
            experiment_id,
            totals.get(VariantName.ORIGINAL, VariantStats()),
            totals.get(VariantName.VARIANT, VariantStats()),
            significance_level=self.settings.experiment_significance_level,
            computed_at=now,
        )
        await self.repository.upsert_experiment_result(result)

        if just_completed and result.is_significant:
            await self.alerts.send(
                Alert(
                    level=AlertLevel.INFO,
                    message=(
                        f"Experiment '{experiment.name}' completed with a significant result: "
                        f"variant lift {result.lift:.1f}%"
                    ),
                    source='experiments',
                    business_id=experiment.business_id,
                    details={
                        'experiment_id': experiment_id,
                        'p_value': round(result.p_value, 6),
                    },
                )
            )

        return result


# =============================================================================
# Lifecycle
# =============================================================================


async def create_experiment(
    repository: ExperimentRepository,
    data: Union[Experiment, Mapping[str, Any]],
) -> Experiment:
    """
    Validate and persist a new experiment together with an empty result.

    Raises:
        pydantic.ValidationError: The split or dates are invalid; nothing is written.
    """
    experiment = data if isinstance(data, Experiment) else Experiment.model_validate(data)
    await repository.insert_experiment(experiment, ExperimentResult(experiment_id=experiment.id))
    logger.info(f"Created experiment {experiment.id} for business {experiment.business_id}")
    return experiment


async def update_experiment_status(
    repository: ExperimentRepository,
    experiment_id: str,
    status: Union[ExperimentStatus, str],
) -> Experiment:
    """
    Pause, resume or complete an experiment.

    Raises:
        ExperimentNotFoundError: No experiment has this id.
        ValueError: The status is not a valid ExperimentStatus.
    """
    status = ExperimentStatus(status)

    experiment = await repository.get_experiment(experiment_id)
    if experiment is None:
        raise ExperimentNotFoundError(experiment_id)

    await repository.update_experiment_status(experiment_id, status)
    return experiment.model_copy(update={'status': status})


async def get_results(repository: ExperimentRepository, experiment_id: str) -> Optional[ExperimentResult]:
    """Cached result of an experiment, or None when there is none."""
    return await repository.get_experiment_result(experiment_id)
