"""
Tests for experiment result computation and the experiment lifecycle.

Reference scenario: the original converts 100 of 1000 impressions and the
variant 150 of 1000, a 50% lift with a 95% interval of roughly 21%..79%.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from adpulse.models import AlertLevel, ExperimentStatus, VariantName, VariantStats
from adpulse.services.experiments import (
    ExperimentNotFoundError,
    ExperimentResultsCalculator,
    create_experiment,
    get_results,
    summarize_experiment,
    update_experiment_status,
)
from adpulse.tests.conftest import make_experiment, make_record


pytestmark = pytest.mark.asyncio


NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def tagged(ad_id: str, variant: VariantName, impressions: int, leads: int, day: date, experiment_id: str = 'exp_1'):
    return make_record(
        ad_id,
        impressions,
        clicks=leads * 2,
        leads=leads,
        day=day,
        experiment_id=experiment_id,
        variant=variant,
    )


def seed_reference(repository, day: date = date(2026, 10, 10), experiment_id: str = 'exp_1') -> None:
    repository.add_performance([
        tagged('ad_o', VariantName.ORIGINAL, 1000, 100, day, experiment_id),
        tagged('ad_v', VariantName.VARIANT, 1000, 150, day, experiment_id),
    ])


class TestSummarizeExperiment:

    async def test_fifty_percent_lift(self) -> None:
        result = summarize_experiment(
            'exp_1',
            VariantStats(impressions=1000, clicks=200, conversions=100),
            VariantStats(impressions=1000, clicks=300, conversions=150),
        )

        assert result.results.original.conversion_rate == pytest.approx(0.10)
        assert result.results.variant.conversion_rate == pytest.approx(0.15)
        assert result.lift == pytest.approx(50.0)
        assert 15 <= result.confidence_interval.lower <= 35
        assert 65 <= result.confidence_interval.upper <= 85
        assert result.p_value < 0.05
        assert result.is_significant is True

    async def test_no_data_is_safe(self) -> None:
        result = summarize_experiment('exp_1', VariantStats(), VariantStats())

        assert result.lift == 0.0
        assert result.p_value == 1.0
        assert result.is_significant is False
        assert result.results.original.conversion_rate == 0.0
        assert (result.confidence_interval.lower, result.confidence_interval.upper) == (0.0, 0.0)

    async def test_zero_baseline_rate(self) -> None:
        result = summarize_experiment(
            'exp_1',
            VariantStats(impressions=1000, conversions=0),
            VariantStats(impressions=1000, conversions=10),
        )

        assert result.lift == 0.0
        assert result.confidence_interval.lower == 0.0
        assert result.confidence_interval.upper == 0.0

    async def test_significance_level_is_configurable(self) -> None:
        result = summarize_experiment(
            'exp_1',
            VariantStats(impressions=1000, conversions=100),
            VariantStats(impressions=1000, conversions=150),
            significance_level=0.0001,
        )

        assert result.is_significant is False


class TestComputeResults:

    async def test_running_experiment(self, repository, alerts, settings) -> None:
        # Arrange
        repository.experiments['exp_1'] = make_experiment()
        seed_reference(repository)
        calculator = ExperimentResultsCalculator(repository, alerts, settings)

        # Act
        result = await calculator.compute_results('exp_1', now=NOW)

        # Assert
        assert result.lift == pytest.approx(50.0)
        assert result.results.original.impressions == 1000
        assert result.results.variant.conversions == 150
        assert result.last_updated == NOW
        assert repository.results['exp_1'] == result
        assert repository.experiments['exp_1'].status == ExperimentStatus.ACTIVE
        assert alerts.sent == []

    async def test_window_excludes_records_outside_experiment(self, repository, alerts, settings) -> None:
        repository.experiments['exp_1'] = make_experiment()
        seed_reference(repository)
        repository.add_performance([
            tagged('ad_o', VariantName.ORIGINAL, 5000, 0, date(2026, 9, 30)),    # before start
            tagged('ad_o', VariantName.ORIGINAL, 5000, 0, date(2026, 10, 25)),   # after now
            tagged('ad_x', VariantName.ORIGINAL, 5000, 0, date(2026, 10, 10), experiment_id='exp_other'),
        ])

        result = await ExperimentResultsCalculator(repository, alerts, settings).compute_results('exp_1', now=NOW)

        assert result.results.original.impressions == 1000
        assert result.lift == pytest.approx(50.0)

    async def test_expired_experiment_is_completed_with_alert(self, repository, alerts, settings) -> None:
        repository.experiments['exp_1'] = make_experiment(end=datetime(2026, 10, 15, tzinfo=timezone.utc))
        seed_reference(repository)

        result = await ExperimentResultsCalculator(repository, alerts, settings).compute_results('exp_1', now=NOW)

        assert repository.experiments['exp_1'].status == ExperimentStatus.COMPLETED
        assert result.is_significant is True
        assert len(alerts.sent) == 1
        alert = alerts.sent[0]
        assert alert.level == AlertLevel.INFO
        assert '50.0%' in alert.message
        assert alert.business_id == 'biz_1'
        assert alert.details['experiment_id'] == 'exp_1'

    async def test_expired_insignificant_experiment_has_no_alert(self, repository, alerts, settings) -> None:
        repository.experiments['exp_1'] = make_experiment(end=datetime(2026, 10, 15, tzinfo=timezone.utc))
        repository.add_performance([
            tagged('ad_o', VariantName.ORIGINAL, 1000, 100, date(2026, 10, 10)),
            tagged('ad_v', VariantName.VARIANT, 1000, 101, date(2026, 10, 10)),
        ])

        await ExperimentResultsCalculator(repository, alerts, settings).compute_results('exp_1', now=NOW)

        assert repository.experiments['exp_1'].status == ExperimentStatus.COMPLETED
        assert alerts.sent == []

    async def test_already_completed_experiment_does_not_alert_again(self, repository, alerts, settings) -> None:
        repository.experiments['exp_1'] = make_experiment(
            end=datetime(2026, 10, 15, tzinfo=timezone.utc),
            status=ExperimentStatus.COMPLETED,
        )
        seed_reference(repository)

        result = await ExperimentResultsCalculator(repository, alerts, settings).compute_results('exp_1', now=NOW)

        assert result.is_significant is True
        assert alerts.sent == []

    async def test_completed_window_ends_at_end_date(self, repository, alerts, settings) -> None:
        repository.experiments['exp_1'] = make_experiment(end=datetime(2026, 10, 15, tzinfo=timezone.utc))
        seed_reference(repository)
        repository.add_performance([tagged('ad_v', VariantName.VARIANT, 1000, 0, date(2026, 10, 16))])

        result = await ExperimentResultsCalculator(repository, alerts, settings).compute_results('exp_1', now=NOW)

        assert result.results.variant.impressions == 1000

    async def test_unknown_experiment(self, repository, alerts, settings) -> None:
        calculator = ExperimentResultsCalculator(repository, alerts, settings)

        with pytest.raises(ExperimentNotFoundError):
            await calculator.compute_results('missing', now=NOW)

    async def test_naive_now_is_treated_as_utc(self, repository, alerts, settings) -> None:
        repository.experiments['exp_1'] = make_experiment()
        seed_reference(repository)

        result = await ExperimentResultsCalculator(repository, alerts, settings).compute_results(
            'exp_1', now=NOW.replace(tzinfo=None)
        )

        assert result.lift == pytest.approx(50.0)


class TestLifecycle:

    async def test_create_experiment_stores_empty_result(self, repository) -> None:
        experiment = await create_experiment(repository, {
            'business_id': 'biz_1',
            'name': 'CTA wording',
            'content_id_original': 'c1',
            'content_id_variant': 'c2',
            'split': {'original': 50, 'variant': 50},
            'start_date': NOW,
            'end_date': NOW + timedelta(days=14),
        })

        assert repository.experiments[experiment.id].status == ExperimentStatus.ACTIVE
        stored = await get_results(repository, experiment.id)
        assert stored.lift == 0.0
        assert stored.results.original.impressions == 0
        assert stored.is_significant is False

    async def test_create_experiment_with_bad_split_persists_nothing(self, repository) -> None:
        with pytest.raises(ValidationError):
            await create_experiment(repository, {
                'business_id': 'biz_1',
                'name': 'CTA wording',
                'content_id_original': 'c1',
                'content_id_variant': 'c2',
                'split': {'original': 60, 'variant': 50},
                'start_date': NOW,
                'end_date': NOW + timedelta(days=14),
            })

        assert repository.experiments == {}
        assert repository.results == {}

    async def test_pause_and_resume(self, repository) -> None:
        repository.experiments['exp_1'] = make_experiment()

        paused = await update_experiment_status(repository, 'exp_1', 'paused')
        assert paused.status == ExperimentStatus.PAUSED
        assert repository.experiments['exp_1'].status == ExperimentStatus.PAUSED

        await update_experiment_status(repository, 'exp_1', ExperimentStatus.ACTIVE)
        assert repository.experiments['exp_1'].status == ExperimentStatus.ACTIVE

    async def test_update_unknown_experiment(self, repository) -> None:
        with pytest.raises(ExperimentNotFoundError):
            await update_experiment_status(repository, 'missing', ExperimentStatus.PAUSED)

    async def test_invalid_status(self, repository) -> None:
        repository.experiments['exp_1'] = make_experiment()

        with pytest.raises(ValueError):
            await update_experiment_status(repository, 'exp_1', 'archived')

    async def test_get_results_for_unknown_experiment(self, repository) -> None:
        assert await get_results(repository, 'missing') is None
