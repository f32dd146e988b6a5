"""
Pattern Significance Analyzer

This module finds content elements (headlines, phrases, visual motifs) whose
presence in an ad is associated with a higher click-through rate.

Algorithm (per business):
1. Sum impressions and clicks per ad id across all dates and platforms
2. Index parsed content elements by the ads that carry them
3. For each element carried by at least pattern_min_ads ads, partition all ads
   into with/without the element and compare their CTRs
4. Keep elements whose relative uplift reaches pattern_min_uplift and whose
   2x2 chi-square test (clicks vs non-clicks) is significant
5. Sort by uplift descending, keep the top pattern_max_insights, and replace
   the business's stored insight set (even with an empty list)

Per-element statistics:
- ctr = clicks / impressions (0 when there are no impressions)
- uplift = (ctr_with - ctr_without) / ctr_without (0 when ctr_without is 0)
- confidence = 1 - p_value
- confidence_interval = uplift +/- 1.96 * sqrt(1/impr_with + 1/impr_without)
"""

import logging
from typing import Iterable, List, Optional, Protocol

import pandas as pd

from adpulse.core.config import Settings, get_settings
from adpulse.models import (
    ConfidenceInterval,
    ContentRecord,
    PartitionStats,
    PatternInsight,
    PatternPerformance,
    PerformanceRecord,
)
from adpulse.services.content_index import ContentElementIndex, split_key
from adpulse.services.statistics import chi_square_test, safe_rate, uplift_confidence_interval

# Configure module logger
logger = logging.getLogger(__name__)


class PatternRepository(Protocol):
    async def get_content_records(self, business_id: str) -> List[ContentRecord]:
        ...

    async def get_performance_records(self, business_id: str) -> List[PerformanceRecord]:
        ...

    async def replace_pattern_insights(self, business_id: str, insights: List[PatternInsight]) -> None:
        ...

    async def get_pattern_insights(self, business_id: str) -> List[PatternInsight]:
        ...


def aggregate_by_ad(records: Iterable[PerformanceRecord]) -> pd.DataFrame:
    """
    Sum impressions and clicks per ad id.

    Returns:
        DataFrame indexed by ad_id with integer `impressions` and `clicks` columns.
    """
    rows = [
        {'ad_id': record.ad_id, 'impressions': record.impressions, 'clicks': record.clicks}
        for record in records
    ]
    if not rows:
        return pd.DataFrame(columns=['impressions', 'clicks'], index=pd.Index([], name='ad_id'))

    return pd.DataFrame(rows).groupby('ad_id')[['impressions', 'clicks']].sum()


class PatternSignificanceAnalyzer:
    """Computes and stores the pattern insights of a business."""

    def __init__(self, repository: PatternRepository, settings: Optional[Settings] = None) -> None:
        self.repository = repository
        self.settings = settings or get_settings()

    async def analyze(self, business_id: str) -> List[PatternInsight]:
        """
        Recompute the pattern insights of a business and replace the stored set.

        Args:
            business_id: Business to analyze.

        Returns:
            The stored insights, at most pattern_max_insights, uplift descending.
        """
        content_records = await self.repository.get_content_records(business_id)
        performance_records = await self.repository.get_performance_records(business_id)

        insights = self.evaluate(content_records, performance_records)

        await self.repository.replace_pattern_insights(business_id, insights)
        logger.info(f"Stored {len(insights)} pattern insights for business {business_id}")
        return insights

    async def get_insights(self, business_id: str) -> List[PatternInsight]:
        """Insights stored by the last analyze() run; empty when never analyzed."""
        return await self.repository.get_pattern_insights(business_id)

    def evaluate(
        self,
        content_records: Iterable[ContentRecord],
        performance_records: Iterable[PerformanceRecord],
    ) -> List[PatternInsight]:
        """Pure computation behind analyze(); nothing is read or written."""
        settings = self.settings
        index = ContentElementIndex.build(content_records)
        ad_totals = aggregate_by_ad(performance_records)

        if ad_totals.empty or len(index) == 0:
            return []

        insights: List[PatternInsight] = []

        for element_key in index.candidates(settings.pattern_min_ads):
            ads_with = index.ads_with(element_key)
            with_mask = ad_totals.index.isin(list(ads_with))
            with_totals = ad_totals[with_mask]
            without_totals = ad_totals[~with_mask]

            impressions_with = int(with_totals['impressions'].sum())
            clicks_with = int(with_totals['clicks'].sum())
            impressions_without = int(without_totals['impressions'].sum())
            clicks_without = int(without_totals['clicks'].sum())

            ctr_with = safe_rate(clicks_with, impressions_with)
            ctr_without = safe_rate(clicks_without, impressions_without)
            uplift = safe_rate(ctr_with - ctr_without, ctr_without)

            if uplift < settings.pattern_min_uplift:
                continue

            _, p_value = chi_square_test([
                [clicks_with, max(impressions_with - clicks_with, 0)],
                [clicks_without, max(impressions_without - clicks_without, 0)],
            ])
            if p_value >= settings.pattern_significance_level:
                continue

            interval = uplift_confidence_interval(uplift, impressions_with, impressions_without)
            element_type, element = split_key(element_key)

            insights.append(
                PatternInsight(
                    element=element,
                    element_type=element_type,
                    performance=PatternPerformance(
                        with_element=PartitionStats(
                            impressions=impressions_with,
                            clicks=clicks_with,
                            ctr=ctr_with,
                            sample_size=len(ads_with),
                        ),
                        without_element=PartitionStats(
                            impressions=impressions_without,
                            clicks=clicks_without,
                            ctr=ctr_without,
                            sample_size=len(without_totals),
                        ),
                        uplift=uplift,
                        confidence=1 - p_value,
                        confidence_interval=(
                            ConfidenceInterval(lower=interval[0], upper=interval[1])
                            if interval is not None else None
                        ),
                    ),
                )
            )

        insights.sort(key=lambda insight: insight.performance.uplift, reverse=True)
        return insights[:settings.pattern_max_insights]
