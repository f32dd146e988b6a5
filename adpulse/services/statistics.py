"""
Statistics Library

Pure functions shared by the pattern analyzer and the experiment results
calculator. Every function tolerates empty inputs: zero denominators yield 0
instead of NaN or an exception.

Key Features:
- Pearson chi-square on a 2x2 contingency table (no continuity correction)
- Upper-tail chi-square p-value via scipy.stats.chi2
- Wilson score interval for a single proportion
- Normal-approximation confidence interval for a relative lift in percent
- Fixed-z interval around a pattern uplift

chi_square_test() is the only significance routine in the engine; both the
pattern analyzer and the experiment calculator call it.
"""

import math
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy import stats


# Two-sided 95% normal quantile used for pattern uplift intervals
DEFAULT_Z: float = 1.96


def safe_rate(numerator: float, denominator: float) -> float:
    """
    Divide, returning 0.0 when the denominator is zero.

    Example:
        >>> safe_rate(5, 100)
        0.05
        >>> safe_rate(5, 0)
        0.0
    """
    if not denominator:
        return 0.0
    return numerator / denominator


def chi_square_statistic(table: Sequence[Sequence[float]]) -> float:
    """
    Pearson chi-square statistic of a 2x2 contingency table.

    Expected counts come from the row and column margins. No Yates
    continuity correction is applied.

    Args:
        table: [[a, b], [c, d]] observed counts.

    Returns:
        float: The statistic, or 0.0 when any row or column total is zero.

    Example:
        >>> chi_square_statistic([[150, 2850], [90, 2910]])
        15.625
    """
    observed = np.asarray(table, dtype=float)
    if observed.shape != (2, 2):
        raise ValueError(f"Expected a 2x2 table, got shape {observed.shape}")

    row_totals = observed.sum(axis=1)
    col_totals = observed.sum(axis=0)
    total = observed.sum()

    if total <= 0 or np.any(row_totals <= 0) or np.any(col_totals <= 0):
        return 0.0

    expected = np.outer(row_totals, col_totals) / total
    return float(((observed - expected) ** 2 / expected).sum())


def chi_square_p_value(statistic: float, degrees_of_freedom: int = 1) -> float:
    """Upper-tail probability of the chi-square distribution."""
    if statistic <= 0:
        return 1.0
    return float(stats.chi2.sf(statistic, degrees_of_freedom))


def chi_square_test(table: Sequence[Sequence[float]]) -> Tuple[float, float]:
    """
    Run the 2x2 chi-square test of independence at one degree of freedom.

    Returns:
        Tuple[float, float]: (statistic, p_value). A degenerate table gives (0.0, 1.0).
    """
    statistic = chi_square_statistic(table)
    return statistic, chi_square_p_value(statistic, degrees_of_freedom=1)


def _z_for(confidence: float) -> float:
    return float(stats.norm.ppf(1 - (1 - confidence) / 2))


def proportion_confidence_interval(
    successes: int,
    trials: int,
    confidence: float = 0.95,
) -> Tuple[float, float]:
    """
    Wilson score interval for a binomial proportion, clamped to [0, 1].

    Args:
        successes: Number of successes (e.g. conversions).
        trials: Number of trials (e.g. impressions).
        confidence: Two-sided confidence level.

    Returns:
        Tuple[float, float]: (lower, upper); (0.0, 0.0) when trials is 0.
    """
    if trials <= 0:
        return 0.0, 0.0

    z = _z_for(confidence)
    p = successes / trials
    z2 = z * z
    denominator = 1 + z2 / trials
    center = (p + z2 / (2 * trials)) / denominator
    margin = z * math.sqrt(p * (1 - p) / trials + z2 / (4 * trials * trials)) / denominator

    return max(0.0, center - margin), min(1.0, center + margin)


def lift_confidence_interval(
    conversions_a: int,
    trials_a: int,
    conversions_b: int,
    trials_b: int,
    confidence: float = 0.95,
) -> Tuple[float, float, float]:
    """
    Relative lift of B over A in percent with a normal-approximation interval.

    The interval is built on the difference of the two proportions and then
    scaled by the baseline rate of A, so all three values are percentages of
    the baseline.

    Args:
        conversions_a: Baseline (original) conversions.
        trials_a: Baseline impressions.
        conversions_b: Variant conversions.
        trials_b: Variant impressions.
        confidence: Two-sided confidence level.

    Returns:
        Tuple[float, float, float]: (lift, lower, upper). All zeros when either
        arm has no impressions or the baseline rate is zero.

    Example:
        >>> lift, lower, upper = lift_confidence_interval(100, 1000, 150, 1000)
        >>> round(lift, 1), round(lower, 1), round(upper, 1)
        (50.0, 21.1, 78.9)
    """
    if trials_a <= 0 or trials_b <= 0:
        return 0.0, 0.0, 0.0

    rate_a = conversions_a / trials_a
    rate_b = conversions_b / trials_b
    if rate_a == 0:
        return 0.0, 0.0, 0.0

    difference = rate_b - rate_a
    standard_error = math.sqrt(
        rate_a * (1 - rate_a) / trials_a + rate_b * (1 - rate_b) / trials_b
    )
    margin = _z_for(confidence) * standard_error

    lift = difference / rate_a * 100
    lower = (difference - margin) / rate_a * 100
    upper = (difference + margin) / rate_a * 100
    return lift, lower, upper


def uplift_confidence_interval(
    uplift: float,
    sample_with: float,
    sample_without: float,
    z: float = DEFAULT_Z,
) -> Optional[Tuple[float, float]]:
    """
    Interval uplift +/- z * sqrt(1/n_with + 1/n_without).

    Returns None when either sample is empty.
    """
    if sample_with <= 0 or sample_without <= 0:
        return None

    margin = z * math.sqrt(1 / sample_with + 1 / sample_without)
    return uplift - margin, uplift + margin
