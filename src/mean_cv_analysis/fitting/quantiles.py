"""
Quantile-based low/high-signal classification.

Two classification rules are used by the error-model fit:

- Initial: thresholds are quantiles of the point means. Points at or below
  the low quantile are low-signal, points at or above the high quantile are
  high-signal.
- Iterative: given current variance components, each point gets a presence
  score in [0, 1] and the same quantile fractions are compared against the
  score directly (not against the mean distribution).
"""

from typing import Sequence

import numpy as np

from mean_cv_analysis.processing.aggregation import DataPoint


def validate_thresholds(p_low: float, p_high: float) -> None:
    """Raise ValueError unless 0 <= p_low <= p_high <= 1."""
    for name, p in (("p_low", p_low), ("p_high", p_high)):
        if not (np.isfinite(p) and 0.0 <= p <= 1.0):
            raise ValueError(f"{name} must be in [0, 1], got {p}")
    if p_low > p_high:
        raise ValueError(f"p_low ({p_low}) must not exceed p_high ({p_high})")


def quantile(values: Sequence[float] | np.ndarray, p: float) -> float:
    """
    Linear-interpolation (type 7) quantile.

    For n sorted values the target index is (n - 1) * p, interpolated between
    its floor and ceiling. quantile(x, 0) is min(x), quantile(x, 1) is max(x).

    Args:
        values: Non-empty numeric values.
        p: Quantile fraction in [0, 1].

    Returns:
        Quantile value.
    """
    vals = np.asarray(values, dtype=float)
    if vals.size == 0:
        raise ValueError("quantile of empty values is undefined")
    if not (np.isfinite(p) and 0.0 <= p <= 1.0):
        raise ValueError(f"p must be in [0, 1], got {p}")
    return float(np.quantile(vals, p, method="linear"))


def median(values: Sequence[float] | np.ndarray) -> float:
    """Median; even counts average the two middle values."""
    vals = np.asarray(values, dtype=float)
    if vals.size == 0:
        raise ValueError("median of empty values is undefined")
    return float(np.median(vals))


def classify_by_quantiles(
    points: Sequence[DataPoint],
    p_low: float,
    p_high: float,
) -> tuple[DataPoint, ...]:
    """
    Initial classification against quantiles of the mean distribution.

    A point equal to both thresholds (possible when p_low == p_high or with
    tied means) is classified low-signal so the two flags stay exclusive.

    Args:
        points: Points with means.
        p_low: Low quantile fraction.
        p_high: High quantile fraction.

    Returns:
        New points with is_low_signal / is_high_signal set.
    """
    validate_thresholds(p_low, p_high)
    if not points:
        return ()
    means = np.array([p.mean for p in points], dtype=float)
    low_threshold = quantile(means, p_low)
    high_threshold = quantile(means, p_high)

    is_low = means <= low_threshold
    is_high = (means >= high_threshold) & ~is_low
    return tuple(
        p.with_flags(lo, hi) for p, lo, hi in zip(points, is_low, is_high)
    )


def presence_scores(
    means: Sequence[float] | np.ndarray,
    ssq0: float,
    ssq1: float,
) -> np.ndarray:
    """
    Fraction of each point's spread attributed to the proportional component.

    presence = cv1 * mean / (cv1 * mean + sigma0), with cv1 = sqrt(ssq1) and
    sigma0 = sqrt(ssq0). Zero when ssq1 is 0, the mean is non-positive or the
    denominator is 0, so every score lies in [0, 1].
    """
    m = np.asarray(means, dtype=float)
    if ssq1 <= 0:
        return np.zeros_like(m)
    signal = np.sqrt(ssq1) * m
    denom = signal + np.sqrt(max(ssq0, 0.0))
    out = np.zeros_like(m)
    np.divide(signal, denom, out=out, where=(m > 0) & (denom > 0))
    return out


def reclassify_by_presence(
    points: Sequence[DataPoint],
    ssq0: float,
    ssq1: float,
    p_low: float,
    p_high: float,
) -> tuple[DataPoint, ...]:
    """
    Reclassify points from the current model estimate.

    is_low_signal = presence < p_low, is_high_signal = presence > p_high.
    """
    scores = presence_scores([p.mean for p in points], ssq0, ssq1)
    return tuple(
        p.with_flags(s < p_low, s > p_high) for p, s in zip(points, scores)
    )


def is_degenerate(points: Sequence[DataPoint]) -> bool:
    """True when no point is high-signal or no point is low-signal."""
    has_low = any(p.is_low_signal for p in points)
    has_high = any(p.is_high_signal for p in points)
    return not (has_low and has_high)


def count_classes(points: Sequence[DataPoint]) -> tuple[int, int, int]:
    """Return (n_low, n_mid, n_high)."""
    n_low = sum(1 for p in points if p.is_low_signal)
    n_high = sum(1 for p in points if p.is_high_signal)
    return n_low, len(points) - n_low - n_high, n_high
