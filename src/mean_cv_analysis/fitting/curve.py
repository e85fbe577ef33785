"""
Fit curve sampling for the two-component error model.
"""

from typing import NamedTuple, Sequence

import numpy as np

from mean_cv_analysis.constants import FIT_CURVE_EPSILON, FIT_CURVE_SAMPLES


class CurveSample(NamedTuple):
    mean: float
    predicted_sd: float


def predicted_sd(
    means: Sequence[float] | np.ndarray, ssq0: float, ssq1: float
) -> np.ndarray:
    """Model SD at the given means: sqrt(ssq1 * mean**2 + ssq0)."""
    m = np.asarray(means, dtype=float)
    return np.sqrt(ssq1 * m**2 + ssq0)


def generate_fit_curve(
    means: Sequence[float] | np.ndarray,
    ssq0: float,
    ssq1: float,
    *,
    n_samples: int = FIT_CURVE_SAMPLES,
    epsilon: float = FIT_CURVE_EPSILON,
) -> tuple[CurveSample, ...]:
    """
    Sample the fitted model evenly across the observed mean range.

    The range starts at max(epsilon, min(means)) to stay in the positive
    domain. An empty tuple is returned when the range is degenerate
    (max <= 0 or min >= max) or the variance components are unusable.

    Args:
        means: Observed point means (only their range is used).
        ssq0: Constant variance component.
        ssq1: Proportional variance component.
        n_samples: Number of samples along the curve.
        epsilon: Smallest mean sampled.

    Returns:
        Tuple of CurveSample(mean, predicted_sd), increasing in mean.
    """
    m = np.asarray(means, dtype=float)
    m = m[np.isfinite(m)]
    if m.size == 0 or n_samples < 2:
        return ()
    if not (np.isfinite(ssq0) and np.isfinite(ssq1)) or ssq0 < 0 or ssq1 < 0:
        return ()

    min_mean, max_mean = float(m.min()), float(m.max())
    if max_mean <= 0 or min_mean >= max_mean:
        return ()
    start = max(epsilon, min_mean)
    if start >= max_mean:
        return ()

    xs = np.linspace(start, max_mean, n_samples)
    ys = predicted_sd(xs, ssq0, ssq1)
    if not np.all(np.isfinite(ys)):
        return ()
    return tuple(CurveSample(float(x), float(y)) for x, y in zip(xs, ys))
