"""
Two-component error model: variance = ssq0 + ssq1 * mean**2.

ssq0 is the constant (additive) variance that dominates at low signal, ssq1
the squared coefficient of variation that dominates at high signal. The fit
is a fixed-point iteration: estimate each component from the points currently
classified into its regime, reclassify every point from the updated model,
and stop once the set of points used by the model no longer changes.
"""

import enum
import logging
import math
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence

import numpy as np

from mean_cv_analysis.constants import MAX_ITERATIONS, MIN_POINTS_FOR_FIT
from mean_cv_analysis.fitting.curve import CurveSample, generate_fit_curve
from mean_cv_analysis.fitting.quantiles import (
    classify_by_quantiles,
    count_classes,
    is_degenerate,
    median,
    reclassify_by_presence,
    validate_thresholds,
)
from mean_cv_analysis.processing.aggregation import DataPoint

logger = logging.getLogger(__name__)


class FitStatus(str, enum.Enum):
    """Outcome of a fit; anything but CONVERGED means no model."""

    CONVERGED = "converged"
    INSUFFICIENT_POINTS = "insufficient_points"
    NO_LOW_SIGNAL = "no_low_signal"
    NO_HIGH_SIGNAL = "no_high_signal"
    DEGENERATE_CLASSIFICATION = "degenerate_classification"
    MAX_ITERATIONS = "max_iterations"
    DISABLED = "disabled"


@dataclass(frozen=True)
class FitResult:
    """Variance components and derived metrics of a two-component fit.

    ssq0 / ssq1 and every derived metric are None unless the fit converged.
    snr is the linear ratio 1 / cv1 (0 when cv1 is 0).
    """

    ssq0: Optional[float]
    ssq1: Optional[float]
    converged: bool
    iterations: int
    status: FitStatus
    n_low: int = 0
    n_high: int = 0
    curve: tuple[CurveSample, ...] = ()

    @property
    def sigma0(self) -> Optional[float]:
        return None if self.ssq0 is None else math.sqrt(self.ssq0)

    @property
    def cv1(self) -> Optional[float]:
        return None if self.ssq1 is None else math.sqrt(self.ssq1)

    @property
    def snr(self) -> Optional[float]:
        if self.ssq1 is None:
            return None
        return 1.0 / math.sqrt(self.ssq1) if self.ssq1 > 0 else 0.0

    @classmethod
    def failed(
        cls,
        status: FitStatus,
        iterations: int = 0,
        points: Sequence[DataPoint] = (),
    ) -> "FitResult":
        n_low, _, n_high = count_classes(points)
        return cls(
            ssq0=None,
            ssq1=None,
            converged=False,
            iterations=iterations,
            status=status,
            n_low=n_low,
            n_high=n_high,
        )


class TwoComponentFit(NamedTuple):
    """Final point classification together with the fit result."""

    points: tuple[DataPoint, ...]
    result: FitResult


def pooled_variance(points: Sequence[DataPoint]) -> Optional[float]:
    """
    Pooled within-group variance of low-signal points.

    ssq0 = sum(sd_i**2 * (n_i - 1)) / (sum(n_i) - count), over low-signal
    points with n_i > 1 and a finite SD.

    Returns:
        Pooled variance, or None when no low-signal point is usable.
    """
    usable = [
        p for p in points if p.is_low_signal and p.n > 1 and np.isfinite(p.sd)
    ]
    if not usable:
        return None
    dof = sum(p.n for p in usable) - len(usable)
    if dof <= 0:
        return None
    return float(sum(p.sd**2 * (p.n - 1) for p in usable) / dof)


def proportional_variance(points: Sequence[DataPoint]) -> Optional[float]:
    """
    Squared CV estimated from high-signal points.

    Log-variance approximates log(1 + CV**2) for log-normal-like replicate
    noise, so ssq1 = exp(median(lvar)) - 1 over high-signal points with a
    finite, positive lvar, clamped at 0.

    Returns:
        ssq1, or None when no high-signal point has a usable lvar.
    """
    lvars = [p.lvar for p in points if p.is_high_signal and p.has_lvar]
    if not lvars:
        return None
    return max(0.0, math.exp(median(lvars)) - 1.0)


def _membership(points: Sequence[DataPoint]) -> tuple[bool, ...]:
    return tuple(p.in_model for p in points)


def fit_two_component(
    points: Sequence[DataPoint],
    p_low: float,
    p_high: float,
    *,
    max_iterations: int = MAX_ITERATIONS,
    min_points: int = MIN_POINTS_FOR_FIT,
) -> TwoComponentFit:
    """
    Fit the two-component error model to one pane's points.

    Steps:
    1. Classify points by quantiles of their means (p_low, p_high).
    2. Repeat up to max_iterations:
       a. ssq0 from low-signal points (pooled variance).
       b. ssq1 from high-signal points (median log-variance).
       c. Reclassify by presence score against p_low / p_high.
       d. Stop without a model if the classification has no low or no high
          points.
       e. Stop with a model once low-or-high membership is unchanged.

    Insufficient or degenerate data never raises; the returned FitResult has
    converged=False and a FitStatus naming the reason. Classification flags
    already on the input points are ignored.

    Args:
        points: The pane's DataPoints.
        p_low: Low-signal quantile fraction in [0, 1].
        p_high: High-signal quantile fraction in [p_low, 1].
        max_iterations: Iteration cap.
        min_points: Minimum points required to attempt a fit.

    Returns:
        TwoComponentFit(points with final flags, FitResult).

    Raises:
        ValueError: If the thresholds are outside [0, 1] or inverted.
    """
    validate_thresholds(p_low, p_high)
    points = tuple(points)

    if len(points) < min_points:
        logger.debug("Skipping fit: %d points (< %d)", len(points), min_points)
        return TwoComponentFit(
            points, FitResult.failed(FitStatus.INSUFFICIENT_POINTS, points=points)
        )

    current = classify_by_quantiles(points, p_low, p_high)
    membership = _membership(current)
    n_low, n_mid, n_high = count_classes(current)
    logger.debug(
        "Initial classification: %d low, %d mid, %d high", n_low, n_mid, n_high
    )

    for iteration in range(1, max_iterations + 1):
        ssq0 = pooled_variance(current)
        if ssq0 is None:
            logger.debug("Iteration %d: no usable low-signal points", iteration)
            return TwoComponentFit(
                current, FitResult.failed(FitStatus.NO_LOW_SIGNAL, iteration, current)
            )

        ssq1 = proportional_variance(current)
        if ssq1 is None:
            logger.debug("Iteration %d: no usable high-signal points", iteration)
            return TwoComponentFit(
                current, FitResult.failed(FitStatus.NO_HIGH_SIGNAL, iteration, current)
            )

        current = reclassify_by_presence(points, ssq0, ssq1, p_low, p_high)
        logger.debug(
            "Iteration %d: ssq0=%.6g ssq1=%.6g (%d low, %d mid, %d high)",
            iteration,
            ssq0,
            ssq1,
            *count_classes(current),
        )

        if is_degenerate(current):
            return TwoComponentFit(
                current,
                FitResult.failed(
                    FitStatus.DEGENERATE_CLASSIFICATION, iteration, current
                ),
            )

        new_membership = _membership(current)
        if new_membership == membership:
            n_low, _, n_high = count_classes(current)
            curve = generate_fit_curve([p.mean for p in current], ssq0, ssq1)
            return TwoComponentFit(
                current,
                FitResult(
                    ssq0=ssq0,
                    ssq1=ssq1,
                    converged=True,
                    iterations=iteration,
                    status=FitStatus.CONVERGED,
                    n_low=n_low,
                    n_high=n_high,
                    curve=curve,
                ),
            )
        membership = new_membership

    logger.debug("No convergence after %d iterations", max_iterations)
    return TwoComponentFit(
        current, FitResult.failed(FitStatus.MAX_ITERATIONS, max_iterations, current)
    )
