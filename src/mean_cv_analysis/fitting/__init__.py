"""
Two-component error model: quantile classification, iterative fit, fit curve.
"""

from .curve import CurveSample, generate_fit_curve, predicted_sd
from .quantiles import (
    classify_by_quantiles,
    count_classes,
    is_degenerate,
    median,
    presence_scores,
    quantile,
    reclassify_by_presence,
    validate_thresholds,
)
from .two_component import (
    FitResult,
    FitStatus,
    TwoComponentFit,
    fit_two_component,
    pooled_variance,
    proportional_variance,
)

__all__ = [
    "CurveSample",
    "FitResult",
    "FitStatus",
    "TwoComponentFit",
    "classify_by_quantiles",
    "count_classes",
    "fit_two_component",
    "generate_fit_curve",
    "is_degenerate",
    "median",
    "pooled_variance",
    "predicted_sd",
    "presence_scores",
    "proportional_variance",
    "quantile",
    "reclassify_by_presence",
    "validate_thresholds",
]
