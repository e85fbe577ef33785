"""
Grid dataset assembly: panes of points arranged by supergroup x condition.

A Dataset is built once per raw-data load. Fitting produces new Pane objects
(with new point tuples carrying the fitted classification) and never mutates
the panes or points it was given.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Iterator, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from mean_cv_analysis.constants import (
    COMBINED_CONDITION,
    COMBINED_SUPERGROUP,
    DEFAULT_HIGH_QUANTILE,
    DEFAULT_LOW_QUANTILE,
)
from mean_cv_analysis.data.io import MeasurementRecord, RecordSource
from mean_cv_analysis.fitting import (
    FitResult,
    FitStatus,
    classify_by_quantiles,
    fit_two_component,
    validate_thresholds,
)
from mean_cv_analysis.processing.aggregation import (
    AggregationResult,
    DataPoint,
    PaneKey,
    aggregate_replicates,
)
from mean_cv_analysis.utils.ordering import order_conditions, order_supergroups

logger = logging.getLogger(__name__)

FIT_TABLE_COLUMNS = [
    "pane",
    "supergroup",
    "condition",
    "n_points",
    "n_low",
    "n_high",
    "sigma0",
    "cv1",
    "snr",
    "converged",
    "iterations",
    "status",
]


@dataclass(frozen=True)
class FitParameters:
    """User-adjustable inputs to the fit; compared by value."""

    p_low: float = DEFAULT_LOW_QUANTILE
    p_high: float = DEFAULT_HIGH_QUANTILE
    fit_enabled: bool = True

    def __post_init__(self):
        validate_thresholds(self.p_low, self.p_high)


@dataclass(frozen=True)
class Pane:
    """One grid cell: its points and, once fitted, the fit result."""

    key: PaneKey
    points: tuple[DataPoint, ...]
    fit: Optional[FitResult] = None

    def __post_init__(self):
        if not self.points:
            raise ValueError(f"Pane {self.key.label} has no points")

    @property
    def supergroup(self) -> str:
        return self.key.supergroup

    @property
    def condition(self) -> str:
        return self.key.condition

    @property
    def label(self) -> str:
        return self.key.label

    @property
    def n_points(self) -> int:
        return len(self.points)

    @property
    def means(self) -> np.ndarray:
        return np.array([p.mean for p in self.points], dtype=float)

    @property
    def sds(self) -> np.ndarray:
        return np.array([p.sd for p in self.points], dtype=float)

    @property
    def mean_range(self) -> tuple[float, float]:
        m = self.means
        return float(m.min()), float(m.max())

    @property
    def sd_range(self) -> tuple[float, float]:
        s = self.sds
        return float(s.min()), float(s.max())

    @property
    def origin_keys(self) -> list[PaneKey]:
        """Distinct source panes of the points, in first-seen order."""
        return list(dict.fromkeys(p.pane_key for p in self.points))


@dataclass(frozen=True)
class Dataset:
    """All panes plus grid ordering and aggregation diagnostics."""

    panes: Mapping[PaneKey, Pane]
    supergroups: tuple[str, ...]
    conditions: tuple[str, ...]
    n_excluded_low_n: int = 0
    n_excluded_non_finite: int = 0
    params: Optional[FitParameters] = field(default=None, compare=False)

    def get_pane(self, supergroup: str, condition: str) -> Optional[Pane]:
        return self.panes.get(PaneKey(supergroup, condition))

    def iter_grid(self) -> Iterator[tuple[str, str, Optional[Pane]]]:
        """Row-major (supergroup, condition, pane-or-None) over the grid."""
        for sg in self.supergroups:
            for cond in self.conditions:
                yield sg, cond, self.get_pane(sg, cond)

    def ordered_panes(self) -> list[Pane]:
        return [pane for _, _, pane in self.iter_grid() if pane is not None]

    @property
    def n_points(self) -> int:
        return sum(p.n_points for p in self.panes.values())

    @property
    def n_excluded(self) -> int:
        return self.n_excluded_low_n + self.n_excluded_non_finite

    def with_panes(
        self, panes: Mapping[PaneKey, Pane], params: Optional[FitParameters] = None
    ) -> "Dataset":
        return replace(self, panes=dict(panes), params=params)


def build_dataset(
    source: Union[
        AggregationResult, pd.DataFrame, RecordSource, Sequence[MeasurementRecord]
    ],
) -> Dataset:
    """
    Aggregate records (if needed) and arrange the points as a pane grid.

    Args:
        source: An AggregationResult, or anything aggregate_replicates accepts.

    Returns:
        Dataset with unfitted panes.

    Raises:
        ValueError: If there are no records, or no replicate group yields a
            point.
    """
    agg = (
        source
        if isinstance(source, AggregationResult)
        else aggregate_replicates(source)
    )
    if not agg.points_by_pane:
        raise ValueError(
            f"No replicate group has enough valid replicates "
            f"({agg.n_groups} groups, {agg.n_excluded} excluded)"
        )

    panes = {
        key: Pane(key=key, points=tuple(points))
        for key, points in agg.points_by_pane.items()
    }
    dataset = Dataset(
        panes=panes,
        supergroups=tuple(order_supergroups(k.supergroup for k in panes)),
        conditions=tuple(order_conditions(k.condition for k in panes)),
        n_excluded_low_n=agg.n_excluded_low_n,
        n_excluded_non_finite=agg.n_excluded_non_finite,
    )
    logger.info(
        "Built %d x %d grid: %d panes, %d points",
        len(dataset.supergroups),
        len(dataset.conditions),
        len(panes),
        dataset.n_points,
    )
    return dataset


def fit_pane(pane: Pane, params: FitParameters) -> Pane:
    """
    Fit (or, when fitting is disabled, only classify) one pane.

    Returns:
        New Pane with reclassified points and a FitResult.
    """
    if not params.fit_enabled:
        points = classify_by_quantiles(pane.points, params.p_low, params.p_high)
        return replace(
            pane, points=points, fit=FitResult.failed(FitStatus.DISABLED, points=points)
        )

    fitted = fit_two_component(pane.points, params.p_low, params.p_high)
    if not fitted.result.converged:
        logger.info(
            "Pane %s: model did not converge (%s)",
            pane.label,
            fitted.result.status.value,
        )
    return replace(pane, points=fitted.points, fit=fitted.result)


def fit_dataset(dataset: Dataset, params: FitParameters) -> Dataset:
    """Fit every pane independently and return a new Dataset."""
    panes = {key: fit_pane(pane, params) for key, pane in dataset.panes.items()}
    return dataset.with_panes(panes, params)


def combine_panes(
    dataset: Dataset,
    *,
    supergroup: str = COMBINED_SUPERGROUP,
    condition: str = COMBINED_CONDITION,
) -> Pane:
    """
    Union of all panes' points as a single pane, in grid order.

    Each point keeps its origin supergroup/condition; the combined pane must be
    re-fitted as a whole rather than merged from per-pane results.
    """
    points = tuple(p for pane in dataset.ordered_panes() for p in pane.points)
    return Pane(key=PaneKey(supergroup, condition), points=points)


def fit_combined(dataset: Dataset, params: FitParameters) -> Pane:
    """Combine all panes and fit the union."""
    return fit_pane(combine_panes(dataset), params)


def _fit_row(pane: Pane) -> dict:
    fit = pane.fit
    converged = fit is not None and fit.converged
    return {
        "pane": pane.label,
        "supergroup": pane.supergroup,
        "condition": pane.condition,
        "n_points": pane.n_points,
        "n_low": sum(1 for p in pane.points if p.is_low_signal),
        "n_high": sum(1 for p in pane.points if p.is_high_signal),
        "sigma0": fit.sigma0 if converged else None,
        "cv1": fit.cv1 if converged else None,
        "snr": fit.snr if converged else None,
        "converged": converged,
        "iterations": fit.iterations if fit is not None else 0,
        "status": fit.status.value if fit is not None else "not_fitted",
    }


def get_fit_results_table(
    dataset: Dataset,
    *,
    combined_pane: Optional[Pane] = None,
) -> pd.DataFrame:
    """
    Build the fit results table shown below the charts.

    One row per pane in grid order, or a single row for combined_pane when
    given. Metric columns use the nullable Float64 dtype so panes without a
    model show <NA> rather than NaN.

    Args:
        dataset: Fitted (or unfitted) Dataset.
        combined_pane: Fitted combined pane, replacing the per-pane rows.

    Returns:
        DataFrame with FIT_TABLE_COLUMNS.
    """
    panes = [combined_pane] if combined_pane is not None else dataset.ordered_panes()
    rows = [_fit_row(p) for p in panes]
    table = pd.DataFrame(rows, columns=FIT_TABLE_COLUMNS)
    for col in ("sigma0", "cv1", "snr"):
        table[col] = pd.array(
            [r[col] if r[col] is not None else pd.NA for r in rows], dtype="Float64"
        )
    return table
