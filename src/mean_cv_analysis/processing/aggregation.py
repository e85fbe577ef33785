"""
Replicate aggregation: raw measurements to per-entity summary points.

Groups measurement records by (supergroup, condition, entity) and computes
the mean, Bessel-corrected SD, replicate count and log-variance of each
replicate group. Groups that cannot yield a point (too few replicates,
non-finite statistics) are excluded and counted, never silently dropped.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import NamedTuple, Sequence, Union

import numpy as np
import pandas as pd

from mean_cv_analysis.constants import MIN_REPLICATES
from mean_cv_analysis.data.io import (
    RECORD_COLUMNS,
    MeasurementRecord,
    RecordSource,
    records_to_frame,
)

logger = logging.getLogger(__name__)

POINT_COLUMNS = [
    "supergroup",
    "condition",
    "entity",
    "mean",
    "sd",
    "lvar",
    "n",
    "is_low_signal",
    "is_high_signal",
]


class PaneKey(NamedTuple):
    """Grid cell identifier: one supergroup (row) x condition (column)."""

    supergroup: str
    condition: str

    @property
    def label(self) -> str:
        return f"{self.supergroup}.{self.condition}"


@dataclass(frozen=True)
class DataPoint:
    """Summary of one entity's replicates within a pane.

    supergroup / condition record the pane the point came from, which stays
    meaningful when panes are combined. lvar is the sample variance of the
    natural-log replicate values, NaN when any replicate is non-positive.
    """

    supergroup: str
    condition: str
    entity: str
    mean: float
    sd: float
    lvar: float
    n: int
    is_low_signal: bool = False
    is_high_signal: bool = False

    @property
    def pane_key(self) -> PaneKey:
        return PaneKey(self.supergroup, self.condition)

    @property
    def in_model(self) -> bool:
        return self.is_low_signal or self.is_high_signal

    @property
    def has_lvar(self) -> bool:
        return bool(np.isfinite(self.lvar) and self.lvar > 0)

    def with_flags(self, is_low_signal: bool, is_high_signal: bool) -> "DataPoint":
        return replace(
            self,
            is_low_signal=bool(is_low_signal),
            is_high_signal=bool(is_high_signal),
        )


@dataclass
class AggregationResult:
    """Points per pane plus exclusion diagnostics."""

    points_by_pane: dict[PaneKey, list[DataPoint]] = field(default_factory=dict)
    n_groups: int = 0
    n_excluded_low_n: int = 0
    n_excluded_non_finite: int = 0

    @property
    def n_points(self) -> int:
        return sum(len(p) for p in self.points_by_pane.values())

    @property
    def n_excluded(self) -> int:
        return self.n_excluded_low_n + self.n_excluded_non_finite


def log_variance(values: np.ndarray) -> float:
    """
    Sample variance (ddof=1) of log(values); NaN unless all values are > 0.

    Args:
        values: Replicate values of one group.

    Returns:
        Variance of the natural logs, or NaN when undefined.
    """
    vals = np.asarray(values, dtype=float)
    if len(vals) < 2 or not np.all(np.isfinite(vals)) or np.any(vals <= 0):
        return float("nan")
    return float(np.var(np.log(vals), ddof=1))


def _as_frame(
    records: Union[pd.DataFrame, RecordSource, Sequence[MeasurementRecord]],
) -> pd.DataFrame:
    if isinstance(records, pd.DataFrame):
        missing = [c for c in RECORD_COLUMNS if c not in records.columns]
        if missing:
            raise ValueError(
                f"Record columns {missing} not in DataFrame. "
                f"Available: {list(records.columns)}"
            )
        return records[RECORD_COLUMNS]
    if hasattr(records, "records"):
        records = records.records()
    return records_to_frame(list(records))


def aggregate_replicates(
    records: Union[pd.DataFrame, RecordSource, Sequence[MeasurementRecord]],
    *,
    min_replicates: int = MIN_REPLICATES,
) -> AggregationResult:
    """
    Summarise replicate groups into DataPoints, grouped by pane.

    Points are ordered by (supergroup, condition) and then entity, so fits on
    the same input are reproducible.

    Args:
        records: Measurement records, a RecordSource, or a DataFrame with
            RECORD_COLUMNS.
        min_replicates: Minimum replicates for a group to yield a point.

    Returns:
        AggregationResult with points per PaneKey and exclusion counts.

    Raises:
        ValueError: If there are no records at all.
    """
    df = _as_frame(records)
    if df.empty:
        raise ValueError("No measurement records to aggregate")

    df = df.assign(
        supergroup=df["supergroup"].astype(str),
        condition=df["condition"].astype(str),
        entity=df["entity"].astype(str),
        value=pd.to_numeric(df["value"], errors="coerce").astype(float),
    )

    result = AggregationResult()
    grouped = df.groupby(["supergroup", "condition", "entity"], sort=True)["value"]
    for (sg, cond, entity), series in grouped:
        result.n_groups += 1
        values = series.to_numpy(dtype=float)
        n = len(values)
        if n < min_replicates:
            result.n_excluded_low_n += 1
            continue

        mean = float(np.mean(values))
        sd = float(np.std(values, ddof=1))
        if not (np.isfinite(mean) and np.isfinite(sd)):
            result.n_excluded_non_finite += 1
            continue

        point = DataPoint(
            supergroup=sg,
            condition=cond,
            entity=entity,
            mean=mean,
            sd=sd,
            lvar=log_variance(values),
            n=n,
        )
        result.points_by_pane.setdefault(PaneKey(sg, cond), []).append(point)

    if result.n_excluded:
        logger.warning(
            "Excluded %d of %d replicate groups (%d with n < %d, %d non-finite)",
            result.n_excluded,
            result.n_groups,
            result.n_excluded_low_n,
            min_replicates,
            result.n_excluded_non_finite,
        )
    logger.debug(
        "Aggregated %d points across %d panes",
        result.n_points,
        len(result.points_by_pane),
    )
    return result


def points_to_frame(points: Sequence[DataPoint]) -> pd.DataFrame:
    """Return points (including classification flags) as a DataFrame."""
    if not points:
        return pd.DataFrame(columns=POINT_COLUMNS)
    return pd.DataFrame(
        [{col: getattr(p, col) for col in POINT_COLUMNS} for p in points],
        columns=POINT_COLUMNS,
    )


def points_from_frame(df: pd.DataFrame) -> tuple[DataPoint, ...]:
    """
    Rebuild DataPoints from a frame written by points_to_frame.

    Raises:
        ValueError: If required columns are missing.
    """
    missing = [c for c in POINT_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(
            f"Point columns {missing} not in DataFrame. Available: {list(df.columns)}"
        )
    return tuple(
        DataPoint(
            supergroup=str(row.supergroup),
            condition=str(row.condition),
            entity=str(row.entity),
            mean=float(row.mean),
            sd=float(row.sd),
            lvar=float(row.lvar),
            n=int(row.n),
            is_low_signal=bool(row.is_low_signal),
            is_high_signal=bool(row.is_high_signal),
        )
        for row in df[POINT_COLUMNS].itertuples(index=False)
    )
