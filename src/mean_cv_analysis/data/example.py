"""
Simulated example dataset drawn from a two-component error model.

Used when no measurement data is supplied, so the full pipeline (aggregation,
fitting, plotting) can be explored without an upstream source.
"""

from typing import Optional, Sequence

import numpy as np

from mean_cv_analysis.data.io import MeasurementRecord

EXAMPLE_SUPERGROUPS = ("A", "B")
EXAMPLE_CONDITIONS = ("Control", "Treated")


def simulate_measurements(
    *,
    supergroups: Sequence[str] = EXAMPLE_SUPERGROUPS,
    conditions: Sequence[str] = EXAMPLE_CONDITIONS,
    n_entities: int = 50,
    n_replicates: int = 3,
    ssq0: float = 4.0,
    ssq1: float = 0.01,
    mean_range: tuple[float, float] = (0.1, 1e4),
    entity_means: Optional[Sequence[float]] = None,
    seed: int = 0,
) -> list[MeasurementRecord]:
    """
    Draw replicate measurements with variance ``ssq0 + ssq1 * mean**2``.

    Entity true means are log-uniform over mean_range unless given explicitly.
    Replicates are normal around the true mean, so low-signal values may be
    negative (as for background-subtracted intensities).

    Args:
        supergroups: Supergroup labels (grid rows).
        conditions: Condition labels (grid columns).
        n_entities: Entities per pane; ignored when entity_means is given.
        n_replicates: Replicates per entity.
        ssq0: Constant variance component (sigma0 squared).
        ssq1: Proportional variance component (CV1 squared).
        mean_range: (low, high) bounds for log-uniform true means.
        entity_means: Explicit true means per entity, shared by all panes.
        seed: Seed for numpy's default_rng.

    Returns:
        List of MeasurementRecord in supergroup, condition, entity order.
    """
    if n_replicates < 1:
        raise ValueError(f"n_replicates must be >= 1, got {n_replicates}")
    lo, hi = mean_range
    if entity_means is None and not (0 < lo < hi):
        raise ValueError(f"mean_range must satisfy 0 < low < high, got {mean_range}")

    rng = np.random.default_rng(seed)
    records: list[MeasurementRecord] = []
    for sg in supergroups:
        for cond in conditions:
            if entity_means is None:
                means = 10 ** rng.uniform(np.log10(lo), np.log10(hi), size=n_entities)
            else:
                means = np.asarray(entity_means, dtype=float)
            sds = np.sqrt(ssq0 + ssq1 * means**2)
            values = rng.normal(
                means[:, np.newaxis], sds[:, np.newaxis], size=(len(means), n_replicates)
            )
            for i, row in enumerate(values):
                entity = f"entity_{i:03d}"
                records.extend(
                    MeasurementRecord(sg, cond, entity, float(v)) for v in row
                )
    return records
