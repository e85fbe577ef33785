"""
Replicate aggregation: measurement records to per-entity mean/SD points.
"""

from .aggregation import (
    POINT_COLUMNS,
    AggregationResult,
    DataPoint,
    PaneKey,
    aggregate_replicates,
    log_variance,
    points_from_frame,
    points_to_frame,
)

__all__ = [
    "POINT_COLUMNS",
    "AggregationResult",
    "DataPoint",
    "PaneKey",
    "aggregate_replicates",
    "log_variance",
    "points_from_frame",
    "points_to_frame",
]
