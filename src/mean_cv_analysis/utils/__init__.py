"""
Utility functions for grid ordering and display formatting.
"""

from .labels import (
    METRIC_DECIMALS,
    MISSING_LABEL,
    format_column_label,
    format_metric,
)
from .ordering import condition_sort_key, order_conditions, order_supergroups

__all__ = [
    "METRIC_DECIMALS",
    "MISSING_LABEL",
    "condition_sort_key",
    "format_column_label",
    "format_metric",
    "order_conditions",
    "order_supergroups",
]
