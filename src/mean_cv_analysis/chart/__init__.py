"""
Pane grid assembly, dataset-level fitting and the fit results table.
"""

from .cache import FitCache, FitKey
from .dataset import (
    FIT_TABLE_COLUMNS,
    Dataset,
    FitParameters,
    Pane,
    build_dataset,
    combine_panes,
    fit_combined,
    fit_dataset,
    fit_pane,
    get_fit_results_table,
)

__all__ = [
    "FIT_TABLE_COLUMNS",
    "Dataset",
    "FitCache",
    "FitKey",
    "FitParameters",
    "Pane",
    "build_dataset",
    "combine_panes",
    "fit_combined",
    "fit_dataset",
    "fit_pane",
    "get_fit_results_table",
]
