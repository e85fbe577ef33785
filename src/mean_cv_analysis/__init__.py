"""
Mean & CV Analysis - replicate variability and two-component error models

Replicate aggregation, low/high-signal classification, iterative fitting of
variance = sigma0**2 + (CV1 * mean)**2, and mean vs. SD / CV / SNR plotting
for per-condition measurement quality assessment.
"""

from .chart import (
    Dataset,
    FitCache,
    FitParameters,
    Pane,
    build_dataset,
    combine_panes,
    fit_combined,
    fit_dataset,
    get_fit_results_table,
)
from .data import (
    DataSourceError,
    ExampleRecordSource,
    FileRecordSource,
    MeasurementRecord,
    load_records,
    simulate_measurements,
)
from .fitting import FitResult, FitStatus, fit_two_component, generate_fit_curve
from .processing import DataPoint, PaneKey, aggregate_replicates
from .report import build_fit_report_pdf
from .visualization import plot_combined, plot_dataset_grid, plot_pane

__version__ = "0.1.0"

__all__ = [
    "DataPoint",
    "DataSourceError",
    "Dataset",
    "ExampleRecordSource",
    "FileRecordSource",
    "FitCache",
    "FitParameters",
    "FitResult",
    "FitStatus",
    "MeasurementRecord",
    "Pane",
    "PaneKey",
    "aggregate_replicates",
    "build_dataset",
    "build_fit_report_pdf",
    "combine_panes",
    "fit_combined",
    "fit_dataset",
    "fit_two_component",
    "generate_fit_curve",
    "get_fit_results_table",
    "load_records",
    "plot_combined",
    "plot_dataset_grid",
    "plot_pane",
    "simulate_measurements",
    "__version__",
]
