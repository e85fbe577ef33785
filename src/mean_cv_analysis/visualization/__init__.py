"""
Mean vs. SD / CV / SNR plotting with error-model overlay.
"""

from .plots import plot_combined, plot_dataset_grid, plot_pane, transform_points

__all__ = [
    "plot_combined",
    "plot_dataset_grid",
    "plot_pane",
    "transform_points",
]
