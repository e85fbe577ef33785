"""String formatting for fit metrics and result-table headers."""

import math
from typing import Optional

MISSING_LABEL = "N/A"

_COLUMN_LABELS = {
    "pane": "Pane",
    "supergroup": "Supergroup",
    "condition": "Condition",
    "n_points": "Points",
    "n_low": "Low",
    "n_high": "High",
    "sigma0": "σ₀",
    "cv1": "CV₁",
    "snr": "SNR",
    "converged": "Converged",
    "iterations": "Iterations",
    "status": "Status",
}

# Decimal places per metric in tables and reports
METRIC_DECIMALS = {"sigma0": 2, "cv1": 4, "snr": 2}


def format_column_label(col: str) -> str:
    """
    Convert a result-table column name to a display label.

    Example: "sigma0" -> "σ₀", "n_points" -> "Points".
    Unknown names fall back to title case with underscores as spaces.
    """
    if col in _COLUMN_LABELS:
        return _COLUMN_LABELS[col]
    return col.replace("_", " ").title()


def format_metric(value: Optional[float], decimals: int = 4) -> str:
    """Format a metric for display; absent or non-finite values show as N/A."""
    if value is None:
        return MISSING_LABEL
    try:
        value = float(value)
    except (TypeError, ValueError):
        return MISSING_LABEL
    if not math.isfinite(value):
        return MISSING_LABEL
    return f"{value:.{decimals}f}"
