"""
Mean vs. variability scatter plots with two-component model overlay.

plot_pane: one pane, points coloured by signal class (or by origin pane for a
combined pane), optional fit curve. plot_dataset_grid: supergroup rows x
condition columns. The y-axis shows SD, CV (SD / mean) or SNR (mean / SD).
"""

from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

from mean_cv_analysis.chart.dataset import Dataset, Pane
from mean_cv_analysis.constants import PLOT_TYPES
from mean_cv_analysis.utils.labels import format_metric

CLASS_COLORS = {
    "low": "#2563EB",
    "mid": "#9CA3AF",
    "high": "#DC2626",
}
FIT_LINE_COLOR = "#111827"
Y_LABELS = {"SD": "SD", "CV": "CV", "SNR": "SNR"}


def _validate_plot_type(plot_type: str) -> None:
    if plot_type not in PLOT_TYPES:
        raise ValueError(f"plot_type must be one of {PLOT_TYPES}, got {plot_type!r}")


def transform_points(
    means: np.ndarray,
    sds: np.ndarray,
    plot_type: str = "SD",
    *,
    log_x: bool = False,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Map (mean, SD) pairs to plot coordinates.

    CV is SD / mean (0 when mean <= 0); SNR is mean / SD (0 when SD <= 0).
    With log_x, x is log10(mean) and non-positive means are dropped. Points
    with non-finite or negative y are dropped as well.

    Args:
        means: Point means.
        sds: Point SDs.
        plot_type: "SD", "CV" or "SNR".
        log_x: Use log10 of the mean on the x-axis.

    Returns:
        Tuple of (x, y, keep_mask), keep_mask indexing the input arrays.
    """
    _validate_plot_type(plot_type)
    m = np.asarray(means, dtype=float)
    s = np.asarray(sds, dtype=float)

    if plot_type == "CV":
        y = np.zeros_like(m)
        np.divide(s, m, out=y, where=m > 0)
    elif plot_type == "SNR":
        y = np.zeros_like(m)
        np.divide(m, s, out=y, where=s > 0)
    else:
        y = s.copy()

    keep = np.isfinite(m) & np.isfinite(y) & (y >= 0)
    x = m.copy()
    if log_x:
        keep &= m > 0
        x = np.log10(np.where(m > 0, m, 1.0))
    return x[keep], y[keep], keep


def _fit_label(pane: Pane) -> Optional[str]:
    fit = pane.fit
    if fit is None:
        return None
    if not fit.converged:
        return "Model did not converge"
    return (
        f"σ₀={format_metric(fit.sigma0, 2)}, "
        f"CV₁={format_metric(fit.cv1, 4)}, "
        f"SNR={format_metric(fit.snr, 2)}"
    )


def plot_pane(
    pane: Pane,
    *,
    plot_type: str = "CV",
    log_x: bool = False,
    show_fit: bool = True,
    color_by_origin: Optional[bool] = None,
    title: Optional[str] = None,
    figsize: tuple[float, float] = (6, 4.5),
    ax: Optional[plt.Axes] = None,
) -> plt.Figure:
    """
    Scatter one pane's points with an optional fit overlay.

    Args:
        pane: Pane to draw (fitted or not).
        plot_type: "SD", "CV" or "SNR".
        log_x: log10 x-axis.
        show_fit: Draw the fit curve and annotate metrics when available.
        color_by_origin: Colour points by source pane instead of signal class.
            Defaults to True when the pane combines several source panes.
        title: Axes title; defaults to the pane label.
        figsize: Figure size when ax is None.
        ax: Optional axes to draw on.

    Returns:
        matplotlib Figure.
    """
    _validate_plot_type(plot_type)
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.get_figure()

    x, y, keep = transform_points(pane.means, pane.sds, plot_type, log_x=log_x)
    kept = [p for p, k in zip(pane.points, keep) if k]

    origins = pane.origin_keys
    if color_by_origin is None:
        color_by_origin = len(origins) > 1

    if color_by_origin:
        palette = sns.color_palette("husl", n_colors=len(origins))
        color_map = dict(zip(origins, palette))
        for origin in origins:
            mask = np.array([p.pane_key == origin for p in kept], dtype=bool)
            if mask.any():
                ax.scatter(
                    x[mask],
                    y[mask],
                    s=18,
                    alpha=0.7,
                    color=color_map[origin],
                    edgecolors="none",
                    label=origin.label,
                )
    else:
        classes = np.array(
            [
                "low" if p.is_low_signal else "high" if p.is_high_signal else "mid"
                for p in kept
            ],
            dtype=object,
        )
        for cls, color in CLASS_COLORS.items():
            mask = classes == cls
            if mask.any():
                ax.scatter(
                    x[mask],
                    y[mask],
                    s=18,
                    alpha=0.7,
                    color=color,
                    edgecolors="none",
                    label=f"{cls.title()} signal",
                )

    fit = pane.fit
    if show_fit and fit is not None and fit.converged and fit.curve:
        curve_means = np.array([c.mean for c in fit.curve])
        curve_sds = np.array([c.predicted_sd for c in fit.curve])
        cx, cy, _ = transform_points(curve_means, curve_sds, plot_type, log_x=log_x)
        ax.plot(cx, cy, color=FIT_LINE_COLOR, linewidth=2, label="Model fit")

    if show_fit:
        fit_text = _fit_label(pane)
        if fit_text:
            ax.text(
                0.98,
                0.98,
                fit_text,
                transform=ax.transAxes,
                ha="right",
                va="top",
                fontsize=8,
                color="gray",
            )

    ax.set_xlabel("log₁₀(Mean)" if log_x else "Mean")
    ax.set_ylabel(Y_LABELS[plot_type])
    ax.set_ylim(bottom=0)
    ax.set_title(title if title is not None else pane.label, fontweight="bold", pad=8)
    if ax.get_legend_handles_labels()[0]:
        ax.legend(loc="best", fontsize=7)
    sns.despine(ax=ax)
    ax.grid(True, alpha=0.3, linestyle="--")
    return fig


def plot_dataset_grid(
    dataset: Dataset,
    *,
    plot_type: str = "CV",
    log_x: bool = False,
    show_fit: bool = True,
    panel_size: tuple[float, float] = (4.0, 3.2),
    title: Optional[str] = None,
) -> plt.Figure:
    """
    Draw every pane in a supergroup (rows) x condition (columns) grid.

    Empty grid cells are left blank.

    Returns:
        matplotlib Figure.
    """
    _validate_plot_type(plot_type)
    n_rows = max(len(dataset.supergroups), 1)
    n_cols = max(len(dataset.conditions), 1)
    fig, axes = plt.subplots(
        n_rows,
        n_cols,
        figsize=(panel_size[0] * n_cols, panel_size[1] * n_rows),
        squeeze=False,
    )
    for i, sg in enumerate(dataset.supergroups):
        for j, cond in enumerate(dataset.conditions):
            ax = axes[i][j]
            pane = dataset.get_pane(sg, cond)
            if pane is None:
                ax.set_axis_off()
                continue
            plot_pane(
                pane,
                plot_type=plot_type,
                log_x=log_x,
                show_fit=show_fit,
                color_by_origin=False,
                ax=ax,
            )
    if title:
        fig.suptitle(title, fontsize=14, fontweight="bold")
    fig.tight_layout()
    return fig


def plot_combined(
    pane: Pane,
    *,
    plot_type: str = "CV",
    log_x: bool = False,
    show_fit: bool = True,
    figsize: tuple[float, float] = (10, 6),
    title: Optional[str] = None,
) -> plt.Figure:
    """Full-width plot of a combined pane, points coloured by origin pane."""
    fig = plot_pane(
        pane,
        plot_type=plot_type,
        log_x=log_x,
        show_fit=show_fit,
        color_by_origin=True,
        title=title,
        figsize=figsize,
    )
    fig.tight_layout()
    return fig
