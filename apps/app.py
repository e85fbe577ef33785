"""
Mean & CV Explorer - Streamlit UI for replicate variability and error-model fits.

Analysts load long-format replicate data (or the bundled example), adjust the
low/high-signal quantiles, and inspect per-pane fits without writing code.
"""

import tempfile
from pathlib import Path

import pandas as pd
import streamlit as st

from mean_cv_analysis.chart import (
    FitCache,
    FitParameters,
    build_dataset,
    get_fit_results_table,
)
from mean_cv_analysis.constants import (
    DEFAULT_HIGH_QUANTILE,
    DEFAULT_LOW_QUANTILE,
    PLOT_TYPES,
)
from mean_cv_analysis.data import (
    ColumnMapping,
    DataFrameRecordSource,
    DataSourceError,
    ExampleRecordSource,
    infer_column_mapping,
    read_measurement_table,
    table_fingerprint,
)
from mean_cv_analysis.processing import points_to_frame
from mean_cv_analysis.report import build_fit_report_pdf, figure_to_png_bytes
from mean_cv_analysis.utils import METRIC_DECIMALS, format_column_label
from mean_cv_analysis.visualization import plot_combined, plot_dataset_grid

st.set_page_config(
    page_title="Mean & CV Explorer",
    page_icon="📈",
    layout="wide",
    initial_sidebar_state="expanded",
)

_NONE_OPTION = "(none)"


# ---------------------------------------------------------------------------
# Data loading
# ---------------------------------------------------------------------------


@st.cache_data
def _read_uploaded(name: str, content: bytes) -> pd.DataFrame:
    """Read an uploaded CSV/Excel file via a temporary copy."""
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / name
        path.write_bytes(content)
        return read_measurement_table(path)


@st.cache_resource
def _fit_cache_for(data_token: str, _records: tuple) -> FitCache:
    """
    One FitCache per raw-data load.

    data_token identifies the load; _records is excluded from hashing.
    """
    return FitCache(build_dataset(list(_records)))


st.sidebar.markdown("# 📁 Data")
uploaded = st.sidebar.file_uploader(
    "Upload replicate table (.csv, .xlsx)",
    type=["csv", "xlsx", "xls"],
)

try:
    if uploaded is not None:
        raw_df = _read_uploaded(uploaded.name, uploaded.getvalue())
        if raw_df.empty:
            st.warning("The uploaded table has no rows.")
            st.stop()

        guess = infer_column_mapping(raw_df)
        cols = [str(c) for c in raw_df.columns]
        optional = [_NONE_OPTION] + cols

        def _pick(label: str, options: list, current, key: str):
            index = options.index(current) if current in options else 0
            return st.sidebar.selectbox(label, options=options, index=index, key=key)

        value_col = _pick("Value column", cols, guess.value, "map_value")
        entity_col = _pick("Entity column", cols, guess.entity, "map_entity")
        sg_col = _pick("Supergroup column", optional, guess.supergroup, "map_sg")
        cond_col = _pick("Condition column", optional, guess.condition, "map_cond")
        mapping = ColumnMapping(
            value=value_col,
            entity=entity_col,
            supergroup=None if sg_col == _NONE_OPTION else sg_col,
            condition=None if cond_col == _NONE_OPTION else cond_col,
        )
        records = DataFrameRecordSource(raw_df, mapping).records()
        data_token = table_fingerprint(uploaded.getvalue(), mapping)
    else:
        st.sidebar.info("No file uploaded; showing the simulated example dataset.")
        records = ExampleRecordSource(seed=0).records()
        data_token = "example:0"
except DataSourceError as e:
    st.error(f"Could not load data: {e}")
    st.stop()

if not records:
    st.warning("No measurement records found.")
    st.stop()

try:
    cache = _fit_cache_for(data_token, tuple(records))
except ValueError as e:
    st.error(f"Could not build dataset: {e}")
    st.stop()

dataset = cache.dataset
st.sidebar.success(
    f"**{len(records)}** measurements, **{dataset.n_points}** points in "
    f"**{len(dataset.panes)}** panes."
)
if dataset.n_excluded:
    st.sidebar.caption(
        f"{dataset.n_excluded} replicate groups excluded "
        f"({dataset.n_excluded_low_n} with fewer than 2 replicates, "
        f"{dataset.n_excluded_non_finite} non-finite)."
    )

# ---------------------------------------------------------------------------
# Display and model controls
# ---------------------------------------------------------------------------
st.sidebar.markdown("# ⚙️ Display")
plot_type = st.sidebar.radio(
    "Y-axis", options=list(PLOT_TYPES), index=1, horizontal=True, key="plot_type"
)
log_x = st.sidebar.toggle("log₁₀ mean axis", value=False, key="log_x")
combine = st.sidebar.toggle("Combine all panes", value=False, key="combine")

st.sidebar.markdown("# 📐 Model")
show_fit = st.sidebar.toggle("Show model fit", value=True, key="show_fit")
p_high = st.sidebar.slider(
    "High-signal quantile",
    min_value=0.0,
    max_value=1.0,
    value=DEFAULT_HIGH_QUANTILE,
    step=0.01,
    key="p_high",
)
p_low = st.sidebar.slider(
    "Low-signal quantile",
    min_value=0.0,
    max_value=1.0,
    value=DEFAULT_LOW_QUANTILE,
    step=0.01,
    key="p_low",
)
if p_low > p_high:
    st.sidebar.error("Low-signal quantile must not exceed the high-signal quantile.")
    st.stop()

params = FitParameters(p_low=p_low, p_high=p_high, fit_enabled=show_fit)

# ---------------------------------------------------------------------------
# Charts and fit results
# ---------------------------------------------------------------------------
fitted = cache.fitted(params)
if combine:
    combined_pane = cache.combined(params)
    fig = plot_combined(
        combined_pane, plot_type=plot_type, log_x=log_x, show_fit=show_fit
    )
    fit_table = get_fit_results_table(fitted, combined_pane=combined_pane)
    export_points = combined_pane.points
else:
    fig = plot_dataset_grid(fitted, plot_type=plot_type, log_x=log_x, show_fit=show_fit)
    fit_table = get_fit_results_table(fitted)
    export_points = [p for pane in fitted.ordered_panes() for p in pane.points]

st.pyplot(fig, use_container_width=True)

if show_fit:
    st.markdown("#### Fit results")
    display = fit_table.rename(columns=format_column_label)
    st.dataframe(
        display,
        hide_index=True,
        use_container_width=True,
        column_config={
            format_column_label(c): st.column_config.NumberColumn(
                format=f"%.{d}f"
            )
            for c, d in METRIC_DECIMALS.items()
        },
    )
    n_failed = int((~fit_table["converged"]).sum())
    if n_failed:
        st.caption(f"Model did not converge for {n_failed} pane(s).")

st.markdown("#### Export")
c_png, c_pdf, c_csv = st.columns(3)
with c_png:
    st.download_button(
        "Download PNG",
        data=figure_to_png_bytes(fig),
        file_name="mean_cv_plot.png",
        mime="image/png",
    )
with c_pdf:
    st.download_button(
        "Download PDF report",
        data=build_fit_report_pdf(
            fit_table, figure=fig, params=params, n_excluded=dataset.n_excluded
        ),
        file_name="mean_cv_report.pdf",
        mime="application/pdf",
    )
with c_csv:
    st.download_button(
        "Download points (CSV)",
        data=points_to_frame(export_points).to_csv(index=False).encode("utf-8"),
        file_name="mean_cv_points.csv",
        mime="text/csv",
    )
