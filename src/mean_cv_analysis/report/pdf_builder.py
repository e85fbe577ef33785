"""
PDF export of error-model fit results.

Uses ReportLab to combine the fit parameters, the pane grid figure and the
fit results table into a single document.
"""

import io
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    Image,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from mean_cv_analysis.chart.dataset import FitParameters
from mean_cv_analysis.utils.labels import (
    METRIC_DECIMALS,
    MISSING_LABEL,
    format_column_label,
    format_metric,
)

REPORT_COLUMNS = [
    "pane",
    "n_points",
    "n_low",
    "n_high",
    "sigma0",
    "cv1",
    "snr",
    "converged",
    "iterations",
]

# Helvetica has no glyphs for σ₀ / CV₁ subscripts
_PDF_HEADERS = {"sigma0": "sigma0", "cv1": "CV1"}


def _fit_table_data(table: pd.DataFrame) -> list[list[str]]:
    """Convert the fit results table to list of lists for a ReportLab Table."""
    cols = [c for c in REPORT_COLUMNS if c in table.columns]
    rows = [[_PDF_HEADERS.get(c, format_column_label(c)) for c in cols]]
    for record in table[cols].to_dict("records"):
        row = []
        for c in cols:
            value = record[c]
            if c in METRIC_DECIMALS:
                metric = None if pd.isna(value) else value
                row.append(format_metric(metric, METRIC_DECIMALS[c]))
            elif c == "converged":
                row.append("Yes" if value else "No")
            elif pd.isna(value):
                row.append(MISSING_LABEL)
            else:
                row.append(str(value))
        rows.append(row)
    return rows


def figure_to_png_bytes(fig, *, dpi: int = 150) -> bytes:
    """Serialize a matplotlib Figure to PNG bytes."""
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=dpi, bbox_inches="tight")
    buf.seek(0)
    return buf.getvalue()


def build_fit_report_pdf(
    fit_table: pd.DataFrame,
    *,
    figure: Optional[Any] = None,
    params: Optional[FitParameters] = None,
    n_excluded: int = 0,
    report_title: str = "Mean and CV: Two-Component Error Model",
    output_path: Optional[str | Path] = None,
) -> bytes:
    """
    Compile fit results into a PDF report.

    Args:
        fit_table: Output of get_fit_results_table.
        figure: matplotlib Figure of the pane grid or combined pane.
        params: Fit parameters, listed in the report header.
        n_excluded: Replicate groups excluded during aggregation.
        report_title: Title on first page.
        output_path: If provided, also save PDF to this path.

    Returns:
        PDF file contents as bytes (for Streamlit download).
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(letter),
        rightMargin=0.6 * inch,
        leftMargin=0.6 * inch,
        topMargin=0.6 * inch,
        bottomMargin=0.6 * inch,
    )
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "ReportTitle",
        parent=styles["Heading1"],
        fontSize=18,
        spaceAfter=12,
    )
    heading_style = ParagraphStyle(
        "SectionHeading",
        parent=styles["Heading2"],
        fontSize=14,
        spaceBefore=18,
        spaceAfter=8,
    )
    body_style = styles["Normal"]

    flow: list = []
    flow.append(Paragraph(report_title, title_style))
    flow.append(
        Paragraph(
            f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}",
            body_style,
        )
    )
    if params is not None:
        flow.append(
            Paragraph(
                f"Low-signal quantile: {params.p_low:.2f} &nbsp; "
                f"High-signal quantile: {params.p_high:.2f} &nbsp; "
                f"Model fit: {'on' if params.fit_enabled else 'off'}",
                body_style,
            )
        )
    if n_excluded:
        flow.append(
            Paragraph(
                f"{n_excluded} replicate groups excluded (fewer than 2 replicates "
                f"or non-finite statistics).",
                body_style,
            )
        )
    flow.append(Spacer(1, 0.2 * inch))

    if figure is not None:
        img_bytes = figure_to_png_bytes(figure)
        fig_w, fig_h = figure.get_size_inches()
        height = min(9.0 * inch * fig_h / fig_w, 5.5 * inch)
        width = height * fig_w / fig_h
        flow.append(Image(io.BytesIO(img_bytes), width=width, height=height))
        flow.append(Spacer(1, 0.2 * inch))

    if fit_table is not None and not fit_table.empty:
        flow.append(Paragraph("Fit Results", heading_style))
        flow.append(
            Paragraph(
                "Variance model: SD^2 = sigma0^2 + (CV1 x mean)^2. SNR = 1 / CV1. "
                "N/A marks panes where the model did not converge.",
                body_style,
            )
        )
        flow.append(Spacer(1, 0.1 * inch))
        table_data = _fit_table_data(fit_table)
        col_count = len(table_data[0])
        usable_width = 9.5 * inch
        col_widths = [usable_width / max(col_count, 1)] * col_count
        t = Table(table_data, colWidths=col_widths, repeatRows=1)
        t.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#4472C4")),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, 0), 9),
                    ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
                    ("FONTSIZE", (0, 1), (-1, -1), 8),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                    (
                        "ROWBACKGROUNDS",
                        (0, 1),
                        (-1, -1),
                        [colors.white, colors.HexColor("#f5f5f5")],
                    ),
                ]
            )
        )
        flow.append(t)

    doc.build(flow)
    pdf_bytes = buffer.getvalue()

    if output_path is not None:
        Path(output_path).write_bytes(pdf_bytes)

    return pdf_bytes
