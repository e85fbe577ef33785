"""
PDF and image export of fit results.
"""

from .pdf_builder import build_fit_report_pdf, figure_to_png_bytes

__all__ = [
    "build_fit_report_pdf",
    "figure_to_png_bytes",
]
