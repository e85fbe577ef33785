"""
Tests for grid ordering and label formatting.
"""

import math

import pytest

from mean_cv_analysis.utils import (
    MISSING_LABEL,
    format_column_label,
    format_metric,
    order_conditions,
    order_supergroups,
)


def test_control_first_then_alphabetical():
    assert order_conditions(["Treat", "Control", "Alpha", "Treat"]) == [
        "Control",
        "Alpha",
        "Treat",
    ]


def test_control_match_is_exact():
    assert order_conditions(["control", "Beta"]) == ["Beta", "control"]


def test_supergroups_sorted_and_distinct():
    assert order_supergroups(["B", "A", "B"]) == ["A", "B"]


@pytest.mark.parametrize(
    "col, label",
    [("sigma0", "σ₀"), ("cv1", "CV₁"), ("n_points", "Points"), ("extra_col", "Extra Col")],
)
def test_column_labels(col, label):
    assert format_column_label(col) == label


@pytest.mark.parametrize("value", [None, math.nan, math.inf, "abc"])
def test_missing_metrics(value):
    assert format_metric(value) == MISSING_LABEL


def test_metric_decimals():
    assert format_metric(2.0049, 2) == "2.00"
    assert format_metric(0.1) == "0.1000"
