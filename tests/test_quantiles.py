"""
Tests for quantile thresholds and low/high-signal classification.
"""

import numpy as np
import pytest

from mean_cv_analysis.fitting import (
    classify_by_quantiles,
    count_classes,
    is_degenerate,
    median,
    presence_scores,
    quantile,
    reclassify_by_presence,
    validate_thresholds,
)
from mean_cv_analysis.processing import DataPoint


def _points(means):
    return [
        DataPoint("A", "Ctrl", f"e{i}", float(m), 1.0, 0.01, 3)
        for i, m in enumerate(means)
    ]


class TestQuantile:
    def test_bounds_are_min_and_max(self):
        x = [3.0, -1.0, 8.5, 2.0, 2.0]
        assert quantile(x, 0.0) == min(x)
        assert quantile(x, 1.0) == max(x)

    def test_half_is_median_for_symmetric_array(self):
        x = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
        assert quantile(x, 0.5) == median(x) == 3.5

    def test_linear_interpolation(self):
        # (n - 1) * p = 0.4 -> 10 + 0.4 * (20 - 10)
        assert quantile([10.0, 20.0, 30.0], 0.2) == pytest.approx(14.0)

    def test_empty_and_out_of_range(self):
        with pytest.raises(ValueError):
            quantile([], 0.5)
        with pytest.raises(ValueError):
            quantile([1.0], 1.5)
        with pytest.raises(ValueError):
            median([])


def test_median_even_count_averages_middle():
    assert median([4.0, 1.0, 3.0, 2.0]) == 2.5


@pytest.mark.parametrize(
    "p_low, p_high", [(-0.1, 0.5), (0.2, 1.1), (0.8, 0.2), (float("nan"), 0.5)]
)
def test_invalid_thresholds(p_low, p_high):
    with pytest.raises(ValueError):
        validate_thresholds(p_low, p_high)


def test_initial_classification_by_mean_quantiles():
    points = _points(range(1, 11))
    classified = classify_by_quantiles(points, 0.1, 0.9)

    # thresholds 1.9 and 9.1
    assert [p.entity for p in classified if p.is_low_signal] == ["e0"]
    assert [p.entity for p in classified if p.is_high_signal] == ["e9"]
    assert count_classes(classified) == (1, 8, 1)


def test_initial_classification_ignores_incoming_flags():
    points = [p.with_flags(True, False) for p in _points(range(1, 11))]
    classified = classify_by_quantiles(points, 0.1, 0.9)
    assert count_classes(classified) == (1, 8, 1)


def test_tie_is_classified_low():
    classified = classify_by_quantiles(_points([5.0, 5.0, 5.0]), 0.5, 0.5)
    assert all(p.is_low_signal and not p.is_high_signal for p in classified)
    assert is_degenerate(classified)


def test_classification_does_not_mutate_input():
    points = _points([1.0, 2.0, 3.0])
    classify_by_quantiles(points, 0.1, 0.9)
    assert not any(p.in_model for p in points)


def test_high_count_never_increases_with_p_high():
    rng = np.random.default_rng(3)
    points = _points(rng.lognormal(3.0, 2.0, size=60))

    counts = [
        count_classes(classify_by_quantiles(points, 0.05, p_high))[2]
        for p_high in np.linspace(0.05, 1.0, 20)
    ]
    assert all(a >= b for a, b in zip(counts, counts[1:]))


def test_presence_scores():
    scores = presence_scores([0.0, 20.0, 1e6], ssq0=4.0, ssq1=0.01)
    # 0.1 * 20 / (0.1 * 20 + 2)
    assert scores[0] == 0.0
    assert scores[1] == pytest.approx(0.5)
    assert scores[2] == pytest.approx(1.0, abs=1e-4)


def test_presence_zero_without_proportional_component():
    assert np.all(presence_scores([1.0, 100.0], ssq0=4.0, ssq1=0.0) == 0.0)


def test_presence_zero_when_denominator_zero():
    assert presence_scores([0.0], ssq0=0.0, ssq1=0.01)[0] == 0.0


def test_reclassify_uses_raw_fractions_against_presence():
    points = _points([1.0, 20.0, 1000.0])
    out = reclassify_by_presence(points, 4.0, 0.01, 0.1, 0.9)

    # presence ~0.048, 0.5, ~0.98
    assert [p.is_low_signal for p in out] == [True, False, False]
    assert [p.is_high_signal for p in out] == [False, False, True]
    assert not is_degenerate(out)


def test_presence_zero_for_non_positive_means():
    means = [-25.0, -19.9, 0.0, 5.0]
    scores = presence_scores(means, ssq0=4.0, ssq1=0.01)

    np.testing.assert_allclose(scores, [0.0, 0.0, 0.0, 0.2])
    assert np.all((scores >= 0.0) & (scores <= 1.0))

    out = reclassify_by_presence(_points(means), 4.0, 0.01, 0.1, 0.9)
    assert [p.is_low_signal for p in out] == [True, True, True, False]
    assert not any(p.is_high_signal for p in out)
