"""
Tests for pane grid assembly, dataset fitting, fit caching and the results table.
"""

import pandas as pd
import pytest

from conftest import ENTITY_MEANS, make_records

from mean_cv_analysis.chart import (
    FIT_TABLE_COLUMNS,
    FitCache,
    FitKey,
    FitParameters,
    Pane,
    build_dataset,
    combine_panes,
    fit_combined,
    fit_dataset,
    fit_pane,
    get_fit_results_table,
)
from mean_cv_analysis.constants import COMBINED_CONDITION, COMBINED_SUPERGROUP
from mean_cv_analysis.data import MeasurementRecord, simulate_measurements
from mean_cv_analysis.fitting import FitStatus
from mean_cv_analysis.processing import (
    PaneKey,
    aggregate_replicates,
    points_from_frame,
    points_to_frame,
)

PARAMS = FitParameters(p_low=0.1, p_high=0.9)


@pytest.fixture
def dataset(model_records):
    return build_dataset(model_records)


class TestBuildDataset:
    def test_grid_layout(self, dataset):
        assert dataset.supergroups == ("A", "B")
        assert dataset.conditions == ("Ctrl", "Treat")
        assert len(dataset.panes) == 4
        assert dataset.n_points == 80
        assert all(p.fit is None for p in dataset.panes.values())

    def test_control_condition_leads(self):
        records = make_records(supergroups=("Z", "M"), conditions=("Treat", "Alpha", "Control"))
        ds = build_dataset(records)

        assert ds.supergroups == ("M", "Z")
        assert ds.conditions == ("Control", "Alpha", "Treat")
        assert [p.label for p in ds.ordered_panes()][:3] == [
            "M.Control",
            "M.Alpha",
            "M.Treat",
        ]

    def test_iter_grid_yields_empty_cells(self):
        records = make_records(supergroups=("A",), conditions=("X",)) + make_records(
            supergroups=("B",), conditions=("Y",)
        )
        cells = list(build_dataset(records).iter_grid())

        assert [(sg, cond) for sg, cond, _ in cells] == [
            ("A", "X"),
            ("A", "Y"),
            ("B", "X"),
            ("B", "Y"),
        ]
        assert [pane is None for _, _, pane in cells] == [False, True, True, False]

    def test_accepts_aggregation_result(self, model_records):
        ds = build_dataset(aggregate_replicates(model_records))
        assert ds.n_points == 80

    def test_no_usable_groups_raise(self):
        records = [MeasurementRecord("A", "Ctrl", f"e{i}", 1.0) for i in range(5)]
        with pytest.raises(ValueError, match="No replicate group"):
            build_dataset(records)

    def test_exclusions_carried(self, model_records):
        extra = [MeasurementRecord("A", "Ctrl", "lonely", 3.0)]
        ds = build_dataset(model_records + extra)
        assert ds.n_excluded_low_n == 1
        assert ds.n_excluded == 1

    def test_pane_ranges(self, dataset):
        pane = dataset.get_pane("A", "Ctrl")
        lo, hi = pane.mean_range
        assert lo == pytest.approx(ENTITY_MEANS.min())
        assert hi == pytest.approx(ENTITY_MEANS.max())
        assert pane.sd_range[0] > 0

    def test_empty_pane_rejected(self):
        with pytest.raises(ValueError):
            Pane(key=PaneKey("A", "Ctrl"), points=())


class TestFitting:
    def test_every_pane_converges(self, dataset):
        fitted = fit_dataset(dataset, PARAMS)

        assert fitted.params == PARAMS
        for pane in fitted.ordered_panes():
            assert pane.fit.converged
            assert pane.fit.sigma0 == pytest.approx(2.0, rel=0.01)
            assert pane.fit.cv1 == pytest.approx(0.1, rel=0.02)

    def test_two_by_two_scenario_each_pane_within_tolerance(self, dataset):
        # 2 supergroups x 2 conditions x 20 entities x 3 replicates, ssq0=4, ssq1=0.01
        assert dataset.n_points == 80
        for _, _, pane in dataset.iter_grid():
            fit = fit_pane(pane, FitParameters(p_low=0.1, p_high=0.9)).fit
            assert pane.n_points == 20
            assert fit.converged, pane.label
            assert abs(fit.sigma0 - 2.0) <= 0.25 * 2.0
            assert abs(fit.cv1 - 0.1) <= 0.25 * 0.1

    def test_original_dataset_untouched(self, dataset):
        fit_dataset(dataset, PARAMS)
        pane = dataset.get_pane("A", "Ctrl")
        assert pane.fit is None
        assert not any(p.in_model for p in pane.points)

    def test_disabled_fit_only_classifies(self, dataset):
        pane = fit_pane(dataset.get_pane("A", "Ctrl"), FitParameters(0.1, 0.9, False))

        assert pane.fit.status is FitStatus.DISABLED
        assert not pane.fit.converged
        assert pane.fit.curve == ()
        assert (pane.fit.n_low, pane.fit.n_high) == (2, 2)

    def test_parameters_validated(self):
        with pytest.raises(ValueError):
            FitParameters(p_low=0.9, p_high=0.1)
        assert FitParameters(0.1, 0.9) == PARAMS

    def test_round_trip_through_frame_gives_same_fit(self, dataset):
        pane = dataset.get_pane("B", "Treat")
        direct = fit_pane(pane, PARAMS)

        restored = Pane(key=pane.key, points=points_from_frame(points_to_frame(direct.points)))
        refit = fit_pane(restored, PARAMS)

        assert refit.fit == direct.fit
        # compared as frames: low-signal points carry NaN lvar
        pd.testing.assert_frame_equal(
            points_to_frame(refit.points), points_to_frame(direct.points)
        )


class TestCombined:
    def test_combined_pane_keeps_origins(self, dataset):
        combined = combine_panes(dataset)

        assert combined.key == PaneKey(COMBINED_SUPERGROUP, COMBINED_CONDITION)
        assert combined.n_points == 80
        assert [k.label for k in combined.origin_keys] == [
            "A.Ctrl",
            "A.Treat",
            "B.Ctrl",
            "B.Treat",
        ]

    def test_combined_is_refit_on_union(self, dataset):
        combined = fit_combined(dataset, PARAMS)

        assert combined.fit.converged
        assert combined.fit.n_low == 40
        assert combined.fit.n_high == 40
        assert combined.fit.sigma0 == pytest.approx(2.0, rel=0.01)

    def test_random_replicates_recover_model(self):
        records = simulate_measurements(
            supergroups=("A", "B"),
            conditions=("Ctrl", "Treat"),
            n_replicates=3,
            ssq0=4.0,
            ssq1=0.01,
            entity_means=ENTITY_MEANS,
            seed=11,
        )
        combined = fit_combined(build_dataset(records), PARAMS)

        assert combined.fit.converged
        assert combined.fit.sigma0 == pytest.approx(2.0, rel=0.25)
        # median of 2-df variance estimates biases CV1 low
        assert 0.05 < combined.fit.cv1 < 0.15


class TestFitCache:
    def test_hits_on_equal_parameters(self, dataset):
        cache = FitCache(dataset)
        cache.fitted(PARAMS)
        assert (cache.hits, cache.misses) == (0, 4)

        cache.fitted(FitParameters(0.1, 0.9))
        assert (cache.hits, cache.misses) == (4, 4)
        assert len(cache) == 4

    def test_changed_parameters_miss(self, dataset):
        cache = FitCache(dataset)
        a = cache.pane("A", "Ctrl", PARAMS)
        b = cache.pane("A", "Ctrl", FitParameters(0.1, 0.8))
        c = cache.pane("A", "Ctrl", FitParameters(0.1, 0.9, fit_enabled=False))

        assert cache.misses == 3
        assert a.fit.status is FitStatus.CONVERGED
        assert c.fit.status is FitStatus.DISABLED
        assert b is not a

    def test_combined_cached_separately(self, dataset):
        cache = FitCache(dataset)
        cache.fitted(PARAMS)
        first = cache.combined(PARAMS)
        second = cache.combined(PARAMS)

        assert first is second
        assert cache.misses == 5

    def test_invalidate(self, dataset):
        cache = FitCache(dataset)
        cache.fitted(PARAMS)
        cache.invalidate()
        assert len(cache) == 0

    def test_missing_pane(self, dataset):
        with pytest.raises(KeyError):
            FitCache(dataset).pane("Z", "Ctrl", PARAMS)

    def test_fit_key_compares_by_value(self):
        key = PaneKey("A", "Ctrl")
        assert FitKey.for_pane(key, PARAMS) == FitKey(PaneKey("A", "Ctrl"), 0.1, 0.9, True)

    def test_dotted_labels_do_not_share_entries(self):
        records = make_records(supergroups=("a.b",), conditions=("c",)) + make_records(
            supergroups=("a",), conditions=("b.c",), entity_means=ENTITY_MEANS[:5]
        )
        cache = FitCache(build_dataset(records))

        first = cache.pane("a.b", "c", PARAMS)
        second = cache.pane("a", "b.c", PARAMS)

        assert first.label == second.label == "a.b.c"
        assert first.key == PaneKey("a.b", "c")
        assert second.key == PaneKey("a", "b.c")
        assert (first.n_points, second.n_points) == (20, 5)
        assert cache.misses == 2

    def test_combined_entry_separate_from_same_named_cell(self):
        records = make_records(
            supergroups=(COMBINED_SUPERGROUP,), conditions=(COMBINED_CONDITION, "Ctrl")
        )
        cache = FitCache(build_dataset(records))

        cell = cache.pane(COMBINED_SUPERGROUP, COMBINED_CONDITION, PARAMS)
        combined = cache.combined(PARAMS)

        assert cell.n_points == 20
        assert combined.n_points == 40

    def test_new_parameters_evict_previous_generation(self, dataset):
        cache = FitCache(dataset)
        cache.fitted(PARAMS)
        cache.combined(PARAMS)
        assert len(cache) == 5

        cache.fitted(FitParameters(0.1, 0.8))
        assert len(cache) == 4
        assert cache.misses == 9

        cache.fitted(PARAMS)
        assert len(cache) == 4
        assert (cache.hits, cache.misses) == (0, 13)


class TestFitResultsTable:
    def test_rows_in_grid_order(self, dataset):
        table = get_fit_results_table(fit_dataset(dataset, PARAMS))

        assert list(table.columns) == FIT_TABLE_COLUMNS
        assert table["pane"].tolist() == ["A.Ctrl", "A.Treat", "B.Ctrl", "B.Treat"]
        assert table["converged"].all()
        assert table["sigma0"].dtype == "Float64"
        assert (table["status"] == "converged").all()

    def test_failed_fit_shows_na(self, flat_records):
        ds = fit_dataset(build_dataset(flat_records), FitParameters())
        table = get_fit_results_table(ds)

        row = table.iloc[0]
        assert not row["converged"]
        assert row["status"] == "no_high_signal"
        assert pd.isna(row["sigma0"]) and pd.isna(row["cv1"]) and pd.isna(row["snr"])

    def test_combined_row_replaces_panes(self, dataset):
        fitted = fit_dataset(dataset, PARAMS)
        table = get_fit_results_table(
            fitted, combined_pane=fit_combined(dataset, PARAMS)
        )

        assert len(table) == 1
        assert table.iloc[0]["supergroup"] == COMBINED_SUPERGROUP
        assert table.iloc[0]["n_points"] == 80

    def test_unfitted_dataset(self, dataset):
        table = get_fit_results_table(dataset)
        assert (table["status"] == "not_fitted").all()
        assert table["iterations"].eq(0).all()
