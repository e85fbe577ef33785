"""
Pytest configuration and shared fixtures for mean_cv_analysis tests.
"""
import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pytest

from mean_cv_analysis.data import MeasurementRecord


# ==============================================================================
# Deterministic replicate data
# ==============================================================================

TRUE_SSQ0 = 4.0
TRUE_SSQ1 = 0.01

# Ten entities well below and ten well above the sigma0 / cv1 crossover
LOW_MEANS = np.linspace(0.2, 1.5, 10)
HIGH_MEANS = np.geomspace(500.0, 5000.0, 10)
ENTITY_MEANS = np.concatenate([LOW_MEANS, HIGH_MEANS])


def exact_replicates(mean: float, ssq0: float = TRUE_SSQ0, ssq1: float = TRUE_SSQ1):
    """Three replicates whose sample mean and SD match the model exactly."""
    sd = np.sqrt(ssq0 + ssq1 * mean**2)
    return [mean - sd, mean, mean + sd]


def make_records(
    supergroups=("A", "B"),
    conditions=("Ctrl", "Treat"),
    entity_means=ENTITY_MEANS,
    replicates=exact_replicates,
):
    records = []
    for sg in supergroups:
        for cond in conditions:
            for i, mean in enumerate(entity_means):
                records.extend(
                    MeasurementRecord(sg, cond, f"e{i:02d}", float(v))
                    for v in replicates(mean)
                )
    return records


@pytest.fixture
def model_records():
    """2 supergroups x 2 conditions x 20 entities x 3 exact replicates."""
    return make_records()


@pytest.fixture
def single_pane_records():
    return make_records(supergroups=("A",), conditions=("Ctrl",))


@pytest.fixture
def flat_records():
    """Every entity's replicates are identical (SD = 0 everywhere)."""
    return make_records(
        supergroups=("A",),
        conditions=("Ctrl",),
        entity_means=np.arange(1.0, 21.0),
        replicates=lambda m: [m, m, m],
    )


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")
