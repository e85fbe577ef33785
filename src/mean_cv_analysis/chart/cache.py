"""
Explicit memoisation of pane fits.

A fit is valid only for the (p_low, p_high, fit_enabled) it was computed
with. Entries are keyed by a value-compared FitKey per pane, so changing any
input misses the cache instead of returning a stale fit. Only the current
parameter generation is kept: the first request under new FitParameters
evicts every entry fitted under the previous ones. One FitCache belongs to
one raw-data load; build a new one (or call invalidate) when data reloads.
"""

import logging
from typing import NamedTuple, Optional, Union

from mean_cv_analysis.chart.dataset import (
    Dataset,
    FitParameters,
    Pane,
    combine_panes,
    fit_pane,
)
from mean_cv_analysis.processing.aggregation import PaneKey

logger = logging.getLogger(__name__)

# Not a PaneKey, so it cannot collide with a grid cell of the same labels
COMBINED_PANE_ID = "__combined__"


class FitKey(NamedTuple):
    pane_id: Union[PaneKey, str]
    p_low: float
    p_high: float
    fit_enabled: bool

    @classmethod
    def for_pane(
        cls, pane_id: Union[PaneKey, str], params: FitParameters
    ) -> "FitKey":
        return cls(pane_id, params.p_low, params.p_high, params.fit_enabled)


class FitCache:
    """Per-pane fit memo for one Dataset."""

    def __init__(self, dataset: Dataset):
        self.dataset = dataset
        self._fits: dict[FitKey, Pane] = {}
        self._params: Optional[FitParameters] = None
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._fits)

    def invalidate(self) -> None:
        self._fits.clear()
        self._params = None

    def _get_or_fit(
        self, pane_id: Union[PaneKey, str], pane: Pane, params: FitParameters
    ) -> Pane:
        if params != self._params:
            if self._fits:
                logger.debug(
                    "Evicting %d fits for %s", len(self._fits), self._params
                )
            self._fits.clear()
            self._params = params

        key = FitKey.for_pane(pane_id, params)
        cached = self._fits.get(key)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        fitted = fit_pane(pane, params)
        self._fits[key] = fitted
        return fitted

    def pane(self, supergroup: str, condition: str, params: FitParameters) -> Pane:
        """Fitted pane for the grid cell, computed at most once per params."""
        pane = self.dataset.get_pane(supergroup, condition)
        if pane is None:
            raise KeyError(f"No pane for {supergroup}.{condition}")
        return self._get_or_fit(pane.key, pane, params)

    def fitted(self, params: FitParameters) -> Dataset:
        """The dataset with every pane fitted under params."""
        panes = {
            key: self._get_or_fit(key, pane, params)
            for key, pane in self.dataset.panes.items()
        }
        logger.debug(
            "Fitted dataset for %s (cache hits=%d, misses=%d)",
            params,
            self.hits,
            self.misses,
        )
        return self.dataset.with_panes(panes, params)

    def combined(self, params: FitParameters) -> Pane:
        """Fitted union of all panes."""
        return self._get_or_fit(COMBINED_PANE_ID, combine_panes(self.dataset), params)
