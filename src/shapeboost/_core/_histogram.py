"""Sufficient-statistics histograms for shapeboost.

A histogram stores, per distinct feature value, the pair (sum, weight) that
is sufficient to compute a mean prediction and a split gain without going
back to the raw rows. Rows with a missing feature value are kept in a
separate side channel and never enter the ordered bins.

- Histogram: sorted (value, sum, weight) bins, input of the interval cutter
- DiscreteHistogram: dense per-state histogram that can be updated
  incrementally by adding and removing rows
- CumulativeHistogram: prefix sums over a histogram axis
- Histogram2D / QuadrantTable: joint statistics of two discrete features
  and the quadrant aggregates of every candidate cut
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from .._array import check_states
from .._backends import (
    accumulate_rows_cpu,
    build_histogram_2d_cpu,
    merge_sorted_cpu,
    quadrant_table_cpu,
)
from ._split import EPSILON, divide

if TYPE_CHECKING:
    from numpy.typing import NDArray


# =============================================================================
# 1D Histograms
# =============================================================================

@dataclass
class Histogram:
    """Sorted sufficient statistics of one feature.

    Attributes:
        values: Distinct feature values, ascending, shape (k,)
        sums: Sum of (weighted) targets per value, shape (k,)
        weights: Sum of weights per value, shape (k,)
        sum_on_mv: Sum of targets over rows with a missing value
        weight_on_mv: Sum of weights over rows with a missing value
    """
    values: NDArray[np.float64]
    sums: NDArray[np.float64]
    weights: NDArray[np.float64]
    sum_on_mv: float = 0.0
    weight_on_mv: float = 0.0

    @property
    def size(self) -> int:
        """Number of ordered (non-missing) bins."""
        return self.values.shape[0]

    def __len__(self) -> int:
        return self.size

    @property
    def has_missing_value(self) -> bool:
        return self.weight_on_mv > 0

    @property
    def prediction_on_mv(self) -> float:
        return divide(self.sum_on_mv, self.weight_on_mv, 0.0)

    def total(self, start: int = 0, end: int | None = None) -> tuple[float, float]:
        """Aggregate (sum, weight) over bins [start, end)."""
        if end is None:
            end = self.size
        return float(np.sum(self.sums[start:end])), float(np.sum(self.weights[start:end]))


def build_histogram(
    values: NDArray,
    targets: NDArray,
    weights: NDArray,
    *,
    rows: NDArray | None = None,
    counts: NDArray | None = None,
    n_states: int | None = None,
    classification: bool = False,
) -> Histogram:
    """Build a Histogram from raw rows.

    Numeric features (``n_states=None``) are sorted and equal values merged
    into one bin. Discrete features are first reduced to one triple per
    state in a dense table; empty states are dropped.

    Args:
        values: Feature column, shape (n_samples,). NaN is missing.
        targets: Targets, shape (n_samples,)
        weights: Row weights, shape (n_samples,)
        rows: Subset of row indices to use (all rows if None)
        counts: Multiplicity of each row in `rows` (ones if None)
        n_states: Number of discrete states, or None for numeric
        classification: Targets are already weighted; accumulate them as-is

    Returns:
        Histogram with the missing-value side channel filled in.
    """
    values = np.asarray(values, dtype=np.float64)
    targets = np.asarray(targets, dtype=np.float64)
    weights = np.asarray(weights, dtype=np.float64)
    if rows is None:
        rows = np.arange(values.shape[0], dtype=np.int64)
    else:
        rows = np.asarray(rows, dtype=np.int64)
    if counts is None:
        counts = np.ones(rows.shape[0], dtype=np.float64)
    else:
        counts = np.asarray(counts, dtype=np.float64)

    if n_states is not None:
        dense = DiscreteHistogram.from_rows(
            values, targets, weights, rows, counts,
            n_states=n_states, classification=classification,
        )
        return dense.to_histogram()

    v = values[rows]
    w = weights[rows] * counts
    if classification:
        s = targets[rows] * counts
    else:
        s = targets[rows] * weights[rows] * counts

    missing = np.isnan(v)
    present = ~missing
    order = np.argsort(v[present], kind="mergesort")
    bin_values, bin_sums, bin_weights = merge_sorted_cpu(
        v[present][order], s[present][order], w[present][order],
    )
    return Histogram(
        values=bin_values,
        sums=bin_sums,
        weights=bin_weights,
        sum_on_mv=float(np.sum(s[missing])),
        weight_on_mv=float(np.sum(w[missing])),
    )


@dataclass
class DiscreteHistogram:
    """Dense per-state histogram with a trailing missing-value slot.

    Shape of both arrays is (n_states + 1,); index n_states holds the rows
    whose value is missing. Used by the subbagged cutter, which derives
    each replicate's histogram from a predecessor by applying a row delta.
    """
    sums: NDArray[np.float64]
    weights: NDArray[np.float64]

    @property
    def n_states(self) -> int:
        return self.sums.shape[0] - 1

    @classmethod
    def zeros(cls, n_states: int) -> DiscreteHistogram:
        return cls(
            sums=np.zeros(n_states + 1, dtype=np.float64),
            weights=np.zeros(n_states + 1, dtype=np.float64),
        )

    @classmethod
    def from_rows(
        cls,
        values: NDArray,
        targets: NDArray,
        weights: NDArray,
        rows: NDArray,
        counts: NDArray | None = None,
        *,
        n_states: int,
        classification: bool = False,
    ) -> DiscreteHistogram:
        """Full scan of `rows` into a fresh histogram."""
        hist = cls.zeros(n_states)
        hist.add_rows(values, targets, weights, rows, counts, classification=classification)
        return hist

    def copy(self) -> DiscreteHistogram:
        return DiscreteHistogram(sums=self.sums.copy(), weights=self.weights.copy())

    def add_rows(self, values, targets, weights, rows, counts=None, *, classification=False) -> None:
        self._apply(values, targets, weights, rows, counts, 1.0, classification)

    def remove_rows(self, values, targets, weights, rows, counts=None, *, classification=False) -> None:
        self._apply(values, targets, weights, rows, counts, -1.0, classification)

    def _apply(self, values, targets, weights, rows, counts, sign, classification):
        rows = np.asarray(rows, dtype=np.int64)
        if rows.shape[0] == 0:
            return
        if counts is None:
            counts = np.ones(rows.shape[0], dtype=np.float64)
        check_states(np.asarray(values)[rows], self.n_states)
        accumulate_rows_cpu(
            values, targets, weights, rows, counts,
            self.sums, self.weights,
            sign=sign, classification=classification,
        )

    def to_histogram(self) -> Histogram:
        """Sorted Histogram over the non-empty states."""
        n = self.n_states
        keep = np.flatnonzero(np.abs(self.weights[:n]) >= EPSILON)
        return Histogram(
            values=keep.astype(np.float64),
            sums=self.sums[keep].copy(),
            weights=self.weights[keep].copy(),
            sum_on_mv=float(self.sums[n]),
            weight_on_mv=float(self.weights[n]),
        )


# =============================================================================
# Cumulative Histograms
# =============================================================================

@dataclass
class CumulativeHistogram:
    """Prefix sums over one histogram axis.

    ``sum[i]`` is the total of bins 0..i, likewise ``count[i]``. Missing
    rows are kept aside in ``sum_on_mv`` / ``count_on_mv``.
    """
    sum: NDArray[np.float64]
    count: NDArray[np.float64]
    sum_on_mv: float = 0.0
    count_on_mv: float = 0.0

    @property
    def size(self) -> int:
        return self.sum.shape[0]

    @property
    def has_missing_value(self) -> bool:
        return self.count_on_mv > 0

    @classmethod
    def from_histogram(cls, histogram: Histogram) -> CumulativeHistogram:
        return cls(
            sum=np.cumsum(histogram.sums),
            count=np.cumsum(histogram.weights),
            sum_on_mv=histogram.sum_on_mv,
            count_on_mv=histogram.weight_on_mv,
        )

    def range(self, start: int, end: int) -> tuple[float, float]:
        """(sum, weight) of bins [start, end) in O(1)."""
        if end <= start:
            return 0.0, 0.0
        s = self.sum[end - 1]
        c = self.count[end - 1]
        if start > 0:
            s -= self.sum[start - 1]
            c -= self.count[start - 1]
        return float(s), float(c)


# =============================================================================
# 2D Histograms
# =============================================================================

@dataclass
class Histogram2D:
    """Joint (sum, weight) statistics of two discrete features.

    Attributes:
        resp, count: Per-cell sums and weights, shape (n1, n2)
        resp_on_mv1, count_on_mv1: Attribute 1 missing, per state of
            attribute 2, shape (n2,)
        resp_on_mv2, count_on_mv2: Attribute 2 missing, per state of
            attribute 1, shape (n1,)
        resp_on_mv12, count_on_mv12: Both attributes missing
    """
    resp: NDArray[np.float64]
    count: NDArray[np.float64]
    resp_on_mv1: NDArray[np.float64]
    count_on_mv1: NDArray[np.float64]
    resp_on_mv2: NDArray[np.float64]
    count_on_mv2: NDArray[np.float64]
    resp_on_mv12: float = 0.0
    count_on_mv12: float = 0.0

    @property
    def shape(self) -> tuple[int, int]:
        return self.resp.shape

    @classmethod
    def build(
        cls,
        values1: NDArray,
        values2: NDArray,
        targets: NDArray,
        weights: NDArray,
        n1: int,
        n2: int,
    ) -> Histogram2D:
        check_states(values1, n1, what="values1")
        check_states(values2, n2, what="values2")
        (resp, count, resp_on_mv1, count_on_mv1,
         resp_on_mv2, count_on_mv2, on_mv12) = build_histogram_2d_cpu(
            values1, values2, targets, weights, n1, n2,
        )
        return cls(
            resp=resp,
            count=count,
            resp_on_mv1=resp_on_mv1,
            count_on_mv1=count_on_mv1,
            resp_on_mv2=resp_on_mv2,
            count_on_mv2=count_on_mv2,
            resp_on_mv12=float(on_mv12[0]),
            count_on_mv12=float(on_mv12[1]),
        )

    def transpose(self) -> Histogram2D:
        """Swap the roles of the two attributes."""
        return Histogram2D(
            resp=np.ascontiguousarray(self.resp.T),
            count=np.ascontiguousarray(self.count.T),
            resp_on_mv1=self.resp_on_mv2,
            count_on_mv1=self.count_on_mv2,
            resp_on_mv2=self.resp_on_mv1,
            count_on_mv2=self.count_on_mv1,
            resp_on_mv12=self.resp_on_mv12,
            count_on_mv12=self.count_on_mv12,
        )

    def cumulative(self) -> tuple[CumulativeHistogram, CumulativeHistogram]:
        """Cumulative histograms on both margins.

        The missing totals of each margin include the rows where that
        attribute is missing, whether or not the other one is.
        """
        chist1 = CumulativeHistogram(
            sum=np.cumsum(self.resp.sum(axis=1)),
            count=np.cumsum(self.count.sum(axis=1)),
            sum_on_mv=float(self.resp_on_mv1.sum()) + self.resp_on_mv12,
            count_on_mv=float(self.count_on_mv1.sum()) + self.count_on_mv12,
        )
        chist2 = CumulativeHistogram(
            sum=np.cumsum(self.resp.sum(axis=0)),
            count=np.cumsum(self.count.sum(axis=0)),
            sum_on_mv=float(self.resp_on_mv2.sum()) + self.resp_on_mv12,
            count_on_mv=float(self.count_on_mv2.sum()) + self.count_on_mv12,
        )
        return chist1, chist2


@dataclass
class QuadrantTable:
    """Quadrant aggregates for every candidate cut of a Histogram2D.

    ``resp[i, j, q]`` / ``count[i, j, q]`` hold the sum / weight of quadrant
    q induced by cutting attribute 1 after state i and attribute 2 after
    state j: q0 = (<=i, <=j), q1 = (<=i, >j), q2 = (>i, <=j), q3 = (>i, >j).

    ``resp_on_mv1[j]`` splits the attribute-1-missing rows at state j of
    attribute 2 into [<=j, >j]; ``resp_on_mv2[i]`` does the same for the
    attribute-2-missing rows along attribute 1. Rows missing both
    attributes only enter through ``resp_on_mv12``.
    """
    resp: NDArray[np.float64]
    count: NDArray[np.float64]
    resp_on_mv1: NDArray[np.float64]
    count_on_mv1: NDArray[np.float64]
    resp_on_mv2: NDArray[np.float64]
    count_on_mv2: NDArray[np.float64]
    resp_on_mv12: float = 0.0
    count_on_mv12: float = 0.0

    @property
    def shape(self) -> tuple[int, int]:
        return self.resp.shape[:2]

    @classmethod
    def build(
        cls,
        hist2d: Histogram2D,
        chist1: CumulativeHistogram | None = None,
        chist2: CumulativeHistogram | None = None,
    ) -> QuadrantTable:
        if chist1 is None or chist2 is None:
            chist1, chist2 = hist2d.cumulative()

        resp, count = quadrant_table_cpu(
            hist2d.resp, hist2d.count,
            chist1.sum, chist1.count,
            chist2.sum, chist2.count,
        )

        resp_on_mv1, count_on_mv1 = _split_missing_channel(
            hist2d.resp_on_mv1, hist2d.count_on_mv1,
            chist1.sum_on_mv - hist2d.resp_on_mv12,
            chist1.count_on_mv - hist2d.count_on_mv12,
        )
        resp_on_mv2, count_on_mv2 = _split_missing_channel(
            hist2d.resp_on_mv2, hist2d.count_on_mv2,
            chist2.sum_on_mv - hist2d.resp_on_mv12,
            chist2.count_on_mv - hist2d.count_on_mv12,
        )

        return cls(
            resp=resp,
            count=count,
            resp_on_mv1=resp_on_mv1,
            count_on_mv1=count_on_mv1,
            resp_on_mv2=resp_on_mv2,
            count_on_mv2=count_on_mv2,
            resp_on_mv12=hist2d.resp_on_mv12,
            count_on_mv12=hist2d.count_on_mv12,
        )


def _split_missing_channel(
    resp: NDArray,
    count: NDArray,
    total_resp: float,
    total_count: float,
) -> tuple[NDArray, NDArray]:
    """[<=j, >j] partition of a missing-value channel for every cut j."""
    cum_resp = np.cumsum(resp)
    cum_count = np.cumsum(count)
    return (
        np.column_stack([cum_resp, total_resp - cum_resp]),
        np.column_stack([cum_count, total_count - cum_count]),
    )
