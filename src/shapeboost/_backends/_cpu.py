"""CPU kernels using Numba JIT.

Plain scalar loops over contiguous float64 arrays. Missing values are NaN
in the feature arrays; for discrete features the missing-value bin is
always the last slot of a histogram.
"""

from __future__ import annotations

import numpy as np
from numba import jit


# =============================================================================
# 1D Histograms
# =============================================================================

@jit(nopython=True, cache=True)
def _accumulate_rows(
    values: np.ndarray,      # (n_samples,) float64, state index or NaN
    targets: np.ndarray,     # (n_samples,) float64
    weights: np.ndarray,     # (n_samples,) float64
    rows: np.ndarray,        # (k,) int64
    counts: np.ndarray,      # (k,) float64 row multiplicity
    sign: float,
    classification: bool,
    hist_sum: np.ndarray,    # (n_states + 1,) float64
    hist_weight: np.ndarray, # (n_states + 1,) float64
):
    """Add (sign=1) or remove (sign=-1) rows from a dense discrete histogram."""
    mv = hist_sum.shape[0] - 1
    for k in range(rows.shape[0]):
        i = rows[k]
        c = counts[k] * sign
        v = values[i]
        if np.isnan(v):
            idx = mv
        else:
            idx = int(v)
        if classification:
            hist_sum[idx] += targets[i] * c
        else:
            hist_sum[idx] += targets[i] * weights[i] * c
        hist_weight[idx] += weights[i] * c


def accumulate_rows_cpu(
    values: np.ndarray,
    targets: np.ndarray,
    weights: np.ndarray,
    rows: np.ndarray,
    counts: np.ndarray,
    hist_sum: np.ndarray,
    hist_weight: np.ndarray,
    *,
    sign: float = 1.0,
    classification: bool = False,
) -> None:
    """Update a dense discrete histogram in place with a set of rows.

    Args:
        values: Feature column, shape (n_samples,), state indices or NaN
        targets: Targets, shape (n_samples,)
        weights: Weights, shape (n_samples,)
        rows: Row indices to apply, shape (k,)
        counts: Multiplicity of each row, shape (k,)
        hist_sum: Per-state sums, shape (n_states + 1,), last slot missing
        hist_weight: Per-state weights, same shape
        sign: +1.0 to add the rows, -1.0 to remove them
        classification: Accumulate raw targets instead of target * weight
    """
    _accumulate_rows(
        values, targets, weights,
        np.ascontiguousarray(rows, dtype=np.int64),
        np.ascontiguousarray(counts, dtype=np.float64),
        float(sign), bool(classification),
        hist_sum, hist_weight,
    )


@jit(nopython=True, cache=True)
def _merge_sorted(
    values: np.ndarray,   # (k,) float64, sorted ascending
    sums: np.ndarray,     # (k,) float64
    weights: np.ndarray,  # (k,) float64
):
    """Merge runs of equal values into one (value, sum, weight) bin each."""
    n = values.shape[0]
    out_values = np.empty(n, dtype=np.float64)
    out_sums = np.empty(n, dtype=np.float64)
    out_weights = np.empty(n, dtype=np.float64)
    if n == 0:
        return out_values, out_sums, out_weights

    k = 0
    last = values[0]
    s = sums[0]
    w = weights[0]
    for i in range(1, n):
        v = values[i]
        if v != last:
            out_values[k] = last
            out_sums[k] = s
            out_weights[k] = w
            k += 1
            last = v
            s = sums[i]
            w = weights[i]
        else:
            s += sums[i]
            w += weights[i]
    out_values[k] = last
    out_sums[k] = s
    out_weights[k] = w
    k += 1
    return out_values[:k], out_sums[:k], out_weights[:k]


def merge_sorted_cpu(
    values: np.ndarray,
    sums: np.ndarray,
    weights: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Collapse sorted (value, sum, weight) rows into distinct-value bins.

    Returns:
        values: Distinct values, ascending
        sums: Sum per distinct value
        weights: Weight per distinct value
    """
    return _merge_sorted(
        np.ascontiguousarray(values, dtype=np.float64),
        np.ascontiguousarray(sums, dtype=np.float64),
        np.ascontiguousarray(weights, dtype=np.float64),
    )


# =============================================================================
# 2D Histograms and Quadrant Tables
# =============================================================================

@jit(nopython=True, cache=True)
def _build_histogram_2d(
    values1: np.ndarray,     # (n_samples,) float64
    values2: np.ndarray,     # (n_samples,) float64
    targets: np.ndarray,     # (n_samples,) float64
    weights: np.ndarray,     # (n_samples,) float64
    resp: np.ndarray,        # (n1, n2)
    count: np.ndarray,       # (n1, n2)
    resp_on_mv1: np.ndarray,   # (n2,) attribute 1 missing
    count_on_mv1: np.ndarray,  # (n2,)
    resp_on_mv2: np.ndarray,   # (n1,) attribute 2 missing
    count_on_mv2: np.ndarray,  # (n1,)
    on_mv12: np.ndarray,       # (2,) [resp, count] both missing
):
    """Accumulate (sum, weight) per (state1, state2) cell and missing channels."""
    for i in range(values1.shape[0]):
        w = weights[i]
        r = targets[i] * w
        v1 = values1[i]
        v2 = values2[i]
        mv1 = np.isnan(v1)
        mv2 = np.isnan(v2)
        if not mv1 and not mv2:
            idx1 = int(v1)
            idx2 = int(v2)
            resp[idx1, idx2] += r
            count[idx1, idx2] += w
        elif mv1 and not mv2:
            idx2 = int(v2)
            resp_on_mv1[idx2] += r
            count_on_mv1[idx2] += w
        elif not mv1 and mv2:
            idx1 = int(v1)
            resp_on_mv2[idx1] += r
            count_on_mv2[idx1] += w
        else:
            on_mv12[0] += r
            on_mv12[1] += w


def build_histogram_2d_cpu(
    values1: np.ndarray,
    values2: np.ndarray,
    targets: np.ndarray,
    weights: np.ndarray,
    n1: int,
    n2: int,
) -> tuple[np.ndarray, ...]:
    """Build a 2D histogram over two discrete features.

    Returns:
        resp, count: Shape (n1, n2)
        resp_on_mv1, count_on_mv1: Shape (n2,)
        resp_on_mv2, count_on_mv2: Shape (n1,)
        on_mv12: Shape (2,), [resp, count] for rows missing both
    """
    resp = np.zeros((n1, n2), dtype=np.float64)
    count = np.zeros((n1, n2), dtype=np.float64)
    resp_on_mv1 = np.zeros(n2, dtype=np.float64)
    count_on_mv1 = np.zeros(n2, dtype=np.float64)
    resp_on_mv2 = np.zeros(n1, dtype=np.float64)
    count_on_mv2 = np.zeros(n1, dtype=np.float64)
    on_mv12 = np.zeros(2, dtype=np.float64)

    _build_histogram_2d(
        np.ascontiguousarray(values1, dtype=np.float64),
        np.ascontiguousarray(values2, dtype=np.float64),
        np.ascontiguousarray(targets, dtype=np.float64),
        np.ascontiguousarray(weights, dtype=np.float64),
        resp, count,
        resp_on_mv1, count_on_mv1,
        resp_on_mv2, count_on_mv2,
        on_mv12,
    )
    return resp, count, resp_on_mv1, count_on_mv1, resp_on_mv2, count_on_mv2, on_mv12


@jit(nopython=True, cache=True)
def _quadrant_table(
    resp: np.ndarray,        # (n, m) cell sums
    count: np.ndarray,       # (n, m) cell weights
    csum1: np.ndarray,       # (n,) cumulative sum along axis 1
    ccount1: np.ndarray,     # (n,)
    csum2: np.ndarray,       # (m,) cumulative sum along axis 2
    ccount2: np.ndarray,     # (m,)
    table_resp: np.ndarray,  # (n, m, 4)
    table_count: np.ndarray, # (n, m, 4)
):
    """Fill quadrant aggregates for every cut (i, j) in one pass.

    Quadrants: 0 = (<=i, <=j), 1 = (<=i, >j), 2 = (>i, <=j), 3 = (>i, >j).
    """
    n = resp.shape[0]
    m = resp.shape[1]
    total_sum = csum1[n - 1]
    total_count = ccount1[n - 1]
    for i in range(n):
        row_sum = 0.0
        row_count = 0.0
        for j in range(m):
            row_sum += resp[i, j]
            row_count += count[i, j]
            if i == 0:
                s0 = row_sum
                c0 = row_count
            else:
                s0 = table_resp[i - 1, j, 0] + row_sum
                c0 = table_count[i - 1, j, 0] + row_count
            table_resp[i, j, 0] = s0
            table_resp[i, j, 1] = csum1[i] - s0
            table_resp[i, j, 2] = csum2[j] - s0
            table_resp[i, j, 3] = total_sum - csum1[i] - table_resp[i, j, 2]
            table_count[i, j, 0] = c0
            table_count[i, j, 1] = ccount1[i] - c0
            table_count[i, j, 2] = ccount2[j] - c0
            table_count[i, j, 3] = total_count - ccount1[i] - table_count[i, j, 2]


def quadrant_table_cpu(
    resp: np.ndarray,
    count: np.ndarray,
    csum1: np.ndarray,
    ccount1: np.ndarray,
    csum2: np.ndarray,
    ccount2: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Compute quadrant sums and weights for every candidate cut.

    Returns:
        table_resp: Shape (n, m, 4)
        table_count: Shape (n, m, 4)
    """
    n, m = resp.shape
    table_resp = np.zeros((n, m, 4), dtype=np.float64)
    table_count = np.zeros((n, m, 4), dtype=np.float64)
    _quadrant_table(resp, count, csum1, ccount1, csum2, ccount2, table_resp, table_count)
    return table_resp, table_count


# =============================================================================
# Line Search
# =============================================================================

@jit(nopython=True, cache=True)
def _region_newton_sums(
    regions: np.ndarray,   # (n_samples,) int64, -1 to skip
    targets: np.ndarray,   # (n_samples,) float64
    weights: np.ndarray,   # (n_samples,) float64
    numerator: np.ndarray,   # (n_regions,)
    denominator: np.ndarray, # (n_regions,)
):
    for i in range(regions.shape[0]):
        r = regions[i]
        if r < 0:
            continue
        t = targets[i]
        a = abs(t)
        numerator[r] += t * weights[i]
        denominator[r] += a * (1.0 - a) * weights[i]


def newton_step_cpu(
    regions: np.ndarray,
    targets: np.ndarray,
    weights: np.ndarray,
    n_regions: int,
) -> np.ndarray:
    """Newton step per region for a logistic working response.

    step[r] = sum(w * y) / sum(w * |y| * (1 - |y|)) over rows in region r,
    0 where the denominator is below 1e-8.
    """
    numerator = np.zeros(n_regions, dtype=np.float64)
    denominator = np.zeros(n_regions, dtype=np.float64)
    _region_newton_sums(
        np.ascontiguousarray(regions, dtype=np.int64),
        np.ascontiguousarray(targets, dtype=np.float64),
        np.ascontiguousarray(weights, dtype=np.float64),
        numerator, denominator,
    )
    step = np.zeros(n_regions, dtype=np.float64)
    nonzero = np.abs(denominator) >= 1e-8
    step[nonzero] = numerator[nonzero] / denominator[nonzero]
    return step
