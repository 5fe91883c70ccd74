"""Four-quadrant splitting of a pair of discrete attributes.

One primary cut on one axis, then independently the best companion cut
on the other axis on each side of it. Missing values get their own
regions: when the primary attribute is missing the rows are cut once more
along the secondary attribute, when the secondary attribute is missing
they follow the primary cut, and rows missing both share one prediction.

The nine regions, indexed as in the prediction vector:

    0: primary <= v1, secondary <= upper     4: primary missing, secondary <= mv cut
    1: primary <= v1, secondary >  upper     5: primary missing, secondary >  mv cut
    2: primary >  v1, secondary <= lower     6: secondary missing, primary <= v1
    3: primary >  v1, secondary >  lower     7: secondary missing, primary >  v1
                                             8: both missing

The search only scans axis 1 as primary; the other orientation is the same
search on the transposed histogram.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from .._backends import newton_step_cpu
from .._function import Function2D
from ._histogram import Histogram2D, QuadrantTable
from ._split import EPSILON, divide

if TYPE_CHECKING:
    from numpy.typing import NDArray

_log = logging.getLogger(__name__)

N_REGIONS = 9


class QuadrantCut(NamedTuple):
    """Best quadrant cut for one orientation."""
    primary: int       # Cut on the primary axis (state <= primary goes low)
    upper: int         # Secondary cut where primary <= `primary`
    lower: int         # Secondary cut where primary > `primary`
    on_mv: int         # Secondary cut for rows missing the primary (-1 if none)
    rss: float         # Residual sum of squares up to a constant
    predictions: NDArray  # (9,) region predictions


def _gains(s: NDArray, w: NDArray) -> NDArray:
    safe = np.where(w < EPSILON, 1.0, w)
    return np.where(w < EPSILON, 0.0, s / safe * s)


def _best_cut(resp: NDArray, count: NDArray, a: int, b: int) -> int:
    """First index minimising -(gain of part a + gain of part b)."""
    if resp.shape[0] == 0:
        return 0
    ev = -(_gains(resp[:, a], count[:, a]) + _gains(resp[:, b], count[:, b]))
    return int(np.argmin(ev))


def _region_stats(table: QuadrantTable, v1: int, upper: int, lower: int, on_mv: int):
    resp = np.zeros(N_REGIONS, dtype=np.float64)
    count = np.zeros(N_REGIONS, dtype=np.float64)
    resp[0:2] = table.resp[v1, upper, 0:2]
    count[0:2] = table.count[v1, upper, 0:2]
    resp[2:4] = table.resp[v1, lower, 2:4]
    count[2:4] = table.count[v1, lower, 2:4]
    if on_mv >= 0:
        resp[4:6] = table.resp_on_mv1[on_mv]
        count[4:6] = table.count_on_mv1[on_mv]
    resp[6:8] = table.resp_on_mv2[v1]
    count[6:8] = table.count_on_mv2[v1]
    resp[8] = table.resp_on_mv12
    count[8] = table.count_on_mv12
    return resp, count


def search_quadrants(table: QuadrantTable, primary_has_missing: bool) -> QuadrantCut | None:
    """Scan every primary cut of axis 1 and keep the lowest RSS.

    Returns None when axis 1 has a single state.
    """
    n, m = table.shape
    best: QuadrantCut | None = None
    if primary_has_missing:
        on_mv = _best_cut(table.resp_on_mv1, table.count_on_mv1, 0, 1)
    else:
        on_mv = -1

    for v1 in range(n - 1):
        resp = table.resp[v1, :m - 1]
        count = table.count[v1, :m - 1]
        upper = _best_cut(resp, count, 0, 1)
        lower = _best_cut(resp, count, 2, 3)

        r, c = _region_stats(table, v1, upper, lower, on_mv)
        pred = np.array([divide(r[k], c[k], 0.0) for k in range(N_REGIONS)])
        rss = float(np.sum(pred * pred * c) - 2.0 * np.sum(pred * r))
        if best is None or rss < best.rss:
            best = QuadrantCut(v1, upper, lower, on_mv, rss, pred)
    return best


def quadrant_function(att_index1: int, att_index2: int, cut: QuadrantCut) -> Function2D:
    """Lay a QuadrantCut out as a Function2D on the (primary, secondary) grid.

    Coinciding secondary cuts share one split, so the grid has between two
    and four columns.
    """
    pred = cut.predictions
    cuts2 = {cut.upper, cut.lower}
    if cut.on_mv >= 0:
        cuts2.add(cut.on_mv)
    splits2 = np.array(sorted(cuts2) + [np.inf], dtype=np.float64)
    splits1 = np.array([cut.primary, np.inf], dtype=np.float64)

    predictions = np.empty((2, splits2.shape[0]), dtype=np.float64)
    predictions[0] = np.where(splits2 <= cut.upper, pred[0], pred[1])
    predictions[1] = np.where(splits2 <= cut.lower, pred[2], pred[3])
    if cut.on_mv >= 0:
        on_mv1 = np.where(splits2 <= cut.on_mv, pred[4], pred[5])
    else:
        on_mv1 = np.zeros(splits2.shape[0], dtype=np.float64)
    on_mv2 = np.array([pred[6], pred[7]], dtype=np.float64)

    return Function2D(
        att_index1, att_index2, splits1, splits2, predictions,
        on_mv1, on_mv2, pred[8],
    )


def assign_regions(values1: NDArray, values2: NDArray, cut: QuadrantCut) -> NDArray:
    """Region index (0-8) of every row, -1 for rows no region covers."""
    values1 = np.asarray(values1, dtype=np.float64)
    values2 = np.asarray(values2, dtype=np.float64)
    mv1 = np.isnan(values1)
    mv2 = np.isnan(values2)
    low1 = values1 <= cut.primary
    regions = np.full(values1.shape[0], -1, dtype=np.int64)

    both = ~mv1 & ~mv2
    regions[both & low1 & (values2 <= cut.upper)] = 0
    regions[both & low1 & (values2 > cut.upper)] = 1
    regions[both & ~low1 & (values2 <= cut.lower)] = 2
    regions[both & ~low1 & (values2 > cut.lower)] = 3
    if cut.on_mv >= 0:
        only1 = mv1 & ~mv2
        regions[only1 & (values2 <= cut.on_mv)] = 4
        regions[only1 & (values2 > cut.on_mv)] = 5
    only2 = ~mv1 & mv2
    regions[only2 & low1] = 6
    regions[only2 & ~low1] = 7
    regions[mv1 & mv2] = 8
    return regions


def grow_quadrants(
    values1: NDArray,
    values2: NDArray,
    targets: NDArray,
    weights: NDArray,
    n1: int,
    n2: int,
    *,
    att_index1: int = 0,
    att_index2: int = 1,
    line_search: bool = False,
) -> Function2D:
    """Fit a four-quadrant function to the targets over two discrete attributes.

    Args:
        values1, values2: State indices of both attributes, NaN if missing
        targets: Targets, shape (n_samples,)
        weights: Row weights, shape (n_samples,)
        n1, n2: Number of states of each attribute
        att_index1, att_index2: Attribute indices stored on the function
        line_search: Replace region means with a Newton step on the raw rows

    Returns:
        Function2D over (att_index1, att_index2).
    """
    if n1 <= 1 or n2 <= 1:
        _log.debug("attributes (%d, %d): single state, no interaction", att_index1, att_index2)
        return Function2D(att_index1, att_index2, [np.inf], [np.inf], [[0.0]])

    hist2d = Histogram2D.build(values1, values2, targets, weights, n1, n2)
    chist1, chist2 = hist2d.cumulative()
    table = QuadrantTable.build(hist2d, chist1, chist2)
    cut = search_quadrants(table, chist1.has_missing_value)

    hist2d_t = hist2d.transpose()
    table_t = QuadrantTable.build(hist2d_t, chist2, chist1)
    cut_t = search_quadrants(table_t, chist2.has_missing_value)

    transposed = cut_t is not None and (cut is None or cut_t.rss < cut.rss)
    if transposed:
        cut = cut_t
        primary, secondary = values2, values1
    else:
        primary, secondary = values1, values2

    if line_search:
        regions = assign_regions(primary, secondary, cut)
        step = newton_step_cpu(regions, targets, weights, N_REGIONS)
        cut = cut._replace(predictions=step)

    _log.debug(
        "attributes (%d, %d): primary cut on attribute %d at %d, rss %.6g",
        att_index1, att_index2,
        att_index2 if transposed else att_index1, cut.primary, cut.rss,
    )
    if transposed:
        return quadrant_function(att_index2, att_index1, cut).transpose()
    return quadrant_function(att_index1, att_index2, cut)
