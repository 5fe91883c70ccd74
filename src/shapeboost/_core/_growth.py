"""Interval growth for 1D shape functions.

Best-first recursive splitting of a sorted histogram into at most
`max_intervals` contiguous segments (or, in weight-limited mode, into as
many segments as the leaf weight limit allows). Each candidate segment is
scored by the loss reduction of its best cut; a min-heap on that score
decides which segment is cut next.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from .._backends import newton_step_cpu
from .._function import Function1D
from ._split import EPSILON, divide, find_best_cut

if TYPE_CHECKING:
    from numpy.typing import NDArray
    from ._histogram import Histogram

_log = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class IntervalConfig:
    """Configuration for interval growth.

    Args:
        max_intervals: Maximum number of segments of the function
        alpha: If set, switches to weight-limited growth: a segment is only
            cut while its weight exceeds ``alpha * total_weight`` and the
            cut strictly reduces the loss. `max_intervals` is then ignored.
        min_leaf_weight: Segments with at most this weight are never cut
        line_search: Replace segment means with a Newton step on the
            logistic working response
    """
    max_intervals: int | None = 10
    alpha: float | None = None
    min_leaf_weight: float = 5.0
    line_search: bool = False

    def __post_init__(self):
        if self.alpha is not None:
            if not 0.0 < self.alpha <= 1.0:
                msg = f"alpha must be in (0, 1], got {self.alpha}"
                _log.error(msg)
                raise ValueError(msg)
        elif self.max_intervals is None or self.max_intervals < 1:
            msg = f"max_intervals must be >= 1, got {self.max_intervals}"
            _log.error(msg)
            raise ValueError(msg)


# =============================================================================
# Interval Arena (Struct-of-Arrays)
# =============================================================================

class IntervalTree:
    """Binary tree of histogram segments stored as parallel arrays.

    Node i covers bins [start[i], end[i]). ``split[i]`` is +inf while the
    node has not been examined, NaN once it is declared a leaf, and the
    split value otherwise. Children are referenced by id, -1 when absent.
    """

    def __init__(self, histogram: Histogram):
        self.histogram = histogram
        capacity = max(2 * histogram.size - 1, 1)
        self.start = np.zeros(capacity, dtype=np.int64)
        self.end = np.zeros(capacity, dtype=np.int64)
        self.split = np.full(capacity, np.inf, dtype=np.float64)
        self.sum = np.zeros(capacity, dtype=np.float64)
        self.weight = np.zeros(capacity, dtype=np.float64)
        self.value = np.zeros(capacity, dtype=np.float64)
        self.gain = np.zeros(capacity, dtype=np.float64)
        self.left = np.full(capacity, -1, dtype=np.int64)
        self.right = np.full(capacity, -1, dtype=np.int64)
        self.finalized = np.zeros(capacity, dtype=np.bool_)
        self.n_nodes = 0

    def add(self, start: int, end: int, total_sum: float, total_weight: float) -> int:
        node = self.n_nodes
        self.start[node] = start
        self.end[node] = end
        self.sum[node] = total_sum
        self.weight[node] = total_weight
        self.n_nodes += 1
        return node

    def is_leaf(self, node: int) -> bool:
        return bool(np.isnan(self.split[node]))

    def prediction(self, node: int) -> float:
        return divide(self.sum[node], self.weight[node], 0.0)

    def split_node(self, node: int, limit: float, random_state) -> None:
        """Find the best cut of `node` and attach its two children.

        A node is declared a leaf when its weight is at most `limit` or it
        covers a single bin.
        """
        start = int(self.start[node])
        end = int(self.end[node])
        if self.weight[node] <= limit or end - start <= 1:
            self.split[node] = np.nan
            return

        h = self.histogram
        cut = find_best_cut(
            h.values, h.sums, h.weights, start, end,
            self.sum[node], self.weight[node], random_state,
        )
        mid = cut.position + 1
        self.left[node] = self.add(start, mid, cut.sum_left, cut.weight_left)
        self.right[node] = self.add(mid, end, cut.sum_right, cut.weight_right)
        self.split[node] = cut.split
        self.gain[node] = cut.gain
        self.value[node] = -cut.gain + self.sum[node] / self.weight[node] * self.sum[node]

    def improves(self, node: int) -> bool:
        """True when the cut of `node` lowers the loss beyond rounding noise.

        ``value`` is ``s^2/w - gain``, a difference of two nearly equal
        terms when the cut separates nothing, so it is compared against a
        tolerance relative to ``s^2/w``.
        """
        scale = max(1.0, abs(self.sum[node] / self.weight[node] * self.sum[node]))
        return bool(self.value[node] < -EPSILON * scale)

    def _walk(self, root: int):
        stack: list[tuple[int, bool]] = [(root, False)]
        while stack:
            node, visited = stack.pop()
            if not self.finalized[node] or visited:
                yield node
            else:
                stack.append((int(self.right[node]), False))
                stack.append((node, True))
                stack.append((int(self.left[node]), False))

    def leaves(self, root: int = 0) -> list[int]:
        """Ids of the segments under `root`, left to right."""
        return [node for node in self._walk(root) if not self.finalized[node]]

    def inorder(self, root: int = 0) -> tuple[list[float], list[float]]:
        """Split values of finalized nodes and predictions of the rest, in order."""
        splits: list[float] = []
        predictions: list[float] = []
        for node in self._walk(root):
            if self.finalized[node]:
                splits.append(float(self.split[node]))
            else:
                predictions.append(self.prediction(node))
        return splits, predictions


# =============================================================================
# Growth
# =============================================================================

def grow_interval_tree(
    histogram: Histogram,
    config: IntervalConfig,
    random_state,
) -> IntervalTree:
    """Run best-first growth on a histogram with at least two bins.

    The root is node 0. Finalized nodes are the cuts that were made; the
    reachable nodes that are not finalized are the segments, in order.
    """
    total_sum, total_weight = histogram.total()
    weight_limited = config.alpha is not None
    if weight_limited:
        limit = max(config.min_leaf_weight, config.alpha * total_weight)
        max_splits = histogram.size
    else:
        limit = config.min_leaf_weight
        max_splits = config.max_intervals - 1

    tree = IntervalTree(histogram)
    root = tree.add(0, histogram.size, total_sum, total_weight)
    if max_splits == 0:
        return tree
    tree.split_node(root, limit, random_state)

    heap: list[tuple[float, int, int]] = []
    counter = 0

    def push(node: int) -> None:
        nonlocal counter
        if tree.is_leaf(node):
            return
        if weight_limited and not tree.improves(node):
            return
        heapq.heappush(heap, (tree.value[node], counter, node))
        counter += 1

    push(root)
    n_splits = 0
    while heap:
        _, _, node = heapq.heappop(heap)
        tree.finalized[node] = True
        n_splits += 1
        if n_splits >= max_splits:
            break
        left, right = int(tree.left[node]), int(tree.right[node])
        tree.split_node(left, limit, random_state)
        tree.split_node(right, limit, random_state)
        push(left)
        push(right)
    return tree


def grow_intervals(
    histogram: Histogram,
    config: IntervalConfig,
    random_state,
    att_index: int = -1,
) -> Function1D:
    """Cut a histogram into segments and return the resulting function.

    Args:
        histogram: Sorted bins of one attribute
        config: Interval growth configuration
        random_state: numpy RandomState used to break ties between cuts
        att_index: Attribute index stored on the function

    Returns:
        Function1D whose predictions are the segment means and whose
        missing-value prediction is the mean of the missing rows.
    """
    prediction_on_mv = histogram.prediction_on_mv
    total_sum, total_weight = histogram.total()

    if histogram.size == 0:
        return Function1D(att_index, [np.inf], [0.0], prediction_on_mv)
    if histogram.size == 1:
        mean = divide(total_sum, total_weight, 0.0)
        return Function1D(att_index, [np.inf], [mean], prediction_on_mv)

    tree = grow_interval_tree(histogram, config, random_state)
    splits, predictions = tree.inorder(0)
    splits.append(np.inf)
    _log.debug(
        "attribute %d: %d bins cut into %d segments",
        att_index, histogram.size, len(predictions),
    )
    return Function1D(att_index, splits, predictions, prediction_on_mv)


def line_search_1d(
    function: Function1D,
    values: NDArray,
    targets: NDArray,
    weights: NDArray,
) -> Function1D:
    """Newton step per segment (and for the missing rows) from raw rows.

    Each prediction becomes ``sum(w * y) / sum(w * |y| * (1 - |y|))`` over
    the rows falling into that segment, 0 when the denominator vanishes.
    """
    values = np.asarray(values, dtype=np.float64)
    n = function.n_segments
    missing = np.isnan(values)
    regions = np.searchsorted(function.splits, np.where(missing, 0.0, values), side="left")
    regions = np.minimum(regions, n - 1).astype(np.int64)
    regions[missing] = n
    step = newton_step_cpu(regions, targets, weights, n + 1)
    return Function1D(function.att_index, function.splits.copy(), step[:n], step[n])
