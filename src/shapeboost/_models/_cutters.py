"""Shape-function learners.

Front-ends that read one attribute (or a pair) out of an `Instances`
dataset, build the histograms and run interval or quadrant growth:

- LineCutter: one Function1D per call
- BaggedLineCutter: one Function1D per bootstrap replicate
- SubaggedLineCutter: one Function1D per subsample, histograms derived
  incrementally along a SubagSequence
- SquareCutter: one four-quadrant Function2D per call
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from sklearn.utils import check_random_state

from .._array import Attribute, Instances
from .._core._growth import IntervalConfig, grow_intervals, line_search_1d
from .._core._histogram import DiscreteHistogram, Histogram, build_histogram
from .._core._quadrant import grow_quadrants
from .._core._subag import SubagSequence
from .._function import BaggedEnsemble, Function1D, Function2D

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

_log = logging.getLogger(__name__)


def attribute_histogram(
    instances: Instances,
    attribute: Attribute,
    rows: NDArray | None = None,
    counts: NDArray | None = None,
    *,
    classification: bool = False,
) -> Histogram:
    """Histogram of one attribute over a subset of rows (all rows if None)."""
    n_states = attribute.num_states() if attribute.is_discrete else None
    return build_histogram(
        instances.column(attribute.index),
        instances.targets,
        instances.weights,
        rows=rows,
        counts=counts,
        n_states=n_states,
        classification=classification,
    )


def _get_attribute(instances: Instances, att_index: int) -> Attribute:
    if not 0 <= att_index < len(instances.attributes):
        msg = f"attribute index {att_index} out of range for {len(instances.attributes)} attributes"
        _log.error(msg)
        raise ValueError(msg)
    return instances.attributes[att_index]


# =============================================================================
# 1D Cutters
# =============================================================================

@dataclass
class _BaseLineCutter:
    """Parameters shared by the interval cutters.

    Args:
        num_intervals: Maximum number of segments per function
        alpha: Weight-limited growth; see IntervalConfig
        min_leaf_weight: Segments with at most this weight are never cut
        classification: Targets are already weighted (accumulate them as-is)
        random_state: Seed or RandomState used to break ties and to sample
    """
    num_intervals: int | None = 10
    alpha: float | None = None
    min_leaf_weight: float = 5.0
    classification: bool = False
    random_state: int | np.random.RandomState | None = None

    def _config(self, line_search: bool = False) -> IntervalConfig:
        return IntervalConfig(
            max_intervals=self.num_intervals,
            alpha=self.alpha,
            min_leaf_weight=self.min_leaf_weight,
            line_search=line_search,
        )


@dataclass
class LineCutter(_BaseLineCutter):
    """Piecewise-constant fit of the targets on one attribute.

    Example:
        >>> import shapeboost as sb
        >>> data = sb.array(X, residuals)
        >>> f = sb.LineCutter(num_intervals=8, random_state=0).build(data, 3)
        >>> f.predict(data.values)
    """
    line_search: bool = False

    def build(self, instances: Instances, att_index: int) -> Function1D:
        attribute = _get_attribute(instances, att_index)
        config = self._config(self.line_search)
        rng = check_random_state(self.random_state)

        histogram = attribute_histogram(instances, attribute, classification=self.classification)
        function = grow_intervals(histogram, config, rng, att_index)
        if config.line_search:
            function = line_search_1d(
                function, instances.column(att_index), instances.targets, instances.weights,
            )
        return function


@dataclass
class BaggedLineCutter(_BaseLineCutter):
    """LineCutter over bootstrap replicates of the rows.

    Args:
        n_bags: Number of bootstrap replicates. With ``n_bags <= 0`` a single
            replicate holding every row once is used.
    """
    n_bags: int = 0

    samples_: list[tuple[NDArray, NDArray]] | None = field(default=None, init=False, repr=False)
    n_rows_: int | None = field(default=None, init=False, repr=False)

    def create_bootstrap_samples(self, n_rows: int) -> list[tuple[NDArray, NDArray]]:
        """Draw the replicates as (row indices, multiplicities) pairs."""
        rng = check_random_state(self.random_state)
        if self.n_bags <= 0:
            samples = [(np.arange(n_rows, dtype=np.int64), np.ones(n_rows, dtype=np.float64))]
        else:
            samples = []
            for _ in range(self.n_bags):
                rows, counts = np.unique(rng.randint(0, n_rows, n_rows), return_counts=True)
                samples.append((rows.astype(np.int64), counts.astype(np.float64)))
        self.samples_ = samples
        self.n_rows_ = n_rows
        return samples

    def build(self, instances: Instances, att_index: int) -> BaggedEnsemble:
        attribute = _get_attribute(instances, att_index)
        if self.samples_ is None or self.n_rows_ != instances.n_samples:
            self.create_bootstrap_samples(instances.n_samples)
        config = self._config()
        rng = check_random_state(self.random_state)

        ensemble = BaggedEnsemble()
        for rows, counts in self.samples_:
            histogram = attribute_histogram(
                instances, attribute, rows, counts, classification=self.classification,
            )
            ensemble.append(grow_intervals(histogram, config, rng, att_index))
        return ensemble


@dataclass
class SubaggedLineCutter(_BaseLineCutter):
    """LineCutter over subsamples drawn without replacement.

    For discrete attributes only the root subsample is scanned in full;
    every other histogram is derived from a neighbour in the subsample
    sequence by adding and removing the rows the two do not share.

    Args:
        subsample_ratio: Fraction of rows in each subsample
        n_bags: Number of subsamples
    """
    subsample_ratio: float = 0.5
    n_bags: int = 10

    sequence_: SubagSequence | None = field(default=None, init=False, repr=False)
    n_rows_: int | None = field(default=None, init=False, repr=False)

    def create_subags(self, n_rows: int) -> SubagSequence:
        subsample_size = int(n_rows * self.subsample_ratio)
        self.sequence_ = SubagSequence.build(
            n_rows, subsample_size, self.n_bags, random_state=self.random_state,
        )
        self.n_rows_ = n_rows
        return self.sequence_

    def build(self, instances: Instances, att_index: int) -> BaggedEnsemble:
        attribute = _get_attribute(instances, att_index)
        if self.sequence_ is None or self.n_rows_ != instances.n_samples:
            self.create_subags(instances.n_samples)
        seq = self.sequence_
        config = self._config()
        rng = check_random_state(self.random_state)

        if attribute.is_discrete:
            histograms = self._incremental_histograms(instances, attribute, seq)
        else:
            histograms = [
                attribute_histogram(
                    instances, attribute, sample.indices, classification=self.classification,
                )
                for sample in seq.samples
            ]
        return BaggedEnsemble([
            grow_intervals(h, config, rng, att_index) for h in histograms
        ])

    def _incremental_histograms(
        self,
        instances: Instances,
        attribute: Attribute,
        seq: SubagSequence,
    ) -> list[Histogram]:
        values = instances.column(attribute.index)
        targets = instances.targets
        weights = instances.weights
        remaining = seq.out_degree.copy()

        dense: list[DiscreteHistogram | None] = [None] * seq.n_bags
        out: list[Histogram | None] = [None] * seq.n_bags
        dense[seq.root] = DiscreteHistogram.from_rows(
            values, targets, weights, seq.samples[seq.root].indices,
            n_states=attribute.num_states(), classification=self.classification,
        )
        out[seq.root] = dense[seq.root].to_histogram()

        for src, dst, delta in seq:
            remaining[src] -= 1
            if remaining[src] == 0:
                hist = dense[src]
                dense[src] = None
            else:
                hist = dense[src].copy()
            hist.add_rows(values, targets, weights, delta.to_add, classification=self.classification)
            hist.remove_rows(values, targets, weights, delta.to_del, classification=self.classification)
            dense[dst] = hist
            out[dst] = hist.to_histogram()
        return out


# =============================================================================
# 2D Cutter
# =============================================================================

@dataclass
class SquareCutter:
    """Four-quadrant fit of the targets on a pair of discrete attributes.

    Args:
        line_search: Replace region means with a Newton step on the raw rows
    """
    line_search: bool = False

    def build(self, instances: Instances, att_index1: int, att_index2: int) -> Function2D:
        attribute1 = _get_attribute(instances, att_index1)
        attribute2 = _get_attribute(instances, att_index2)
        for attribute in (attribute1, attribute2):
            if not attribute.is_discrete:
                msg = (
                    f"attribute {attribute.index} is numeric; quadrant cutting "
                    f"needs binned or nominal attributes"
                )
                _log.error(msg)
                raise ValueError(msg)

        return grow_quadrants(
            instances.column(att_index1),
            instances.column(att_index2),
            instances.targets,
            instances.weights,
            attribute1.num_states(),
            attribute2.num_states(),
            att_index1=att_index1,
            att_index2=att_index2,
            line_search=self.line_search,
        )


# =============================================================================
# Entry points
# =============================================================================

def build_interval(
    instances: Instances,
    att_index: int,
    targets: ArrayLike | None = None,
    *,
    num_intervals: int | None = 10,
    alpha: float | None = None,
    line_search: bool = False,
    random_state=None,
) -> Function1D:
    """Fit a 1D shape function of `att_index` to the given residuals.

    Args:
        instances: Dataset
        att_index: Attribute to shape
        targets: Residuals to fit (the dataset targets if None)
        num_intervals: Maximum number of segments
        alpha: Weight-limited growth instead of a segment cap
        line_search: Newton step per segment
        random_state: Seed or RandomState for tie-breaking
    """
    if targets is not None:
        instances = instances.with_targets(targets)
    cutter = LineCutter(
        num_intervals=num_intervals,
        alpha=alpha,
        line_search=line_search,
        random_state=random_state,
    )
    return cutter.build(instances, att_index)


def build_quadrant(
    instances: Instances,
    att_index1: int,
    att_index2: int,
    targets: ArrayLike | None = None,
    *,
    line_search: bool = False,
) -> Function2D:
    """Fit a four-quadrant interaction function of two discrete attributes."""
    if targets is not None:
        instances = instances.with_targets(targets)
    return SquareCutter(line_search=line_search).build(instances, att_index1, att_index2)
