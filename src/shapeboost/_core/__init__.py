"""Core shaping algorithms: histograms, cut search, interval and quadrant growth."""

from ._growth import (
    IntervalConfig,
    IntervalTree,
    grow_interval_tree,
    grow_intervals,
    line_search_1d,
)
from ._histogram import (
    CumulativeHistogram,
    DiscreteHistogram,
    Histogram,
    Histogram2D,
    QuadrantTable,
    build_histogram,
)
from ._quadrant import QuadrantCut, grow_quadrants, search_quadrants
from ._split import CutInfo, divide, find_best_cut, gain
from ._subag import Sample, SampleDelta, SubagSequence, UnionFind

__all__ = [
    "CumulativeHistogram",
    "CutInfo",
    "DiscreteHistogram",
    "Histogram",
    "Histogram2D",
    "IntervalConfig",
    "IntervalTree",
    "QuadrantCut",
    "QuadrantTable",
    "Sample",
    "SampleDelta",
    "SubagSequence",
    "UnionFind",
    "build_histogram",
    "divide",
    "find_best_cut",
    "gain",
    "grow_interval_tree",
    "grow_intervals",
    "grow_quadrants",
    "line_search_1d",
    "search_quadrants",
]
