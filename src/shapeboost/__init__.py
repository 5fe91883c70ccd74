"""shapeboost: shape functions for boosted additive models.

The feature-shaping engine behind GAM / GA2M boosting: given a binned
feature and the current residuals, cut the feature into a few intervals
(or a feature pair into quadrants) that best explain them, and fold the
resulting piecewise functions into one deployable lookup table.

Quick Start:
    >>> import shapeboost as sb
    >>>
    >>> data = sb.array(X_train, y_train, n_bins=64)
    >>> pred = np.zeros(len(y_train))
    >>> model = sb.BoostedEnsemble()
    >>> for _ in range(100):
    ...     for j in range(data.n_features):
    ...         f = sb.build_interval(data, j, y_train - pred, num_intervals=8)
    ...         f = f.multiply(0.1)
    ...         model.append(f)
    ...         pred += f.predict(data.values)

Interactions:
    >>> g = sb.build_quadrant(data, 0, 1, y_train - pred)

Subbagging:
    >>> cutter = sb.SubaggedLineCutter(num_intervals=8, n_bags=20, random_state=0)
    >>> f = sb.compress(cutter.build(data, 0))
"""

__version__ = "0.1.0"

# Data
from ._array import Attribute, AttributeKind, Instances, array

# Core structures
from ._core import (
    CumulativeHistogram,
    DiscreteHistogram,
    Histogram,
    Histogram2D,
    IntervalConfig,
    QuadrantTable,
    Sample,
    SampleDelta,
    SubagSequence,
    UnionFind,
    build_histogram,
    grow_intervals,
    grow_quadrants,
)

# Functions and algebra
from ._function import (
    Array1D,
    Array2D,
    BaggedEnsemble,
    BoostedEnsemble,
    Function1D,
    Function2D,
    add,
    compress,
    dumps,
    load,
    loads,
    multiply,
    save,
    to_lookup_table,
)

# Learners
from ._models import (
    BaggedLineCutter,
    LineCutter,
    SquareCutter,
    SubaggedLineCutter,
    build_interval,
    build_quadrant,
)

__all__ = [
    # Version
    "__version__",
    # Data
    "array",
    "Attribute",
    "AttributeKind",
    "Instances",
    # Histograms
    "Histogram",
    "DiscreteHistogram",
    "CumulativeHistogram",
    "Histogram2D",
    "QuadrantTable",
    "build_histogram",
    # Growth
    "IntervalConfig",
    "grow_intervals",
    "grow_quadrants",
    # Subbagging
    "Sample",
    "SampleDelta",
    "SubagSequence",
    "UnionFind",
    # Functions
    "Function1D",
    "Function2D",
    "Array1D",
    "Array2D",
    "BaggedEnsemble",
    "BoostedEnsemble",
    "add",
    "multiply",
    "compress",
    "to_lookup_table",
    "dumps",
    "loads",
    "save",
    "load",
    # Learners
    "LineCutter",
    "BaggedLineCutter",
    "SubaggedLineCutter",
    "SquareCutter",
    "build_interval",
    "build_quadrant",
]
