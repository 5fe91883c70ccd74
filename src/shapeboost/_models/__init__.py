"""Shape-function learners built on the core infrastructure.

Each cutter reads one attribute (or a pair) of an `Instances` dataset and
returns a piecewise function, or a bagged ensemble of them.
"""

from ._cutters import (
    BaggedLineCutter,
    LineCutter,
    SquareCutter,
    SubaggedLineCutter,
    attribute_histogram,
    build_interval,
    build_quadrant,
)

__all__ = [
    "LineCutter",
    "BaggedLineCutter",
    "SubaggedLineCutter",
    "SquareCutter",
    "attribute_histogram",
    "build_interval",
    "build_quadrant",
]
