"""Compute kernels for shapeboost.

Only a CPU backend exists: Numba-compiled scalar loops over float64 arrays.
"""

from ._cpu import (
    accumulate_rows_cpu,
    build_histogram_2d_cpu,
    merge_sorted_cpu,
    newton_step_cpu,
    quadrant_table_cpu,
)

__all__ = [
    "accumulate_rows_cpu",
    "build_histogram_2d_cpu",
    "merge_sorted_cpu",
    "newton_step_cpu",
    "quadrant_table_cpu",
]
