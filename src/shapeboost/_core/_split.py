"""Cut finding for interval splitting."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


EPSILON = 1e-8


def divide(a: float, b: float, default: float = 0.0) -> float:
    """a / b, or `default` when |b| is below EPSILON."""
    if abs(b) < EPSILON:
        return default
    return a / b


def gain(s: float, w: float) -> float:
    """Squared-error gain s^2 / w of a segment (0 on vanishing weight)."""
    if w < EPSILON:
        return 0.0
    return s / w * s


class CutInfo(NamedTuple):
    """Information about a cut between two adjacent bins."""
    position: int      # Last bin of the left part (-1 if no valid cut)
    split: float       # Midpoint between bin `position` and `position + 1`
    sum_left: float
    weight_left: float
    sum_right: float
    weight_right: float

    @property
    def is_valid(self) -> bool:
        """Check if this is a valid cut."""
        return self.position >= 0

    @property
    def gain(self) -> float:
        return gain(self.sum_left, self.weight_left) + gain(self.sum_right, self.weight_right)


NO_CUT = CutInfo(position=-1, split=np.nan, sum_left=0.0, weight_left=0.0,
                 sum_right=0.0, weight_right=0.0)


def find_best_cut(
    values: NDArray,
    sums: NDArray,
    weights: NDArray,
    start: int,
    end: int,
    total_sum: float,
    total_weight: float,
    random_state: np.random.RandomState,
) -> CutInfo:
    """Find the cut of bins [start, end) that maximises the total gain.

    Single forward scan over the `end - start - 1` cut positions. The
    objective is -(gain_left + gain_right); every position attaining the
    minimum is kept and one of them is picked with `random_state`.

    Args:
        values: Bin values, ascending
        sums: Bin sums
        weights: Bin weights
        start: First bin of the segment
        end: One past the last bin of the segment
        total_sum: Sum over the segment
        total_weight: Weight over the segment
        random_state: Source of randomness for tie-breaking

    Returns:
        CutInfo of the chosen cut, or NO_CUT if the segment has fewer than
        two bins.
    """
    if end - start <= 1:
        return NO_CUT

    sum1 = 0.0
    weight1 = 0.0
    best_eval = np.inf
    ties: list[tuple[int, float, float]] = []
    for i in range(start, end - 1):
        sum1 += sums[i]
        weight1 += weights[i]
        sum2 = total_sum - sum1
        weight2 = total_weight - weight1
        ev = -(gain(sum1, weight1) + gain(sum2, weight2))
        if ev <= best_eval:
            if ev < best_eval:
                best_eval = ev
                ties.clear()
            ties.append((i, sum1, weight1))

    if len(ties) > 1:
        i, sum1, weight1 = ties[random_state.randint(len(ties))]
    else:
        i, sum1, weight1 = ties[0]

    return CutInfo(
        position=i,
        split=(values[i] + values[i + 1]) / 2,
        sum_left=sum1,
        weight_left=weight1,
        sum_right=total_sum - sum1,
        weight_right=total_weight - weight1,
    )
