"""Dataset handling and binning for shapeboost.

Provides `sb.array()` for converting raw features, targets and weights into
the `Instances` container consumed by the cutters.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

_log = logging.getLogger(__name__)


class AttributeKind(enum.Enum):
    """Kind of an attribute column."""
    NUMERIC = "numeric"
    BINNED = "binned"
    NOMINAL = "nominal"


@dataclass(frozen=True)
class Attribute:
    """Attribute metadata.

    Attributes:
        index: Column index in the dataset
        kind: NUMERIC, BINNED or NOMINAL
        n_states: Number of bins (BINNED) or cardinality (NOMINAL)
        name: Optional display name
    """
    index: int
    kind: AttributeKind = AttributeKind.NUMERIC
    n_states: int | None = None
    name: str | None = None

    @property
    def is_discrete(self) -> bool:
        """True for BINNED and NOMINAL attributes."""
        return self.kind is not AttributeKind.NUMERIC

    def num_states(self) -> int:
        """Number of discrete states.

        Raises:
            ValueError: If the attribute is numeric.
        """
        if self.kind is AttributeKind.NUMERIC:
            msg = f"attribute {self.index} is numeric and has no discrete states"
            _log.error(msg)
            raise ValueError(msg)
        return int(self.n_states)


@dataclass
class Instances:
    """Training rows in sample-major layout.

    Attributes:
        values: Feature values, shape (n_samples, n_features), float64.
            NaN marks a missing value. Discrete attributes hold state
            indices 0..n_states-1.
        targets: Targets (residuals), shape (n_samples,)
        weights: Row weights, shape (n_samples,)
        attributes: One Attribute per column
    """
    values: NDArray[np.float64]
    targets: NDArray[np.float64]
    weights: NDArray[np.float64]
    attributes: list[Attribute] = field(default_factory=list)
    bin_edges: list[NDArray[np.float64]] | None = None

    @property
    def n_samples(self) -> int:
        return self.values.shape[0]

    @property
    def n_features(self) -> int:
        return self.values.shape[1]

    def __len__(self) -> int:
        return self.n_samples

    def get_value(self, row: int, att_index: int) -> float:
        return float(self.values[row, att_index])

    def get_target(self, row: int) -> float:
        return float(self.targets[row])

    def get_weight(self, row: int) -> float:
        return float(self.weights[row])

    def column(self, att_index: int) -> NDArray[np.float64]:
        """Contiguous copy of one feature column."""
        return np.ascontiguousarray(self.values[:, att_index])

    def with_targets(
        self,
        targets: ArrayLike,
        weights: ArrayLike | None = None,
    ) -> Instances:
        """Return a view of these rows with new targets (and weights).

        The boosting loop calls this once per iteration to hand the
        current residuals to a cutter without copying the feature matrix.
        """
        targets = np.asarray(targets, dtype=np.float64).ravel()
        if targets.shape[0] != self.n_samples:
            msg = f"targets must have {self.n_samples} rows, got {targets.shape[0]}"
            _log.error(msg)
            raise ValueError(msg)
        if weights is None:
            weights = self.weights
        else:
            weights = _as_weights(weights, self.n_samples)
        return Instances(
            values=self.values,
            targets=targets,
            weights=weights,
            attributes=self.attributes,
            bin_edges=self.bin_edges,
        )

    def __repr__(self) -> str:
        kinds = [a.kind.value for a in self.attributes]
        return (
            f"Instances(n_samples={self.n_samples}, n_features={self.n_features}, "
            f"kinds={kinds!r})"
        )


def array(
    X: ArrayLike,
    y: ArrayLike | None = None,
    sample_weight: ArrayLike | None = None,
    *,
    n_bins: int | None = 256,
    nominal: dict[int, int] | None = None,
) -> Instances:
    """Convert input data to an `Instances` dataset.

    Numeric columns are discretised into at most `n_bins` quantile bins,
    so every attribute ends up discrete and usable by both the interval
    and the quadrant cutters. Pass ``n_bins=None`` to keep numeric
    columns as raw values.

    Args:
        X: Input features, shape (n_samples, n_features). NaN is missing.
        y: Targets, shape (n_samples,). Zeros if None.
        sample_weight: Row weights. Ones if None.
        n_bins: Maximum number of bins per numeric column, or None.
        nominal: Mapping of column index to cardinality for columns that
            already hold nominal state indices; these are never binned.

    Returns:
        Instances with one Attribute per column.

    Example:
        >>> import shapeboost as sb
        >>> data = sb.array(X_train, residuals, n_bins=64)
        >>> f = sb.LineCutter(num_intervals=8).build(data, 0)
    """
    X_np = _to_numpy(X).astype(np.float64)

    if X_np.ndim != 2:
        msg = f"X must be 2D (n_samples, n_features), got shape {X_np.shape}"
        _log.error(msg)
        raise ValueError(msg)

    n_samples, n_features = X_np.shape
    nominal = nominal or {}

    if y is None:
        targets = np.zeros(n_samples, dtype=np.float64)
    else:
        targets = np.asarray(_to_numpy(y), dtype=np.float64).ravel()
        if targets.shape[0] != n_samples:
            msg = f"y must have {n_samples} rows, got {targets.shape[0]}"
            _log.error(msg)
            raise ValueError(msg)
    weights = _as_weights(sample_weight, n_samples)

    for f, cardinality in nominal.items():
        if not 0 <= f < n_features:
            msg = f"nominal column {f} out of range for {n_features} features"
            _log.error(msg)
            raise ValueError(msg)
        check_states(X_np[:, f], int(cardinality), what=f"nominal column {f}")

    to_bin = [f for f in range(n_features) if f not in nominal]
    bin_edges: list[NDArray[np.float64]] | None = None
    values = X_np
    if n_bins is not None and to_bin:
        binned, edges = _quantile_bin(X_np[:, to_bin], n_bins)
        values = X_np.copy()
        values[:, to_bin] = binned
        bin_edges = [np.empty(0, dtype=np.float64) for _ in range(n_features)]
        for k, f in enumerate(to_bin):
            bin_edges[f] = edges[k]

    attributes = []
    for f in range(n_features):
        if f in nominal:
            attributes.append(Attribute(f, AttributeKind.NOMINAL, int(nominal[f])))
        elif n_bins is not None:
            attributes.append(Attribute(f, AttributeKind.BINNED, len(bin_edges[f]) + 1))
        else:
            attributes.append(Attribute(f, AttributeKind.NUMERIC))

    return Instances(
        values=np.ascontiguousarray(values),
        targets=targets,
        weights=weights,
        attributes=attributes,
        bin_edges=bin_edges,
    )


def check_states(values: NDArray, n_states: int, what: str = "values") -> None:
    """Raise ValueError unless every non-missing value is a state in [0, n_states).

    The histogram kernels index arrays with these values and do not bound-check.
    """
    values = np.asarray(values, dtype=np.float64)
    present = values[~np.isnan(values)]
    if present.size == 0:
        return
    lo = present.min()
    hi = present.max()
    if lo < 0 or hi >= n_states or np.any(present != np.floor(present)):
        msg = (
            f"{what} must be integer states in [0, {n_states}), "
            f"got values in [{lo}, {hi}]"
        )
        _log.error(msg)
        raise ValueError(msg)


def _as_weights(sample_weight, n_samples: int) -> NDArray[np.float64]:
    if sample_weight is None:
        return np.ones(n_samples, dtype=np.float64)
    weights = np.asarray(_to_numpy(sample_weight), dtype=np.float64).ravel()
    if weights.shape[0] != n_samples:
        msg = f"sample_weight must have {n_samples} rows, got {weights.shape[0]}"
        _log.error(msg)
        raise ValueError(msg)
    return weights


def _to_numpy(arr: ArrayLike) -> NDArray:
    """Convert various array types to numpy.

    Handles: numpy, PyTorch, pandas and anything with __array__.
    """
    # Already numpy
    if isinstance(arr, np.ndarray):
        return arr

    # PyTorch
    if hasattr(arr, 'cpu') and hasattr(arr, 'numpy'):
        return arr.cpu().numpy()

    # Fallback
    return np.asarray(arr)


def _quantile_bin(
    X: NDArray[np.floating],
    n_bins: int,
) -> tuple[NDArray[np.float64], list[NDArray[np.float64]]]:
    """Bin features using quantiles (parallelized across features).

    Missing values stay NaN in the output.

    Args:
        X: Input data, shape (n_samples, n_features)
        n_bins: Number of bins

    Returns:
        binned: Bin indices as float64, shape (n_samples, n_features)
        bin_edges: List of bin edges per feature
    """
    from joblib import Parallel, delayed

    if n_bins < 1:
        msg = f"n_bins must be >= 1, got {n_bins}"
        _log.error(msg)
        raise ValueError(msg)

    n_samples, n_features = X.shape

    # Pre-compute percentiles (shared across all features)
    percentiles = np.linspace(0, 100, n_bins + 1)[1:-1]

    def bin_single_feature(f: int) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Bin a single feature column."""
        col = X[:, f].astype(np.float64)
        missing = np.isnan(col)
        present = col[~missing]

        if present.size == 0 or percentiles.size == 0:
            edges = np.empty(0, dtype=np.float64)
        else:
            # Remove duplicate edges (constant features)
            edges = np.unique(np.percentile(present, percentiles))

        binned_col = np.digitize(col, edges).astype(np.float64)
        binned_col[missing] = np.nan
        return binned_col, edges

    # Use threads (not processes) to avoid data copying overhead
    results = Parallel(n_jobs=-1, prefer="threads")(
        delayed(bin_single_feature)(f) for f in range(n_features)
    )

    binned = np.column_stack([r[0] for r in results]) if results else np.empty((n_samples, 0))
    bin_edges = [r[1] for r in results]

    return binned, bin_edges
