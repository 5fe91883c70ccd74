"""Piecewise-constant shape functions and their algebra.

A Function1D maps a feature value x to ``predictions[i]`` where i is the
first index with ``x <= splits[i]``; the last split is always +inf so every
finite value lands in a segment. NaN routes to the missing-value channel.
Function2D does the same on a grid, with a channel for each attribute
being missing and one for both.

The ensembles produced by bagging and boosting can be folded back into a
single function (`compress`) and then densified over a binned domain
(`to_lookup_table`), which is the served model format.

Example:
    >>> import shapeboost as sb
    >>> f = sb.Function1D(0, [2.5, np.inf], [0.5, 10.0])
    >>> g = sb.add(f, sb.Function1D.constant(0, 1.0))
    >>> g.evaluate(3.0)
    11.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Union

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

_log = logging.getLogger(__name__)


def _as_float_array(x, ndim: int = 1) -> NDArray[np.float64]:
    arr = np.array(x, dtype=np.float64)
    if arr.ndim != ndim:
        msg = f"expected a {ndim}D array, got shape {arr.shape}"
        _log.error(msg)
        raise ValueError(msg)
    return arr


def _check_splits(splits: NDArray, what: str = "splits") -> None:
    """Raise ValueError unless `splits` is strictly increasing and ends in +inf."""
    if splits[-1] != np.inf or np.any(~(np.diff(splits) > 0)):
        msg = f"{what} must be strictly increasing and end in +inf, got {splits.tolist()}"
        _log.error(msg)
        raise ValueError(msg)


def _segment_index(splits: NDArray, x: NDArray) -> NDArray:
    """Index of the segment (splits[i-1], splits[i]] containing each x."""
    idx = np.searchsorted(splits, x, side="left")
    return np.minimum(idx, splits.shape[0] - 1)


# =============================================================================
# Piecewise Functions
# =============================================================================

@dataclass
class Function1D:
    """Piecewise-constant function of one attribute.

    Attributes:
        att_index: Attribute the function is defined on
        splits: Ascending upper bounds of the segments, last one +inf
        predictions: One prediction per segment
        prediction_on_mv: Prediction when the value is missing
    """
    att_index: int
    splits: NDArray[np.float64]
    predictions: NDArray[np.float64]
    prediction_on_mv: float = 0.0

    def __post_init__(self):
        self.splits = _as_float_array(self.splits)
        self.predictions = _as_float_array(self.predictions)
        self.prediction_on_mv = float(self.prediction_on_mv)
        if self.splits.shape != self.predictions.shape or self.splits.size == 0:
            msg = (
                f"splits and predictions must be non-empty and of equal length, "
                f"got {self.splits.size} and {self.predictions.size}"
            )
            _log.error(msg)
            raise ValueError(msg)
        _check_splits(self.splits)

    @classmethod
    def constant(cls, att_index: int, prediction: float = 0.0) -> Function1D:
        return cls(att_index, [np.inf], [prediction], prediction)

    @property
    def n_segments(self) -> int:
        return self.splits.shape[0]

    def is_zero(self) -> bool:
        return bool(np.all(self.predictions == 0.0)) and self.prediction_on_mv == 0.0

    def is_constant(self) -> bool:
        """True if all non-missing values map to the same prediction."""
        return bool(np.all(self.predictions == self.predictions[0]))

    def segment_index(self, x: float) -> int:
        return int(_segment_index(self.splits, x))

    def evaluate(self, x: float) -> float:
        if np.isnan(x):
            return self.prediction_on_mv
        return float(self.predictions[self.segment_index(x)])

    def evaluate_many(self, x: ArrayLike) -> NDArray[np.float64]:
        """Vectorised `evaluate` over an array of feature values."""
        x = np.asarray(x, dtype=np.float64)
        missing = np.isnan(x)
        out = self.predictions[_segment_index(self.splits, np.where(missing, 0.0, x))]
        out[missing] = self.prediction_on_mv
        return out

    def predict(self, X: ArrayLike) -> NDArray[np.float64]:
        """Predict on a feature matrix, shape (n_samples, n_features)."""
        X = np.asarray(X, dtype=np.float64)
        return self.evaluate_many(X[:, self.att_index])

    def copy(self) -> Function1D:
        return Function1D(self.att_index, self.splits.copy(), self.predictions.copy(),
                          self.prediction_on_mv)

    def add(self, other: Function1D | float) -> Function1D:
        """Pointwise sum with another function or a constant.

        Adding two functions merges both split sets and re-evaluates both
        functions on every segment of the union.
        """
        if not isinstance(other, Function1D):
            c = float(other)
            return Function1D(self.att_index, self.splits.copy(), self.predictions + c,
                              self.prediction_on_mv + c)
        if self.att_index != other.att_index:
            msg = (
                f"cannot add functions on different attributes "
                f"({self.att_index} and {other.att_index})"
            )
            _log.error(msg)
            raise ValueError(msg)
        if np.array_equal(self.splits, other.splits):
            splits = self.splits.copy()
            predictions = self.predictions + other.predictions
        else:
            splits = np.union1d(self.splits, other.splits)
            predictions = self.evaluate_many(splits) + other.evaluate_many(splits)
        return Function1D(self.att_index, splits, predictions,
                          self.prediction_on_mv + other.prediction_on_mv)

    def multiply(self, c: float) -> Function1D:
        return Function1D(self.att_index, self.splits.copy(), self.predictions * c,
                          self.prediction_on_mv * c)

    def divide(self, c: float) -> Function1D:
        return Function1D(self.att_index, self.splits.copy(), self.predictions / c,
                          self.prediction_on_mv / c)


@dataclass
class Function2D:
    """Piecewise-constant function of a pair of attributes.

    Attributes:
        att_index1, att_index2: Attributes on the two axes
        splits1, splits2: Segment upper bounds per axis, each ending in +inf
        predictions: Grid of predictions, shape (len(splits1), len(splits2))
        predictions_on_mv1: Attribute 1 missing, one per segment of axis 2
        predictions_on_mv2: Attribute 2 missing, one per segment of axis 1
        prediction_on_mv12: Both attributes missing
    """
    att_index1: int
    att_index2: int
    splits1: NDArray[np.float64]
    splits2: NDArray[np.float64]
    predictions: NDArray[np.float64]
    predictions_on_mv1: NDArray[np.float64] | None = None
    predictions_on_mv2: NDArray[np.float64] | None = None
    prediction_on_mv12: float = 0.0

    def __post_init__(self):
        self.splits1 = _as_float_array(self.splits1)
        self.splits2 = _as_float_array(self.splits2)
        self.predictions = _as_float_array(self.predictions, ndim=2)
        n1, n2 = self.splits1.shape[0], self.splits2.shape[0]
        if self.predictions_on_mv1 is None:
            self.predictions_on_mv1 = np.zeros(n2, dtype=np.float64)
        if self.predictions_on_mv2 is None:
            self.predictions_on_mv2 = np.zeros(n1, dtype=np.float64)
        self.predictions_on_mv1 = _as_float_array(self.predictions_on_mv1)
        self.predictions_on_mv2 = _as_float_array(self.predictions_on_mv2)
        self.prediction_on_mv12 = float(self.prediction_on_mv12)
        if (
            self.predictions.shape != (n1, n2)
            or self.predictions_on_mv1.shape != (n2,)
            or self.predictions_on_mv2.shape != (n1,)
            or n1 == 0 or n2 == 0
        ):
            msg = (
                f"inconsistent Function2D shapes: splits ({n1}, {n2}), "
                f"predictions {self.predictions.shape}, "
                f"mv1 {self.predictions_on_mv1.shape}, mv2 {self.predictions_on_mv2.shape}"
            )
            _log.error(msg)
            raise ValueError(msg)
        _check_splits(self.splits1, "splits1")
        _check_splits(self.splits2, "splits2")

    @classmethod
    def constant(cls, att_index1: int, att_index2: int, prediction: float = 0.0) -> Function2D:
        return cls(att_index1, att_index2, [np.inf], [np.inf], [[prediction]],
                   [prediction], [prediction], prediction)

    @property
    def att_indices(self) -> tuple[int, int]:
        return self.att_index1, self.att_index2

    @property
    def shape(self) -> tuple[int, int]:
        return self.predictions.shape

    def is_zero(self) -> bool:
        return (
            bool(np.all(self.predictions == 0.0))
            and bool(np.all(self.predictions_on_mv1 == 0.0))
            and bool(np.all(self.predictions_on_mv2 == 0.0))
            and self.prediction_on_mv12 == 0.0
        )

    def is_constant(self) -> bool:
        return bool(np.all(self.predictions == self.predictions[0, 0]))

    def evaluate(self, x1: float, x2: float) -> float:
        return float(self.evaluate_many(np.array([x1]), np.array([x2]))[0])

    def evaluate_many(self, x1: ArrayLike, x2: ArrayLike) -> NDArray[np.float64]:
        x1 = np.asarray(x1, dtype=np.float64)
        x2 = np.asarray(x2, dtype=np.float64)
        mv1 = np.isnan(x1)
        mv2 = np.isnan(x2)
        idx1 = _segment_index(self.splits1, np.where(mv1, 0.0, x1))
        idx2 = _segment_index(self.splits2, np.where(mv2, 0.0, x2))
        out = self.predictions[idx1, idx2]
        only1 = mv1 & ~mv2
        only2 = ~mv1 & mv2
        out[only1] = self.predictions_on_mv1[idx2[only1]]
        out[only2] = self.predictions_on_mv2[idx1[only2]]
        out[mv1 & mv2] = self.prediction_on_mv12
        return out

    def predict(self, X: ArrayLike) -> NDArray[np.float64]:
        X = np.asarray(X, dtype=np.float64)
        return self.evaluate_many(X[:, self.att_index1], X[:, self.att_index2])

    def _grid(self, s1: NDArray, s2: NDArray) -> tuple[NDArray, NDArray, NDArray]:
        """Predictions, mv1 and mv2 channels re-evaluated on split grids."""
        idx1 = _segment_index(self.splits1, s1)
        idx2 = _segment_index(self.splits2, s2)
        return (
            self.predictions[np.ix_(idx1, idx2)],
            self.predictions_on_mv1[idx2],
            self.predictions_on_mv2[idx1],
        )

    def transpose(self) -> Function2D:
        """Same function with the two attributes swapped."""
        return Function2D(
            self.att_index2, self.att_index1,
            self.splits2.copy(), self.splits1.copy(),
            self.predictions.T.copy(),
            self.predictions_on_mv2.copy(), self.predictions_on_mv1.copy(),
            self.prediction_on_mv12,
        )

    def copy(self) -> Function2D:
        return Function2D(
            self.att_index1, self.att_index2,
            self.splits1.copy(), self.splits2.copy(), self.predictions.copy(),
            self.predictions_on_mv1.copy(), self.predictions_on_mv2.copy(),
            self.prediction_on_mv12,
        )

    def _map(self, op) -> Function2D:
        return Function2D(
            self.att_index1, self.att_index2,
            self.splits1.copy(), self.splits2.copy(),
            op(self.predictions), op(self.predictions_on_mv1), op(self.predictions_on_mv2),
            op(self.prediction_on_mv12),
        )

    def add(self, other: Function2D | float) -> Function2D:
        if not isinstance(other, Function2D):
            c = float(other)
            return self._map(lambda p: p + c)
        if self.att_indices != other.att_indices:
            msg = f"cannot add functions on different terms {self.att_indices} and {other.att_indices}"
            _log.error(msg)
            raise ValueError(msg)
        s1 = np.union1d(self.splits1, other.splits1)
        s2 = np.union1d(self.splits2, other.splits2)
        p_a, mv1_a, mv2_a = self._grid(s1, s2)
        p_b, mv1_b, mv2_b = other._grid(s1, s2)
        return Function2D(
            self.att_index1, self.att_index2, s1, s2,
            p_a + p_b, mv1_a + mv1_b, mv2_a + mv2_b,
            self.prediction_on_mv12 + other.prediction_on_mv12,
        )

    def multiply(self, c: float) -> Function2D:
        return self._map(lambda p: p * c)

    def divide(self, c: float) -> Function2D:
        return self._map(lambda p: p / c)


# =============================================================================
# Lookup Tables
# =============================================================================

@dataclass
class Array1D:
    """Dense lookup table over the states of a discrete attribute."""
    att_index: int
    predictions: NDArray[np.float64]
    prediction_on_mv: float = 0.0

    def __post_init__(self):
        self.predictions = _as_float_array(self.predictions)
        self.prediction_on_mv = float(self.prediction_on_mv)

    def evaluate(self, x: float) -> float:
        if np.isnan(x):
            return self.prediction_on_mv
        return float(self.predictions[int(x)])

    def evaluate_many(self, x: ArrayLike) -> NDArray[np.float64]:
        x = np.asarray(x, dtype=np.float64)
        missing = np.isnan(x)
        out = self.predictions[np.where(missing, 0, x).astype(np.int64)]
        out[missing] = self.prediction_on_mv
        return out

    def predict(self, X: ArrayLike) -> NDArray[np.float64]:
        X = np.asarray(X, dtype=np.float64)
        return self.evaluate_many(X[:, self.att_index])

    def copy(self) -> Array1D:
        return Array1D(self.att_index, self.predictions.copy(), self.prediction_on_mv)


@dataclass
class Array2D:
    """Dense lookup table over the joint states of two discrete attributes."""
    att_index1: int
    att_index2: int
    predictions: NDArray[np.float64]
    predictions_on_mv1: NDArray[np.float64]
    predictions_on_mv2: NDArray[np.float64]
    prediction_on_mv12: float = 0.0

    def __post_init__(self):
        self.predictions = _as_float_array(self.predictions, ndim=2)
        self.predictions_on_mv1 = _as_float_array(self.predictions_on_mv1)
        self.predictions_on_mv2 = _as_float_array(self.predictions_on_mv2)
        self.prediction_on_mv12 = float(self.prediction_on_mv12)

    @property
    def att_indices(self) -> tuple[int, int]:
        return self.att_index1, self.att_index2

    def evaluate(self, x1: float, x2: float) -> float:
        mv1 = np.isnan(x1)
        mv2 = np.isnan(x2)
        if not mv1 and not mv2:
            return float(self.predictions[int(x1), int(x2)])
        elif mv1 and not mv2:
            return float(self.predictions_on_mv1[int(x2)])
        elif not mv1 and mv2:
            return float(self.predictions_on_mv2[int(x1)])
        return self.prediction_on_mv12

    def predict(self, X: ArrayLike) -> NDArray[np.float64]:
        X = np.asarray(X, dtype=np.float64)
        return np.array([
            self.evaluate(x1, x2)
            for x1, x2 in zip(X[:, self.att_index1], X[:, self.att_index2])
        ])

    def copy(self) -> Array2D:
        return Array2D(
            self.att_index1, self.att_index2, self.predictions.copy(),
            self.predictions_on_mv1.copy(), self.predictions_on_mv2.copy(),
            self.prediction_on_mv12,
        )


# =============================================================================
# Ensembles
# =============================================================================

ShapeFunction = Union[Function1D, Function2D]


@dataclass
class BaggedEnsemble:
    """Replicates of one shape function; predicts their average."""
    members: list = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self):
        return iter(self.members)

    def __getitem__(self, i):
        return self.members[i]

    def append(self, member) -> None:
        self.members.append(member)

    def predict(self, X: ArrayLike) -> NDArray[np.float64]:
        X = np.asarray(X, dtype=np.float64)
        if not self.members:
            return np.zeros(X.shape[0], dtype=np.float64)
        return sum(m.predict(X) for m in self.members) / len(self.members)

    def copy(self) -> BaggedEnsemble:
        return BaggedEnsemble([m.copy() for m in self.members])


@dataclass
class BoostedEnsemble:
    """Sequence of shape functions (or bagged replicates); predicts their sum."""
    members: list = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self):
        return iter(self.members)

    def __getitem__(self, i):
        return self.members[i]

    def append(self, member) -> None:
        self.members.append(member)

    def predict(self, X: ArrayLike) -> NDArray[np.float64]:
        X = np.asarray(X, dtype=np.float64)
        out = np.zeros(X.shape[0], dtype=np.float64)
        for m in self.members:
            out += m.predict(X)
        return out

    def copy(self) -> BoostedEnsemble:
        return BoostedEnsemble([m.copy() for m in self.members])


# =============================================================================
# Algebra
# =============================================================================

def add(f: ShapeFunction, g: ShapeFunction | float) -> ShapeFunction:
    """Pointwise sum of two functions on the same term (or a constant)."""
    return f.add(g)


def multiply(f: ShapeFunction, c: float) -> ShapeFunction:
    """Scale all predictions, including the missing channels, by c."""
    return f.multiply(c)


def _first_function(ensemble):
    for m in ensemble:
        if isinstance(m, (Function1D, Function2D)):
            return m
        if isinstance(m, BaggedEnsemble):
            found = _first_function(m)
            if found is not None:
                return found
    return None


def _zero_like(f: ShapeFunction) -> ShapeFunction:
    if isinstance(f, Function1D):
        return Function1D.constant(f.att_index, 0.0)
    return Function2D.constant(f.att_index1, f.att_index2, 0.0)


def compress(ensemble: BaggedEnsemble | BoostedEnsemble) -> ShapeFunction:
    """Fold an ensemble of shape functions into a single function.

    A bagged ensemble becomes the average of its members, a boosted one the
    sum; bagged members of a boosted ensemble are compressed first. All
    members must live on the same term.

    Raises:
        ValueError: If the ensemble holds no function, or its members are
            defined on different attributes.
        TypeError: If a member is neither a function nor a bagged ensemble.
    """
    template = _first_function(ensemble)
    if template is None:
        msg = "cannot compress an ensemble without any function"
        _log.error(msg)
        raise ValueError(msg)
    result = _zero_like(template)
    for m in ensemble:
        if isinstance(m, (Function1D, Function2D)):
            member = m
        elif isinstance(m, BaggedEnsemble) and isinstance(ensemble, BoostedEnsemble):
            member = compress(m)
        else:
            msg = f"cannot compress member of type {type(m).__name__} in {type(ensemble).__name__}"
            _log.error(msg)
            raise TypeError(msg)
        if type(member) is not type(result):
            msg = f"cannot mix {type(result).__name__} and {type(member).__name__} in one ensemble"
            _log.error(msg)
            raise ValueError(msg)
        result = result.add(member)
    if isinstance(ensemble, BaggedEnsemble):
        result = result.divide(len(ensemble))
    _log.debug("compressed %d members into %s", len(ensemble), type(result).__name__)
    return result


def to_lookup_table(
    f: ShapeFunction | BaggedEnsemble | BoostedEnsemble,
    n1: int,
    n2: int | None = None,
) -> Array1D | Array2D:
    """Densify a function over the states 0..n-1 of binned attributes.

    Ensembles are compressed first. For a 2D function pass the number of
    states of both attributes.
    """
    if isinstance(f, (BaggedEnsemble, BoostedEnsemble)):
        f = compress(f)
    if isinstance(f, Function1D):
        if n2 is not None:
            msg = "n2 is only valid for 2D functions"
            _log.error(msg)
            raise ValueError(msg)
        return Array1D(f.att_index, f.evaluate_many(np.arange(n1, dtype=np.float64)),
                       f.prediction_on_mv)
    if isinstance(f, Function2D):
        if n2 is None:
            msg = "to_lookup_table on a 2D function needs n1 and n2"
            _log.error(msg)
            raise ValueError(msg)
        s1 = np.arange(n1, dtype=np.float64)
        s2 = np.arange(n2, dtype=np.float64)
        predictions, mv1, mv2 = f._grid(s1, s2)
        return Array2D(f.att_index1, f.att_index2, predictions, mv1, mv2,
                       f.prediction_on_mv12)
    msg = f"cannot convert {type(f).__name__} to a lookup table"
    _log.error(msg)
    raise TypeError(msg)


# =============================================================================
# Persistence
# =============================================================================

def _format_array(a) -> str:
    return "[" + ", ".join(repr(float(v)) for v in np.ravel(a)) + "]"


def _parse_array(line: str) -> NDArray[np.float64]:
    body = line.strip()[1:-1].strip()
    if not body:
        return np.empty(0, dtype=np.float64)
    return np.array([float(v) for v in body.split(",")], dtype=np.float64)


def _header_value(line: str, key: str) -> str:
    name, _, value = line.partition(": ")
    if name != key:
        msg = f"expected '{key}' line, got {line!r}"
        _log.error(msg)
        raise ValueError(msg)
    return value.strip()


def _write(obj, out: list[str]) -> None:
    out.append(f"[Predictor: {type(obj).__name__}]")
    if isinstance(obj, Function1D):
        out.append(f"AttIndex: {obj.att_index}")
        out.append(f"Splits: {obj.splits.size}")
        out.append(_format_array(obj.splits))
        out.append(f"Predictions: {obj.predictions.size}")
        out.append(_format_array(obj.predictions))
        out.append(f"PredictionOnMV: {obj.prediction_on_mv!r}")
    elif isinstance(obj, Function2D):
        out.append(f"AttIndex1: {obj.att_index1}")
        out.append(f"AttIndex2: {obj.att_index2}")
        out.append(f"Splits1: {obj.splits1.size}")
        out.append(_format_array(obj.splits1))
        out.append(f"Splits2: {obj.splits2.size}")
        out.append(_format_array(obj.splits2))
        _write_grid(obj, out)
    elif isinstance(obj, Array1D):
        out.append(f"AttIndex: {obj.att_index}")
        out.append(f"Predictions: {obj.predictions.size}")
        out.append(_format_array(obj.predictions))
        out.append(f"PredictionOnMV: {obj.prediction_on_mv!r}")
    elif isinstance(obj, Array2D):
        out.append(f"AttIndex1: {obj.att_index1}")
        out.append(f"AttIndex2: {obj.att_index2}")
        _write_grid(obj, out)
    elif isinstance(obj, (BaggedEnsemble, BoostedEnsemble)):
        out.append(f"Ensemble: {len(obj)}")
        for m in obj:
            _write(m, out)
    else:
        msg = f"cannot serialize object of type {type(obj).__name__}"
        _log.error(msg)
        raise TypeError(msg)


def _write_grid(obj, out: list[str]) -> None:
    n, m = obj.predictions.shape
    out.append(f"Predictions: {n}x{m}")
    for row in obj.predictions:
        out.append(_format_array(row))
    out.append(f"PredictionsOnMV1: {obj.predictions_on_mv1.size}")
    out.append(_format_array(obj.predictions_on_mv1))
    out.append(f"PredictionsOnMV2: {obj.predictions_on_mv2.size}")
    out.append(_format_array(obj.predictions_on_mv2))
    out.append(f"PredictionOnMV12: {obj.prediction_on_mv12!r}")


def _read_counted(lines, key: str) -> NDArray[np.float64]:
    """A ``key: k`` line followed by an array that must hold k values."""
    count = int(_header_value(next(lines), key))
    values = _parse_array(next(lines))
    if values.size != count:
        msg = f"'{key}: {count}' is followed by {values.size} values"
        _log.error(msg)
        raise ValueError(msg)
    return values


def _read_grid(lines):
    shape = _header_value(next(lines), "Predictions")
    n, sep, m = shape.partition("x")
    if not sep:
        msg = f"expected 'Predictions: NxM', got {shape!r}"
        _log.error(msg)
        raise ValueError(msg)
    n, m = int(n), int(m)
    rows = [_parse_array(next(lines)) for _ in range(n)]
    if any(row.size != m for row in rows):
        msg = f"'Predictions: {n}x{m}' rows have lengths {[row.size for row in rows]}"
        _log.error(msg)
        raise ValueError(msg)
    predictions = np.array(rows, dtype=np.float64).reshape(n, m)
    mv1 = _read_counted(lines, "PredictionsOnMV1")
    mv2 = _read_counted(lines, "PredictionsOnMV2")
    mv12 = float(_header_value(next(lines), "PredictionOnMV12"))
    return predictions, mv1, mv2, mv12


def _read(lines):
    header = next(lines).strip()
    if not (header.startswith("[Predictor: ") and header.endswith("]")):
        msg = f"expected a '[Predictor: ...]' header, got {header!r}"
        _log.error(msg)
        raise ValueError(msg)
    kind = header[len("[Predictor: "):-1]

    if kind == "Function1D":
        att = int(_header_value(next(lines), "AttIndex"))
        splits = _read_counted(lines, "Splits")
        predictions = _read_counted(lines, "Predictions")
        mv = float(_header_value(next(lines), "PredictionOnMV"))
        return Function1D(att, splits, predictions, mv)
    elif kind == "Function2D":
        att1 = int(_header_value(next(lines), "AttIndex1"))
        att2 = int(_header_value(next(lines), "AttIndex2"))
        splits1 = _read_counted(lines, "Splits1")
        splits2 = _read_counted(lines, "Splits2")
        predictions, mv1, mv2, mv12 = _read_grid(lines)
        return Function2D(att1, att2, splits1, splits2, predictions, mv1, mv2, mv12)
    elif kind == "Array1D":
        att = int(_header_value(next(lines), "AttIndex"))
        predictions = _read_counted(lines, "Predictions")
        mv = float(_header_value(next(lines), "PredictionOnMV"))
        return Array1D(att, predictions, mv)
    elif kind == "Array2D":
        att1 = int(_header_value(next(lines), "AttIndex1"))
        att2 = int(_header_value(next(lines), "AttIndex2"))
        predictions, mv1, mv2, mv12 = _read_grid(lines)
        return Array2D(att1, att2, predictions, mv1, mv2, mv12)
    elif kind in ("BaggedEnsemble", "BoostedEnsemble"):
        size = int(_header_value(next(lines), "Ensemble"))
        members = [_read(lines) for _ in range(size)]
        if kind == "BaggedEnsemble":
            return BaggedEnsemble(members)
        return BoostedEnsemble(members)

    msg = f"unknown predictor type {kind!r}"
    _log.error(msg)
    raise ValueError(msg)


def dumps(obj) -> str:
    """Serialize a function, lookup table or ensemble to plain text."""
    out: list[str] = []
    _write(obj, out)
    return "\n".join(out) + "\n"


def loads(text: str):
    """Inverse of `dumps`."""
    lines = iter(text.splitlines())
    try:
        return _read(lines)
    except StopIteration:
        msg = "unexpected end of input while reading a predictor"
        _log.error(msg)
        raise ValueError(msg) from None


def save(obj, path: str | Path) -> None:
    Path(path).write_text(dumps(obj))


def load(path: str | Path):
    return loads(Path(path).read_text())
