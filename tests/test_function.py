"""Tests for shape functions, their algebra and persistence."""

import numpy as np
import pytest

import shapeboost as sb
from shapeboost import Array1D, Array2D, Function1D, Function2D


@pytest.fixture
def f2d():
    """2x2 interaction with every missing channel set."""
    return Function2D(
        0, 1,
        [0.5, np.inf], [1.5, np.inf],
        [[1.0, 2.0], [3.0, 4.0]],
        predictions_on_mv1=[5.0, 6.0],
        predictions_on_mv2=[7.0, 8.0],
        prediction_on_mv12=9.0,
    )


# =============================================================================
# Function1D
# =============================================================================

class TestFunction1D:
    """Tests for Function1D evaluation and validation."""

    def test_evaluate(self):
        """A value on a split goes to the segment the split closes."""
        f = Function1D(0, [1.0, 3.0, np.inf], [10.0, 20.0, 30.0], prediction_on_mv=-1.0)

        assert f.evaluate(0.0) == 10.0
        assert f.evaluate(1.0) == 10.0
        assert f.evaluate(1.5) == 20.0
        assert f.evaluate(3.0) == 20.0
        assert f.evaluate(1e9) == 30.0
        assert f.evaluate(np.nan) == -1.0

    def test_evaluate_many_matches_evaluate(self):
        f = Function1D(0, [1.0, 3.0, np.inf], [10.0, 20.0, 30.0], prediction_on_mv=-1.0)
        x = np.array([0.0, 1.0, 2.0, 3.0, 4.0, np.nan])

        np.testing.assert_array_equal(f.evaluate_many(x), [f.evaluate(v) for v in x])

    def test_predict_reads_its_column(self):
        f = Function1D(1, [0.0, np.inf], [-1.0, 1.0])
        X = np.array([[5.0, -2.0], [-5.0, 2.0]])

        np.testing.assert_array_equal(f.predict(X), [-1.0, 1.0])

    def test_constant(self):
        f = Function1D.constant(3, 2.5)

        assert f.is_constant()
        assert not f.is_zero()
        assert f.evaluate(np.nan) == 2.5
        assert Function1D.constant(3).is_zero()

    def test_is_zero_checks_missing_channel(self):
        f = Function1D(0, [np.inf], [0.0], prediction_on_mv=1.0)

        assert not f.is_zero()
        assert f.is_constant()

    def test_shape_mismatch(self):
        """splits and predictions must line up."""
        with pytest.raises(ValueError, match="equal length"):
            Function1D(0, [1.0, np.inf], [1.0])
        with pytest.raises(ValueError, match="equal length"):
            Function1D(0, [], [])

    def test_splits_must_increase_to_infinity(self):
        """Splits must be strictly increasing and end in +inf."""
        with pytest.raises(ValueError, match="end in \\+inf"):
            Function1D(0, [1.0], [5.0])
        with pytest.raises(ValueError, match="strictly increasing"):
            Function1D(0, [2.0, 1.0, np.inf], [1.0, 2.0, 3.0])
        with pytest.raises(ValueError, match="strictly increasing"):
            Function1D(0, [1.0, 1.0, np.inf], [1.0, 2.0, 3.0])


class TestFunction1DAlgebra:
    """Tests for add, multiply and divide on Function1D."""

    def test_add_merges_splits(self):
        """Sum of two functions is evaluated on the union of their splits."""
        f = Function1D(0, [1.0, np.inf], [1.0, 2.0])
        g = Function1D(0, [2.0, np.inf], [10.0, 20.0])

        h = sb.add(f, g)

        np.testing.assert_array_equal(h.splits, [1.0, 2.0, np.inf])
        np.testing.assert_array_equal(h.predictions, [11.0, 12.0, 22.0])

    def test_add_is_commutative(self):
        f = Function1D(0, [1.0, 4.0, np.inf], [1.0, 2.0, 3.0], 0.5)
        g = Function1D(0, [2.0, np.inf], [10.0, 20.0], -0.5)
        x = np.array([0.0, 1.0, 1.5, 2.0, 3.0, 4.0, 5.0, np.nan])

        np.testing.assert_allclose(sb.add(f, g).evaluate_many(x), sb.add(g, f).evaluate_many(x))

    def test_add_is_pointwise(self):
        f = Function1D(0, [1.0, 4.0, np.inf], [1.0, 2.0, 3.0], 0.5)
        g = Function1D(0, [2.0, np.inf], [10.0, 20.0], -0.5)
        x = np.linspace(-1, 6, 29)

        np.testing.assert_allclose(f.add(g).evaluate_many(x), f.evaluate_many(x) + g.evaluate_many(x))
        assert f.add(g).prediction_on_mv == 0.0

    def test_add_zero_is_identity(self):
        f = Function1D(0, [1.0, np.inf], [1.0, 2.0], 3.0)
        h = f.add(Function1D.constant(0))

        np.testing.assert_array_equal(h.splits, f.splits)
        np.testing.assert_array_equal(h.predictions, f.predictions)
        assert h.prediction_on_mv == 3.0

    def test_add_constant(self):
        h = Function1D(0, [1.0, np.inf], [1.0, 2.0], 3.0).add(1.0)

        np.testing.assert_array_equal(h.predictions, [2.0, 3.0])
        assert h.prediction_on_mv == 4.0

    def test_add_different_attributes(self):
        with pytest.raises(ValueError, match="different attributes"):
            sb.add(Function1D.constant(0, 1.0), Function1D.constant(1, 1.0))

    def test_multiply_scales_missing_channel(self):
        f = Function1D(0, [1.0, np.inf], [1.0, 2.0], 4.0)
        g = sb.multiply(f, 0.5)

        np.testing.assert_array_equal(g.predictions, [0.5, 1.0])
        assert g.prediction_on_mv == 2.0
        np.testing.assert_array_equal(f.predictions, [1.0, 2.0])


# =============================================================================
# Function2D
# =============================================================================

class TestFunction2D:
    """Tests for Function2D."""

    def test_evaluate_channels(self, f2d):
        assert f2d.evaluate(0.0, 0.0) == 1.0
        assert f2d.evaluate(0.0, 2.0) == 2.0
        assert f2d.evaluate(1.0, 1.5) == 3.0
        assert f2d.evaluate(1.0, 2.0) == 4.0
        assert f2d.evaluate(np.nan, 2.0) == 6.0
        assert f2d.evaluate(1.0, np.nan) == 8.0
        assert f2d.evaluate(np.nan, np.nan) == 9.0

    def test_transpose(self, f2d):
        t = f2d.transpose()

        assert t.att_indices == (1, 0)
        for x1, x2 in [(0.0, 0.0), (1.0, 2.0), (np.nan, 1.0), (0.0, np.nan), (np.nan, np.nan)]:
            assert t.evaluate(x2, x1) == f2d.evaluate(x1, x2)

    def test_add_is_pointwise(self, f2d):
        g = Function2D(0, 1, [1.5, np.inf], [0.5, np.inf], [[10.0, 20.0], [30.0, 40.0]],
                       [1.0, 2.0], [3.0, 4.0], 5.0)
        h = sb.add(f2d, g)
        x1 = np.array([0.0, 1.0, 2.0, 0.0, 1.0, 2.0, np.nan, np.nan, 1.0, np.nan])
        x2 = np.array([0.0, 1.0, 2.0, 2.0, 0.0, 1.0, 0.0, 2.0, np.nan, np.nan])

        np.testing.assert_allclose(h.evaluate_many(x1, x2),
                                   f2d.evaluate_many(x1, x2) + g.evaluate_many(x1, x2))
        assert h.shape == (3, 3)

    def test_add_different_terms(self, f2d):
        with pytest.raises(ValueError, match="different terms"):
            f2d.add(f2d.transpose())

    def test_multiply(self, f2d):
        g = f2d.multiply(2.0)

        np.testing.assert_array_equal(g.predictions, [[2.0, 4.0], [6.0, 8.0]])
        np.testing.assert_array_equal(g.predictions_on_mv1, [10.0, 12.0])
        assert g.prediction_on_mv12 == 18.0

    def test_constant_and_zero(self):
        assert Function2D.constant(0, 1).is_zero()
        f = Function2D.constant(0, 1, 2.0)
        assert f.is_constant()
        assert f.evaluate(np.nan, 3.0) == 2.0

    def test_shape_mismatch(self):
        with pytest.raises(ValueError, match="inconsistent"):
            Function2D(0, 1, [np.inf], [1.0, np.inf], [[1.0]])

    def test_splits_must_increase_to_infinity(self):
        with pytest.raises(ValueError, match="splits1"):
            Function2D(0, 1, [np.inf, 1.0], [np.inf], [[1.0], [2.0]])
        with pytest.raises(ValueError, match="splits2"):
            Function2D(0, 1, [np.inf], [0.5, 2.0], [[1.0, 2.0]])


# =============================================================================
# Ensembles and Compression
# =============================================================================

class TestCompress:
    """Tests for compress()."""

    def test_bagged_identical_copies(self):
        """Averaging identical replicates gives the replicate back."""
        f = Function1D(0, [1.0, 3.0, np.inf], [0.1, 0.2, 0.3], 0.7)
        g = sb.compress(sb.BaggedEnsemble([f.copy(), f.copy(), f.copy()]))

        np.testing.assert_array_equal(g.splits, f.splits)
        np.testing.assert_allclose(g.predictions, f.predictions)
        assert g.prediction_on_mv == pytest.approx(0.7)

    def test_boosted_sums(self):
        f = Function1D(0, [1.0, np.inf], [1.0, 2.0], 1.0)
        g = Function1D(0, [2.0, np.inf], [10.0, 20.0], 2.0)
        h = sb.compress(sb.BoostedEnsemble([f, g]))

        np.testing.assert_array_equal(h.splits, [1.0, 2.0, np.inf])
        np.testing.assert_array_equal(h.predictions, [11.0, 12.0, 22.0])
        assert h.prediction_on_mv == 3.0

    def test_boosted_with_bagged_members(self):
        """Bagged members are averaged before being summed."""
        a = Function1D(0, [np.inf], [2.0])
        b = Function1D(0, [np.inf], [4.0])
        c = Function1D(0, [0.0, np.inf], [1.0, -1.0])
        ensemble = sb.BoostedEnsemble([sb.BaggedEnsemble([a, b]), c])
        h = sb.compress(ensemble)

        np.testing.assert_allclose(h.predictions, [4.0, 2.0])
        X = np.array([[-1.0], [1.0], [np.nan]])
        np.testing.assert_allclose(h.predict(X), ensemble.predict(X))

    def test_compress_2d(self, f2d):
        h = sb.compress(sb.BoostedEnsemble([f2d, f2d.multiply(-1.0)]))

        assert isinstance(h, Function2D)
        assert h.is_zero()

    def test_empty_ensemble(self):
        with pytest.raises(ValueError, match="without any function"):
            sb.compress(sb.BoostedEnsemble())

    def test_nested_bagged_rejected(self):
        f = Function1D.constant(0, 1.0)
        with pytest.raises(TypeError):
            sb.compress(sb.BaggedEnsemble([sb.BaggedEnsemble([f])]))

    def test_mixed_types_rejected(self, f2d):
        with pytest.raises(ValueError, match="cannot mix"):
            sb.compress(sb.BoostedEnsemble([Function1D.constant(0, 1.0), f2d]))

    def test_ensemble_predict(self):
        f = Function1D(0, [0.0, np.inf], [1.0, 3.0])
        g = Function1D(0, [np.inf], [5.0])
        X = np.array([[-1.0], [1.0]])

        np.testing.assert_allclose(sb.BaggedEnsemble([f, g]).predict(X), [3.0, 4.0])
        np.testing.assert_allclose(sb.BoostedEnsemble([f, g]).predict(X), [6.0, 8.0])


class TestLookupTable:
    """Tests for to_lookup_table()."""

    def test_1d(self):
        f = Function1D(2, [0.5, 2.5, np.inf], [1.0, 2.0, 3.0], -1.0)
        table = sb.to_lookup_table(f, 4)

        assert isinstance(table, Array1D)
        assert table.att_index == 2
        np.testing.assert_array_equal(table.predictions, [1.0, 2.0, 2.0, 3.0])
        assert table.evaluate(np.nan) == -1.0
        assert table.evaluate(3.0) == 3.0

    def test_2d_matches_function(self, f2d):
        table = sb.to_lookup_table(f2d, 3, 4)

        assert isinstance(table, Array2D)
        assert table.predictions.shape == (3, 4)
        for i in range(3):
            for j in range(4):
                assert table.evaluate(i, j) == f2d.evaluate(i, j)
            assert table.evaluate(i, np.nan) == f2d.evaluate(i, np.nan)
        for j in range(4):
            assert table.evaluate(np.nan, j) == f2d.evaluate(np.nan, j)
        assert table.evaluate(np.nan, np.nan) == 9.0

    def test_ensemble_is_compressed(self):
        f = Function1D(0, [0.5, np.inf], [1.0, 3.0])
        table = sb.to_lookup_table(sb.BaggedEnsemble([f, f.multiply(3.0)]), 2)

        np.testing.assert_allclose(table.predictions, [2.0, 6.0])

    def test_predict_matches_function(self):
        f = Function1D(0, [1.5, 4.5, np.inf], [1.0, 2.0, 3.0], 0.5)
        table = sb.to_lookup_table(f, 8)
        X = np.array([[0.0], [2.0], [5.0], [7.0], [np.nan]])

        np.testing.assert_array_equal(table.predict(X), f.predict(X))

    def test_2d_needs_both_sizes(self, f2d):
        with pytest.raises(ValueError, match="n1 and n2"):
            sb.to_lookup_table(f2d, 3)


# =============================================================================
# Persistence
# =============================================================================

class TestPersistence:
    """Tests for the text format."""

    def test_function1d_format(self):
        f = Function1D(3, [2.5, np.inf], [0.5, 10.0], 1.25)
        lines = sb.dumps(f).splitlines()

        assert lines[0] == "[Predictor: Function1D]"
        assert lines[1] == "AttIndex: 3"
        assert lines[2] == "Splits: 2"
        assert lines[3] == "[2.5, inf]"
        assert lines[4] == "Predictions: 2"
        assert lines[6] == "PredictionOnMV: 1.25"

    def test_function1d(self):
        f = Function1D(3, [2.5, np.inf], [0.1, 1.0 / 3.0], -7.5)
        g = sb.loads(sb.dumps(f))

        assert g.att_index == 3
        np.testing.assert_array_equal(g.splits, f.splits)
        np.testing.assert_array_equal(g.predictions, f.predictions)
        assert g.prediction_on_mv == f.prediction_on_mv

    def test_function2d(self, f2d):
        text = sb.dumps(f2d)
        g = sb.loads(text)

        assert "Predictions: 2x2" in text
        assert g.att_indices == (0, 1)
        np.testing.assert_array_equal(g.predictions, f2d.predictions)
        np.testing.assert_array_equal(g.predictions_on_mv1, f2d.predictions_on_mv1)
        np.testing.assert_array_equal(g.predictions_on_mv2, f2d.predictions_on_mv2)
        assert g.prediction_on_mv12 == 9.0

    def test_lookup_tables(self, f2d):
        t1 = sb.to_lookup_table(Function1D(1, [0.5, np.inf], [1.0, 2.0], 3.0), 3)
        t2 = sb.to_lookup_table(f2d, 2, 3)

        u1 = sb.loads(sb.dumps(t1))
        u2 = sb.loads(sb.dumps(t2))

        assert isinstance(u1, Array1D)
        np.testing.assert_array_equal(u1.predictions, t1.predictions)
        assert u1.prediction_on_mv == 3.0
        assert isinstance(u2, Array2D)
        np.testing.assert_array_equal(u2.predictions, t2.predictions)
        np.testing.assert_array_equal(u2.predictions_on_mv2, t2.predictions_on_mv2)

    def test_nested_ensemble(self, tmp_path, f2d):
        bagged = sb.BaggedEnsemble([Function1D.constant(0, 1.0), Function1D(0, [0.0, np.inf], [2.0, 3.0])])
        model = sb.BoostedEnsemble([bagged, f2d])
        path = tmp_path / "model.txt"

        sb.save(model, path)
        loaded = sb.load(path)

        assert isinstance(loaded, sb.BoostedEnsemble)
        assert isinstance(loaded[0], sb.BaggedEnsemble)
        assert len(loaded[0]) == 2
        X = np.array([[-1.0, 0.0], [1.0, 2.0], [np.nan, np.nan]])
        np.testing.assert_array_equal(loaded[0].predict(X[:, :1]), bagged.predict(X[:, :1]))
        np.testing.assert_array_equal(loaded[1].predict(X), f2d.predict(X))

    def test_bad_header(self):
        with pytest.raises(ValueError, match="Predictor"):
            sb.loads("Function1D\nAttIndex: 0\n")

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="unknown predictor"):
            sb.loads("[Predictor: Tree]\n")

    def test_truncated(self):
        text = sb.dumps(Function1D.constant(0, 1.0))
        with pytest.raises(ValueError, match="unexpected end"):
            sb.loads("\n".join(text.splitlines()[:3]))

    def test_count_mismatch(self, f2d):
        """A count header that disagrees with its array raises error."""
        text = sb.dumps(Function1D(3, [2.5, np.inf], [0.5, 10.0]))
        with pytest.raises(ValueError, match="Splits: 3"):
            sb.loads(text.replace("Splits: 2", "Splits: 3"))
        with pytest.raises(ValueError, match="Predictions: 1"):
            sb.loads(text.replace("Predictions: 2", "Predictions: 1"))

        text = sb.dumps(f2d)
        with pytest.raises(ValueError, match="PredictionsOnMV1: 3"):
            sb.loads(text.replace("PredictionsOnMV1: 2", "PredictionsOnMV1: 3"))
        with pytest.raises(ValueError, match="Predictions: 2x3"):
            sb.loads(text.replace("Predictions: 2x2", "Predictions: 2x3"))

    def test_grid_shape_needs_both_sizes(self, f2d):
        text = sb.dumps(f2d).replace("Predictions: 2x2", "Predictions: 2")
        with pytest.raises(ValueError, match="NxM"):
            sb.loads(text)

    def test_unsupported_object(self):
        with pytest.raises(TypeError):
            sb.dumps({"a": 1})
