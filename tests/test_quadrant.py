"""Tests for four-quadrant splitting."""

import numpy as np
import pytest

import shapeboost as sb
from shapeboost import grow_quadrants
from shapeboost._core._quadrant import assign_regions, search_quadrants


def _grid_rows(table, repeat=3):
    """Rows (v1, v2, target) from a {(i, j): target} table, each repeated."""
    v1, v2, y = [], [], []
    for (i, j), t in table.items():
        for _ in range(repeat):
            v1.append(i)
            v2.append(j)
            y.append(t)
    return np.array(v1, dtype=np.float64), np.array(v2, dtype=np.float64), np.array(y)


class TestGrowQuadrants:
    """Tests for grow_quadrants()."""

    def test_two_by_two(self):
        """Four cells with distinct means are fitted exactly."""
        v1, v2, y = _grid_rows({(0, 0): 1.0, (0, 1): 2.0, (1, 0): 3.0, (1, 1): 4.0})
        f = grow_quadrants(v1, v2, y, np.ones_like(y), 2, 2)

        np.testing.assert_array_equal(f.splits1, [0.0, np.inf])
        np.testing.assert_array_equal(f.splits2, [0.0, np.inf])
        np.testing.assert_allclose(f.predictions, [[1.0, 2.0], [3.0, 4.0]])
        assert f.evaluate(1, 1) == 4.0

    def test_single_state_is_zero(self):
        """Cardinality 1 on either axis gives a zero 1x1 function."""
        v1 = np.zeros(10)
        v2 = np.arange(10.0) % 3
        f = grow_quadrants(v1, v2, np.arange(10.0), np.ones(10), 1, 3,
                           att_index1=4, att_index2=7)

        assert f.shape == (1, 1)
        assert f.is_zero()
        assert f.att_indices == (4, 7)

    def test_second_orientation_wins(self):
        """Cutting attribute 2 first is kept when it has strictly lower RSS."""
        expected = {
            (0, 0): 0.0, (1, 0): 10.0, (2, 0): 10.0,
            (0, 1): 0.0, (1, 1): 0.0, (2, 1): 10.0,
        }
        v1, v2, y = _grid_rows(expected)
        f = grow_quadrants(v1, v2, y, np.ones_like(y), 3, 2, att_index1=0, att_index2=1)

        assert f.att_indices == (0, 1)
        for (i, j), t in expected.items():
            assert f.evaluate(i, j) == pytest.approx(t)
        np.testing.assert_array_equal(f.splits1, [0.0, 1.0, np.inf])
        np.testing.assert_array_equal(f.splits2, [0.0, np.inf])

    def test_companion_cuts_collapse(self):
        """Equal upper and lower cuts share one split."""
        v1, v2, y = _grid_rows({
            (0, 0): 0.0, (0, 1): 5.0, (0, 2): 5.0,
            (1, 0): 1.0, (1, 1): 6.0, (1, 2): 6.0,
        })
        f = grow_quadrants(v1, v2, y, np.ones_like(y), 2, 3)

        assert f.shape == (2, 2)
        assert np.all(np.diff(f.splits2) > 0)

    def test_missing_channels(self):
        """Rows missing one or both attributes get their own predictions."""
        v1, v2, y = _grid_rows({(0, 0): 1.0, (0, 1): 2.0, (1, 0): 3.0, (1, 1): 4.0})
        v1 = np.concatenate([v1, [np.nan, np.nan, 0.0, 1.0, np.nan]])
        v2 = np.concatenate([v2, [0.0, 1.0, np.nan, np.nan, np.nan]])
        y = np.concatenate([y, [5.0, -5.0, 3.0, -3.0, 7.0]])
        f = grow_quadrants(v1, v2, y, np.ones_like(y), 2, 2)

        assert f.evaluate(np.nan, 0) == pytest.approx(5.0)
        assert f.evaluate(np.nan, 1) == pytest.approx(-5.0)
        assert f.evaluate(0, np.nan) == pytest.approx(3.0)
        assert f.evaluate(1, np.nan) == pytest.approx(-3.0)
        assert f.evaluate(np.nan, np.nan) == pytest.approx(7.0)

    def test_zero_weight_region_predicts_zero(self):
        """Empty quadrants predict 0."""
        v1, v2, y = _grid_rows({(0, 0): 1.0, (1, 1): 4.0})
        f = grow_quadrants(v1, v2, y, np.ones_like(y), 2, 2)

        assert f.evaluate(0, 1) == 0.0
        assert f.evaluate(1, 0) == 0.0

    def test_line_search(self):
        """With line search each region gets its Newton step."""
        v1, v2, y = _grid_rows({(0, 0): 0.5, (0, 1): 0.5, (1, 0): 0.5, (1, 1): -0.5})
        f = grow_quadrants(v1, v2, y, np.ones_like(y), 2, 2, line_search=True)

        assert f.evaluate(0, 0) == pytest.approx(2.0)
        assert f.evaluate(1, 1) == pytest.approx(-2.0)

    def test_out_of_range_state_rejected(self):
        """A state beyond the declared cardinality raises error."""
        v1, v2, y = _grid_rows({(0, 0): 1.0, (1, 1): 4.0}, repeat=2)
        v1[0] = 9.0

        with pytest.raises(ValueError, match="values1"):
            grow_quadrants(v1, v2, y, np.ones_like(y), 2, 2)


class TestSearchQuadrants:
    """Tests for the primary-axis scan."""

    def test_single_primary_state(self):
        """No primary cut exists on a single-state axis."""
        h = sb.Histogram2D.build(np.zeros(4), np.arange(4.0), np.ones(4), np.ones(4), 1, 4)
        assert search_quadrants(sb.QuadrantTable.build(h), False) is None

    def test_assign_regions(self):
        """Rows are routed to the nine regions."""
        v1, v2, y = _grid_rows({(0, 0): 1.0, (1, 1): 4.0}, repeat=1)
        h = sb.Histogram2D.build(v1, v2, y, np.ones_like(y), 2, 2)
        cut = search_quadrants(sb.QuadrantTable.build(h), False)

        regions = assign_regions(
            np.array([0.0, 0.0, 1.0, 1.0, np.nan, 0.0, 1.0, np.nan]),
            np.array([0.0, 1.0, 0.0, 1.0, 0.0, np.nan, np.nan, np.nan]),
            cut,
        )
        np.testing.assert_array_equal(regions, [0, 1, 2, 3, -1, 6, 7, 8])


class TestSquareCutter:
    """Tests for SquareCutter on Instances."""

    def test_build_on_binned_data(self):
        """SquareCutter fits an interaction on binned attributes."""
        rng = np.random.RandomState(0)
        X = rng.uniform(0, 1, (400, 2))
        data = sb.array(X, n_bins=8)
        bins = data.values
        y = np.where((bins[:, 0] >= 4) & (bins[:, 1] >= 4), 1.0, 0.0)
        data = data.with_targets(y)

        f = sb.SquareCutter().build(data, 0, 1)

        assert isinstance(f, sb.Function2D)
        assert f.evaluate(7, 7) == pytest.approx(1.0)
        assert f.evaluate(0, 0) == pytest.approx(0.0)

    def test_numeric_attribute_rejected(self):
        """Quadrant cutting requires discrete attributes."""
        data = sb.array(np.random.randn(20, 2), np.zeros(20), n_bins=None)

        with pytest.raises(ValueError, match="numeric"):
            sb.SquareCutter().build(data, 0, 1)
