"""
Tests for the consumer and resource size grids.
"""

import pytest
import numpy as np

from pysizespec.core.errors import InvalidGrid
from pysizespec.core.grid import (
    SizeGrid,
    make_size_grid,
    get_w_min_idx,
    check_w_min_idx,
)


@pytest.fixture
def grid():
    """A grid spanning six orders of magnitude."""
    return make_size_grid(no_w=61, min_w=1e-3, max_w=1e3, min_w_pp=1e-8)


class TestMakeSizeGrid:
    """Tests for make_size_grid."""

    def test_consumer_grid(self, grid):
        """Consumer grid runs from min_w to max_w with a constant log step."""
        assert isinstance(grid, SizeGrid)
        assert grid.no_w == 61
        assert grid.w[0] == pytest.approx(1e-3)
        assert grid.w[-1] == pytest.approx(1e3)
        assert grid.dx == pytest.approx(0.1)
        np.testing.assert_allclose(np.diff(np.log10(grid.w)), 0.1)

    def test_bin_widths(self, grid):
        """dw follows the geometric width rule including the last bin."""
        np.testing.assert_allclose(grid.dw, grid.w * (10 ** grid.dx - 1))
        np.testing.assert_allclose(grid.dw[:-1], np.diff(grid.w))
        np.testing.assert_allclose(grid.dw_full, grid.w_full * (10 ** grid.dx - 1))

    def test_tail_equality_exact(self, grid):
        """The last no_w entries of the resource grid equal the consumer grid."""
        assert grid.no_w_full > grid.no_w
        assert np.array_equal(grid.w_full[grid.idx_sp], grid.w)
        assert np.array_equal(grid.dw_full[grid.idx_sp], grid.dw)
        assert np.array_equal(grid.w_full[-grid.no_w:], grid.w)

    def test_resource_grid_reaches_min_w_pp(self, grid):
        """The smallest resource bin holds min_w_pp."""
        assert grid.w_full[0] <= 1e-8 * (1 + 1e-12)
        assert grid.w_full[1] >= 1e-8 * (1 - 1e-12)
        assert np.all(np.diff(grid.w_full) > 0)
        np.testing.assert_allclose(np.diff(np.log10(grid.w_full)), grid.dx)

    def test_min_w_pp_on_grid_point(self):
        """No duplicate point is added when min_w_pp falls on the grid."""
        grid = make_size_grid(no_w=31, min_w=1e-3, max_w=1e0, min_w_pp=1e-5)
        # dx = 0.1, so 1e-5 lies exactly 20 steps below 1e-3
        assert grid.w_full[0] == pytest.approx(1e-5, rel=1e-12)
        assert grid.no_w_full == grid.no_w + 20

    def test_w_labels(self, grid):
        """Size labels are rounded to three significant figures."""
        assert grid.w_labels[0] == 0.001
        assert len(grid.w_labels) == grid.no_w

    def test_too_few_bins(self):
        """Grids need more than ten bins."""
        with pytest.raises(InvalidGrid, match="no_w"):
            make_size_grid(no_w=10, min_w=1e-3, max_w=1e3, min_w_pp=1e-8)

    def test_min_w_pp_not_below_min_w(self):
        """The resource must start below the smallest egg."""
        with pytest.raises(InvalidGrid, match="min_w_pp"):
            make_size_grid(no_w=50, min_w=1e-3, max_w=1e3, min_w_pp=1e-3)

    def test_min_w_not_below_max_w(self):
        with pytest.raises(InvalidGrid):
            make_size_grid(no_w=50, min_w=10, max_w=1, min_w_pp=1e-8)

    def test_species_larger_than_max_w(self):
        """The error names the species that outgrow the grid."""
        with pytest.raises(InvalidGrid, match="Cod"):
            make_size_grid(
                no_w=50, min_w=1e-3, max_w=1e3, min_w_pp=1e-8,
                w_max=[100, 2e3], species=["Sprat", "Cod"],
            )

    def test_species_max_size_tolerance(self):
        """A rounding excess within 1e-6 relative is accepted."""
        grid = make_size_grid(
            no_w=50, min_w=1e-3, max_w=1e3, min_w_pp=1e-8,
            w_max=[1e3 * (1 + 1e-7)],
        )
        assert grid.no_w == 50

    def test_invalid_grid_is_value_error(self):
        """InvalidGrid can be caught as a ValueError."""
        with pytest.raises(ValueError):
            make_size_grid(no_w=5, min_w=1e-3, max_w=1e3, min_w_pp=1e-8)


class TestWMinIdx:
    """Tests for the egg size bin index."""

    def test_egg_on_grid_point(self, grid):
        idx = get_w_min_idx([1e-3, grid.w[10]], grid.w)
        np.testing.assert_array_equal(idx, [0, 10])

    def test_egg_between_grid_points(self, grid):
        """Egg sizes are rounded down to the bin containing them."""
        w_min = np.sqrt(grid.w[5] * grid.w[6])
        idx = get_w_min_idx([w_min], grid.w)
        assert idx[0] == 5
        assert check_w_min_idx([w_min], grid.w, idx)

    def test_egg_below_grid(self, grid):
        """Rounding errors below w[0] map to the first bin."""
        idx = get_w_min_idx([grid.w[0] * (1 - 1e-15)], grid.w)
        assert idx[0] == 0

    def test_check_rejects_wrong_index(self, grid):
        w_min = np.sqrt(grid.w[5] * grid.w[6])
        assert not check_w_min_idx([w_min], grid.w, np.array([4]))
        assert not check_w_min_idx([w_min], grid.w, np.array([6]))
        assert check_w_min_idx([w_min], grid.w, np.array([5]))
        assert not check_w_min_idx([w_min, w_min], grid.w, np.array([5]))
