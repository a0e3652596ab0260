"""
Tests for the resource dynamics.
"""

import pytest
import numpy as np

from pysizespec.core.resource import (
    resource_constant,
    resource_logistic,
    resource_semichemostat,
)


@pytest.fixture
def resource():
    return {
        "n_pp": np.array([0.0, 1.0, 5.0, 2.0]),
        "resource_rate": np.array([1.0, 2.0, 0.5, 0.0]),
        "resource_capacity": np.array([4.0, 4.0, 4.0, 4.0]),
    }


class TestSemichemostat:
    """Tests for semichemostat resource growth."""

    def test_exact_solution(self, resource):
        mu = np.array([0.5, 0.0, 1.0, 0.0])
        dt = 0.3
        out = resource_semichemostat(rates={"resource_mort": mu}, dt=dt, **resource)
        r, c, n0 = resource["resource_rate"], resource["resource_capacity"], resource["n_pp"]
        live = slice(0, 3)
        steady = r[live] * c[live] / (r[live] + mu[live])
        expected = steady + (n0[live] - steady) * np.exp(-(r[live] + mu[live]) * dt)
        np.testing.assert_allclose(out[live], expected)
        # No growth and no mortality
        assert out[3] == n0[3]

    def test_relaxes_to_capacity(self, resource):
        out = resource_semichemostat(
            rates={"resource_mort": np.zeros(4)}, dt=100.0, **resource
        )
        np.testing.assert_allclose(out[:3], 4.0)
        assert out[3] == 2.0

    def test_input_not_modified(self, resource):
        before = resource["n_pp"].copy()
        resource_semichemostat(rates={"resource_mort": np.ones(4)}, dt=1.0, **resource)
        np.testing.assert_array_equal(resource["n_pp"], before)


class TestLogistic:
    """Tests for logistic resource growth."""

    def test_capacity_is_fixed_point(self, resource):
        n_pp = resource["resource_capacity"].copy()
        out = resource_logistic(
            n_pp=n_pp, rates={"resource_mort": np.zeros(4)}, dt=1.0,
            resource_rate=resource["resource_rate"],
            resource_capacity=resource["resource_capacity"],
        )
        np.testing.assert_allclose(out, n_pp)

    def test_matches_small_steps(self):
        r = np.array([1.0])
        c = np.array([10.0])
        mu = np.array([0.3])
        exact = resource_logistic(
            n_pp=np.array([1.0]), rates={"resource_mort": mu}, dt=1.0,
            resource_rate=r, resource_capacity=c,
        )
        n = 1.0
        h = 1e-4
        for _ in range(10000):
            n += h * (r[0] * n * (1 - n / c[0]) - mu[0] * n)
        assert exact[0] == pytest.approx(n, rel=1e-3)

    def test_empty_bins_stay_empty(self, resource):
        out = resource_logistic(
            rates={"resource_mort": np.zeros(4)}, dt=1.0, **resource
        )
        assert out[0] == 0.0

    def test_balanced_growth_and_mortality(self):
        out = resource_logistic(
            n_pp=np.array([2.0]), rates={"resource_mort": np.array([1.0])}, dt=1.0,
            resource_rate=np.array([1.0]), resource_capacity=np.array([4.0]),
        )
        # dN/dt = -N^2 / 4 from N = 2 gives N(1) = 4 / 3
        assert out[0] == pytest.approx(4 / 3)


class TestConstant:

    def test_unchanged(self, resource):
        out = resource_constant(n_pp=resource["n_pp"], dt=1.0)
        np.testing.assert_array_equal(out, resource["n_pp"])
        assert out is not resource["n_pp"]
