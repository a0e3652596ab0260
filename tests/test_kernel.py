"""
Tests for predation kernels and the two integration strategies.
"""

import pytest
import numpy as np
import pandas as pd

from pysizespec.core.kernel import (
    DirectKernel,
    SpectralKernel,
    box_pred_kernel,
    build_kernel,
    get_ft_mask,
    get_phi,
    lognormal_pred_kernel,
    power_law_pred_kernel,
    truncated_lognormal_pred_kernel,
)
from pysizespec.core.params import (
    new_multispecies_params,
    get_pred_kernel,
    set_pred_kernel,
)
from pysizespec.core.errors import ParamsInconsistent
from pysizespec.core.rates import get_rates
from pysizespec.core.species import example_species_params


@pytest.fixture(scope="module")
def params():
    return new_multispecies_params(example_species_params(), no_w=50)


@pytest.fixture(scope="module")
def direct_params(params):
    return set_pred_kernel(params, get_pred_kernel(params))


def max_rel_diff(a, b):
    """Largest difference per species relative to that species' largest value."""
    scale = np.max(np.abs(b), axis=-1, keepdims=True)
    scale[scale == 0] = 1.0
    return float(np.max(np.abs(a - b) / scale))


class TestKernelFunctions:
    """Tests for kernel shapes."""

    def test_lognormal_peak(self):
        ppmr = np.array([10.0, 100.0, 1000.0])
        phi = lognormal_pred_kernel(ppmr, beta=100.0, sigma=2.0)
        assert phi[1] == pytest.approx(1.0)
        assert phi[0] == pytest.approx(phi[2])
        assert phi[0] == pytest.approx(np.exp(-np.log(10) ** 2 / 8))

    def test_truncated_lognormal(self):
        ppmr = np.array([100.0, 100.0 * np.exp(2.9), 100.0 * np.exp(3.1)])
        phi = truncated_lognormal_pred_kernel(ppmr, beta=100.0, sigma=1.0)
        assert phi[0] == pytest.approx(1.0)
        assert phi[1] > 0
        assert phi[2] == 0

    def test_box(self):
        ppmr = np.array([5.0, 10.0, 50.0, 100.0, 200.0])
        np.testing.assert_array_equal(
            box_pred_kernel(ppmr, ppmr_min=10.0, ppmr_max=100.0), [0, 1, 1, 1, 0]
        )
        with pytest.raises(ValueError):
            box_pred_kernel(ppmr, ppmr_min=100.0, ppmr_max=10.0)

    def test_power_law(self):
        ppmr = np.array([1.0, 10.0, 100.0, 1e4])
        phi = power_law_pred_kernel(ppmr, kernel_exp=-0.5, ppmr_min=2.0, ppmr_max=1e3)
        np.testing.assert_allclose(phi, [0.0, 10 ** -0.5, 0.1, 0.0])

    def test_get_phi_zero_for_large_prey(self):
        sp = pd.DataFrame({"species": ["A"], "beta": [100.0], "sigma": [2.0]})
        phi = get_phi(sp, np.array([0.5, 1.0, 100.0]))
        np.testing.assert_allclose(phi, [[0.0, 0.0, 1.0]])

    def test_get_phi_per_species_type(self):
        sp = pd.DataFrame({
            "species": ["A", "B"],
            "pred_kernel_type": ["lognormal", "box"],
            "beta": [100.0, np.nan],
            "sigma": [2.0, np.nan],
            "ppmr_min": [np.nan, 10.0],
            "ppmr_max": [np.nan, 1000.0],
        })
        phi = get_phi(sp, np.array([100.0, 5000.0]))
        assert phi[0, 0] == pytest.approx(1.0)
        np.testing.assert_array_equal(phi[1], [1.0, 0.0])

    def test_get_phi_missing_parameter(self):
        sp = pd.DataFrame({"species": ["A"], "pred_kernel_type": ["box"], "ppmr_min": [10.0]})
        with pytest.raises(ValueError, match="ppmr_max"):
            get_phi(sp, np.array([100.0]))

    def test_ft_mask(self):
        mask = get_ft_mask(np.array([10.0]), np.array([1.0, 9.9, 10.0, 20.0]))
        np.testing.assert_array_equal(mask, [[1, 1, 0, 0]])


class TestStrategies:
    """Tests for the spectral and direct evaluation of the predation integrals."""

    def test_strategy_selection(self, params, direct_params):
        assert isinstance(params.kernel, SpectralKernel)
        assert isinstance(direct_params.kernel, DirectKernel)
        assert not direct_params.kernel.translation_invariant

    def test_kernel_table_shape(self, params):
        table = get_pred_kernel(params)
        assert table.shape == (params.no_sp, params.no_w, params.no_w_full)
        assert np.all(table >= 0)

    def test_fft_length(self, params):
        kernel = params.kernel
        assert kernel.n_fft >= 2 * params.no_w_full - 1

    def test_encounter_agrees(self, params, direct_params):
        spectral = get_rates(params).encounter
        direct = get_rates(direct_params).encounter
        # All species have their eggs in the first bin
        assert max_rel_diff(spectral, direct) < 1e-13

    def test_agreement_above_later_egg_bins(self):
        sp = example_species_params()
        sp["w_min"] = [0.001, 0.01, 0.1, 1.0]
        p = new_multispecies_params(sp, no_w=50)
        assert len(set(p.w_min_idx)) == 4
        assert p.w_min_idx.min() == 0 and p.w_min_idx.max() > 0
        direct = set_pred_kernel(p, get_pred_kernel(p))

        for name in ("encounter", "feeding_level"):
            spectral_rate = get_rates(p)[name]
            direct_rate = get_rates(direct)[name]
            for i in range(p.no_sp):
                above = slice(p.w_min_idx[i], None)
                scale = np.max(np.abs(direct_rate[i, above]))
                np.testing.assert_allclose(
                    spectral_rate[i, above], direct_rate[i, above],
                    rtol=1e-13, atol=1e-13 * scale, err_msg=f"{name} of {p.species_names[i]}",
                )

    def test_pred_rate_agrees(self, params, direct_params):
        spectral = get_rates(params).pred_rate
        direct = get_rates(direct_params).pred_rate
        assert max_rel_diff(spectral, direct) < 1e-13

    def test_pred_rate_masked_above_max_size(self, params, direct_params):
        w_max = params.species_params["w_max"].to_numpy()
        for p in (params, direct_params):
            pred_rate = get_rates(p).pred_rate
            for i in range(p.no_sp):
                assert np.all(pred_rate[i, p.w_full >= w_max[i]] == 0)

    def test_single_prey_bin(self, params):
        """A single prey bin is seen only by predators larger than it."""
        prey = np.zeros((params.no_sp, params.no_w_full))
        k = params.grid.idx_sp.start + 10
        prey[:, k] = 1.0
        avail = params.kernel.available_energy(prey)
        assert np.all(avail >= 0)
        assert np.all(avail[:, :11] < 1e-12)
        assert np.all(avail.max(axis=1) > 0.1)

    def test_build_kernel_with_table(self, params):
        table = get_pred_kernel(params)
        kernel = build_kernel(params.species_params, params.grid, table)
        hungry = np.ones((params.no_sp, params.no_w))
        np.testing.assert_allclose(
            kernel.pred_rate(hungry),
            np.einsum("ijk,ij->ik", table, hungry) * kernel.ft_mask,
        )

    def test_revert_to_spectral(self, direct_params):
        reverted = set_pred_kernel(direct_params)
        assert isinstance(reverted.kernel, SpectralKernel)

    def test_bad_kernel_shape(self, params):
        with pytest.raises(ParamsInconsistent, match="pred_kernel"):
            set_pred_kernel(params, np.ones((params.no_sp, params.no_w, 3)))
