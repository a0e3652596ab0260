"""
Tests for the rate pipeline.
"""

import dataclasses

import pytest
import numpy as np

from pysizespec.core.constants import NEEDS, RATE_NAMES, RATE_STAGES, STAGE_OF
from pysizespec.core.errors import ShapeMismatch
from pysizespec.core.params import (
    new_multispecies_params,
    set_max_intake_rate,
    set_metabolic_rate,
    set_rate_function,
    validate_params,
)
from pysizespec.core.rates import (
    RateBundle,
    compute_rates,
    get_rates,
    get_encounter,
    get_feeding_level,
    get_e_repro_and_growth,
    get_e_repro,
    get_e_growth,
    get_pred_rate,
    get_pred_mort,
    get_resource_mort,
    get_mort,
    get_rdi,
    get_rdd,
    get_fmort,
    get_fmort_gear,
)
from pysizespec.core.project import project
from pysizespec.core.species import example_species_params


@pytest.fixture(scope="module")
def params():
    return new_multispecies_params(example_species_params(), no_w=50)


@pytest.fixture(scope="module")
def rates(params):
    return get_rates(params)


def assert_close(actual, desired, rtol=1e-10):
    """Relative comparison that ignores entries negligible against the largest one."""
    atol = 1e-12 * float(np.max(np.abs(desired)))
    np.testing.assert_allclose(actual, desired, rtol=rtol, atol=atol)


class TestGetRates:
    """Tests for evaluation of the whole pipeline."""

    def test_bundle_contents(self, params, rates):
        assert isinstance(rates, RateBundle)
        assert tuple(rates.keys()) == RATE_NAMES
        np.testing.assert_array_equal(rates.feeding_level, rates["feeding_level"])

    def test_shapes(self, params, rates):
        sp_w = (params.no_sp, params.no_w)
        for name in ("encounter", "feeding_level", "e", "e_repro", "e_growth",
                     "pred_mort", "f_mort", "mort"):
            assert rates[name].shape == sp_w, name
        assert rates.pred_rate.shape == (params.no_sp, params.no_w_full)
        assert rates.rdi.shape == (params.no_sp,)
        assert rates.rdd.shape == (params.no_sp,)
        assert rates.resource_mort.shape == (params.no_w_full,)

    def test_all_finite(self, rates):
        for name, value in rates.items():
            assert np.all(np.isfinite(value)), name

    def test_inputs_not_modified(self, params):
        n = params.initial_n.copy()
        n_pp = params.initial_n_pp.copy()
        get_rates(params, n=n, n_pp=n_pp)
        np.testing.assert_array_equal(n, params.initial_n)
        np.testing.assert_array_equal(n_pp, params.initial_n_pp)

    def test_deterministic(self, params):
        first = get_rates(params)
        second = get_rates(params)
        for name in RATE_NAMES:
            np.testing.assert_array_equal(first[name], second[name])

    def test_wrong_state_shape(self, params):
        with pytest.raises(ShapeMismatch) as exc_info:
            get_rates(params, n=np.ones((2, 3)))
        assert exc_info.value.stage == "Rates"
        assert exc_info.value.array == "n"

    def test_individual_getters(self, params, rates):
        getters = {
            "encounter": get_encounter,
            "feeding_level": get_feeding_level,
            "e": get_e_repro_and_growth,
            "e_repro": get_e_repro,
            "e_growth": get_e_growth,
            "pred_rate": get_pred_rate,
            "pred_mort": get_pred_mort,
            "resource_mort": get_resource_mort,
            "mort": get_mort,
            "rdi": get_rdi,
            "rdd": get_rdd,
        }
        for name, getter in getters.items():
            np.testing.assert_array_equal(getter(params), rates[name])

    def test_compute_subset(self, params):
        computed = compute_rates(
            params, ["feeding_level"], params.initial_n, params.initial_n_pp,
            {}, 0.0, params.initial_effort,
        )
        assert list(computed) == ["encounter", "feeding_level"]

    def test_stage_tables_cover_every_rate(self):
        assert set(STAGE_OF) == set(RATE_NAMES)
        assert set(STAGE_OF.values()) <= set(RATE_STAGES)
        for name, needs in NEEDS.items():
            assert set(needs) <= set(RATE_NAMES), name
            assert RATE_NAMES.index(name) > max((RATE_NAMES.index(n) for n in needs), default=-1)

    def test_unknown_rate_name(self, params):
        with pytest.raises(KeyError):
            compute_rates(
                params, ["growth"], params.initial_n, params.initial_n_pp,
                {}, 0.0, params.initial_effort,
            )


class TestStageFormulas:
    """Tests of each stage against its defining formula."""

    def test_feeding_level(self, params, rates):
        expected = rates.encounter / (rates.encounter + params.intake_max)
        assert_close(rates.feeding_level, expected)
        assert np.all((rates.feeding_level >= 0) & (rates.feeding_level < 1))

    def test_energy_split(self, params, rates):
        alpha = params.species_params["alpha"].to_numpy()[:, np.newaxis]
        expected = alpha * rates.feeding_level * params.intake_max - params.metab
        assert_close(rates.e, expected, rtol=1e-8)
        assert_close(rates.e_repro, params.psi * np.maximum(rates.e, 0))
        assert_close(rates.e_repro + rates.e_growth, np.maximum(rates.e, 0))

    def test_negative_energy_means_no_growth(self, params):
        hungry = set_metabolic_rate(params, params.metab * 100)
        rates = get_rates(hungry)
        negative = rates.e < 0
        assert negative.any()
        assert np.all(rates.e_growth[negative] == 0)
        assert np.all(rates.e_repro[negative] == 0)

    def test_infinite_intake(self, params):
        p = set_max_intake_rate(params, np.full((params.no_sp, params.no_w), np.inf))
        rates = get_rates(p)
        assert np.all(rates.feeding_level == 0)
        alpha = p.species_params["alpha"].to_numpy()[:, np.newaxis]
        np.testing.assert_allclose(rates.e, alpha * rates.encounter - p.metab)
        assert np.all(np.isfinite(rates.e))

    def test_pred_mort(self, params, rates):
        expected = params.interaction.T @ rates.pred_rate[:, params.grid.idx_sp]
        np.testing.assert_allclose(rates.pred_mort, expected)

    def test_resource_mort(self, params, rates):
        expected = params.interaction_resource @ rates.pred_rate
        np.testing.assert_allclose(rates.resource_mort, expected)

    def test_mort(self, params, rates):
        np.testing.assert_allclose(
            rates.mort, rates.pred_mort + params.mu_b + rates.f_mort
        )

    def test_rdi(self, params, rates):
        erepro = params.species_params["erepro"].to_numpy()
        w_egg = params.w[params.w_min_idx]
        expected = 0.5 * (rates.e_repro * params.initial_n) @ params.dw * erepro / w_egg
        np.testing.assert_allclose(rates.rdi, expected)

    def test_beverton_holt(self, params, rates):
        r_max = params.species_params["R_max"].to_numpy()
        np.testing.assert_allclose(rates.rdd, rates.rdi / (1 + rates.rdi / r_max))
        assert np.all(rates.rdd < r_max)

    def test_no_density_dependence(self, params, rates):
        p = set_rate_function(params, "RDD", "noRDD")
        np.testing.assert_allclose(get_rates(p).rdd, rates.rdi)

    def test_constant_recruitment(self, params):
        sp = params.species_params.copy()
        sp["constant_reproduction"] = [1.0, 2.0, 3.0, 4.0]
        p = set_rate_function(validate_params(params.replace(species_params=sp)), "RDD", "constantRDD")
        np.testing.assert_allclose(get_rdd(p), [1.0, 2.0, 3.0, 4.0])

    def test_recruitment_parameter_missing(self, params):
        """A missing stock-recruitment parameter fails when the stage runs."""
        p = set_rate_function(params, "RDD", "RickerRDD")
        with pytest.raises(ValueError, match="ricker_b"):
            get_rates(p)

    def test_fishing_mortality(self, params):
        f1 = get_fmort(params, effort=1.0)
        f2 = get_fmort(params, effort=2.0)
        np.testing.assert_allclose(f2, 2 * f1)
        np.testing.assert_array_equal(get_fmort(params, effort=0.0), 0.0)
        expected = params.selectivity[0] * params.catchability[0][:, np.newaxis]
        np.testing.assert_allclose(f1, expected)


class TestScaleInvariance:
    """Rescaling abundances and search volume together leaves per-capita rates unchanged."""

    @pytest.fixture(scope="class")
    def scaled(self, params):
        v = 3.0
        sp = params.species_params.copy()
        sp["R_max"] = sp["R_max"] * v
        return v, validate_params(params.replace(
            species_params=sp,
            search_vol=params.search_vol / v,
            initial_n=params.initial_n * v,
            initial_n_pp=params.initial_n_pp * v,
        ))

    def test_per_capita_rates_unchanged(self, rates, scaled):
        _, p = scaled
        scaled_rates = get_rates(p)
        for name in ("encounter", "feeding_level", "e", "e_repro", "e_growth",
                     "pred_rate", "pred_mort", "f_mort", "mort", "resource_mort"):
            assert_close(scaled_rates[name], rates[name])

    def test_reproduction_scales(self, rates, scaled):
        v, p = scaled
        scaled_rates = get_rates(p)
        assert_close(scaled_rates.rdi, v * rates.rdi)
        assert_close(scaled_rates.rdd, v * rates.rdd)


class TestSimulationGetters:
    """Tests for rates evaluated at the saved times of a projection."""

    @pytest.fixture(scope="class")
    def sim(self, params):
        return project(params, t_max=4, dt=0.5, t_save=1)

    @pytest.fixture(scope="class")
    def timed_sim(self, params, sim):
        """The same projection read through a feeding level of n * t."""
        def time_feeding_level(params, n, t, **kwargs):
            return n * t

        p = set_rate_function(params, "FeedingLevel", time_feeding_level)
        return dataclasses.replace(sim, params=p)

    def test_all_saved_times(self, params, sim):
        assert get_feeding_level(sim).shape == (5, params.no_sp, params.no_w)
        assert get_rdd(sim).shape == (5, params.no_sp)

    def test_passes_saved_time(self, sim, timed_sim):
        feeding_level = get_feeding_level(timed_sim, time_range=(1, 3))
        expected = np.stack([sim.n[k] * sim.times[k] for k in (1, 2, 3)])
        np.testing.assert_array_equal(feeding_level, expected)

    def test_single_time(self, sim, timed_sim):
        feeding_level = get_feeding_level(timed_sim, time_range=2)
        assert feeding_level.shape[0] == 1
        np.testing.assert_array_equal(feeding_level[0], sim.n[2] * 2.0)

    def test_range_order_ignored(self, timed_sim):
        np.testing.assert_array_equal(
            get_feeding_level(timed_sim, time_range=[3, 1]),
            get_feeding_level(timed_sim, time_range=[1, 3]),
        )

    def test_range_outside_projection(self, sim):
        with pytest.raises(ValueError, match="time_range"):
            get_feeding_level(sim, time_range=(10, 20))

    def test_fishing_mortality_time_range(self, params, sim):
        assert get_fmort(sim, time_range=(2, 4)).shape == (3, params.no_sp, params.no_w)
        assert get_fmort_gear(sim, time_range=4).shape == (1, params.no_gear, params.no_sp, params.no_w)
