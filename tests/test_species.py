"""
Tests for species and gear tables.
"""

import logging

import pytest
import numpy as np
import pandas as pd

from pysizespec.core.species import (
    validate_species_params,
    complete_species_params,
    default_gear_params,
    validate_gear_params,
    example_species_params,
    get_ae,
)


@pytest.fixture
def minimal_species():
    """Two species with only the required columns."""
    return pd.DataFrame({"species": ["Sprat", "Cod"], "w_max": [20.0, 1e4]})


class TestValidateSpeciesParams:
    """Tests for structural checks of the species table."""

    def test_returns_copy(self, minimal_species):
        sp = validate_species_params(minimal_species)
        sp.loc[0, "w_max"] = 1.0
        assert minimal_species.loc[0, "w_max"] == 20.0

    def test_missing_required_column(self):
        with pytest.raises(ValueError, match="w_max"):
            validate_species_params(pd.DataFrame({"species": ["A"]}))

    def test_empty_table(self):
        with pytest.raises(ValueError, match="at least one"):
            validate_species_params(pd.DataFrame({"species": [], "w_max": []}))

    def test_duplicate_species(self):
        sp = pd.DataFrame({"species": ["A", "A"], "w_max": [10.0, 20.0]})
        with pytest.raises(ValueError, match="Duplicate"):
            validate_species_params(sp)

    def test_non_positive_w_max(self):
        sp = pd.DataFrame({"species": ["A"], "w_max": [0.0]})
        with pytest.raises(ValueError, match="w_max"):
            validate_species_params(sp)

    def test_w_mat_beyond_w_max(self):
        sp = pd.DataFrame({"species": ["A"], "w_max": [10.0], "w_mat": [20.0]})
        with pytest.raises(ValueError, match="w_mat"):
            validate_species_params(sp)

    def test_w_mat25_not_below_w_mat(self):
        sp = pd.DataFrame(
            {"species": ["A"], "w_max": [10.0], "w_mat": [5.0], "w_mat25": [6.0]}
        )
        with pytest.raises(ValueError, match="w_mat25"):
            validate_species_params(sp)

    def test_alpha_out_of_range(self):
        sp = pd.DataFrame({"species": ["A"], "w_max": [10.0], "alpha": [1.5]})
        with pytest.raises(ValueError, match="alpha"):
            validate_species_params(sp)

    def test_maturity_below_egg_size_warns(self):
        sp = pd.DataFrame(
            {"species": ["A"], "w_max": [100.0], "w_min": [1.0], "w_mat": [0.5]}
        )
        with pytest.warns(UserWarning, match="Maturity"):
            validate_species_params(sp)


class TestCompleteSpeciesParams:
    """Tests for filling in default species parameters."""

    def test_defaults_filled(self, minimal_species):
        sp = complete_species_params(minimal_species)

        np.testing.assert_allclose(sp["w_mat"], [5.0, 2500.0])
        np.testing.assert_allclose(sp["w_min"], 0.001)
        np.testing.assert_allclose(sp["w_mat25"], sp["w_mat"] / 3 ** 0.1)
        np.testing.assert_allclose(sp["alpha"], 0.6)
        np.testing.assert_allclose(sp["p"], sp["n"])
        assert np.all(np.isinf(sp["R_max"]))
        assert list(sp["pred_kernel_type"]) == ["lognormal", "lognormal"]

    def test_derived_defaults(self, minimal_species):
        sp = complete_species_params(minimal_species, kappa=1e11, lambda_=2.05)

        np.testing.assert_allclose(sp["ks"], 0.2 * 0.6 * 30)
        np.testing.assert_allclose(sp["z0"], 0.6 * sp["w_max"] ** (-1 / 3))
        ae = get_ae(sp, 2.05)
        np.testing.assert_allclose(sp["gamma"], 30 * 0.6 / (0.4 * 1e11 * ae))

    def test_given_values_kept(self):
        sp = pd.DataFrame({
            "species": ["A", "B"],
            "w_max": [100.0, 100.0],
            "w_mat": [np.nan, 40.0],
            "beta": [50.0, 200.0],
        })
        completed = complete_species_params(sp)

        np.testing.assert_allclose(completed["w_mat"], [25.0, 40.0])
        np.testing.assert_allclose(completed["beta"], [50.0, 200.0])

    def test_input_not_modified(self, minimal_species):
        before = minimal_species.copy()
        complete_species_params(minimal_species)
        pd.testing.assert_frame_equal(minimal_species, before)

    def test_logs_filled_columns(self, minimal_species, caplog):
        caplog.set_level(logging.INFO, logger="pysizespec")
        complete_species_params(minimal_species)
        assert "Using default values for species parameters" in caplog.text
        assert "gamma" in caplog.text

    def test_nothing_logged_when_complete(self, minimal_species, caplog):
        sp = complete_species_params(minimal_species)
        caplog.set_level(logging.INFO, logger="pysizespec")
        caplog.clear()
        complete_species_params(sp)
        assert "Using default values" not in caplog.text


class TestGearParams:
    """Tests for the gear table."""

    def test_default_gear(self):
        sp = complete_species_params(example_species_params())
        gp = validate_gear_params(None, sp)

        assert list(gp["gear"].unique()) == ["knife_edge_gear"]
        np.testing.assert_allclose(gp["knife_edge_size"], sp["w_mat"])
        np.testing.assert_allclose(gp["catchability"], 1.0)
        pd.testing.assert_frame_equal(gp, default_gear_params(sp))

    def test_missing_columns_completed(self):
        sp = complete_species_params(example_species_params())
        gp = validate_gear_params(
            pd.DataFrame({"species": ["Cod", "Herring"], "gear": ["Trawl", "Purse"]}), sp
        )

        assert list(gp["sel_func"]) == ["knife_edge", "knife_edge"]
        np.testing.assert_allclose(gp["catchability"], 1.0)
        np.testing.assert_allclose(gp["knife_edge_size"], [1600.0, 100.0])

    def test_given_knife_edge_size_kept(self):
        sp = complete_species_params(example_species_params())
        gp = validate_gear_params(
            pd.DataFrame({
                "species": ["Cod", "Herring"],
                "gear": ["Trawl", "Trawl"],
                "knife_edge_size": [500.0, np.nan],
            }),
            sp,
        )
        np.testing.assert_allclose(gp["knife_edge_size"], [500.0, 100.0])

    def test_unknown_species(self):
        sp = complete_species_params(example_species_params())
        with pytest.raises(ValueError, match="unknown species"):
            validate_gear_params(
                pd.DataFrame({"species": ["Tuna"], "gear": ["Longline"]}), sp
            )

    def test_duplicate_pairs(self):
        sp = complete_species_params(example_species_params())
        with pytest.raises(ValueError, match="Duplicate"):
            validate_gear_params(
                pd.DataFrame({"species": ["Cod", "Cod"], "gear": ["Trawl", "Trawl"]}), sp
            )

    def test_empty_table_means_no_gears(self):
        sp = complete_species_params(example_species_params())
        gp = validate_gear_params(pd.DataFrame({"species": [], "gear": []}), sp)
        assert len(gp) == 0
