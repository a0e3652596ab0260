"""
Species and gear attribute tables.

Validation of the per-species and per-gear tables supplied by the user and
completion of missing species parameters with the default formulas of
allometric size-spectrum theory. The completed tables are what the
parameter store allocates its coefficient arrays from.
"""

from __future__ import annotations

import warnings
from typing import List, Optional

import numpy as np
import pandas as pd

from pysizespec.config import DEFAULTS
from pysizespec.logger import get_logger

logger = get_logger(__name__)


def validate_species_params(species_params: pd.DataFrame) -> pd.DataFrame:
    """Check a species table for structural errors.

    Parameters
    ----------
    species_params : pd.DataFrame
        One row per species with at least the columns ``species`` and
        ``w_max``.

    Returns
    -------
    pd.DataFrame
        A copy with a fresh integer index and string species names.

    Raises
    ------
    ValueError
        If required columns are missing, species names are duplicated or
        the size parameters are not ordered ``w_min < w_mat < w_max``.
    """
    if not isinstance(species_params, pd.DataFrame):
        species_params = pd.DataFrame(species_params)
    sp = species_params.copy().reset_index(drop=True)

    missing = [c for c in ("species", "w_max") if c not in sp.columns]
    if missing:
        raise ValueError(f"species_params is missing required columns: {missing}")
    if len(sp) == 0:
        raise ValueError("species_params must contain at least one species")

    sp["species"] = sp["species"].astype(str)
    duplicated = sp["species"][sp["species"].duplicated()].tolist()
    if duplicated:
        raise ValueError(f"Duplicate species names: {duplicated}")

    w_max = sp["w_max"].astype(float)
    if w_max.isna().any() or (w_max <= 0).any():
        raise ValueError("w_max must be given and positive for every species")

    if "w_min" in sp.columns:
        w_min = sp["w_min"].astype(float)
        bad = sp["species"][(w_min <= 0) | (w_min >= w_max)].tolist()
        if bad:
            raise ValueError(f"w_min must lie between 0 and w_max for species {bad}")
    if "w_mat" in sp.columns:
        w_mat = sp["w_mat"].astype(float)
        bad = sp["species"][(w_mat <= 0) | (w_mat >= w_max)].tolist()
        if bad:
            raise ValueError(f"w_mat must lie between 0 and w_max for species {bad}")
        if "w_min" in sp.columns:
            small = sp["species"][w_mat <= sp["w_min"].astype(float)].tolist()
            if small:
                warnings.warn(f"Maturity size not above egg size for species {small}")
    if "w_mat25" in sp.columns and "w_mat" in sp.columns:
        bad = sp["species"][sp["w_mat25"].astype(float) >= sp["w_mat"].astype(float)].tolist()
        if bad:
            raise ValueError(f"w_mat25 must be smaller than w_mat for species {bad}")
    for col in ("alpha", "erepro"):
        if col in sp.columns:
            values = sp[col].astype(float)
            bad = sp["species"][(values < 0) | (values > 1)].tolist()
            if bad:
                raise ValueError(f"{col} must lie in [0, 1] for species {bad}")
    if "interaction_resource" in sp.columns:
        values = sp["interaction_resource"].astype(float)
        bad = sp["species"][(values < 0) | (values > 1)].tolist()
        if bad:
            raise ValueError(
                f"interaction_resource must lie in [0, 1] for species {bad}"
            )
    return sp


def _fill(sp: pd.DataFrame, column: str, values, filled: List[str]) -> None:
    """Fill a column's missing entries in place and note the column."""
    values = pd.Series(values, index=sp.index) if np.ndim(values) else values
    if column not in sp.columns:
        sp[column] = values
        filled.append(column)
        return
    missing = sp[column].isna()
    if missing.any():
        if np.ndim(values):
            sp.loc[missing, column] = values[missing]
        else:
            sp.loc[missing, column] = values
        filled.append(column)


def get_ae(species_params: pd.DataFrame, lambda_: float) -> pd.Series:
    """Fraction of the resource power law available through the kernel.

    ae = sqrt(2 pi) * sigma * beta^(lambda - 2) * exp((lambda - 2)^2 sigma^2 / 2)
    """
    sigma = species_params["sigma"].astype(float)
    beta = species_params["beta"].astype(float)
    return (
        np.sqrt(2 * np.pi) * sigma * beta ** (lambda_ - 2)
        * np.exp((lambda_ - 2) ** 2 * sigma ** 2 / 2)
    )


def complete_species_params(
    species_params: pd.DataFrame,
    kappa: float = DEFAULTS.resource.kappa,
    lambda_: float = DEFAULTS.resource.lambda_,
) -> pd.DataFrame:
    """Fill missing species parameters with their defaults.

    Missing columns are added and NaN entries of existing columns are
    replaced. The default for ``gamma`` makes a species feeding on a
    resource spectrum ``kappa * w^-lambda`` attain feeding level ``f0``.

    Parameters
    ----------
    species_params : pd.DataFrame
        Species table that has passed ``validate_species_params``
    kappa : float
        Resource spectrum coefficient
    lambda_ : float
        Resource spectrum exponent

    Returns
    -------
    pd.DataFrame
        Completed copy of the table
    """
    d = DEFAULTS.species
    sp = validate_species_params(species_params)
    filled: List[str] = []

    _fill(sp, "w_min", d.w_min, filled)
    _fill(sp, "w_mat", sp["w_max"].astype(float) * d.w_mat_fraction, filled)
    _fill(sp, "w_mat25", sp["w_mat"].astype(float) / 3 ** d.w_mat25_power, filled)
    _fill(sp, "alpha", d.alpha, filled)
    _fill(sp, "erepro", d.erepro, filled)
    _fill(sp, "R_max", d.R_max, filled)
    _fill(sp, "n", d.n, filled)
    _fill(sp, "p", sp["n"].astype(float), filled)
    _fill(sp, "q", d.q, filled)
    _fill(sp, "m", d.m, filled)
    _fill(sp, "h", d.h, filled)
    _fill(sp, "beta", d.beta, filled)
    _fill(sp, "sigma", d.sigma, filled)
    _fill(sp, "pred_kernel_type", d.pred_kernel_type, filled)
    _fill(sp, "f0", d.f0, filled)
    _fill(sp, "fc", d.fc, filled)
    _fill(
        sp,
        "ks",
        sp["fc"] * sp["alpha"] * sp["h"] * sp["w_mat"] ** (sp["n"] - sp["p"]),
        filled,
    )
    _fill(sp, "k", d.k, filled)
    _fill(sp, "z0", d.z0pre * sp["w_max"] ** (sp["n"] - 1), filled)
    _fill(sp, "interaction_resource", d.interaction_resource, filled)
    gamma = sp["h"] * sp["f0"] / ((1 - sp["f0"]) * kappa * get_ae(sp, lambda_))
    _fill(sp, "gamma", gamma, filled)

    if filled:
        logger.info(f"Using default values for species parameters: {', '.join(filled)}")
    return validate_species_params(sp)


# ============================================================================
# Gears
# ============================================================================


def default_gear_params(species_params: pd.DataFrame) -> pd.DataFrame:
    """One knife-edge gear catching every species from maturity size."""
    return pd.DataFrame({
        "species": species_params["species"].astype(str).to_numpy(),
        "gear": "knife_edge_gear",
        "sel_func": "knife_edge",
        "knife_edge_size": species_params["w_mat"].astype(float).to_numpy(),
        "catchability": 1.0,
    })


def validate_gear_params(
    gear_params: Optional[pd.DataFrame],
    species_params: pd.DataFrame,
) -> pd.DataFrame:
    """Check and complete a gear table.

    Parameters
    ----------
    gear_params : pd.DataFrame or None
        One row per (species, gear) pair with columns ``species``, ``gear``
        and optionally ``sel_func``, ``catchability`` and the parameters of
        the selectivity function. ``None`` gives the default knife-edge
        gear.
    species_params : pd.DataFrame
        Completed species table

    Returns
    -------
    pd.DataFrame
        Completed copy of the gear table

    Raises
    ------
    ValueError
        For missing columns, unknown species or duplicated
        (species, gear) pairs.
    """
    if gear_params is None:
        return default_gear_params(species_params)
    gp = pd.DataFrame(gear_params).copy().reset_index(drop=True)
    if len(gp) == 0:
        return gp.reindex(columns=["species", "gear", "sel_func", "catchability"])

    missing = [c for c in ("species", "gear") if c not in gp.columns]
    if missing:
        raise ValueError(f"gear_params is missing required columns: {missing}")
    gp["species"] = gp["species"].astype(str)
    gp["gear"] = gp["gear"].astype(str)

    known = set(species_params["species"].astype(str))
    unknown = sorted(set(gp["species"]) - known)
    if unknown:
        raise ValueError(f"gear_params refers to unknown species: {unknown}")
    dup = gp.duplicated(subset=["species", "gear"])
    if dup.any():
        pairs = list(zip(gp.loc[dup, "species"], gp.loc[dup, "gear"]))
        raise ValueError(f"Duplicate (species, gear) pairs in gear_params: {pairs}")

    if "sel_func" not in gp.columns:
        gp["sel_func"] = "knife_edge"
    gp["sel_func"] = gp["sel_func"].fillna("knife_edge")
    if "catchability" not in gp.columns:
        gp["catchability"] = 1.0
    gp["catchability"] = gp["catchability"].fillna(1.0).astype(float)
    if (gp["catchability"] < 0).any():
        raise ValueError("catchability must be non-negative")

    needs_knife = gp["sel_func"] == "knife_edge"
    if needs_knife.any():
        w_mat = species_params.set_index("species")["w_mat"]
        default_size = gp["species"].map(w_mat).astype(float)
        if "knife_edge_size" not in gp.columns:
            gp["knife_edge_size"] = np.where(needs_knife, default_size, np.nan)
        else:
            fill = needs_knife & gp["knife_edge_size"].isna()
            gp.loc[fill, "knife_edge_size"] = default_size[fill]
    return gp


def example_species_params() -> pd.DataFrame:
    """A small illustrative community of four species.

    Useful for demonstrations and tests. Parameters not listed take their
    defaults in ``complete_species_params``.
    """
    return pd.DataFrame({
        "species": ["Anchovy", "Herring", "Whiting", "Cod"],
        "w_min": [0.001, 0.001, 0.001, 0.001],
        "w_max": [40.0, 330.0, 1200.0, 40000.0],
        "w_mat": [10.0, 100.0, 75.0, 1600.0],
        "beta": [1000.0, 1000.0, 100.0, 100.0],
        "sigma": [1.5, 1.5, 1.5, 1.3],
        "R_max": [1e12, 1e12, 1e11, 1e10],
    })
