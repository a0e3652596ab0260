"""
Parameter store for multispecies size-spectrum models.

This module contains the SpectrumParams class holding the size grids, the
species and gear tables and every coefficient array derived from them,
together with the functions that build, validate and modify it.

Every modifying function is functional: it assembles a candidate store
with ``SpectrumParams.replace``, validates the candidate as a whole and
returns it. The store passed in is never changed, so a rejected change
leaves no trace.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np
import pandas as pd

from pysizespec.config import DEFAULTS
from pysizespec.core import rates as _rates  # noqa: F401  registers rate functions
from pysizespec.core import resource as _resource  # noqa: F401  registers resource dynamics
from pysizespec.core.constants import RATE_STAGES, W_LABEL_TOLERANCE
from pysizespec.core.errors import ParamsInconsistent, SizeSpecError
from pysizespec.core.fishing import (
    compute_selectivity,
    get_gear_names,
    validate_effort_vector,
)
from pysizespec.core.grid import SizeGrid, check_w_min_idx, get_w_min_idx, make_size_grid
from pysizespec.core.kernel import KernelConvolution, build_kernel, direct_pred_kernel
from pysizespec.core.registry import (
    COMPONENT_FUNCTIONS,
    RATE_FUNCTIONS,
    RESOURCE_DYNAMICS,
)
from pysizespec.core.species import (
    complete_species_params,
    validate_gear_params,
    validate_species_params,
)
from pysizespec.logger import get_logger

logger = get_logger(__name__)

ArrayLike = Union[np.ndarray, pd.DataFrame]


def default_rates_funcs() -> Dict[str, str]:
    """Names of the standard implementation of every rate stage."""
    return {
        "Rates": "mizerRates",
        "Encounter": "mizerEncounter",
        "FeedingLevel": "mizerFeedingLevel",
        "EReproAndGrowth": "mizerEReproAndGrowth",
        "ERepro": "mizerERepro",
        "EGrowth": "mizerEGrowth",
        "PredRate": "mizerPredRate",
        "PredMort": "mizerPredMort",
        "FMort": "mizerFMort",
        "Mort": "mizerMort",
        "RDI": "mizerRDI",
        "RDD": "BevertonHoltRDD",
        "ResourceMort": "mizerResourceMort",
    }


@dataclass(eq=False)
class SpectrumParams:
    """Container for the parameters of a size-spectrum model.

    Species-by-size arrays have shape [no_sp, no_w] with species in the
    row order of ``species_params`` and sizes in the order of ``w``.

    Attributes
    ----------
    grid : SizeGrid
        Consumer and resource size grids
    species_params : pd.DataFrame
        Completed species table, one row per species
    gear_params : pd.DataFrame
        Completed gear table, one row per (species, gear) pair
    w_min_idx : np.ndarray
        Index of the size bin holding each species' egg size [no_sp]
    maturity : np.ndarray
        Proportion of individuals that are mature [no_sp, no_w]
    psi : np.ndarray
        Proportion of surplus energy invested in reproduction [no_sp, no_w]
    intake_max : np.ndarray
        Maximum intake rate [no_sp, no_w]
    search_vol : np.ndarray
        Search volume [no_sp, no_w]
    metab : np.ndarray
        Metabolic rate [no_sp, no_w]
    mu_b : np.ndarray
        External (background) mortality rate [no_sp, no_w]
    ext_encounter : np.ndarray
        Encounter rate from unmodelled food [no_sp, no_w]
    interaction : np.ndarray
        Predator x prey interaction coefficients in [0, 1] [no_sp, no_sp]
    selectivity : np.ndarray
        Gear selectivity [no_gear, no_sp, no_w]
    catchability : np.ndarray
        Gear catchability [no_gear, no_sp]
    gear_names : list of str
        Canonical gear order
    initial_effort : np.ndarray
        Effort per gear used when none is supplied [no_gear]
    rr_pp : np.ndarray
        Resource regeneration rate [no_w_full]
    cc_pp : np.ndarray
        Resource carrying capacity [no_w_full]
    resource_dynamics : str
        Registered name of the resource dynamics function
    resource_params : dict
        Parameters of the resource spectrum
    initial_n : np.ndarray
        Initial consumer density [no_sp, no_w]
    initial_n_pp : np.ndarray
        Initial resource density [no_w_full]
    pred_kernel : np.ndarray, optional
        Explicit predation kernel [no_sp, no_w, no_w_full]. When None the
        kernel is defined by the species table and integrated spectrally.
    rates_funcs : dict
        Rate stage -> registered function name
    other_dynamics, other_encounter, other_mort : dict
        Component -> registered function name
    other_params : dict
        Component -> parameters passed to its functions
    initial_n_other : dict
        Component -> initial state
    given_species_params : pd.DataFrame, optional
        The species table as supplied, before defaults were filled in
    metadata : dict
        Free-form description of the model
    linecolour, linetype : dict
        Plotting side map; not used by the numerical core
    """

    grid: SizeGrid
    species_params: pd.DataFrame
    gear_params: pd.DataFrame
    w_min_idx: np.ndarray
    maturity: np.ndarray
    psi: np.ndarray
    intake_max: np.ndarray
    search_vol: np.ndarray
    metab: np.ndarray
    mu_b: np.ndarray
    ext_encounter: np.ndarray
    interaction: np.ndarray
    selectivity: np.ndarray
    catchability: np.ndarray
    gear_names: List[str]
    initial_effort: np.ndarray
    rr_pp: np.ndarray
    cc_pp: np.ndarray
    initial_n: np.ndarray
    initial_n_pp: np.ndarray
    resource_dynamics: str = "resource_semichemostat"
    resource_params: Dict[str, Any] = field(default_factory=dict)
    pred_kernel: Optional[np.ndarray] = None
    rates_funcs: Dict[str, str] = field(default_factory=default_rates_funcs)
    other_dynamics: Dict[str, str] = field(default_factory=dict)
    other_encounter: Dict[str, str] = field(default_factory=dict)
    other_mort: Dict[str, str] = field(default_factory=dict)
    other_params: Dict[str, Any] = field(default_factory=dict)
    initial_n_other: Dict[str, Any] = field(default_factory=dict)
    given_species_params: Optional[pd.DataFrame] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    linecolour: Dict[str, str] = field(default_factory=dict)
    linetype: Dict[str, str] = field(default_factory=dict)
    _kernel: Optional[KernelConvolution] = field(
        default=None, init=False, repr=False
    )

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    @property
    def w(self) -> np.ndarray:
        return self.grid.w

    @property
    def dw(self) -> np.ndarray:
        return self.grid.dw

    @property
    def w_full(self) -> np.ndarray:
        return self.grid.w_full

    @property
    def dw_full(self) -> np.ndarray:
        return self.grid.dw_full

    @property
    def species_names(self) -> List[str]:
        return list(self.species_params["species"].astype(str))

    @property
    def no_sp(self) -> int:
        return len(self.species_params)

    @property
    def no_w(self) -> int:
        return self.grid.no_w

    @property
    def no_w_full(self) -> int:
        return self.grid.no_w_full

    @property
    def no_gear(self) -> int:
        return len(self.gear_names)

    @property
    def interaction_resource(self) -> np.ndarray:
        """Scaling of each species' feeding on the resource [no_sp]."""
        if "interaction_resource" not in self.species_params.columns:
            return np.ones(self.no_sp)
        return self.species_params["interaction_resource"].to_numpy(dtype=float)

    @property
    def kernel(self) -> KernelConvolution:
        """Integration strategy for the predation integrals, built on demand."""
        if self._kernel is None:
            self._kernel = build_kernel(self.species_params, self.grid, self.pred_kernel)
        return self._kernel

    def replace(self, **changes) -> "SpectrumParams":
        """Return a copy with some fields replaced; the copy is not validated."""
        return dataclasses.replace(self, **changes)

    def species_frame(self, values: np.ndarray) -> pd.DataFrame:
        """Label a [no_sp, no_w] array with species names and sizes."""
        return pd.DataFrame(
            values,
            index=pd.Index(self.species_names, name="sp"),
            columns=pd.Index(self.w, name="w"),
        )

    def __repr__(self) -> str:
        return (
            f"SpectrumParams(species={self.species_names}, gears={self.gear_names}, "
            f"no_w={self.no_w}, no_w_full={self.no_w_full}, "
            f"kernel={'direct' if self.pred_kernel is not None else 'spectral'})"
        )


# ============================================================================
# Validation
# ============================================================================


def _check_shape(errors: List[str], name: str, value, shape) -> bool:
    value = np.asarray(value)
    if value.shape != tuple(shape):
        errors.append(f"{name} has shape {value.shape}, expected {tuple(shape)}")
        return False
    return True


def validate_params(params: SpectrumParams) -> SpectrumParams:
    """Check every invariant of a parameter store.

    All violations are collected before anything is reported.

    Parameters
    ----------
    params : SpectrumParams

    Returns
    -------
    SpectrumParams
        The same store, with its predation kernel prepared

    Raises
    ------
    ParamsInconsistent
        Listing one message per violated invariant.
    """
    errors: List[str] = []
    grid = params.grid
    no_w, no_w_full = grid.no_w, grid.no_w_full
    sp = params.species_params
    no_sp = len(sp)

    # Size grids
    if len(grid.dw) != no_w:
        errors.append(f"dw has length {len(grid.dw)} but w has length {no_w}")
    if len(grid.dw_full) != no_w_full:
        errors.append(f"dw_full has length {len(grid.dw_full)} but w_full has length {no_w_full}")
    if no_w_full < no_w or not np.array_equal(grid.w_full[no_w_full - no_w:], grid.w):
        errors.append("The last entries of w_full must equal w")
    elif len(grid.dw_full) == no_w_full and not np.array_equal(
        grid.dw_full[no_w_full - no_w:], grid.dw
    ):
        errors.append("The last entries of dw_full must equal dw")
    if np.any(np.diff(grid.w_full) <= 0):
        errors.append("w_full must be strictly increasing")

    # Species table
    if "species" not in sp.columns or sp["species"].astype(str).duplicated().any():
        errors.append("species_params must have unique species names")
    if "w_min" in sp.columns and not check_w_min_idx(
        sp["w_min"].to_numpy(dtype=float), grid.w, params.w_min_idx
    ):
        errors.append(
            "w_min_idx must point to the start of the size bin containing the "
            "egg size w_min"
        )
    if "w_max" in sp.columns and np.any(sp["w_max"].to_numpy(dtype=float) > grid.w[-1] * (1 + 1e-6)):
        errors.append("Some species have a maximum size beyond the size grid")

    # Species x size arrays
    for name in ("initial_n", "maturity", "psi", "intake_max", "search_vol",
                 "metab", "mu_b", "ext_encounter"):
        value = getattr(params, name)
        if _check_shape(errors, name, value, (no_sp, no_w)):
            if np.any(np.isnan(value)):
                errors.append(f"{name} contains NaN values")
    for name in ("maturity", "psi"):
        value = np.asarray(getattr(params, name))
        if value.shape == (no_sp, no_w) and np.any((value < 0) | (value > 1)):
            errors.append(f"{name} must lie in [0, 1]")
    for name in ("intake_max", "search_vol", "initial_n"):
        value = np.asarray(getattr(params, name))
        if value.shape == (no_sp, no_w) and np.any(value < 0):
            errors.append(f"{name} must be non-negative")

    # Interactions
    if _check_shape(errors, "interaction", params.interaction, (no_sp, no_sp)):
        inter = np.asarray(params.interaction)
        if np.any(np.isnan(inter)) or np.any((inter < 0) | (inter > 1)):
            errors.append("interaction entries must lie in [0, 1]")
    ir = params.interaction_resource
    if np.any(np.isnan(ir)) or np.any((ir < 0) | (ir > 1)):
        errors.append("interaction_resource must lie in [0, 1]")

    # Gears
    expected_gears = get_gear_names(params.gear_params)
    if list(params.gear_names) != expected_gears:
        errors.append(
            f"gear_names {list(params.gear_names)} do not match the gears of "
            f"gear_params {expected_gears}"
        )
    no_gear = len(params.gear_names)
    _check_shape(errors, "selectivity", params.selectivity, (no_gear, no_sp, no_w))
    if _check_shape(errors, "catchability", params.catchability, (no_gear, no_sp)):
        if np.any(np.asarray(params.catchability) < 0):
            errors.append("catchability must be non-negative")
    _check_shape(errors, "initial_effort", params.initial_effort, (no_gear,))
    if len(params.gear_params) and "species" in params.gear_params.columns:
        unknown = set(params.gear_params["species"].astype(str)) - set(params.species_names)
        if unknown:
            errors.append(f"gear_params refers to unknown species {sorted(unknown)}")

    # Resource
    for name in ("rr_pp", "cc_pp", "initial_n_pp"):
        value = getattr(params, name)
        if _check_shape(errors, name, value, (no_w_full,)) and np.any(np.isnan(value)):
            errors.append(f"{name} contains NaN values")

    # Predation kernel
    if params.pred_kernel is not None:
        kernel_ok = _check_shape(
            errors, "pred_kernel", params.pred_kernel, (no_sp, no_w, no_w_full)
        )
        if kernel_ok and np.any(np.asarray(params.pred_kernel) < 0):
            errors.append("pred_kernel must be non-negative")

    # Registered functions
    unknown_stages = sorted(set(params.rates_funcs) - set(RATE_STAGES))
    if unknown_stages:
        errors.append(f"rates_funcs has unknown stages {unknown_stages}")
    missing_stages = [s for s in RATE_STAGES if s not in params.rates_funcs]
    if missing_stages:
        errors.append(f"rates_funcs is missing stages {missing_stages}")
    for stage, name in params.rates_funcs.items():
        if name not in RATE_FUNCTIONS:
            errors.append(f"Rate function '{name}' for stage {stage} is not registered")
    if params.resource_dynamics not in RESOURCE_DYNAMICS:
        errors.append(
            f"Resource dynamics '{params.resource_dynamics}' is not registered"
        )
    for table in ("other_dynamics", "other_encounter", "other_mort"):
        for component, name in getattr(params, table).items():
            if name not in COMPONENT_FUNCTIONS:
                errors.append(
                    f"{table} function '{name}' for component '{component}' "
                    f"is not registered"
                )
            if component not in params.initial_n_other:
                errors.append(f"Component '{component}' in {table} has no initial value")
    for component in params.initial_n_other:
        if component not in params.other_dynamics:
            errors.append(f"Component '{component}' has no dynamics function")

    # The spectral kernel needs a valid species table, so only try it
    # once everything else is in order
    if not errors:
        params._kernel = None
        try:
            params.kernel
        except (ValueError, SizeSpecError) as e:
            errors.append(f"Cannot set up predation kernel: {e}")

    if errors:
        raise ParamsInconsistent(errors)
    return params


def _commit(params: SpectrumParams, **changes) -> SpectrumParams:
    """Build and validate a candidate store."""
    candidate = params.replace(**changes)
    return validate_params(candidate)


# ============================================================================
# Coercion of user supplied arrays
# ============================================================================


def _labels_match(labels, w: np.ndarray) -> bool:
    try:
        values = np.asarray(labels, dtype=float)
    except (TypeError, ValueError):
        return False
    return values.shape == w.shape and np.allclose(values, w, rtol=W_LABEL_TOLERANCE, atol=0)


def _species_array(params: SpectrumParams, name: str, value: ArrayLike) -> np.ndarray:
    """Coerce a species x size array; labelled frames are checked and reordered."""
    if isinstance(value, pd.DataFrame):
        errors = []
        index = [str(s) for s in value.index]
        if sorted(index) != sorted(params.species_names):
            errors.append(
                f"{name} is labelled with species {index}, expected {params.species_names}"
            )
        if not _labels_match(value.columns, params.w):
            errors.append(f"{name} size labels do not match w")
        if errors:
            raise ParamsInconsistent(errors)
        value = value.set_axis(index, axis=0).loc[params.species_names]
        return value.to_numpy(dtype=float)
    value = np.asarray(value, dtype=float)
    if value.ndim == 1 and value.shape == (params.no_sp,):
        value = np.repeat(value[:, np.newaxis], params.no_w, axis=1)
    return value


def _full_vector(params: SpectrumParams, name: str, value) -> np.ndarray:
    if isinstance(value, pd.Series):
        if not _labels_match(value.index, params.w_full):
            raise ParamsInconsistent([f"{name} size labels do not match w_full"])
        value = value.to_numpy()
    return np.asarray(value, dtype=float)


def _sp_column(params: SpectrumParams, column: str) -> np.ndarray:
    return params.species_params[column].to_numpy(dtype=float)[:, np.newaxis]


# ============================================================================
# Default coefficient arrays
# ============================================================================


def default_search_vol(species_params: pd.DataFrame, w: np.ndarray) -> np.ndarray:
    """Search volume gamma * w^q."""
    gamma = species_params["gamma"].to_numpy(dtype=float)[:, np.newaxis]
    q = species_params["q"].to_numpy(dtype=float)[:, np.newaxis]
    return gamma * w[np.newaxis, :] ** q


def default_intake_max(species_params: pd.DataFrame, w: np.ndarray) -> np.ndarray:
    """Maximum intake rate h * w^n."""
    h = species_params["h"].to_numpy(dtype=float)[:, np.newaxis]
    n = species_params["n"].to_numpy(dtype=float)[:, np.newaxis]
    return h * w[np.newaxis, :] ** n


def default_metab(species_params: pd.DataFrame, w: np.ndarray) -> np.ndarray:
    """Metabolic rate ks * w^p + k * w."""
    ks = species_params["ks"].to_numpy(dtype=float)[:, np.newaxis]
    p = species_params["p"].to_numpy(dtype=float)[:, np.newaxis]
    k = species_params["k"].to_numpy(dtype=float)[:, np.newaxis]
    return ks * w[np.newaxis, :] ** p + k * w[np.newaxis, :]


def default_ext_mort(species_params: pd.DataFrame, w: np.ndarray) -> np.ndarray:
    """Size-independent external mortality z0."""
    z0 = species_params["z0"].to_numpy(dtype=float)[:, np.newaxis]
    return np.repeat(z0, len(w), axis=1)


def default_maturity(species_params: pd.DataFrame, w: np.ndarray) -> np.ndarray:
    """Logistic maturity ogive through w_mat25 (0.25) and w_mat (0.5)."""
    w_mat = species_params["w_mat"].to_numpy(dtype=float)[:, np.newaxis]
    w_mat25 = species_params["w_mat25"].to_numpy(dtype=float)[:, np.newaxis]
    u = np.log(3) / np.log(w_mat / w_mat25)
    return 1 / (1 + (w[np.newaxis, :] / w_mat) ** (-u))


def default_repro_prop(species_params: pd.DataFrame, w: np.ndarray) -> np.ndarray:
    """Proportion of surplus energy a mature individual invests in reproduction."""
    w_max = species_params["w_max"].to_numpy(dtype=float)[:, np.newaxis]
    m = species_params["m"].to_numpy(dtype=float)[:, np.newaxis]
    n = species_params["n"].to_numpy(dtype=float)[:, np.newaxis]
    return (w[np.newaxis, :] / w_max) ** (m - n)


def compute_psi(
    species_params: pd.DataFrame,
    w: np.ndarray,
    maturity: np.ndarray,
    repro_prop: np.ndarray,
) -> np.ndarray:
    """Investment in reproduction; everything goes to reproduction at w_max."""
    psi = maturity * repro_prop
    w_max = species_params["w_max"].to_numpy(dtype=float)[:, np.newaxis]
    psi[w[np.newaxis, :] >= w_max] = 1.0
    return np.clip(psi, 0.0, 1.0)


def default_resource_rate(resource_params: Dict[str, Any], w_full: np.ndarray) -> np.ndarray:
    """Resource regeneration rate r_pp * w^(n - 1)."""
    return resource_params["r_pp"] * w_full ** (resource_params["n"] - 1)


def default_resource_capacity(resource_params: Dict[str, Any], w_full: np.ndarray) -> np.ndarray:
    """Resource carrying capacity kappa * w^-lambda, zero above the cutoff."""
    cc = resource_params["kappa"] * w_full ** (-resource_params["lambda"])
    cc[w_full > resource_params["w_pp_cutoff"]] = 0.0
    return cc


def default_initial_n(
    species_params: pd.DataFrame, w: np.ndarray, kappa: float, lambda_: float
) -> np.ndarray:
    """Power law kappa * w^-lambda shared equally among species between w_min and w_max."""
    no_sp = len(species_params)
    n = np.repeat((kappa * w ** (-lambda_) / no_sp)[np.newaxis, :], no_sp, axis=0)
    w_min = species_params["w_min"].to_numpy(dtype=float)[:, np.newaxis]
    w_max = species_params["w_max"].to_numpy(dtype=float)[:, np.newaxis]
    # w_min may sit a rounding error above its grid point
    outside = (w[np.newaxis, :] < w_min * (1 - 1e-10)) | (w[np.newaxis, :] >= w_max)
    n[outside] = 0.0
    return n


def line_styles(species_params: pd.DataFrame):
    """Colours and line types for plotting each species."""
    colors = DEFAULTS.colors
    names = list(species_params["species"].astype(str))
    if "linecolour" in species_params.columns:
        given = list(species_params["linecolour"])
        unused = [c for c in colors.palette if c not in given]
        for i, c in enumerate(given):
            if pd.isna(c):
                given[i] = unused.pop(0) if unused else colors.palette[i % len(colors.palette)]
        linecolour = dict(zip(names, given))
    else:
        linecolour = {
            s: colors.palette[i % len(colors.palette)] for i, s in enumerate(names)
        }
    if "linetype" in species_params.columns:
        linetype = {
            s: (colors.linetype if pd.isna(t) else t)
            for s, t in zip(names, species_params["linetype"])
        }
    else:
        linetype = {s: colors.linetype for s in names}
    linecolour.update(colors.extra)
    linetype.update({k: colors.linetype for k in colors.extra})
    return linecolour, linetype


# ============================================================================
# Constructor
# ============================================================================


def new_multispecies_params(
    species_params: pd.DataFrame,
    interaction: Optional[ArrayLike] = None,
    gear_params: Optional[pd.DataFrame] = None,
    no_w: int = DEFAULTS.grid.no_w,
    min_w_pp: float = DEFAULTS.grid.min_w_pp,
    max_w: Optional[float] = None,
    kappa: float = DEFAULTS.resource.kappa,
    lambda_: float = DEFAULTS.resource.lambda_,
    r_pp: float = DEFAULTS.resource.r_pp,
    n: float = DEFAULTS.resource.n,
    w_pp_cutoff: float = DEFAULTS.resource.w_pp_cutoff,
    resource_dynamics: str = DEFAULTS.resource.dynamics,
) -> SpectrumParams:
    """Create a validated parameter store from a species table.

    Parameters
    ----------
    species_params : pd.DataFrame
        One row per species; must contain ``species`` and ``w_max``.
        Missing parameters get their default values.
    interaction : array-like, optional
        Predator x prey interaction matrix; all ones by default
    gear_params : pd.DataFrame, optional
        Gear table; by default one knife-edge gear selecting every species
        from its maturity size
    no_w : int
        Number of consumer size bins
    min_w_pp : float
        Smallest resource size
    max_w : float, optional
        Largest consumer size; the largest ``w_max`` by default
    kappa, lambda_ : float
        Coefficient and exponent of the resource carrying capacity
    r_pp, n : float
        Coefficient and exponent of the resource regeneration rate
    w_pp_cutoff : float
        Resource carrying capacity is zero above this size
    resource_dynamics : str
        Registered resource dynamics

    Returns
    -------
    SpectrumParams

    Examples
    --------
    >>> from pysizespec.core.species import example_species_params
    >>> params = new_multispecies_params(example_species_params(), no_w=50)
    >>> params.initial_n.shape
    (4, 50)
    """
    given = validate_species_params(species_params)
    sp = complete_species_params(given, kappa=kappa, lambda_=lambda_)
    gp = validate_gear_params(gear_params, sp)

    min_w = float(sp["w_min"].min())
    w_max = sp["w_max"].to_numpy(dtype=float)
    grid = make_size_grid(
        no_w=no_w,
        min_w=min_w,
        max_w=float(w_max.max()) if max_w is None else max_w,
        min_w_pp=min_w_pp,
        w_max=w_max,
        species=list(sp["species"]),
    )
    w = grid.w
    no_sp = len(sp)

    resource_params = {
        "kappa": kappa,
        "lambda": lambda_,
        "r_pp": r_pp,
        "n": n,
        "w_pp_cutoff": w_pp_cutoff,
    }
    if interaction is None:
        inter = np.ones((no_sp, no_sp))
    elif isinstance(interaction, pd.DataFrame):
        inter = _interaction_array(list(sp["species"]), interaction)
    else:
        inter = np.asarray(interaction, dtype=float)

    selectivity, catchability, gear_names = compute_selectivity(gp, sp, w)
    maturity = default_maturity(sp, w)
    cc_pp = default_resource_capacity(resource_params, grid.w_full)
    linecolour, linetype = line_styles(sp)

    params = SpectrumParams(
        grid=grid,
        species_params=sp,
        gear_params=gp,
        w_min_idx=get_w_min_idx(sp["w_min"].to_numpy(dtype=float), w),
        maturity=maturity,
        psi=compute_psi(sp, w, maturity, default_repro_prop(sp, w)),
        intake_max=default_intake_max(sp, w),
        search_vol=default_search_vol(sp, w),
        metab=default_metab(sp, w),
        mu_b=default_ext_mort(sp, w),
        ext_encounter=np.zeros((no_sp, len(w))),
        interaction=inter,
        selectivity=selectivity,
        catchability=catchability,
        gear_names=gear_names,
        initial_effort=np.full(len(gear_names), DEFAULTS.projection.initial_effort),
        rr_pp=default_resource_rate(resource_params, grid.w_full),
        cc_pp=cc_pp,
        initial_n=default_initial_n(sp, w, kappa, lambda_),
        initial_n_pp=cc_pp.copy(),
        resource_dynamics=RESOURCE_DYNAMICS.name_of(resource_dynamics),
        resource_params=resource_params,
        given_species_params=given,
        linecolour=linecolour,
        linetype=linetype,
    )
    params = validate_params(params)
    logger.info(
        f"Created size-spectrum model with {no_sp} species, "
        f"{len(gear_names)} gears and {grid.no_w} size bins"
    )
    return params


def _interaction_array(species: List[str], interaction: pd.DataFrame) -> np.ndarray:
    rows = [str(s) for s in interaction.index]
    cols = [str(s) for s in interaction.columns]
    errors = []
    if sorted(rows) != sorted(species):
        errors.append(f"interaction rows are labelled {rows}, expected {species}")
    if sorted(cols) != sorted(species):
        errors.append(f"interaction columns are labelled {cols}, expected {species}")
    if errors:
        raise ParamsInconsistent(errors)
    frame = interaction.set_axis(rows, axis=0).set_axis(cols, axis=1)
    return frame.loc[species, species].to_numpy(dtype=float)


# ============================================================================
# Setters
# ============================================================================


def set_interaction(
    params: SpectrumParams,
    interaction: Optional[ArrayLike] = None,
    interaction_resource=None,
) -> SpectrumParams:
    """Set the predator x prey interaction matrix and resource interaction.

    Parameters
    ----------
    params : SpectrumParams
    interaction : array-like or pd.DataFrame, optional
        Square matrix; a labelled frame is reordered to species order
    interaction_resource : float or array-like, optional
        Scaling of each species' feeding on the resource
    """
    changes: Dict[str, Any] = {}
    if interaction is not None:
        if isinstance(interaction, pd.DataFrame):
            changes["interaction"] = _interaction_array(params.species_names, interaction)
        else:
            changes["interaction"] = np.asarray(interaction, dtype=float)
    if interaction_resource is not None:
        sp = params.species_params.copy()
        sp["interaction_resource"] = np.broadcast_to(
            np.asarray(interaction_resource, dtype=float), (params.no_sp,)
        )
        changes["species_params"] = sp
    return _commit(params, **changes)


def set_search_volume(params: SpectrumParams, search_vol: Optional[ArrayLike] = None) -> SpectrumParams:
    """Set the search volume; default gamma * w^q."""
    if search_vol is None:
        value = default_search_vol(params.species_params, params.w)
    else:
        value = _species_array(params, "search_vol", search_vol)
    return _commit(params, search_vol=value)


def set_max_intake_rate(params: SpectrumParams, intake_max: Optional[ArrayLike] = None) -> SpectrumParams:
    """Set the maximum intake rate; default h * w^n."""
    if intake_max is None:
        value = default_intake_max(params.species_params, params.w)
    else:
        value = _species_array(params, "intake_max", intake_max)
    return _commit(params, intake_max=value)


def set_metabolic_rate(params: SpectrumParams, metab: Optional[ArrayLike] = None) -> SpectrumParams:
    """Set the metabolic rate; default ks * w^p + k * w."""
    if metab is None:
        value = default_metab(params.species_params, params.w)
    else:
        value = _species_array(params, "metab", metab)
    return _commit(params, metab=value)


def set_ext_mort(params: SpectrumParams, ext_mort: Optional[ArrayLike] = None) -> SpectrumParams:
    """Set the external mortality; default z0 at every size."""
    if ext_mort is None:
        value = default_ext_mort(params.species_params, params.w)
    else:
        value = _species_array(params, "mu_b", ext_mort)
    return _commit(params, mu_b=value)


def set_ext_encounter(params: SpectrumParams, ext_encounter: Optional[ArrayLike] = None) -> SpectrumParams:
    """Set the encounter rate from unmodelled food; default 0."""
    if ext_encounter is None:
        value = np.zeros((params.no_sp, params.no_w))
    else:
        value = _species_array(params, "ext_encounter", ext_encounter)
    return _commit(params, ext_encounter=value)


def set_reproduction(
    params: SpectrumParams,
    maturity: Optional[ArrayLike] = None,
    repro_prop: Optional[ArrayLike] = None,
) -> SpectrumParams:
    """Set maturity and the investment in reproduction.

    ``psi = maturity * repro_prop``, set to 1 from ``w_max`` upwards.

    Parameters
    ----------
    params : SpectrumParams
    maturity : array-like, optional
        Default is the logistic ogive through ``w_mat25`` and ``w_mat``
    repro_prop : array-like, optional
        Default is ``(w / w_max)^(m - n)``
    """
    sp, w = params.species_params, params.w
    mat = default_maturity(sp, w) if maturity is None else _species_array(params, "maturity", maturity)
    prop = default_repro_prop(sp, w) if repro_prop is None else _species_array(params, "repro_prop", repro_prop)
    errors = [
        f"{name} has shape {value.shape}, expected {(params.no_sp, params.no_w)}"
        for name, value in (("maturity", mat), ("repro_prop", prop))
        if value.shape != (params.no_sp, params.no_w)
    ]
    if errors:
        raise ParamsInconsistent(errors)
    return _commit(params, maturity=mat, psi=compute_psi(sp, w, mat, prop))


def set_fishing(
    params: SpectrumParams,
    gear_params: Optional[pd.DataFrame] = None,
    selectivity: Optional[np.ndarray] = None,
    catchability: Optional[np.ndarray] = None,
    initial_effort=None,
) -> SpectrumParams:
    """Set gears, selectivity, catchability and initial effort.

    A new gear table recomputes selectivity and catchability from its
    selectivity functions. Explicit arrays override the computed ones.
    Gears that persist keep their initial effort; new gears start at the
    default initial effort.
    """
    changes: Dict[str, Any] = {}
    gear_names = params.gear_names
    effort = np.asarray(params.initial_effort, dtype=float)
    if gear_params is not None:
        gp = validate_gear_params(gear_params, params.species_params)
        sel, catch, gear_names = compute_selectivity(gp, params.species_params, params.w)
        old = dict(zip(params.gear_names, effort))
        effort = np.array(
            [old.get(g, DEFAULTS.projection.initial_effort) for g in gear_names]
        )
        changes.update(gear_params=gp, selectivity=sel, catchability=catch, gear_names=gear_names)
    if selectivity is not None:
        changes["selectivity"] = np.asarray(selectivity, dtype=float)
    if catchability is not None:
        changes["catchability"] = np.asarray(catchability, dtype=float)
    if initial_effort is not None:
        effort = validate_effort_vector(initial_effort, gear_names, effort)
    changes["initial_effort"] = effort
    return _commit(params, **changes)


def set_resource(
    params: SpectrumParams,
    resource_rate=None,
    resource_capacity=None,
    resource_dynamics: Optional[Union[str, Callable]] = None,
    **resource_params,
) -> SpectrumParams:
    """Set the resource regeneration rate, carrying capacity and dynamics.

    Keyword arguments such as ``kappa`` or ``r_pp`` update the resource
    parameters; rate and capacity not given explicitly are recomputed
    from them.
    """
    rp = dict(params.resource_params)
    if "lambda_" in resource_params:
        resource_params["lambda"] = resource_params.pop("lambda_")
    rp.update(resource_params)
    changes: Dict[str, Any] = {"resource_params": rp}
    if resource_rate is not None:
        changes["rr_pp"] = _full_vector(params, "resource_rate", resource_rate)
    elif resource_params:
        changes["rr_pp"] = default_resource_rate(rp, params.w_full)
    if resource_capacity is not None:
        changes["cc_pp"] = _full_vector(params, "resource_capacity", resource_capacity)
    elif resource_params:
        changes["cc_pp"] = default_resource_capacity(rp, params.w_full)
    if resource_dynamics is not None:
        changes["resource_dynamics"] = RESOURCE_DYNAMICS.name_of(resource_dynamics)
    return _commit(params, **changes)


def set_pred_kernel(params: SpectrumParams, pred_kernel: Optional[np.ndarray] = None) -> SpectrumParams:
    """Use an explicit predation kernel, or revert to the species-table kernel.

    Parameters
    ----------
    params : SpectrumParams
    pred_kernel : np.ndarray, optional
        Kernel [no_sp, no_w, no_w_full]; None switches back to the kernel
        defined by the species table, evaluated spectrally
    """
    value = None if pred_kernel is None else np.asarray(pred_kernel, dtype=float)
    return _commit(params, pred_kernel=value)


def get_pred_kernel(params: SpectrumParams) -> np.ndarray:
    """The predation kernel as an explicit table [no_sp, no_w, no_w_full]."""
    if params.pred_kernel is not None:
        return params.pred_kernel
    return direct_pred_kernel(params.species_params, params.grid)


def set_initial_values(
    params: SpectrumParams,
    initial_n: Optional[ArrayLike] = None,
    initial_n_pp=None,
    initial_n_other: Optional[Dict[str, Any]] = None,
    initial_effort=None,
) -> SpectrumParams:
    """Set the state a projection starts from."""
    changes: Dict[str, Any] = {}
    if initial_n is not None:
        changes["initial_n"] = _species_array(params, "initial_n", initial_n)
    if initial_n_pp is not None:
        changes["initial_n_pp"] = _full_vector(params, "initial_n_pp", initial_n_pp)
    if initial_n_other is not None:
        other = dict(params.initial_n_other)
        other.update(initial_n_other)
        changes["initial_n_other"] = other
    if initial_effort is not None:
        changes["initial_effort"] = validate_effort_vector(
            initial_effort, params.gear_names, params.initial_effort
        )
    return _commit(params, **changes)


def set_rate_function(
    params: SpectrumParams, stage: str, fun: Union[str, Callable]
) -> SpectrumParams:
    """Replace the implementation of one rate stage.

    Only the existence of the stage and of the function is checked; a
    replacement with the wrong signature fails when it is first called.

    Parameters
    ----------
    params : SpectrumParams
    stage : str
        One of the rate stages, e.g. ``"FeedingLevel"``
    fun : str or callable
        Registered name, or a function that gets registered under its
        ``__name__``
    """
    if stage not in RATE_STAGES:
        raise ValueError(f"Unknown rate stage '{stage}'; stages are {list(RATE_STAGES)}")
    funcs = dict(params.rates_funcs)
    funcs[stage] = RATE_FUNCTIONS.name_of(fun)
    return _commit(params, rates_funcs=funcs)


def set_resource_dynamics(params: SpectrumParams, fun: Union[str, Callable]) -> SpectrumParams:
    """Replace the resource dynamics."""
    return _commit(params, resource_dynamics=RESOURCE_DYNAMICS.name_of(fun))


def set_component(
    params: SpectrumParams,
    component: str,
    initial_value: Any,
    dynamics_fun: Union[str, Callable],
    encounter_fun: Optional[Union[str, Callable]] = None,
    mort_fun: Optional[Union[str, Callable]] = None,
    component_params: Optional[Dict[str, Any]] = None,
) -> SpectrumParams:
    """Add or replace an additional ecosystem component.

    Parameters
    ----------
    params : SpectrumParams
    component : str
        Name of the component
    initial_value : any
        Initial state of the component
    dynamics_fun : str or callable
        Returns the component's state at t + dt. Called with keyword
        arguments ``params``, ``n``, ``n_pp``, ``n_other``, ``rates``,
        ``t``, ``dt``, ``component`` and ``component_params``.
    encounter_fun : str or callable, optional
        Contribution [no_sp, no_w] to the encounter rate
    mort_fun : str or callable, optional
        Contribution [no_sp, no_w] to the mortality rate
    component_params : dict, optional
        Passed to the component's functions
    """
    dynamics = dict(params.other_dynamics)
    encounter = dict(params.other_encounter)
    mort = dict(params.other_mort)
    other_params = dict(params.other_params)
    initial = dict(params.initial_n_other)

    dynamics[component] = COMPONENT_FUNCTIONS.name_of(dynamics_fun)
    encounter.pop(component, None)
    mort.pop(component, None)
    if encounter_fun is not None:
        encounter[component] = COMPONENT_FUNCTIONS.name_of(encounter_fun)
    if mort_fun is not None:
        mort[component] = COMPONENT_FUNCTIONS.name_of(mort_fun)
    other_params[component] = component_params or {}
    initial[component] = initial_value
    return _commit(
        params,
        other_dynamics=dynamics,
        other_encounter=encounter,
        other_mort=mort,
        other_params=other_params,
        initial_n_other=initial,
    )


def remove_component(params: SpectrumParams, component: str) -> SpectrumParams:
    """Remove an additional ecosystem component."""
    if component not in params.initial_n_other:
        raise KeyError(f"No component '{component}' in the model")
    tables = {}
    for name in ("other_dynamics", "other_encounter", "other_mort", "other_params", "initial_n_other"):
        table = dict(getattr(params, name))
        table.pop(component, None)
        tables[name] = table
    return _commit(params, **tables)


def set_metadata(params: SpectrumParams, **metadata) -> SpectrumParams:
    """Add descriptive entries such as ``title`` or ``description``."""
    md = dict(params.metadata)
    md.update(metadata)
    return params.replace(metadata=md)
