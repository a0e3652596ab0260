"""
Rate pipeline for size-spectrum models.

Turns a state snapshot (consumer densities ``n``, resource densities
``n_pp``, other components ``n_other``), a time and a fishing effort into
the rates that drive the dynamics. Each stage is looked up by name in
``params.rates_funcs`` and the rate-function registry at the moment it
runs, so any stage can be replaced independently. Stage functions are
called with keyword arguments and must accept and ignore extra ones.

Stages and the rates they produce:

=================  ===============  ======================
Stage              Rate             Shape
=================  ===============  ======================
Encounter          encounter        [no_sp, no_w]
FeedingLevel       feeding_level    [no_sp, no_w]
EReproAndGrowth    e                [no_sp, no_w]
ERepro             e_repro          [no_sp, no_w]
EGrowth            e_growth         [no_sp, no_w]
PredRate           pred_rate        [no_sp, no_w_full]
PredMort           pred_mort        [no_sp, no_w]
FMort              f_mort           [no_sp, no_w]
Mort               mort             [no_sp, no_w]
RDI                rdi              [no_sp]
RDD                rdd              [no_sp]
ResourceMort       resource_mort    [no_w_full]
=================  ===============  ======================

No stage modifies its inputs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from pysizespec.core.constants import NEEDS, RATE_NAMES, SEX_RATIO, STAGE_OF, TIME_TOLERANCE
from pysizespec.core.errors import ShapeMismatch
from pysizespec.core.fishing import validate_effort_table, validate_effort_vector
from pysizespec.core.registry import COMPONENT_FUNCTIONS, RATE_FUNCTIONS

if TYPE_CHECKING:
    from pysizespec.core.params import SpectrumParams


class RateBundle(dict):
    """Rates from one evaluation of the pipeline.

    A dict in pipeline order whose entries can also be read as
    attributes, e.g. ``rates.feeding_level``.
    """

    def __getattr__(self, name: str) -> np.ndarray:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __dir__(self) -> List[str]:
        return list(super().__dir__()) + list(self.keys())


def expected_shape(params: "SpectrumParams", name: str) -> Tuple[int, ...]:
    """Shape of a rate for the given model."""
    if name == "pred_rate":
        return (params.no_sp, params.no_w_full)
    if name in ("rdi", "rdd"):
        return (params.no_sp,)
    if name == "resource_mort":
        return (params.no_w_full,)
    return (params.no_sp, params.no_w)


def check_shape(stage: str, name: str, value, expected: Tuple[int, ...]) -> np.ndarray:
    """Raise ShapeMismatch unless ``value`` has the expected shape."""
    got = np.shape(value)
    if tuple(got) != tuple(expected):
        raise ShapeMismatch(stage, name, expected, got)
    return np.asarray(value, dtype=float)


# ============================================================================
# Standard stage implementations
# ============================================================================


@RATE_FUNCTIONS.register("mizerEncounter")
def mizer_encounter(params, n, n_pp, n_other, t=0, **kwargs) -> np.ndarray:
    """Rate at which predators encounter food.

    encounter = search_vol * A + ext_encounter + sum of component
    encounters, where the available energy A integrates the kernel over
    the resource (scaled by ``interaction_resource``) and all consumer
    species (scaled by ``interaction``).
    """
    idx_sp = params.grid.idx_sp
    prey = np.outer(params.interaction_resource, n_pp)
    prey[:, idx_sp] += params.interaction @ n
    prey *= (params.w_full * params.dw_full)[np.newaxis, :]
    avail_energy = params.kernel.available_energy(prey)

    encounter = params.search_vol * avail_energy + params.ext_encounter
    for component, fun_name in params.other_encounter.items():
        fun = COMPONENT_FUNCTIONS.resolve(fun_name)
        contribution = fun(
            params=params, n=n, n_pp=n_pp, n_other=n_other, t=t,
            component=component,
            component_params=params.other_params.get(component, {}),
        )
        encounter = encounter + check_shape(
            "Encounter", f"other_encounter[{component}]", contribution, encounter.shape
        )
    return encounter


@RATE_FUNCTIONS.register("mizerFeedingLevel")
def mizer_feeding_level(params, encounter, **kwargs) -> np.ndarray:
    """Feeding level encounter / (encounter + intake_max).

    Infinite maximum intake gives feeding level 0.
    """
    denom = encounter + params.intake_max
    return np.divide(encounter, denom, out=np.zeros_like(encounter), where=denom > 0)


@RATE_FUNCTIONS.register("mizerEReproAndGrowth")
def mizer_e_repro_and_growth(params, encounter, feeding_level, **kwargs) -> np.ndarray:
    """Energy available for growth and reproduction.

    alpha * encounter * (1 - f) - metab, which equals
    alpha * f * intake_max - metab and stays finite for infinite
    maximum intake. Negative where metabolism is not covered.
    """
    alpha = params.species_params["alpha"].to_numpy(dtype=float)[:, np.newaxis]
    return alpha * encounter * (1 - feeding_level) - params.metab


@RATE_FUNCTIONS.register("mizerERepro")
def mizer_e_repro(params, e, **kwargs) -> np.ndarray:
    """Energy invested in reproduction psi * max(e, 0)."""
    return params.psi * np.maximum(e, 0.0)


@RATE_FUNCTIONS.register("mizerEGrowth")
def mizer_e_growth(params, e_repro, e, **kwargs) -> np.ndarray:
    """Energy invested in growth max(e, 0) - e_repro."""
    return np.maximum(e, 0.0) - e_repro


@RATE_FUNCTIONS.register("mizerPredRate")
def mizer_pred_rate(params, n, feeding_level, **kwargs) -> np.ndarray:
    """Predation rate each predator species exerts on prey of each size."""
    hungry = (1 - feeding_level) * params.search_vol * n * params.dw[np.newaxis, :]
    return params.kernel.pred_rate(hungry)


@RATE_FUNCTIONS.register("mizerPredMort")
def mizer_pred_mort(params, pred_rate, **kwargs) -> np.ndarray:
    """Predation mortality interaction^T @ pred_rate on the consumer sizes."""
    return params.interaction.T @ pred_rate[:, params.grid.idx_sp]


@RATE_FUNCTIONS.register("mizerFMort")
def mizer_fmort(params, effort, **kwargs) -> np.ndarray:
    """Fishing mortality summed over gears."""
    return get_fmort_gear_array(params, effort).sum(axis=0)


@RATE_FUNCTIONS.register("mizerMort")
def mizer_mort(params, n, n_pp, n_other, t=0, f_mort=None, pred_mort=None, **kwargs) -> np.ndarray:
    """Total mortality pred_mort + mu_b + f_mort + component mortality."""
    mort = pred_mort + params.mu_b + f_mort
    for component, fun_name in params.other_mort.items():
        fun = COMPONENT_FUNCTIONS.resolve(fun_name)
        contribution = fun(
            params=params, n=n, n_pp=n_pp, n_other=n_other, t=t,
            component=component,
            component_params=params.other_params.get(component, {}),
        )
        mort = mort + check_shape(
            "Mort", f"other_mort[{component}]", contribution, mort.shape
        )
    return mort


@RATE_FUNCTIONS.register("mizerResourceMort")
def mizer_resource_mort(params, pred_rate, **kwargs) -> np.ndarray:
    """Mortality of the resource, interaction_resource @ pred_rate."""
    return params.interaction_resource @ pred_rate


@RATE_FUNCTIONS.register("mizerRDI")
def mizer_rdi(params, n, e_repro, **kwargs) -> np.ndarray:
    """Density-independent rate of egg production.

    0.5 * sum(e_repro * n * dw) * erepro / w_egg, the 0.5 accounting for
    eggs coming only from females.
    """
    e_repro_pop = (e_repro * n) @ params.dw
    erepro = params.species_params["erepro"].to_numpy(dtype=float)
    return SEX_RATIO * e_repro_pop * erepro / params.w[params.w_min_idx]


# ---------------------------------------------------------------------------
# Density dependence of reproduction
# ---------------------------------------------------------------------------


def _species_column(species_params: pd.DataFrame, column: str, rdd: str) -> np.ndarray:
    if column not in species_params.columns:
        raise ValueError(f"{rdd} needs the species parameter '{column}'")
    values = species_params[column].to_numpy(dtype=float)
    if np.any(np.isnan(values)):
        raise ValueError(f"{rdd}: species parameter '{column}' has missing values")
    return values


@RATE_FUNCTIONS.register("BevertonHoltRDD")
def beverton_holt_rdd(rdi, species_params, **kwargs) -> np.ndarray:
    """Beverton-Holt saturation rdi / (1 + rdi / R_max)."""
    r_max = _species_column(species_params, "R_max", "BevertonHoltRDD")
    return rdi / (1 + rdi / r_max)


@RATE_FUNCTIONS.register("noRDD")
def no_rdd(rdi, **kwargs) -> np.ndarray:
    """No density dependence: all eggs recruit."""
    return np.array(rdi, dtype=float)


@RATE_FUNCTIONS.register("constantRDD")
def constant_rdd(rdi, species_params, **kwargs) -> np.ndarray:
    """Recruitment fixed at the ``constant_reproduction`` species parameter."""
    return _species_column(species_params, "constant_reproduction", "constantRDD") + 0 * rdi


@RATE_FUNCTIONS.register("RickerRDD")
def ricker_rdd(rdi, species_params, **kwargs) -> np.ndarray:
    """Ricker stock-recruitment rdi * exp(-ricker_b * rdi)."""
    b = _species_column(species_params, "ricker_b", "RickerRDD")
    return rdi * np.exp(-b * rdi)


@RATE_FUNCTIONS.register("SheperdRDD")
def sheperd_rdd(rdi, species_params, **kwargs) -> np.ndarray:
    """Shepherd stock-recruitment rdi / (1 + (sheperd_b * rdi)^sheperd_c)."""
    b = _species_column(species_params, "sheperd_b", "SheperdRDD")
    c = _species_column(species_params, "sheperd_c", "SheperdRDD")
    return rdi / (1 + (b * rdi) ** c)


# ============================================================================
# Orchestration
# ============================================================================


def _call_stage(params, name: str, computed: Dict[str, np.ndarray], base: Dict[str, Any]) -> np.ndarray:
    stage = STAGE_OF[name]
    fun = RATE_FUNCTIONS.resolve(params.rates_funcs[stage])
    kwargs = dict(base)
    kwargs.update({k: computed[k] for k in NEEDS[name]})
    if stage == "RDD":
        kwargs["species_params"] = params.species_params
    return check_shape(stage, name, fun(**kwargs), expected_shape(params, name))


def compute_rates(
    params: "SpectrumParams",
    names: Iterable[str],
    n: np.ndarray,
    n_pp: np.ndarray,
    n_other: Dict[str, Any],
    t: float,
    effort: np.ndarray,
) -> Dict[str, np.ndarray]:
    """Evaluate the requested rates and the rates they depend on.

    Parameters
    ----------
    params : SpectrumParams
    names : iterable of str
        Rates to compute, from ``RATE_NAMES``
    n, n_pp, n_other : state
    t : float
        Time
    effort : np.ndarray
        Effort per gear in canonical order

    Returns
    -------
    dict
        Every rate computed, in evaluation order
    """
    check_shape("Rates", "n", n, (params.no_sp, params.no_w))
    check_shape("Rates", "n_pp", n_pp, (params.no_w_full,))
    check_shape("Rates", "effort", effort, (params.no_gear,))
    base = dict(params=params, n=n, n_pp=n_pp, n_other=n_other, t=t, effort=effort)
    computed: Dict[str, np.ndarray] = {}

    def visit(name: str) -> None:
        if name in computed:
            return
        for dep in NEEDS[name]:
            visit(dep)
        computed[name] = _call_stage(params, name, computed, base)

    for name in names:
        if name not in STAGE_OF:
            raise KeyError(f"Unknown rate '{name}'")
        visit(name)
    return computed


@RATE_FUNCTIONS.register("mizerRates")
def mizer_rates(params, n, n_pp, n_other, t=0, effort=None, **kwargs) -> Dict[str, np.ndarray]:
    """All rates, with every stage looked up through ``params.rates_funcs``."""
    return compute_rates(params, RATE_NAMES, n, n_pp, n_other, t, effort)


# ============================================================================
# Public evaluation
# ============================================================================


def _resolve_state(params, n, n_pp, n_other, effort):
    n = params.initial_n if n is None else np.asarray(n, dtype=float)
    n_pp = params.initial_n_pp if n_pp is None else np.asarray(n_pp, dtype=float)
    n_other = dict(params.initial_n_other) if n_other is None else n_other
    if effort is None:
        effort = np.asarray(params.initial_effort, dtype=float)
    else:
        effort = validate_effort_vector(effort, params.gear_names, params.initial_effort)
    return n, n_pp, n_other, effort


def get_rates(
    params: "SpectrumParams",
    n: Optional[np.ndarray] = None,
    n_pp: Optional[np.ndarray] = None,
    n_other: Optional[Dict[str, Any]] = None,
    t: float = 0,
    effort=None,
) -> RateBundle:
    """Evaluate the whole rate pipeline once.

    Parameters
    ----------
    params : SpectrumParams
    n : np.ndarray, optional
        Consumer densities [no_sp, no_w]; default ``params.initial_n``
    n_pp : np.ndarray, optional
        Resource densities [no_w_full]; default ``params.initial_n_pp``
    n_other : dict, optional
        States of other components; default ``params.initial_n_other``
    t : float
        Time
    effort : scalar, vector or named vector, optional
        Fishing effort; default ``params.initial_effort``

    Returns
    -------
    RateBundle
        Rates keyed by ``encounter``, ``feeding_level``, ``e``,
        ``e_repro``, ``e_growth``, ``pred_rate``, ``pred_mort``,
        ``f_mort``, ``mort``, ``rdi``, ``rdd`` and ``resource_mort``

    Examples
    --------
    >>> rates = get_rates(params)
    >>> rates.feeding_level.shape == params.initial_n.shape
    True
    """
    n, n_pp, n_other, effort = _resolve_state(params, n, n_pp, n_other, effort)
    return evaluate_rate_bundle(params, n, n_pp, n_other, t, effort)


def evaluate_rate_bundle(params, n, n_pp, n_other, t, effort) -> RateBundle:
    fun = RATE_FUNCTIONS.resolve(params.rates_funcs["Rates"])
    result = fun(params=params, n=n, n_pp=n_pp, n_other=n_other, t=t, effort=effort)
    bundle = RateBundle()
    for name in RATE_NAMES:
        if name not in result:
            raise ShapeMismatch("Rates", name, expected_shape(params, name), ())
        bundle[name] = check_shape("Rates", name, result[name], expected_shape(params, name))
    return bundle


def _is_sim(obj) -> bool:
    return hasattr(obj, "times") and hasattr(obj, "params")


def time_indices(sim, time_range=None) -> np.ndarray:
    """Indices of the saved times of a simulation within ``time_range``.

    Parameters
    ----------
    sim : SpectrumSim
    time_range : float or sequence of float, optional
        Saved times from the smallest to the largest value given are
        selected; a single value selects that time. All times by default.

    Raises
    ------
    ValueError
        If no saved time falls in the range.
    """
    times = np.asarray(sim.times, dtype=float)
    if time_range is None:
        return np.arange(len(times))
    lo = float(np.min(time_range))
    hi = float(np.max(time_range))
    keep = np.flatnonzero((times >= lo - TIME_TOLERANCE) & (times <= hi + TIME_TOLERANCE))
    if keep.size == 0:
        raise ValueError(
            f"No saved times in time_range [{lo:g}, {hi:g}]; "
            f"the simulation runs from {times[0]:g} to {times[-1]:g}"
        )
    return keep


def _get_rate(obj, name: str, n=None, n_pp=None, n_other=None, t: float = 0, effort=None,
              time_range=None):
    if _is_sim(obj):
        params = obj.params
        effort_values = obj.effort.to_numpy(dtype=float)
        out = [
            compute_rates(
                params, [name], obj.n[k], obj.n_pp[k], obj.n_other[k],
                float(obj.times[k]), effort_values[k],
            )[name]
            for k in time_indices(obj, time_range)
        ]
        return np.stack(out)
    n, n_pp, n_other, effort = _resolve_state(obj, n, n_pp, n_other, effort)
    return compute_rates(obj, [name], n, n_pp, n_other, t, effort)[name]


def get_encounter(obj, n=None, n_pp=None, n_other=None, t=0, time_range=None):
    """Encounter rate [no_sp, no_w].

    For a simulation the rate is evaluated at each saved time in
    ``time_range`` (all by default) and has a leading time axis. The
    other getters follow the same convention.
    """
    return _get_rate(obj, "encounter", n, n_pp, n_other, t, time_range=time_range)


def get_feeding_level(obj, n=None, n_pp=None, n_other=None, t=0, time_range=None):
    """Feeding level [no_sp, no_w]."""
    return _get_rate(obj, "feeding_level", n, n_pp, n_other, t, time_range=time_range)


def get_e_repro_and_growth(obj, n=None, n_pp=None, n_other=None, t=0, time_range=None):
    """Energy available for growth and reproduction [no_sp, no_w]."""
    return _get_rate(obj, "e", n, n_pp, n_other, t, time_range=time_range)


def get_e_repro(obj, n=None, n_pp=None, n_other=None, t=0, time_range=None):
    """Energy invested in reproduction [no_sp, no_w]."""
    return _get_rate(obj, "e_repro", n, n_pp, n_other, t, time_range=time_range)


def get_e_growth(obj, n=None, n_pp=None, n_other=None, t=0, time_range=None):
    """Energy invested in growth, i.e. the growth rate [no_sp, no_w]."""
    return _get_rate(obj, "e_growth", n, n_pp, n_other, t, time_range=time_range)


def get_pred_rate(obj, n=None, n_pp=None, n_other=None, t=0, time_range=None):
    """Predation rate [no_sp, no_w_full]."""
    return _get_rate(obj, "pred_rate", n, n_pp, n_other, t, time_range=time_range)


def get_pred_mort(obj, n=None, n_pp=None, n_other=None, t=0, time_range=None):
    """Predation mortality [no_sp, no_w]."""
    return _get_rate(obj, "pred_mort", n, n_pp, n_other, t, time_range=time_range)


def get_resource_mort(obj, n=None, n_pp=None, n_other=None, t=0, time_range=None):
    """Resource mortality [no_w_full]."""
    return _get_rate(obj, "resource_mort", n, n_pp, n_other, t, time_range=time_range)


def get_mort(obj, n=None, n_pp=None, n_other=None, t=0, effort=None, time_range=None):
    """Total mortality [no_sp, no_w]."""
    return _get_rate(obj, "mort", n, n_pp, n_other, t, effort, time_range)


def get_rdi(obj, n=None, n_pp=None, n_other=None, t=0, time_range=None):
    """Density-independent egg production [no_sp]."""
    return _get_rate(obj, "rdi", n, n_pp, n_other, t, time_range=time_range)


def get_rdd(obj, n=None, n_pp=None, n_other=None, t=0, time_range=None):
    """Recruitment [no_sp]."""
    return _get_rate(obj, "rdd", n, n_pp, n_other, t, time_range=time_range)


# ---------------------------------------------------------------------------
# Fishing mortality
# ---------------------------------------------------------------------------


def get_fmort_gear_array(params, effort: np.ndarray) -> np.ndarray:
    """Fishing mortality by gear [no_gear, no_sp, no_w] for an effort vector."""
    effort = np.asarray(effort, dtype=float)
    return (
        params.selectivity
        * params.catchability[:, :, np.newaxis]
        * effort[:, np.newaxis, np.newaxis]
    )


def _effort_rows(params, effort):
    """Split effort into rows; returns (rows, is_table)."""
    if effort is None:
        return [np.asarray(params.initial_effort, dtype=float)], False
    if isinstance(effort, pd.DataFrame) or np.ndim(effort) == 2:
        _, values = validate_effort_table(effort, params.gear_names, require_time=False)
        return list(values), True
    return [validate_effort_vector(effort, params.gear_names, params.initial_effort)], False


def get_fmort_gear(obj, effort=None, t: float = 0, time_range=None):
    """Fishing mortality by gear.

    Parameters
    ----------
    obj : SpectrumParams or SpectrumSim
    effort : scalar, vector, named vector or time x gear table, optional
        Ignored for a simulation, whose saved effort is used
    time_range : float or sequence of float, optional
        Saved times of a simulation to use; all by default

    Returns
    -------
    np.ndarray
        [no_gear, no_sp, no_w], with a leading time axis for an effort
        table or a simulation
    """
    if _is_sim(obj):
        return np.stack([
            get_fmort_gear_array(obj.params, row)
            for row in obj.effort.to_numpy(dtype=float)[time_indices(obj, time_range)]
        ])
    rows, is_table = _effort_rows(obj, effort)
    out = [get_fmort_gear_array(obj, row) for row in rows]
    return np.stack(out) if is_table else out[0]


def get_fmort(obj, effort=None, t: float = 0, n=None, n_pp=None, n_other=None, time_range=None):
    """Total fishing mortality [no_sp, no_w] through the FMort stage.

    An effort table or a simulation gives a leading time axis.
    """
    if _is_sim(obj):
        return _get_rate(obj, "f_mort", time_range=time_range)
    rows, is_table = _effort_rows(obj, effort)
    out = [_get_rate(obj, "f_mort", n, n_pp, n_other, t, row) for row in rows]
    return np.stack(out) if is_table else out[0]
