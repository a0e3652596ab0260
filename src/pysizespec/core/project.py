"""
Projection of size-spectrum models through time.

At each time step the rate pipeline is evaluated on the current state;
other ecosystem components, then the resource spectrum, then the consumer
spectra are advanced from that state and those rates. The consumer
densities follow the McKendrick-von Foerster equation

    dN/dt + d(g N)/dw = -mu N

discretised with a first-order upwind finite-volume scheme: the flux out
of bin j is g[j] N[j], the flux into it g[j-1] N[j-1], and the flux into
a species' egg bin is its recruitment rdd. Bins below the egg bin are not
updated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd

from pysizespec.config import DEFAULTS
from pysizespec.core.constants import SAVE_CADENCE_TOLERANCE, TIME_TOLERANCE
from pysizespec.core.errors import BadSaveCadence, ProjectionError
from pysizespec.core.fishing import (
    effort_at,
    validate_effort_table,
    validate_effort_vector,
)
from pysizespec.core.params import SpectrumParams
from pysizespec.core.rates import check_shape, evaluate_rate_bundle
from pysizespec.core.registry import COMPONENT_FUNCTIONS, RESOURCE_DYNAMICS
from pysizespec.logger import get_logger

logger = get_logger(__name__)

SCHEMES = ("semi_implicit", "explicit")


@dataclass(eq=False)
class SpectrumSim:
    """Output of a projection.

    Attributes
    ----------
    params : SpectrumParams
        The model that was projected
    times : np.ndarray
        Saved times [no_t]
    n : np.ndarray
        Consumer densities [no_t, no_sp, no_w]
    n_pp : np.ndarray
        Resource densities [no_t, no_w_full]
    n_other : list of dict
        States of the other components at each saved time
    effort : pd.DataFrame
        Effort in force at each saved time (time x gear)
    """

    params: SpectrumParams
    times: np.ndarray
    n: np.ndarray
    n_pp: np.ndarray
    n_other: List[Dict[str, Any]]
    effort: pd.DataFrame

    @property
    def no_t(self) -> int:
        return len(self.times)

    def time_index(self, time: float) -> int:
        """Index of the saved time closest to ``time``."""
        return int(np.argmin(np.abs(self.times - time)))

    def n_frame(self, time: Optional[float] = None) -> pd.DataFrame:
        """Consumer densities at a saved time as a species x w frame.

        Parameters
        ----------
        time : float, optional
            Defaults to the final time
        """
        k = self.no_t - 1 if time is None else self.time_index(time)
        return self.params.species_frame(self.n[k])

    def n_pp_series(self, time: Optional[float] = None) -> pd.Series:
        """Resource densities at a saved time, indexed by w_full."""
        k = self.no_t - 1 if time is None else self.time_index(time)
        return pd.Series(self.n_pp[k], index=pd.Index(self.params.w_full, name="w"))

    def final_n(self) -> np.ndarray:
        return self.n[-1]

    def final_n_pp(self) -> np.ndarray:
        return self.n_pp[-1]

    def final_n_other(self) -> Dict[str, Any]:
        return self.n_other[-1]

    def __repr__(self) -> str:
        return (
            f"SpectrumSim(species={self.params.species_names}, "
            f"times=[{self.times[0]:g}, {self.times[-1]:g}], no_t={self.no_t})"
        )


# ============================================================================
# Time stepping of the consumer spectra
# ============================================================================


def _egg_mask(params: SpectrumParams) -> np.ndarray:
    """True for bins at or above each species' egg bin [no_sp, no_w]."""
    return np.arange(params.no_w)[np.newaxis, :] >= params.w_min_idx[:, np.newaxis]


def step_semi_implicit(params: SpectrumParams, n: np.ndarray, rates, dt: float) -> np.ndarray:
    """Upwind step with transport and mortality taken at t + dt.

    Solves, for each species and from the egg bin upwards,

        b[j] N'[j] + a[j] N'[j-1] = N[j]

    with a[j] = -g[j-1] dt / dw[j] and b[j] = 1 + g[j] dt / dw[j] + mu[j] dt.
    The egg bin receives rdd dt / dw in place of the upstream flux.
    Non-negative growth keeps densities non-negative for any dt.
    """
    dw = params.dw[np.newaxis, :]
    g = rates["e_growth"]
    a = np.zeros_like(n)
    a[:, 1:] = -g[:, :-1] * dt / dw[:, 1:]
    b = 1 + g * dt / dw + rates["mort"] * dt

    n_new = n.copy()
    sp = np.arange(params.no_sp)
    idx = params.w_min_idx
    n_new[sp, idx] = (n[sp, idx] + rates["rdd"] * dt / params.dw[idx]) / b[sp, idx]
    for j in range(int(idx.min()) + 1, params.no_w):
        above = idx < j
        n_new[above, j] = (n[above, j] - a[above, j] * n_new[above, j - 1]) / b[above, j]
    return n_new


def step_explicit(params: SpectrumParams, n: np.ndarray, rates, dt: float) -> np.ndarray:
    """Forward Euler upwind step.

    N'[j] = N[j] - dt (g[j] N[j] - g[j-1] N[j-1]) / dw[j] - dt mu[j] N[j]

    Stable only while dt g / dw + dt mu < 1; beyond that densities turn
    negative and ``project`` raises ProjectionError.
    """
    flux = rates["e_growth"] * n
    inflow = np.zeros_like(n)
    inflow[:, 1:] = flux[:, :-1]
    sp = np.arange(params.no_sp)
    inflow[sp, params.w_min_idx] = rates["rdd"]
    n_new = n - dt * (flux - inflow) / params.dw[np.newaxis, :] - dt * rates["mort"] * n
    return np.where(_egg_mask(params), n_new, n)


STEPPERS = {"semi_implicit": step_semi_implicit, "explicit": step_explicit}


# ============================================================================
# Projection
# ============================================================================


def _check_cadence(dt: float, t_save: float) -> int:
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    if t_save <= 0:
        raise BadSaveCadence(f"t_save must be positive, got {t_save}")
    ratio = t_save / dt
    steps = int(round(ratio))
    if steps < 1 or abs(ratio - steps) > SAVE_CADENCE_TOLERANCE * max(1.0, ratio):
        raise BadSaveCadence(
            f"t_save ({t_save}) must be a positive integer multiple of dt ({dt})"
        )
    return steps


def _advance_other(params, n, n_pp, n_other, rates, t, dt) -> Dict[str, Any]:
    new_other = {}
    for component, fun_name in params.other_dynamics.items():
        fun = COMPONENT_FUNCTIONS.resolve(fun_name)
        new_other[component] = fun(
            params=params, n=n, n_pp=n_pp, n_other=n_other, rates=rates,
            t=t, dt=dt, component=component,
            component_params=params.other_params.get(component, {}),
        )
    return new_other


def project(
    obj: Union[SpectrumParams, SpectrumSim],
    effort=None,
    t_max: Optional[float] = None,
    dt: float = DEFAULTS.projection.dt,
    t_save: float = DEFAULTS.projection.t_save,
    t_start: Optional[float] = None,
    scheme: str = DEFAULTS.projection.scheme,
) -> SpectrumSim:
    """Project a model forward in time.

    Parameters
    ----------
    obj : SpectrumParams or SpectrumSim
        A model, projected from its initial values, or a previous
        projection, which is continued from its final state and time
    effort : scalar, vector, named vector or pd.DataFrame, optional
        Fishing effort. A DataFrame indexed by time gives the effort from
        each listed time onwards and, when not given, sets ``t_start`` to
        its first and ``t_max`` to the span of its times. Defaults to the
        model's initial effort, or the final effort of a continued
        projection.
    t_max : float, optional
        Length of the projection (default 100)
    dt : float
        Time step
    t_save : float
        Interval between saved states; a positive multiple of ``dt``
    t_start : float, optional
        Start time (default 0). Ignored when continuing a projection.
    scheme : str
        ``"semi_implicit"`` (default) or ``"explicit"``

    Returns
    -------
    SpectrumSim

    Raises
    ------
    BadSaveCadence
        If t_save is not a positive integer multiple of dt.
    BadEffortShape, UnknownGear
        If the effort does not match the model's gears.
    ProjectionError
        If a step produces non-finite or negative densities, as an
        unstable explicit step does.

    Examples
    --------
    >>> sim = project(params, effort=0.5, t_max=10, dt=0.1, t_save=1)
    >>> sim.times
    array([ 0.,  1.,  2.,  3.,  4.,  5.,  6.,  7.,  8.,  9., 10.])
    """
    if scheme not in STEPPERS:
        raise ValueError(f"scheme must be one of {list(SCHEMES)}, got '{scheme}'")
    steps_per_save = _check_cadence(dt, t_save)

    if isinstance(obj, SpectrumSim):
        previous = obj
        params = obj.params
        n = obj.n[-1].copy()
        n_pp = obj.n_pp[-1].copy()
        n_other = dict(obj.n_other[-1])
        start = float(obj.times[-1])
        if effort is None:
            effort = obj.effort.iloc[-1].to_numpy(dtype=float)
    else:
        previous = None
        params = obj
        n = np.array(params.initial_n, dtype=float)
        n_pp = np.array(params.initial_n_pp, dtype=float)
        n_other = dict(params.initial_n_other)
        start = None

    gear_names = params.gear_names
    if isinstance(effort, pd.DataFrame):
        effort_times, effort_values = validate_effort_table(effort, gear_names)
        if start is None:
            start = effort_times[0] if t_start is None else t_start
        if t_max is None:
            t_max = max(effort_times[-1] - start, 0.0)
    else:
        vector = (
            np.asarray(params.initial_effort, dtype=float)
            if effort is None
            else validate_effort_vector(effort, gear_names, params.initial_effort)
        )
        effort_times = np.array([-np.inf])
        effort_values = vector[np.newaxis, :]
    if start is None:
        start = 0.0 if t_start is None else float(t_start)
    if t_max is None:
        t_max = DEFAULTS.projection.t_max
    if t_max < 0:
        raise ValueError(f"t_max must not be negative, got {t_max}")

    no_saves = int(np.floor(t_max / t_save + SAVE_CADENCE_TOLERANCE))
    n_steps = no_saves * steps_per_save
    stepper = STEPPERS[scheme]
    resource_fun = RESOURCE_DYNAMICS.resolve(params.resource_dynamics)

    def effort_now(t: float) -> np.ndarray:
        return effort_at(effort_times, effort_values, t, TIME_TOLERANCE)

    times = [start + k * t_save for k in range(no_saves + 1)]
    out_n = [n.copy()]
    out_n_pp = [n_pp.copy()]
    out_other = [dict(n_other)]
    out_effort = [effort_now(start)]

    logger.info(
        f"Projecting {params.no_sp} species from t={start:g} for {t_max:g} "
        f"years (dt={dt:g}, {n_steps} steps, scheme={scheme})"
    )
    for step in range(n_steps):
        t = start + step * dt
        rates = evaluate_rate_bundle(params, n, n_pp, n_other, t, effort_now(t))

        new_other = _advance_other(params, n, n_pp, n_other, rates, t, dt)
        new_n_pp = check_shape(
            "ResourceDynamics", "n_pp",
            resource_fun(
                params=params, n=n, n_pp=n_pp, n_other=n_other, rates=rates,
                t=t, dt=dt, resource_rate=params.rr_pp,
                resource_capacity=params.cc_pp,
            ),
            (params.no_w_full,),
        )
        new_n = stepper(params, n, rates, dt)

        if not (np.all(np.isfinite(new_n)) and np.all(np.isfinite(new_n_pp))):
            raise ProjectionError(
                f"Non-finite densities after the step from t={t:g}; "
                f"try a smaller dt or the semi_implicit scheme"
            )
        if np.any(new_n < 0) or np.any(new_n_pp < 0):
            raise ProjectionError(
                f"Negative densities after the step from t={t:g} "
                f"(minimum {min(new_n.min(), new_n_pp.min()):g}); "
                f"try a smaller dt or the semi_implicit scheme"
            )
        n, n_pp, n_other = new_n, new_n_pp, new_other

        if (step + 1) % steps_per_save == 0:
            k = (step + 1) // steps_per_save
            out_n.append(n.copy())
            out_n_pp.append(n_pp.copy())
            out_other.append(dict(n_other))
            out_effort.append(effort_now(times[k]))
            logger.debug(f"Saved state at t={times[k]:g}")

    times_arr = np.asarray(times, dtype=float)
    n_arr = np.stack(out_n)
    n_pp_arr = np.stack(out_n_pp)
    effort_arr = np.stack(out_effort)
    if previous is not None:
        # The first snapshot repeats the last one of the previous projection
        times_arr = np.concatenate([previous.times, times_arr[1:]])
        n_arr = np.concatenate([previous.n, n_arr[1:]])
        n_pp_arr = np.concatenate([previous.n_pp, n_pp_arr[1:]])
        out_other = list(previous.n_other) + out_other[1:]
        effort_arr = np.concatenate([previous.effort.to_numpy(dtype=float), effort_arr[1:]])

    effort_frame = pd.DataFrame(
        effort_arr,
        index=pd.Index(times_arr, name="time"),
        columns=pd.Index(gear_names, name="gear"),
    )
    logger.info(f"Projection finished at t={times_arr[-1]:g}")
    return SpectrumSim(
        params=params,
        times=times_arr,
        n=n_arr,
        n_pp=n_pp_arr,
        n_other=out_other,
        effort=effort_frame,
    )
