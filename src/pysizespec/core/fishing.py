"""
Fishing gears: selectivity curves and fishing effort.

Gear selectivity is a function of body size chosen per (species, gear)
pair by the ``sel_func`` column of the gear table. Effort is supplied to
the rate pipeline and the projector in one of several forms:

- a single number, applied to every gear;
- a vector with one entry per gear, in the canonical gear order;
- a named vector (dict or ``pd.Series``) keyed by gear name. Names are
  matched case-insensitively; gears not named keep their initial effort;
- a time x gear table (``pd.DataFrame`` indexed by time). Its columns must
  name exactly the model's gears and are reordered to canonical order.
"""

from __future__ import annotations

import inspect
from typing import Dict, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from pysizespec.core.errors import BadEffortShape, UnknownGear
from pysizespec.core.registry import SELECTIVITY_FUNCTIONS

EffortLike = Union[float, int, Sequence[float], np.ndarray, Dict[str, float], pd.Series, pd.DataFrame]


# ============================================================================
# Selectivity functions
# ============================================================================


@SELECTIVITY_FUNCTIONS.register()
def knife_edge(w: np.ndarray, knife_edge_size: float) -> np.ndarray:
    """Selectivity 1 at and above ``knife_edge_size``, 0 below."""
    return (w >= knife_edge_size).astype(float)


def _length_sigmoid(l: np.ndarray, l25: float, l50: float) -> np.ndarray:
    sr = l50 - l25
    s1 = l50 * np.log(3) / sr
    s2 = s1 / l50
    return 1 / (1 + np.exp(s1 - s2 * l))


@SELECTIVITY_FUNCTIONS.register()
def sigmoid_length(
    w: np.ndarray, l25: float, l50: float, a: float, b: float
) -> np.ndarray:
    """Logistic selectivity in length.

    Weight is converted to length with ``l = (w / a)^(1 / b)``.

    Parameters
    ----------
    w : np.ndarray
        Body weights
    l25, l50 : float
        Lengths at which selectivity is 0.25 and 0.5
    a, b : float
        Length-weight conversion coefficients
    """
    l = (w / a) ** (1 / b)
    return _length_sigmoid(l, l25, l50)


@SELECTIVITY_FUNCTIONS.register()
def double_sigmoid_length(
    w: np.ndarray,
    l25: float,
    l50: float,
    l50_right: float,
    l25_right: float,
    a: float,
    b: float,
) -> np.ndarray:
    """Dome-shaped selectivity: a rising and a falling logistic in length."""
    l = (w / a) ** (1 / b)
    sr_right = l50_right - l25_right
    s1_right = l50_right * np.log(3) / sr_right
    s2_right = s1_right / l50_right
    right = 1 / (1 + np.exp(s1_right - s2_right * l))
    return _length_sigmoid(l, l25, l50) * right


@SELECTIVITY_FUNCTIONS.register()
def sigmoid_weight(
    w: np.ndarray, sigmoidal_weight: float, sigmoidal_sigma: float
) -> np.ndarray:
    """Logistic selectivity in log weight.

    Selectivity is 0.5 at ``sigmoidal_weight``; ``sigmoidal_sigma`` sets
    the steepness of the transition.
    """
    return 1 / (1 + (w / sigmoidal_weight) ** (-sigmoidal_sigma))


def _selectivity_args(
    fun, gear_row: pd.Series, species_row: pd.Series
) -> Dict[str, float]:
    """Collect a selectivity function's arguments from the gear and species rows."""
    args = {}
    for name in inspect.signature(fun).parameters:
        if name == "w":
            continue
        if name in gear_row.index and not pd.isna(gear_row[name]):
            args[name] = gear_row[name]
        elif name in species_row.index and not pd.isna(species_row[name]):
            args[name] = species_row[name]
        else:
            raise ValueError(
                f"Selectivity function '{gear_row['sel_func']}' for species "
                f"'{gear_row['species']}' and gear '{gear_row['gear']}' needs "
                f"parameter '{name}'"
            )
    return args


def get_gear_names(gear_params: pd.DataFrame) -> List[str]:
    """Gear names in order of first appearance."""
    return list(dict.fromkeys(gear_params["gear"].astype(str))) if len(gear_params) else []


def compute_selectivity(
    gear_params: pd.DataFrame,
    species_params: pd.DataFrame,
    w: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray, List[str]]:
    """Build selectivity and catchability arrays from a gear table.

    Parameters
    ----------
    gear_params : pd.DataFrame
        Completed gear table
    species_params : pd.DataFrame
        Completed species table
    w : np.ndarray
        Consumer size grid

    Returns
    -------
    selectivity : np.ndarray
        [no_gear, no_sp, no_w]
    catchability : np.ndarray
        [no_gear, no_sp]
    gear_names : list of str
    """
    gear_names = get_gear_names(gear_params)
    species = list(species_params["species"].astype(str))
    selectivity = np.zeros((len(gear_names), len(species), len(w)))
    catchability = np.zeros((len(gear_names), len(species)))
    sp_rows = species_params.set_index(species_params["species"].astype(str))

    for _, row in gear_params.iterrows():
        g = gear_names.index(str(row["gear"]))
        i = species.index(str(row["species"]))
        fun = SELECTIVITY_FUNCTIONS.resolve(row["sel_func"])
        args = _selectivity_args(fun, row, sp_rows.loc[species[i]])
        sel = np.asarray(fun(w=w, **args), dtype=float)
        if sel.shape != w.shape or np.any(~np.isfinite(sel)):
            raise ValueError(
                f"Selectivity function '{row['sel_func']}' returned invalid values "
                f"for species '{species[i]}' and gear '{row['gear']}'"
            )
        selectivity[g, i] = sel
        catchability[g, i] = float(row["catchability"])
    return selectivity, catchability, gear_names


# ============================================================================
# Effort
# ============================================================================


def _match_gears(names: Sequence[str], gear_names: Sequence[str]) -> List[int]:
    """Map effort names onto canonical gear positions, ignoring case."""
    lookup = {g.lower(): k for k, g in enumerate(gear_names)}
    unknown = [str(n) for n in names if str(n).lower() not in lookup]
    if unknown:
        raise UnknownGear(unknown, list(gear_names))
    positions = [lookup[str(n).lower()] for n in names]
    if len(set(positions)) != len(positions):
        raise BadEffortShape(f"Effort names a gear more than once: {list(names)}")
    return positions


def validate_effort_vector(
    effort: EffortLike,
    gear_names: Sequence[str],
    initial_effort: np.ndarray = None,
) -> np.ndarray:
    """Turn a scalar or per-gear effort into a vector in canonical order.

    Parameters
    ----------
    effort : float, sequence, np.ndarray, dict or pd.Series
        Effort in any of the vector forms
    gear_names : sequence of str
        Canonical gear order
    initial_effort : np.ndarray, optional
        Effort for gears a named vector leaves out (default 0)

    Returns
    -------
    np.ndarray
        Effort per gear [no_gear]

    Raises
    ------
    BadEffortShape
        If an unnamed vector does not have one entry per gear.
    UnknownGear
        If a named vector names a gear the model does not have.
    """
    no_gear = len(gear_names)
    if isinstance(effort, pd.DataFrame):
        raise BadEffortShape("Expected an effort vector, got a time x gear table")

    if isinstance(effort, (dict, pd.Series)):
        base = (
            np.zeros(no_gear) if initial_effort is None
            else np.array(initial_effort, dtype=float)
        )
        names = list(effort.keys()) if isinstance(effort, dict) else list(effort.index)
        values = np.asarray(list(effort.values()) if isinstance(effort, dict) else effort.to_numpy(), dtype=float)
        base[_match_gears(names, gear_names)] = values
        return base

    values = np.asarray(effort, dtype=float)
    if values.ndim == 0:
        return np.full(no_gear, float(values))
    if values.ndim != 1:
        raise BadEffortShape(
            f"Effort vector must be one-dimensional, got shape {values.shape}"
        )
    if len(values) == 1:
        return np.full(no_gear, float(values[0]))
    if len(values) != no_gear:
        raise BadEffortShape(
            f"Effort vector has {len(values)} entries but the model has "
            f"{no_gear} gears"
        )
    return values.copy()


def validate_effort_table(
    effort: Union[pd.DataFrame, np.ndarray],
    gear_names: Sequence[str],
    require_time: bool = True,
) -> Tuple[np.ndarray, np.ndarray]:
    """Check a time x gear effort table and reorder it to canonical order.

    Parameters
    ----------
    effort : pd.DataFrame or np.ndarray
        Table with one row per time and one column per gear. A bare 2-D
        array is only accepted when ``require_time`` is False.
    gear_names : sequence of str
        Canonical gear order
    require_time : bool
        Whether the table must carry a numeric time index

    Returns
    -------
    times : np.ndarray or None
        Row times, increasing
    values : np.ndarray
        Effort [no_times, no_gear] in canonical gear order

    Raises
    ------
    BadEffortShape
        If the table has the wrong number of columns or lacks a numeric
        time index.
    UnknownGear
        If the column names are not exactly the model's gears.
    """
    no_gear = len(gear_names)
    if not isinstance(effort, pd.DataFrame):
        values = np.asarray(effort, dtype=float)
        if values.ndim != 2:
            raise BadEffortShape(f"Effort table must be two-dimensional, got shape {values.shape}")
        if require_time:
            raise BadEffortShape(
                "An effort array has no time labels; pass a DataFrame indexed by time"
            )
        if values.shape[1] != no_gear:
            raise BadEffortShape(
                f"Effort table has {values.shape[1]} columns but the model has "
                f"{no_gear} gears"
            )
        return None, values.copy()

    if not pd.api.types.is_numeric_dtype(effort.index) or len(effort.index) == 0:
        raise BadEffortShape("Effort table must be indexed by numeric times")
    times = effort.index.to_numpy(dtype=float)
    if np.any(np.diff(times) <= 0):
        raise BadEffortShape("Effort table times must be strictly increasing")

    columns = [str(c) for c in effort.columns]
    if isinstance(effort.columns, pd.RangeIndex):
        if len(columns) != no_gear:
            raise BadEffortShape(
                f"Effort table has {len(columns)} columns but the model has "
                f"{no_gear} gears"
            )
        return times, effort.to_numpy(dtype=float).copy()

    positions = _match_gears(columns, gear_names)
    if len(positions) != no_gear:
        matched = {gear_names[p] for p in positions}
        raise UnknownGear([], list(gear_names), [g for g in gear_names if g not in matched])
    values = np.zeros((len(times), no_gear))
    values[:, positions] = effort.to_numpy(dtype=float)
    return times, values


def effort_at(times: np.ndarray, values: np.ndarray, t: float, tol: float = 1e-10) -> np.ndarray:
    """Effort in force at time ``t``: the last row whose time is <= t."""
    k = np.searchsorted(times, t + tol, side="right") - 1
    return values[max(k, 0)]
