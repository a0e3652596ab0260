"""
Logarithmic size grids for the consumer and resource spectra.

The consumer grid ``w`` runs from the smallest egg size to the largest
maximum size with ``no_w`` logarithmically spaced points. The resource
grid ``w_full`` uses the same log step but extends ``w`` downwards to the
smallest resource size, so that its last ``no_w`` entries coincide with
``w`` exactly. A constant log step is required by the spectral
evaluation of the predation integrals.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from pysizespec.core.constants import DOUBLE_EPS, MAX_W_REL_TOLERANCE, MIN_NO_W
from pysizespec.core.errors import InvalidGrid


@dataclass(frozen=True)
class SizeGrid:
    """Consumer and resource size grids.

    Attributes
    ----------
    w : np.ndarray
        Start of each consumer size bin (g) [no_w]
    dw : np.ndarray
        Width of each consumer size bin (g) [no_w]
    w_full : np.ndarray
        Start of each resource size bin (g) [no_w_full]
    dw_full : np.ndarray
        Width of each resource size bin (g) [no_w_full]
    dx : float
        Constant log10 step between grid points
    """

    w: np.ndarray
    dw: np.ndarray
    w_full: np.ndarray
    dw_full: np.ndarray
    dx: float

    @property
    def no_w(self) -> int:
        return len(self.w)

    @property
    def no_w_full(self) -> int:
        return len(self.w_full)

    @property
    def idx_sp(self) -> slice:
        """Slice of ``w_full`` positions that coincide with ``w``."""
        return slice(self.no_w_full - self.no_w, self.no_w_full)

    @property
    def w_labels(self) -> np.ndarray:
        """Size labels rounded to three significant figures."""
        return np.array([float(f"{x:.3g}") for x in self.w])

    def __repr__(self) -> str:
        return (
            f"SizeGrid(no_w={self.no_w}, no_w_full={self.no_w_full}, "
            f"w=[{self.w[0]:.3g}, {self.w[-1]:.3g}], "
            f"w_full=[{self.w_full[0]:.3g}, {self.w_full[-1]:.3g}])"
        )


def make_size_grid(
    no_w: int,
    min_w: float,
    max_w: float,
    min_w_pp: float,
    w_max: Optional[Sequence[float]] = None,
    species: Optional[Sequence[str]] = None,
) -> SizeGrid:
    """Build the consumer and resource size grids.

    Parameters
    ----------
    no_w : int
        Number of consumer size bins (must exceed 10)
    min_w : float
        Smallest egg size across species
    max_w : float
        Largest maximum size across species
    min_w_pp : float
        Smallest resource size, strictly less than ``min_w``
    w_max : sequence of float, optional
        Maximum size of each species; checked against ``max_w``
    species : sequence of str, optional
        Species names used in the error message for ``w_max``

    Returns
    -------
    SizeGrid

    Raises
    ------
    InvalidGrid
        If the bounds are inconsistent or a species outgrows ``max_w``.

    Examples
    --------
    >>> grid = make_size_grid(no_w=50, min_w=1e-3, max_w=1e3, min_w_pp=1e-8)
    >>> bool(np.all(grid.w_full[grid.idx_sp] == grid.w))
    True
    """
    if no_w <= MIN_NO_W:
        raise InvalidGrid(f"no_w must be larger than {MIN_NO_W}, got {no_w}")
    if not (min_w > 0 and max_w > 0 and min_w_pp > 0):
        raise InvalidGrid("min_w, max_w and min_w_pp must all be positive")
    if min_w >= max_w:
        raise InvalidGrid(f"min_w ({min_w}) must be smaller than max_w ({max_w})")
    if min_w_pp >= min_w:
        raise InvalidGrid(
            f"min_w_pp ({min_w_pp}) must be smaller than min_w ({min_w})"
        )
    if w_max is not None:
        w_max = np.asarray(w_max, dtype=float)
        too_large = w_max > max_w * (1 + MAX_W_REL_TOLERANCE)
        if np.any(too_large):
            names = (
                [str(s) for s, big in zip(species, too_large) if big]
                if species is not None
                else [str(i) for i in np.flatnonzero(too_large)]
            )
            raise InvalidGrid(
                "Some species have a maximum size larger than max_w: "
                + ", ".join(names)
            )

    dx = np.log10(max_w / min_w) / (no_w - 1)
    w = 10 ** (np.log10(min_w) + np.arange(no_w) * dx)
    # dw[j] = w[j+1] - w[j]; the same formula extrapolates the last bin
    dw = (10 ** dx - 1) * w

    # Number of extra resource bins below min_w so that the smallest
    # bin reaches min_w_pp
    n_extra = int(np.floor(np.log10(w[0] / min_w_pp) / dx)) + 1
    x_pp = np.log10(w[0]) - np.arange(n_extra, 0, -1) * dx
    w_pp = 10 ** x_pp
    # If min_w_pp sits exactly on a grid point the step above produced one
    # point too many
    if n_extra > 1 and np.isclose(w_pp[1], min_w_pp, rtol=1e-12, atol=0):
        w_pp = w_pp[1:]
    w_full = np.concatenate([w_pp, w])
    dw_full = np.concatenate([(10 ** dx - 1) * w_pp, dw])

    return SizeGrid(w=w, dw=dw, w_full=w_full, dw_full=dw_full, dx=float(dx))


def get_w_min_idx(w_min: Sequence[float], w: np.ndarray) -> np.ndarray:
    """Index of the size bin containing each egg size.

    Egg sizes are rounded down onto the grid. Egg sizes that fall below
    ``w[0]`` through rounding errors map to bin 0.

    Parameters
    ----------
    w_min : sequence of float
        Egg size of each species
    w : np.ndarray
        Consumer size grid

    Returns
    -------
    np.ndarray
        Integer indices into ``w`` [no_sp]
    """
    w_min = np.asarray(w_min, dtype=float)
    idx = np.searchsorted(w, w_min * (1 + DOUBLE_EPS), side="right") - 1
    return np.clip(idx, 0, len(w) - 1).astype(int)


def check_w_min_idx(w_min: Sequence[float], w: np.ndarray, w_min_idx: np.ndarray) -> bool:
    """Check that each index points at the bin containing the egg size."""
    w_min = np.asarray(w_min, dtype=float)
    w_min_idx = np.asarray(w_min_idx, dtype=int)
    if w_min_idx.shape != w_min.shape:
        return False
    if np.any(w_min_idx < 0) or np.any(w_min_idx >= len(w)):
        return False
    lower_ok = w_min * (1 + 4 * DOUBLE_EPS) >= w[w_min_idx]
    upper = np.where(
        w_min_idx + 1 < len(w), w[np.minimum(w_min_idx + 1, len(w) - 1)], np.inf
    )
    upper_ok = w_min * (1 - 4 * DOUBLE_EPS) < upper
    return bool(np.all(lower_ok & upper_ok))
