"""
Predation kernels and the predator/prey size-overlap integrals.

Two integrals couple predators to prey of other sizes:

- the available energy for a predator of species i at size w,
      A_i(w) = sum_k phi_i(w / w_k) * P_i(w_k)
  where P_i is the interaction-weighted prey biomass density in each bin;
- the predation rate exerted by species i on prey of size w_p,
      R_i(w_p) = sum_j phi_i(w_j / w_p) * Q_i(w_j)
  where Q_i is the number of hungry predators searching in each bin.

When the kernel phi depends only on the predator/prey mass ratio, both
sums are discrete convolutions on the logarithmic grid and are evaluated
in the frequency domain (SpectralKernel). A kernel table that varies with
predator size is integrated by direct quadrature (DirectKernel).
"""

from __future__ import annotations

import inspect
from typing import Optional

import numpy as np
import pandas as pd
from scipy import fft as sp_fft

from pysizespec.core.constants import FFT_ZERO_CUTOFF
from pysizespec.core.grid import SizeGrid
from pysizespec.core.registry import PRED_KERNELS


# ============================================================================
# Kernel functions of the predator/prey mass ratio
# ============================================================================


@PRED_KERNELS.register("lognormal")
def lognormal_pred_kernel(ppmr: np.ndarray, beta: float, sigma: float) -> np.ndarray:
    """Lognormal feeding kernel.

    phi(r) = exp(-(ln(r / beta))^2 / (2 sigma^2))

    Parameters
    ----------
    ppmr : np.ndarray
        Predator/prey mass ratios
    beta : float
        Preferred predator/prey mass ratio
    sigma : float
        Width of the kernel in log space
    """
    return np.exp(-np.log(ppmr / beta) ** 2 / (2 * sigma ** 2))


@PRED_KERNELS.register("truncated_lognormal")
def truncated_lognormal_pred_kernel(
    ppmr: np.ndarray, beta: float, sigma: float
) -> np.ndarray:
    """Lognormal kernel cut off three standard deviations from the mode."""
    phi = lognormal_pred_kernel(ppmr, beta, sigma)
    x = np.log(ppmr / beta)
    phi[np.abs(x) > 3 * sigma] = 0.0
    return phi


@PRED_KERNELS.register("box")
def box_pred_kernel(ppmr: np.ndarray, ppmr_min: float, ppmr_max: float) -> np.ndarray:
    """Constant kernel between two predator/prey mass ratios."""
    if ppmr_min >= ppmr_max:
        raise ValueError("ppmr_min must be smaller than ppmr_max")
    return ((ppmr >= ppmr_min) & (ppmr <= ppmr_max)).astype(float)


@PRED_KERNELS.register("power_law")
def power_law_pred_kernel(
    ppmr: np.ndarray, kernel_exp: float, ppmr_min: float, ppmr_max: float
) -> np.ndarray:
    """Power-law kernel r^kernel_exp between two mass ratios."""
    phi = ppmr ** kernel_exp
    phi[(ppmr < ppmr_min) | (ppmr > ppmr_max)] = 0.0
    return phi


def get_phi(species_params: pd.DataFrame, ppmr: np.ndarray) -> np.ndarray:
    """Evaluate each species' predation kernel at the given mass ratios.

    The kernel function is chosen by the ``pred_kernel_type`` column and its
    parameters are taken from the species table columns with matching names.
    Values at mass ratios of 1 or less are set to zero, so a predator never
    feeds on prey of its own size or larger.

    Parameters
    ----------
    species_params : pd.DataFrame
        Species table with ``pred_kernel_type`` and kernel parameter columns
    ppmr : np.ndarray
        Predator/prey mass ratios

    Returns
    -------
    np.ndarray
        Kernel values [no_sp, len(ppmr)]
    """
    ppmr = np.asarray(ppmr, dtype=float)
    phi = np.zeros((len(species_params), len(ppmr)))
    kernel_types = species_params.get(
        "pred_kernel_type", pd.Series(["lognormal"] * len(species_params))
    )
    for i, kernel_type in enumerate(kernel_types):
        fun = PRED_KERNELS.resolve(kernel_type)
        arg_names = [
            p.name
            for p in inspect.signature(fun).parameters.values()
            if p.name != "ppmr" and p.kind not in (p.VAR_KEYWORD, p.VAR_POSITIONAL)
        ]
        missing = [a for a in arg_names if a not in species_params.columns]
        if missing:
            raise ValueError(
                f"The '{kernel_type}' predation kernel needs species parameters "
                f"{missing}"
            )
        args = {a: species_params[a].iloc[i] for a in arg_names}
        if any(pd.isna(v) for v in args.values()):
            raise ValueError(
                f"Species '{species_params['species'].iloc[i]}' has missing values "
                f"for the '{kernel_type}' predation kernel parameters"
            )
        values = np.asarray(fun(ppmr=ppmr.copy(), **args), dtype=float)
        if values.shape != ppmr.shape or np.any(~np.isfinite(values)):
            raise ValueError(
                f"The '{kernel_type}' predation kernel returned invalid values for "
                f"species '{species_params['species'].iloc[i]}'"
            )
        phi[i] = values
    phi[:, ppmr <= 1] = 0.0
    return phi


def get_ft_mask(w_max: np.ndarray, w_full: np.ndarray) -> np.ndarray:
    """Mask that is 1 for prey sizes below each species' maximum size."""
    return (w_full[np.newaxis, :] < np.asarray(w_max, dtype=float)[:, np.newaxis]).astype(float)


# ============================================================================
# Integration strategies
# ============================================================================


class KernelConvolution:
    """Common interface of the two integration strategies.

    Parameters
    ----------
    grid : SizeGrid
        Size grids of the model
    ft_mask : np.ndarray
        Mask [no_sp, no_w_full] zeroing prey sizes at or above each
        species' maximum size in the predation rate
    """

    translation_invariant = False

    def __init__(self, grid: SizeGrid, ft_mask: np.ndarray):
        self.grid = grid
        self.ft_mask = ft_mask

    def available_energy(self, prey: np.ndarray) -> np.ndarray:
        """Kernel-weighted prey available to each predator.

        Parameters
        ----------
        prey : np.ndarray
            Prey biomass per bin as seen by each predator species,
            i.e. density * w_full * dw_full [no_sp, no_w_full]

        Returns
        -------
        np.ndarray
            Available energy [no_sp, no_w]
        """
        raise NotImplementedError

    def pred_rate(self, hungry: np.ndarray) -> np.ndarray:
        """Predation rate exerted on each prey size.

        Parameters
        ----------
        hungry : np.ndarray
            (1 - feeding level) * search volume * n * dw [no_sp, no_w]

        Returns
        -------
        np.ndarray
            Predation rate [no_sp, no_w_full]
        """
        raise NotImplementedError


class DirectKernel(KernelConvolution):
    """Quadrature over an explicit predation kernel table.

    Parameters
    ----------
    grid : SizeGrid
    ft_mask : np.ndarray
    pred_kernel : np.ndarray
        Kernel [no_sp, no_w (predator size), no_w_full (prey size)]
    """

    def __init__(self, grid: SizeGrid, ft_mask: np.ndarray, pred_kernel: np.ndarray):
        super().__init__(grid, ft_mask)
        self.pred_kernel = pred_kernel

    def available_energy(self, prey: np.ndarray) -> np.ndarray:
        return np.einsum("ijk,ik->ij", self.pred_kernel, prey)

    def pred_rate(self, hungry: np.ndarray) -> np.ndarray:
        return np.einsum("ijk,ij->ik", self.pred_kernel, hungry) * self.ft_mask


class SpectralKernel(KernelConvolution):
    """Frequency-domain evaluation for kernels depending only on mass ratio.

    The kernel of species i is sampled at the mass ratios
    ``w_full / w_full[0]`` of the logarithmic grid. Transforms are zero
    padded to at least ``2 * no_w_full - 1`` points so that the circular
    convolutions equal the linear ones.

    Parameters
    ----------
    grid : SizeGrid
    ft_mask : np.ndarray
    phi : np.ndarray
        Kernel sampled on the log mass-ratio grid [no_sp, no_w_full]
    """

    translation_invariant = True

    def __init__(self, grid: SizeGrid, ft_mask: np.ndarray, phi: np.ndarray):
        super().__init__(grid, ft_mask)
        self.phi = phi
        self.n_fft = sp_fft.next_fast_len(2 * grid.no_w_full - 1, real=True)
        # Transform for the encounter convolution; its complex conjugate
        # gives the cross-correlation needed for the predation rate
        self.ft_pred_kernel_e = sp_fft.rfft(phi, n=self.n_fft, axis=1)
        self.ft_pred_kernel_p = np.conj(self.ft_pred_kernel_e)

    def _transform(self, ft_kernel: np.ndarray, values: np.ndarray) -> np.ndarray:
        out = sp_fft.irfft(
            ft_kernel * sp_fft.rfft(values, n=self.n_fft, axis=1),
            n=self.n_fft,
            axis=1,
        )[:, : self.grid.no_w_full]
        out[out < FFT_ZERO_CUTOFF] = 0.0
        return out

    def available_energy(self, prey: np.ndarray) -> np.ndarray:
        return self._transform(self.ft_pred_kernel_e, prey)[:, self.grid.idx_sp]

    def pred_rate(self, hungry: np.ndarray) -> np.ndarray:
        full = np.zeros((hungry.shape[0], self.grid.no_w_full))
        full[:, self.grid.idx_sp] = hungry
        return self._transform(self.ft_pred_kernel_p, full) * self.ft_mask


def spectral_phi(species_params: pd.DataFrame, grid: SizeGrid) -> np.ndarray:
    """Sample each species' kernel on the grid of mass ratios."""
    return get_phi(species_params, grid.w_full / grid.w_full[0])


def direct_pred_kernel(species_params: pd.DataFrame, grid: SizeGrid) -> np.ndarray:
    """Explicit kernel table [no_sp, no_w, no_w_full] for mass-ratio kernels."""
    ppmr = grid.w[:, np.newaxis] / grid.w_full[np.newaxis, :]
    phi = get_phi(species_params, ppmr.ravel())
    return phi.reshape(len(species_params), grid.no_w, grid.no_w_full)


def build_kernel(
    species_params: pd.DataFrame,
    grid: SizeGrid,
    pred_kernel: Optional[np.ndarray] = None,
) -> KernelConvolution:
    """Choose the integration strategy for a model.

    Parameters
    ----------
    species_params : pd.DataFrame
        Species table with kernel parameters and ``w_max``
    grid : SizeGrid
    pred_kernel : np.ndarray, optional
        Explicit kernel table; when given the direct strategy is used

    Returns
    -------
    KernelConvolution
    """
    ft_mask = get_ft_mask(species_params["w_max"].to_numpy(), grid.w_full)
    if pred_kernel is not None:
        return DirectKernel(grid, ft_mask, np.asarray(pred_kernel, dtype=float))
    return SpectralKernel(grid, ft_mask, spectral_phi(species_params, grid))
