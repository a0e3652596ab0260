"""
Resource spectrum dynamics.

A resource dynamics function returns the resource density at ``t + dt``
given the state and rates at ``t``. It is called with keyword arguments
``params``, ``n``, ``n_pp``, ``n_other``, ``rates``, ``t``, ``dt``,
``resource_rate`` and ``resource_capacity`` and must accept and ignore
extra ones.
"""

from __future__ import annotations

import numpy as np

from pysizespec.core.registry import RESOURCE_DYNAMICS


@RESOURCE_DYNAMICS.register()
def resource_semichemostat(
    n_pp, rates, dt, resource_rate, resource_capacity, **kwargs
) -> np.ndarray:
    """Semichemostat growth, solved exactly over one time step.

    dN/dt = r (c - N) - mu N relaxes N towards r c / (r + mu) at rate
    r + mu, where mu is the resource mortality from predation. Bins with
    r + mu = 0 are left unchanged.

    Parameters
    ----------
    n_pp : np.ndarray
        Resource density at t [no_w_full]
    rates : RateBundle
        Rates at t; uses ``resource_mort``
    dt : float
        Time step
    resource_rate : np.ndarray
        Regeneration rate r [no_w_full]
    resource_capacity : np.ndarray
        Carrying capacity c [no_w_full]
    """
    mur = resource_rate + rates["resource_mort"]
    n_steady = np.divide(
        resource_rate * resource_capacity, mur,
        out=np.zeros_like(n_pp, dtype=float), where=mur != 0,
    )
    n_pp_new = n_steady + (n_pp - n_steady) * np.exp(-mur * dt)
    return np.where(mur == 0, n_pp, n_pp_new)


@RESOURCE_DYNAMICS.register()
def resource_logistic(
    n_pp, rates, dt, resource_rate, resource_capacity, **kwargs
) -> np.ndarray:
    """Logistic growth with predation, solved exactly over one time step.

    dN/dt = r N (1 - N / c) - mu N. Bins with zero carrying capacity or
    zero density stay empty.
    """
    r = resource_rate
    f = r - rates["resource_mort"]
    n_pp = np.asarray(n_pp, dtype=float)
    out = np.zeros_like(n_pp)
    alive = (resource_capacity > 0) & (n_pp > 0)

    grow = alive & (f != 0)
    fk = f[grow] * resource_capacity[grow]
    out[grow] = fk / (r[grow] + (fk / n_pp[grow] - r[grow]) * np.exp(-f[grow] * dt))

    flat = alive & (f == 0)
    out[flat] = (
        resource_capacity[flat] * n_pp[flat]
        / (resource_capacity[flat] + r[flat] * n_pp[flat] * dt)
    )
    return out


@RESOURCE_DYNAMICS.register()
def resource_constant(n_pp, **kwargs) -> np.ndarray:
    """Resource density held fixed."""
    return np.array(n_pp, dtype=float)
