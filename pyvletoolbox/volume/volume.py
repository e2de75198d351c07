#!/usr/bin/python3
# -*- coding: utf-8 -*-

"""
    pyVLEToolbox - A collection of Phase Equilibrium Utilities
              Copyright (C) 2022, Mark Burgoyne

    This program is free software: you can redistribute it and/or modify
    it under the terms of the GNU General Public License as published by
    the Free Software Foundation, either version 3 of the License, or
    (at your option) any later version.

    This program is distributed in the hope that it will be useful,
    but WITHOUT ANY WARRANTY; without even the implied warranty of
    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
    GNU General Public License for more details.

    The GNU General Public License can be found in the LICENSE directory,
    and at  <https://www.gnu.org/licenses/>.

          Contact author at mark.w.burgoyne@gmail.com
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Union
import numpy as np
import numpy.typing as npt

from pyvletoolbox.classes import phase as phase_enum, error_kind
from pyvletoolbox.constants import R, VOLUME_RTOL, VOLUME_MAX_ITER, LIQUID_PACKING
from pyvletoolbox.errors import VolumeNotFound
from pyvletoolbox.validate import validate_methods, validate_composition, validate_temperature

logger = logging.getLogger(__name__)


def _solve_branch(model, p, T, z, V0, side=None, rtol=VOLUME_RTOL, max_iter=VOLUME_MAX_ITER):
    """ Safeguarded Newton iteration in ln(V) for P(V) = p

        Maintains a bracket [lo, hi] around the root on the requested side. Newton steps that leave
        the bracket, or are taken where dP/dV >= 0, are replaced by bisection in ln(V) (or by doubling
        V while no upper bound is known). Mechanically unstable iterates tighten the bracket towards
        the requested side: the vapor root lies above them, the liquid root below.
    """
    lb = model.lb_volume(T, z)
    ln_lo, ln_hi = np.log(lb), np.inf
    lnV = np.log(V0)
    for it in range(1, max_iter + 1):
        V = np.exp(lnV)
        P = model.pressure(V, T, z)
        if not np.isfinite(P):
            raise VolumeNotFound(f"Non-finite pressure at V = {V}", kind=error_kind.OUT_OF_DOMAIN,
                                 iterate={'V': V, 'p': p, 'T': T}, iterations=it)
        f = P - p
        if abs(f) <= rtol * p:
            return V, it
        if f > 0:
            ln_lo = max(ln_lo, lnV)
        else:
            ln_hi = min(ln_hi, lnV)

        dpdv = model.dpdv(V, T, z)
        ln_new = None
        if dpdv < 0:
            ln_new = lnV - f / (V * dpdv)
            if not ln_lo < ln_new < ln_hi:
                ln_new = None
            elif abs(ln_new - lnV) < 1e-13:
                return np.exp(ln_new), it
        elif side == phase_enum.VAPOR:
            ln_lo = max(ln_lo, lnV)
        elif side == phase_enum.LIQUID:
            ln_hi = min(ln_hi, lnV)

        if ln_new is None:
            if np.isfinite(ln_hi):
                if ln_hi - ln_lo < 1e-13:
                    raise VolumeNotFound(f"Bracket collapsed without a root at p = {p} Pa, T = {T} K",
                                         kind=error_kind.OUT_OF_DOMAIN,
                                         iterate={'V': V, 'p': p, 'T': T, 'residual': f}, iterations=it)
                ln_new = 0.5 * (ln_lo + ln_hi)
            else:
                ln_new = max(lnV, ln_lo) + np.log(2.0)
            logger.debug(f"    Volume iteration {it}: bisection to V = {np.exp(ln_new)}")
        lnV = ln_new

    raise VolumeNotFound(f"No volume root within {max_iter} iterations at p = {p} Pa, T = {T} K",
                         kind=error_kind.NOT_CONVERGED, iterate={'V': np.exp(lnV), 'p': p, 'T': T},
                         iterations=max_iter)


def _try_branch(model, p, T, z, V0, side):
    try:
        return _solve_branch(model, p, T, z, V0, side)[0], None
    except VolumeNotFound as e:
        return None, e


def solve_volume(
    model,
    p: float,
    T: float,
    z: npt.ArrayLike,
    phase: Union[phase_enum, str] = phase_enum.UNKNOWN,
    guess: Optional[float] = None,
    threaded: bool = False,
) -> float:
    """ Returns the molar volume (m³/mol) at which the model pressure equals p

        model: HelmholtzModel instance
        p: Pressure (Pa)
        T: Temperature (K)
        z: Composition, list or array of mole amounts (normalized internally)
        phase: 'liquid', 'vapor', or 'unknown'/'stable' (default). For unknown/stable phases
               both branches are solved and the root with the lower molar Gibbs energy returned
        guess: Optional starting volume (m³/mol), used in place of the default branch start
        threaded: Solve the liquid and vapor branches on two threads. Results are identical either way
    """
    phase = validate_methods(["phase"], [phase])
    if phase == phase_enum.UNSTABLE:
        raise ValueError("Volume roots can only be requested for 'liquid', 'vapor', 'unknown' or 'stable' phases")
    T = validate_temperature(T)
    z = validate_composition(model.nc, z)
    p = float(p)
    if not np.isfinite(p) or p <= 0:
        raise VolumeNotFound(f"Pressure must be positive and finite, got {p}", kind=error_kind.OUT_OF_DOMAIN,
                             iterate={'p': p, 'T': T})

    lb = model.lb_volume(T, z)
    V_liq = lb / LIQUID_PACKING
    V_vap = R * T / p + lb

    if guess is not None:
        side = phase if phase in (phase_enum.LIQUID, phase_enum.VAPOR) else None
        return _solve_branch(model, p, T, z, float(guess), side)[0]
    if phase == phase_enum.LIQUID:
        return _solve_branch(model, p, T, z, V_liq, phase_enum.LIQUID)[0]
    if phase == phase_enum.VAPOR:
        return _solve_branch(model, p, T, z, V_vap, phase_enum.VAPOR)[0]

    # Fork-join over both branches, sharing the model read-only
    if threaded:
        with ThreadPoolExecutor(max_workers=2) as executor:
            liq = executor.submit(_try_branch, model, p, T, z, V_liq, phase_enum.LIQUID)
            vap = executor.submit(_try_branch, model, p, T, z, V_vap, phase_enum.VAPOR)
            (Vl, err_l), (Vv, err_v) = liq.result(), vap.result()
    else:
        Vl, err_l = _try_branch(model, p, T, z, V_liq, phase_enum.LIQUID)
        Vv, err_v = _try_branch(model, p, T, z, V_vap, phase_enum.VAPOR)

    if Vl is None and Vv is None:
        raise err_v from err_l
    if Vl is None:
        logger.info(f"    Liquid branch failed at p = {p}, T = {T}: {err_l}")
        return Vv
    if Vv is None:
        logger.info(f"    Vapor branch failed at p = {p}, T = {T}: {err_v}")
        return Vl
    if model.gibbs(Vl, T, z) <= model.gibbs(Vv, T, z):
        return Vl
    return Vv


def identify_phase(model, V: float, T: float, z: npt.ArrayLike) -> phase_enum:
    """ Classifies a volume root by the phase identification parameter of Venkatarathnam & Oellrich (2011)

        Π = V [ (∂²P/∂T∂V)/(∂P/∂T) - (∂²P/∂V²)/(∂P/∂V) ]

        Π > 1 indicates a liquid, Π <= 1 a vapor. Roots with ∂P/∂V > 0 are mechanically unstable.
    """
    T = validate_temperature(T)
    z = validate_composition(model.nc, z)
    dpdv = model.dpdv(V, T, z)
    if dpdv > 0:
        return phase_enum.UNSTABLE
    h = 1e-5 * T
    d2pdtdv = (model.dpdv(V, T + h, z) - model.dpdv(V, T - h, z)) / (2 * h)
    pi = V * (d2pdtdv / model.dpdt(V, T, z) - model.d2pdv2(V, T, z) / dpdv)
    return phase_enum.LIQUID if pi > 1 else phase_enum.VAPOR
