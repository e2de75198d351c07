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
from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np
import pandas as pd

from pyvletoolbox.classes import error_kind
from pyvletoolbox.constants import R, SAT_TOL, SAT_MAX_ITER, MAX_LOG_STEP, MIN_SEPARATION
from pyvletoolbox.errors import SaturationNotFound
from pyvletoolbox.initial import InitialGuess
from pyvletoolbox.validate import validate_temperature

logger = logging.getLogger(__name__)

_PURE = np.ones(1)


@dataclass
class SaturationResult:
    pressure: float  # Saturation pressure (Pa)
    v_liquid: float  # Saturated liquid molar volume (m³/mol)
    v_vapor: float  # Saturated vapor molar volume (m³/mol)
    iterations: int
    converged: bool = True


def _seed(model, T, guess, provider):
    if guess is None:
        provider = provider if provider is not None else InitialGuess()
        _, Vl, Vv = provider.saturation(model, T)
    elif isinstance(guess, SaturationResult):
        Vl, Vv = guess.v_liquid, guess.v_vapor
    elif len(guess) == 2:
        Vl, Vv = guess
    elif len(guess) == 3:
        _, Vl, Vv = guess
    else:
        raise ValueError("Saturation guess must be a SaturationResult, (V_liquid, V_vapor) or (p, V_liquid, V_vapor)")
    return float(Vl), float(Vv)


def saturation_pressure(model, T: float, guess=None, provider: Optional[InitialGuess] = None,
                        tol: float = SAT_TOL, max_iter: int = SAT_MAX_ITER) -> SaturationResult:
    """ Returns the vapor pressure and coexisting molar volumes of a pure component at temperature T

        model: Single component HelmholtzModel
        T: Temperature (K)
        guess: Optional SaturationResult from a nearby temperature, or a (V_liquid, V_vapor) or
               (p, V_liquid, V_vapor) tuple
        provider: InitialGuess instance used when no guess is supplied. Defaults to the generic provider
        tol: Convergence tolerance on the dimensionless pressure and chemical potential residuals
        max_iter: Iteration limit

        Newton iteration in (ln V_liquid, ln V_vapor) on
            r1 = (P_liquid - P_vapor)·V_vapor/(R T)
            r2 = (μ_liquid - μ_vapor)/(R T)
        Raises SaturationNotFound (DEGENERATE) at or above the critical temperature, where the
        volumes collapse onto a single root.
    """
    if model.nc != 1:
        raise ValueError(f"Saturation pressure requires a single component model, got {model.nc} components")
    T = validate_temperature(T)
    RT = R * T
    Vl, Vv = _seed(model, T, guess, provider)
    lb = model.lb_volume(T, _PURE)
    x = np.log([Vl, Vv])

    for it in range(max_iter + 1):
        Vl, Vv = np.exp(x)
        Pl, Pv = model.pressure(Vl, T, _PURE), model.pressure(Vv, T, _PURE)
        dPl, dPv = model.dpdv(Vl, T, _PURE), model.dpdv(Vv, T, _PURE)
        lnf_l, lnf_v = model.ln_fugacity(Vl, T, _PURE)[0], model.ln_fugacity(Vv, T, _PURE)[0]
        r = np.array([(Pl - Pv) * Vv / RT, lnf_l - lnf_v])
        if not np.all(np.isfinite(r)):
            raise SaturationNotFound("Non-finite residual", kind=error_kind.OUT_OF_DOMAIN,
                                     iterate={'T': T, 'V_liquid': Vl, 'V_vapor': Vv}, iterations=it)
        if abs(x[1] - x[0]) < MIN_SEPARATION:
            raise SaturationNotFound(f"Liquid and vapor volumes collapsed onto one root at T = {T} K",
                                     kind=error_kind.DEGENERATE,
                                     iterate={'T': T, 'V_liquid': Vl, 'V_vapor': Vv}, iterations=it)
        if np.max(np.abs(r)) <= tol:
            logger.debug(f"    Saturation at T = {T} converged in {it} iterations")
            return SaturationResult(Pv, Vl, Vv, it)
        if it == max_iter:
            break

        J = np.array([[Vl * dPl * Vv / RT, (-Vv * dPv + (Pl - Pv)) * Vv / RT],
                      [Vl**2 * dPl / RT, -Vv**2 * dPv / RT]])
        try:
            dx = np.linalg.solve(J, -r)
        except np.linalg.LinAlgError:
            raise SaturationNotFound(f"Singular Jacobian at T = {T} K", kind=error_kind.DEGENERATE,
                                     iterate={'T': T, 'V_liquid': Vl, 'V_vapor': Vv}, iterations=it)
        biggest = np.max(np.abs(dx))
        if biggest > MAX_LOG_STEP:
            dx *= MAX_LOG_STEP / biggest
        if biggest < 1e-13 and np.max(np.abs(r)) < 1e3 * tol:
            return SaturationResult(Pv, Vl, Vv, it)

        # Halve the step until both volumes remain mechanically stable
        for _ in range(30):
            Vl_new, Vv_new = np.exp(x + dx)
            if Vl_new > lb and model.dpdv(Vl_new, T, _PURE) < 0 and model.dpdv(Vv_new, T, _PURE) < 0:
                break
            dx *= 0.5
        else:
            raise SaturationNotFound(f"No mechanically stable step from the current iterate at T = {T} K",
                                     kind=error_kind.NOT_CONVERGED,
                                     iterate={'T': T, 'V_liquid': Vl, 'V_vapor': Vv}, iterations=it)
        x = x + dx

    raise SaturationNotFound(f"Saturation not converged within {max_iter} iterations at T = {T} K",
                             kind=error_kind.NOT_CONVERGED,
                             iterate={'T': T, 'V_liquid': Vl, 'V_vapor': Vv}, iterations=max_iter)


def saturation_curve(model, temperatures: Sequence[float], threaded: bool = False,
                     provider: Optional[InitialGuess] = None) -> pd.DataFrame:
    """ Returns a DataFrame of saturation states over a temperature sweep

        Sequential sweeps seed each temperature with the previous converged point. Threaded
        sweeps solve every temperature independently from the provider's seed.
        Failed temperatures are kept as rows of NaN.
    """
    temperatures = [float(t) for t in temperatures]

    def solve(T, guess=None):
        try:
            return saturation_pressure(model, T, guess=guess, provider=provider)
        except SaturationNotFound as e:
            logger.info(f"    Skipping T = {T}: {e}")
            return None

    if threaded:
        with ThreadPoolExecutor() as executor:
            results = list(executor.map(solve, temperatures))
    else:
        results, last = [], None
        for T in temperatures:
            res = solve(T, last)
            if res is None and last is not None:
                res = solve(T)
            results.append(res)
            last = res if res is not None else last

    rows = []
    for T, res in zip(temperatures, results):
        if res is None:
            rows.append([T, np.nan, np.nan, np.nan, np.nan])
        else:
            rows.append([T, res.pressure, res.v_liquid, res.v_vapor, res.iterations])
    return pd.DataFrame(rows, columns=['T', 'P', 'V_liquid', 'V_vapor', 'iterations'])


def enthalpy_vaporization(model, T: float, guess=None, provider: Optional[InitialGuess] = None,
                          rel_step: float = 1e-4) -> float:
    """ Returns the enthalpy of vaporization (J/mol) from the Clausius-Clapeyron equation

        ΔH = T (V_vapor - V_liquid) dP_sat/dT, with dP_sat/dT by central difference
    """
    sat = saturation_pressure(model, T, guess=guess, provider=provider)
    h = rel_step * T
    hi = saturation_pressure(model, T + h, guess=sat)
    lo = saturation_pressure(model, T - h, guess=sat)
    dpdt = (hi.pressure - lo.pressure) / (2 * h)
    return T * (sat.v_vapor - sat.v_liquid) * dpdt
