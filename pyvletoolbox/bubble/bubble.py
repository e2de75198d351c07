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
from dataclasses import dataclass
from typing import Optional
import numpy as np
import numpy.typing as npt

from pyvletoolbox.classes import error_kind
from pyvletoolbox.constants import SS_TOL, SS_MAX_ITER, MAX_LOG_STEP, MIN_SEPARATION
from pyvletoolbox.errors import BubblePointNotFound, DewPointNotFound, VolumeNotFound, reraise_as
from pyvletoolbox.initial import InitialGuess
from pyvletoolbox.validate import validate_composition, validate_temperature
from pyvletoolbox.volume import solve_volume

logger = logging.getLogger(__name__)


@dataclass
class BubblePointResult:
    pressure: float  # Pa
    y: np.ndarray  # Incipient vapor mole fractions
    v_liquid: float  # m³/mol
    v_vapor: float  # m³/mol
    iterations: int
    converged: bool = True


@dataclass
class DewPointResult:
    pressure: float  # Pa
    x: np.ndarray  # Incipient liquid mole fractions
    v_liquid: float  # m³/mol
    v_vapor: float  # m³/mol
    iterations: int
    converged: bool = True


def _unpack_guess(guess, result_cls, field):
    """ Returns (pressure, composition or None) from a result object or (p, composition) / (p,) / p"""
    if isinstance(guess, result_cls):
        return guess.pressure, getattr(guess, field)
    if np.isscalar(guess):
        return float(guess), None
    if len(guess) == 1:
        return float(guess[0]), None
    return float(guess[0]), np.asarray(guess[1], dtype=float)


def _saturation_point(model, T, fixed, guess, provider, tol, max_iter, bubble):
    """ Shared successive substitution loop with a secant update of ln(p)

        For bubble points the fixed phase is the liquid and S = Σ K x, for dew points the fixed
        phase is the vapor and S = Σ y / K. The pressure is corrected until ln(S) = 0.
    """
    error_cls = BubblePointNotFound if bubble else DewPointNotFound
    fixed_phase, trial_phase = ('liquid', 'vapor') if bubble else ('vapor', 'liquid')

    p = comp = None
    if guess is not None:
        p, comp = _unpack_guess(guess, BubblePointResult if bubble else DewPointResult, 'y' if bubble else 'x')
    if p is None or comp is None:
        provider = provider if provider is not None else InitialGuess()
        psat = provider.saturation_pressures(model, T)
        if bubble:
            p0 = float(fixed @ psat)
            comp0 = fixed * psat / p0
        else:
            p0 = 1.0 / float(np.sum(fixed / psat))
            comp0 = fixed * p0 / psat
        p = p if p is not None else p0
        comp = comp if comp is not None else comp0
    comp = validate_composition(model.nc, comp)

    ideal_slope = -1.0 if bubble else 1.0
    lnp, prev = np.log(p), None
    for it in range(1, max_iter + 1):
        p = np.exp(lnp)
        try:
            V_fixed = solve_volume(model, p, T, fixed, phase=fixed_phase)
        except VolumeNotFound as e:
            reraise_as(error_cls, e, stage=f'{fixed_phase} volume', iterate={'p': p, 'T': T, 'composition': comp})
        try:
            V_trial = solve_volume(model, p, T, comp, phase=trial_phase)
        except VolumeNotFound as e:
            reraise_as(error_cls, e, stage=f'{trial_phase} volume', iterate={'p': p, 'T': T, 'composition': comp})
        if abs(np.log(V_trial / V_fixed)) < MIN_SEPARATION:
            raise error_cls(f"Liquid and vapor roots coincide at p = {p} Pa, trivial solution",
                            kind=error_kind.DEGENERATE, iterate={'p': p, 'T': T, 'composition': comp}, iterations=it)

        lnphi_fixed = model.ln_fugacity_coeff(V_fixed, T, fixed)
        lnphi_trial = model.ln_fugacity_coeff(V_trial, T, comp)
        w = fixed * np.exp(lnphi_fixed - lnphi_trial)  # K x for bubble points, y / K for dew points
        S = np.sum(w)
        if not np.isfinite(S) or S <= 0 or np.any(w < 0):
            raise error_cls("Composition update left the physical simplex", kind=error_kind.INFEASIBLE,
                            iterate={'p': p, 'T': T, 'composition': comp}, iterations=it)
        comp_new = w / S
        lnS = np.log(S)
        change = np.max(np.abs(comp_new - comp))
        comp = comp_new
        if abs(lnS) <= tol and change <= tol:
            V_liq, V_vap = (V_fixed, V_trial) if bubble else (V_trial, V_fixed)
            logger.debug(f"    {'Bubble' if bubble else 'Dew'} point at T = {T} converged in {it} iterations, p = {p}")
            return p, comp, V_liq, V_vap, it

        slope = ideal_slope
        if prev is not None and lnp != prev[0]:
            secant = (lnS - prev[1]) / (lnp - prev[0])
            if np.isfinite(secant) and secant * ideal_slope > 0:
                slope = secant
        step = float(np.clip(-lnS / slope, -MAX_LOG_STEP, MAX_LOG_STEP))
        prev = (lnp, lnS)
        lnp += step

    raise error_cls(f"Not converged within {max_iter} iterations", kind=error_kind.NOT_CONVERGED,
                    iterate={'p': np.exp(lnp), 'T': T, 'composition': comp}, iterations=max_iter)


def bubble_pressure(model, T: float, x: npt.ArrayLike, guess=None, provider: Optional[InitialGuess] = None,
                    tol: float = SS_TOL, max_iter: int = SS_MAX_ITER) -> BubblePointResult:
    """ Returns the bubble point pressure and incipient vapor composition of liquid x at temperature T

        model: HelmholtzModel instance
        T: Temperature (K)
        x: Liquid composition
        guess: Optional BubblePointResult, (p, y) tuple or pressure
        provider: InitialGuess used when no guess is given. Seeds from Raoult's law
        tol: Tolerance on ln(Σ K x) and on the vapor composition update
        max_iter: Maximum iterations
    """
    T = validate_temperature(T)
    x = validate_composition(model.nc, x)
    p, y, Vl, Vv, it = _saturation_point(model, T, x, guess, provider, tol, max_iter, bubble=True)
    return BubblePointResult(p, y, Vl, Vv, it)


def dew_pressure(model, T: float, y: npt.ArrayLike, guess=None, provider: Optional[InitialGuess] = None,
                 tol: float = SS_TOL, max_iter: int = SS_MAX_ITER) -> DewPointResult:
    """ Returns the dew point pressure and incipient liquid composition of vapor y at temperature T

        model: HelmholtzModel instance
        T: Temperature (K)
        y: Vapor composition
        guess: Optional DewPointResult, (p, x) tuple or pressure
        provider: InitialGuess used when no guess is given. Seeds from Raoult's law
        tol: Tolerance on ln(Σ y / K) and on the liquid composition update
        max_iter: Maximum iterations
    """
    T = validate_temperature(T)
    y = validate_composition(model.nc, y)
    p, x, Vl, Vv, it = _saturation_point(model, T, y, guess, provider, tol, max_iter, bubble=False)
    return DewPointResult(p, x, Vl, Vv, it)
