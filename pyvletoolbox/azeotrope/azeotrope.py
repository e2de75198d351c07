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

from pyvletoolbox.classes import error_kind
from pyvletoolbox.constants import NEWTON_TOL, NEWTON_MAX_ITER, MAX_LOG_STEP, MIN_SEPARATION
from pyvletoolbox.errors import NoAzeotrope, VolumeNotFound, reraise_as
from pyvletoolbox.initial import InitialGuess
from pyvletoolbox.shared_fns import damped_newton, expand_fractions, in_simplex
from pyvletoolbox.validate import validate_composition, validate_temperature
from pyvletoolbox.volume import solve_volume

logger = logging.getLogger(__name__)


@dataclass
class AzeotropeResult:
    pressure: float  # Pa
    x: np.ndarray  # Azeotropic composition, common to liquid and vapor
    v_liquid: float  # m³/mol
    v_vapor: float  # m³/mol
    iterations: int
    converged: bool = True


def azeotrope_pressure(model, T: float, guess=None, provider: Optional[InitialGuess] = None,
                       tol: float = NEWTON_TOL, max_iter: int = NEWTON_MAX_ITER) -> AzeotropeResult:
    """ Returns the azeotropic pressure and composition at temperature T

        model: HelmholtzModel instance with at least two components
        T: Temperature (K)
        guess: Optional AzeotropeResult or (p, x) tuple. Defaults to the equimolar composition at
               its Raoult's law pressure
        provider: InitialGuess used for the default pressure
        tol: Residual tolerance
        max_iter: Maximum Newton iterations

        Damped Newton in (ln p, x_1..x_{n-1}) on ln φ_i(liquid) = ln φ_i(vapor) with a common
        composition, restricted to the open simplex. Raises NoAzeotrope when the iterate is
        driven to the simplex boundary (INFEASIBLE) or the two roots coincide (DEGENERATE).
    """
    if model.nc < 2:
        raise ValueError("Azeotropes require at least two components")
    T = validate_temperature(T)
    if guess is None:
        x0 = np.full(model.nc, 1.0 / model.nc)
        provider = provider if provider is not None else InitialGuess()
        p0 = float(x0 @ provider.saturation_pressures(model, T))
    elif isinstance(guess, AzeotropeResult):
        p0, x0 = guess.pressure, guess.x
    else:
        p0, x0 = guess
    x0 = validate_composition(model.nc, x0)
    failure = {}

    def volumes(p, x):
        if not np.all(np.isfinite(x)) or np.any(x < 0):
            return np.nan, np.nan
        try:
            Vl = solve_volume(model, p, T, x, phase='liquid')
        except VolumeNotFound as e:
            failure.update(error=e, stage='liquid volume')
            return np.nan, np.nan
        try:
            Vv = solve_volume(model, p, T, x, phase='vapor')
        except VolumeNotFound as e:
            failure.update(error=e, stage='vapor volume')
            return np.nan, np.nan
        return Vl, Vv

    def residual(u):
        p, x = np.exp(u[0]), expand_fractions(u[1:])
        Vl, Vv = volumes(p, x)
        if not np.isfinite(Vl):
            return np.full(model.nc, np.nan)
        return model.ln_fugacity_coeff(Vl, T, x) - model.ln_fugacity_coeff(Vv, T, x)

    def feasible(u):
        return in_simplex(expand_fractions(u[1:]))

    res = damped_newton(residual, np.append(np.log(p0), x0[:-1]), tol=tol, max_iter=max_iter,
                        max_step=MAX_LOG_STEP, feasible=feasible)
    p, x = np.exp(res.x[0]), expand_fractions(res.x[1:])
    iterate = {'p': p, 'T': T, 'x': x}
    if not res.converged:
        if res.status == 'non-finite' and 'error' in failure:
            reraise_as(NoAzeotrope, failure['error'], stage=failure['stage'], iterate=iterate)
        if res.status in ('infeasible', 'stalled'):
            raise NoAzeotrope("Iteration driven to the composition simplex boundary, no azeotrope in the open simplex",
                              kind=error_kind.INFEASIBLE, iterate=iterate, iterations=res.iterations)
        kind = error_kind.DEGENERATE if res.status == 'singular' else error_kind.NOT_CONVERGED
        raise NoAzeotrope(f"Newton iteration ended with status '{res.status}'", kind=kind, iterate=iterate,
                          iterations=res.iterations)

    Vl, Vv = volumes(p, x)
    if not np.isfinite(Vl):
        reraise_as(NoAzeotrope, failure['error'], stage=failure['stage'], iterate=iterate)
    if abs(np.log(Vv / Vl)) < MIN_SEPARATION:
        raise NoAzeotrope("Liquid and vapor roots coincide, trivial solution", kind=error_kind.DEGENERATE,
                          iterate=iterate, iterations=res.iterations)
    logger.debug(f"    Azeotrope at T = {T}: p = {p}, x = {x} in {res.iterations} iterations")
    return AzeotropeResult(p, x, Vl, Vv, res.iterations)
