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
from dataclasses import dataclass, field, fields, replace
from typing import Callable, List, Optional, Sequence, Tuple, Any
import numpy as np
import pandas as pd
from tabulate import tabulate

from pyvletoolbox.classes import error_kind
from pyvletoolbox.constants import R, NEWTON_TOL, NEWTON_MAX_ITER, MIN_SEPARATION
from pyvletoolbox.critical import crit_mix, ucst_mix, criticality_residuals
from pyvletoolbox.errors import PhaseEquilibriumError, CriticalPointNotFound
from pyvletoolbox.initial import InitialGuess
from pyvletoolbox.lle import vlle_pressure
from pyvletoolbox.shared_fns import damped_newton

logger = logging.getLogger(__name__)


@dataclass
class LocusCurve:
    """ Ordered (parameter value, result) points of a traced curve

        parameter: Name of the continuation parameter, e.g. 'T' or 'x1'
        points: Converged (value, result) pairs in tracing order
        failed: Parameter values whose solve failed and were skipped
        terminated: 'endpoint reached' or 'consecutive failures'
    """
    parameter: str
    points: List[Tuple[float, Any]] = field(default_factory=list)
    failed: List[float] = field(default_factory=list)
    terminated: str = 'endpoint reached'

    @property
    def values(self):
        return [v for v, _ in self.points]

    @property
    def results(self):
        return [r for _, r in self.points]

    def __len__(self):
        return len(self.points)

    def to_dataframe(self) -> pd.DataFrame:
        """ One row per converged point. Array fields are spread over numbered columns (x1, x2, ...)"""
        rows = []
        for value, res in self.points:
            row = {self.parameter: value}
            for f in fields(res):
                if f.name == 'converged':
                    continue
                item = getattr(res, f.name)
                if isinstance(item, np.ndarray):
                    for i, v in enumerate(item):
                        row[f"{f.name}{i + 1}"] = v
                else:
                    row[f.name] = item
            rows.append(row)
        return pd.DataFrame(rows)

    def __str__(self):
        df = self.to_dataframe()
        if df.empty:
            return f"Empty curve ({self.terminated})"
        return tabulate(df, headers='keys', showindex=False)

    def export(self, filename: str) -> str:
        """ Writes the curve to an Excel workbook and returns it as a text table"""
        self.to_dataframe().to_excel(filename, index=False, engine="openpyxl")
        return str(self)


def _extrapolate(older, newer, v_older, v_newer, v):
    """ Linear extrapolation of every numeric field of a result dataclass to parameter value v.
        Positive scalars are extrapolated in their logarithm, compositions are kept in the simplex.
    """
    if v_newer == v_older:
        return newer
    t = (v - v_newer) / (v_newer - v_older)
    changes = {}
    for f in fields(newer):
        a, b = getattr(older, f.name), getattr(newer, f.name)
        if f.name in ('iterations', 'converged'):
            continue
        if isinstance(b, np.ndarray) and isinstance(a, np.ndarray) and a.shape == b.shape:
            new = b + t * (b - a)
            if np.all(b >= 0) and abs(np.sum(b) - 1.0) < 1e-8:
                new = np.clip(new, 1e-10, None)
                new = new / np.sum(new)
            changes[f.name] = new
        elif isinstance(b, float) and np.isfinite(a) and np.isfinite(b):
            changes[f.name] = float(b * (b / a)**t) if a > 0 and b > 0 else b + t * (b - a)
    return replace(newer, **changes)


def trace(solve: Callable, values: Sequence[float], seed=None, max_failures: int = 2,
          extrapolate: bool = True, parameter: str = 'parameter') -> LocusCurve:
    """
    Natural parameter continuation of a point solver.

    Args:
        solve: Callable solve(value, seed) returning a result dataclass or raising a PhaseEquilibriumError
        values: Ordered parameter values
        seed: Optional seed for the first point. None lets the solver use its own default
        max_failures: Stop after this many consecutive failed points
        extrapolate: Seed each point by linear extrapolation from the last two converged points.
                     A failed extrapolated seed is retried once from the last converged point
        parameter: Name of the parameter, used as a column heading

    Returns: LocusCurve
    """
    curve = LocusCurve(parameter)
    consecutive = 0
    for value in values:
        value = float(value)
        last = curve.points[-1] if curve.points else None
        candidates = []
        if last is not None and extrapolate and len(curve.points) > 1:
            v_older, r_older = curve.points[-2]
            candidates.append(_extrapolate(r_older, last[1], v_older, last[0], value))
        candidates.append(last[1] if last is not None else seed)

        result = None
        for guess in candidates:
            try:
                result = solve(value, guess)
                break
            except PhaseEquilibriumError as e:
                logger.info(f"    {parameter} = {value}: {e}")
        if result is None:
            curve.failed.append(value)
            consecutive += 1
            if consecutive >= max_failures:
                curve.terminated = 'consecutive failures'
                logger.warning(f"    Stopping trace at {parameter} = {value} after {consecutive} consecutive failures")
                break
            continue
        consecutive = 0
        curve.points.append((value, result))
    return curve


def crit_locus(model, x1_values: Sequence[float], provider: Optional[InitialGuess] = None, **kwargs) -> LocusCurve:
    """ Vapor-liquid critical line of a binary mixture, traced over the first component mole fraction"""
    if model.nc != 2:
        raise ValueError(f"crit_locus requires a binary model, got {model.nc} components")

    def solve(x1, seed):
        return crit_mix(model, [x1, 1.0 - x1], guess=seed, provider=provider)
    return trace(solve, x1_values, parameter='x1', **kwargs)


def ucst_curve(model, temperatures: Sequence[float], **kwargs) -> LocusCurve:
    """ Liquid-liquid critical line of a binary mixture, traced over temperature"""
    def solve(T, seed):
        return ucst_mix(model, T, guess=seed)
    return trace(solve, temperatures, parameter='T', **kwargs)


def vlle_curve(model, temperatures: Sequence[float], provider: Optional[InitialGuess] = None, **kwargs) -> LocusCurve:
    """ Three-phase line of a binary mixture, traced over temperature"""
    def solve(T, seed):
        return vlle_pressure(model, T, guess=seed, provider=provider)
    return trace(solve, temperatures, parameter='T', **kwargs)


@dataclass
class UCEPResult:
    temperature: float  # K
    pressure: float  # Pa
    v_critical: float  # Critical liquid molar volume (m³/mol)
    x: np.ndarray  # Critical liquid mole fractions
    v_vapor: float  # Vapor molar volume (m³/mol)
    y: np.ndarray  # Vapor mole fractions
    iterations: int
    converged: bool = True


def _ucep_seed(model, temperatures, provider, refinements=6):
    """ Follows the three-phase line up in temperature and bisects the last step, returning the
        highest converged temperature and its VLLEResult
    """
    curve = vlle_curve(model, temperatures, provider=provider)
    if not curve.points:
        raise CriticalPointNotFound("No three-phase point converged along the temperature ramp",
                                    kind=error_kind.NOT_CONVERGED, stage='three-phase line')
    T_ok, res_ok = curve.points[-1]
    above = [T for T in curve.failed if T > T_ok]
    if above:
        T_fail = min(above)
        for _ in range(refinements):
            T_mid = 0.5 * (T_ok + T_fail)
            try:
                res_ok, T_ok = vlle_pressure(model, T_mid, guess=res_ok), T_mid
            except PhaseEquilibriumError:
                T_fail = T_mid
    return T_ok, res_ok


def ucep_mix(model, guess=None, temperatures: Optional[Sequence[float]] = None,
             provider: Optional[InitialGuess] = None, tol: float = NEWTON_TOL,
             max_iter: int = NEWTON_MAX_ITER) -> UCEPResult:
    """
    Upper critical end point of a binary mixture: a critical liquid in equilibrium with a vapor.

    Args:
        model: Binary HelmholtzModel
        guess: Optional UCEPResult or (T, V_critical, x1, V_vapor, y1) tuple
        temperatures: Increasing temperature ramp for the three-phase line used to seed the solve.
                      Defaults to 60 points from half the lowest to the highest pure component
                      critical temperature
        provider: InitialGuess used for pure component critical temperatures and the first
                  three-phase point
        tol: Residual tolerance
        max_iter: Maximum Newton iterations

    Newton in (ln T, ln V_c, x1, ln V_v, y1) on the two criticality conditions of the liquid,
    pressure equality and the two fugacity equalities between liquid and vapor.
    """
    if model.nc != 2:
        raise ValueError(f"ucep_mix requires a binary model, got {model.nc} components")
    if guess is None:
        if temperatures is None:
            provider = provider if provider is not None else InitialGuess()
            tc = [provider.crit_pure(model.pure_model(i))[0] for i in range(2)]
            temperatures = np.linspace(0.5 * min(tc), max(tc), 60)
        T0, vlle = _ucep_seed(model, temperatures, provider)
        u0 = np.array([np.log(T0), np.log(0.5 * (vlle.v_x + vlle.v_w)), 0.5 * (vlle.x[0] + vlle.w[0]),
                       np.log(vlle.v_v), vlle.y[0]])
    elif isinstance(guess, UCEPResult):
        u0 = np.array([np.log(guess.temperature), np.log(guess.v_critical), guess.x[0],
                       np.log(guess.v_vapor), guess.y[0]])
    else:
        T0, Vc0, x0, Vv0, y0 = guess
        u0 = np.array([np.log(T0), np.log(Vc0), x0, np.log(Vv0), y0])
    ref = [None]

    def unpack(u):
        return np.exp(u[0]), np.exp(u[1]), np.array([u[2], 1 - u[2]]), np.exp(u[3]), np.array([u[4], 1 - u[4]])

    def residual(u):
        T, Vc, x, Vv, y = unpack(u)
        lam, cubic = criticality_residuals(model, Vc, T, x, ref)
        dp = (model.pressure(Vc, T, x) - model.pressure(Vv, T, y)) * Vv / (R * T)
        dlnf = model.ln_fugacity(Vc, T, x) - model.ln_fugacity(Vv, T, y)
        return np.array([lam, cubic, dp, dlnf[0], dlnf[1]])

    def feasible(u):
        T, Vc, x, Vv, y = unpack(u)
        return (0 < u[2] < 1 and 0 < u[4] < 1 and Vc > model.lb_volume(T, x) and Vv > model.lb_volume(T, y)
                and abs(u[3] - u[1]) > MIN_SEPARATION)

    res = damped_newton(residual, u0, tol=tol, max_iter=max_iter, max_step=0.1, feasible=feasible)
    T, Vc, x, Vv, y = unpack(res.x)
    if not res.converged:
        kind = error_kind.DEGENERATE if res.status == 'singular' else error_kind.NOT_CONVERGED
        raise CriticalPointNotFound(f"Upper critical end point not found, Newton iteration ended with status '{res.status}'",
                                    kind=kind, iterate={'T': T, 'V_critical': Vc, 'x': x, 'V_vapor': Vv, 'y': y},
                                    iterations=res.iterations)
    p = model.pressure(Vv, T, y)
    logger.debug(f"    UCEP T = {T}, p = {p} in {res.iterations} iterations")
    return UCEPResult(T, p, Vc, x, Vv, y, res.iterations)
