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

from pyvletoolbox.classes import phase, error_kind
from pyvletoolbox.constants import SS_TOL, SS_MAX_ITER, NEWTON_TOL, NEWTON_MAX_ITER, MAX_LOG_STEP, TRIVIAL_TOL
from pyvletoolbox.errors import PhaseSplitNotFound, FlashInfeasible, VolumeNotFound, reraise_as
from pyvletoolbox.flash import FlashResult, rachford_rice, rachford_rice_multiphase
from pyvletoolbox.initial import InitialGuess
from pyvletoolbox.shared_fns import damped_newton, expand_fractions, in_simplex
from pyvletoolbox.validate import validate_composition, validate_temperature
from pyvletoolbox.volume import solve_volume

logger = logging.getLogger(__name__)


@dataclass
class LLEResult:
    pressure: float  # Pa
    x: np.ndarray  # First liquid mole fractions
    w: np.ndarray  # Second liquid mole fractions
    beta: float  # Fraction of the second liquid. nan when no feed is involved
    v_x: float  # First liquid molar volume (m³/mol)
    v_w: float  # Second liquid molar volume (m³/mol)
    iterations: int
    converged: bool = True


@dataclass
class VLLEResult:
    pressure: float  # Pa
    x: np.ndarray  # First liquid mole fractions
    w: np.ndarray  # Second liquid mole fractions
    y: np.ndarray  # Vapor mole fractions
    v_x: float  # m³/mol
    v_w: float  # m³/mol
    v_v: float  # m³/mol
    iterations: int
    converged: bool = True


def _normalized(x):
    x = np.clip(x, 1e-15, None)
    return x / np.sum(x)


def _volume(model, p, T, comp, which, stage):
    try:
        return solve_volume(model, p, T, comp, phase=which)
    except VolumeNotFound as e:
        reraise_as(PhaseSplitNotFound, e, stage=stage, iterate={'p': p, 'T': T, 'composition': comp})


def _check_distinct(x, w, p, T, iterations):
    if np.max(np.abs(x - w)) < TRIVIAL_TOL:
        raise PhaseSplitNotFound(f"Liquid phases converged onto each other at p = {p} Pa, T = {T} K",
                                 kind=error_kind.DEGENERATE, iterate={'p': p, 'T': T, 'x': x, 'w': w},
                                 iterations=iterations)


def lle_flash(model, p: float, T: float, z: npt.ArrayLike, guess=None,
              tol: float = SS_TOL, max_iter: int = SS_MAX_ITER) -> LLEResult:
    """
    Liquid-liquid flash at fixed pressure and temperature.

    Damped successive substitution on K_i = φ_i(x)/φ_i(w) with the two-phase Rachford-Rice
    split, both phase volumes taken from the liquid branch.

    Args:
        model: HelmholtzModel instance
        p: Pressure (Pa)
        T: Temperature (K)
        z: Feed composition
        guess: Optional LLEResult or (x, w) tuple of liquid compositions. Defaults to
               x = (z + e_1)/2 enriched in the first component, w from the mass balance at β = 0.5
        tol: Convergence tolerance on K-values
        max_iter: Maximum iterations

    Returns: LLEResult, beta the fraction of liquid w.
    Raises PhaseSplitNotFound if the feed does not split or the liquids converge onto each other.
    """
    T = validate_temperature(T)
    z = validate_composition(model.nc, z)
    if guess is None:
        e0 = np.zeros(model.nc)
        e0[0] = 1.0
        x = 0.5 * (z + e0)
        w = _normalized(2.0 * z - x)
    elif isinstance(guess, LLEResult):
        x, w = guess.x, guess.w
    else:
        x, w = guess
    K = _normalized(w) / _normalized(x)

    for it in range(1, max_iter + 1):
        try:
            rr = rachford_rice(z, K)
        except FlashInfeasible as e:
            reraise_as(PhaseSplitNotFound, e, stage='rachford-rice', iterate={'p': p, 'T': T, 'K': K})
        x, w = _normalized(rr.x), _normalized(rr.y)
        Vx = _volume(model, p, T, x, 'liquid', 'first liquid volume')
        Vw = _volume(model, p, T, w, 'liquid', 'second liquid volume')
        K_new = np.exp(np.clip(model.ln_fugacity_coeff(Vx, T, x) - model.ln_fugacity_coeff(Vw, T, w), -23.0, 23.0))
        if np.max(np.abs(K_new / K - 1.0)) < tol:
            K = K_new
            break
        damp = 0.7 if it < 20 else 0.9
        K = K * (K_new / K)**damp
    else:
        raise PhaseSplitNotFound(f"Liquid-liquid flash not converged within {max_iter} iterations",
                                 kind=error_kind.NOT_CONVERGED, iterate={'p': p, 'T': T, 'K': K}, iterations=max_iter)

    try:
        rr = rachford_rice(z, K)
    except FlashInfeasible as e:
        reraise_as(PhaseSplitNotFound, e, stage='rachford-rice', iterate={'p': p, 'T': T, 'K': K})
    x, w = _normalized(rr.x), _normalized(rr.y)
    _check_distinct(x, w, p, T, it)
    Vx = _volume(model, p, T, x, 'liquid', 'first liquid volume')
    Vw = _volume(model, p, T, w, 'liquid', 'second liquid volume')
    return LLEResult(p, x, w, rr.beta, Vx, Vw, it)


class _VolumeTracker:
    """ Residual helper that turns volume failures into non-finite residuals for the Newton
        iteration, remembering the last failure so it can be re-raised with its stage
    """

    def __init__(self, model, T):
        self.model, self.T = model, T
        self.error, self.stage = None, None

    def volume(self, p, comp, which, stage):
        if not np.all(np.isfinite(comp)) or np.any(comp < 0):
            return np.nan
        try:
            return solve_volume(self.model, p, self.T, comp, phase=which)
        except VolumeNotFound as e:
            self.error, self.stage = e, stage
            return np.nan

    def ln_f(self, V, comp):
        if not np.isfinite(V):
            return np.full(comp.size, np.nan)
        return self.model.ln_fugacity(V, self.T, comp)

    def fail(self, res, what, iterate):
        if res.status == 'non-finite' and self.error is not None:
            reraise_as(PhaseSplitNotFound, self.error, stage=self.stage, iterate=iterate)
        kind = {'singular': error_kind.DEGENERATE, 'infeasible': error_kind.INFEASIBLE}.get(res.status, error_kind.NOT_CONVERGED)
        raise PhaseSplitNotFound(f"{what} not found, Newton iteration ended with status '{res.status}'",
                                 kind=kind, iterate=iterate, iterations=res.iterations)


def lle_pressure(model, T: float, x: npt.ArrayLike, guess=None, provider: Optional[InitialGuess] = None,
                 tol: float = NEWTON_TOL, max_iter: int = NEWTON_MAX_ITER) -> LLEResult:
    """
    Pressure at which liquid x coexists with a second liquid w at temperature T.

    Args:
        model: HelmholtzModel instance
        T: Temperature (K)
        x: Composition of the first liquid
        guess: Optional LLEResult or (p, w) tuple. Defaults to Raoult's law pressure and
               w_i ∝ 1/x_i, or w enriched in the leanest component of a near-equimolar x
        provider: InitialGuess used for the default pressure
        tol: Residual tolerance on ln(f) equality
        max_iter: Maximum Newton iterations

    Damped Newton in (ln p, w_1..w_{n-1}) on ln f_i(x) = ln f_i(w). Returns LLEResult with beta nan.
    """
    T = validate_temperature(T)
    x = validate_composition(model.nc, x)
    if guess is None:
        provider = provider if provider is not None else InitialGuess()
        p0 = float(x @ provider.saturation_pressures(model, T))
        w0 = _normalized(1.0 / np.clip(x, 1e-10, None))
        if np.max(np.abs(w0 - x)) < 0.1:
            # 1/x maps a near-equimolar liquid onto itself, enrich w in the leanest component instead
            w0 = 0.5 * x
            w0[np.argmin(x)] += 0.5
    elif isinstance(guess, LLEResult):
        p0, w0 = guess.pressure, guess.w
    else:
        p0, w0 = guess
    w0 = validate_composition(model.nc, w0)
    tracker = _VolumeTracker(model, T)

    def residual(u):
        p, w = np.exp(u[0]), expand_fractions(u[1:])
        Vx = tracker.volume(p, x, 'liquid', 'first liquid volume')
        Vw = tracker.volume(p, w, 'liquid', 'second liquid volume')
        return tracker.ln_f(Vx, x) - tracker.ln_f(Vw, w)

    def feasible(u):
        w = expand_fractions(u[1:])
        return in_simplex(w) and np.max(np.abs(w - x)) > TRIVIAL_TOL

    res = damped_newton(residual, np.append(np.log(p0), w0[:-1]), tol=tol, max_iter=max_iter,
                        max_step=MAX_LOG_STEP, feasible=feasible)
    p, w = np.exp(res.x[0]), expand_fractions(res.x[1:])
    if not res.converged:
        tracker.fail(res, "Liquid-liquid pressure", {'p': p, 'T': T, 'x': x, 'w': w})
    _check_distinct(x, w, p, T, res.iterations)
    Vx = _volume(model, p, T, x, 'liquid', 'first liquid volume')
    Vw = _volume(model, p, T, w, 'liquid', 'second liquid volume')
    return LLEResult(p, x, w, np.nan, Vx, Vw, res.iterations)


def vlle_pressure(model, T: float, guess=None, provider: Optional[InitialGuess] = None,
                  tol: float = NEWTON_TOL, max_iter: int = NEWTON_MAX_ITER) -> VLLEResult:
    """
    Three-phase (vapor-liquid-liquid) pressure of a binary mixture at temperature T.

    Args:
        model: Binary HelmholtzModel
        T: Temperature (K)
        guess: Optional VLLEResult or (p, x, w, y) tuple. Defaults to the sum of the pure
               component vapor pressures, liquids from an LLE flash of the equimolar feed at
               that pressure, and a vapor with y_i ∝ Psat_i
        provider: InitialGuess used for the default seed
        tol: Residual tolerance
        max_iter: Maximum Newton iterations

    Newton in (ln p, x1, w1, y1) on ln f_i(x) = ln f_i(w) and ln f_i(x) = ln f_i(y).
    """
    if model.nc != 2:
        raise ValueError(f"vlle_pressure requires a binary model, got {model.nc} components")
    T = validate_temperature(T)
    if guess is None:
        provider = provider if provider is not None else InitialGuess()
        psat = provider.saturation_pressures(model, T)
        p0 = float(np.sum(psat))
        try:
            lle = lle_flash(model, p0, T, [0.5, 0.5])
        except PhaseSplitNotFound as e:
            reraise_as(PhaseSplitNotFound, e, stage='initial guess')
        x0, w0, y0 = lle.x, lle.w, psat / p0
    elif isinstance(guess, VLLEResult):
        p0, x0, w0, y0 = guess.pressure, guess.x, guess.w, guess.y
    else:
        p0, x0, w0, y0 = guess
    tracker = _VolumeTracker(model, T)

    def unpack(u):
        return np.exp(u[0]), np.array([u[1], 1 - u[1]]), np.array([u[2], 1 - u[2]]), np.array([u[3], 1 - u[3]])

    def residual(u):
        p, x, w, y = unpack(u)
        ln_fx = tracker.ln_f(tracker.volume(p, x, 'liquid', 'first liquid volume'), x)
        ln_fw = tracker.ln_f(tracker.volume(p, w, 'liquid', 'second liquid volume'), w)
        ln_fy = tracker.ln_f(tracker.volume(p, y, 'vapor', 'vapor volume'), y)
        return np.concatenate([ln_fx - ln_fw, ln_fx - ln_fy])

    def feasible(u):
        return np.all((u[1:] > 0) & (u[1:] < 1)) and abs(u[1] - u[2]) > TRIVIAL_TOL

    u0 = np.array([np.log(p0), x0[0], w0[0], y0[0]])
    res = damped_newton(residual, u0, tol=tol, max_iter=max_iter, max_step=MAX_LOG_STEP, feasible=feasible)
    p, x, w, y = unpack(res.x)
    if not res.converged:
        tracker.fail(res, "Three-phase pressure", {'p': p, 'T': T, 'x': x, 'w': w, 'y': y})
    _check_distinct(x, w, p, T, res.iterations)
    Vx = _volume(model, p, T, x, 'liquid', 'first liquid volume')
    Vw = _volume(model, p, T, w, 'liquid', 'second liquid volume')
    Vv = _volume(model, p, T, y, 'vapor', 'vapor volume')
    logger.debug(f"    Three-phase pressure at T = {T}: p = {p} in {res.iterations} iterations")
    return VLLEResult(p, x, w, y, Vx, Vw, Vv, res.iterations)


def vlle_flash(model, p: float, T: float, z: npt.ArrayLike, guess=None,
               tol: float = SS_TOL, max_iter: int = SS_MAX_ITER) -> FlashResult:
    """
    Vapor-liquid-liquid flash at fixed pressure and temperature.

    Successive substitution on the K-values of the second liquid and the vapor relative to the
    first liquid, with the multiphase Rachford-Rice mass balance. Intermediate iterations may
    pass through negative phase fractions, the converged split may not.

    Args:
        model: HelmholtzModel instance with at least three components
        p: Pressure (Pa)
        T: Temperature (K)
        z: Feed composition
        guess: Optional FlashResult or VLLEResult. Defaults to an LLE flash of the feed, with the
               vapor seeded from the first liquid's fugacities
        tol: Convergence tolerance on K-values
        max_iter: Maximum iterations

    Returns: FlashResult with phases (liquid, liquid, vapor).
    """
    T = validate_temperature(T)
    z = validate_composition(model.nc, z)
    if model.nc < 3:
        raise ValueError("A three-phase flash at fixed pressure and temperature needs at least three components")
    if guess is None:
        try:
            lle = lle_flash(model, p, T, z)
        except PhaseSplitNotFound as e:
            reraise_as(PhaseSplitNotFound, e, stage='initial guess')
        x, w = lle.x, lle.w
        y = _normalized(x * np.exp(model.ln_fugacity_coeff(lle.v_x, T, x)))
    elif isinstance(guess, VLLEResult):
        x, w, y = guess.x, guess.w, guess.y
    else:
        x, w, y = guess.compositions
    K = np.vstack([w / x, y / x])
    beta = None

    for it in range(1, max_iter + 1):
        if beta is not None and not np.all(1.0 + beta @ (K - 1.0) > 0):
            beta = None
        try:
            rr = rachford_rice_multiphase(z, K, beta0=beta, negative=True)
        except FlashInfeasible as e:
            reraise_as(PhaseSplitNotFound, e, stage='rachford-rice', iterate={'p': p, 'T': T, 'K': K})
        beta = rr.beta
        x, w, y = (_normalized(c) for c in rr.compositions)
        Vx = _volume(model, p, T, x, 'liquid', 'first liquid volume')
        Vw = _volume(model, p, T, w, 'liquid', 'second liquid volume')
        Vv = _volume(model, p, T, y, 'vapor', 'vapor volume')
        lnphi_x = model.ln_fugacity_coeff(Vx, T, x)
        K_new = np.exp(np.clip(np.vstack([lnphi_x - model.ln_fugacity_coeff(Vw, T, w),
                                          lnphi_x - model.ln_fugacity_coeff(Vv, T, y)]), -23.0, 23.0))
        if np.max(np.abs(K_new / K - 1.0)) < tol:
            break
        K = K_new
    else:
        raise PhaseSplitNotFound(f"Three-phase flash not converged within {max_iter} iterations",
                                 kind=error_kind.NOT_CONVERGED, iterate={'p': p, 'T': T, 'K': K}, iterations=max_iter)

    if np.any(rr.phase_fractions < 0) or np.any(rr.phase_fractions > 1):
        raise PhaseSplitNotFound(f"Three-phase flash converged to phase fractions {rr.phase_fractions} outside [0, 1]",
                                 kind=error_kind.INFEASIBLE, iterate={'p': p, 'T': T, 'K': K}, iterations=it)

    _check_distinct(x, w, p, T, it)
    return FlashResult(p, T, (phase.LIQUID, phase.LIQUID, phase.VAPOR), rr.phase_fractions,
                       np.array([x, w, y]), np.array([Vx, Vw, Vv]), it)
