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
from pyvletoolbox.constants import R, NEWTON_TOL, NEWTON_MAX_ITER, MAX_LOG_STEP
from pyvletoolbox.errors import CriticalPointNotFound
from pyvletoolbox.initial import InitialGuess
from pyvletoolbox.shared_fns import damped_newton
from pyvletoolbox.validate import validate_composition, validate_temperature

logger = logging.getLogger(__name__)

_PURE = np.ones(1)


@dataclass
class CriticalPointResult:
    temperature: float  # K
    pressure: float  # Pa
    volume: float  # Molar volume (m³/mol)
    composition: np.ndarray  # Mole fractions
    iterations: int
    converged: bool = True


def _raise_failure(res, what, iterate):
    kind = error_kind.DEGENERATE if res.status == 'singular' else error_kind.NOT_CONVERGED
    raise CriticalPointNotFound(f"{what} not found, Newton iteration ended with status '{res.status}'",
                                kind=kind, iterate=iterate, iterations=res.iterations)


def criticality_residuals(model, V, T, z, ref):
    """ Returns (λ_min, cubic form) of the composition Hessian Q at (V, T, z)

        λ_min is the smallest eigenvalue of Q and the cubic form is Σ A_ijk Δn_i Δn_j Δn_k along
        its eigenvector Δn, from a central difference of Δnᵀ Q(n + sΔn) Δn. The eigenvector sign
        follows the reference direction ref (updated in place on first use).
    """
    Q = model.composition_hessian(V, T, z)
    w, vecs = np.linalg.eigh(Q)
    lam, dn = w[0], vecs[:, 0]
    if ref[0] is None:
        ref[0] = dn
    elif dn @ ref[0] < 0:
        dn = -dn
    s = 1e-4 * np.sum(z)
    pos = dn > 0
    neg = dn < 0
    if np.any(neg):
        s = min(s, 0.5 * np.min(z[neg] / -dn[neg]))
    if np.any(pos):
        s = min(s, 0.5 * np.min(z[pos] / dn[pos]))
    cubic = (dn @ model.composition_hessian(V, T, z + s * dn) @ dn
             - dn @ model.composition_hessian(V, T, z - s * dn) @ dn) / (2 * s)
    return lam, cubic


def crit_pure(model, guess=None, provider: Optional[InitialGuess] = None,
              tol: float = NEWTON_TOL, max_iter: int = NEWTON_MAX_ITER) -> CriticalPointResult:
    """ Returns the critical point of a pure component

        model: Single component HelmholtzModel
        guess: Optional CriticalPointResult or (T, V) tuple
        provider: InitialGuess used when no guess is given

        Solves ∂P/∂V = ∂²P/∂V² = 0 in (ln T, ln V), scaled as V²/(RT)·∂P/∂V and V³/(RT)·∂²P/∂V²
    """
    if model.nc != 1:
        raise ValueError(f"crit_pure requires a single component model, got {model.nc} components")
    if guess is None:
        provider = provider if provider is not None else InitialGuess()
        T0, V0 = provider.crit_pure(model)
    elif isinstance(guess, CriticalPointResult):
        T0, V0 = guess.temperature, guess.volume
    else:
        T0, V0 = guess

    def residual(u):
        T, V = np.exp(u)
        RT = R * T
        return np.array([V**2 * model.dpdv(V, T, _PURE) / RT, V**3 * model.d2pdv2(V, T, _PURE) / RT])

    def feasible(u):
        T, V = np.exp(u)
        return V > model.lb_volume(T, _PURE)

    res = damped_newton(residual, np.log([T0, V0]), tol=tol, max_iter=max_iter, max_step=MAX_LOG_STEP, feasible=feasible)
    if not res.converged:
        _raise_failure(res, "Pure component critical point", {'T': np.exp(res.x[0]), 'V': np.exp(res.x[1])})
    Tc, Vc = np.exp(res.x)
    Pc = model.pressure(Vc, Tc, _PURE)
    logger.debug(f"    Critical point Tc = {Tc}, Pc = {Pc}, Vc = {Vc} in {res.iterations} iterations")
    return CriticalPointResult(Tc, Pc, Vc, _PURE.copy(), res.iterations)


def crit_mix(model, z: npt.ArrayLike, guess=None, provider: Optional[InitialGuess] = None,
             tol: float = NEWTON_TOL, max_iter: int = NEWTON_MAX_ITER) -> CriticalPointResult:
    """ Returns the vapor-liquid critical point of a mixture of composition z

        model: HelmholtzModel instance
        z: Composition
        guess: Optional CriticalPointResult or (T, V) tuple
        provider: InitialGuess used when no guess is given. Seeds from Kay's rule

        Heidemann & Khalil (1980) criticality conditions in (ln T, ln V): the smallest eigenvalue
        of the composition Hessian vanishes, as does the cubic form along its eigenvector.
        A composition with a single non-zero entry returns that component's critical point.
    """
    z = validate_composition(model.nc, z)
    present = np.flatnonzero(z > 0)
    if present.size == 1:
        pure = crit_pure(model.pure_model(int(present[0])), guess=guess, provider=provider, tol=tol, max_iter=max_iter)
        return CriticalPointResult(pure.temperature, pure.pressure, pure.volume, z, pure.iterations)
    if present.size < model.nc:
        absent = [model.components[i] for i in range(model.nc) if z[i] == 0]
        raise ValueError(f"Composition has zero mole fraction of {absent}, use a model without those components")
    if guess is None:
        provider = provider if provider is not None else InitialGuess()
        T0, V0 = provider.crit_mix(model, z)
    elif isinstance(guess, CriticalPointResult):
        T0, V0 = guess.temperature, guess.volume
    else:
        T0, V0 = guess
    ref = [None]

    def residual(u):
        T, V = np.exp(u)
        return np.array(criticality_residuals(model, V, T, z, ref))

    def feasible(u):
        T, V = np.exp(u)
        return V > model.lb_volume(T, z)

    res = damped_newton(residual, np.log([T0, V0]), tol=tol, max_iter=max_iter, max_step=MAX_LOG_STEP, feasible=feasible)
    if not res.converged:
        _raise_failure(res, "Mixture critical point", {'T': np.exp(res.x[0]), 'V': np.exp(res.x[1]), 'z': z})
    Tc, Vc = np.exp(res.x)
    Pc = model.pressure(Vc, Tc, z)
    if not Pc > 0:
        raise CriticalPointNotFound(f"Critical point at negative pressure {Pc} Pa", kind=error_kind.OUT_OF_DOMAIN,
                                    iterate={'T': Tc, 'V': Vc, 'z': z}, iterations=res.iterations)
    return CriticalPointResult(Tc, Pc, Vc, z, res.iterations)


def _ucst_seed(model, T):
    """ Grid scan of (packing fraction, x1) for the point closest to liquid-liquid criticality"""
    best, seed = np.inf, None
    for x1 in np.linspace(0.02, 0.98, 49):
        z = np.array([x1, 1.0 - x1])
        lb = model.lb_volume(T, z)
        for eta in np.linspace(0.40, 0.95, 23):
            V = lb / eta
            if model.dpdv(V, T, z) >= 0:
                continue
            lam, cubic = criticality_residuals(model, V, T, z, [None])
            score = abs(lam) + abs(cubic)
            if score < best:
                best, seed = score, (V, x1)
    return seed


def ucst_mix(model, T: float, guess=None, tol: float = NEWTON_TOL, max_iter: int = NEWTON_MAX_ITER) -> CriticalPointResult:
    """ Returns the liquid-liquid critical point of a binary mixture at temperature T

        model: Binary HelmholtzModel
        T: Temperature (K)
        guess: Optional CriticalPointResult or (V, x1) tuple. Defaults to a grid scan of the
               dense liquid region

        Same criticality conditions as crit_mix, solved in (ln V, x1) at fixed T
    """
    if model.nc != 2:
        raise ValueError(f"ucst_mix requires a binary model, got {model.nc} components")
    T = validate_temperature(T)
    ref = [None]
    if guess is None:
        seed = _ucst_seed(model, T)
        if seed is None:
            raise CriticalPointNotFound(f"No mechanically stable liquid states found at T = {T} K",
                                        kind=error_kind.OUT_OF_DOMAIN, stage='initial guess', iterate={'T': T})
        V0, x0 = seed
    elif isinstance(guess, CriticalPointResult):
        V0, x0 = guess.volume, guess.composition[0]
    else:
        V0, x0 = guess

    def residual(u):
        z = np.array([u[1], 1.0 - u[1]])
        return np.array(criticality_residuals(model, np.exp(u[0]), T, z, ref))

    def feasible(u):
        z = np.array([u[1], 1.0 - u[1]])
        return 0 < u[1] < 1 and np.exp(u[0]) > model.lb_volume(T, z)

    res = damped_newton(residual, [np.log(V0), x0], tol=tol, max_iter=max_iter, max_step=0.1, feasible=feasible)
    if not res.converged:
        _raise_failure(res, "Liquid-liquid critical point", {'T': T, 'V': np.exp(res.x[0]), 'x1': res.x[1]})
    Vc, x1 = np.exp(res.x[0]), res.x[1]
    z = np.array([x1, 1.0 - x1])
    Pc = model.pressure(Vc, T, z)
    if not Pc > 0 or model.dpdv(Vc, T, z) >= 0:
        raise CriticalPointNotFound(f"Liquid-liquid critical point at T = {T} K is not a stable liquid (p = {Pc} Pa)",
                                    kind=error_kind.OUT_OF_DOMAIN, iterate={'T': T, 'V': Vc, 'x1': x1},
                                    iterations=res.iterations)
    return CriticalPointResult(T, Pc, Vc, z, res.iterations)
