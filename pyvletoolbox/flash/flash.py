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
from typing import Optional, Tuple
import numpy as np
import numpy.typing as npt

from pyvletoolbox.classes import phase, error_kind
from pyvletoolbox.constants import RR_TOL, RR_MAX_ITER, PHASE_FRACTION_EPS, SS_TOL, SS_MAX_ITER, K_TRIVIAL, TRIVIAL_TOL, MIN_SEPARATION
from pyvletoolbox.errors import FlashInfeasible, VolumeNotFound, reraise_as
from pyvletoolbox.initial import InitialGuess
from pyvletoolbox.validate import validate_composition, validate_temperature
from pyvletoolbox.volume import solve_volume

logger = logging.getLogger(__name__)


@dataclass
class RachfordRiceResult:
    beta: npt.ArrayLike  # Non-reference phase fraction(s). A float for two phases
    phase_fractions: np.ndarray  # All phase fractions, reference phase first
    compositions: np.ndarray  # Phase mole fractions, one row per phase, reference phase first
    iterations: int
    converged: bool = True

    @property
    def x(self):
        return self.compositions[0]

    @property
    def y(self):
        return self.compositions[-1]


@dataclass
class FlashResult:
    pressure: float  # Pa
    temperature: float  # K
    phases: Tuple[phase, ...]  # Phase descriptor of each phase
    phase_fractions: np.ndarray
    compositions: np.ndarray  # One row of mole fractions per phase
    volumes: np.ndarray  # Molar volume of each phase (m³/mol)
    iterations: int
    converged: bool = True


# =============================================================================
# Rachford-Rice Solver: Nielsen & Lia (2022), Fluid Phase Equilibria
# =============================================================================
def _nielsen_lia(z, K, tol, max_iter):
    """ Transformed variable Newton/bisection hybrid of Nielsen & Lia (2022).
        Returns (vapor fraction, x, y, iterations)
    """
    # K-values exactly equal to 1.0 contribute nothing but make ci = 1/(1-K) singular
    K = np.where(np.abs(K - 1.0) < 1e-12, 1.0 + 1e-12, K)

    def rr(beta):
        return np.dot(z, (K - 1) / (1 + beta * (K - 1)))

    # Solve from the nearer of the two phases
    near_vapor = rr(0.5) > 0
    k_hat = 1.0 / K if near_vapor else K.copy()
    ci = 1.0 / (1.0 - k_hat)                            # Eq 10

    phi_max = min(1.0 / (1.0 - np.min(k_hat)), 0.5)     # Eq 11a
    phi_min = 1.0 / (1.0 - np.max(k_hat))               # Eq 11b
    b_min = 1.0 / (phi_max - phi_min)                   # Eq 15
    b_max = np.inf
    b = 1.0 / (0.25 - phi_min)

    def h(b):                                           # Eq 12b
        return np.sum(z * b / (1.0 + b * (phi_min - ci)))

    def dh(b):                                          # Eq 16b
        return np.sum(z / (1.0 + b * (phi_min - ci))**2)

    for it in range(1, max_iter + 1):
        h_b = h(b)
        if abs(h_b) <= tol:
            break
        if h_b > 0:
            b_max = b
        else:
            b_min = b
        b_new = b - h_b / dh(b)
        if not b_min < b_new < b_max:
            b_new = 0.5 * (b_min + b_max) if np.isfinite(b_max) else 2.0 * b
        if abs(b_new - b) <= 1e-15 * abs(b):
            b = b_new
            break
        b = b_new
    else:
        raise FlashInfeasible(f"Rachford-Rice not converged within {max_iter} iterations",
                              kind=error_kind.NOT_CONVERGED, iterate={'z': z, 'K': K}, iterations=max_iter)

    ui = -z * ci * b / (1.0 + b * (phi_min - ci))      # Eq 27b
    phi = (1.0 + b * phi_min) / b                       # Rearranged Eq 14b
    if near_vapor:
        beta = 1.0 - phi
        y, x = ui, k_hat * ui                           # Eq 28
    else:
        beta = phi
        x, y = ui, k_hat * ui                           # Eq 28
    return beta, x, y, it


def rachford_rice(z: npt.ArrayLike, K: npt.ArrayLike, tol: float = RR_TOL, max_iter: int = RR_MAX_ITER) -> RachfordRiceResult:
    """
    Two-phase Rachford-Rice split Σ z_i (K_i - 1)/(1 + β(K_i - 1)) = 0.

    Args:
        z: Feed composition (normalized internally)
        K: K-values y_i/x_i
        tol: Solution tolerance on the transformed objective
        max_iter: Maximum iterations

    Returns:
        RachfordRiceResult with beta the vapor fraction, x (liquid) and y (vapor) compositions

    Raises FlashInfeasible when the feed is single phase at these K-values (INFEASIBLE),
    or when every K-value is unity (DEGENERATE).
    """
    z = validate_composition(len(np.atleast_1d(z)), z)
    K = np.asarray(K, dtype=float).ravel()
    if K.size != z.size:
        raise ValueError(f"K has {K.size} entries but the feed has {z.size} components")
    if not np.all(np.isfinite(K)) or np.any(K <= 0):
        raise ValueError(f"K-values must be positive and finite: {K}")
    if np.all(np.abs(K - 1.0) < K_TRIVIAL):
        raise FlashInfeasible("All K-values are unity", kind=error_kind.DEGENERATE, iterate={'z': z, 'K': K})

    Km1 = K - 1.0
    if np.sum(z * Km1) <= 0:
        raise FlashInfeasible("Feed is single phase liquid at these K-values (Σz(K-1) <= 0)",
                              kind=error_kind.INFEASIBLE, iterate={'z': z, 'K': K})
    if np.sum(z * Km1 / K) >= 0:
        raise FlashInfeasible("Feed is single phase vapor at these K-values (Σz(K-1)/K >= 0)",
                              kind=error_kind.INFEASIBLE, iterate={'z': z, 'K': K})

    beta, x, y, it = _nielsen_lia(z, K, tol, max_iter)
    return RachfordRiceResult(beta, np.array([1.0 - beta, beta]), np.array([x, y]), it)


def rachford_rice_multiphase(z: npt.ArrayLike, K: npt.ArrayLike, beta0: Optional[npt.ArrayLike] = None,
                             tol: float = 1e-13, max_iter: int = RR_MAX_ITER,
                             negative: bool = False) -> RachfordRiceResult:
    """
    N-phase Rachford-Rice by damped Newton minimization of the convex potential

        F(β) = -Σ z_i ln t_i,   t_i = 1 + Σ_k β_k (K_ik - 1)

    Args:
        z: Feed composition (normalized internally)
        K: (N-1, nc) K-values of each phase relative to the reference phase
        beta0: Optional starting (N-1) non-reference phase fractions. Defaults to zeros
        tol: Convergence tolerance on the gradient
        max_iter: Maximum iterations
        negative: Return phase fractions outside [0, 1] (negative flash) instead of raising.
                  Every t_i stays positive either way

    Returns:
        RachfordRiceResult with the N phase fractions and compositions, reference phase first.
        Fractions within PHASE_FRACTION_EPS of [0, 1] are clipped to the bound.
        Raises FlashInfeasible (INFEASIBLE) when a phase fraction lies outside [0, 1] or the
        potential is unbounded, unless negative is set.
    """
    z = validate_composition(len(np.atleast_1d(z)), z)
    K = np.atleast_2d(np.asarray(K, dtype=float))
    if K.shape[1] != z.size:
        raise ValueError(f"K must have shape (phases - 1, {z.size}), got {K.shape}")
    if not np.all(np.isfinite(K)) or np.any(K <= 0):
        raise ValueError("K-values must be positive and finite")
    A = K - 1.0
    beta = np.zeros(K.shape[0]) if beta0 is None else np.array(beta0, dtype=float)
    if np.any(1.0 + beta @ A <= 0):
        raise ValueError("beta0 must keep every 1 + Σβ(K-1) positive")

    def potential(beta):
        return -np.sum(z * np.log(1.0 + beta @ A))

    def gradient(beta):
        return -A @ (z / (1.0 + beta @ A))

    F = potential(beta)
    converged = False
    it = 0
    for it in range(1, max_iter + 1):
        t = 1.0 + beta @ A
        g = -A @ (z / t)
        if np.max(np.abs(g)) <= tol:
            converged = True
            break
        H = (A * (z / t**2)) @ A.T
        try:
            d = np.linalg.solve(H, -g)
        except np.linalg.LinAlgError:
            raise FlashInfeasible("Singular Rachford-Rice Hessian, K-values of two phases are not independent",
                                  kind=error_kind.DEGENERATE, iterate={'beta': beta}, iterations=it)
        lam = 1.0
        for _ in range(60):
            trial = beta + lam * d
            if np.all(1.0 + trial @ A > 0):
                F_trial = potential(trial)
                if F_trial < F:
                    break
            lam *= 0.5
        else:
            # No further descent: β sits at the minimum to round-off
            converged = np.max(np.abs(g)) <= 1e3 * tol
            break
        beta, F = trial, F_trial
        if np.max(np.abs(beta)) > 1e6:
            raise FlashInfeasible("Rachford-Rice potential is unbounded, no multiphase split at these K-values",
                                  kind=error_kind.INFEASIBLE, iterate={'beta': beta}, iterations=it)
    if not converged:
        converged = np.max(np.abs(gradient(beta))) <= 1e3 * tol

    fractions = np.append(1.0 - np.sum(beta), beta)
    fractions = np.where((fractions < 0) & (fractions > -PHASE_FRACTION_EPS), 0.0, fractions)
    fractions = np.where((fractions > 1) & (fractions < 1 + PHASE_FRACTION_EPS), 1.0, fractions)
    outside = np.any(fractions < 0) or np.any(fractions > 1)
    if outside and not negative:
        raise FlashInfeasible(f"Phase fractions {fractions} outside [0, 1]", kind=error_kind.INFEASIBLE,
                              iterate={'beta': fractions}, iterations=it)
    if not converged:
        raise FlashInfeasible(f"Multiphase Rachford-Rice not converged within {it} iterations",
                              kind=error_kind.NOT_CONVERGED, iterate={'beta': beta}, iterations=it)

    t = 1.0 + beta @ A
    reference = z / t
    compositions = np.vstack([reference, K * reference])
    return RachfordRiceResult(fractions[1:], fractions, compositions, it)


def _normalized(x):
    x = np.clip(x, 1e-15, None)
    return x / np.sum(x)


def tp_flash(model, p: float, T: float, z: npt.ArrayLike, guess: Optional[FlashResult] = None,
             provider: Optional[InitialGuess] = None, tol: float = SS_TOL, max_iter: int = SS_MAX_ITER) -> FlashResult:
    """
    Two-phase isothermal flash by damped successive substitution with the Rachford-Rice split.

    Args:
        model: HelmholtzModel instance
        p: Pressure (Pa)
        T: Temperature (K)
        z: Feed composition
        guess: Optional previous FlashResult whose K-values start the iteration
        provider: InitialGuess used for starting K-values when no guess is given
        tol: Convergence tolerance on K-values
        max_iter: Maximum iterations

    Returns: FlashResult with liquid then vapor phase.
    Raises FlashInfeasible if the feed is single phase or the phases converge onto each other.
    """
    T = validate_temperature(T)
    z = validate_composition(model.nc, z)
    if guess is not None:
        K = guess.compositions[-1] / guess.compositions[0]
    else:
        provider = provider if provider is not None else InitialGuess()
        K = provider.k_values(model, p, T)

    for it in range(1, max_iter + 1):
        try:
            rr = rachford_rice(z, K)
        except FlashInfeasible as e:
            reraise_as(FlashInfeasible, e, stage='rachford-rice', iterate={'p': p, 'T': T, 'K': K})
        x, y = _normalized(rr.x), _normalized(rr.y)
        try:
            Vl = solve_volume(model, p, T, x, phase='liquid')
        except VolumeNotFound as e:
            reraise_as(FlashInfeasible, e, stage='liquid volume')
        try:
            Vv = solve_volume(model, p, T, y, phase='vapor')
        except VolumeNotFound as e:
            reraise_as(FlashInfeasible, e, stage='vapor volume')

        K_new = np.exp(np.clip(model.ln_fugacity_coeff(Vl, T, x) - model.ln_fugacity_coeff(Vv, T, y), -23.0, 23.0))
        if np.max(np.abs(K_new / K - 1.0)) < tol:
            K = K_new
            break
        damp = 0.7 if it < 20 else 0.9
        K = K * (K_new / K)**damp
    else:
        raise FlashInfeasible(f"Flash not converged within {max_iter} iterations", kind=error_kind.NOT_CONVERGED,
                              iterate={'p': p, 'T': T, 'K': K}, iterations=max_iter)

    rr = rachford_rice(z, K)
    x, y = _normalized(rr.x), _normalized(rr.y)
    Vl = solve_volume(model, p, T, x, phase='liquid')
    Vv = solve_volume(model, p, T, y, phase='vapor')
    if np.max(np.abs(x - y)) < TRIVIAL_TOL or abs(np.log(Vv / Vl)) < MIN_SEPARATION:
        raise FlashInfeasible("Flash converged to the trivial solution", kind=error_kind.DEGENERATE,
                              iterate={'p': p, 'T': T, 'x': x, 'y': y}, iterations=it)
    logger.debug(f"    Flash at p = {p}, T = {T} converged in {it} iterations, beta = {rr.beta}")
    return FlashResult(p, T, (phase.LIQUID, phase.VAPOR), rr.phase_fractions, np.array([x, y]),
                       np.array([Vl, Vv]), it)
