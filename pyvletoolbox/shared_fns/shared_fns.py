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
import numpy as np
import numpy.typing as npt
from typing import Callable, Optional

from pyvletoolbox.constants import NEWTON_TOL, NEWTON_MAX_ITER

logger = logging.getLogger(__name__)

def expand_fractions(free):
    """ Returns the full mole fraction vector from its first n-1 entries"""
    free = np.asarray(free, dtype=float)
    return np.append(free, 1.0 - np.sum(free))

def in_simplex(*fractions, eps=0.0):
    """ True if every mole fraction vector lies strictly inside the simplex (all entries > eps)"""
    return all(np.all(np.isfinite(f)) and np.all(f > eps) for f in fractions)

def fd_jacobian(fun: Callable, x: np.ndarray, f0: Optional[np.ndarray] = None, rel_step: float = 1e-6,
                feasible: Optional[Callable] = None) -> np.ndarray:
    """ Central difference Jacobian of a vector function, falling back to a one-sided
        difference where a perturbed point is infeasible or leaves the function's domain
    """
    x = np.asarray(x, dtype=float)
    if f0 is None:
        f0 = np.asarray(fun(x), dtype=float)
    J = np.zeros((f0.size, x.size))

    def evaluate(xs):
        if feasible is not None and not feasible(xs):
            return np.full(f0.size, np.nan)
        return np.asarray(fun(xs), dtype=float)

    for j in range(x.size):
        h = rel_step * max(abs(x[j]), 1.0)
        xp, xm = x.copy(), x.copy()
        xp[j] += h
        xm[j] -= h
        fp = evaluate(xp)
        fm = evaluate(xm)
        if np.all(np.isfinite(fp)) and np.all(np.isfinite(fm)):
            J[:, j] = (fp - fm) / (2 * h)
        elif np.all(np.isfinite(fp)):
            J[:, j] = (fp - f0) / h
        else:
            J[:, j] = (f0 - fm) / h
    return J


@dataclass
class NewtonResult:
    x: np.ndarray
    f: np.ndarray
    iterations: int
    converged: bool
    status: str  # 'converged', 'singular', 'infeasible', 'stalled', 'max_iter', 'non-finite'


def damped_newton(
    fun: Callable,
    x0: npt.ArrayLike,
    jac: Optional[Callable] = None,
    tol: float = NEWTON_TOL,
    max_iter: int = NEWTON_MAX_ITER,
    max_step: float = np.inf,
    feasible: Optional[Callable] = None,
    max_cond: float = 1e12,
) -> NewtonResult:
    """ Damped Newton-Raphson for square nonlinear systems F(x) = 0

        fun: Residual function returning an array the same size as x
        x0: Starting point
        jac: Optional Jacobian function. Central finite differences are used if not supplied
        tol: Convergence tolerance on max|F|
        max_iter: Iteration limit
        max_step: Largest allowed change in any unknown per iteration
        feasible: Optional function returning False for points outside the problem domain.
                  Steps are shortened until feasible
        max_cond: Jacobian condition number above which a Levenberg-regularized step is taken

        Steps are halved until the residual norm decreases (backtracking). Singular or
        ill-conditioned Jacobians are regularized rather than the tolerance relaxed.
        Never raises on non-convergence, the caller inspects status and raises its own typed error.
    """
    x = np.array(x0, dtype=float)
    f = np.asarray(fun(x), dtype=float)
    if not np.all(np.isfinite(f)):
        return NewtonResult(x, f, 0, False, 'non-finite')
    norm = np.linalg.norm(f)

    for it in range(1, max_iter + 1):
        if np.max(np.abs(f)) <= tol:
            return NewtonResult(x, f, it - 1, True, 'converged')

        J = jac(x) if jac is not None else fd_jacobian(fun, x, f, feasible=feasible)
        if not np.all(np.isfinite(J)):
            return NewtonResult(x, f, it, False, 'non-finite')

        regularized = False
        try:
            if np.linalg.cond(J) > max_cond:
                raise np.linalg.LinAlgError('ill-conditioned Jacobian')
            dx = np.linalg.solve(J, -f)
        except np.linalg.LinAlgError:
            JtJ = J.T @ J
            mu = 1e-8 * max(np.max(np.diag(JtJ)), 1e-300)
            try:
                dx = np.linalg.solve(JtJ + mu * np.eye(x.size), -J.T @ f)
            except np.linalg.LinAlgError:
                return NewtonResult(x, f, it, False, 'singular')
            regularized = True
            logger.info(f"    Newton iteration {it}: Levenberg step on ill-conditioned Jacobian")

        # Sufficient decrease is measured against the capped step
        biggest = np.max(np.abs(dx))
        scale = 1.0
        if biggest > max_step:
            scale = max_step / biggest
            dx *= scale

        lam = 1.0
        if feasible is not None:
            while not feasible(x + lam * dx):
                lam *= 0.5
                if lam < 1e-10:
                    return NewtonResult(x, f, it, False, 'infeasible')

        accepted = False
        for _ in range(30):
            x_new = x + lam * dx
            f_new = np.asarray(fun(x_new), dtype=float)
            if np.all(np.isfinite(f_new)):
                norm_new = np.linalg.norm(f_new)
                if norm_new < norm * (1.0 - 1e-4 * lam * scale) or norm_new <= tol:
                    accepted = True
                    break
            lam *= 0.5

        if not accepted:
            # Noise floor: the full step is negligible and the residual nearly vanishes
            if np.max(np.abs(dx)) < 1e-12 * (1.0 + np.max(np.abs(x))) and np.max(np.abs(f)) < 1e3 * tol:
                return NewtonResult(x, f, it, True, 'converged')
            return NewtonResult(x, f, it, False, 'singular' if regularized else 'stalled')

        step = np.max(np.abs(x_new - x))
        x, f, norm = x_new, f_new, norm_new
        logger.debug(f"    Newton iteration {it}: |F| = {np.max(np.abs(f)):.3e}, step = {step:.3e}")
        if step < 1e-14 * (1.0 + np.max(np.abs(x))) and np.max(np.abs(f)) < 1e3 * tol:
            return NewtonResult(x, f, it, True, 'converged')

    if np.max(np.abs(f)) <= tol:
        return NewtonResult(x, f, max_iter, True, 'converged')
    return NewtonResult(x, f, max_iter, False, 'max_iter')
