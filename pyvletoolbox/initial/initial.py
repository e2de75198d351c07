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
from typing import Optional, Tuple
import numpy as np
from scipy.optimize import brentq, minimize_scalar

from pyvletoolbox.classes import error_kind
from pyvletoolbox.constants import SPINODAL_GRID
from pyvletoolbox.errors import SaturationNotFound, CriticalPointNotFound

logger = logging.getLogger(__name__)

_PURE = np.ones(1)


class InitialGuess:
    """
    Default seeds for the iterative solvers, derived from the Helmholtz evaluator alone.

    Pure-component seeds come from the van der Waals loop of the pressure isotherm:
    its spinodal volumes bracket the liquid and vapor roots, and its disappearance
    brackets the critical temperature. Subclasses may override any method with
    correlation-based estimates.
    """
    t_ref = 300.0  # Starting temperature (K) when searching for the critical temperature

    def spinodal_volumes(self, model, T: float, n: np.ndarray) -> Optional[Tuple[float, float]]:
        """ Returns the (liquid, vapor) spinodal volumes of the isotherm, or None if it has no loop"""
        lb = model.lb_volume(T, n)
        lnV = np.log(lb) + np.log(np.logspace(np.log10(1.0 + 1e-3), 7.0, SPINODAL_GRID))
        dp = np.array([model.dpdv(np.exp(v), T, n) for v in lnV])
        dp = np.where(np.isfinite(dp), dp, -np.inf)
        k = int(np.argmax(dp))
        ln_vmax = lnV[k]
        if dp[k] <= 0:
            if k == 0 or k == lnV.size - 1:
                return None
            res = minimize_scalar(lambda v: -model.dpdv(np.exp(v), T, n), bounds=(lnV[k - 1], lnV[k + 1]),
                                  method='bounded', options={'xatol': 1e-12})
            if not -res.fun > 0:
                return None
            ln_vmax = res.x

        f = lambda v: model.dpdv(np.exp(v), T, n)
        below = np.nonzero((lnV < ln_vmax) & (dp < 0))[0]
        above = np.nonzero((lnV > ln_vmax) & (dp < 0))[0]
        if below.size == 0 or above.size == 0:
            return None
        v_liq = np.exp(brentq(f, lnV[below[-1]], ln_vmax, xtol=1e-14))
        v_vap = np.exp(brentq(f, ln_vmax, lnV[above[0]], xtol=1e-14))
        return v_liq, v_vap

    def has_loop(self, model, T: float, n: np.ndarray = _PURE) -> bool:
        return self.spinodal_volumes(model, T, n) is not None

    def saturation(self, model, T: float, iterations: int = 8) -> Tuple[float, float, float]:
        """ Returns (pressure, liquid volume, vapor volume) seeds for a pure component at T

            Starts between the spinodal pressures and applies a few successive substitution
            updates p <- p·f_liquid/f_vapor
        """
        spinodals = self.spinodal_volumes(model, T, _PURE)
        if spinodals is None:
            raise SaturationNotFound(f"No van der Waals loop at T = {T} K, temperature is at or above the critical temperature",
                                     kind=error_kind.DEGENERATE, stage='initial guess', iterate={'T': T})
        v_sl, v_sv = spinodals
        p_min = model.pressure(v_sl, T, _PURE)
        p_max = model.pressure(v_sv, T, _PURE)
        if not p_max > 0:
            raise SaturationNotFound(f"Vapor spinodal pressure {p_max} Pa is not positive at T = {T} K",
                                     kind=error_kind.OUT_OF_DOMAIN, stage='initial guess', iterate={'T': T})
        p_floor = max(p_min, 0.0)
        p = 0.5 * (p_floor + p_max)
        ln_lb = np.log(model.lb_volume(T, _PURE)) + np.log1p(1e-4)

        def roots(p):
            g = lambda v: model.pressure(np.exp(v), T, _PURE) - p
            v_l = np.exp(brentq(g, ln_lb, np.log(v_sl), xtol=1e-14))
            ln_hi = np.log(2.0 * v_sv)
            while g(ln_hi) > 0:
                ln_hi += np.log(4.0)
            v_v = np.exp(brentq(g, np.log(v_sv), ln_hi, xtol=1e-14))
            return v_l, v_v

        for _ in range(iterations):
            v_l, v_v = roots(p)
            ratio = np.exp(model.ln_fugacity(v_l, T, _PURE)[0] - model.ln_fugacity(v_v, T, _PURE)[0])
            p_new = p * ratio
            if p_new >= p_max:
                p_new = 0.5 * (p + p_max)
            elif p_new <= p_floor:
                p_new = 0.5 * (p + p_floor)
            p = p_new
        v_l, v_v = roots(p)
        logger.debug(f"    Saturation seed at T = {T}: p = {p}, Vl = {v_l}, Vv = {v_v}")
        return p, v_l, v_v

    def crit_pure(self, model) -> Tuple[float, float]:
        """ Returns (temperature, volume) seeds for the critical point of a pure component

            Brackets the temperature at which the van der Waals loop vanishes, then bisects
        """
        T_lo = T_hi = self.t_ref
        if self.has_loop(model, T_lo):
            for _ in range(60):
                T_hi *= 1.5
                if not self.has_loop(model, T_hi):
                    break
                T_lo = T_hi
            else:
                raise CriticalPointNotFound("Isotherms keep a van der Waals loop at all searched temperatures",
                                            kind=error_kind.OUT_OF_DOMAIN, stage='initial guess', iterate={'T': T_hi})
        else:
            for _ in range(60):
                T_lo /= 1.5
                if self.has_loop(model, T_lo):
                    break
                T_hi = T_lo
            else:
                raise CriticalPointNotFound("No van der Waals loop found at any searched temperature",
                                            kind=error_kind.OUT_OF_DOMAIN, stage='initial guess', iterate={'T': T_lo})
        for _ in range(60):
            if T_hi / T_lo - 1.0 < 1e-7:
                break
            T_mid = np.sqrt(T_lo * T_hi)
            if self.has_loop(model, T_mid):
                T_lo = T_mid
            else:
                T_hi = T_mid
        v_sl, v_sv = self.spinodal_volumes(model, T_lo, _PURE)
        return T_lo, float(np.sqrt(v_sl * v_sv))

    def crit_mix(self, model, z: np.ndarray) -> Tuple[float, float]:
        """ Kay's rule: mole fraction averages of the pure component critical temperatures and volumes"""
        seeds = np.array([self.crit_pure(model.pure_model(i)) for i in range(model.nc)])
        return float(z @ seeds[:, 0]), float(z @ seeds[:, 1])

    def saturation_pressures(self, model, T: float) -> np.ndarray:
        """ Pure component vapor pressures at T. Supercritical components are extrapolated
            from their critical point with the Wilson form (zero acentric factor)
        """
        psat = np.zeros(model.nc)
        for i in range(model.nc):
            pure = model.pure_model(i)
            try:
                psat[i] = self.saturation(pure, T)[0]
            except SaturationNotFound:
                Tc, Vc = self.crit_pure(pure)
                Pc = pure.pressure(Vc, Tc, _PURE)
                psat[i] = Pc * np.exp(5.373 * (1.0 - Tc / T))
                logger.info(f"    Component {model.components[i]} is supercritical at T = {T} K, extrapolated Psat = {psat[i]} Pa")
        return psat

    def k_values(self, model, p: float, T: float) -> np.ndarray:
        """ Raoult's law K-values"""
        return self.saturation_pressures(model, T) / p


class CubicInitialGuess(InitialGuess):
    """ Seeds for cubic models from their critical temperature, pressure and acentric factor"""

    def crit_pure(self, model) -> Tuple[float, float]:
        Tc = float(model.tc.values[0])
        return Tc, model.zc / model.omega_b * model.lb_volume(Tc, _PURE)

    def saturation_pressures(self, model, T: float) -> np.ndarray:
        """ Wilson (1968) correlation"""
        Tc, Pc, omega = model.tc.values, model.pc.values, model.acentric.values
        return Pc * np.exp(5.373 * (1.0 + omega) * (1.0 - Tc / T))

    def k_values(self, model, p: float, T: float) -> np.ndarray:
        return self.saturation_pressures(model, T) / p
