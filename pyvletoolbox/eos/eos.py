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

from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence, Union
import numpy as np
import numpy.typing as npt

from pyvletoolbox.classes import cubic_family
from pyvletoolbox.constants import R, COMPONENTS
from pyvletoolbox.params import SingleParam, PairParam
from pyvletoolbox.validate import validate_methods


# =============================================================================
# Helmholtz evaluator interface
# =============================================================================
class HelmholtzModel(ABC):
    """
    Equation of state expressed through its reduced residual Helmholtz energy.

    Subclasses supply a_res(V, T, n) = A_res / (R T) for total volume V (m³),
    temperature T (K) and mole amounts n (mol), together with the packed lower
    bound volume. All other properties follow by differentiation; finite
    differences are used unless a subclass overrides a derivative analytically.

    Every method is a pure function of its arguments. Models hold no mutable
    state, so one instance may be shared between concurrent solves.
    """

    def __init__(self, components: Sequence[str]):
        self.components = tuple(components)

    @property
    def nc(self) -> int:
        return len(self.components)

    @abstractmethod
    def a_res(self, V: float, T: float, n: np.ndarray) -> float:
        """ Residual Helmholtz energy A_res/(RT), extensive in n"""

    @abstractmethod
    def lb_volume(self, T: float, n: np.ndarray) -> float:
        """ Packed (co-volume) lower bound on the total volume"""

    def pure_model(self, i: int) -> 'HelmholtzModel':
        """ Single component view of component i"""
        return PureComponentModel(self, i)

    # --- Volume derivatives -------------------------------------------------
    def dadv(self, V, T, n):
        h = 1e-6 * V
        return (self.a_res(V + h, T, n) - self.a_res(V - h, T, n)) / (2 * h)

    def pressure(self, V, T, n):
        return R * T * (np.sum(n) / V - self.dadv(V, T, n))

    def dpdv(self, V, T, n):
        h = 1e-5 * V
        return (self.pressure(V + h, T, n) - self.pressure(V - h, T, n)) / (2 * h)

    def d2pdv2(self, V, T, n):
        h = 1e-4 * V
        return (self.pressure(V + h, T, n) - 2 * self.pressure(V, T, n) + self.pressure(V - h, T, n)) / h**2

    def dpdt(self, V, T, n):
        h = 1e-5 * T
        return (self.pressure(V, T + h, n) - self.pressure(V, T - h, n)) / (2 * h)

    # --- Composition derivatives --------------------------------------------
    def dadn(self, V, T, n):
        n = np.asarray(n, dtype=float)
        h = 1e-6 * np.sum(n)
        a0 = None
        grad = np.zeros(n.size)
        for i in range(n.size):
            e = np.zeros(n.size)
            e[i] = h
            if n[i] > h:
                grad[i] = (self.a_res(V, T, n + e) - self.a_res(V, T, n - e)) / (2 * h)
            else:
                if a0 is None:
                    a0 = self.a_res(V, T, n)
                grad[i] = (self.a_res(V, T, n + e) - a0) / h
        return grad

    def d2adn2(self, V, T, n):
        n = np.asarray(n, dtype=float)
        h = 1e-5 * np.sum(n)
        H = np.zeros((n.size, n.size))
        for j in range(n.size):
            e = np.zeros(n.size)
            e[j] = h
            if n[j] > h:
                H[:, j] = (self.dadn(V, T, n + e) - self.dadn(V, T, n - e)) / (2 * h)
            else:
                H[:, j] = (self.dadn(V, T, n + e) - self.dadn(V, T, n)) / h
        return 0.5 * (H + H.T)

    # --- Derived properties -------------------------------------------------
    def ln_fugacity(self, V, T, n):
        """ ln(f_i) with f_i in Pa, = ln(n_i R T / V) + ∂a_res/∂n_i"""
        n = np.asarray(n, dtype=float)
        with np.errstate(divide='ignore'):
            return np.log(n * R * T / V) + self.dadn(V, T, n)

    def ln_fugacity_coeff(self, V, T, n):
        n = np.asarray(n, dtype=float)
        Z = self.pressure(V, T, n) * V / (np.sum(n) * R * T)
        return self.dadn(V, T, n) - np.log(Z)

    def chemical_potential(self, V, T, n):
        """ Chemical potentials (J/mol) relative to the ideal gas at 1 Pa and T"""
        return R * T * self.ln_fugacity(V, T, n)

    def composition_hessian(self, V, T, n):
        """ ∂²(A/RT)/∂n_i∂n_j at constant T and V, including the ideal-gas part"""
        n = np.asarray(n, dtype=float)
        return np.diag(1.0 / n) + self.d2adn2(V, T, n)

    def gibbs(self, V, T, n):
        """ Molar Gibbs energy G/(N R T), up to terms depending on T only"""
        n = np.asarray(n, dtype=float)
        N = np.sum(n)
        nz = n > 0
        ideal = np.sum(n[nz] * (np.log(n[nz] / V) - 1.0))
        return (self.a_res(V, T, n) + ideal) / N + self.pressure(V, T, n) * V / (N * R * T)

    def __repr__(self):
        return f"{type(self).__name__}({', '.join(self.components)})"


class PureComponentModel(HelmholtzModel):
    """ Single component view of a mixture model, embedding amounts at position i"""

    def __init__(self, parent: HelmholtzModel, i: int):
        super().__init__([parent.components[i]])
        self.parent = parent
        self.index = i

    def _embed(self, n):
        full = np.zeros(self.parent.nc)
        full[self.index] = np.asarray(n, dtype=float)[0]
        return full

    def a_res(self, V, T, n):
        return self.parent.a_res(V, T, self._embed(n))

    def lb_volume(self, T, n):
        return self.parent.lb_volume(T, self._embed(n))

    def pressure(self, V, T, n):
        return self.parent.pressure(V, T, self._embed(n))

    def dpdv(self, V, T, n):
        return self.parent.dpdv(V, T, self._embed(n))

    def d2pdv2(self, V, T, n):
        return self.parent.d2pdv2(V, T, self._embed(n))

    def dadn(self, V, T, n):
        return self.parent.dadn(V, T, self._embed(n))[[self.index]]

    def d2adn2(self, V, T, n):
        i = self.index
        return self.parent.d2adn2(V, T, self._embed(n))[i:i + 1, i:i + 1]


# =============================================================================
# Alpha functions
# =============================================================================
def no_alpha(Tr, omega):
    return np.ones_like(np.asarray(Tr, dtype=float))

def rk_alpha(Tr, omega):
    """ Redlich-Kwong alpha, Tr^-0.5"""
    return 1.0 / np.sqrt(Tr)

def soave_alpha(Tr, omega):
    """ Soave (1972) alpha function"""
    m = 0.480 + 1.574 * omega - 0.176 * omega**2
    return (1.0 + m * (1.0 - np.sqrt(np.maximum(Tr, 0.0))))**2

def pr_alpha(Tr, omega):
    """ Standard Peng-Robinson (1976) alpha function"""
    m = 0.37464 + 1.54226 * omega - 0.26992 * omega**2
    return (1.0 + m * (1.0 - np.sqrt(np.maximum(Tr, 0.0))))**2


# =============================================================================
# Generic two-parameter cubic
# =============================================================================
class CubicModel(HelmholtzModel):
    """
    Generic cubic equation of state P = NRT/(V-B) - D/((V+δ1 B)(V+δ2 B)) in Helmholtz form:

        a_res = -N ln(1 - B/V) - D/(R T B (δ1-δ2)) ln((V + δ1 B)/(V + δ2 B))

    with the van der Waals limit -D/(R T V) when δ1 = δ2. B = Σ n_i b_i and
    D = ΣΣ n_i n_j sqrt(a_i a_j)(1 - k_ij) (van der Waals one-fluid mixing).

    tc: Critical temperatures (K)
    pc: Critical pressures (Pa)
    acentric: Acentric factors. Only needed by alpha functions that use them
    kij: Binary interaction parameters. Defaults to zero
    alpha: Alpha function alpha(Tr, omega). Defaults to the family's own
    """
    delta1 = 0.0
    delta2 = 0.0
    omega_a = 27.0 / 64.0
    omega_b = 1.0 / 8.0
    zc = 3.0 / 8.0
    default_alpha = staticmethod(no_alpha)

    def __init__(self, tc: SingleParam, pc: SingleParam, acentric: Optional[SingleParam] = None,
                 kij: Optional[PairParam] = None, alpha: Optional[Callable] = None):
        super().__init__(tc.components)
        if pc.components != self.components:
            raise ValueError("Critical pressure components do not match critical temperature components")
        if acentric is None:
            acentric = SingleParam('acentric factor', self.components, np.zeros(self.nc))
        if acentric.components != self.components:
            raise ValueError("Acentric factor components do not match critical temperature components")
        if kij is None:
            kij = PairParam.zeros('binary interaction parameter', self.components)
        if kij.components != self.components:
            raise ValueError("Binary interaction parameter components do not match model components")
        self.tc, self.pc, self.acentric, self.kij = tc, pc, acentric, kij
        self.alpha_function = alpha if alpha is not None else self.default_alpha
        self._a0 = self.omega_a * (R * tc.values)**2 / pc.values
        self._b = self.omega_b * R * tc.values / pc.values
        self._one_minus_k = 1.0 - kij.values

    def pure_model(self, i):
        return type(self)(self.tc.subset([i]), self.pc.subset([i]), self.acentric.subset([i]),
                          self.kij.subset([i]), alpha=self.alpha_function)

    def alpha(self, T):
        return self.alpha_function(T / self.tc.values, self.acentric.values)

    def ab_params(self, T):
        """ Returns the a_ij matrix (Pa·m⁶/mol²) and the b_i vector (m³/mol) at temperature T"""
        ai = self._a0 * self.alpha(T)
        aij = np.sqrt(np.outer(ai, ai)) * self._one_minus_k
        return aij, self._b

    def _mix(self, T, n):
        n = np.asarray(n, dtype=float)
        aij, b = self.ab_params(T)
        Dv = 2.0 * aij @ n
        return aij, b, float(n @ b), 0.5 * float(n @ Dv), Dv

    def _attraction(self, V, B):
        """ F(B) = ln((V+δ1B)/(V+δ2B))/(B(δ1-δ2)) and its first two B-derivatives"""
        d1, d2 = self.delta1, self.delta2
        if d1 == d2:
            return 1.0 / V, 0.0, 0.0
        delta = d1 - d2
        u1, u2 = V + d1 * B, V + d2 * B
        L = np.log(u1 / u2)
        L1 = d1 / u1 - d2 / u2
        L2 = -d1**2 / u1**2 + d2**2 / u2**2
        F = L / (B * delta)
        F1 = L1 / (B * delta) - L / (B**2 * delta)
        F2 = L2 / (B * delta) - 2.0 * L1 / (B**2 * delta) + 2.0 * L / (B**3 * delta)
        return F, F1, F2

    def a_res(self, V, T, n):
        N = np.sum(n)
        aij, b, B, D, Dv = self._mix(T, n)
        F, _, _ = self._attraction(V, B)
        return -N * np.log(1.0 - B / V) - D * F / (R * T)

    def lb_volume(self, T, n):
        return float(np.asarray(n, dtype=float) @ self._b)

    def pressure(self, V, T, n):
        N = np.sum(n)
        aij, b, B, D, Dv = self._mix(T, n)
        return N * R * T / (V - B) - D / ((V + self.delta1 * B) * (V + self.delta2 * B))

    def dpdv(self, V, T, n):
        N = np.sum(n)
        aij, b, B, D, Dv = self._mix(T, n)
        Q = (V + self.delta1 * B) * (V + self.delta2 * B)
        Qp = 2.0 * V + (self.delta1 + self.delta2) * B
        return -N * R * T / (V - B)**2 + D * Qp / Q**2

    def d2pdv2(self, V, T, n):
        N = np.sum(n)
        aij, b, B, D, Dv = self._mix(T, n)
        Q = (V + self.delta1 * B) * (V + self.delta2 * B)
        Qp = 2.0 * V + (self.delta1 + self.delta2) * B
        return 2.0 * N * R * T / (V - B)**3 + D * (2.0 * Q - 2.0 * Qp**2) / Q**3

    def dadn(self, V, T, n):
        N = np.sum(n)
        aij, b, B, D, Dv = self._mix(T, n)
        F, F1, _ = self._attraction(V, B)
        return -np.log(1.0 - B / V) + N * b / (V - B) - (Dv * F + D * F1 * b) / (R * T)

    def d2adn2(self, V, T, n):
        N = np.sum(n)
        aij, b, B, D, Dv = self._mix(T, n)
        F, F1, F2 = self._attraction(V, B)
        bb = np.outer(b, b)
        repulsive = (b[:, None] + b[None, :]) / (V - B) + N * bb / (V - B)**2
        attractive = (2.0 * aij * F + F1 * (np.outer(Dv, b) + np.outer(b, Dv)) + D * F2 * bb) / (R * T)
        return repulsive - attractive


class vdW(CubicModel):
    """ van der Waals (1873)"""


class RK(CubicModel):
    """ Redlich-Kwong (1949)"""
    delta1 = 1.0
    delta2 = 0.0
    omega_a = 1.0 / (9.0 * (2.0**(1.0 / 3.0) - 1.0))
    omega_b = (2.0**(1.0 / 3.0) - 1.0) / 3.0
    zc = 1.0 / 3.0
    default_alpha = staticmethod(rk_alpha)


class SRK(RK):
    """ Soave-Redlich-Kwong (1972)"""
    default_alpha = staticmethod(soave_alpha)


class PR(CubicModel):
    """ Peng-Robinson (1976)"""
    delta1 = 1.0 + np.sqrt(2.0)
    delta2 = 1.0 - np.sqrt(2.0)
    omega_a = 0.45723552892138218
    omega_b = 0.07779607390388846
    zc = 0.30740130869870386
    default_alpha = staticmethod(pr_alpha)


_FAMILIES = {
    cubic_family.VDW: vdW,
    cubic_family.RK: RK,
    cubic_family.SRK: SRK,
    cubic_family.PR: PR,
}


def cubic_model(
    family: Union[cubic_family, str],
    components: Sequence[str],
    kij: Union[None, dict, npt.ArrayLike] = None,
    alpha: Optional[Callable] = None,
) -> CubicModel:
    """ Returns a cubic EOS model for the named components using the built-in critical property table

        family: 'VDW', 'RK', 'SRK' or 'PR'
        components: Component names, e.g. ['propane', 'n-butane']
        kij: Optional binary interaction parameters, either a {(name_i, name_j): kij} dictionary
             or a square matrix. Defaults to zero
        alpha: Optional alpha function alpha(Tr, omega) replacing the family default
    """
    family = validate_methods(["family"], [family])
    components = list(components)
    try:
        props = [COMPONENTS[c.lower()] for c in components]
    except KeyError as e:
        raise ValueError(f"Unknown component {e}. Supported: {list(COMPONENTS.keys())}")
    tc = SingleParam('critical temperature', components, [p.Tc for p in props])
    pc = SingleParam('critical pressure', components, [p.Pc for p in props])
    acentric = SingleParam('acentric factor', components, [p.omega for p in props])
    if kij is None:
        kij = PairParam.zeros('binary interaction parameter', components)
    elif isinstance(kij, dict):
        kij = PairParam.from_pairs('binary interaction parameter', components, kij)
    else:
        kij = PairParam('binary interaction parameter', components, kij)
    return _FAMILIES[family](tc, pc, acentric, kij, alpha)
