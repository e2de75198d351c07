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

from dataclasses import dataclass

# Constants
R = 8.31446261815324  # Universal gas constant, J/(mol·K)

# Default solver tolerances and iteration limits
VOLUME_RTOL = 1e-10  # Relative pressure residual for volume roots
VOLUME_MAX_ITER = 100
LIQUID_PACKING = 0.8  # Starting packing fraction lb/V for liquid volume roots
SAT_TOL = 1e-10  # Saturation residual tolerance (dimensionless)
SAT_MAX_ITER = 50
MAX_LOG_STEP = 0.5  # Largest Newton step allowed in ln(V) or ln(P)
NEWTON_TOL = 1e-10  # Residual tolerance for the damped Newton systems
NEWTON_MAX_ITER = 100
SS_TOL = 1e-10  # Successive substitution tolerance
SS_MAX_ITER = 500
RR_TOL = 1e-15  # Rachford-Rice tolerance
RR_MAX_ITER = 100
MIN_SEPARATION = 1e-4  # Minimum |ln(Vv/Vl)| for two distinct phases
TRIVIAL_TOL = 1e-4  # Minimum max|x - w| for two distinct liquid phases
PHASE_FRACTION_EPS = 1e-10  # Round-off allowance on phase fractions at the [0, 1] bounds
K_TRIVIAL = 1e-8  # |K - 1| below which all K-values are considered unity
SPINODAL_GRID = 400  # Points in the log-volume scan for spinodals


@dataclass(frozen=True)
class ComponentProperties:
    """Critical properties for a component."""
    name: str
    Tc: float      # Critical temperature (K)
    Pc: float      # Critical pressure (Pa)
    omega: float   # Acentric factor
    MW: float      # Molecular weight (g/mol)


# Critical properties, NIST / DIPPR values
COMPONENTS = {
    'hydrogen': ComponentProperties('Hydrogen', 33.145, 1.2964e6, -0.219, 2.016),
    'nitrogen': ComponentProperties('Nitrogen', 126.192, 3.3958e6, 0.0372, 28.014),
    'carbon dioxide': ComponentProperties('Carbon Dioxide', 304.1282, 7.3773e6, 0.22394, 44.01),
    'hydrogen sulfide': ComponentProperties('Hydrogen Sulfide', 373.1, 8.9999e6, 0.1005, 34.082),
    'water': ComponentProperties('Water', 647.096, 22.064e6, 0.3443, 18.015),
    'methane': ComponentProperties('Methane', 190.564, 4.5992e6, 0.01142, 16.043),
    'ethane': ComponentProperties('Ethane', 305.322, 4.8722e6, 0.0995, 30.07),
    'propane': ComponentProperties('Propane', 369.89, 4.2512e6, 0.1521, 44.097),
    'n-butane': ComponentProperties('n-Butane', 425.125, 3.796e6, 0.201, 58.123),
    'isobutane': ComponentProperties('i-Butane', 407.81, 3.629e6, 0.184, 58.123),
    'n-pentane': ComponentProperties('n-Pentane', 469.7, 3.37e6, 0.251, 72.15),
    'n-hexane': ComponentProperties('n-Hexane', 507.82, 3.034e6, 0.299, 86.18),
    'n-heptane': ComponentProperties('n-Heptane', 540.13, 2.736e6, 0.349, 100.2),
    'n-decane': ComponentProperties('n-Decane', 617.7, 2.103e6, 0.4884, 142.28),
    'benzene': ComponentProperties('Benzene', 562.02, 4.894e6, 0.2103, 78.11),
    'toluene': ComponentProperties('Toluene', 591.75, 4.126e6, 0.264, 92.14),
    'methanol': ComponentProperties('Methanol', 512.6, 8.104e6, 0.5625, 32.042),
    'ethanol': ComponentProperties('Ethanol', 514.71, 6.268e6, 0.646, 46.069),
}
