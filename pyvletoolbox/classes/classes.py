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

from enum import Enum

class phase(Enum):  # Phase descriptor used to select among volume roots
    LIQUID = 0
    VAPOR = 1
    UNKNOWN = 2
    STABLE = 3
    UNSTABLE = 4

class cubic_family(Enum):  # Two-parameter cubic equation of state family
    VDW = 0
    RK = 1
    SRK = 2
    PR = 3

class error_kind(Enum):  # Failure classification carried by solver errors
    OUT_OF_DOMAIN = 0  # Requested state has no physically valid root
    NOT_CONVERGED = 1  # Iteration limit reached without meeting tolerance
    DEGENERATE = 2  # Roots coincide or Jacobian singular
    INFEASIBLE = 3  # Flash or composition update leaves the physical simplex

class_dic = {
    "phase": phase,
    "family": cubic_family,
}
