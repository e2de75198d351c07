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

from pyvletoolbox.classes import error_kind


class PhaseEquilibriumError(Exception):
    """ Base class for typed solver failures.

        kind: error_kind classification (OUT_OF_DOMAIN, NOT_CONVERGED, DEGENERATE, INFEASIBLE)
        solver: Name of the solver that failed
        stage: Sub-solve that failed inside a composed solver, or None if the failure is local
        iterate: Dictionary describing the state at which the failure was detected
        iterations: Iterations performed before failing
    """
    solver = 'solver'

    def __init__(self, message, kind=error_kind.NOT_CONVERGED, stage=None, iterate=None, iterations=0):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.stage = stage
        self.iterate = dict(iterate) if iterate is not None else {}
        self.iterations = iterations

    def __str__(self):
        where = f" during {self.stage}" if self.stage else ""
        return f"{self.solver} failed ({self.kind.name}){where}: {self.message}"

    @property
    def no_solution(self):
        """ True when the failure indicates the equilibrium does not exist, rather than the solver not finding it"""
        return self.kind in (error_kind.OUT_OF_DOMAIN, error_kind.INFEASIBLE)


class VolumeNotFound(PhaseEquilibriumError):
    solver = 'volume'

class SaturationNotFound(PhaseEquilibriumError):
    solver = 'saturation pressure'

class CriticalPointNotFound(PhaseEquilibriumError):
    solver = 'critical point'

class FlashInfeasible(PhaseEquilibriumError):
    solver = 'flash'

class BubblePointNotFound(PhaseEquilibriumError):
    solver = 'bubble pressure'

class DewPointNotFound(PhaseEquilibriumError):
    solver = 'dew pressure'

class PhaseSplitNotFound(PhaseEquilibriumError):
    solver = 'liquid-liquid equilibrium'

class NoAzeotrope(PhaseEquilibriumError):
    solver = 'azeotrope pressure'


def reraise_as(error_cls, err, stage, iterate=None):
    """ Wraps a child solver failure into the parent's error type, keeping its classification"""
    raise error_cls(err.message, kind=err.kind, stage=stage,
                    iterate=iterate if iterate is not None else err.iterate,
                    iterations=err.iterations) from err
